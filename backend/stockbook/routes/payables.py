# Overview: Flask API routes for supplier payables; parses input and returns JSON responses.

from flask import Blueprint, request

from ..extensions import get_context
from ..services import payables_service
from ..validation import json_object


payables_bp = Blueprint("payables", __name__, url_prefix="/api/payables")


@payables_bp.get("")
async def list_payables_route():
    return await payables_service.get_payables(get_context())


@payables_bp.post("/pay")
async def pay_route():
    """
    Pay a supplier.

    Request body: {"supplier_id": "...", "amount": 50, "reference": "CHQ-17"}

    Paying more than is owed clamps the payable to zero.
    """
    payload = json_object(request.get_json(silent=True))
    result = await payables_service.record_payment(get_context(), **payload)
    return {"ok": True, **result}, 200
