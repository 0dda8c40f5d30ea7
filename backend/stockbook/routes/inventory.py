# backend/stockbook/routes/inventory.py
"""
Inventory routes: purchases, sales and the balance projection.

Numbers in request bodies may be JSON numbers or numeric strings. Omitted
warehouse_id falls back to the configured default warehouse; omitted
costing_method falls back to the configured default (FIFO).
"""
from flask import Blueprint, request

from ..extensions import get_context
from ..services import balance_service, inventory_service
from ..validation import json_object


inventory_bp = Blueprint("inventory", __name__, url_prefix="/api")


@inventory_bp.post("/purchase")
async def purchase_route():
    """
    Record a purchase: appends a PURCHASE transaction, raises the balance and
    the supplier's payable.
    """
    payload = json_object(request.get_json(silent=True))
    tx = await inventory_service.record_purchase(get_context(), **payload)
    return {"ok": True, "tx": tx}, 201


@inventory_bp.post("/sale")
async def sale_route():
    """
    Record a sale: checks availability, computes COGS, appends a SALE
    transaction and lowers the balance.

    409 with {"data": {"available": n}} when stock is insufficient.
    """
    payload = json_object(request.get_json(silent=True))
    tx = await inventory_service.record_sale(get_context(), **payload)
    return {"ok": True, "tx": tx}, 201


@inventory_bp.get("/balances")
async def balances_route():
    return await balance_service.get_balances(get_context())


@inventory_bp.get("/balances/check")
async def balances_check_route():
    divergences = await balance_service.check_consistency(get_context())
    return {"consistent": not divergences, "divergences": divergences}
