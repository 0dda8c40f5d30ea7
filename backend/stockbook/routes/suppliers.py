# Overview: Flask API routes for supplier operations; parses input and returns JSON responses.

"""
Supplier Routes

Suppliers are referenced by purchases and keyed into payables by id.
"""

from flask import Blueprint, request, jsonify

from ..extensions import get_context
from ..services import supplier_service
from ..validation import json_object


suppliers_bp = Blueprint("suppliers", __name__, url_prefix="/api/suppliers")


@suppliers_bp.get("")
async def list_suppliers_route():
    return jsonify(await supplier_service.list_suppliers(get_context()))


@suppliers_bp.get("/<supplier_id>")
async def get_supplier_route(supplier_id: str):
    return await supplier_service.get_supplier(get_context(), supplier_id)


@suppliers_bp.post("")
async def create_supplier_route():
    """
    Create a new supplier.

    Request body:
    {
        "name": "Acme Wholesale",   // required
        "contact": "+1 555 0100",   // optional
        "credit_limit": 5000        // optional, >= 0
    }
    """
    payload = json_object(request.get_json(silent=True))
    supplier = await supplier_service.create_supplier(get_context(), **payload)
    return supplier, 201


@suppliers_bp.put("/<supplier_id>")
async def update_supplier_route(supplier_id: str):
    payload = json_object(request.get_json(silent=True))
    return await supplier_service.update_supplier(get_context(), supplier_id, **payload)


@suppliers_bp.delete("/<supplier_id>")
async def delete_supplier_route(supplier_id: str):
    await supplier_service.delete_supplier(get_context(), supplier_id)
    return {"ok": True}, 200
