# Overview: Flask API routes for products operations; parses input and returns JSON responses.

# backend/stockbook/routes/products.py
"""
Product management routes.

Products are plain records in the "products" document. Deleting a product
does not rewrite ledger history that references it.
"""
from flask import Blueprint, jsonify, request

from ..extensions import get_context
from ..services import products_service
from ..validation import json_object

products_bp = Blueprint("products", __name__, url_prefix="/api/products")


@products_bp.get("")
async def list_products():
    return jsonify(await products_service.list_products(get_context()))


@products_bp.get("/<product_id>")
async def get_product_route(product_id: str):
    return await products_service.get_product(get_context(), product_id)


@products_bp.post("")
async def create_product_route():
    """
    Create a new product.

    Request body:
    {
        "name": "Widget",      // required
        "sku": "W-1",          // optional
        "unit": "pcs",         // optional, default "pcs"
        "default_cost": 2.5,   // optional, >= 0
        "price": 4             // optional, >= 0
    }
    """
    payload = json_object(request.get_json(silent=True))
    created = await products_service.create_product(get_context(), **payload)
    return created, 201


@products_bp.put("/<product_id>")
async def update_product_route(product_id: str):
    payload = json_object(request.get_json(silent=True))
    return await products_service.update_product(get_context(), product_id, **payload)


@products_bp.delete("/<product_id>")
async def delete_product_route(product_id: str):
    await products_service.delete_product(get_context(), product_id)
    return {"ok": True}, 200
