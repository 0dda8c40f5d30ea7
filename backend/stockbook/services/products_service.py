# backend/stockbook/services/products_service.py
"""
Products Service

Products live in the "products" document keyed by id. Ledger entries and
balances reference products by id only, so deleting a product leaves its
history intact (orphaned by id, still valid).
"""
from __future__ import annotations

import logging
import uuid

from ..amounts import to_json_number
from ..errors import NotFoundError
from ..validation import PRODUCT_POLICY, enforce_rules_product, validate_payload
from .storage import StorageContext

logger = logging.getLogger(__name__)

PRODUCTS = "products"

PRODUCT_MUTABLE_FIELDS = {"sku", "name", "unit", "default_cost", "price"}


def _to_record(patch: dict) -> dict:
    return {k: (to_json_number(v) if k in ("default_cost", "price") and v is not None else v)
            for k, v in patch.items()}


def apply_product_patch(product: dict, patch: dict) -> None:
    for k, v in _to_record(patch).items():
        if k not in PRODUCT_MUTABLE_FIELDS:
            continue
        product[k] = v


async def list_products(ctx: StorageContext) -> list[dict]:
    products = await ctx.store.read(PRODUCTS)
    return sorted(products.values(), key=lambda p: (p.get("created_at") or 0, p.get("id")))


async def get_product(ctx: StorageContext, product_id: str) -> dict:
    products = await ctx.store.read(PRODUCTS)
    product = products.get(product_id)
    if product is None:
        raise NotFoundError("product not found", product_id=product_id)
    return product


async def create_product(ctx: StorageContext, /, **fields) -> dict:
    """
    Create a product.

    Required: name. Optional: sku, unit (default "pcs"), default_cost, price.
    """
    patch = validate_payload(payload=fields, policy=PRODUCT_POLICY, partial=False)
    enforce_rules_product(patch)

    product = {
        "id": str(uuid.uuid4()),
        "name": patch["name"],
        "sku": patch.get("sku") or "",
        "unit": patch.get("unit") or "pcs",
        "default_cost": 0,
        "price": 0,
        "created_at": ctx.clock(),
    }
    apply_product_patch(product, {k: v for k, v in patch.items() if k in ("default_cost", "price")})

    async with ctx.locks.hold(PRODUCTS):
        products = await ctx.store.read(PRODUCTS)
        products[product["id"]] = product
        await ctx.store.write(PRODUCTS, products)

    logger.info("Created product %s (%s)", product["id"], product["name"])
    return product


async def update_product(ctx: StorageContext, product_id: str, /, **fields) -> dict:
    patch = validate_payload(payload=fields, policy=PRODUCT_POLICY, partial=True)
    enforce_rules_product(patch)

    async with ctx.locks.hold(PRODUCTS):
        products = await ctx.store.read(PRODUCTS)
        product = products.get(product_id)
        if product is None:
            raise NotFoundError("product not found", product_id=product_id)
        apply_product_patch(product, patch)
        await ctx.store.write(PRODUCTS, products)
    return product


async def delete_product(ctx: StorageContext, product_id: str) -> bool:
    async with ctx.locks.hold(PRODUCTS):
        products = await ctx.store.read(PRODUCTS)
        if product_id not in products:
            raise NotFoundError("product not found", product_id=product_id)
        del products[product_id]
        await ctx.store.write(PRODUCTS, products)

    logger.info("Deleted product %s", product_id)
    return True
