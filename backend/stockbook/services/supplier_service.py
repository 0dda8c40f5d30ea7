# Overview: Service-layer operations for suppliers.

"""
Supplier Service

WHY: Every purchase names exactly one supplier, and the supplier's payable
is keyed by the same id.

DESIGN:
- Suppliers live in the "suppliers" document keyed by id.
- Deleting a supplier does not touch its payable or its purchase history.
"""

from __future__ import annotations

import logging
import uuid

from ..amounts import to_json_number
from ..errors import NotFoundError
from ..validation import SUPPLIER_POLICY, enforce_rules_supplier, validate_payload
from .storage import StorageContext

logger = logging.getLogger(__name__)

SUPPLIERS = "suppliers"


def _apply(supplier: dict, patch: dict) -> None:
    for k, v in patch.items():
        if k == "credit_limit" and v is not None:
            v = to_json_number(v)
        supplier[k] = v


async def list_suppliers(ctx: StorageContext) -> list[dict]:
    suppliers = await ctx.store.read(SUPPLIERS)
    return sorted(suppliers.values(), key=lambda s: (s.get("created_at") or 0, s.get("id")))


async def get_supplier(ctx: StorageContext, supplier_id: str) -> dict:
    suppliers = await ctx.store.read(SUPPLIERS)
    supplier = suppliers.get(supplier_id)
    if supplier is None:
        raise NotFoundError("supplier not found", supplier_id=supplier_id)
    return supplier


async def create_supplier(ctx: StorageContext, /, **fields) -> dict:
    """
    Create a new supplier.

    Args:
        name: Supplier name (required)
        contact: Free-form contact details
        credit_limit: Credit limit extended by the supplier (default 0)

    Returns:
        Created supplier record

    Raises:
        ValidationError: If name is missing or credit_limit is negative
    """
    patch = validate_payload(payload=fields, policy=SUPPLIER_POLICY, partial=False)
    enforce_rules_supplier(patch)

    supplier = {
        "id": str(uuid.uuid4()),
        "name": patch["name"],
        "contact": None,
        "credit_limit": 0,
        "created_at": ctx.clock(),
    }
    _apply(supplier, {k: v for k, v in patch.items() if k != "name"})

    async with ctx.locks.hold(SUPPLIERS):
        suppliers = await ctx.store.read(SUPPLIERS)
        suppliers[supplier["id"]] = supplier
        await ctx.store.write(SUPPLIERS, suppliers)

    logger.info("Created supplier %s (%s)", supplier["id"], supplier["name"])
    return supplier


async def update_supplier(ctx: StorageContext, supplier_id: str, /, **fields) -> dict:
    patch = validate_payload(payload=fields, policy=SUPPLIER_POLICY, partial=True)
    enforce_rules_supplier(patch)

    async with ctx.locks.hold(SUPPLIERS):
        suppliers = await ctx.store.read(SUPPLIERS)
        supplier = suppliers.get(supplier_id)
        if supplier is None:
            raise NotFoundError("supplier not found", supplier_id=supplier_id)
        _apply(supplier, patch)
        await ctx.store.write(SUPPLIERS, suppliers)
    return supplier


async def delete_supplier(ctx: StorageContext, supplier_id: str) -> bool:
    async with ctx.locks.hold(SUPPLIERS):
        suppliers = await ctx.store.read(SUPPLIERS)
        if supplier_id not in suppliers:
            raise NotFoundError("supplier not found", supplier_id=supplier_id)
        del suppliers[supplier_id]
        await ctx.store.write(SUPPLIERS, suppliers)

    logger.info("Deleted supplier %s", supplier_id)
    return True
