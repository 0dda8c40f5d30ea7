# Overview: Balance projection; on-hand quantity per (product, warehouse) derived from the ledger.

"""
Balance projection.

Document "balances" is {product_id: {warehouse_id: quantity}}. It is a cache
of sum(PURCHASE quantity) - sum(SALE quantity) per pair, written eagerly by
every purchase and sale, and always rebuildable from a full ledger scan.

Balances never go negative: stage() refuses to go below zero and sales
check availability first while holding the pair's stock lock.

Purchases and sales append their ledger record while holding the "balances"
lock and write the staged document before releasing it. rebuild_balances()
and check_consistency() take the same lock, so they always see the ledger
and the projection in step.
"""

from __future__ import annotations

import logging
from decimal import Decimal

from ..amounts import ZERO, to_decimal, to_json_number
from ..errors import InsufficientStockError
from . import ledger_service
from .storage import StorageContext

logger = logging.getLogger(__name__)

BALANCES = "balances"


def _lookup(balances: dict, product_id: str, warehouse_id: str) -> Decimal:
    return to_decimal((balances.get(product_id) or {}).get(warehouse_id, 0))


async def get_balances(ctx: StorageContext) -> dict:
    return await ctx.store.read(BALANCES)


async def get_available(ctx: StorageContext, product_id: str, warehouse_id: str) -> Decimal:
    """On-hand quantity for the pair; 0 if never seen."""
    return _lookup(await ctx.store.read(BALANCES), product_id, warehouse_id)


def stage(balances: dict, product_id: str, warehouse_id: str, delta) -> Decimal:
    """
    Apply `delta` to one pair of a balances document already read under the
    "balances" lock. Nothing is written; the caller persists the document.
    """
    delta = to_decimal(delta)
    current = _lookup(balances, product_id, warehouse_id)
    updated = current + delta
    if updated < ZERO:
        raise InsufficientStockError(
            available=to_json_number(current),
            requested=to_json_number(-delta),
            product_id=product_id,
            warehouse_id=warehouse_id,
        )
    balances.setdefault(product_id, {})[warehouse_id] = to_json_number(updated)
    return updated


async def _apply(ctx: StorageContext, product_id: str, warehouse_id: str, delta: Decimal) -> Decimal:
    async with ctx.locks.hold(BALANCES):
        balances = await ctx.store.read(BALANCES)
        updated = stage(balances, product_id, warehouse_id, delta)
        await ctx.store.write(BALANCES, balances)
        return updated


async def increase(ctx: StorageContext, product_id: str, warehouse_id: str, quantity) -> Decimal:
    return await _apply(ctx, product_id, warehouse_id, to_decimal(quantity))


async def decrease(ctx: StorageContext, product_id: str, warehouse_id: str, quantity) -> Decimal:
    return await _apply(ctx, product_id, warehouse_id, -to_decimal(quantity))


def replay(entries) -> dict:
    """Fold ledger entries into a fresh balances document."""
    totals: dict[str, dict[str, Decimal]] = {}
    for entry in entries:
        product_id = entry.record.get("product_id")
        warehouse_id = entry.record.get("warehouse_id")
        quantity = to_decimal(entry.record.get("quantity"))
        if entry.type == ledger_service.PURCHASE:
            sign = 1
        elif entry.type == ledger_service.SALE:
            sign = -1
        else:
            continue
        per_product = totals.setdefault(product_id, {})
        per_product[warehouse_id] = per_product.get(warehouse_id, ZERO) + sign * quantity

    return {
        product_id: {w: to_json_number(q) for w, q in per_warehouse.items()}
        for product_id, per_warehouse in totals.items()
    }


def diff(cached: dict, replayed: dict) -> list[dict]:
    """Pairs whose cached balance differs from the replayed one."""
    divergences = []
    pairs = set()
    for source in (cached, replayed):
        for product_id, per_warehouse in source.items():
            for warehouse_id in (per_warehouse or {}):
                pairs.add((product_id, warehouse_id))

    for product_id, warehouse_id in sorted(pairs):
        have = _lookup(cached, product_id, warehouse_id)
        want = _lookup(replayed, product_id, warehouse_id)
        if have != want:
            divergences.append({
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "cached": to_json_number(have),
                "ledger": to_json_number(want),
            })
    return divergences


async def check_consistency(ctx: StorageContext) -> list[dict]:
    """
    Compare the cached projection against a fresh ledger replay. Read-only.

    Holds the "balances" lock: ledger appends happen under it, so the replay
    never includes a record whose balance update is still pending.
    """
    async with ctx.locks.hold(BALANCES):
        replayed = replay(await ledger_service.scan(ctx))
        return diff(await ctx.store.read(BALANCES), replayed)


async def rebuild_balances(ctx: StorageContext) -> dict:
    """
    Replace the cached balances with a full ledger replay.

    Returns the divergences found against the previous cache.
    """
    async with ctx.locks.hold(BALANCES):
        replayed = replay(await ledger_service.scan(ctx))
        divergences = diff(await ctx.store.read(BALANCES), replayed)
        await ctx.store.write(BALANCES, replayed)

    if divergences:
        logger.warning("Rebuilt balances; %d pair(s) diverged from the ledger", len(divergences))
    else:
        logger.info("Rebuilt balances; projection matched the ledger")
    return {"balances": replayed, "divergences": divergences}
