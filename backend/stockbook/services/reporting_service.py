# Overview: Service-layer operations for reporting; read-only scans of the ledger.

"""
Reports are advisory. They scan the ledger without locks and may observe a
snapshot that is being appended to concurrently.

Time windows are inclusive on both ends: start <= timestamp <= end.
"""

from __future__ import annotations

from ..amounts import ZERO, round_money, to_decimal, to_json_number
from ..errors import ValidationError
from ..time_utils import to_utc_z
from . import ledger_service
from .products_service import PRODUCTS
from .storage import StorageContext
from .supplier_service import SUPPLIERS

MAX_RECENT_LIMIT = 1000


async def report_profit_and_loss(ctx: StorageContext, start: int | None = None, end: int | None = None) -> dict:
    start = 0 if start is None else int(start)
    # ledger clock, not wall clock: ticks can run slightly ahead of now_ms()
    end = ctx.clock() if end is None else int(end)
    if start > end:
        raise ValidationError("from must be <= to", start=start, end=end)

    revenue = cogs = purchases = ZERO
    for entry in await ledger_service.entries_between(ctx, start, end):
        if entry.type == ledger_service.SALE:
            revenue += to_decimal(entry.record.get("total_revenue"))
            cogs += to_decimal(entry.record.get("cogs"))
        elif entry.type == ledger_service.PURCHASE:
            purchases += to_decimal(entry.record.get("total_cost"))

    return {
        "from": start,
        "to": end,
        "from_iso": to_utc_z(start),
        "to_iso": to_utc_z(end),
        "revenue": to_json_number(round_money(revenue)),
        "cogs": to_json_number(round_money(cogs)),
        "purchases": to_json_number(round_money(purchases)),
        "gross_profit": to_json_number(round_money(revenue - cogs)),
    }


async def report_product_movements(ctx: StorageContext, product_id: str) -> list[dict]:
    """Every ledger record for a product, in creation order."""
    return [e.record for e in await ledger_service.entries_for_product(ctx, product_id)]


async def list_recent_transactions(ctx: StorageContext, limit: int | None = None) -> list[dict]:
    """Most recent ledger records, newest first."""
    if limit is None:
        limit = ctx.recent_transactions_limit
    limit = max(1, min(int(limit), MAX_RECENT_LIMIT))
    return [e.record for e in await ledger_service.recent_entries(ctx, limit)]


async def stock_valuation(ctx: StorageContext) -> dict:
    """
    Value of unconsumed purchase lots per (product, warehouse).

    Uses each lot's remaining quantity at its own unit cost, i.e. FIFO
    valuation. Pairs sold under average costing keep their lots untouched,
    so their remaining quantity can exceed the on-hand balance.
    """
    rows: dict[tuple[str, str], dict] = {}
    for entry in await ledger_service.scan(ctx):
        if entry.type != ledger_service.PURCHASE:
            continue
        available = entry.available
        if available <= ZERO:
            continue
        key = (entry.record.get("product_id"), entry.record.get("warehouse_id"))
        row = rows.setdefault(key, {"quantity": ZERO, "value": ZERO, "lots": 0})
        row["quantity"] += available
        row["value"] += available * entry.unit_cost
        row["lots"] += 1

    total = ZERO
    out = []
    for (product_id, warehouse_id), row in sorted(rows.items()):
        value = round_money(row["value"])
        total += value
        out.append({
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "remaining_quantity": to_json_number(row["quantity"]),
            "open_lots": row["lots"],
            "value": to_json_number(value),
        })
    return {"total_value": to_json_number(total), "rows": out}


async def summary_stats(ctx: StorageContext) -> dict:
    products = await ctx.store.read(PRODUCTS)
    suppliers = await ctx.store.read(SUPPLIERS)
    entries = await ledger_service.scan(ctx)
    total_sales = sum(
        (to_decimal(e.record.get("total_revenue")) for e in entries if e.type == ledger_service.SALE),
        ZERO,
    )
    return {
        "total_sales": to_json_number(round_money(total_sales)),
        "total_products": len(products),
        "total_suppliers": len(suppliers),
        "transaction_count": len(entries),
    }
