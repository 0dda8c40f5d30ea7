# Overview: Service-layer operations for inventory; purchases and sales against the ledger.

# backend/stockbook/services/inventory_service.py

from __future__ import annotations

import logging

from ..amounts import round_money, to_decimal, to_json_number
from ..errors import InsufficientStockError
from ..validation import (
    PURCHASE_POLICY,
    SALE_POLICY,
    enforce_rules_purchase,
    enforce_rules_sale,
    validate_payload,
)
from . import balance_service, costing_service, ledger_service, payables_service
from .balance_service import BALANCES
from .concurrency import stock_lock_name
from .payables_service import PAYABLES
from .products_service import get_product
from .storage import StorageContext
from .supplier_service import get_supplier

logger = logging.getLogger(__name__)

"""
Stockbook Inventory Invariants & Control Flow (authoritative)

Purchase:
1. Validate input; product and supplier must exist.
2. Take the pair's stock lock, then "balances", then "payables".
3. Stage the balance increase and the supplier invoice in memory, append the
   PURCHASE record (remaining = quantity), then write both documents.

Sale:
Under the pair's stock lock, held for the whole check-compute-write sequence:
1. Reject if quantity > available balance (InsufficientStockError, balance unchanged).
2. Compute COGS with the requested method (default FIFO).
3. Take "balances", stage the decrease, append the SALE record, write balances.
4. FIFO only: decrement "remaining" on the consumed lots, oldest first.

Commit rules:
- Every lock an operation needs is acquired before its ledger record is
  appended. A LockTimeoutError therefore means nothing was written and the
  caller may retry.
- Validation, costing and non-negative checks all run before the append.
- The append and the projection writes happen under "balances", which
  rebuild_balances() and check_consistency() also take.
- Two sales on the same (product, warehouse) cannot both pass the availability
  check against a stale balance: the stock lock serializes them.
- If the store itself fails after the append, the projection lags the ledger
  until balance_service.rebuild_balances().
"""


def _warehouse(ctx: StorageContext, warehouse_id: str | None) -> str:
    return warehouse_id or ctx.default_warehouse


async def record_purchase(ctx: StorageContext, /, **fields) -> dict:
    """
    Receive `quantity` units of a product from a supplier at `unit_cost`.

    Fields: product_id, supplier_id, quantity, unit_cost (required);
    warehouse_id, reference.

    Returns:
        The PURCHASE transaction record

    Raises:
        ValidationError: Missing or unknown fields, non-positive quantity or unit cost
        NotFoundError: Unknown product or supplier
        LockTimeoutError: Storage contention; nothing was written
    """
    patch = validate_payload(payload=fields, policy=PURCHASE_POLICY, partial=False)
    enforce_rules_purchase(patch)

    await get_product(ctx, patch["product_id"])
    await get_supplier(ctx, patch["supplier_id"])

    product_id = patch["product_id"]
    supplier_id = patch["supplier_id"]
    warehouse_id = _warehouse(ctx, patch.get("warehouse_id"))
    qty = patch["quantity"]
    total_cost = round_money(qty * patch["unit_cost"])

    async with ctx.locks.hold(stock_lock_name(product_id, warehouse_id)), \
            ctx.locks.hold(BALANCES), \
            ctx.locks.hold(PAYABLES):
        balances = await ctx.store.read(BALANCES)
        payables = await ctx.store.read(PAYABLES)

        tx = {
            "id": ledger_service.new_transaction_id(),
            "type": ledger_service.PURCHASE,
            "product_id": product_id,
            "warehouse_id": warehouse_id,
            "supplier_id": supplier_id,
            "quantity": to_json_number(qty),
            "unit_cost": to_json_number(patch["unit_cost"]),
            "total_cost": to_json_number(total_cost),
            "reference": patch.get("reference") or None,
            "timestamp": ctx.clock(),
            "remaining": to_json_number(qty),
        }
        balance_service.stage(balances, product_id, warehouse_id, qty)
        payables_service.stage_invoice(
            payables,
            supplier_id=supplier_id,
            amount=total_cost,
            invoice_ref=tx["reference"],
            invoice_id=tx["id"],
            timestamp=tx["timestamp"],
        )

        await ledger_service.append_transaction(ctx, tx)
        await ctx.store.write(BALANCES, balances)
        await ctx.store.write(PAYABLES, payables)

    logger.info(
        "Purchase %s: %s x %s @ %s into %s from supplier %s",
        tx["id"], tx["quantity"], product_id, tx["unit_cost"], warehouse_id, supplier_id,
    )
    return tx


async def record_sale(ctx: StorageContext, /, **fields) -> dict:
    """
    Sell `quantity` units from a warehouse and record revenue and COGS.

    Fields: product_id, quantity, unit_price (required); warehouse_id,
    costing_method (FIFO or AVERAGE, default from settings).

    Returns:
        The SALE transaction record

    Raises:
        ValidationError: Missing or unknown fields, non-positive values, unknown costing method
        InsufficientStockError: quantity exceeds the available balance
        CostingInvariantError: purchase lots cannot cover an admitted sale
        LockTimeoutError: Storage contention; nothing was written
    """
    patch = validate_payload(payload=fields, policy=SALE_POLICY, partial=False)
    enforce_rules_sale(patch)
    method = costing_service.normalize_method(patch.get("costing_method"), ctx.default_costing_method)

    product_id = patch["product_id"]
    warehouse_id = _warehouse(ctx, patch.get("warehouse_id"))
    qty = patch["quantity"]

    async with ctx.locks.hold(stock_lock_name(product_id, warehouse_id)):
        available = await balance_service.get_available(ctx, product_id, warehouse_id)
        if available < qty:
            raise InsufficientStockError(
                available=to_json_number(available),
                requested=to_json_number(qty),
                product_id=product_id,
                warehouse_id=warehouse_id,
            )

        costing = await costing_service.compute_cogs(
            ctx,
            product_id=product_id,
            warehouse_id=warehouse_id,
            quantity=qty,
            method=method,
        )

        async with ctx.locks.hold(BALANCES):
            balances = await ctx.store.read(BALANCES)
            balance_service.stage(balances, product_id, warehouse_id, -qty)

            tx = {
                "id": ledger_service.new_transaction_id(),
                "type": ledger_service.SALE,
                "product_id": product_id,
                "warehouse_id": warehouse_id,
                "quantity": to_json_number(qty),
                "unit_price": to_json_number(patch["unit_price"]),
                "total_revenue": to_json_number(round_money(qty * patch["unit_price"])),
                "cogs": to_json_number(costing.cogs),
                "costing_method": method,
                "timestamp": ctx.clock(),
            }
            if method == costing_service.FIFO:
                tx["consumed_lots"] = [d.as_dict() for d in costing.draws]

            await ledger_service.append_transaction(ctx, tx)
            await ctx.store.write(BALANCES, balances)

        if method == costing_service.FIFO:
            await costing_service.apply_fifo_plan(ctx, costing)

    logger.info(
        "Sale %s: %s x %s from %s, revenue %s, cogs %s (%s)",
        tx["id"], tx["quantity"], product_id, warehouse_id, tx["total_revenue"], tx["cogs"], method,
    )
    return tx


async def get_available(ctx: StorageContext, product_id: str, warehouse_id: str | None = None):
    """Current on-hand quantity as a JSON number."""
    qty = await balance_service.get_available(ctx, product_id, _warehouse(ctx, warehouse_id))
    return to_json_number(to_decimal(qty))
