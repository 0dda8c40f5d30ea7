# Overview: Cost of goods sold from purchase lots, by FIFO lot consumption or weighted average.

"""
Costing engine (authoritative)

Both methods read every PURCHASE lot for one (product, warehouse) pair, in
creation order, and treat a lot's available quantity as `remaining` when
present, else `quantity`.

FIFO:
- Walk lots oldest first, taking min(available, still_needed) at each lot's
  unit cost until the need is met.
- The plan names every lot touched and how much it gives; apply_fifo_plan()
  writes those decrements back to the lots in the same order after the sale
  record is committed.

AVERAGE (weighted average):
- cogs = quantity * sum(available * unit_cost) / sum(available),
  rounded to cents once at the end.
- Lots are NOT decremented. A later FIFO sale on the same pair will see that
  capacity again (known inconsistency between the two methods).

Shortfall:
- Lots that cannot cover the quantity mean the balance projection and the
  ledger disagree: CostingInvariantError, never InsufficientStockError.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal

from ..amounts import ZERO, round_money, to_decimal, to_json_number
from ..errors import CostingInvariantError, ValidationError
from . import ledger_service
from .ledger_service import LedgerEntry
from .storage import StorageContext

FIFO = "FIFO"
AVERAGE = "AVERAGE"

_METHOD_ALIASES = {
    "FIFO": FIFO,
    "AVERAGE": AVERAGE,
    "AVG": AVERAGE,
    "WAC": AVERAGE,
}


def normalize_method(value: str | None, default: str = FIFO) -> str:
    raw = (value or default).strip().upper()
    method = _METHOD_ALIASES.get(raw)
    if method is None:
        raise ValidationError(
            f"costing_method must be one of FIFO, AVERAGE (got {value!r})",
            field="costing_method",
        )
    return method


@dataclass(frozen=True)
class LotDraw:
    """Quantity taken from one lot at that lot's unit cost."""

    entry: LedgerEntry
    quantity: Decimal
    unit_cost: Decimal

    def as_dict(self) -> dict:
        return {
            "lot_id": self.entry.record.get("id"),
            "quantity": to_json_number(self.quantity),
            "unit_cost": to_json_number(self.unit_cost),
        }


@dataclass
class CostingResult:
    method: str
    quantity: Decimal
    cogs: Decimal
    draws: list[LotDraw] = field(default_factory=list)

    @property
    def unit_cost(self) -> Decimal:
        if self.quantity == ZERO:
            return ZERO
        return self.cogs / self.quantity


def fifo_cost(lots: list[LedgerEntry], quantity) -> CostingResult:
    """Plan a FIFO draw over lots (already in creation order). Pure."""
    needed = to_decimal(quantity)
    cost = ZERO
    draws = []
    for lot in lots:
        if needed <= ZERO:
            break
        available = lot.available
        if available <= ZERO:
            continue
        take = min(available, needed)
        cost += take * lot.unit_cost
        needed -= take
        draws.append(LotDraw(entry=lot, quantity=take, unit_cost=lot.unit_cost))

    if needed > ZERO:
        raise CostingInvariantError(
            "Insufficient stock for FIFO",
            requested=to_json_number(to_decimal(quantity)),
            shortfall=to_json_number(needed),
        )
    return CostingResult(method=FIFO, quantity=to_decimal(quantity), cogs=round_money(cost), draws=draws)


def average_cost(lots: list[LedgerEntry], quantity) -> CostingResult:
    """Weighted-average cost over all available lot quantity. Pure."""
    requested = to_decimal(quantity)
    total_qty = ZERO
    total_cost = ZERO
    for lot in lots:
        available = lot.available
        total_qty += available
        total_cost += available * lot.unit_cost

    if total_qty < requested or total_qty <= ZERO:
        raise CostingInvariantError(
            "Insufficient stock for average costing",
            requested=to_json_number(requested),
            available=to_json_number(total_qty),
        )
    # multiply before dividing so 12 * 40 / 15 comes out exactly 32
    cogs = round_money(requested * total_cost / total_qty)
    return CostingResult(method=AVERAGE, quantity=requested, cogs=cogs)


async def compute_cogs(
    ctx: StorageContext,
    *,
    product_id: str,
    warehouse_id: str,
    quantity,
    method: str = FIFO,
) -> CostingResult:
    """Cost `quantity` units of the pair. Caller holds the pair's stock lock."""
    lots = await ledger_service.purchase_lots(ctx, product_id, warehouse_id)
    if method == FIFO:
        return fifo_cost(lots, quantity)
    return average_cost(lots, quantity)


async def apply_fifo_plan(ctx: StorageContext, result: CostingResult) -> list[LedgerEntry]:
    """Persist lot decrements for a committed FIFO sale, oldest lot first."""
    updated = []
    for draw in result.draws:
        updated.append(await ledger_service.consume_lot(ctx, draw.entry, draw.quantity))
    return updated
