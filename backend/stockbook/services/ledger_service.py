# Overview: Service-layer operations for the transaction ledger; append, scan and lot updates.

from __future__ import annotations

import uuid
from dataclasses import dataclass
from decimal import Decimal
from typing import Iterable, Optional

from ..amounts import ZERO, to_decimal, to_json_number
from .storage import StorageContext

"""
Stockbook Ledger Invariants (authoritative)

- The ledger is the source of truth for stock movement, revenue and cost.
- One immutable record per PURCHASE or SALE; records are never deleted or reordered.
- The ONLY mutable field is a PURCHASE record's "remaining", decremented by
  FIFO consumption: monotonically non-increasing, never below zero.
- Creation order = timestamp order = transaction file name order.
- A full scan is the canonical answer to any aggregate question; balances and
  payables are caches that must reconcile against a fresh scan.
- Scans take no locks and may see a snapshot that is concurrently appended to.
"""

PURCHASE = "PURCHASE"
SALE = "SALE"
TRANSACTION_TYPES = (PURCHASE, SALE)


@dataclass
class LedgerEntry:
    """A transaction record together with the file name it lives under."""

    name: str
    record: dict

    @property
    def type(self) -> str:
        return self.record.get("type")

    @property
    def timestamp(self) -> int:
        return int(self.record.get("timestamp") or 0)

    @property
    def available(self) -> Decimal:
        """Unconsumed lot quantity; records without "remaining" count in full."""
        if self.record.get("remaining") is not None:
            return to_decimal(self.record["remaining"])
        return to_decimal(self.record.get("quantity"))

    @property
    def unit_cost(self) -> Decimal:
        return to_decimal(self.record.get("unit_cost"))


def new_transaction_id() -> str:
    return str(uuid.uuid4())


async def append_transaction(ctx: StorageContext, record: dict) -> LedgerEntry:
    """
    Append-only write of one ledger record.

    The record must already carry id, type and timestamp.
    """
    if record.get("type") not in TRANSACTION_TYPES:
        raise ValueError(f"unknown transaction type: {record.get('type')!r}")
    name = await ctx.store.append_transaction(record)
    return LedgerEntry(name=name, record=record)


async def scan(ctx: StorageContext, names: Optional[Iterable[str]] = None) -> list[LedgerEntry]:
    """
    Read ledger entries in creation order.

    Corrupt files are skipped (counted by the store). `names` limits the scan
    to a subset of file names, still read in the order given.
    """
    if names is None:
        names = await ctx.store.list_transactions()
    entries = []
    for name in names:
        record = await ctx.store.read_transaction(name)
        if record is None:
            continue
        entries.append(LedgerEntry(name=name, record=record))
    return entries


def _creation_order(entry: LedgerEntry):
    return (entry.timestamp, entry.name)


async def purchase_lots(ctx: StorageContext, product_id: str, warehouse_id: str) -> list[LedgerEntry]:
    """All PURCHASE entries for (product, warehouse), oldest first."""
    lots = [
        e for e in await scan(ctx)
        if e.type == PURCHASE
        and e.record.get("product_id") == product_id
        and e.record.get("warehouse_id") == warehouse_id
    ]
    lots.sort(key=_creation_order)
    return lots


async def entries_for_product(ctx: StorageContext, product_id: str) -> list[LedgerEntry]:
    return [e for e in await scan(ctx) if e.record.get("product_id") == product_id]


async def entries_between(ctx: StorageContext, start: int, end: int) -> list[LedgerEntry]:
    """Entries with start <= timestamp <= end (both bounds inclusive)."""
    return [e for e in await scan(ctx) if start <= e.timestamp <= end]


async def recent_entries(ctx: StorageContext, limit: int) -> list[LedgerEntry]:
    """Last `limit` entries, newest first."""
    names = await ctx.store.list_transactions()
    tail = names[-limit:] if limit > 0 else []
    entries = await scan(ctx, tail)
    entries.reverse()
    return entries


async def count_entries(ctx: StorageContext) -> int:
    return len(await ctx.store.list_transactions())


async def consume_lot(ctx: StorageContext, entry: LedgerEntry, quantity: Decimal) -> LedgerEntry:
    """
    Decrement a purchase lot's remaining quantity and persist it.

    Caller must hold the stock lock for the lot's (product, warehouse).
    """
    if entry.type != PURCHASE:
        raise ValueError("only PURCHASE lots can be consumed")
    if quantity <= ZERO:
        raise ValueError("consumed quantity must be positive")
    available = entry.available
    if quantity > available:
        raise ValueError(f"lot {entry.record.get('id')} has only {available} remaining")

    record = dict(entry.record)
    record["remaining"] = to_json_number(available - quantity)
    await ctx.store.rewrite_transaction(entry.name, record)
    return LedgerEntry(name=entry.name, record=record)
