# Overview: Structured error taxonomy shared by services and routes.

"""
Stockbook errors.

Every failure surfaced to a caller is a StockbookError carrying a stable
code, a human-readable message and a small data dict. Routes turn them into
JSON bodies through as_dict(); the HTTP status lives on the class.

Usage:
    try:
        await inventory_service.record_sale(ctx, product_id=pid, quantity=5, unit_price=3)
    except InsufficientStockError as e:
        print(f"only {e.available} left")
"""

from __future__ import annotations

from decimal import Decimal
from typing import Any


class StockbookError(Exception):
    """Base class for all structured stockbook failures."""

    code = "STOCKBOOK_ERROR"
    status = 500
    default_message = "Stockbook error"

    def __init__(self, message: str | None = None, **data: Any):
        self.message = message or self.default_message
        self.data = data
        super().__init__(self.message)

    def as_dict(self) -> dict[str, Any]:
        return {
            "error": self.message,
            "code": self.code,
            "data": {
                k: (float(v) if isinstance(v, Decimal) else v)
                for k, v in self.data.items()
            },
        }


class ValidationError(StockbookError):
    """400-level input problem."""

    code = "VALIDATION_ERROR"
    status = 400
    default_message = "Invalid input"


class NotFoundError(StockbookError):
    """Unknown product, supplier or payable."""

    code = "NOT_FOUND"
    status = 404
    default_message = "Not found"


class InsufficientStockError(StockbookError):
    """Requested quantity exceeds the on-hand balance."""

    code = "INSUFFICIENT_STOCK"
    status = 409
    default_message = "insufficient stock"

    @property
    def available(self) -> Decimal:
        return Decimal(str(self.data.get("available", 0)))

    @property
    def requested(self) -> Decimal:
        return Decimal(str(self.data.get("requested", 0)))


class CostingInvariantError(StockbookError):
    """
    Ledger and balance projection disagree.

    Raised from inside FIFO/average costing when the purchase lots cannot
    cover a quantity the balance check already admitted. Indicates a bug,
    not bad input.
    """

    code = "COSTING_INVARIANT"
    status = 500
    default_message = "Costing invariant violated"


class LockTimeoutError(StockbookError):
    """Storage contention exceeded the retry budget. Safe to retry."""

    code = "LOCK_TIMEOUT"
    status = 503
    default_message = "Resource is busy, retry later"


class CorruptDocumentError(StockbookError):
    """Malformed on-disk document. Recovered inside the store, never surfaced."""

    code = "CORRUPT_DOCUMENT"
    default_message = "Corrupt document"
