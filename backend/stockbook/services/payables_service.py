# Overview: Supplier payables; outstanding amount plus invoice and payment history.

"""
Payables ledger.

Document "payables" is:

    {supplier_id: {"amount": 120.5,
                   "invoices": [{"id", "amount", "reference", "timestamp"}],
                   "payments": [{"id", "amount", "reference", "timestamp"}]}}

- A purchase adds its total cost and appends an invoice.
- A payment subtracts its amount and appends a payment record.
- Overpayment clamps the amount to zero; the excess is discarded, not
  carried as a credit.
- Paying a supplier that has no payable yet is a NotFoundError.
"""

from __future__ import annotations

import logging

from ..amounts import ZERO, round_money, to_decimal, to_json_number
from ..errors import NotFoundError, ValidationError
from ..validation import PAYMENT_POLICY, enforce_rules_payment, validate_payload
from . import ledger_service
from .storage import StorageContext

logger = logging.getLogger(__name__)

PAYABLES = "payables"


async def get_payables(ctx: StorageContext) -> dict:
    return await ctx.store.read(PAYABLES)


def stage_invoice(
    payables: dict,
    *,
    supplier_id: str,
    amount,
    invoice_ref: str | None,
    invoice_id: str,
    timestamp: int,
) -> dict:
    """Add one invoice to a payables document read under the "payables" lock."""
    amount = round_money(amount)
    payable = payables.setdefault(supplier_id, {"amount": 0, "invoices": []})
    payable["amount"] = to_json_number(round_money(to_decimal(payable.get("amount")) + amount))
    payable.setdefault("invoices", []).append({
        "id": invoice_id,
        "amount": to_json_number(amount),
        "reference": invoice_ref,
        "timestamp": timestamp,
    })
    return payable


async def record_purchase(
    ctx: StorageContext,
    *,
    supplier_id: str,
    amount,
    invoice_ref: str | None,
    invoice_id: str,
    timestamp: int,
) -> dict:
    """Raise the supplier's outstanding amount by one purchase invoice."""
    async with ctx.locks.hold(PAYABLES):
        payables = await ctx.store.read(PAYABLES)
        payable = stage_invoice(
            payables,
            supplier_id=supplier_id,
            amount=amount,
            invoice_ref=invoice_ref,
            invoice_id=invoice_id,
            timestamp=timestamp,
        )
        await ctx.store.write(PAYABLES, payables)
    return payable


async def record_payment(ctx: StorageContext, /, **fields) -> dict:
    """
    Lower the supplier's outstanding amount, floored at zero.

    Fields: supplier_id and amount (required), reference.

    Raises:
        ValidationError: Missing fields, unknown fields, amount <= 0
        NotFoundError: The supplier has no payable yet
    """
    patch = validate_payload(payload=fields, policy=PAYMENT_POLICY, partial=False)
    enforce_rules_payment(patch)
    supplier_id = patch["supplier_id"]
    amount = round_money(patch["amount"])
    reference = patch.get("reference") or None
    if amount <= ZERO:
        # positive amounts below half a cent round to zero
        raise ValidationError("amount must be > 0", field="amount")

    async with ctx.locks.hold(PAYABLES):
        payables = await ctx.store.read(PAYABLES)
        payable = payables.get(supplier_id)
        if payable is None:
            raise NotFoundError("no payable", supplier_id=supplier_id)

        outstanding = to_decimal(payable.get("amount")) - amount
        if outstanding < ZERO:
            logger.info(
                "Payment to %s exceeds outstanding by %s; clamping to zero",
                supplier_id, -outstanding,
            )
            outstanding = ZERO
        payable["amount"] = to_json_number(round_money(outstanding))
        payment = {
            "id": ledger_service.new_transaction_id(),
            "amount": to_json_number(amount),
            "reference": reference,
            "timestamp": ctx.clock(),
        }
        payable.setdefault("payments", []).append(payment)
        await ctx.store.write(PAYABLES, payables)

    logger.info("Recorded payment %s of %s to supplier %s", payment["id"], amount, supplier_id)
    return {"supplier_id": supplier_id, "payment": payment, "amount": payable["amount"]}
