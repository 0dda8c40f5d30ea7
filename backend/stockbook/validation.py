from __future__ import annotations

from dataclasses import dataclass, field
from decimal import Decimal, InvalidOperation
from typing import Any

from .amounts import ZERO, to_decimal
from .errors import ValidationError

# Field types understood by validate_payload
STRING = "string"
NUMBER = "number"


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set, with a type (security boundary)
    - required_on_create: fields required for POST
    - nullable_fields: fields that may be explicitly set to null
    """
    writable_fields: dict[str, str]
    required_on_create: set[str] = field(default_factory=set)
    nullable_fields: set[str] = field(default_factory=set)


PRODUCT_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": STRING,
        "sku": STRING,
        "unit": STRING,
        "default_cost": NUMBER,
        "price": NUMBER,
    },
    required_on_create={"name"},
)

SUPPLIER_POLICY = ModelValidationPolicy(
    writable_fields={
        "name": STRING,
        "contact": STRING,
        "credit_limit": NUMBER,
    },
    required_on_create={"name"},
    nullable_fields={"contact"},
)

PURCHASE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id": STRING,
        "supplier_id": STRING,
        "warehouse_id": STRING,
        "quantity": NUMBER,
        "unit_cost": NUMBER,
        "reference": STRING,
    },
    required_on_create={"product_id", "supplier_id", "quantity", "unit_cost"},
    nullable_fields={"reference", "warehouse_id"},
)

SALE_POLICY = ModelValidationPolicy(
    writable_fields={
        "product_id": STRING,
        "warehouse_id": STRING,
        "quantity": NUMBER,
        "unit_price": NUMBER,
        "costing_method": STRING,
    },
    required_on_create={"product_id", "quantity", "unit_price"},
    nullable_fields={"warehouse_id", "costing_method"},
)

PAYMENT_POLICY = ModelValidationPolicy(
    writable_fields={
        "supplier_id": STRING,
        "amount": NUMBER,
        "reference": STRING,
    },
    required_on_create={"supplier_id", "amount"},
    nullable_fields={"reference"},
)


def _coerce_value(key: str, kind: str, value: Any):
    if kind == NUMBER:
        # bool is a subclass of int; true/false are not quantities
        if isinstance(value, bool):
            raise ValidationError(f"{key} must be a number", field=key)
        if isinstance(value, (int, float, Decimal)):
            dec = to_decimal(value)
        elif isinstance(value, str):
            try:
                dec = Decimal(value.strip())
            except InvalidOperation:
                raise ValidationError(f"{key} must be a number", field=key)
        else:
            raise ValidationError(f"{key} must be a number", field=key)
        if not dec.is_finite():
            raise ValidationError(f"{key} must be a finite number", field=key)
        return dec

    if kind == STRING:
        if isinstance(value, (dict, list, bool)):
            raise ValidationError(f"{key} must be a string", field=key)
        return str(value).strip()

    # Default: leave as-is
    return value


def validate_payload(
    *,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Validates + normalizes incoming JSON against a policy.

    Returns a cleaned patch dict with only writable fields; numbers come back
    as Decimal, strings stripped.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    if not partial:
        missing = sorted(
            f for f in policy.required_on_create
            if payload.get(f) is None or (isinstance(payload.get(f), str) and not payload[f].strip())
        )
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}", fields=missing)

    # Reject unknown / non-writable fields
    for k in payload.keys():
        if k not in policy.writable_fields:
            raise ValidationError(f"Field not allowed: {k}", field=k)

    patch: dict = {}
    for k, raw in payload.items():
        if raw is None:
            if k not in policy.nullable_fields:
                raise ValidationError(f"{k} cannot be null", field=k)
            patch[k] = None
            continue

        val = _coerce_value(k, policy.writable_fields[k], raw)
        if isinstance(val, str) and val == "" and k in policy.required_on_create:
            raise ValidationError(f"{k} cannot be blank", field=k)
        patch[k] = val

    return patch


def _require_positive(patch: dict, key: str) -> None:
    if key in patch and (patch[key] is None or patch[key] <= ZERO):
        raise ValidationError(f"{key} must be > 0", field=key)


def _require_non_negative(patch: dict, key: str) -> None:
    if key in patch and patch[key] is not None and patch[key] < ZERO:
        raise ValidationError(f"{key} must be >= 0", field=key)


def enforce_rules_product(patch: dict) -> None:
    _require_non_negative(patch, "default_cost")
    _require_non_negative(patch, "price")


def enforce_rules_supplier(patch: dict) -> None:
    _require_non_negative(patch, "credit_limit")


def enforce_rules_purchase(patch: dict) -> None:
    # PURCHASE requires qty > 0 and a positive unit cost
    _require_positive(patch, "quantity")
    _require_positive(patch, "unit_cost")


def enforce_rules_sale(patch: dict) -> None:
    # SALE never accepts unit_cost input (the costing engine computes COGS)
    _require_positive(patch, "quantity")
    _require_positive(patch, "unit_price")


def enforce_rules_payment(patch: dict) -> None:
    _require_positive(patch, "amount")


def json_object(payload: Any) -> dict:
    """Request body as keyword fields for a service call; {} when absent."""
    if payload is None:
        return {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
