from __future__ import annotations

from dataclasses import dataclass
from typing import Any, Callable

from sqlalchemy import Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationFailureError


# Maximum cost: 999,999,999 in the smallest currency unit.
# Keeps values inside a 32-bit signed column on every backend.
MAX_COST = 999_999_999

# Maximum units per product or per sale. SUM(sales.quantity) stays far below
# the 64-bit limit of SUM() for any realistic number of sales.
MAX_QUANTITY = 1_000_000


class _FieldError(ValueError):
    """One field's problem; collected into a ValidationFailureError."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    Central policy layer:
    - writable_fields: what clients are allowed to set (security boundary)
    - required_on_create: fields required for POST
    """
    writable_fields: frozenset[str]
    required_on_create: frozenset[str] = frozenset()


def _columns_by_key(model: DeclarativeMeta) -> dict[str, Any]:
    mapper = model.__mapper__
    return {c.key: c for c in mapper.columns}


def _coerce_value(col, value: Any):
    coltype = col.type

    # Integers - JSON numbers only; bools and floats are rejected
    if isinstance(coltype, Integer):
        if isinstance(value, int) and not isinstance(value, bool):
            return value
        if isinstance(value, float):
            raise _FieldError("must be an integer, not a decimal")
        raise _FieldError("must be an integer")

    # Strings / Text
    if isinstance(coltype, (String, Text)):
        if not isinstance(value, str):
            raise _FieldError("must be a string")
        return value.strip()

    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: Any,
    policy: ModelValidationPolicy,
    partial: bool,
    rules: Callable[[dict], list[dict[str, str]]] | None = None,
) -> dict:
    """
    Validates + normalizes incoming JSON against:
    - SQLAlchemy column metadata (nullable, type, String length)
    - a policy allowlist (writable_fields)
    - required_on_create (if partial=False)
    Returns a cleaned patch dict with only writable fields.

    Every failing field is reported; nothing is raised until all keys have
    been checked.

    partial=False: create semantics (enforce required_on_create)
    partial=True: patch semantics (validate only provided keys)
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationFailureError("Invalid JSON payload")

    errors: list[dict[str, str]] = []
    cols = _columns_by_key(model)

    if not partial:
        for f in sorted(policy.required_on_create):
            if f not in payload:
                errors.append({"field": f, "error": f"{f} is required"})

    patch: dict = {}

    for k, raw in payload.items():
        if k not in policy.writable_fields or k not in cols:
            errors.append({"field": k, "error": f"Field not allowed: {k}"})
            continue

        col = cols[k]

        if raw is None:
            if not col.nullable:
                errors.append({"field": k, "error": f"{k} cannot be null"})
                continue
            patch[k] = None
            continue

        try:
            val = _coerce_value(col, raw)
        except _FieldError as e:
            errors.append({"field": k, "error": f"{k} {e}"})
            continue

        # Blank string check for non-nullable text fields
        if isinstance(col.type, (String, Text)) and not col.nullable and val == "":
            errors.append({"field": k, "error": f"{k} cannot be blank"})
            continue

        # Max length check for String(n)
        if isinstance(col.type, String) and col.type.length and isinstance(val, str):
            if len(val) > col.type.length:
                errors.append({"field": k, "error": f"{k} exceeds max length {col.type.length}"})
                continue

        patch[k] = val

    if rules is not None:
        errors.extend(rules(patch))

    if errors:
        raise ValidationFailureError(fields=errors)

    return patch


def _range_errors(patch: dict, field: str, *, minimum: int, maximum: int | None = None) -> list[dict[str, str]]:
    if field not in patch or patch[field] is None:
        return []
    value = patch[field]
    if value < minimum:
        return [{"field": field, "error": f"{field} must be >= {minimum}"}]
    if maximum is not None and value > maximum:
        return [{"field": field, "error": f"{field} cannot exceed {maximum}"}]
    return []


def product_rule_errors(patch: dict) -> list[dict[str, str]]:
    """
    Business rules that are not captured by SQLAlchemy metadata alone.
    Keep these small and centralized.
    """
    errors = _range_errors(patch, "cost", minimum=0, maximum=MAX_COST)
    errors += _range_errors(patch, "quantity", minimum=0, maximum=MAX_QUANTITY)
    return errors


def sale_rule_errors(patch: dict) -> list[dict[str, str]]:
    # A sale moves at least one unit; paid may be zero (giveaways)
    errors = _range_errors(patch, "quantity", minimum=1, maximum=MAX_QUANTITY)
    errors += _range_errors(patch, "paid", minimum=0, maximum=MAX_COST)
    return errors


def enforce_rules_product(patch: dict) -> None:
    errors = product_rule_errors(patch)
    if errors:
        raise ValidationFailureError(fields=errors)


def enforce_rules_sale(patch: dict) -> None:
    errors = sale_rule_errors(patch)
    if errors:
        raise ValidationFailureError(fields=errors)
