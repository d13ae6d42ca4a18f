# Overview: Request payload validation for products and customers, driven by model column metadata.

from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta


# 99,99,999.99 in minor units; larger prices are typing mistakes at the counter
MAX_PRICE_CENTS = 999_999_999

MIN_PRODUCT_NAME_LENGTH = 2

PHONE_PATTERN = re.compile(r"^\+?[0-9]{6,15}$")
PREFIX_PATTERN = re.compile(r"^[A-Z0-9]{1,8}$")


class ValidationError(ValueError):
    """400-level input problem."""


class ConflictError(ValueError):
    """409-level business rule conflict (e.g., duplicate SKU)."""


@dataclass(frozen=True)
class ModelValidationPolicy:
    """
    What a route lets clients send for one model.

    writable_fields is the allowlist (anything else is rejected, which keeps
    ledger-owned columns like advance_balance_cents out of reach);
    required_on_create applies to POST only.
    """
    writable_fields: frozenset[str] | set[str]
    required_on_create: frozenset[str] | set[str] = field(default_factory=frozenset)


def _parse_int(key: str, value: Any) -> int:
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str) and re.fullmatch(r"\s*-?[0-9]+\s*", value):
        return int(value)
    raise ValidationError(f"{key} must be a plain integer (minor units, no decimals)")


def _coerce(col, value: Any):
    if isinstance(col.type, Integer):
        return _parse_int(col.key, value)
    if isinstance(col.type, Boolean):
        if not isinstance(value, bool):
            raise ValidationError(f"{col.key} must be true or false")
        return value
    if isinstance(col.type, (String, Text)):
        if not isinstance(value, (str, int)) or isinstance(value, bool):
            raise ValidationError(f"{col.key} must be a string")
        text = str(value).strip()
        if isinstance(col.type, String) and col.type.length and len(text) > col.type.length:
            raise ValidationError(f"{col.key} exceeds max length {col.type.length}")
        return text
    return value


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Check a JSON body against the policy and the model's columns.

    partial=False is create (required fields enforced), partial=True is a
    patch (only the keys sent are checked). Returns the cleaned patch:
    integers parsed strictly, strings trimmed, blank optional strings as None.
    """
    if payload is None:
        payload = {}
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")

    unknown = sorted(k for k in payload if k not in policy.writable_fields)
    if unknown:
        raise ValidationError(f"Field not allowed: {', '.join(unknown)}")

    if not partial:
        missing = sorted(f for f in policy.required_on_create if payload.get(f) in (None, ""))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    patch: dict = {}
    for key, raw in payload.items():
        col = columns.get(key)
        if col is None:
            raise ValidationError(f"Unknown field: {key}")

        value = None if raw is None else _coerce(col, raw)
        if value == "":
            value = None
        if value is None and not col.nullable:
            raise ValidationError(f"{key} cannot be blank")
        patch[key] = value

    return patch


def _check_money(patch: dict, key: str) -> None:
    value = patch.get(key)
    if value is None:
        return
    if value < 0:
        raise ValidationError(f"{key} must be >= 0")
    if value > MAX_PRICE_CENTS:
        raise ValidationError(f"{key} cannot exceed {MAX_PRICE_CENTS}")


def enforce_rules_product(patch: dict) -> None:
    """Product rules beyond column types; SKUs are stored as scanned, minus case."""
    _check_money(patch, "price_cents")
    _check_money(patch, "cost_price_cents")

    if "name" in patch and len(patch["name"]) < MIN_PRODUCT_NAME_LENGTH:
        raise ValidationError(f"name must be at least {MIN_PRODUCT_NAME_LENGTH} characters")
    if "stock" in patch and patch["stock"] < 0:
        raise ValidationError("stock must be a non-negative integer")
    if patch.get("sku"):
        patch["sku"] = patch["sku"].upper()


def enforce_rules_customer(patch: dict) -> None:
    phone = patch.get("phone")
    if phone is not None and not PHONE_PATTERN.match(phone.replace(" ", "")):
        raise ValidationError("phone must be 6-15 digits")
    if phone is not None:
        patch["phone"] = phone.replace(" ", "")

    prefix = patch.get("invoice_prefix")
    if prefix is not None:
        prefix = prefix.upper()
        if not PREFIX_PATTERN.match(prefix):
            raise ValidationError("invoice_prefix must be 1-8 letters or digits")
        patch["invoice_prefix"] = prefix
