"""
Input validation shared by the services.

Two layers:
- validate_payload() checks a JSON body against a model's column metadata
  and a ModelValidationPolicy allowlist (used for item and permission edits)
- small field validators (quantities, choices, emails, department names)
  used by the request workflow, account management and backup restore

Everything raises labstock.errors.ValidationError (HTTP 400).
"""
from __future__ import annotations

import re
from dataclasses import dataclass, field
from typing import Any

from sqlalchemy import Boolean, Integer, String, Text
from sqlalchemy.orm import DeclarativeMeta

from .errors import ValidationError


DEPARTMENT_NAME_RE = re.compile(r"^[A-Za-z][A-Za-z0-9\s&()\-/]*$")
EMAIL_RE = re.compile(r"^[^@\s]+@[^@\s]+\.[^@\s]+$")
INT_RE = re.compile(r"^[+-]?\d+$")


@dataclass(frozen=True)
class ModelValidationPolicy:
    """Which columns a client may write, and which must be present on create."""
    writable_fields: set[str]
    required_on_create: set[str] = field(default_factory=set)


def coerce_int(value: Any, field_name: str) -> int:
    """
    Accept an int or a plain integer string ("12", " 3 ").

    Booleans, floats, "1.0" and "1e3" are rejected.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{field_name} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, str) and INT_RE.match(value.strip()):
        return int(value.strip())
    raise ValidationError(f"{field_name} must be an integer")


def _clean_column_value(col, raw: Any):
    if raw is None:
        if not col.nullable:
            raise ValidationError(f"{col.key} cannot be null")
        return None

    if isinstance(col.type, Integer):
        return coerce_int(raw, col.key)

    # "false" is truthy, so only real booleans pass
    if isinstance(col.type, Boolean):
        if not isinstance(raw, bool):
            raise ValidationError(f"{col.key} must be a boolean")
        return raw

    if isinstance(col.type, (String, Text)):
        if not isinstance(raw, str):
            raise ValidationError(f"{col.key} must be a string")
        text = raw.strip()
        if not text and not col.nullable:
            raise ValidationError(f"{col.key} cannot be blank")
        limit = getattr(col.type, "length", None)
        if limit and len(text) > limit:
            raise ValidationError(f"{col.key} exceeds max length {limit}")
        return text

    return raw


def validate_payload(
    *,
    model: DeclarativeMeta,
    payload: dict,
    policy: ModelValidationPolicy,
    partial: bool,
) -> dict:
    """
    Return a cleaned copy of payload restricted to policy.writable_fields.

    partial=False enforces policy.required_on_create (create semantics);
    partial=True only checks the keys that are present (patch semantics).
    """
    payload = {} if payload is None else require_json_object(payload)

    if not partial:
        missing = sorted(policy.required_on_create - set(payload))
        if missing:
            raise ValidationError(f"Missing required fields: {', '.join(missing)}")

    columns = {c.key: c for c in model.__mapper__.columns}
    cleaned = {}
    for key, raw in payload.items():
        if key not in policy.writable_fields or key not in columns:
            raise ValidationError(f"Field not allowed: {key}")
        cleaned[key] = _clean_column_value(columns[key], raw)
    return cleaned


def validate_positive_int(value: Any, field_name: str) -> int:
    number = coerce_int(value, field_name)
    if number <= 0:
        raise ValidationError(f"{field_name} must be a positive integer")
    return number


def validate_non_negative_int(value: Any, field_name: str) -> int:
    number = coerce_int(value, field_name)
    if number < 0:
        raise ValidationError(f"{field_name} must be >= 0")
    return number


def validate_choice(value: Any, choices, field_name: str) -> str:
    if not isinstance(value, str) or value not in choices:
        raise ValidationError(f"{field_name} must be one of: {', '.join(choices)}")
    return value


def validate_optional_text(value: Any, field_name: str) -> str | None:
    """None or blank gives None, otherwise the stripped string."""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field_name} must be a string")
    return value.strip() or None


def validate_department_name(value: Any) -> str:
    name = value.strip() if isinstance(value, str) else ""
    if not 2 <= len(name) <= 64 or not DEPARTMENT_NAME_RE.match(name):
        raise ValidationError("Invalid department name")
    return name


def validate_email(value: Any) -> str:
    email = value.strip() if isinstance(value, str) else ""
    if not EMAIL_RE.match(email):
        raise ValidationError("Invalid email address")
    return email.lower()


def enforce_rules_inventory_item(patch: dict) -> None:
    """Stock levels are counts; column types alone allow negatives."""
    for key in ("current_stock", "min_stock"):
        if patch.get(key) is not None and patch[key] < 0:
            raise ValidationError(f"{key} must be >= 0")


def require_json_object(payload: Any) -> dict:
    if not isinstance(payload, dict):
        raise ValidationError("Invalid JSON payload")
    return payload
