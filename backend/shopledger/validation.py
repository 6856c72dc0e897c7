from __future__ import annotations

import re
from datetime import date
from typing import Any

from .errors import ValidationError
from .time_utils import parse_iso_date


# Maximum amount: 9,999,999.99 (999,999,999 cents)
MAX_AMOUNT_CENTS = 999_999_999

PHONE_RE = re.compile(r"^\d{10}$")


def coerce_cents(value: Any, field: str, *, allow_zero: bool = True) -> int:
    """
    Strict integer-cents coercion.

    Accepts ints and plain digit strings. Rejects bools, floats, decimals and
    scientific notation so no fractional cent ever reaches the ledger.
    """
    if value is None:
        raise ValidationError(f"{field} is required")

    if isinstance(value, bool):
        raise ValidationError(f"{field} must be an integer number of cents")

    if isinstance(value, int):
        cents = value
    elif isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{field} must be an integer number of cents")
        if "e" in stripped.lower():
            raise ValidationError(f"{field} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{field} must be an integer number of cents (no decimals)")
        try:
            cents = int(stripped)
        except ValueError:
            raise ValidationError(f"{field} must be an integer number of cents")
    elif isinstance(value, float):
        raise ValidationError(f"{field} must be an integer number of cents, not a decimal")
    else:
        raise ValidationError(f"{field} must be an integer number of cents")

    if cents < 0:
        raise ValidationError(f"{field} must be >= 0")
    if cents == 0 and not allow_zero:
        raise ValidationError(f"{field} must be greater than 0")
    if cents > MAX_AMOUNT_CENTS:
        raise ValidationError(f"{field} cannot exceed {MAX_AMOUNT_CENTS} cents")
    return cents


def require_text(value: Any, field: str, *, max_length: int = 255) -> str:
    if value is None or not str(value).strip():
        raise ValidationError(f"{field} is required")
    text = str(value).strip()
    if len(text) > max_length:
        raise ValidationError(f"{field} exceeds max length {max_length}")
    return text


def optional_text(value: Any, field: str, *, max_length: int = 255) -> str | None:
    if value is None or not str(value).strip():
        return None
    return require_text(value, field, max_length=max_length)


def validate_phone(value: Any, field: str = "phone_number") -> str:
    phone = "" if value is None else str(value).strip()
    if not PHONE_RE.match(phone):
        raise ValidationError("Phone number must be 10 digits", details={"field": field})
    return phone


def coerce_date(value: Any, field: str) -> date:
    if isinstance(value, date):
        return value
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be an ISO-8601 date")
    try:
        parsed = parse_iso_date(value)
    except ValueError:
        raise ValidationError(f"{field} must be an ISO-8601 date")
    if parsed is None:
        raise ValidationError(f"{field} must be an ISO-8601 date")
    return parsed


def require_choice(value: Any, field: str, choices) -> str:
    normalized = str(value).strip().upper() if value is not None else ""
    if normalized not in choices:
        raise ValidationError(
            f"Invalid {field}: {value}. Must be one of {sorted(choices)}",
            details={"field": field, "allowed": sorted(choices)},
        )
    return normalized


def normalize_pagination(page: Any, limit: Any, *, default_limit: int = 10, max_limit: int = 100) -> tuple[int, int]:
    """Clamp page >= 1 and 1 <= limit <= max_limit; unparsable input falls back to defaults."""
    try:
        page_num = int(page) if page is not None else 1
    except (TypeError, ValueError):
        page_num = 1
    try:
        limit_num = int(limit) if limit is not None else default_limit
    except (TypeError, ValueError):
        limit_num = default_limit
    return max(page_num, 1), max(1, min(limit_num, max_limit))


def pagination_meta(total: int, page: int, limit: int) -> dict:
    total_pages = (total + limit - 1) // limit if total > 0 else 0
    return {
        "total": total,
        "page": page,
        "limit": limit,
        "total_pages": total_pages,
    }


def contains_pattern(term: str) -> str:
    """LIKE pattern matching `term` as a literal substring, with backslash as the escape character."""
    escaped = term.replace("\\", "\\\\").replace("%", "\\%").replace("_", "\\_")
    return f"%{escaped}%"
