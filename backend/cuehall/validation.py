from __future__ import annotations

from typing import Any, Iterable

from .errors import ValidationError


# Largest amount accepted anywhere in the ledger (whole currency units).
# Money columns are BIGINT, which leaves room for sums of such amounts.
MAX_AMOUNT = 999_999_999_999


def coerce_int(key: str, value: Any) -> int:
    """
    Strict integer coercion for JSON input.

    Rejects booleans, floats with a fractional part, decimals in strings and
    scientific notation.
    """
    if isinstance(value, bool):
        raise ValidationError(f"{key} must be an integer")
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        if value.is_integer():
            return int(value)
        raise ValidationError(f"{key} must be an integer, not a decimal")
    if isinstance(value, str):
        stripped = value.strip()
        if not stripped:
            raise ValidationError(f"{key} must be an integer")
        if "e" in stripped.lower():
            raise ValidationError(f"{key} must be a plain integer (scientific notation not allowed)")
        if "." in stripped:
            raise ValidationError(f"{key} must be an integer (no decimals)")
        try:
            return int(stripped)
        except ValueError:
            raise ValidationError(f"{key} must be an integer")
    raise ValidationError(f"{key} must be an integer")


def require_amount(key: str, value: Any, *, minimum: int = 0, maximum: int = MAX_AMOUNT) -> int:
    if value is None:
        raise ValidationError(f"{key} is required")
    amount = coerce_int(key, value)
    if amount < minimum:
        raise ValidationError(f"{key} must be >= {minimum}")
    if amount > maximum:
        raise ValidationError(f"{key} must be <= {maximum}")
    return amount


def require_percent(key: str, value: Any) -> int:
    return require_amount(key, value, minimum=0, maximum=100)


def require_bool(key: str, value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, str):
        s = value.strip().lower()
        if s in {"true", "1", "yes", "on"}:
            return True
        if s in {"false", "0", "no", "off"}:
            return False
    raise ValidationError(f"{key}: expected boolean")


def require_choice(key: str, value: Any, choices: Iterable[str]) -> str:
    options = list(choices)
    if value not in options:
        raise ValidationError(f"Invalid {key}: {value}. Must be one of {options}")
    return value


def require_text(key: str, value: Any, *, max_length: int) -> str:
    if value is None:
        raise ValidationError(f"{key} is required")
    text = str(value).strip()
    if not text:
        raise ValidationError(f"{key} cannot be blank")
    if len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text


def optional_text(key: str, value: Any, *, max_length: int) -> str | None:
    if value is None:
        return None
    text = str(value).strip()
    if not text:
        return None
    if len(text) > max_length:
        raise ValidationError(f"{key} exceeds max length {max_length}")
    return text
