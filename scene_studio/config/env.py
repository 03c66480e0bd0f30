"""Environment variable parsing helpers."""

from __future__ import annotations

from typing import Iterable, Optional


_TRUTHY_VALUES = {"1", "true", "yes", "y", "on", "json"}
_FALSEY_VALUES = {"0", "false", "no", "off", "plain", "text"}
_FLAG_TRUE_VALUES = {"1", "true", "yes", "y", "on"}
_FLAG_FALSE_VALUES = {"0", "false", "no", "off"}


def parse_bool_env(value: Optional[str], *, default: Optional[bool] = None) -> Optional[bool]:
    """Parse a boolean-like environment variable.

    Args:
        value: Raw environment variable value.
        default: Value to return when the env var is unset or unrecognized.
    """
    if value is None:
        return default
    normalized = str(value).strip().lower()
    if normalized in _TRUTHY_VALUES:
        return True
    if normalized in _FALSEY_VALUES:
        return False
    return default


def parse_flag_env(value: Optional[str], *, default: bool, name: str = "environment variable") -> bool:
    """Parse an on/off switch; anything other than a plain boolean word raises."""
    if value is None or str(value).strip() == "":
        return default
    normalized = str(value).strip().lower()
    if normalized in _FLAG_TRUE_VALUES:
        return True
    if normalized in _FLAG_FALSE_VALUES:
        return False
    raise ValueError(f"{name} must be a boolean (got {value!r}).")


def parse_int_env(
    value: Optional[str],
    *,
    default: Optional[int] = None,
    min_value: Optional[int] = None,
    max_value: Optional[int] = None,
    name: str = "environment variable",
) -> Optional[int]:
    """Parse an integer environment variable, enforcing optional bounds."""
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = int(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be an integer (got {value!r}).") from exc

    if min_value is not None and parsed < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {parsed}).")
    if max_value is not None and parsed > max_value:
        raise ValueError(f"{name} must be <= {max_value} (got {parsed}).")
    return parsed


def parse_float_env(
    value: Optional[str],
    *,
    default: Optional[float] = None,
    min_value: Optional[float] = None,
    name: str = "environment variable",
) -> Optional[float]:
    """Parse a float environment variable with an optional lower bound."""
    if value is None or str(value).strip() == "":
        return default
    try:
        parsed = float(str(value).strip())
    except (TypeError, ValueError) as exc:
        raise ValueError(f"{name} must be a float (got {value!r}).") from exc

    if min_value is not None and parsed < min_value:
        raise ValueError(f"{name} must be >= {min_value} (got {parsed}).")
    return parsed


def parse_choice_env(
    value: Optional[str],
    *,
    choices: Iterable[str],
    default: str,
    name: str = "environment variable",
) -> str:
    """Parse an enumerated environment variable (case-insensitive).

    Unset or blank values resolve to ``default``; anything outside
    ``choices`` raises ``ValueError``.
    """
    allowed = {choice.lower() for choice in choices}
    if value is None or str(value).strip() == "":
        return default
    normalized = str(value).strip().lower()
    if normalized not in allowed:
        raise ValueError(
            f"{name} must be one of {sorted(allowed)} (got {value!r})."
        )
    return normalized
