"""
Display formatting for dashboard values.
"""
import re
from datetime import datetime
from typing import Any

LOVELACE_PER_ADA = 1_000_000

_THOUSANDS = re.compile(r"\B(?=(\d{3})+(?!\d))")
_FRACTION = re.compile(r"\.\d+")


def format_number(value: Any) -> str:
    """12345 -> "12.345", 1.5 -> "1.50"."""
    if isinstance(value, bool):
        return str(value)
    if isinstance(value, int):
        return _THOUSANDS.sub(".", str(value))
    if isinstance(value, float):
        return f"{value:.2f}"
    return str(value)


def format_timestamp(value: Any) -> str:
    if isinstance(value, datetime):
        return value.replace(microsecond=0, tzinfo=None).isoformat(sep=" ")
    if value is None:
        return ""
    return _FRACTION.sub("", str(value))


def format_ada_amount(value: Any) -> str:
    """Lovelace (int or numeric string) -> "x.xx ADA". Anything else is passed through."""
    amount = _parse_int(value)
    if amount is None:
        return str(value)
    return f"{amount / LOVELACE_PER_ADA:.2f} ADA"


def format_bytes(value: Any) -> str:
    size = _parse_int(value)
    if size is None:
        return str(value)
    if size >= 1024 * 1024:
        return f"{size / (1024 * 1024):.2f} MB"
    if size >= 1024:
        return f"{size / 1024:.2f} KB"
    return f"{size} bytes"


def _parse_int(value: Any):
    if isinstance(value, bool):
        return None
    if isinstance(value, int):
        return value
    if isinstance(value, str):
        match = re.match(r"\s*(-?\d+)", value)
        return int(match.group(1)) if match else None
    return None
