from __future__ import annotations
"""Reusable validation helpers for request payloads.

Centralizes enum, number and date parsing so every endpoint reports bad input
with the same 400 semantics.
"""
from datetime import date
from decimal import Decimal, InvalidOperation
from typing import Any, Iterable, Optional
from flask import abort


def validate_status(new_status: str, allowed: Iterable[str], field_name: str = 'status') -> str:
    """Validate that new_status is inside allowed.

    Returns the status (to enable inline usage) or aborts with 400.
    """
    if new_status not in allowed:
        abort(400, description=f"{field_name} invalid")
    return new_status


def blank(value: Any) -> bool:
    return value is None or (isinstance(value, str) and not value.strip())


def parse_optional_decimal(value: Any, field_name: str) -> Optional[Decimal]:
    """Blank input means absent (None), never zero. Negative or non-numeric aborts 400."""
    if blank(value):
        return None
    if isinstance(value, bool):
        abort(400, description=f"{field_name} must be a number")
    try:
        number = Decimal(str(value).strip())
    except (InvalidOperation, ValueError):
        abort(400, description=f"{field_name} must be a number")
    if not number.is_finite() or number < 0:
        abort(400, description=f"{field_name} must be a non-negative number")
    return number


def parse_optional_date(value: Any, field_name: str) -> Optional[date]:
    if blank(value):
        return None
    try:
        return date.fromisoformat(str(value).strip())
    except ValueError:
        abort(400, description=f"{field_name} must be an ISO date (YYYY-MM-DD)")


def parse_optional_int(value: Any, field_name: str) -> Optional[int]:
    if blank(value):
        return None
    if isinstance(value, bool):
        abort(400, description=f"{field_name} invalid")
    try:
        return int(value)
    except (TypeError, ValueError):
        abort(400, description=f"{field_name} invalid")


def optional_text(value: Any) -> Optional[str]:
    if blank(value):
        return None
    return str(value).strip()

__all__ = ['validate_status', 'blank', 'parse_optional_decimal', 'parse_optional_date',
           'parse_optional_int', 'optional_text']
