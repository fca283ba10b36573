"""
Input validation for availability writes and reads

Dates travel as ISO calendar dates (YYYY-MM-DD). Anything else is
rejected rather than guessed at.
"""

import re
from datetime import date, datetime
from typing import Any, Optional

from ..errors import ValidationError
from ..models.unit_availability import AvailabilityStatus


ISO_DATE_PATTERN = re.compile(r"^\d{4}-\d{2}-\d{2}$")

MAX_UNIT_ID_LENGTH = 36
MAX_MAINTENANCE_TYPE_LENGTH = 100


def parse_date(value: Any, field: str = "date") -> date:
    """
    Coerce a value to a calendar date.

    Accepts date objects, datetimes (time part dropped) and
    YYYY-MM-DD strings.
    """
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        if ISO_DATE_PATTERN.match(text):
            try:
                return date.fromisoformat(text)
            except ValueError:
                pass
    raise ValidationError(f"Invalid {field}: {value!r} (expected YYYY-MM-DD)", field=field)


def parse_status(value: Any) -> AvailabilityStatus:
    """Map a raw value onto the closed status enumeration"""
    if isinstance(value, AvailabilityStatus):
        return value
    if isinstance(value, str):
        try:
            return AvailabilityStatus(value.strip().lower())
        except ValueError:
            pass
    allowed = ", ".join(s.value for s in AvailabilityStatus)
    raise ValidationError(f"Unknown status {value!r} (allowed: {allowed})", field="status")


def require_unit_id(value: Any) -> str:
    if value is None or not isinstance(value, str) or not value.strip():
        raise ValidationError("unit_id must be a non-empty string", field="unit_id")
    unit_id = value.strip()
    if len(unit_id) > MAX_UNIT_ID_LENGTH:
        raise ValidationError(
            f"unit_id longer than {MAX_UNIT_ID_LENGTH} characters", field="unit_id"
        )
    return unit_id


def clean_optional_text(value: Optional[str], field: str, max_length: Optional[int] = None) -> Optional[str]:
    """Blank strings are stored as NULL"""
    if value is None:
        return None
    if not isinstance(value, str):
        raise ValidationError(f"{field} must be text", field=field)
    text = value.strip()
    if not text:
        return None
    if max_length is not None and len(text) > max_length:
        raise ValidationError(f"{field} longer than {max_length} characters", field=field)
    return text


def validate_range(date_from: Any, date_to: Any) -> tuple:
    """Parse an inclusive [from, to] range; from must not be after to"""
    start = parse_date(date_from, "date_from")
    end = parse_date(date_to, "date_to")
    if start > end:
        raise ValidationError(
            f"date_from {start.isoformat()} is after date_to {end.isoformat()}",
            field="date_from",
        )
    return start, end
