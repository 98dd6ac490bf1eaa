"""
Value Transforms

Small formatting helpers shared by the field mapper, dispatcher and
routes: US dates, calendar arithmetic and E.164 phone normalization.
"""

import calendar
import logging
import re
from datetime import date, datetime
from typing import Any, Optional

from .exceptions import ValidationError

logger = logging.getLogger(__name__)

_DATE_FORMATS = ["%Y-%m-%d", "%m/%d/%Y", "%m-%d-%Y"]


def format_us_date(value: date) -> str:
    """
    Format a date as M/D/YYYY without zero padding.

    Examples:
        date(2026, 1, 5) -> "1/5/2026"
        date(2026, 12, 25) -> "12/25/2026"
    """
    return f"{value.month}/{value.day}/{value.year}"


def parse_date(value: Any) -> Optional[date]:
    """
    Parse a date from a date, datetime or common string format.

    Returns None when the value is empty or cannot be parsed.
    """
    if value is None:
        return None

    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value

    text = str(value).strip()
    if not text:
        return None

    # ISO timestamps from the browser ("2026-01-15T00:00:00.000Z")
    if 'T' in text:
        text = text.split('T', 1)[0]

    for fmt in _DATE_FORMATS:
        try:
            return datetime.strptime(text, fmt).date()
        except ValueError:
            continue

    logger.warning(f"Could not parse date: {value}")
    return None


def add_months(value: date, months: int) -> date:
    """
    Add calendar months, clamping the day to the target month's length.

    Examples:
        date(2026, 1, 31) + 1 month -> date(2026, 2, 28)
    """
    month_index = value.month - 1 + months
    year = value.year + month_index // 12
    month = month_index % 12 + 1
    day = min(value.day, calendar.monthrange(year, month)[1])
    return date(year, month, day)


def add_years(value: date, years: int) -> date:
    """Add calendar years; Feb 29 becomes Feb 28 in non-leap years."""
    return add_months(value, years * 12)


def normalize_us_phone(value: Any) -> str:
    """
    Normalize a US phone number to +1XXXXXXXXXX.

    Examples:
        "5551234567" -> "+15551234567"
        "(555) 123-4567" -> "+15551234567"
        "1-555-123-4567" -> "+15551234567"

    Raises:
        ValidationError: If the number is missing or not 10/11 digits
    """
    if value is None or not str(value).strip():
        raise ValidationError("Phone number is required", field='phone')

    digits = re.sub(r'\D', '', str(value))

    if len(digits) == 10:
        digits = '1' + digits
    elif not (len(digits) == 11 and digits.startswith('1')):
        raise ValidationError(
            f"Invalid US phone number: {value}",
            field='phone'
        )

    return f"+{digits}"


def format_phone_display(value: Any) -> str:
    """
    Format a phone number for display.

    Examples:
        "7137254459" -> "(713) 725-4459"
    """
    if value is None:
        return ""

    phone_str = str(value)
    digits = re.sub(r'\D', '', phone_str)

    if len(digits) == 11 and digits[0] == '1':
        digits = digits[1:]
    if len(digits) == 10:
        return f"({digits[:3]}) {digits[3:6]}-{digits[6:]}"

    return phone_str


def to_text(value: Any) -> str:
    """Convert to string, mapping None to an empty string."""
    if value is None:
        return ""
    return str(value)
