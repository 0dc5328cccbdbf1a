"""Shared validation utilities"""

import re
from datetime import date, datetime
from typing import Optional

from ..models import SLOT_AFTERNOON, SLOT_EVENING, SLOT_MORNING, USER_ROLES

# Accepted spellings for each booking slot
SLOT_ALIASES = {
    "10-12": SLOT_MORNING,
    "13-15": SLOT_AFTERNOON,
    "16-18": SLOT_EVENING,
    SLOT_MORNING: SLOT_MORNING,
    SLOT_AFTERNOON: SLOT_AFTERNOON,
    SLOT_EVENING: SLOT_EVENING,
}

# Hour each slot starts at; a slot today is bookable until it starts
SLOT_START_HOURS = {SLOT_MORNING: 10, SLOT_AFTERNOON: 13, SLOT_EVENING: 16}
SLOT_LABELS = {SLOT_MORNING: "10-12", SLOT_AFTERNOON: "13-15", SLOT_EVENING: "16-18"}

HEX_COLOR_PATTERN = re.compile(r"^#[0-9A-Fa-f]{6}$")


def validate_email(email: Optional[str]) -> Optional[str]:
    """
    Validate email format.

    Returns:
        Lowercase email address

    Raises:
        ValueError: If email format is invalid
    """
    if not email:
        return email

    email = email.strip().lower()

    email_pattern = r"^[a-zA-Z0-9._%+-]+@[a-zA-Z0-9.-]+\.[a-zA-Z]{2,}$"

    if not re.match(email_pattern, email):
        raise ValueError("Invalid email format")

    return email


def validate_phone(phone: Optional[str]) -> Optional[str]:
    """
    Validate a phone number: optional leading +, then 6 to 15 digits.
    Spaces, dashes, dots and parentheses are stripped.
    """
    if not phone:
        return phone

    cleaned = re.sub(r"[\s\-.()]", "", phone.strip())
    if not re.match(r"^\+?\d{6,15}$", cleaned):
        raise ValueError("Invalid phone number")
    return cleaned


def validate_role(role: str) -> str:
    if role not in USER_ROLES:
        raise ValueError(f"Invalid role. Must be one of: {', '.join(USER_ROLES)}")
    return role


def validate_hex_color(color: Optional[str]) -> Optional[str]:
    if color is None:
        return color
    if not HEX_COLOR_PATTERN.match(color):
        raise ValueError("Color must be a hex value like #3B82F6")
    return color.upper()


def normalize_slot(slot: str) -> str:
    """Map '10-12' style or enum-style slot names to the stored slot value"""
    normalized = SLOT_ALIASES.get(str(slot).strip().upper())
    if not normalized:
        raise ValueError("Invalid time slot. Use 10-12, 13-15 or 16-18")
    return normalized


def parse_date(value: Optional[str]) -> Optional[date]:
    """Parse a YYYY-MM-DD string; raises ValueError on anything else"""
    if value is None or value == "":
        return None
    if isinstance(value, date):
        return value
    if not re.match(r"^\d{4}-\d{2}-\d{2}$", value):
        raise ValueError("Invalid date format. Use YYYY-MM-DD")
    return datetime.strptime(value, "%Y-%m-%d").date()
