import html
import re
from typing import Optional


def validate_and_sanitize_input(value: Optional[str], max_length: int = 500) -> str:
    """
    Validate and sanitize free text from users.

    Args:
        value: Input string to validate
        max_length: Maximum allowed length

    Returns:
        Sanitized string

    Raises:
        ValueError: If input is too long
    """
    if not value:
        return ""

    value = str(value).strip()

    if len(value) > max_length:
        raise ValueError(f"Input exceeds maximum length of {max_length} characters")

    value = html.escape(value, quote=True)

    value = re.sub(r"[\x00-\x08\x0B\x0C\x0E-\x1F\x7F]", "", value)

    return value
