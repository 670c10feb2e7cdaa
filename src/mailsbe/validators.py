"""Input validation for dashboard operations."""

from typing import Tuple
from email_validator import validate_email, EmailNotValidError

from .exceptions import ValidationError

MAX_DESCRIPTION_LENGTH = 500


def validate_email_address(email: str) -> Tuple[bool, str]:
    """Validate an email address.

    Only the format is checked; no DNS lookups are made.

    Args:
        email: Email address to validate

    Returns:
        Tuple of (is_valid, normalized address or error message)
    """
    try:
        valid = validate_email(email, check_deliverability=False)
        return True, valid.normalized
    except EmailNotValidError as e:
        return False, str(e)


def clean_recipient_address(email: str) -> str:
    """Return the normalized address or raise ValidationError."""
    if not email or not email.strip():
        raise ValidationError("recipient_address is required")
    ok, result = validate_email_address(email.strip())
    if not ok:
        raise ValidationError(f"Invalid recipient address: {result}", context={"recipient_address": email})
    return result


def clean_description(description: str) -> str:
    description = (description or "").strip()
    if len(description) > MAX_DESCRIPTION_LENGTH:
        raise ValidationError(f"description must be at most {MAX_DESCRIPTION_LENGTH} characters")
    return description
