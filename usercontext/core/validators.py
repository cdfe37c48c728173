"""
Input Validators - Sanitization and validation utilities.

This module provides:
- User identity validation
- Free-text sanitization for questions and insights
"""
import re
from typing import Optional, Tuple

from usercontext.core.config import USER_ID_COLUMN_LENGTH
from usercontext.core.logging_config import get_logger

logger = get_logger(__name__)

DEFAULT_MAX_USER_ID_LENGTH = USER_ID_COLUMN_LENGTH

_CONTROL_CHARS = re.compile(r"[\x00-\x1f\x7f]")


def validate_user_id(
    user_id: object,
    max_length: int = DEFAULT_MAX_USER_ID_LENGTH
) -> Tuple[bool, Optional[str]]:
    """
    Validate a user identity token.

    The format is opaque; only obviously broken tokens are rejected:
    non-strings, empty or whitespace-padded strings, control characters,
    and anything longer than max_length.

    Args:
        user_id: Identity to validate
        max_length: Maximum allowed length

    Returns:
        Tuple of (is_valid, error_message)
    """
    if not isinstance(user_id, str):
        return False, "User identity must be a string"

    if not user_id.strip():
        return False, "User identity cannot be empty"

    if user_id != user_id.strip():
        return False, "User identity cannot start or end with whitespace"

    if len(user_id) > max_length:
        return False, f"User identity too long (max {max_length} characters)"

    if _CONTROL_CHARS.search(user_id):
        return False, "User identity cannot contain control characters"

    return True, None


def sanitize_text(text: str, max_length: int = 2000) -> str:
    """
    Sanitize a question or insight before it is stored.

    - Removes null bytes
    - Strips leading/trailing whitespace
    - Normalizes whitespace runs to single spaces
    - Limits length

    Args:
        text: Raw text
        max_length: Maximum allowed length

    Returns:
        Sanitized text
    """
    if not text:
        return ""

    cleaned = text.replace("\x00", "")
    cleaned = cleaned.strip()
    cleaned = re.sub(r'\s+', ' ', cleaned)

    if len(cleaned) > max_length:
        cleaned = cleaned[:max_length]

    return cleaned


def validate_text(text: str, max_length: int = 2000) -> Tuple[bool, str, Optional[str]]:
    """
    Full validation and sanitization of a question or insight.

    Args:
        text: Raw text
        max_length: Maximum allowed length after sanitization

    Returns:
        Tuple of (is_valid, sanitized_text, error_message)
    """
    if not text or not text.strip():
        return False, "", "Text cannot be empty"

    sanitized = sanitize_text(text, max_length=max_length)

    if not sanitized:
        return False, "", "Text cannot be empty after sanitization"

    return True, sanitized, None
