"""
Naming service: claimant names

Pure functions, no store access
"""
from typing import Optional

from core.exceptions import ClaimValidationError
from database import get_settings


def normalize_claimant_name(raw: Optional[str]) -> str:
    """
    Clean up a name typed by a participant

    Rules:
    - surrounding whitespace is stripped, inner runs collapse to one space
    - an empty result is rejected
    - names longer than max_name_length are rejected, not truncated

    Example:
        normalize_claimant_name("  Ali   Khan ") -> "Ali Khan"

    Raises:
        ClaimValidationError: empty or too long
    """
    name = " ".join((raw or "").split())
    if not name:
        raise ClaimValidationError("Please enter your name")

    limit = get_settings().max_name_length
    if len(name) > limit:
        raise ClaimValidationError(f"Name must be at most {limit} characters")
    return name


def archived_name(name: Optional[str]) -> str:
    """Name written to history; absent or blank names become the placeholder"""
    if name is None or not name.strip():
        return get_settings().anonymous_name
    return name
