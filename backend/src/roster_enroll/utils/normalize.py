"""Centralized normalization for user-entered roster fields.

Emails are compared trimmed and lowercase. Jersey numbers are short
alphanumeric codes ("23", "00", "12A") compared trimmed and uppercase.
"""

from typing import Optional


def clean_optional(value: Optional[str]) -> Optional[str]:
    """Trim a free-text field, returning None for blank input.

    Examples:
        >>> clean_optional("  Big Mike ")
        'Big Mike'
        >>> clean_optional("   ") is None
        True
    """
    if value is None:
        return None
    value = value.strip()
    return value or None


def normalize_email(email: Optional[str]) -> str:
    """Trim and lowercase an email. Returns "" for None."""
    if email is None:
        return ""
    return email.strip().lower()


def looks_like_email(email: Optional[str]) -> bool:
    """Loose email check used by form validation: must contain an '@'."""
    return "@" in (email or "")


def normalize_jersey(value: Optional[str]) -> str:
    """Normalize a jersey number for comparison.

    Examples:
        >>> normalize_jersey(" 12a ")
        '12A'
        >>> normalize_jersey(None)
        ''
    """
    if value is None:
        return ""
    return str(value).strip().upper()


def split_legacy_name(name: Optional[str]) -> tuple[str, str]:
    """Split a combined display name on the first space into (first, last)."""
    name = (name or "").strip()
    idx = name.find(" ")
    if idx > 0:
        return name[:idx], name[idx + 1:].strip()
    return name, ""
