"""Utility modules for roster_enroll."""

from roster_enroll.utils.normalize import (
    clean_optional,
    looks_like_email,
    normalize_email,
    normalize_jersey,
    split_legacy_name,
)

__all__ = [
    "clean_optional",
    "looks_like_email",
    "normalize_email",
    "normalize_jersey",
    "split_legacy_name",
]
