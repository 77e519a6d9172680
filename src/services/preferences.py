"""Email normalisation and segment preference helpers.

All functions here are pure; nothing touches the store.
"""
import re
from collections.abc import Iterable

from src.core.config import settings

EMAIL_REGEX = re.compile(r"^[^\s@]+@[^\s@]+\.[^\s@]+$")


def normalize_email(email: str | None) -> str:
    """Trim and lower-case an address. ``None`` becomes an empty string."""
    if not isinstance(email, str):
        return ""
    return email.strip().lower()


def is_valid_email(email: str) -> bool:
    return bool(email) and EMAIL_REGEX.match(email) is not None


def parse_segments(
    segments: Iterable[str] | None = None,
    tags: str | None = None,
) -> frozenset[str]:
    """Collect requested segments from a list and/or a comma-separated string."""
    collected: list[str] = []
    if segments:
        collected.extend(s for s in segments if isinstance(s, str))
    if tags:
        collected.extend(tags.split(","))
    return frozenset(s.strip() for s in collected if s and s.strip())


def merge_segments(
    existing: Iterable[str] | None,
    requested: Iterable[str] | None,
    default_segment: str | None = None,
) -> frozenset[str]:
    """
    Union of a subscriber's segments with the requested ones.

    An empty request counts as a request for the default segment, so
    ``merge(merge(a, b), b) == merge(a, b)`` and ``merge(a, b) == merge(b, a)``
    for any non-empty ``a`` and ``b``.
    """
    requested_set = frozenset(requested or ())
    if not requested_set:
        requested_set = frozenset({default_segment or settings.DEFAULT_SEGMENT})
    return frozenset(existing or ()) | requested_set


def segments_to_preferences(segments: Iterable[str], base: dict | None = None) -> dict:
    """Serialise segments for the JSON column, keeping any other keys in ``base``."""
    preferences = dict(base or {})
    preferences["segments"] = sorted(set(segments))
    return preferences
