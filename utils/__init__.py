"""Small utilities shared across modules."""

from __future__ import annotations

import re
from collections.abc import Sequence
from typing import Any, TypeVar

T = TypeVar("T")

# Device tokens shorter than this are stale or truncated
MIN_TOKEN_LENGTH = 101

_SECTION_PREFIX_RE = re.compile(r"^section\b[\s:_-]*", re.IGNORECASE)
_DIGITS_RE = re.compile(r"\d+")


def normalize_section(raw: Any, prefix: str = "") -> str | None:
    """Return the canonical section label or None if nothing usable remains.

    Accepts "Section A", "section-a", " a " and plain numbers. Any leading
    "Section" word is dropped, whitespace collapsed and the label upper-cased,
    then `prefix` is prepended (e.g. prefix "Section " yields "Section A").
    """

    if raw is None or isinstance(raw, bool):
        return None
    s = re.sub(r"\s+", " ", str(raw)).strip()
    label = _SECTION_PREFIX_RE.sub("", s).strip().upper()
    if not label:
        return None
    return f"{prefix}{label}"


def parse_semester_number(raw: Any) -> int | None:
    """Extract the semester number from an int, an integral float or a string.

    - 7 -> 7
    - "Semester 7" -> 7
    - "N/A" -> None
    """

    if raw is None or isinstance(raw, bool):
        return None
    if isinstance(raw, int):
        return raw
    if isinstance(raw, float):
        return int(raw) if raw.is_integer() else None
    if isinstance(raw, str):
        m = _DIGITS_RE.search(raw)
        return int(m.group(0)) if m else None
    return None


def is_valid_token(token: Any) -> bool:
    if not isinstance(token, str):
        return False
    trimmed = token.strip()
    return bool(trimmed) and len(trimmed) >= MIN_TOKEN_LENGTH


def capitalize_first(text: str) -> str:
    """Upper-case the first character only ("monday" -> "Monday", "mONDAY" -> "MONDAY")."""
    return text[:1].upper() + text[1:] if text else ""


def chunked(items: Sequence[T], size: int) -> list[list[T]]:
    if size < 1:
        raise ValueError("size must be positive")
    return [list(items[i : i + size]) for i in range(0, len(items), size)]
