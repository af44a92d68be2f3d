"""
hoodkeeper.engine.names — Display-Name Sanitizer
=================================================

Discord nicknames in a farming community carry decoration: clan tags like
``[FARM]`` or ``{VIP}`` and level markers like ``[87]``.  The roster stores
a canonical username with that markup removed.

Pure functions, no I/O.
"""

from __future__ import annotations

import re
from dataclasses import dataclass

UNKNOWN_NAME = "Unknown"

_TAG_RE = re.compile(r"\[[^\[\]]*\]|\{[^{}]*\}")
_BRACKET_LEVEL_RE = re.compile(r"\[(\d+)\]")
_PAREN_LEVEL_RE = re.compile(r"\((\d+)\)")
_SPACE_RE = re.compile(r"\s+")


@dataclass(frozen=True, slots=True)
class ParsedName:
    clean_name: str
    level: int | None = None


def sanitize_name(raw: str | None) -> str:
    """Strip ``[...]`` / ``{...}`` markup and surrounding whitespace.

    Blank input returns :data:`UNKNOWN_NAME`.  A name that is nothing but
    markup (``"[FARM]"``) keeps its trimmed original so it never renders
    empty.
    """
    if raw is None or not raw.strip():
        return UNKNOWN_NAME

    # Innermost tags go first; repeat until nested markup is gone.
    text, prev = raw, None
    while text != prev:
        prev, text = text, _TAG_RE.sub("", text)

    clean = _SPACE_RE.sub(" ", text).strip()
    return clean or raw.strip()


def parse_display_name(raw: str | None) -> ParsedName:
    """Return the sanitized name plus the level marker, if any.

    Levels are read from ``[123]`` first, then ``(123)``.
    """
    if raw is None or not raw.strip():
        return ParsedName(UNKNOWN_NAME)

    level = None
    match = _BRACKET_LEVEL_RE.search(raw) or _PAREN_LEVEL_RE.search(raw)
    if match:
        level = int(match.group(1))
    return ParsedName(sanitize_name(raw), level)
