"""
VNDB description markup cleaning.

VNDB descriptions use a small BBCode dialect. Two callers need plain text:
the import enrichment step (spoilers removed before translation) and the
display layer (spoilers replaced by a visible marker).
"""

import re
from enum import Enum
from typing import Optional

SPOILER_PLACEHOLDER = "[剧透内容已隐藏]"

TRANSLATION_CHAR_LIMIT = 3000
TRUNCATION_MARKER = "..."

_URL_RE = re.compile(r"\[url=([^\]]*)\]([^\[]*)\[/url\]")
_SPOILER_RE = re.compile(r"\[spoiler\][\s\S]*?\[/spoiler\]")
_RAW_RE = re.compile(r"\[raw\]([\s\S]*?)\[/raw\]")
_CODE_RE = re.compile(r"\[code\]([\s\S]*?)\[/code\]")
_EDITED_FROM_RE = re.compile(r"\[Edited from [^\]]*\]", re.IGNORECASE)
_FROM_RE = re.compile(r"\[From [^\]]*\]", re.IGNORECASE)


class SpoilerMode(Enum):
    """What happens to [spoiler] blocks."""
    REMOVE = "remove"
    PLACEHOLDER = "placeholder"


def clean_markup(text: Optional[str], spoiler: SpoilerMode = SpoilerMode.REMOVE) -> str:
    """
    Strip VNDB markup from a description.

    - ``[url=X]Y[/url]`` becomes ``Y``
    - ``[spoiler]...[/spoiler]`` is removed or replaced by SPOILER_PLACEHOLDER
    - ``[raw]`` and ``[code]`` blocks are unwrapped
    - ``[Edited from ...]`` and ``[From ...]`` source notes are dropped

    Args:
        text: Raw description (None is treated as empty)
        spoiler: Spoiler handling mode

    Returns:
        Cleaned text with surrounding whitespace trimmed
    """
    if not text:
        return ""

    replacement = SPOILER_PLACEHOLDER if spoiler is SpoilerMode.PLACEHOLDER else ""

    result = _URL_RE.sub(r"\2", text)
    result = _SPOILER_RE.sub(replacement, result)
    result = _RAW_RE.sub(r"\1", result)
    result = _CODE_RE.sub(r"\1", result)
    result = _EDITED_FROM_RE.sub("", result)
    result = _FROM_RE.sub("", result)
    return result.strip()


def clean_description(text: Optional[str]) -> str:
    """Display variant: spoilers stay visible as a placeholder."""
    return clean_markup(text, SpoilerMode.PLACEHOLDER)


def truncate_for_translation(text: str, limit: int = TRANSLATION_CHAR_LIMIT) -> str:
    """Cut text to ``limit`` characters, appending TRUNCATION_MARKER when cut."""
    if len(text) <= limit:
        return text
    return text[:limit] + TRUNCATION_MARKER
