"""Title selection, tag extraction and field formatting for catalog records."""

import math
from dataclasses import dataclass
from typing import Iterable, List, Optional, Sequence, Tuple

from galshelf.catalog.models import CatalogRecord, CatalogTag, CatalogTitle


# Display title language priority: Simplified > Traditional > generic Chinese
DISPLAY_LANG_PRIORITY: Tuple[str, ...] = ("zh-Hans", "zh-Hant", "zh")

ORIGINAL_TITLE_LANG = "ja"

# VNDB calls the adult tag category 'ero'
ADULT_TAG_CATEGORIES: Tuple[str, ...] = ("ero", "adult")

UNANNOUNCED_DATE = "TBA"


@dataclass(frozen=True)
class TagExtractionOptions:
    """
    Filter settings for :func:`extract_tags`.

    Attributes:
        max_spoiler: Highest spoiler level kept (0 = no spoilers)
        max_count: Maximum number of tag names returned
        min_rating: Minimum tag relevance score kept
        excluded_categories: Tag categories dropped entirely
    """
    max_spoiler: int = 0
    max_count: int = 8
    min_rating: float = 1.5
    excluded_categories: Tuple[str, ...] = ADULT_TAG_CATEGORIES


DEFAULT_TAG_OPTIONS = TagExtractionOptions()


def pick_chinese_title(titles: Iterable[CatalogTitle]) -> Optional[str]:
    """
    Pick the best Chinese title, or None if there is none.

    Languages are tried in DISPLAY_LANG_PRIORITY order; within a language
    the first entry wins.
    """
    titles = list(titles)
    for lang in DISPLAY_LANG_PRIORITY:
        for entry in titles:
            if entry.lang == lang:
                return entry.title
    return None


def pick_display_title(record: CatalogRecord) -> str:
    """
    Pick the title shown in the library.

    Args:
        record: Catalog record

    Returns:
        Chinese title when available, otherwise the catalog default title
    """
    return pick_chinese_title(record.titles or []) or record.title


def pick_original_title(record: CatalogRecord) -> str:
    """
    Pick the original-language title.

    Priority: Japanese title, then ``alttitle``, then the title flagged
    as main language, then an empty string.
    """
    titles = record.titles or []

    for entry in titles:
        if entry.lang == ORIGINAL_TITLE_LANG:
            return entry.title

    if record.alttitle:
        return record.alttitle

    for entry in titles:
        if entry.main:
            return entry.title

    return ""


def extract_tags(
    tags: Sequence[CatalogTag],
    options: TagExtractionOptions = DEFAULT_TAG_OPTIONS
) -> List[str]:
    """
    Select the most relevant spoiler-free tag names.

    Args:
        tags: Catalog tags
        options: Filter settings

    Returns:
        Tag names, highest rating first, at most ``options.max_count``

    Example:
        >>> extract_tags(record.tags, TagExtractionOptions(max_count=3))
        ['Romance', 'School', 'Slice of Life']
    """
    kept = [
        t for t in tags
        if t.spoiler <= options.max_spoiler
        and t.category not in options.excluded_categories
        and t.rating >= options.min_rating
    ]
    kept.sort(key=lambda t: t.rating, reverse=True)
    return [t.name for t in kept[:options.max_count]]


def format_release_date(released: Optional[str]) -> str:
    """Release date for the library; empty when unknown or unannounced."""
    if not released or released == UNANNOUNCED_DATE:
        return ""
    return released


def round_half_up(value: float) -> int:
    """Round to the nearest integer, halves up."""
    return int(math.floor(value + 0.5))


def rating_to_local(rating: Optional[float]) -> int:
    """Convert a 10-100 catalog rating to the 0-10 display scale (85 -> 9)."""
    if not rating:
        return 0
    return round_half_up(rating / 10)
