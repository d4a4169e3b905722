"""
VNDB catalog package for galshelf.

Searches the catalog, normalizes responses, and applies the title and tag
selection rules used when importing games.
"""

from .models import CatalogImage, CatalogRecord, CatalogTag, CatalogTitle, Producer, SearchResult
from .errors import CatalogClientError
from .throttle import RateLimit, RequestThrottle
from .client import VndbClient
from .selection import (
    TagExtractionOptions,
    extract_tags,
    format_release_date,
    pick_display_title,
    pick_original_title,
    rating_to_local,
    round_half_up,
)

__all__ = [
    "CatalogImage",
    "CatalogRecord",
    "CatalogTag",
    "CatalogTitle",
    "Producer",
    "SearchResult",
    "CatalogClientError",
    "RateLimit",
    "RequestThrottle",
    "VndbClient",
    "TagExtractionOptions",
    "extract_tags",
    "format_release_date",
    "pick_display_title",
    "pick_original_title",
    "rating_to_local",
    "round_half_up",
]
