"""
Translation package for galshelf.

Machine translation of descriptions and tags, with a persistent tag cache.
"""

from .translator import ChatTranslator, TranslationError
from .tag_cache import TagTranslationCache

__all__ = [
    "ChatTranslator",
    "TranslationError",
    "TagTranslationCache",
]
