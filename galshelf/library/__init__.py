"""
Library store package for galshelf.

Entries, play sessions, settings and cached tag translations in SQLite.
"""

from .models import EntryForm, EntryValidationError, LibraryEntry, PlaySession, PlayStatus, TagTranslation
from .database import DatabaseError, LibraryDatabase

__all__ = [
    "EntryForm",
    "EntryValidationError",
    "LibraryEntry",
    "PlaySession",
    "PlayStatus",
    "TagTranslation",
    "DatabaseError",
    "LibraryDatabase",
]
