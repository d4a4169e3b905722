"""Library data structures."""

from dataclasses import asdict, dataclass, field
from enum import Enum
from typing import Any, Dict, List, Optional

from galshelf.catalog.selection import rating_to_local


class EntryValidationError(Exception):
    """Raised when an entry form fails validation."""
    pass


class PlayStatus(Enum):
    """Play progress of a library entry."""
    UNPLAYED = "unplayed"
    PLAYING = "playing"
    FINISHED = "finished"
    SHELVED = "shelved"


PLAY_STATUS_VALUES = tuple(status.value for status in PlayStatus)

MIN_RATING = 0
MAX_RATING = 10


@dataclass
class EntryForm:
    """
    Editable fields of a library entry.

    Everything except the id, timestamps and accumulated playtime, which
    the store owns.
    """
    title: str
    title_original: str = ""
    vndb_id: str = ""
    developer: str = ""
    release_date: str = ""
    exe_path: str = ""
    install_path: str = ""
    save_path: str = ""
    cover_path: str = ""
    screenshots: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    play_status: str = PlayStatus.UNPLAYED.value
    rating: int = 0                 # user rating, 0-10
    vndb_rating: int = 0            # raw catalog rating, 0-100
    vndb_votecount: int = 0
    length_minutes: int = 0
    notes: str = ""
    engine: str = ""

    def validate(self) -> None:
        """
        Check the form before it is written.

        Raises:
            EntryValidationError: Listing every problem found
        """
        errors = []

        if not self.title or not self.title.strip():
            errors.append("title must not be empty")

        if not isinstance(self.rating, int) or not MIN_RATING <= self.rating <= MAX_RATING:
            errors.append(f"rating must be between {MIN_RATING} and {MAX_RATING}, got {self.rating!r}")

        if self.play_status not in PLAY_STATUS_VALUES:
            errors.append(
                f"play_status must be one of {', '.join(PLAY_STATUS_VALUES)}, got {self.play_status!r}"
            )

        if errors:
            raise EntryValidationError("; ".join(errors))

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class LibraryEntry:
    """A persisted library entry."""
    id: str
    title: str
    title_original: str = ""
    vndb_id: str = ""
    developer: str = ""
    release_date: str = ""
    exe_path: str = ""
    install_path: str = ""
    save_path: str = ""
    cover_path: str = ""
    screenshots: List[str] = field(default_factory=list)
    tags: List[str] = field(default_factory=list)
    play_status: str = PlayStatus.UNPLAYED.value
    rating: int = 0
    vndb_rating: int = 0
    vndb_votecount: int = 0
    length_minutes: int = 0
    notes: str = ""
    engine: str = ""
    total_playtime: int = 0         # seconds
    created_at: str = ""
    updated_at: str = ""

    @property
    def vndb_rating_display(self) -> int:
        """Catalog rating on the 0-10 scale."""
        return rating_to_local(self.vndb_rating)

    def format_playtime(self) -> str:
        """
        Human readable total playtime.

        Example:
            >>> LibraryEntry(id='x', title='t', total_playtime=5400).format_playtime()
            '1h 30m'
        """
        hours, remainder = divmod(self.total_playtime, 3600)
        minutes = remainder // 60
        if hours:
            return f"{hours}h {minutes}m"
        return f"{minutes}m"


@dataclass
class PlaySession:
    """One completed play session. Sessions are never modified."""
    id: str
    game_id: str
    start_time: str
    end_time: Optional[str]
    duration: int                   # seconds


@dataclass
class TagTranslation:
    """A cached tag translation."""
    source: str
    translated: str
