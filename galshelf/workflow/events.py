"""Event types published on the event bus.

Events are immutable dataclasses carrying state changes from the import
pipeline and the game launcher to whoever is listening (the CLI, the
playtime recorder).
"""

from dataclasses import dataclass
from typing import Literal, Optional


@dataclass(frozen=True)
class ItemStatusEvent:
    """Emitted when an import item changes state.

    Attributes:
        index: Position of the item in the import queue
        title: Detected folder title
        status: New status value
        detail: Optional detail (error message, matched catalog id)
    """
    index: int
    title: str
    status: Literal['pending', 'matching', 'matched', 'failed', 'importing', 'done']
    detail: Optional[str] = None


@dataclass(frozen=True)
class MatchProgressEvent:
    """Emitted before each item of a bulk match.

    Attributes:
        completed: Items finished so far
        total: Items in this batch
        current_title: Title about to be matched
    """
    completed: int
    total: int
    current_title: str


@dataclass(frozen=True)
class NoticeEvent:
    """A user-facing notice about a non-fatal problem."""
    level: Literal['info', 'warning', 'error']
    message: str


@dataclass(frozen=True)
class SessionEndedEvent:
    """Emitted when a launched game process exits.

    Attributes:
        game_id: Library entry id
        start_time: ISO timestamp of the launch
        end_time: ISO timestamp of the exit
        duration: Session length in seconds
    """
    game_id: str
    start_time: str
    end_time: str
    duration: int
