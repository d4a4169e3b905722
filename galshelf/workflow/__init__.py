"""Import workflow package."""

from .events import ItemStatusEvent, MatchProgressEvent, NoticeEvent, SessionEndedEvent
from .event_bus import EventBus
from .enrichment import Enrichment, EnrichmentAggregator
from .importer import ImportItem, ImportPipeline, ImportStatus, MatchSummary
from .rematch import EntryRematcher

__all__ = [
    "ItemStatusEvent",
    "MatchProgressEvent",
    "NoticeEvent",
    "SessionEndedEvent",
    "EventBus",
    "Enrichment",
    "EnrichmentAggregator",
    "ImportItem",
    "ImportPipeline",
    "ImportStatus",
    "MatchSummary",
    "EntryRematcher",
]
