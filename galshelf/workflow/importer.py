"""
Import pipeline.

Takes detected game folders through catalog matching, enrichment, manual
review and commit to the library store. Each item moves through a small
state machine:

    pending -> matching -> matched | failed -> importing -> done

Matched and failed items can be re-matched during review; done items are
never touched again.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Dict, Iterable, List, Optional

from galshelf.catalog.client import VndbClient
from galshelf.catalog.errors import CatalogClientError
from galshelf.catalog.models import CatalogRecord, SearchResult
from galshelf.catalog.selection import (
    TagExtractionOptions,
    extract_tags,
    format_release_date,
    pick_display_title,
    pick_original_title,
    round_half_up,
)
from galshelf.library.models import EntryForm, LibraryEntry
from galshelf.markup import clean_description
from galshelf.scanner.folder_scanner import DetectedGame, find_save_directories
from galshelf.workflow.enrichment import Enrichment, EnrichmentAggregator
from galshelf.workflow.events import ItemStatusEvent, MatchProgressEvent

logger = logging.getLogger(__name__)


CREDENTIAL_SETTING = "deepseek_api_key"

NO_MATCH_MESSAGE = "no catalog match found"
SKIPPED_MESSAGE = "manually skipped"


class ImportStatus(Enum):
    """State of an import item."""
    PENDING = "pending"
    MATCHING = "matching"
    MATCHED = "matched"
    FAILED = "failed"
    IMPORTING = "importing"
    DONE = "done"


@dataclass
class ImportItem:
    """One detected game on its way into the library."""
    detected: DetectedGame
    record: Optional[CatalogRecord] = None
    candidates: List[CatalogRecord] = field(default_factory=list)
    enrichment: Enrichment = field(default_factory=Enrichment)
    status: ImportStatus = ImportStatus.PENDING
    error: Optional[str] = None

    @property
    def title(self) -> str:
        return self.detected.title


@dataclass
class MatchSummary:
    """Outcome of a bulk match."""
    total: int = 0
    matched: int = 0
    failed: int = 0


class ImportPipeline:
    """
    Matches detected games against the catalog and imports them.

    Example:
        pipeline = ImportPipeline(config, catalog, aggregator, store, bus)
        pipeline.add_detected(scan_folders([Path('D:/Games')]))
        await pipeline.match_all()
        entries = await pipeline.commit()
    """

    def __init__(
        self,
        config: Dict[str, Any],
        catalog: VndbClient,
        aggregator: EnrichmentAggregator,
        store,
        event_bus=None
    ):
        """
        Initialize pipeline.

        Args:
            config: Configuration dictionary (reads the 'import' section)
            catalog: Catalog client
            aggregator: Enrichment aggregator
            store: LibraryDatabase used for settings and the final commit
            event_bus: Optional EventBus for status and progress events
        """
        import_config = config.get('import', {})
        self.inter_item_delay = import_config.get('inter_item_delay', 0.5)
        self.tag_options = TagExtractionOptions(
            max_spoiler=import_config.get('max_spoiler', 0),
            max_count=import_config.get('max_tags', 8),
        )

        self.catalog = catalog
        self.aggregator = aggregator
        self.store = store
        self.event_bus = event_bus
        self.items: List[ImportItem] = []

    async def _publish(self, event) -> None:
        if self.event_bus is not None:
            await self.event_bus.publish(event)

    async def _set_status(
        self,
        index: int,
        status: ImportStatus,
        error: Optional[str] = None
    ) -> None:
        item = self.items[index]
        item.status = status
        item.error = error
        await self._publish(ItemStatusEvent(
            index=index,
            title=item.title,
            status=status.value,
            detail=error or (item.record.id if item.record else None),
        ))

    async def _credential(self) -> str:
        return (await self.store.get_setting(CREDENTIAL_SETTING)).strip()

    # Queue management

    def add_detected(self, games: Iterable[DetectedGame]) -> int:
        """
        Queue detected games, skipping install paths already queued.

        Returns:
            Number of items added
        """
        queued = {item.detected.install_path for item in self.items}
        added = 0
        for game in games:
            if game.install_path in queued:
                logger.debug(f"Skipping already queued folder: {game.install_path}")
                continue
            queued.add(game.install_path)
            self.items.append(ImportItem(detected=game))
            added += 1
        return added

    def remove_item(self, index: int) -> ImportItem:
        """Drop an item from the queue."""
        return self.items.pop(index)

    # Matching

    async def _fetch_detail(self, summary: CatalogRecord) -> CatalogRecord:
        """Full record for a search hit; the summary itself if that fails."""
        try:
            detail = await self.catalog.get_by_id(summary.id)
        except CatalogClientError as e:
            logger.warning(f"Detail fetch for {summary.id} failed, using search summary: {e}")
            return summary
        return detail or summary

    async def _match_item(self, index: int, credential: str) -> None:
        item = self.items[index]
        await self._set_status(index, ImportStatus.MATCHING)

        item.record = None
        item.candidates = []
        item.enrichment = Enrichment()

        try:
            result = await self.catalog.search(item.title)
            item.candidates = list(result.results)

            record = None
            if item.candidates:
                record = await self._fetch_detail(item.candidates[0])

            item.record = record
            item.enrichment = (
                await self.aggregator.enrich(record, credential=credential)
                if record is not None else Enrichment()
            )
        except Exception as e:
            logger.warning(f"Matching '{item.title}' failed: {e}")
            await self._set_status(index, ImportStatus.FAILED, f"match failed: {e}")
            return

        if item.record is not None:
            logger.info(f"Matched '{item.title}' -> {item.record.id} ({pick_display_title(item.record)})")
            await self._set_status(index, ImportStatus.MATCHED)
        else:
            logger.info(f"No catalog match for '{item.title}'")
            await self._set_status(index, ImportStatus.FAILED, NO_MATCH_MESSAGE)

    async def match_all(self) -> MatchSummary:
        """
        Match every item that is not done, one at a time.

        Items are processed sequentially with ``inter_item_delay`` seconds
        between them to stay clear of the catalog rate limit. A failing item
        is marked failed and the batch continues.

        Returns:
            MatchSummary for the batch
        """
        indices = [i for i, item in enumerate(self.items) if item.status != ImportStatus.DONE]
        summary = MatchSummary(total=len(indices))
        if not indices:
            return summary

        credential = await self._credential()
        if not credential:
            logger.info("No translation credential set; descriptions and tags stay untranslated")

        for position, index in enumerate(indices):
            await self._publish(MatchProgressEvent(
                completed=position,
                total=len(indices),
                current_title=self.items[index].title,
            ))

            await self._match_item(index, credential)

            if self.items[index].status == ImportStatus.MATCHED:
                summary.matched += 1
            else:
                summary.failed += 1

            if position < len(indices) - 1 and self.inter_item_delay > 0:
                await asyncio.sleep(self.inter_item_delay)

        await self._publish(MatchProgressEvent(
            completed=len(indices),
            total=len(indices),
            current_title="",
        ))
        logger.info(f"Matching complete: {summary.matched} matched, {summary.failed} failed")
        return summary

    # Review

    async def search_candidates(self, query: str, page: int = 1) -> SearchResult:
        """Ad-hoc catalog search for manual review. Does not change any item."""
        query = query.strip()
        if not query:
            return SearchResult(results=[])
        return await self.catalog.search(query, page=page)

    async def pick_candidate(self, index: int, record: CatalogRecord) -> ImportItem:
        """
        Replace an item's match with a chosen candidate.

        The full record is fetched and enrichment re-runs for this item only.

        Raises:
            ValueError: If the item is already imported
        """
        item = self.items[index]
        if item.status == ImportStatus.DONE:
            raise ValueError(f"Item '{item.title}' is already imported")

        detail = await self._fetch_detail(record)
        credential = await self._credential()

        item.record = detail
        item.enrichment = await self.aggregator.enrich(detail, credential=credential)
        await self._set_status(index, ImportStatus.MATCHED)
        return item

    async def clear_match(self, index: int) -> ImportItem:
        """Drop an item's match; it will be imported with folder data only."""
        item = self.items[index]
        if item.status == ImportStatus.DONE:
            raise ValueError(f"Item '{item.title}' is already imported")

        item.record = None
        item.enrichment = Enrichment()
        await self._set_status(index, ImportStatus.FAILED, SKIPPED_MESSAGE)
        return item

    # Commit

    def _build_form(self, item: ImportItem) -> EntryForm:
        detected = item.detected
        record = item.record
        save_dirs = find_save_directories(detected.install_path)
        save_path = save_dirs[0] if save_dirs else ""

        if record is None:
            return EntryForm(
                title=detected.title,
                exe_path=detected.exe_path,
                install_path=detected.install_path,
                save_path=save_path,
                engine=detected.engine or "",
            )

        raw_tags = extract_tags(record.tags, self.tag_options)
        notes = item.enrichment.description or clean_description(record.description)

        return EntryForm(
            title=pick_display_title(record),
            title_original=pick_original_title(record),
            vndb_id=record.id,
            developer=record.developer_names,
            release_date=format_release_date(record.released),
            exe_path=detected.exe_path,
            install_path=detected.install_path,
            save_path=save_path,
            cover_path=item.enrichment.cover_path,
            screenshots=list(item.enrichment.screenshot_paths),
            tags=list(item.enrichment.tags) or raw_tags,
            vndb_rating=round_half_up(record.rating or 0),
            vndb_votecount=record.votecount or 0,
            length_minutes=record.length_minutes or 0,
            notes=notes,
            engine=detected.engine or "",
        )

    def build_forms(self) -> List[EntryForm]:
        """One entry form per item that is not yet imported."""
        return [self._build_form(item) for item in self.items if item.status != ImportStatus.DONE]

    async def commit(self) -> List[LibraryEntry]:
        """
        Write all pending items to the library in one batch.

        Returns:
            Created entries

        Raises:
            EntryValidationError: If a form is invalid; nothing is written
            DatabaseError: If the store fails; items keep their prior status
        """
        indices = [i for i, item in enumerate(self.items) if item.status != ImportStatus.DONE]
        if not indices:
            return []

        forms = [self._build_form(self.items[i]) for i in indices]
        previous = {i: (self.items[i].status, self.items[i].error) for i in indices}

        for i in indices:
            await self._set_status(i, ImportStatus.IMPORTING)

        try:
            entries = await self.store.add_entries(forms)
        except Exception:
            for i in indices:
                status, error = previous[i]
                await self._set_status(i, status, error)
            raise

        for i in indices:
            await self._set_status(i, ImportStatus.DONE)

        logger.info(f"Imported {len(entries)} games into the library")
        return entries
