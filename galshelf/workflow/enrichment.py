"""
Enrichment of a matched catalog record.

Runs the four enrichment sub-tasks (cover, screenshots, description, tags)
concurrently and merges whatever succeeded. A failing sub-task never fails
the whole enrichment; it yields its default instead.
"""

import asyncio
import logging
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from galshelf.catalog.models import CatalogRecord
from galshelf.catalog.selection import TagExtractionOptions, extract_tags
from galshelf.library.models import LibraryEntry
from galshelf.markup import SpoilerMode, TRANSLATION_CHAR_LIMIT, clean_markup, truncate_for_translation
from galshelf.media.downloader import DownloadError
from galshelf.media.storage import MediaStore
from galshelf.translation.tag_cache import TagTranslationCache
from galshelf.translation.translator import ChatTranslator, TranslationError
from galshelf.workflow.events import NoticeEvent

logger = logging.getLogger(__name__)


@dataclass
class Enrichment:
    """
    Assets and translated text gathered for one record.

    Attributes:
        cover_path: Local cover file, or '' if none
        screenshot_paths: Local screenshot files, in catalog order
        description: Cleaned (and possibly translated) description
        tags: Extracted tags, translated when a credential was given
    """
    cover_path: str = ""
    screenshot_paths: List[str] = field(default_factory=list)
    description: str = ""
    tags: List[str] = field(default_factory=list)


class EnrichmentAggregator:
    """
    Fans out enrichment requests for a catalog record.

    Example:
        aggregator = EnrichmentAggregator(config, media_store, translator, tag_cache, bus)
        enrichment = await aggregator.enrich(record, credential=api_key)
    """

    def __init__(
        self,
        config: Dict[str, Any],
        media_store: MediaStore,
        translator: ChatTranslator,
        tag_cache: TagTranslationCache,
        event_bus=None
    ):
        """
        Initialize aggregator.

        Args:
            config: Configuration dictionary (reads the 'import' section)
            media_store: Image storage
            translator: Description translator
            tag_cache: Tag translation gateway
            event_bus: Optional EventBus for user-facing notices
        """
        import_config = config.get('import', {})
        self.max_screenshots = import_config.get('max_screenshots', 4)
        self.description_limit = import_config.get('description_limit', TRANSLATION_CHAR_LIMIT)
        self.tag_options = TagExtractionOptions(
            max_spoiler=import_config.get('max_spoiler', 0),
            max_count=import_config.get('max_tags', 8),
        )

        self.media_store = media_store
        self.translator = translator
        self.tag_cache = tag_cache
        self.event_bus = event_bus

    async def _notify(self, message: str) -> None:
        logger.warning(message)
        if self.event_bus is not None:
            await self.event_bus.publish(NoticeEvent(level='warning', message=message))

    async def enrich(
        self,
        record: CatalogRecord,
        existing_entry: Optional[LibraryEntry] = None,
        credential: Optional[str] = None
    ) -> Enrichment:
        """
        Gather cover, screenshots, description and tags for a record.

        Args:
            record: Catalog record (detail fetch preferred, search summary accepted)
            existing_entry: Library entry being re-matched, if any; its cover
                and notes are preserved as fallbacks
            credential: Translator API key; translation is skipped without one

        Returns:
            Enrichment with every field filled or defaulted
        """
        credential = (credential or "").strip()
        fallback_cover = existing_entry.cover_path if existing_entry else ""

        results = await asyncio.gather(
            self._cover(record, fallback_cover),
            self._screenshots(record),
            self._description(record, existing_entry, credential),
            self._tags(record, credential),
            return_exceptions=True
        )

        defaults = (fallback_cover, [], "", [])
        names = ("cover", "screenshots", "description", "tags")
        values = []
        for name, result, default in zip(names, results, defaults):
            if isinstance(result, Exception):
                logger.error(f"Enrichment {name} failed for {record.id}: {result}", exc_info=result)
                values.append(default)
            else:
                values.append(result)

        enrichment = Enrichment(*values)
        logger.debug(
            f"Enriched {record.id}: cover={'yes' if enrichment.cover_path else 'no'}, "
            f"screenshots={len(enrichment.screenshot_paths)}, tags={len(enrichment.tags)}"
        )
        return enrichment

    async def _cover(self, record: CatalogRecord, fallback: str) -> str:
        if record.image is None or not record.image.url:
            return fallback

        try:
            return await self.media_store.download_cover(record.image, record.id)
        except DownloadError as e:
            await self._notify(f"Cover download failed for {record.id}: {e}")
            return fallback

    async def _screenshots(self, record: CatalogRecord) -> List[str]:
        safe = [s for s in record.screenshots if s.url and s.is_safe()]
        return await self.media_store.download_screenshots(safe[:self.max_screenshots])

    async def _description(
        self,
        record: CatalogRecord,
        existing_entry: Optional[LibraryEntry],
        credential: str
    ) -> str:
        if existing_entry is not None and existing_entry.notes.strip():
            return existing_entry.notes

        if not record.description:
            return ""

        cleaned = clean_markup(record.description, SpoilerMode.REMOVE)
        if not credential or not cleaned:
            return cleaned

        try:
            return await self.translator.translate_text(
                truncate_for_translation(cleaned, self.description_limit),
                credential
            )
        except TranslationError as e:
            await self._notify(f"Description translation failed for {record.id}: {e}")
            return cleaned

    async def _tags(self, record: CatalogRecord, credential: str) -> List[str]:
        extracted = extract_tags(record.tags, self.tag_options)
        if not credential or not extracted:
            return extracted

        try:
            return await self.tag_cache.translate_tags(extracted, credential)
        except Exception as e:
            logger.warning(f"Tag translation gateway failed for {record.id}: {e}")
            return extracted
