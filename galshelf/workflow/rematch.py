"""Re-match an existing library entry against a different catalog record."""

import logging
from typing import Any, Dict, List, Optional

from galshelf.catalog.client import VndbClient
from galshelf.catalog.selection import (
    TagExtractionOptions,
    extract_tags,
    format_release_date,
    pick_display_title,
    pick_original_title,
    round_half_up,
)
from galshelf.library.models import LibraryEntry
from galshelf.workflow.enrichment import EnrichmentAggregator
from galshelf.workflow.importer import CREDENTIAL_SETTING

logger = logging.getLogger(__name__)


def _merge_unique(first: List[str], second: List[str]) -> List[str]:
    return list(dict.fromkeys(list(first) + list(second)))


class EntryRematcher:
    """
    Links a library entry to a catalog record and refreshes its metadata.

    User-owned data wins: an existing title, notes and cover are kept
    unless the new record supplies something better, and tags are merged.
    """

    def __init__(
        self,
        config: Dict[str, Any],
        catalog: VndbClient,
        aggregator: EnrichmentAggregator,
        store
    ):
        import_config = config.get('import', {})
        self.tag_options = TagExtractionOptions(
            max_spoiler=import_config.get('max_spoiler', 0),
            max_count=import_config.get('max_tags', 8),
        )
        self.catalog = catalog
        self.aggregator = aggregator
        self.store = store

    async def rematch(self, entry_id: str, vn_id: str) -> Optional[LibraryEntry]:
        """
        Apply catalog record ``vn_id`` to entry ``entry_id``.

        Args:
            entry_id: Library entry id
            vn_id: Catalog id to link

        Returns:
            Updated entry, or None if either id does not exist

        Raises:
            CatalogClientError: If the catalog request fails
            DatabaseError: If the update fails
        """
        entry = await self.store.get_entry(entry_id)
        if entry is None:
            logger.warning(f"Cannot re-match unknown entry {entry_id}")
            return None

        record = await self.catalog.get_by_id(vn_id)
        if record is None:
            logger.warning(f"Catalog record {vn_id} not found")
            return None

        credential = (await self.store.get_setting(CREDENTIAL_SETTING)).strip()
        enrichment = await self.aggregator.enrich(record, existing_entry=entry, credential=credential)

        new_tags = enrichment.tags or extract_tags(record.tags, self.tag_options)

        changes = {
            'title': entry.title or pick_display_title(record),
            'title_original': pick_original_title(record) or entry.title_original,
            'vndb_id': record.id,
            'developer': record.developer_names or entry.developer,
            'release_date': format_release_date(record.released),
            'cover_path': enrichment.cover_path,
            'screenshots': enrichment.screenshot_paths or entry.screenshots,
            'tags': _merge_unique(entry.tags, new_tags),
            'vndb_rating': round_half_up(record.rating or 0),
            'vndb_votecount': record.votecount or 0,
            'length_minutes': record.length_minutes or 0,
            'notes': enrichment.description,
        }

        updated = await self.store.update_entry(entry_id, changes)
        logger.info(f"Re-matched '{entry.title}' -> {record.id}")
        return updated
