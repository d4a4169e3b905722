"""
Persistent tag translation cache.

Read-through / write-through layer between the enrichment step and the
translator. Entries live in the library database and are never expired.
"""

import logging
from typing import Dict, Iterable, List, Sequence, Tuple

from galshelf.translation.translator import ChatTranslator, TranslationError

logger = logging.getLogger(__name__)


class TagTranslationCache:
    """
    Tag translation gateway.

    Wraps the library store's tag translation table and batches cache
    misses into a single translator call.

    Example:
        cache = TagTranslationCache(store, translator)
        tags = await cache.translate_tags(['Romance', 'School'], api_key)
    """

    def __init__(self, store, translator: ChatTranslator):
        """
        Initialize cache gateway.

        Args:
            store: LibraryDatabase (or anything with get_tag_translations /
                set_tag_translations coroutines)
            translator: Translator used for cache misses
        """
        self.store = store
        self.translator = translator

    async def lookup_many(self, keys: Iterable[str]) -> Dict[str, str]:
        """Return cached translations for the keys that have one."""
        keys = list(keys)
        if not keys:
            return {}
        return await self.store.get_tag_translations(keys)

    async def upsert_many(self, pairs: Iterable[Tuple[str, str]]) -> None:
        """Store translations; existing keys are overwritten."""
        pairs = list(pairs)
        if not pairs:
            return
        await self.store.set_tag_translations(pairs)

    async def translate_tags(self, tags: Sequence[str], credential: str) -> List[str]:
        """
        Translate tags, consulting the cache first.

        Uncached tags are de-duplicated and sent to the translator in one
        request. If that request fails, or the credential is blank, the
        uncached tags are returned untranslated.

        Args:
            tags: Source tag names
            credential: Translator API key

        Returns:
            Translations, same length and order as ``tags``
        """
        if not tags:
            return []

        cached = await self.lookup_many(tags)

        uncached: List[str] = []
        for tag in tags:
            if tag not in cached and tag not in uncached:
                uncached.append(tag)

        if uncached and credential and credential.strip():
            try:
                translated = await self.translator.translate_tags(uncached, credential)
            except TranslationError as e:
                logger.warning(f"Tag translation failed, keeping {len(uncached)} tags untranslated: {e}")
            else:
                if len(translated) == len(uncached):
                    pairs = list(zip(uncached, translated))
                    await self.upsert_many(pairs)
                    cached.update(pairs)
                    logger.debug(f"Cached {len(pairs)} new tag translations")
                else:
                    logger.warning(
                        f"Tag translation length mismatch ({len(translated)} != {len(uncached)}); "
                        f"keeping tags untranslated"
                    )

        return [cached.get(tag, tag) for tag in tags]
