from unittest.mock import AsyncMock

import pytest

from galshelf.translation.tag_cache import TagTranslationCache
from galshelf.translation.translator import TranslationError


def _translator(mapping=None, error=None):
    mapping = mapping or {}
    translator = AsyncMock()

    async def translate(tags, credential):
        if error is not None:
            raise error
        return [mapping.get(tag, tag.upper()) for tag in tags]

    translator.translate_tags.side_effect = translate
    return translator


@pytest.mark.unit
@pytest.mark.asyncio
async def test_misses_are_translated_once_and_cached(store):
    translator = _translator({"Romance": "恋爱", "School": "校园"})
    cache = TagTranslationCache(store, translator)

    first = await cache.translate_tags(["Romance", "School"], "sk-test")
    second = await cache.translate_tags(["School", "Romance"], "sk-test")

    assert first == ["恋爱", "校园"]
    assert second == ["校园", "恋爱"]
    assert translator.translate_tags.await_count == 1
    assert await store.get_tag_translation("Romance") == "恋爱"


@pytest.mark.unit
@pytest.mark.asyncio
async def test_only_uncached_tags_are_sent_deduplicated(store):
    await store.set_tag_translation("Romance", "恋爱")
    translator = _translator({"School": "校园", "Drama": "剧情"})
    cache = TagTranslationCache(store, translator)

    result = await cache.translate_tags(["School", "Romance", "Drama", "School"], "sk-test")

    assert result == ["校园", "恋爱", "剧情", "校园"]
    sent = translator.translate_tags.await_args.args[0]
    assert sent == ["School", "Drama"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translator_failure_passes_tags_through(store):
    await store.set_tag_translation("Romance", "恋爱")
    translator = _translator(error=TranslationError("boom"))
    cache = TagTranslationCache(store, translator)

    result = await cache.translate_tags(["Romance", "School"], "sk-test")

    assert result == ["恋爱", "School"]
    assert await store.get_tag_translation("School") is None


@pytest.mark.unit
@pytest.mark.asyncio
async def test_length_mismatch_is_not_cached(store):
    translator = AsyncMock()
    translator.translate_tags.return_value = ["只有一个"]
    cache = TagTranslationCache(store, translator)

    result = await cache.translate_tags(["Romance", "School"], "sk-test")

    assert result == ["Romance", "School"]
    assert await store.get_all_tag_translations() == []


@pytest.mark.unit
@pytest.mark.asyncio
async def test_blank_credential_uses_cache_only(store):
    await store.set_tag_translation("Romance", "恋爱")
    translator = _translator()
    cache = TagTranslationCache(store, translator)

    result = await cache.translate_tags(["Romance", "School"], "")

    assert result == ["恋爱", "School"]
    translator.translate_tags.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_empty_input_skips_store_and_translator(store):
    translator = _translator()
    cache = TagTranslationCache(store, translator)

    assert await cache.translate_tags([], "sk-test") == []
    assert await cache.lookup_many([]) == {}
    await cache.upsert_many([])
    translator.translate_tags.assert_not_called()
