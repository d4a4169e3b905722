import asyncio
from unittest.mock import AsyncMock

import pytest

from galshelf.catalog.models import CatalogImage, CatalogTag
from galshelf.library.models import LibraryEntry
from galshelf.media.downloader import ImageDownloader
from galshelf.media.storage import MediaStore
from galshelf.translation.tag_cache import TagTranslationCache
from galshelf.translation.translator import TranslationError
from galshelf.workflow.enrichment import EnrichmentAggregator
from galshelf.workflow.events import NoticeEvent


class FakeDownloader(ImageDownloader):
    def __init__(self, payload, failing=()):
        super().__init__(client=None)
        self.payload = payload
        self.failing = set(failing)

    async def download(self, url, output_path):
        await asyncio.sleep(0)
        if url in self.failing:
            return False, f"HTTP 500 for {url}"
        output_path.parent.mkdir(parents=True, exist_ok=True)
        output_path.write_bytes(self.payload)
        return True, None


class RecordingBus:
    def __init__(self):
        self.events = []

    async def publish(self, event):
        self.events.append(event)


def _shots(count, unsafe=()):
    return [
        CatalogImage(
            id=f"sf{n}",
            url=f"https://t.vndb.org/sf/0{n}/{n}.jpg",
            sexual=2.0 if n in unsafe else 0.0,
        )
        for n in range(1, count + 1)
    ]


@pytest.fixture
def translator():
    fake = AsyncMock()
    fake.translate_text.return_value = "一个关于武的故事。"
    fake.translate_tags.side_effect = lambda tags, credential: [f"zh:{t}" for t in tags]
    return fake


@pytest.fixture
def make_aggregator(base_config, tmp_path, png_bytes, store, translator):
    def _builder(failing=(), bus=None, config=None):
        media = MediaStore(tmp_path / "media", downloader=FakeDownloader(png_bytes, failing))
        cache = TagTranslationCache(store, translator)
        return EnrichmentAggregator(config or base_config, media, translator, cache, bus)
    return _builder


@pytest.mark.unit
@pytest.mark.asyncio
async def test_full_enrichment_with_credential(make_aggregator, record_factory, translator):
    record = record_factory(screenshots=_shots(2))
    aggregator = make_aggregator()

    enrichment = await aggregator.enrich(record, credential="sk-test")

    assert enrichment.cover_path.endswith("v17.jpg")
    assert len(enrichment.screenshot_paths) == 2
    assert enrichment.description == "一个关于武的故事。"
    assert enrichment.tags == ["zh:Mystery", "zh:Sci-fi"]
    sent_text = translator.translate_text.await_args.args[0]
    assert sent_text == "A story about Takeshi."


@pytest.mark.unit
@pytest.mark.asyncio
async def test_one_failing_screenshot_is_dropped(make_aggregator, record_factory):
    shots = _shots(4)
    aggregator = make_aggregator(failing=[shots[2].url])

    enrichment = await aggregator.enrich(record_factory(screenshots=shots), credential="")

    assert [p.rsplit("/", 1)[-1] for p in enrichment.screenshot_paths] == ["sf1.jpg", "sf2.jpg", "sf4.jpg"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_screenshots_are_safe_only_and_bounded(make_aggregator, record_factory, base_config):
    config = dict(base_config, **{"import": dict(base_config["import"], max_screenshots=2)})
    aggregator = make_aggregator(config=config)

    enrichment = await aggregator.enrich(record_factory(screenshots=_shots(5, unsafe=(1,))))

    assert [p.rsplit("/", 1)[-1] for p in enrichment.screenshot_paths] == ["sf2.jpg", "sf3.jpg"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_cover_failure_keeps_existing_cover_and_notifies(make_aggregator, record_factory):
    bus = RecordingBus()
    record = record_factory()
    aggregator = make_aggregator(failing=[record.image.url], bus=bus)
    existing = LibraryEntry(id="e1", title="Ever17", cover_path="/old/cover.jpg", notes="")

    enrichment = await aggregator.enrich(record, existing_entry=existing)

    assert enrichment.cover_path == "/old/cover.jpg"
    assert [e.level for e in bus.events if isinstance(e, NoticeEvent)] == ["warning"]


@pytest.mark.unit
@pytest.mark.asyncio
async def test_existing_notes_are_preserved(make_aggregator, record_factory, translator):
    existing = LibraryEntry(id="e1", title="Ever17", notes="My own notes")

    enrichment = await make_aggregator().enrich(record_factory(), existing_entry=existing, credential="sk-test")

    assert enrichment.description == "My own notes"
    translator.translate_text.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_without_credential_tags_pass_through_untranslated(make_aggregator, record_factory, translator):
    enrichment = await make_aggregator().enrich(record_factory(), credential="  ")

    assert enrichment.description == "A story about Takeshi."
    assert enrichment.tags == ["Mystery", "Sci-fi"]
    translator.translate_text.assert_not_called()
    translator.translate_tags.assert_not_called()


@pytest.mark.unit
@pytest.mark.asyncio
async def test_translation_failure_falls_back_to_cleaned_text(make_aggregator, record_factory, translator):
    translator.translate_text.side_effect = TranslationError("quota exceeded")
    bus = RecordingBus()
    record = record_factory(description="Intro [spoiler]the twist[/spoiler]")

    enrichment = await make_aggregator(bus=bus).enrich(record, credential="sk-test")

    assert enrichment.description == "Intro"
    assert any("quota exceeded" in e.message for e in bus.events)


@pytest.mark.unit
@pytest.mark.asyncio
async def test_failing_subtask_yields_default(make_aggregator, record_factory, translator):
    translator.translate_text.side_effect = RuntimeError("unexpected")
    record = record_factory(tags=[CatalogTag(id="g1", name="Mystery", rating=2.8)])

    enrichment = await make_aggregator().enrich(record, credential="sk-test")

    assert enrichment.description == ""
    assert enrichment.tags == ["zh:Mystery"]
    assert enrichment.cover_path.endswith("v17.jpg")


@pytest.mark.unit
@pytest.mark.asyncio
async def test_record_without_media(make_aggregator, record_factory):
    record = record_factory(with_image=False, description=None)

    enrichment = await make_aggregator().enrich(record)

    assert enrichment.cover_path == ""
    assert enrichment.screenshot_paths == []
    assert enrichment.description == ""
