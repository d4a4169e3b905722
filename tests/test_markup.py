import pytest

from galshelf.markup import (
    SPOILER_PLACEHOLDER,
    TRUNCATION_MARKER,
    SpoilerMode,
    clean_description,
    clean_markup,
    truncate_for_translation,
)


@pytest.mark.unit
def test_spoiler_is_replaced_with_placeholder():
    text = "Hello [url=https://x]world[/url] [spoiler]dies[/spoiler]"

    assert clean_markup(text, SpoilerMode.PLACEHOLDER) == "Hello world " + SPOILER_PLACEHOLDER
    assert clean_description(text) == "Hello world " + SPOILER_PLACEHOLDER


@pytest.mark.unit
def test_spoiler_is_removed_by_default():
    text = "Hello [url=https://x]world[/url] [spoiler]dies[/spoiler]"

    assert clean_markup(text) == "Hello world"


@pytest.mark.unit
def test_multiline_spoilers_and_blocks_are_handled():
    text = (
        "Intro.\n[spoiler]line one\nline two[/spoiler]\n"
        "[raw][b]literal[/b][/raw] and [code]x = 1[/code]\n"
        "[Edited from Getchu]"
    )

    cleaned = clean_markup(text)

    assert "line one" not in cleaned
    assert "[b]literal[/b]" in cleaned
    assert "x = 1" in cleaned
    assert "Getchu" not in cleaned
    assert cleaned.startswith("Intro.")


@pytest.mark.unit
def test_source_notes_are_dropped_case_insensitively():
    assert clean_markup("Story text.\n\n[from Wikipedia]") == "Story text."
    assert clean_markup("Story text. [EDITED FROM the back cover]") == "Story text."


@pytest.mark.unit
@pytest.mark.parametrize("text", [None, ""])
def test_empty_input_yields_empty_string(text):
    assert clean_markup(text) == ""
    assert clean_description(text) == ""


@pytest.mark.unit
def test_truncation_appends_marker_only_when_cut():
    long_text = "a" * 5000

    result = truncate_for_translation(long_text)

    assert result == "a" * 3000 + TRUNCATION_MARKER
    assert len(result) == 3003
    assert truncate_for_translation("short") == "short"
    assert truncate_for_translation("a" * 3000) == "a" * 3000
