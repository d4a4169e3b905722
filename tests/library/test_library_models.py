import pytest

from galshelf.library.models import EntryForm, EntryValidationError, LibraryEntry


@pytest.mark.unit
def test_form_validation_reports_every_problem():
    form = EntryForm(title="", rating=12, play_status="dropped")

    with pytest.raises(EntryValidationError) as exc_info:
        form.validate()

    message = str(exc_info.value)
    assert "title" in message
    assert "rating" in message
    assert "play_status" in message


@pytest.mark.unit
@pytest.mark.parametrize("rating", [0, 5, 10])
def test_rating_bounds_are_inclusive(rating):
    EntryForm(title="Kanon", rating=rating).validate()


@pytest.mark.unit
def test_non_integer_rating_is_rejected():
    with pytest.raises(EntryValidationError):
        EntryForm(title="Kanon", rating=7.5).validate()


@pytest.mark.unit
@pytest.mark.parametrize("seconds, expected", [
    (0, "0m"),
    (59, "0m"),
    (2700, "45m"),
    (3600, "1h 0m"),
    (5400, "1h 30m"),
])
def test_format_playtime(seconds, expected):
    assert LibraryEntry(id="x", title="t", total_playtime=seconds).format_playtime() == expected


@pytest.mark.unit
def test_vndb_rating_display_rounds_halves_up():
    assert LibraryEntry(id="x", title="t", vndb_rating=84).vndb_rating_display == 8
    assert LibraryEntry(id="x", title="t", vndb_rating=85).vndb_rating_display == 9
    assert LibraryEntry(id="x", title="t", vndb_rating=65).vndb_rating_display == 7
    assert LibraryEntry(id="x", title="t").vndb_rating_display == 0
