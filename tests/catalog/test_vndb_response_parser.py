import pytest

from galshelf.catalog.response_parser import (
    ResponseError,
    parse_developers,
    parse_search_results,
    parse_vn,
    validate_response,
)


@pytest.mark.unit
def test_validate_response_rejects_empty_and_non_objects():
    with pytest.raises(ResponseError):
        validate_response(b"")
    with pytest.raises(ResponseError):
        validate_response(b"not json")
    with pytest.raises(ResponseError):
        validate_response(b"[1, 2]")

    assert validate_response(b'{"results": []}') == {"results": []}


@pytest.mark.unit
def test_parse_vn_defaults_missing_collections():
    record = parse_vn({"id": "v5", "title": "Minimal"})

    assert record.id == "v5"
    assert record.titles == []
    assert record.screenshots == []
    assert record.tags == []
    assert record.developers == []
    assert record.image is None
    assert record.rating is None
    assert record.length_minutes is None


@pytest.mark.unit
def test_parse_vn_normalizes_images_and_tags():
    record = parse_vn({
        "id": "v11",
        "title": "Kanon",
        "image": {"id": "cv1", "url": "https://t.vndb.org/cv/01/1.png", "dims": [200, 280], "sexual": 0.2, "violence": 0},
        "screenshots": [
            {"id": "sf1", "url": "https://t.vndb.org/sf/01/1.jpg", "dims": [800, 600], "sexual": 1.5, "violence": 0},
            {"id": "sf2", "url": "", "dims": [800, 600]},
        ],
        "tags": [{"id": "g32", "name": "Romance", "rating": 2.7, "spoiler": 1, "category": "cont"}],
        "rating": 80,
        "votecount": "120",
    })

    assert record.image.extension == "png"
    assert record.image.dims == (200, 280)
    assert record.image.is_safe()
    # Entries without a URL are dropped
    assert [s.id for s in record.screenshots] == ["sf1"]
    assert not record.screenshots[0].is_safe()
    assert record.tags[0].spoiler == 1
    assert record.rating == 80.0
    assert record.votecount == 120


@pytest.mark.unit
def test_parse_vn_requires_id():
    with pytest.raises(ResponseError):
        parse_vn({"title": "No id"})


@pytest.mark.unit
def test_parse_search_results_reads_paging_fields():
    result = parse_search_results({"results": [{"id": "v1"}], "more": True})
    assert len(result.results) == 1
    assert result.more is True
    assert result.count is None

    with pytest.raises(ResponseError):
        parse_search_results({"results": {"id": "v1"}})


@pytest.mark.unit
def test_parse_developers_keeps_first_seen_order():
    data = {"results": [
        {"producers": [
            {"id": "p2", "name": "Second", "developer": True},
            {"id": "p1", "name": "First", "developer": True},
        ]},
        {"producers": [
            {"id": "p1", "name": "First", "developer": True},
            {"id": "p3", "name": "Publisher only", "developer": False},
        ]},
        {},
    ]}

    assert [p.id for p in parse_developers(data)] == ["p2", "p1"]
    assert parse_developers({}) == []
