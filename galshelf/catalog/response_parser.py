"""VNDB API response parsing and normalization."""

import json
from typing import Any, Dict, List, Optional

from galshelf.catalog.models import (
    CatalogImage,
    CatalogRecord,
    CatalogTag,
    CatalogTitle,
    Producer,
    SearchResult,
)


class ResponseError(Exception):
    """Response parsing errors."""
    pass


def validate_response(response_content: bytes) -> Dict[str, Any]:
    """
    Validate and decode an API response body.

    Args:
        response_content: Raw response bytes

    Returns:
        Decoded JSON object

    Raises:
        ResponseError: If the body is empty, not JSON, or not an object
    """
    if not response_content:
        raise ResponseError("Empty response body received")

    try:
        data = json.loads(response_content)
    except (json.JSONDecodeError, UnicodeDecodeError) as e:
        raise ResponseError(f"Malformed JSON: {e}")

    if not isinstance(data, dict):
        raise ResponseError(f"Invalid response: expected object, got {type(data).__name__}")

    return data


def _parse_image(data: Optional[Dict[str, Any]]) -> Optional[CatalogImage]:
    if not data or not data.get('url'):
        return None

    dims = data.get('dims') or (0, 0)
    try:
        width, height = int(dims[0]), int(dims[1])
    except (TypeError, ValueError, IndexError):
        width, height = 0, 0

    return CatalogImage(
        id=str(data.get('id') or ''),
        url=data['url'],
        dims=(width, height),
        sexual=float(data.get('sexual') or 0),
        violence=float(data.get('violence') or 0),
    )


def _parse_title(data: Dict[str, Any]) -> CatalogTitle:
    return CatalogTitle(
        lang=data.get('lang') or '',
        title=data.get('title') or '',
        latin=data.get('latin'),
        official=bool(data.get('official', False)),
        main=bool(data.get('main', False)),
    )


def _parse_tag(data: Dict[str, Any]) -> CatalogTag:
    return CatalogTag(
        id=str(data.get('id') or ''),
        name=data.get('name') or '',
        rating=float(data.get('rating') or 0),
        spoiler=int(data.get('spoiler') or 0),
        category=data.get('category') or '',
    )


def parse_vn(data: Dict[str, Any]) -> CatalogRecord:
    """
    Normalize one ``vn`` object into a CatalogRecord.

    Missing arrays default to empty; developers are always empty here
    because the vn endpoint does not embed producer relations.

    Args:
        data: One element of the ``results`` array

    Returns:
        CatalogRecord

    Raises:
        ResponseError: If the object has no id
    """
    vn_id = data.get('id')
    if not vn_id:
        raise ResponseError("VN object without id")

    screenshots = [_parse_image(s) for s in data.get('screenshots') or []]

    length = data.get('length_minutes')
    rating = data.get('rating')

    return CatalogRecord(
        id=str(vn_id),
        title=data.get('title') or '',
        alttitle=data.get('alttitle'),
        titles=[_parse_title(t) for t in data.get('titles') or []],
        released=data.get('released'),
        image=_parse_image(data.get('image')),
        screenshots=[s for s in screenshots if s is not None],
        olang=data.get('olang') or '',
        languages=list(data.get('languages') or []),
        platforms=list(data.get('platforms') or []),
        rating=float(rating) if rating is not None else None,
        votecount=int(data.get('votecount') or 0),
        length_minutes=int(length) if length is not None else None,
        description=data.get('description'),
        tags=[_parse_tag(t) for t in data.get('tags') or []],
        developers=[],
    )


def parse_search_results(data: Dict[str, Any]) -> SearchResult:
    """
    Parse a ``POST /vn`` response into a SearchResult.

    Args:
        data: Decoded response object

    Returns:
        SearchResult (results may be empty)

    Raises:
        ResponseError: If ``results`` is not a list
    """
    results = data.get('results') or []
    if not isinstance(results, list):
        raise ResponseError("'results' must be a list")

    return SearchResult(
        results=[parse_vn(vn) for vn in results],
        more=bool(data.get('more', False)),
        count=data.get('count'),
    )


def parse_developers(data: Dict[str, Any]) -> List[Producer]:
    """
    Collect developer producers from a ``POST /release`` response.

    Producers not flagged as developer are skipped; duplicates across
    releases are collapsed, keeping first-seen order.

    Args:
        data: Decoded response object

    Returns:
        List of Producer
    """
    developers: Dict[str, Producer] = {}

    for release in data.get('results') or []:
        for prod in release.get('producers') or []:
            prod_id = prod.get('id')
            if not prod.get('developer') or not prod_id or prod_id in developers:
                continue
            developers[prod_id] = Producer(
                id=prod_id,
                name=prod.get('name') or '',
                original=prod.get('original'),
            )

    return list(developers.values())
