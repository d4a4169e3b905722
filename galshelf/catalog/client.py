"""VNDB Kana API client implementation."""

import logging
import time
from typing import Any, Dict, List, Optional

import httpx

from galshelf.catalog.errors import CatalogClientError, handle_http_status
from galshelf.catalog.models import CatalogRecord, Producer, SearchResult
from galshelf.catalog.response_parser import (
    ResponseError,
    parse_developers,
    parse_search_results,
    parse_vn,
    validate_response,
)
from galshelf.catalog.throttle import RateLimit, RequestThrottle

logger = logging.getLogger(__name__)


VN_FIELDS = ",".join([
    "title",
    "alttitle",
    "titles.lang",
    "titles.title",
    "titles.latin",
    "titles.official",
    "titles.main",
    "released",
    "image.id",
    "image.url",
    "image.dims",
    "image.sexual",
    "image.violence",
    "screenshots.id",
    "screenshots.url",
    "screenshots.dims",
    "screenshots.sexual",
    "screenshots.violence",
    "olang",
    "languages",
    "platforms",
    "rating",
    "votecount",
    "length_minutes",
    "description",
    "tags.id",
    "tags.name",
    "tags.rating",
    "tags.spoiler",
    "tags.category",
])

PRODUCER_FIELDS = "producers.id, producers.name, producers.original, producers.developer"


class VndbClient:
    """
    Client for the VNDB Kana API.

    Queries are structured filter documents sent with POST; no
    authentication is required for read-only access. Failed requests
    raise CatalogClientError and are never retried here.
    """

    BASE_URL = "https://api.vndb.org/kana"

    def __init__(
        self,
        config: Dict[str, Any],
        client: Optional[httpx.AsyncClient] = None,
        throttle: Optional[RequestThrottle] = None
    ):
        """
        Initialize API client.

        Args:
            config: Configuration dictionary (reads the 'catalog' section)
            client: httpx.AsyncClient for connection pooling
            throttle: Optional RequestThrottle; built from config if omitted
        """
        catalog_config = config.get('catalog', {})

        self.base_url = catalog_config.get('base_url', self.BASE_URL).rstrip('/')
        self.request_timeout = catalog_config.get('request_timeout', 30)
        self.page_size = catalog_config.get('page_size', 10)
        self._timeout = httpx.Timeout(
            connect=5.0,
            read=self.request_timeout,
            write=5.0,
            pool=5.0
        )

        self.client = client

        if throttle is None:
            throttle = RequestThrottle(RateLimit(
                calls=catalog_config.get('requests_per_window', 200),
                window_seconds=catalog_config.get('window_seconds', 300),
            ))
        self.throttle = throttle

    async def _post(self, endpoint: str, body: Dict[str, Any], context: str) -> Dict[str, Any]:
        """
        Send one filter document and decode the JSON reply.

        Args:
            endpoint: Endpoint path below the base URL ('vn', 'release')
            body: Request document
            context: Short description for log messages

        Returns:
            Decoded response object

        Raises:
            CatalogClientError: On transport failure, non-2xx status or
                malformed body
        """
        await self.throttle.wait_if_needed()

        url = f"{self.base_url}/{endpoint}"
        logger.debug(f"API Request ({context}): POST {url} filters={body.get('filters')}")

        start_time = time.time()
        try:
            response = await self.client.post(url, json=body, timeout=self._timeout)
        except httpx.TimeoutException as e:
            raise CatalogClientError(None, f"Request timeout: {e}")
        except httpx.HTTPError as e:
            raise CatalogClientError(None, f"Network error: {e}")

        elapsed_time = time.time() - start_time
        logger.debug(f"API Response: {response.status_code} in {elapsed_time:.2f}s")

        if response.status_code == 429:
            self.throttle.handle_rate_limit(response.headers.get('Retry-After'))

        handle_http_status(response.status_code, response.text, context=context)

        try:
            return validate_response(response.content)
        except ResponseError as e:
            raise CatalogClientError(
                response.status_code,
                response.text,
                message=f"Invalid VNDB response: {e}"
            )

    async def search(self, query: str, page: int = 1) -> SearchResult:
        """
        Full-text search for visual novels, ranked by relevance.

        Args:
            query: Search text (typically the folder name)
            page: 1-based result page

        Returns:
            SearchResult with up to ``page_size`` records

        Raises:
            CatalogClientError: If the request fails
        """
        body = {
            "filters": ["search", "=", query],
            "fields": VN_FIELDS,
            "sort": "searchrank",
            "results": self.page_size,
            "page": page,
        }

        data = await self._post("vn", body, context=f"search:{query}")

        try:
            result = parse_search_results(data)
        except ResponseError as e:
            raise CatalogClientError(200, str(data), message=f"Invalid search response: {e}")

        logger.debug(f"Search '{query}' page {page}: {len(result.results)} results (more={result.more})")
        return result

    async def get_by_id(self, vn_id: str) -> Optional[CatalogRecord]:
        """
        Fetch the full record for one visual novel, developers included.

        Args:
            vn_id: VNDB id (e.g. 'v17')

        Returns:
            CatalogRecord, or None if the id does not exist

        Raises:
            CatalogClientError: If the vn request fails
        """
        body = {
            "filters": ["id", "=", vn_id],
            "fields": VN_FIELDS,
            "results": 1,
        }

        data = await self._post("vn", body, context=f"id:{vn_id}")
        results = data.get('results') or []
        if not results:
            return None

        try:
            record = parse_vn(results[0])
        except ResponseError as e:
            raise CatalogClientError(200, str(data), message=f"Invalid vn response: {e}")

        record.developers = await self.get_developers(vn_id)
        return record

    async def get_developers(self, vn_id: str) -> List[Producer]:
        """
        Resolve developers through the official releases of a visual novel.

        Failures are logged and yield an empty list.

        Args:
            vn_id: VNDB id

        Returns:
            Developers in first-seen order, without duplicates
        """
        body = {
            "filters": ["and", ["vn", "=", ["id", "=", vn_id]], ["official", "=", 1]],
            "fields": PRODUCER_FIELDS,
            "results": 10,
        }

        try:
            data = await self._post("release", body, context=f"developers:{vn_id}")
        except CatalogClientError as e:
            logger.warning(f"Could not resolve developers for {vn_id}: {e}")
            return []

        return parse_developers(data)
