"""Error types and HTTP status handling for the VNDB catalog API."""

import logging
from typing import Optional

logger = logging.getLogger(__name__)


class CatalogClientError(Exception):
    """
    Raised for any failed catalog request.

    Carries the HTTP status (None for transport failures) and the raw
    response body so callers can decide whether to retry.
    """

    def __init__(self, status_code: Optional[int], body: str = "", message: Optional[str] = None):
        self.status_code = status_code
        self.body = body
        if message is None:
            if status_code is None:
                message = f"VNDB request failed: {body}"
            else:
                message = f"VNDB API error ({status_code}): {body}"
        super().__init__(message)

    @property
    def is_transient(self) -> bool:
        """True for transport failures, throttling and server-side errors."""
        if self.status_code is None:
            return True
        return self.status_code == 429 or self.status_code >= 500


# HTTP status code mapping
HTTP_STATUS_MESSAGES = {
    400: "Invalid request body or query",
    404: "Invalid API path or HTTP method",
    429: "Throttled",
    500: "Server error",
    502: "Server is down",
}


def get_error_message(status_code: int) -> str:
    """
    Get user-friendly error message for HTTP status code.

    Args:
        status_code: HTTP status code

    Returns:
        Error message string
    """
    return HTTP_STATUS_MESSAGES.get(
        status_code,
        f"Unknown error (HTTP {status_code})"
    )


def handle_http_status(status_code: int, body: str, context: str = "") -> None:
    """
    Raise CatalogClientError for any non-success status.

    Args:
        status_code: HTTP status code from API
        body: Raw response body
        context: Additional context for the log message

    Raises:
        CatalogClientError: For any status outside 2xx
    """
    if 200 <= status_code < 300:
        return

    msg = get_error_message(status_code)
    if context:
        msg = f"{msg} ({context})"
    logger.debug(f"VNDB request rejected: {msg}")

    raise CatalogClientError(status_code, body)
