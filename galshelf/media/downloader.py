"""
Image downloader with validation.

Fetches cover and screenshot images over the shared HTTP client and checks
them with Pillow before they are written to disk.
"""

import asyncio
import logging
from io import BytesIO
from pathlib import Path
from typing import Optional, Tuple

import httpx
from PIL import Image, UnidentifiedImageError

logger = logging.getLogger(__name__)


class DownloadError(Exception):
    """Image could not be downloaded or stored."""
    pass


# Content types accepted when validation is enabled
ALLOWED_CONTENT_TYPES = ('image/', 'application/octet-stream')


class ImageDownloader:
    """
    Downloads and validates image files.

    Features:
    - Retry with exponential backoff on transport errors
    - Pillow validation of the downloaded bytes
    - Atomic write (temporary file, then rename)
    """

    def __init__(
        self,
        client: httpx.AsyncClient,
        timeout: int = 30,
        max_retries: int = 2,
        min_width: int = 16,
        min_height: int = 16,
        validation_mode: str = 'normal'
    ):
        """
        Initialize image downloader.

        Args:
            client: httpx.AsyncClient for HTTP requests
            timeout: HTTP request timeout in seconds
            max_retries: Maximum number of attempts per image
            min_width: Minimum acceptable image width in pixels
            min_height: Minimum acceptable image height in pixels
            validation_mode: 'normal' to check images with Pillow, 'disabled' to skip
        """
        self.client = client
        self.timeout = timeout
        self.max_retries = max(1, max_retries)
        self.min_width = min_width
        self.min_height = min_height
        self.validation_mode = validation_mode

    async def download(self, url: str, output_path: Path) -> Tuple[bool, Optional[str]]:
        """
        Download an image from URL to output path.

        Args:
            url: Image URL to download
            output_path: Path where image should be saved

        Returns:
            Tuple of (success: bool, error_message: str or None)

        Example:
            success, error = await downloader.download(
                'https://t.vndb.org/cv/23/123.jpg',
                Path('covers/v17.jpg')
            )
        """
        output_path.parent.mkdir(parents=True, exist_ok=True)

        for attempt in range(self.max_retries):
            try:
                image_data = await self._fetch(url)
            except httpx.HTTPStatusError as e:
                # Server answered; retrying will not change the outcome
                return False, f"HTTP {e.response.status_code} for {url}"
            except httpx.HTTPError as e:
                if attempt == self.max_retries - 1:
                    return False, f"Download failed after {self.max_retries} attempts: {e}"
                delay = 2 ** attempt
                logger.debug(f"Download of {url} failed ({e}), retrying in {delay}s")
                await asyncio.sleep(delay)
                continue
            except DownloadError as e:
                return False, str(e)

            if self.validation_mode != 'disabled':
                is_valid, validation_error = self._validate_image_data(image_data)
                if not is_valid:
                    return False, f"Validation failed: {validation_error}"

            try:
                self._write_atomic(output_path, image_data)
            except OSError as e:
                return False, f"Could not write {output_path}: {e}"

            logger.debug(f"Downloaded {url} -> {output_path} ({len(image_data)} bytes)")
            return True, None

        return False, "Download failed (max retries exceeded)"

    async def _fetch(self, url: str) -> bytes:
        """
        Fetch raw image bytes.

        Raises:
            httpx.HTTPError: If the request fails
            DownloadError: If the response is not an image
        """
        response = await self.client.get(url, timeout=self.timeout)
        response.raise_for_status()

        if self.validation_mode != 'disabled':
            content_type = response.headers.get('Content-Type', '')
            if content_type and not content_type.startswith(ALLOWED_CONTENT_TYPES):
                raise DownloadError(f"Invalid content type: {content_type}")

        return response.content

    @staticmethod
    def _write_atomic(output_path: Path, data: bytes) -> None:
        temp_path = output_path.with_suffix(output_path.suffix + '.tmp')
        try:
            temp_path.write_bytes(data)
            temp_path.replace(output_path)
        except OSError:
            if temp_path.exists():
                temp_path.unlink()
            raise

    def _validate_image_data(self, image_data: bytes) -> Tuple[bool, Optional[str]]:
        """
        Validate image data using Pillow.

        Args:
            image_data: Raw image bytes

        Returns:
            Tuple of (is_valid: bool, error_message: str or None)
        """
        try:
            img = Image.open(BytesIO(image_data))
            img.verify()

            # verify() invalidates the image; reopen for dimensions
            img = Image.open(BytesIO(image_data))
            width, height = img.size
        except (UnidentifiedImageError, OSError, SyntaxError) as e:
            return False, f"Invalid image: {e}"

        if width < self.min_width or height < self.min_height:
            return False, (
                f"Image too small: {width}x{height} "
                f"(minimum: {self.min_width}x{self.min_height})"
            )

        return True, None

    def get_image_dimensions(self, file_path: Path) -> Optional[Tuple[int, int]]:
        """Dimensions of an image file, or None if it cannot be read."""
        try:
            with Image.open(file_path) as img:
                return img.size
        except (UnidentifiedImageError, OSError):
            return None
