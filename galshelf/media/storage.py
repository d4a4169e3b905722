"""
Local media storage for library entries.

Covers and screenshots are kept in two directories below the media root:

    <media_root>/covers/<vn id>.<ext>
    <media_root>/screenshots/<image id>.<ext>
"""

import asyncio
import logging
from pathlib import Path
from typing import List, Optional, Sequence, Union

import httpx

from galshelf.catalog.models import CatalogImage
from galshelf.media.downloader import DownloadError, ImageDownloader

logger = logging.getLogger(__name__)


COVERS_DIR = "covers"
SCREENSHOTS_DIR = "screenshots"


class MediaStore:
    """
    Downloads catalog images into the local media directories.

    Example:
        store = MediaStore(Path('~/.galshelf/media'), client)
        cover = await store.download_cover(record.image, record.id)
    """

    def __init__(
        self,
        media_root: Union[Path, str],
        client: Optional[httpx.AsyncClient] = None,
        downloader: Optional[ImageDownloader] = None,
        download_semaphore: Optional[asyncio.Semaphore] = None
    ):
        """
        Initialize media store.

        Args:
            media_root: Root directory for media storage
            client: httpx.AsyncClient used when no downloader is given
            downloader: Optional preconfigured ImageDownloader
            download_semaphore: Optional semaphore limiting concurrent downloads
        """
        if downloader is None:
            if client is None:
                raise ValueError("MediaStore needs either a client or a downloader")
            downloader = ImageDownloader(client)

        self.media_root = Path(media_root).expanduser()
        self.covers_dir = self.media_root / COVERS_DIR
        self.screenshots_dir = self.media_root / SCREENSHOTS_DIR
        self.downloader = downloader
        self.download_semaphore = download_semaphore

    def cover_path(self, image: CatalogImage, vn_id: str) -> Path:
        return self.covers_dir / f"{vn_id}.{image.extension}"

    def screenshot_path(self, image: CatalogImage) -> Path:
        return self.screenshots_dir / f"{image.id}.{image.extension}"

    async def _download(self, url: str, output_path: Path) -> str:
        if self.download_semaphore:
            async with self.download_semaphore:
                success, error = await self.downloader.download(url, output_path)
        else:
            success, error = await self.downloader.download(url, output_path)

        if not success:
            raise DownloadError(error or f"Download failed: {url}")
        return str(output_path)

    async def download_cover(self, image: CatalogImage, vn_id: str) -> str:
        """
        Download a cover image, overwriting any previous cover of the entry.

        Args:
            image: Catalog cover image
            vn_id: Catalog id used as file name

        Returns:
            Local file path

        Raises:
            DownloadError: If the download or validation fails
        """
        if not image.url:
            raise DownloadError(f"No cover URL for {vn_id}")
        return await self._download(image.url, self.cover_path(image, vn_id))

    async def download_screenshot(self, image: CatalogImage) -> str:
        """
        Download one screenshot; a readable file already on disk is reused.

        Raises:
            DownloadError: If the download or validation fails
        """
        path = self.screenshot_path(image)
        if path.exists() and self.downloader.get_image_dimensions(path) is not None:
            logger.debug(f"Reusing existing screenshot {path.name}")
            return str(path)
        return await self._download(image.url, path)

    async def download_screenshots(self, images: Sequence[CatalogImage]) -> List[str]:
        """
        Download screenshots concurrently.

        All downloads settle before returning; failures are logged and
        omitted.

        Returns:
            Local paths of the successful downloads, in input order
        """
        if not images:
            return []

        results = await asyncio.gather(
            *(self.download_screenshot(image) for image in images),
            return_exceptions=True
        )

        paths = []
        for image, result in zip(images, results):
            if isinstance(result, BaseException):
                logger.warning(f"Screenshot {image.id} failed: {result}")
            else:
                paths.append(result)
        return paths
