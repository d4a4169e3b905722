"""
Media package for galshelf.

Downloads, validates and stores cover and screenshot images.
"""

from .downloader import ImageDownloader, DownloadError
from .storage import MediaStore, COVERS_DIR, SCREENSHOTS_DIR

__all__ = [
    "ImageDownloader",
    "DownloadError",
    "MediaStore",
    "COVERS_DIR",
    "SCREENSHOTS_DIR",
]
