"""
Shared pytest fixtures and utilities for the galshelf test suite.
"""

from io import BytesIO
from pathlib import Path
from typing import Any, Callable, Dict, List, Optional

import pytest
import yaml

from galshelf.catalog.models import CatalogImage, CatalogRecord, CatalogTag, CatalogTitle, Producer
from galshelf.config.loader import DEFAULT_CONFIG, _merge
from galshelf.library.database import LibraryDatabase


@pytest.fixture
def base_config(tmp_path: Path) -> Dict[str, Any]:
    """
    Default configuration pointed at the temp workspace, without the
    inter-item delay so pipeline tests run instantly.
    """
    return _merge(DEFAULT_CONFIG, {
        "paths": {
            "database": str(tmp_path / "galshelf.db"),
            "media": str(tmp_path / "media"),
        },
        "import": {"inter_item_delay": 0},
        "logging": {"console": False},
    })


@pytest.fixture
def make_config(tmp_path: Path) -> Callable[[Optional[Dict[str, Any]]], Path]:
    """
    Create a config.yaml in a temp directory.

    Usage:
        path = make_config({"import": {"max_tags": 5}})
    """

    def _builder(overrides: Optional[Dict[str, Any]] = None) -> Path:
        base = {
            "paths": {
                "database": str(tmp_path / "galshelf.db"),
                "media": str(tmp_path / "media"),
            },
            "logging": {"console": False},
        }
        if overrides:
            base = _merge(base, overrides)
        path = tmp_path / "config.yaml"
        path.write_text(yaml.safe_dump(base), encoding="utf-8")
        return path

    return _builder


@pytest.fixture
def store(tmp_path: Path):
    """Library database in the temp workspace."""
    db = LibraryDatabase(tmp_path / "library.db")
    yield db
    db.close()


def make_png_bytes(width: int = 32, height: int = 32) -> bytes:
    from PIL import Image

    img = Image.new("RGB", (width, height), color="red")
    buf = BytesIO()
    img.save(buf, format="PNG")
    return buf.getvalue()


@pytest.fixture
def png_bytes() -> bytes:
    return make_png_bytes()


def make_record(
    vn_id: str = "v17",
    title: str = "Ever17",
    titles: Optional[List[CatalogTitle]] = None,
    screenshots: Optional[List[CatalogImage]] = None,
    tags: Optional[List[CatalogTag]] = None,
    description: Optional[str] = "A story about [url=https://vndb.org/c1]Takeshi[/url].",
    with_image: bool = True,
    developers: Optional[List[Producer]] = None,
) -> CatalogRecord:
    """Catalog record with sensible defaults for pipeline tests."""
    return CatalogRecord(
        id=vn_id,
        title=title,
        titles=titles if titles is not None else [
            CatalogTitle(lang="ja", title="エバーセブンティーン", main=True),
            CatalogTitle(lang="zh-Hans", title="时空轮回"),
        ],
        released="2002-08-29",
        image=CatalogImage(id="cv123", url=f"https://t.vndb.org/cv/23/{vn_id}.jpg") if with_image else None,
        screenshots=screenshots or [],
        rating=85.4,
        votecount=4321,
        length_minutes=2400,
        description=description,
        tags=tags or [
            CatalogTag(id="g1", name="Mystery", rating=2.8),
            CatalogTag(id="g2", name="Sci-fi", rating=2.5),
        ],
        developers=developers if developers is not None else [Producer(id="p1", name="KID")],
    )


@pytest.fixture
def record_factory() -> Callable[..., CatalogRecord]:
    """Factory fixture around :func:`make_record`."""
    return make_record


@pytest.fixture
def png_factory() -> Callable[..., bytes]:
    """Factory fixture around :func:`make_png_bytes`."""
    return make_png_bytes
