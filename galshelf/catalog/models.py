"""VNDB catalog data structures."""

from dataclasses import dataclass, field
from typing import List, Optional, Tuple


@dataclass
class CatalogTitle:
    """One localized title of a visual novel."""
    lang: str                       # e.g. 'ja', 'en', 'zh-Hans', 'zh-Hant'
    title: str                      # Title in original script
    latin: Optional[str] = None     # Romanized version
    official: bool = False
    main: bool = False              # True for the entry's original language


@dataclass
class CatalogImage:
    """Cover or screenshot reference with content ratings."""
    id: str
    url: str
    dims: Tuple[int, int] = (0, 0)
    sexual: float = 0.0
    violence: float = 0.0

    @property
    def extension(self) -> str:
        """File extension taken from the URL, 'jpg' when it has none."""
        tail = self.url.rsplit('/', 1)[-1]
        if '.' in tail:
            ext = tail.rsplit('.', 1)[-1]
            if ext:
                return ext
        return 'jpg'

    def is_safe(self) -> bool:
        return self.sexual < 1 and self.violence < 1


@dataclass
class CatalogTag:
    id: str
    name: str
    rating: float = 0.0
    spoiler: int = 0
    category: str = ''


@dataclass
class Producer:
    id: str
    name: str
    original: Optional[str] = None


@dataclass
class CatalogRecord:
    """
    Canonical representation of one VNDB visual novel.

    Built fresh from every API response. Display and original titles are
    never stored; they are derived from ``titles`` by the selection rules
    in :mod:`galshelf.catalog.selection`.
    """
    id: str
    title: str = ''
    alttitle: Optional[str] = None
    titles: List[CatalogTitle] = field(default_factory=list)
    released: Optional[str] = None
    image: Optional[CatalogImage] = None
    screenshots: List[CatalogImage] = field(default_factory=list)
    olang: str = ''
    languages: List[str] = field(default_factory=list)
    platforms: List[str] = field(default_factory=list)
    rating: Optional[float] = None
    votecount: int = 0
    length_minutes: Optional[int] = None
    description: Optional[str] = None
    tags: List[CatalogTag] = field(default_factory=list)
    developers: List[Producer] = field(default_factory=list)

    @property
    def developer_names(self) -> str:
        """Developer names joined for the library's developer field."""
        return ", ".join(d.name for d in self.developers)


@dataclass
class SearchResult:
    """One page of search results."""
    results: List[CatalogRecord]
    more: bool = False
    count: Optional[int] = None
