"""
Structured index over the author's works.

- Immutable catalog model loaded from data/catalog.json
- Keyword/topic matcher with adjacent-chapter expansion
"""

from .matcher import StructuredIndexMatcher, WorkMatch
from .models import (
    Catalog,
    CatalogAuthor,
    CatalogChapter,
    CatalogError,
    CatalogPart,
    CatalogWork,
    StructureType,
    load_catalog,
)

__all__ = [
    "Catalog",
    "CatalogAuthor",
    "CatalogChapter",
    "CatalogError",
    "CatalogPart",
    "CatalogWork",
    "StructureType",
    "load_catalog",
    "StructuredIndexMatcher",
    "WorkMatch",
]
