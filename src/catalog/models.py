"""
Typed, immutable model of the hand-authored works catalog (structured index).
"""

from __future__ import annotations

import json
from enum import Enum
from pathlib import Path
from typing import Dict, List, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field, ValidationError, model_validator


ROOT = Path(__file__).resolve().parents[2]
CATALOG_PATH = ROOT / "data" / "catalog.json"


class CatalogError(Exception):
    """Raised when the catalog asset is missing or invalid."""


class StructureType(str, Enum):
    SIMPLE_CHAPTERS = "simple_chapters"
    COMPLEX_PARTS = "complex_parts"
    CONTINUOUS = "continuous"


class _Frozen(BaseModel):
    model_config = ConfigDict(frozen=True, extra="forbid")


class CatalogChapter(_Frozen):
    number: Optional[int] = None
    title: str
    tref: str
    topics: Tuple[str, ...] = ()


class CatalogPart(_Frozen):
    number: int
    title: str
    chapters: Tuple[CatalogChapter, ...]


class CatalogWork(_Frozen):
    key: str
    title: str
    alternative_titles: Tuple[str, ...] = ()
    description: str = ""
    structure: StructureType
    keywords: Tuple[str, ...] = ()
    chapters: Tuple[CatalogChapter, ...] = ()
    parts: Tuple[CatalogPart, ...] = ()
    tref: Optional[str] = None

    @model_validator(mode="after")
    def _check_structure(self) -> "CatalogWork":
        if self.structure is StructureType.SIMPLE_CHAPTERS and not self.chapters:
            raise ValueError(f"work {self.key!r} is simple_chapters but has no chapters")
        if self.structure is StructureType.COMPLEX_PARTS and not self.parts:
            raise ValueError(f"work {self.key!r} is complex_parts but has no parts")
        if self.structure is StructureType.CONTINUOUS and not self.tref:
            raise ValueError(f"work {self.key!r} is continuous but has no tref")
        return self

    def all_chapters(self) -> List[CatalogChapter]:
        """Chapters in catalog order, flattening parts for multi-part works."""
        if self.structure is StructureType.COMPLEX_PARTS:
            return [ch for part in self.parts for ch in part.chapters]
        return list(self.chapters)


class CatalogAuthor(_Frozen):
    name: str
    hebrew_name: Optional[str] = None


class Catalog(_Frozen):
    author: CatalogAuthor
    works: Tuple[CatalogWork, ...]
    default_works: Tuple[str, ...] = Field(default=())

    @model_validator(mode="after")
    def _check_defaults(self) -> "Catalog":
        keys = [w.key for w in self.works]
        if len(set(keys)) != len(keys):
            raise ValueError("duplicate work keys in catalog")
        unknown = [k for k in self.default_works if k not in keys]
        if unknown:
            raise ValueError(f"default_works references unknown works: {unknown}")
        return self

    def by_key(self) -> Dict[str, CatalogWork]:
        return {w.key: w for w in self.works}

    def flagship_works(self) -> List[CatalogWork]:
        lookup = self.by_key()
        return [lookup[k] for k in self.default_works]


def load_catalog(path: Path | None = None) -> Catalog:
    """Load and validate the catalog JSON asset."""
    if path is None:
        path = CATALOG_PATH
    if not path.exists():
        raise CatalogError(f"catalog not found at {path}")
    try:
        with path.open("r", encoding="utf-8") as f:
            raw = json.load(f)
        return Catalog.model_validate(raw)
    except (json.JSONDecodeError, ValidationError) as e:
        raise CatalogError(f"invalid catalog at {path}: {e}") from e
