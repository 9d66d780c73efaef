"""
Async client for the Sefaria texts API ("fetch text by reference").

Failures are raised as FetchError with a FetchErrorKind so callers can tell a
reference that does not exist apart from a flaky upstream or a response that
does not have the expected shape.
"""

from __future__ import annotations

import logging
import re
from dataclasses import dataclass, field
from enum import Enum
from typing import Any, Iterable, List, Optional, Sequence, Union
from urllib.parse import quote

import httpx
from pydantic import BaseModel, ConfigDict, Field, ValidationError, field_validator

from .cache import ONE_HOUR, TEN_MINUTES, TTLCache

logger = logging.getLogger(__name__)

DEFAULT_BASE_URL = "https://www.sefaria.org"

# Titles that must be URL-encoded whole instead of converted to dotted form.
AUTHOR_TITLES = (
    "Mesillat Yesharim",
    "Mesilat Yesharim",
    "Da'at Tevunot",
    "Daat Tevunot",
    "Asarah Perakim LeRamchal",
    "Derech Etz Chayim (Ramchal)",
    "Kalach Pitchei Chokhmah",
    "Essay on Fundamentals",
    "Sefer HaHiggayon",
    "Sefer HaMelitzah",
    "Derekh Hashem",
)

_TAG_RE = re.compile(r"<[^>]+>")
_TRAILING_NUMBERS_RE = re.compile(r"\s+\d+.*$")


class FetchErrorKind(str, Enum):
    NOT_FOUND = "not_found"
    TRANSIENT = "transient"
    MALFORMED = "malformed"


class FetchError(Exception):
    """A reference could not be fetched."""

    def __init__(self, reference: str, kind: FetchErrorKind, message: str):
        super().__init__(f"{reference}: {message}")
        self.reference = reference
        self.kind = kind


TextField = Union[str, List[Any], None]


class _TextPayload(BaseModel):
    model_config = ConfigDict(extra="ignore")

    ref: str
    text: TextField = None
    he: TextField = None
    versions: List[dict] = Field(default_factory=list)


class _ErrorPayload(BaseModel):
    error: str


class SefariaVersion(BaseModel):
    model_config = ConfigDict(extra="ignore", populate_by_name=True)

    version_title: str = Field(alias="versionTitle")
    language: str
    priority: Optional[float] = None
    version_source: Optional[str] = Field(default=None, alias="versionSource")
    version_notes: Optional[str] = Field(default=None, alias="versionNotes")

    @field_validator("priority", mode="before")
    @classmethod
    def _coerce_priority(cls, v: Any) -> Optional[float]:
        if v is None or v == "":
            return None
        if isinstance(v, str):
            try:
                return float(v)
            except ValueError:
                return None
        return v


class _VersionsPayload(BaseModel):
    versions: List[SefariaVersion]


@dataclass
class FetchResult:
    """Text for one reference in the requested language plus its counterpart."""

    resolved_reference: str
    text: Optional[str] = None
    alternate_text: Optional[str] = None
    segments: List[str] = field(default_factory=list)
    alternate_segments: List[str] = field(default_factory=list)
    available_versions: List[str] = field(default_factory=list)


def flatten_segments(value: TextField) -> List[str]:
    """Flatten a string / (nested) list text field into non-empty plain segments."""
    if value is None:
        return []
    if isinstance(value, str):
        cleaned = _TAG_RE.sub("", value).strip()
        return [cleaned] if cleaned else []
    out: List[str] = []
    for item in value:
        out.extend(flatten_segments(item))
    return out


def _join(segments: Sequence[str]) -> Optional[str]:
    return " ".join(segments) if segments else None


def extract_index_title(ref: str) -> str:
    """'Mesillat Yesharim 2:3' -> 'Mesillat Yesharim'."""
    return _TRAILING_NUMBERS_RE.sub("", ref)


def pick_preferred_version(
    versions: Iterable[SefariaVersion], language: str = "en"
) -> Optional[SefariaVersion]:
    candidates = [v for v in versions if v.language == language]
    if not candidates:
        return None
    candidates.sort(key=lambda v: v.priority or 0, reverse=True)
    return candidates[0]


class ReferenceFetcher:
    """Fetch source text by canonical reference, memoized with a TTL cache."""

    def __init__(
        self,
        client: httpx.AsyncClient | None = None,
        *,
        base_url: str = DEFAULT_BASE_URL,
        timeout: float = 15.0,
        encoded_titles: Sequence[str] = AUTHOR_TITLES,
        cache: TTLCache | None = None,
    ):
        self._owns_client = client is None
        self.client = client or httpx.AsyncClient(timeout=timeout)
        self.base_url = base_url.rstrip("/")
        self.encoded_titles = tuple(encoded_titles)
        self.cache: TTLCache = cache if cache is not None else TTLCache(max_size=50)

    async def aclose(self) -> None:
        if self._owns_client:
            await self.client.aclose()

    def api_ref(self, reference: str) -> str:
        if any(title in reference for title in self.encoded_titles):
            return quote(reference, safe="")
        return re.sub(r"\s+", ".", reference).replace(":", ".")

    def text_url(self, reference: str, language: str = "en", version: str | None = None) -> str:
        params = []
        if version:
            params.append(f"version={quote(version, safe='')}")
        params.append("lang=he" if language == "he" else "lang=bi")
        return f"{self.base_url}/api/texts/{self.api_ref(reference)}?{'&'.join(params)}"

    async def _get_json(self, reference: str, url: str) -> Any:
        try:
            response = await self.client.get(url)
        except httpx.HTTPError as e:
            raise FetchError(reference, FetchErrorKind.TRANSIENT, f"request failed: {e}") from e

        if response.status_code in (400, 404):
            raise FetchError(
                reference, FetchErrorKind.NOT_FOUND, f"HTTP {response.status_code}"
            )
        if response.status_code != 200:
            raise FetchError(
                reference,
                FetchErrorKind.TRANSIENT,
                f"HTTP {response.status_code} {response.reason_phrase}",
            )
        try:
            return response.json()
        except ValueError as e:
            raise FetchError(reference, FetchErrorKind.MALFORMED, "response is not JSON") from e

    async def fetch_text(
        self, reference: str, language: str = "en", version: str | None = None
    ) -> FetchResult:
        url = self.text_url(reference, language=language, version=version)
        cached = self.cache.get(url)
        if cached is not None:
            return cached

        data = await self._get_json(reference, url)
        if isinstance(data, dict) and "error" in data and "ref" not in data:
            try:
                err = _ErrorPayload.model_validate(data)
            except ValidationError as e:
                raise FetchError(reference, FetchErrorKind.MALFORMED, str(e)) from e
            raise FetchError(reference, FetchErrorKind.NOT_FOUND, err.error)
        try:
            payload = _TextPayload.model_validate(data)
        except ValidationError as e:
            raise FetchError(
                reference, FetchErrorKind.MALFORMED, f"invalid response format: {e}"
            ) from e

        english = flatten_segments(payload.text)
        hebrew = flatten_segments(payload.he)
        if language == "he":
            primary, alternate = hebrew, []
        else:
            primary, alternate = english, hebrew

        result = FetchResult(
            resolved_reference=payload.ref,
            text=_join(primary),
            alternate_text=_join(alternate),
            segments=primary,
            alternate_segments=alternate,
            available_versions=[
                str(v.get("versionTitle")) for v in payload.versions if v.get("versionTitle")
            ],
        )
        self.cache.set(url, result, TEN_MINUTES)
        return result

    async def get_versions(self, index_title: str) -> List[SefariaVersion]:
        key = f"versions:{index_title}"
        cached = self.cache.get(key)
        if cached is not None:
            return cached

        url = f"{self.base_url}/api/texts/{quote(index_title, safe='')}"
        data = await self._get_json(index_title, url)
        try:
            versions = _VersionsPayload.model_validate(data).versions
        except ValidationError as e:
            raise FetchError(
                index_title, FetchErrorKind.MALFORMED, f"invalid versions format: {e}"
            ) from e
        self.cache.set(key, versions, ONE_HOUR)
        logger.debug("Fetched %d versions for %s", len(versions), index_title)
        return versions

    def cache_stats(self) -> dict:
        return self.cache.stats()

    def clear_cache(self) -> None:
        self.cache.clear()
        logger.debug("Reference cache cleared")
