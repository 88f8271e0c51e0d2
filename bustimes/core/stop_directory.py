"""Static stop directory built from NaPTAN-style CSV exports.

Exports arrive with inconsistent column names and encodings, so every canonical
field is resolved through an ordered alias list. The directory is immutable once
built; reloading means building a new one and swapping the reference.
"""

import csv
import io
import logging
import math
from dataclasses import dataclass, field
from pathlib import Path
from typing import Iterable, Mapping

from bustimes.core.errors import SourceUnavailable

logger = logging.getLogger(__name__)

# canonical field -> accepted column names, first non-blank wins
FIELD_ALIASES: dict[str, tuple[str, ...]] = {
    "code": (
        "AtcoCode", "ATCOCode", "ATCO", "StopPointRef", "StopPoint",
        "StopPointRef (ATCO)", "stop_id",
    ),
    "name": ("CommonName", "Name", "DescriptorCommonName", "StopName"),
    "indicator": ("Indicator", "StopIndicator"),
    "locality": ("LocalityName", "Locality", "Town"),
    "lat": ("Latitude", "Lat", "StopLatitude"),
    "lon": ("Longitude", "Lon", "StopLongitude"),
}

DEFAULT_STOP_NAME = "Stop"
DEFAULT_SEARCH_LIMIT = 120

# More than this many NUL bytes in the sniffed prefix means UTF-16LE
_UTF16_NUL_THRESHOLD = 10
_SNIFF_BYTES = 2000


@dataclass(frozen=True)
class Stop:
    atco_code: str
    common_name: str
    indicator: str = ""
    locality_name: str = ""
    lat: float | None = None
    lon: float | None = None

    @property
    def has_coordinates(self) -> bool:
        return self.lat is not None and self.lon is not None


@dataclass(frozen=True)
class LandmarkBoost:
    """Pushes a well-known stop name up when the query names it."""

    name: str
    bonus: int = 200
    min_query_length: int = 3

    def applies(self, query: str, stop_name: str) -> bool:
        landmark = self.name.lower()
        if landmark not in stop_name:
            return False
        if landmark in query:
            return True
        return len(query) >= self.min_query_length and query in landmark


@dataclass(frozen=True)
class RankingPolicy:
    base: int = 1
    exact_name: int = 1000
    name_prefix: int = 300
    name_contains: int = 100
    home_region: int = 10
    indicator_or_code: int = 5
    home_region_token: str = "peterborough"
    landmarks: tuple[LandmarkBoost, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        others = (
            max(self.name_prefix, self.name_contains) + self.home_region + self.indicator_or_code
            + sum(lm.bonus for lm in self.landmarks)
        )
        if self.exact_name <= others:
            raise ValueError(
                f"exact_name bonus ({self.exact_name}) must outweigh all other "
                f"bonuses combined ({others})"
            )

    def score(self, query: str, stop: Stop) -> int | None:
        """Score a stop for a lowercase query, or None if it does not match."""
        name = stop.common_name.lower()
        locality = stop.locality_name.lower()
        indicator = stop.indicator.lower()
        code = stop.atco_code.lower()

        if not (query in name or query in locality or query in indicator or query in code):
            return None

        score = self.base
        if name == query:
            score += self.exact_name
        elif name.startswith(query):
            score += self.name_prefix
        elif query in name:
            score += self.name_contains

        token = self.home_region_token.lower()
        if token and token in locality:
            score += self.home_region
        if query in indicator or query in code:
            score += self.indicator_or_code

        for landmark in self.landmarks:
            if landmark.applies(query, name):
                score += landmark.bonus
        return score


DEFAULT_LANDMARKS = (
    LandmarkBoost("Queensgate"),
    LandmarkBoost("Railway Station"),
    LandmarkBoost("Bus Station"),
)


def _resolve(row: Mapping, aliases: Iterable[str]) -> str:
    for alias in aliases:
        value = row.get(alias)
        if value is None:
            continue
        value = str(value).strip()
        if value:
            return value
    return ""


def _parse_coordinate(raw: str) -> float | None:
    if not raw:
        return None
    try:
        value = float(raw)
    except (TypeError, ValueError):
        return None
    return value if math.isfinite(value) else None


def stop_from_row(row: Mapping) -> Stop | None:
    """Build a Stop from a raw CSV row, or None if it has no stop code."""
    code = _resolve(row, FIELD_ALIASES["code"])
    if not code:
        return None
    return Stop(
        atco_code=code,
        common_name=_resolve(row, FIELD_ALIASES["name"]) or DEFAULT_STOP_NAME,
        indicator=_resolve(row, FIELD_ALIASES["indicator"]),
        locality_name=_resolve(row, FIELD_ALIASES["locality"]),
        lat=_parse_coordinate(_resolve(row, FIELD_ALIASES["lat"])),
        lon=_parse_coordinate(_resolve(row, FIELD_ALIASES["lon"])),
    )


class StopDirectory:
    """Read-only index of stops by ATCO code, in source order."""

    def __init__(self, stops: Iterable[Stop], policy: RankingPolicy | None = None) -> None:
        by_code: dict[str, Stop] = {}
        ordered: list[Stop] = []
        for stop in stops:
            if stop.atco_code in by_code:
                logger.debug("Duplicate stop code %s, keeping first row", stop.atco_code)
                continue
            by_code[stop.atco_code] = stop
            ordered.append(stop)
        self._by_code = by_code
        self._stops = tuple(ordered)
        self.policy = policy or RankingPolicy(landmarks=DEFAULT_LANDMARKS)

    @classmethod
    def load(
        cls,
        rows: Iterable[Mapping],
        policy: RankingPolicy | None = None,
    ) -> "StopDirectory":
        stops = []
        dropped = 0
        for row in rows:
            stop = stop_from_row(row)
            if stop is None:
                dropped += 1
                continue
            stops.append(stop)
        directory = cls(stops, policy=policy)
        logger.info(
            "Loaded %d stops (%d rows without a stop code dropped)",
            len(directory), dropped,
        )
        return directory

    def __len__(self) -> int:
        return len(self._stops)

    def __iter__(self):
        return iter(self._stops)

    def find_by_code(self, code: str) -> Stop | None:
        return self._by_code.get(str(code).strip())

    def search(
        self,
        query: str,
        limit: int = DEFAULT_SEARCH_LIMIT,
        policy: RankingPolicy | None = None,
    ) -> list[Stop]:
        """Ranked free-text search. A blank query matches nothing.

        `policy` overrides the directory's own ranking for this call.
        """
        q = (query or "").strip().lower()
        if not q or limit <= 0:
            return []

        policy = policy or self.policy
        scored: list[tuple[int, Stop]] = []
        for stop in self._stops:
            score = policy.score(q, stop)
            if score is not None:
                scored.append((score, stop))

        # sorted() is stable, so equal scores keep source order
        scored = sorted(scored, key=lambda item: -item[0])
        return [stop for _, stop in scored[:limit]]


def decode_source_text(raw: bytes) -> tuple[str, bool]:
    """Decode a CSV export that may be UTF-8, UTF-8 with BOM or UTF-16LE."""
    nul_count = raw[:_SNIFF_BYTES].count(0)
    looks_utf16 = nul_count > _UTF16_NUL_THRESHOLD
    if looks_utf16:
        text = raw.decode("utf-16" if raw[:2] in (b"\xff\xfe", b"\xfe\xff") else "utf-16-le",
                          errors="replace")
    else:
        text = raw.decode("utf-8", errors="replace")
    if text.startswith("\ufeff"):
        text = text[1:]
    return text, looks_utf16


def read_stop_rows(path: str | Path) -> list[dict[str, str]]:
    """Read raw rows from a stop CSV export."""
    path = Path(path)
    try:
        raw = path.read_bytes()
    except OSError as e:
        raise SourceUnavailable(f"Stop source {path} is not readable: {e.strerror or e}") from e

    text, looks_utf16 = decode_source_text(raw)
    if not text.strip():
        raise SourceUnavailable(f"Stop source {path} is blank ({len(raw)} bytes)")

    # DictReader skips blank lines and tolerates ragged rows
    reader = csv.DictReader(io.StringIO(text, newline=""))
    rows = list(reader)
    logger.debug("Read %d rows from %s (utf16=%s)", len(rows), path.name, looks_utf16)
    return rows


def load_stop_directory(path: str | Path, policy: RankingPolicy | None = None) -> StopDirectory:
    return StopDirectory.load(read_stop_rows(path), policy=policy)


def describe_source(path: str | Path) -> dict:
    """Summarize a stop source file for diagnostics."""
    path = Path(path)
    if not path.exists():
        return {"path": str(path), "exists": False}
    try:
        raw = path.read_bytes()
    except OSError as e:
        return {"path": str(path), "exists": True, "error": e.strerror or str(e)}
    text, looks_utf16 = decode_source_text(raw)
    first_line = next((line for line in text.splitlines() if line.strip()), None)
    return {
        "path": str(path),
        "exists": True,
        "size_bytes": len(raw),
        "looks_utf16": looks_utf16,
        "first_line": first_line,
        "sample": text[:300],
    }
