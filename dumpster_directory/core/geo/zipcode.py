"""ZIP code to city/state lookup

Resolves a US ZIP code by asking public geocoding services in turn and falls
back to a small static table and, last, a guess of the state from the ZIP
prefix.

Lookup order:
- In-process cache (24 hours).
- Zippopotam.us (no key required).
- Google Geocoding, only when an API key is configured.
- OpenDataSoft public ZIP dataset.
- Static table of common ZIP codes.
- First-digit state guess, reported with ``found=False``.
"""

from __future__ import annotations

import logging
import re
import time
from dataclasses import dataclass
from typing import Any, Dict, Optional, Tuple

import httpx

logger = logging.getLogger(__name__)

CACHE_TTL_SECONDS = 24 * 60 * 60
CACHE_MAX_ENTRIES = 10_000

ZIPPOPOTAM_URL = "https://api.zippopotam.us/us/{zip}"
GOOGLE_GEOCODE_URL = "https://maps.googleapis.com/maps/api/geocode/json"
OPENDATASOFT_URL = "https://public.opendatasoft.com/api/records/1.0/search/"

FALLBACK_ZIP_TABLE: Dict[str, Tuple[str, str]] = {
    # Northern Virginia
    "20147": ("Ashburn", "VA"),
    "20148": ("Ashburn", "VA"),
    "20175": ("Leesburg", "VA"),
    "20176": ("Leesburg", "VA"),
    "22180": ("Vienna", "VA"),
    "22182": ("Vienna", "VA"),
    "20190": ("Reston", "VA"),
    "20191": ("Reston", "VA"),
    "20194": ("Reston", "VA"),
    "20170": ("Herndon", "VA"),
    "20171": ("Herndon", "VA"),
    "20164": ("Sterling", "VA"),
    "20165": ("Sterling", "VA"),
    "20166": ("Sterling", "VA"),
    "22015": ("Burke", "VA"),
    "22031": ("Fairfax", "VA"),
    "22032": ("Fairfax", "VA"),
    "22033": ("Fairfax", "VA"),
    "22101": ("McLean", "VA"),
    "22102": ("McLean", "VA"),
    **{f"2220{d}": ("Arlington", "VA") for d in range(1, 8)},
    **{f"2230{d}": ("Alexandria", "VA") for d in range(1, 6)},
    # Richmond
    **{f"232{n}": ("Richmond", "VA") for n in range(19, 31)},
    # Virginia Beach / Norfolk
    **{f"2345{d}": ("Virginia Beach", "VA") for d in range(1, 7)},
    **{f"2350{d}": ("Norfolk", "VA") for d in range(1, 6)},
    # Maryland
    "20812": ("Bethesda", "MD"),
    "20813": ("Bethesda", "MD"),
    "20814": ("Bethesda", "MD"),
    "20815": ("Chevy Chase", "MD"),
    "20816": ("Bethesda", "MD"),
    "20817": ("Bethesda", "MD"),
    "20850": ("Rockville", "MD"),
    "20851": ("Rockville", "MD"),
    "20852": ("Rockville", "MD"),
    "20853": ("Rockville", "MD"),
    "20854": ("Potomac", "MD"),
    "20874": ("Germantown", "MD"),
    "20875": ("Germantown", "MD"),
    "20876": ("Germantown", "MD"),
    "20877": ("Gaithersburg", "MD"),
    "20878": ("Gaithersburg", "MD"),
    "20879": ("Gaithersburg", "MD"),
    **{f"2090{d}": ("Silver Spring", "MD") for d in range(1, 7)},
    **{f"212{n:02d}": ("Baltimore", "MD") for n in range(1, 11)},
    "21204": ("Towson", "MD"),
    # Washington DC
    **{f"200{n:02d}": ("Washington", "DC") for n in range(1, 11)},
    # North Carolina
    **{f"282{n:02d}": ("Charlotte", "NC") for n in range(1, 11)},
    **{f"276{n:02d}": ("Raleigh", "NC") for n in range(1, 11)},
}

STATE_BY_FIRST_DIGIT: Dict[str, str] = {
    "0": "MA",
    "1": "NY",
    "2": "VA",
    "3": "FL",
    "4": "KY",
    "5": "IA",
    "6": "IL",
    "7": "TX",
    "8": "CO",
    "9": "CA",
}


@dataclass(frozen=True)
class ZipLocation:
    zip: str
    city: str
    state: str
    found: bool
    source: Optional[str] = None
    message: Optional[str] = None

    def to_dict(self) -> Dict[str, Any]:
        data: Dict[str, Any] = {"zip": self.zip, "city": self.city, "state": self.state, "found": self.found}
        if self.source:
            data["source"] = self.source
        if self.message:
            data["message"] = self.message
        return data


def clean_zip(value: str) -> str:
    """Keep the first five digits of whatever was typed."""
    return re.sub(r"\D", "", value or "")[:5]


class ZipCodeLookup:
    """Chained ZIP lookup with a bounded per-process TTL cache.

    Each provider gets its own timeout; a provider that errors or times out
    is logged and skipped.
    """

    def __init__(
        self,
        *,
        client: Optional[httpx.AsyncClient] = None,
        google_api_key: Optional[str] = None,
        timeout_seconds: float = 3.0,
        ttl_seconds: float = CACHE_TTL_SECONDS,
        max_entries: int = CACHE_MAX_ENTRIES,
    ) -> None:
        self._http = client or httpx.AsyncClient(timeout=timeout_seconds, follow_redirects=True)
        self._google_api_key = google_api_key
        self._timeout = timeout_seconds
        self._ttl = ttl_seconds
        self._max_entries = max_entries
        self._cache: Dict[str, Tuple[str, str, float]] = {}

    async def aclose(self) -> None:
        await self._http.aclose()

    async def lookup(self, raw_zip: str) -> ZipLocation:
        """Resolve a ZIP code to city and state.

        Args:
            raw_zip: ZIP as entered; non-digits are stripped

        Returns:
            ZipLocation; ``found`` is False only for the prefix guess
        """
        zip_code = clean_zip(raw_zip)

        cached = self._cache.get(zip_code)
        now = time.monotonic()
        if cached and cached[2] > now:
            return ZipLocation(zip=zip_code, city=cached[0], state=cached[1], found=True, source="cache")
        if cached:
            del self._cache[zip_code]

        for provider in (self._from_zippopotam, self._from_google, self._from_opendatasoft):
            try:
                location = await provider(zip_code)
            except (httpx.HTTPError, ValueError, KeyError, IndexError, TypeError) as e:
                logger.info(f"ZIP lookup via {provider.__name__} failed for {zip_code}: {e}")
                continue
            if location and location[0] and location[1]:
                self._remember(zip_code, location, now)
                return ZipLocation(zip=zip_code, city=location[0], state=location[1], found=True, source="api")

        fallback = FALLBACK_ZIP_TABLE.get(zip_code)
        if fallback:
            return ZipLocation(zip=zip_code, city=fallback[0], state=fallback[1], found=True, source="fallback")

        return ZipLocation(
            zip=zip_code,
            city="Unknown",
            state=STATE_BY_FIRST_DIGIT.get(zip_code[:1], "Unknown"),
            found=False,
            message="Could not determine city/state for this ZIP code",
        )

    def _remember(self, zip_code: str, location: Tuple[str, str], now: float) -> None:
        if len(self._cache) >= self._max_entries:
            for key in [k for k, v in self._cache.items() if v[2] <= now]:
                del self._cache[key]
        while self._cache and len(self._cache) >= self._max_entries:
            # Oldest insertion goes first
            del self._cache[next(iter(self._cache))]
        self._cache[zip_code] = (location[0], location[1], now + self._ttl)

    async def _from_zippopotam(self, zip_code: str) -> Optional[Tuple[str, str]]:
        r = await self._http.get(ZIPPOPOTAM_URL.format(zip=zip_code), timeout=self._timeout)
        if r.status_code != 200:
            return None
        places = r.json().get("places") or []
        if not places:
            return None
        return places[0]["place name"], places[0]["state abbreviation"]

    async def _from_google(self, zip_code: str) -> Optional[Tuple[str, str]]:
        if not self._google_api_key:
            return None
        r = await self._http.get(
            GOOGLE_GEOCODE_URL, params={"address": zip_code, "key": self._google_api_key}, timeout=self._timeout
        )
        if r.status_code != 200:
            return None
        results = r.json().get("results") or []
        if not results:
            return None
        city = state = ""
        for component in results[0].get("address_components", []):
            types = component.get("types", [])
            if "locality" in types:
                city = component.get("long_name", "")
            if "administrative_area_level_1" in types:
                state = component.get("short_name", "")
        return (city, state) if city and state else None

    async def _from_opendatasoft(self, zip_code: str) -> Optional[Tuple[str, str]]:
        r = await self._http.get(
            OPENDATASOFT_URL,
            params={"dataset": "us-zip-code-latitude-and-longitude", "q": zip_code},
            timeout=self._timeout,
        )
        if r.status_code != 200:
            return None
        records = r.json().get("records") or []
        if not records:
            return None
        fields = records[0].get("fields", {})
        return fields.get("city") or fields.get("primary_city") or "", fields.get("state") or ""
