"""Free-text place resolution against a Nominatim-compatible geocoder."""

from __future__ import annotations

import json
import logging
from typing import Any, Dict, List, Optional, Protocol, Sequence, Tuple
from urllib import error

from fleettrack import settings
from fleettrack.models import Coordinates
from fleettrack.services.http import FetchJson, build_url, fetch_json

logger = logging.getLogger(__name__)

# Known places, matched as lowercase substrings of the location text.
ANGOLA_PLACES: Sequence[Tuple[str, float, float]] = (
    ("luanda", -8.8383, 13.2344),
    ("dombe grande", -11.9, 13.5),
    ("baía farta", -12.5, 13.4),
    ("benguela", -12.5764, 13.4084),
    ("lobito", -12.3644, 13.5364),
    ("camacupa", -8.9, 13.35),
    ("ringoma", -8.9, 13.35),
    ("kuito", -8.8667, 16.95),
    ("huambo", -12.7761, 15.7392),
    ("lubango", -14.9177, 13.4925),
    ("namibe", -15.1961, 12.1522),
    ("malanje", -9.5402, 16.341),
    ("caxito", -8.5785, 13.6643),
    ("ndalatando", -9.2978, 14.9116),
    ("sumbe", -11.2061, 13.8437),
    ("saurimo", -9.6608, 20.3916),
    ("dundo", -7.3801, 20.8351),
    ("luena", -11.7918, 19.9062),
    ("menongue", -14.6585, 17.691),
    ("ondjiva", -17.0667, 15.7333),
    ("uíge", -7.6087, 15.0613),
    ("mbanza kongo", -6.2675, 14.2401),
    ("soyo", -6.1349, 12.3689),
    ("cabinda", -5.55, 12.2),
    ("centro", -17.7719, 21.7553),
    ("cuangar", -17.8, 20.5),
    ("buco-zau", -5.5, 24.0),
    ("lucala", -7.5, 15.0),
    ("chipeta", -8.5, 16.5),
    ("catabola", -8.2, 16.2),
)


class Gazetteer(Protocol):
    """Anything that can turn location text into coordinates."""

    def lookup(self, text: Optional[str]) -> Optional[Coordinates]:
        ...


class StaticGazetteer:
    """Substring lookup against a fixed table of place names.

    Entries are checked in table order and the first name contained in the
    lowercased text wins.
    """

    def __init__(self, places: Sequence[Tuple[str, float, float]] = ANGOLA_PLACES):
        self._places = [(name.lower(), float(lat), float(lng)) for name, lat, lng in places]

    def lookup(self, text: Optional[str]) -> Optional[Coordinates]:
        if not text:
            return None

        normalized = text.lower()
        for name, lat, lng in self._places:
            if name in normalized:
                return Coordinates(lat=lat, lng=lng)
        return None


class ResolverGazetteer:
    """Adapts a network resolver to the gazetteer interface."""

    def __init__(self, resolver: "LocationResolver"):
        self._resolver = resolver

    def lookup(self, text: Optional[str]) -> Optional[Coordinates]:
        if not text:
            return None
        return self._resolver.resolve(text)


def candidate_queries(location: str, country: str) -> List[str]:
    """Ordered, de-duplicated geocoder queries for ``location``."""
    parts = [part.strip() for part in location.split(",") if part.strip()]
    suffix = f", {country}" if country else ""

    queries: List[str] = [f"{location.strip()}{suffix}"]
    if len(parts) >= 2:
        queries.append(f"{', '.join(parts[1:])}{suffix}")
    if len(parts) >= 3:
        queries.append(f"{', '.join(parts[2:])}{suffix}")
    if parts:
        queries.append(f"{parts[-1]}{suffix}")

    unique: List[str] = []
    for query in queries:
        if query not in unique:
            unique.append(query)
    return unique


class LocationResolver:
    """Resolve free-text places through a country-biased fallback chain.

    Every call goes to the network; results are not cached.
    """

    def __init__(
        self,
        base_url: Optional[str] = None,
        country: Optional[str] = None,
        timeout: Optional[float] = None,
        fetch: FetchJson = fetch_json,
    ):
        self.base_url = base_url or settings.geocoder_url()
        self.country = settings.geocoder_country() if country is None else country
        self.timeout = timeout if timeout is not None else settings.geocoding_timeout()
        self._fetch = fetch

    def resolve(self, location: Optional[str]) -> Optional[Coordinates]:
        if not location or not location.strip():
            return None

        for query in candidate_queries(location, self.country):
            result = self._search(query)
            if result is not None:
                logger.info("Geocoded %r using query %r", location, query)
                return result

        logger.warning("Could not geocode location: %s", location)
        return None

    def reverse(self, lat: float, lng: float) -> Optional[str]:
        """Short "road, suburb, city, state" label for a position."""
        url = build_url(
            self.base_url,
            "reverse",
            {"format": "json", "lat": lat, "lon": lng, "addressdetails": 1},
        )
        try:
            payload = self._fetch(url, self.timeout)
        except error.HTTPError as exc:
            logger.warning("Reverse geocoding HTTP error %s: %s", exc.code, exc.reason)
            return None
        except error.URLError as exc:
            logger.warning("Reverse geocoding network error: %s", exc.reason)
            return None
        except json.JSONDecodeError as exc:
            logger.warning("Reverse geocoding returned malformed JSON: %s", exc)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected reverse geocoding error: %s", exc)
            return None

        return _address_label(payload)

    def _search(self, query: str) -> Optional[Coordinates]:
        url = build_url(self.base_url, "search", {"format": "json", "q": query, "limit": 1})
        try:
            payload = self._fetch(url, self.timeout)
        except error.HTTPError as exc:
            logger.warning("Geocoding HTTP error %s for %r: %s", exc.code, query, exc.reason)
            return None
        except error.URLError as exc:
            logger.warning("Geocoding network error for %r: %s", query, exc.reason)
            return None
        except json.JSONDecodeError as exc:
            logger.warning("Geocoding returned malformed JSON for %r: %s", query, exc)
            return None
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected geocoding error for %r: %s", query, exc)
            return None

        if not isinstance(payload, list) or not payload:
            return None

        first = payload[0]
        try:
            return Coordinates(lat=float(first["lat"]), lng=float(first["lon"]))
        except (KeyError, TypeError, ValueError) as exc:
            logger.warning("Geocoding result without usable coordinates for %r: %s", query, exc)
            return None


def _address_label(payload: Any) -> Optional[str]:
    if not isinstance(payload, dict):
        return None

    address: Dict[str, Any] = payload.get("address") or {}
    if address:
        parts = [
            address.get("road") or address.get("street") or address.get("pedestrian"),
            address.get("suburb")
            or address.get("neighbourhood")
            or address.get("quarter")
            or address.get("residential"),
            address.get("city")
            or address.get("town")
            or address.get("municipality")
            or address.get("village")
            or address.get("county"),
            address.get("state") or address.get("province") or address.get("region"),
        ]
        parts = [part for part in parts if part]
        if parts:
            return ", ".join(parts[:4])

    display_name = payload.get("display_name")
    if display_name:
        return ", ".join(part.strip() for part in str(display_name).split(",")[:4])
    return None
