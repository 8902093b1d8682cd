from __future__ import annotations

from typing import Any, Dict, List
from urllib import error, parse

from fleettrack.models import Coordinates
from fleettrack.services.geocoding import (
    LocationResolver,
    ResolverGazetteer,
    StaticGazetteer,
    candidate_queries,
)


class RecordingFetch:
    """Geocoder stub answering from a query -> payload table."""

    def __init__(self, answers: Dict[str, Any] | None = None, fail_with: Exception | None = None) -> None:
        self.answers = answers or {}
        self.fail_with = fail_with
        self.queries: List[str] = []
        self.urls: List[str] = []

    def __call__(self, url: str, timeout: float) -> Any:
        self.urls.append(url)
        params = parse.parse_qs(parse.urlparse(url).query)
        query = params.get("q", [""])[0]
        self.queries.append(query)
        if self.fail_with is not None:
            raise self.fail_with
        return self.answers.get(query, [])


def _resolver(fetch: RecordingFetch) -> LocationResolver:
    return LocationResolver(base_url="http://geo.test", country="Angola", timeout=1.0, fetch=fetch)


def test_candidate_queries_follow_fallback_order() -> None:
    queries = candidate_queries("Maianga, Luanda, Bengo, Angola Norte", "Angola")

    assert queries == [
        "Maianga, Luanda, Bengo, Angola Norte, Angola",
        "Luanda, Bengo, Angola Norte, Angola",
        "Bengo, Angola Norte, Angola",
        "Angola Norte, Angola",
    ]


def test_candidate_queries_for_single_component() -> None:
    assert candidate_queries("Lobito", "Angola") == ["Lobito, Angola"]


def test_candidate_queries_for_two_components_skip_duplicates() -> None:
    assert candidate_queries("Armazém Central, Luanda", "Angola") == [
        "Armazém Central, Luanda, Angola",
        "Luanda, Angola",
    ]


def test_resolver_stops_at_third_candidate() -> None:
    fetch = RecordingFetch({"Rangel, Luanda, Angola": [{"lat": "-8.83", "lon": "13.25"}]})
    resolver = _resolver(fetch)

    result = resolver.resolve("Rua 5, Bairro Popular, Rangel, Luanda")

    assert result == Coordinates(lat=-8.83, lng=13.25)
    assert len(fetch.queries) == 3
    assert fetch.queries == [
        "Rua 5, Bairro Popular, Rangel, Luanda, Angola",
        "Bairro Popular, Rangel, Luanda, Angola",
        "Rangel, Luanda, Angola",
    ]


def test_resolver_uses_first_result_only() -> None:
    fetch = RecordingFetch(
        {
            "Lobito, Angola": [
                {"lat": "-12.3644", "lon": "13.5364"},
                {"lat": "0", "lon": "0"},
            ]
        }
    )

    result = _resolver(fetch).resolve("Lobito")

    assert result == Coordinates(lat=-12.3644, lng=13.5364)
    assert "limit=1" in fetch.urls[0]


def test_resolver_treats_network_errors_as_misses() -> None:
    fetch = RecordingFetch(fail_with=error.URLError("unreachable"))

    result = _resolver(fetch).resolve("Bairro, Municipio, Provincia")

    assert result is None
    assert len(fetch.queries) == 3


def test_resolver_treats_http_errors_as_misses() -> None:
    fetch = RecordingFetch(fail_with=error.HTTPError("http://geo.test", 503, "unavailable", None, None))

    assert _resolver(fetch).resolve("Lobito") is None


def test_resolver_skips_results_without_coordinates() -> None:
    fetch = RecordingFetch(
        {
            "Centro, Huambo, Angola": [{"lat": "not-a-number", "lon": "x"}],
            "Huambo, Angola": [{"lat": "-12.7761", "lon": "15.7392"}],
        }
    )

    result = _resolver(fetch).resolve("Centro, Huambo")

    assert result == Coordinates(lat=-12.7761, lng=15.7392)


def test_resolver_ignores_empty_text() -> None:
    fetch = RecordingFetch()

    assert _resolver(fetch).resolve("   ") is None
    assert fetch.queries == []


def test_reverse_builds_short_address_label() -> None:
    def fetch(url: str, timeout: float) -> Any:
        assert "/reverse?" in url
        return {
            "address": {
                "road": "Rua Rainha Ginga",
                "suburb": "Ingombota",
                "city": "Luanda",
                "state": "Luanda",
                "country": "Angola",
            }
        }

    resolver = LocationResolver(base_url="http://geo.test", country="Angola", fetch=fetch)

    assert resolver.reverse(-8.81, 13.23) == "Rua Rainha Ginga, Ingombota, Luanda, Luanda"


def test_reverse_falls_back_to_display_name() -> None:
    resolver = LocationResolver(
        base_url="http://geo.test",
        fetch=lambda url, timeout: {"display_name": "A, B, C, D, E, F"},
    )

    assert resolver.reverse(0.0, 0.0) == "A, B, C, D"


def test_static_gazetteer_matches_substrings_case_insensitively() -> None:
    gazetteer = StaticGazetteer()

    assert gazetteer.lookup("Armazém Central, LUANDA") == Coordinates(lat=-8.8383, lng=13.2344)
    assert gazetteer.lookup("Porto do Lobito") is not None
    assert gazetteer.lookup("Nowhere in particular") is None
    assert gazetteer.lookup(None) is None


def test_resolver_gazetteer_delegates_to_resolver() -> None:
    fetch = RecordingFetch({"Soyo, Angola": [{"lat": "-6.13", "lon": "12.37"}]})
    gazetteer = ResolverGazetteer(_resolver(fetch))

    assert gazetteer.lookup("Soyo") == Coordinates(lat=-6.13, lng=12.37)
    assert gazetteer.lookup("") is None
