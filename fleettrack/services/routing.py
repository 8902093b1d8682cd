"""
OSRM route reconstruction

Fetches a driving route between two points from an OSRM-compatible service
and degrades to a straight great-circle line whenever no route comes back.
"""

import json
import logging
from math import atan2, cos, radians, sin, sqrt
from typing import Any, Dict, List, Optional
from urllib import error

from fleettrack import settings
from fleettrack.models import Coordinates, RouteInfo
from fleettrack.services.http import FetchJson, build_url, fetch_json

logger = logging.getLogger(__name__)

EARTH_RADIUS_KM = 6371.0

# Minutes per kilometre for straight-line estimates (about 40 km/h).
FALLBACK_MINUTES_PER_KM = 1.5


def haversine_km(origin: Coordinates, destination: Coordinates) -> float:
    lat1, lng1 = radians(origin.lat), radians(origin.lng)
    lat2, lng2 = radians(destination.lat), radians(destination.lng)

    dlat = lat2 - lat1
    dlng = lng2 - lng1

    a = sin(dlat / 2) ** 2 + cos(lat1) * cos(lat2) * sin(dlng / 2) ** 2
    c = 2 * atan2(sqrt(a), sqrt(1 - a))
    return EARTH_RADIUS_KM * c


def fallback_route(origin: Coordinates, destination: Coordinates) -> RouteInfo:
    """Straight line between the two points with a flat-speed duration."""
    distance_km = haversine_km(origin, destination)
    return RouteInfo(
        distance=distance_km,
        duration=distance_km * FALLBACK_MINUTES_PER_KM,
        geometry=[[origin.lat, origin.lng], [destination.lat, destination.lng]],
        source="fallback",
    )


class RouteBuilder:
    def __init__(
        self,
        base_url: Optional[str] = None,
        timeout: Optional[float] = None,
        fetch: FetchJson = fetch_json,
    ):
        self.base_url = base_url or settings.router_url()
        self.timeout = timeout if timeout is not None else settings.routing_timeout()
        self._fetch = fetch

    def build(self, origin: Coordinates, destination: Coordinates) -> RouteInfo:
        """
        Driving route from ``origin`` to ``destination``.

        Never raises: HTTP errors, network errors, malformed payloads, a
        non-"Ok" code or an empty route list all produce the fallback line.
        """
        coordinates = f"{origin.lng},{origin.lat};{destination.lng},{destination.lat}"
        url = build_url(
            self.base_url,
            f"route/v1/driving/{coordinates}",
            {"overview": "full", "geometries": "geojson"},
        )

        try:
            parsed = self._fetch(url, self.timeout)
        except error.HTTPError as exc:
            logger.warning("Routing HTTP error %s: %s", exc.code, exc.reason)
            return fallback_route(origin, destination)
        except error.URLError as exc:
            logger.warning("Routing network error: %s", exc.reason)
            return fallback_route(origin, destination)
        except json.JSONDecodeError as exc:
            logger.warning("Failed to parse routing response: %s", exc)
            return fallback_route(origin, destination)
        except Exception as exc:  # noqa: BLE001
            logger.exception("Unexpected error fetching route: %s", exc)
            return fallback_route(origin, destination)

        route = _parse_osrm_response(parsed)
        if route is None:
            logger.warning("Routing service returned no usable route, using straight line")
            return fallback_route(origin, destination)

        logger.info(
            "Route built: %.1f km, %.0f min, %s points",
            route.distance,
            route.duration,
            len(route.geometry),
        )
        return route


def _parse_osrm_response(data: Any) -> Optional[RouteInfo]:
    if not isinstance(data, dict) or data.get("code") != "Ok":
        return None

    raw_routes = data.get("routes") or []
    if not raw_routes:
        return None

    try:
        route_data: Dict[str, Any] = raw_routes[0]
        distance_km = float(route_data.get("distance", 0)) / 1000.0
        duration_min = float(route_data.get("duration", 0)) / 60.0
        geometry = _extract_geometry(route_data)
        if len(geometry) < 2:
            return None
        return RouteInfo(distance=distance_km, duration=duration_min, geometry=geometry)
    except Exception as exc:  # noqa: BLE001
        logger.warning("Failed to parse route: %s", exc)
        return None


def _extract_geometry(route_data: Dict[str, Any]) -> List[List[float]]:
    """GeoJSON [lng, lat] pairs reordered to [lat, lng]."""
    geometry = route_data.get("geometry", {})
    if not isinstance(geometry, dict):
        return []

    points: List[List[float]] = []
    for coord in geometry.get("coordinates", []):
        lng, lat = coord[0], coord[1]
        points.append([float(lat), float(lng)])
    return points
