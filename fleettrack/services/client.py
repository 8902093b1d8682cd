"""JSON client for the fleet tracking REST endpoints."""

import logging
from typing import Any, Callable, Dict, List, Optional
from urllib import parse

from fleettrack.services.http import send_json

logger = logging.getLogger(__name__)

SendJson = Callable[[str, str, Optional[Dict[str, Any]], float], Any]


class FleetApiClient:
    """
    Thin wrapper over the server API used by dashboards and driver devices.

    Errors from the transport (``urllib.error.HTTPError``, ``URLError``,
    ``json.JSONDecodeError``) propagate; pollers and trackers decide how to
    degrade.
    """

    def __init__(self, base_url: str, timeout: float = 10.0, send: SendJson = send_json):
        self.base_url = base_url.rstrip("/")
        self.timeout = timeout
        self._send = send

    def list_vehicles(self) -> List[Dict[str, Any]]:
        return self._request("GET", "/api/vehicles") or []

    def list_trips(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        path = "/api/trips"
        if status:
            path = f"{path}?{parse.urlencode({'status': status})}"
        return self._request("GET", path) or []

    def update_trip_location(self, trip_id: str, lat: float, lng: float) -> Dict[str, Any]:
        return self._request(
            "PATCH",
            f"/api/trips/{parse.quote(trip_id)}/location",
            {"current_lat": lat, "current_lng": lng},
        )

    def start_trip(self, payload: Dict[str, Any]) -> Dict[str, Any]:
        return self._request("POST", "/api/trips/start", payload)

    def complete_trip(
        self,
        trip_id: str,
        end_location: Optional[str] = None,
        end_odometer: Optional[int] = None,
    ) -> Dict[str, Any]:
        return self._request(
            "POST",
            f"/api/trips/{parse.quote(trip_id)}/complete",
            {"end_location": end_location, "end_odometer": end_odometer},
        )

    def _request(self, method: str, path: str, body: Optional[Dict[str, Any]] = None) -> Any:
        url = f"{self.base_url}{path}"
        logger.debug("%s %s", method, url)
        return self._send(method, url, body, self.timeout)
