"""Polling loop that keeps a live map renderer fed with server snapshots."""

from __future__ import annotations

import json
import logging
import time
from typing import Any, Callable, Dict, List, Optional
from urllib import error

from fleettrack import settings
from fleettrack.services import snapshot
from fleettrack.services.client import FleetApiClient
from fleettrack.services.live_map import LiveMapRenderer

logger = logging.getLogger(__name__)

_FETCH_ERRORS = (error.URLError, json.JSONDecodeError, OSError, ValueError)


class FleetMapPoller:
    """
    Polls vehicles and active trips and reconciles the renderer.

    The two lists are fetched on independent schedules; a failed fetch keeps
    the last good copy so the map shows a slightly stale frame instead of
    losing markers.
    """

    def __init__(
        self,
        client: FleetApiClient,
        renderer: LiveMapRenderer,
        vehicle_interval: Optional[float] = None,
        trip_interval: Optional[float] = None,
        clock: Callable[[], float] = time.monotonic,
        sleep: Callable[[float], None] = time.sleep,
    ):
        interval = settings.map_poll_interval()
        self.client = client
        self.renderer = renderer
        self.vehicle_interval = vehicle_interval if vehicle_interval is not None else interval
        self.trip_interval = trip_interval if trip_interval is not None else interval
        self.selected_vehicle_id: Optional[str] = None

        self._clock = clock
        self._sleep = sleep
        self._vehicles: List[Dict[str, Any]] = []
        self._trips: List[Dict[str, Any]] = []
        self._next_vehicle_poll = 0.0
        self._next_trip_poll = 0.0

    def select(self, vehicle_id: Optional[str]) -> None:
        self.selected_vehicle_id = vehicle_id

    def poll_once(self, force: bool = False) -> bool:
        """Fetch whatever is due and reconcile. Returns True if anything was fetched."""
        now = self._clock()
        fetched = False

        if force or now >= self._next_vehicle_poll:
            self._next_vehicle_poll = now + self.vehicle_interval
            vehicles = self._fetch("vehicles", self.client.list_vehicles)
            if vehicles is not None:
                self._vehicles = vehicles
                fetched = True

        if force or now >= self._next_trip_poll:
            self._next_trip_poll = now + self.trip_interval
            trips = self._fetch("trips", lambda: self.client.list_trips(status="active"))
            if trips is not None:
                self._trips = trips
                fetched = True

        self.renderer.reconcile(
            snapshot.vehicle_markers(self._vehicles),
            snapshot.active_routes(self._trips),
            self.selected_vehicle_id,
        )
        return fetched

    def run(self, iterations: Optional[int] = None) -> None:
        """Poll until ``iterations`` passes have run, forever when None."""
        step = min(self.vehicle_interval, self.trip_interval)
        count = 0
        while iterations is None or count < iterations:
            self.poll_once()
            count += 1
            if iterations is None or count < iterations:
                self._sleep(step)

    def _fetch(self, name: str, fetch: Callable[[], List[Dict[str, Any]]]) -> Optional[List[Dict[str, Any]]]:
        try:
            return list(fetch())
        except error.HTTPError as exc:
            logger.warning("Polling %s failed with HTTP %s: %s", name, exc.code, exc.reason)
        except _FETCH_ERRORS as exc:
            logger.warning("Polling %s failed: %s", name, exc)
        return None
