from __future__ import annotations

from typing import Any, Dict, List, Optional
from urllib import error

from fleettrack.services import snapshot
from fleettrack.services.client import FleetApiClient
from fleettrack.services.live_map import LiveMapRenderer
from fleettrack.services.poller import FleetMapPoller


class FakeClient:
    def __init__(self) -> None:
        self.vehicles: List[Dict[str, Any]] = [
            {"id": "v1", "plate": "LD-01", "lat": -8.83, "lng": 13.23, "status": "active"},
            {"id": "v2", "plate": "LD-02", "lat": None, "lng": None, "status": "on-trip"},
        ]
        self.trips: List[Dict[str, Any]] = [
            {
                "id": "t1",
                "vehicle_id": "v1",
                "status": "active",
                "start_lat": -8.83,
                "start_lng": 13.23,
                "current_lat": -9.0,
                "current_lng": 13.3,
                "destination": "Lobito",
            }
        ]
        self.vehicle_calls = 0
        self.trip_calls = 0
        self.fail_vehicles = False

    def list_vehicles(self) -> List[Dict[str, Any]]:
        self.vehicle_calls += 1
        if self.fail_vehicles:
            raise error.URLError("offline")
        return self.vehicles

    def list_trips(self, status: Optional[str] = None) -> List[Dict[str, Any]]:
        self.trip_calls += 1
        return [trip for trip in self.trips if status is None or trip["status"] == status]


class Clock:
    def __init__(self) -> None:
        self.now = 0.0

    def __call__(self) -> float:
        return self.now


def test_snapshot_conversion_normalizes_status_and_filters_trips() -> None:
    client = FakeClient()
    client.trips.append({"id": "t0", "vehicle_id": "v2", "status": "completed"})

    markers = snapshot.vehicle_markers(client.vehicles)
    routes = snapshot.active_routes(client.trips)

    assert [marker.status for marker in markers] == ["active", "idle"]
    assert not markers[1].has_position
    assert [route.vehicle_id for route in routes] == ["v1"]


def test_poll_reconciles_renderer() -> None:
    client = FakeClient()
    renderer = LiveMapRenderer()
    poller = FleetMapPoller(client, renderer, vehicle_interval=3.0, trip_interval=5.0, clock=Clock())

    assert poller.poll_once()

    assert set(renderer.markers_by_vehicle_id) == {"v1"}
    assert set(renderer.route_lines) == {"v1-completed", "v1-remaining"}


def test_lists_are_polled_on_independent_schedules() -> None:
    client = FakeClient()
    clock = Clock()
    poller = FleetMapPoller(client, LiveMapRenderer(), vehicle_interval=3.0, trip_interval=5.0, clock=clock)

    for now in (0.0, 3.0, 5.0, 6.0):
        clock.now = now
        poller.poll_once()

    assert client.vehicle_calls == 3
    assert client.trip_calls == 2


def test_failed_fetch_keeps_previous_snapshot() -> None:
    client = FakeClient()
    clock = Clock()
    renderer = LiveMapRenderer()
    poller = FleetMapPoller(client, renderer, vehicle_interval=3.0, trip_interval=3.0, clock=clock)
    poller.poll_once()
    marker = renderer.markers_by_vehicle_id["v1"]

    client.fail_vehicles = True
    clock.now = 3.0
    poller.poll_once()

    assert renderer.markers_by_vehicle_id["v1"] is marker


def test_completed_trip_disappears_on_next_poll() -> None:
    client = FakeClient()
    renderer = LiveMapRenderer()
    poller = FleetMapPoller(client, renderer, clock=Clock())
    poller.poll_once(force=True)

    client.trips[0]["status"] = "completed"
    poller.poll_once(force=True)

    assert renderer.route_lines == {}
    assert renderer.destination_markers_by_vehicle_id == {}


def test_run_sleeps_between_passes() -> None:
    client = FakeClient()
    sleeps: List[float] = []
    clock = Clock()

    def sleep(seconds: float) -> None:
        sleeps.append(seconds)
        clock.now += seconds

    poller = FleetMapPoller(
        client, LiveMapRenderer(), vehicle_interval=4.0, trip_interval=4.0, clock=clock, sleep=sleep
    )
    poller.run(iterations=3)

    assert sleeps == [4.0, 4.0]
    assert client.vehicle_calls == 3


def test_api_client_builds_requests() -> None:
    calls: List[tuple] = []

    def send(method: str, url: str, body: Any, timeout: float) -> Any:
        calls.append((method, url, body))
        return {"id": "t1"}

    client = FleetApiClient("http://fleet.test/", timeout=2.0, send=send)
    client.list_trips(status="active")
    client.update_trip_location("t1", -8.8, 13.2)
    client.complete_trip("t1", end_location="Lobito", end_odometer=1200)

    assert calls == [
        ("GET", "http://fleet.test/api/trips?status=active", None),
        ("PATCH", "http://fleet.test/api/trips/t1/location", {"current_lat": -8.8, "current_lng": 13.2}),
        ("POST", "http://fleet.test/api/trips/t1/complete", {"end_location": "Lobito", "end_odometer": 1200}),
    ]


def test_malformed_records_are_skipped_without_stopping_the_poll() -> None:
    client = FakeClient()
    client.vehicles.insert(0, {"id": "v0", "plate": "BAD", "lat": "n/a", "lng": 13.2, "status": "active"})
    client.trips.append(
        {"id": "t2", "vehicle_id": "v0", "status": "active", "start_lat": "n/a", "start_lng": 13.2}
    )
    renderer = LiveMapRenderer()
    poller = FleetMapPoller(client, renderer, clock=Clock())

    assert poller.poll_once()

    assert set(renderer.markers_by_vehicle_id) == {"v1"}
    assert set(renderer.route_lines) == {"v1-completed", "v1-remaining"}
    assert [marker.id for marker in snapshot.vehicle_markers(client.vehicles)] == ["v1", "v2"]
