"""Conversion of vehicle and trip records into map snapshots."""

import logging
from typing import Any, Iterable, List, Optional

from pydantic import ValidationError

from fleettrack.models import ActiveRoute, VehicleMarker

logger = logging.getLogger(__name__)

VEHICLE_STATUSES = {"active", "idle", "maintenance", "alert"}


def _field(record: Any, name: str, default: Any = None) -> Any:
    if isinstance(record, dict):
        return record.get(name, default)
    return getattr(record, name, default)


def normalize_vehicle_status(status: Optional[str]) -> str:
    status_normalized = str(status or "").strip().lower()
    if status_normalized in VEHICLE_STATUSES:
        return status_normalized
    return "idle"


def vehicle_markers(records: Iterable[Any]) -> List[VehicleMarker]:
    """Markers for every vehicle record, including ones without a position.

    Records that do not validate are logged and left out.
    """
    markers: List[VehicleMarker] = []
    for record in records:
        try:
            marker = VehicleMarker(
                id=str(_field(record, "id")),
                plate=str(_field(record, "plate", "")),
                lat=_field(record, "lat"),
                lng=_field(record, "lng"),
                status=normalize_vehicle_status(_field(record, "status")),
                driver=_field(record, "driver_name"),
            )
        except ValidationError as exc:
            logger.warning("Skipping malformed vehicle record %s: %s", _field(record, "id"), exc)
            continue
        markers.append(marker)
    return markers


def active_routes(trips: Iterable[Any]) -> List[ActiveRoute]:
    """Spatial state of every trip that is still in progress."""
    routes: List[ActiveRoute] = []
    for trip in trips:
        if _field(trip, "status") != "active":
            continue
        vehicle_id = _field(trip, "vehicle_id")
        if not vehicle_id:
            continue

        try:
            route = ActiveRoute(
                vehicle_id=str(vehicle_id),
                start_lat=_field(trip, "start_lat"),
                start_lng=_field(trip, "start_lng"),
                current_lat=_field(trip, "current_lat"),
                current_lng=_field(trip, "current_lng"),
                dest_lat=_field(trip, "dest_lat"),
                dest_lng=_field(trip, "dest_lng"),
                destination=_field(trip, "destination"),
                start_location=_field(trip, "start_location"),
            )
        except ValidationError as exc:
            logger.warning("Skipping malformed trip record %s: %s", _field(trip, "id"), exc)
            continue
        routes.append(route)
    return routes
