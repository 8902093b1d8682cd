import logging
import uuid
from datetime import datetime
from typing import List, Optional

from fastapi import APIRouter, Depends, HTTPException, Query, status
from sqlalchemy.orm import Session

from fleettrack.database import get_db
from fleettrack.dependencies import get_location_resolver
from fleettrack.models import Trip, TripComplete, TripLocationUpdate, TripStart
from fleettrack.models import orm
from fleettrack.services.geocoding import LocationResolver

from .validation import validate_coordinates
from .vehicles import get_vehicle_or_404

router = APIRouter()
logger = logging.getLogger(__name__)

DEFAULT_START_LOCATION = "Location not provided"
DEFAULT_END_LOCATION = "Destination not provided"
DEFAULT_PURPOSE = "Business trip"


def get_trip_or_404(db: Session, trip_id: str) -> orm.TripDB:
    trip = db.query(orm.TripDB).filter(orm.TripDB.id == trip_id).first()
    if trip is None:
        raise HTTPException(status_code=404, detail="Trip not found")
    return trip


def _ensure_active(trip: orm.TripDB) -> None:
    if trip.status != "active":
        raise HTTPException(status_code=400, detail="Trip is already completed")


@router.get("", response_model=List[Trip], include_in_schema=False)
@router.get("/", response_model=List[Trip])
def list_trips(
    status_filter: Optional[str] = Query(default=None, alias="status"),
    db: Session = Depends(get_db),
):
    query = db.query(orm.TripDB)
    if status_filter:
        query = query.filter(orm.TripDB.status == status_filter)
    return query.order_by(orm.TripDB.start_time.desc()).all()


@router.get("/active", response_model=List[Trip])
def list_active_trips(db: Session = Depends(get_db)):
    return db.query(orm.TripDB).filter(orm.TripDB.status == "active").all()


@router.get("/{trip_id}", response_model=Trip)
def get_trip(trip_id: str, db: Session = Depends(get_db)):
    return get_trip_or_404(db, trip_id)


@router.post("/start", response_model=Trip, status_code=status.HTTP_201_CREATED)
def start_trip(
    payload: TripStart,
    db: Session = Depends(get_db),
    resolver: LocationResolver = Depends(get_location_resolver),
):
    vehicle = get_vehicle_or_404(db, payload.vehicle_id)

    running = (
        db.query(orm.TripDB)
        .filter(orm.TripDB.vehicle_id == vehicle.id, orm.TripDB.status == "active")
        .first()
    )
    if running is not None:
        raise HTTPException(status_code=400, detail="Vehicle already has an active trip")

    has_start = payload.start_lat is not None and payload.start_lng is not None
    if has_start:
        validate_coordinates(payload.start_lat, payload.start_lng, "start")

    dest_lat, dest_lng = payload.dest_lat, payload.dest_lng
    if dest_lat is not None and dest_lng is not None:
        validate_coordinates(dest_lat, dest_lng, "destination")
    else:
        # Only used to draw the route on the map; the trip starts either way.
        resolved = resolver.resolve(payload.destination)
        dest_lat = resolved.lat if resolved else None
        dest_lng = resolved.lng if resolved else None

    trip = orm.TripDB(
        id=str(uuid.uuid4()),
        vehicle_id=vehicle.id,
        vehicle_plate=vehicle.plate,
        driver_name=payload.driver_name,
        start_location=payload.start_location or vehicle.location or DEFAULT_START_LOCATION,
        destination=payload.destination,
        purpose=payload.purpose or DEFAULT_PURPOSE,
        status="active",
        start_time=datetime.utcnow(),
        start_odometer=payload.start_odometer,
        start_lat=payload.start_lat if has_start else None,
        start_lng=payload.start_lng if has_start else None,
        current_lat=payload.start_lat if has_start else None,
        current_lng=payload.start_lng if has_start else None,
        dest_lat=dest_lat,
        dest_lng=dest_lng,
    )
    db.add(trip)

    vehicle.status = "active"
    vehicle.driver_name = payload.driver_name
    if has_start:
        vehicle.lat = payload.start_lat
        vehicle.lng = payload.start_lng

    db.commit()
    db.refresh(trip)
    logger.info("Trip %s started for vehicle %s to %s", trip.id, vehicle.plate, trip.destination)
    return trip


@router.patch("/{trip_id}/location", response_model=Trip)
def update_trip_location(trip_id: str, payload: TripLocationUpdate, db: Session = Depends(get_db)):
    """Store the live position on the trip and mirror it onto the vehicle."""
    validate_coordinates(payload.current_lat, payload.current_lng, "current")
    trip = get_trip_or_404(db, trip_id)
    _ensure_active(trip)

    trip.current_lat = payload.current_lat
    trip.current_lng = payload.current_lng

    vehicle = db.query(orm.VehicleDB).filter(orm.VehicleDB.id == trip.vehicle_id).first()
    if vehicle is not None:
        vehicle.lat = payload.current_lat
        vehicle.lng = payload.current_lng
        vehicle.status = "active"

    db.commit()
    db.refresh(trip)
    return trip


@router.post("/{trip_id}/complete", response_model=Trip)
def complete_trip(trip_id: str, payload: TripComplete, db: Session = Depends(get_db)):
    trip = get_trip_or_404(db, trip_id)
    _ensure_active(trip)

    distance = None
    if trip.start_odometer is not None and payload.end_odometer is not None:
        if payload.end_odometer < trip.start_odometer:
            raise HTTPException(
                status_code=400,
                detail="end_odometer cannot be lower than start_odometer",
            )
        distance = payload.end_odometer - trip.start_odometer

    trip.status = "completed"
    trip.end_time = datetime.utcnow()
    trip.end_location = payload.end_location or DEFAULT_END_LOCATION
    trip.end_odometer = payload.end_odometer
    trip.distance = distance

    vehicle = db.query(orm.VehicleDB).filter(orm.VehicleDB.id == trip.vehicle_id).first()
    if vehicle is not None:
        vehicle.status = "idle"
        if payload.end_odometer is not None:
            vehicle.odometer = payload.end_odometer

    db.commit()
    db.refresh(trip)
    logger.info("Trip %s completed (%s km)", trip.id, distance)
    return trip
