import logging
import uuid
from typing import List

from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.exc import IntegrityError
from sqlalchemy.orm import Session

from fleettrack.database import get_db
from fleettrack.models import LocationUpdate, Vehicle, VehicleCreate
from fleettrack.models import orm

from .validation import validate_coordinates

router = APIRouter()
logger = logging.getLogger(__name__)


def get_vehicle_or_404(db: Session, vehicle_id: str) -> orm.VehicleDB:
    vehicle = db.query(orm.VehicleDB).filter(orm.VehicleDB.id == vehicle_id).first()
    if vehicle is None:
        raise HTTPException(status_code=404, detail="Vehicle not found")
    return vehicle


@router.get("", response_model=List[Vehicle], include_in_schema=False)
@router.get("/", response_model=List[Vehicle])
def list_vehicles(db: Session = Depends(get_db)):
    """All vehicles, with their last known position."""
    return db.query(orm.VehicleDB).order_by(orm.VehicleDB.plate).all()


@router.get("/{vehicle_id}", response_model=Vehicle)
def get_vehicle(vehicle_id: str, db: Session = Depends(get_db)):
    return get_vehicle_or_404(db, vehicle_id)


@router.post("", response_model=Vehicle, status_code=status.HTTP_201_CREATED, include_in_schema=False)
@router.post("/", response_model=Vehicle, status_code=status.HTTP_201_CREATED)
def create_vehicle(payload: VehicleCreate, db: Session = Depends(get_db)):
    if (payload.lat is None) != (payload.lng is None):
        raise HTTPException(status_code=400, detail="lat and lng must be given together")
    if payload.lat is not None:
        validate_coordinates(payload.lat, payload.lng, "vehicle")

    vehicle = orm.VehicleDB(id=str(uuid.uuid4()), **payload.dict())
    db.add(vehicle)

    try:
        db.commit()
    except IntegrityError as exc:
        db.rollback()
        raise HTTPException(
            status_code=status.HTTP_409_CONFLICT,
            detail="Plate already registered",
        ) from exc

    db.refresh(vehicle)
    return vehicle


@router.patch("/{vehicle_id}/location", response_model=Vehicle)
def update_vehicle_location(vehicle_id: str, payload: LocationUpdate, db: Session = Depends(get_db)):
    """Manual position update, e.g. when a driver types the location in."""
    validate_coordinates(payload.lat, payload.lng, "vehicle")
    vehicle = get_vehicle_or_404(db, vehicle_id)

    vehicle.lat = payload.lat
    vehicle.lng = payload.lng
    if payload.location:
        vehicle.location = payload.location

    db.commit()
    db.refresh(vehicle)
    logger.info("Vehicle %s moved to %s,%s", vehicle.plate, payload.lat, payload.lng)
    return vehicle
