from datetime import datetime
from typing import Any, Dict, List, Literal, Optional

from pydantic import BaseModel, Field

VehicleStatus = Literal["active", "idle", "maintenance", "alert"]
TripStatus = Literal["active", "completed"]


class Coordinates(BaseModel):
    lat: float = Field(..., description="Latitude")
    lng: float = Field(..., description="Longitude")

    class Config:
        from_attributes = True


class RouteInfo(BaseModel):
    distance: float = Field(..., description="Route distance in kilometers")
    duration: float = Field(..., description="Estimated duration in minutes")
    geometry: List[List[float]] = Field(
        ...,
        description="Route geometry as [[lat, lng], ...] in drawing order",
    )
    source: Literal["osrm", "fallback"] = "osrm"


class VehicleMarker(BaseModel):
    id: str
    plate: str
    lat: Optional[float] = None
    lng: Optional[float] = None
    status: VehicleStatus = "idle"
    driver: Optional[str] = None

    @property
    def has_position(self) -> bool:
        return self.lat is not None and self.lng is not None


class ActiveRoute(BaseModel):
    vehicle_id: str
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None
    destination: Optional[str] = None
    start_location: Optional[str] = None


class Vehicle(BaseModel):
    id: str
    plate: str
    make: str = ""
    model: str = ""
    year: Optional[int] = None
    status: str = "idle"
    driver_name: Optional[str] = None
    location: Optional[str] = None
    odometer: int = 0
    lat: Optional[float] = None
    lng: Optional[float] = None

    class Config:
        from_attributes = True


class VehicleCreate(BaseModel):
    plate: str = Field(..., min_length=1, max_length=20)
    make: str = ""
    model: str = ""
    year: Optional[int] = None
    status: VehicleStatus = "idle"
    driver_name: Optional[str] = None
    location: Optional[str] = None
    odometer: int = Field(default=0, ge=0)
    lat: Optional[float] = None
    lng: Optional[float] = None


class LocationUpdate(BaseModel):
    lat: float
    lng: float
    location: Optional[str] = Field(
        default=None,
        description="Optional human readable label for a manual update",
    )


class TripLocationUpdate(BaseModel):
    current_lat: float
    current_lng: float


class Trip(BaseModel):
    id: str
    vehicle_id: str
    vehicle_plate: str
    driver_name: str
    start_location: str
    destination: Optional[str] = None
    end_location: Optional[str] = None
    purpose: Optional[str] = None
    status: TripStatus
    start_time: datetime
    end_time: Optional[datetime] = None
    start_odometer: Optional[int] = None
    end_odometer: Optional[int] = None
    distance: Optional[int] = None
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    current_lat: Optional[float] = None
    current_lng: Optional[float] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None

    class Config:
        from_attributes = True


class TripStart(BaseModel):
    vehicle_id: str
    driver_name: str = Field(..., min_length=1, max_length=200)
    start_location: Optional[str] = None
    destination: str = Field(..., min_length=1)
    purpose: Optional[str] = None
    start_odometer: Optional[int] = Field(default=None, ge=0)
    start_lat: Optional[float] = None
    start_lng: Optional[float] = None
    dest_lat: Optional[float] = None
    dest_lng: Optional[float] = None


class TripComplete(BaseModel):
    end_location: Optional[str] = None
    end_odometer: Optional[int] = Field(default=None, ge=0)


class GeocodeRequest(BaseModel):
    query: str = Field(..., min_length=1, max_length=500)


class GeocodeResponse(BaseModel):
    query: str
    found: bool
    coordinates: Optional[Coordinates] = None


class RouteRequest(BaseModel):
    origin: Coordinates
    destination: Coordinates


class RoutePreviewRequest(BaseModel):
    start_location: str = Field(..., min_length=1, max_length=500)
    destination: str = Field(..., min_length=1, max_length=500)


class RoutePreviewResponse(BaseModel):
    start: Optional[Coordinates] = None
    end: Optional[Coordinates] = None
    route: Optional[RouteInfo] = None
    bounds: Optional[List[List[float]]] = None
    padding: List[int] = Field(default_factory=lambda: [50, 50])
    error: Optional[str] = None


class MapSnapshot(BaseModel):
    vehicles: List[VehicleMarker] = Field(default_factory=list)
    active_routes: List[ActiveRoute] = Field(default_factory=list)
    metadata: Dict[str, Any] = Field(default_factory=dict)
