from .models import (
    ActiveRoute,
    Coordinates,
    GeocodeRequest,
    GeocodeResponse,
    LocationUpdate,
    MapSnapshot,
    RouteInfo,
    RoutePreviewRequest,
    RoutePreviewResponse,
    RouteRequest,
    Trip,
    TripComplete,
    TripLocationUpdate,
    TripStart,
    Vehicle,
    VehicleCreate,
    VehicleMarker,
)
