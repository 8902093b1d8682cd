from datetime import datetime
from typing import Optional

from fastapi import APIRouter, Depends
from fastapi.responses import HTMLResponse
from sqlalchemy.orm import Session

from fleettrack.database import get_db
from fleettrack.dependencies import get_gazetteer
from fleettrack.models import MapSnapshot
from fleettrack.models import orm
from fleettrack.services import snapshot
from fleettrack.services.geocoding import Gazetteer
from fleettrack.services.live_map import LiveMapRenderer

router = APIRouter()


def build_snapshot(db: Session) -> MapSnapshot:
    vehicles = db.query(orm.VehicleDB).all()
    trips = db.query(orm.TripDB).filter(orm.TripDB.status == "active").all()

    markers = snapshot.vehicle_markers(vehicles)
    routes = snapshot.active_routes(trips)
    return MapSnapshot(
        vehicles=markers,
        active_routes=routes,
        metadata={
            "generated_at": datetime.utcnow().isoformat(),
            "vehicles_with_position": sum(1 for marker in markers if marker.has_position),
            "active_routes": len(routes),
        },
    )


@router.get("/snapshot", response_model=MapSnapshot)
def get_snapshot(db: Session = Depends(get_db)):
    """Vehicles and active routes, as polled by dashboards."""
    return build_snapshot(db)


@router.get("/live", response_class=HTMLResponse)
def live_map(
    selected: Optional[str] = None,
    db: Session = Depends(get_db),
    gazetteer: Gazetteer = Depends(get_gazetteer),
):
    """Leaflet page of the current fleet state."""
    current = build_snapshot(db)
    with LiveMapRenderer(gazetteer=gazetteer) as renderer:
        renderer.reconcile(current.vehicles, current.active_routes, selected)
        html = renderer.render_html()
    return HTMLResponse(content=html)
