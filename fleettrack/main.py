import logging
import os

from fastapi import FastAPI, Response, status
from fastapi.middleware.cors import CORSMiddleware

from fleettrack.database import Base, engine
from fleettrack.models import orm  # noqa: F401  registers tables on Base
from fleettrack.routers import geo, live_map, trips, vehicles

logging.basicConfig(
    level=os.getenv("LOG_LEVEL", "INFO").upper(),
    format="%(asctime)s %(levelname)s %(name)s: %(message)s",
)

app = FastAPI(title="Fleet tracking API")


app.add_middleware(
    CORSMiddleware,
    allow_origins=["*"],
    allow_credentials=True,
    allow_methods=["*"],
    allow_headers=["*"],
)

app.include_router(vehicles.router, prefix="/api/vehicles", tags=["Vehicles"])
app.include_router(trips.router, prefix="/api/trips", tags=["Trips"])
app.include_router(geo.router, prefix="/api/geo", tags=["Geo"])
app.include_router(live_map.router, prefix="/api/map", tags=["Map"])


@app.get("/", include_in_schema=False)
def root() -> dict[str, str]:
    return {"status": "ok", "docs": "/docs"}


@app.get("/favicon.ico", include_in_schema=False)
def favicon() -> Response:
    # Frontend favicon is not served by this backend app.
    return Response(status_code=status.HTTP_204_NO_CONTENT)


@app.on_event("startup")
def create_tables() -> None:
    Base.metadata.create_all(bind=engine)
