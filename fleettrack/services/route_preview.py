"""Route preview between two free-text places."""

import logging

from fleettrack.models import Coordinates, RoutePreviewResponse
from fleettrack.services.geocoding import LocationResolver
from fleettrack.services.live_map import FIT_PADDING, bounds_of
from fleettrack.services.routing import RouteBuilder

logger = logging.getLogger(__name__)

UNRESOLVED_MESSAGE = "Could not determine the coordinates of the locations"


def preview_route(
    start_location: str,
    destination: str,
    resolver: LocationResolver,
    builder: RouteBuilder,
) -> RoutePreviewResponse:
    """Resolve both places, build the route and the bounds the caller should fit."""
    start = resolver.resolve(start_location)
    end = resolver.resolve(destination)

    if start is None or end is None:
        logger.info("Route preview unresolved: start=%s end=%s", start, end)
        return RoutePreviewResponse(start=start, end=end, error=UNRESOLVED_MESSAGE)

    route = builder.build(start, end)
    bounds = bounds_of(Coordinates(lat=lat, lng=lng) for lat, lng in route.geometry)
    return RoutePreviewResponse(
        start=start,
        end=end,
        route=route,
        bounds=bounds,
        padding=list(FIT_PADDING),
    )
