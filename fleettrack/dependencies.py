"""Service providers injected into the routers."""

from fleettrack.services.geocoding import Gazetteer, LocationResolver, StaticGazetteer
from fleettrack.services.routing import RouteBuilder


def get_location_resolver() -> LocationResolver:
    return LocationResolver()


def get_route_builder() -> RouteBuilder:
    return RouteBuilder()


def get_gazetteer() -> Gazetteer:
    return StaticGazetteer()
