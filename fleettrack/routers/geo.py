"""Geo router for geocoding, routing and route previews."""

from __future__ import annotations

from fastapi import APIRouter, Depends

from fleettrack.dependencies import get_location_resolver, get_route_builder
from fleettrack.models import (
    GeocodeRequest,
    GeocodeResponse,
    RouteInfo,
    RoutePreviewRequest,
    RoutePreviewResponse,
    RouteRequest,
)
from fleettrack.services.geocoding import LocationResolver
from fleettrack.services.route_preview import preview_route
from fleettrack.services.routing import RouteBuilder

from .validation import validate_coordinates

router = APIRouter()


@router.post("/geocode", response_model=GeocodeResponse)
def geocode(
    payload: GeocodeRequest,
    resolver: LocationResolver = Depends(get_location_resolver),
):
    coordinates = resolver.resolve(payload.query)
    return GeocodeResponse(query=payload.query, found=coordinates is not None, coordinates=coordinates)


@router.post("/route", response_model=RouteInfo)
def build_route(
    payload: RouteRequest,
    builder: RouteBuilder = Depends(get_route_builder),
):
    validate_coordinates(payload.origin.lat, payload.origin.lng, "origin")
    validate_coordinates(payload.destination.lat, payload.destination.lng, "destination")
    return builder.build(payload.origin, payload.destination)


@router.post("/route-preview", response_model=RoutePreviewResponse)
def route_preview(
    payload: RoutePreviewRequest,
    resolver: LocationResolver = Depends(get_location_resolver),
    builder: RouteBuilder = Depends(get_route_builder),
):
    return preview_route(payload.start_location, payload.destination, resolver, builder)
