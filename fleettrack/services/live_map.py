"""
Live fleet map

Keeps one persistent map surface in sync with polled vehicle and trip
snapshots. Markers, route lines and destination markers live in
identity-keyed registries owned by a ``LiveMapRenderer`` instance, so a
refresh moves existing map objects instead of rebuilding them and any popup
the user opened stays open.

The surface is exported to a Leaflet page through folium.
"""

from __future__ import annotations

import html
import logging
from dataclasses import dataclass
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Set, Tuple, Union

import folium

from fleettrack.models import ActiveRoute, Coordinates, VehicleMarker
from fleettrack.services.geocoding import Gazetteer, StaticGazetteer
from fleettrack.services.routing import haversine_km

logger = logging.getLogger(__name__)

DEFAULT_CENTER: Tuple[float, float] = (-8.8390, 13.2894)
DEFAULT_ZOOM = 12
TILES = "OpenStreetMap"

STATUS_COLORS: Dict[str, str] = {
    "active": "#22c55e",
    "idle": "#f59e0b",
    "maintenance": "#3b82f6",
    "alert": "#ef4444",
}

MARKER_SIZE = 24
SELECTED_MARKER_SIZE = 28
DESTINATION_COLOR = "#ef4444"

FIT_PADDING: Tuple[int, int] = (50, 50)
# Endpoints closer than this are treated as one place.
SAME_LOCATION_THRESHOLD_KM = 0.05
SAME_LOCATION_ZOOM = 15

SEGMENT_COMPLETED = "completed"
SEGMENT_REMAINING = "remaining"
SEGMENT_PATH = "path"


@dataclass(frozen=True)
class PolylineStyle:
    color: str
    weight: int
    opacity: float
    dash_array: Optional[str] = None

    @property
    def dashed(self) -> bool:
        return self.dash_array is not None


COMPLETED_STYLE = PolylineStyle(color="#22c55e", weight=4, opacity=0.8)
REMAINING_STYLE = PolylineStyle(color="#3b82f6", weight=3, opacity=0.7, dash_array="10, 10")
PATH_STYLE = PolylineStyle(color="#22c55e", weight=3, opacity=0.8)


@dataclass(frozen=True)
class MarkerIcon:
    color: str
    size: int = MARKER_SIZE
    highlighted: bool = False
    kind: str = "vehicle"

    @property
    def anchor(self) -> Tuple[int, int]:
        # Pins point at the bottom centre, vehicle dots at their centre.
        if self.kind == "destination":
            return (self.size // 2, self.size)
        return (self.size // 2, self.size // 2)

    def html(self) -> str:
        transform = "transform: scale(1.2);" if self.highlighted else ""
        return (
            f'<div class="fleet-marker fleet-marker-{self.kind}" style="'
            f"width: {self.size}px; height: {self.size}px; background: {self.color}; "
            "border: 3px solid white; border-radius: 50%; "
            f'box-shadow: 0 2px 8px rgba(0,0,0,0.3); {transform}"></div>'
        )


@dataclass
class Viewport:
    center: Optional[Tuple[float, float]] = None
    zoom: Optional[int] = None
    bounds: Optional[List[List[float]]] = None
    padding: Tuple[int, int] = FIT_PADDING

    @property
    def is_bounds_fit(self) -> bool:
        return self.bounds is not None


class MapLayer:
    def __init__(self) -> None:
        self.surface: Optional["MapSurface"] = None

    @property
    def on_map(self) -> bool:
        return self.surface is not None

    def remove(self) -> None:
        if self.surface is not None:
            self.surface.remove_layer(self)


class MapMarker(MapLayer):
    def __init__(
        self,
        position: Sequence[float],
        icon: MarkerIcon,
        popup_html: Optional[str] = None,
        on_click: Optional[Callable[[], None]] = None,
    ):
        super().__init__()
        self.position: List[float] = [float(position[0]), float(position[1])]
        self.icon = icon
        self.popup_html = popup_html
        self.popup_open = False
        self.on_click = on_click

    def set_position(self, position: Sequence[float]) -> None:
        self.position = [float(position[0]), float(position[1])]

    def set_icon(self, icon: MarkerIcon) -> None:
        self.icon = icon

    def set_popup(self, popup_html: Optional[str]) -> None:
        self.popup_html = popup_html

    def open_popup(self) -> None:
        self.popup_open = True

    def close_popup(self) -> None:
        self.popup_open = False

    def click(self) -> None:
        if self.on_click is not None:
            self.on_click()


class MapPolyline(MapLayer):
    def __init__(
        self,
        points: Iterable[Sequence[float]],
        style: PolylineStyle,
        owner_id: str = "",
        tag: str = "",
    ):
        super().__init__()
        self.points: List[List[float]] = [[float(p[0]), float(p[1])] for p in points]
        self.style = style
        self.owner_id = owner_id
        self.tag = tag

    def set_points(self, points: Iterable[Sequence[float]]) -> None:
        self.points = [[float(p[0]), float(p[1])] for p in points]

    def set_style(self, style: PolylineStyle) -> None:
        self.style = style


class MapSurface:
    """The persistent map: view state plus the layers drawn on it."""

    def __init__(
        self,
        center: Tuple[float, float] = DEFAULT_CENTER,
        zoom: int = DEFAULT_ZOOM,
        tiles: str = TILES,
    ):
        self.center: Tuple[float, float] = center
        self.zoom: Optional[int] = zoom
        self.tiles = tiles
        self.bounds: Optional[List[List[float]]] = None
        self.padding: Tuple[int, int] = FIT_PADDING
        self.layers: List[MapLayer] = []
        self.removed = False

    def add(self, layer: Union[MapMarker, MapPolyline]) -> Union[MapMarker, MapPolyline]:
        if self.removed:
            raise RuntimeError("Map surface has been removed")
        if layer.surface is not self:
            layer.surface = self
            self.layers.append(layer)
        return layer

    def remove_layer(self, layer: MapLayer) -> None:
        if layer in self.layers:
            self.layers.remove(layer)
        layer.surface = None

    def set_view(self, center: Tuple[float, float], zoom: int) -> None:
        self.center = (float(center[0]), float(center[1]))
        self.zoom = zoom
        self.bounds = None

    def fit_bounds(self, bounds: List[List[float]], padding: Tuple[int, int] = FIT_PADDING) -> None:
        (south, west), (north, east) = bounds
        self.bounds = [[south, west], [north, east]]
        self.padding = padding
        self.center = ((south + north) / 2.0, (west + east) / 2.0)
        # Zoom is left to the client, which knows the viewport size.
        self.zoom = None

    def markers(self) -> List[MapMarker]:
        return [layer for layer in self.layers if isinstance(layer, MapMarker)]

    def polylines(self) -> List[MapPolyline]:
        return [layer for layer in self.layers if isinstance(layer, MapPolyline)]

    def remove(self) -> None:
        for layer in list(self.layers):
            layer.surface = None
        self.layers = []
        self.removed = True

    def to_folium(self) -> folium.Map:
        fmap = folium.Map(
            location=list(self.center),
            zoom_start=self.zoom if self.zoom is not None else DEFAULT_ZOOM,
            tiles=self.tiles,
        )

        for layer in self.layers:
            if isinstance(layer, MapPolyline):
                folium.PolyLine(
                    locations=layer.points,
                    color=layer.style.color,
                    weight=layer.style.weight,
                    opacity=layer.style.opacity,
                    dash_array=layer.style.dash_array,
                ).add_to(fmap)
            elif isinstance(layer, MapMarker):
                size = layer.icon.size
                popup = None
                if layer.popup_html:
                    popup = folium.Popup(layer.popup_html, show=layer.popup_open)
                folium.Marker(
                    location=layer.position,
                    icon=folium.DivIcon(
                        html=layer.icon.html(),
                        icon_size=(size, size),
                        icon_anchor=layer.icon.anchor,
                    ),
                    popup=popup,
                ).add_to(fmap)

        if self.bounds is not None:
            fmap.fit_bounds(self.bounds, padding=self.padding)
        return fmap

    def render_html(self) -> str:
        return self.to_folium().get_root().render()


def bounds_of(points: Iterable[Coordinates]) -> List[List[float]]:
    points = list(points)
    south = min(point.lat for point in points)
    north = max(point.lat for point in points)
    west = min(point.lng for point in points)
    east = max(point.lng for point in points)
    return [[south, west], [north, east]]


def midpoint(a: Coordinates, b: Coordinates) -> Tuple[float, float]:
    return ((a.lat + b.lat) / 2.0, (a.lng + b.lng) / 2.0)


def compute_viewport(
    start: Coordinates,
    current: Coordinates,
    destination: Optional[Coordinates] = None,
    threshold_km: float = SAME_LOCATION_THRESHOLD_KM,
) -> Viewport:
    """
    Viewport showing a trip.

    Fits start, current position and destination with padding. When the
    start and the end of the trip are practically the same place a bounds fit
    would zoom in to street level, so the view is centred on their midpoint
    at a fixed zoom instead.
    """
    end = destination if destination is not None else current
    if haversine_km(start, end) <= threshold_km:
        return Viewport(center=midpoint(start, end), zoom=SAME_LOCATION_ZOOM)

    points = [start, current]
    if destination is not None:
        points.append(destination)
    bounds = bounds_of(points)
    center = ((bounds[0][0] + bounds[1][0]) / 2.0, (bounds[0][1] + bounds[1][1]) / 2.0)
    return Viewport(center=center, bounds=bounds, padding=FIT_PADDING)


def route_key(vehicle_id: str, tag: str) -> str:
    return f"{vehicle_id}-{tag}"


class LiveMapRenderer:
    """
    Reconciles a map surface against vehicle and active-route snapshots.

    Designed to be called on every poll (every few seconds) for the lifetime
    of a dashboard. Stale entries are pruned on each pass so the number of
    map objects tracks the snapshot size.
    """

    def __init__(
        self,
        gazetteer: Optional[Gazetteer] = None,
        on_vehicle_click: Optional[Callable[[str], None]] = None,
        surface: Optional[MapSurface] = None,
    ):
        self.surface = surface if surface is not None else MapSurface()
        self.gazetteer: Gazetteer = gazetteer if gazetteer is not None else StaticGazetteer()
        self.on_vehicle_click = on_vehicle_click

        self.markers_by_vehicle_id: Dict[str, MapMarker] = {}
        self.route_lines: Dict[str, MapPolyline] = {}
        self.destination_markers_by_vehicle_id: Dict[str, MapMarker] = {}

        self.selected_vehicle_id: Optional[str] = None
        self._vehicles: Dict[str, VehicleMarker] = {}
        self._active_routes: Dict[str, ActiveRoute] = {}
        self.disposed = False

    def __enter__(self) -> "LiveMapRenderer":
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        self.dispose()

    def reconcile(
        self,
        vehicles: Sequence[VehicleMarker],
        active_routes: Sequence[ActiveRoute],
        selected_vehicle_id: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        previous_selection = self.selected_vehicle_id

        self.update_vehicles(vehicles, selected_vehicle_id)
        self.update_routes(active_routes)

        if selected_vehicle_id != previous_selection:
            self.focus_vehicle(selected_vehicle_id)

    def update_vehicles(
        self,
        vehicles: Sequence[VehicleMarker],
        selected_vehicle_id: Optional[str] = None,
    ) -> None:
        self._ensure_open()
        self.selected_vehicle_id = selected_vehicle_id

        visible = [vehicle for vehicle in vehicles if vehicle.has_position]
        skipped = len(vehicles) - len(visible)
        if skipped:
            logger.debug("Skipping %s vehicles without a known position", skipped)

        visible_ids = {vehicle.id for vehicle in visible}
        for vehicle_id in list(self.markers_by_vehicle_id):
            if vehicle_id not in visible_ids:
                self.markers_by_vehicle_id.pop(vehicle_id).remove()

        self._vehicles = {vehicle.id: vehicle for vehicle in visible}
        for vehicle in visible:
            self._upsert_vehicle_marker(vehicle)

    def update_routes(self, active_routes: Sequence[ActiveRoute]) -> None:
        self._ensure_open()

        active_ids = {route.vehicle_id for route in active_routes}
        for key, line in list(self.route_lines.items()):
            if line.owner_id not in active_ids:
                line.remove()
                del self.route_lines[key]
        for vehicle_id in list(self.destination_markers_by_vehicle_id):
            if vehicle_id not in active_ids:
                self.destination_markers_by_vehicle_id.pop(vehicle_id).remove()

        self._active_routes = {route.vehicle_id: route for route in active_routes}
        for route in active_routes:
            try:
                self._draw_route(route)
            except Exception as exc:  # noqa: BLE001
                logger.exception("Failed to draw route for vehicle %s: %s", route.vehicle_id, exc)

    def select_vehicle(self, vehicle_id: Optional[str]) -> None:
        self._ensure_open()
        if vehicle_id == self.selected_vehicle_id:
            return

        self.selected_vehicle_id = vehicle_id
        for vehicle in self._vehicles.values():
            self._upsert_vehicle_marker(vehicle)
        self.focus_vehicle(vehicle_id)

    def click_marker(self, vehicle_id: str) -> None:
        marker = self.markers_by_vehicle_id.get(vehicle_id)
        if marker is not None:
            marker.click()

    def focus_vehicle(self, vehicle_id: Optional[str]) -> Optional[Viewport]:
        if vehicle_id is None:
            return None

        route = self._active_routes.get(vehicle_id)
        if route is None:
            return None

        viewport = self.viewport_for(route)
        if viewport is None:
            return None

        if viewport.is_bounds_fit:
            self.surface.fit_bounds(viewport.bounds, viewport.padding)
        else:
            self.surface.set_view(viewport.center, viewport.zoom)
        return viewport

    def viewport_for(self, route: ActiveRoute) -> Optional[Viewport]:
        start = self.resolve_start(route)
        if start is None:
            return None
        return compute_viewport(start, self._current_position(route, start), self.resolve_destination(route))

    def resolve_start(self, route: ActiveRoute) -> Optional[Coordinates]:
        if route.start_lat is not None and route.start_lng is not None:
            return Coordinates(lat=route.start_lat, lng=route.start_lng)
        return self.gazetteer.lookup(route.start_location)

    def resolve_destination(self, route: ActiveRoute) -> Optional[Coordinates]:
        if route.dest_lat is not None and route.dest_lng is not None:
            return Coordinates(lat=route.dest_lat, lng=route.dest_lng)
        return self.gazetteer.lookup(route.destination)

    def render_html(self) -> str:
        self._ensure_open()
        return self.surface.render_html()

    def dispose(self) -> None:
        if self.disposed:
            return
        self.surface.remove()
        self.markers_by_vehicle_id.clear()
        self.route_lines.clear()
        self.destination_markers_by_vehicle_id.clear()
        self._vehicles.clear()
        self._active_routes.clear()
        self.disposed = True

    def _ensure_open(self) -> None:
        if self.disposed:
            raise RuntimeError("Live map renderer has been disposed")

    def _report_click(self, vehicle_id: str) -> None:
        if self.on_vehicle_click is not None:
            self.on_vehicle_click(vehicle_id)

    def _upsert_vehicle_marker(self, vehicle: VehicleMarker) -> None:
        selected = vehicle.id == self.selected_vehicle_id
        icon = MarkerIcon(
            color=STATUS_COLORS.get(vehicle.status, STATUS_COLORS["idle"]),
            size=SELECTED_MARKER_SIZE if selected else MARKER_SIZE,
            highlighted=selected,
        )
        position = (vehicle.lat, vehicle.lng)

        marker = self.markers_by_vehicle_id.get(vehicle.id)
        if marker is not None:
            marker.set_position(position)
            marker.set_icon(icon)
            marker.set_popup(_vehicle_popup(vehicle))
            return

        vehicle_id = vehicle.id
        marker = MapMarker(
            position,
            icon,
            popup_html=_vehicle_popup(vehicle),
            on_click=lambda: self._report_click(vehicle_id),
        )
        self.surface.add(marker)
        self.markers_by_vehicle_id[vehicle_id] = marker

    def _draw_route(self, route: ActiveRoute) -> None:
        vehicle_id = route.vehicle_id
        start = self.resolve_start(route)
        if start is None:
            logger.debug("No start coordinates for vehicle %s, route not drawn", vehicle_id)
            self._drop_route_objects(vehicle_id, keep=set())
            return

        current = self._current_position(route, start)
        destination = self.resolve_destination(route)

        start_point = [start.lat, start.lng]
        current_point = [current.lat, current.lng]

        if destination is not None:
            dest_point = [destination.lat, destination.lng]
            self._upsert_line(vehicle_id, SEGMENT_COMPLETED, [start_point, current_point], COMPLETED_STYLE)
            self._upsert_line(vehicle_id, SEGMENT_REMAINING, [current_point, dest_point], REMAINING_STYLE)
            self._upsert_destination_marker(route, dest_point)
            self._drop_route_objects(vehicle_id, keep={SEGMENT_COMPLETED, SEGMENT_REMAINING}, keep_destination=True)
        else:
            self._upsert_line(vehicle_id, SEGMENT_PATH, [start_point, current_point], PATH_STYLE)
            self._drop_route_objects(vehicle_id, keep={SEGMENT_PATH})

    def _current_position(self, route: ActiveRoute, start: Coordinates) -> Coordinates:
        if route.current_lat is not None and route.current_lng is not None:
            return Coordinates(lat=route.current_lat, lng=route.current_lng)
        return start

    def _upsert_line(
        self,
        vehicle_id: str,
        tag: str,
        points: List[List[float]],
        style: PolylineStyle,
    ) -> None:
        key = route_key(vehicle_id, tag)
        line = self.route_lines.get(key)
        if line is not None:
            line.set_points(points)
            line.set_style(style)
            return

        line = MapPolyline(points, style, owner_id=vehicle_id, tag=tag)
        self.surface.add(line)
        self.route_lines[key] = line

    def _upsert_destination_marker(self, route: ActiveRoute, dest_point: List[float]) -> None:
        popup = f"<strong>Destination:</strong><br>{html.escape(route.destination or 'Trip destination')}"
        marker = self.destination_markers_by_vehicle_id.get(route.vehicle_id)
        if marker is not None:
            marker.set_position(dest_point)
            marker.set_popup(popup)
            return

        marker = MapMarker(
            dest_point,
            MarkerIcon(color=DESTINATION_COLOR, size=MARKER_SIZE, kind="destination"),
            popup_html=popup,
        )
        self.surface.add(marker)
        self.destination_markers_by_vehicle_id[route.vehicle_id] = marker

    def _drop_route_objects(self, vehicle_id: str, keep: Set[str], keep_destination: bool = False) -> None:
        for key, line in list(self.route_lines.items()):
            if line.owner_id == vehicle_id and line.tag not in keep:
                line.remove()
                del self.route_lines[key]

        if not keep_destination and vehicle_id in self.destination_markers_by_vehicle_id:
            self.destination_markers_by_vehicle_id.pop(vehicle_id).remove()


def _vehicle_popup(vehicle: VehicleMarker) -> str:
    color = STATUS_COLORS.get(vehicle.status, STATUS_COLORS["idle"])
    driver = f'<br><span style="color: #666;">Driver: {html.escape(vehicle.driver)}</span>' if vehicle.driver else ""
    return (
        '<div style="min-width: 150px;">'
        f"<strong>{html.escape(vehicle.plate)}</strong>{driver}"
        f'<br><span style="color: {color}; font-weight: 500;">{vehicle.status.capitalize()}</span>'
        "</div>"
    )
