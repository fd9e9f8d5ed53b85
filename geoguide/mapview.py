"""Map view: turns a `ViewState` into a Leaflet viewport and reports clicks.

The view holds no state of its own. Whoever owns the `ViewState` decides
what a click or a zoom command does to it.
"""

from __future__ import annotations as _annotations

from collections.abc import Callable
from dataclasses import dataclass

from typing_extensions import TypedDict

from geoguide.models import Coordinate

MIN_ZOOM = 3
MAX_ZOOM = 18
DEFAULT_ZOOM = 13
CLICK_ZOOM = 15
DEFAULT_CENTER = Coordinate(51.505, -0.09)  # London

TILE_URL = "https://{s}.tile.openstreetmap.org/{z}/{x}/{y}.png"
TILE_ATTRIBUTION = (
    '&copy; <a href="https://www.openstreetmap.org/copyright">OpenStreetMap</a> contributors'
)


def clamp_zoom(level: int) -> int:
    return max(MIN_ZOOM, min(MAX_ZOOM, int(level)))


@dataclass(frozen=True)
class ViewState:
    center: Coordinate = DEFAULT_CENTER
    zoom: int = DEFAULT_ZOOM

    def __post_init__(self) -> None:
        # frozen, so bypass __setattr__ to store the clamped value
        object.__setattr__(self, "zoom", clamp_zoom(self.zoom))

    def zoomed(self, delta: int) -> ViewState:
        return ViewState(self.center, self.zoom + delta)

    def with_zoom(self, level: int) -> ViewState:
        return ViewState(self.center, level)

    def recentered(self, center: Coordinate, zoom: int | None = None) -> ViewState:
        return ViewState(center, self.zoom if zoom is None else zoom)


class MapViewport(TypedDict):
    """Everything the browser needs to draw the map."""

    center: list[float]
    zoom: int
    min_zoom: int
    max_zoom: int
    marker: list[float]
    tile_url: str
    attribution: str


ClickHandler = Callable[[float, float], None]


class MapView:
    """Stateless renderer for the tiled basemap with a single marker."""

    def __init__(self, on_user_click: ClickHandler | None = None):
        self._on_user_click = on_user_click

    def render(self, view: ViewState) -> MapViewport:
        return {
            "center": view.center.as_pair(),
            "zoom": view.zoom,
            "min_zoom": MIN_ZOOM,
            "max_zoom": MAX_ZOOM,
            "marker": view.center.as_pair(),
            "tile_url": TILE_URL,
            "attribution": TILE_ATTRIBUTION,
        }

    def click(self, latitude: float, longitude: float) -> None:
        """Report a click on the map surface to the owner of the view state.

        Raises `ValueError` for coordinates outside the valid range.
        """
        Coordinate(latitude, longitude)
        if self._on_user_click is not None:
            self._on_user_click(latitude, longitude)
