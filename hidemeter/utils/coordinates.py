"""Screen <-> logical grid coordinate conversion.

The editing surface is laid out in a box on screen; the view transform
(zoom about the box centre, then pan) is applied on top of it, the way a CSS
``translate(pan) scale(zoom)`` with centred origin would render it.
"""
from __future__ import annotations
from dataclasses import dataclass
from typing import Optional, Tuple

from ..core.constants import GRID_SIZE
from ..core.entities import Point


@dataclass(frozen=True, slots=True)
class SurfaceBox:
    """Untransformed on-screen bounding box of the editing surface."""
    left: float
    top: float
    width: float
    height: float

    @property
    def is_degenerate(self) -> bool:
        return self.width <= 0 or self.height <= 0

    @property
    def center(self) -> Tuple[float, float]:
        return (self.left + self.width / 2.0, self.top + self.height / 2.0)


def _view_params(view) -> Tuple[float, float, float]:
    if view is None:
        return 1.0, 0.0, 0.0
    return float(view.zoom), float(view.pan_x), float(view.pan_y)


def normalize_pointer(screen_x: float, screen_y: float, surface: SurfaceBox,
                      view=None) -> Point:
    """Map a pointer position to a grid Point clamped to [0, 1000]^2.

    Args:
        screen_x: Pointer x in screen/client coordinates
        screen_y: Pointer y in screen/client coordinates
        surface: Layout box of the surface (before zoom/pan)
        view: Optional view transform exposing ``zoom``, ``pan_x``, ``pan_y``

    Returns:
        Point on the logical grid
    """
    if surface.is_degenerate:
        return Point(0.0, 0.0)

    zoom, pan_x, pan_y = _view_params(view)
    cx, cy = surface.center

    # Undo pan, then zoom about the centre, giving surface-local pixels
    local_x = surface.width / 2.0 + (screen_x - cx - pan_x) / zoom
    local_y = surface.height / 2.0 + (screen_y - cy - pan_y) / zoom

    return Point.clamped(local_x * GRID_SIZE / surface.width,
                         local_y * GRID_SIZE / surface.height)


def to_screen(point: Point, surface: SurfaceBox, view=None) -> Tuple[float, float]:
    """Forward mapping of a grid Point to screen coordinates."""
    zoom, pan_x, pan_y = _view_params(view)
    cx, cy = surface.center
    local_x = point.x * surface.width / GRID_SIZE
    local_y = point.y * surface.height / GRID_SIZE
    return (cx + pan_x + zoom * (local_x - surface.width / 2.0),
            cy + pan_y + zoom * (local_y - surface.height / 2.0))


def screen_radius_to_units(radius_px: float, surface: SurfaceBox,
                           view=None) -> float:
    """Convert a screen-space radius into grid units at the current zoom."""
    if surface.is_degenerate:
        return 0.0
    zoom, _, _ = _view_params(view)
    scale = GRID_SIZE / min(surface.width, surface.height)
    return radius_px * scale / zoom


def fit_surface(image_width: int, image_height: int, canvas_width: int,
                canvas_height: int) -> Optional[SurfaceBox]:
    """Largest aspect-preserving box for an image centred in a canvas."""
    if image_width <= 0 or image_height <= 0 or canvas_width <= 0 or canvas_height <= 0:
        return None
    scale = min(canvas_width / image_width, canvas_height / image_height)
    w = image_width * scale
    h = image_height * scale
    return SurfaceBox((canvas_width - w) / 2.0, (canvas_height - h) / 2.0, w, h)
