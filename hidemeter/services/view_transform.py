"""Zoom and pan state for the editing canvas.

The view transform is local UI state: it changes how the grid is drawn and
how pointer positions map back onto it, never the stored Point coordinates.
"""

import logging
from typing import NamedTuple, Optional, Tuple

from ..core.constants import MIN_ZOOM, MAX_ZOOM, ZOOM_STEP
from ..utils.coordinates import SurfaceBox

logger = logging.getLogger(__name__)


class ViewState(NamedTuple):
    """Immutable zoom/pan snapshot used for one render or pointer mapping."""
    zoom: float
    pan_x: float
    pan_y: float


class ViewTransform:
    """Zoom scalar in [1, max_zoom] plus a screen-space pan offset."""

    min_zoom = MIN_ZOOM

    def __init__(self, zoom_step: float = ZOOM_STEP, max_zoom: float = MAX_ZOOM):
        if zoom_step <= 0 or max_zoom < self.min_zoom:
            raise ValueError(f"Invalid zoom settings: step {zoom_step}, "
                             f"range [{self.min_zoom}, {max_zoom}]")
        self.zoom_step = zoom_step
        self.max_zoom = max_zoom

        self.zoom: float = self.min_zoom
        self.pan_x: float = 0.0
        self.pan_y: float = 0.0
        self.pan_mode: bool = False
        self._pan_anchor: Optional[Tuple[float, float]] = None

    @property
    def pan(self) -> Tuple[float, float]:
        return (self.pan_x, self.pan_y)

    @property
    def is_panning(self) -> bool:
        return self._pan_anchor is not None

    def set_zoom(self, zoom: float) -> float:
        self.zoom = max(self.min_zoom, min(self.max_zoom, float(zoom)))
        return self.zoom

    def zoom_in(self) -> float:
        return self.set_zoom(self.zoom + self.zoom_step)

    def zoom_out(self) -> float:
        return self.set_zoom(self.zoom - self.zoom_step)

    def reset(self) -> None:
        """Zoom back to 1x and drop the pan offset."""
        self.zoom = self.min_zoom
        self.pan_x = 0.0
        self.pan_y = 0.0
        self._pan_anchor = None
        logger.debug("View transform reset")

    def toggle_pan_mode(self) -> bool:
        self.pan_mode = not self.pan_mode
        if not self.pan_mode:
            self._pan_anchor = None
        return self.pan_mode

    def pan_by(self, dx: float, dy: float) -> None:
        self.pan_x += dx
        self.pan_y += dy

    # Pan gesture (screen coordinates). Only honoured in pan mode.

    def begin_pan(self, screen_x: float, screen_y: float) -> bool:
        if not self.pan_mode:
            return False
        self._pan_anchor = (screen_x, screen_y)
        return True

    def pan_to(self, screen_x: float, screen_y: float) -> bool:
        if not self.pan_mode or self._pan_anchor is None:
            return False
        ax, ay = self._pan_anchor
        self.pan_by(screen_x - ax, screen_y - ay)
        self._pan_anchor = (screen_x, screen_y)
        return True

    def end_pan(self) -> None:
        self._pan_anchor = None

    # Rendering contract: constant screen-space size at any zoom

    def stroke_width(self, base: float) -> float:
        return base / self.zoom

    def hit_radius(self, base: float) -> float:
        return base / self.zoom

    def visible_pan(self, surface: SurfaceBox) -> Tuple[float, float]:
        """Pan clamped so the zoomed surface still covers its viewport."""
        max_x = max(0.0, (self.zoom - 1.0) * surface.width / 2.0)
        max_y = max(0.0, (self.zoom - 1.0) * surface.height / 2.0)
        return (max(-max_x, min(max_x, self.pan_x)),
                max(-max_y, min(max_y, self.pan_y)))

    def snapshot(self, surface: Optional[SurfaceBox] = None) -> ViewState:
        """Current zoom/pan, with the pan clamped for display when a surface is given."""
        if surface is None:
            return ViewState(self.zoom, self.pan_x, self.pan_y)
        pan_x, pan_y = self.visible_pan(surface)
        return ViewState(self.zoom, pan_x, pan_y)

    def __repr__(self) -> str:
        return (f"ViewTransform(zoom={self.zoom:g}, pan=({self.pan_x:g}, {self.pan_y:g}), "
                f"pan_mode={self.pan_mode})")
