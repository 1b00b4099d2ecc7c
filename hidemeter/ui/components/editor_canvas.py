"""Canvas adapter that draws an editing session and feeds it pointer events.

Works on any Tk-canvas-like object (``create_*``, ``delete``, ``bind``,
``winfo_width``/``winfo_height``), so the drawing logic can be exercised
without a display.
"""

import logging
from typing import Callable, List, Optional, Tuple

import cv2
import numpy as np
from PIL import Image

from ...core.constants import (
    ACTIVE_VERTEX_RADIUS, GRID_SIZE, REFERENCE_VERTEX_RADIUS, STROKE_WIDTH, VERTEX_RADIUS,
)
from ...core.entities import Point
from ...services.editor import EditorStep, VertexEditor
from ...services.view_transform import ViewState
from ...utils.coordinates import SurfaceBox, fit_surface, to_screen
from ...utils.geometry import from_outline

logger = logging.getLogger(__name__)

REFERENCE_COLOR = '#3B82F6'
TARGET_COLOR = '#22C55E'
ACTIVE_COLOR = '#F59E0B'

# Fallback size while the widget is not mapped yet
DEFAULT_CANVAS_SIZE = (840, 700)


class EditorCanvas:
    """Renders image, reference and target polygons under the current view."""

    def __init__(self, canvas, editor: VertexEditor, image: Optional[np.ndarray] = None,
                 on_change: Optional[Callable[[], None]] = None):
        """Attach to a canvas.

        Args:
            canvas: tk.Canvas (or compatible object)
            editor: Editing session to display and drive
            image: BGR image shown under the polygons
            on_change: Called after any event that changed the session
        """
        self.canvas = canvas
        self.editor = editor
        self.image = image
        self.on_change = on_change
        self.surface: Optional[SurfaceBox] = None
        self._photo = None

        self.canvas.bind('<Button-1>', self._on_mouse_down)
        self.canvas.bind('<B1-Motion>', self._on_mouse_drag)
        self.canvas.bind('<ButtonRelease-1>', self._on_mouse_up)
        self.canvas.bind('<Configure>', lambda e: self.render())

    # Layout

    def canvas_size(self) -> Tuple[int, int]:
        width, height = self.canvas.winfo_width(), self.canvas.winfo_height()
        if width < 10 or height < 10:
            return DEFAULT_CANVAS_SIZE
        return width, height

    def layout(self) -> Optional[SurfaceBox]:
        """Surface box for the image fitted into the canvas (square without image)."""
        canvas_w, canvas_h = self.canvas_size()
        if self.image is not None:
            image_h, image_w = self.image.shape[:2]
        else:
            image_w = image_h = 1
        return fit_surface(image_w, image_h, canvas_w, canvas_h)

    @staticmethod
    def screen_size(content_size: float, view: ViewState) -> float:
        """Surface-unit size magnified by the zoom into screen pixels."""
        return content_size * view.zoom

    # Rendering

    def render(self) -> None:
        self.canvas.delete('all')
        surface = self.layout()
        if surface is None:
            return
        self.surface = surface
        view = self.editor.view.snapshot(surface)

        if self.image is not None:
            self._draw_image(surface, view)
        self._draw_reference(surface, view)
        self._draw_target(surface, view)

    def _draw_image(self, surface: SurfaceBox, view: ViewState) -> None:
        """Draw the visible part of the zoomed image."""
        from PIL import ImageTk

        canvas_w, canvas_h = self.canvas_size()
        x0, y0 = to_screen(Point(0.0, 0.0), surface, view)
        x1, y1 = to_screen(Point(GRID_SIZE, GRID_SIZE), surface, view)

        vx0, vy0 = max(0.0, x0), max(0.0, y0)
        vx1, vy1 = min(float(canvas_w), x1), min(float(canvas_h), y1)
        if vx1 - vx0 < 1 or vy1 - vy0 < 1:
            return

        image_h, image_w = self.image.shape[:2]
        sx = image_w / (x1 - x0)
        sy = image_h / (y1 - y0)
        crop = self.image[
            int((vy0 - y0) * sy):max(int((vy1 - y0) * sy), int((vy0 - y0) * sy) + 1),
            int((vx0 - x0) * sx):max(int((vx1 - x0) * sx), int((vx0 - x0) * sx) + 1),
        ]
        display = cv2.resize(crop, (int(vx1 - vx0), int(vy1 - vy0)), interpolation=cv2.INTER_LINEAR)
        display = cv2.cvtColor(display, cv2.COLOR_BGR2RGB)

        self._photo = ImageTk.PhotoImage(image=Image.fromarray(display))
        self.canvas.create_image(int(vx0), int(vy0), anchor='nw', image=self._photo, tags='image')

    def _polyline(self, points, surface: SurfaceBox, view: ViewState) -> List[float]:
        coords: List[float] = []
        for point in points:
            coords.extend(to_screen(point, surface, view))
        return coords

    def _draw_reference(self, surface: SurfaceBox, view: ViewState) -> None:
        editor = self.editor
        width = self.screen_size(self.editor.view.stroke_width(STROKE_WIDTH), view)

        points = [Point.clamped(x, y) for x, y in from_outline(editor.reference_outline)]
        if not points:
            return

        coords = self._polyline(points, surface, view)
        if len(points) >= 3:
            self.canvas.create_polygon(*coords, outline=REFERENCE_COLOR, fill='',
                                       width=width, dash=(4, 2), tags='reference')
        elif len(points) == 2:
            self.canvas.create_line(*coords, fill=REFERENCE_COLOR, width=width, tags='reference')

        if editor.step is EditorStep.CAPTURING_REFERENCE:
            radius = self.screen_size(self.editor.view.hit_radius(REFERENCE_VERTEX_RADIUS), view)
            for i in range(0, len(coords), 2):
                self._circle(coords[i], coords[i + 1], radius, REFERENCE_COLOR, 'reference')

    def _draw_target(self, surface: SurfaceBox, view: ViewState) -> None:
        editor = self.editor
        target = editor.target
        if not target:
            return

        width = self.screen_size(self.editor.view.stroke_width(STROKE_WIDTH), view)
        coords = self._polyline(target, surface, view)
        if len(target) >= 3:
            self.canvas.create_polygon(*coords, outline=TARGET_COLOR, fill='',
                                       width=width, tags='target')
        elif len(target) == 2:
            self.canvas.create_line(*coords, fill=TARGET_COLOR, width=width, tags='target')

        if editor.step is EditorStep.DONE or editor.step is EditorStep.CAPTURING_TARGET:
            for index in range(len(target)):
                active = index == editor.drag_index
                base = ACTIVE_VERTEX_RADIUS if active else VERTEX_RADIUS
                radius = self.screen_size(self.editor.view.hit_radius(base), view)
                self._circle(coords[2 * index], coords[2 * index + 1], radius,
                             ACTIVE_COLOR if active else TARGET_COLOR, 'vertex')

    def _circle(self, x: float, y: float, radius: float, color: str, tag: str) -> None:
        self.canvas.create_oval(x - radius, y - radius, x + radius, y + radius,
                                fill=color, outline='white', tags=tag)

    # Pointer events

    def _on_mouse_down(self, event):
        if self.editor.is_closed or self.surface is None:
            return
        if self.editor.pointer_down(event.x, event.y, self.surface):
            self._changed()

    def _on_mouse_drag(self, event):
        if self.editor.is_closed or self.surface is None:
            return
        if self.editor.pointer_move(event.x, event.y, self.surface):
            self._changed()

    def _on_mouse_up(self, event):
        if self.editor.is_closed:
            return
        self.editor.pointer_up()
        self._changed()

    def _changed(self) -> None:
        self.render()
        if self.on_change:
            self.on_change()

