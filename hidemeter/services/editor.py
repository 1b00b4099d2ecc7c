"""Vertex editor state machine for manual tracing and point adjustment.

Manual tracing walks CAPTURING_REFERENCE (4 sheet corners) ->
CAPTURING_TARGET (hide outline, 3+ points) -> DONE (drag to adjust).
Editing an automatic result starts directly in DONE with the detected
reference outline fixed.

The editor is driven by discrete input events and has no rendering
dependency; the Tk canvas (or a test) feeds it pointer positions.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Optional

from ..core.constants import (
    A4_REAL_AREA_M2, MANUAL_EXPLANATION, MIN_POLYGON_POINTS, MIN_RELATIVE_UNIT_AREA,
    REFERENCE_POINT_COUNT, VERTEX_HIT_RADIUS,
)
from ..core.entities import MeasurementResult, Point, Polygon, ReferencePolygon
from ..core.exceptions import EditorStateError
from ..utils.coordinates import SurfaceBox, normalize_pointer
from ..utils.geometry import to_outline
from .calibration import ScaleCalibrator
from .view_transform import ViewTransform

logger = logging.getLogger(__name__)


class EditorStep(Enum):
    """Manual tracing steps."""
    CAPTURING_REFERENCE = "capturing_reference"
    CAPTURING_TARGET = "capturing_target"
    DONE = "done"


class EditorMode(Enum):
    """How the session was entered."""
    MANUAL = "manual"
    EDIT = "edit"


def blank_manual_result() -> MeasurementResult:
    """Starting result for a manual trace."""
    return MeasurementResult(
        detected_reference=True,
        detected_target=True,
        area_m2=0.0,
        explanation=MANUAL_EXPLANATION,
        confidence=100.0,
        target=Polygon(),
        reference_outline="",
        is_manual=True,
    )


@dataclass
class EditorSession:
    """Transient editing state, owned by exactly one VertexEditor."""
    mode: EditorMode
    step: EditorStep
    baseline: MeasurementResult
    reference: Polygon = field(default_factory=Polygon)
    target: Polygon = field(default_factory=Polygon)
    reference_outline: str = ""
    drag_index: Optional[int] = None
    view: ViewTransform = field(default_factory=ViewTransform)
    closed: bool = False


class VertexEditor:
    """Applies input events to an EditorSession."""

    def __init__(self, session: EditorSession,
                 reference_real_area_m2: float = A4_REAL_AREA_M2,
                 hit_radius: float = VERTEX_HIT_RADIUS,
                 min_unit_area: float = MIN_RELATIVE_UNIT_AREA):
        self.session = session
        self.hit_radius = hit_radius
        self.reference_real_area_m2 = reference_real_area_m2
        self._calibrator = ScaleCalibrator(
            min_unit_area=min_unit_area,
            initial_area=session.baseline.area_m2,
        )

    @classmethod
    def start_manual(cls, view: Optional[ViewTransform] = None,
                     baseline: Optional[MeasurementResult] = None, **kwargs) -> "VertexEditor":
        """Open a manual tracing session at the reference-capture step."""
        session = EditorSession(
            mode=EditorMode.MANUAL,
            step=EditorStep.CAPTURING_REFERENCE,
            baseline=baseline.copy() if baseline is not None else blank_manual_result(),
            view=view or ViewTransform(),
        )
        logger.info("Manual tracing session started")
        return cls(session, **kwargs)

    @classmethod
    def start_edit(cls, result: MeasurementResult, view: Optional[ViewTransform] = None,
                   **kwargs) -> "VertexEditor":
        """Open an adjustment session on an existing result (starts in DONE)."""
        baseline = result.copy()
        session = EditorSession(
            mode=EditorMode.EDIT,
            step=EditorStep.DONE,
            baseline=baseline,
            target=baseline.target,
            reference_outline=baseline.reference_outline,
            view=view or ViewTransform(),
        )
        logger.info(f"Edit session started on result with {len(baseline.target)} vertices")
        return cls(session, **kwargs)

    # State accessors

    @property
    def step(self) -> EditorStep:
        return self.session.step

    @property
    def mode(self) -> EditorMode:
        return self.session.mode

    @property
    def reference(self) -> Polygon:
        return self.session.reference

    @property
    def target(self) -> Polygon:
        return self.session.target

    @property
    def view(self) -> ViewTransform:
        return self.session.view

    @property
    def drag_index(self) -> Optional[int]:
        return self.session.drag_index

    @property
    def is_closed(self) -> bool:
        return self.session.closed

    @property
    def reference_sheet(self) -> ReferencePolygon:
        """Traced reference tagged with the sheet's real area."""
        return ReferencePolygon(self.session.reference, self.reference_real_area_m2)

    @property
    def reference_outline(self) -> str:
        if self.session.mode is EditorMode.MANUAL:
            return to_outline(self.session.reference.points)
        return self.session.reference_outline

    @property
    def can_advance(self) -> bool:
        s = self.session
        if s.closed:
            return False
        if s.step is EditorStep.CAPTURING_REFERENCE:
            return self.reference_sheet.is_captured
        if s.step is EditorStep.CAPTURING_TARGET:
            return len(s.target) >= MIN_POLYGON_POINTS
        return False

    @property
    def can_save(self) -> bool:
        return not self.session.closed and self.session.step is EditorStep.DONE

    @property
    def current_area(self) -> float:
        """Live area in m^2 for the in-progress polygons."""
        s = self.session
        if s.mode is EditorMode.MANUAL:
            return self._calibrator.from_sheet(self.reference_sheet, s.target)
        return self._calibrator.from_original(s.baseline.target, s.baseline.area_m2, s.target)

    def _ensure_open(self) -> None:
        if self.session.closed:
            raise EditorStateError("Editor session is closed")

    # Point capture

    def add_point(self, point: Point) -> bool:
        """Append a point to the polygon of the current capture step.

        Returns:
            True if the point was accepted; False when ignored (5th reference
            point, or any point once tracing is done)
        """
        self._ensure_open()
        s = self.session
        if s.step is EditorStep.CAPTURING_REFERENCE:
            if len(s.reference) >= REFERENCE_POINT_COUNT:
                logger.debug("Reference already has 4 points; ignoring input")
                return False
            s.reference = s.reference.appended(point)
            return True
        if s.step is EditorStep.CAPTURING_TARGET:
            s.target = s.target.appended(point)
            return True
        return False

    def undo(self) -> bool:
        """Remove the last point of the current capture step."""
        self._ensure_open()
        s = self.session
        if s.step is EditorStep.CAPTURING_REFERENCE and len(s.reference):
            s.reference = s.reference.without_last()
            return True
        if s.step is EditorStep.CAPTURING_TARGET and len(s.target):
            s.target = s.target.without_last()
            return True
        return False

    def advance(self) -> bool:
        """User-confirmed transition to the next step, if enabled."""
        self._ensure_open()
        if not self.can_advance:
            return False
        s = self.session
        previous = s.step
        s.step = EditorStep.CAPTURING_TARGET if previous is EditorStep.CAPTURING_REFERENCE else EditorStep.DONE
        logger.info(f"Editor step {previous.value} -> {s.step.value}")
        return True

    # Dragging (DONE only)

    def vertex_at(self, point: Point, radius: Optional[float] = None) -> Optional[int]:
        """Index of the nearest target vertex within ``radius`` grid units."""
        if radius is None:
            radius = self.session.view.hit_radius(self.hit_radius)
        best_index = None
        best_distance = radius
        for i, vertex in enumerate(self.session.target):
            d = vertex.distance_to(point)
            if d <= best_distance:
                best_index, best_distance = i, d
        return best_index

    def begin_drag(self, index: int) -> bool:
        """Start dragging vertex ``index``; rejected while another drag is active."""
        self._ensure_open()
        s = self.session
        if s.step is not EditorStep.DONE or not 0 <= index < len(s.target):
            return False
        if s.drag_index is not None and s.drag_index != index:
            logger.debug(f"Drag on vertex {s.drag_index} active; ignoring drag on {index}")
            return False
        s.drag_index = index
        return True

    def drag_to(self, point: Point) -> bool:
        self._ensure_open()
        s = self.session
        if s.drag_index is None:
            return False
        s.target = s.target.with_vertex(s.drag_index, point)
        return True

    def end_drag(self) -> None:
        self.session.drag_index = None

    # Pointer events in screen coordinates

    def pointer_down(self, screen_x: float, screen_y: float, surface: SurfaceBox) -> bool:
        self._ensure_open()
        view = self.session.view
        if view.pan_mode:
            return view.begin_pan(screen_x, screen_y)

        point = normalize_pointer(screen_x, screen_y, surface, view.snapshot(surface))
        if self.session.step is not EditorStep.DONE:
            return self.add_point(point)

        index = self.vertex_at(point)
        if index is None:
            return False
        return self.begin_drag(index)

    def pointer_move(self, screen_x: float, screen_y: float, surface: SurfaceBox) -> bool:
        self._ensure_open()
        view = self.session.view
        if view.pan_mode:
            return view.pan_to(screen_x, screen_y)
        if self.session.drag_index is None:
            return False
        return self.drag_to(normalize_pointer(screen_x, screen_y, surface, view.snapshot(surface)))

    def pointer_up(self) -> None:
        view = self.session.view
        if view.is_panning:
            view.end_pan()
        self.end_drag()

    # Completion

    def cancel(self) -> MeasurementResult:
        """Discard in-session changes and return the last persisted result."""
        self._ensure_open()
        self.session.drag_index = None
        self.session.closed = True
        logger.info("Editor session cancelled")
        return self.session.baseline.copy()

    def save(self) -> MeasurementResult:
        """Finalize the polygons into a new MeasurementResult and close."""
        self._ensure_open()
        s = self.session
        if s.step is not EditorStep.DONE:
            raise EditorStateError(f"Cannot save while in step {s.step.value}")

        area = self.current_area
        result = replace(
            s.baseline,
            area_m2=area,
            target=s.target,
            reference_outline=self.reference_outline,
            is_manual=s.mode is EditorMode.MANUAL or s.baseline.is_manual,
        )
        s.drag_index = None
        s.closed = True
        logger.info(f"Editor session saved: {len(result.target)} vertices, {area:.4f} m²")
        return result
