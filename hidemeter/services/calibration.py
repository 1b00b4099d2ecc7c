"""Scale calibration: unit-grid polygon areas to square metres.

Two modes are supported:

- Reference calibration: a reference polygon whose real area is known (the
  A4 sheet) gives the m^2-per-unit^2 factor applied to the target polygon.
- Relative calibration: an already calibrated result is being adjusted, so
  the factor is the original reported area over the original polygon area.

Degenerate inputs never raise; they hold the previously known area, since
they occur transiently while the operator is still placing points.
"""

import logging
import math
from typing import Optional, Sequence

from ..core.constants import A4_REAL_AREA_M2, MIN_POLYGON_POINTS, MIN_RELATIVE_UNIT_AREA
from ..core.entities import ReferencePolygon
from ..utils.geometry import polygon_area

logger = logging.getLogger(__name__)


def calibrate(reference: Sequence, target: Sequence,
              reference_real_area_m2: float = A4_REAL_AREA_M2,
              previous_area: float = 0.0) -> float:
    """Metric area of ``target`` using ``reference`` of known real area.

    Args:
        reference: Reference polygon points (unit grid)
        target: Target polygon points (unit grid)
        reference_real_area_m2: Real-world area of the reference in m^2
        previous_area: Value returned when the reference has zero area

    Returns:
        Target area in m^2; 0.0 while either polygon has fewer than 3 points
    """
    if len(reference) < MIN_POLYGON_POINTS or len(target) < MIN_POLYGON_POINTS:
        return 0.0

    reference_units = polygon_area(reference)
    if reference_units == 0:
        logger.debug("Reference polygon has zero area; holding previous area")
        return previous_area

    scale_factor = reference_real_area_m2 / reference_units
    return polygon_area(target) * scale_factor


def relative_calibrate(original_target: Sequence, original_area_m2: float,
                       current_target: Sequence, previous_area: float,
                       min_unit_area: float = MIN_RELATIVE_UNIT_AREA) -> float:
    """Rescale an edited polygon with the ratio of the original detection.

    The original polygon's unit area must be at least ``min_unit_area``;
    below that floor the ratio is unstable and the previous area is held.
    """
    if not original_target:
        return previous_area

    original_units = polygon_area(original_target)
    if original_units < min_unit_area:
        logger.warning(
            f"Original polygon area {original_units:.3f} below floor {min_unit_area}; "
            "keeping previous area"
        )
        return previous_area

    scale_factor = original_area_m2 / original_units
    if not math.isfinite(scale_factor):
        logger.warning(f"Non-finite rescaling ratio ({original_area_m2}/{original_units}); keeping previous area")
        return previous_area

    return polygon_area(current_target) * scale_factor


class ScaleCalibrator:
    """Stateful calibrator that remembers the last known area."""

    def __init__(self, min_unit_area: float = MIN_RELATIVE_UNIT_AREA, initial_area: float = 0.0):
        self.min_unit_area = min_unit_area
        self.last_area = initial_area

    def from_sheet(self, sheet: ReferencePolygon, target: Sequence) -> float:
        """Calibrate against a reference that carries its own real area."""
        self.last_area = calibrate(sheet.polygon, target, sheet.real_area_m2, self.last_area)
        return self.last_area

    def from_original(self, original_target: Sequence, original_area_m2: float,
                      current_target: Sequence) -> float:
        self.last_area = relative_calibrate(
            original_target, original_area_m2, current_target,
            self.last_area, self.min_unit_area
        )
        return self.last_area

    def reset(self, area: Optional[float] = None) -> None:
        self.last_area = 0.0 if area is None else area
