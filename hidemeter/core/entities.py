"""Domain entities (data-only structures) used across services."""
from __future__ import annotations
from dataclasses import dataclass, field, replace
from typing import Optional, Tuple, List, Dict, Any, Iterable
import math
import time
import uuid

from .constants import GRID_SIZE, A4_REAL_AREA_M2, MIN_POLYGON_POINTS, REFERENCE_POINT_COUNT
from .exceptions import ValidationError
from ..utils import geometry


@dataclass(frozen=True, slots=True)
class Point:
    """A coordinate pair on the 0-1000 logical grid."""
    x: float
    y: float

    def __post_init__(self):
        for name, value in (("x", self.x), ("y", self.y)):
            if not isinstance(value, (int, float)) or isinstance(value, bool):
                raise ValidationError(f"Point.{name} must be a number, got {type(value).__name__}")
            if not math.isfinite(value) or not (0.0 <= value <= GRID_SIZE):
                raise ValidationError(f"Point.{name}={value} outside [0, {GRID_SIZE:g}]")
        object.__setattr__(self, "x", float(self.x))
        object.__setattr__(self, "y", float(self.y))

    @classmethod
    def clamped(cls, x: float, y: float) -> "Point":
        """Build a point clamped into the grid (non-finite values map to 0)."""
        x = float(x) if math.isfinite(float(x)) else 0.0
        y = float(y) if math.isfinite(float(y)) else 0.0
        return cls(max(0.0, min(GRID_SIZE, x)), max(0.0, min(GRID_SIZE, y)))

    def to_dict(self) -> Dict[str, float]:
        return {"x": self.x, "y": self.y}

    def distance_to(self, other: "Point") -> float:
        return math.hypot(self.x - other.x, self.y - other.y)


@dataclass(frozen=True, slots=True)
class Polygon:
    """Ordered, implicitly closed sequence of grid points."""
    points: Tuple[Point, ...] = ()

    def __post_init__(self):
        pts = tuple(self.points)
        for p in pts:
            if not isinstance(p, Point):
                raise ValidationError(f"Polygon points must be Point instances, got {type(p).__name__}")
        object.__setattr__(self, "points", pts)

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def __getitem__(self, index: int) -> Point:
        return self.points[index]

    @property
    def is_complete(self) -> bool:
        return len(self.points) >= MIN_POLYGON_POINTS

    @property
    def area(self) -> float:
        """Unit-grid area (shoelace), 0 for incomplete polygons."""
        return geometry.polygon_area(self.points)

    def appended(self, point: Point) -> "Polygon":
        return Polygon(self.points + (point,))

    def without_last(self) -> "Polygon":
        return Polygon(self.points[:-1])

    def with_vertex(self, index: int, point: Point) -> "Polygon":
        if not 0 <= index < len(self.points):
            raise IndexError(f"Vertex index {index} out of range for {len(self.points)} points")
        pts = list(self.points)
        pts[index] = point
        return Polygon(tuple(pts))

    def to_outline(self) -> str:
        return geometry.to_outline(self.points)

    def to_list(self) -> List[Dict[str, float]]:
        return [p.to_dict() for p in self.points]

    @classmethod
    def from_list(cls, items: Iterable[Any]) -> "Polygon":
        """Build from ``[{"x":..,"y":..}]`` or ``[(x, y)]`` items."""
        pts = []
        for item in items:
            if isinstance(item, dict):
                pts.append(Point(item["x"], item["y"]))
            else:
                x, y = item
                pts.append(Point(x, y))
        return cls(tuple(pts))

    @classmethod
    def from_outline(cls, outline: str, clamp: bool = False) -> "Polygon":
        pairs = geometry.from_outline(outline)
        factory = Point.clamped if clamp else Point
        return cls(tuple(factory(x, y) for x, y in pairs))


@dataclass(frozen=True, slots=True)
class ReferencePolygon:
    """Polygon of the reference sheet tagged with its real-world area."""
    polygon: Polygon = field(default_factory=Polygon)
    real_area_m2: float = A4_REAL_AREA_M2

    def __post_init__(self):
        if not math.isfinite(self.real_area_m2) or self.real_area_m2 <= 0:
            raise ValidationError(f"Reference area must be positive, got {self.real_area_m2}")

    @property
    def is_captured(self) -> bool:
        return len(self.polygon) == REFERENCE_POINT_COUNT


@dataclass(slots=True)
class MeasurementResult:
    """Output of a detection or a manual trace; mutable while editing."""
    detected_reference: bool
    detected_target: bool
    area_m2: float
    explanation: str
    confidence: float
    target: Polygon = field(default_factory=Polygon)
    reference_outline: str = ""
    is_manual: bool = False

    def __post_init__(self):
        self.confidence = max(0.0, min(100.0, float(self.confidence)))
        self.area_m2 = float(self.area_m2) if math.isfinite(float(self.area_m2)) else 0.0

    @property
    def is_detection_error(self) -> bool:
        return (not self.detected_reference or not self.detected_target) and not self.is_manual

    def copy(self) -> "MeasurementResult":
        # Polygons are immutable, a shallow replace is an independent copy
        return replace(self)

    def to_dict(self) -> Dict[str, Any]:
        return {
            "detected_reference": self.detected_reference,
            "detected_target": self.detected_target,
            "area_m2": self.area_m2,
            "explanation": self.explanation,
            "confidence": self.confidence,
            "target": self.target.to_list(),
            "reference_outline": self.reference_outline,
            "is_manual": self.is_manual,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementResult":
        try:
            return cls(
                detected_reference=bool(data["detected_reference"]),
                detected_target=bool(data["detected_target"]),
                area_m2=float(data["area_m2"]),
                explanation=str(data.get("explanation", "")),
                confidence=float(data.get("confidence", 0.0)),
                target=Polygon.from_list(data.get("target") or []),
                reference_outline=str(data.get("reference_outline") or ""),
                is_manual=bool(data.get("is_manual", False)),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed measurement result: {e}") from e


@dataclass(frozen=True, slots=True)
class MeasurementRecord:
    """A finalized measurement as stored in history."""
    id: str
    timestamp: int  # epoch milliseconds
    image_name: str
    result: MeasurementResult
    thumbnail_base64: str = ""  # photo the result was measured on, for later edits

    @classmethod
    def from_result(cls, result: MeasurementResult, image_name: str,
                    timestamp: Optional[int] = None, thumbnail_base64: str = "") -> "MeasurementRecord":
        return cls(
            id=uuid.uuid4().hex,
            timestamp=int(time.time() * 1000) if timestamp is None else int(timestamp),
            image_name=image_name,
            result=result.copy(),
            thumbnail_base64=thumbnail_base64,
        )

    @property
    def area_m2(self) -> float:
        return self.result.area_m2

    def to_dict(self) -> Dict[str, Any]:
        d = self.result.to_dict()
        d.update({"id": self.id, "timestamp": self.timestamp, "image_name": self.image_name,
                  "thumbnail": self.thumbnail_base64})
        return d

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "MeasurementRecord":
        try:
            return cls(
                id=str(data["id"]),
                timestamp=int(data["timestamp"]),
                image_name=str(data.get("image_name", "")),
                result=MeasurementResult.from_dict(data),
                thumbnail_base64=str(data.get("thumbnail") or ""),
            )
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed measurement record: {e}") from e


@dataclass(frozen=True, slots=True)
class LearningReference:
    """Last confirmed detailed trace, used to bias the next detection."""
    thumbnail_base64: str
    target: Polygon

    def to_dict(self) -> Dict[str, Any]:
        return {"image_base64": self.thumbnail_base64, "vertices": self.target.to_list()}

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "LearningReference":
        try:
            thumbnail = data["image_base64"]
            if not isinstance(thumbnail, str) or not thumbnail:
                raise ValueError("thumbnail missing")
            return cls(thumbnail_base64=thumbnail, target=Polygon.from_list(data["vertices"]))
        except (KeyError, TypeError, ValueError) as e:
            raise ValidationError(f"Malformed learning reference: {e}") from e
