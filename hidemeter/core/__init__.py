"""Core domain entities and constants."""

from .entities import (
    Point, Polygon, ReferencePolygon, MeasurementResult, MeasurementRecord, LearningReference,
)
from .exceptions import (
    ApplicationError, ValidationError, ConfigError, EditorStateError,
    ServiceError, DetectionError, PersistenceError, StorageCapacityError,
)
from .constants import APP_NAME, VERSION, GRID_SIZE, A4_REAL_AREA_M2

__all__ = [
    "Point", "Polygon", "ReferencePolygon", "MeasurementResult", "MeasurementRecord",
    "LearningReference",
    "ApplicationError", "ValidationError", "ConfigError", "EditorStateError",
    "ServiceError", "DetectionError", "PersistenceError", "StorageCapacityError",
    "APP_NAME", "VERSION", "GRID_SIZE", "A4_REAL_AREA_M2",
]
