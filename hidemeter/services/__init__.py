"""Services package for measurement logic."""

from .calibration import ScaleCalibrator, calibrate, relative_calibrate
from .editor import EditorMode, EditorSession, EditorStep, VertexEditor
from .view_transform import ViewState, ViewTransform
from .storage import InMemoryStore, JsonFileStore, StorageBackend
from .learning_store import LearningReferenceStore
from .history_store import MeasurementHistory
from .gemini_service import GeminiService, RetryPolicy
from .measurement_service import MeasurementService

__all__ = [
    "ScaleCalibrator", "calibrate", "relative_calibrate",
    "EditorMode", "EditorSession", "EditorStep", "VertexEditor",
    "ViewState", "ViewTransform",
    "InMemoryStore", "JsonFileStore", "StorageBackend",
    "LearningReferenceStore", "MeasurementHistory",
    "GeminiService", "RetryPolicy", "MeasurementService",
]
