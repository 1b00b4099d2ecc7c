"""Measurement workflow.

Ties the pieces together for one operator session: image preparation, the
Gemini detection (seeded with the learning reference), local recalibration
of detected polygons, the vertex editor, history persistence and the
learning feedback loop.
"""

import logging
import os
from typing import List, Optional, Union

import numpy as np

from ..config.settings import Config
from ..core.entities import MeasurementRecord, MeasurementResult
from ..core.exceptions import ValidationError
from ..core.logging_config import CorrelationContext
from ..utils.geometry import from_outline
from ..utils.image_utils import load_image, make_thumbnail, prepare_for_analysis
from .calibration import calibrate
from .editor import VertexEditor
from .gemini_service import GeminiService, RetryPolicy
from .history_store import MeasurementHistory
from .learning_store import LearningReferenceStore
from .report import export_csv as write_report
from .storage import JsonFileStore, StorageBackend
from .view_transform import ViewTransform

logger = logging.getLogger(__name__)


class MeasurementService:
    """High-level operations used by the CLI and the editor dialog."""

    def __init__(self, config: Config, detector: Optional[GeminiService] = None,
                 backend: Optional[StorageBackend] = None):
        """Initialize the workflow.

        Args:
            config: Application configuration
            detector: Detection client; built from ``config`` when omitted
            backend: Storage backend; a JsonFileStore under ``config.storage_dir`` when omitted
        """
        self.config = config
        self.backend = backend or JsonFileStore(config.storage_dir, config.storage_quota_bytes)
        self.history_store = MeasurementHistory(self.backend, key=config.history_file)
        self.learning_store = LearningReferenceStore(
            self.backend, min_points=config.learning_min_points, key=config.learning_file
        )
        self.detector = detector or GeminiService(
            api_key=config.gemini_api_key,
            model=config.gemini_model,
            temperature=config.gemini_temperature,
            max_tokens=config.gemini_max_tokens,
            timeout=config.gemini_timeout,
            retry_policy=RetryPolicy(config.detection_max_attempts, config.detection_backoff_seconds),
            target_points=config.gemini_target_points,
            explanation_language=config.explanation_language,
            jpeg_quality=config.jpeg_quality,
        )

        self.current_image: Optional[np.ndarray] = None
        self.current_image_name: str = ""
        self.current_thumbnail: Optional[str] = None
        self.edited_record: Optional[MeasurementRecord] = None

    # Images

    def open_image(self, path: str) -> np.ndarray:
        """Load, downscale and enhance ``path``; it becomes the current image."""
        raw = load_image(path, self.config.max_upload_bytes)
        prepared = prepare_for_analysis(
            raw,
            max_dimension=self.config.max_image_dimension,
            contrast=self.config.contrast_boost,
            saturation=self.config.saturation_boost,
        )
        self.current_image = prepared
        self.current_image_name = os.path.basename(path)
        self.current_thumbnail = make_thumbnail(prepared, self.config.thumbnail_size, self.config.jpeg_quality)
        logger.info(f"Opened {self.current_image_name} ({prepared.shape[1]}x{prepared.shape[0]})")
        return prepared

    def analyze_image(self, path: str) -> MeasurementResult:
        """Automatic measurement of the hide in ``path``.

        Raises:
            ValidationError: The file is missing, too large or not an image
            DetectionError: Detection failed after all retries
        """
        with CorrelationContext() as corr_id:
            logger.info(f"Analysis {corr_id} started for {path}")
            prepared = self.open_image(path)
            learning_reference = self.learning_store.retrieve()
            if learning_reference is not None:
                logger.info(f"Using learning reference with {len(learning_reference.target)} points")

            result = self.detector.analyze_hide(prepared, learning_reference)
            if self.config.recalibrate_detections:
                result = self.recalibrate(result)

            if result.is_detection_error:
                logger.warning(
                    f"Detection incomplete (A4: {result.detected_reference}, "
                    f"hide: {result.detected_target})"
                )
            return result

    def recalibrate(self, result: MeasurementResult) -> MeasurementResult:
        """Recompute the area of a detection from its own polygons.

        The model's estimate is kept when detection failed or the outlines
        cannot support a calibration.
        """
        if result.is_detection_error:
            return result
        reference = from_outline(result.reference_outline)
        area = calibrate(reference, result.target, self.config.reference_real_area_m2,
                         previous_area=result.area_m2)
        if area <= 0:
            return result

        logger.debug(f"Recalibrated area {result.area_m2:.4f} -> {area:.4f} m²")
        calibrated = result.copy()
        calibrated.area_m2 = area
        return calibrated

    # Editing

    def _new_view(self) -> ViewTransform:
        return ViewTransform(self.config.zoom_step, self.config.max_zoom)

    def _editor_options(self) -> dict:
        return {
            "reference_real_area_m2": self.config.reference_real_area_m2,
            "hit_radius": self.config.vertex_hit_radius,
        }

    def start_manual(self) -> VertexEditor:
        """Begin a manual trace from the blank manual result."""
        self.edited_record = None
        return VertexEditor.start_manual(view=self._new_view(), **self._editor_options())

    def start_edit(self, source: Union[MeasurementResult, MeasurementRecord]) -> VertexEditor:
        """Begin adjusting the vertices of a result or of a stored record.

        Saving an edit of a stored record reuses its image name and thumbnail,
        so the adjusted trace can be learned without reopening the photo.
        """
        if isinstance(source, MeasurementRecord):
            self.edited_record = source
            result = source.result
        else:
            self.edited_record = None
            result = source
        return VertexEditor.start_edit(result, view=self._new_view(), **self._editor_options())

    # History

    def save(self, source: Union[VertexEditor, MeasurementResult], image_name: Optional[str] = None,
             thumbnail_base64: Optional[str] = None) -> MeasurementRecord:
        """Finalize and store a measurement.

        Saving from an editor (manual trace or adjusted detection) also offers
        the trace to the learning store.

        Args:
            source: Open editor in DONE, or a result to store as-is
            image_name: Name shown in history; defaults to the current image
            thumbnail_base64: Learning thumbnail; defaults to the edited record's,
                then the current image's

        Raises:
            EditorStateError: The editor is not finished or already closed
        """
        edited = None
        if isinstance(source, VertexEditor):
            result = source.save()
            traced = True
            edited, self.edited_record = self.edited_record, None
        else:
            result = source
            traced = result.is_manual

        name = image_name or (edited.image_name if edited else "") or self.current_image_name or "sem_nome"
        thumbnail = (thumbnail_base64 or (edited.thumbnail_base64 if edited else "")
                     or self.current_thumbnail or "")
        record = MeasurementRecord.from_result(result, name, thumbnail_base64=thumbnail)
        if not self.history_store.add(record):
            logger.warning(f"Record {record.id} kept in memory only: {self.history_store.last_warning}")

        if traced:
            self.learning_store.capture(thumbnail, result.target)

        return record

    def history(self) -> List[MeasurementRecord]:
        return self.history_store.records()

    def get_record(self, record_id: str) -> MeasurementRecord:
        """Record with ``record_id`` (a unique prefix is accepted).

        Raises:
            ValidationError: No record, or the prefix is ambiguous
        """
        record = self.history_store.get(record_id)
        if record is not None:
            return record
        matches = [r for r in self.history_store.records() if r.id.startswith(record_id)]
        if len(matches) == 1:
            return matches[0]
        if not matches:
            raise ValidationError(f"No measurement with id '{record_id}'")
        raise ValidationError(f"Id prefix '{record_id}' matches {len(matches)} measurements")

    def delete_record(self, record_id: str) -> bool:
        deleted = self.history_store.delete(record_id)
        if deleted:
            logger.info(f"Deleted record {record_id}")
        return deleted

    def clear_history(self) -> bool:
        """Remove every record and the learning reference."""
        cleared = self.history_store.clear()
        self.learning_store.clear()
        return cleared

    def export_csv(self, path: str) -> int:
        return write_report(self.history_store.records(), path)
