"""Learning reference store.

Keeps the last confirmed, sufficiently detailed hide trace together with a
small thumbnail of the photo, so the next automatic detection can be shown
an example of what a good outline looks like.
"""

import logging
from typing import Optional

from ..core.constants import LEARNING_MIN_POINTS
from ..core.entities import LearningReference, Polygon
from ..core.exceptions import PersistenceError, ValidationError
from .storage import StorageBackend

logger = logging.getLogger(__name__)

LEARNING_KEY = "learning_reference"


class LearningReferenceStore:
    """Single-slot store for the most recent learning reference."""

    def __init__(self, backend: StorageBackend, min_points: int = LEARNING_MIN_POINTS,
                 key: str = LEARNING_KEY):
        """Initialize store.

        Args:
            backend: Storage backend the record is kept in
            min_points: Traces need more than this many points to be captured
            key: Storage key
        """
        self.backend = backend
        self.min_points = min_points
        self.key = key

    def capture(self, thumbnail_base64: str, target: Polygon) -> bool:
        """Store the pair, overwriting any previous reference.

        Returns:
            True if stored; False if the trace is too coarse, the thumbnail is
            missing, or the backend refused the write
        """
        if len(target) <= self.min_points:
            logger.debug(f"Trace has {len(target)} points (need > {self.min_points}); not captured")
            return False
        if not thumbnail_base64:
            logger.warning("No thumbnail available; learning reference not captured")
            return False

        reference = LearningReference(thumbnail_base64=thumbnail_base64, target=target)
        try:
            self.backend.set(self.key, reference.to_dict())
        except PersistenceError as e:
            logger.warning(f"Could not save learning reference: {e}")
            return False

        logger.info(f"Learning reference captured ({len(target)} points)")
        return True

    def retrieve(self) -> Optional[LearningReference]:
        """Most recent reference, or None if absent or unreadable."""
        try:
            data = self.backend.get(self.key)
        except PersistenceError as e:
            logger.warning(f"Learning reference unreadable, ignoring: {e}")
            return None

        if data is None:
            return None
        if not isinstance(data, dict):
            logger.warning("Learning reference has unexpected format, ignoring")
            return None

        try:
            return LearningReference.from_dict(data)
        except ValidationError as e:
            logger.warning(f"Learning reference corrupt, ignoring: {e}")
            return None

    def has_reference(self) -> bool:
        return self.retrieve() is not None

    def clear(self) -> None:
        try:
            self.backend.delete(self.key)
            logger.info("Learning reference cleared")
        except PersistenceError as e:
            logger.warning(f"Could not clear learning reference: {e}")
