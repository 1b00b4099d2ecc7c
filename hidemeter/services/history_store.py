"""Measurement history persistence."""

import logging
from typing import List, Optional

from ..core.entities import MeasurementRecord
from ..core.exceptions import PersistenceError, ValidationError
from .storage import StorageBackend

logger = logging.getLogger(__name__)

HISTORY_KEY = "measurement_history"


class MeasurementHistory:
    """Ordered list of finalized records, newest first.

    Records are loaded once; storage failures never raise. Writes that fail
    (e.g. quota exceeded) leave the in-memory list updated and are reported
    through the return value and a warning.
    """

    def __init__(self, backend: StorageBackend, key: str = HISTORY_KEY):
        self.backend = backend
        self.key = key
        self._records: List[MeasurementRecord] = self._load()
        self.last_warning: Optional[str] = None

    def _load(self) -> List[MeasurementRecord]:
        try:
            data = self.backend.get(self.key)
        except PersistenceError as e:
            logger.error(f"Failed to parse history, starting empty: {e}")
            return []

        if data is None:
            return []
        if not isinstance(data, list):
            logger.error("Stored history is not a list, starting empty")
            return []

        records = []
        for item in data:
            try:
                records.append(MeasurementRecord.from_dict(item))
            except (ValidationError, AttributeError) as e:
                logger.warning(f"Skipping corrupt history record: {e}")
        logger.info(f"Loaded {len(records)} history records")
        return records

    def _persist(self) -> bool:
        try:
            self.backend.set(self.key, [r.to_dict() for r in self._records])
            self.last_warning = None
            return True
        except PersistenceError as e:
            self.last_warning = f"History could not be saved: {e}"
            logger.warning(self.last_warning)
            return False

    def records(self) -> List[MeasurementRecord]:
        return list(self._records)

    def __len__(self) -> int:
        return len(self._records)

    def get(self, record_id: str) -> Optional[MeasurementRecord]:
        for record in self._records:
            if record.id == record_id:
                return record
        return None

    def add(self, record: MeasurementRecord) -> bool:
        self._records.insert(0, record)
        logger.info(f"History record added: {record.image_name} ({record.area_m2:.4f} m²)")
        return self._persist()

    def delete(self, record_id: str) -> bool:
        before = len(self._records)
        self._records = [r for r in self._records if r.id != record_id]
        if len(self._records) == before:
            return False
        return self._persist()

    def clear(self) -> bool:
        self._records = []
        logger.info("History cleared")
        return self._persist()
