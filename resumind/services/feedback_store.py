from __future__ import annotations

import logging

from pydantic import ValidationError

from resumind.normalize.feedback import normalize_feedback
from resumind.schemas.analysis import AnalysisRecord
from resumind.schemas.feedback import Feedback
from resumind.storage.kv_store import KeyValueStore

logger = logging.getLogger(__name__)

RECORD_PREFIX = "resume:"


def record_key(record_id: str) -> str:
    return f"{RECORD_PREFIX}{record_id}"


class FeedbackStore:
    def __init__(self, record_store: KeyValueStore):
        self._records = record_store

    def save_record(self, record: AnalysisRecord) -> None:
        self._records.set(record_key(record.id), record.to_json())

    def get_record(self, record_id: str) -> AnalysisRecord | None:
        raw = self._records.get(record_key(record_id))
        if not raw:
            return None
        try:
            return AnalysisRecord.model_validate_json(raw)
        except ValidationError as exc:
            logger.warning("record_unreadable id=%s: %s", record_id, exc)
            return None

    def get_feedback(self, record_id: str) -> Feedback | None:
        record = self.get_record(record_id)
        if record is None:
            return None
        return normalize_feedback(record.feedback)

    def list_records(self) -> list[AnalysisRecord]:
        records: list[AnalysisRecord] = []
        for key in self._records.list(RECORD_PREFIX):
            record = self.get_record(key[len(RECORD_PREFIX) :])
            if record is not None:
                records.append(record)
        return records
