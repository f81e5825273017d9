import logging
from dataclasses import dataclass, field
from typing import List, Optional

from sqlalchemy.orm import Session

from callcontrol.core.database import upsert
from callcontrol.core.exceptions import truncate
from callcontrol.models import Call, CallStatus, TelfinCall, TelfinCallStatus
from callcontrol.services.storage import AudioStorage
from callcontrol.services.telfin_client import TelfinClient

logger = logging.getLogger(__name__)

SOURCE_TELFIN = "telfin"
NO_RECORD_FEEDBACK = "Звонок без записи"
RETRYABLE_STATUSES = (TelfinCallStatus.PENDING, TelfinCallStatus.ERROR)


@dataclass
class MaterializeSummary:
    completed: int = 0
    skipped: int = 0
    failed: int = 0
    call_ids: List[int] = field(default_factory=list)


def storage_key(org_id: int, call_id: str) -> str:
    return f"{org_id}/{call_id}.mp3"


class CallRecordMaterializer:
    """Turns staged Telfin records into calls with durably stored audio."""

    def __init__(self, db: Session, client: TelfinClient, storage: Optional[AudioStorage] = None):
        self.db = db
        self.client = client
        self.storage = storage or AudioStorage()

    def _set_status(self, staged: TelfinCall, status: str, feedback: Optional[str] = None) -> None:
        staged.processing_status = status
        staged.processing_feedback = feedback
        self.db.commit()

    def claim(self, staged: TelfinCall) -> bool:
        """Move a pending or errored record to processing; False if another worker holds it."""
        claimed = (
            self.db.query(TelfinCall)
            .filter(TelfinCall.id == staged.id, TelfinCall.processing_status.in_(RETRYABLE_STATUSES))
            .update(
                {"processing_status": TelfinCallStatus.PROCESSING, "processing_feedback": None},
                synchronize_session=False,
            )
        )
        self.db.commit()
        return claimed == 1

    def materialize(self, staged: TelfinCall) -> Optional[Call]:
        if not self.claim(staged):
            logger.info("Telfin call %s is %s, not materializing", staged.call_id, staged.processing_status)
            return None
        if not staged.has_record or not staged.record_uuid:
            self._set_status(staged, TelfinCallStatus.SKIPPED, NO_RECORD_FEEDBACK)
            logger.info("Telfin call %s has no record, skipped", staged.call_id)
            return None

        staged_id = staged.id
        try:
            record_url = self.client.get_storage_url(staged.record_uuid)
            audio, content_type = self.client.download_audio(record_url)

            key = storage_key(staged.org_id, staged.call_id)
            self.storage.upload(key, audio, content_type)
            call = self._upsert_call(staged, self.storage.public_url(key))

            staged.materialized_call_id = call.id
            self._set_status(staged, TelfinCallStatus.COMPLETED)
        except Exception as exc:
            logger.error("Materializing Telfin call %s failed: %s", staged_id, exc)
            self.db.rollback()
            staged = self.db.get(TelfinCall, staged_id)
            self._set_status(staged, TelfinCallStatus.ERROR, truncate(exc, 1000))
            raise
        logger.info("Telfin call %s materialized as call %s", staged.call_id, call.id)
        return call

    def _upsert_call(self, staged: TelfinCall, audio_url: str) -> Call:
        upsert(
            self.db,
            Call,
            [
                {
                    "org_id": staged.org_id,
                    "audio_file_url": audio_url,
                    "date": staged.start_time,
                    "source": SOURCE_TELFIN,
                    "source_call_id": staged.call_id,
                    "processing_status": CallStatus.PENDING,
                }
            ],
            conflict_columns=("org_id", "source", "source_call_id"),
            update_columns=("audio_file_url", "date"),
        )
        return (
            self.db.query(Call)
            .filter(
                Call.org_id == staged.org_id,
                Call.source == SOURCE_TELFIN,
                Call.source_call_id == staged.call_id,
            )
            .one()
        )

    def materialize_pending(self, org_id: int, limit: Optional[int] = None) -> MaterializeSummary:
        query = (
            self.db.query(TelfinCall.id)
            .filter(
                TelfinCall.org_id == org_id,
                TelfinCall.processing_status.in_(RETRYABLE_STATUSES),
            )
            .order_by(TelfinCall.start_time)
        )
        if limit:
            query = query.limit(limit)
        staged_ids = [row.id for row in query.all()]

        summary = MaterializeSummary()
        for staged_id in staged_ids:
            staged = self.db.get(TelfinCall, staged_id)
            try:
                call = self.materialize(staged)
            except Exception:
                summary.failed += 1
                logger.exception("Telfin call %s left in error state", staged_id)
                continue
            if call is None:
                summary.skipped += 1
            else:
                summary.completed += 1
                summary.call_ids.append(call.id)
        logger.info(
            "Materialization for organization %s: %s completed, %s skipped, %s failed",
            org_id,
            summary.completed,
            summary.skipped,
            summary.failed,
        )
        return summary
