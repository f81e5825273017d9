import logging
from datetime import datetime
from typing import Optional

from celery import shared_task
from sqlalchemy.orm import Session

from callcontrol.core.database import SessionLocal
from callcontrol.core.exceptions import UpstreamError
from callcontrol.models import TelfinCall, TelfinCallStatus, TelfinConnection
from callcontrol.services.call_processing import CallProcessor
from callcontrol.services.telegram_bot import notify_call_completed
from callcontrol.services.telfin_auth import TelfinTokenManager
from callcontrol.services.telfin_client import TelfinClient
from callcontrol.services.telfin_materializer import CallRecordMaterializer
from callcontrol.services.telfin_sync import sync_call_history

logger = logging.getLogger(__name__)


def _parse(value: Optional[str]) -> Optional[datetime]:
    return datetime.fromisoformat(value) if value else None


@shared_task(
    name="callcontrol.tasks.process_call",
    bind=True,
    autoretry_for=(UpstreamError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def process_call(self, call_id: int, audio_url: Optional[str] = None):
    db: Session = SessionLocal()
    try:
        call = CallProcessor(db).process_call(call_id, audio_url)
        notify_call_completed(db, call)
        return {"call_id": call.id, "status": call.processing_status}
    finally:
        db.close()


@shared_task(
    name="callcontrol.tasks.materialize_telfin_call",
    bind=True,
    autoretry_for=(UpstreamError,),
    retry_backoff=True,
    retry_kwargs={"max_retries": 3},
)
def materialize_telfin_call(self, telfin_call_id: int):
    db: Session = SessionLocal()
    try:
        staged = db.get(TelfinCall, telfin_call_id)
        if staged is None:
            return None
        connection = db.query(TelfinConnection).filter(TelfinConnection.org_id == staged.org_id).first()
        if connection is None:
            logger.warning("No Telfin connection for organization %s", staged.org_id)
            return None
        client = TelfinClient(TelfinTokenManager(db, connection))
        call = CallRecordMaterializer(db, client).materialize(staged)
        if call is None:
            return None
        process_call.delay(call.id)
        return call.id
    finally:
        db.close()


@shared_task(name="callcontrol.tasks.sync_telfin_calls", bind=True)
def sync_telfin_calls(self, org_id: Optional[int] = None, date_from: Optional[str] = None, date_to: Optional[str] = None):
    db: Session = SessionLocal()
    try:
        query = db.query(TelfinConnection)
        if org_id is not None:
            query = query.filter(TelfinConnection.org_id == org_id)
        synced = 0
        errors = 0
        queued = 0
        for connection in query.all():
            try:
                sync_call_history(db, connection, _parse(date_from), _parse(date_to))
                synced += 1
            except Exception:
                errors += 1
                logger.exception("Telfin sync failed for organization %s", connection.org_id)
                continue
            staged_ids = (
                db.query(TelfinCall.id)
                .filter(
                    TelfinCall.org_id == connection.org_id,
                    TelfinCall.processing_status.in_((TelfinCallStatus.PENDING, TelfinCallStatus.ERROR)),
                )
                .all()
            )
            for row in staged_ids:
                materialize_telfin_call.delay(row.id)
                queued += 1
        return {"synced": synced, "errors": errors, "queued": queued}
    finally:
        db.close()


def enqueue_call_processing(call_id: int) -> None:
    process_call.delay(call_id)


def enqueue_telfin_sync(org_id: int, date_from: Optional[datetime] = None, date_to: Optional[datetime] = None) -> None:
    sync_telfin_calls.delay(
        org_id,
        date_from.isoformat() if date_from else None,
        date_to.isoformat() if date_to else None,
    )


def enqueue_materialization(telfin_call_id: int) -> None:
    materialize_telfin_call.delay(telfin_call_id)
