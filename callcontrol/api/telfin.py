from fastapi import APIRouter, Depends, HTTPException, status
from sqlalchemy.orm import Session
from callcontrol.core.database import get_db
from callcontrol.core.deps import require_admin
from callcontrol.models import TelfinCall, TelfinCallStatus, TelfinConnection, User
from callcontrol.schemas import TelfinCallOut, TelfinSyncRequest
from callcontrol.services.audit import log_event
from callcontrol.tasks import enqueue_materialization, enqueue_telfin_sync

router = APIRouter(prefix="/telfin", tags=["telfin"])


@router.post("/sync", status_code=status.HTTP_202_ACCEPTED)
def trigger_sync(payload: TelfinSyncRequest, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    connection = db.query(TelfinConnection).filter(TelfinConnection.org_id == admin.org_id).first()
    if not connection:
        raise HTTPException(status_code=404, detail="Telfin connection not configured")
    if payload.date_from and payload.date_to and payload.date_from > payload.date_to:
        raise HTTPException(status_code=400, detail="date_from must be before date_to")
    enqueue_telfin_sync(admin.org_id, payload.date_from, payload.date_to)
    log_event(db, "telfin_sync", "queued", user=admin)
    return {"status": "queued"}


@router.get("/calls", response_model=list[TelfinCallOut])
def list_staged_calls(
    processing_status: str | None = None,
    limit: int = 100,
    db: Session = Depends(get_db),
    admin: User = Depends(require_admin),
):
    query = db.query(TelfinCall).filter(TelfinCall.org_id == admin.org_id)
    if processing_status:
        query = query.filter(TelfinCall.processing_status == processing_status)
    return query.order_by(TelfinCall.start_time.desc()).limit(limit).all()


@router.post("/calls/{telfin_call_id}/materialize", status_code=status.HTTP_202_ACCEPTED)
def materialize(telfin_call_id: int, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    staged = (
        db.query(TelfinCall)
        .filter(TelfinCall.id == telfin_call_id, TelfinCall.org_id == admin.org_id)
        .first()
    )
    if not staged:
        raise HTTPException(status_code=404, detail="Telfin call not found")
    if staged.processing_status == TelfinCallStatus.PROCESSING:
        raise HTTPException(status_code=409, detail="Telfin call is already being materialized")
    # Manual requests may redo completed or skipped records.
    staged.processing_status = TelfinCallStatus.PENDING
    db.commit()
    enqueue_materialization(staged.id)
    return {"status": "queued"}
