import logging
import uuid
from pathlib import PurePath

from fastapi import APIRouter, Depends, File, Form, HTTPException, UploadFile, status
from sqlalchemy.orm import Session

from callcontrol.api.errors import to_http_error
from callcontrol.core.database import get_db
from callcontrol.core.deps import get_current_user, require_writer
from callcontrol.core.exceptions import CallControlError
from callcontrol.models import Call, CallStatus, User
from callcontrol.schemas import CallOut, CallStatusOut, PaginatedCalls
from callcontrol.services.call_processing import get_call_status
from callcontrol.services.storage import AudioStorage
from callcontrol.tasks import enqueue_call_processing

router = APIRouter(prefix="/calls", tags=["calls"])
logger = logging.getLogger(__name__)


def get_storage() -> AudioStorage:
    return AudioStorage()


@router.post("/upload", response_model=CallOut, status_code=status.HTTP_201_CREATED)
def upload_call(
    audio: UploadFile = File(...),
    manager_id: int | None = Form(default=None),
    db: Session = Depends(get_db),
    user: User = Depends(require_writer),
    storage: AudioStorage = Depends(get_storage),
):
    if manager_id is not None:
        manager = db.get(User, manager_id)
        if manager is None or manager.org_id != user.org_id:
            raise HTTPException(status_code=404, detail="Manager not found")
    data = audio.file.read()
    if not data:
        raise HTTPException(status_code=400, detail="No audio file provided")
    filename = PurePath(audio.filename or "audio.mp3").name
    key = f"calls/{user.org_id}/{uuid.uuid4().hex}-{filename}"
    try:
        storage.upload(key, data, audio.content_type or "audio/mpeg")
    except CallControlError as exc:
        raise to_http_error(exc) from exc

    call = Call(
        org_id=user.org_id,
        manager_id=manager_id or user.id,
        audio_file_url=storage.public_url(key),
        processing_status=CallStatus.PENDING,
        source="upload",
    )
    db.add(call)
    db.commit()
    db.refresh(call)
    logger.info("Call %s uploaded by user %s", call.id, user.id)
    enqueue_call_processing(call.id)
    return call


@router.get("", response_model=PaginatedCalls)
def list_calls(
    processing_status: str | None = None,
    source: str | None = None,
    page: int = 1,
    page_size: int = 20,
    db: Session = Depends(get_db),
    user: User = Depends(get_current_user),
):
    query = db.query(Call).filter(Call.org_id == user.org_id)
    if processing_status:
        query = query.filter(Call.processing_status == processing_status)
    if source:
        query = query.filter(Call.source == source)
    total = query.count()
    items = query.order_by(Call.date.desc(), Call.id.desc()).offset((page - 1) * page_size).limit(page_size).all()
    return PaginatedCalls(items=items, total=total, page=page, page_size=page_size)


@router.get("/{call_id}", response_model=CallOut)
def get_call(call_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return get_call_status(db, user.org_id, call_id)
    except CallControlError as exc:
        raise to_http_error(exc) from exc


@router.get("/{call_id}/status", response_model=CallStatusOut)
def call_status(call_id: int, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return get_call_status(db, user.org_id, call_id)
    except CallControlError as exc:
        raise to_http_error(exc) from exc


@router.post("/{call_id}/process", response_model=CallStatusOut, status_code=status.HTTP_202_ACCEPTED)
def reprocess_call(call_id: int, db: Session = Depends(get_db), user: User = Depends(require_writer)):
    try:
        call = get_call_status(db, user.org_id, call_id)
    except CallControlError as exc:
        raise to_http_error(exc) from exc
    if call.processing_status == CallStatus.PROCESSING:
        raise HTTPException(status_code=409, detail="Call is already being processed")
    enqueue_call_processing(call.id)
    return call
