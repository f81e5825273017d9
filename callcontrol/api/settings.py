from fastapi import APIRouter, Depends, HTTPException
from sqlalchemy.orm import Session
from callcontrol.api.errors import to_http_error
from callcontrol.core.database import get_db
from callcontrol.core.deps import require_admin
from callcontrol.core.exceptions import CallControlError
from callcontrol.models import TelfinConnection, User
from callcontrol.schemas import TelfinSettingsPayload, TelfinSettingsResponse
from callcontrol.services.audit import log_event
from callcontrol.services.telfin_auth import TelfinTokenManager

router = APIRouter(prefix="/settings/telfin", tags=["settings"])


def _get_connection(db: Session, org_id: int) -> TelfinConnection | None:
    return db.query(TelfinConnection).filter(TelfinConnection.org_id == org_id).first()


def _to_response(connection: TelfinConnection) -> TelfinSettingsResponse:
    return TelfinSettingsResponse(
        id=connection.id,
        org_id=connection.org_id,
        client_id=connection.client_id,
        telfin_client_id=connection.telfin_client_id,
        has_token=bool(connection.access_token),
        token_expiry=connection.token_expiry,
        last_sync_at=connection.last_sync_at,
        last_error=connection.last_error,
    )


@router.get("", response_model=TelfinSettingsResponse | None)
def get_settings(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    connection = _get_connection(db, admin.org_id)
    return _to_response(connection) if connection else None


@router.put("", response_model=TelfinSettingsResponse)
def update_settings(payload: TelfinSettingsPayload, db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    connection = _get_connection(db, admin.org_id)
    if not connection:
        connection = TelfinConnection(org_id=admin.org_id)
        db.add(connection)
    if connection.client_id != payload.client_id or connection.client_secret != payload.client_secret:
        connection.access_token = None
        connection.token_expiry = None
    connection.client_id = payload.client_id
    connection.client_secret = payload.client_secret
    connection.telfin_client_id = payload.telfin_client_id or connection.telfin_client_id
    db.commit()
    log_event(db, "update_telfin_settings", "success", user=admin)
    return _to_response(connection)


@router.post("/test")
def test_settings(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    connection = _get_connection(db, admin.org_id)
    if not connection:
        return {"status": "missing"}
    manager = TelfinTokenManager(db, connection)
    try:
        manager.get_access_token()
    except CallControlError as exc:
        log_event(db, "test_telfin_settings", "failed", exc.code, user=admin)
        raise to_http_error(exc) from exc
    log_event(db, "test_telfin_settings", "success", user=admin)
    return {"status": "ok", "token": manager.token_diagnostics()}


@router.post("/logout")
def logout(db: Session = Depends(get_db), admin: User = Depends(require_admin)):
    connection = _get_connection(db, admin.org_id)
    if not connection:
        raise HTTPException(status_code=404, detail="Telfin connection not configured")
    TelfinTokenManager(db, connection).clear_tokens()
    log_event(db, "telfin_logout", "success", user=admin)
    return {"status": "ok"}
