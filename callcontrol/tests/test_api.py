from unittest.mock import MagicMock, patch

from callcontrol.api.telegram import get_bot
from callcontrol.core.config import settings
from callcontrol.core.security import create_access_token, hash_password
from callcontrol.main import app
from callcontrol.models import Call, CallStatus, Organization, TelfinCall, TelfinCallStatus, User
from callcontrol.services import telegram_linker
from callcontrol.tests.helpers import auth_headers


def test_health(client):
    assert client.get("/health").json() == {"status": "ok"}


def test_login_success(client, admin):
    response = client.post("/auth/login", json={"username": "admin", "password": "adminpassword"})
    assert response.status_code == 200
    assert "access_token" in response.json()


def test_login_failure(client, admin):
    response = client.post("/auth/login", json={"username": "admin", "password": "wrong-password"})
    assert response.status_code == 401


def test_calls_endpoint_requires_auth(client):
    assert client.get("/calls").status_code == 401


def test_operator_cannot_create_user(client, operator):
    response = client.post(
        "/users",
        headers=auth_headers(operator),
        json={"username": "newuser", "password": "password123", "role": "operator"},
    )
    assert response.status_code == 403


def test_admin_creates_user_in_own_organization(client, admin):
    response = client.post(
        "/users",
        headers=auth_headers(admin),
        json={"username": "newuser", "password": "password123", "role": "manager"},
    )
    assert response.status_code == 200
    assert response.json()["org_id"] == admin.org_id


def test_upload_creates_pending_call_and_enqueues(client, db, operator):
    with patch("callcontrol.api.calls.enqueue_call_processing") as enqueue:
        response = client.post(
            "/calls/upload",
            headers=auth_headers(operator),
            files={"audio": ("call.mp3", b"ID3audio", "audio/mpeg")},
        )
    assert response.status_code == 201
    body = response.json()
    assert body["processing_status"] == CallStatus.PENDING
    assert body["manager_id"] == operator.id
    assert body["audio_file_url"].startswith(f"http://testserver/media/calls/{operator.org_id}/")
    assert body["audio_file_url"].endswith("-call.mp3")
    enqueue.assert_called_once_with(body["id"])


def test_upload_rejects_manager_from_another_organization(client, db, operator):
    other_org = Organization(name="Other")
    db.add(other_org)
    db.flush()
    stranger = User(org_id=other_org.id, username="stranger", hashed_password=hash_password("strangerpassword"), role="manager")
    db.add(stranger)
    db.commit()

    with patch("callcontrol.api.calls.enqueue_call_processing") as enqueue:
        response = client.post(
            "/calls/upload",
            headers=auth_headers(operator),
            data={"manager_id": str(stranger.id)},
            files={"audio": ("call.mp3", b"ID3audio", "audio/mpeg")},
        )
    assert response.status_code == 404
    enqueue.assert_not_called()
    assert db.query(Call).count() == 0

def test_upload_without_content_is_rejected(client, operator):
    with patch("callcontrol.api.calls.enqueue_call_processing") as enqueue:
        response = client.post(
            "/calls/upload",
            headers=auth_headers(operator),
            files={"audio": ("empty.mp3", b"", "audio/mpeg")},
        )
    assert response.status_code == 400
    enqueue.assert_not_called()


def _call(db, org_id, **fields):
    call = Call(org_id=org_id, audio_file_url="http://testserver/media/1.mp3", **fields)
    db.add(call)
    db.commit()
    db.refresh(call)
    return call


def test_call_status_and_listing(client, db, operator):
    call = _call(db, operator.org_id, processing_status=CallStatus.FAILED, error_code="NEXARA-002", error_message="boom")
    headers = auth_headers(operator)

    status = client.get(f"/calls/{call.id}/status", headers=headers).json()
    assert status["processing_status"] == "failed"
    assert status["error_code"] == "NEXARA-002"

    listing = client.get("/calls", headers=headers, params={"processing_status": "failed"}).json()
    assert listing["total"] == 1
    assert listing["items"][0]["id"] == call.id


def test_calls_of_other_organizations_are_hidden(client, db, operator):
    other = _call(db, operator.org_id + 100)
    response = client.get(f"/calls/{other.id}", headers=auth_headers(operator))
    assert response.status_code == 404
    assert response.json()["detail"]["code"] == "NOT-FOUND"


def test_reprocess_rejects_call_in_progress(client, db, operator):
    busy = _call(db, operator.org_id, processing_status=CallStatus.PROCESSING)
    failed = _call(db, operator.org_id, processing_status=CallStatus.FAILED)
    headers = auth_headers(operator)
    with patch("callcontrol.api.calls.enqueue_call_processing") as enqueue:
        assert client.post(f"/calls/{busy.id}/process", headers=headers).status_code == 409
        assert client.post(f"/calls/{failed.id}/process", headers=headers).status_code == 202
    enqueue.assert_called_once_with(failed.id)


def test_telfin_settings_round_trip(client, admin, operator):
    payload = {"client_id": "app-id", "client_secret": "app-secret"}
    assert client.put("/settings/telfin", headers=auth_headers(operator), json=payload).status_code == 403

    response = client.put("/settings/telfin", headers=auth_headers(admin), json=payload)
    assert response.status_code == 200
    body = response.json()
    assert body["client_id"] == "app-id"
    assert body["has_token"] is False
    assert "client_secret" not in body
    assert client.get("/settings/telfin", headers=auth_headers(admin)).json()["client_id"] == "app-id"


def test_telfin_sync_requires_connection(client, admin):
    with patch("callcontrol.api.telfin.enqueue_telfin_sync") as enqueue:
        response = client.post("/telfin/sync", headers=auth_headers(admin), json={})
    assert response.status_code == 404
    enqueue.assert_not_called()


def test_telfin_sync_is_queued(client, admin, telfin_connection):
    with patch("callcontrol.api.telfin.enqueue_telfin_sync") as enqueue:
        response = client.post(
            "/telfin/sync",
            headers=auth_headers(admin),
            json={"date_from": "2024-05-01T00:00:00Z", "date_to": "2024-05-02T00:00:00Z"},
        )
    assert response.status_code == 202
    org_id, date_from, date_to = enqueue.call_args.args
    assert org_id == admin.org_id
    assert date_from < date_to


def test_staged_calls_listing_and_materialize(client, db, admin, telfin_connection):
    staged = TelfinCall(org_id=admin.org_id, call_id="c1", has_record=True, record_uuid="rec-c1", raw_payload={})
    db.add(staged)
    db.commit()
    headers = auth_headers(admin)

    listing = client.get("/telfin/calls", headers=headers).json()
    assert [row["call_id"] for row in listing] == ["c1"]

    with patch("callcontrol.api.telfin.enqueue_materialization") as enqueue:
        assert client.post(f"/telfin/calls/{staged.id}/materialize", headers=headers).status_code == 202
        assert client.post("/telfin/calls/9999/materialize", headers=headers).status_code == 404
    enqueue.assert_called_once_with(staged.id)


def test_materialize_request_requeues_completed_but_not_busy_records(client, db, admin, telfin_connection):
    done = TelfinCall(org_id=admin.org_id, call_id="done", processing_status=TelfinCallStatus.COMPLETED, raw_payload={})
    busy = TelfinCall(org_id=admin.org_id, call_id="busy", processing_status=TelfinCallStatus.PROCESSING, raw_payload={})
    db.add_all([done, busy])
    db.commit()
    headers = auth_headers(admin)

    with patch("callcontrol.api.telfin.enqueue_materialization") as enqueue:
        assert client.post(f"/telfin/calls/{busy.id}/materialize", headers=headers).status_code == 409
        assert client.post(f"/telfin/calls/{done.id}/materialize", headers=headers).status_code == 202
    enqueue.assert_called_once_with(done.id)
    db.refresh(done)
    assert done.processing_status == TelfinCallStatus.PENDING


def test_telegram_pairing_through_webhook(client, db, operator):
    bot = MagicMock()
    app.dependency_overrides[get_bot] = lambda: bot

    created = client.post("/telegram/sessions", headers=auth_headers(operator))
    assert created.status_code == 201
    code = created.json()["session_code"]
    assert created.json()["telegram_url"] == telegram_linker.telegram_url(code)

    update = {
        "update_id": 1,
        "message": {"chat": {"id": 4242}, "from": {"id": 4242, "first_name": "Olga"}, "text": f"/start {code}"},
    }
    assert client.post("/telegram/webhook", json=update).json() == {"ok": True}
    chat_id, reply = bot.send_message.call_args.args
    assert chat_id == 4242
    assert "Olga" in reply

    status = client.get(f"/telegram/sessions/{code}/status", headers=auth_headers(operator)).json()
    assert status["connected"] is True


def test_unknown_session_status_is_404(client, operator):
    response = client.get("/telegram/sessions/missing/status", headers=auth_headers(operator))
    assert response.status_code == 404


def test_webhook_checks_secret(client, monkeypatch):
    monkeypatch.setattr(settings, "telegram_webhook_secret", "s3cret")
    app.dependency_overrides[get_bot] = lambda: MagicMock()
    update = {"message": {"chat": {"id": 1}, "text": "/help"}}

    assert client.post("/telegram/webhook", json=update).status_code == 403
    response = client.post(
        "/telegram/webhook",
        json=update,
        headers={"X-Telegram-Bot-Api-Secret-Token": "s3cret"},
    )
    assert response.status_code == 200


def test_ready_reports_each_dependency(client):
    response = client.get("/ready")
    body = response.json()
    assert body["checks"]["database"] is True
    assert body["checks"]["storage"] is True
    # no broker listens in tests
    assert body["checks"]["broker"] is False
    assert response.status_code == 503


def test_token_from_another_organization_is_rejected(client, operator):
    token = create_access_token(operator.username, operator.org_id + 1, operator.role)
    response = client.get("/users/me", headers={"Authorization": f"Bearer {token}"})
    assert response.status_code == 401


def test_viewer_cannot_upload(client, db, organization):
    viewer = User(org_id=organization.id, username="viewer", hashed_password=hash_password("viewerpassword"), role="viewer")
    db.add(viewer)
    db.commit()
    response = client.post(
        "/calls/upload",
        headers=auth_headers(viewer),
        files={"audio": ("call.mp3", b"ID3audio", "audio/mpeg")},
    )
    assert response.status_code == 403
