from datetime import timedelta
from unittest.mock import MagicMock

import pytest

from callcontrol.core.exceptions import ConfigurationError, OAuthError
from callcontrol.core.security import ensure_aware, utcnow
from callcontrol.models import TelfinConnection
from callcontrol.services.telfin_auth import TelfinTokenManager
from callcontrol.tests.helpers import make_response


def test_cached_token_is_reused(db, telfin_connection):
    session = MagicMock()
    manager = TelfinTokenManager(db, telfin_connection, session=session)
    assert manager.get_access_token() == "cached-token"
    session.post.assert_not_called()


def test_expired_token_is_refreshed(db, telfin_connection):
    telfin_connection.token_expiry = utcnow() - timedelta(minutes=1)
    db.commit()
    session = MagicMock()
    session.post.return_value = make_response(200, json_data={"access_token": "fresh-token", "expires_in": 3600})

    manager = TelfinTokenManager(db, telfin_connection, session=session)
    assert manager.get_access_token() == "fresh-token"

    args, kwargs = session.post.call_args
    assert args[0] == "https://apiproxy.telphin.ru/oauth/token"
    assert kwargs["data"] == {
        "grant_type": "client_credentials",
        "client_id": "app-id",
        "client_secret": "app-secret",
    }
    db.refresh(telfin_connection)
    assert telfin_connection.access_token == "fresh-token"
    remaining = (ensure_aware(telfin_connection.token_expiry) - utcnow()).total_seconds()
    assert 3400 < remaining <= 3540


def test_rejected_credentials_raise_oauth_error(db, telfin_connection):
    telfin_connection.access_token = None
    telfin_connection.token_expiry = None
    db.commit()
    session = MagicMock()
    session.post.return_value = make_response(
        401, json_data={"error": "invalid_client", "error_description": "Bad client credentials"}
    )

    with pytest.raises(OAuthError) as excinfo:
        TelfinTokenManager(db, telfin_connection, session=session).get_access_token()
    error = excinfo.value
    assert error.error == "invalid_client"
    assert error.description == "Bad client credentials"
    assert error.status_code == 401
    assert error.code == "TELFIN-API-001"
    db.refresh(telfin_connection)
    assert telfin_connection.access_token is None


def test_unexpected_token_payload_raises_oauth_error(db, telfin_connection):
    telfin_connection.access_token = None
    telfin_connection.token_expiry = None
    db.commit()
    session = MagicMock()
    session.post.return_value = make_response(200, json_data=["unexpected"])

    with pytest.raises(OAuthError) as excinfo:
        TelfinTokenManager(db, telfin_connection, session=session).get_access_token()
    assert excinfo.value.status_code == 200
    assert "unexpected" in excinfo.value.description

def test_missing_credentials_fail_before_request():
    connection = TelfinConnection(org_id=1, client_id="app-id", client_secret="")
    session = MagicMock()
    with pytest.raises(ConfigurationError):
        TelfinTokenManager(MagicMock(), connection, session=session).refresh_token()
    session.post.assert_not_called()


def test_clear_tokens_forces_next_refresh(db, telfin_connection):
    manager = TelfinTokenManager(db, telfin_connection, session=MagicMock())
    assert manager.has_valid_token()
    manager.clear_tokens()
    assert not manager.has_valid_token()
    diagnostics = manager.token_diagnostics()
    assert diagnostics["has_token"] is False
    assert diagnostics["token_expiry"] is None
