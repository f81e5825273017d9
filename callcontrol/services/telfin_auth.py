import logging
from datetime import timedelta
from typing import Optional

import requests
from sqlalchemy.orm import Session

from callcontrol.core.config import settings
from callcontrol.core.exceptions import ConfigurationError, OAuthError
from callcontrol.core.security import ensure_aware, utcnow
from callcontrol.models import TelfinConnection

logger = logging.getLogger(__name__)

DEFAULT_EXPIRES_IN = 3600


class TelfinTokenManager:
    """Client-credentials tokens for one organization's Telfin connection.

    The token lives on the connection row so it survives restarts; every
    caller re-checks expiry through :meth:`get_access_token`.
    """

    def __init__(self, db: Session, connection: TelfinConnection, session: Optional[requests.Session] = None):
        self.db = db
        self.connection = connection
        self.session = session or requests.Session()
        self.token_url = f"https://{settings.telfin_oauth_host}/oauth/token"

    def has_valid_token(self) -> bool:
        expiry = ensure_aware(self.connection.token_expiry)
        return bool(self.connection.access_token and expiry and utcnow() < expiry)

    def get_access_token(self) -> str:
        if self.has_valid_token():
            return self.connection.access_token
        return self.refresh_token()

    def refresh_token(self) -> str:
        connection = self.connection
        if not connection.client_id or not connection.client_secret:
            raise ConfigurationError(f"Telfin credentials are missing for organization {connection.org_id}")

        logger.info("Requesting Telfin access token for organization %s", connection.org_id)
        try:
            response = self.session.post(
                self.token_url,
                data={
                    "grant_type": "client_credentials",
                    "client_id": connection.client_id,
                    "client_secret": connection.client_secret,
                },
                headers={"Content-Type": "application/x-www-form-urlencoded"},
                timeout=settings.http_timeout_seconds,
            )
        except requests.RequestException as exc:
            raise OAuthError(description=f"Token endpoint unreachable: {exc}") from exc

        try:
            payload = response.json()
        except ValueError:
            payload = {}
        if not isinstance(payload, dict):
            payload = {}
        if not response.ok or not payload.get("access_token"):
            logger.error("Telfin token request failed with HTTP %s", response.status_code)
            raise OAuthError(
                error=payload.get("error"),
                description=payload.get("error_description") or (None if payload else response.text[:300]),
                status_code=response.status_code,
            )

        expires_in = int(payload.get("expires_in") or DEFAULT_EXPIRES_IN)
        lifetime = max(expires_in - settings.telfin_token_buffer_seconds, 0)
        connection.access_token = payload["access_token"]
        connection.token_expiry = utcnow() + timedelta(seconds=lifetime)
        self.db.commit()
        logger.info("Telfin token obtained for organization %s, expires in %ss", connection.org_id, expires_in)
        return connection.access_token

    def clear_tokens(self) -> None:
        self.connection.access_token = None
        self.connection.token_expiry = None
        self.db.commit()
        logger.info("Telfin tokens cleared for organization %s", self.connection.org_id)

    def token_diagnostics(self) -> dict:
        expiry = ensure_aware(self.connection.token_expiry)
        now = utcnow()
        return {
            "has_token": bool(self.connection.access_token),
            "token_expiry": expiry.isoformat() if expiry else None,
            "seconds_until_expiry": int((expiry - now).total_seconds()) if expiry else None,
            "is_valid": self.has_valid_token(),
        }
