import logging
import secrets
from dataclasses import dataclass
from datetime import timedelta
from typing import Optional

from sqlalchemy.orm import Session

from callcontrol.core.config import settings
from callcontrol.core.database import upsert
from callcontrol.core.exceptions import (
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    NotFoundError,
)
from callcontrol.core.security import ensure_aware, utcnow
from callcontrol.models import TelegramLink, TelegramSession, User

logger = logging.getLogger(__name__)


@dataclass
class TelegramUser:
    id: Optional[int] = None
    first_name: Optional[str] = None
    username: Optional[str] = None


@dataclass
class LinkResult:
    user_id: int
    role: str
    user_name: Optional[str]


def generate_session_code() -> str:
    # Telegram deep-link payloads allow [A-Za-z0-9_-] up to 64 chars.
    return secrets.token_urlsafe(16)


def telegram_url(code: str) -> str:
    return f"https://t.me/{settings.telegram_bot_username}?start={code}"


def create_session(db: Session, user: User) -> TelegramSession:
    db.query(TelegramSession).filter(
        TelegramSession.user_id == user.id,
        TelegramSession.used.is_(False),
    ).delete(synchronize_session=False)
    session = TelegramSession(
        session_code=generate_session_code(),
        user_id=user.id,
        org_id=user.org_id,
        user_name=user.name or user.username,
        user_role=user.role,
        expires_at=utcnow() + timedelta(minutes=settings.telegram_session_ttl_minutes),
        used=False,
    )
    db.add(session)
    db.commit()
    db.refresh(session)
    logger.info("Telegram pairing session created for user %s", user.id)
    return session


def consume_session(db: Session, code: str, chat_id: int, telegram_user: TelegramUser) -> LinkResult:
    session = db.query(TelegramSession).filter(TelegramSession.session_code == code).first()
    if session is None:
        raise NotFoundError("Code not found")
    if session.used:
        raise AlreadyUsedError("Code already used")
    if ensure_aware(session.expires_at) <= utcnow():
        raise ExpiredError("Code expired")

    existing = db.query(TelegramLink).filter(TelegramLink.chat_id == chat_id).first()
    if existing is not None and existing.active and existing.user_id != session.user_id:
        raise ConflictError("This Telegram account is already linked to another user")

    try:
        claimed = (
            db.query(TelegramSession)
            .filter(TelegramSession.id == session.id, TelegramSession.used.is_(False))
            .update({TelegramSession.used: True}, synchronize_session=False)
        )
        if not claimed:
            raise AlreadyUsedError("Code already used")

        db.query(TelegramLink).filter(
            TelegramLink.user_id == session.user_id,
            TelegramLink.active.is_(True),
        ).update({TelegramLink.active: False}, synchronize_session=False)

        upsert(
            db,
            TelegramLink,
            [
                {
                    "user_id": session.user_id,
                    "org_id": session.org_id,
                    "chat_id": chat_id,
                    "telegram_username": telegram_user.username,
                    "first_name": telegram_user.first_name,
                    "active": True,
                }
            ],
            conflict_columns=("chat_id",),
            update_columns=("user_id", "org_id", "telegram_username", "first_name", "active"),
        )
        db.commit()
    except Exception:
        db.rollback()
        raise
    logger.info("Telegram chat linked to user %s", session.user_id)
    return LinkResult(user_id=session.user_id, role=session.user_role, user_name=session.user_name)


def session_status(db: Session, code: str) -> dict:
    session = db.query(TelegramSession).filter(TelegramSession.session_code == code).first()
    if session is None:
        raise NotFoundError("Session not found")
    status = {
        "connected": False,
        "used": session.used,
        "expired": ensure_aware(session.expires_at) <= utcnow(),
    }
    if session.used:
        link = (
            db.query(TelegramLink)
            .filter(TelegramLink.user_id == session.user_id, TelegramLink.active.is_(True))
            .first()
        )
        if link is not None:
            status.update(
                connected=True,
                telegram_username=link.telegram_username,
                first_name=link.first_name,
            )
    return status


def get_link(db: Session, chat_id: int) -> Optional[TelegramLink]:
    return db.query(TelegramLink).filter(TelegramLink.chat_id == chat_id).first()


def unlink_chat(db: Session, chat_id: int) -> bool:
    updated = (
        db.query(TelegramLink)
        .filter(TelegramLink.chat_id == chat_id, TelegramLink.active.is_(True))
        .update({TelegramLink.active: False}, synchronize_session=False)
    )
    db.commit()
    return bool(updated)
