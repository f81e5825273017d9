import logging

from fastapi import APIRouter, Depends, Header, HTTPException, status
from sqlalchemy.orm import Session

from callcontrol.api.errors import to_http_error
from callcontrol.core.config import settings
from callcontrol.core.database import get_db
from callcontrol.core.deps import get_current_user
from callcontrol.core.exceptions import CallControlError
from callcontrol.models import User
from callcontrol.schemas import TelegramSessionOut, TelegramSessionStatus
from callcontrol.services import telegram_linker
from callcontrol.services.telegram_bot import TelegramBotClient, handle_update

router = APIRouter(prefix="/telegram", tags=["telegram"])
logger = logging.getLogger(__name__)


def get_bot() -> TelegramBotClient:
    return TelegramBotClient()


@router.post("/sessions", response_model=TelegramSessionOut, status_code=status.HTTP_201_CREATED)
def start_session(db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    session = telegram_linker.create_session(db, user)
    return TelegramSessionOut(
        session_code=session.session_code,
        telegram_url=telegram_linker.telegram_url(session.session_code),
        expires_at=session.expires_at,
    )


@router.get("/sessions/{code}/status", response_model=TelegramSessionStatus)
def get_session_status(code: str, db: Session = Depends(get_db), user: User = Depends(get_current_user)):
    try:
        return TelegramSessionStatus(**telegram_linker.session_status(db, code))
    except CallControlError as exc:
        raise to_http_error(exc) from exc


@router.post("/webhook")
def webhook(
    update: dict,
    db: Session = Depends(get_db),
    bot: TelegramBotClient = Depends(get_bot),
    secret_token: str | None = Header(default=None, alias="X-Telegram-Bot-Api-Secret-Token"),
):
    if settings.telegram_webhook_secret and secret_token != settings.telegram_webhook_secret:
        raise HTTPException(status_code=status.HTTP_403_FORBIDDEN, detail="Invalid webhook secret")
    result = handle_update(db, update)
    if result is None:
        return {"ok": True}
    chat_id, reply = result
    bot.send_message(chat_id, reply)
    return {"ok": True}
