import logging
from typing import Optional

import requests
from sqlalchemy.orm import Session

from callcontrol.core.config import settings
from callcontrol.core.exceptions import (
    AlreadyUsedError,
    ConflictError,
    ExpiredError,
    NotFoundError,
)
from callcontrol.models import Call, TelegramLink, User
from callcontrol.services import telegram_linker
from callcontrol.services.telegram_linker import TelegramUser

logger = logging.getLogger(__name__)

CONNECT_HINT = "Настройки → Интеграции → Подключить Telegram бот"

ROLE_NAMES = {
    "superadmin": "Суперадмин",
    "admin": "Администратор",
    "manager": "Менеджер",
    "operator": "Оператор",
    "viewer": "Наблюдатель",
}


def role_display_name(role: Optional[str]) -> str:
    return ROLE_NAMES.get(role or "", "Пользователь")


def friendly_name(user: TelegramUser) -> str:
    return user.first_name or (f"@{user.username}" if user.username else "друг")


class TelegramBotClient:
    def __init__(self, token: Optional[str] = None, session: Optional[requests.Session] = None):
        self.token = token if token is not None else settings.telegram_bot_token
        self.session = session or requests.Session()

    def send_message(self, chat_id: int, text: str, parse_mode: str = "HTML") -> bool:
        if not self.token:
            logger.warning("Telegram bot token is not configured, message to %s dropped", chat_id)
            return False
        try:
            response = self.session.post(
                f"https://api.telegram.org/bot{self.token}/sendMessage",
                json={"chat_id": chat_id, "text": text, "parse_mode": parse_mode},
                timeout=settings.http_timeout_seconds,
            )
        except requests.RequestException as exc:
            logger.error("Telegram API unreachable: %s", exc)
            return False
        if not response.ok:
            logger.error("Telegram API error %s: %s", response.status_code, response.text[:300])
            return False
        return True


def handle_start(db: Session, chat_id: int, text: str, user: TelegramUser) -> str:
    parts = text.split()
    name = friendly_name(user)
    if len(parts) > 1:
        try:
            result = telegram_linker.consume_session(db, parts[1], chat_id, user)
        except (NotFoundError, ExpiredError, AlreadyUsedError):
            return f"❌ Неверный или истекший код подключения.\n\nСгенерируйте новую ссылку в CallControl:\n{CONNECT_HINT}"
        except ConflictError:
            return "⚠️ Этот Telegram-аккаунт уже привязан к другому пользователю."
        return (
            f"Привет, {name}! 👋\n✅ Telegram подключён к CallControl как "
            f"{role_display_name(result.role)}.\n\nИспользуйте /help для просмотра команд."
        )

    link = telegram_linker.get_link(db, chat_id)
    if link is not None and link.active:
        return f"👋 Привет снова, {name}!\n\n✅ Ваш Telegram уже подключён к CallControl."
    return f"🤖 Добро пожаловать в CallControl, {name}!\n\nДля подключения получите ссылку:\n{CONNECT_HINT}"


def handle_stop(db: Session, chat_id: int, user: TelegramUser) -> str:
    if telegram_linker.unlink_chat(db, chat_id):
        return f"👋 До свидания, {friendly_name(user)}!\n\n❌ Уведомления отключены."
    return f"❓ Активное подключение не найдено.\n\n{CONNECT_HINT}"


def handle_status(db: Session, chat_id: int, user: TelegramUser) -> str:
    link = telegram_linker.get_link(db, chat_id)
    if link is None:
        return f"❓ Аккаунт не подключен.\n\n{CONNECT_HINT}"
    owner = db.get(User, link.user_id)
    status = "✅ Активен" if link.active else "❌ Отключен"
    username = f"@{link.telegram_username}" if link.telegram_username else "не указан"
    return (
        f"📊 Статус подключения: {status}\n\n"
        f"👤 Пользователь: {friendly_name(user)}\n"
        f"🎭 Роль: {role_display_name(owner.role if owner else None)}\n"
        f"🏷️ Username: {username}"
    )


def help_text(user: TelegramUser) -> str:
    return (
        f"📋 Доступные команды, {friendly_name(user)}:\n\n"
        "/start - Подключить аккаунт CallControl\n"
        "/stop - Отключить уведомления\n"
        "/status - Проверить статус подключения\n"
        "/help - Показать эту справку"
    )


def handle_update(db: Session, update: dict) -> Optional[tuple[int, str]]:
    """Return ``(chat_id, reply)`` for a bot update, or None when there is nothing to answer."""
    message = update.get("message") or {}
    chat_id = (message.get("chat") or {}).get("id")
    text = (message.get("text") or "").strip()
    if chat_id is None or not text:
        return None
    sender = message.get("from") or {}
    user = TelegramUser(id=sender.get("id"), first_name=sender.get("first_name"), username=sender.get("username"))

    command = text.split()[0].split("@")[0].lower()
    logger.info("Telegram command %s from chat %s", command, chat_id)
    if command == "/start":
        reply = handle_start(db, chat_id, text, user)
    elif command == "/stop":
        reply = handle_stop(db, chat_id, user)
    elif command == "/status":
        reply = handle_status(db, chat_id, user)
    elif command == "/help":
        reply = help_text(user)
    else:
        reply = f'❓ Неизвестная команда: "{text}"\n\nИспользуйте /help для просмотра команд.'
    return chat_id, reply


def notify_call_completed(db: Session, call: Call, bot: Optional[TelegramBotClient] = None) -> int:
    bot = bot or TelegramBotClient()
    links = (
        db.query(TelegramLink)
        .filter(TelegramLink.org_id == call.org_id, TelegramLink.active.is_(True))
        .all()
    )
    text = (
        f"📞 Звонок #{call.id} обработан\n"
        f"Общая оценка: <b>{call.general_score}</b>/10\n"
        f"{call.summary or ''}"
    )
    return sum(1 for link in links if bot.send_message(link.chat_id, text))
