import logging
from pathlib import Path

import redis
from fastapi import APIRouter
from fastapi.responses import JSONResponse
from sqlalchemy import text
from sqlalchemy.exc import SQLAlchemyError

from callcontrol.core.config import settings
from callcontrol.core.database import SessionLocal

router = APIRouter(tags=["health"])
logger = logging.getLogger(__name__)


def _check_database() -> bool:
    db = SessionLocal()
    try:
        db.execute(text("SELECT 1"))
        return True
    except SQLAlchemyError as exc:
        logger.error("Readiness: database unavailable: %s", exc)
        return False
    finally:
        db.close()


def _check_broker() -> bool:
    try:
        return bool(redis.Redis.from_url(settings.redis_url, socket_connect_timeout=1).ping())
    except redis.RedisError as exc:
        logger.error("Readiness: broker unavailable: %s", exc)
        return False


@router.get("/health")
def health():
    return {"status": "ok"}


@router.get("/ready")
def ready():
    checks = {
        "database": _check_database(),
        "broker": _check_broker(),
        "storage": Path(settings.storage_root).is_dir(),
    }
    # Missing provider keys degrade features but do not block traffic.
    integrations = {
        "transcription": bool(settings.nexara_api_key),
        "telegram": bool(settings.telegram_bot_token),
    }
    ok = all(checks.values())
    body = {"status": "ready" if ok else "unavailable", "checks": checks, "integrations": integrations}
    return JSONResponse(body, status_code=200 if ok else 503)
