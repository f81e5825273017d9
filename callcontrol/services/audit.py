import logging

from sqlalchemy.orm import Session
from callcontrol.models import AuditLog, User

logger = logging.getLogger(__name__)


def log_event(
    db: Session,
    action: str,
    status: str,
    message: str = "",
    user: User | None = None,
    org_id: int | None = None,
    details: dict | None = None,
) -> None:
    entry = AuditLog(
        org_id=org_id if org_id is not None else (user.org_id if user else None),
        user_id=user.id if user else None,
        action=action,
        status=status,
        message=message[:255],
        details=details or {},
    )
    db.add(entry)
    db.commit()
    logger.info("audit %s %s org=%s user=%s", action, status, entry.org_id, entry.user_id)
