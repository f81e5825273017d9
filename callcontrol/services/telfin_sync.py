import logging
from dataclasses import dataclass
from datetime import datetime, timedelta, timezone
from typing import Any, Dict, List, Optional, Tuple

from sqlalchemy.orm import Session

from callcontrol.core.config import settings
from callcontrol.core.database import upsert
from callcontrol.core.exceptions import truncate
from callcontrol.core.security import ensure_aware, utcnow
from callcontrol.models import TelfinCall, TelfinCallStatus, TelfinConnection
from callcontrol.services.telfin_auth import TelfinTokenManager
from callcontrol.services.telfin_client import TelfinClient, history_cap

logger = logging.getLogger(__name__)

# Re-synced rows refresh their CDR data but keep their materialization state.
REFRESHED_COLUMNS = (
    "extension_id",
    "caller_number",
    "called_number",
    "start_time",
    "end_time",
    "duration",
    "has_record",
    "record_uuid",
    "disposition",
    "raw_payload",
    "updated_at",
)


@dataclass
class SyncResult:
    fetched: int
    saved: int
    range_start: datetime
    range_end: datetime


def parse_timestamp(value: Any) -> Optional[datetime]:
    if value is None or value == "":
        return None
    if isinstance(value, datetime):
        return ensure_aware(value)
    if isinstance(value, (int, float)) or (isinstance(value, str) and value.isdigit()):
        return datetime.fromtimestamp(float(value), tz=timezone.utc)
    return ensure_aware(datetime.fromisoformat(str(value).replace("Z", "+00:00")))


def parse_optional_timestamp(value: Any, call_id: str, field: str) -> Optional[datetime]:
    try:
        return parse_timestamp(value)
    except (TypeError, ValueError, OverflowError, OSError):
        logger.warning("Unparseable %s %r on Telfin call %s", field, value, call_id)
        return None


def parse_duration(value: Any) -> int:
    try:
        return int(float(value or 0))
    except (TypeError, ValueError, OverflowError):
        return 0


def extract_call_id(payload: dict) -> Optional[str]:
    for key in ("id", "call_uuid", "call_id"):
        value = payload.get(key)
        if value:
            return str(value)
    return None


def map_payload_to_row(payload: dict, org_id: int) -> Dict[str, Any]:
    call_id = extract_call_id(payload)
    if not call_id:
        raise ValueError("Missing Telfin call id")
    return {
        "org_id": org_id,
        "call_id": call_id,
        "extension_id": str(payload["extension_id"]) if payload.get("extension_id") is not None else None,
        "caller_number": payload.get("caller_id_number"),
        "called_number": payload.get("called_did_number"),
        "start_time": parse_optional_timestamp(payload.get("start_time"), call_id, "start_time"),
        "end_time": parse_optional_timestamp(payload.get("end_time"), call_id, "end_time"),
        "duration": parse_duration(payload.get("duration")),
        "has_record": bool(payload.get("has_record")),
        "record_uuid": payload.get("record_uuid"),
        "disposition": payload.get("disposition"),
        "raw_payload": payload,
        "processing_status": TelfinCallStatus.PENDING,
        "updated_at": utcnow(),
    }


def persist_call_history(db: Session, calls: List[dict], org_id: int) -> int:
    rows: Dict[str, Dict[str, Any]] = {}
    for payload in calls:
        if not isinstance(payload, dict) or not extract_call_id(payload):
            logger.warning("Skipping Telfin record without id: %s", truncate(payload))
            continue
        row = map_payload_to_row(payload, org_id)
        rows[row["call_id"]] = row
    if not rows:
        return 0
    upsert(
        db,
        TelfinCall,
        list(rows.values()),
        conflict_columns=("org_id", "call_id"),
        update_columns=REFRESHED_COLUMNS,
    )
    db.commit()
    logger.info("Saved %s Telfin calls for organization %s", len(rows), org_id)
    return len(rows)


def latest_start_time(records: List[dict]) -> Optional[datetime]:
    times = [
        parse_optional_timestamp(record.get("start_time"), extract_call_id(record) or "?", "start_time")
        for record in records
        if isinstance(record, dict)
    ]
    return max((value for value in times if value is not None), default=None)


def get_sync_range(
    connection: TelfinConnection,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
) -> Tuple[datetime, datetime]:
    range_end = ensure_aware(date_to) or utcnow()
    if date_from is not None:
        return ensure_aware(date_from), range_end
    last_sync_at = ensure_aware(connection.last_sync_at)
    if last_sync_at:
        return last_sync_at - timedelta(minutes=10), range_end
    return range_end - timedelta(days=settings.telfin_default_range_days), range_end


def sync_call_history(
    db: Session,
    connection: TelfinConnection,
    date_from: Optional[datetime] = None,
    date_to: Optional[datetime] = None,
    client: Optional[TelfinClient] = None,
) -> SyncResult:
    client = client or TelfinClient(TelfinTokenManager(db, connection))
    range_start, range_end = get_sync_range(connection, date_from, date_to)
    try:
        records = client.fetch_call_history(range_start, range_end)
        saved = persist_call_history(db, records, connection.org_id)
    except Exception as exc:
        db.rollback()
        connection.last_error = truncate(exc, 1000)
        db.commit()
        logger.exception("Telfin sync failed for organization %s", connection.org_id)
        raise
    if len(records) >= history_cap():
        # Records past the cap are still upstream; resume from the newest one fetched.
        cursor = latest_start_time(records)
        logger.warning(
            "Telfin window %s .. %s was cut at %s records; moving the cursor for organization %s to %s",
            range_start,
            range_end,
            len(records),
            connection.org_id,
            cursor,
        )
        if cursor is not None and cursor > range_start:
            connection.last_sync_at = min(cursor, range_end)
    else:
        connection.last_sync_at = range_end
    connection.last_error = None
    db.commit()
    return SyncResult(fetched=len(records), saved=saved, range_start=range_start, range_end=range_end)
