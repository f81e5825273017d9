from sqlalchemy import (
    Boolean,
    Column,
    DateTime,
    ForeignKey,
    Integer,
    JSON,
    String,
    Text,
    UniqueConstraint,
)
from sqlalchemy.sql import func
from callcontrol.core.database import Base


class TelfinCallStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    SKIPPED = "skipped"
    ERROR = "error"


class TelfinConnection(Base):
    __tablename__ = "telfin_connections"

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, unique=True)
    client_id = Column(String(255), nullable=False)
    client_secret = Column(String(255), nullable=False)
    # account id used in API paths, resolved from the client info endpoint
    telfin_client_id = Column(String(64))
    access_token = Column(Text)
    token_expiry = Column(DateTime(timezone=True))
    last_sync_at = Column(DateTime(timezone=True))
    last_error = Column(String(1024))
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), onupdate=func.now())


class TelfinCall(Base):
    __tablename__ = "telfin_calls"
    __table_args__ = (UniqueConstraint("org_id", "call_id", name="uq_telfin_calls_org_call"),)

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    call_id = Column(String(128), nullable=False)
    extension_id = Column(String(64))
    caller_number = Column(String(64))
    called_number = Column(String(64))
    start_time = Column(DateTime(timezone=True), index=True)
    end_time = Column(DateTime(timezone=True))
    duration = Column(Integer, default=0)
    has_record = Column(Boolean, default=False, nullable=False)
    record_uuid = Column(String(128))
    disposition = Column(String(64))
    raw_payload = Column(JSON, nullable=False)
    processing_status = Column(String(20), nullable=False, default=TelfinCallStatus.PENDING, index=True)
    processing_feedback = Column(Text)
    materialized_call_id = Column(Integer, ForeignKey("calls.id"), nullable=True)
    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
