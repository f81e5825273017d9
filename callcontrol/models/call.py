from sqlalchemy import (
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


class CallStatus:
    PENDING = "pending"
    PROCESSING = "processing"
    COMPLETED = "completed"
    FAILED = "failed"


class ProcessingStep:
    TRANSCRIBING = "transcribing"
    ANALYZING = "analyzing"


class Call(Base):
    __tablename__ = "calls"
    __table_args__ = (
        UniqueConstraint("org_id", "source", "source_call_id", name="uq_calls_source_call"),
    )

    id = Column(Integer, primary_key=True)
    org_id = Column(Integer, ForeignKey("organizations.id"), nullable=False, index=True)
    manager_id = Column(Integer, ForeignKey("users.id"), nullable=True)
    audio_file_url = Column(String(1024), nullable=False)
    date = Column(DateTime(timezone=True), server_default=func.now(), index=True)

    transcription = Column(Text)
    # {"segments": [{"speaker", "start", "end", "text"}], "duration", "language"}
    diarization = Column(JSON, nullable=True)

    general_score = Column(Integer)
    user_satisfaction_index = Column(Integer)
    communication_skills = Column(Integer)
    sales_technique = Column(Integer)
    transcription_score = Column(Integer)
    summary = Column(Text)
    feedback = Column(Text)
    advice = Column(Text)

    processing_status = Column(String(20), nullable=False, default=CallStatus.PENDING, index=True)
    processing_step = Column(String(20))
    error_message = Column(Text)
    error_code = Column(String(40))

    source = Column(String(40), nullable=False, default="upload")
    source_call_id = Column(String(128))

    created_at = Column(DateTime(timezone=True), server_default=func.now())
    updated_at = Column(DateTime(timezone=True), server_default=func.now(), onupdate=func.now())
