from datetime import datetime
from typing import List, Optional
from pydantic import BaseModel, Field


class TokenResponse(BaseModel):
    access_token: str
    token_type: str = "bearer"


class LoginRequest(BaseModel):
    username: str = Field(min_length=3, max_length=150)
    password: str = Field(min_length=5, max_length=128)


class UserBase(BaseModel):
    id: int
    org_id: int
    username: str
    name: Optional[str] = None
    role: str
    is_active: bool

    class Config:
        from_attributes = True


class UserCreate(BaseModel):
    username: str = Field(min_length=3, max_length=150)
    name: Optional[str] = None
    password: str = Field(min_length=8, max_length=128)
    role: str = Field(pattern="^(admin|manager|operator|viewer)$")


# Transcription provider payloads


class TranscriptSegment(BaseModel):
    start: float = 0.0
    end: float = 0.0
    text: str = ""
    speaker: Optional[str] = None


class Transcript(BaseModel):
    task: Optional[str] = None
    language: Optional[str] = None
    duration: Optional[float] = None
    text: str = ""
    segments: Optional[List[TranscriptSegment]] = None


class CallAnalysis(BaseModel):
    summary: str
    general_score: int
    user_satisfaction_index: int
    communication_skills: int
    sales_technique: int
    transcription_score: int
    feedback: str
    advice: str


# Calls


class DiarizationOut(BaseModel):
    segments: List[TranscriptSegment] = []
    duration: Optional[float] = None
    language: Optional[str] = None


class CallStatusOut(BaseModel):
    id: int
    processing_status: str
    processing_step: Optional[str] = None
    error_message: Optional[str] = None
    error_code: Optional[str] = None

    class Config:
        from_attributes = True


class CallOut(CallStatusOut):
    org_id: int
    manager_id: Optional[int] = None
    audio_file_url: str
    date: Optional[datetime] = None
    transcription: Optional[str] = None
    diarization: Optional[DiarizationOut] = None
    general_score: Optional[int] = None
    user_satisfaction_index: Optional[int] = None
    communication_skills: Optional[int] = None
    sales_technique: Optional[int] = None
    transcription_score: Optional[int] = None
    summary: Optional[str] = None
    feedback: Optional[str] = None
    advice: Optional[str] = None
    source: str
    source_call_id: Optional[str] = None


class PaginatedCalls(BaseModel):
    items: List[CallOut]
    total: int
    page: int
    page_size: int


# Telfin


class TelfinSettingsPayload(BaseModel):
    client_id: str = Field(min_length=1)
    client_secret: str = Field(min_length=1)
    telfin_client_id: Optional[str] = None


class TelfinSettingsResponse(BaseModel):
    id: int
    org_id: int
    client_id: str
    telfin_client_id: Optional[str] = None
    has_token: bool
    token_expiry: Optional[datetime] = None
    last_sync_at: Optional[datetime] = None
    last_error: Optional[str] = None


class TelfinSyncRequest(BaseModel):
    date_from: Optional[datetime] = None
    date_to: Optional[datetime] = None


class TelfinCallOut(BaseModel):
    id: int
    call_id: str
    caller_number: Optional[str] = None
    called_number: Optional[str] = None
    start_time: Optional[datetime] = None
    end_time: Optional[datetime] = None
    duration: Optional[int] = None
    has_record: bool
    disposition: Optional[str] = None
    processing_status: str
    processing_feedback: Optional[str] = None
    materialized_call_id: Optional[int] = None

    class Config:
        from_attributes = True


# Telegram


class TelegramSessionOut(BaseModel):
    session_code: str
    telegram_url: str
    expires_at: datetime


class TelegramSessionStatus(BaseModel):
    connected: bool
    used: bool = False
    expired: bool = False
    telegram_username: Optional[str] = None
    first_name: Optional[str] = None
