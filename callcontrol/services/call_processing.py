import logging
from typing import Optional

from sqlalchemy.orm import Session

from callcontrol.core.exceptions import (
    CallAlreadyProcessingError,
    NotFoundError,
    truncate,
)
from callcontrol.models import Call, CallStatus, ProcessingStep
from callcontrol.schemas import CallAnalysis, Transcript
from callcontrol.services.scoring import Scorer, analyze_transcript
from callcontrol.services.transcription import NexaraClient

logger = logging.getLogger(__name__)

DEFAULT_ERROR_CODE = "CALL-PROCESSING-001"
MAX_ERROR_LENGTH = 1000


class CallProcessor:
    """Drives one call through transcription and scoring.

    Each status change is committed on its own so that pollers see progress
    while the upstream calls are in flight.
    """

    def __init__(self, db: Session, transcriber=None, scorer: Optional[Scorer] = None):
        self.db = db
        self.transcriber = transcriber or NexaraClient()
        self.scorer = scorer or analyze_transcript

    def process_call(self, call_id: int, audio_url: Optional[str] = None) -> Call:
        call = self._start(call_id)
        audio_url = audio_url or call.audio_file_url
        logger.info("Processing call %s (%s)", call_id, audio_url)
        try:
            transcript = self.transcriber.transcribe(audio_url)

            self._set_step(call, ProcessingStep.ANALYZING)
            analysis = self.scorer(transcript)

            self._store_results(call, transcript, analysis)
            call.processing_status = CallStatus.COMPLETED
            call.processing_step = None
            self.db.commit()
        except Exception as exc:
            self._fail(call_id, exc)
            raise
        logger.info("Call %s processed, general score %s", call_id, call.general_score)
        return call

    def _start(self, call_id: int) -> Call:
        claimed = (
            self.db.query(Call)
            .filter(Call.id == call_id, Call.processing_status != CallStatus.PROCESSING)
            .update(
                {
                    Call.processing_status: CallStatus.PROCESSING,
                    Call.processing_step: ProcessingStep.TRANSCRIBING,
                    Call.error_message: None,
                    Call.error_code: None,
                    # Previous results are cleared; a failed rerun has no scores.
                    Call.transcription: None,
                    Call.diarization: None,
                    Call.general_score: None,
                    Call.user_satisfaction_index: None,
                    Call.communication_skills: None,
                    Call.sales_technique: None,
                    Call.transcription_score: None,
                    Call.summary: None,
                    Call.feedback: None,
                    Call.advice: None,
                },
                synchronize_session=False,
            )
        )
        self.db.commit()
        call = self.db.get(Call, call_id)
        if call is None:
            raise NotFoundError(f"Call {call_id} not found")
        if not claimed:
            raise CallAlreadyProcessingError(f"Call {call_id} is already being processed")
        return call

    def _set_step(self, call: Call, step: str) -> None:
        call.processing_step = step
        self.db.commit()

    def _store_results(self, call: Call, transcript: Transcript, analysis: CallAnalysis) -> None:
        call.transcription = transcript.text
        call.summary = analysis.summary
        call.general_score = analysis.general_score
        call.user_satisfaction_index = analysis.user_satisfaction_index
        call.communication_skills = analysis.communication_skills
        call.sales_technique = analysis.sales_technique
        call.transcription_score = analysis.transcription_score
        call.feedback = analysis.feedback
        call.advice = analysis.advice
        if transcript.segments:
            call.diarization = {
                "segments": [segment.model_dump() for segment in transcript.segments],
                "duration": transcript.duration,
                "language": transcript.language,
            }

    def _fail(self, call_id: int, exc: Exception) -> None:
        logger.error("Processing of call %s failed: %s", call_id, exc)
        self.db.rollback()
        call = self.db.get(Call, call_id)
        if call is None:
            return
        call.processing_status = CallStatus.FAILED
        call.processing_step = None
        call.error_code = getattr(exc, "code", DEFAULT_ERROR_CODE)
        call.error_message = truncate(exc, MAX_ERROR_LENGTH)
        self.db.commit()


def get_call_status(db: Session, org_id: int, call_id: int) -> Call:
    call = db.query(Call).filter(Call.id == call_id, Call.org_id == org_id).first()
    if call is None:
        raise NotFoundError(f"Call {call_id} not found")
    return call
