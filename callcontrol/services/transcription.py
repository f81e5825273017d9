import logging
from typing import Optional

import requests

from callcontrol.core.config import settings
from callcontrol.core.exceptions import (
    ConfigurationError,
    DownloadError,
    TranscriptionServiceError,
)
from callcontrol.schemas import Transcript

logger = logging.getLogger(__name__)

TRANSCRIPTION_OPTIONS = {
    "task": "diarize",
    "diarization_setting": "telephonic",
    "response_format": "verbose_json",
}


class NexaraClient:
    """Speech-to-text with speaker diarization through the Nexara API."""

    def __init__(
        self,
        api_key: Optional[str] = None,
        api_url: Optional[str] = None,
        timeout: Optional[float] = None,
        session: Optional[requests.Session] = None,
    ):
        self.api_key = api_key if api_key is not None else settings.nexara_api_key
        self.api_url = api_url or settings.nexara_api_url
        self.timeout = timeout or settings.http_timeout_seconds
        self.session = session or requests.Session()

    def download(self, audio_url: str) -> tuple[bytes, str]:
        try:
            response = self.session.get(audio_url, timeout=self.timeout)
        except requests.RequestException as exc:
            raise DownloadError(f"Could not download audio file: {exc}") from exc
        if not response.ok:
            raise DownloadError(
                "Could not download audio file",
                status_code=response.status_code,
                body=response.text,
            )
        content_type = response.headers.get("Content-Type") or "audio/mpeg"
        return response.content, content_type

    def transcribe(self, audio_url: str) -> Transcript:
        if not self.api_key:
            raise ConfigurationError("NEXARA_API_KEY is not configured")

        logger.info("Downloading audio for transcription: %s", audio_url)
        audio, content_type = self.download(audio_url)
        logger.info("Audio downloaded (%s bytes), sending to Nexara", len(audio))

        try:
            response = self.session.post(
                self.api_url,
                headers={"Authorization": f"Bearer {self.api_key}"},
                files={"file": ("audio.mp3", audio, content_type)},
                data=TRANSCRIPTION_OPTIONS,
                timeout=self.timeout,
            )
        except requests.RequestException as exc:
            raise TranscriptionServiceError(f"Nexara API unreachable: {exc}") from exc

        if not response.ok:
            logger.error("Nexara API error: %s %s", response.status_code, response.text[:300])
            raise TranscriptionServiceError(
                "Nexara API error",
                status_code=response.status_code,
                body=response.text,
            )
        try:
            payload = response.json()
        except ValueError as exc:
            raise TranscriptionServiceError(
                "Nexara API returned a non-JSON response",
                status_code=response.status_code,
                body=response.text,
            ) from exc

        transcript = Transcript.model_validate(payload)
        logger.info(
            "Transcription received: %s chars, %s segments",
            len(transcript.text),
            len(transcript.segments or []),
        )
        return transcript
