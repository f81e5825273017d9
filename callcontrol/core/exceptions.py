"""Error taxonomy shared by the services, the API and the workers.

Every error has a stable ``code`` so that messages persisted on calls or
shown to users can be matched against logs.
"""

from typing import Any, Optional

MAX_DETAIL_LENGTH = 300


def truncate(value: Any, limit: int = MAX_DETAIL_LENGTH) -> str:
    text = "" if value is None else str(value)
    if len(text) <= limit:
        return text
    return text[:limit] + "..."


class CallControlError(Exception):
    code = "CALLCONTROL-000"

    def __init__(self, message: str, code: Optional[str] = None) -> None:
        super().__init__(message)
        self.message = message
        if code:
            self.code = code

    def __str__(self) -> str:
        return f"[{self.code}] {self.message}"


class ConfigurationError(CallControlError):
    code = "CONFIG-001"


class UpstreamError(CallControlError):
    """An external service answered with an error or could not be reached."""

    def __init__(
        self,
        message: str,
        status_code: Optional[int] = None,
        body: Optional[str] = None,
        code: Optional[str] = None,
    ) -> None:
        self.status_code = status_code
        self.body = truncate(body) if body is not None else None
        parts = [message]
        if status_code is not None:
            parts.append(f"HTTP {status_code}")
        if self.body:
            parts.append(self.body)
        super().__init__(" - ".join(parts), code=code)


class DownloadError(UpstreamError):
    code = "NEXARA-001"


class TranscriptionServiceError(UpstreamError):
    code = "NEXARA-002"


class OAuthError(UpstreamError):
    code = "TELFIN-API-001"

    def __init__(
        self,
        error: Optional[str] = None,
        description: Optional[str] = None,
        status_code: Optional[int] = None,
    ) -> None:
        self.error = error
        self.description = description
        message = description or error or "Token request failed"
        super().__init__(f"Telfin OAuth error: {message}", status_code=status_code)


class CallHistoryFetchError(UpstreamError):
    code = "TELFIN-CDR-001"


class TelfinApiError(UpstreamError):
    code = "TELFIN-API-003"


class StorageError(CallControlError):
    code = "STORAGE-001"


class NotFoundError(CallControlError):
    code = "NOT-FOUND"


class AlreadyUsedError(CallControlError):
    code = "SESSION-USED"


class ExpiredError(CallControlError):
    code = "SESSION-EXPIRED"


class ConflictError(CallControlError):
    code = "LINK-CONFLICT"


class CallAlreadyProcessingError(CallControlError):
    code = "CALL-BUSY"
