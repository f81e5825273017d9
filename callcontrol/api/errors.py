from fastapi import HTTPException, status

from callcontrol.core.exceptions import (
    AlreadyUsedError,
    CallAlreadyProcessingError,
    CallControlError,
    ConfigurationError,
    ConflictError,
    ExpiredError,
    NotFoundError,
    UpstreamError,
)

STATUS_BY_ERROR = (
    (NotFoundError, status.HTTP_404_NOT_FOUND),
    (ConflictError, status.HTTP_409_CONFLICT),
    (AlreadyUsedError, status.HTTP_409_CONFLICT),
    (CallAlreadyProcessingError, status.HTTP_409_CONFLICT),
    (ExpiredError, status.HTTP_410_GONE),
    (ConfigurationError, status.HTTP_503_SERVICE_UNAVAILABLE),
    (UpstreamError, status.HTTP_502_BAD_GATEWAY),
)


def to_http_error(exc: CallControlError) -> HTTPException:
    for error_type, status_code in STATUS_BY_ERROR:
        if isinstance(exc, error_type):
            return HTTPException(status_code=status_code, detail={"code": exc.code, "message": exc.message})
    return HTTPException(status_code=status.HTTP_400_BAD_REQUEST, detail={"code": exc.code, "message": exc.message})
