"""Translation of service failures into HTTP error responses."""

from fastapi import status
from fastapi.responses import JSONResponse
from starlette.background import BackgroundTask

from credential_service.exceptions import (
    CredentialServiceError,
    DuplicateEmailError,
    InvalidCredentialsError,
    NotFoundError,
    NotVerifiedError,
    OperationTimeoutError,
    TokenNotFoundError,
    ValidationError,
)

INTERNAL_ERROR_MESSAGE = "Internal server error"

# None means the exception message is safe to show as-is
ERROR_RESPONSES: dict[type[CredentialServiceError], tuple[int, str | None]] = {
    ValidationError: (status.HTTP_400_BAD_REQUEST, None),
    DuplicateEmailError: (status.HTTP_409_CONFLICT, "Email already registered"),
    TokenNotFoundError: (status.HTTP_400_BAD_REQUEST, "Invalid or expired token"),
    InvalidCredentialsError: (status.HTTP_401_UNAUTHORIZED, "Invalid email or password"),
    NotVerifiedError: (
        status.HTTP_403_FORBIDDEN,
        "Email not verified. A new verification link has been sent",
    ),
    NotFoundError: (status.HTTP_404_NOT_FOUND, "Account not found"),
    OperationTimeoutError: (status.HTTP_504_GATEWAY_TIMEOUT, "Request timed out"),
}


def resolve_error(exc: CredentialServiceError) -> tuple[int, str]:
    """Status code and user-facing message for a service failure."""
    for exc_type in type(exc).__mro__:
        if exc_type in ERROR_RESPONSES:
            status_code, message = ERROR_RESPONSES[exc_type]
            return status_code, message if message is not None else str(exc)
    return status.HTTP_500_INTERNAL_SERVER_ERROR, INTERNAL_ERROR_MESSAGE


def error_response(
    exc: CredentialServiceError, background: BackgroundTask | None = None
) -> JSONResponse:
    """JSON error body in the same shape FastAPI uses for HTTPException."""
    status_code, message = resolve_error(exc)
    return JSONResponse(status_code=status_code, content={"detail": message}, background=background)
