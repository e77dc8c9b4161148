"""Domain exceptions and their HTTP mapping.

Services raise these; ``register_exception_handlers`` turns them into
``{"detail": ..., "code": ..., "errors": ...}`` JSON responses.
"""

from typing import Any, Dict, Optional

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse


class AppError(Exception):
    """Base class for errors surfaced to API callers."""

    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    code: str = "internal_error"
    default_message: str = "An error occurred"

    def __init__(self, message: Optional[str] = None, errors: Optional[Dict[str, Any]] = None):
        self.message = message or self.default_message
        self.errors = errors
        super().__init__(self.message)

    def to_dict(self) -> Dict[str, Any]:
        body: Dict[str, Any] = {"detail": self.message, "code": self.code}
        if self.errors:
            body["errors"] = self.errors
        return body


class ValidationError(AppError):
    status_code = status.HTTP_422_UNPROCESSABLE_ENTITY
    code = "validation_error"
    default_message = "Invalid input"


class Unauthenticated(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "unauthenticated"
    default_message = "Could not validate credentials"


class InvalidCredential(Unauthenticated):
    code = "invalid_credential"
    default_message = "Invalid credential"


class Forbidden(AppError):
    status_code = status.HTTP_403_FORBIDDEN
    code = "forbidden"
    default_message = "Not enough privileges"


class NotFound(AppError):
    status_code = status.HTTP_404_NOT_FOUND
    code = "not_found"
    default_message = "Resource not found"


class ConflictError(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "conflict"
    default_message = "Conflicting state"

    @classmethod
    def invalid_transition(cls, entity: str, current: Any, required: Any) -> "ConflictError":
        """Error naming the current and the required source state."""
        current_value = getattr(current, "value", current)
        if isinstance(required, (list, tuple, set, frozenset)):
            required_value = "|".join(sorted(getattr(r, "value", r) for r in required))
        else:
            required_value = getattr(required, "value", required)
        return cls(
            f"{entity} is {current_value}, required {required_value}",
            errors={"current": current_value, "required": required_value},
        )


class OtpExpired(AppError):
    status_code = status.HTTP_401_UNAUTHORIZED
    code = "otp_expired"
    default_message = "One-time password has expired"


class OtpAlreadyUsed(AppError):
    status_code = status.HTTP_409_CONFLICT
    code = "otp_already_used"
    default_message = "One-time password has already been used"


class RateLimited(AppError):
    status_code = status.HTTP_429_TOO_MANY_REQUESTS
    code = "rate_limited"
    default_message = "Too many requests, try again later"


class StorageError(AppError):
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    code = "storage_error"
    default_message = "File storage failure"


async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    headers = None
    if isinstance(exc, Unauthenticated):
        headers = {"WWW-Authenticate": "Bearer"}
    return JSONResponse(status_code=exc.status_code, content=exc.to_dict(), headers=headers)


async def request_validation_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    """Schema failures use the same body as service-level ValidationError."""
    errors: Dict[str, Any] = {}
    for error in exc.errors():
        location = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        errors.setdefault(".".join(location) or "body", error.get("msg", "invalid"))
    body = ValidationError(errors=errors).to_dict()
    return JSONResponse(status_code=ValidationError.status_code, content=body)


def register_exception_handlers(app: FastAPI) -> None:
    app.add_exception_handler(AppError, app_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_handler)
