# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
Error taxonomy and the global error normalizer.

Business logic raises ``AppError`` subclasses.  They are *operational*:
their message is safe to show to the client and is rendered unchanged.
Library failures (validation, unique constraints, JWT) are translated into
the same taxonomy here.  Anything else is an unexpected fault and is
flattened to a generic message outside development.

Envelope
--------
    {"success": false, "status": "fail" | "error", "message": "..."}

In development the envelope also carries ``error`` (kind, type, detail) and
``stack``.
"""

import re
import traceback

import jwt as _jwt
from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from sqlalchemy.exc import IntegrityError
from starlette.exceptions import HTTPException as StarletteHTTPException

from core.logger import logger

_GENERIC_MESSAGE = "Something went wrong"


# ---------------------------------------------------------------------------
# Taxonomy
# ---------------------------------------------------------------------------


class AppError(Exception):
    """Base class for anticipated failures with a client-safe message."""

    kind = "InternalError"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
    is_operational = True

    def __init__(self, message: str, status_code: int | None = None):
        super().__init__(message)
        self.message = message
        if status_code is not None:
            self.status_code = status_code


class InvalidInputError(AppError):
    kind = "InvalidInput"
    status_code = status.HTTP_400_BAD_REQUEST


class DuplicateValueError(AppError):
    kind = "DuplicateValue"
    status_code = status.HTTP_400_BAD_REQUEST


class ValidationFailedError(AppError):
    kind = "ValidationFailed"
    status_code = status.HTTP_400_BAD_REQUEST


class InvalidTokenError(AppError):
    kind = "InvalidToken"
    status_code = status.HTTP_401_UNAUTHORIZED


class ResetTokenInvalidError(InvalidTokenError):
    status_code = status.HTTP_400_BAD_REQUEST


class ExpiredTokenError(AppError):
    kind = "ExpiredToken"
    status_code = status.HTTP_401_UNAUTHORIZED


class NotAuthenticatedError(AppError):
    kind = "NotAuthenticated"
    status_code = status.HTTP_401_UNAUTHORIZED


class UserGoneError(NotAuthenticatedError):
    kind = "UserGone"


class StaleSessionError(NotAuthenticatedError):
    kind = "StaleSession"


class ForbiddenError(AppError):
    kind = "Forbidden"
    status_code = status.HTTP_403_FORBIDDEN


class NotFoundError(AppError):
    kind = "NotFound"
    status_code = status.HTTP_404_NOT_FOUND


class PayloadTooLargeError(AppError):
    kind = "PayloadTooLarge"
    status_code = 413


class TooManyRequestsError(AppError):
    kind = "TooManyRequests"
    status_code = status.HTTP_429_TOO_MANY_REQUESTS


class NotImplementedFeatureError(AppError):
    kind = "NotImplemented"
    status_code = status.HTTP_501_NOT_IMPLEMENTED


class EmailDeliveryFailedError(AppError):
    kind = "EmailDeliveryFailed"
    status_code = status.HTTP_500_INTERNAL_SERVER_ERROR


# ---------------------------------------------------------------------------
# Translation of library failures
# ---------------------------------------------------------------------------

# Columns carrying a unique constraint, in the order they are searched for
# inside a driver error message.
_UNIQUE_FIELDS = ("phone_number", "email")
_FIELD_LABELS = {"phone_number": "phoneNumber", "email": "email"}


def from_integrity_error(exc: IntegrityError) -> AppError:
    """
    Map a unique-constraint violation onto ``DuplicateValueError``.

    SQLite, MySQL and PostgreSQL all name the offending column (or its
    index) in the message; anything unrecognised is left unexpected.
    """
    text = str(exc.orig)
    lowered = text.lower()
    if "unique" not in lowered and "duplicate" not in lowered:
        return AppError(text, status.HTTP_500_INTERNAL_SERVER_ERROR)

    for field in _UNIQUE_FIELDS:
        if field in lowered:
            if field == "phone_number":
                return DuplicateValueError("This phone number is already in use! try another number")
            return DuplicateValueError(
                f"Duplicate field value: {_FIELD_LABELS[field]}, Please use another value!"
            )
    return DuplicateValueError("Duplicate field value, Please use another value!")


def from_jwt_error(exc: _jwt.PyJWTError) -> AppError:
    if isinstance(exc, _jwt.ExpiredSignatureError):
        return ExpiredTokenError("Your token has expired! Please login again")
    return InvalidTokenError("Invalid token! Please login again")


def _loc_label(loc) -> str:
    # ("body", "email") -> "email"; ("body",) -> "" (model-level check)
    return ".".join(str(p) for p in loc[1:])


def from_validation_error(exc: RequestValidationError) -> AppError:
    """
    Path/query coercion failures are bad identifiers (``InvalidInput``);
    body failures are schema validation (``ValidationFailed``).
    """
    errors = exc.errors()
    if errors and all(err.get("loc", ("",))[0] in ("path", "query") for err in errors):
        err = errors[0]
        return InvalidInputError(f"Invalid {_loc_label(err['loc'])}: {err.get('input')}")

    messages = []
    for err in errors:
        msg = re.sub(r"^Value error, ", "", err.get("msg", "invalid value"))
        label = _loc_label(err.get("loc", ()))
        messages.append(f"{label}: {msg}" if label else msg)
    return ValidationFailedError(f"Invalid input data: {'. '.join(messages)}")


# ---------------------------------------------------------------------------
# Rendering
# ---------------------------------------------------------------------------


def error_body(exc: Exception, development: bool) -> tuple[int, dict]:
    """
    Build ``(status_code, envelope)`` for *exc*.

    Non-``AppError`` exceptions and non-operational AppErrors are treated as
    unexpected: 500 and, outside development, a generic message.
    """
    if isinstance(exc, AppError):
        status_code = exc.status_code
        kind = exc.kind
        message = exc.message
        operational = exc.is_operational
    else:
        status_code = status.HTTP_500_INTERNAL_SERVER_ERROR
        kind = "InternalError"
        message = str(exc) or _GENERIC_MESSAGE
        operational = False

    body = {
        "success": False,
        "status": "fail" if status_code < 500 else "error",
        "message": message,
    }

    if development:
        body["error"] = {"kind": kind, "type": type(exc).__name__, "detail": str(exc)}
        body["stack"] = traceback.format_exception(type(exc), exc, exc.__traceback__)
    elif not operational:
        body["message"] = _GENERIC_MESSAGE
    return status_code, body


def error_response(request: Request, exc: Exception) -> JSONResponse:
    settings = request.app.state.settings
    status_code, body = error_body(exc, development=not settings.is_production)
    return JSONResponse(status_code=status_code, content=body)


# ---------------------------------------------------------------------------
# FastAPI wiring
# ---------------------------------------------------------------------------


def register_error_handlers(app: FastAPI) -> None:
    """Install the normalizer for every failure category on *app*."""

    @app.exception_handler(AppError)
    async def _app_error(request: Request, exc: AppError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.message)
        return error_response(request, exc)

    @app.exception_handler(RequestValidationError)
    async def _validation_error(request: Request, exc: RequestValidationError):
        return error_response(request, from_validation_error(exc))

    @app.exception_handler(IntegrityError)
    async def _integrity_error(request: Request, exc: IntegrityError):
        translated = from_integrity_error(exc)
        if not isinstance(translated, DuplicateValueError):
            logger.exception("Unexpected integrity error on %s", request.url.path)
            return error_response(request, exc)
        return error_response(request, translated)

    @app.exception_handler(_jwt.PyJWTError)
    async def _jwt_error(request: Request, exc: _jwt.PyJWTError):
        return error_response(request, from_jwt_error(exc))

    @app.exception_handler(StarletteHTTPException)
    async def _http_error(request: Request, exc: StarletteHTTPException):
        if exc.status_code == status.HTTP_404_NOT_FOUND:
            message = f"can not find {request.url.path} on this server"
        else:
            message = str(exc.detail)
        return JSONResponse(
            status_code=exc.status_code,
            content={"success": False, "status": "fail", "message": message},
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(Exception)
    async def _unexpected_error(request: Request, exc: Exception):
        logger.exception("Unhandled error on %s %s", request.method, request.url.path)
        return error_response(request, exc)
