"""
API error mapping - Domain errors to HTTP responses.

Every AccountError becomes `{"status": "fail", "message": <fixed text>}`
with the status code below. Request validation failures become HTTP 422
with a field -> message mapping. Any other exception is rendered as
ServerError.
"""

import logging

from fastapi import FastAPI, Request, status
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from src.api.models import field_errors
from src.domain.exceptions import (
    AccountError,
    EmailExist,
    EmptyPassword,
    ExceededMaxPasswordLength,
    FieldValidationError,
    HashingError,
    InvalidToken,
    PermissionDenied,
    ServerError,
    TokenNotProvided,
    UserNoLongerExist,
    UserNotAuthenticated,
    WrongCredentials,
)

logger = logging.getLogger(__name__)

STATUS_CODES: dict[type[AccountError], int] = {
    EmptyPassword: status.HTTP_400_BAD_REQUEST,
    ExceededMaxPasswordLength: status.HTTP_400_BAD_REQUEST,
    InvalidToken: status.HTTP_400_BAD_REQUEST,
    WrongCredentials: status.HTTP_400_BAD_REQUEST,
    UserNoLongerExist: status.HTTP_401_UNAUTHORIZED,
    TokenNotProvided: status.HTTP_401_UNAUTHORIZED,
    UserNotAuthenticated: status.HTTP_401_UNAUTHORIZED,
    PermissionDenied: status.HTTP_403_FORBIDDEN,
    EmailExist: status.HTTP_409_CONFLICT,
    HashingError: status.HTTP_500_INTERNAL_SERVER_ERROR,
    ServerError: status.HTTP_500_INTERNAL_SERVER_ERROR,
}


class AuthenticationFailed(Exception):
    """
    Wraps an AccountError raised while authenticating a request.

    Rendered with HTTP 401 whatever the wrapped kind, keeping its message.
    """

    def __init__(self, error: AccountError) -> None:
        self.error = error
        super().__init__(error.message)


def error_response(status_code: int, message: str) -> JSONResponse:
    return JSONResponse(status_code=status_code, content={"status": "fail", "message": message})


async def account_error_handler(request: Request, exc: AccountError) -> JSONResponse:
    status_code = STATUS_CODES.get(type(exc), status.HTTP_500_INTERNAL_SERVER_ERROR)
    if status_code >= 500:
        logger.error("%s on %s %s", type(exc).__name__, request.method, request.url.path)
    return error_response(status_code, exc.message)


async def authentication_failed_handler(
    request: Request, exc: AuthenticationFailed
) -> JSONResponse:
    if isinstance(exc.error, ServerError):
        return await account_error_handler(request, exc.error)
    return error_response(status.HTTP_401_UNAUTHORIZED, exc.error.message)


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    """Render anything outside the taxonomy as ServerError."""
    logger.error("Unhandled error on %s %s", request.method, request.url.path, exc_info=exc)
    return error_response(status.HTTP_500_INTERNAL_SERVER_ERROR, ServerError.message)


async def validation_error_handler(
    request: Request, exc: RequestValidationError | FieldValidationError
) -> JSONResponse:
    if isinstance(exc, RequestValidationError):
        errors = field_errors(exc.errors())
    else:
        errors = exc.errors
    return JSONResponse(
        status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
        content={"status": "fail", "errors": errors},
    )


def register_exception_handlers(app: FastAPI) -> None:
    """Install the domain error handlers on an application."""
    app.add_exception_handler(AccountError, account_error_handler)
    app.add_exception_handler(AuthenticationFailed, authentication_failed_handler)
    app.add_exception_handler(RequestValidationError, validation_error_handler)
    app.add_exception_handler(FieldValidationError, validation_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
