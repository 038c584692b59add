"""
Service-level errors and their HTTP rendering.

Services raise these; the handlers registered by ``register_exception_handlers``
turn them into ``{"error": ...}`` JSON bodies with the matching status code.
"""

from __future__ import annotations

import logging
from typing import Any, Optional

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

logger = logging.getLogger(__name__)


class ChatError(Exception):
    """Base class for every error that maps onto an HTTP response."""

    status_code: int = 400
    message: str = "Bad request"

    def __init__(self, message: Optional[str] = None, details: Any = None):
        self.message = message or self.message
        self.details = details
        super().__init__(self.message)

    def to_dict(self) -> dict:
        body = {"error": self.message}
        if self.details is not None:
            body["details"] = self.details
        return body


class ValidationError(ChatError):
    status_code = 400
    message = "Validation errors occurred"


class NotFound(ChatError):
    status_code = 404
    message = "Chatroom not found."


class CapacityExceeded(ChatError):
    status_code = 403
    message = "Chatroom is full"


class AlreadyMember(ChatError):
    status_code = 400
    message = "You are already in this chatroom"


class NotMember(ChatError):
    status_code = 403
    message = "You are not a member of this chatroom"


class EmptyMessage(ChatError):
    status_code = 400
    message = "Either message text or an attachment is required."


class UnsupportedMediaType(ChatError):
    status_code = 400
    message = "Unsupported file type."


class EmailTaken(ChatError):
    status_code = 400
    message = "The email has already been taken."


class Unauthenticated(ChatError):
    status_code = 401
    message = "Not authenticated"


class InvalidCredentials(Unauthenticated):
    message = "Invalid credentials"


class InternalError(ChatError):
    status_code = 500
    message = "Something went wrong. Please try again later."


def _validation_details(exc: RequestValidationError) -> list:
    details = []
    for error in exc.errors():
        # Drop the "body"/"query" prefix so clients see plain field names
        loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path")]
        details.append({"field": ".".join(loc), "message": error.get("msg", "")})
    return details


def register_exception_handlers(app: FastAPI) -> None:
    """Render every error as ``{"error": ...}`` with a stable status code."""

    @app.exception_handler(ChatError)
    async def chat_error_handler(request: Request, exc: ChatError):
        if exc.status_code >= 500:
            logger.error("%s %s failed: %s", request.method, request.url.path, exc.details)
        else:
            logger.info("%s %s rejected: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=exc.to_dict())

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request: Request, exc: RequestValidationError):
        error = ValidationError(details=_validation_details(exc))
        logger.info("%s %s invalid request: %s", request.method, request.url.path, error.details)
        return JSONResponse(status_code=error.status_code, content=error.to_dict())

    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request: Request, exc: StarletteHTTPException):
        return JSONResponse(
            status_code=exc.status_code,
            content={"error": exc.detail},
            headers=getattr(exc, "headers", None),
        )
