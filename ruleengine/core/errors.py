"""Error taxonomy and the FastAPI handlers that surface it.

Request-time failures (validation, missing entities, conflicts) map onto
HTTP status codes. Execution-time failures never leave the engine as
exceptions: they end up in the execution result instead.
"""

from __future__ import annotations

import logging
from dataclasses import dataclass

from fastapi import FastAPI, Request, status
from fastapi.encoders import jsonable_encoder
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

logger = logging.getLogger(__name__)


@dataclass(eq=False)
class RuleEngineError(Exception):
    message: str
    status_code: int = status.HTTP_500_INTERNAL_SERVER_ERROR
    field: str | None = None

    def __str__(self) -> str:
        if self.field:
            return f"{self.field}: {self.message}"
        return self.message


class ValidationError(RuleEngineError):
    """Malformed input: unknown operator, path not in schema, type mismatch."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, status.HTTP_400_BAD_REQUEST, field)


class NotFoundError(RuleEngineError):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_404_NOT_FOUND)


class ConflictError(RuleEngineError):
    def __init__(self, message: str):
        super().__init__(message, status.HTTP_409_CONFLICT)


class EvaluationError(RuleEngineError):
    """Failure while evaluating or firing a single rule."""

    def __init__(self, message: str, field: str | None = None):
        super().__init__(message, status.HTTP_500_INTERNAL_SERVER_ERROR, field)


def register_exception_handlers(app: FastAPI) -> None:
    """Attach JSON handlers for the error taxonomy to the app."""

    @app.exception_handler(RuleEngineError)
    async def handle_rule_engine_error(request: Request, exc: RuleEngineError) -> JSONResponse:
        if exc.status_code >= 500:
            logger.error("Unhandled %s on %s: %s", type(exc).__name__, request.url.path, exc)
        content = {"detail": exc.message}
        if exc.field:
            content["field"] = exc.field
        return JSONResponse(status_code=exc.status_code, content=content)

    @app.exception_handler(RequestValidationError)
    async def handle_request_validation(request: Request, exc: RequestValidationError) -> JSONResponse:
        errors = jsonable_encoder(exc.errors())
        field = None
        if errors:
            field = ".".join(str(part) for part in errors[0].get("loc", ()) if part != "body")
        return JSONResponse(
            status_code=status.HTTP_400_BAD_REQUEST,
            content={"detail": errors, "field": field},
        )
