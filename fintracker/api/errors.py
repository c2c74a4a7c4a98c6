"""
Translate domain exceptions into HTTP responses.

| Exception                | Status |
|--------------------------|--------|
| ExpenseValidationError   | 400    |
| RequestValidationError   | 400    |
| AuthError                | 401    |
| NotFoundError            | 404    |
| StoreUnavailableError    | 503    |
| StorageError (other)     | 500    |

Nothing here re-raises: every error ends as a JSON response.
"""

import structlog
from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException

from fintracker.api.schemas import ErrorResponse
from fintracker.auth import AuthError
from fintracker.services.storage import NotFoundError, StorageError, StoreUnavailableError
from fintracker.validation import ExpenseValidationError, issues_to_dicts


logger = structlog.get_logger(__name__)


def _error(status_code: int, message: str, issues=None) -> JSONResponse:
    body = ErrorResponse(error=message, issues=issues)
    return JSONResponse(status_code=status_code, content=body.model_dump(exclude_none=True))


async def validation_error_handler(request: Request, exc: ExpenseValidationError) -> JSONResponse:
    return _error(400, str(exc), issues_to_dicts(exc.issues))


async def request_validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    issues = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or "request",
            "type": error.get("type", "invalid"),
            "message": error.get("msg", "Invalid value"),
        }
        for error in exc.errors()
    ]
    return _error(400, "Invalid request", issues)


async def auth_error_handler(request: Request, exc: AuthError) -> JSONResponse:
    # Same generic message whatever the reason
    return _error(401, str(exc))


async def not_found_handler(request: Request, exc: NotFoundError) -> JSONResponse:
    return _error(404, "Expense not found")


async def store_unavailable_handler(request: Request, exc: StoreUnavailableError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc))
    return _error(503, "Storage temporarily unavailable")


async def storage_error_handler(request: Request, exc: StorageError) -> JSONResponse:
    logger.error("request_failed", path=request.url.path, error=str(exc))
    return _error(500, "Internal server error")


async def http_error_handler(request: Request, exc: StarletteHTTPException) -> JSONResponse:
    if exc.status_code == 404:
        return _error(404, "Endpoint not found")
    return _error(exc.status_code, str(exc.detail))


async def unhandled_error_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.exception("unhandled_error", path=request.url.path)
    components = getattr(request.app.state, "components", None)
    if components is not None:
        await components.audit_logger.log_error(
            error_type=type(exc).__name__,
            error_message=str(exc),
            details={"path": request.url.path},
        )
    return _error(500, "Something broke!")


def register_error_handlers(app: FastAPI) -> None:
    app.add_exception_handler(ExpenseValidationError, validation_error_handler)
    app.add_exception_handler(RequestValidationError, request_validation_error_handler)
    app.add_exception_handler(AuthError, auth_error_handler)
    app.add_exception_handler(NotFoundError, not_found_handler)
    app.add_exception_handler(StoreUnavailableError, store_unavailable_handler)
    app.add_exception_handler(StorageError, storage_error_handler)
    app.add_exception_handler(StarletteHTTPException, http_error_handler)
    app.add_exception_handler(Exception, unhandled_error_handler)
