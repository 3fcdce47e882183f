"""Service exceptions and the handlers that render them as JSON responses."""
import logging

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse

from config import ConfigurationError
from database import UpstreamError

logger = logging.getLogger(__name__)


class ServiceError(Exception):
    status_code = 500

    def __init__(self, message: str):
        super().__init__(message)
        self.message = message


class InvalidInput(ServiceError):
    status_code = 400


class NotAuthenticated(ServiceError):
    status_code = 401


class PermissionDenied(ServiceError):
    status_code = 403


class NotFound(ServiceError):
    status_code = 404


class Conflict(ServiceError):
    status_code = 409


class PipelineError(ServiceError):
    status_code = 500


def _field_name(error: dict) -> str:
    loc = [str(part) for part in error.get("loc", ()) if part not in ("body", "query", "path", "header")]
    return ".".join(loc) or "request body"


def install_error_handlers(app: FastAPI) -> None:
    @app.exception_handler(ServiceError)
    async def service_error_handler(request: Request, exc: ServiceError):
        return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})

    @app.exception_handler(UpstreamError)
    async def upstream_error_handler(request: Request, exc: UpstreamError):
        # backend 4xx (duplicate rows, bad credentials) passes through
        if 400 <= exc.status_code < 500:
            return JSONResponse(status_code=exc.status_code, content={"detail": exc.message})
        return JSONResponse(status_code=500, content={"detail": "Backend request failed"})

    @app.exception_handler(ConfigurationError)
    async def configuration_error_handler(request: Request, exc: ConfigurationError):
        return JSONResponse(status_code=500, content={"detail": exc.public_message})

    @app.exception_handler(RequestValidationError)
    async def validation_error_handler(request: Request, exc: RequestValidationError):
        errors = exc.errors()
        field = _field_name(errors[0]) if errors else "request body"
        return JSONResponse(status_code=400, content={"detail": f"Invalid or missing field: {field}"})
