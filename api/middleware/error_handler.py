from fastapi import Request, status
from fastapi.responses import JSONResponse
from fastapi.exceptions import RequestValidationError
from fastapi.encoders import jsonable_encoder
from starlette.exceptions import HTTPException as StarletteHTTPException
import traceback
import logging
import sys
import json
from typing import Dict, Any, Optional

from api.config.settings import get_settings
from api.middleware.request_id import generate_request_id, get_request_id

logger = logging.getLogger("api.middleware.error_handler")


class ErrorDetail:
    """Uniform error payload returned by every handler below."""

    def __init__(
        self,
        status_code: int,
        message: str,
        error_type: str,
        stack_trace: Optional[str] = None,
        details: Optional[Any] = None
    ):
        self.status_code = status_code
        self.message = message
        self.error_type = error_type
        self.stack_trace = stack_trace
        self.details = details or {}

    def to_dict(self) -> Dict[str, Any]:
        """Convert the error to a dictionary."""
        error_dict = {
            "status_code": self.status_code,
            "message": self.message,
            "error_type": self.error_type
        }

        if self.stack_trace and get_settings().debug:
            error_dict["stack_trace"] = self.stack_trace

        if self.details:
            error_dict["details"] = self.details

        return error_dict


def format_stack_trace(stack_trace: str) -> str:
    """Indent a stack trace so it reads as one block in the log."""
    lines = stack_trace.split('\n')
    return "\n".join(f"  │ {line}" for line in lines if line.strip())


def _error_id() -> str:
    return get_request_id() or generate_request_id()


async def error_handler_middleware(request: Request, call_next):
    """
    Catch exceptions that escaped the routers and turn them into a JSON
    error response instead of a bare 500.
    """
    try:
        return await call_next(request)
    except Exception as exc:
        exc_type, exc_value, exc_traceback = sys.exc_info()
        stack_trace = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))

        logger.error(
            f"ERR#{_error_id()}: {request.method} {request.url.path} - "
            f"{exc.__class__.__name__}: {exc}\n{format_stack_trace(stack_trace)}"
        )

        error_detail = ErrorDetail(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            message="Internal server error",
            error_type=exc.__class__.__name__,
            stack_trace=stack_trace,
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=error_detail.to_dict()
        )


def setup_error_handlers(app):
    """
    Register exception handlers on the FastAPI application.
    """
    @app.exception_handler(StarletteHTTPException)
    async def http_exception_handler(request, exc):
        """Handler for HTTP exceptions."""
        stack_trace = None
        if exc.status_code >= 500:
            stack_trace = "".join(traceback.format_exception(*sys.exc_info()))
            logger.error(
                f"HTTP#{_error_id()}: {request.method} {request.url.path} - "
                f"{exc.status_code} - {exc.detail}\n{format_stack_trace(stack_trace)}"
            )
        else:
            logger.warning(
                f"HTTP#{_error_id()}: {request.method} {request.url.path} - "
                f"{exc.status_code} - {exc.detail}"
            )

        error_detail = ErrorDetail(
            status_code=exc.status_code,
            message=str(exc.detail),
            error_type="http_exception",
            stack_trace=stack_trace
        )

        return JSONResponse(
            status_code=exc.status_code,
            content=error_detail.to_dict(),
            headers=getattr(exc, "headers", None),
        )

    @app.exception_handler(RequestValidationError)
    async def validation_exception_handler(request, exc):
        """Handler for request validation errors."""
        validation_errors = jsonable_encoder(exc.errors())

        logger.warning(
            f"VALID#{_error_id()}: {request.method} {request.url.path}\n"
            f"  │ {json.dumps(validation_errors, indent=2)}"
        )

        return JSONResponse(
            status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
            content=ErrorDetail(
                status_code=status.HTTP_422_UNPROCESSABLE_ENTITY,
                message="Invalid request data",
                error_type="validation_error",
                details=validation_errors
            ).to_dict()
        )

    @app.exception_handler(Exception)
    async def generic_exception_handler(request, exc):
        """Handler for unhandled exceptions."""
        exc_type, exc_value, exc_traceback = sys.exc_info()
        stack_trace = "".join(traceback.format_exception(exc_type, exc_value, exc_traceback))

        logger.error(
            f"EXC#{_error_id()}: {request.method} {request.url.path} - "
            f"{exc.__class__.__name__}: {exc}\n{format_stack_trace(stack_trace)}"
        )

        return JSONResponse(
            status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
            content=ErrorDetail(
                status_code=status.HTTP_500_INTERNAL_SERVER_ERROR,
                message="Internal server error",
                error_type=exc.__class__.__name__,
                stack_trace=stack_trace,
            ).to_dict()
        )
