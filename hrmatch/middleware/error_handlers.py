"""
Global Exception Handler Middleware for the matching API
"""
import time
import traceback
import uuid
from datetime import datetime, timezone
from typing import Any

from fastapi import Request, HTTPException
from fastapi.responses import JSONResponse
from starlette.middleware.base import BaseHTTPMiddleware

from hrmatch.utils.exceptions import HRMatchBaseException, map_to_http_exception
from hrmatch.utils.logging_config import get_logger

logger = get_logger(__name__)


class ExceptionHandlerMiddleware(BaseHTTPMiddleware):
    """Turns engine exceptions that escape a route into JSON error responses"""

    async def dispatch(self, request: Request, call_next):
        request_id = str(uuid.uuid4())
        request.state.request_id = request_id

        try:
            response = await call_next(request)
            response.headers["X-Request-ID"] = request_id
            return response

        except HRMatchBaseException as exc:
            logger.error(
                f"Engine exception in {request.method} {request.url.path}: {exc.message}",
                extra={
                    "request_id": request_id,
                    "exception_type": exc.__class__.__name__,
                    "error_code": exc.error_code,
                    "details": exc.details,
                }
            )
            http_exc = map_to_http_exception(exc)
            return self._create_error_response(request_id, http_exc.status_code, http_exc.detail)

        except HTTPException as exc:
            logger.warning(
                f"HTTP exception in {request.method} {request.url.path}: {exc.detail}",
                extra={"request_id": request_id, "status_code": exc.status_code}
            )
            return self._create_error_response(request_id, exc.status_code, exc.detail)

        except Exception as exc:
            logger.error(
                f"Unhandled exception in {request.method} {request.url.path}: {str(exc)}",
                extra={
                    "request_id": request_id,
                    "exception_type": exc.__class__.__name__,
                    "traceback": traceback.format_exc(),
                },
                exc_info=True
            )
            # Don't expose internal errors
            error_detail = {
                "error": "Internal server error",
                "message": "An unexpected error occurred. Please try again later.",
            }
            return self._create_error_response(request_id, 500, error_detail)

    @staticmethod
    def _create_error_response(request_id: str, status_code: int, detail: Any) -> JSONResponse:
        if isinstance(detail, str):
            detail = {"message": detail}
        elif not isinstance(detail, dict):
            detail = {"message": str(detail)}

        error_response = {
            "success": False,
            "timestamp": datetime.now(timezone.utc).isoformat(),
            "request_id": request_id,
            "status_code": status_code,
            **detail
        }
        return JSONResponse(
            status_code=status_code,
            content=error_response,
            headers={"X-Request-ID": request_id}
        )


class RequestLoggingMiddleware(BaseHTTPMiddleware):
    """Logs each request with its status and duration; bodies are never logged (uploads)"""

    HEALTH_PATHS = ("/health", "/healthz", "/ping")

    def __init__(self, app, slow_request_threshold: float = 30.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next):
        if request.url.path in self.HEALTH_PATHS:
            return await call_next(request)

        start_time = time.time()
        request_id = getattr(request.state, "request_id", None)

        response = await call_next(request)
        processing_time = time.time() - start_time

        message = f"{request.method} {request.url.path} - {response.status_code} in {processing_time:.3f}s"
        extra = {"request_id": request_id, "processing_time": processing_time}
        if processing_time > self.slow_request_threshold:
            logger.warning(f"Slow request: {message}", extra=extra)
        else:
            logger.info(f"Response: {message}", extra=extra)

        response.headers["X-Processing-Time"] = f"{processing_time:.3f}"
        return response
