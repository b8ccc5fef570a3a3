"""
Application Middleware for the VidTube API.

Cross-cutting request processing: correlation IDs, centralized error
responses, request timing logs and identity resolution.

Key Middleware Components:
- `CorrelationMiddleware`: Assigns a correlation ID to every request (or
  reuses the caller's `X-Correlation-ID` / `X-Request-ID`) and echoes it back.
- `ErrorHandlingMiddleware`: Last line of defence. Anything that escapes the
  exception handlers is logged with its traceback and answered with a generic
  `InternalError` envelope, never with internal detail.
- `PerformanceMiddleware`: Logs start and completion of each request and adds
  an `X-Process-Time` header (milliseconds).
- `IdentityMiddleware`: Resolves the bearer token (or `access_token` cookie)
  to the acting user id on `request.state.actor_id`.

`register_exception_handlers` installs the handlers that turn application,
request-validation and HTTP exceptions into the uniform error envelope
`{status, message, errors}`.

Middleware order matters: Starlette runs the most recently added middleware
first, so `main.create_app` adds them innermost-first.
"""

import time
import uuid
from typing import Callable, Optional

from fastapi import FastAPI, Request, Response
from fastapi.exceptions import RequestValidationError
from fastapi.responses import JSONResponse
from starlette.exceptions import HTTPException as StarletteHTTPException
from starlette.middleware.base import BaseHTTPMiddleware
from starlette.types import ASGIApp

from .auth import JWTManager
from .logging_config import set_correlation_id, get_logger
from .exceptions import (
    AuthenticationError,
    InternalError,
    VidTubeAPIException,
    to_error_payload,
)

logger = get_logger("core.middleware")


class CorrelationMiddleware(BaseHTTPMiddleware):
    """Middleware to add correlation IDs to requests"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        correlation_id = (
            request.headers.get("X-Correlation-ID")
            or request.headers.get("X-Request-ID")
            or str(uuid.uuid4())
        )

        set_correlation_id(correlation_id)
        request.state.correlation_id = correlation_id

        response = await call_next(request)
        response.headers["X-Correlation-ID"] = correlation_id
        return response


class ErrorHandlingMiddleware(BaseHTTPMiddleware):
    """Middleware for centralized handling of unexpected errors"""

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        try:
            return await call_next(request)

        except VidTubeAPIException as e:
            # Normally handled by the registered exception handler
            return _error_response(e)

        except Exception as e:
            logger.error(
                f"Unexpected error: {str(e)}",
                extra={
                    "error_type": type(e).__name__,
                    "path": request.url.path,
                    "method": request.method,
                },
                exc_info=True,
            )
            return _error_response(InternalError())


class PerformanceMiddleware(BaseHTTPMiddleware):
    """Middleware for request timing and logging"""

    def __init__(self, app: ASGIApp, slow_request_threshold: float = 1.0):
        super().__init__(app)
        self.slow_request_threshold = slow_request_threshold

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        start_time = time.time()

        logger.info(
            f"Request started: {request.method} {request.url.path}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "query_params": dict(request.query_params),
                "client_ip": get_client_ip(request),
            },
        )

        response = await call_next(request)

        process_time = time.time() - start_time
        response.headers["X-Process-Time"] = str(round(process_time * 1000, 2))

        logger.info(
            f"Request completed: {request.method} {request.url.path} - {response.status_code}",
            extra={
                "method": request.method,
                "path": request.url.path,
                "status_code": response.status_code,
                "process_time_ms": round(process_time * 1000, 2),
            },
        )

        if process_time > self.slow_request_threshold:
            logger.warning(
                f"Slow request detected: {request.method} {request.url.path}",
                extra={
                    "method": request.method,
                    "path": request.url.path,
                    "process_time_ms": round(process_time * 1000, 2),
                },
            )

        return response


class IdentityMiddleware(BaseHTTPMiddleware):
    """Attach the acting user id (or None) to every request"""

    def __init__(self, app: ASGIApp, jwt_manager: JWTManager):
        super().__init__(app)
        self.jwt_manager = jwt_manager

    async def dispatch(self, request: Request, call_next: Callable) -> Response:
        request.state.actor_id = None

        token = extract_token(request)
        if token:
            try:
                payload = self.jwt_manager.verify_token(token)
                request.state.actor_id = payload["sub"]
            except AuthenticationError as e:
                logger.debug(
                    f"Ignoring invalid access token: {e.message}",
                    extra={"path": request.url.path},
                )

        return await call_next(request)


def extract_token(request: Request) -> Optional[str]:
    """Bearer token from the Authorization header, else the access_token cookie"""
    authorization = request.headers.get("Authorization", "")
    scheme, _, credentials = authorization.partition(" ")
    if scheme.lower() == "bearer" and credentials.strip():
        return credentials.strip()
    return request.cookies.get("access_token")


def get_client_ip(request: Request) -> str:
    """Extract client IP from request, considering proxy headers"""
    forwarded_for = request.headers.get("X-Forwarded-For")
    if forwarded_for:
        return forwarded_for.split(",")[0].strip()

    real_ip = request.headers.get("X-Real-IP")
    if real_ip:
        return real_ip

    return request.client.host if request.client else "unknown"


def _error_response(exc: VidTubeAPIException) -> JSONResponse:
    return JSONResponse(status_code=exc.status_code, content=to_error_payload(exc))


async def application_exception_handler(request: Request, exc: VidTubeAPIException):
    log = logger.error if exc.status_code >= 500 else logger.warning
    log(
        f"Application error: {exc.message}",
        extra={
            "error_type": type(exc).__name__,
            "error_code": exc.error_code,
            "path": request.url.path,
            "method": request.method,
        },
    )
    return _error_response(exc)


async def request_validation_exception_handler(request: Request, exc: RequestValidationError):
    errors = [
        {
            "field": ".".join(str(part) for part in error.get("loc", ())[1:]) or None,
            "message": error.get("msg"),
        }
        for error in exc.errors()
    ]
    logger.warning(
        "Request validation failed",
        extra={"path": request.url.path, "method": request.method, "errors": errors},
    )
    return JSONResponse(
        status_code=400,
        content={"status": 400, "message": "Invalid request parameters", "errors": errors},
    )


async def http_exception_handler(request: Request, exc: StarletteHTTPException):
    return JSONResponse(
        status_code=exc.status_code,
        content={"status": exc.status_code, "message": str(exc.detail), "errors": []},
        headers=getattr(exc, "headers", None),
    )


def register_exception_handlers(app: FastAPI):
    app.add_exception_handler(VidTubeAPIException, application_exception_handler)
    app.add_exception_handler(RequestValidationError, request_validation_exception_handler)
    app.add_exception_handler(StarletteHTTPException, http_exception_handler)
