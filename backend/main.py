# ---------------------------------------------------------------------------
# Author  : Kyle <kyle@hacking-linux.com>
# Version : 20261019v1
# ---------------------------------------------------------------------------
"""
FastAPI application factory.

Responsibilities
----------------
* Instantiate the FastAPI app.
* Register CORS and request-logging middleware.
* Mount the feature routers (auth, 2fa, password reset, admin).
* Map the error taxonomy (core.errors) to ``{"error", "detail"}`` bodies;
  anything unexpected becomes an opaque 500 and is logged server-side.
* Expose a /health endpoint for container liveness checks.

Run:  uvicorn main:app  (from backend/)
"""

import time
from contextlib import asynccontextmanager

from fastapi import FastAPI, Request
from fastapi.exceptions import RequestValidationError
from fastapi.middleware.cors import CORSMiddleware
from fastapi.responses import JSONResponse, Response
from sqlalchemy.exc import OperationalError
from sqlalchemy.exc import TimeoutError as PoolTimeoutError
from starlette.middleware.base import BaseHTTPMiddleware

import models  # noqa: F401 – registers every table on Base.metadata
from admin.router import router as admin_router
from auth.router import router as auth_router
from core.config import settings
from core.errors import AppError, ExternalServiceFailure, Internal, ValidationFailure
from core.logger import logger
from core.security import get_token_codec
from password_reset.router import router as password_reset_router
from twofactor.router import router as twofactor_router


@asynccontextmanager
async def lifespan(app: FastAPI):
    # Build the signing codec once, up front: a missing SECRET_KEY fails here
    get_token_codec()
    logger.info("Prep360 auth service starting up")
    yield
    logger.info("Prep360 auth service shutting down")


app = FastAPI(title="Prep360 API", version="1.0.0", lifespan=lifespan)

# ---------------------------------------------------------------------------
# CORS
# ---------------------------------------------------------------------------
app.add_middleware(
    CORSMiddleware,
    allow_origins=settings.cors_origins,
    allow_credentials=True,
    allow_methods=["GET", "POST", "PUT", "DELETE"],
    allow_headers=["Authorization", "Content-Type"],
)


# ---------------------------------------------------------------------------
# Request-logging middleware
# ---------------------------------------------------------------------------
# Logs every inbound request: method, path, client IP, status, latency.
# Bodies are never echoed – they carry passwords, codes and reset tokens.


class _RequestLogMiddleware(BaseHTTPMiddleware):
    """Log method, path, client IP, response status and latency (ms)."""

    async def dispatch(self, request: Request, call_next) -> Response:
        start = time.perf_counter()
        response: Response = await call_next(request)
        elapsed_ms = (time.perf_counter() - start) * 1000

        client_ip = request.client.host if request.client else "unknown"

        logger.info(
            "%s %s | client=%s status=%d latency=%.1fms",
            request.method,
            request.url.path,
            client_ip,
            response.status_code,
            elapsed_ms,
        )
        return response


app.add_middleware(_RequestLogMiddleware)


# ---------------------------------------------------------------------------
# Error mapping
# ---------------------------------------------------------------------------


def _error_body(kind: str, detail) -> dict:
    return {"error": kind, "detail": detail}


@app.exception_handler(AppError)
async def app_error_handler(request: Request, exc: AppError) -> JSONResponse:
    if isinstance(exc, Internal):
        logger.error("Internal error on %s %s: %s", request.method, request.url.path, exc.message)
        return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, Internal.default_message))
    return JSONResponse(status_code=exc.status_code, content=_error_body(exc.kind, exc.message))


@app.exception_handler(RequestValidationError)
async def validation_error_handler(request: Request, exc: RequestValidationError) -> JSONResponse:
    # Only field locations and messages – the rejected input may be a password
    problems = [
        {"loc": list(err.get("loc", ())), "msg": err.get("msg", "")}
        for err in exc.errors()
    ]
    return JSONResponse(status_code=422, content=_error_body(ValidationFailure.kind, problems))


@app.exception_handler(OperationalError)
@app.exception_handler(PoolTimeoutError)
async def store_unavailable_handler(request: Request, exc: Exception) -> JSONResponse:
    # statement_timeout, lost connection or pool checkout timeout
    logger.error("Database unavailable on %s %s: %s", request.method, request.url.path, type(exc).__name__)
    return JSONResponse(
        status_code=ExternalServiceFailure.status_code,
        content=_error_body(ExternalServiceFailure.kind, ExternalServiceFailure.default_message),
    )


@app.exception_handler(Exception)
async def unhandled_exception_handler(request: Request, exc: Exception) -> JSONResponse:
    logger.error("Unhandled exception on %s %s", request.method, request.url.path, exc_info=exc)
    return JSONResponse(status_code=500, content=_error_body(Internal.kind, Internal.default_message))


# ---------------------------------------------------------------------------
# Routers
# ---------------------------------------------------------------------------
app.include_router(auth_router)
app.include_router(twofactor_router)
app.include_router(password_reset_router)
app.include_router(admin_router)


@app.get("/health")
def health():
    return {"status": "ok"}
