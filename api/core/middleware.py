# api/core/middleware.py
import logging
import time
import uuid
from typing import Callable
from fastapi import FastAPI, Request, Response
from fastapi.middleware.cors import CORSMiddleware

from config import AppSettings

logger = logging.getLogger("api.middleware")


async def request_timing_middleware(request: Request, call_next: Callable) -> Response:
    """
    Logs each scoring request and reports how long it took.

    Adds `X-Request-ID` (echoing the client's when present) and
    `X-Process-Time-ms` headers to the response.
    """
    request_id = request.headers.get("X-Request-ID") or uuid.uuid4().hex[:16]
    started = time.perf_counter()

    response = await call_next(request)

    elapsed_ms = (time.perf_counter() - started) * 1000
    response.headers["X-Request-ID"] = request_id
    response.headers["X-Process-Time-ms"] = f"{elapsed_ms:.2f}"

    logger.info(
        "%s %s -> %s (%.2f ms)",
        request.method, request.url.path, response.status_code, elapsed_ms,
        extra={"request_id": request_id, "status_code": response.status_code}
    )
    return response


def setup_middleware(app: FastAPI, settings: AppSettings) -> None:
    """
    Configures and adds all middleware to the FastAPI application.

    Args:
        app: The FastAPI application instance.
        settings: The application settings object.
    """
    # Browser dashboards post observations cross-origin
    app.add_middleware(
        CORSMiddleware,
        allow_origins=settings.ALLOWED_ORIGINS,
        allow_credentials=True,
        allow_methods=["GET", "POST"],
        allow_headers=["*"],
    )

    app.middleware("http")(request_timing_middleware)
