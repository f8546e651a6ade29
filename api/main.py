# api/main.py
"""FastAPI application entrypoint.

This file uses the application factory pattern to create and configure
the FastAPI application. Run with:

    uvicorn api.main:app --reload
"""

import logging
from typing import Callable, Optional

from fastapi import FastAPI

from config import AppSettings, settings as default_settings
from api.core.logging import setup_logging
from api.core.middleware import setup_middleware
from api.core.exception_handlers import setup_exception_handlers
from api.routers import router
from api.websockets import handle_professionalism_session
from engine.backends import create_backend
from engine.detector import FaceDetectorBackend

logger = logging.getLogger(__name__)

BackendFactory = Callable[[], FaceDetectorBackend]


def _default_backend_factory(settings: AppSettings) -> BackendFactory:
    def factory() -> FaceDetectorBackend:
        kwargs = {}
        if settings.DETECTOR_BACKEND.lower() == "mediapipe":
            kwargs["model_selection"] = settings.MEDIAPIPE_MODEL_SELECTION
        return create_backend(settings.DETECTOR_BACKEND, **kwargs)
    return factory


def create_app(
    settings: Optional[AppSettings] = None,
    backend_factory: Optional[BackendFactory] = None,
) -> FastAPI:
    """
    Creates, configures, and returns a FastAPI application instance.

    This factory encapsulates the application's setup logic, making it
    reusable for testing and other deployment scenarios.

    Args:
        settings: Application settings (module defaults if None)
        backend_factory: Builds one detector backend per live session

    Returns:
        The configured FastAPI application instance.
    """
    settings = settings or default_settings
    setup_logging(settings)

    app = FastAPI(
        title=settings.APP_NAME,
        description=settings.APP_DESCRIPTION,
        version=settings.APP_VERSION,
    )

    app.state.backend_factory = backend_factory or _default_backend_factory(settings)
    app.state.sessions = set()

    setup_middleware(app, settings)

    setup_exception_handlers(app)

    app.include_router(router)
    app.websocket("/ws/v1/professionalism")(handle_professionalism_session)

    logger.info("DETECTOR_BACKEND=%s", settings.DETECTOR_BACKEND)

    @app.on_event("startup")
    async def startup_event():
        logging.getLogger("api.main").info("Application startup complete.")

    @app.on_event("shutdown")
    async def shutdown_event():
        # Release cameras and detectors of sessions still open
        for scheduler in list(app.state.sessions):
            await scheduler.aclose()
        app.state.sessions.clear()
        logging.getLogger("api.main").info("Application shutting down.")

    return app


# Create the application instance for the Uvicorn server
app = create_app()
