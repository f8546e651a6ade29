"""
WebSocket handler for live professionalism scoring sessions.

The client pushes encoded frames (binary messages) and drives the session
lifecycle with JSON control messages:

    {"action": "start", "mode": "continuous" | "single_shot", "duration_sec": 60}
    {"action": "stop"}
    {"action": "reset"}

The server answers with {"type": "status" | "update" | "result" | "error", ...}.
"""

import asyncio
import json
import logging
from typing import Any, Dict, Optional

from fastapi import WebSocket, WebSocketDisconnect
from pydantic import ValidationError

from api.schemas.professionalism import SessionStartMessage
from config import settings
from engine.config import get_config
from engine.detector import AdaptiveDetector
from engine.exceptions import EngineError, InvalidSessionStateError
from engine.feedback import AdviceGenerator, score_band, score_label
from engine.frame_source import PushFrameSource
from engine.models import SessionResult, SessionStatus, SessionUpdate
from engine.session import SessionScheduler

logger = logging.getLogger(__name__)

_advice = AdviceGenerator()


class _JsonSender:
    """Serializes sends from the receive loop and from tick callbacks."""

    def __init__(self, websocket: WebSocket):
        self.websocket = websocket
        self._lock = asyncio.Lock()
        self.closed = False

    async def send(self, payload: Dict[str, Any]) -> None:
        if self.closed:
            return
        async with self._lock:
            try:
                await self.websocket.send_json(payload)
            except (WebSocketDisconnect, RuntimeError) as e:
                logger.debug(f"WebSocket send failed, marking closed: {e}")
                self.closed = True

    async def send_status(self, status: SessionStatus, **extra) -> None:
        await self.send({"type": "status", "status": status.value, **extra})

    async def send_error(self, error: str, detail: str) -> None:
        await self.send({"type": "error", "error": error, "detail": detail})

    async def send_update(self, update: SessionUpdate) -> None:
        await self.send({"type": "update", **update.model_dump(mode="json")})

    async def send_result(self, result: SessionResult) -> None:
        payload = {"type": "result", **result.model_dump(mode="json")}
        payload["label"] = score_label(result.final_score)
        payload["band"] = score_band(result.final_score)
        payload["tips"] = _advice.generate_tips(result.snapshot)
        await self.send(payload)


def _create_scheduler(
    websocket: WebSocket,
    frame_source: PushFrameSource,
    start: SessionStartMessage,
    sender: _JsonSender
) -> SessionScheduler:
    overrides = {}
    if start.duration_sec is not None:
        overrides["session_duration_sec"] = start.duration_sec
    if start.tick_interval_sec is not None:
        overrides["tick_interval_sec"] = start.tick_interval_sec
    config = get_config(start.mode.value, **overrides)

    backend = websocket.app.state.backend_factory()
    detector = AdaptiveDetector(backend, config)

    return SessionScheduler(
        detector,
        frame_source,
        config,
        on_update=sender.send_update,
        on_finish=sender.send_result,
    )


async def handle_professionalism_session(websocket: WebSocket) -> None:
    """
    Run one WebSocket connection; a connection may host several sessions
    one after another.
    """
    await websocket.accept()
    sender = _JsonSender(websocket)
    frame_source = PushFrameSource(settings.FRAME_WIDTH or None, settings.FRAME_HEIGHT or None)
    scheduler: Optional[SessionScheduler] = None
    sessions = websocket.app.state.sessions

    await sender.send_status(SessionStatus.IDLE)

    try:
        while True:
            message = await websocket.receive()
            if message["type"] == "websocket.disconnect":
                break

            if message.get("bytes") is not None:
                frame_source.push_encoded(message["bytes"])
                continue

            try:
                payload = json.loads(message.get("text") or "")
            except json.JSONDecodeError:
                await sender.send_error("InvalidMessage", "Control messages must be JSON")
                continue

            action = payload.get("action") if isinstance(payload, dict) else None

            try:
                if action == "start":
                    start = SessionStartMessage(**payload)
                    if scheduler is not None and scheduler.is_running:
                        raise InvalidSessionStateError("Session already running", scheduler.session_id)
                    if scheduler is not None:
                        sessions.discard(scheduler)
                        await scheduler.aclose()
                        scheduler = None

                    candidate = _create_scheduler(websocket, frame_source, start, sender)
                    try:
                        await candidate.start()
                    except EngineError:
                        await candidate.aclose()
                        raise
                    scheduler = candidate
                    sessions.add(scheduler)
                    await sender.send_status(
                        SessionStatus.RUNNING,
                        session_id=scheduler.session_id,
                        mode=scheduler.mode.value,
                    )

                elif action == "stop":
                    if scheduler is None:
                        raise InvalidSessionStateError("No session to stop")
                    result = await scheduler.stop()
                    await sender.send_result(result)

                elif action == "reset":
                    if scheduler is not None:
                        await scheduler.reset()
                    await sender.send_status(SessionStatus.IDLE)

                else:
                    await sender.send_error("InvalidMessage", f"Unknown action: {action}")

            except ValidationError as e:
                await sender.send_error("ValidationError", str(e))
            except EngineError as e:
                logger.warning(f"Session error: {e}")
                await sender.send_error(type(e).__name__, e.message)

    except WebSocketDisconnect:
        logger.info("Client disconnected")
    finally:
        sender.closed = True
        if scheduler is not None:
            sessions.discard(scheduler)
            await scheduler.aclose()
        frame_source.close()
