"""
API tests: stateless scoring endpoints and the live WebSocket session.
"""

import cv2
import numpy as np
import pytest
from fastapi.testclient import TestClient

from api.main import create_app
from api.routers.professionalism import get_engine_config
from engine.config import EngineConfig
from engine.exceptions import InvalidSessionStateError, ResourceUnavailableError
from tests._helpers import FakeBackend


def _jpeg() -> bytes:
    ok, buf = cv2.imencode(".jpg", np.full((48, 64, 3), 127, dtype=np.uint8))
    assert ok
    return buf.tobytes()


def _sample(label, ts, confidence=0.9):
    return {"dominant_expression": label, "dominant_confidence": confidence, "timestamp": ts}


@pytest.fixture
def app():
    return create_app(backend_factory=lambda: FakeBackend(expressions={"neutral": 1.0}, midline_x=150.0))


@pytest.fixture
def client(app):
    with TestClient(app) as c:
        yield c


class TestScoreEndpoint:

    def test_health(self, client):
        r = client.get("/health")
        assert r.status_code == 200
        assert r.json() == {"status": "ok"}
        assert "X-Request-ID" in r.headers

    def test_neutral_face(self, client):
        r = client.post("/v1/professionalism/score", json={"confidence": 0.9, "expressions": {"neutral": 1.0}})
        assert r.status_code == 200
        data = r.json()
        assert data["score"] == 75
        assert data["label"] == "Good"
        assert data["band"] == "yellow"
        assert data["dominant_expression"] == "neutral"

    def test_alignment_and_floor(self, client):
        r = client.post(
            "/v1/professionalism/score",
            json={"confidence": 0.5, "expressions": {"angry": 1.0, "sad": 1.0, "fearful": 1.0}, "alignment_offset": 60},
        )
        assert r.json()["score"] == 10

    def test_no_expressions(self, client):
        r = client.post("/v1/professionalism/score", json={"confidence": 0.5, "alignment_offset": 3})
        data = r.json()
        assert data["score"] == 60
        assert data["dominant_expression"] is None

    def test_invalid_probability_rejected(self, client):
        r = client.post("/v1/professionalism/score", json={"confidence": 0.5, "expressions": {"happy": 1.5}})
        assert r.status_code == 422

    def test_config_override(self, app, client):
        app.dependency_overrides[get_engine_config] = lambda: EngineConfig(base_score=30.0)
        try:
            r = client.post("/v1/professionalism/score", json={"confidence": 0.9})
        finally:
            app.dependency_overrides.clear()
        assert r.json()["score"] == 30


class TestAggregateEndpoint:

    def test_too_few_samples(self, client):
        r = client.post("/v1/professionalism/aggregate", json={"samples": [_sample("neutral", i) for i in range(5)]})
        data = r.json()
        assert data["snapshot"]["overall_score"] == 0
        assert data["label"] == "Needs Improvement"
        assert data["samples_used"] == 5

    def test_all_neutral(self, client):
        samples = [_sample("neutral", float(i)) for i in range(12)]
        data = client.post("/v1/professionalism/aggregate", json={"samples": samples}).json()
        assert data["snapshot"] == {
            "overall_score": 91,
            "stability": 100,
            "engagement": 84,
            "composure": 100,
            "authenticity": 80,
        }
        assert data["label"] == "Excellent"
        assert data["band"] == "green"
        assert data["tips"][-1]["area"] == "overall"
        assert len(data["recent_expressions"]) == 10

    def test_samples_beyond_horizon_dropped(self, client):
        samples = [_sample("angry", float(i)) for i in range(10)]
        samples += [_sample("neutral", 200.0 + i) for i in range(10)]
        data = client.post("/v1/professionalism/aggregate", json={"samples": samples}).json()
        assert data["samples_used"] == 10
        assert data["snapshot"]["composure"] == 100


class TestErrorHandlers:

    def test_engine_errors_map_to_status_codes(self, app):
        @app.get("/unavailable")
        async def unavailable():
            raise ResourceUnavailableError("camera missing", "abc")

        @app.get("/conflict")
        async def conflict():
            raise InvalidSessionStateError("not running", "abc")

        with TestClient(app) as client:
            r = client.get("/unavailable")
            assert r.status_code == 503
            assert r.json() == {"error": "ResourceUnavailableError", "detail": "camera missing"}
            assert client.get("/conflict").status_code == 409


class TestWebSocketSession:

    def _receive_until(self, ws, message_type):
        while True:
            message = ws.receive_json()
            if message["type"] == message_type:
                return message

    def test_single_shot_session(self, client):
        with client.websocket_connect("/ws/v1/professionalism") as ws:
            assert ws.receive_json() == {"type": "status", "status": "idle"}

            ws.send_bytes(_jpeg())
            ws.send_json({"action": "start", "mode": "single_shot", "tick_interval_sec": 0.05})
            running = self._receive_until(ws, "status")
            assert running["status"] == "running"
            assert running["mode"] == "single_shot"

            update = self._receive_until(ws, "update")
            assert update["detected"] is True
            assert update["instantaneous_score"] == 85

            ws.send_json({"action": "stop"})
            result = self._receive_until(ws, "result")
            assert result["status"] == "finished"
            assert result["final_score"] == 85
            assert result["label"] == "Very Good"

    def test_stop_without_session_is_error(self, client):
        with client.websocket_connect("/ws/v1/professionalism") as ws:
            ws.receive_json()
            ws.send_json({"action": "stop"})
            error = ws.receive_json()
            assert error["type"] == "error"
            assert error["error"] == "InvalidSessionStateError"

    def test_double_start_is_error(self, client):
        with client.websocket_connect("/ws/v1/professionalism") as ws:
            ws.receive_json()
            ws.send_json({"action": "start", "tick_interval_sec": 30})
            assert self._receive_until(ws, "status")["status"] == "running"
            ws.send_json({"action": "start"})
            assert self._receive_until(ws, "error")["error"] == "InvalidSessionStateError"
            ws.send_json({"action": "reset"})
            assert self._receive_until(ws, "status")["status"] == "idle"

    def test_bad_messages(self, client):
        with client.websocket_connect("/ws/v1/professionalism") as ws:
            ws.receive_json()
            ws.send_text("not json")
            assert ws.receive_json()["error"] == "InvalidMessage"
            ws.send_json({"action": "dance"})
            assert ws.receive_json()["error"] == "InvalidMessage"
            ws.send_json({"action": "start", "mode": "forever"})
            assert ws.receive_json()["error"] == "ValidationError"
