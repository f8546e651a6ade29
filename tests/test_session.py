"""
Tests for SessionScheduler.

Tick timers are configured far apart (60 s) so tests drive ticks by hand,
except where the timer itself is under test.
"""

import asyncio
import threading

import pytest

from engine.config import get_config
from engine.detector import AdaptiveDetector
from engine.exceptions import InvalidSessionStateError, ResourceUnavailableError
from engine.models import Expression, ScoringMode, SessionStatus
from engine.session import SessionScheduler
from tests._helpers import FakeBackend, FakeClock, FakeFrameSource


class BlockingBackend(FakeBackend):
    """Backend whose detection waits until released."""

    def __init__(self, **kwargs):
        super().__init__(**kwargs)
        self.entered = threading.Event()
        self.release = threading.Event()

    def detect_at(self, frame, input_size, score_threshold):
        self.entered.set()
        self.release.wait(timeout=5)
        return super().detect_at(frame, input_size, score_threshold)


def _scheduler(mode="single_shot", backend=None, source=None, clock=None, **overrides):
    overrides.setdefault("tick_interval_sec", 60.0)
    overrides.setdefault("session_duration_sec", None)
    config = get_config(mode, **overrides)
    backend = backend or FakeBackend(expressions={"neutral": 1.0}, midline_x=150.0)
    return SessionScheduler(
        AdaptiveDetector(backend, config),
        source or FakeFrameSource(),
        config,
        clock=clock or FakeClock(),
        session_id="test",
    )


class TestSessionLifecycle:

    @pytest.mark.asyncio
    async def test_stop_without_samples_scores_zero(self):
        source = FakeFrameSource()
        async with _scheduler(source=source) as scheduler:
            await scheduler.start()
            assert scheduler.status == SessionStatus.RUNNING
            assert source.opened

            result = await scheduler.stop()

        assert result.final_score == 0
        assert result.status == SessionStatus.FINISHED
        assert result.samples_collected == 0
        assert not source.opened

    @pytest.mark.asyncio
    async def test_start_failure_stays_idle(self):
        source = FakeFrameSource(fail_open=RuntimeError("camera busy"))
        async with _scheduler(source=source) as scheduler:
            with pytest.raises(ResourceUnavailableError):
                await scheduler.start()
            assert scheduler.status == SessionStatus.IDLE

    @pytest.mark.asyncio
    async def test_start_failure_propagates_resource_error(self):
        source = FakeFrameSource(fail_open=ResourceUnavailableError("denied"))
        async with _scheduler(source=source) as scheduler:
            with pytest.raises(ResourceUnavailableError, match="denied"):
                await scheduler.start()
            assert scheduler.status == SessionStatus.IDLE

    @pytest.mark.asyncio
    async def test_missing_model_stays_idle_and_releases_source(self):
        source = FakeFrameSource()
        backend = FakeBackend(fail_load=True)
        async with _scheduler(backend=backend, source=source) as scheduler:
            with pytest.raises(ResourceUnavailableError, match="model weights missing"):
                await scheduler.start()
            assert scheduler.status == SessionStatus.IDLE
            assert scheduler._tick_task is None
            assert source.open_count == 1
            assert not source.opened

    @pytest.mark.asyncio
    async def test_model_load_error_is_wrapped(self):
        class BrokenLoadBackend(FakeBackend):
            def load(self):
                raise OSError("cannot read model file")

        async with _scheduler(backend=BrokenLoadBackend()) as scheduler:
            with pytest.raises(ResourceUnavailableError, match="Detector model unavailable"):
                await scheduler.start()
            assert scheduler.status == SessionStatus.IDLE

    @pytest.mark.asyncio
    async def test_start_loads_detector_model(self):
        backend = FakeBackend()
        async with _scheduler(backend=backend) as scheduler:
            await scheduler.start()
            assert backend.loaded
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_start_twice_rejected(self):
        async with _scheduler() as scheduler:
            await scheduler.start()
            with pytest.raises(InvalidSessionStateError):
                await scheduler.start()
            await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_when_idle_rejected(self):
        async with _scheduler() as scheduler:
            with pytest.raises(InvalidSessionStateError):
                await scheduler.stop()

    @pytest.mark.asyncio
    async def test_stop_is_idempotent_once_finished(self):
        async with _scheduler() as scheduler:
            await scheduler.start()
            await scheduler.tick()
            first = await scheduler.stop()
            second = await scheduler.stop()
        assert first == second

    @pytest.mark.asyncio
    async def test_restart_after_finish(self):
        source = FakeFrameSource()
        async with _scheduler(source=source) as scheduler:
            await scheduler.start()
            await scheduler.tick()
            await scheduler.stop()

            await scheduler.start()
            assert scheduler.status == SessionStatus.RUNNING
            assert scheduler.result.ticks == 0
            await scheduler.stop()
        assert source.open_count == 2

    @pytest.mark.asyncio
    async def test_reset_discards_data(self):
        source = FakeFrameSource()
        async with _scheduler(source=source) as scheduler:
            await scheduler.start()
            await scheduler.tick()
            await scheduler.reset()

            assert scheduler.status == SessionStatus.IDLE
            assert len(scheduler.state.store) == 0
            assert scheduler.state.scores == []
            assert not source.opened


class TestSingleShot:

    @pytest.mark.asyncio
    async def test_final_score_is_mean_of_ticks(self):
        backend = FakeBackend(expressions={"neutral": 1.0}, midline_x=150.0)
        async with _scheduler(backend=backend) as scheduler:
            await scheduler.start()
            first = await scheduler.tick()
            backend.expressions = {"happy": 1.0}
            backend.midline_x = None
            second = await scheduler.tick()
            result = await scheduler.stop()

        assert first.instantaneous_score == 85
        assert second.instantaneous_score == 65
        assert result.final_score == 75
        assert result.detections == 2
        assert result.recent_expressions == [Expression.NEUTRAL, Expression.HAPPY]

    @pytest.mark.asyncio
    async def test_recent_expressions_skip_expired_samples(self):
        clock = FakeClock()
        async with _scheduler(clock=clock) as scheduler:
            await scheduler.start()
            await scheduler.tick()
            clock.advance(150.0)

            assert scheduler.result.recent_expressions == []
            result = await scheduler.stop()

        assert result.recent_expressions == []
        assert result.samples_collected == 1

    @pytest.mark.asyncio
    async def test_observation_without_expressions_still_scored(self):
        backend = FakeBackend(expressions=None, midline_x=150.0)
        async with _scheduler(backend=backend) as scheduler:
            await scheduler.start()
            update = await scheduler.tick()
            result = await scheduler.stop()

        assert update.detected
        assert update.current_expression is None
        assert result.final_score == 60
        assert result.samples_collected == 0

    @pytest.mark.asyncio
    async def test_missed_detection_not_scored(self):
        backend = FakeBackend(score=0.05)
        async with _scheduler(backend=backend) as scheduler:
            await scheduler.start()
            update = await scheduler.tick()
            result = await scheduler.stop()

        assert not update.detected
        assert result.ticks == 1
        assert result.detections == 0
        assert result.final_score == 0

    @pytest.mark.asyncio
    async def test_duration_expiry_finishes_and_releases(self):
        source = FakeFrameSource()
        finished = []
        scheduler = _scheduler(source=source, session_duration_sec=0.05)
        scheduler.on_finish = finished.append
        async with scheduler:
            await scheduler.start()
            await asyncio.sleep(0.3)

            assert scheduler.status == SessionStatus.FINISHED
            assert not source.opened
            assert len(finished) == 1
            assert finished[0].final_score == 0

    @pytest.mark.asyncio
    async def test_late_detection_is_discarded(self):
        backend = BlockingBackend(expressions={"neutral": 1.0})
        async with _scheduler(backend=backend) as scheduler:
            await scheduler.start()
            pending = asyncio.create_task(scheduler.tick())
            while not backend.entered.is_set():
                await asyncio.sleep(0.01)

            result = await scheduler.stop()
            backend.release.set()
            late = await pending

            assert late is None
            assert result.final_score == 0
            assert scheduler.result.samples_collected == 0
            assert scheduler.state.scores == []


class TestContinuous:

    @pytest.mark.asyncio
    async def test_snapshot_after_min_samples(self):
        clock = FakeClock()
        updates = []
        scheduler = _scheduler(mode="continuous", clock=clock)
        scheduler.on_update = updates.append
        async with scheduler:
            await scheduler.start()
            for _ in range(10):
                await scheduler.tick()
                clock.advance(0.3)
            result = await scheduler.stop()

        assert scheduler.mode == ScoringMode.CONTINUOUS
        assert len(updates) == 10
        assert updates[8].snapshot.overall_score == 0
        assert updates[9].snapshot.overall_score == 91
        assert updates[9].instantaneous_score is None
        assert result.final_score == 91
        assert result.snapshot.stability == 100

    @pytest.mark.asyncio
    async def test_timer_drives_ticks(self):
        async with _scheduler(mode="continuous", tick_interval_sec=0.01) as scheduler:
            await scheduler.start()
            await asyncio.sleep(0.2)
            result = await scheduler.stop()
        assert result.ticks > 0
