"""
Session scheduler for live professionalism scoring.

Drives the sampling cadence, optional hard duration and lifecycle
(idle -> running -> finished -> idle) of one scoring session, invoking the
detector, scorer, window store and aggregator in order on every tick.
"""

import asyncio
import inspect
import logging
import time
import uuid
from dataclasses import dataclass, field
from typing import Any, Callable, List, Optional, Set

import numpy as np

from .aggregator import MetricsAggregator
from .config import EngineConfig
from .detector import AdaptiveDetector
from .exceptions import InvalidSessionStateError, ResourceUnavailableError
from .frame_source import FrameSource
from .models import (
    ClassifiedSample,
    Expression,
    MetricsSnapshot,
    Observation,
    ScoringMode,
    SessionResult,
    SessionStatus,
    SessionUpdate,
)
from .scorer import InstantaneousScorer, round_half_up
from .window import TemporalWindowStore

logger = logging.getLogger(__name__)

UpdateCallback = Callable[[SessionUpdate], Any]
FinishCallback = Callable[[SessionResult], Any]


@dataclass
class SessionState:
    """State owned by the scheduler for one run."""
    store: TemporalWindowStore
    mode: ScoringMode = ScoringMode.CONTINUOUS
    status: SessionStatus = SessionStatus.IDLE
    scores: List[int] = field(default_factory=list)
    snapshot: MetricsSnapshot = field(default_factory=MetricsSnapshot.empty)
    started_at: Optional[float] = None
    finished_at: Optional[float] = None
    ticks: int = 0
    detections: int = 0
    samples_collected: int = 0
    current_expression: Optional[Expression] = None
    final_score: int = 0

    def get_duration(self, now: float) -> float:
        if self.started_at is None:
            return 0.0
        end = self.finished_at if self.finished_at is not None else now
        return max(0.0, end - self.started_at)


class SessionScheduler:
    """
    Runs one scoring session at a time.

    Ticks are fixed-rate: each tick runs as its own task, so a slow detection
    never delays the next one. Stopping cancels the tick timer, the duration
    timer and every in-flight tick before the final result is computed.

    Usage:
        scheduler = SessionScheduler(detector, CameraFrameSource(), get_config("single_shot"))
        await scheduler.start()
        ...
        result = await scheduler.stop()
    """

    def __init__(
        self,
        detector: AdaptiveDetector,
        frame_source: FrameSource,
        config: Optional[EngineConfig] = None,
        scorer: Optional[InstantaneousScorer] = None,
        aggregator: Optional[MetricsAggregator] = None,
        clock: Optional[Callable[[], float]] = None,
        on_update: Optional[UpdateCallback] = None,
        on_finish: Optional[FinishCallback] = None,
        session_id: Optional[str] = None
    ):
        """
        Initialize scheduler.

        Args:
            detector: Adaptive detector adapter
            frame_source: Frame source, acquired on start and released on stop/reset
            config: Engine configuration (uses the detector's if None)
            scorer: InstantaneousScorer instance (creates default if None)
            aggregator: MetricsAggregator instance (creates default if None)
            clock: Monotonic time source shared by the window and aggregator
            on_update: Called with a SessionUpdate after every detected tick
            on_finish: Called with the SessionResult when the duration elapses
            session_id: Identifier used in logs and errors
        """
        self.detector = detector
        self.frame_source = frame_source
        self.config = config or detector.config
        self._clock = clock or time.monotonic
        self.scorer = scorer or InstantaneousScorer(self.config)
        self.aggregator = aggregator or MetricsAggregator(self.config, clock=self._clock)
        self.on_update = on_update
        self.on_finish = on_finish
        self.session_id = session_id or uuid.uuid4().hex[:8]

        self.state = self._new_state()

        self._tick_task: Optional[asyncio.Task] = None
        self._duration_task: Optional[asyncio.Task] = None
        self._inflight: Set[asyncio.Task] = set()
        self._lifecycle_lock = asyncio.Lock()
        self._result: Optional[SessionResult] = None

        logger.info(
            f"SessionScheduler {self.session_id} initialized: mode={self.config.scoring_mode.value}, "
            f"interval={self.config.tick_interval_sec}s, duration={self.config.session_duration_sec}"
        )

    @property
    def status(self) -> SessionStatus:
        return self.state.status

    @property
    def mode(self) -> ScoringMode:
        return self.config.scoring_mode

    @property
    def is_running(self) -> bool:
        return self.state.status == SessionStatus.RUNNING

    @property
    def result(self) -> SessionResult:
        """Final result once finished, otherwise a live view of the session."""
        return self._result or self._build_result()

    async def start(self) -> None:
        """
        Acquire the frame source and the detector model, then begin sampling.

        Raises:
            InvalidSessionStateError: if the session is already running
            ResourceUnavailableError: if the frame source or the detector
                model cannot be acquired
        """
        async with self._lifecycle_lock:
            if self.state.status == SessionStatus.RUNNING:
                raise InvalidSessionStateError("Session already running", self.session_id)

            self._acquire(self.frame_source.open, "Frame source")
            try:
                self._acquire(self.detector.load, "Detector model")
            except ResourceUnavailableError:
                self._release_source()
                raise

            self.state = self._new_state()
            self.state.status = SessionStatus.RUNNING
            self.state.started_at = self._clock()
            self._result = None

            self._tick_task = asyncio.create_task(self._run_ticks(), name=f"ticks-{self.session_id}")
            duration = self.config.session_duration_sec
            if duration:
                self._duration_task = asyncio.create_task(
                    self._expire_after(duration), name=f"duration-{self.session_id}"
                )

        logger.info(f"Session {self.session_id} started ({self.mode.value})")

    async def stop(self) -> SessionResult:
        """
        Halt sampling and finalize the session.

        Returns:
            SessionResult; the stored result when already finished

        Raises:
            InvalidSessionStateError: if the session was never started
        """
        async with self._lifecycle_lock:
            if self.state.status != SessionStatus.RUNNING:
                if self._result is not None:
                    return self._result
                raise InvalidSessionStateError("Session is not running", self.session_id)

            try:
                await self._cancel_timers()
            finally:
                self._release_source()
            return self._finalize()

    async def reset(self) -> None:
        """Discard all session data and return to idle."""
        async with self._lifecycle_lock:
            try:
                await self._cancel_timers()
            finally:
                self._release_source()
            self.state = self._new_state()
            self._result = None
        logger.info(f"Session {self.session_id} reset")

    async def tick(self) -> Optional[SessionUpdate]:
        """
        Run one sampling step.

        Returns:
            The published SessionUpdate, or None when no frame was available or
            the session stopped while detection was in flight
        """
        state = self.state
        if state.status != SessionStatus.RUNNING:
            return None
        state.ticks += 1

        if not self.frame_source.is_ready:
            logger.debug("Frame source not ready, skipping tick")
            return None
        frame = self.frame_source.read()
        if frame is None:
            return None

        captured_at = self._clock()
        observation = await self.detector.try_detect(frame, captured_at)

        # Late completion after stop/reset must not touch the finalized state
        if self.state is not state or state.status != SessionStatus.RUNNING:
            logger.debug("Dropping detection that completed after session end")
            return None

        update = self._accept(state, observation, captured_at)
        await self._publish(update)
        return update

    def _accept(
        self,
        state: SessionState,
        observation: Optional[Observation],
        captured_at: float
    ) -> SessionUpdate:
        instantaneous = None
        sample = None

        if observation is not None:
            state.detections += 1
            if state.mode == ScoringMode.SINGLE_SHOT:
                instantaneous = self.scorer.score(observation)
                state.scores.append(instantaneous)

            sample = ClassifiedSample.from_observation(observation, instantaneous)
            if sample is not None:
                state.store.push(sample, now=captured_at)
                state.samples_collected += 1
                state.current_expression = sample.dominant_expression
                if state.mode == ScoringMode.CONTINUOUS:
                    state.snapshot = self.aggregator.aggregate(state.store.samples())

        return SessionUpdate(
            status=state.status,
            mode=state.mode,
            timestamp=captured_at,
            elapsed_sec=state.get_duration(captured_at),
            detected=observation is not None,
            box=observation.box if observation else None,
            confidence=observation.confidence if observation else None,
            current_expression=sample.dominant_expression if sample else None,
            instantaneous_score=instantaneous,
            snapshot=state.snapshot if state.mode == ScoringMode.CONTINUOUS else None,
            samples_in_window=len(state.store),
        )

    async def _run_ticks(self) -> None:
        loop = asyncio.get_running_loop()
        interval = self.config.tick_interval_sec
        next_tick = loop.time() + interval

        while True:
            await asyncio.sleep(max(0.0, next_tick - loop.time()))
            next_tick += interval
            if next_tick < loop.time():
                # Fell behind; realign instead of bursting
                next_tick = loop.time() + interval

            task = asyncio.create_task(self.tick())
            self._inflight.add(task)
            task.add_done_callback(self._on_tick_done)

    def _on_tick_done(self, task: asyncio.Task) -> None:
        self._inflight.discard(task)
        if task.cancelled():
            return
        exc = task.exception()
        if exc is not None:
            logger.error(f"Tick failed in session {self.session_id}: {exc}", exc_info=exc)

    async def _expire_after(self, duration: float) -> None:
        await asyncio.sleep(duration)
        logger.info(f"Session {self.session_id} reached its {duration}s duration")
        self._duration_task = None
        result = await self.stop()
        if self.on_finish is not None:
            await self._invoke(self.on_finish, result)

    async def _cancel_timers(self) -> None:
        current = asyncio.current_task()
        tasks = [
            t for t in (self._tick_task, self._duration_task, *self._inflight)
            if t is not None and t is not current and not t.done()
        ]
        for task in tasks:
            task.cancel()
        if tasks:
            await asyncio.gather(*tasks, return_exceptions=True)

        self._tick_task = None
        self._duration_task = None
        self._inflight.clear()

    def _acquire(self, acquire: Callable[[], None], resource: str) -> None:
        try:
            acquire()
        except ResourceUnavailableError as e:
            logger.error(f"Session {self.session_id} could not start: {e}")
            raise
        except Exception as e:
            logger.error(f"Session {self.session_id} could not start: {e}", exc_info=True)
            raise ResourceUnavailableError(f"{resource} unavailable: {e}", self.session_id) from e

    def _release_source(self) -> None:
        try:
            self.frame_source.close()
        except Exception as e:
            logger.error(f"Failed to release frame source for session {self.session_id}: {e}", exc_info=True)

    def _finalize(self) -> SessionResult:
        state = self.state
        state.status = SessionStatus.FINISHED
        state.finished_at = self._clock()

        if state.mode == ScoringMode.SINGLE_SHOT:
            state.final_score = round_half_up(float(np.mean(state.scores))) if state.scores else 0
        else:
            state.final_score = state.snapshot.overall_score

        self._result = self._build_result()
        logger.info(
            f"Session {self.session_id} finished: score={state.final_score}, "
            f"ticks={state.ticks}, detections={state.detections}, samples={state.samples_collected}"
        )
        return self._result

    def _build_result(self) -> SessionResult:
        state = self.state
        return SessionResult(
            mode=state.mode,
            status=state.status,
            final_score=state.final_score,
            snapshot=state.snapshot,
            samples_collected=state.samples_collected,
            ticks=state.ticks,
            detections=state.detections,
            duration_sec=state.get_duration(self._clock()),
            recent_expressions=[
                s.dominant_expression for s in state.store.latest(self.config.recent_pattern_size)
            ],
        )

    async def _publish(self, update: SessionUpdate) -> None:
        if self.on_update is not None:
            await self._invoke(self.on_update, update)

    async def _invoke(self, callback: Callable[[Any], Any], payload: Any) -> None:
        try:
            outcome = callback(payload)
            if inspect.isawaitable(outcome):
                await outcome
        except Exception as e:
            logger.warning(f"Session {self.session_id} callback failed: {e}", exc_info=True)

    def _new_state(self) -> SessionState:
        return SessionState(
            store=TemporalWindowStore(self.config.retention_horizon_sec, clock=self._clock),
            mode=self.config.scoring_mode,
        )

    async def aclose(self) -> None:
        """Clean up all resources."""
        logger.info(f"Closing session {self.session_id}")
        async with self._lifecycle_lock:
            try:
                await self._cancel_timers()
            finally:
                self._release_source()
        self.detector.close()

    async def __aenter__(self):
        """Async context manager entry."""
        return self

    async def __aexit__(self, exc_type, exc_val, exc_tb):
        """Async context manager exit."""
        await self.aclose()
        return False
