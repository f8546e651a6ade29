"""
Adaptive face detection.

Wraps a single, unreliable detector backend behind a multi-rung retry policy:
the strictest (largest input, highest threshold) rung is tried first and the
ladder is relaxed until one rung yields a face. Expressions and landmarks are
fetched best-effort once a face is confirmed.
"""

import asyncio
import logging
import time
from abc import ABC, abstractmethod
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass
from typing import Dict, List, Optional, Sequence, Tuple

import numpy as np

from .config import DetectionRung, EngineConfig
from .exceptions import ResourceUnavailableError
from .models import BoundingBox, ExpressionProbabilities, Observation

logger = logging.getLogger(__name__)


@dataclass
class RawDetection:
    """Face found by a backend at one rung."""
    box: BoundingBox
    score: float


class FaceDetectorBackend(ABC):
    """
    Abstract interface for face detection backends.

    Only detect_at is mandatory; expression and landmark extraction are
    optional capabilities and may return None when unsupported.
    """

    # Index of the facial midline landmark (nose tip) in detect_landmarks output
    midline_landmark_index: int = 30

    @abstractmethod
    def detect_at(
        self,
        frame: np.ndarray,
        input_size: int,
        score_threshold: float
    ) -> Optional[RawDetection]:
        """
        Detect the dominant face at one precision level.

        Args:
            frame: BGR image array (OpenCV format)
            input_size: Detector input resolution
            score_threshold: Minimum face score for the backend to report

        Returns:
            RawDetection for the highest-scoring face, or None
        """
        pass

    def detect_expressions(self, frame: np.ndarray) -> Optional[Dict[str, float]]:
        """Expression label -> probability for the dominant face."""
        return None

    def detect_landmarks(self, frame: np.ndarray) -> Optional[List[Tuple[float, float]]]:
        """Facial landmark positions in frame pixels."""
        return None

    def load(self) -> None:
        """
        Acquire models ahead of the first detection. Override if needed.

        Raises:
            ResourceUnavailableError: if the model cannot be loaded
        """
        pass

    def get_name(self) -> str:
        return type(self).__name__

    def close(self) -> None:
        """Clean up resources. Override if needed."""
        pass


class AdaptiveDetector:
    """
    Turns a FaceDetectorBackend into Observations.

    Usage:
        detector = AdaptiveDetector(backend)
        observation = await detector.try_detect(frame)
        if observation is None:
            ...  # no face this tick
    """

    def __init__(
        self,
        backend: FaceDetectorBackend,
        config: Optional[EngineConfig] = None,
        ladder: Optional[Sequence[DetectionRung]] = None,
        executor: Optional[ThreadPoolExecutor] = None
    ):
        """
        Initialize adapter.

        Args:
            backend: Detector backend
            config: Engine configuration (uses defaults if None)
            ladder: Rungs to try, overrides config.detection_ladder
            executor: ThreadPoolExecutor for async detection
        """
        self.backend = backend
        self.config = config or EngineConfig()
        self.ladder: List[DetectionRung] = list(ladder or self.config.detection_ladder)
        self.min_confidence = self.config.min_acceptance_confidence

        self._executor = executor or ThreadPoolExecutor(max_workers=self.config.detector_max_workers)
        self._owns_executor = executor is None

        logger.info(
            f"AdaptiveDetector initialized: backend={backend.get_name()}, "
            f"rungs={[(r.input_size, r.score_threshold) for r in self.ladder]}"
        )

    def load(self) -> None:
        """
        Load the backend models.

        Raises:
            ResourceUnavailableError: if the backend cannot load its models
        """
        self.backend.load()
        logger.info(f"Detector backend {self.backend.get_name()} loaded")

    def detect(self, frame: np.ndarray, timestamp: Optional[float] = None) -> Optional[Observation]:
        """
        Run the ladder on one frame.

        Args:
            frame: BGR image array
            timestamp: Capture time (defaults to time.monotonic())

        Returns:
            Observation, or None when no rung found a face

        Raises:
            ResourceUnavailableError: if the backend lost its model
        """
        if timestamp is None:
            timestamp = time.monotonic()

        for rung in self.ladder:
            raw = self._detect_at(frame, rung)
            if raw is None:
                continue
            if raw.score < rung.score_threshold or raw.score < self.min_confidence:
                logger.debug(
                    f"Rejected face at rung {rung.input_size}: "
                    f"score={raw.score:.3f} < {max(rung.score_threshold, self.min_confidence)}"
                )
                continue

            expressions = self._fetch_expressions(frame)
            offset = self._alignment_offset(frame, raw.box)

            return Observation(
                timestamp=timestamp,
                confidence=min(1.0, raw.score),
                expressions=expressions,
                alignment_offset=offset,
                box=raw.box,
                input_size=rung.input_size,
                score_threshold=rung.score_threshold,
            )

        return None

    async def try_detect(self, frame: np.ndarray, timestamp: Optional[float] = None) -> Optional[Observation]:
        """Run detect() on the executor so the event loop stays free."""
        loop = asyncio.get_running_loop()
        return await loop.run_in_executor(self._executor, self.detect, frame, timestamp)

    def _detect_at(self, frame: np.ndarray, rung: DetectionRung) -> Optional[RawDetection]:
        try:
            return self.backend.detect_at(frame, rung.input_size, rung.score_threshold)
        except ResourceUnavailableError:
            raise
        except Exception as e:
            logger.debug(f"Detection failed at rung {rung.input_size}/{rung.score_threshold}: {e}")
            return None

    def _fetch_expressions(self, frame: np.ndarray) -> Optional[ExpressionProbabilities]:
        try:
            raw = self.backend.detect_expressions(frame)
            if not raw:
                return None
            return ExpressionProbabilities.from_mapping(raw)
        except Exception as e:
            logger.debug(f"Expression extraction failed: {e}")
            return None

    def _alignment_offset(self, frame: np.ndarray, box: BoundingBox) -> Optional[float]:
        try:
            landmarks = self.backend.detect_landmarks(frame)
            index = self.backend.midline_landmark_index
            if not landmarks or index >= len(landmarks):
                return None
            return float(landmarks[index][0]) - box.center_x
        except Exception as e:
            logger.debug(f"Landmark extraction failed: {e}")
            return None

    def close(self) -> None:
        """Clean up resources."""
        if self._owns_executor and self._executor:
            self._executor.shutdown(wait=False)
            self._executor = None
        self.backend.close()
        logger.info("AdaptiveDetector closed")

    def __enter__(self):
        """Context manager entry."""
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        """Context manager exit."""
        self.close()
        return False
