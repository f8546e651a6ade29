"""Professionalism scoring engine.

Turns a stream of face/expression detections into a bounded, interpretable
professionalism score. External code can simply do ``from engine import ...``.
"""

from .aggregator import MetricsAggregator  # noqa: F401
from .config import EngineConfig, get_config  # noqa: F401
from .detector import AdaptiveDetector, FaceDetectorBackend, RawDetection  # noqa: F401
from .exceptions import EngineError, InvalidSessionStateError, ResourceUnavailableError  # noqa: F401
from .feedback import AdviceGenerator, score_band, score_label  # noqa: F401
from .frame_source import CameraFrameSource, FrameSource, PushFrameSource  # noqa: F401
from .models import (  # noqa: F401
    ClassifiedSample,
    Expression,
    ExpressionProbabilities,
    MetricsSnapshot,
    Observation,
    ScoringMode,
    SessionResult,
    SessionStatus,
    SessionUpdate,
)
from .scorer import InstantaneousScorer  # noqa: F401
from .session import SessionScheduler  # noqa: F401
from .window import TemporalWindowStore  # noqa: F401

__all__ = [
    "AdaptiveDetector",
    "AdviceGenerator",
    "CameraFrameSource",
    "ClassifiedSample",
    "EngineConfig",
    "EngineError",
    "Expression",
    "ExpressionProbabilities",
    "FaceDetectorBackend",
    "FrameSource",
    "InstantaneousScorer",
    "InvalidSessionStateError",
    "MetricsAggregator",
    "MetricsSnapshot",
    "Observation",
    "PushFrameSource",
    "RawDetection",
    "ResourceUnavailableError",
    "ScoringMode",
    "SessionResult",
    "SessionScheduler",
    "SessionStatus",
    "SessionUpdate",
    "TemporalWindowStore",
    "get_config",
    "score_band",
    "score_label",
]
