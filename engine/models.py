"""
Pydantic models for the professionalism scoring engine.

Provides immutable, validated records for detector observations, classified
samples, metrics snapshots and session lifecycle messages.
"""

import logging
from enum import Enum
from typing import Dict, List, Mapping, Optional, Tuple

from pydantic import BaseModel, ConfigDict, Field

logger = logging.getLogger(__name__)


class Expression(str, Enum):
    """Closed set of expression labels reported by the detector."""
    NEUTRAL = "neutral"
    HAPPY = "happy"
    SAD = "sad"
    ANGRY = "angry"
    DISGUSTED = "disgusted"
    FEARFUL = "fearful"
    SURPRISED = "surprised"


# Label groups used by the aggregator
STABLE_EXPRESSIONS = frozenset({Expression.NEUTRAL, Expression.HAPPY})
UNSTABLE_EXPRESSIONS = frozenset({
    Expression.SURPRISED, Expression.SAD, Expression.ANGRY,
    Expression.DISGUSTED, Expression.FEARFUL,
})
ENGAGED_EXPRESSIONS = frozenset({Expression.HAPPY, Expression.SURPRISED})
NEGATIVE_EXPRESSIONS = frozenset({
    Expression.ANGRY, Expression.FEARFUL, Expression.DISGUSTED, Expression.SAD,
})


class ScoringMode(str, Enum):
    """How a session turns observations into a score."""
    CONTINUOUS = "continuous"
    SINGLE_SHOT = "single_shot"


class SessionStatus(str, Enum):
    """Lifecycle state of a scoring session."""
    IDLE = "idle"
    RUNNING = "running"
    FINISHED = "finished"


class ExpressionProbabilities(BaseModel):
    """
    Per-label expression probabilities.

    Each value is treated independently; they need not sum to 1.
    """
    neutral: float = Field(default=0.0, ge=0.0, le=1.0)
    happy: float = Field(default=0.0, ge=0.0, le=1.0)
    sad: float = Field(default=0.0, ge=0.0, le=1.0)
    angry: float = Field(default=0.0, ge=0.0, le=1.0)
    disgusted: float = Field(default=0.0, ge=0.0, le=1.0)
    fearful: float = Field(default=0.0, ge=0.0, le=1.0)
    surprised: float = Field(default=0.0, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_mapping(cls, mapping: Mapping[str, float]) -> "ExpressionProbabilities":
        """
        Build from a loose label -> probability mapping.

        Labels outside the closed set are ignored; values are clipped to [0, 1].

        Args:
            mapping: Detector output keyed by label name

        Returns:
            ExpressionProbabilities instance
        """
        known = {e.value for e in Expression}
        values = {}
        for label, prob in mapping.items():
            key = label.value if isinstance(label, Expression) else str(label).lower()
            if key not in known:
                logger.debug(f"Ignoring unknown expression label: {label}")
                continue
            values[key] = min(1.0, max(0.0, float(prob)))
        return cls(**values)

    def get(self, expression: Expression) -> float:
        return getattr(self, expression.value)

    def as_dict(self) -> Dict[Expression, float]:
        return {e: self.get(e) for e in Expression}

    def dominant(self) -> Tuple[Expression, float]:
        """
        Label with the highest probability.

        Ties resolve to the label declared first in Expression.
        """
        best = Expression.NEUTRAL
        best_prob = -1.0
        for expression in Expression:
            prob = self.get(expression)
            if prob > best_prob:
                best, best_prob = expression, prob
        return best, best_prob


class BoundingBox(BaseModel):
    """Face bounding box in frame pixels."""
    x: float
    y: float
    width: float = Field(..., ge=0.0)
    height: float = Field(..., ge=0.0)

    model_config = ConfigDict(frozen=True)

    @property
    def center_x(self) -> float:
        return self.x + self.width / 2.0


class Observation(BaseModel):
    """One successful detection at one point in time."""
    timestamp: float
    confidence: float = Field(..., ge=0.0, le=1.0)
    expressions: Optional[ExpressionProbabilities] = None
    alignment_offset: Optional[float] = None
    box: Optional[BoundingBox] = None
    input_size: Optional[int] = Field(None, gt=0)
    score_threshold: Optional[float] = Field(None, ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


class ClassifiedSample(BaseModel):
    """Dominant expression of an observation, as stored in the window."""
    dominant_expression: Expression
    dominant_confidence: float = Field(..., ge=0.0, le=1.0)
    timestamp: float
    instantaneous_score: Optional[int] = Field(None, ge=0, le=100)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def from_observation(
        cls,
        observation: Observation,
        instantaneous_score: Optional[int] = None
    ) -> Optional["ClassifiedSample"]:
        """
        Classify an observation by its dominant expression.

        Returns:
            ClassifiedSample, or None when the observation carries no expressions
        """
        if observation.expressions is None:
            return None
        expression, prob = observation.expressions.dominant()
        return cls(
            dominant_expression=expression,
            dominant_confidence=prob,
            timestamp=observation.timestamp,
            instantaneous_score=instantaneous_score,
        )


class MetricsSnapshot(BaseModel):
    """Aggregated professionalism metrics (0-100)."""
    overall_score: int = Field(0, ge=0, le=100)
    stability: int = Field(0, ge=0, le=100)
    engagement: int = Field(0, ge=0, le=100)
    composure: int = Field(0, ge=0, le=100)
    authenticity: int = Field(0, ge=0, le=100)

    model_config = ConfigDict(frozen=True)

    @classmethod
    def empty(cls) -> "MetricsSnapshot":
        """All-zero snapshot returned when there is not enough data."""
        return cls()


class SessionUpdate(BaseModel):
    """Per-tick message published while a session runs."""
    status: SessionStatus
    mode: ScoringMode
    timestamp: float
    elapsed_sec: float = Field(..., ge=0.0)
    detected: bool
    box: Optional[BoundingBox] = None
    confidence: Optional[float] = Field(None, ge=0.0, le=1.0)
    current_expression: Optional[Expression] = None
    instantaneous_score: Optional[int] = Field(None, ge=0, le=100)
    snapshot: Optional[MetricsSnapshot] = None
    samples_in_window: int = Field(0, ge=0)

    model_config = ConfigDict(frozen=True)


class SessionResult(BaseModel):
    """Outcome of a finalized (or reset) session."""
    mode: ScoringMode
    status: SessionStatus
    final_score: int = Field(0, ge=0, le=100)
    snapshot: MetricsSnapshot = Field(default_factory=MetricsSnapshot.empty)
    samples_collected: int = Field(0, ge=0)
    ticks: int = Field(0, ge=0)
    detections: int = Field(0, ge=0)
    duration_sec: float = Field(0.0, ge=0.0)
    recent_expressions: List[Expression] = Field(default_factory=list)
