from typing import Dict, List, Optional
from pydantic import BaseModel, Field, field_validator

from engine.models import (
    ClassifiedSample,
    Expression,
    ExpressionProbabilities,
    MetricsSnapshot,
    Observation,
    ScoringMode,
)

VERSION = "1.0.0"


class ObservationIn(BaseModel):
    """Detector output posted by a client that runs detection itself."""
    confidence: float = Field(..., ge=0.0, le=1.0)
    expressions: Optional[Dict[str, float]] = None
    alignment_offset: Optional[float] = Field(None, description="Midline landmark x minus box centre x, in pixels")
    timestamp: float = Field(0.0, description="Capture time in seconds (client clock)")

    @field_validator("expressions")
    @classmethod
    def validate_probabilities(cls, v: Optional[Dict[str, float]]) -> Optional[Dict[str, float]]:
        if v is None:
            return v
        for label, prob in v.items():
            if not 0.0 <= prob <= 1.0:
                raise ValueError(f"Probability for '{label}' must be within [0, 1], got {prob}")
        return v

    def to_observation(self) -> Observation:
        return Observation(
            timestamp=self.timestamp,
            confidence=self.confidence,
            expressions=ExpressionProbabilities.from_mapping(self.expressions) if self.expressions else None,
            alignment_offset=self.alignment_offset,
        )


class ScoreResponse(BaseModel):
    version: str = VERSION
    score: int = Field(..., ge=0, le=100)
    label: str
    band: str
    dominant_expression: Optional[Expression] = None


class AggregateRequest(BaseModel):
    samples: List[ClassifiedSample] = Field(default_factory=list)
    now: Optional[float] = Field(None, description="Reference time; defaults to the newest sample timestamp")


class Tip(BaseModel):
    area: str
    tip: str


class AggregateResponse(BaseModel):
    version: str = VERSION
    snapshot: MetricsSnapshot
    label: str
    band: str
    tips: List[Tip] = Field(default_factory=list)
    samples_used: int = Field(..., ge=0)
    recent_expressions: List[Expression] = Field(default_factory=list)


class SessionStartMessage(BaseModel):
    """Control message that opens a WebSocket session."""
    action: str = "start"
    mode: ScoringMode = ScoringMode.CONTINUOUS
    duration_sec: Optional[float] = Field(None, gt=0.0, le=3600.0)
    tick_interval_sec: Optional[float] = Field(None, gt=0.0, le=60.0)
