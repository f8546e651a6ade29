"""
Configuration for the professionalism scoring engine.

Every scoring policy constant is exposed as a named, validated setting so the
continuous dashboard and the single-shot evaluation can run the same engine
with different knobs.
"""

import os
from typing import Dict, List, Optional

from pydantic import BaseModel, ConfigDict, Field, field_validator
from pydantic_settings import BaseSettings, SettingsConfigDict

from .models import Expression, ScoringMode


class DetectionRung(BaseModel):
    """One (input_size, score_threshold) configuration tried by the detector."""
    input_size: int = Field(..., gt=0)
    score_threshold: float = Field(..., ge=0.0, le=1.0)

    model_config = ConfigDict(frozen=True)


DEFAULT_LADDER = [
    DetectionRung(input_size=512, score_threshold=0.5),
    DetectionRung(input_size=416, score_threshold=0.4),
    DetectionRung(input_size=320, score_threshold=0.3),
    DetectionRung(input_size=224, score_threshold=0.2),
]

DEFAULT_EXPRESSION_WEIGHTS = {
    Expression.NEUTRAL: 25.0,
    Expression.HAPPY: 15.0,
    Expression.SURPRISED: 5.0,
    Expression.ANGRY: -20.0,
    Expression.SAD: -20.0,
    Expression.DISGUSTED: -20.0,
    Expression.FEARFUL: -20.0,
}


class EngineConfig(BaseSettings):
    """Policy constants for detection, scoring, windowing and scheduling."""

    # --- Detection ---
    detection_ladder: List[DetectionRung] = Field(
        default_factory=lambda: list(DEFAULT_LADDER),
        min_length=1,
        description="Rungs tried in order, strictest first"
    )

    min_acceptance_confidence: float = Field(
        default=0.2,
        ge=0.0,
        le=1.0,
        description="Observations below this confidence never enter the window"
    )

    detector_max_workers: int = Field(
        default=1,
        ge=1,
        le=8,
        description="ThreadPoolExecutor max workers for detector calls"
    )

    # --- Instantaneous scoring ---
    base_score: float = Field(default=50.0, ge=0.0, le=100.0)

    expression_weights: Dict[Expression, float] = Field(
        default_factory=lambda: dict(DEFAULT_EXPRESSION_WEIGHTS)
    )

    alignment_bonus_max_px: float = Field(
        default=20.0,
        ge=0.0,
        description="Offsets strictly below this earn the alignment bonus"
    )

    alignment_bonus: float = Field(default=10.0, ge=0.0)

    alignment_penalty_min_px: float = Field(
        default=40.0,
        ge=0.0,
        description="Offsets strictly above this get the alignment penalty"
    )

    alignment_penalty: float = Field(default=5.0, ge=0.0)

    score_floor: float = Field(default=10.0, ge=0.0, le=100.0)
    score_ceiling: float = Field(default=100.0, ge=0.0, le=100.0)

    # --- Windows ---
    retention_horizon_sec: float = Field(default=120.0, gt=0.0)
    recent_window_sec: float = Field(default=30.0, gt=0.0)
    extended_window_sec: float = Field(
        default=60.0,
        gt=0.0,
        description="Reserved for future sub-metrics"
    )
    min_samples: int = Field(default=10, ge=1)

    # --- Aggregation ---
    stability_top_n: int = Field(default=3, ge=1)
    stability_unstable_scale: float = Field(default=50.0)
    stability_unstable_offset: float = Field(default=20.0)
    engagement_confidence_threshold: float = Field(default=0.6, ge=0.0, le=1.0)
    engagement_neutral_weight: float = Field(default=0.7, ge=0.0)
    engagement_gain: float = Field(default=120.0, ge=0.0)
    composure_penalty: float = Field(default=200.0, ge=0.0)
    confidence_gain: float = Field(default=120.0, ge=0.0)
    variety_min_ideal: int = Field(default=2, ge=1)
    variety_max_ideal: int = Field(default=4, ge=1)
    variety_monotone_score: float = Field(default=60.0, ge=0.0, le=100.0)
    variety_erratic_step: float = Field(default=15.0, ge=0.0)
    variety_floor: float = Field(default=20.0, ge=0.0, le=100.0)

    # --- Scheduling ---
    scoring_mode: ScoringMode = Field(default=ScoringMode.CONTINUOUS)
    tick_interval_sec: float = Field(default=0.3, gt=0.0, le=60.0)
    session_duration_sec: Optional[float] = Field(
        default=None,
        gt=0.0,
        description="Hard session length; None runs until stopped"
    )
    recent_pattern_size: int = Field(default=10, ge=1)

    @field_validator('score_ceiling')
    @classmethod
    def validate_score_bounds(cls, v: float, info) -> float:
        floor = info.data.get('score_floor', 0.0)
        if v < floor:
            raise ValueError(f"score_ceiling ({v}) must be >= score_floor ({floor})")
        return v

    @field_validator('alignment_penalty_min_px')
    @classmethod
    def validate_alignment_bands(cls, v: float, info) -> float:
        bonus_max = info.data.get('alignment_bonus_max_px', 0.0)
        if v < bonus_max:
            raise ValueError(
                f"alignment_penalty_min_px ({v}) must be >= alignment_bonus_max_px ({bonus_max})"
            )
        return v

    @field_validator('recent_window_sec', 'extended_window_sec')
    @classmethod
    def validate_within_horizon(cls, v: float, info) -> float:
        horizon = info.data.get('retention_horizon_sec', 120.0)
        if v > horizon:
            raise ValueError(
                f"{info.field_name} ({v}) cannot exceed retention_horizon_sec ({horizon})"
            )
        return v

    @field_validator('variety_max_ideal')
    @classmethod
    def validate_variety_range(cls, v: int, info) -> int:
        lo = info.data.get('variety_min_ideal', 1)
        if v < lo:
            raise ValueError(f"variety_max_ideal ({v}) must be >= variety_min_ideal ({lo})")
        return v

    model_config = SettingsConfigDict(
        env_prefix="PROF_",
        env_file=".env",
        env_file_encoding="utf-8",
        case_sensitive=False,
        extra="ignore",
    )


class ContinuousConfig(EngineConfig):
    """Live dashboard: fast ticks, runs until stopped."""
    scoring_mode: ScoringMode = Field(default=ScoringMode.CONTINUOUS)
    tick_interval_sec: float = Field(default=0.3, gt=0.0, le=60.0)
    session_duration_sec: Optional[float] = Field(default=None, gt=0.0)


class SingleShotConfig(EngineConfig):
    """One-minute evaluation averaging per-tick scores."""
    scoring_mode: ScoringMode = Field(default=ScoringMode.SINGLE_SHOT)
    tick_interval_sec: float = Field(default=1.5, gt=0.0, le=60.0)
    session_duration_sec: Optional[float] = Field(default=60.0, gt=0.0)


def get_config(mode: Optional[str] = None, **overrides) -> EngineConfig:
    """
    Get configuration for a scoring mode.

    Args:
        mode: 'continuous' or 'single_shot'. If None, uses the
              PROF_SCORING_MODE env var or defaults to continuous.
        **overrides: Field values that take precedence over presets

    Returns:
        Configuration instance
    """
    if mode is None:
        mode = os.getenv("PROF_SCORING_MODE", ScoringMode.CONTINUOUS.value)
    mode = str(mode).lower().replace("-", "_")

    config_map = {
        "continuous": ContinuousConfig,
        "live": ContinuousConfig,
        "single_shot": SingleShotConfig,
        "singleshot": SingleShotConfig,
        "evaluation": SingleShotConfig,
    }

    config_class = config_map.get(mode, EngineConfig)
    return config_class(**overrides)
