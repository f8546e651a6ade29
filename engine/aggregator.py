"""
Metrics aggregation for the professionalism score.

Fuses the recent window of classified samples into four sub-metrics, each
weighted 25% in the overall score:

- stability: consistent, controlled expressions
- engagement: appropriate positive or attentive expressions
- composure: low frequency of negative expressions
- authenticity: confident detections with natural (not erratic) variety
"""

import logging
import time
from collections import Counter
from typing import Callable, Optional, Sequence

import numpy as np

from .config import EngineConfig
from .models import (
    ClassifiedSample,
    ENGAGED_EXPRESSIONS,
    Expression,
    MetricsSnapshot,
    NEGATIVE_EXPRESSIONS,
    STABLE_EXPRESSIONS,
    UNSTABLE_EXPRESSIONS,
)
from .scorer import clamp, round_half_up

logger = logging.getLogger(__name__)


class MetricsAggregator:
    """
    Computes a MetricsSnapshot from a window of samples.

    Rule-based on purpose: every value can be reproduced by hand from the
    raw labels and confidences.
    """

    def __init__(
        self,
        config: Optional[EngineConfig] = None,
        clock: Optional[Callable[[], float]] = None
    ):
        self.config = config or EngineConfig()
        self._clock = clock or time.monotonic

    def aggregate(
        self,
        samples: Sequence[ClassifiedSample],
        now: Optional[float] = None
    ) -> MetricsSnapshot:
        """
        Aggregate samples into a snapshot.

        Args:
            samples: Retained window, any order
            now: Reference time (defaults to the aggregator clock)

        Returns:
            MetricsSnapshot, all-zero when fewer than min_samples are given
        """
        if len(samples) < self.config.min_samples:
            return MetricsSnapshot.empty()

        now = self._clock() if now is None else now
        recent = [s for s in samples if now - s.timestamp < self.config.recent_window_sec]
        if not recent:
            logger.debug(f"{len(samples)} samples retained but none within the recent window")
            return MetricsSnapshot.empty()

        counts = Counter(s.dominant_expression for s in recent)

        stability = self._stability(counts, len(recent))
        engagement = self._engagement(recent)
        composure = self._composure(recent)
        authenticity = self._authenticity(recent, counts)
        overall = (stability + engagement + composure + authenticity) / 4.0

        return MetricsSnapshot(
            overall_score=round_half_up(overall),
            stability=round_half_up(stability),
            engagement=round_half_up(engagement),
            composure=round_half_up(composure),
            authenticity=round_half_up(authenticity),
        )

    def _stability(self, counts: Counter, total: int) -> float:
        cfg = self.config
        bonus = 0.0
        for expression, count in counts.most_common(cfg.stability_top_n):
            share = count / total
            if expression in STABLE_EXPRESSIONS:
                bonus += share * 100.0
            elif expression in UNSTABLE_EXPRESSIONS:
                # Penalty for surprise and negative expressions
                bonus += max(0.0, share * cfg.stability_unstable_scale - cfg.stability_unstable_offset)
        return clamp(bonus)

    def _engagement(self, recent: Sequence[ClassifiedSample]) -> float:
        cfg = self.config
        positive = sum(
            1 for s in recent
            if s.dominant_expression in ENGAGED_EXPRESSIONS
            and s.dominant_confidence > cfg.engagement_confidence_threshold
        )
        neutral = sum(1 for s in recent if s.dominant_expression == Expression.NEUTRAL)
        ratio = (positive + neutral * cfg.engagement_neutral_weight) / len(recent)
        return min(100.0, ratio * cfg.engagement_gain)

    def _composure(self, recent: Sequence[ClassifiedSample]) -> float:
        negative = sum(1 for s in recent if s.dominant_expression in NEGATIVE_EXPRESSIONS)
        return max(0.0, 100.0 - (negative / len(recent)) * self.config.composure_penalty)

    def _authenticity(self, recent: Sequence[ClassifiedSample], counts: Counter) -> float:
        cfg = self.config
        avg_confidence = float(np.mean([s.dominant_confidence for s in recent]))
        confidence_score = min(100.0, avg_confidence * cfg.confidence_gain)

        variety = len(counts)
        if cfg.variety_min_ideal <= variety <= cfg.variety_max_ideal:
            variety_score = 100.0
        elif variety == 1:
            # Too monotone
            variety_score = cfg.variety_monotone_score
        else:
            # Too erratic
            variety_score = clamp(
                100.0 - (variety - cfg.variety_max_ideal) * cfg.variety_erratic_step,
                cfg.variety_floor,
                100.0
            )

        return (confidence_score + variety_score) / 2.0
