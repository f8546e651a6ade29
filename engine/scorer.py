"""
Instantaneous professionalism scoring.

Maps one detector observation to a 0-100 estimate by fusing expression
probabilities with an optional head-alignment correction:

- base score (50)
- + neutral x 25, happy x 15, surprised x 5
- - (angry + sad + disgusted + fearful) x 20
- +10 when the face midline is within 20 px of the box centre, -5 beyond 40 px
- clamped to [10, 100]
"""

from __future__ import annotations

import math
from typing import Optional

from .config import EngineConfig
from .models import Observation


def clamp(x: float, lo: float = 0.0, hi: float = 100.0) -> float:
    """Clamp value between lo and hi, mapping NaN to lo."""
    if math.isnan(x):
        return lo
    return max(lo, min(hi, x))


def round_half_up(x: float) -> int:
    """Round to the nearest integer, .5 rounds up."""
    return int(math.floor(x + 0.5))


class InstantaneousScorer:
    """
    Stateless rule-based scorer for single observations.

    Usage:
        scorer = InstantaneousScorer()
        score = scorer.score(observation)
    """

    def __init__(self, config: Optional[EngineConfig] = None):
        self.config = config or EngineConfig()

    def score(self, observation: Observation) -> int:
        """
        Score one observation.

        Args:
            observation: Detector observation

        Returns:
            Integer score within [score_floor, score_ceiling]
        """
        cfg = self.config
        raw = cfg.base_score + self._expression_term(observation) + self._alignment_term(observation)
        return round_half_up(clamp(raw, cfg.score_floor, cfg.score_ceiling))

    def _expression_term(self, observation: Observation) -> float:
        if observation.expressions is None:
            return 0.0
        return sum(
            prob * self.config.expression_weights.get(expression, 0.0)
            for expression, prob in observation.expressions.as_dict().items()
        )

    def _alignment_term(self, observation: Observation) -> float:
        if observation.alignment_offset is None:
            return 0.0
        offset = abs(observation.alignment_offset)
        if offset < self.config.alignment_bonus_max_px:
            return self.config.alignment_bonus
        if offset > self.config.alignment_penalty_min_px:
            return -self.config.alignment_penalty
        return 0.0


def score_observation(observation: Observation, config: Optional[EngineConfig] = None) -> int:
    """Convenience wrapper around InstantaneousScorer.score."""
    return InstantaneousScorer(config).score(observation)
