# engine/feedback.py

"""
Generates human-friendly labels, colour bands and tips from metrics snapshots.
"""
from typing import Dict, List, Sequence

from .models import ClassifiedSample, Expression, MetricsSnapshot

# Label thresholds (overall score), highest first
SCORE_LABELS = (
    (90, "Excellent"),
    (80, "Very Good"),
    (70, "Good"),
    (60, "Fair"),
    (50, "Below Average"),
)
LOWEST_LABEL = "Needs Improvement"

# Colour bands for dashboards
SCORE_BANDS = (
    (80, "green"),
    (60, "yellow"),
    (40, "orange"),
)
LOWEST_BAND = "red"

TIP_THRESHOLD = 70                # sub-metric below this -> tip
CONGRATULATION_THRESHOLD = 80     # overall at or above this -> praise

SUB_METRIC_TIPS = {
    "stability": "Try to maintain neutral or slightly positive expressions consistently.",
    "engagement": "Show more genuine interest through appropriate facial expressions.",
    "composure": "Practice managing stress responses and negative emotions.",
    "authenticity": "Be more natural: avoid forced expressions or monotone delivery.",
}
CONGRATULATION_TIP = "Excellent work! You're demonstrating strong professional presence."


def score_label(score: int) -> str:
    """Human-readable label for a 0-100 score."""
    for threshold, label in SCORE_LABELS:
        if score >= threshold:
            return label
    return LOWEST_LABEL


def score_band(score: int) -> str:
    """Colour band for a 0-100 score."""
    for threshold, band in SCORE_BANDS:
        if score >= threshold:
            return band
    return LOWEST_BAND


def recent_pattern(samples: Sequence[ClassifiedSample], count: int = 10) -> List[Expression]:
    """Dominant expressions of the last `count` samples, oldest first."""
    if count <= 0:
        return []
    return [s.dominant_expression for s in list(samples)[-count:]]


class AdviceGenerator:
    """Encapsulates logic for creating feedback from a metrics snapshot."""

    def __init__(
        self,
        tip_threshold: int = TIP_THRESHOLD,
        congratulation_threshold: int = CONGRATULATION_THRESHOLD
    ):
        self.tip_threshold = tip_threshold
        self.congratulation_threshold = congratulation_threshold

    def generate_tips(self, snapshot: MetricsSnapshot) -> List[Dict[str, str]]:
        """
        Generate improvement tips for a snapshot.

        Args:
            snapshot: Aggregated metrics

        Returns:
            List of dicts with {area, tip}
        """
        tips = []
        for area, tip in SUB_METRIC_TIPS.items():
            if getattr(snapshot, area) < self.tip_threshold:
                tips.append({"area": area, "tip": tip})

        if snapshot.overall_score >= self.congratulation_threshold:
            tips.append({"area": "overall", "tip": CONGRATULATION_TIP})

        return tips

    def summarize(self, snapshot: MetricsSnapshot) -> Dict:
        """Label, band and tips for a snapshot."""
        return {
            "label": score_label(snapshot.overall_score),
            "band": score_band(snapshot.overall_score),
            "tips": self.generate_tips(snapshot),
        }
