"""
Tests for MetricsAggregator.

Expected values are worked out by hand from the sub-metric rules.
"""

import pytest

from engine.aggregator import MetricsAggregator
from engine.config import EngineConfig
from engine.models import Expression, MetricsSnapshot
from tests._helpers import make_samples

N = Expression.NEUTRAL
H = Expression.HAPPY
S = Expression.SURPRISED
A = Expression.ANGRY


class TestMetricsAggregator:

    @pytest.fixture
    def aggregator(self):
        return MetricsAggregator(EngineConfig(), clock=lambda: 0.0)

    def test_too_few_samples_returns_zeros(self, aggregator):
        samples = make_samples([N] * 9)
        assert aggregator.aggregate(samples, now=9.0) == MetricsSnapshot.empty()

    def test_empty_recent_window_returns_zeros(self, aggregator):
        samples = make_samples([N] * 10)
        assert aggregator.aggregate(samples, now=100.0) == MetricsSnapshot.empty()

    def test_all_neutral(self, aggregator):
        snapshot = aggregator.aggregate(make_samples([N] * 10, confidence=0.9), now=9.0)
        assert snapshot.stability == 100
        assert snapshot.engagement == 84
        assert snapshot.composure == 100
        assert snapshot.authenticity == 80
        assert snapshot.overall_score == 91

    def test_all_negative(self, aggregator):
        snapshot = aggregator.aggregate(make_samples([A] * 10, confidence=0.5), now=9.0)
        assert snapshot.stability == 30
        assert snapshot.engagement == 0
        assert snapshot.composure == 0
        assert snapshot.authenticity == 60
        assert snapshot.overall_score == 23

    def test_mixed_positive(self, aggregator):
        labels = [N] * 6 + [H] * 2 + [S] * 2
        snapshot = aggregator.aggregate(make_samples(labels, confidence=0.9), now=9.0)
        assert snapshot.stability == 80
        assert snapshot.engagement == 98
        assert snapshot.composure == 100
        assert snapshot.authenticity == 100
        assert snapshot.overall_score == 95

    def test_low_confidence_positive_not_engaged(self, aggregator):
        snapshot = aggregator.aggregate(make_samples([H] * 10, confidence=0.5), now=9.0)
        assert snapshot.engagement == 0

    def test_erratic_variety(self, aggregator):
        labels = [N] * 4 + [
            H, Expression.SAD, A, Expression.DISGUSTED, Expression.FEARFUL, S
        ]
        snapshot = aggregator.aggregate(make_samples(labels, confidence=0.5), now=9.0)
        assert snapshot.composure == 20
        assert snapshot.authenticity == 58

    def test_only_recent_window_counts(self, aggregator):
        old = make_samples([A] * 10, confidence=0.9, start=0.0)
        recent = make_samples([N] * 10, confidence=0.9, start=80.0)
        snapshot = aggregator.aggregate(old + recent, now=90.0)
        assert snapshot.composure == 100
        assert snapshot.overall_score == 91

    def test_uses_clock_when_now_missing(self):
        aggregator = MetricsAggregator(EngineConfig(), clock=lambda: 9.0)
        assert aggregator.aggregate(make_samples([N] * 10, confidence=0.9)).overall_score == 91

    def test_values_stay_in_range(self, aggregator):
        for labels in ([S] * 10, [H, A] * 5, [N, S, A, H, Expression.FEARFUL] * 2):
            snapshot = aggregator.aggregate(make_samples(labels, confidence=1.0), now=9.0)
            for value in snapshot.model_dump().values():
                assert 0 <= value <= 100
