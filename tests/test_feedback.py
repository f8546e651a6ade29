from engine.feedback import AdviceGenerator, recent_pattern, score_band, score_label
from engine.models import Expression, MetricsSnapshot
from tests._helpers import make_samples


def test_score_labels():
    assert score_label(95) == "Excellent"
    assert score_label(90) == "Excellent"
    assert score_label(85) == "Very Good"
    assert score_label(70) == "Good"
    assert score_label(65) == "Fair"
    assert score_label(50) == "Below Average"
    assert score_label(49) == "Needs Improvement"
    assert score_label(0) == "Needs Improvement"


def test_score_bands():
    assert score_band(100) == "green"
    assert score_band(80) == "green"
    assert score_band(79) == "yellow"
    assert score_band(60) == "yellow"
    assert score_band(45) == "orange"
    assert score_band(39) == "red"


def test_tips_for_weak_sub_metrics():
    snapshot = MetricsSnapshot(overall_score=55, stability=90, engagement=40, composure=69, authenticity=70)
    tips = AdviceGenerator().generate_tips(snapshot)
    assert [t["area"] for t in tips] == ["engagement", "composure"]
    assert all(t["tip"] for t in tips)


def test_congratulation_for_strong_overall():
    snapshot = MetricsSnapshot(overall_score=91, stability=100, engagement=84, composure=100, authenticity=80)
    tips = AdviceGenerator().generate_tips(snapshot)
    assert tips == [{"area": "overall", "tip": tips[0]["tip"]}]
    assert "Excellent" in tips[0]["tip"]


def test_empty_snapshot_summary():
    summary = AdviceGenerator().summarize(MetricsSnapshot.empty())
    assert summary["label"] == "Needs Improvement"
    assert summary["band"] == "red"
    assert len(summary["tips"]) == 4


def test_recent_pattern_keeps_last_entries():
    labels = [Expression.NEUTRAL] * 8 + [Expression.HAPPY, Expression.SAD, Expression.ANGRY]
    pattern = recent_pattern(make_samples(labels), count=3)
    assert pattern == [Expression.HAPPY, Expression.SAD, Expression.ANGRY]
    assert recent_pattern(make_samples(labels), count=0) == []
