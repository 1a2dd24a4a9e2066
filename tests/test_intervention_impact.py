# ABOUTME: Tests snapshot matching and per-intervention impact measurement.
# ABOUTME: Covers 1/2/4 week deltas, before/after comparisons, and tracking outcomes.

from datetime import datetime, timedelta, timezone

import pytest

from src.common.schemas import DRIMetrics, Metrics, MetricsSnapshot, StudentEvaluation
from src.impact_analytics.impact import (
    calculate_before_after_snapshot,
    calculate_intervention_impact,
    classify_tracking_outcome,
    time_to_improvement,
)
from src.impact_analytics.snapshots import capture_snapshots, find_closest_snapshot

T0 = datetime(2024, 2, 5, 9, tzinfo=timezone.utc)


def _snap(student_id: str, days: float, risk: float, rsr: float = 0.6, ksi=60, velocity=50, xp=20, tier="YELLOW"):
    return MetricsSnapshot(
        student_id=student_id,
        date=T0 + timedelta(days=days),
        rsr=rsr,
        ksi=ksi,
        velocity=velocity,
        risk_score=risk,
        tier=tier,
        daily_xp=xp,
    )


def test_find_closest_snapshot_picks_smallest_gap_and_first_on_ties():
    a = _snap("s1", -1, 10)
    b = _snap("s1", 1, 20)
    c = _snap("s1", 5, 30)

    assert find_closest_snapshot([], T0) is None
    assert find_closest_snapshot([c, b, a], T0 + timedelta(days=4)) is c
    assert find_closest_snapshot([b, a, c], T0) is b
    assert find_closest_snapshot([a, b, c], T0) is a


def test_naive_target_is_treated_as_utc():
    snap = _snap("s1", 0, 10)
    assert find_closest_snapshot([snap], T0.replace(tzinfo=None)) is snap


def test_impact_deltas_across_horizons():
    history = [
        _snap("s1", 0, 70),
        _snap("s1", 7, 65),
        _snap("s1", 14, 60),
        _snap("s1", 28, 50),
        _snap("other", 28, 0),
    ]
    impact = calculate_intervention_impact("s1", T0, history)

    assert impact.risk_at_intervention == 70
    assert (impact.risk_week1, impact.risk_week2, impact.risk_week4) == (65, 60, 50)
    assert (impact.delta_week1, impact.delta_week2, impact.delta_week4) == (-5, -10, -20)
    assert impact.improved
    assert impact.sustained_improvement
    assert time_to_improvement(impact) == 28


def test_drop_of_exactly_threshold_is_not_improvement():
    history = [_snap("s1", 0, 70), _snap("s1", 28, 55)]
    impact = calculate_intervention_impact("s1", T0, history)
    assert impact.delta_week4 == -15
    assert not impact.improved


def test_no_history_means_no_deltas():
    impact = calculate_intervention_impact("s1", T0, [_snap("other", 0, 70)])
    assert impact.risk_at_intervention == 0
    assert impact.delta_week1 is None
    assert impact.delta_week4 is None
    assert not impact.improved
    assert time_to_improvement(impact) is None


def test_time_to_improvement_returns_first_horizon_past_threshold():
    history = [_snap("s1", 0, 70), _snap("s1", 7, 65), _snap("s1", 14, 50), _snap("s1", 28, 40)]
    impact = calculate_intervention_impact("s1", T0, history)
    assert time_to_improvement(impact) == 14


def test_before_after_snapshot_scores_improvement():
    history = [
        _snap("s1", -7, 60, rsr=0.5, ksi=60, velocity=40, xp=20),
        _snap("s1", 0, 55, rsr=0.55, ksi=62, velocity=45, xp=25),
        _snap("s1", 14, 40, rsr=0.7, ksi=55, velocity=60, xp=30),
    ]
    result = calculate_before_after_snapshot("s1", T0, history)

    assert result.rsr_change == pytest.approx(0.2)
    assert result.ksi_change == -5
    assert result.velocity_change == 20
    assert result.xp_change == 10
    assert result.overall_improvement
    assert result.improvement_score == pytest.approx(85)


def test_before_after_without_snapshots_reads_zeros():
    result = calculate_before_after_snapshot("s1", T0, [])
    assert result.rsr_change == 0
    assert not result.overall_improvement
    assert result.improvement_score == 0


def test_tracking_outcome_rules():
    leaving_red = classify_tracking_outcome(
        _snap("s1", 0, 70, rsr=0.5, tier="RED"), _snap("s1", 28, 65, rsr=0.52, ksi=None, tier="YELLOW")
    )
    assert leaving_red.outcome == "improved"
    assert leaving_red.tier_change == "RED → YELLOW"
    assert leaving_red.rsr_delta == pytest.approx(2.0)
    assert leaving_red.ksi_delta is None

    worse = classify_tracking_outcome(_snap("s1", 0, 30, tier="GREEN"), _snap("s1", 28, 45, tier="GREEN"))
    assert worse.outcome == "worsened"
    assert worse.risk_score_delta == 15
    assert worse.tier_change is None

    steady = classify_tracking_outcome(_snap("s1", 0, 30), _snap("s1", 28, 33, rsr=0.62, velocity=55))
    assert steady.outcome == "stable"
    assert steady.velocity_delta == 5


def test_capture_snapshots_from_evaluations():
    metrics = Metrics(
        velocity_score=70,
        accuracy_rate=80,
        focus_integrity=75,
        nemesis_topic="",
        archetype="Neutral",
        risk_status="On Track",
        lmp=0.8,
        ksi=72,
        daily_xp=18.0,
    )
    dri = DRIMetrics(
        iroi=0.2, debt_exposure=10, precision_decay=1.1, dri_tier="GREEN", dri_signal="Flowing", risk_score=12
    )
    (snap,) = capture_snapshots([StudentEvaluation("s9", metrics, dri)], T0.replace(tzinfo=None))

    assert snap.student_id == "s9"
    assert snap.date == T0
    assert snap.rsr == 0.8
    assert snap.risk_score == 12
    assert snap.tier == "GREEN"
    assert snap.daily_xp == 18.0
