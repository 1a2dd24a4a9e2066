# ABOUTME: Measures how a student's risk moved after a coaching intervention.
# ABOUTME: Provides week 1/2/4 risk deltas, before/after comparisons, and tracking outcomes.

from __future__ import annotations

from datetime import datetime, timedelta
from typing import Optional, Sequence

from src.common.adapters import ensure_utc
from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import (
    TIER_RED,
    BeforeAfterSnapshot,
    InterventionEvent,
    InterventionImpact,
    MetricsSnapshot,
    TrackingOutcome,
)
from src.common.stats import round_half_up

from .snapshots import find_closest_snapshot, snapshots_for_student

HORIZON_WEEKS = (1, 2, 4)
BEFORE_OFFSET = timedelta(days=7)
AFTER_OFFSET = timedelta(weeks=2)

OUTCOME_IMPROVED = "improved"
OUTCOME_STABLE = "stable"
OUTCOME_WORSENED = "worsened"

TRACKING_RSR_DELTA = 5
TRACKING_RISK_DELTA = 10


def calculate_intervention_impact(
    student_id: str,
    intervention_date: datetime,
    snapshots: Sequence[MetricsSnapshot],
    config: DRIConfig = DEFAULT_CONFIG,
) -> InterventionImpact:
    """
    Compare the risk score at the intervention with the closest snapshots one,
    two and four weeks later.

    A delta is None only when the student has no snapshots at all; otherwise
    the closest available snapshot stands in for each horizon.
    """

    intervention_date = ensure_utc(intervention_date)
    history = snapshots_for_student(snapshots, student_id)

    baseline = find_closest_snapshot(history, intervention_date)
    baseline_risk = baseline.risk_score if baseline is not None else 0

    later = {}
    for weeks in HORIZON_WEEKS:
        snap = find_closest_snapshot(history, intervention_date + timedelta(weeks=weeks))
        later[weeks] = snap.risk_score if snap is not None else None

    deltas = {weeks: (risk - baseline_risk if risk is not None else None) for weeks, risk in later.items()}
    delta_week4 = deltas[4]
    improved = delta_week4 is not None and delta_week4 < -config.impact_improvement_threshold

    return InterventionImpact(
        student_id=student_id,
        intervention_date=intervention_date,
        risk_at_intervention=baseline_risk,
        risk_week1=later[1],
        risk_week2=later[2],
        risk_week4=later[4],
        delta_week1=deltas[1],
        delta_week2=deltas[2],
        delta_week4=delta_week4,
        improved=improved,
        sustained_improvement=improved and delta_week4 < 0,
    )


def impact_for_event(
    event: InterventionEvent,
    snapshots: Sequence[MetricsSnapshot],
    config: DRIConfig = DEFAULT_CONFIG,
) -> InterventionImpact:
    return calculate_intervention_impact(event.student_id, event.timestamp, snapshots, config)


def time_to_improvement(impact: InterventionImpact, config: DRIConfig = DEFAULT_CONFIG) -> Optional[int]:
    """Days until the first horizon whose risk drop clears the improvement threshold."""
    for weeks, delta in zip(HORIZON_WEEKS, (impact.delta_week1, impact.delta_week2, impact.delta_week4)):
        if delta is not None and delta < -config.impact_improvement_threshold:
            return weeks * 7
    return None


def calculate_before_after_snapshot(
    student_id: str,
    intervention_date: datetime,
    snapshots: Sequence[MetricsSnapshot],
) -> BeforeAfterSnapshot:
    """
    Compare RSR, KSI, velocity and daily XP a week before the intervention
    with two weeks after. Missing snapshots or values read as 0.
    """

    intervention_date = ensure_utc(intervention_date)
    history = snapshots_for_student(snapshots, student_id)
    before = find_closest_snapshot(history, intervention_date - BEFORE_OFFSET)
    after = find_closest_snapshot(history, intervention_date + AFTER_OFFSET)

    before_values = _snapshot_values(before)
    after_values = _snapshot_values(after)
    rsr_change, ksi_change, velocity_change, xp_change = (a - b for a, b in zip(after_values, before_values))

    improvements = sum(1 for change in (rsr_change, ksi_change, velocity_change, xp_change) if change > 0)
    improvement_score = min(100.0, max(0.0, improvements / 4 * 100 + rsr_change * 50))

    return BeforeAfterSnapshot(
        student_id=student_id,
        intervention_date=intervention_date,
        before_rsr=before_values[0],
        before_ksi=before_values[1],
        before_velocity=before_values[2],
        before_daily_xp=before_values[3],
        after_rsr=after_values[0],
        after_ksi=after_values[1],
        after_velocity=after_values[2],
        after_daily_xp=after_values[3],
        rsr_change=rsr_change,
        ksi_change=ksi_change,
        velocity_change=velocity_change,
        xp_change=xp_change,
        overall_improvement=improvements >= 2,
        improvement_score=improvement_score,
    )


def classify_tracking_outcome(baseline: MetricsSnapshot, final: MetricsSnapshot) -> TrackingOutcome:
    """
    Label a completed tracking period as improved, stable or worsened.

    Improved: RSR up more than 5 points, risk down more than 10, or the student
    left RED. Worsened mirrors those rules. Improvement is checked first.
    """

    rsr_delta = (final.rsr - baseline.rsr) * 100
    ksi_delta = final.ksi - baseline.ksi if baseline.ksi is not None and final.ksi is not None else None
    risk_delta = final.risk_score - baseline.risk_score
    tier_change = f"{baseline.tier} → {final.tier}" if baseline.tier != final.tier else None

    left_red = tier_change is not None and baseline.tier == TIER_RED
    entered_red = tier_change is not None and final.tier == TIER_RED

    if rsr_delta > TRACKING_RSR_DELTA or risk_delta < -TRACKING_RISK_DELTA or left_red:
        outcome = OUTCOME_IMPROVED
    elif rsr_delta < -TRACKING_RSR_DELTA or risk_delta > TRACKING_RISK_DELTA or entered_red:
        outcome = OUTCOME_WORSENED
    else:
        outcome = OUTCOME_STABLE

    return TrackingOutcome(
        outcome=outcome,
        rsr_delta=round_half_up(rsr_delta, 1),
        ksi_delta=ksi_delta,
        velocity_delta=final.velocity - baseline.velocity,
        risk_score_delta=risk_delta,
        tier_change=tier_change,
    )


def _snapshot_values(snapshot: Optional[MetricsSnapshot]):
    if snapshot is None:
        return (0.0, 0.0, 0.0, 0.0)
    return (
        snapshot.rsr or 0.0,
        snapshot.ksi or 0.0,
        snapshot.velocity or 0.0,
        snapshot.daily_xp or 0.0,
    )
