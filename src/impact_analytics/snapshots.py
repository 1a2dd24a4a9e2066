# ABOUTME: Captures dated metric snapshots and finds the one closest to a target date.
# ABOUTME: Leaf utility for the impact engine; linear scan, no sorting assumptions.

from __future__ import annotations

from datetime import datetime
from typing import Iterable, List, Optional, Sequence

from src.common.adapters import ensure_utc
from src.common.schemas import DRIMetrics, Metrics, MetricsSnapshot, StudentEvaluation


def find_closest_snapshot(snapshots: Sequence[MetricsSnapshot], target: datetime) -> Optional[MetricsSnapshot]:
    """Snapshot with the smallest absolute distance to ``target``; the earliest listed wins ties."""
    target = ensure_utc(target)
    closest: Optional[MetricsSnapshot] = None
    closest_gap = None
    for snapshot in snapshots:
        gap = abs((ensure_utc(snapshot.date) - target).total_seconds())
        if closest_gap is None or gap < closest_gap:
            closest, closest_gap = snapshot, gap
    return closest


def snapshots_for_student(snapshots: Iterable[MetricsSnapshot], student_id: str) -> List[MetricsSnapshot]:
    return [s for s in snapshots if s.student_id == student_id]


def build_snapshot(student_id: str, metrics: Metrics, dri: DRIMetrics, date: datetime) -> MetricsSnapshot:
    return MetricsSnapshot(
        student_id=student_id,
        date=ensure_utc(date),
        rsr=metrics.lmp,
        ksi=metrics.ksi,
        velocity=metrics.velocity_score,
        risk_score=dri.risk_score,
        der=dri.debt_exposure,
        pdi=dri.precision_decay,
        tier=dri.dri_tier,
        daily_xp=metrics.daily_xp,
    )


def capture_snapshots(evaluations: Iterable[StudentEvaluation], date: datetime) -> List[MetricsSnapshot]:
    """Snapshot a whole population run at one instant."""
    return [build_snapshot(ev.student_id, ev.metrics, ev.dri, date) for ev in evaluations]
