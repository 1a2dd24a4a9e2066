# ABOUTME: Compares students who received interventions with those who did not.
# ABOUTME: Reports course completion time and rate per cohort, plus per-student completion metrics.

from __future__ import annotations

from typing import Dict, Iterable, List, Mapping, Optional, Sequence, Tuple

from src.common.adapters import ensure_utc
from src.common.schemas import (
    CohortComparison,
    CourseCompletionMetrics,
    CourseInfo,
    InterventionEvent,
    MetricsSnapshot,
)
from src.common.stats import mean, round_int

WITH_INTERVENTIONS = "with_interventions"
WITHOUT_INTERVENTIONS = "without_interventions"


def calculate_course_completion(
    student_id: str,
    course: CourseInfo,
    events: Iterable[InterventionEvent],
) -> CourseCompletionMetrics:
    received = sorted(
        (e for e in events if e.student_id == student_id),
        key=lambda e: ensure_utc(e.timestamp),
    )
    start = ensure_utc(course.start_date)
    completed = ensure_utc(course.completion_date)
    days = (completed - start).days if start is not None and completed is not None else None

    return CourseCompletionMetrics(
        student_id=student_id,
        start_date=start,
        completion_date=completed,
        days_to_complete=days,
        interventions_received=len(received),
        first_intervention=ensure_utc(received[0].timestamp) if received else None,
    )


def compare_cohorts(
    courses: Mapping[str, CourseInfo],
    events: Sequence[InterventionEvent],
    snapshots: Optional[Sequence[MetricsSnapshot]] = None,
) -> Tuple[CohortComparison, CohortComparison]:
    """
    Split the population on "has at least one intervention" and summarize
    each side. Descriptive only, no significance testing.

    ``courses`` maps student id to that student's current course. Returns the
    (with_interventions, without_interventions) pair.
    """

    helped = {e.student_id for e in events}
    with_ids = [sid for sid in courses if sid in helped]
    without_ids = [sid for sid in courses if sid not in helped]

    by_student = _snapshots_by_student(snapshots) if snapshots is not None else None
    return (
        _cohort_metrics(WITH_INTERVENTIONS, with_ids, courses, events, by_student),
        _cohort_metrics(WITHOUT_INTERVENTIONS, without_ids, courses, events, by_student),
    )


def _cohort_metrics(
    cohort: str,
    student_ids: List[str],
    courses: Mapping[str, CourseInfo],
    events: Sequence[InterventionEvent],
    by_student: Optional[Dict[str, List[MetricsSnapshot]]],
) -> CohortComparison:
    completions = [calculate_course_completion(sid, courses[sid], events) for sid in student_ids]
    completed = [c for c in completions if c.completion_date is not None]
    durations = [c.days_to_complete for c in completed if c.days_to_complete is not None]

    risk_change = rsr_change = None
    if by_student is not None:
        risk_changes, rsr_changes = [], []
        for sid in student_ids:
            history = by_student.get(sid, [])
            if len(history) < 2:
                continue
            first, last = history[0], history[-1]
            risk_changes.append(last.risk_score - first.risk_score)
            rsr_changes.append((last.rsr - first.rsr) * 100)
        if risk_changes:
            risk_change = mean(risk_changes)
            rsr_change = mean(rsr_changes)

    return CohortComparison(
        cohort=cohort,
        student_count=len(student_ids),
        avg_course_completion_days=round_int(mean(durations)),
        course_completion_rate=len(completed) / len(student_ids) * 100 if student_ids else 0.0,
        avg_risk_score_change=risk_change,
        avg_rsr_change=rsr_change,
    )


def _snapshots_by_student(snapshots: Sequence[MetricsSnapshot]) -> Dict[str, List[MetricsSnapshot]]:
    grouped: Dict[str, List[MetricsSnapshot]] = {}
    for snap in snapshots:
        grouped.setdefault(snap.student_id, []).append(snap)
    for history in grouped.values():
        history.sort(key=lambda s: ensure_utc(s.date))
    return grouped
