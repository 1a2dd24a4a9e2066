# ABOUTME: Tests course completion metrics and the with/without intervention cohort split.
# ABOUTME: Checks completion days, completion rates, and optional risk/RSR change averages.

from datetime import datetime, timezone

import pytest

from src.common.schemas import CourseInfo, InterventionEvent, MetricsSnapshot
from src.impact_analytics.cohorts import calculate_course_completion, compare_cohorts


def _dt(month: int, day: int) -> datetime:
    return datetime(2024, month, day, tzinfo=timezone.utc)


COURSES = {
    "s1": CourseInfo("Algebra I", start_date=_dt(1, 1), completion_date=_dt(3, 1)),
    "s2": CourseInfo("Algebra I", start_date=_dt(1, 1)),
    "s3": CourseInfo("Geometry", start_date=_dt(1, 1), completion_date=_dt(2, 10)),
    "s4": CourseInfo("Geometry"),
}
EVENTS = [
    InterventionEvent("s1", "Coach A", "focus_check", _dt(2, 1)),
    InterventionEvent("s1", "Coach A", "focus_check", _dt(1, 15)),
    InterventionEvent("s2", "Coach B", "nemesis_review", _dt(1, 20)),
]


def test_course_completion_for_one_student():
    result = calculate_course_completion("s1", COURSES["s1"], EVENTS)

    assert result.days_to_complete == 60
    assert result.interventions_received == 2
    assert result.first_intervention == _dt(1, 15)

    unfinished = calculate_course_completion("s4", COURSES["s4"], EVENTS)
    assert unfinished.days_to_complete is None
    assert unfinished.interventions_received == 0
    assert unfinished.first_intervention is None


def test_compare_cohorts_splits_on_any_intervention():
    with_cohort, without_cohort = compare_cohorts(COURSES, EVENTS)

    assert with_cohort.cohort == "with_interventions"
    assert with_cohort.student_count == 2
    assert with_cohort.avg_course_completion_days == 60
    assert with_cohort.course_completion_rate == 50
    assert with_cohort.avg_risk_score_change is None

    assert without_cohort.cohort == "without_interventions"
    assert without_cohort.student_count == 2
    assert without_cohort.avg_course_completion_days == 40
    assert without_cohort.course_completion_rate == 50


def test_compare_cohorts_with_snapshot_history():
    snapshots = [
        MetricsSnapshot("s1", _dt(2, 20), rsr=0.7, ksi=70, velocity=60, risk_score=40),
        MetricsSnapshot("s1", _dt(1, 10), rsr=0.5, ksi=60, velocity=40, risk_score=70),
        MetricsSnapshot("s3", _dt(1, 10), rsr=0.8, ksi=80, velocity=90, risk_score=10),
    ]
    with_cohort, without_cohort = compare_cohorts(COURSES, EVENTS, snapshots)

    assert with_cohort.avg_risk_score_change == -30
    assert with_cohort.avg_rsr_change == pytest.approx(20)
    assert without_cohort.avg_risk_score_change is None


def test_empty_population():
    with_cohort, without_cohort = compare_cohorts({}, [])
    assert with_cohort.student_count == 0
    assert with_cohort.course_completion_rate == 0
    assert without_cohort.avg_course_completion_days == 0
