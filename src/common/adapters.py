# ABOUTME: Converts raw camelCase activity-feed records into canonical dataclasses.
# ABOUTME: Treats malformed fields as missing signal instead of failing the student.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Any, Iterable, List, Mapping, Optional

import pandas as pd

from .schemas import (
    TASK_LEARNING,
    TASK_REVIEW,
    ActivityLog,
    CourseInfo,
    InterventionEvent,
    MetricsSnapshot,
    Schedule,
    StudentDimensions,
    StudentProfile,
    Task,
    TIER_GREEN,
)


def parse_timestamp(value: Any) -> Optional[datetime]:
    """Parse any timestamp-like value into a UTC-aware datetime, or None."""
    if value is None or value == "":
        return None
    ts = pd.to_datetime(value, utc=True, errors="coerce")
    if pd.isna(ts):
        return None
    return ts.to_pydatetime()


def parse_task(raw: Mapping[str, Any]) -> Task:
    topic = raw.get("topic")
    if isinstance(topic, Mapping):
        topic_name = topic.get("name") or ""
    elif isinstance(topic, str):
        topic_name = topic
    else:
        topic_name = ""

    kind = str(raw.get("type") or "").strip().lower()
    return Task(
        topic_name=str(topic_name).strip(),
        questions=_as_int(raw.get("questions")),
        questions_correct=_as_int(raw.get("questionsCorrect")),
        completed_at=parse_timestamp(raw.get("completedLocal")),
        kind=TASK_REVIEW if kind == TASK_REVIEW else TASK_LEARNING,
    )


def parse_activity_log(raw: Optional[Mapping[str, Any]]) -> ActivityLog:
    if not raw:
        return ActivityLog()

    elapsed = _as_float(raw.get("time"))
    totals = raw.get("totals") or {}
    tasks = tuple(parse_task(t) for t in raw.get("tasks") or [] if isinstance(t, Mapping))

    return ActivityLog(
        xp_awarded=_as_float(raw.get("xpAwarded")),
        time=elapsed,
        questions=_as_int(raw.get("questions")),
        questions_correct=_as_int(raw.get("questionsCorrect")),
        num_tasks=_as_int(raw.get("numTasks"), default=len(tasks)),
        time_engaged=_as_float(totals.get("timeEngaged"), default=elapsed),
        time_productive=_as_float(totals.get("timeProductive")),
        time_elapsed=_as_float(totals.get("timeElapsed"), default=elapsed),
        tasks=tasks,
    )


def parse_student_profile(raw: Mapping[str, Any]) -> StudentProfile:
    course_raw = raw.get("currentCourse") or {}
    schedule_raw = raw.get("schedule") or {}
    dimensions_raw = raw.get("dimensions")

    dimensions = None
    if isinstance(dimensions_raw, Mapping):
        grade = dimensions_raw.get("grade")
        dimensions = StudentDimensions(
            campus_display_name=dimensions_raw.get("campusDisplayName") or None,
            grade=_as_int(grade) if grade is not None else None,
            guide=dimensions_raw.get("guide") or None,
        )

    return StudentProfile(
        student_id=str(raw.get("id") or ""),
        course=CourseInfo(
            name=str(course_raw.get("name") or ""),
            start_date=parse_timestamp(course_raw.get("startDate")),
            completion_date=parse_timestamp(course_raw.get("completionDate")),
        ),
        schedule=Schedule(daily_goal=_as_float(schedule_raw.get("dailyGoal", schedule_raw.get("monGoal")))),
        activity=parse_activity_log(raw.get("activity")),
        dimensions=dimensions,
    )


def parse_intervention(raw: Mapping[str, Any]) -> Optional[InterventionEvent]:
    timestamp = parse_timestamp(raw.get("timestamp") or raw.get("createdAt"))
    student_id = raw.get("studentId")
    if timestamp is None or not student_id:
        return None
    return InterventionEvent(
        student_id=str(student_id),
        coach=str(raw.get("coach") or raw.get("coachName") or "Unassigned"),
        objective=str(raw.get("objective") or raw.get("type") or "unspecified"),
        timestamp=timestamp,
    )


def parse_snapshot(raw: Mapping[str, Any]) -> Optional[MetricsSnapshot]:
    date = parse_timestamp(raw.get("date") or raw.get("capturedAt"))
    student_id = raw.get("studentId")
    if date is None or not student_id:
        return None
    return MetricsSnapshot(
        student_id=str(student_id),
        date=date,
        rsr=_as_float(raw.get("rsr")),
        ksi=_as_optional_float(raw.get("ksi")),
        velocity=_as_float(raw.get("velocity")),
        risk_score=_as_float(raw.get("riskScore")),
        der=_as_optional_float(raw.get("der")),
        pdi=_as_optional_float(raw.get("pdi")),
        tier=str(raw.get("tier") or TIER_GREEN),
        daily_xp=_as_float(raw.get("dailyXP")),
    )


def parse_interventions(records: Iterable[Mapping[str, Any]]) -> List[InterventionEvent]:
    return [event for event in (parse_intervention(r) for r in records) if event is not None]


def parse_snapshots(records: Iterable[Mapping[str, Any]]) -> List[MetricsSnapshot]:
    return [snap for snap in (parse_snapshot(r) for r in records) if snap is not None]


def _as_float(value: Any, default: float = 0.0) -> float:
    if value is None or isinstance(value, bool):
        return default
    try:
        number = float(value)
    except (TypeError, ValueError):
        return default
    if number != number:  # NaN
        return default
    return number


def _as_optional_float(value: Any) -> Optional[float]:
    if value is None:
        return None
    number = _as_float(value, default=float("nan"))
    return None if number != number else number


def _as_int(value: Any, default: int = 0) -> int:
    return int(_as_float(value, default=float(default)))


def ensure_utc(value: Optional[datetime]) -> Optional[datetime]:
    """Treat naive datetimes as UTC so they compare with parsed feed timestamps."""
    if value is None:
        return None
    if value.tzinfo is None:
        return value.replace(tzinfo=timezone.utc)
    return value
