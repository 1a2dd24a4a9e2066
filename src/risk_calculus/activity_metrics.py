# ABOUTME: Turns one student's weekly activity log into a flat metrics record.
# ABOUTME: Computes velocity, accuracy, focus, archetype, nemesis topic, RSR, KSI, and risk status.

from __future__ import annotations

from datetime import datetime, timezone
from typing import List, Optional, Tuple

import numpy as np

from src.common.adapters import ensure_utc
from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import TASK_REVIEW, ActivityLog, Metrics, Schedule, Task
from src.common.stats import round_half_up, round_int

ZOMBIE = "Zombie"
GUESSER = "Guesser"
GRINDER = "Grinder"
FLOW_MASTER = "Flow Master"
NEUTRAL = "Neutral"

CRITICAL = "Critical"
ATTENTION = "Attention"
ON_TRACK = "On Track"
DORMANT = "Dormant"

FRUSTRATED_STALL = "Frustrated Stall"
PRODUCTIVE_STRUGGLE = "Productive Struggle"
FLOWING = "Flowing"

MIN_ENGAGED_MINUTES_FOR_ARCHETYPE = 10
NEMESIS_MIN_QUESTIONS = 2
STRUGGLE_ACCURACY = 0.6
FRUSTRATED_STALL_MIN_TASKS = 3


def calculate_metrics(schedule: Schedule, activity: ActivityLog, config: DRIConfig = DEFAULT_CONFIG) -> Metrics:
    """
    Derive the per-student metrics record from the schedule and activity log.

    Never raises: every field degrades to 0, None, -1 or "" when the source
    data is missing.
    """

    tasks = chronological_tasks(activity.tasks)
    weekly_xp = max(0.0, activity.xp_awarded)
    weekly_goal = schedule.daily_goal * config.school_days_per_week
    velocity = min(100, round_int(weekly_xp / weekly_goal * 100)) if weekly_goal > 0 else 0
    velocity = max(0, velocity)

    asked, correct = activity.questions, activity.questions_correct
    if asked <= 0:
        asked, correct = summarize_tasks(tasks)
    accuracy = round_int(correct / asked * 100) if asked > 0 else None

    engaged = max(0.0, activity.time_engaged)
    focus = min(100, round_int(activity.time_productive / engaged * 100)) if engaged > 0 else 0
    focus = max(0, focus)
    engaged_minutes = engaged / 60
    time_per_question = round_half_up(engaged_minutes / asked, 2) if asked > 0 else None

    nemesis = find_nemesis_topic(tasks)
    stalled = _stalled_tasks(tasks)
    content_gap = len({t.topic_name for t in stalled if t.topic_name})
    stall_status = _stall_status(len(stalled), accuracy)

    archetype = classify_archetype(engaged_minutes, focus, time_per_question, accuracy)

    dropout_risk = 0
    risk_status = DORMANT
    if weekly_xp > 0 and engaged > 0:
        dropout_risk = _dropout_risk(velocity, accuracy, nemesis, archetype)
        if velocity < 30 or content_gap > 5 or dropout_risk > 50:
            risk_status = CRITICAL
        elif velocity < 60:
            risk_status = ATTENTION
        else:
            risk_status = ON_TRACK

    return Metrics(
        velocity_score=velocity,
        accuracy_rate=accuracy,
        focus_integrity=focus,
        nemesis_topic=nemesis,
        archetype=archetype,
        risk_status=risk_status,
        lmp=recent_success_rate(tasks, config),
        ksi=knowledge_stability_index(tasks, config),
        weekly_xp=weekly_xp,
        daily_xp=round_half_up(weekly_xp / config.school_days_per_week, 1),
        time_per_question=time_per_question,
        review_accuracy=review_accuracy(tasks),
        content_gap=content_gap,
        micro_stalls=len(stalled),
        stall_status=stall_status,
        dropout_risk=dropout_risk,
    )


def chronological_tasks(tasks) -> List[Task]:
    """Stable sort oldest to newest; undated tasks sort first."""
    floor = datetime.min.replace(tzinfo=timezone.utc)
    return sorted(tasks, key=lambda t: ensure_utc(t.completed_at) or floor)


def find_nemesis_topic(tasks: List[Task]) -> str:
    worst_topic, worst_accuracy = "", STRUGGLE_ACCURACY
    for task in tasks:
        if task.questions <= NEMESIS_MIN_QUESTIONS or not task.topic_name:
            continue
        accuracy = task.accuracy
        if accuracy is not None and accuracy < worst_accuracy:
            worst_topic, worst_accuracy = task.topic_name, accuracy
    return worst_topic


def review_accuracy(tasks: List[Task]) -> int:
    asked, correct = summarize_tasks([t for t in tasks if t.kind == TASK_REVIEW and t.questions > 0])
    if asked == 0:
        return -1
    return round_int(correct / asked * 100)


def classify_archetype(
    engaged_minutes: float,
    focus: int,
    time_per_question: Optional[float],
    accuracy: Optional[int],
) -> str:
    if engaged_minutes <= MIN_ENGAGED_MINUTES_FOR_ARCHETYPE:
        return NEUTRAL
    if focus < 40:
        return ZOMBIE
    if accuracy is None:
        return NEUTRAL
    if time_per_question is not None and time_per_question < 0.3 and accuracy < 50:
        return GUESSER
    if focus > 70 and accuracy < 60:
        return GRINDER
    if focus > 70 and accuracy > 85:
        return FLOW_MASTER
    return NEUTRAL


def recent_success_rate(tasks: List[Task], config: DRIConfig = DEFAULT_CONFIG) -> float:
    """Share of the most recent scored tasks at or above the success threshold (0-1)."""
    scored = [t for t in tasks if t.questions > 0]
    recent = scored[-config.rsr_recent_tasks_count:] if config.rsr_recent_tasks_count > 0 else []
    if not recent:
        return 0.0
    successes = sum(1 for t in recent if t.accuracy >= config.rsr_success_threshold)
    return round_half_up(successes / len(recent), 2)


def knowledge_stability_index(tasks: List[Task], config: DRIConfig = DEFAULT_CONFIG) -> Optional[int]:
    """100 minus the spread (population std-dev) of per-task accuracy, in percent."""
    accuracies = [t.accuracy * 100 for t in tasks if t.questions > 0]
    if len(accuracies) < max(1, config.ksi_min_tasks):
        return None
    spread = float(np.std(accuracies))
    return max(0, round_int(100 - spread))


def _stalled_tasks(tasks: List[Task]) -> List[Task]:
    return [
        t
        for t in tasks
        if t.questions > NEMESIS_MIN_QUESTIONS and t.accuracy is not None and t.accuracy < STRUGGLE_ACCURACY
    ]


def _stall_status(stalled_count: int, accuracy: Optional[int]) -> str:
    if stalled_count >= FRUSTRATED_STALL_MIN_TASKS and accuracy is not None and accuracy < STRUGGLE_ACCURACY * 100:
        return FRUSTRATED_STALL
    if stalled_count >= 1:
        return PRODUCTIVE_STRUGGLE
    return FLOWING


def _dropout_risk(velocity: int, accuracy: Optional[int], nemesis: str, archetype: str) -> int:
    risk = 0
    if velocity < 30:
        risk += 30
    if velocity > 50:
        risk = 0
    if accuracy is not None and accuracy < 55:
        risk += 20
    if nemesis:
        risk += 20
    if archetype == GRINDER:
        risk += 15
    return risk


def summarize_tasks(tasks: List[Task]) -> Tuple[int, int]:
    """Total (questions, correct) across tasks."""
    return sum(t.questions for t in tasks), sum(t.questions_correct for t in tasks)
