# ABOUTME: Tests the activity metrics calculator on synthetic weekly logs.
# ABOUTME: Covers velocity, accuracy, nemesis topic, archetypes, RSR, KSI, stalls, and risk status.

from datetime import datetime, timedelta, timezone

from src.common.schemas import ActivityLog, Schedule, Task
from src.risk_calculus.activity_metrics import (
    classify_archetype,
    calculate_metrics,
    find_nemesis_topic,
    knowledge_stability_index,
    recent_success_rate,
    review_accuracy,
)

START = datetime(2024, 3, 1, 9, tzinfo=timezone.utc)


def _task(topic: str, questions: int, correct: int, day: int = 0, kind: str = "learning") -> Task:
    return Task(
        topic_name=topic,
        questions=questions,
        questions_correct=correct,
        completed_at=START + timedelta(days=day),
        kind=kind,
    )


def _log(xp: float, questions: int = 20, correct: int = 18, engaged: float = 1800, productive: float = 1500, tasks=()):
    return ActivityLog(
        xp_awarded=xp,
        time=engaged,
        questions=questions,
        questions_correct=correct,
        num_tasks=len(tasks),
        time_engaged=engaged,
        time_productive=productive,
        time_elapsed=engaged,
        tasks=tuple(tasks),
    )


GOOD_TASKS = [_task("Quadratic Equations", 10, 9, day=i) for i in range(3)]


def test_velocity_scales_against_weekly_goal_and_caps_at_100():
    schedule = Schedule(daily_goal=25)
    assert calculate_metrics(schedule, _log(100, tasks=GOOD_TASKS)).velocity_score == 80
    assert calculate_metrics(schedule, _log(500, tasks=GOOD_TASKS)).velocity_score == 100
    assert calculate_metrics(Schedule(daily_goal=0), _log(100, tasks=GOOD_TASKS)).velocity_score == 0


def test_missing_counts_degrade_to_safe_defaults():
    metrics = calculate_metrics(Schedule(daily_goal=25), ActivityLog())

    assert metrics.accuracy_rate is None
    assert metrics.focus_integrity == 0
    assert metrics.nemesis_topic == ""
    assert metrics.review_accuracy == -1
    assert metrics.lmp == 0.0
    assert metrics.ksi is None
    assert metrics.archetype == "Neutral"
    assert metrics.risk_status == "Dormant"


def test_accuracy_falls_back_to_task_totals():
    log = _log(100, questions=0, correct=0, tasks=[_task("Logarithms", 10, 7), _task("Logarithms", 10, 8)])
    assert calculate_metrics(Schedule(daily_goal=25), log).accuracy_rate == 75


def test_nemesis_topic_is_lowest_accuracy_under_sixty_percent():
    tasks = [
        _task("Fractions", 10, 5, day=0),
        _task("Ratios", 4, 1, day=1),
        _task("Decimals", 2, 0, day=2),  # too few questions to count
        _task("Polynomials", 10, 7, day=3),
    ]
    assert find_nemesis_topic(tasks) == "Ratios"
    assert find_nemesis_topic([_task("Polynomials", 10, 7)]) == ""


def test_review_accuracy_uses_review_tasks_only():
    tasks = [
        _task("Fractions", 10, 8, kind="review"),
        _task("Fractions", 10, 6, kind="review"),
        _task("Limits", 10, 1),
    ]
    assert review_accuracy(tasks) == 70
    assert review_accuracy([_task("Limits", 10, 1)]) == -1


def test_archetype_decision_order():
    assert classify_archetype(5, 10, 0.1, 10) == "Neutral"
    assert classify_archetype(30, 30, 1.0, 80) == "Zombie"
    assert classify_archetype(30, 50, 0.2, 40) == "Guesser"
    assert classify_archetype(30, 80, 1.0, 50) == "Grinder"
    assert classify_archetype(30, 80, 1.0, 90) == "Flow Master"
    assert classify_archetype(30, 60, 1.0, 70) == "Neutral"
    assert classify_archetype(30, 80, None, None) == "Neutral"


def test_risk_status_follows_velocity_bands():
    schedule = Schedule(daily_goal=25)
    on_track = calculate_metrics(schedule, _log(100, tasks=GOOD_TASKS))
    attention = calculate_metrics(schedule, _log(60, tasks=GOOD_TASKS))
    critical = calculate_metrics(schedule, _log(25, tasks=GOOD_TASKS))

    assert on_track.archetype == "Flow Master"
    assert on_track.risk_status == "On Track"
    assert attention.velocity_score == 48
    assert attention.risk_status == "Attention"
    assert critical.velocity_score == 20
    assert critical.risk_status == "Critical"
    assert critical.dropout_risk == 30


def test_recent_success_rate_uses_latest_ten_tasks_chronologically():
    tasks = [_task("Vectors", 10, 5, day=0), _task("Vectors", 10, 5, day=1)]
    tasks += [_task("Vectors", 10, 9, day=2 + i) for i in range(8)]
    tasks += [_task("Vectors", 10, 5, day=10), _task("Vectors", 10, 5, day=11)]
    tasks.reverse()

    metrics = calculate_metrics(Schedule(daily_goal=25), _log(100, tasks=tasks))
    assert metrics.lmp == 0.8
    assert recent_success_rate([]) == 0.0


def test_knowledge_stability_index_penalizes_volatile_accuracy():
    steady = [_task("Matrices", 10, 9, day=i) for i in range(4)]
    volatile = [
        _task("Matrices", 10, 10, day=0),
        _task("Matrices", 10, 5, day=1),
        _task("Matrices", 10, 10, day=2),
        _task("Matrices", 10, 5, day=3),
    ]
    assert knowledge_stability_index(steady) == 100
    assert knowledge_stability_index(volatile) == 75
    assert knowledge_stability_index(volatile[:2]) is None


def test_repeated_failed_tasks_mark_a_frustrated_stall():
    tasks = [
        _task("Fractions", 10, 2, day=0),
        _task("Decimals", 10, 3, day=1),
        _task("Ratios", 10, 4, day=2),
    ]
    metrics = calculate_metrics(Schedule(daily_goal=25), _log(100, questions=30, correct=9, tasks=tasks))

    assert metrics.stall_status == "Frustrated Stall"
    assert metrics.micro_stalls == 3
    assert metrics.content_gap == 3
    assert metrics.nemesis_topic == "Fractions"
    assert metrics.accuracy_rate == 30


def test_calculate_metrics_is_idempotent():
    schedule = Schedule(daily_goal=30)
    log = _log(140, tasks=GOOD_TASKS + [_task("Fractions", 10, 4, day=5)])
    assert calculate_metrics(schedule, log) == calculate_metrics(schedule, log)
