# ABOUTME: Tests the raw-record to report-frame pipeline for a small population.
# ABOUTME: Verifies shared evaluation clock, frame columns, and tier assignment end to end.

from datetime import datetime, timedelta, timezone

from src.common.adapters import parse_student_profile
from src.risk_calculus.pipeline import EVALUATION_COLUMNS, evaluate_population, evaluations_to_frame

AS_OF = datetime(2024, 3, 15, 12, tzinfo=timezone.utc)


def _raw_student(sid: str, correct: int, days_ago: float, campus=None) -> dict:
    stamp = (AS_OF - timedelta(days=days_ago)).isoformat()
    return {
        "id": sid,
        "currentCourse": {"name": "Algebra I"},
        "schedule": {"dailyGoal": 20},
        "dimensions": {"campusDisplayName": campus, "grade": 9},
        "activity": {
            "xpAwarded": 90,
            "time": 2400,
            "questions": 60,
            "questionsCorrect": correct * 6,
            "totals": {"timeEngaged": 2400, "timeProductive": 2000},
            "tasks": [
                {
                    "topic": {"name": "Quadratic Equations"},
                    "questions": 10,
                    "questionsCorrect": correct,
                    "completedLocal": stamp,
                }
                for _ in range(6)
            ],
        },
    }


def test_population_frame_has_one_row_per_student():
    profiles = [
        parse_student_profile(_raw_student("strong", 9, 1, campus="Austin")),
        parse_student_profile(_raw_student("weak", 4, 1)),
        parse_student_profile(_raw_student("gone", 9, 10)),
    ]
    evaluations = evaluate_population(profiles, as_of=AS_OF)
    frame = evaluations_to_frame(evaluations).set_index("student_id")

    assert list(evaluations_to_frame(evaluations).columns) == EVALUATION_COLUMNS
    assert frame.loc["strong", "dri_tier"] == "GREEN"
    assert frame.loc["strong", "rsr"] == 100.0
    assert frame.loc["strong", "campus"] == "Austin"
    assert frame.loc["weak", "dri_tier"] != "GREEN"
    assert frame.loc["weak", "rsr"] == 0.0
    assert frame.loc["gone", "dri_signal"] == "INACTIVE"
    assert frame.loc["gone", "risk_score"] == 100


def test_empty_population_frame_keeps_columns():
    frame = evaluations_to_frame([])
    assert frame.empty
    assert list(frame.columns) == EVALUATION_COLUMNS
