# ABOUTME: Chains activity metrics and the risk calculus into one per-student evaluation.
# ABOUTME: Fans out across a population and flattens results into a pandas frame for reports.

from __future__ import annotations

from datetime import datetime, timezone
from typing import Iterable, List, Optional

import pandas as pd

from src.common.adapters import ensure_utc
from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import StudentEvaluation, StudentProfile
from src.common.topic_difficulty import DEFAULT_RESOLVER, TopicDifficultyResolver

from .activity_metrics import calculate_metrics
from .dri import calculate_dri_metrics

EVALUATION_COLUMNS = [
    "student_id",
    "campus",
    "grade",
    "guide",
    "velocity_score",
    "accuracy_rate",
    "focus_integrity",
    "archetype",
    "risk_status",
    "nemesis_topic",
    "rsr",
    "ksi",
    "iroi",
    "debt_exposure",
    "precision_decay",
    "dri_tier",
    "dri_signal",
    "risk_score",
    "weighted_risk_score",
]


def evaluate_student(
    profile: StudentProfile,
    config: DRIConfig = DEFAULT_CONFIG,
    resolver: TopicDifficultyResolver = DEFAULT_RESOLVER,
    as_of: Optional[datetime] = None,
) -> StudentEvaluation:
    metrics = calculate_metrics(profile.schedule, profile.activity, config)
    dri = calculate_dri_metrics(
        metrics,
        profile.activity,
        course_name=profile.course.name,
        config=config,
        resolver=resolver,
        as_of=as_of,
    )
    return StudentEvaluation(
        student_id=profile.student_id,
        metrics=metrics,
        dri=dri,
        dimensions=profile.dimensions,
    )


def evaluate_population(
    profiles: Iterable[StudentProfile],
    config: DRIConfig = DEFAULT_CONFIG,
    resolver: TopicDifficultyResolver = DEFAULT_RESOLVER,
    as_of: Optional[datetime] = None,
) -> List[StudentEvaluation]:
    """Evaluate every student against one shared clock so a run is reproducible."""
    as_of = ensure_utc(as_of) if as_of is not None else datetime.now(timezone.utc)
    return [evaluate_student(p, config, resolver, as_of) for p in profiles]


def evaluations_to_frame(evaluations: Iterable[StudentEvaluation]) -> pd.DataFrame:
    rows = []
    for ev in evaluations:
        dims = ev.dimensions
        rows.append(
            {
                "student_id": ev.student_id,
                "campus": dims.campus_display_name if dims else None,
                "grade": dims.grade if dims else None,
                "guide": dims.guide if dims else None,
                "velocity_score": ev.metrics.velocity_score,
                "accuracy_rate": ev.metrics.accuracy_rate,
                "focus_integrity": ev.metrics.focus_integrity,
                "archetype": ev.metrics.archetype,
                "risk_status": ev.metrics.risk_status,
                "nemesis_topic": ev.metrics.nemesis_topic,
                "rsr": round(ev.metrics.lmp * 100, 1),
                "ksi": ev.metrics.ksi,
                "iroi": ev.dri.iroi,
                "debt_exposure": ev.dri.debt_exposure,
                "precision_decay": ev.dri.precision_decay,
                "dri_tier": ev.dri.dri_tier,
                "dri_signal": ev.dri.dri_signal,
                "risk_score": ev.dri.risk_score,
                "weighted_risk_score": ev.dri.weighted_risk_score,
            }
        )

    if not rows:
        return pd.DataFrame(columns=EVALUATION_COLUMNS)
    return pd.DataFrame(rows, columns=EVALUATION_COLUMNS)
