# ABOUTME: Groups evaluated students by campus, grade, or guide and summarizes each group.
# ABOUTME: Also builds population-wide dashboard snapshots and per-topic mastery scores.

from __future__ import annotations

from dataclasses import asdict
from typing import Callable, Dict, Iterable, List, Optional, Sequence, Tuple, Union

import pandas as pd

from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import (
    TIER_GREEN,
    TIER_RED,
    TIER_YELLOW,
    TIERS,
    GroupStats,
    PopulationSnapshot,
    StudentDimensions,
    StudentEvaluation,
    StudentProfile,
    TopicScore,
)
from src.common.stats import mean, percentile, round_half_up, round_int

CAMPUS = "campus"
GRADE = "grade"
GUIDE = "guide"
DIMENSIONS = (CAMPUS, GRADE, GUIDE)

NO_CAMPUS = "Online (No Campus)"
UNASSIGNED = "Unassigned"
NO_GUIDE = "No guide"

TOPIC_MASTERY_ACCURACY = 0.8

GroupKey = Union[str, Callable[[StudentEvaluation], str]]


def group_key_for(dimensions: Optional[StudentDimensions], dimension: str) -> str:
    if dimension not in DIMENSIONS:
        raise ValueError(f"Unsupported dimension '{dimension}'. Expected one of: {', '.join(DIMENSIONS)}.")
    if dimensions is None:
        return NO_CAMPUS if dimension == CAMPUS else UNASSIGNED
    if dimension == CAMPUS:
        return dimensions.campus_display_name or NO_CAMPUS
    if dimension == GRADE:
        return f"Grade {dimensions.grade}" if dimensions.grade is not None else UNASSIGNED
    return dimensions.guide or NO_GUIDE


def group_students_by_dimension(
    evaluations: Iterable[StudentEvaluation], dimension: GroupKey
) -> Dict[str, List[StudentEvaluation]]:
    """
    Bucket students by a dimension name or by a caller-supplied key function.
    Students without dimensions land in the "Online (No Campus)" or
    "Unassigned" bucket.
    """

    if not callable(dimension) and dimension not in DIMENSIONS:
        raise ValueError(f"Unsupported dimension '{dimension}'. Expected one of: {', '.join(DIMENSIONS)}.")

    groups: Dict[str, List[StudentEvaluation]] = {}
    for ev in evaluations:
        key = dimension(ev) if callable(dimension) else group_key_for(ev.dimensions, dimension)
        groups.setdefault(key, []).append(ev)
    return groups


def calculate_group_stats(
    group: str,
    evaluations: Sequence[StudentEvaluation],
    config: DRIConfig = DEFAULT_CONFIG,
) -> GroupStats:
    count = len(evaluations)
    tiers = _tier_counts(evaluations)
    rsr_values = sorted(ev.metrics.lmp * 100 for ev in evaluations)

    return GroupStats(
        group=group,
        count=count,
        avg_rsr=mean(rsr_values),
        avg_velocity=mean(ev.metrics.velocity_score for ev in evaluations),
        avg_ksi=mean(ev.metrics.ksi for ev in evaluations),
        avg_risk_score=mean(ev.dri.risk_score for ev in evaluations),
        avg_accuracy=mean(ev.metrics.accuracy_rate or 0 for ev in evaluations),
        avg_efficiency=mean(ev.metrics.focus_integrity or 0 for ev in evaluations),
        red_count=tiers[TIER_RED],
        yellow_count=tiers[TIER_YELLOW],
        green_count=tiers[TIER_GREEN],
        p25_rsr=percentile(rsr_values, 25),
        median_rsr=percentile(rsr_values, 50),
        p75_rsr=percentile(rsr_values, 75),
        has_insufficient_data=count < config.group_min_size,
    )


def calculate_all_group_stats(
    evaluations: Iterable[StudentEvaluation],
    dimension: GroupKey,
    config: DRIConfig = DEFAULT_CONFIG,
) -> List[GroupStats]:
    """Stats for every group, largest group first."""
    groups = group_students_by_dimension(evaluations, dimension)
    stats = [calculate_group_stats(name, members, config) for name, members in groups.items()]
    return sorted(stats, key=lambda s: s.count, reverse=True)


def group_stats_to_frame(stats: Iterable[GroupStats]) -> pd.DataFrame:
    rows = [asdict(s) for s in stats]
    if not rows:
        return pd.DataFrame(columns=list(GroupStats.__dataclass_fields__))
    return pd.DataFrame(rows)


def generate_group_summary(stats: GroupStats) -> str:
    insights = []

    if stats.avg_rsr >= 75:
        insights.append("Strong RSR performance")
    elif stats.avg_rsr < 60:
        insights.append("RSR needs attention")

    if stats.avg_velocity >= 85:
        insights.append("Excellent velocity")
    elif stats.avg_velocity < 70:
        insights.append("Low velocity")

    if stats.count:
        red_pct = stats.red_count / stats.count * 100
        if red_pct > 20:
            insights.append(f"{stats.red_count} at-risk students ({red_pct:.0f}%)")

    if stats.has_insufficient_data:
        insights.append("Small sample size")

    return " • ".join(insights) if insights else "Normal performance"


def compare_groups(first: GroupStats, second: GroupStats) -> Dict[str, float]:
    return {
        "rsr_delta": first.avg_rsr - second.avg_rsr,
        "velocity_delta": first.avg_velocity - second.avg_velocity,
        "risk_delta": first.avg_risk_score - second.avg_risk_score,
        "count_delta": first.count - second.count,
    }


def split_groups_by_size(
    groups: Dict[str, List[StudentEvaluation]], min_size: int
) -> Tuple[Dict[str, List[StudentEvaluation]], Dict[str, List[StudentEvaluation]]]:
    """Partition into (large enough, too small) without dropping anyone."""
    valid = {k: v for k, v in groups.items() if len(v) >= min_size}
    small = {k: v for k, v in groups.items() if len(v) < min_size}
    return valid, small


def summarize_population(evaluations: Sequence[StudentEvaluation]) -> PopulationSnapshot:
    """Dashboard-level averages for one run over the whole population (or one campus)."""
    if not evaluations:
        return PopulationSnapshot(
            total_students=0,
            avg_rsr=0,
            avg_velocity=0,
            avg_ksi=0,
            avg_risk_score=0,
            tier_distribution={tier: 0 for tier in TIERS},
            avg_der=None,
            avg_pdi=None,
        )

    ders = [ev.dri.debt_exposure for ev in evaluations if ev.dri.debt_exposure is not None]
    pdis = [ev.dri.precision_decay for ev in evaluations if ev.dri.precision_decay is not None]

    return PopulationSnapshot(
        total_students=len(evaluations),
        avg_rsr=round_int(mean(ev.metrics.lmp * 100 for ev in evaluations)),
        avg_velocity=round_int(mean(ev.metrics.velocity_score for ev in evaluations)),
        avg_ksi=round_int(mean(ev.metrics.ksi for ev in evaluations)),
        avg_risk_score=round_int(mean(ev.dri.risk_score for ev in evaluations)),
        tier_distribution=_tier_counts(evaluations),
        avg_der=round_int(mean(ders)) if ders else None,
        avg_pdi=round_half_up(mean(pdis), 2) if pdis else None,
    )


def calculate_topic_scores(profiles: Iterable[StudentProfile], min_students: int = 5) -> List[TopicScore]:
    """
    Average accuracy on mastered tasks per topic, keeping topics with at
    least ``min_students`` mastered tasks. Sorted strongest first.
    """

    totals: Dict[str, List[float]] = {}
    for profile in profiles:
        for task in profile.activity.tasks:
            accuracy = task.accuracy
            if not task.topic_name or accuracy is None or accuracy <= TOPIC_MASTERY_ACCURACY:
                continue
            totals.setdefault(task.topic_name, []).append(accuracy)

    scores = [
        TopicScore(topic=topic, avg_rsr=round_int(mean(values) * 100), student_count=len(values))
        for topic, values in totals.items()
        if len(values) >= min_students
    ]
    return sorted(scores, key=lambda s: s.avg_rsr, reverse=True)


def _tier_counts(evaluations: Iterable[StudentEvaluation]) -> Dict[str, int]:
    counts = {tier: 0 for tier in TIERS}
    for ev in evaluations:
        if ev.dri.dri_tier in counts:
            counts[ev.dri.dri_tier] += 1
    return counts
