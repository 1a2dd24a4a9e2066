# ABOUTME: Groups the longitudinal engine: snapshots, intervention impact, and aggregations.
# ABOUTME: Re-exports the matcher, impact engine, leaderboards, cohorts, and group stats.

from .cohorts import calculate_course_completion, compare_cohorts
from .effectiveness import calculate_coach_performance, calculate_intervention_effectiveness
from .groups import calculate_all_group_stats, calculate_group_stats, group_students_by_dimension
from .impact import calculate_before_after_snapshot, calculate_intervention_impact, classify_tracking_outcome
from .snapshots import build_snapshot, find_closest_snapshot

__all__ = [
    "calculate_course_completion",
    "compare_cohorts",
    "calculate_coach_performance",
    "calculate_intervention_effectiveness",
    "calculate_all_group_stats",
    "calculate_group_stats",
    "group_students_by_dimension",
    "calculate_before_after_snapshot",
    "calculate_intervention_impact",
    "classify_tracking_outcome",
    "build_snapshot",
    "find_closest_snapshot",
]
