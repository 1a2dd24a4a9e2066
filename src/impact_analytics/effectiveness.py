# ABOUTME: Aggregates intervention impacts by objective and by coach.
# ABOUTME: Produces the objective effectiveness ranking and the coach leaderboard.

from __future__ import annotations

from collections import Counter, OrderedDict
from datetime import datetime
from typing import Dict, Iterable, List, Optional, Sequence, Tuple

from src.common.adapters import ensure_utc
from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import (
    TIER_GREEN,
    TIER_RED,
    TIER_YELLOW,
    CoachPerformance,
    InterventionEffectiveness,
    InterventionEvent,
    InterventionImpact,
)
from src.common.stats import mean, round_int

from .impact import time_to_improvement

ImpactKey = Tuple[str, datetime]


def calculate_intervention_effectiveness(
    events: Sequence[InterventionEvent],
    impacts: Sequence[InterventionImpact],
    config: DRIConfig = DEFAULT_CONFIG,
) -> List[InterventionEffectiveness]:
    """
    Summarize each objective: how often it worked and by how much.

    Impacts are matched to events on (student_id, timestamp). Success rate is
    improved impacts over interventions logged for the objective, in percent.
    Sorted by success rate, best first.
    """

    by_key = _index_impacts(impacts)
    results = []
    for objective, group in _group_by(events, lambda e: e.objective).items():
        matched = _matched_impacts(group, by_key)
        successful = sum(1 for impact in matched if impact.improved)
        improvement_days = [time_to_improvement(i, config) for i in matched if i.improved]

        results.append(
            InterventionEffectiveness(
                objective=objective,
                total_interventions=len(group),
                successful_interventions=successful,
                avg_risk_decrease=_avg_abs_delta(matched),
                avg_time_to_improvement=mean(improvement_days) if improvement_days else None,
                success_rate=successful / len(group) * 100 if group else 0.0,
                most_effective_for=most_common_tier(matched, config),
            )
        )

    return sorted(results, key=lambda r: r.success_rate, reverse=True)


def calculate_coach_performance(
    events: Sequence[InterventionEvent],
    impacts: Sequence[InterventionImpact],
    coaches: Optional[Iterable[str]] = None,
) -> List[CoachPerformance]:
    """Build the coach leaderboard, ordered by composite impact score."""

    by_key = _index_impacts(impacts)
    grouped = _group_by(events, lambda e: e.coach)
    names = list(coaches) if coaches is not None else list(grouped)

    results = []
    for coach in names:
        group = grouped.get(coach, [])
        matched = _matched_impacts(group, by_key)
        successful = sum(1 for impact in matched if impact.improved)

        per_student = Counter(e.student_id for e in group)
        students_helped = len(per_student)
        follow_ups = sum(1 for count in per_student.values() if count >= 2)
        follow_up_rate = follow_ups / students_helped * 100 if students_helped else 0.0

        objectives = Counter(e.objective for e in group)
        top_objective = objectives.most_common(1)[0][0] if objectives else "N/A"

        success_rate = successful / len(group) * 100 if group else 0.0
        avg_decrease = _avg_abs_delta(matched)

        results.append(
            CoachPerformance(
                coach_name=coach,
                total_interventions=len(group),
                students_helped=students_helped,
                avg_risk_decrease=avg_decrease,
                success_rate=success_rate,
                follow_up_rate=follow_up_rate,
                top_objective=top_objective,
                impact_score=coach_impact_score(success_rate, avg_decrease, follow_up_rate),
            )
        )

    return rank_coaches(results)


def coach_impact_score(success_rate: float, avg_risk_decrease: float, follow_up_rate: float) -> int:
    return round_int(success_rate * 0.5 + avg_risk_decrease * 2 + follow_up_rate * 0.3)


def rank_coaches(performances: Iterable[CoachPerformance]) -> List[CoachPerformance]:
    return sorted(performances, key=lambda p: p.impact_score, reverse=True)


def risk_tier_for(score: float, config: DRIConfig = DEFAULT_CONFIG) -> str:
    if score >= config.risk_red_threshold:
        return TIER_RED
    if score >= config.risk_yellow_threshold:
        return TIER_YELLOW
    return TIER_GREEN


def most_common_tier(impacts: Sequence[InterventionImpact], config: DRIConfig = DEFAULT_CONFIG) -> str:
    """Baseline-risk tier seen most often; ties resolve toward the less severe tier."""
    counts = Counter(risk_tier_for(i.risk_at_intervention, config) for i in impacts)
    best = TIER_RED
    for tier in (TIER_YELLOW, TIER_GREEN):
        if counts[tier] >= counts[best]:
            best = tier
    return best


def _avg_abs_delta(impacts: Sequence[InterventionImpact]) -> float:
    if not impacts:
        return 0.0
    return sum(abs(i.delta_week4 or 0) for i in impacts) / len(impacts)


def _index_impacts(impacts: Iterable[InterventionImpact]) -> Dict[ImpactKey, List[InterventionImpact]]:
    index: Dict[ImpactKey, List[InterventionImpact]] = {}
    for impact in impacts:
        index.setdefault((impact.student_id, ensure_utc(impact.intervention_date)), []).append(impact)
    return index


def _matched_impacts(
    events: Sequence[InterventionEvent], index: Dict[ImpactKey, List[InterventionImpact]]
) -> List[InterventionImpact]:
    matched: List[InterventionImpact] = []
    seen = set()
    for event in events:
        key = (event.student_id, ensure_utc(event.timestamp))
        if key in seen:
            continue
        seen.add(key)
        matched.extend(index.get(key, []))
    return matched


def _group_by(events: Iterable[InterventionEvent], key) -> "OrderedDict[str, List[InterventionEvent]]":
    groups: "OrderedDict[str, List[InterventionEvent]]" = OrderedDict()
    for event in events:
        groups.setdefault(key(event), []).append(event)
    return groups
