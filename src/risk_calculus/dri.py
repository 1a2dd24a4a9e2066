# ABOUTME: Computes DRI indicators (DER, PDI, iROI) and the final risk tier for one student.
# ABOUTME: Combines a weighted risk score with the RSR gatekeeper so tier and score always agree.

from __future__ import annotations

import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import List, Optional, Sequence

from src.common.adapters import ensure_utc
from src.common.config import DEFAULT_CONFIG, DRIConfig
from src.common.schemas import TIER_GREEN, TIER_RED, TIER_YELLOW, ActivityLog, DRIMetrics, Metrics, Task
from src.common.stats import round_half_up, round_int
from src.common.topic_difficulty import DEFAULT_RESOLVER, K8, TopicDifficultyResolver

from .activity_metrics import FRUSTRATED_STALL, chronological_tasks

SIGNAL_INACTIVE = "INACTIVE"
SIGNAL_CRITICAL_FAILURE = "Critical Failure"
SIGNAL_LOW_ACCURACY = "Low Accuracy"
SIGNAL_HIGH_RISK = "High Risk"
SIGNAL_WATCH_LIST = "Watch List"
SIGNAL_FLOWING = "Flowing"
SIGNAL_CRITICAL_DEBT = "Critical Debt"
SIGNAL_LOW_VELOCITY = "Low Velocity"

LOW_VELOCITY_SIGNAL_THRESHOLD = 30


@dataclass
class TierDecision:
    tier: str
    signal: str
    risk_score: int


def calculate_dri_metrics(
    metrics: Metrics,
    activity: ActivityLog,
    course_name: str = "",
    config: DRIConfig = DEFAULT_CONFIG,
    resolver: TopicDifficultyResolver = DEFAULT_RESOLVER,
    as_of: Optional[datetime] = None,
) -> DRIMetrics:
    """
    Run the risk calculus for one student.

    Steps:
    - Short-circuit to RED/INACTIVE when the latest dated task is older than
      the inactivity threshold. Undated tasks carry no recency signal.
    - Compute DER, PDI and iROI from the chronologically ordered tasks.
    - Build the weighted risk score and classify it through the RSR gate.

    Pass ``as_of`` for reproducible results; without it the wall clock is
    read, so repeated calls near the inactivity boundary can disagree.
    """

    as_of = ensure_utc(as_of) if as_of is not None else datetime.now(timezone.utc)
    tasks = chronological_tasks(activity.tasks)

    if is_inactive(tasks, as_of, config):
        return DRIMetrics(
            iroi=None,
            debt_exposure=None,
            precision_decay=None,
            dri_tier=TIER_RED,
            dri_signal=SIGNAL_INACTIVE,
            risk_score=100,
        )

    der = debt_exposure_ratio(tasks, course_name, config, resolver)
    pdi = precision_decay_index(tasks, course_name, config, resolver)
    engaged = max(0.0, activity.time_engaged)
    iroi = round_half_up(activity.xp_awarded / engaged, 2) if engaged > 0 else None
    low_productivity = (
        iroi is not None
        and engaged >= config.iroi_min_time_for_eval
        and iroi < config.iroi_low_productivity_threshold
    )

    weighted = weighted_risk_score(der, metrics.velocity_score, pdi, metrics.ksi, metrics.stall_status, config)
    decision = classify_tier(metrics.lmp * 100, weighted, der, metrics.velocity_score, config)

    return DRIMetrics(
        iroi=iroi,
        debt_exposure=der,
        precision_decay=pdi,
        dri_tier=decision.tier,
        dri_signal=decision.signal,
        risk_score=decision.risk_score,
        weighted_risk_score=weighted,
        low_productivity=low_productivity,
    )


def is_inactive(tasks: Sequence[Task], as_of: datetime, config: DRIConfig = DEFAULT_CONFIG) -> bool:
    dated = [ensure_utc(t.completed_at) for t in tasks if t.completed_at is not None]
    if not dated:
        return False
    days_since = (ensure_utc(as_of) - max(dated)).total_seconds() / 86400
    return days_since > config.inactivity_days_threshold


def debt_exposure_ratio(
    tasks: Sequence[Task],
    course_name: str = "",
    config: DRIConfig = DEFAULT_CONFIG,
    resolver: TopicDifficultyResolver = DEFAULT_RESOLVER,
) -> Optional[int]:
    """Percent of mastered tasks that sit at K-8 level; None below the minimum sample."""
    mastered = [t for t in tasks if t.accuracy is not None and t.accuracy > config.der_mastery_threshold]
    if len(mastered) < config.der_min_tasks:
        return None
    below_grade = sum(1 for t in mastered if t.topic_name and resolver(course_name, t.topic_name) == K8)
    return round_int(below_grade / len(mastered) * 100)


def precision_decay_index(
    tasks: Sequence[Task],
    course_name: str = "",
    config: DRIConfig = DEFAULT_CONFIG,
    resolver: TopicDifficultyResolver = DEFAULT_RESOLVER,
) -> float:
    """
    Ratio of late-window to early-window error burden, (end+1)/(start+1).

    Expects tasks already in chronological order. The window covers 30% of the
    tasks, bounded to [PDI_MIN_WINDOW, PDI_WINDOW_SIZE].
    """

    window = pdi_window(len(tasks), config)
    start = _window_errors(list(tasks[:window]), course_name, config, resolver)
    end = _window_errors(list(tasks[-window:]) if window else [], course_name, config, resolver)
    return round_half_up((end + 1) / (start + 1), 2)


def pdi_window(task_count: int, config: DRIConfig = DEFAULT_CONFIG) -> int:
    if task_count <= 0:
        return 0
    window = max(config.pdi_min_window, math.ceil(task_count * config.pdi_window_fraction))
    return min(window, config.pdi_window_size)


def _window_errors(
    tasks: List[Task],
    course_name: str,
    config: DRIConfig,
    resolver: TopicDifficultyResolver,
) -> float:
    total = 0.0
    for task in tasks:
        errors = float(task.errors)
        if config.pdi_normalize_difficulty and errors:
            factor = config.difficulty_factor(resolver(course_name, task.topic_name))
            if factor > 0:
                errors /= factor
        total += errors
    return total


def weighted_risk_score(
    der: Optional[float],
    velocity: float,
    pdi: Optional[float],
    ksi: Optional[float],
    stall_status: str,
    config: DRIConfig = DEFAULT_CONFIG,
) -> int:
    weights = config.risk_weights
    score = 0.0

    if der is not None:
        if der > config.der_severe_threshold:
            score += weights.debt_exposure
        elif der > config.der_critical_threshold:
            score += weights.debt_exposure * 0.67
        elif der > config.der_watch_threshold:
            score += weights.debt_exposure * 0.33

    if velocity < 20:
        score += weights.velocity
    elif velocity < 50:
        score += weights.velocity * 0.6
    elif velocity < 80:
        score += weights.velocity * 0.2

    if pdi is not None:
        if pdi > config.pdi_severe_threshold:
            score += weights.precision_decay
        elif pdi > config.pdi_critical_threshold:
            score += weights.precision_decay * 0.5

    if ksi is not None:
        if ksi < config.ksi_critical_threshold:
            score += weights.stability
        elif ksi < config.ksi_low_threshold:
            score += weights.stability * 0.53

    if stall_status == FRUSTRATED_STALL:
        score += weights.stall_status

    return max(0, min(100, round_int(score)))


def classify_tier(
    rsr: float,
    score: int,
    der: Optional[float] = None,
    velocity: float = 100,
    config: DRIConfig = DEFAULT_CONFIG,
) -> TierDecision:
    """
    Apply the RSR gatekeeper, then the weighted thresholds.

    Below the RSR gate a student is never GREEN: a weighted score at or above
    the YELLOW threshold makes them RED with a floored score, anything lower
    makes them YELLOW with a floored score.
    """

    if rsr < config.rsr_gate_threshold:
        if score >= config.risk_yellow_threshold:
            decision = TierDecision(TIER_RED, SIGNAL_CRITICAL_FAILURE, max(score, config.rsr_gate_red_floor))
        else:
            decision = TierDecision(TIER_YELLOW, SIGNAL_LOW_ACCURACY, max(score, config.rsr_gate_yellow_floor))
    elif score >= config.risk_red_threshold:
        decision = TierDecision(TIER_RED, SIGNAL_HIGH_RISK, score)
    elif score >= config.risk_yellow_threshold:
        decision = TierDecision(TIER_YELLOW, SIGNAL_WATCH_LIST, score)
    else:
        decision = TierDecision(TIER_GREEN, SIGNAL_FLOWING, score)

    if decision.tier == TIER_RED and "Critical" not in decision.signal:
        if der is not None and der > config.der_critical_threshold:
            decision.signal = SIGNAL_CRITICAL_DEBT
        elif velocity < LOW_VELOCITY_SIGNAL_THRESHOLD:
            decision.signal = SIGNAL_LOW_VELOCITY

    decision.risk_score = max(0, min(100, int(decision.risk_score)))
    return decision
