# ABOUTME: Groups the per-student risk engine: activity metrics and DRI risk calculus.
# ABOUTME: Re-exports the calculators and the population pipeline.

from .activity_metrics import calculate_metrics
from .dri import calculate_dri_metrics, classify_tier, weighted_risk_score
from .pipeline import evaluate_population, evaluate_student, evaluations_to_frame

__all__ = [
    "calculate_metrics",
    "calculate_dri_metrics",
    "classify_tier",
    "weighted_risk_score",
    "evaluate_student",
    "evaluate_population",
    "evaluations_to_frame",
]
