# ABOUTME: Makes the shared common package importable across engines.
# ABOUTME: Re-exports schema types, configuration, and the topic difficulty resolver.

from .config import DEFAULT_CONFIG, DRIConfig, RiskWeights, load_dri_config
from .schemas import (
    ActivityLog,
    DRIMetrics,
    InterventionEvent,
    Metrics,
    MetricsSnapshot,
    StudentProfile,
    Task,
)
from .topic_difficulty import DEFAULT_RESOLVER, KeywordTopicResolver, TopicDifficultyResolver

__all__ = [
    "DEFAULT_CONFIG",
    "DRIConfig",
    "RiskWeights",
    "load_dri_config",
    "ActivityLog",
    "DRIMetrics",
    "InterventionEvent",
    "Metrics",
    "MetricsSnapshot",
    "StudentProfile",
    "Task",
    "DEFAULT_RESOLVER",
    "KeywordTopicResolver",
    "TopicDifficultyResolver",
]
