# ABOUTME: Holds the DRI threshold and weight table as an injectable, immutable config.
# ABOUTME: Loads overrides from YAML so thresholds can be tuned without code changes.

from __future__ import annotations

from dataclasses import dataclass, field, fields, replace
from pathlib import Path
from typing import Any, Dict, Mapping, Optional

import yaml


@dataclass(frozen=True)
class RiskWeights:
    """Maximum contribution of each factor to the weighted risk score (sums to 100)."""

    debt_exposure: float = 30
    velocity: float = 25
    precision_decay: float = 20
    stability: float = 15
    stall_status: float = 10


def _default_topic_difficulty() -> Dict[str, float]:
    # Expected-error factors: K-8 ~30% errors, HS ~50% (baseline), AP ~65%.
    return {"K-8": 0.7, "HS": 1.0, "AP": 1.3}


@dataclass(frozen=True)
class DRIConfig:
    school_days_per_week: int = 5

    inactivity_days_threshold: float = 7

    der_mastery_threshold: float = 0.65
    der_min_tasks: int = 5
    der_watch_threshold: float = 10
    der_critical_threshold: float = 20
    der_severe_threshold: float = 40

    pdi_min_window: int = 5
    pdi_window_size: int = 10
    pdi_window_fraction: float = 0.3
    pdi_critical_threshold: float = 1.5
    pdi_severe_threshold: float = 2.0
    pdi_normalize_difficulty: bool = True
    topic_difficulty: Mapping[str, float] = field(default_factory=_default_topic_difficulty)

    iroi_low_productivity_threshold: float = 0.3
    iroi_min_time_for_eval: float = 3600

    risk_weights: RiskWeights = field(default_factory=RiskWeights)
    risk_red_threshold: float = 60
    risk_yellow_threshold: float = 35

    rsr_gate_threshold: float = 60
    rsr_gate_red_floor: int = 75
    rsr_gate_yellow_floor: int = 45

    ksi_critical_threshold: float = 50
    ksi_low_threshold: float = 60
    ksi_min_tasks: int = 3

    rsr_success_threshold: float = 0.8
    rsr_recent_tasks_count: int = 10

    impact_improvement_threshold: float = 15
    group_min_size: int = 3

    def with_overrides(self, **changes: Any) -> "DRIConfig":
        return replace(self, **changes)

    def difficulty_factor(self, tier: str) -> float:
        return float(self.topic_difficulty.get(tier, 1.0))


DEFAULT_CONFIG = DRIConfig()


def load_dri_config(path: Optional[Path] = None, overrides: Optional[Mapping[str, Any]] = None) -> DRIConfig:
    """
    Build a DRIConfig from an optional YAML file plus in-memory overrides.

    Keys are case-insensitive, so both ``DER_MIN_TASKS`` and ``der_min_tasks``
    are accepted. ``TOPIC_DIFFICULTY`` and ``RISK_WEIGHTS`` may be partial and
    are merged over the defaults.
    """

    raw: Dict[str, Any] = {}
    if path is not None:
        with open(path) as f:
            loaded = yaml.safe_load(f) or {}
        if not isinstance(loaded, Mapping):
            raise ValueError(f"Config file {path} must contain a mapping at the top level.")
        raw.update(loaded)
    if overrides:
        raw.update(overrides)
    return config_from_mapping(raw)


def config_from_mapping(raw: Mapping[str, Any], base: DRIConfig = DEFAULT_CONFIG) -> DRIConfig:
    known = {f.name: f for f in fields(DRIConfig)}
    changes: Dict[str, Any] = {}

    for key, value in raw.items():
        name = str(key).strip().lower()
        if name not in known:
            raise ValueError(f"Unknown DRI config key '{key}'.")
        if name == "risk_weights":
            changes[name] = _merge_weights(base.risk_weights, value)
        elif name == "topic_difficulty":
            changes[name] = _merge_difficulty(base.topic_difficulty, value)
        elif name == "pdi_normalize_difficulty":
            changes[name] = _coerce_flag(key, value)
        else:
            changes[name] = _coerce_number(key, value, type(getattr(base, name)))

    return replace(base, **changes)


def _merge_weights(base: RiskWeights, value: Any) -> RiskWeights:
    if not isinstance(value, Mapping):
        raise ValueError("RISK_WEIGHTS must be a mapping of factor name to weight.")
    known = {f.name for f in fields(RiskWeights)}
    changes = {}
    for key, weight in value.items():
        name = str(key).strip().lower()
        if name not in known:
            raise ValueError(f"Unknown risk weight '{key}'.")
        changes[name] = _coerce_number(key, weight, float)
    return replace(base, **changes)


def _merge_difficulty(base: Mapping[str, float], value: Any) -> Dict[str, float]:
    if not isinstance(value, Mapping):
        raise ValueError("TOPIC_DIFFICULTY must be a mapping of tier to factor.")
    merged = dict(base)
    for tier, factor in value.items():
        merged[str(tier)] = _coerce_number(tier, factor, float)
    return merged


def _coerce_flag(key: Any, value: Any) -> bool:
    if not isinstance(value, bool):
        raise ValueError(f"Config value for '{key}' must be true or false, got {value!r}.")
    return value


def _coerce_number(key: Any, value: Any, kind: type) -> Any:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise ValueError(f"Config value for '{key}' must be numeric, got {value!r}.")
    if kind is int:
        return int(value)
    return float(value)
