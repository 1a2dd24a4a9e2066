# ABOUTME: Defines canonical data structures shared by the risk and impact engines.
# ABOUTME: Centralizes activity, metrics, snapshot, and intervention schema definitions.

from __future__ import annotations

from dataclasses import asdict, dataclass, field
from datetime import datetime
from typing import Any, Dict, Optional, Tuple

TIER_RED = "RED"
TIER_YELLOW = "YELLOW"
TIER_GREEN = "GREEN"
TIERS = (TIER_RED, TIER_YELLOW, TIER_GREEN)

TASK_REVIEW = "review"
TASK_LEARNING = "learning"


@dataclass(frozen=True)
class Task:
    """One completed task from a student's activity feed."""

    topic_name: str
    questions: int
    questions_correct: int
    completed_at: Optional[datetime] = None
    kind: str = TASK_LEARNING

    @property
    def accuracy(self) -> Optional[float]:
        if self.questions <= 0:
            return None
        return self.questions_correct / self.questions

    @property
    def errors(self) -> int:
        return max(0, self.questions - self.questions_correct)


@dataclass(frozen=True)
class ActivityLog:
    """Weekly activity totals plus the ordered task list. Times are in seconds."""

    xp_awarded: float = 0.0
    time: float = 0.0
    questions: int = 0
    questions_correct: int = 0
    num_tasks: int = 0
    time_engaged: float = 0.0
    time_productive: float = 0.0
    time_elapsed: float = 0.0
    tasks: Tuple[Task, ...] = ()


@dataclass(frozen=True)
class Schedule:
    daily_goal: float = 0.0


@dataclass(frozen=True)
class CourseInfo:
    name: str = ""
    start_date: Optional[datetime] = None
    completion_date: Optional[datetime] = None


@dataclass(frozen=True)
class StudentDimensions:
    """Organizational placement used by group analytics."""

    campus_display_name: Optional[str] = None
    grade: Optional[int] = None
    guide: Optional[str] = None


@dataclass(frozen=True)
class StudentProfile:
    """Everything the per-student pipeline needs for one student."""

    student_id: str
    course: CourseInfo = field(default_factory=CourseInfo)
    schedule: Schedule = field(default_factory=Schedule)
    activity: ActivityLog = field(default_factory=ActivityLog)
    dimensions: Optional[StudentDimensions] = None


@dataclass
class Metrics:
    velocity_score: int
    accuracy_rate: Optional[int]
    focus_integrity: int
    nemesis_topic: str
    archetype: str
    risk_status: str
    lmp: float
    ksi: Optional[int]
    weekly_xp: float = 0.0
    daily_xp: float = 0.0
    time_per_question: Optional[float] = None
    review_accuracy: int = -1
    content_gap: int = 0
    micro_stalls: int = 0
    stall_status: str = "Flowing"
    dropout_risk: int = 0

    @property
    def rsr(self) -> float:
        """Recent success rate in percent."""
        return self.lmp * 100

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class DRIMetrics:
    iroi: Optional[float]
    debt_exposure: Optional[int]
    precision_decay: Optional[float]
    dri_tier: str
    dri_signal: str
    risk_score: int
    weighted_risk_score: Optional[int] = None
    low_productivity: bool = False

    def to_dict(self) -> Dict[str, Any]:
        return asdict(self)


@dataclass
class StudentEvaluation:
    """Pipeline output for one student: derived metrics plus DRI classification."""

    student_id: str
    metrics: Metrics
    dri: DRIMetrics
    dimensions: Optional[StudentDimensions] = None


@dataclass(frozen=True)
class MetricsSnapshot:
    """Dated, immutable capture of a student's metrics. ``rsr`` is a 0-1 ratio."""

    student_id: str
    date: datetime
    rsr: float
    ksi: Optional[float]
    velocity: float
    risk_score: float
    der: Optional[float] = None
    pdi: Optional[float] = None
    tier: str = TIER_GREEN
    daily_xp: float = 0.0


@dataclass(frozen=True)
class InterventionEvent:
    student_id: str
    coach: str
    objective: str
    timestamp: datetime


@dataclass
class InterventionImpact:
    student_id: str
    intervention_date: datetime
    risk_at_intervention: float
    risk_week1: Optional[float]
    risk_week2: Optional[float]
    risk_week4: Optional[float]
    delta_week1: Optional[float]
    delta_week2: Optional[float]
    delta_week4: Optional[float]
    improved: bool
    # Always implied by ``improved``; kept for consumers that read it.
    sustained_improvement: bool


@dataclass
class BeforeAfterSnapshot:
    student_id: str
    intervention_date: datetime
    before_rsr: float
    before_ksi: float
    before_velocity: float
    before_daily_xp: float
    after_rsr: float
    after_ksi: float
    after_velocity: float
    after_daily_xp: float
    rsr_change: float
    ksi_change: float
    velocity_change: float
    xp_change: float
    overall_improvement: bool
    improvement_score: float


@dataclass
class TrackingOutcome:
    outcome: str
    rsr_delta: float
    ksi_delta: Optional[float]
    velocity_delta: float
    risk_score_delta: float
    tier_change: Optional[str]


@dataclass
class InterventionEffectiveness:
    objective: str
    total_interventions: int
    successful_interventions: int
    avg_risk_decrease: float
    avg_time_to_improvement: Optional[float]
    success_rate: float
    most_effective_for: str


@dataclass
class CoachPerformance:
    coach_name: str
    total_interventions: int
    students_helped: int
    avg_risk_decrease: float
    success_rate: float
    follow_up_rate: float
    top_objective: str
    impact_score: int


@dataclass
class CourseCompletionMetrics:
    student_id: str
    start_date: Optional[datetime]
    completion_date: Optional[datetime]
    days_to_complete: Optional[int]
    interventions_received: int
    first_intervention: Optional[datetime]


@dataclass
class CohortComparison:
    cohort: str
    student_count: int
    avg_course_completion_days: int
    course_completion_rate: float
    avg_risk_score_change: Optional[float] = None
    avg_rsr_change: Optional[float] = None


@dataclass
class GroupStats:
    group: str
    count: int
    avg_rsr: float
    avg_velocity: float
    avg_ksi: float
    avg_risk_score: float
    avg_accuracy: float
    avg_efficiency: float
    red_count: int
    yellow_count: int
    green_count: int
    p25_rsr: float
    median_rsr: float
    p75_rsr: float
    has_insufficient_data: bool


@dataclass
class PopulationSnapshot:
    total_students: int
    avg_rsr: int
    avg_velocity: int
    avg_ksi: int
    avg_risk_score: int
    tier_distribution: Dict[str, int]
    avg_der: Optional[int]
    avg_pdi: Optional[float]


@dataclass
class TopicScore:
    topic: str
    avg_rsr: int
    student_count: int
