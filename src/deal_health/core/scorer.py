"""Deal health scoring - turns an opportunity snapshot into a score, risk signals and a probability."""

import logging
import math
from dataclasses import dataclass, field
from datetime import date, datetime
from decimal import Decimal
from enum import Enum
from typing import Any, Callable, Dict, List, Optional, Union

from .checklists import DEFAULT_CHECKLIST_MODEL, ChecklistModel, Stage, parse_checklist

logger = logging.getLogger(__name__)

DateLike = Union[datetime, date, str, None]

# Sub-score weights for the composite health score
WEIGHT_CHECKLIST = 0.35
WEIGHT_COMPLETENESS = 0.20
WEIGHT_INTERACTION = 0.20
WEIGHT_NEXT_STEP = 0.15
WEIGHT_STAGE_AGE = 0.10

STALE_INTERACTION_DAYS = 14
STALLED_STAGE_DAYS = 30
LOW_CHECKLIST_SCORE = 40

HEALTHY_THRESHOLD = 70
WATCH_THRESHOLD = 40


class Severity(Enum):
    """How urgent a risk signal is."""

    HIGH = "high"
    MEDIUM = "medium"
    LOW = "low"


class Tone(Enum):
    """Display tone of a health level."""

    POSITIVE = "positive"
    WARNING = "warning"
    NEGATIVE = "negative"


@dataclass(frozen=True)
class HealthLevel:
    label: str
    tone: Tone


@dataclass(frozen=True)
class OpenTask:
    """An open follow-up task on the opportunity."""

    due_date: DateLike = None


@dataclass
class DealHealthInput:
    """Snapshot of the opportunity fields the scorer looks at."""

    stage: Union[Stage, str]
    checklist: Any = None  # list of ids or its JSON string
    owner_id: Optional[str] = None
    expected_close_date: DateLike = None
    estimated_value: Optional[Union[int, float, Decimal]] = None
    service_area_id: Optional[str] = None
    stage_updated_at: DateLike = None
    last_interaction_at: DateLike = None
    open_tasks: List[OpenTask] = field(default_factory=list)
    current_probability: Optional[Union[int, float]] = None


@dataclass(frozen=True)
class DealHealthSignal:
    """A qualitative risk flag surfaced next to the score."""

    id: str
    label: str
    severity: Severity

    def to_dict(self) -> Dict[str, str]:
        return {"id": self.id, "label": self.label, "severity": self.severity.value}


@dataclass(frozen=True)
class DealHealthBreakdown:
    checklist_score: int
    data_completeness_score: int
    interaction_score: int
    next_step_score: int
    stage_age_score: int

    def to_dict(self) -> Dict[str, int]:
        return {
            "checklist_score": self.checklist_score,
            "data_completeness_score": self.data_completeness_score,
            "interaction_score": self.interaction_score,
            "next_step_score": self.next_step_score,
            "stage_age_score": self.stage_age_score,
        }


@dataclass(frozen=True)
class DealHealth:
    """Result of scoring one opportunity."""

    score: int
    recommended_probability: int
    probability_delta: int
    last_interaction_days: Optional[int]
    stage_age_days: Optional[int]
    open_task_count: int
    signals: List[DealHealthSignal]
    breakdown: DealHealthBreakdown

    @property
    def level(self) -> HealthLevel:
        return classify(self.score)

    @property
    def has_risks(self) -> bool:
        return bool(self.signals)

    def to_dict(self, level: Optional[HealthLevel] = None) -> Dict[str, Any]:
        """Plain-data form; ``level`` defaults to the 70/40 classification."""
        level = level or self.level
        return {
            "score": self.score,
            "level": {"label": level.label, "tone": level.tone.value},
            "recommended_probability": self.recommended_probability,
            "probability_delta": self.probability_delta,
            "last_interaction_days": self.last_interaction_days,
            "stage_age_days": self.stage_age_days,
            "open_task_count": self.open_task_count,
            "signals": [s.to_dict() for s in self.signals],
            "breakdown": self.breakdown.to_dict(),
        }


@dataclass(frozen=True)
class RiskConditions:
    """Risk predicates evaluated once per call and shared by penalties and signals."""

    no_owner: bool
    no_close_date: bool
    close_date_past: bool
    stale_interaction: bool
    no_open_tasks: bool
    all_tasks_overdue: bool
    stage_stalled: bool
    low_checklist: bool


# (condition, penalty) applied additively to the checklist score
PROBABILITY_PENALTIES = (
    ("no_owner", 10),
    ("no_close_date", 5),
    ("close_date_past", 15),
    ("stale_interaction", 10),
    ("no_open_tasks", 10),
    ("all_tasks_overdue", 10),
    ("stage_stalled", 10),
)


def clamp(value: float, low: float = 0, high: float = 100) -> float:
    return min(high, max(low, value))


def round_half_up(value: float) -> int:
    return int(math.floor(value + 0.5))


def to_datetime(value: DateLike) -> Optional[datetime]:
    """Coerce a date, datetime or ISO string; None if missing or unparseable."""
    if not value:
        return None
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, str):
        text = value.strip()
        if text.endswith("Z"):
            text = text[:-1] + "+00:00"
        try:
            return datetime.fromisoformat(text)
        except ValueError:
            return None
    return None


def local_day(value: datetime, now: datetime) -> date:
    """Calendar day of ``value`` in the same timezone frame as ``now``."""
    if value.tzinfo is None:
        return value.date()
    if now.tzinfo is not None:
        return value.astimezone(now.tzinfo).date()
    return value.astimezone().date()


def days_since(value: Optional[datetime], now: datetime) -> Optional[int]:
    """Whole calendar days from ``value`` to today (negative for future dates)."""
    if value is None:
        return None
    return (now.date() - local_day(value, now)).days


def _is_number(value: Any) -> bool:
    """True for finite ints, floats and Decimals (NaN, inf and bools excluded)."""
    if isinstance(value, bool):
        return False
    if isinstance(value, int):
        return True
    if isinstance(value, Decimal):
        return value.is_finite()
    return isinstance(value, float) and math.isfinite(value)


def interaction_score(days: Optional[int]) -> int:
    if days is None:
        return 0
    if days <= 7:
        return 100
    if days <= 14:
        return 70
    if days <= 30:
        return 40
    return 10


def stage_age_score(days: Optional[int]) -> int:
    if days is None:
        return 50
    if days <= 14:
        return 100
    if days <= 30:
        return 70
    if days <= 60:
        return 40
    return 10


def next_step_score(open_task_count: int, due_days: List[date], today: date) -> int:
    if open_task_count == 0:
        return 0
    if not due_days:
        return 60
    if any(day >= today for day in due_days):
        return 100
    return 30


def classify(
    score: float,
    healthy_threshold: int = HEALTHY_THRESHOLD,
    watch_threshold: int = WATCH_THRESHOLD,
) -> HealthLevel:
    """Map a health score to a display level."""
    if score >= healthy_threshold:
        return HealthLevel("Healthy", Tone.POSITIVE)
    if score >= watch_threshold:
        return HealthLevel("Watch", Tone.WARNING)
    return HealthLevel("At Risk", Tone.NEGATIVE)


class DealHealthScorer:
    """Scores opportunities against a checklist model.

    ``clock`` returns the current time; pass ``now`` to ``compute_health`` to
    pin it for a single call.
    """

    def __init__(
        self,
        checklist_model: Optional[ChecklistModel] = None,
        clock: Optional[Callable[[], datetime]] = None,
    ):
        self.checklist_model = checklist_model or DEFAULT_CHECKLIST_MODEL
        self.clock = clock or datetime.now

    def compute_health(self, deal: DealHealthInput, now: Optional[datetime] = None) -> DealHealth:
        """Score a single opportunity snapshot."""
        now = now or self.clock()
        today = now.date()
        stage = Stage.coerce(deal.stage)
        model = self.checklist_model

        completed = parse_checklist(deal.checklist)
        checklist = clamp(model.base_probability(stage) + model.checked_weight(completed))

        completeness_items = [
            bool(deal.owner_id),
            bool(deal.expected_close_date),
            _is_number(deal.estimated_value) and deal.estimated_value > 0,
            bool(deal.service_area_id),
        ]
        completeness = sum(completeness_items) / len(completeness_items) * 100

        last_interaction_days = days_since(to_datetime(deal.last_interaction_at), now)
        interaction = interaction_score(last_interaction_days)

        open_tasks = deal.open_tasks or []
        open_task_count = len(open_tasks)
        due_days = []
        for task in open_tasks:
            due = to_datetime(task.due_date)
            if due is not None:
                due_days.append(local_day(due, now))
        next_step = next_step_score(open_task_count, due_days, today)

        stage_age_days = days_since(to_datetime(deal.stage_updated_at), now)
        stage_age = stage_age_score(stage_age_days)

        score = clamp(
            checklist * WEIGHT_CHECKLIST
            + completeness * WEIGHT_COMPLETENESS
            + interaction * WEIGHT_INTERACTION
            + next_step * WEIGHT_NEXT_STEP
            + stage_age * WEIGHT_STAGE_AGE
        )

        close_date = to_datetime(deal.expected_close_date)
        conditions = RiskConditions(
            no_owner=not deal.owner_id,
            no_close_date=not deal.expected_close_date,
            close_date_past=close_date is not None and local_day(close_date, now) < today,
            stale_interaction=last_interaction_days is None or last_interaction_days > STALE_INTERACTION_DAYS,
            no_open_tasks=open_task_count == 0,
            all_tasks_overdue=(
                open_task_count > 0
                and len(due_days) == open_task_count
                and all(day < today for day in due_days)
            ),
            stage_stalled=stage_age_days is not None and stage_age_days > STALLED_STAGE_DAYS,
            low_checklist=checklist < LOW_CHECKLIST_SCORE,
        )

        signals = self._build_signals(conditions, stage)

        recommended = checklist
        for name, penalty in PROBABILITY_PENALTIES:
            if getattr(conditions, name):
                recommended -= penalty
        recommended = clamp(recommended)

        if _is_number(deal.current_probability):
            current = float(deal.current_probability)
        else:
            current = checklist

        health = DealHealth(
            score=round_half_up(score),
            recommended_probability=round_half_up(recommended),
            probability_delta=round_half_up(recommended - current),
            last_interaction_days=last_interaction_days,
            stage_age_days=stage_age_days,
            open_task_count=open_task_count,
            signals=signals,
            breakdown=DealHealthBreakdown(
                checklist_score=round_half_up(checklist),
                data_completeness_score=round_half_up(completeness),
                interaction_score=interaction,
                next_step_score=next_step,
                stage_age_score=stage_age,
            ),
        )
        logger.debug(
            "Deal health %s (stage=%s, recommended=%s, delta=%s, signals=%s)",
            health.score,
            stage.value if stage else deal.stage,
            health.recommended_probability,
            health.probability_delta,
            [s.id for s in signals],
        )
        return health

    @staticmethod
    def _build_signals(conditions: RiskConditions, stage: Optional[Stage]) -> List[DealHealthSignal]:
        signals: List[DealHealthSignal] = []

        if conditions.no_owner:
            signals.append(DealHealthSignal("no_owner", "No owner assigned", Severity.HIGH))
        if conditions.no_close_date:
            signals.append(DealHealthSignal("no_close_date", "Missing close date", Severity.MEDIUM))
        # A closed deal with a stale target date is not flagged
        if conditions.close_date_past and not (stage and stage.is_closed):
            signals.append(DealHealthSignal("close_date_overdue", "Close date overdue", Severity.HIGH))
        if conditions.stale_interaction:
            signals.append(DealHealthSignal("no_recent_activity", "No recent activity", Severity.MEDIUM))
        if conditions.no_open_tasks:
            signals.append(DealHealthSignal("no_next_step", "No next step scheduled", Severity.HIGH))
        elif conditions.all_tasks_overdue:
            signals.append(DealHealthSignal("next_step_overdue", "Next step overdue", Severity.MEDIUM))
        if conditions.stage_stalled:
            signals.append(DealHealthSignal("stage_stalled", "Stage has stalled", Severity.MEDIUM))
        if conditions.low_checklist:
            signals.append(DealHealthSignal("low_checklist", "Low qualification completeness", Severity.LOW))

        return signals

    def explain_health(
        self,
        health: DealHealth,
        current_probability: Optional[float] = None,
        level: Optional[HealthLevel] = None,
    ) -> str:
        """Get a plain-text summary card for a scoring result.

        Pass ``level`` to label the score with configured thresholds.
        """
        level = level or health.level
        delta = health.probability_delta
        if current_probability is None:
            current_probability = health.recommended_probability - delta

        lines = [
            f"Health Score: {health.score} ({level.label.upper()})",
            f"Recommended Probability: {health.recommended_probability}%",
            f"Current Probability: {current_probability:g}% ({delta:+d}%)",
            "",
            "Signals:",
        ]

        if not health.signals:
            lines.append("  No major risks")
        else:
            for signal in health.signals:
                lines.append(f"  [{signal.severity.value}] {signal.label}")

        last_activity = (
            "No data" if health.last_interaction_days is None
            else f"{health.last_interaction_days} days ago"
        )
        stage_age = "No data" if health.stage_age_days is None else f"{health.stage_age_days} days"
        lines.extend([
            "",
            f"Last activity: {last_activity}",
            f"Stage age: {stage_age}",
            f"Open next steps: {health.open_task_count}",
        ])

        return "\n".join(lines)


def compute_health(deal: DealHealthInput, now: Optional[datetime] = None) -> DealHealth:
    """Quick helper to score a snapshot with the default checklist model."""
    scorer = DealHealthScorer()
    return scorer.compute_health(deal, now=now)
