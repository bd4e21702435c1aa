"""Core deal health engine."""

from .checklists import (
    Stage,
    ChecklistItem,
    ChecklistModel,
    STAGE_ORDER,
    STAGE_LABELS,
    STAGE_CHECKLISTS,
    BASE_PROBABILITIES,
    DEFAULT_CHECKLIST_MODEL,
    parse_checklist,
)
from .scorer import (
    DealHealthScorer,
    DealHealthInput,
    DealHealth,
    DealHealthSignal,
    DealHealthBreakdown,
    OpenTask,
    Severity,
    Tone,
    HealthLevel,
    classify,
    compute_health,
)
from .policy import (
    JUSTIFICATION_THRESHOLD,
    ProbabilityReasonRequired,
    requires_justification,
    validate_probability_override,
)
from .config import HealthConfig, HealthConfigManager

__all__ = [
    "Stage",
    "ChecklistItem",
    "ChecklistModel",
    "STAGE_ORDER",
    "STAGE_LABELS",
    "STAGE_CHECKLISTS",
    "BASE_PROBABILITIES",
    "DEFAULT_CHECKLIST_MODEL",
    "parse_checklist",
    "DealHealthScorer",
    "DealHealthInput",
    "DealHealth",
    "DealHealthSignal",
    "DealHealthBreakdown",
    "OpenTask",
    "Severity",
    "Tone",
    "HealthLevel",
    "classify",
    "compute_health",
    "JUSTIFICATION_THRESHOLD",
    "ProbabilityReasonRequired",
    "requires_justification",
    "validate_probability_override",
    "HealthConfig",
    "HealthConfigManager",
]
