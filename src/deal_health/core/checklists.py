"""Pipeline stages and per-stage qualification checklists."""

import json
from dataclasses import dataclass
from enum import Enum
from types import MappingProxyType
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union


class Stage(Enum):
    """Pipeline stages an opportunity passes through."""

    LEAD = "LEAD"
    QUALIFICATION = "QUALIFICATION"
    PROPOSAL = "PROPOSAL"
    NEGOTIATION = "NEGOTIATION"
    CLOSED_WON = "CLOSED_WON"
    CLOSED_LOST = "CLOSED_LOST"

    @property
    def is_closed(self) -> bool:
        return self in (Stage.CLOSED_WON, Stage.CLOSED_LOST)

    @classmethod
    def coerce(cls, value: Union["Stage", str, None]) -> Optional["Stage"]:
        """Return the matching stage, or None for unknown values."""
        if isinstance(value, cls):
            return value
        if isinstance(value, str):
            try:
                return cls(value.strip().upper())
            except ValueError:
                return None
        return None


STAGE_ORDER: List[Stage] = list(Stage)

STAGE_LABELS: Dict[Stage, str] = {
    Stage.LEAD: "Lead",
    Stage.QUALIFICATION: "Qualification",
    Stage.PROPOSAL: "Proposal",
    Stage.NEGOTIATION: "Negotiation",
    Stage.CLOSED_WON: "Closed Won",
    Stage.CLOSED_LOST: "Closed Lost",
}


@dataclass(frozen=True)
class ChecklistItem:
    """A qualification milestone worth a fixed number of points."""

    id: str
    label: str
    weight: int


STAGE_CHECKLISTS: Dict[Stage, List[ChecklistItem]] = {
    Stage.LEAD: [
        ChecklistItem("LEAD_BG_CHECK", "Company Background Check", 5),
        ChecklistItem("LEAD_CONTACT", "Identify Key Contact", 5),
    ],
    Stage.QUALIFICATION: [
        ChecklistItem("BANT_BUDGET", "Budget Confirmed", 10),
        ChecklistItem("BANT_AUTHORITY", "Authority Verified", 10),
        ChecklistItem("BANT_NEED", "Need Identified", 10),
        ChecklistItem("BANT_TIMING", "Timing Agreed", 10),
    ],
    Stage.PROPOSAL: [
        ChecklistItem("PROP_SENT", "Proposal/Quote Sent", 10),
        ChecklistItem("PROP_DEMO", "Demo / POC Completed", 10),
        ChecklistItem("PROP_SCOPE", "Scope Approved", 10),
    ],
    Stage.NEGOTIATION: [
        ChecklistItem("NEG_LEGAL", "Legal/Compliance Review", 10),
        ChecklistItem("NEG_PRICE", "Price/Payment Terms Agreed", 10),
        ChecklistItem("NEG_CONTRACT", "Contract Drafted", 10),
    ],
    Stage.CLOSED_WON: [
        ChecklistItem("WON_SIGNED", "Contract Signed", 10),
        ChecklistItem("WON_PAYMENT", "First Payment Received", 10),
    ],
    Stage.CLOSED_LOST: [
        ChecklistItem("LOST_POST_MORTEM", "Post-Mortem Completed", 0),
    ],
}

BASE_PROBABILITIES: Dict[Stage, int] = {
    Stage.LEAD: 10,
    Stage.QUALIFICATION: 10,
    Stage.PROPOSAL: 40,
    Stage.NEGOTIATION: 70,
    Stage.CLOSED_WON: 100,
    Stage.CLOSED_LOST: 0,
}


def parse_checklist(raw: Any) -> List[str]:
    """Normalize a stored checklist into a list of item ids.

    Accepts a list of ids or its JSON-encoded form. Anything else, including
    malformed JSON or JSON that is not a list, yields an empty list.
    """
    if not raw:
        return []
    if isinstance(raw, str):
        try:
            raw = json.loads(raw)
        except ValueError:
            return []
    if not isinstance(raw, (list, tuple, set, frozenset)):
        return []
    return [item for item in raw if isinstance(item, str)]


class ChecklistModel:
    """Read-only view over the checklist and base probability tables."""

    def __init__(
        self,
        checklists: Optional[Mapping[Stage, Sequence[ChecklistItem]]] = None,
        base_probabilities: Optional[Mapping[Stage, int]] = None,
    ):
        checklists = STAGE_CHECKLISTS if checklists is None else checklists
        base_probabilities = BASE_PROBABILITIES if base_probabilities is None else base_probabilities

        self._checklists: Mapping[Stage, Tuple[ChecklistItem, ...]] = MappingProxyType(
            {stage: tuple(items) for stage, items in checklists.items()}
        )
        self._base: Mapping[Stage, int] = MappingProxyType(dict(base_probabilities))

        weights: Dict[str, int] = {}
        for stage, items in self._checklists.items():
            for item in items:
                if item.id in weights:
                    raise ValueError(f"Duplicate checklist item id: {item.id}")
                weights[item.id] = item.weight
        self._weights: Mapping[str, int] = MappingProxyType(weights)

    def items_for_stage(self, stage: Union[Stage, str, None]) -> Tuple[ChecklistItem, ...]:
        """Ordered checklist items for a stage (empty if it has none)."""
        resolved = Stage.coerce(stage)
        if resolved is None:
            return ()
        return self._checklists.get(resolved, ())

    def base_probability(self, stage: Union[Stage, str, None]) -> int:
        resolved = Stage.coerce(stage)
        if resolved is None:
            return 0
        return self._base.get(resolved, 0)

    def has_item(self, item_id: str) -> bool:
        return item_id in self._weights

    def weight_of(self, item_id: str) -> int:
        """Weight of an item, looked up across every stage."""
        return self._weights.get(item_id, 0)

    def checked_weight(self, completed_ids: Iterable[str]) -> int:
        """Total weight of completed items, regardless of the stage that owns them."""
        completed = set(completed_ids)
        return sum(weight for item_id, weight in self._weights.items() if item_id in completed)

    def checklist_probability(self, stage: Union[Stage, str, None], completed_ids: Iterable[str]) -> int:
        """Probability stored on an opportunity after its checklist changes."""
        resolved = Stage.coerce(stage)
        if resolved == Stage.CLOSED_WON:
            return 100
        if resolved == Stage.CLOSED_LOST:
            return 0
        return min(100, self.base_probability(resolved) + self.checked_weight(completed_ids))

    def stage_progress(self, stage: Union[Stage, str, None], completed_ids: Iterable[str]) -> Tuple[int, int]:
        """(done, total) for the items owned by one stage."""
        items = self.items_for_stage(stage)
        completed = set(completed_ids)
        done = sum(1 for item in items if item.id in completed)
        return done, len(items)


DEFAULT_CHECKLIST_MODEL = ChecklistModel()
