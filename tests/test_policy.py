"""Tests for the probability override policy."""

import pytest
from datetime import datetime, timedelta

from deal_health.core.checklists import Stage
from deal_health.core.policy import (
    ProbabilityReasonRequired,
    requires_justification,
    validate_probability_override,
)
from deal_health.core.scorer import DealHealthInput, DealHealthScorer, OpenTask

NOW = datetime(2024, 6, 15, 12, 0)


@pytest.fixture
def proposal_health():
    """Health of a clean proposal deal (recommended probability 70)."""
    deal = DealHealthInput(
        stage=Stage.PROPOSAL,
        checklist=["PROP_SENT", "PROP_DEMO", "PROP_SCOPE"],
        owner_id="user-1",
        expected_close_date=NOW + timedelta(days=10),
        estimated_value=1000,
        service_area_id="area-1",
        last_interaction_at=NOW - timedelta(days=1),
        open_tasks=[OpenTask(due_date=NOW + timedelta(days=3))],
        stage_updated_at=NOW - timedelta(days=2),
    )
    return DealHealthScorer().compute_health(deal, now=NOW)


class TestRequiresJustification:
    """Tests for the 20 point threshold."""

    @pytest.mark.parametrize("delta,expected", [
        (20, True),
        (-20, True),
        (35, True),
        (-100, True),
        (19, False),
        (-19, False),
        (0, False),
    ])
    def test_threshold(self, delta, expected):
        assert requires_justification(delta) is expected

    def test_custom_threshold(self):
        assert requires_justification(10, threshold=10)
        assert not requires_justification(9, threshold=10)


class TestValidateProbabilityOverride:
    """Tests for validate_probability_override."""

    def test_close_probability_needs_no_reason(self, proposal_health):
        assert proposal_health.recommended_probability == 70
        assert validate_probability_override(proposal_health, 51) is None
        assert validate_probability_override(proposal_health, 89, "") is None

    def test_gap_of_twenty_requires_reason(self, proposal_health):
        with pytest.raises(ProbabilityReasonRequired) as exc_info:
            validate_probability_override(proposal_health, 50)
        assert exc_info.value.code == "PROBABILITY_REASON_REQUIRED"
        assert exc_info.value.delta == 20
        assert exc_info.value.recommended_probability == 70

    def test_gap_in_either_direction(self, proposal_health):
        with pytest.raises(ProbabilityReasonRequired) as exc_info:
            validate_probability_override(proposal_health, 90)
        assert exc_info.value.delta == -20

    def test_blank_reason_rejected(self, proposal_health):
        with pytest.raises(ProbabilityReasonRequired):
            validate_probability_override(proposal_health, 10, "   ")

    def test_reason_accepted_and_stripped(self, proposal_health):
        reason = validate_probability_override(proposal_health, 10, "  Budget frozen until Q3 ")
        assert reason == "Budget frozen until Q3"

    def test_is_a_value_error(self, proposal_health):
        with pytest.raises(ValueError):
            validate_probability_override(proposal_health, 100)

    def test_custom_threshold(self, proposal_health):
        assert validate_probability_override(proposal_health, 50, threshold=25) is None
        with pytest.raises(ProbabilityReasonRequired):
            validate_probability_override(proposal_health, 60, threshold=10)
