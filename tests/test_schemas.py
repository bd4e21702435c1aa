"""Tests for opportunity snapshot payloads."""

import pytest
from datetime import datetime
from pydantic import ValidationError

from deal_health.core.scorer import DealHealthScorer
from deal_health.schemas import OpportunitySnapshot

NOW = datetime(2024, 6, 15, 12, 0)


class TestOpportunitySnapshot:
    """Tests for OpportunitySnapshot."""

    def test_camel_case_payload(self):
        snapshot = OpportunitySnapshot.model_validate({
            "stage": "proposal",
            "checklist": '["PROP_SENT"]',
            "ownerId": "user-1",
            "expectedCloseDate": "2024-07-01",
            "estimatedValue": "1500.00",
            "serviceAreaId": "area-1",
            "stageUpdatedAt": "2024-06-10T08:00:00",
            "lastInteractionAt": "2024-06-14T16:30:00",
            "openTasks": [{"dueDate": "2024-06-20"}, {"dueDate": None}],
            "currentProbability": 45,
        })
        assert snapshot.stage == "PROPOSAL"
        assert snapshot.checklist == '["PROP_SENT"]'
        assert len(snapshot.open_tasks) == 2

        deal = snapshot.to_input()
        assert deal.owner_id == "user-1"
        assert deal.open_tasks[1].due_date is None
        assert deal.current_probability == 45

    def test_snake_case_names_accepted(self):
        snapshot = OpportunitySnapshot(stage="LEAD", owner_id="user-2")
        assert snapshot.owner_id == "user-2"

    def test_stage_required(self):
        with pytest.raises(ValidationError):
            OpportunitySnapshot.model_validate({"ownerId": "user-1"})
        with pytest.raises(ValidationError):
            OpportunitySnapshot.model_validate({"stage": "  "})

    def test_snapshot_scores(self):
        snapshot = OpportunitySnapshot.model_validate({
            "stage": "PROPOSAL",
            "checklist": ["PROP_SENT", "PROP_DEMO", "PROP_SCOPE"],
            "ownerId": "user-1",
            "expectedCloseDate": "2024-06-16",
            "estimatedValue": 50000,
            "serviceAreaId": "area-1",
            "stageUpdatedAt": "2024-06-10",
            "lastInteractionAt": "2024-06-13",
            "openTasks": [{"dueDate": "2024-06-22"}],
        })
        health = DealHealthScorer().compute_health(snapshot.to_input(), now=NOW)
        assert health.score == 90
        assert health.recommended_probability == 70
        assert health.signals == []

    def test_malformed_checklist_still_scores(self):
        snapshot = OpportunitySnapshot.model_validate({"stage": "PROPOSAL", "checklist": "{oops"})
        health = DealHealthScorer().compute_health(snapshot.to_input(), now=NOW)
        assert health.breakdown.checklist_score == 40
