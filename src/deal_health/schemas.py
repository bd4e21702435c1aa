"""Pydantic models for opportunity snapshot payloads."""

from datetime import date, datetime
from decimal import Decimal
from typing import Any, List, Optional, Union

from pydantic import BaseModel, ConfigDict, Field, field_validator

from .core.scorer import DealHealthInput, OpenTask

# The scorer parses strings itself and treats unparseable ones as missing
DateField = Optional[Union[datetime, date, str]]


class OpenTaskPayload(BaseModel):
    model_config = ConfigDict(populate_by_name=True)

    due_date: DateField = Field(default=None, alias="dueDate")


class OpportunitySnapshot(BaseModel):
    """The opportunity fields needed to score deal health, as sent by the data layer."""

    model_config = ConfigDict(populate_by_name=True)

    stage: str
    checklist: Any = None
    owner_id: Optional[str] = Field(default=None, alias="ownerId")
    expected_close_date: DateField = Field(default=None, alias="expectedCloseDate")
    estimated_value: Optional[Decimal] = Field(default=None, alias="estimatedValue")
    service_area_id: Optional[str] = Field(default=None, alias="serviceAreaId")
    stage_updated_at: DateField = Field(default=None, alias="stageUpdatedAt")
    last_interaction_at: DateField = Field(default=None, alias="lastInteractionAt")
    open_tasks: List[OpenTaskPayload] = Field(default_factory=list, alias="openTasks")
    current_probability: Optional[float] = Field(default=None, alias="currentProbability")

    @field_validator("stage")
    @classmethod
    def normalize_stage(cls, value: str) -> str:
        value = value.strip().upper()
        if not value:
            raise ValueError("stage must not be empty")
        return value

    def to_input(self) -> DealHealthInput:
        return DealHealthInput(
            stage=self.stage,
            checklist=self.checklist,
            owner_id=self.owner_id,
            expected_close_date=self.expected_close_date,
            estimated_value=self.estimated_value,
            service_area_id=self.service_area_id,
            stage_updated_at=self.stage_updated_at,
            last_interaction_at=self.last_interaction_at,
            open_tasks=[OpenTask(due_date=task.due_date) for task in self.open_tasks],
            current_probability=self.current_probability,
        )
