"""Configurable thresholds and checklist weights for deal health scoring."""

import json
import logging
import os
from dataclasses import dataclass, field
from datetime import datetime
from pathlib import Path
from typing import Any, Dict, List, Optional

from .checklists import (
    BASE_PROBABILITIES,
    STAGE_CHECKLISTS,
    ChecklistItem,
    ChecklistModel,
    Stage,
)
from .policy import JUSTIFICATION_THRESHOLD
from .scorer import HEALTHY_THRESHOLD, WATCH_THRESHOLD, HealthLevel, classify

logger = logging.getLogger(__name__)

CONFIG_ENV_VAR = "DEAL_HEALTH_CONFIG"


def default_config_path() -> Path:
    env_path = os.getenv(CONFIG_ENV_VAR)
    if env_path:
        return Path(env_path)
    return Path.home() / ".deal-health" / "config.json"


@dataclass
class HealthConfig:
    """Level thresholds and checklist overrides."""

    # Level thresholds
    healthy_threshold: int = HEALTHY_THRESHOLD
    watch_threshold: int = WATCH_THRESHOLD

    # Gap between submitted and recommended probability that needs a reason
    justification_threshold: int = JUSTIFICATION_THRESHOLD

    # Stage name -> list of {"id", "label", "weight"}; replaces that stage's defaults
    checklists: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)

    # Stage name -> base probability
    base_probabilities: Dict[str, int] = field(default_factory=dict)

    # Item id -> weight, applied on top of the checklists
    weight_overrides: Dict[str, int] = field(default_factory=dict)

    updated_at: datetime = field(default_factory=datetime.now)


def _validate_thresholds(healthy: int, watch: int):
    if not 0 <= watch <= healthy <= 100:
        raise ValueError(
            f"Thresholds must satisfy 0 <= watch <= healthy <= 100 (got healthy={healthy}, watch={watch})"
        )


class HealthConfigManager:
    """Manage and persist deal health configuration."""

    def __init__(self, config_path: Optional[Path] = None):
        """Initialize config manager."""
        self.config_path = Path(config_path) if config_path else default_config_path()
        self.config = self._load_config()

    def _load_config(self) -> HealthConfig:
        """Load configuration from file."""
        if self.config_path.exists():
            try:
                with open(self.config_path, 'r') as f:
                    data = json.load(f)
                config = HealthConfig(
                    healthy_threshold=data.get("healthy_threshold", HEALTHY_THRESHOLD),
                    watch_threshold=data.get("watch_threshold", WATCH_THRESHOLD),
                    justification_threshold=data.get("justification_threshold", JUSTIFICATION_THRESHOLD),
                    checklists=data.get("checklists", {}),
                    base_probabilities=data.get("base_probabilities", {}),
                    weight_overrides=data.get("weight_overrides", {}),
                )
                _validate_thresholds(config.healthy_threshold, config.watch_threshold)
                for name in ("checklists", "base_probabilities", "weight_overrides"):
                    if not isinstance(getattr(config, name), dict):
                        raise TypeError(f"'{name}' must be an object")
                return config
            except (OSError, ValueError, TypeError, AttributeError) as e:
                logger.error(f"Error loading deal health config: {e}")

        return HealthConfig()

    def save_config(self):
        """Save configuration to file."""
        self.config_path.parent.mkdir(parents=True, exist_ok=True)
        data = {
            "healthy_threshold": self.config.healthy_threshold,
            "watch_threshold": self.config.watch_threshold,
            "justification_threshold": self.config.justification_threshold,
            "checklists": self.config.checklists,
            "base_probabilities": self.config.base_probabilities,
            "weight_overrides": self.config.weight_overrides,
            "updated_at": self.config.updated_at.isoformat(),
        }
        with open(self.config_path, 'w') as f:
            json.dump(data, f, indent=2)

    def update_thresholds(self, healthy: int, watch: int):
        """Update level thresholds."""
        _validate_thresholds(healthy, watch)
        self.config.healthy_threshold = healthy
        self.config.watch_threshold = watch
        self.config.updated_at = datetime.now()
        self.save_config()

    def set_justification_threshold(self, threshold: int):
        if threshold < 0:
            raise ValueError("Justification threshold must not be negative")
        self.config.justification_threshold = threshold
        self.config.updated_at = datetime.now()
        self.save_config()

    def set_item_weight(self, item_id: str, weight: int):
        """Override the weight of one checklist item."""
        self.config.weight_overrides[item_id] = weight
        self.config.updated_at = datetime.now()
        self.save_config()

    def get_level(self, score: float) -> HealthLevel:
        """Get health level based on score and current thresholds."""
        return classify(score, self.config.healthy_threshold, self.config.watch_threshold)

    def build_checklist_model(self) -> ChecklistModel:
        """Build the checklist model from the defaults plus any overrides.

        Raises ValueError for unknown stages or duplicate item ids.
        """
        checklists: Dict[Stage, List[ChecklistItem]] = {
            stage: list(items) for stage, items in STAGE_CHECKLISTS.items()
        }
        for stage_name, items in self.config.checklists.items():
            stage = Stage.coerce(stage_name)
            if stage is None:
                raise ValueError(f"Unknown stage in checklist config: {stage_name}")
            checklists[stage] = [
                ChecklistItem(item["id"], item.get("label", item["id"]), int(item.get("weight", 0)))
                for item in items
            ]

        overrides = self.config.weight_overrides
        if overrides:
            checklists = {
                stage: [
                    ChecklistItem(item.id, item.label, int(overrides[item.id])) if item.id in overrides else item
                    for item in items
                ]
                for stage, items in checklists.items()
            }

        base = dict(BASE_PROBABILITIES)
        for stage_name, probability in self.config.base_probabilities.items():
            stage = Stage.coerce(stage_name)
            if stage is None:
                raise ValueError(f"Unknown stage in base probability config: {stage_name}")
            base[stage] = int(probability)

        return ChecklistModel(checklists, base)
