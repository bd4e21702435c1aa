"""Tests for deal health configuration."""

import json
import pytest
import tempfile
from pathlib import Path

from deal_health.core.checklists import Stage
from deal_health.core.config import CONFIG_ENV_VAR, HealthConfigManager, default_config_path
from deal_health.core.scorer import Tone


@pytest.fixture
def temp_data_dir():
    """Create temporary data directory."""
    with tempfile.TemporaryDirectory() as tmpdir:
        yield Path(tmpdir)


@pytest.fixture
def config_path(temp_data_dir):
    return temp_data_dir / "config.json"


class TestHealthConfigManager:
    """Tests for HealthConfigManager."""

    def test_defaults_when_missing(self, config_path):
        manager = HealthConfigManager(config_path)
        assert manager.config.healthy_threshold == 70
        assert manager.config.watch_threshold == 40
        assert manager.config.justification_threshold == 20
        assert not config_path.exists()

    def test_save_and_reload(self, config_path):
        manager = HealthConfigManager(config_path)
        manager.update_thresholds(80, 50)
        manager.set_justification_threshold(15)
        manager.set_item_weight("PROP_DEMO", 20)

        reloaded = HealthConfigManager(config_path)
        assert reloaded.config.healthy_threshold == 80
        assert reloaded.config.watch_threshold == 50
        assert reloaded.config.justification_threshold == 15
        assert reloaded.config.weight_overrides == {"PROP_DEMO": 20}

    def test_invalid_file_falls_back_to_defaults(self, config_path, caplog):
        config_path.write_text("{not valid json")
        manager = HealthConfigManager(config_path)
        assert manager.config.healthy_threshold == 70
        assert "Error loading deal health config" in caplog.text

    @pytest.mark.parametrize("section", ["checklists", "base_probabilities", "weight_overrides"])
    def test_non_object_sections_fall_back(self, config_path, caplog, section):
        config_path.write_text(json.dumps({section: [], "healthy_threshold": 80}))
        manager = HealthConfigManager(config_path)
        assert manager.config.healthy_threshold == 70
        assert getattr(manager.config, section) == {}
        assert section in caplog.text
        assert manager.build_checklist_model().weight_of("BANT_BUDGET") == 10

    def test_bad_thresholds_in_file_fall_back(self, config_path):
        config_path.write_text(json.dumps({"healthy_threshold": 30, "watch_threshold": 60}))
        manager = HealthConfigManager(config_path)
        assert manager.config.healthy_threshold == 70
        assert manager.config.watch_threshold == 40

    def test_update_thresholds_validates(self, config_path):
        manager = HealthConfigManager(config_path)
        with pytest.raises(ValueError):
            manager.update_thresholds(40, 70)
        with pytest.raises(ValueError):
            manager.update_thresholds(120, 40)
        with pytest.raises(ValueError):
            manager.set_justification_threshold(-1)

    def test_get_level_uses_thresholds(self, config_path):
        manager = HealthConfigManager(config_path)
        assert manager.get_level(70).tone == Tone.POSITIVE
        manager.update_thresholds(90, 60)
        assert manager.get_level(70).tone == Tone.WARNING
        assert manager.get_level(59).label == "At Risk"

    def test_env_var_path(self, config_path, monkeypatch):
        monkeypatch.setenv(CONFIG_ENV_VAR, str(config_path))
        assert default_config_path() == config_path
        assert HealthConfigManager().config_path == config_path


class TestBuildChecklistModel:
    """Tests for building a checklist model from config."""

    def test_defaults(self, config_path):
        model = HealthConfigManager(config_path).build_checklist_model()
        assert model.weight_of("BANT_BUDGET") == 10
        assert model.base_probability(Stage.NEGOTIATION) == 70

    def test_weight_override(self, config_path):
        manager = HealthConfigManager(config_path)
        manager.set_item_weight("PROP_DEMO", 25)
        model = manager.build_checklist_model()
        assert model.weight_of("PROP_DEMO") == 25
        assert model.weight_of("PROP_SENT") == 10

    def test_stage_checklist_and_base_override(self, config_path):
        config_path.write_text(json.dumps({
            "checklists": {
                "lead": [
                    {"id": "LEAD_WEBINAR", "label": "Attended webinar", "weight": 15},
                ],
            },
            "base_probabilities": {"LEAD": 5},
        }))
        model = HealthConfigManager(config_path).build_checklist_model()
        assert [i.id for i in model.items_for_stage(Stage.LEAD)] == ["LEAD_WEBINAR"]
        assert not model.has_item("LEAD_BG_CHECK")
        assert model.base_probability(Stage.LEAD) == 5
        assert model.checked_weight(["LEAD_WEBINAR", "BANT_NEED"]) == 25

    def test_unknown_stage_rejected(self, config_path):
        config_path.write_text(json.dumps({"base_probabilities": {"ARCHIVED": 5}}))
        with pytest.raises(ValueError, match="ARCHIVED"):
            HealthConfigManager(config_path).build_checklist_model()

    def test_duplicate_id_rejected(self, config_path):
        config_path.write_text(json.dumps({
            "checklists": {"LEAD": [{"id": "BANT_BUDGET", "label": "Dup", "weight": 1}]},
        }))
        with pytest.raises(ValueError, match="BANT_BUDGET"):
            HealthConfigManager(config_path).build_checklist_model()
