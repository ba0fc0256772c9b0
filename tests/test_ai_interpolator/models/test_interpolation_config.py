"""
Tests for InterpolationConfig and ProcessingJob.
"""

import pytest

from ai_interpolator.core.exceptions import ConfigurationError
from ai_interpolator.models import (
    InterpolationConfig,
    InterpolationMode,
    ProcessingJob,
    WorkerType,
    as_bool,
)


class TestInterpolationConfig:
    """Tests for the config bag."""

    def test_defaults(self):
        config = InterpolationConfig(field_name="summary", rule="r", base_field="body")
        assert config.enabled is True
        assert config.interpolation_mode is InterpolationMode.BASE
        assert config.worker is WorkerType.DIRECT
        assert config.weight == 100

    def test_unknown_worker_runs_directly(self):
        config = InterpolationConfig(field_name="summary", worker_type="cron")
        assert config.worker is WorkerType.DIRECT

    def test_unknown_mode_is_base(self):
        config = InterpolationConfig(field_name="summary", mode="magic")
        assert config.interpolation_mode is InterpolationMode.BASE

    def test_get_reads_core_and_extra(self):
        config = InterpolationConfig(field_name="summary", rule="r", extra={"clean_up": "lowercase"})
        assert config.get("rule") == "r"
        assert config.get("clean_up") == "lowercase"
        assert config.get("missing", "fallback") == "fallback"
        assert config.has("clean_up") and config.has("weight")
        assert not config.has("missing")

    def test_validate_missing_keys(self):
        config = InterpolationConfig(field_name="summary")
        with pytest.raises(ConfigurationError) as exc_info:
            config.validate()
        assert exc_info.value.details["missing"] == ["rule", "base_field"]

    def test_from_dict_host_keys(self):
        """Test prefixed keys, casting and extras."""
        config = InterpolationConfig.from_dict(
            {
                "interpolator_enabled": "1",
                "interpolator_rule": "ai_interpolator_string",
                "interpolator_base_field": "body",
                "interpolator_weight": "5",
                "interpolator_edit_mode": 0,
                "interpolator_worker_type": "queue",
                "interpolator_prompt": None,
                "model": "gpt-4o",
                "prompt_override": "[node:title]",
            },
            field_name="summary",
        )
        assert config.field_name == "summary"
        assert config.enabled is True
        assert config.weight == 5
        assert config.edit_mode is False
        assert config.worker is WorkerType.QUEUE
        assert config.prompt == ""
        assert config.extra == {"model": "gpt-4o", "prompt_override": "[node:title]"}

    def test_from_dict_invalid_weight(self):
        with pytest.raises(ConfigurationError):
            InterpolationConfig.from_dict({"weight": "heavy"}, field_name="summary")

    def test_to_dict_round_trip(self):
        config = InterpolationConfig(
            field_name="summary",
            rule="r",
            base_field="body",
            weight=3,
            extra={"temperature": 0.3},
        )
        data = config.to_dict()
        assert data["temperature"] == 0.3
        assert InterpolationConfig.from_dict(data) == config

    def test_copy_is_independent(self):
        config = InterpolationConfig(field_name="summary", extra={"list": [1]})
        clone = config.copy()
        clone.extra["list"].append(2)
        assert config.extra["list"] == [1]

    @pytest.mark.parametrize("value,expected", [
        ("1", True),
        ("true", True),
        ("On", True),
        ("0", False),
        ("", False),
        (1, True),
        (None, False),
    ])
    def test_as_bool(self, value, expected):
        assert as_bool(value) is expected


class TestProcessingJob:
    """Tests for the queue job schema."""

    def test_payload_round_trip(self):
        job = ProcessingJob(
            entity_id=12,
            entity_type="node",
            field_name="summary",
            interpolator_config={"rule": "ai_interpolator_string", "base_field": "body", "weight": 10},
        )
        restored = ProcessingJob.from_payload(job.to_payload())

        assert restored == job
        assert restored.entity_key == "node:12"

    def test_config_rebuilt(self):
        job = ProcessingJob(
            entity_id="abc",
            entity_type="node",
            field_name="summary",
            interpolator_config={"rule": "r", "base_field": "body", "clean_up": "uppercase"},
        )
        config = job.config()
        assert config.field_name == "summary"
        assert config.rule == "r"
        assert config.get("clean_up") == "uppercase"

    def test_payload_keys(self):
        job = ProcessingJob(entity_id=1, entity_type="node", field_name="summary")
        assert '"entity_id":1' in job.to_payload().replace(" ", "")
        assert set(job.model_dump()) == {"entity_id", "entity_type", "field_name", "interpolator_config"}
