"""
Tests for ConfigResolver.
"""

from unittest.mock import MagicMock

import pytest

from ai_interpolator.core.exceptions import ConfigurationError
from ai_interpolator.models import InterpolationConfig
from ai_interpolator.services import ConfigResolver, TokenRenderer


class TestResolveEnabledConfigs:
    """Tests for config discovery and ordering."""

    def test_sorted_by_weight_with_stable_ties(self, repository, resolver, article, config_factory):
        repository.set_config("node", "article", config_factory("summary", "ai_interpolator_string", weight=10))
        repository.set_config("node", "article", config_factory("tags", "ai_interpolator_taxonomy", weight=5))
        repository.set_config("node", "article", config_factory("rating", "ai_interpolator_integer", weight=10))

        pairs = resolver.resolve_enabled_configs(article)

        assert [definition.name for definition, _ in pairs] == ["tags", "summary", "rating"]

    def test_disabled_configs_skipped(self, repository, resolver, article, config_factory):
        repository.set_config("node", "article", config_factory("summary", "ai_interpolator_string", enabled=False))
        assert resolver.resolve_enabled_configs(article) == []
        assert resolver.is_enabled(article, "summary") is False

    def test_missing_rule_raises(self, repository, resolver, article):
        repository.set_config("node", "article", InterpolationConfig(field_name="summary", base_field="body"))
        with pytest.raises(ConfigurationError):
            resolver.resolve_enabled_configs(article)

    def test_get_config(self, repository, resolver, article, config_factory):
        repository.set_config("node", "article", config_factory("summary", "ai_interpolator_string"))
        assert resolver.get_config(article, "summary").rule == "ai_interpolator_string"
        assert resolver.get_config(article, "rating") is None
        assert resolver.is_enabled(article, "summary") is True


class TestGetConfigValue:
    """Tests for override resolution."""

    def test_static_value(self, resolver, article, config_factory):
        config = config_factory("summary", "r", extra={"model": "gpt-4o"})
        assert resolver.get_config_value("model", config, article) == "gpt-4o"
        assert resolver.get_config_value("missing", config, article, "default") == "default"

    def test_override_wins(self, resolver, article, config_factory):
        config = config_factory("summary", "r", extra={"model": "gpt-4o", "model_override": "[node:title]"})
        assert resolver.get_config_value("model", config, article) == "Hello"

    def test_empty_override_falls_back(self, resolver, article, config_factory):
        config = config_factory("summary", "r", extra={"model": "gpt-4o", "model_override": "[node:missing]"})
        assert resolver.get_config_value("model", config, article) == "gpt-4o"

    def test_failing_override_falls_back(self, repository, article, config_factory):
        renderer = MagicMock(spec=TokenRenderer)
        renderer.render.side_effect = RuntimeError("token service down")
        resolver = ConfigResolver(repository, renderer)
        config = config_factory("summary", "r", extra={"model": "gpt-4o", "model_override": "[node:title]"})

        assert resolver.get_config_value("model", config, article) == "gpt-4o"

    def test_override_ignored_without_renderer(self, repository, article, config_factory):
        resolver = ConfigResolver(repository)
        config = config_factory("summary", "r", extra={"model": "gpt-4o", "model_override": "[node:title]"})
        assert resolver.get_config_value("model", config, article) == "gpt-4o"


class TestGetModelParameters:

    def test_casts_and_skips_invalid(self, resolver, article, config_factory):
        config = config_factory(
            "summary",
            "r",
            extra={"model": "gpt-4o", "temperature": "0.4", "max_tokens": "many", "top_p": ""},
        )
        assert resolver.get_model_parameters(config, article) == {"model": "gpt-4o", "temperature": 0.4}

    def test_no_parameters(self, resolver, article, config_factory):
        assert resolver.get_model_parameters(config_factory("summary", "r"), article) == {}
