"""
Tests for RuleRegistry and the default rule set.
"""

import pytest

from ai_interpolator.core.hooks import RuleVisibility, RuleVisibilityDecider
from ai_interpolator.models import Entity, FieldDefinition
from ai_interpolator.rules import RuleRegistry, StringRule, build_default_registry


DEFAULT_RULES = {
    "ai_interpolator_string",
    "ai_interpolator_string_long",
    "ai_interpolator_text",
    "ai_interpolator_text_long",
    "ai_interpolator_text_with_summary",
    "ai_interpolator_json",
    "ai_interpolator_integer",
    "ai_interpolator_decimal",
    "ai_interpolator_float",
    "ai_interpolator_boolean",
    "ai_interpolator_list_string",
    "ai_interpolator_list_integer",
    "ai_interpolator_list_float",
    "ai_interpolator_email",
    "ai_interpolator_telephone",
    "ai_interpolator_link",
    "ai_interpolator_faq",
    "ai_interpolator_office_hours",
    "ai_interpolator_custom_field",
    "ai_interpolator_taxonomy",
    "ai_interpolator_text_to_image",
    "ai_interpolator_audio_to_string",
}


class HiddenStringRule(StringRule):
    """A string rule that never offers itself."""
    id = "test_hidden_string"

    def rule_is_allowed(self, entity, field_definition):
        return False


class FixedVisibility(RuleVisibilityDecider):

    def __init__(self, rule_id, visibility):
        self.rule_id = rule_id
        self.visibility = visibility

    def decide(self, entity, field_definition, rule_id):
        return self.visibility if rule_id == self.rule_id else RuleVisibility.NEUTRAL


@pytest.fixture
def page():
    return Entity(entity_type="node", bundle="page")


class TestDefaultRegistry:
    """Tests for build_default_registry."""

    def test_all_rules_registered(self, registry):
        assert set(registry.list_rules()) == DEFAULT_RULES
        assert len(registry) == len(DEFAULT_RULES)
        assert "ai_interpolator_taxonomy" in registry
        assert registry.has("ai_interpolator_text_to_image")
        assert registry.list_rules()[0] == "ai_interpolator_string"

    def test_candidates_by_field_type(self, registry, page):
        definition = FieldDefinition(name="title", type="string")
        assert list(registry.find_candidates(page, definition)) == ["ai_interpolator_string"]

    def test_candidates_by_target_type(self, registry, page):
        terms = FieldDefinition(name="tags", type="entity_reference", target_type="taxonomy_term")
        nodes = FieldDefinition(name="related", type="entity_reference", target_type="node")

        assert list(registry.find_candidates(page, terms)) == ["ai_interpolator_taxonomy"]
        assert registry.find_candidates(page, nodes) == {}

    def test_image_candidates(self, registry, page):
        definition = FieldDefinition(name="image", type="image", target_type="file")
        assert list(registry.find_candidates(page, definition)) == ["ai_interpolator_text_to_image"]

    def test_unknown_type_has_no_candidates(self, registry, page):
        assert registry.find_candidates(page, FieldDefinition(name="x", type="geofield")) == {}

    def test_descriptor(self, registry):
        descriptor = registry.get_descriptor("ai_interpolator_list_string")
        data = descriptor.to_dict()

        assert data["field_rule"] == "list_string"
        assert "options_comma" in data["tokens"]
        assert "text_long" in data["allowed_inputs"]
        assert registry.get_descriptor("missing") is None

    def test_audio_rule_descriptor(self, registry):
        descriptor = registry.get_descriptor("ai_interpolator_audio_to_string")
        assert descriptor.needs_prompt is False
        assert descriptor.allowed_inputs == ("file",)


class TestRuleRegistry:
    """Tests for registration and visibility deciders."""

    def test_duplicate_id(self, mock_client, resolver):
        registry = RuleRegistry()
        registry.register(StringRule(mock_client, resolver))
        with pytest.raises(ValueError):
            registry.register(StringRule(mock_client, resolver))

    def test_rule_without_id(self, mock_client, resolver):
        class Nameless(StringRule):
            id = ""

        with pytest.raises(ValueError):
            RuleRegistry().register(Nameless(mock_client, resolver))

    def test_rule_not_allowed(self, mock_client, resolver, page):
        registry = RuleRegistry()
        registry.register(HiddenStringRule(mock_client, resolver))
        assert registry.find_candidates(page, FieldDefinition(name="t", type="string")) == {}

    def test_force_visible_overrides_rule(self, mock_client, resolver, page):
        registry = RuleRegistry([FixedVisibility("test_hidden_string", RuleVisibility.FORCE_VISIBLE)])
        registry.register(HiddenStringRule(mock_client, resolver))
        assert list(registry.find_candidates(page, FieldDefinition(name="t", type="string"))) == ["test_hidden_string"]

    def test_force_hidden_wins(self, mock_client, resolver, page):
        registry = RuleRegistry()
        registry.register(StringRule(mock_client, resolver))
        registry.add_visibility_decider(FixedVisibility("ai_interpolator_string", RuleVisibility.FORCE_VISIBLE))
        registry.add_visibility_decider(FixedVisibility("ai_interpolator_string", RuleVisibility.FORCE_HIDDEN))

        assert registry.find_candidates(page, FieldDefinition(name="t", type="string")) == {}

    def test_build_with_deciders(self, mock_client, resolver, page):
        registry = build_default_registry(
            mock_client,
            resolver,
            file_storage=None,
            visibility_deciders=[FixedVisibility("ai_interpolator_string", RuleVisibility.FORCE_HIDDEN)],
        )
        assert registry.find_candidates(page, FieldDefinition(name="t", type="string")) == {}
