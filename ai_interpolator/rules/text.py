"""
Text rules: plain strings, long strings, formatted text and JSON fields.
"""

import json
from typing import Any, List

from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig
from ai_interpolator.rules.base import FieldRule
from ai_interpolator.services.prompt_renderer import strip_tags


class StringRule(FieldRule):
    """Plain string with a maximum length."""

    id = "ai_interpolator_string"
    title = "String"
    field_rule = "string"
    help_text = "This is a simple text completion."
    placeholder_text = "Based on the context text create a short title.\n\nContext:\n{{ context }}"

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if not isinstance(value, str):
            return False
        max_length = field_definition.get_setting("max_length", 255)
        return not max_length or len(value) <= int(max_length)


class StringLongRule(FieldRule):
    """Long plain text; markup is stripped on store."""

    id = "ai_interpolator_string_long"
    title = "String Long"
    field_rule = "string_long"
    help_text = "This is a simple text completion."
    placeholder_text = "Based on the context text create a summary.\n\nContext:\n{{ context }}"

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return isinstance(value, str)

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        entity.set(field_definition.name, [strip_tags(value) for value in values])
        return True


class FormattedTextRule(FieldRule):
    """Formatted text items (``value`` + ``format``)."""

    help_text = "This is a simple text completion."

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if not isinstance(value, str):
            return False
        max_length = field_definition.get_setting("max_length")
        return not max_length or len(value) <= int(max_length)

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        text_format = field_definition.get_setting("default_format", "basic_html")
        entity.set(field_definition.name, [{"value": value, "format": text_format} for value in values])
        return True


class TextRule(FormattedTextRule):
    id = "ai_interpolator_text"
    title = "Text"
    field_rule = "text"


class TextLongRule(FormattedTextRule):
    id = "ai_interpolator_text_long"
    title = "Text Long"
    field_rule = "text_long"
    placeholder_text = "Based on the context text write an introduction.\n\nContext:\n{{ context }}"


class TextWithSummaryRule(FormattedTextRule):
    id = "ai_interpolator_text_with_summary"
    title = "Text With Summary"
    field_rule = "text_with_summary"


class JsonFieldRule(FieldRule):
    """
    JSON document field.

    The backend answers with free JSON in the shape the prompt asks for,
    so the raw document is kept instead of being normalized to values.
    """

    id = "ai_interpolator_json"
    title = "Text To JSON"
    field_rule = "json"
    help_text = "This can turn text into structured JSON."
    placeholder_text = (
        "Based on the actor context, give back a list of all the movies that person has been in, "
        "together with year of release.\n\nContext:\n{{ context }}\n\n"
        "------------------------------\n"
        "Do not include any explanations, only provide a RFC8259 compliant JSON response "
        "following this format without deviation.\n"
        '[{"movie_title": "title of movie", "release_year": "year of release"}]'
    )

    def output_instructions(self, field_definition: FieldDefinition, config: InterpolationConfig) -> str:
        # The prompt itself carries the wanted shape
        return ""

    async def generate(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        request = self.build_request(entity, field_definition, config)
        values: List[Any] = []
        for prompt in request.prompts:
            raw = await self.client.generate(prompt, request.params)
            parsed = self.normalizer.extract_json(raw)
            if parsed is not None:
                values.append(json.dumps(parsed))
        return values

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if not isinstance(value, str):
            return False
        try:
            json.loads(value)
        except ValueError:
            return False
        return True
