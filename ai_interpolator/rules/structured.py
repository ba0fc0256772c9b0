"""
Compound field rules: FAQ, office hours and custom multi-property fields.
"""

import json
from typing import Any, Dict, List, Sequence

from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig
from ai_interpolator.rules.base import FieldRule, JSON_INSTRUCTIONS


def has_keys(value: Any, keys: Sequence[str]) -> bool:
    """All keys present with a non-empty value."""
    if not isinstance(value, dict):
        return False
    return all(value.get(key) not in (None, "") for key in keys)


class CompoundRule(FieldRule):
    """Rule whose values are dicts with required keys."""

    required_keys: Sequence[str] = ()

    def check_if_empty(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [item for item in items if has_keys(item, self.required_keys)]

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return has_keys(value, self.required_keys)

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        entity.set(field_definition.name, [{key: value[key] for key in self.required_keys} for value in values])
        return True


class FaqRule(CompoundRule):
    id = "ai_interpolator_faq"
    title = "FAQ Field"
    field_rule = "faqfield"
    help_text = "This can create questions and answers from text."
    placeholder_text = "Based on the context text return 5 questions and answers.\n\nContext:\n{{ context }}"
    required_keys = ("question", "answer")
    json_format = '[{"value": {"question": "The question to ask", "answer": "The answer"}}]'


class OfficeHoursRule(CompoundRule):
    id = "ai_interpolator_office_hours"
    title = "Office Hours"
    field_rule = "office_hours"
    help_text = "This can find opening hours in text."
    placeholder_text = "Based on the context text return the office hours that you can find.\n\nContext:\n{{ context }}"
    required_keys = ("day", "starthours", "endhours")
    json_format = (
        '[{"value": {"day": "1 for monday, 2 for tuesday and so on", '
        '"starthours": "opening hour in hi format, so 16:00 would be 1600", '
        '"endhours": "closing hour in hi format, so 20:00 would be 2000"}}].'
        "\n\nOnly give back the days they are open."
    )

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        items = []
        for value in values:
            items.append({
                "day": int(value["day"]) if str(value["day"]).isdigit() else value["day"],
                "starthours": value["starthours"],
                "endhours": value["endhours"],
                "comment": value.get("comment", ""),
            })
        entity.set(field_definition.name, items)
        return True


class CustomFieldRule(FieldRule):
    """
    Custom multi-property field.

    The wanted shape comes from config: ``custom_value_<property>`` describes
    each property and ``custom_oneshot_<property>`` gives an example value.
    """

    id = "ai_interpolator_custom_field"
    title = "Custom Field"
    field_rule = "custom"
    help_text = "This can help find complex amount of data and fill in complex field types with it."
    placeholder_text = (
        "Based on the context extract all quotes and fill in the quote, a translated quote into "
        "english, the persons name and the persons role.\n\nContext:\n{{ context }}"
    )

    VALUE_PREFIX = "custom_value_"
    ONESHOT_PREFIX = "custom_oneshot_"

    def schema(self, config: InterpolationConfig) -> Dict[str, Dict[str, Any]]:
        example: Dict[str, Any] = {}
        one_shot: Dict[str, Any] = {}
        for key, value in config.extra.items():
            if key.endswith("_override"):
                continue
            if key.startswith(self.VALUE_PREFIX):
                example[key[len(self.VALUE_PREFIX):]] = value
            elif key.startswith(self.ONESHOT_PREFIX):
                one_shot[key[len(self.ONESHOT_PREFIX):]] = value
        return {"example": example, "one_shot": one_shot}

    def output_instructions(self, field_definition: FieldDefinition, config: InterpolationConfig) -> str:
        schema = self.schema(config)
        instructions = JSON_INSTRUCTIONS + '[{"value":' + json.dumps(schema["example"]) + "}]"
        if schema["one_shot"]:
            instructions += '\n\nExample of one row:\n[{"value":' + json.dumps(schema["one_shot"]) + "}]\n"
        return instructions

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return isinstance(value, dict) and bool(value)
