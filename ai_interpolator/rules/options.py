"""
List (options) rules.

Candidates may name an option by key or by label; labels are mapped
back to keys on store.
"""

from typing import Any, Dict, List

from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig
from ai_interpolator.rules.base import FieldRule


class OptionsRule(FieldRule):
    help_text = "This helps to choose from a list of options."
    placeholder_text = (
        "Based on the context text add a sentiment rating from the sentiment list, "
        "where {{ min }} means negative and {{ max }} means positive.\n\n"
        "Ratings: {{ options_nl }}\n\nContext:\n{{ context }}"
    )

    def allowed_values(self, field_definition: FieldDefinition) -> Dict[Any, Any]:
        return dict(field_definition.get_setting("allowed_values", {}) or {})

    def tokens(self) -> Dict[str, str]:
        tokens = super().tokens()
        tokens["options_comma"] = "A comma separated list of all options."
        tokens["options_nl"] = "A new line separated list of all options."
        tokens["value_options_comma"] = "A comma separated list of all value options."
        tokens["value_options_nl"] = "A new line separated list of all value options."
        tokens["min"] = "A min numeric value, if set."
        tokens["max"] = "A max numeric value, if set."
        return tokens

    def extra_tokens(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> Dict[str, Any]:
        options = self.allowed_values(field_definition)
        keys = [str(key) for key in options]
        labels = [str(label) for label in options.values()]
        return {
            "min": min(options) if options else "",
            "max": max(options) if options else "",
            "options_comma": ", ".join(keys),
            "options_nl": "\n".join(keys),
            "value_options_comma": ", ".join(labels),
            "value_options_nl": "\n".join(labels),
        }

    def _key_for(self, value: Any, field_definition: FieldDefinition) -> Any:
        options = self.allowed_values(field_definition)
        for key in options:
            if str(key) == str(value):
                return key
        for key, label in options.items():
            if str(label) == str(value):
                return key
        return None

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if isinstance(value, (dict, list)) or value is None:
            return False
        return self._key_for(value, field_definition) is not None

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        entity.set(field_definition.name, [self._key_for(value, field_definition) for value in values])
        return True


class ListStringRule(OptionsRule):
    id = "ai_interpolator_list_string"
    title = "List String"
    field_rule = "list_string"


class ListIntegerRule(OptionsRule):
    id = "ai_interpolator_list_integer"
    title = "List Integer"
    field_rule = "list_integer"


class ListFloatRule(OptionsRule):
    id = "ai_interpolator_list_float"
    title = "List Float"
    field_rule = "list_float"
