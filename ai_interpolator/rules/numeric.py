"""
Numeric and boolean rules.
"""

import math
from typing import Any, List, Optional

from ai_interpolator.models import Entity, FieldDefinition
from ai_interpolator.rules.base import FieldRule


BOOLEAN_TRUE = ("TRUE", "1")
BOOLEAN_TOKENS = ("TRUE", "FALSE", "0", "1")


def as_number(value: Any) -> Optional[float]:
    """Parse a finite numeric candidate; booleans, NaN and infinities are not numbers."""
    if isinstance(value, bool) or not isinstance(value, (int, float, str)):
        return None
    try:
        number = float(value.strip() if isinstance(value, str) else value)
    except (OverflowError, ValueError):
        return None
    return number if math.isfinite(number) else None


class NumberRule(FieldRule):
    """
    Numbers bounded by the field's ``min``/``max`` settings.

    Bounds are exclusive: a value equal to ``min`` or ``max`` is rejected.
    """

    help_text = "This can extract numbers from text."
    placeholder_text = "Based on the context text, how many people are mentioned.\n\nContext:\n{{ context }}"
    json_format = '[{"value": 1}]'

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        number = as_number(value)
        if number is None:
            return False
        minimum = as_number(field_definition.get_setting("min"))
        if minimum is not None and minimum >= number:
            return False
        maximum = as_number(field_definition.get_setting("max"))
        if maximum is not None and maximum <= number:
            return False
        return True

    def convert(self, number: float, field_definition: FieldDefinition) -> Any:
        return number

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        entity.set(field_definition.name, [self.convert(as_number(value), field_definition) for value in values])
        return True


class IntegerRule(NumberRule):
    id = "ai_interpolator_integer"
    title = "Integer"
    field_rule = "integer"

    def convert(self, number: float, field_definition: FieldDefinition) -> Any:
        # Any number is accepted, stored rounded
        return int(round(number))


class DecimalRule(NumberRule):
    id = "ai_interpolator_decimal"
    title = "Decimal"
    field_rule = "decimal"
    json_format = '[{"value": 1.5}]'

    def convert(self, number: float, field_definition: FieldDefinition) -> Any:
        return round(number, int(field_definition.get_setting("scale", 2)))


class FloatRule(NumberRule):
    id = "ai_interpolator_float"
    title = "Float"
    field_rule = "float"
    json_format = '[{"value": 1.5}]'


class BooleanRule(FieldRule):
    id = "ai_interpolator_boolean"
    title = "Boolean"
    field_rule = "boolean"
    help_text = "This can answer yes/no questions about the text."
    placeholder_text = "Based on the context text, is this article about sports? Answer TRUE or FALSE.\n\nContext:\n{{ context }}"
    json_format = '[{"value": "TRUE or FALSE"}]'

    @staticmethod
    def _token(value: Any) -> Optional[str]:
        if isinstance(value, bool):
            return "TRUE" if value else "FALSE"
        if isinstance(value, int) and value in (0, 1):
            return str(value)
        if isinstance(value, str):
            return value.strip().upper()
        return None

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return self._token(value) in BOOLEAN_TOKENS

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        entity.set(field_definition.name, [self._token(value) in BOOLEAN_TRUE for value in values])
        return True
