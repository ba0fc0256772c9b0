"""
Contact rules: e-mail, telephone and link.
"""

import re
from typing import Any, Dict, List
from urllib.parse import urlparse

from ai_interpolator.models import Entity, FieldDefinition
from ai_interpolator.rules.base import FieldRule


EMAIL_PATTERN = re.compile(r"^[A-Za-z0-9.!#$%&'*+/=?^_`{|}~-]+@[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?(?:\.[A-Za-z0-9](?:[A-Za-z0-9-]{0,61}[A-Za-z0-9])?)+$")
PHONE_PATTERN = re.compile(r"^\+\(?[0-9]{1,3}\)?[ ]?[0-9]{6,12}$")

# Link field "title" setting
LINK_TITLE_DISABLED = 0
LINK_TITLE_OPTIONAL = 1
LINK_TITLE_REQUIRED = 2


def is_valid_url(value: Any) -> bool:
    if not isinstance(value, str) or not value:
        return False
    parsed = urlparse(value)
    return bool(parsed.scheme) and bool(parsed.netloc) and " " not in value


class EmailRule(FieldRule):
    id = "ai_interpolator_email"
    title = "E-Mail"
    field_rule = "email"
    help_text = "This can find e-mail addresses in text."
    placeholder_text = "Based on the context text return all e-mails listed.\n\nContext:\n{{ context }}"

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return isinstance(value, str) and EMAIL_PATTERN.match(value) is not None


class TelephoneRule(FieldRule):
    id = "ai_interpolator_telephone"
    title = "Telephone"
    field_rule = "telephone"
    help_text = "This can find phone numbers in text."
    placeholder_text = (
        "Based on the context text return all phone numbers listed in international "
        "format (+46 701234567).\n\nContext:\n{{ context }}"
    )
    json_format = '[{"value": "+46 701234567"}]'

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        return isinstance(value, str) and PHONE_PATTERN.match(value) is not None


class LinkRule(FieldRule):
    id = "ai_interpolator_link"
    title = "Link"
    field_rule = "link"
    help_text = "This can help find link in text."
    placeholder_text = "Based on the context text return all links listed.\n\nContext:\n{{ context }}"
    json_format = '[{"value": {"uri": "The raw url", "title": "The link text if available"}}]'

    def check_if_empty(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        return [item for item in items if isinstance(item, dict) and item.get("uri")]

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if not isinstance(value, dict) or not is_valid_url(value.get("uri")):
            return False
        title_setting = int(field_definition.get_setting("title", LINK_TITLE_OPTIONAL))
        if not value.get("title") and title_setting == LINK_TITLE_REQUIRED:
            return False
        return True

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        title_setting = int(field_definition.get_setting("title", LINK_TITLE_OPTIONAL))
        items = []
        for value in values:
            title = "" if title_setting == LINK_TITLE_DISABLED else value.get("title", "") or ""
            items.append({"uri": value["uri"], "title": title})
        entity.set(field_definition.name, items)
        return True
