"""
Taxonomy rule.

Chooses terms from the field's target vocabularies by name, optionally
creating missing terms and mapping near-duplicates onto existing ones.
"""

from typing import Any, Dict, List, Optional

from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig, as_bool
from ai_interpolator.rules.base import FieldRule, JSON_INSTRUCTIONS
from ai_interpolator.services.storage import TermStorage
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


CLEAN_UP_MODES = ("lowercase", "uppercase", "first_char")

SIMILAR_TAGS_PROMPT = (
    "Based on the list of available categories and the list of new categories, could you see "
    "somewhere where a new category is not the exact same word, but is contextually similar "
    "enough to an old one. For instance \"AMG E55\" would connect to \"Mercedes AMG E55\".\n"
    "If they are the same, you do not need to point them out. In those cases point it out. "
    "Only find one suggestion per new category. Be very careful and don't make to crude "
    "assumptions.\n\n"
)


def clean_up_value(value: str, mode: str) -> str:
    if mode == "lowercase":
        return value.lower()
    if mode == "uppercase":
        return value.upper()
    if mode == "first_char":
        return value[:1].upper() + value[1:]
    return value


class TaxonomyRule(FieldRule):
    id = "ai_interpolator_taxonomy"
    title = "Taxonomy"
    field_rule = "entity_reference"
    target = "taxonomy_term"
    help_text = "This helps to choose or create categories."
    placeholder_text = (
        "Based on the context text choose up to {{ max_amount }} categories from the category "
        "context that fits the text.\n\nCategory options:\n{{ value_options_comma }}\n\n"
        "Context:\n{{ context }}"
    )

    def __init__(self, *args: Any, term_storage: TermStorage, **kwargs: Any):
        super().__init__(*args, **kwargs)
        self.term_storage = term_storage

    # =========================================================================
    # VOCABULARIES
    # =========================================================================

    @staticmethod
    def handler_settings(field_definition: FieldDefinition) -> Dict[str, Any]:
        return dict(field_definition.get_setting("handler_settings", {}) or {})

    def vocabularies(self, field_definition: FieldDefinition) -> List[str]:
        # target_bundles is either {vid: vid} or a list of vids
        return list(self.handler_settings(field_definition).get("target_bundles") or [])

    def auto_create(self, field_definition: FieldDefinition) -> bool:
        return bool(self.handler_settings(field_definition).get("auto_create"))

    def auto_create_bundle(self, field_definition: FieldDefinition) -> Optional[str]:
        bundle = self.handler_settings(field_definition).get("auto_create_bundle")
        if bundle:
            return bundle
        vocabularies = self.vocabularies(field_definition)
        return vocabularies[0] if vocabularies else None

    def term_names(self, field_definition: FieldDefinition) -> List[str]:
        return [term["name"] for term in self.term_storage.list_terms(self.vocabularies(field_definition))]

    # =========================================================================
    # PROMPTS
    # =========================================================================

    def tokens(self) -> Dict[str, str]:
        tokens = super().tokens()
        tokens["value_options_comma"] = "A comma separated list of all value options."
        tokens["value_options_nl"] = "A new line separated list of all value options."
        return tokens

    def extra_tokens(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> Dict[str, Any]:
        names = self.term_names(field_definition)
        return {
            "value_options_comma": ", ".join(names),
            "value_options_nl": "\n".join(names),
        }

    async def generate(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        values = await super().generate(entity, field_definition, config)

        clean_up = self.resolver.get_config_value("clean_up", config, entity, "")
        if clean_up in CLEAN_UP_MODES:
            values = [clean_up_value(v, clean_up) if isinstance(v, str) else v for v in values]

        search_similar = self.resolver.get_config_value("search_similar_tags", config, entity, False)
        if values and as_bool(search_similar) and self.auto_create(field_definition):
            values = await self.search_similar_tags(values, entity, field_definition, config)
        return values

    async def search_similar_tags(
        self,
        values: List[Any],
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        """Map new names onto contextually equal existing terms."""
        prompt = SIMILAR_TAGS_PROMPT + JSON_INSTRUCTIONS
        prompt += '[{"available_category": "The available category", "new_category": "The new category"}]\n\n'
        prompt += "List of available categories:\n" + "\n".join(self.term_names(field_definition)) + "\n\n"
        prompt += "List of new categories:\n" + "\n".join(str(v) for v in values) + "\n\n"

        raw = await self.client.generate(prompt, self.resolver.get_model_parameters(config, entity))
        changes = self.normalizer.extract_json(raw)
        if not isinstance(changes, list) or not changes:
            return values

        for change in changes:
            if not isinstance(change, dict):
                continue
            available = change.get("available_category")
            new = change.get("new_category")
            if available and new and available != new:
                values = [available if value == new else value for value in values]

        deduplicated = []
        for value in values:
            if value not in deduplicated:
                deduplicated.append(value)
        logger.debug("Similar tag search applied", before=len(values), after=len(deduplicated))
        return deduplicated

    # =========================================================================
    # VERIFY / STORE
    # =========================================================================

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        if self.auto_create(field_definition) and isinstance(value, str) and value:
            return True
        return value in self.term_names(field_definition)

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        terms = self.term_storage.list_terms(self.vocabularies(field_definition))
        auto_create = self.auto_create(field_definition)

        tids: List[Any] = []
        for value in values:
            # First match wins
            tid = next((term["tid"] for term in terms if term["name"] == value), None)
            if tid is None and auto_create:
                bundle = self.auto_create_bundle(field_definition)
                if bundle is None:
                    logger.warning("No vocabulary to create term in", field_name=field_definition.name)
                    continue
                term = self.term_storage.create(bundle, value)
                terms.append(term)
                tid = term["tid"]
            if tid is not None and tid not in tids:
                tids.append(tid)

        entity.set(field_definition.name, [{"target_id": tid} for tid in tids])
        return True
