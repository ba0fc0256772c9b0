"""
Field generation rules.

Rules are registered explicitly; build_default_registry wires every
shipped rule with shared collaborators.
"""

from typing import List, Optional

import httpx

from ai_interpolator.core.generation_client import GenerationClient
from ai_interpolator.core.hooks import RuleVisibilityDecider
from ai_interpolator.services.config_resolver import ConfigResolver
from ai_interpolator.services.prompt_renderer import PromptRenderer
from ai_interpolator.services.response_normalizer import ResponseNormalizer
from ai_interpolator.services.storage import InMemoryTermStorage, LocalFileStorage, TermStorage

from ai_interpolator.rules.base import (
    FieldRule,
    FieldRuleDescriptor,
    JSON_INSTRUCTIONS,
    TEXT_INPUTS,
)
from ai_interpolator.rules.registry import RuleRegistry
from ai_interpolator.rules.text import (
    StringRule,
    StringLongRule,
    TextRule,
    TextLongRule,
    TextWithSummaryRule,
    JsonFieldRule,
)
from ai_interpolator.rules.numeric import (
    IntegerRule,
    DecimalRule,
    FloatRule,
    BooleanRule,
)
from ai_interpolator.rules.options import (
    ListStringRule,
    ListIntegerRule,
    ListFloatRule,
)
from ai_interpolator.rules.contact import EmailRule, TelephoneRule, LinkRule
from ai_interpolator.rules.taxonomy import TaxonomyRule
from ai_interpolator.rules.structured import FaqRule, OfficeHoursRule, CustomFieldRule
from ai_interpolator.rules.media import TextToImageRule, AudioToTextRule


SIMPLE_RULES = (
    StringRule,
    StringLongRule,
    TextRule,
    TextLongRule,
    TextWithSummaryRule,
    JsonFieldRule,
    IntegerRule,
    DecimalRule,
    FloatRule,
    BooleanRule,
    ListStringRule,
    ListIntegerRule,
    ListFloatRule,
    EmailRule,
    TelephoneRule,
    LinkRule,
    FaqRule,
    OfficeHoursRule,
    CustomFieldRule,
)


def build_default_registry(
    client: GenerationClient,
    resolver: ConfigResolver,
    renderer: Optional[PromptRenderer] = None,
    normalizer: Optional[ResponseNormalizer] = None,
    term_storage: Optional[TermStorage] = None,
    file_storage: Optional[LocalFileStorage] = None,
    http_client: Optional[httpx.AsyncClient] = None,
    visibility_deciders: Optional[List[RuleVisibilityDecider]] = None,
) -> RuleRegistry:
    """
    Create a registry holding every shipped rule.

    Args:
        client: Generation backend shared by all rules
        resolver: Config resolver shared by all rules
        renderer: Prompt renderer, defaults to one using the resolver's token renderer
        normalizer: Response normalizer
        term_storage: Taxonomy terms, defaults to an empty in-memory store
        file_storage: Managed files for media rules
        http_client: Client used to download generated images
        visibility_deciders: Hooks that hide or force-show rules

    Returns:
        A populated RuleRegistry
    """
    registry = RuleRegistry(visibility_deciders)
    shared = dict(renderer=renderer, normalizer=normalizer)

    for rule_class in SIMPLE_RULES:
        registry.register(rule_class(client, resolver, **shared))

    registry.register(
        TaxonomyRule(client, resolver, term_storage=term_storage or InMemoryTermStorage(), **shared)
    )

    files = file_storage or LocalFileStorage()
    registry.register(TextToImageRule(client, resolver, file_storage=files, http_client=http_client, **shared))
    registry.register(AudioToTextRule(client, resolver, file_storage=files, **shared))
    return registry


__all__ = [
    # Base
    "FieldRule",
    "FieldRuleDescriptor",
    "JSON_INSTRUCTIONS",
    "TEXT_INPUTS",
    # Registry
    "RuleRegistry",
    "build_default_registry",
    # Text
    "StringRule",
    "StringLongRule",
    "TextRule",
    "TextLongRule",
    "TextWithSummaryRule",
    "JsonFieldRule",
    # Numeric
    "IntegerRule",
    "DecimalRule",
    "FloatRule",
    "BooleanRule",
    # Options
    "ListStringRule",
    "ListIntegerRule",
    "ListFloatRule",
    # Contact
    "EmailRule",
    "TelephoneRule",
    "LinkRule",
    # References
    "TaxonomyRule",
    # Compound
    "FaqRule",
    "OfficeHoursRule",
    "CustomFieldRule",
    # Media
    "TextToImageRule",
    "AudioToTextRule",
]
