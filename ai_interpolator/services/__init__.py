"""
Services layer of the interpolation pipeline.

This layer sits between the host save lifecycle and the rules, handling:
- Config resolution and token overrides
- Prompt rendering and response normalization
- Entity, file and term storage boundaries
- Entity status tracking
- Running rules and scheduling fields on save
"""
from ai_interpolator.services.response_normalizer import (
    ResponseNormalizer,
    default_normalizer,
    normalize_response,
)
from ai_interpolator.services.prompt_renderer import (
    PromptRenderer,
    TokenRenderer,
    EntityTokenRenderer,
    strip_tags,
)
from ai_interpolator.services.config_resolver import ConfigResolver
from ai_interpolator.services.storage import (
    SaveListener,
    EntityStorage,
    InMemoryEntityStorage,
    ManagedFile,
    LocalFileStorage,
    TermStorage,
    InMemoryTermStorage,
)
from ai_interpolator.models import STATUS_FIELD, status_field_definition
from ai_interpolator.services.status_tracker import StatusTracker
from ai_interpolator.services.rule_runner import RuleRunner
from ai_interpolator.services.entity_modifier import EntityModifier
from ai_interpolator.services.lifecycle import InterpolatorLifecycle

__all__ = [
    # Normalization
    "ResponseNormalizer",
    "default_normalizer",
    "normalize_response",
    # Prompts
    "PromptRenderer",
    "TokenRenderer",
    "EntityTokenRenderer",
    "strip_tags",
    # Config
    "ConfigResolver",
    # Storage
    "SaveListener",
    "EntityStorage",
    "InMemoryEntityStorage",
    "ManagedFile",
    "LocalFileStorage",
    "TermStorage",
    "InMemoryTermStorage",
    # Status
    "StatusTracker",
    "STATUS_FIELD",
    "status_field_definition",
    # Pipeline
    "RuleRunner",
    "EntityModifier",
    "InterpolatorLifecycle",
]
