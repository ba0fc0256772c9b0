"""
Core components for the interpolation pipeline.

This module provides the foundations shared by rules, services and
processing strategies:
- Exceptions: structured error handling
- Settings: environment configuration
- Config: field definitions and interpolation configs
- GenerationClient: the AI backend capability
- Hooks / SaveContext: extension points and per-save state
"""

from ai_interpolator.core.exceptions import (
    InterpolatorError,
    ConfigurationError,
    RuleNotFoundError,
    RequestError,
    ResponseError,
    StoreError,
    ConcurrentModificationError,
)
from ai_interpolator.core.settings import Settings, get_settings, reset_settings
from ai_interpolator.core.context import DeferredJob, SaveContext
from ai_interpolator.core.hooks import (
    ConfigMutator,
    ScheduleDecider,
    ScheduleDecision,
    ValueMutator,
    RuleVisibility,
    RuleVisibilityDecider,
)
from ai_interpolator.core.generation_client import (
    Attachment,
    GenerationClient,
    HttpGenerationClient,
)
from ai_interpolator.core.config import (
    FieldConfigRepository,
    InMemoryFieldConfigRepository,
    load_field_configs,
    get_field_configs,
    reset_field_configs,
)

__all__ = [
    # Exceptions
    "InterpolatorError",
    "ConfigurationError",
    "RuleNotFoundError",
    "RequestError",
    "ResponseError",
    "StoreError",
    "ConcurrentModificationError",
    # Settings
    "Settings",
    "get_settings",
    "reset_settings",
    # Context
    "DeferredJob",
    "SaveContext",
    # Hooks
    "ConfigMutator",
    "ScheduleDecider",
    "ScheduleDecision",
    "ValueMutator",
    "RuleVisibility",
    "RuleVisibilityDecider",
    # Generation
    "Attachment",
    "GenerationClient",
    "HttpGenerationClient",
    # Config
    "FieldConfigRepository",
    "InMemoryFieldConfigRepository",
    "load_field_configs",
    "get_field_configs",
    "reset_field_configs",
]
