"""
AI Interpolator - fills entity fields with AI generated values on save.

Enabled fields are resolved per entity bundle, rendered into prompts,
sent to a generation backend and the normalized, verified answers stored
back onto the entity, either inline, after the save or from a durable
work queue.
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
from ai_interpolator.core.settings import Settings, get_settings
from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.generation_client import GenerationClient, HttpGenerationClient

# Models package - shared data classes and enums
from ai_interpolator import models
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig, EntityStatus, WorkerType

from ai_interpolator import utils
from ai_interpolator.services import (
    ConfigResolver,
    EntityModifier,
    InterpolatorLifecycle,
    RuleRunner,
    StatusTracker,
)
from ai_interpolator.rules import RuleRegistry, build_default_registry
from ai_interpolator.processing import (
    DirectStrategy,
    BatchStrategy,
    QueueStrategy,
    QueueWorker,
    WorkQueue,
)

__version__ = "0.3.0"

__all__ = [
    # Exceptions
    "InterpolatorError",
    "ConfigurationError",
    "RuleNotFoundError",
    "RequestError",
    "ResponseError",
    "StoreError",
    "ConcurrentModificationError",
    # Core
    "Settings",
    "get_settings",
    "SaveContext",
    "GenerationClient",
    "HttpGenerationClient",
    # Models
    "models",
    "Entity",
    "FieldDefinition",
    "InterpolationConfig",
    "EntityStatus",
    "WorkerType",
    "utils",
    # Pipeline
    "ConfigResolver",
    "EntityModifier",
    "InterpolatorLifecycle",
    "RuleRunner",
    "StatusTracker",
    "RuleRegistry",
    "build_default_registry",
    # Processing
    "DirectStrategy",
    "BatchStrategy",
    "QueueStrategy",
    "QueueWorker",
    "WorkQueue",
]
