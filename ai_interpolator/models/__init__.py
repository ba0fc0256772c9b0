"""
Shared data models for the interpolation pipeline.

- Entity / FieldDefinition: entity values and field metadata
- InterpolationConfig: per-field configuration bag
- ProcessingJob: durable queue item schema
- GenerationRequest: rendered prompts and parameters for one field
- Enums: EntityStatus, InterpolationMode, WorkerType, JobState
"""

from .enums import EntityStatus, InterpolationMode, WorkerType, JobState
from .entity import Entity, FieldDefinition, STATUS_FIELD, UNLIMITED, status_field_definition
from .config import InterpolationConfig, OVERRIDE_SUFFIX, as_bool
from .job import ProcessingJob
from .generation import GenerationRequest

__all__ = [
    # Enums
    "EntityStatus",
    "InterpolationMode",
    "WorkerType",
    "JobState",
    # Entity
    "Entity",
    "FieldDefinition",
    "UNLIMITED",
    "STATUS_FIELD",
    "status_field_definition",
    # Config
    "InterpolationConfig",
    "OVERRIDE_SUFFIX",
    "as_bool",
    # Queue
    "ProcessingJob",
    # Generation
    "GenerationRequest",
]
