"""
Generation request model.

Built by rules before calling the backend; passed to value mutators and
logged when a run fails.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List

from .config import InterpolationConfig
from .entity import Entity, FieldDefinition


@dataclass
class GenerationRequest:
    """Everything needed to generate values for one field."""
    entity: Entity
    field_definition: FieldDefinition
    config: InterpolationConfig
    prompts: List[str] = field(default_factory=list)
    params: Dict[str, Any] = field(default_factory=dict)

    @property
    def field_name(self) -> str:
        return self.field_definition.name

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary (entity reduced to its key)."""
        return {
            "entity": self.entity.key,
            "field_name": self.field_name,
            "rule": self.config.rule,
            "prompts": self.prompts,
            "params": self.params,
        }
