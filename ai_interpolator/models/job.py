"""
Durable queue job schema.
"""
from typing import Any, Dict, Union

from pydantic import BaseModel, Field

from .config import InterpolationConfig


class ProcessingJob(BaseModel):
    """One (entity, field) unit of work persisted in the work queue."""
    entity_id: Union[int, str] = Field(..., description="Id of the entity to process")
    entity_type: str = Field(..., description="Entity type of the entity to process")
    field_name: str = Field(..., description="Target field name")
    interpolator_config: Dict[str, Any] = Field(
        default_factory=dict, description="Snapshot of the interpolation config at enqueue time"
    )

    @property
    def entity_key(self) -> str:
        return f"{self.entity_type}:{self.entity_id}"

    def config(self) -> InterpolationConfig:
        """Rebuild the config snapshot."""
        return InterpolationConfig.from_dict(self.interpolator_config, field_name=self.field_name)

    def to_payload(self) -> str:
        """Serialize for storage in the queue."""
        return self.model_dump_json()

    @classmethod
    def from_payload(cls, payload: str) -> "ProcessingJob":
        return cls.model_validate_json(payload)
