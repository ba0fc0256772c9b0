"""
Entity and field definition models.

Entities carry their field values as lists of item dicts, the same shape
the host storage uses: ``{"title": [{"value": "Hello"}]}``. Reference
fields store ``target_id`` items, links store ``uri``/``title`` and so on.
"""

import copy
from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional

from .enums import EntityStatus


UNLIMITED = -1


@dataclass
class FieldDefinition:
    """Definition of one field on an entity bundle."""
    name: str
    type: str
    label: str = ""
    cardinality: int = 1          # -1 for unlimited
    target_type: Optional[str] = None  # Reference target (e.g. taxonomy_term)
    settings: Dict[str, Any] = field(default_factory=dict)

    @property
    def is_multiple(self) -> bool:
        return self.cardinality == UNLIMITED or self.cardinality > 1

    def get_setting(self, key: str, default: Any = None) -> Any:
        """Get a storage or instance setting."""
        return self.settings.get(key, default)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "name": self.name,
            "type": self.type,
            "label": self.label,
            "cardinality": self.cardinality,
            "target_type": self.target_type,
            "settings": self.settings,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "FieldDefinition":
        """Create from dictionary."""
        return cls(
            name=data["name"],
            type=data["type"],
            label=data.get("label", data["name"]),
            cardinality=int(data.get("cardinality", 1)),
            target_type=data.get("target_type"),
            settings=dict(data.get("settings", {})),
        )


def _is_empty_item(item: Any) -> bool:
    if isinstance(item, dict):
        return all(v in (None, "", [], {}) for v in item.values())
    return item in (None, "", [], {})


@dataclass
class Entity:
    """
    A content entity as seen by the pipeline.

    ``original`` holds the field values as they were before the current
    save. Storage bumps ``revision`` on every successful write.
    """
    entity_type: str
    bundle: str
    id: Optional[Any] = None
    fields: Dict[str, List[Dict[str, Any]]] = field(default_factory=dict)
    revision: int = 0
    original: Optional[Dict[str, List[Dict[str, Any]]]] = None
    is_content: bool = True

    @property
    def key(self) -> str:
        """Stable identifier used for locks and queue bookkeeping."""
        return f"{self.entity_type}:{self.id}"

    def has_field(self, name: str) -> bool:
        return name in self.fields

    def get(self, name: str) -> List[Dict[str, Any]]:
        """Get the item list of a field (empty when unset)."""
        return self.fields.get(name, [])

    def get_value(self, name: str, prop: str = "value", delta: int = 0) -> Any:
        """Get one property of one item, or None."""
        items = self.get(name)
        if delta < len(items) and isinstance(items[delta], dict):
            return items[delta].get(prop)
        return None

    def set(self, name: str, values: Any) -> None:
        """
        Set a field.

        Accepts a list of item dicts, a list of scalars, a single item dict
        or a single scalar. Scalars are wrapped as ``{"value": v}``.
        """
        if values is None:
            self.fields[name] = []
            return
        if not isinstance(values, list):
            values = [values]
        items = []
        for value in values:
            if isinstance(value, dict):
                items.append(dict(value))
            else:
                items.append({"value": value})
        self.fields[name] = items

    def field_is_empty(self, name: str) -> bool:
        items = self.get(name)
        return not items or all(_is_empty_item(item) for item in items)

    def get_original(self, name: str) -> List[Dict[str, Any]]:
        """Field items as they were before the current save."""
        if self.original is None:
            return []
        return self.original.get(name, [])

    def snapshot(self) -> Dict[str, List[Dict[str, Any]]]:
        """Deep copy of the current field values."""
        return copy.deepcopy(self.fields)

    def copy(self) -> "Entity":
        return copy.deepcopy(self)

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "entity_type": self.entity_type,
            "bundle": self.bundle,
            "id": self.id,
            "fields": self.fields,
            "revision": self.revision,
            "is_content": self.is_content,
        }

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "Entity":
        """Create from dictionary."""
        entity = cls(
            entity_type=data["entity_type"],
            bundle=data.get("bundle", data["entity_type"]),
            id=data.get("id"),
            revision=int(data.get("revision", 0)),
            is_content=data.get("is_content", True),
        )
        for name, values in data.get("fields", {}).items():
            entity.set(name, values)
        return entity


# =============================================================================
# STATUS FIELD
# =============================================================================

STATUS_FIELD = "ai_interpolator_status"


def status_field_definition() -> FieldDefinition:
    """Definition of the per-entity status field."""
    return FieldDefinition(
        name=STATUS_FIELD,
        type="list_string",
        label="AI Interpolator Status",
        cardinality=1,
        settings={
            "allowed_values": {status.value: status.value.capitalize() for status in EntityStatus},
            "default_value": EntityStatus.PENDING.value,
        },
    )
