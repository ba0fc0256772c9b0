"""
Field configuration loading and lookup.

This module reads bundle field definitions and their interpolation
settings, either handed over by the host or loaded from a YAML file,
and exposes them through a FieldConfigRepository.

YAML layout::

    bundles:
      node:
        article:
          fields:
            - name: body
              type: text_long
            - name: summary
              type: string
              interpolator:
                enabled: true
                rule: ai_interpolator_string
                base_field: body
                prompt: "Summarize {{ context }}"
"""

from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, List, Optional, Tuple
import os
import yaml

from ai_interpolator.core.exceptions import ConfigurationError
from ai_interpolator.core.settings import get_settings
from ai_interpolator.models.config import InterpolationConfig
from ai_interpolator.models.entity import STATUS_FIELD, FieldDefinition, status_field_definition
from ai_interpolator.utils.logger import get_logger


logger = get_logger(__name__)


BundleKey = Tuple[str, str]


class FieldConfigRepository(ABC):
    """Read access to field definitions and interpolation configs per bundle."""

    @abstractmethod
    def field_definitions(self, entity_type: str, bundle: str) -> List[FieldDefinition]:
        """Field definitions of a bundle, in declaration order."""

    @abstractmethod
    def get_config(
        self,
        entity_type: str,
        bundle: str,
        field_name: str,
    ) -> Optional[InterpolationConfig]:
        """Interpolation config of a field, or None when never configured."""

    @abstractmethod
    def add_field_definition(self, entity_type: str, bundle: str, definition: FieldDefinition) -> None:
        """Attach a field definition to a bundle (status field lifecycle)."""

    @abstractmethod
    def remove_field_definition(self, entity_type: str, bundle: str, field_name: str) -> None:
        """Detach a field definition from a bundle."""

    @abstractmethod
    def bundles(self) -> List[BundleKey]:
        """All known (entity_type, bundle) pairs."""

    def get_field_definition(
        self,
        entity_type: str,
        bundle: str,
        field_name: str,
    ) -> Optional[FieldDefinition]:
        for definition in self.field_definitions(entity_type, bundle):
            if definition.name == field_name:
                return definition
        return None

    def enabled_configs(self, entity_type: str, bundle: str) -> List[Tuple[FieldDefinition, InterpolationConfig]]:
        """Enabled (field, config) pairs of a bundle in discovery order."""
        pairs = []
        for definition in self.field_definitions(entity_type, bundle):
            config = self.get_config(entity_type, bundle, definition.name)
            if config is not None and config.enabled:
                pairs.append((definition, config))
        return pairs

    def sync_status_field(self, entity_type: str, bundle: str) -> bool:
        """
        Attach or detach the status field depending on enabled fields.

        Returns True when the bundle carries the status field afterwards.
        """
        enabled = any(
            definition.name != STATUS_FIELD for definition, _ in self.enabled_configs(entity_type, bundle)
        )
        present = self.get_field_definition(entity_type, bundle, STATUS_FIELD) is not None
        if enabled and not present:
            self.add_field_definition(entity_type, bundle, status_field_definition())
            logger.info("Status field added", entity_type=entity_type, bundle=bundle)
        elif not enabled and present:
            self.remove_field_definition(entity_type, bundle, STATUS_FIELD)
            logger.info("Status field removed", entity_type=entity_type, bundle=bundle)
        return enabled


class InMemoryFieldConfigRepository(FieldConfigRepository):
    """Dictionary-backed repository."""

    def __init__(self) -> None:
        self._definitions: Dict[BundleKey, List[FieldDefinition]] = {}
        self._configs: Dict[BundleKey, Dict[str, InterpolationConfig]] = {}

    def field_definitions(self, entity_type: str, bundle: str) -> List[FieldDefinition]:
        return list(self._definitions.get((entity_type, bundle), []))

    def get_config(self, entity_type: str, bundle: str, field_name: str) -> Optional[InterpolationConfig]:
        return self._configs.get((entity_type, bundle), {}).get(field_name)

    def add_field_definition(self, entity_type: str, bundle: str, definition: FieldDefinition) -> None:
        definitions = self._definitions.setdefault((entity_type, bundle), [])
        definitions[:] = [d for d in definitions if d.name != definition.name]
        definitions.append(definition)

    def remove_field_definition(self, entity_type: str, bundle: str, field_name: str) -> None:
        key = (entity_type, bundle)
        if key in self._definitions:
            self._definitions[key] = [d for d in self._definitions[key] if d.name != field_name]
        self._configs.get(key, {}).pop(field_name, None)
        if field_name != STATUS_FIELD:
            self.sync_status_field(entity_type, bundle)

    def set_config(self, entity_type: str, bundle: str, config: InterpolationConfig) -> None:
        """Attach an interpolation config to a field and keep the status field in step."""
        if not config.field_name:
            raise ConfigurationError("Interpolation config has no field_name")
        self._configs.setdefault((entity_type, bundle), {})[config.field_name] = config
        self.sync_status_field(entity_type, bundle)

    def bundles(self) -> List[BundleKey]:
        return list(self._definitions)

    @classmethod
    def from_dict(cls, data: Dict[str, Any]) -> "InMemoryFieldConfigRepository":
        """Create from the YAML document structure."""
        repository = cls()
        for entity_type, bundles in (data.get("bundles") or {}).items():
            for bundle, bundle_data in (bundles or {}).items():
                for field_data in (bundle_data or {}).get("fields", []):
                    field_data = dict(field_data)
                    interpolator = field_data.pop("interpolator", None)
                    try:
                        definition = FieldDefinition.from_dict(field_data)
                    except KeyError as e:
                        raise ConfigurationError(
                            f"Field definition in {entity_type}.{bundle} is missing {e}",
                            details={"entity_type": entity_type, "bundle": bundle},
                        )
                    repository.add_field_definition(entity_type, bundle, definition)
                    if interpolator:
                        repository.set_config(
                            entity_type,
                            bundle,
                            InterpolationConfig.from_dict(interpolator, field_name=definition.name),
                        )
        return repository


# Global repository instance (lazy loaded)
_repository: Optional[FieldConfigRepository] = None


def load_field_configs(config_path: Optional[str] = None) -> InMemoryFieldConfigRepository:
    """
    Load field configuration from a YAML file.

    Args:
        config_path: Path to config file. If None, uses the configured location.

    Returns:
        Loaded repository (empty when the file does not exist).
    """
    global _repository

    if config_path is None:
        config_path = os.environ.get("AI_INTERPOLATOR_FIELD_CONFIG_PATH", get_settings().field_config_path)

    config_file = Path(config_path)

    if not config_file.exists():
        _repository = InMemoryFieldConfigRepository()
        return _repository

    with open(config_file, "r") as f:
        try:
            data = yaml.safe_load(f) or {}
        except yaml.YAMLError as e:
            raise ConfigurationError(f"Invalid YAML in {config_file}: {e}")

    _repository = InMemoryFieldConfigRepository.from_dict(data)
    return _repository


def get_field_configs() -> FieldConfigRepository:
    """Get the global repository, loading it if necessary."""
    global _repository
    if _repository is None:
        load_field_configs()
    return _repository


def reset_field_configs() -> None:
    """Reset the global repository (useful for testing)."""
    global _repository
    _repository = None
