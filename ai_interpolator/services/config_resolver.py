"""
Config resolution.

Finds the enabled interpolation configs of an entity in weight order and
resolves single config values, honoring ``<key>_override`` token
templates rendered against the entity.
"""

from typing import Any, Dict, List, Optional, Tuple

from ai_interpolator.core.config import FieldConfigRepository
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig, OVERRIDE_SUFFIX
from ai_interpolator.services.prompt_renderer import TokenRenderer
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


MODEL_PARAMETERS = {
    "temperature": float,
    "max_tokens": int,
    "top_p": float,
    "top_k": int,
    "frequency_penalty": float,
    "presence_penalty": float,
}


class ConfigResolver:
    """Resolves configs and config values for entities."""

    def __init__(
        self,
        repository: FieldConfigRepository,
        token_renderer: Optional[TokenRenderer] = None,
    ):
        self.repository = repository
        self.token_renderer = token_renderer

    def get_config(self, entity: Entity, field_name: str) -> Optional[InterpolationConfig]:
        return self.repository.get_config(entity.entity_type, entity.bundle, field_name)

    def is_enabled(self, entity: Entity, field_name: str) -> bool:
        config = self.get_config(entity, field_name)
        return config is not None and config.enabled

    def resolve_enabled_configs(self, entity: Entity) -> List[Tuple[FieldDefinition, InterpolationConfig]]:
        """
        Enabled (field, config) pairs of an entity, ascending by weight.

        Ties keep discovery order.

        Raises:
            ConfigurationError: An enabled config lacks ``rule`` or ``base_field``
        """
        pairs = self.repository.enabled_configs(entity.entity_type, entity.bundle)
        for _, config in pairs:
            config.validate()
        return sorted(pairs, key=lambda pair: pair[1].weight)

    def get_config_value(
        self,
        key: str,
        config: InterpolationConfig,
        entity: Entity,
        default: Any = None,
    ) -> Any:
        """
        Resolve one config value.

        The ``<key>_override`` template wins when it renders to a non-empty
        string. Rendering problems fall back to the static value.
        """
        static = config.get(key, default)
        if static is None:
            static = default

        template = config.get(f"{key}{OVERRIDE_SUFFIX}")
        if not template or self.token_renderer is None:
            return static

        try:
            rendered = self.token_renderer.render(str(template), entity)
        except Exception as e:
            logger.warning(
                "Config override could not be rendered, using static value",
                key=key,
                field_name=config.field_name,
                error=str(e),
            )
            return static

        if rendered is None or not str(rendered).strip():
            return static
        return str(rendered).strip()

    def get_model_parameters(self, config: InterpolationConfig, entity: Entity) -> Dict[str, Any]:
        """Model name and sampling parameters for the generation client."""
        params: Dict[str, Any] = {}
        model = self.get_config_value("model", config, entity)
        if model:
            params["model"] = model
        for key, cast in MODEL_PARAMETERS.items():
            value = self.get_config_value(key, config, entity)
            if value in (None, ""):
                continue
            try:
                params[key] = cast(value)
            except (TypeError, ValueError):
                logger.warning("Ignoring invalid model parameter", key=key, value=value)
        return params
