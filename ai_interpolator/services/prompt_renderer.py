"""
Prompt rendering.

Prompts are Jinja2 templates rendered once per source field item with a
token map (``{{ context }}``, ``{{ raw_context }}``, ``{{ max_amount }}``
plus rule tokens). In token mode a single prompt is rendered from entity
tokens such as ``[node:title]`` through a TokenRenderer.
"""

import re
from abc import ABC, abstractmethod
from typing import TYPE_CHECKING, Any, Dict, List, Optional

from jinja2 import Environment, TemplateError

from ai_interpolator.core.exceptions import ConfigurationError
from ai_interpolator.models import (
    Entity,
    FieldDefinition,
    InterpolationConfig,
    InterpolationMode,
    UNLIMITED,
)
from ai_interpolator.utils.logger import get_logger

if TYPE_CHECKING:
    from ai_interpolator.rules.base import FieldRule

logger = get_logger(__name__)


TAG_PATTERN = re.compile(r"<[^>]+>")
ENTITY_TOKEN_PATTERN = re.compile(r"\[([a-z0-9_]+):([a-z0-9_]+)(?::([a-z0-9_]+))?\]")


def strip_tags(text: Any) -> str:
    """Remove markup from a value and trim it."""
    if text is None:
        return ""
    return TAG_PATTERN.sub("", str(text)).strip()


def item_text(item: Any) -> Any:
    """Main textual property of a field item."""
    if isinstance(item, dict):
        if "value" in item:
            return item["value"]
        for value in item.values():
            return value
        return ""
    return item


# =============================================================================
# TOKEN RENDERING
# =============================================================================


class TokenRenderer(ABC):
    """Host templating subsystem used for token mode and config overrides."""

    @abstractmethod
    def render(self, template: str, entity: Entity) -> str:
        """Replace entity tokens in ``template``; unresolved tokens are cleared."""


class EntityTokenRenderer(TokenRenderer):
    """
    Minimal entity token renderer.

    Supports ``[entity_type:id]``, ``[entity_type:bundle]``,
    ``[entity_type:field]`` and ``[entity_type:field:property]``. Multiple
    items are joined with ``", "``.
    """

    def __init__(self, separator: str = ", "):
        self.separator = separator

    def render(self, template: str, entity: Entity) -> str:
        def replace(match: "re.Match") -> str:
            entity_type, name, prop = match.groups()
            if entity_type != entity.entity_type:
                return ""
            if name == "id" and prop is None:
                return "" if entity.id is None else str(entity.id)
            if name == "bundle" and prop is None:
                return entity.bundle
            items = entity.get(name)
            values = []
            for item in items:
                value = item.get(prop) if prop else item_text(item)
                if value not in (None, ""):
                    values.append(str(value))
            return self.separator.join(values)

        return ENTITY_TOKEN_PATTERN.sub(replace, template or "")


# =============================================================================
# PROMPT RENDERER
# =============================================================================


class PromptRenderer:
    """Builds prompts for a rule from entity data."""

    def __init__(self, token_renderer: Optional[TokenRenderer] = None):
        """
        Args:
            token_renderer: Host templating subsystem. Token mode is only
                available when one is given.
        """
        self.token_renderer = token_renderer
        self._env = Environment(autoescape=False, keep_trailing_newline=True)

    @property
    def supports_tokens(self) -> bool:
        return self.token_renderer is not None

    def base_tokens(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        delta: int = 0,
    ) -> Dict[str, Any]:
        """Token map shared by all rules for one source item."""
        items = entity.get(config.base_field)
        raw = item_text(items[delta]) if delta < len(items) else ""
        return {
            "context": strip_tags(raw),
            "raw_context": "" if raw is None else raw,
            "max_amount": "" if field_definition.cardinality == UNLIMITED else field_definition.cardinality,
        }

    def render_prompt(self, template: str, tokens: Dict[str, Any]) -> str:
        """Render a prompt template with a token map; unknown tokens render empty."""
        try:
            return self._env.from_string(template or "").render(**tokens)
        except TemplateError as e:
            raise ConfigurationError(
                f"Prompt template could not be rendered: {e}",
                details={"template": template},
            )

    def render_token_prompt(self, template: str, entity: Entity) -> str:
        """Render a token-mode prompt against the whole entity."""
        if self.token_renderer is None:
            raise ConfigurationError("Token mode requires a token renderer")
        return self.token_renderer.render(template, entity)

    def build_prompts(
        self,
        rule: "FieldRule",
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        prompt_template: Optional[str] = None,
        token_template: Optional[str] = None,
    ) -> List[str]:
        """
        Build the prompt set for one field.

        Token mode yields a single prompt. Otherwise rules that need a
        prompt get one per source item and rules that don't get none.
        """
        if config.interpolation_mode is InterpolationMode.TOKEN and self.supports_tokens:
            template = config.token if token_template is None else token_template
            return [self.render_token_prompt(template, entity)]

        if config.interpolation_mode is InterpolationMode.TOKEN:
            logger.warning(
                "Token mode configured without a token renderer, using base mode",
                field_name=field_definition.name,
            )

        if not rule.needs_prompt:
            return []

        template = config.prompt if prompt_template is None else prompt_template
        prompts = []
        for delta in range(len(entity.get(config.base_field))):
            tokens = rule.generate_tokens(entity, field_definition, config, delta)
            prompts.append(self.render_prompt(template, tokens))
        return prompts
