"""
Base class for field generation rules.

A rule knows how to fill one field type: which source fields it accepts,
which prompt tokens it offers, how to turn backend output into candidate
values, how to verify a candidate and how to store the accepted ones.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Tuple

from ai_interpolator.core.generation_client import GenerationClient
from ai_interpolator.models import (
    Entity,
    FieldDefinition,
    GenerationRequest,
    InterpolationConfig,
)
from ai_interpolator.services.config_resolver import ConfigResolver
from ai_interpolator.services.prompt_renderer import PromptRenderer
from ai_interpolator.services.response_normalizer import ResponseNormalizer, default_normalizer
from ai_interpolator.utils.logger import get_logger

logger = get_logger(__name__)


JSON_INSTRUCTIONS = (
    "Do not include any explanations, only provide a RFC8259 compliant JSON response "
    "following this format without deviation.\n"
)

TEXT_INPUTS = ["text_long", "text", "string", "string_long", "text_with_summary"]


@dataclass(frozen=True)
class FieldRuleDescriptor:
    """Static description of a registered rule."""
    id: str
    title: str
    field_rule: str
    target: Optional[str] = None
    needs_prompt: bool = True
    advanced_mode: bool = True
    allowed_inputs: Tuple[str, ...] = ()
    tokens: Tuple[Tuple[str, str], ...] = ()
    help_text: str = ""
    placeholder_text: str = ""

    def matches(self, field_type: str, target_type: Optional[str] = None) -> bool:
        """Exact type match; a rule without target matches any target."""
        if self.field_rule != field_type:
            return False
        return self.target is None or self.target == target_type

    def to_dict(self) -> Dict[str, Any]:
        """Convert to dictionary."""
        return {
            "id": self.id,
            "title": self.title,
            "field_rule": self.field_rule,
            "target": self.target,
            "needs_prompt": self.needs_prompt,
            "advanced_mode": self.advanced_mode,
            "allowed_inputs": list(self.allowed_inputs),
            "tokens": dict(self.tokens),
            "help_text": self.help_text,
            "placeholder_text": self.placeholder_text,
        }


class FieldRule:
    """
    Base class for all rules.

    Subclasses set the class attributes and override the verify/store
    methods. Collaborators are injected at construction time.
    """

    id: str = ""
    title: str = ""
    field_rule: str = ""
    target: Optional[str] = None
    needs_prompt: bool = True
    advanced_mode: bool = True
    allowed_inputs: List[str] = TEXT_INPUTS
    help_text: str = ""
    placeholder_text: str = ""
    json_format: str = '[{"value": "requested value"}]'

    def __init__(
        self,
        client: GenerationClient,
        resolver: ConfigResolver,
        renderer: Optional[PromptRenderer] = None,
        normalizer: Optional[ResponseNormalizer] = None,
    ):
        self.client = client
        self.resolver = resolver
        self.renderer = renderer or PromptRenderer(resolver.token_renderer)
        self.normalizer = normalizer or default_normalizer
        self._descriptor: Optional[FieldRuleDescriptor] = None

    @property
    def descriptor(self) -> FieldRuleDescriptor:
        if self._descriptor is None:
            self._descriptor = FieldRuleDescriptor(
                id=self.id,
                title=self.title,
                field_rule=self.field_rule,
                target=self.target,
                needs_prompt=self.needs_prompt,
                advanced_mode=self.advanced_mode,
                allowed_inputs=tuple(self.allowed_inputs),
                tokens=tuple(self.tokens().items()),
                help_text=self.help_text,
                placeholder_text=self.placeholder_text,
            )
        return self._descriptor

    # =========================================================================
    # CAPABILITIES
    # =========================================================================

    def rule_is_allowed(self, entity: Entity, field_definition: FieldDefinition) -> bool:
        """Whether the rule can be offered for this field."""
        return True

    def tokens(self) -> Dict[str, str]:
        """Prompt tokens offered to the template, name -> description."""
        return {
            "context": "The cleaned text from the base field.",
            "raw_context": "The raw text from the base field. Can include HTML",
            "max_amount": "The max amount of entries to set. If unlimited this value will be empty.",
        }

    def check_if_empty(self, items: List[Dict[str, Any]]) -> List[Dict[str, Any]]:
        """Drop items that count as empty for this field type."""
        return [
            item for item in items
            if not all(v in (None, "", [], {}) for v in (item.values() if isinstance(item, dict) else [item]))
        ]

    # =========================================================================
    # PROMPTS
    # =========================================================================

    def generate_tokens(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
        delta: int = 0,
    ) -> Dict[str, Any]:
        """Token map for one source item."""
        tokens = self.renderer.base_tokens(entity, field_definition, config, delta)
        tokens.update(self.extra_tokens(entity, field_definition, config))
        return tokens

    def extra_tokens(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> Dict[str, Any]:
        return {}

    def output_instructions(self, field_definition: FieldDefinition, config: InterpolationConfig) -> str:
        return JSON_INSTRUCTIONS + self.json_format

    def build_request(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> GenerationRequest:
        """Render prompts and resolve model parameters for one field."""
        prompt_template = self.resolver.get_config_value("prompt", config, entity, "")
        token_template = self.resolver.get_config_value("token", config, entity, "")
        prompts = self.renderer.build_prompts(
            self,
            entity,
            field_definition,
            config,
            prompt_template=prompt_template,
            token_template=token_template,
        )
        suffix = self.output_instructions(field_definition, config)
        if suffix:
            prompts = [f"{prompt}\n\n{suffix}" for prompt in prompts]
        return GenerationRequest(
            entity=entity,
            field_definition=field_definition,
            config=config,
            prompts=prompts,
            params=self.resolver.get_model_parameters(config, entity),
        )

    # =========================================================================
    # PIPELINE
    # =========================================================================

    async def generate(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> List[Any]:
        """
        Produce candidate values for a field.

        Raises:
            RequestError: The backend call failed
            ResponseError: The backend answered with an unusable payload
        """
        request = self.build_request(entity, field_definition, config)
        values: List[Any] = []
        for prompt in request.prompts:
            raw = await self.client.generate(prompt, request.params)
            values.extend(self.normalizer.normalize(raw))
        return values

    def verify_value(self, entity: Entity, value: Any, field_definition: FieldDefinition) -> bool:
        """Accept or reject one candidate. Must not have side effects."""
        return True

    async def store_values(self, entity: Entity, values: List[Any], field_definition: FieldDefinition) -> bool:
        """Write accepted values onto the entity."""
        entity.set(field_definition.name, values)
        return True

    def __repr__(self) -> str:
        return f"<{self.__class__.__name__} {self.id}>"
