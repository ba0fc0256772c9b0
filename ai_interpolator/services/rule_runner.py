"""
Rule runner.

Runs one field through its rule: generate, mutate, verify, store.
"""

from typing import TYPE_CHECKING, List, Optional

from ai_interpolator.core.exceptions import RuleNotFoundError
from ai_interpolator.core.hooks import ValueMutator
from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig
from ai_interpolator.utils.logger import get_logger
from ai_interpolator.utils.metrics import track_values

if TYPE_CHECKING:
    from ai_interpolator.rules.registry import RuleRegistry

logger = get_logger(__name__)


class RuleRunner:
    """
    Executes a single field rule against an entity.

    Fails fast: backend and store errors propagate to the calling
    strategy. Values rejected by verification are dropped, not errors.
    """

    def __init__(
        self,
        registry: "RuleRegistry",
        value_mutators: Optional[List[ValueMutator]] = None,
    ):
        self.registry = registry
        self.value_mutators = list(value_mutators or [])

    def add_value_mutator(self, mutator: ValueMutator) -> None:
        self.value_mutators.append(mutator)

    async def run(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> Entity:
        """
        Generate and store values for one field.

        Args:
            entity: Entity to modify in place
            field_definition: Target field
            config: Resolved interpolation config

        Returns:
            The same entity

        Raises:
            RuleNotFoundError: No rule with the configured id
            RequestError: The backend call failed
            ResponseError: The backend returned an unusable payload
            StoreError: Accepted values could not be stored
        """
        rule = self.registry.find_rule(config.rule)
        if rule is None:
            raise RuleNotFoundError(field_definition.type, rule_id=config.rule)

        values = await rule.generate(entity, field_definition, config)
        for mutator in self.value_mutators:
            values = mutator.mutate(entity, field_definition, config, values)

        accepted = [value for value in values if rule.verify_value(entity, value, field_definition)]
        rejected = len(values) - len(accepted)
        track_values(rule.id, len(accepted), rejected)
        if rejected:
            logger.info(
                "Generated values rejected",
                rule=rule.id,
                field_name=field_definition.name,
                rejected=rejected,
                accepted=len(accepted),
            )

        if accepted:
            await rule.store_values(entity, accepted, field_definition)
        else:
            logger.debug("Nothing to store", rule=rule.id, field_name=field_definition.name)
        return entity
