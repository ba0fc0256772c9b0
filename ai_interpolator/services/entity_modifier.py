"""
Entity modifier.

Entry point of the pipeline: decides, on every entity save, which
enabled fields need (re)generation and hands them to the processing
strategy configured for each field.
"""

from typing import TYPE_CHECKING, Dict, List, Optional, Tuple

from ai_interpolator.core.context import SaveContext
from ai_interpolator.core.exceptions import ConfigurationError
from ai_interpolator.core.hooks import (
    ConfigMutator,
    ScheduleDecider,
    ScheduleDecision,
    combine_schedule_decisions,
)
from ai_interpolator.models import (
    Entity,
    FieldDefinition,
    InterpolationConfig,
    InterpolationMode,
    WorkerType,
)
from ai_interpolator.processing.base import DeferredCapable, ImportCapable, ProcessingStrategy
from ai_interpolator.services.config_resolver import ConfigResolver
from ai_interpolator.utils.logger import get_logger, job_context

if TYPE_CHECKING:
    from ai_interpolator.rules.registry import RuleRegistry

logger = get_logger(__name__)


class EntityModifier:
    """
    Schedules interpolation for an entity being saved.

    The host calls ``save_entity`` twice per save: before the write with
    ``is_insert=False`` and after it with ``is_insert=True``. Strategies
    marked ImportCapable take part only in the second call, all others
    only in the first.
    """

    def __init__(
        self,
        resolver: ConfigResolver,
        registry: "RuleRegistry",
        strategies: Dict[WorkerType, ProcessingStrategy],
        config_mutators: Optional[List[ConfigMutator]] = None,
        schedule_deciders: Optional[List[ScheduleDecider]] = None,
    ):
        if WorkerType.DIRECT not in strategies:
            raise ConfigurationError("A direct processing strategy is required")
        self.resolver = resolver
        self.registry = registry
        self.strategies = dict(strategies)
        self.config_mutators = list(config_mutators or [])
        self.schedule_deciders = list(schedule_deciders or [])

    # =========================================================================
    # ENTRY POINTS
    # =========================================================================

    async def save_entity(
        self,
        entity: Entity,
        is_insert: bool = False,
        context: Optional[SaveContext] = None,
    ) -> bool:
        """
        Run the pipeline for one phase of a save.

        Returns:
            True when at least one field was dispatched
        """
        context = context or SaveContext()
        if not entity.is_content or context.suppress_pipeline:
            return False

        pairs = self.resolver.resolve_enabled_configs(entity)
        if not pairs:
            return False

        scheduled: List[Tuple[FieldDefinition, InterpolationConfig, ProcessingStrategy]] = []
        for field_definition, config in pairs:
            config = self._mutate_config(entity, field_definition, config)
            strategy = self.strategy_for(config)
            if isinstance(strategy, ImportCapable) != is_insert:
                continue
            if not self.should_process(entity, field_definition, config):
                continue
            scheduled.append((field_definition, config, strategy))

        if not scheduled:
            return False

        strategies: List[ProcessingStrategy] = []
        for _, _, strategy in scheduled:
            if strategy not in strategies:
                strategies.append(strategy)

        for strategy in strategies:
            await strategy.pre_processing(entity, context)

        dispatched = False
        for field_definition, config, strategy in scheduled:
            with job_context(entity_type=entity.entity_type, entity_id=entity.id, field_name=field_definition.name):
                try:
                    dispatched = await strategy.schedule(entity, field_definition, config, context) or dispatched
                except Exception as e:
                    context.warn(f"Could not schedule {field_definition.label or field_definition.name}: {e}")
                    logger.warning(
                        "Field could not be scheduled",
                        worker=strategy.worker_type.value,
                        rule=config.rule,
                        error=str(e),
                    )

        for strategy in strategies:
            await strategy.post_processing(entity, context)

        logger.debug(
            "Entity processed",
            entity=entity.key,
            is_insert=is_insert,
            fields=[fd.name for fd, _, _ in scheduled],
        )
        return dispatched

    async def entity_saved(self, context: SaveContext) -> None:
        """Run work deferred until after the host write."""
        if context.suppress_pipeline:
            return
        deferred = [strategy for strategy in self.strategies.values() if isinstance(strategy, DeferredCapable)]
        # Queue-backed strategies drain last so they see every failure of this save
        deferred.sort(key=lambda strategy: isinstance(strategy, ImportCapable))
        for strategy in deferred:
            await strategy.drain(context)

    # =========================================================================
    # DECISIONS
    # =========================================================================

    def strategy_for(self, config: InterpolationConfig) -> ProcessingStrategy:
        """Strategy for a config; unknown or unavailable worker types run directly."""
        return self.strategies.get(config.worker, self.strategies[WorkerType.DIRECT])

    def _mutate_config(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> InterpolationConfig:
        if not self.config_mutators:
            return config
        config = config.copy()
        for mutator in self.config_mutators:
            config = mutator.mutate(entity, field_definition, config)
        return config

    def should_process(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> bool:
        """Whether a field should be (re)generated in this save."""
        decision = combine_schedule_decisions(
            decider.decide(entity, field_definition, config) for decider in self.schedule_deciders
        )
        if decision is ScheduleDecision.FORCE_SKIP:
            return False
        if decision is ScheduleDecision.FORCE_PROCESS:
            return True

        if config.interpolation_mode is InterpolationMode.TOKEN:
            return self.token_should_save(entity, field_definition)
        return self.base_should_save(entity, field_definition, config)

    def _target_is_empty(self, entity: Entity, field_definition: FieldDefinition, config: InterpolationConfig) -> bool:
        rule = self.registry.find_rule(config.rule)
        items = entity.get(field_definition.name)
        if rule is not None:
            items = rule.check_if_empty(items)
        return not items

    def base_should_save(
        self,
        entity: Entity,
        field_definition: FieldDefinition,
        config: InterpolationConfig,
    ) -> bool:
        """
        Base mode: run when the target is empty, or in edit mode when the
        source field changed compared with the stored entity.
        """
        if self._target_is_empty(entity, field_definition, config):
            return True
        if config.edit_mode:
            return entity.get(config.base_field) != entity.get_original(config.base_field)
        return False

    def token_should_save(self, entity: Entity, field_definition: FieldDefinition) -> bool:
        """Token mode: run only when the target is empty."""
        return not entity.get(field_definition.name)
