"""
Extension points for collaborators.

Collaborators plug into the pipeline through small typed objects passed
to EntityModifier, RuleRunner and RuleRegistry at construction time:

- ConfigMutator: rewrite a field's config before it is scheduled
- ScheduleDecider: force-process or force-skip a field
- ValueMutator: rewrite generated values before verification
- RuleVisibilityDecider: hide or force-show a rule for a field
"""

from abc import ABC, abstractmethod
from enum import Enum
from typing import TYPE_CHECKING, Any, Iterable, List

if TYPE_CHECKING:
    from ai_interpolator.models import Entity, FieldDefinition, InterpolationConfig


class ScheduleDecision(Enum):
    """Decision on whether a field should be (re)generated."""
    FORCE_PROCESS = "force_process"
    FORCE_SKIP = "force_skip"
    NEUTRAL = "neutral"


class RuleVisibility(Enum):
    """Decision on whether a rule is offered for a field."""
    FORCE_VISIBLE = "force_visible"
    FORCE_HIDDEN = "force_hidden"
    NEUTRAL = "neutral"


class ConfigMutator(ABC):
    """Rewrites the config of a field right before it is scheduled."""

    @abstractmethod
    def mutate(
        self,
        entity: "Entity",
        field_definition: "FieldDefinition",
        config: "InterpolationConfig",
    ) -> "InterpolationConfig":
        """Return the config to use. ``config`` is already a private copy."""


class ScheduleDecider(ABC):
    """Overrides the regular "should this field run" decision."""

    @abstractmethod
    def decide(
        self,
        entity: "Entity",
        field_definition: "FieldDefinition",
        config: "InterpolationConfig",
    ) -> ScheduleDecision:
        pass


class ValueMutator(ABC):
    """Rewrites generated values before they are verified."""

    @abstractmethod
    def mutate(
        self,
        entity: "Entity",
        field_definition: "FieldDefinition",
        config: "InterpolationConfig",
        values: List[Any],
    ) -> List[Any]:
        pass


class RuleVisibilityDecider(ABC):
    """Hides or force-shows a candidate rule for a field."""

    @abstractmethod
    def decide(
        self,
        entity: "Entity",
        field_definition: "FieldDefinition",
        rule_id: str,
    ) -> RuleVisibility:
        pass


def combine_schedule_decisions(decisions: Iterable[ScheduleDecision]) -> ScheduleDecision:
    """Force-skip wins over force-process; otherwise neutral."""
    decisions = list(decisions)
    if ScheduleDecision.FORCE_SKIP in decisions:
        return ScheduleDecision.FORCE_SKIP
    if ScheduleDecision.FORCE_PROCESS in decisions:
        return ScheduleDecision.FORCE_PROCESS
    return ScheduleDecision.NEUTRAL


def combine_visibility(decisions: Iterable[RuleVisibility]) -> RuleVisibility:
    """Force-hidden wins over force-visible; otherwise neutral."""
    decisions = list(decisions)
    if RuleVisibility.FORCE_HIDDEN in decisions:
        return RuleVisibility.FORCE_HIDDEN
    if RuleVisibility.FORCE_VISIBLE in decisions:
        return RuleVisibility.FORCE_VISIBLE
    return RuleVisibility.NEUTRAL
