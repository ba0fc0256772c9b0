"""
Rule registry.

Holds the catalog of generation rules, registered explicitly at startup,
and answers "which rules can fill this field" and "which rule has this id".
"""

from typing import Dict, List, Optional

from ai_interpolator.core.hooks import RuleVisibility, RuleVisibilityDecider, combine_visibility
from ai_interpolator.models import Entity, FieldDefinition
from ai_interpolator.rules.base import FieldRule, FieldRuleDescriptor


class RuleRegistry:
    """
    Catalog of field rules.

    Candidates are filtered by exact field type and, for reference fields,
    exact target type. Visibility deciders may hide or force-show a
    candidate; hidden always wins.
    """

    def __init__(self, visibility_deciders: Optional[List[RuleVisibilityDecider]] = None):
        self._rules: Dict[str, FieldRule] = {}
        self.visibility_deciders = list(visibility_deciders or [])

    def register(self, rule: FieldRule) -> FieldRule:
        """
        Register a rule.

        Raises:
            ValueError: If a rule with the same id already exists
        """
        if not rule.id:
            raise ValueError(f"{rule.__class__.__name__} has no id")
        if rule.id in self._rules:
            raise ValueError(f"Rule '{rule.id}' is already registered")
        self._rules[rule.id] = rule
        return rule

    def add_visibility_decider(self, decider: RuleVisibilityDecider) -> None:
        self.visibility_deciders.append(decider)

    def find_rule(self, rule_id: str) -> Optional[FieldRule]:
        return self._rules.get(rule_id)

    def get_descriptor(self, rule_id: str) -> Optional[FieldRuleDescriptor]:
        rule = self._rules.get(rule_id)
        return rule.descriptor if rule is not None else None

    def find_candidates(self, entity: Entity, field_definition: FieldDefinition) -> Dict[str, FieldRule]:
        """Rules that may fill the field, in registration order."""
        candidates: Dict[str, FieldRule] = {}
        for rule_id, rule in self._rules.items():
            if not rule.descriptor.matches(field_definition.type, field_definition.target_type):
                continue
            visibility = combine_visibility(
                decider.decide(entity, field_definition, rule_id)
                for decider in self.visibility_deciders
            )
            if visibility is RuleVisibility.FORCE_HIDDEN:
                continue
            if visibility is RuleVisibility.FORCE_VISIBLE or rule.rule_is_allowed(entity, field_definition):
                candidates[rule_id] = rule
        return candidates

    def has(self, rule_id: str) -> bool:
        return rule_id in self._rules

    def list_rules(self) -> List[str]:
        return list(self._rules.keys())

    def __len__(self) -> int:
        return len(self._rules)

    def __contains__(self, rule_id: str) -> bool:
        return rule_id in self._rules
