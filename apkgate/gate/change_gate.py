"""
Decides whether a set of changed paths warrants an Android build.
"""
import logging
from typing import Iterable, Optional, Set, Union

from ..core.models import BuildDecision, ChangeEvent
from ..core.enums import EventType
from .rules import PathRuleSet

logger = logging.getLogger(__name__)


def evaluate(paths: Iterable[str], rule_set: Union[PathRuleSet, Iterable[str]]) -> BuildDecision:
    """
    Match changed paths against the rule set.

    Pure and total: an empty path set never builds, and any path matching
    any rule builds with that rule recorded in ``matched_rules``.
    """
    if not isinstance(rule_set, PathRuleSet):
        rule_set = PathRuleSet(rule_set)

    matched: Set[str] = set()
    for path in paths:
        for rule in rule_set:
            if rule.pattern in matched:
                continue
            if rule.matches(path):
                matched.add(rule.pattern)

    return BuildDecision(should_build=bool(matched), matched_rules=frozenset(matched))


class ChangeGate:
    """Evaluates change events against a static rule set"""

    def __init__(self, rule_set: Optional[PathRuleSet] = None):
        self.rule_set = rule_set if rule_set is not None else PathRuleSet.default()
        self.logger = logging.getLogger(__name__)

    def evaluate(
        self,
        paths: Iterable[str],
        rule_set: Optional[PathRuleSet] = None
    ) -> BuildDecision:
        paths = list(paths)
        decision = evaluate(paths, rule_set if rule_set is not None else self.rule_set)

        if decision.should_build:
            self.logger.info(
                f"Relevant changes detected: {len(paths)} paths, "
                f"matched rules={sorted(decision.matched_rules)}"
            )
        else:
            self.logger.info(f"No relevant changes in {len(paths)} paths, skipping build")
        return decision

    def evaluate_event(self, event: ChangeEvent) -> BuildDecision:
        """
        Evaluate an event. Manual triggers always build since the operator
        asked for it explicitly.
        """
        if event.event_type == EventType.MANUAL:
            decision = self.evaluate(event.changed_paths)
            if not decision.should_build:
                self.logger.info("Manual trigger, building regardless of changed paths")
            return BuildDecision(should_build=True, matched_rules=decision.matched_rules)
        return self.evaluate(event.changed_paths)
