"""Conditions and rules matched against property maps."""

from dataclasses import dataclass
from typing import Dict, FrozenSet, List, Mapping, Tuple

from workflow.action_request import ActionRequest

NEGATION = '!'


@dataclass(frozen=True)
class Condition:
    """A test on one property.

    The property value is split on whitespace; the condition holds when any token is
    one of `values` (or, when negated, when none is).
    """

    key: str
    values: FrozenSet[str]
    negated: bool = False

    @classmethod
    def create(cls, key: str, spec: str) -> 'Condition':
        """Parse a comma separated value spec. A leading `!` token negates the condition."""
        tokens = [t.strip() for t in (spec or '').split(',')]
        negated = bool(tokens) and tokens[0] == NEGATION
        if negated:
            tokens = tokens[1:]
        return cls(key, frozenset(t for t in tokens if t), negated)

    def is_met_by(self, properties: Mapping[str, str]) -> bool:
        tokens = set((properties.get(self.key) or '').split())
        hit = not tokens.isdisjoint(self.values)
        return hit != self.negated

    def __str__(self):
        spec = ','.join(sorted(self.values))
        return f"{self.key} = {'!,' if self.negated else ''}{spec}"


@dataclass(frozen=True)
class Rule:
    """Named conjunction of conditions carrying the actions to run when all of them hold."""

    name: str
    conditions: Tuple[Condition, ...] = ()
    action_requests: Tuple[ActionRequest, ...] = ()

    def matches(self, properties: Mapping[str, str]) -> bool:
        return all(condition.is_met_by(properties) for condition in self.conditions)

    def action_requests_for(self, properties: Mapping[str, str]) -> List[ActionRequest]:
        if self.matches(properties):
            return list(self.action_requests)
        return []


def match_rules(rules, properties: Dict[str, str]) -> List[ActionRequest]:
    """Concatenate the action requests of every matching rule, in rule order."""
    ret: List[ActionRequest] = []
    for rule in rules:
        ret.extend(rule.action_requests_for(properties))
    return ret
