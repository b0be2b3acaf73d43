"""
Rule collections.

A RuleSet is an immutable, ordered, name-indexed collection of rules.
Composition (``subset``, ``union`` / ``+``) always returns a new
RuleSet, so standard rule libraries can be shared and extended across
studies without aliasing surprises.

Usage:
    rules = RuleSet([
        InRange('age', 18, 95, name='adult_age'),
        IsUniqueKey('pid', 'visit', name='one_record_per_visit'),
    ])
    rules = rules + RuleSet.from_table(rule_rows)
    rules.subset(['adult_age'])
"""

from typing import Any, Dict, Iterable, Iterator, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .dataset import MISSING, normalize_cell
from .errors import DuplicateRuleNameError, UnknownRuleError, UnparsableRuleError
from .parser import parse_rule
from .rules import Rule

RuleKey = Union[int, str]

EXPRESSION_FIELDS = ('rule', 'ruleExpression', 'expression')


def _text(value: Any) -> Optional[str]:
    """Cell of a rule table as stripped text; None for empty or missing cells."""
    if normalize_cell(value) is MISSING:
        return None
    text = str(value).strip()
    return text or None


class RuleSet:
    """
    An ordered collection of uniquely named rules.

    Args:
        rules: Rules in evaluation and reporting order.
        name: Label for this rule set.

    Raises:
        DuplicateRuleNameError: If two rules share a name.
    """

    def __init__(self, rules: Iterable[Rule] = (), name: str = 'default'):
        self.name = name
        self._rules: Dict[str, Rule] = {}
        duplicates: List[str] = []
        for rule in rules:
            if not isinstance(rule, Rule):
                raise TypeError(f"expected a Rule, got {type(rule).__name__}")
            if rule.name in self._rules:
                if rule.name not in duplicates:
                    duplicates.append(rule.name)
                continue
            self._rules[rule.name] = rule
        if duplicates:
            raise DuplicateRuleNameError(duplicates)

    @classmethod
    def from_table(cls, rows: Iterable[Mapping[str, Any]], name: str = 'default') -> 'RuleSet':
        """
        Build a RuleSet from already-loaded rule records.

        Each record needs a ``name`` and an expression under ``rule``
        (``ruleExpression`` and ``expression`` are accepted too), and may
        carry a ``description``.

        Raises:
            UnparsableRuleError: If an expression is missing or invalid.
            DuplicateRuleNameError: If two records share a name.
        """
        rules = []
        for i, row in enumerate(rows):
            expression = next((_text(row.get(f)) for f in EXPRESSION_FIELDS if _text(row.get(f))), None)
            if expression is None:
                raise UnparsableRuleError('', f"row {i} has no rule expression")
            rules.append(parse_rule(
                expression,
                name=_text(row.get('name')),
                description=_text(row.get('description')) or '',
            ))
        return cls(rules, name=name)

    @classmethod
    def from_frame(cls, df: pd.DataFrame, name: str = 'default') -> 'RuleSet':
        """Build a RuleSet from a rule table held in a DataFrame."""
        return cls.from_table(df.to_dict(orient='records'), name=name)

    # --- Composition ----------------------------------------------------------

    def subset(self, items: Union[RuleKey, Sequence[RuleKey]]) -> 'RuleSet':
        """
        Select rules by position and/or name.

        The result keeps this rule set's order, whatever the order of
        ``items``.

        Raises:
            UnknownRuleError: If a name is unknown or an index is out of range.
        """
        if isinstance(items, (int, str)):
            items = [items]
        wanted = {self[item].name for item in items}
        return RuleSet((r for r in self._rules.values() if r.name in wanted), name=self.name)

    def union(self, other: 'RuleSet') -> 'RuleSet':
        """
        All rules of this set followed by all rules of ``other``.

        Raises:
            DuplicateRuleNameError: Listing every name found in both sets.
        """
        shared = [n for n in other.names if n in self._rules]
        if shared:
            raise DuplicateRuleNameError(shared)
        return RuleSet(list(self) + list(other), name=self.name)

    def __add__(self, other: 'RuleSet') -> 'RuleSet':
        if not isinstance(other, RuleSet):
            return NotImplemented
        return self.union(other)

    # --- Accessors ------------------------------------------------------------

    @property
    def names(self) -> Tuple[str, ...]:
        return tuple(self._rules)

    def required_references(self) -> Tuple[str, ...]:
        """Reference names needed by any rule, in first-use order."""
        seen: Dict[str, None] = {}
        for rule in self._rules.values():
            for ref in rule.required_references():
                seen.setdefault(ref, None)
        return tuple(seen)

    def get(self, name: str) -> Optional[Rule]:
        return self._rules.get(name)

    def to_frame(self) -> pd.DataFrame:
        """One row per rule: name, expression, predicate, scope, columns, reference, description."""
        return pd.DataFrame(
            [
                {
                    'name': r.name,
                    'rule': r.expression(),
                    'predicate': r.predicate,
                    'scope': r.scope.value,
                    'columns': ', '.join(r.columns),
                    'reference': r.reference,
                    'description': r.description,
                }
                for r in self._rules.values()
            ],
            columns=['name', 'rule', 'predicate', 'scope', 'columns', 'reference', 'description'],
        )

    def __getitem__(self, key: RuleKey) -> Rule:
        if isinstance(key, bool):
            raise UnknownRuleError(key)
        if isinstance(key, int):
            rules = list(self._rules.values())
            if not -len(rules) <= key < len(rules):
                raise UnknownRuleError(key)
            return rules[key]
        if key not in self._rules:
            raise UnknownRuleError(key)
        return self._rules[key]

    def __contains__(self, name) -> bool:
        return name in self._rules

    def __iter__(self) -> Iterator[Rule]:
        return iter(self._rules.values())

    def __len__(self) -> int:
        return len(self._rules)

    def __eq__(self, other) -> bool:
        if not isinstance(other, RuleSet):
            return NotImplemented
        return list(self) == list(other)

    __hash__ = None

    def __repr__(self) -> str:
        return f"RuleSet({self.name!r}, {len(self)} rules: {', '.join(self.names)})"
