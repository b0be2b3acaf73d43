"""
Confrontation results.

A Result holds, for every rule in rule-set order, the outcomes aligned
to the rule's evaluation units, plus per-outcome counts. Results are
immutable and expose structured accessors only: summaries, per-rule
outcomes and the violating rows. Rendering is left to the caller.
"""

from dataclasses import dataclass
from typing import Any, Dict, List, Optional, Tuple

import pandas as pd

from .dataset import Dataset
from .errors import UnknownRuleError
from .outcomes import Outcome, Status
from .rules import Scope


@dataclass(frozen=True)
class RuleSummary:
    """Outcome counts for one rule."""
    rule_name: str
    units: int
    passes: int
    fails: int
    nas: int
    errors: int

    def to_dict(self) -> Dict[str, Any]:
        return {
            'rule_name': self.rule_name,
            'units': self.units,
            'passes': self.passes,
            'fails': self.fails,
            'nas': self.nas,
            'errors': self.errors,
        }


@dataclass(frozen=True)
class RuleResult:
    """Outcomes of a single rule, one per evaluation unit."""
    rule_name: str
    scope: Scope
    expression: str
    outcomes: Tuple[Outcome, ...]

    def count(self, status: Status) -> int:
        return sum(1 for o in self.outcomes if o.status == status)

    @property
    def units(self) -> int:
        return len(self.outcomes)

    @property
    def passes(self) -> int:
        return self.count(Status.PASS)

    @property
    def fails(self) -> int:
        return self.count(Status.FAIL)

    @property
    def nas(self) -> int:
        return self.count(Status.NA)

    @property
    def errors(self) -> int:
        return self.count(Status.ERROR)

    @property
    def passed(self) -> bool:
        """True if no unit failed or errored. ``na`` units do not count against a rule."""
        return self.fails == 0 and self.errors == 0

    @property
    def error_message(self) -> Optional[str]:
        return next((o.message for o in self.outcomes if o.is_error), None)

    def summary(self) -> RuleSummary:
        return RuleSummary(self.rule_name, self.units, self.passes, self.fails, self.nas, self.errors)


@dataclass(frozen=True)
class Result:
    """
    Structured output of one confrontation.

    Attributes:
        name: Name of the confronted rule set.
        dataset: The confronted dataset.
        results: One RuleResult per rule, in rule-set order.
    """
    name: str
    dataset: Dataset
    results: Tuple[RuleResult, ...]

    @property
    def rule_names(self) -> Tuple[str, ...]:
        return tuple(r.rule_name for r in self.results)

    @property
    def passed(self) -> bool:
        """True if every rule passed."""
        return all(r.passed for r in self.results)

    @property
    def failures(self) -> List[RuleResult]:
        """Only the rules with at least one failing unit."""
        return [r for r in self.results if r.fails > 0]

    def result_for(self, rule_name: str) -> RuleResult:
        for r in self.results:
            if r.rule_name == rule_name:
                return r
        raise UnknownRuleError(rule_name)

    def outcomes_for(self, rule_name: str) -> Tuple[Outcome, ...]:
        """Outcomes of one rule. Raises UnknownRuleError for unknown names."""
        return self.result_for(rule_name).outcomes

    def summary(self) -> List[RuleSummary]:
        """Per-rule outcome counts, in rule-set order."""
        return [r.summary() for r in self.results]

    def summary_frame(self) -> pd.DataFrame:
        """The summary as a DataFrame, one row per rule."""
        rows = []
        for r in self.results:
            row = r.summary().to_dict()
            row['expression'] = r.expression
            row['error'] = r.error_message
            rows.append(row)
        return pd.DataFrame(
            rows,
            columns=['rule_name', 'units', 'passes', 'fails', 'nas', 'errors', 'expression', 'error'],
        )

    def errors(self) -> Dict[str, str]:
        """Rule name -> error message, for rules that could not be evaluated."""
        return {r.rule_name: r.error_message for r in self.results if r.errors}

    def violating_row_indices(self, rule_name: Optional[str] = None) -> List[int]:
        """
        Row positions with at least one ``fail`` from a per-row rule.

        Whole-dataset rules report a single outcome and never mark rows.
        """
        if rule_name is not None:
            selected = [self.result_for(rule_name)]
        else:
            selected = list(self.results)
        rows = set()
        for r in selected:
            if not r.scope.per_row:
                continue
            rows.update(i for i, o in enumerate(r.outcomes) if o.is_fail)
        return sorted(rows)

    def violating_rows(self, rule_name: Optional[str] = None) -> Dataset:
        """The sub-dataset of rows that violate at least one rule (or ``rule_name``)."""
        return self.dataset.take(self.violating_row_indices(rule_name))

    def outcome_frame(self) -> pd.DataFrame:
        """Rows x per-row rules, each cell a status string."""
        return pd.DataFrame(
            {r.rule_name: [o.status.value for o in r.outcomes] for r in self.results if r.scope.per_row},
            index=range(self.dataset.row_count()),
        )

    def to_dict(self) -> Dict[str, Any]:
        """Serialize the full result to a dictionary."""
        return {
            'name': self.name,
            'passed': self.passed,
            'summary': {
                'total_rules': len(self.results),
                'rules_passed': sum(1 for r in self.results if r.passed),
                'rows_checked': self.dataset.row_count(),
                'columns_checked': len(self.dataset.column_names()),
            },
            'results': [
                dict(
                    r.summary().to_dict(),
                    expression=r.expression,
                    scope=r.scope.value,
                    error=r.error_message,
                )
                for r in self.results
            ],
        }
