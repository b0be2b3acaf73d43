"""
Core validation engine.

``confront`` evaluates every rule of a RuleSet against a Dataset and
collects the outcomes into a Result. A rule that raises while being
evaluated gets an ``error`` outcome on every unit; the remaining rules
are still evaluated.
"""

import logging
from concurrent.futures import ThreadPoolExecutor
from typing import Any, Iterable, Mapping, Optional, Union

import pandas as pd

from .dataset import Dataset
from .errors import MissingReferenceError
from .outcomes import Outcome
from .report import Result, RuleResult
from .rules import Rule
from .ruleset import RuleSet

logger = logging.getLogger(__name__)


def evaluate_rule(rule: Rule, dataset: Dataset, references: Mapping[str, Any]) -> RuleResult:
    """Evaluate one rule, turning any fault into error outcomes."""
    units = rule.unit_count(dataset)
    try:
        outcomes = rule.evaluate(dataset, references)
        if len(outcomes) != units:
            raise ValueError(f"produced {len(outcomes)} outcomes for {units} units")
    except Exception as exc:
        message = f"{type(exc).__name__}: {exc}"
        logger.warning(f"Rule {rule.name!r} could not be evaluated: {message}")
        outcomes = [Outcome.error(message)] * units

    return RuleResult(
        rule_name=rule.name,
        scope=rule.scope,
        expression=rule.expression(),
        outcomes=tuple(outcomes),
    )


def confront(
    dataset: Union[Dataset, pd.DataFrame],
    rules: Union[RuleSet, Iterable[Rule]],
    references: Optional[Mapping[str, Any]] = None,
    max_workers: int = 1,
    name: Optional[str] = None,
) -> Result:
    """
    Confront a dataset with a set of rules.

    Usage:
        from cdvalidate import confront, RuleSet, InRange

        result = confront(df, RuleSet([InRange('age', 18, 95)]))
        for row in result.summary():
            print(row.rule_name, row.fails)

    Args:
        dataset: Dataset, or a DataFrame to convert.
        rules: RuleSet, or an iterable of rules.
        references: Codelists and templates, by reference name.
        max_workers: Evaluate rules on this many threads. Results keep
            rule-set order either way.
        name: Result name. Defaults to the rule set's name.

    Raises:
        MissingReferenceError: If a rule needs a reference absent from
            ``references``.
    """
    if isinstance(dataset, pd.DataFrame):
        dataset = Dataset.from_frame(dataset)
    elif not isinstance(dataset, Dataset):
        raise TypeError(f"expected a Dataset or DataFrame, got {type(dataset).__name__}")
    if not isinstance(rules, RuleSet):
        rules = RuleSet(rules)
    references = dict(references or {})

    missing = [ref for ref in rules.required_references() if ref not in references]
    if missing:
        raise MissingReferenceError(missing)

    logger.debug(f"Confronting {dataset!r} with {rules!r}")
    if max_workers > 1 and len(rules) > 1:
        with ThreadPoolExecutor(max_workers=max_workers) as executor:
            results = list(executor.map(lambda rule: evaluate_rule(rule, dataset, references), rules))
    else:
        results = [evaluate_rule(rule, dataset, references) for rule in rules]

    result = Result(name=name or rules.name, dataset=dataset, results=tuple(results))
    logger.info(
        f"Confronted {dataset.row_count():,} rows with {len(rules)} rules: "
        f"{sum(r.passed for r in results)} passed, {len(result.failures)} with fails, "
        f"{len(result.errors())} with errors"
    )
    return result
