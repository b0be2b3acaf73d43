"""
cdvalidate: declarative rule validation for clinical datasets.

Declare named rules, confront a dataset with them, and inspect which
rows pass, fail, cannot be evaluated (na) or errored.
"""

from .dataset import MISSING, Column, ColumnKind, Dataset, is_missing
from .errors import (
    DuplicateRuleNameError,
    InconsistentColumnLengthError,
    MissingReferenceError,
    UnknownColumnError,
    UnknownRuleError,
    UnparsableRuleError,
    ValidationError,
)
from .outcomes import FAIL, NA, PASS, Outcome, Status
from .parser import parse_rule
from .report import Result, RuleResult, RuleSummary
from .rules import (
    AllComplete,
    AllUnique,
    Conditional,
    ContainsExactly,
    InCodelist,
    Inequality,
    InLinearSequence,
    InRange,
    IsUniqueKey,
    NotMissing,
    Rule,
    Scope,
    TypeIs,
)
from .ruleset import RuleSet
from .validator import confront

__version__ = '0.1.0'

__all__ = [
    'MISSING',
    'Column',
    'ColumnKind',
    'Dataset',
    'is_missing',
    'ValidationError',
    'UnknownColumnError',
    'InconsistentColumnLengthError',
    'UnknownRuleError',
    'DuplicateRuleNameError',
    'UnparsableRuleError',
    'MissingReferenceError',
    'Outcome',
    'Status',
    'PASS',
    'FAIL',
    'NA',
    'Rule',
    'Scope',
    'TypeIs',
    'NotMissing',
    'AllComplete',
    'InRange',
    'InCodelist',
    'Inequality',
    'Conditional',
    'IsUniqueKey',
    'AllUnique',
    'InLinearSequence',
    'ContainsExactly',
    'RuleSet',
    'parse_rule',
    'confront',
    'Result',
    'RuleResult',
    'RuleSummary',
]
