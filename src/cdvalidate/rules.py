"""
Validation rule definitions.

Each rule is a named, declarative check over one or more columns of a
Dataset. A rule belongs to one of four scopes, fixed by its class:

- ROW:      one outcome per row, each row checked on its own.
- GROUP:    rows are partitioned by equal key values and checked as a
            unit; one outcome per row.
- DATASET:  one single outcome for the whole dataset.
- TEMPLATE: each group's key tuples are compared with a reference
            template; one outcome per row.

Row-wise checks use three-valued logic: a missing input yields ``na``,
never ``pass`` or ``fail``.

Usage:
    rule = InRange('age', 18, 95)
    rule.evaluate(dataset)        # -> [FAIL, PASS, NA]
"""

import keyword
import numbers
import operator
from abc import ABCMeta, abstractmethod
from collections import Counter
from enum import Enum
from typing import Any, Callable, Dict, List, Mapping, Optional, Sequence, Tuple, Union

import pandas as pd

from .dataset import MISSING, ColumnKind, Dataset, normalize_cell, value_has_kind
from .errors import MissingReferenceError
from .outcomes import FAIL, NA, PASS, Outcome

Columns = Union[None, str, Sequence[str]]
References = Optional[Mapping[str, Any]]


class Scope(str, Enum):
    ROW = 'row'
    GROUP = 'group'
    DATASET = 'dataset'
    TEMPLATE = 'template'

    @property
    def per_row(self) -> bool:
        """True if the scope reports one outcome per dataset row."""
        return self != Scope.DATASET


def require_name(value: Any, role: str = 'column') -> str:
    """Return ``value`` if it is a usable column or reference name."""
    if not isinstance(value, str):
        raise TypeError(f"{role} name must be a string, got {value!r}")
    return value


def as_names(columns: Columns) -> Tuple[str, ...]:
    if columns is None:
        return ()
    if isinstance(columns, str):
        return (columns,)
    return tuple(require_name(c) for c in columns)


def _bound(value: Any, role: str) -> Any:
    value = normalize_cell(value)
    if value is MISSING:
        return None
    if not (value_has_kind(value, ColumnKind.NUMERIC) or value_has_kind(value, ColumnKind.DATE)):
        raise TypeError(f"{role} must be a number or a date, got {value!r}")
    return value


def _sequence_bound(value: Any, role: str) -> Optional[int]:
    if value is None:
        return None
    value = normalize_cell(value)
    if isinstance(value, bool) or not isinstance(value, numbers.Integral):
        raise TypeError(f"{role} must be an integer, got {value!r}")
    return int(value)


def group_rows(dataset: Dataset, by: Sequence[str]) -> Dict[Tuple[Any, ...], List[int]]:
    """
    Partition row indices by equal values of the ``by`` columns.

    Groups appear in first-seen order. With no ``by`` columns the whole
    dataset is one group.
    """
    groups: Dict[Tuple[Any, ...], List[int]] = {}
    for i, key in enumerate(dataset.key_tuples(by)):
        groups.setdefault(key, []).append(i)
    return groups


def _render_column(name: str) -> str:
    if name.isidentifier() and not keyword.iskeyword(name):
        return name
    return repr(name)


def _render_columns(names: Sequence[str]) -> str:
    if len(names) == 1:
        return _render_column(names[0])
    return '[' + ', '.join(_render_column(n) for n in names) + ']'


class _FrozenAfterInit(ABCMeta):

    def __call__(cls, *args, **kwargs):
        obj = super().__call__(*args, **kwargs)
        object.__setattr__(obj, '_frozen', True)
        return obj


class Rule(metaclass=_FrozenAfterInit):
    """
    Base class for all validation rules.

    Subclasses set ``predicate`` (the name used in rule expressions) and
    ``scope``, and implement ``evaluate``. Rules cannot be modified once
    constructed.
    """

    predicate: str = ''
    scope: Scope = Scope.ROW

    def __init__(self, name: Optional[str] = None, description: str = ''):
        self.name = name or self.predicate
        self.description = description
        self.reference: Optional[str] = None
        self.by: Tuple[str, ...] = ()

    def __setattr__(self, key, value):
        if getattr(self, '_frozen', False):
            raise AttributeError(f"{type(self).__name__} is immutable")
        super().__setattr__(key, value)

    @property
    @abstractmethod
    def columns(self) -> Tuple[str, ...]:
        """Every column this rule reads, grouping columns included."""

    @abstractmethod
    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        """Run this rule against a Dataset and return its outcomes."""

    @abstractmethod
    def arguments(self) -> List[str]:
        """Rendered arguments of the rule expression."""

    def expression(self) -> str:
        """The rule in expression form, e.g. ``in_range(age, 18, 95)``."""
        return f"{self.predicate}({', '.join(self.arguments())})"

    def required_references(self) -> Tuple[str, ...]:
        return (self.reference,) if self.reference else ()

    def unit_count(self, dataset: Dataset) -> int:
        return dataset.row_count() if self.scope.per_row else 1

    def resolve_reference(self, references: References) -> Any:
        if self.reference is None:
            return None
        if not references or self.reference not in references:
            raise MissingReferenceError([self.reference])
        return references[self.reference]

    def _by_argument(self) -> List[str]:
        return [f"by={_render_columns(self.by)}"] if self.by else []

    def __eq__(self, other) -> bool:
        if type(self) is not type(other):
            return NotImplemented
        return vars(self) == vars(other)

    def __hash__(self):
        return hash((type(self).__name__, self.name))

    def __repr__(self) -> str:
        return f"{type(self).__name__}(name={self.name!r}, {self.expression()})"


# --- Row-wise rules -----------------------------------------------------------

class RowRule(Rule):
    """
    A predicate applied to each row independently.

    Subclasses implement ``check`` over the row's values for ``columns``.
    When ``missing_is_na`` is set, rows with any missing input get ``na``
    and ``check`` is never called for them.
    """

    scope = Scope.ROW
    missing_is_na = True

    @abstractmethod
    def check(self, values: Tuple[Any, ...], reference: Any) -> bool:
        ...

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        reference = self.resolve_reference(references)
        outcomes = []
        for values in dataset.key_tuples(self.columns):
            if self.missing_is_na and MISSING in values:
                outcomes.append(NA)
            else:
                outcomes.append(Outcome.of(self.check(values, reference)))
        return outcomes


class TypeIs(RowRule):
    """
    Check that each value is of the given kind.

    Args:
        column: Column to check.
        kind: One of numeric, text, date, logical.
    """

    predicate = 'type_is'
    KINDS = (ColumnKind.NUMERIC, ColumnKind.TEXT, ColumnKind.DATE, ColumnKind.LOGICAL)

    def __init__(self, column: str, kind: Union[ColumnKind, str], name: Optional[str] = None, description: str = ''):
        require_name(column)
        kind = ColumnKind(kind)
        if kind not in self.KINDS:
            raise ValueError(f"type_is supports {', '.join(k.value for k in self.KINDS)}, not {kind.value!r}")
        super().__init__(name or f"type_{column}", description)
        self.column = column
        self.kind = kind

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.column,)

    def check(self, values, reference) -> bool:
        return value_has_kind(values[0], self.kind)

    def arguments(self) -> List[str]:
        return [_render_column(self.column), self.kind.value]


class NotMissing(RowRule):
    """Check that a column has a value on every row."""

    predicate = 'not_missing'
    missing_is_na = False

    def __init__(self, column: str, name: Optional[str] = None, description: str = ''):
        require_name(column)
        super().__init__(name or f"not_missing_{column}", description)
        self.column = column

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.column,)

    def check(self, values, reference) -> bool:
        return values[0] is not MISSING

    def arguments(self) -> List[str]:
        return [_render_column(self.column)]


class AllComplete(RowRule):
    """Check that every listed column has a value on the row."""

    predicate = 'all_complete'
    missing_is_na = False

    def __init__(self, *columns: str, name: Optional[str] = None, description: str = ''):
        if not columns:
            raise ValueError("all_complete needs at least one column")
        columns = as_names(columns)
        super().__init__(name or f"complete_{'_'.join(columns)}", description)
        self._columns = tuple(columns)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    def check(self, values, reference) -> bool:
        return MISSING not in values

    def arguments(self) -> List[str]:
        return [_render_column(c) for c in self._columns]


class InRange(RowRule):
    """
    Check that values fall within an expected range.

    Args:
        column: Column to validate.
        min_val: Lower bound (inclusive). None to skip.
        max_val: Upper bound (inclusive). None to skip.
        strict: Make both bounds exclusive.
    """

    predicate = 'in_range'

    def __init__(
        self,
        column: str,
        min_val: Any = None,
        max_val: Any = None,
        strict: bool = False,
        name: Optional[str] = None,
        description: str = '',
    ):
        require_name(column)
        min_val = _bound(min_val, 'min_val')
        max_val = _bound(max_val, 'max_val')
        if not isinstance(strict, bool):
            raise TypeError(f"strict must be True or False, got {strict!r}")
        if min_val is None and max_val is None:
            raise ValueError("in_range needs at least one bound")
        super().__init__(name or f"range_{column}", description)
        self.column = column
        self.min_val = min_val
        self.max_val = max_val
        self.strict = strict

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.column,)

    def check(self, values, reference) -> bool:
        value = values[0]
        below = operator.le if self.strict else operator.lt
        if self.min_val is not None and below(value, self.min_val):
            return False
        if self.max_val is not None and below(self.max_val, value):
            return False
        return True

    def arguments(self) -> List[str]:
        args = [_render_column(self.column), repr(self.min_val), repr(self.max_val)]
        if self.strict:
            args.append('strict=True')
        return args


class InCodelist(RowRule):
    """
    Check that values belong to a codelist supplied as a reference.

    Args:
        column: Column to validate.
        reference: Name of the codelist in the reference bundle.
    """

    predicate = 'in_codelist'

    def __init__(self, column: str, reference: str, name: Optional[str] = None, description: str = ''):
        require_name(column)
        require_name(reference, 'reference')
        super().__init__(name or f"codelist_{column}", description)
        self.column = column
        self.reference = reference

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.column,)

    def resolve_reference(self, references: References) -> Any:
        codelist = super().resolve_reference(references)
        if isinstance(codelist, (pd.Series, pd.Index)):
            codelist = codelist.tolist()
        if isinstance(codelist, (str, bytes)) or not hasattr(codelist, '__iter__'):
            raise TypeError(f"reference {self.reference!r} is not a codelist")
        values = [normalize_cell(v) for v in codelist]
        try:
            return frozenset(values)
        except TypeError:
            return values

    def check(self, values, reference) -> bool:
        return values[0] in reference

    def arguments(self) -> List[str]:
        return [_render_column(self.column), _render_column(self.reference)]


class Inequality(RowRule):
    """
    Compare two columns of the same row.

    Args:
        left: Left-hand column.
        op: One of <, <=, >, >=, ==, !=.
        right: Right-hand column.
    """

    predicate = 'inequality'
    OPERATORS: Dict[str, Callable[[Any, Any], bool]] = {
        '<': operator.lt,
        '<=': operator.le,
        '>': operator.gt,
        '>=': operator.ge,
        '==': operator.eq,
        '!=': operator.ne,
    }

    def __init__(self, left: str, op: str, right: str, name: Optional[str] = None, description: str = ''):
        require_name(left)
        require_name(right)
        if op not in self.OPERATORS:
            raise ValueError(f"unknown operator {op!r}; expected one of {', '.join(self.OPERATORS)}")
        super().__init__(name or f"{left}_{op}_{right}", description)
        self.left = left
        self.op = op
        self.right = right

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.left, self.right)

    def check(self, values, reference) -> bool:
        return bool(self.OPERATORS[self.op](values[0], values[1]))

    def arguments(self) -> List[str]:
        return [_render_column(self.left), repr(self.op), _render_column(self.right)]


class Conditional(RowRule):
    """
    Apply a row-wise rule only to rows where ``column == value``.

    Rows where the condition is false pass. Rows where the condition
    cell is missing are ``na``; the consequent is not consulted for them.
    The consequent is evaluated on the matching rows alone, so cells of
    other rows never reach it.

    Args:
        column: Condition column.
        value: Value that switches the consequent on.
        then: Row-wise rule to apply when the condition holds.
    """

    predicate = 'conditional'

    def __init__(self, column: str, value: Any, then: Rule, name: Optional[str] = None, description: str = ''):
        require_name(column)
        if not isinstance(then, Rule):
            raise TypeError(f"conditional consequent must be a rule, got {then!r}")
        if then.scope != Scope.ROW:
            raise ValueError(f"conditional consequent must be row-wise, got {then.scope.value}")
        super().__init__(name or f"if_{column}_{then.name}", description)
        self.column = column
        self.value = value
        self.then = then

    @property
    def columns(self) -> Tuple[str, ...]:
        return (self.column,) + tuple(c for c in self.then.columns if c != self.column)

    def required_references(self) -> Tuple[str, ...]:
        return self.then.required_references()

    def check(self, values, reference) -> bool:
        return values[0] == self.value

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        outcomes = []
        active = []
        for i, cell in enumerate(dataset.column(self.column)):
            if cell is MISSING:
                outcomes.append(NA)
            elif self.check((cell,), None):
                outcomes.append(None)
                active.append(i)
            else:
                outcomes.append(PASS)
        # the consequent only sees rows where the condition holds
        consequent = self.then.evaluate(dataset.take(active), references)
        for i, outcome in zip(active, consequent):
            outcomes[i] = outcome
        return outcomes

    def arguments(self) -> List[str]:
        return [_render_column(self.column), repr(self.value), self.then.expression()]


# --- Grouped and whole-dataset rules ------------------------------------------

class IsUniqueKey(Rule):
    """
    Flag every row whose key tuple occurs more than once.

    Args:
        *columns: Columns forming the key.
        by: Optional grouping columns; uniqueness is then checked within
            each group.

    Rows with a missing key cell are ``na`` and never count as duplicates.
    """

    predicate = 'is_unique_key'
    scope = Scope.GROUP

    def __init__(self, *columns: str, by: Columns = None, name: Optional[str] = None, description: str = ''):
        if not columns:
            raise ValueError("is_unique_key needs at least one key column")
        columns = as_names(columns)
        super().__init__(name or f"unique_{'_'.join(columns)}", description)
        self._columns = tuple(columns)
        self.by = as_names(by)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.by + self._columns

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        keys = dataset.key_tuples(self.columns)
        counts = Counter(k for k in keys if MISSING not in k)
        return [NA if MISSING in k else Outcome.of(counts[k] == 1) for k in keys]

    def arguments(self) -> List[str]:
        return [_render_column(c) for c in self._columns] + self._by_argument()


class AllUnique(Rule):
    """
    Single outcome: pass iff no key tuple occurs twice.

    Duplicates among complete keys fail. With no duplicates, any row
    with a missing key cell makes the outcome ``na``.
    """

    predicate = 'all_unique'
    scope = Scope.DATASET

    def __init__(self, *columns: str, name: Optional[str] = None, description: str = ''):
        if not columns:
            raise ValueError("all_unique needs at least one key column")
        columns = as_names(columns)
        super().__init__(name or f"all_unique_{'_'.join(columns)}", description)
        self._columns = tuple(columns)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self._columns

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        keys = dataset.key_tuples(self._columns)
        complete = [k for k in keys if MISSING not in k]
        if len(set(complete)) < len(complete):
            return [FAIL]
        if len(complete) < len(keys):
            return [NA]
        return [PASS]

    def arguments(self) -> List[str]:
        return [_render_column(c) for c in self._columns]


def _is_integral(value: Any) -> bool:
    if isinstance(value, bool) or not value_has_kind(value, ColumnKind.NUMERIC):
        return False
    return float(value).is_integer()


class InLinearSequence(Rule):
    """
    Check that each group covers a complete integer sequence.

    Within each group the set of present values must equal
    ``range(begin, end + 1)``. When ``begin`` or ``end`` is None the
    group's own minimum or maximum is used, so only gaps are detected.

    A value absent from the sequence has no row of its own, so every
    present row of an incomplete group fails. Rows whose value is
    missing are ``na``.
    """

    predicate = 'in_linear_sequence'
    scope = Scope.GROUP

    def __init__(
        self,
        column: str,
        begin: Optional[int] = None,
        end: Optional[int] = None,
        by: Columns = None,
        name: Optional[str] = None,
        description: str = '',
    ):
        require_name(column)
        begin = _sequence_bound(begin, 'begin')
        end = _sequence_bound(end, 'end')
        if begin is not None and end is not None and begin > end:
            raise ValueError(f"begin ({begin}) is greater than end ({end})")
        super().__init__(name or f"sequence_{column}", description)
        self.column = column
        self.begin = begin
        self.end = end
        self.by = as_names(by)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.by + (self.column,)

    def _is_complete(self, observed: List[Any]) -> bool:
        if not all(_is_integral(v) for v in observed):
            return False
        numbers = {int(v) for v in observed}
        begin = self.begin if self.begin is not None else min(numbers)
        end = self.end if self.end is not None else max(numbers)
        return numbers == set(range(begin, end + 1))

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        values = dataset.column(self.column)
        outcomes = [NA] * dataset.row_count()
        for rows in group_rows(dataset, self.by).values():
            present = [i for i in rows if values[i] is not MISSING]
            if not present:
                continue
            outcome = Outcome.of(self._is_complete([values[i] for i in present]))
            for i in present:
                outcomes[i] = outcome
        return outcomes

    def arguments(self) -> List[str]:
        return [_render_column(self.column), repr(self.begin), repr(self.end)] + self._by_argument()


class ContainsExactly(Rule):
    """
    Compare each group's key tuples with a reference template.

    The template is a sequence of key tuples (plain values for a single
    key column), or a Dataset/DataFrame whose columns are the keys. A
    group passes when its multiset of key tuples equals the template's;
    order is ignored, duplicate counts are not. Every row of a
    mismatching group fails.

    Args:
        by: Grouping columns (None or [] for the whole dataset).
        reference: Name of the template in the reference bundle.
        columns: Key columns. Defaults to the template's columns when
            the template is tabular.
    """

    predicate = 'contains_exactly'
    scope = Scope.TEMPLATE

    def __init__(
        self,
        by: Columns,
        reference: str,
        columns: Columns = None,
        name: Optional[str] = None,
        description: str = '',
    ):
        require_name(reference, 'reference')
        super().__init__(name or f"contains_exactly_{reference}", description)
        self.by = as_names(by)
        self.reference = reference
        self.key_columns = as_names(columns)

    @property
    def columns(self) -> Tuple[str, ...]:
        return self.by + self.key_columns

    def _template(self, references: References) -> Tuple[Tuple[str, ...], List[Tuple[Any, ...]]]:
        template = self.resolve_reference(references)
        if isinstance(template, pd.DataFrame):
            template = Dataset.from_frame(template)
        if isinstance(template, Dataset):
            names = self.key_columns or template.column_names()
            return names, template.key_tuples(names)
        if not self.key_columns:
            raise ValueError(f"template {self.reference!r} is not tabular; key columns are required")
        rows = []
        for entry in template:
            entry = entry if isinstance(entry, (tuple, list)) else (entry,)
            if len(entry) != len(self.key_columns):
                raise ValueError(f"template entry {entry!r} does not match key columns {self.key_columns}")
            rows.append(tuple(normalize_cell(v) for v in entry))
        return self.key_columns, rows

    def evaluate(self, dataset: Dataset, references: References = None) -> List[Outcome]:
        names, expected_rows = self._template(references)
        expected = Counter(expected_rows)
        keys = dataset.key_tuples(names)
        outcomes = [FAIL] * dataset.row_count()
        for rows in group_rows(dataset, self.by).values():
            outcome = Outcome.of(Counter(keys[i] for i in rows) == expected)
            for i in rows:
                outcomes[i] = outcome
        return outcomes

    def arguments(self) -> List[str]:
        args = [_render_columns(self.by) if self.by else '[]', _render_column(self.reference)]
        if self.key_columns:
            args.append(f"columns={_render_columns(self.key_columns)}")
        return args


BUILTIN_RULES: Dict[str, type] = {
    cls.predicate: cls
    for cls in (
        TypeIs,
        NotMissing,
        AllComplete,
        InRange,
        InCodelist,
        Inequality,
        Conditional,
        IsUniqueKey,
        AllUnique,
        InLinearSequence,
        ContainsExactly,
    )
}
