"""
Immutable tabular dataset consumed by the validation engine.

A Dataset is an ordered set of named, typed columns that share one row
count. Missing cells hold the ``MISSING`` sentinel, which never compares
equal to a real value. Datasets are never mutated: ``with_column`` and
``take`` return new instances that share untouched columns.

Usage:
    ds = Dataset.from_frame(df)
    ds.column('age')        # -> (99, 40, MISSING)
    ds.get('age', 0)        # -> 99
"""

import datetime
import decimal
from dataclasses import dataclass
from enum import Enum
from typing import Any, Dict, Iterable, List, Mapping, Optional, Sequence, Tuple, Union

import numpy as np
import pandas as pd

from .errors import InconsistentColumnLengthError, UnknownColumnError


class _Missing:
    """Marker for a missing cell. Use the ``MISSING`` singleton."""

    _instance = None

    def __new__(cls):
        if cls._instance is None:
            cls._instance = super().__new__(cls)
        return cls._instance

    def __repr__(self) -> str:
        return 'MISSING'

    def __bool__(self) -> bool:
        return False

    def __reduce__(self):
        return (_Missing, ())


MISSING = _Missing()


def is_missing(value: Any) -> bool:
    return value is MISSING


def normalize_cell(value: Any) -> Any:
    """
    Map None, NaN, NaT and pd.NA to ``MISSING``; unwrap numpy scalars
    to plain Python values; leave other values untouched.
    """
    if value is None or value is MISSING:
        return MISSING
    if isinstance(value, (str, bool, int)):
        return value
    if isinstance(value, np.datetime64):
        value = pd.Timestamp(value)
    elif isinstance(value, np.generic):
        value = value.item()
    try:
        if pd.isna(value):
            return MISSING
    except (TypeError, ValueError):
        # array-like cells have no scalar truth value
        pass
    return value


class ColumnKind(str, Enum):
    NUMERIC = 'numeric'
    TEXT = 'text'
    DATE = 'date'
    CATEGORICAL = 'categorical'
    LOGICAL = 'logical'


def value_has_kind(value: Any, kind: ColumnKind) -> bool:
    """True if a single non-missing value is of the given kind."""
    if kind == ColumnKind.LOGICAL:
        return isinstance(value, bool)
    if kind == ColumnKind.NUMERIC:
        return isinstance(value, (int, float, decimal.Decimal)) and not isinstance(value, bool)
    if kind == ColumnKind.DATE:
        return isinstance(value, datetime.date)
    if kind == ColumnKind.TEXT:
        return isinstance(value, str)
    raise ValueError(f"no value-level test for kind {kind.value!r}")


def infer_kind(values: Iterable[Any]) -> ColumnKind:
    """Infer the kind of a column from its non-missing values (text by default)."""
    present = [v for v in values if v is not MISSING]
    if not present:
        return ColumnKind.TEXT
    for kind in (ColumnKind.LOGICAL, ColumnKind.NUMERIC, ColumnKind.DATE):
        if all(value_has_kind(v, kind) for v in present):
            return kind
    return ColumnKind.TEXT


@dataclass(frozen=True)
class Column:
    """A named sequence of cells with a declared kind."""
    name: str
    kind: ColumnKind
    values: Tuple[Any, ...]
    levels: Tuple[Any, ...] = ()

    def __post_init__(self):
        object.__setattr__(self, 'kind', ColumnKind(self.kind))
        object.__setattr__(self, 'values', tuple(normalize_cell(v) for v in self.values))
        object.__setattr__(self, 'levels', tuple(self.levels))

    def __len__(self) -> int:
        return len(self.values)


class Dataset:
    """
    Read-only view of tabular data.

    Args:
        columns: Column objects in display order. Names must be unique
            and every column must have the same length.

    Raises:
        InconsistentColumnLengthError: If the columns differ in length.
        ValueError: If two columns share a name.
    """

    def __init__(self, columns: Iterable[Column] = ()):
        cols = tuple(columns)
        self._columns: Dict[str, Column] = {}
        for col in cols:
            if col.name in self._columns:
                raise ValueError(f"duplicate column name {col.name!r}")
            self._columns[col.name] = col

        lengths = {c.name: len(c) for c in cols}
        if len(set(lengths.values())) > 1:
            raise InconsistentColumnLengthError(lengths)
        self._n = next(iter(lengths.values()), 0)

    # --- Constructors ---------------------------------------------------------

    @classmethod
    def from_columns(
        cls,
        data: Mapping[str, Sequence[Any]],
        kinds: Optional[Mapping[str, Union[ColumnKind, str]]] = None,
        levels: Optional[Mapping[str, Sequence[Any]]] = None,
    ) -> 'Dataset':
        """
        Build a Dataset from a mapping of column name to values.

        None and NaN cells become ``MISSING``. Kinds not listed in
        ``kinds`` are inferred from the values.
        """
        kinds = kinds or {}
        levels = levels or {}
        columns = []
        for name, raw in data.items():
            values = tuple(normalize_cell(v) for v in raw)
            kind = ColumnKind(kinds[name]) if name in kinds else infer_kind(values)
            if name in levels:
                kind = ColumnKind.CATEGORICAL
            columns.append(Column(name, kind, values, tuple(levels.get(name, ()))))
        return cls(columns)

    @classmethod
    def from_records(
        cls,
        records: Sequence[Mapping[str, Any]],
        columns: Optional[Sequence[str]] = None,
        kinds: Optional[Mapping[str, Union[ColumnKind, str]]] = None,
    ) -> 'Dataset':
        """Build a Dataset from row dictionaries; absent keys are missing cells."""
        if columns is None:
            columns = []
            for record in records:
                for key in record:
                    if key not in columns:
                        columns.append(key)
        data = {name: [record.get(name, MISSING) for record in records] for name in columns}
        return cls.from_columns(data, kinds=kinds)

    @classmethod
    def from_frame(
        cls,
        df: pd.DataFrame,
        kinds: Optional[Mapping[str, Union[ColumnKind, str]]] = None,
    ) -> 'Dataset':
        """
        Convert a pandas DataFrame.

        Kinds come from the column dtypes unless overridden. Pandas
        categoricals keep their categories as levels.
        """
        kinds = dict(kinds or {})
        columns = []
        for name in df.columns:
            series = df[name]
            values = tuple(normalize_cell(v) for v in series.tolist())
            col_levels: Tuple[Any, ...] = ()
            if isinstance(series.dtype, pd.CategoricalDtype):
                col_levels = tuple(series.cat.categories.tolist())
            if name in kinds:
                kind = ColumnKind(kinds[name])
            else:
                kind = _kind_from_dtype(series, values)
            columns.append(Column(str(name), kind, values, col_levels))
        return cls(columns)

    # --- Accessors ------------------------------------------------------------

    @property
    def columns(self) -> Tuple[Column, ...]:
        return tuple(self._columns.values())

    def column_names(self) -> Tuple[str, ...]:
        return tuple(self._columns)

    def row_count(self) -> int:
        return self._n

    def has_column(self, name: str) -> bool:
        return name in self._columns

    def _get_column(self, name: str) -> Column:
        try:
            return self._columns[name]
        except KeyError:
            raise UnknownColumnError(name) from None

    def column(self, name: str) -> Tuple[Any, ...]:
        """Return the cells of a column. Raises UnknownColumnError if absent."""
        return self._get_column(name).values

    def kind(self, name: str) -> ColumnKind:
        return self._get_column(name).kind

    def levels(self, name: str) -> Tuple[Any, ...]:
        return self._get_column(name).levels

    def get(self, column: str, row: int) -> Any:
        """Return one cell: a value or ``MISSING``."""
        values = self._get_column(column).values
        if not 0 <= row < self._n:
            raise IndexError(f"row {row} out of range for {self._n} rows")
        return values[row]

    def key_tuples(self, names: Sequence[str]) -> List[Tuple[Any, ...]]:
        """Per-row tuples of the named columns' cells."""
        cols = [self.column(n) for n in names]
        return list(zip(*cols)) if cols else [()] * self._n

    # --- Derivation -----------------------------------------------------------

    def with_column(
        self,
        name: str,
        values: Sequence[Any],
        kind: Optional[Union[ColumnKind, str]] = None,
        levels: Sequence[Any] = (),
    ) -> 'Dataset':
        """Return a new Dataset with ``name`` replaced, or appended if new."""
        cells = tuple(normalize_cell(v) for v in values)
        new_kind = ColumnKind(kind) if kind is not None else infer_kind(cells)
        new_col = Column(name, new_kind, cells, tuple(levels))
        columns = [new_col if c.name == name else c for c in self._columns.values()]
        if name not in self._columns:
            columns.append(new_col)
        return Dataset(columns)

    def take(self, rows: Sequence[int]) -> 'Dataset':
        """Return the sub-dataset made of the given row indices, in that order."""
        rows = list(rows)
        for i in rows:
            if not 0 <= i < self._n:
                raise IndexError(f"row {i} out of range for {self._n} rows")
        return Dataset(
            Column(c.name, c.kind, tuple(c.values[i] for i in rows), c.levels)
            for c in self._columns.values()
        )

    def to_frame(self) -> pd.DataFrame:
        """Convert to a pandas DataFrame; missing cells become None."""
        data = {}
        for col in self._columns.values():
            values = [None if v is MISSING else v for v in col.values]
            if col.kind == ColumnKind.CATEGORICAL and col.levels:
                data[col.name] = pd.Categorical(values, categories=list(col.levels))
            elif col.kind == ColumnKind.NUMERIC:
                data[col.name] = pd.Series(values, dtype=float if None in values else None)
            else:
                data[col.name] = pd.Series(values, dtype=object)
        return pd.DataFrame(data, columns=list(self._columns))

    # --- Dunder ---------------------------------------------------------------

    def __len__(self) -> int:
        return self._n

    def __eq__(self, other) -> bool:
        if not isinstance(other, Dataset):
            return NotImplemented
        return self.columns == other.columns

    def __hash__(self):
        return hash(self.columns)

    def __repr__(self) -> str:
        return f"Dataset({self._n} rows x {len(self._columns)} columns: {', '.join(self._columns)})"


def _kind_from_dtype(series: pd.Series, values: Tuple[Any, ...]) -> ColumnKind:
    dtype = series.dtype
    if isinstance(dtype, pd.CategoricalDtype):
        return ColumnKind.CATEGORICAL
    if pd.api.types.is_bool_dtype(dtype):
        return ColumnKind.LOGICAL
    if pd.api.types.is_numeric_dtype(dtype):
        return ColumnKind.NUMERIC
    if pd.api.types.is_datetime64_any_dtype(dtype):
        return ColumnKind.DATE
    return infer_kind(values)
