"""
Exception taxonomy for the validation engine.

Construction-time faults (malformed datasets, rule sets, rule
expressions, missing references) are raised to the caller. Faults
raised while a single rule is being evaluated are not exceptions at
the API surface: the evaluator turns them into ``error`` outcomes.
"""

from typing import Iterable, List


class ValidationError(Exception):
    """Base class for all engine errors."""


class UnknownColumnError(ValidationError, KeyError):
    """A column was requested that the dataset does not have."""

    def __init__(self, column: str):
        self.column = column
        super().__init__(f"unknown column {column!r}")

    def __str__(self) -> str:
        return self.args[0]


class InconsistentColumnLengthError(ValidationError, ValueError):
    """Dataset columns do not share a single row count."""

    def __init__(self, lengths: dict):
        self.lengths = dict(lengths)
        detail = ', '.join(f"{name}={n}" for name, n in self.lengths.items())
        super().__init__(f"columns differ in length: {detail}")


class UnknownRuleError(ValidationError, KeyError):
    """A rule name or index does not exist in the rule set."""

    def __init__(self, key):
        self.key = key
        super().__init__(f"unknown rule {key!r}")

    def __str__(self) -> str:
        return self.args[0]


class DuplicateRuleNameError(ValidationError, ValueError):
    """Two rules in one rule set share a name."""

    def __init__(self, names: Iterable[str]):
        self.names: List[str] = list(names)
        super().__init__(f"duplicate rule names: {', '.join(self.names)}")


class UnparsableRuleError(ValidationError, ValueError):
    """A rule expression could not be parsed against the predicate vocabulary."""

    def __init__(self, expression: str, reason: str):
        self.expression = expression
        self.reason = reason
        super().__init__(f"cannot parse rule {expression!r}: {reason}")


class MissingReferenceError(ValidationError, KeyError):
    """Rules name references that are absent from the reference bundle."""

    def __init__(self, names: Iterable[str]):
        self.names: List[str] = list(names)
        super().__init__(f"missing references: {', '.join(self.names)}")

    def __str__(self) -> str:
        return self.args[0]
