"""
Per-unit outcomes of a rule evaluation.

Every evaluation unit (a row, or the whole dataset) receives exactly one
Outcome: pass, fail, na (cannot be determined because input is missing)
or error (the rule could not be evaluated at all).
"""

from dataclasses import dataclass
from enum import Enum
from typing import Optional


class Status(str, Enum):
    PASS = 'pass'
    FAIL = 'fail'
    NA = 'na'
    ERROR = 'error'


@dataclass(frozen=True)
class Outcome:
    status: Status
    message: Optional[str] = None

    @classmethod
    def error(cls, message: str) -> 'Outcome':
        return cls(Status.ERROR, message)

    @classmethod
    def of(cls, passed: bool) -> 'Outcome':
        """PASS or FAIL from a plain boolean."""
        return PASS if passed else FAIL

    @property
    def is_pass(self) -> bool:
        return self.status == Status.PASS

    @property
    def is_fail(self) -> bool:
        return self.status == Status.FAIL

    @property
    def is_na(self) -> bool:
        return self.status == Status.NA

    @property
    def is_error(self) -> bool:
        return self.status == Status.ERROR

    def __str__(self) -> str:
        if self.message:
            return f"{self.status.value}({self.message})"
        return self.status.value


PASS = Outcome(Status.PASS)
FAIL = Outcome(Status.FAIL)
NA = Outcome(Status.NA)
