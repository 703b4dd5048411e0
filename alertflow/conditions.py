"""Threshold comparisons used to decide whether an alert fires."""

from __future__ import annotations

import logging
import operator
from dataclasses import dataclass
from typing import Callable

logger = logging.getLogger(__name__)

_OPERATORS: dict[str, Callable[[float, float], bool]] = {
    ">": operator.gt,
    ">=": operator.ge,
    "<": operator.lt,
    "<=": operator.le,
    "==": operator.eq,
    "!=": operator.ne,
}


@dataclass(frozen=True)
class EvalCondition:
    """A comparison of a queried value against an expected value."""

    operator: str
    query_value: float
    expected_value: float
    type: str = ""

    def holds(self) -> bool:
        """True when the comparison is satisfied; unknown operators never hold."""
        compare = _OPERATORS.get(self.operator)
        if compare is None:
            logger.error(
                "invalid evaluation condition: type=%s operator=%r expected=%s",
                self.type,
                self.operator,
                self.expected_value,
            )
            return False
        return compare(self.query_value, self.expected_value)


def evaluate(operator: str, query_value: float, expected_value: float) -> bool:
    """Evaluate ``query_value <operator> expected_value``."""
    return EvalCondition(operator, query_value, expected_value).holds()