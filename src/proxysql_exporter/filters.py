"""Query digest filter compiler

Turns operator supplied LIKE patterns into the boolean fragment appended to
the query digest ``where`` clause.

Patterns are spliced into the SQL verbatim: they are expected to carry their
own quotes (``'%select%'``) and are not escaped. Only trusted operators should
be able to set them.
"""

from __future__ import annotations

from collections.abc import Sequence
from enum import Enum

from proxysql_exporter.exceptions import ConfigurationError

FILTER_COLUMN = "digest_text"


class FilterMode(Enum):
    """Whether the patterns select or reject digests"""

    INCLUDE = "include"
    EXCLUDE = "exclude"


def compile_filter(patterns: Sequence[str], mode: FilterMode) -> str:
    """Compile a pattern list into a predicate fragment

    Include patterns are OR-ed together, exclude patterns are negated and
    AND-ed so a digest must miss every one of them.

    Args:
        patterns: LIKE operands in the order they were configured
        mode: include or exclude

    Returns:
        ``""`` for an empty list, otherwise ``"and (...)"``

    Raises:
        ConfigurationError: if any pattern is empty after trimming
    """
    if not patterns:
        return ""

    if mode is FilterMode.INCLUDE:
        operator, union = "like", " or "
    else:
        operator, union = "not like", " and "

    clauses = []
    for index, pattern in enumerate(patterns):
        operand = pattern.strip()
        if not operand:
            raise ConfigurationError(f"Pattern number {index} of the {mode.value} list is empty")
        clauses.append(f"{FILTER_COLUMN} {operator} {operand}")

    return f"and ({union.join(clauses)})"


def build_where_clause(include: Sequence[str], exclude: Sequence[str]) -> str:
    """Build the full ``where`` clause, include fragment first

    The ``(1=1)`` base keeps the clause valid when both lists are empty.
    """
    fragments = [
        compile_filter(include, FilterMode.INCLUDE),
        compile_filter(exclude, FilterMode.EXCLUDE),
    ]
    return " ".join(["where (1=1)", *(f for f in fragments if f)])
