"""Tagged condition variants for WHERE clauses.

A condition set may be written as a mapping (the common case) or as a
sequence of Condition objects:

    {"id": 5}                      -> Equals("id", 5)
    {"id": [1, 2]}                 -> Comparison("id", IN, (1, 2))
    {"deleted_at": None}           -> Comparison("deleted_at", IS, None)
    {"id": gte(20)}                -> Comparison("id", GTE, 20)
    {0: "a.state = b.state"}       -> Raw("a.state = b.state")

to_conditions() performs that translation once, so the query assembler
and the condition compiler never inspect raw values again.
"""

from collections.abc import Iterable, Mapping
from dataclasses import dataclass, replace
from typing import Any

from tablemapper.contracts.enums import ComparisonOperator
from tablemapper.contracts.errors import InputShapeError

_SEQUENCE_TYPES = (list, tuple, set, frozenset)


@dataclass(frozen=True)
class Equals:
    """column = value"""

    column: str
    value: Any


@dataclass(frozen=True)
class Comparison:
    """column <operator> value.

    `column` may be None while the comparison is still a bare mapping value;
    to_conditions() binds it to the mapping key.
    """

    operator: ComparisonOperator
    value: Any
    column: str | None = None

    def bind(self, column: str) -> "Comparison":
        return replace(self, column=column)


@dataclass(frozen=True)
class Raw:
    """A boolean SQL expression appended verbatim. Never qualified."""

    expression: str


Condition = Equals | Comparison | Raw


def gt(value: Any, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.GT, value, column)


def gte(value: Any, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.GTE, value, column)


def lt(value: Any, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.LT, value, column)


def lte(value: Any, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.LTE, value, column)


def neq(value: Any, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.NEQ, value, column)


def like(value: str, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.LIKE, value, column)


def not_like(value: str, column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.NOT_LIKE, value, column)


def in_(values: Iterable[Any], column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.IN, tuple(values), column)


def not_in(values: Iterable[Any], column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.NOT_IN, tuple(values), column)


def is_null(column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.IS, None, column)


def is_not_null(column: str | None = None) -> Comparison:
    return Comparison(ComparisonOperator.IS_NOT, None, column)


def _from_item(key: Any, value: Any) -> Condition:
    if isinstance(value, Raw | Equals):
        return value

    if isinstance(key, int):
        # Positional keys carry self-contained conditions
        if isinstance(value, str):
            return Raw(value)
        if isinstance(value, Comparison) and value.column is not None:
            return value
        raise InputShapeError(f"Positional condition {key} must be a raw string or a bound Comparison, got {value!r}")

    if not isinstance(key, str):
        raise InputShapeError(f"Condition column must be a string, got {type(key).__name__}: {key!r}")

    if isinstance(value, Comparison):
        return value if value.column is not None else value.bind(key)
    if value is None:
        return Comparison(ComparisonOperator.IS, None, key)
    if isinstance(value, _SEQUENCE_TYPES):
        return Comparison(ComparisonOperator.IN, tuple(value), key)
    return Equals(key, value)


def to_conditions(conditions: Mapping[Any, Any] | Iterable[Condition] | None) -> list[Condition]:
    """Translate a condition set into an ordered list of tagged conditions."""
    if conditions is None:
        return []
    if isinstance(conditions, Mapping):
        return [_from_item(key, value) for key, value in conditions.items()]

    result: list[Condition] = []
    for item in conditions:
        if isinstance(item, Comparison) and item.column is None:
            raise InputShapeError(f"Comparison in a condition list needs a column: {item!r}")
        if not isinstance(item, Equals | Comparison | Raw):
            raise InputShapeError(f"Condition list items must be Equals, Comparison or Raw, got {item!r}")
        result.append(item)
    return result


def condition_columns(conditions: Iterable[Condition]) -> list[str]:
    """Column references named by a condition list, in order. Raw entries are skipped."""
    columns: list[str] = []
    for condition in conditions:
        if isinstance(condition, Raw):
            continue
        if condition.column is not None and condition.column not in columns:
            columns.append(condition.column)
    return columns


def qualify(column: str, alias: str) -> str:
    """Prefix a bare column reference with `alias.`; qualified references pass through."""
    if "." in column:
        return column
    return f"{alias}.{column}"


def qualify_condition(condition: Condition, alias: str) -> Condition:
    if isinstance(condition, Raw):
        return condition
    if condition.column is None:
        return condition
    return replace(condition, column=qualify(condition.column, alias))
