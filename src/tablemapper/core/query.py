# src/tablemapper/core/query.py
"""Query helpers built on SQLAlchemy Core.

- compile_conditions(): tagged conditions -> WHERE clauses
- parse_order() / qualify_order(): "col DESC" strings -> ORDER BY clauses
- JoinRegistry: the ordered set of tables a joined mapper reads from
- MapperQuery: the in-progress query a mapper accumulates between reads

Column references are bare names ("title") or alias-qualified
("a.title"). Bare names are rendered as quoted identifiers; qualified
names are validated and rendered as literal columns so that they never
drag an implicit FROM entry into the statement.
"""

import re
from collections.abc import Iterable, Iterator, Mapping
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Any, Self

from sqlalchemy import (
    ColumnElement,
    FromClause,
    Select,
    and_,
    column,
    literal_column,
    or_,
    select,
    table,
    text,
    true,
)

from tablemapper.contracts.conditions import Comparison, Condition, Equals, Raw, qualify, to_conditions
from tablemapper.contracts.enums import ComparisonOperator, JoinType
from tablemapper.contracts.errors import InputShapeError, MapperConfigurationError

if TYPE_CHECKING:
    from tablemapper.core.database import MapperDatabase

_IDENTIFIER = r"[A-Za-z_][A-Za-z0-9_$]*"
_COLUMN_REF = re.compile(rf"^{_IDENTIFIER}(\.{_IDENTIFIER})?$")
_ORDER_ENTRY = re.compile(rf"^({_IDENTIFIER}(?:\.{_IDENTIFIER})?)(?:\s+(ASC|DESC))?$", re.IGNORECASE)


def column_ref(name: str) -> ColumnElement[Any]:
    """Build a column reference for a bare or alias-qualified name.

    Raises:
        InputShapeError: If name is not a string or not a valid identifier
    """
    if not isinstance(name, str):
        raise InputShapeError(f"Column name should be string, got {type(name).__name__}: {name!r}")
    if not _COLUMN_REF.match(name):
        raise InputShapeError(f"Invalid column reference: {name!r}")
    if "." in name:
        return literal_column(name)
    return column(name)


def compile_condition(condition: Condition) -> ColumnElement[bool]:
    """Compile one tagged condition into a boolean clause."""
    if isinstance(condition, Raw):
        return text(condition.expression)  # type: ignore[return-value]

    if condition.column is None:
        raise InputShapeError(f"Condition has no column: {condition!r}")
    col = column_ref(condition.column)

    if isinstance(condition, Equals):
        return col == condition.value

    value = condition.value
    match condition.operator:
        case ComparisonOperator.EQ:
            return col == value
        case ComparisonOperator.NEQ:
            return col != value
        case ComparisonOperator.GT:
            return col > value
        case ComparisonOperator.GTE:
            return col >= value
        case ComparisonOperator.LT:
            return col < value
        case ComparisonOperator.LTE:
            return col <= value
        case ComparisonOperator.IN:
            return col.in_(list(value))
        case ComparisonOperator.NOT_IN:
            return col.not_in(list(value))
        case ComparisonOperator.LIKE:
            return col.like(value)
        case ComparisonOperator.NOT_LIKE:
            return col.not_like(value)
        case ComparisonOperator.IS:
            return col.is_(value)
        case ComparisonOperator.IS_NOT:
            return col.is_not(value)
    raise InputShapeError(f"Unsupported comparison operator: {condition.operator!r}")


def compile_conditions(conditions: Mapping[Any, Any] | Iterable[Condition] | None) -> list[ColumnElement[bool]]:
    """Translate a condition set into WHERE clauses (ANDed by the caller)."""
    if isinstance(conditions, Comparison | Equals | Raw):
        conditions = [conditions]
    return [compile_condition(c) for c in to_conditions(conditions)]


def _split_order(entry: str) -> list[str]:
    return [part.strip() for part in entry.split(",") if part.strip()]


def qualify_order(entry: Any, alias: str) -> Any:
    """Qualify the column of each "col [ASC|DESC]" part of an order string.

    Entries that are not simple column orderings (expressions, SQLAlchemy
    clauses) pass through unchanged.
    """
    if not isinstance(entry, str):
        return entry
    parts = []
    for part in _split_order(entry):
        match = _ORDER_ENTRY.match(part)
        if match:
            direction = f" {match.group(2).upper()}" if match.group(2) else ""
            part = f"{qualify(match.group(1), alias)}{direction}"
        parts.append(part)
    return ", ".join(parts)


def parse_order(entry: Any) -> list[Any]:
    """Turn an order entry into ORDER BY clauses.

    "catid DESC, id" -> [column("catid").desc(), column("id")]
    """
    if not isinstance(entry, str):
        return [entry]
    clauses: list[Any] = []
    for part in _split_order(entry):
        match = _ORDER_ENTRY.match(part)
        if not match:
            clauses.append(text(part))
            continue
        col = column_ref(match.group(1))
        direction = (match.group(2) or "").upper()
        clauses.append(col.desc() if direction == "DESC" else col.asc() if direction == "ASC" else col)
    return clauses


@dataclass(frozen=True)
class JoinedTable:
    """One entry of a join registry.

    prefix controls result-column labels in joined reads:
    - None: no prefix for the first table, "<alias>_" for the others
    - True: "<alias>_"
    - False: bare column names
    - str: that string
    """

    alias: str
    table: str
    condition: str | None = None
    join_type: JoinType = JoinType.LEFT
    prefix: str | bool | None = None

    def label_prefix(self, position: int) -> str:
        if self.prefix is None:
            return "" if position == 0 else f"{self.alias}_"
        if self.prefix is True:
            return f"{self.alias}_"
        if self.prefix is False:
            return ""
        return self.prefix

    def from_clause(self) -> FromClause:
        return table(self.table).alias(self.alias)


class JoinRegistry:
    """Ordered set of tables a mapper reads from.

    A registry with more than one entry makes the mapper "joined": bare
    condition/order keys get qualified with the primary alias and result
    columns are selected explicitly with prefixed labels.
    """

    def __init__(self, db: "MapperDatabase") -> None:
        self._db = db
        self._tables: dict[str, JoinedTable] = {}

    def __len__(self) -> int:
        return len(self._tables)

    def __iter__(self) -> Iterator[JoinedTable]:
        return iter(self._tables.values())

    def __contains__(self, alias: object) -> bool:
        return alias in self._tables

    def get(self, alias: str) -> JoinedTable | None:
        return self._tables.get(alias)

    @property
    def aliases(self) -> list[str]:
        return list(self._tables)

    def add_table(
        self,
        alias: str,
        table_name: str,
        condition: str | None = None,
        join_type: JoinType | str = JoinType.LEFT,
        prefix: str | bool | None = None,
    ) -> Self:
        """Register a table. Re-adding an alias replaces the entry in place."""
        if not isinstance(alias, str) or not isinstance(table_name, str):
            raise InputShapeError("Join alias and table name should be strings")
        self._tables[alias] = JoinedTable(alias, table_name, condition, JoinType(str(join_type).upper()), prefix)
        return self

    def remove_table(self, alias: str) -> Self:
        self._tables.pop(alias, None)
        return self

    def select_columns(self) -> list[ColumnElement[Any]]:
        """Qualified, labelled columns of every registered table, in registry order."""
        columns: list[ColumnElement[Any]] = []
        for position, joined in enumerate(self._tables.values()):
            prefix = joined.label_prefix(position)
            for descriptor in self._db.get_columns(joined.table):
                ref = literal_column(f"{joined.alias}.{descriptor.name}")
                columns.append(ref.label(f"{prefix}{descriptor.name}"))
        return columns

    def register_tables(self, query: Select[Any]) -> Select[Any]:
        """Set FROM/JOIN clauses: first entry is FROM, the rest join in order.

        A RIGHT join is expressed as the joined table LEFT JOIN everything
        registered so far.
        """
        entries = list(self._tables.values())
        if not entries:
            raise MapperConfigurationError("No tables registered")

        from_clause: FromClause = entries[0].from_clause()
        for joined in entries[1:]:
            onclause = text(joined.condition) if joined.condition else true()
            target = joined.from_clause()
            if joined.join_type is JoinType.RIGHT:
                from_clause = target.join(from_clause, onclause, isouter=True)
            else:
                from_clause = from_clause.join(
                    target,
                    onclause,
                    isouter=joined.join_type is JoinType.LEFT,
                    full=joined.join_type is JoinType.OUTER,
                )
        return query.select_from(from_clause)


@dataclass
class MapperQuery:
    """Clauses accumulated on a mapper before the next read.

    Kept as plain lists because SQLAlchemy statements are immutable and
    clear() must be able to drop a single clause kind.
    """

    columns: list[Any] = field(default_factory=list)
    wheres: list[ColumnElement[bool]] = field(default_factory=list)
    orders: list[Any] = field(default_factory=list)
    groups: list[Any] = field(default_factory=list)
    havings: list[ColumnElement[bool]] = field(default_factory=list)
    limit: int | None = None
    offset: int | None = None

    @property
    def has_projection(self) -> bool:
        return bool(self.columns)

    def copy(self) -> "MapperQuery":
        return MapperQuery(
            columns=list(self.columns),
            wheres=list(self.wheres),
            orders=list(self.orders),
            groups=list(self.groups),
            havings=list(self.havings),
            limit=self.limit,
            offset=self.offset,
        )

    def select(self, *columns: Any) -> Self:
        for col in columns:
            if isinstance(col, str):
                self.columns.extend(literal_column(part.strip()) for part in col.split(",") if part.strip())
            else:
                self.columns.append(col)
        return self

    def where(self, *conditions: Any) -> Self:
        for condition in conditions:
            if isinstance(condition, str):
                self.wheres.append(text(condition))  # type: ignore[arg-type]
            elif isinstance(condition, ColumnElement):
                self.wheres.append(condition)
            else:
                self.wheres.extend(compile_conditions(condition))
        return self

    def or_where(self, *conditions: Any) -> Self:
        """Add one WHERE clause that ORs the given conditions together."""
        clauses: list[ColumnElement[bool]] = []
        for condition in conditions:
            if isinstance(condition, str):
                clauses.append(text(condition))  # type: ignore[arg-type]
            elif isinstance(condition, ColumnElement):
                clauses.append(condition)
            else:
                compiled = compile_conditions(condition)
                clauses.append(and_(*compiled) if len(compiled) > 1 else compiled[0])
        if clauses:
            self.wheres.append(or_(*clauses))
        return self

    def order(self, *entries: Any) -> Self:
        for entry in entries:
            self.orders.extend(parse_order(entry))
        return self

    def group(self, *columns: Any) -> Self:
        for col in columns:
            self.groups.extend(parse_order(col) if isinstance(col, str) else [col])
        return self

    def having(self, *conditions: Any) -> Self:
        for condition in conditions:
            if isinstance(condition, str):
                self.havings.append(text(condition))  # type: ignore[arg-type]
            elif isinstance(condition, ColumnElement):
                self.havings.append(condition)
            else:
                self.havings.extend(compile_conditions(condition))
        return self

    def set_limit(self, limit: int | None = None, offset: int | None = None) -> Self:
        self.limit = limit
        self.offset = offset
        return self

    def clear(self, clause: str | None = None) -> Self:
        """Drop one clause kind ("select", "where", "order", "group", "having", "limit"), or all."""
        kinds = {
            "select": ("columns",),
            "where": ("wheres",),
            "order": ("orders",),
            "group": ("groups",),
            "having": ("havings",),
        }
        if clause is None:
            for kind in kinds.values():
                getattr(self, kind[0]).clear()
            self.limit = self.offset = None
            return self
        if clause == "limit":
            self.limit = self.offset = None
            return self
        if clause not in kinds:
            raise InputShapeError(f"Unknown clause to clear: {clause!r}")
        getattr(self, kinds[clause][0]).clear()
        return self

    def build(self) -> Select[Any]:
        """Render the accumulated clauses into a Select without FROM."""
        statement = select(*self.columns)
        if self.wheres:
            statement = statement.where(*self.wheres)
        if self.groups:
            statement = statement.group_by(*self.groups)
        if self.havings:
            statement = statement.having(*self.havings)
        if self.orders:
            statement = statement.order_by(*self.orders)
        if self.limit is not None:
            statement = statement.limit(self.limit)
        if self.offset:
            statement = statement.offset(self.offset)
        return statement
