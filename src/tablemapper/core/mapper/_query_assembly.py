"""Read-query assembly for DataMapper: passthrough builders and find/count execution."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Iterator
from typing import TYPE_CHECKING, Any, Self

import structlog
from sqlalchemy import ColumnElement, FromClause, Select, func, literal_column, select, table

from tablemapper.contracts.conditions import Condition, qualify_condition, to_conditions
from tablemapper.contracts.enums import JoinType
from tablemapper.contracts.errors import MapperConfigurationError
from tablemapper.core.query import JoinRegistry, MapperQuery, qualify_order

if TYPE_CHECKING:
    from tablemapper.core.database import MapperDatabase

logger = structlog.get_logger(__name__)

QueryHook = Callable[[Select[Any]], Select[Any]]


def as_order_list(order: Any) -> list[Any]:
    """Normalize an order argument (None, "col DESC", clause or sequence) into a list."""
    if order is None:
        return []
    if isinstance(order, str | ColumnElement):
        return [order]
    if isinstance(order, Iterable):
        return list(order)
    return [order]


class QueryAssemblyMixin:
    """Query building and read execution. Mixed into DataMapper."""

    # Shared state annotations (set by DataMapper.__init__)
    _db: MapperDatabase
    _alias: str | None
    _query: MapperQuery
    _joins: JoinRegistry | None
    _query_hooks: list[QueryHook]
    table: str | None

    # === Passthrough builders ===

    def where(self, *conditions: Any) -> Self:
        """AND one or more conditions into the next read.

        Accepts raw SQL strings, SQLAlchemy clauses, condition mappings and
        Condition objects.
        """
        self._query.where(*conditions)
        return self

    def or_where(self, *conditions: Any) -> Self:
        self._query.or_where(*conditions)
        return self

    def having(self, *conditions: Any) -> Self:
        self._query.having(*conditions)
        return self

    def group(self, *columns: Any) -> Self:
        self._query.group(*columns)
        return self

    def order(self, *entries: Any) -> Self:
        self._query.order(*entries)
        return self

    def limit(self, limit: int | None = None, offset: int | None = None) -> Self:
        self._query.set_limit(limit, offset)
        return self

    def select(self, *columns: Any) -> Self:
        self._query.select(*columns)
        return self

    def clear(self, clause: str | None = None) -> Self:
        self._query.clear(clause)
        return self

    def alias(self, alias: str | None) -> Self:
        """Set the primary alias. A falsy alias keeps the current one."""
        self._alias = alias or self._alias
        return self

    @property
    def primary_alias(self) -> str | None:
        return self._alias or self.table

    def get_join_registry(self) -> JoinRegistry:
        """The join registry, seeded with the bound table on first use."""
        if self._joins is None:
            self._joins = JoinRegistry(self._db)
            if self.table:
                self._joins.add_table(self.primary_alias or self.table, self.table)
        return self._joins

    def add_table(
        self,
        alias: str,
        table_name: str,
        condition: str | None = None,
        join_type: JoinType | str = JoinType.LEFT,
        prefix: str | bool | None = None,
    ) -> Self:
        self.get_join_registry().add_table(alias, table_name, condition, join_type, prefix)
        return self

    def remove_table(self, alias: str) -> Self:
        self.get_join_registry().remove_table(alias)
        return self

    def join(
        self,
        join_type: JoinType | str,
        alias: str,
        table_name: str,
        condition: str | None = None,
        prefix: str | bool | None = None,
    ) -> Self:
        return self.add_table(alias, table_name, condition, join_type, prefix)

    def left_join(self, alias: str, table_name: str, condition: str | None = None, prefix: str | bool | None = None) -> Self:
        return self.join(JoinType.LEFT, alias, table_name, condition, prefix)

    def right_join(self, alias: str, table_name: str, condition: str | None = None, prefix: str | bool | None = None) -> Self:
        return self.join(JoinType.RIGHT, alias, table_name, condition, prefix)

    def inner_join(self, alias: str, table_name: str, condition: str | None = None, prefix: str | bool | None = None) -> Self:
        return self.join(JoinType.INNER, alias, table_name, condition, prefix)

    def outer_join(self, alias: str, table_name: str, condition: str | None = None, prefix: str | bool | None = None) -> Self:
        return self.join(JoinType.OUTER, alias, table_name, condition, prefix)

    def add_query_hook(self, hook: QueryHook) -> Self:
        """Register a Select -> Select post-processor run on every read query."""
        self._query_hooks.append(hook)
        return self

    def reset(self) -> Self:
        """Drop accumulated clauses and joins."""
        self._query = MapperQuery()
        self._joins = None
        return self

    # === Assembly ===

    def _from_clause(self) -> FromClause:
        if not self.table:
            raise MapperConfigurationError("No table bound to this mapper")
        source = table(self.table)
        if self._alias and self._alias != self.table:
            return source.alias(self._alias)
        return source

    def get_find_query(
        self,
        conditions: Any = None,
        order: Any = None,
        start: int | None = None,
        limit: int | None = None,
    ) -> Select[Any]:
        """Build the read query for a condition set, ordering and window.

        On a joined mapper (more than one registered table) bare condition
        and order columns are qualified with the primary alias, and the
        projection defaults to every registered table's columns labelled
        with their prefix. Accumulated passthrough clauses are included but
        not consumed.

        Raises:
            MapperConfigurationError: If the mapper is not joined and has no table
        """
        registry = self.get_join_registry()
        joined = len(registry) > 1

        conds: list[Condition] = to_conditions(conditions)
        orders = as_order_list(order)
        if joined:
            alias = self.primary_alias
            if alias:
                conds = [qualify_condition(c, alias) for c in conds]
                orders = [qualify_order(o, alias) for o in orders]

        query = self._query.copy()
        query.where(*conds)
        query.order(*orders)

        if start or limit:
            query.set_limit(limit, start)

        if not query.has_projection:
            if joined:
                query.select(*registry.select_columns())
            else:
                query.select(literal_column("*"))

        statement = query.build()
        if joined:
            statement = registry.register_tables(statement)
        else:
            statement = statement.select_from(self._from_clause())

        for hook in self._query_hooks:
            statement = hook(statement)
        return statement

    # === Execution ===

    def do_find(self, conditions: Any, order: Any, start: int | None, limit: int | None) -> list[dict[str, Any]]:
        statement = self.get_find_query(conditions, order, start, limit)
        try:
            rows = self._db.execute(statement)
        finally:
            self.reset()
        logger.debug("rows_found", table=self.table, rows=len(rows))
        return rows

    def do_find_iterate(self, conditions: Any, order: Any, start: int | None, limit: int | None) -> Iterator[dict[str, Any]]:
        """Build the read query now; rows are fetched lazily as the iterator advances."""
        try:
            statement = self.get_find_query(conditions, order, start, limit)
        finally:
            self.reset()
        return self._db.iterate(statement)

    def do_count(self, conditions: Any) -> int:
        try:
            inner = self.get_find_query(conditions).subquery()
            statement = select(func.count()).select_from(inner)
            total = self._db.execute_scalar(statement)
        finally:
            self.reset()
        return int(total or 0)
