"""Single-statement write helpers used by the mutation executor.

Consolidates the repeated `with self._db.connection() as conn:` pattern.
Statements are built against lightweight sqlalchemy.table() constructs so
no reflected metadata is needed.
"""

from collections.abc import Iterable, Mapping
from typing import TYPE_CHECKING, Any

import structlog
from sqlalchemy import ColumnElement, TableClause, column, delete, insert, table, update

from tablemapper.core.query import compile_conditions

if TYPE_CHECKING:
    from tablemapper.core.database import MapperDatabase

logger = structlog.get_logger(__name__)


def _table(name: str, columns: Iterable[str]) -> TableClause:
    return table(name, *(column(c) for c in columns))


class DatabaseOps:
    """Helper for insert/update/delete statements.

    None of these methods open a transaction of their own; when a mapper
    transaction is open they run on its connection.
    """

    def __init__(self, db: "MapperDatabase") -> None:
        self._db = db

    def insert_one(self, table_name: str, row: Mapping[str, Any], key: str | None = None, auto_increment: bool = False) -> Any:
        """Insert one row.

        An empty row inserts DEFAULT VALUES.

        Returns:
            The generated value of `key` when auto_increment is set, else None
        """
        stmt = insert(_table(table_name, row))
        if row:
            stmt = stmt.values(dict(row))

        with self._db.connection() as conn:
            if auto_increment and key and conn.dialect.insert_returning:
                generated = conn.execute(stmt.returning(column(key))).scalar_one()
            else:
                result = conn.execute(stmt)
                generated = result.lastrowid if auto_increment and key else None

        logger.debug("row_inserted", table=table_name, key=key, generated=generated)
        return generated

    def update_one(
        self,
        table_name: str,
        row: Mapping[str, Any],
        cond_fields: Iterable[str],
        update_nulls: bool = False,
    ) -> bool:
        """Update the row(s) matched by the values of cond_fields in `row`.

        Condition fields are never part of the SET clause. With
        update_nulls=False, None values are left out of the SET clause.
        """
        cond_fields = list(cond_fields)
        values = {name: value for name, value in row.items() if name not in cond_fields and (update_nulls or value is not None)}
        if not values:
            logger.debug("row_update_skipped", table=table_name, reason="no_values")
            return True

        target = _table(table_name, [*values, *cond_fields])
        where: list[ColumnElement[bool]] = [target.c[name] == row.get(name) for name in cond_fields]
        stmt = update(target).where(*where).values(values)

        with self._db.connection() as conn:
            result = conn.execute(stmt)

        logger.debug("row_updated", table=table_name, rows=result.rowcount)
        return True

    def update_batch(self, table_name: str, data: Mapping[str, Any], conditions: Any) -> bool:
        """Apply the same values to every row matching conditions."""
        if not data:
            return True
        target = _table(table_name, data)
        stmt = update(target).values(dict(data))
        clauses = compile_conditions(conditions)
        if clauses:
            stmt = stmt.where(*clauses)

        with self._db.connection() as conn:
            result = conn.execute(stmt)

        logger.debug("rows_batch_updated", table=table_name, rows=result.rowcount)
        return True

    def delete(self, table_name: str, conditions: Any) -> bool:
        """Delete every row matching conditions. Zero matches is success."""
        stmt = delete(table(table_name))
        clauses = compile_conditions(conditions)
        if clauses:
            stmt = stmt.where(*clauses)

        with self._db.connection() as conn:
            result = conn.execute(stmt)

        logger.debug("rows_deleted", table=table_name, rows=result.rowcount)
        return True
