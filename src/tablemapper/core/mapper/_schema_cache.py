"""Per-mapper cache of table column metadata."""

from __future__ import annotations

from typing import TYPE_CHECKING

import structlog

from tablemapper.contracts.errors import MapperConfigurationError
from tablemapper.contracts.schema import ColumnDescriptor

if TYPE_CHECKING:
    from tablemapper.core.database import MapperDatabase

logger = structlog.get_logger(__name__)


class SchemaCacheMixin:
    """Column metadata for the bound table. Mixed into DataMapper."""

    # Shared state annotations (set by DataMapper.__init__)
    _db: MapperDatabase
    _fields: dict[str, ColumnDescriptor] | None
    table: str | None
    keys: tuple[str, ...]

    def get_fields(self, table: str | None = None, *, exclude_auto_increment: bool = False) -> dict[str, ColumnDescriptor]:
        """Column name -> descriptor for the bound table, fetched once and memoized.

        NOT NULL columns that declare no default and are not primary keys
        get a synthesized type-generic default, so normalization always has
        a fallback.

        Args:
            table: Override table name for the first load only
            exclude_auto_increment: Leave auto-increment columns out (used before insert)

        Raises:
            MapperConfigurationError: If no table is bound
        """
        if self._fields is None:
            table = table or self.table
            if not table:
                raise MapperConfigurationError("No table bound to this mapper")

            fields: dict[str, ColumnDescriptor] = {}
            for descriptor in self._db.get_columns(table):
                if not descriptor.nullable and descriptor.default is None and not descriptor.is_primary and descriptor.name not in self.keys:
                    descriptor = descriptor.with_default(self._db.default_for(descriptor.type_family))
                fields[descriptor.name] = descriptor

            self._fields = fields
            logger.debug("schema_cached", table=table, columns=list(fields))

        if exclude_auto_increment:
            return {name: d for name, d in self._fields.items() if not d.is_auto_increment}
        return dict(self._fields)

    def reset_fields(self) -> None:
        """Drop cached column metadata (call after DDL on the table)."""
        self._fields = None
