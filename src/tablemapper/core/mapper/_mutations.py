"""Transactional write execution for DataMapper.

Every mutating body runs inside one transaction level when the mapper's
use_transaction flag is set. Nested calls (flush -> delete + create, sync,
save) open SAVEPOINTs, so an inner failure rolls back only to the level
that failed and the exception keeps propagating unchanged.
"""

from __future__ import annotations

from collections.abc import Iterable, Iterator, Mapping, Sequence
from contextlib import contextmanager
from typing import TYPE_CHECKING, Any

import structlog

from tablemapper.contracts.enums import OperationKind
from tablemapper.contracts.errors import FlushError, InputShapeError, MapperConfigurationError
from tablemapper.contracts.records import Record, RecordSet, RecordShape
from tablemapper.contracts.schema import ColumnDescriptor

if TYPE_CHECKING:
    from tablemapper.core._database_ops import DatabaseOps
    from tablemapper.core.database import MapperDatabase
    from tablemapper.core.mapper._normalizer import ValueNormalizer

logger = structlog.get_logger(__name__)


def is_empty_key(value: Any) -> bool:
    """Whether a key value counts as "not yet assigned" (None, "", 0)."""
    if value is None:
        return True
    if isinstance(value, str):
        return value == ""
    if isinstance(value, int | float):
        return not value
    return False


def _reported_failure(result: Any) -> bool:
    return result is None or result is False


class MutationMixin:
    """Create/update/delete/flush bodies. Mixed into DataMapper."""

    # Shared state annotations (set by DataMapper.__init__)
    _db: MapperDatabase
    _ops: DatabaseOps
    _normalizer: ValueNormalizer
    _shape: RecordShape
    table: str | None
    keys: tuple[str, ...]
    use_transaction: bool

    if TYPE_CHECKING:
        # Provided by sibling mixins and DataMapper
        def get_fields(self, table: str | None = None, *, exclude_auto_increment: bool = False) -> dict[str, ColumnDescriptor]: ...
        def get_key_name(self) -> str: ...
        def create(self, dataset: Iterable[Any]) -> RecordSet: ...
        def delete(self, conditions: Any) -> bool: ...

    @contextmanager
    def _transactional(self, operation: OperationKind) -> Iterator[None]:
        """Wrap a mutation body in one transaction level (or nothing when disabled)."""
        if not self.use_transaction:
            yield
            return

        self._db.begin()
        try:
            yield
        except BaseException as exc:
            self._db.rollback()
            logger.warning(
                "mutation_rolled_back",
                table=self.table,
                operation=operation.value,
                error_type=type(exc).__name__,
                depth=self._db.transaction_depth + 1,
            )
            raise
        self._db.commit()

    def _require_table(self) -> str:
        if not self.table:
            raise MapperConfigurationError("No table bound to this mapper")
        return self.table

    def _as_record(self, item: Any) -> Record:
        if isinstance(item, Record):
            return item
        return self._shape.bind(item)

    def _as_dataset(self, dataset: Any) -> RecordSet:
        """Bind an iterable of row-like items, keeping existing Record objects as-is.

        Raises:
            InputShapeError: If dataset is a single mapping, a string or not iterable
        """
        if isinstance(dataset, Mapping | str | bytes) or not isinstance(dataset, Iterable):
            raise InputShapeError(f"Dataset should be an iterable of records, got {type(dataset).__name__}")
        return self._shape.dataset_factory(self._as_record(item) for item in dataset)

    def _insert_row(self, record: Record, fields: Mapping[str, ColumnDescriptor]) -> dict[str, Any]:
        """Storage payload for an INSERT.

        A column missing from the record takes its literal default. Without
        one it is left out of the statement so the server default applies.
        """
        names = [name for name in fields if not (name in self.keys and is_empty_key(record.get(name)))]
        data = record.cast_for_store(record.for_storage([name for name in names if name in record]), self._db.date_format)
        for name in names:
            if name not in record and fields[name].default is not None:
                data[name] = fields[name].default
        return self._normalizer.normalize(data, fields, update_nulls=True)

    def _update_row(self, record: Record, fields: Mapping[str, ColumnDescriptor], cond_fields: Sequence[str], update_nulls: bool) -> dict[str, Any]:
        data = record.cast_for_store(record.for_storage([name for name in fields if name in record]), self._db.date_format)
        row = self._normalizer.normalize(data, fields, update_nulls)
        for name in cond_fields:
            row.setdefault(name, record.get(name))
        return row

    def do_create(self, dataset: RecordSet) -> RecordSet:
        table_name = self._require_table()
        fields = self.get_fields()
        key = self.get_key_name()
        key_descriptor = fields.get(key)
        auto_increment = key_descriptor is not None and key_descriptor.is_auto_increment

        with self._transactional(OperationKind.CREATE):
            for index, item in enumerate(dataset):
                record = self._as_record(item)
                row = self._insert_row(record, fields)
                generated = self._ops.insert_one(table_name, row, key, auto_increment=auto_increment and key not in row)
                if generated is not None:
                    record[key] = generated
                dataset[index] = record

        logger.debug("records_created", table=table_name, rows=len(dataset))
        return dataset

    def do_update(self, dataset: RecordSet, cond_fields: Sequence[str], update_nulls: bool = False) -> RecordSet:
        table_name = self._require_table()
        fields = self.get_fields()

        with self._transactional(OperationKind.UPDATE):
            for index, item in enumerate(dataset):
                record = self._as_record(item)
                row = self._update_row(record, fields, cond_fields, update_nulls)
                self._ops.update_one(table_name, row, cond_fields, update_nulls)
                dataset[index] = record

        logger.debug("records_updated", table=table_name, rows=len(dataset))
        return dataset

    def do_update_batch(self, data: Any, conditions: Any) -> bool:
        table_name = self._require_table()
        fields = self.get_fields()
        record = self._as_record(data)
        values = {name: value for name, value in record.items() if name in fields}

        with self._transactional(OperationKind.UPDATE_BATCH):
            return self._ops.update_batch(table_name, values, conditions)

    def do_delete(self, conditions: Any) -> bool:
        table_name = self._require_table()
        with self._transactional(OperationKind.DELETE):
            return self._ops.delete(table_name, conditions)

    def do_flush(self, dataset: Any, conditions: Any) -> RecordSet:
        """Delete the rows matching conditions, then create dataset.

        Raises:
            FlushError: If either half reports failure
        """
        table_name = self._require_table()
        with self._transactional(OperationKind.FLUSH):
            if _reported_failure(self.delete(conditions)):
                raise FlushError(table_name, "delete")
            created = self.create(dataset)
            if _reported_failure(created):
                raise FlushError(table_name, "insert")
        return created
