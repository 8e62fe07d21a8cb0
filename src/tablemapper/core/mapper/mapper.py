# src/tablemapper/core/mapper/mapper.py
"""DataMapper: CRUD, query and reconciliation over one table.

The mapper is composed from mixins, one per concern:
- SchemaCacheMixin: column metadata (get_fields)
- QueryAssemblyMixin: passthrough builders, joins, get_find_query
- MutationMixin: transactional create/update/delete/flush bodies
- ReconcileMixin: sync partitioning
- LifecycleMixin: before/after events and mapper-local handlers

Every public operation emits a BEFORE event whose args listeners may
rewrite, runs, then emits an AFTER event whose result listeners may
replace.

Example:
    db = MapperDatabase("sqlite:///./app.db")
    articles = DataMapper("articles", db=db)
    tag_maps = DataMapper("tag_maps", ("article_id", "tag_id"), db=db)

    article = articles.create_one({"title": "Hello", "catid": 2})
    articles.find({"catid": 2}, order="created DESC", limit=10)

    tags = [{"article_id": article["id"], "tag_id": tag_id} for tag_id in (3, 5)]
    tag_maps.sync(tags, {"article_id": article["id"]}, compare_keys=["article_id", "tag_id"])
"""

from __future__ import annotations

from collections.abc import Callable, Generator, Iterable, Iterator, Mapping, Sequence
from typing import TYPE_CHECKING, Any, Self

import structlog

from tablemapper.contracts.conditions import Comparison, Equals, Raw, condition_columns, to_conditions
from tablemapper.contracts.enums import OperationKind
from tablemapper.contracts.errors import InputShapeError, MapperConfigurationError
from tablemapper.contracts.records import Record, RecordSet, RecordShape
from tablemapper.core._database_ops import DatabaseOps
from tablemapper.core.hooks import NullHookDispatcher
from tablemapper.core.mapper._lifecycle import EventHandler, LifecycleMixin
from tablemapper.core.mapper._mutations import MutationMixin, is_empty_key
from tablemapper.core.mapper._normalizer import ValueNormalizer
from tablemapper.core.mapper._query_assembly import QueryAssemblyMixin, QueryHook, as_order_list
from tablemapper.core.mapper._reconcile import ReconcileMixin, SyncResult
from tablemapper.core.mapper._schema_cache import SchemaCacheMixin
from tablemapper.core.query import MapperQuery

if TYPE_CHECKING:
    from tablemapper.contracts.enums import HookPhase
    from tablemapper.contracts.schema import ColumnDescriptor
    from tablemapper.core.database import MapperDatabase
    from tablemapper.core.hooks import HookDispatcherProtocol
    from tablemapper.core.query import JoinRegistry

logger = structlog.get_logger(__name__)

_CONDITION_TYPES = (Equals, Comparison, Raw)

# Values merged into a new record by copy / *_or_create
InitData = Mapping[str, Any] | Callable[[Record, Any], Any] | None


class DataMapper(SchemaCacheMixin, QueryAssemblyMixin, MutationMixin, ReconcileMixin, LifecycleMixin):
    """Record mapper bound to one table.

    Args:
        table: Table name (may be None for a mapper that only reads joins)
        keys: Primary key column name(s); defaults to ("id",)
        db: Database the mapper reads and writes through
        alias: Primary alias used to qualify columns in joined reads
        shape: Record / dataset factories for results
        dispatcher: External hook dispatcher; NullHookDispatcher when omitted
        use_transaction: Wrap each mutating call in a transaction
    """

    def __init__(
        self,
        table: str | None = None,
        keys: str | Sequence[str] | None = None,
        *,
        db: MapperDatabase,
        alias: str | None = None,
        shape: RecordShape | None = None,
        dispatcher: HookDispatcherProtocol | None = None,
        use_transaction: bool = True,
    ) -> None:
        if isinstance(keys, str):
            keys = (keys,)
        self.table = table
        self.keys: tuple[str, ...] = tuple(keys) if keys else ("id",)
        self.use_transaction = use_transaction

        self._db = db
        self._ops = DatabaseOps(db)
        self._normalizer = ValueNormalizer(db.default_for, db.date_format)
        self._shape = shape or RecordShape()
        self._dispatcher: HookDispatcherProtocol = dispatcher or NullHookDispatcher()
        self._alias = alias

        self._fields: dict[str, ColumnDescriptor] | None = None
        self._query = MapperQuery()
        self._joins: JoinRegistry | None = None
        self._query_hooks: list[QueryHook] = []
        self._handlers: dict[tuple[OperationKind, HookPhase], list[EventHandler]] = {}

    @classmethod
    def new_relation(
        cls,
        alias: str | None = None,
        table: str | None = None,
        keys: str | Sequence[str] | None = None,
        *,
        db: MapperDatabase,
        **kwargs: Any,
    ) -> Self:
        """Create a mapper meant for joined reads, starting from its primary alias."""
        return cls(table, keys, db=db, alias=alias, **kwargs)

    def __repr__(self) -> str:
        return f"{type(self).__name__}(table={self.table!r}, keys={self.keys!r})"

    @property
    def db(self) -> MapperDatabase:
        return self._db

    @property
    def shape(self) -> RecordShape:
        return self._shape

    @property
    def dispatcher(self) -> HookDispatcherProtocol:
        return self._dispatcher

    def set_dispatcher(self, dispatcher: HookDispatcherProtocol) -> Self:
        self._dispatcher = dispatcher
        return self

    def get_key_name(self, multiple: bool = False) -> Any:
        """First primary key name, or the whole key tuple when multiple is set."""
        if multiple:
            return self.keys
        return self.keys[0]

    # === Argument handling ===

    def _key_conditions(self, conditions: Any) -> Any:
        """Condition set for find/delete; a scalar (or list of scalars) loads by primary key.

        Raises:
            MapperConfigurationError: If a scalar is given and the table has several keys
        """
        if conditions is None:
            return {}
        if isinstance(conditions, Mapping):
            return dict(conditions)
        if isinstance(conditions, _CONDITION_TYPES):
            return [conditions]
        if isinstance(conditions, list | tuple):
            if not conditions:
                return []
            if all(isinstance(c, _CONDITION_TYPES) for c in conditions):
                return list(conditions)
        if not self.keys:
            raise MapperConfigurationError("No primary keys defined")
        if len(self.keys) > 1:
            raise MapperConfigurationError("Table has multiple primary keys specified, only one primary key value provided")
        return {self.keys[0]: conditions}

    def _expand_key_conditions(self, conditions: Any) -> Any:
        """Condition set for flush/sync; a scalar applies to every primary key."""
        if conditions is None:
            return {}
        if isinstance(conditions, Mapping):
            return dict(conditions)
        if isinstance(conditions, _CONDITION_TYPES):
            return [conditions]
        if isinstance(conditions, list | tuple) and all(isinstance(c, _CONDITION_TYPES) for c in conditions):
            return list(conditions)
        return {key: conditions for key in self.keys}

    def _cond_fields(self, cond_fields: str | Sequence[str] | None) -> list[str]:
        if not cond_fields:
            return list(self.keys)
        if isinstance(cond_fields, str):
            return [cond_fields]
        return list(cond_fields)

    def _apply_values(self, item: Record, values: InitData, conditions: Any) -> Record:
        """Merge a mapping (non-None values only) or the result of a callable into item."""
        if callable(values):
            replaced = values(item, conditions)
            if replaced is not None:
                return self._as_record(replaced)
            return item
        for name, value in dict(values or {}).items():
            if value is not None:
                item[name] = value
        return item

    # === Reads ===

    def find(
        self,
        conditions: Any = None,
        order: Any = None,
        start: int | None = None,
        limit: int | None = None,
        key: str | None = None,
    ) -> Any:
        """Find records.

        Args:
            conditions: Condition mapping, Condition list, or a primary key value
            order: "col [ASC|DESC]" string(s) or SQLAlchemy clauses
            start: Offset
            limit: Maximum rows
            key: Return a dict keyed by this field instead of a RecordSet

        Returns:
            RecordSet, or dict[key value, Record] when key is given
        """
        conditions = self._key_conditions(conditions)
        args = self._before(OperationKind.FIND, conditions=conditions, order=as_order_list(order), start=start, limit=limit)

        rows = self.do_find(args["conditions"], args["order"], args["start"], args["limit"])
        result: Any = self._shape.bind_dataset(rows)
        if key is not None:
            result = {record.get(key): record for record in result}

        return self._after(OperationKind.FIND, result)

    def find_all(self, order: Any = None, start: int | None = None, limit: int | None = None, key: str | None = None) -> Any:
        args = self._before(OperationKind.FIND_ALL, order=order, start=start, limit=limit)
        result = self.find({}, args["order"], args["start"], args["limit"], key)
        return self._after(OperationKind.FIND_ALL, result)

    def find_one(self, conditions: Any = None, order: Any = None) -> Record | None:
        """First matching record, or None."""
        args = self._before(OperationKind.FIND_ONE, conditions=conditions, order=order)
        dataset = self.find(args["conditions"], args["order"], 0, 1)
        result = dataset[0] if dataset else None
        return self._after(OperationKind.FIND_ONE, result)

    def find_column(
        self,
        column: str,
        conditions: Any = None,
        order: Any = None,
        start: int | None = None,
        limit: int | None = None,
        key: str | None = None,
    ) -> Any:
        """Values of one column across matching records (dict keyed by `key` when given).

        Raises:
            InputShapeError: If column is not a string
        """
        args = self._before(OperationKind.FIND_COLUMN, column=column, conditions=conditions, order=order, start=start, limit=limit)
        column = args["column"]
        if not isinstance(column, str):
            raise InputShapeError("Column name should be string.")

        found = self.find(args["conditions"], args["order"], args["start"], args["limit"], key)
        result: Any
        if key is None:
            result = [record.get(column) for record in found]
        else:
            result = {index: record.get(column) for index, record in found.items()}
        return self._after(OperationKind.FIND_COLUMN, result)

    def find_result(self, conditions: Any = None, order: Any = None) -> Any:
        """First column of the first matching row, or None."""
        args = self._before(OperationKind.FIND_RESULT, conditions=conditions, order=order)
        record = self.find_one(args["conditions"], args["order"])
        result = next(iter(record.values()), None) if record is not None else None
        return self._after(OperationKind.FIND_RESULT, result)

    def find_iterate(
        self,
        conditions: Any = None,
        order: Any = None,
        start: int | None = None,
        limit: int | None = None,
        key: str | None = None,
    ) -> Iterator[Any]:
        """Stream matching records from the result cursor.

        The query is built immediately; rows are fetched as the iterator
        advances. With `key`, yields (key value, record) pairs.
        """
        conditions = self._key_conditions(conditions)
        args = self._before(OperationKind.FIND_ITERATE, conditions=conditions, order=as_order_list(order), start=start, limit=limit)
        rows = self.do_find_iterate(args["conditions"], args["order"], args["start"], args["limit"])
        rows = self._after(OperationKind.FIND_ITERATE, rows)
        return self._bind_stream(rows, key)

    def _bind_stream(self, rows: Iterable[Any], key: str | None) -> Iterator[Any]:
        try:
            for row in rows:
                record = self._as_record(row)
                if key is None:
                    yield record
                else:
                    yield record.get(key), record
        finally:
            # Release the database stream when the caller stops early
            if isinstance(rows, Generator):
                rows.close()

    def __iter__(self) -> Iterator[Any]:
        return self.find_iterate()

    def count(self, conditions: Any = None) -> int:
        conditions = self._key_conditions(conditions)
        args = self._before(OperationKind.COUNT, conditions=conditions)
        result = self.do_count(args["conditions"])
        return self._after(OperationKind.COUNT, result)

    # === Writes ===

    def create(self, dataset: Iterable[Any]) -> RecordSet:
        """Insert every record of dataset in one transaction.

        Generated auto-increment keys are written back onto the records.

        Raises:
            InputShapeError: If dataset is not an iterable of records
        """
        args = self._before(OperationKind.CREATE, dataset=dataset)
        result = self.do_create(self._as_dataset(args["dataset"]))
        return self._after(OperationKind.CREATE, result)

    def create_one(self, data: Any) -> Record:
        args = self._before(OperationKind.CREATE_ONE, data=data)
        dataset = self.create([self._as_record(args["data"])])
        result = dataset[0]
        return self._after(OperationKind.CREATE_ONE, result)

    def update(self, dataset: Iterable[Any], cond_fields: str | Sequence[str] | None = None, update_nulls: bool = False) -> RecordSet:
        """Update each record, matched on cond_fields (primary keys by default).

        With update_nulls=False, None values leave the stored column untouched.
        """
        args = self._before(OperationKind.UPDATE, dataset=dataset, cond_fields=cond_fields, update_nulls=update_nulls)
        result = self.do_update(self._as_dataset(args["dataset"]), self._cond_fields(args["cond_fields"]), args["update_nulls"])
        return self._after(OperationKind.UPDATE, result)

    def update_one(self, data: Any, cond_fields: str | Sequence[str] | None = None, update_nulls: bool = False) -> Record:
        args = self._before(OperationKind.UPDATE_ONE, data=data, cond_fields=cond_fields, update_nulls=update_nulls)
        dataset = self.update([self._as_record(args["data"])], args["cond_fields"], args["update_nulls"])
        result = dataset[0]
        return self._after(OperationKind.UPDATE_ONE, result)

    def update_batch(self, data: Any, conditions: Any = None) -> bool:
        """Apply data's values to every row matching conditions in one statement."""
        args = self._before(OperationKind.UPDATE_BATCH, data=data, conditions=self._key_conditions(conditions))
        result = self.do_update_batch(args["data"], args["conditions"])
        return self._after(OperationKind.UPDATE_BATCH, result)

    def save(self, dataset: Iterable[Any], cond_fields: str | Sequence[str] | None = None, update_nulls: bool = False) -> RecordSet:
        """Create records whose auto-increment condition field is empty, update the rest."""
        args = self._before(OperationKind.SAVE, dataset=dataset, cond_fields=self._cond_fields(cond_fields), update_nulls=update_nulls)
        records = self._as_dataset(args["dataset"])
        cond_fields = self._cond_fields(args["cond_fields"])
        fields = self.get_fields()

        to_create: list[Record] = []
        to_update: list[Record] = []
        for record in records:
            is_new = any(name in fields and fields[name].is_auto_increment and is_empty_key(record.get(name)) for name in cond_fields)
            (to_create if is_new else to_update).append(record)

        with self._transactional(OperationKind.SAVE):
            if to_create:
                self.create(to_create)
            if to_update:
                self.update(to_update, cond_fields, args["update_nulls"])

        return self._after(OperationKind.SAVE, records)

    def save_one(self, data: Any, cond_fields: str | Sequence[str] | None = None, update_nulls: bool = False) -> Record:
        args = self._before(OperationKind.SAVE_ONE, data=data, cond_fields=cond_fields, update_nulls=update_nulls)
        dataset = self.save([self._as_record(args["data"])], args["cond_fields"], args["update_nulls"])
        result = dataset[0]
        return self._after(OperationKind.SAVE_ONE, result)

    def flush(self, dataset: Iterable[Any], conditions: Any = None) -> RecordSet:
        """Replace the rows matching conditions with dataset (delete, then create).

        Raises:
            FlushError: If the delete or the create half reports failure
        """
        conditions = self._expand_key_conditions(conditions)
        args = self._before(OperationKind.FLUSH, dataset=dataset, conditions=conditions)
        result = self.do_flush(args["dataset"], args["conditions"])
        return self._after(OperationKind.FLUSH, result)

    def sync(self, dataset: Iterable[Any], conditions: Any = None, compare_keys: Sequence[str] | None = None) -> SyncResult:
        """Reconcile the rows matching conditions with dataset.

        compare_keys defaults to the columns named in conditions.

        Returns:
            SyncResult(kept, added, deleted)
        """
        conditions = self._expand_key_conditions(conditions)
        if compare_keys is None:
            compare_keys = condition_columns(to_conditions(conditions))
        args = self._before(OperationKind.SYNC, dataset=dataset, conditions=conditions, compare_keys=list(compare_keys))
        result = self.do_sync(args["dataset"], args["conditions"], args["compare_keys"])
        return self._after(OperationKind.SYNC, result)

    def delete(self, conditions: Any) -> bool:
        """Delete every row matching conditions (a scalar deletes by primary key).

        Returns True even when nothing matched.
        """
        conditions = self._key_conditions(conditions)
        args = self._before(OperationKind.DELETE, conditions=conditions)
        result = self.do_delete(args["conditions"])
        return self._after(OperationKind.DELETE, result)

    # === Composite operations ===

    def copy(self, conditions: Any = None, new_value: InitData = None, remove_key: bool = False) -> RecordSet:
        """Duplicate every matching record, applying new_value to each copy."""
        items = self.find(conditions)
        return self._shape.dataset_factory(self._copy_record(item, new_value, remove_key, conditions) for item in items)

    def copy_one(self, conditions: Any = None, new_value: InitData = None, remove_key: bool = False) -> Record | None:
        """Duplicate the first matching record; None when nothing matches."""
        item = self.find_one(conditions)
        if item is None:
            return None
        return self._copy_record(item, new_value, remove_key, conditions)

    def _copy_record(self, item: Record, new_value: InitData, remove_key: bool, conditions: Any) -> Record:
        if remove_key:
            for name in self.keys:
                item[name] = None
        item = self._apply_values(item, new_value, conditions)
        return self.create_one(item)

    def find_one_or_create(self, conditions: Any, init_data: InitData = None, merge_conditions: bool = True) -> Record:
        """Return the first matching record, creating it when none exists.

        With merge_conditions, plain column = value conditions seed the new record.
        """
        item = self.find_one(conditions)
        if item is not None:
            return item

        logger.debug("record_not_found_creating", table=self.table, operation="find_one_or_create")
        item = self._shape.record_factory({})
        if merge_conditions and isinstance(conditions, Mapping):
            for name, value in conditions.items():
                if isinstance(name, str) and not isinstance(value, _CONDITION_TYPES):
                    item[name] = value

        item = self._apply_values(item, init_data, conditions)
        return self.create_one(item)

    def update_one_or_create(
        self,
        data: Any,
        init_data: InitData = None,
        cond_fields: str | Sequence[str] | None = None,
        update_nulls: bool = False,
    ) -> Record:
        """Update the record matched on cond_fields, or create it (with init_data applied)."""
        cond_fields = self._cond_fields(cond_fields)
        record = self._as_record(data)
        conditions = {name: record.get(name) for name in cond_fields}

        if self.find_one(conditions) is not None:
            return self.update_one(record, cond_fields, update_nulls)

        logger.debug("record_not_found_creating", table=self.table, operation="update_one_or_create")
        record = self._apply_values(record, init_data, conditions)
        return self.create_one(record)
