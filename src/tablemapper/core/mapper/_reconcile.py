"""Set reconciliation (sync) for DataMapper.

Partitions a desired dataset against the persisted rows by an identity
projection: the row's (key, value) pairs for the compare keys, sorted by
key name. Field order inside a row never affects identity.

Both sides are scanned pairwise (O(n*m)); values are compared with plain
equality, so they do not need to be hashable.
"""

from __future__ import annotations

from collections.abc import Iterable, Mapping, Sequence
from typing import TYPE_CHECKING, Any, NamedTuple

import structlog

from tablemapper.contracts.enums import OperationKind
from tablemapper.contracts.errors import MapperConfigurationError
from tablemapper.contracts.records import Record, RecordSet, RecordShape

if TYPE_CHECKING:
    from contextlib import AbstractContextManager

logger = structlog.get_logger(__name__)

Identity = tuple[tuple[str, Any], ...]


class SyncResult(NamedTuple):
    """Outcome of a sync.

    kept and deleted are snapshots taken before any mutation; added carries
    the identities generated on insert.
    """

    kept: RecordSet
    added: RecordSet
    deleted: RecordSet


def identity(row: Mapping[str, Any], compare_keys: Iterable[str]) -> Identity:
    return tuple(sorted((key, row.get(key)) for key in compare_keys))


def partition(
    desired: Sequence[Record],
    persisted: Sequence[Record],
    compare_keys: Sequence[str],
) -> tuple[list[Record], list[Record], list[Record]]:
    """Split rows into (kept, added, deleted).

    kept: desired rows whose identity matches a persisted row
    added: desired rows whose identity matches no persisted row
    deleted: persisted rows whose identity matches no desired row
    """
    desired_ids = [identity(row, compare_keys) for row in desired]
    persisted_ids = [identity(row, compare_keys) for row in persisted]

    kept: list[Record] = []
    added: list[Record] = []
    for row, row_id in zip(desired, desired_ids, strict=True):
        if row_id in persisted_ids:
            kept.append(row)
        else:
            added.append(row)

    deleted = [row for row, row_id in zip(persisted, persisted_ids, strict=True) if row_id not in desired_ids]
    return kept, added, deleted


class ReconcileMixin:
    """sync() body. Mixed into DataMapper."""

    # Shared state annotations (set by DataMapper.__init__)
    _shape: RecordShape
    table: str | None

    if TYPE_CHECKING:
        # Provided by sibling mixins and DataMapper
        def _transactional(self, operation: OperationKind) -> AbstractContextManager[None]: ...
        def _as_dataset(self, dataset: Any) -> RecordSet: ...
        def find(self, conditions: Any = None, order: Any = None, start: int | None = None, limit: int | None = None, key: str | None = None) -> Any: ...
        def create(self, dataset: Iterable[Any]) -> RecordSet: ...
        def delete(self, conditions: Any) -> bool: ...
        def update_batch(self, data: Any, conditions: Any = None) -> bool: ...

    def do_sync(self, dataset: Any, conditions: Any, compare_keys: Sequence[str]) -> SyncResult:
        """Make the rows selected by conditions match dataset.

        Order of writes: delete the stale rows, create the new ones, then
        update each kept row on its own identity.

        Raises:
            MapperConfigurationError: If there are no compare keys (every row would share one identity)
        """
        if not compare_keys:
            raise MapperConfigurationError("sync needs at least one compare key")

        desired = self._as_dataset(dataset)
        with self._transactional(OperationKind.SYNC):
            persisted = self.find(conditions)
            kept, added, deleted = partition(desired, persisted, compare_keys)

            for row in deleted:
                self.delete(dict(identity(row, compare_keys)))

            created = self.create(self._shape.dataset_factory(added))

            for row in kept:
                self.update_batch(row, dict(identity(row, compare_keys)))

        logger.info(
            "sync_completed",
            table=self.table,
            kept=len(kept),
            added=len(added),
            deleted=len(deleted),
        )
        return SyncResult(
            kept=self._shape.dataset_factory(kept),
            added=created,
            deleted=self._shape.dataset_factory(deleted),
        )
