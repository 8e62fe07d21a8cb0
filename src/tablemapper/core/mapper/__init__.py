# src/tablemapper/core/mapper/__init__.py
"""DataMapper: table-bound CRUD, joined reads and set reconciliation.

Primary API:
    DataMapper - Mapper bound to one table
    SyncResult - (kept, added, deleted) partitions returned by sync()

Building blocks:
    ValueNormalizer - Schema-aware value preparation before writes
    partition / identity - Pure reconciliation helpers
"""

from tablemapper.core.mapper._normalizer import ValueNormalizer, to_storage_primitive
from tablemapper.core.mapper._reconcile import SyncResult, identity, partition
from tablemapper.core.mapper.mapper import DataMapper

__all__ = [
    "DataMapper",
    "SyncResult",
    "ValueNormalizer",
    "identity",
    "partition",
    "to_storage_primitive",
]
