"""Shared contracts for cross-boundary data types.

This package is a LEAF MODULE with no outbound dependencies to core.
Settings classes are NOT re-exported here - import them from
tablemapper.core.config.

Import patterns:
    from tablemapper.contracts import Record, ColumnDescriptor, gte
    from tablemapper.core.config import MapperSettings
"""

from tablemapper.contracts.conditions import (
    Comparison,
    Condition,
    Equals,
    Raw,
    gt,
    gte,
    in_,
    is_not_null,
    is_null,
    like,
    lt,
    lte,
    neq,
    not_in,
    not_like,
    to_conditions,
)
from tablemapper.contracts.enums import (
    CastType,
    ComparisonOperator,
    HookPhase,
    JoinType,
    KeyRole,
    OperationKind,
)
from tablemapper.contracts.errors import (
    FlushError,
    InputShapeError,
    MapperConfigurationError,
    MapperError,
    ValueNormalizationError,
)
from tablemapper.contracts.events import MapperEvent
from tablemapper.contracts.records import Record, RecordSet, RecordShape
from tablemapper.contracts.schema import AUTO_INCREMENT, ColumnDescriptor

__all__ = [
    "AUTO_INCREMENT",
    "CastType",
    "ColumnDescriptor",
    "Comparison",
    "ComparisonOperator",
    "Condition",
    "Equals",
    "FlushError",
    "HookPhase",
    "InputShapeError",
    "JoinType",
    "KeyRole",
    "MapperConfigurationError",
    "MapperError",
    "MapperEvent",
    "OperationKind",
    "Raw",
    "Record",
    "RecordSet",
    "RecordShape",
    "ValueNormalizationError",
    "gt",
    "gte",
    "in_",
    "is_not_null",
    "is_null",
    "like",
    "lt",
    "lte",
    "neq",
    "not_in",
    "not_like",
    "to_conditions",
]
