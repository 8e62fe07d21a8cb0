"""Schema-aware value normalization applied right before every write.

Per field, in order:
1. None with update_nulls=False -> field left out (partial update)
2. rich values -> storage primitives (datetime, Enum, pydantic models, ...)
3. leftover composites (dict, list, arbitrary objects) -> None
4. None -> column default (NOT NULL) or None
5. "" -> None (nullable) or the type-generic default (NOT NULL)
6. anything else -> coerced to the column's scalar type
"""

from __future__ import annotations

import json
from collections.abc import Callable, Mapping
from datetime import date, datetime, time
from decimal import Decimal
from enum import Enum
from pathlib import PurePath
from typing import Any
from uuid import UUID

from pydantic import BaseModel

from tablemapper.contracts.errors import ValueNormalizationError
from tablemapper.contracts.records import to_bool
from tablemapper.contracts.schema import ColumnDescriptor
from tablemapper.core.database import type_kind

_SCALAR_TYPES = (str, int, float, bool, bytes, bytearray, memoryview)


def to_storage_primitive(value: Any, date_format: str) -> Any:
    """Convert well-known rich values into something a driver can bind.

    Values without a known conversion are returned unchanged.
    """
    # Enum first: StrEnum/IntEnum members are also str/int
    if isinstance(value, Enum):
        return value.value
    if isinstance(value, datetime):
        return value.strftime(date_format)
    if isinstance(value, date | time):
        return value.isoformat()
    if isinstance(value, BaseModel):
        return value.model_dump_json()
    if callable(getattr(value, "__json__", None)):
        return json.dumps(value.__json__())
    if isinstance(value, Decimal | UUID | PurePath):
        return str(value)
    return value


def is_storable_scalar(value: Any) -> bool:
    return value is None or isinstance(value, _SCALAR_TYPES)


def _to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, float):
        return int(value)
    text = value.decode() if isinstance(value, bytes | bytearray) else str(value)
    text = text.strip()
    try:
        return int(text)
    except ValueError:
        return int(float(text))


class ValueNormalizer:
    """Makes a row safe to store against a table's column descriptors.

    Args:
        default_for: Type-generic default resolver (MapperDatabase.default_for)
        date_format: strftime format for datetime values
    """

    def __init__(self, default_for: Callable[[str], Any], date_format: str) -> None:
        self._default_for = default_for
        self._date_format = date_format

    def normalize(self, row: Mapping[str, Any], fields: Mapping[str, ColumnDescriptor], update_nulls: bool) -> dict[str, Any]:
        """Normalize every known column of `row`.

        Keys of `row` that are not in `fields` are dropped.

        Raises:
            ValueNormalizationError: If a value cannot be coerced to its column type
        """
        result: dict[str, Any] = {}
        for name, value in row.items():
            descriptor = fields.get(name)
            if descriptor is None:
                continue
            if value is None and not update_nulls:
                continue
            result[name] = self.normalize_value(descriptor, value)
        return result

    def normalize_value(self, descriptor: ColumnDescriptor, value: Any) -> Any:
        value = to_storage_primitive(value, self._date_format)
        if not is_storable_scalar(value):
            value = None

        if value is None:
            return None if descriptor.nullable else descriptor.default

        if isinstance(value, str) and value == "":
            # Type-generic default, not the declared one
            return None if descriptor.nullable else self._default_for(descriptor.type_family)

        return self._coerce(descriptor, value)

    def _coerce(self, descriptor: ColumnDescriptor, value: Any) -> Any:
        kind = type_kind(descriptor.type_family)
        try:
            match kind:
                case "integer":
                    return _to_int(value)
                case "float":
                    return float(value)
                case "boolean":
                    return to_bool(value)
                case "string":
                    if isinstance(value, bytes | bytearray | memoryview):
                        return bytes(value).decode()
                    return str(value)
        except (TypeError, ValueError, OverflowError) as exc:
            raise ValueNormalizationError(descriptor.name, value, descriptor.type_family) from exc
        # date/time/binary/unknown types are bound as given
        return value
