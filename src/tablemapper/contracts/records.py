"""Record and dataset containers the mapper binds rows into.

Record is an ordered column -> value mapping that also carries per-field
cast tags. Subclasses declare casts at class level:

    class Article(Record):
        casts = {"params": CastType.JSON, "created": CastType.DATETIME}

The casts are applied only on write (cast_for_store), never on read.
"""

from __future__ import annotations

import json
from collections.abc import Callable, Iterable, Iterator, Mapping, MutableMapping
from dataclasses import dataclass, field
from datetime import UTC, date, datetime
from typing import Any, ClassVar

from tablemapper.contracts.enums import CastType
from tablemapper.contracts.errors import InputShapeError

_COMPOSITE_TYPES = (dict, list, tuple, set, frozenset)
_FALSE_STRINGS = frozenset({"", "0", "false", "no", "off"})


def to_datetime(value: Any) -> datetime:
    """Parse a date-like value into a datetime.

    Accepts datetime/date objects, ISO-8601 strings and epoch numbers.

    Raises:
        ValueError: If a string is not ISO-8601
        TypeError: If the value is not date-like at all
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        raise TypeError(f"Cannot interpret {value!r} as a date")
    if isinstance(value, int | float):
        return datetime.fromtimestamp(value, UTC)
    if isinstance(value, str):
        return datetime.fromisoformat(value.strip())
    raise TypeError(f"Cannot interpret {type(value).__name__} as a date")


def _is_json_text(value: Any) -> bool:
    if not isinstance(value, str):
        return False
    try:
        json.loads(value)
    except ValueError:
        return False
    return True


def to_bool(value: Any) -> bool:
    if isinstance(value, str):
        return value.strip().lower() not in _FALSE_STRINGS
    return bool(value)


def cast_value(value: Any, cast: CastType, date_format: str) -> Any:
    """Apply one cast tag to a non-None value."""
    match cast:
        case CastType.INTEGER:
            return int(value)
        case CastType.FLOAT:
            return float(value)
        case CastType.STRING:
            return str(value)
        case CastType.BOOLEAN:
            return to_bool(value)
        case CastType.OBJECT | CastType.ARRAY:
            if isinstance(value, _COMPOSITE_TYPES):
                return json.dumps(value)
            return value
        case CastType.JSON:
            if _is_json_text(value):
                return value
            return json.dumps(value)
        case CastType.DATE | CastType.DATETIME:
            return to_datetime(value).strftime(date_format)
        case CastType.TIMESTAMP:
            if isinstance(value, int) and not isinstance(value, bool):
                return value
            return int(to_datetime(value).timestamp())
    raise ValueError(f"Unknown cast type: {cast!r}")


class Record(MutableMapping[str, Any]):
    """One row as an ordered column -> value mapping.

    Missing keys read as None through get(); item access raises KeyError
    like any mapping.
    """

    casts: ClassVar[Mapping[str, CastType]] = {}

    def __init__(self, data: Mapping[str, Any] | Iterable[tuple[str, Any]] | None = None, *, casts: Mapping[str, CastType] | None = None) -> None:
        self._data: dict[str, Any] = {}
        self._casts: dict[str, CastType] = {**type(self).casts, **(casts or {})}
        if data is not None:
            self.update(data)

    def __getitem__(self, key: str) -> Any:
        return self._data[key]

    def __setitem__(self, key: str, value: Any) -> None:
        if not isinstance(key, str):
            raise InputShapeError(f"Record field names must be strings, got {type(key).__name__}: {key!r}")
        self._data[key] = value

    def __delitem__(self, key: str) -> None:
        del self._data[key]

    def __iter__(self) -> Iterator[str]:
        return iter(self._data)

    def __len__(self) -> int:
        return len(self._data)

    def __repr__(self) -> str:
        return f"{type(self).__name__}({self._data!r})"

    def __eq__(self, other: object) -> bool:
        if isinstance(other, Mapping):
            return dict(self.items()) == dict(other.items())
        return NotImplemented

    __hash__ = None  # type: ignore[assignment]

    @property
    def field_casts(self) -> dict[str, CastType]:
        """Effective cast map (class-level casts overridden by instance casts)."""
        return dict(self._casts)

    def set_cast(self, field_name: str, cast: CastType) -> None:
        self._casts[field_name] = cast

    def to_dict(self) -> dict[str, Any]:
        return dict(self._data)

    def for_storage(self, fields: Iterable[str]) -> dict[str, Any]:
        """Restrict to the given columns; unknown fields are dropped silently.

        Columns absent from the record are present in the result as None.
        """
        return {name: self._data.get(name) for name in fields}

    def cast_for_store(self, data: Mapping[str, Any], date_format: str) -> dict[str, Any]:
        """Apply this record's cast tags to a storage payload.

        Only fields that declare a cast and hold a non-None value are touched.
        """
        result = dict(data)
        if not self._casts:
            return result
        for name, cast in self._casts.items():
            if name in result and result[name] is not None:
                result[name] = cast_value(result[name], cast, date_format)
        return result


class RecordSet(list[Record]):
    """Ordered collection of records returned by reads and writes."""

    def column(self, name: str) -> list[Any]:
        """Values of one field across all records (None where absent)."""
        return [record.get(name) for record in self]


def _default_dataset(records: Iterable[Record]) -> RecordSet:
    return RecordSet(records)


@dataclass(frozen=True)
class RecordShape:
    """Factories used to materialize rows and result sets.

    record_factory receives a column -> value mapping; dataset_factory
    receives an iterable of records.
    """

    record_factory: Callable[[Mapping[str, Any]], Record] = field(default=Record)
    dataset_factory: Callable[[Iterable[Record]], RecordSet] = field(default=_default_dataset)

    def bind(self, data: Any) -> Record:
        """Bind raw row data into a record.

        Raises:
            InputShapeError: If data is not a mapping, key/value pairs or an object with attributes
        """
        if isinstance(data, Mapping):
            return self.record_factory(data)
        if hasattr(data, "_mapping"):
            # SQLAlchemy Row
            return self.record_factory(dict(data._mapping))
        if hasattr(data, "__dict__") and not isinstance(data, type):
            return self.record_factory({k: v for k, v in vars(data).items() if not k.startswith("_")})
        raise InputShapeError(f"Cannot bind {type(data).__name__} into a record")

    def bind_dataset(self, records: Iterable[Any]) -> RecordSet:
        return self.dataset_factory(self.bind(item) for item in records)
