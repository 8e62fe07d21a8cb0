# tests/property/core/test_normalizer_properties.py
"""Property-based tests for write-time value normalization.

Invariants:
- None never reaches a NOT NULL column: it becomes the column default
- "" becomes None on nullable columns and the type default on NOT NULL ones
- integer columns accept any integer, or its decimal string, unchanged
- composites are never bound: they collapse to None / the default
- partial updates never emit keys for None values
"""

from __future__ import annotations

from typing import Any

from hypothesis import given
from hypothesis import strategies as st

from tablemapper.contracts.schema import ColumnDescriptor
from tablemapper.core.database import MapperDatabase
from tablemapper.core.mapper import ValueNormalizer
from tests.property.settings import STANDARD_SETTINGS

FORMAT = "%Y-%m-%d %H:%M:%S"

_DB = MapperDatabase.in_memory()
NORMALIZER = ValueNormalizer(_DB.default_for, FORMAT)

TYPES = ["INTEGER", "BIGINT", "FLOAT", "BOOLEAN", "VARCHAR(40)", "TEXT", "DATE", "DATETIME", "TIME", "BLOB"]

# =============================================================================
# Strategies
# =============================================================================

descriptors = st.builds(
    lambda type_, nullable, default: ColumnDescriptor(name="c", type=type_, nullable=nullable, default=default),
    st.sampled_from(TYPES),
    st.booleans(),
    st.one_of(st.none(), st.integers(), st.text(max_size=5)),
)

composites = st.one_of(
    st.dictionaries(st.text(max_size=3), st.integers(), max_size=3),
    st.lists(st.integers(), max_size=3),
    st.sets(st.integers(), max_size=3),
)


# =============================================================================
# Properties
# =============================================================================


@given(descriptor=descriptors)
@STANDARD_SETTINGS
def test_none_trichotomy(descriptor: ColumnDescriptor) -> None:
    result = NORMALIZER.normalize_value(descriptor, None)

    if descriptor.nullable:
        assert result is None
    else:
        assert result == descriptor.default


@given(descriptor=descriptors)
@STANDARD_SETTINGS
def test_empty_string_trichotomy(descriptor: ColumnDescriptor) -> None:
    result = NORMALIZER.normalize_value(descriptor, "")

    if descriptor.nullable:
        assert result is None
    else:
        assert result == _DB.default_for(descriptor.type_family)


@given(value=st.integers(min_value=-(2**62), max_value=2**62), as_text=st.booleans())
@STANDARD_SETTINGS
def test_integers_round_trip(value: int, as_text: bool) -> None:
    descriptor = ColumnDescriptor(name="c", type="INTEGER")

    assert NORMALIZER.normalize_value(descriptor, str(value) if as_text else value) == value


@given(descriptor=descriptors, value=composites)
@STANDARD_SETTINGS
def test_composites_never_bound(descriptor: ColumnDescriptor, value: Any) -> None:
    result = NORMALIZER.normalize_value(descriptor, value)

    assert result == (None if descriptor.nullable else descriptor.default)


@given(row=st.dictionaries(st.sampled_from(["a", "b", "c"]), st.one_of(st.none(), st.text(min_size=1, max_size=5))))
@STANDARD_SETTINGS
def test_partial_update_drops_none(row: dict[str, Any]) -> None:
    fields = {name: ColumnDescriptor(name=name, type="TEXT") for name in ("a", "b", "c")}

    result = NORMALIZER.normalize(row, fields, update_nulls=False)

    assert set(result) == {name for name, value in row.items() if value is not None}
