"""Column metadata contract produced by schema introspection."""

from dataclasses import dataclass, replace
from typing import Any

from tablemapper.contracts.enums import KeyRole

AUTO_INCREMENT = "auto_increment"


@dataclass(frozen=True)
class ColumnDescriptor:
    """Metadata for a single table column.

    `default` is the raw literal declared by the schema, or a type-generic
    value synthesized by the schema cache for NOT NULL columns that declare
    none. `type` keeps the declared SQL spelling (e.g. "VARCHAR(255)").
    """

    name: str
    type: str
    nullable: bool = True
    default: Any = None
    key: KeyRole = KeyRole.NONE
    extra: str = ""

    @property
    def type_family(self) -> str:
        """Lower-cased base type name, e.g. "varchar" for "VARCHAR(255)"."""
        base = self.type.split("(", 1)[0]
        return base.strip().lower()

    @property
    def is_primary(self) -> bool:
        return self.key is KeyRole.PRIMARY

    @property
    def is_auto_increment(self) -> bool:
        return self.extra == AUTO_INCREMENT

    def with_default(self, default: Any) -> "ColumnDescriptor":
        """Return a copy carrying a different default."""
        return replace(self, default=default)
