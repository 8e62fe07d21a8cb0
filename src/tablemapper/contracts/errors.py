"""Exception hierarchy for tablemapper.

Storage errors raised by SQLAlchemy are NOT wrapped - they propagate
unchanged after any open transaction has been rolled back.
"""


class MapperError(Exception):
    """Base class for all errors raised by tablemapper itself."""


class MapperConfigurationError(MapperError):
    """Raised when a mapper is used in a way its configuration cannot satisfy.

    Examples:
    - no table bound for an unjoined read or write
    - a scalar condition given to a mapper with multiple primary keys
    - no primary key defined at all
    """


class InputShapeError(MapperError, TypeError):
    """Raised when an argument does not have the shape an operation needs.

    E.g. a dataset that is neither iterable nor record-like, or a column
    name that is not a string.
    """


class ValueNormalizationError(MapperError, ValueError):
    """Raised when a value cannot be coerced to its column's storage type."""

    def __init__(self, column: str, value: object, type_family: str) -> None:
        self.column = column
        self.value = value
        self.type_family = type_family
        super().__init__(f"Cannot store {value!r} in column '{column}' of type family '{type_family}'")


class FlushError(MapperError, RuntimeError):
    """Raised when one half of a flush (delete, then recreate) reports failure.

    Attributes:
        table: Table being flushed
        stage: "delete" or "insert"
    """

    def __init__(self, table: str, stage: str) -> None:
        self.table = table
        self.stage = stage
        verb = "Delete" if stage == "delete" else "Insert"
        super().__init__(f"{verb} row fail when updating relations table: {table}")
