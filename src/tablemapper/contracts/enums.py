"""All modes and kinds used across subsystem boundaries."""

from enum import StrEnum


class CastType(StrEnum):
    """Declared storage representation of a record field.

    Used only on write, by Record.cast_for_store().
    """

    INTEGER = "integer"
    FLOAT = "float"
    STRING = "string"
    BOOLEAN = "boolean"
    OBJECT = "object"
    ARRAY = "array"
    JSON = "json"
    DATE = "date"
    DATETIME = "datetime"
    TIMESTAMP = "timestamp"


class KeyRole(StrEnum):
    """Key role of a column as reported by schema introspection."""

    PRIMARY = "PRI"
    NONE = ""


class JoinType(StrEnum):
    """SQL join flavours supported by the join registry."""

    LEFT = "LEFT"
    RIGHT = "RIGHT"
    INNER = "INNER"
    OUTER = "OUTER"


class ComparisonOperator(StrEnum):
    """Operators accepted by Comparison conditions."""

    EQ = "="
    NEQ = "!="
    GT = ">"
    GTE = ">="
    LT = "<"
    LTE = "<="
    IN = "IN"
    NOT_IN = "NOT IN"
    LIKE = "LIKE"
    NOT_LIKE = "NOT LIKE"
    IS = "IS"
    IS_NOT = "IS NOT"


class OperationKind(StrEnum):
    """Public mapper operations that emit lifecycle notifications.

    The value doubles as the suffix of the legacy event name
    (e.g. onBeforeFindOne).
    """

    FIND = "Find"
    FIND_ALL = "FindAll"
    FIND_ONE = "FindOne"
    FIND_COLUMN = "FindColumn"
    FIND_RESULT = "FindResult"
    FIND_ITERATE = "FindIterate"
    COUNT = "Count"
    CREATE = "Create"
    CREATE_ONE = "CreateOne"
    UPDATE = "Update"
    UPDATE_ONE = "UpdateOne"
    UPDATE_BATCH = "UpdateBatch"
    SAVE = "Save"
    SAVE_ONE = "SaveOne"
    FLUSH = "Flush"
    SYNC = "Sync"
    DELETE = "Delete"


class HookPhase(StrEnum):
    """When a lifecycle notification fires relative to the operation body."""

    BEFORE = "Before"
    AFTER = "After"
