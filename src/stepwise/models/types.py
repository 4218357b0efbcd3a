"""Column and parameter type vocabulary."""

from datetime import date, datetime
from decimal import Decimal
from enum import StrEnum
from typing import Any


class ColumnType(StrEnum):
    """Semantic type requested when binding a parameter or reading a column.

    The values double as the display names used in diagnostics, so a
    backend's own type names are mapped onto these before being reported.
    """

    INTEGER = "integer"
    LONG = "long"
    SHORT = "short"
    FLOAT = "float"
    DOUBLE = "double"
    DECIMAL = "decimal"
    BOOLEAN = "boolean"
    BYTE = "byte"
    BYTES = "bytes"
    DATE = "date"
    STRING = "string"
    OBJECT = "object"

    @classmethod
    def infer(cls, value: Any) -> "ColumnType":
        """Pick the column type for an untyped ``bind()`` call."""
        # bool before int: bool is an int subclass
        if isinstance(value, bool):
            return cls.BOOLEAN
        if isinstance(value, int):
            return cls.LONG
        if isinstance(value, float):
            return cls.DOUBLE
        if isinstance(value, Decimal):
            return cls.DECIMAL
        if isinstance(value, (bytes, bytearray, memoryview)):
            return cls.BYTES
        # datetime is a date subclass but carries a time part
        if isinstance(value, date) and not isinstance(value, datetime):
            return cls.DATE
        if isinstance(value, str):
            return cls.STRING
        return cls.OBJECT

    @property
    def nullable(self) -> bool:
        """Whether SQL NULL reads back as ``None`` rather than a zero value."""
        return self in _NULLABLE


_NULLABLE = frozenset(
    {
        ColumnType.DECIMAL,
        ColumnType.BYTES,
        ColumnType.DATE,
        ColumnType.STRING,
        ColumnType.OBJECT,
    }
)

# Inclusive signed ranges for the fixed-width integer types
INTEGER_RANGES: dict[ColumnType, tuple[int, int]] = {
    ColumnType.BYTE: (-(2**7), 2**7 - 1),
    ColumnType.SHORT: (-(2**15), 2**15 - 1),
    ColumnType.INTEGER: (-(2**31), 2**31 - 1),
    ColumnType.LONG: (-(2**63), 2**63 - 1),
}

FLOAT_MAX = 3.4028234663852886e38
