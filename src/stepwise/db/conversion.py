"""Value conversion between Python values and column types.

Shared by the backends so that SQLite and Postgres reject the same values
with the same SQLSTATE codes: ``22018`` when a value cannot be treated as
the requested type and ``22003`` when it does not fit the requested width.
"""

import math
from collections.abc import Callable
from datetime import date, datetime
from decimal import Decimal, InvalidOperation
from typing import Any

from stepwise.db.backend import NUMERIC_OUT_OF_RANGE, TYPE_MISMATCH, BackendError
from stepwise.models.types import FLOAT_MAX, INTEGER_RANGES, ColumnType

_TRUE_WORDS = frozenset({"true", "t", "yes", "y", "1"})
_FALSE_WORDS = frozenset({"false", "f", "no", "n", "0"})

_ZERO_VALUES: dict[ColumnType, Any] = {
    ColumnType.INTEGER: 0,
    ColumnType.LONG: 0,
    ColumnType.SHORT: 0,
    ColumnType.BYTE: 0,
    ColumnType.FLOAT: 0.0,
    ColumnType.DOUBLE: 0.0,
    ColumnType.BOOLEAN: False,
}


def _cannot_bind(value: Any, column_type: ColumnType) -> BackendError:
    return BackendError(
        TYPE_MISMATCH, f"cannot bind {type(value).__name__} value as {column_type}"
    )


def _cannot_read(value: Any, column_type: ColumnType) -> BackendError:
    return BackendError(
        TYPE_MISMATCH, f"cannot read {type(value).__name__} value {value!r} as {column_type}"
    )


def _out_of_range(value: Any, column_type: ColumnType) -> BackendError:
    return BackendError(NUMERIC_OUT_OF_RANGE, f"value {value} out of range for {column_type}")


def _check_int_range(value: int, column_type: ColumnType) -> int:
    low, high = INTEGER_RANGES[column_type]
    if not low <= value <= high:
        raise _out_of_range(value, column_type)
    return value


def _check_float_range(value: float, column_type: ColumnType) -> float:
    if column_type is ColumnType.FLOAT and math.isfinite(value) and abs(value) > FLOAT_MAX:
        raise _out_of_range(value, column_type)
    return value


# -- Parameters --


def _int_parameter(value: Any, column_type: ColumnType) -> int:
    if isinstance(value, bool) or not isinstance(value, int):
        raise _cannot_bind(value, column_type)
    return _check_int_range(value, column_type)


def _float_parameter(value: Any, column_type: ColumnType) -> float:
    if isinstance(value, bool) or not isinstance(value, (int, float)):
        raise _cannot_bind(value, column_type)
    return _check_float_range(float(value), column_type)


def _decimal_parameter(value: Any, column_type: ColumnType) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, bool):
        raise _cannot_bind(value, column_type)
    if isinstance(value, int):
        return Decimal(value)
    if isinstance(value, float):
        return Decimal(str(value))
    raise _cannot_bind(value, column_type)


def _bool_parameter(value: Any, column_type: ColumnType) -> bool:
    if not isinstance(value, bool):
        raise _cannot_bind(value, column_type)
    return value


def _bytes_parameter(value: Any, column_type: ColumnType) -> bytes:
    if not isinstance(value, (bytes, bytearray, memoryview)):
        raise _cannot_bind(value, column_type)
    return bytes(value)


def _date_parameter(value: Any, column_type: ColumnType) -> date:
    if isinstance(value, datetime):
        return value.date()
    if not isinstance(value, date):
        raise _cannot_bind(value, column_type)
    return value


def _string_parameter(value: Any, column_type: ColumnType) -> str:
    if not isinstance(value, str):
        raise _cannot_bind(value, column_type)
    return value


_PARAMETER_CONVERTERS: dict[ColumnType, Callable[[Any, ColumnType], Any]] = {
    ColumnType.INTEGER: _int_parameter,
    ColumnType.LONG: _int_parameter,
    ColumnType.SHORT: _int_parameter,
    ColumnType.BYTE: _int_parameter,
    ColumnType.FLOAT: _float_parameter,
    ColumnType.DOUBLE: _float_parameter,
    ColumnType.DECIMAL: _decimal_parameter,
    ColumnType.BOOLEAN: _bool_parameter,
    ColumnType.BYTES: _bytes_parameter,
    ColumnType.DATE: _date_parameter,
    ColumnType.STRING: _string_parameter,
}


def to_parameter(value: Any, column_type: ColumnType) -> Any:
    """Validate and normalize a value bound as ``column_type``.

    ``None`` binds SQL NULL for every type. ``OBJECT`` passes the value
    through untouched for the driver to adapt.
    """
    if value is None or column_type is ColumnType.OBJECT:
        return value
    return _PARAMETER_CONVERTERS[column_type](value, column_type)


# -- Columns --


def _int_column(value: Any, column_type: ColumnType) -> int:
    if isinstance(value, (bool, int)):
        result = int(value)
    elif isinstance(value, (float, Decimal)):
        if not math.isfinite(value):
            raise _cannot_read(value, column_type)
        result = int(value)
    elif isinstance(value, str):
        try:
            result = int(value.strip())
        except ValueError:
            try:
                result = int(Decimal(value.strip()))
            except (InvalidOperation, ValueError):
                raise _cannot_read(value, column_type) from None
    else:
        raise _cannot_read(value, column_type)
    return _check_int_range(result, column_type)


def _float_column(value: Any, column_type: ColumnType) -> float:
    if isinstance(value, (bool, int, float, Decimal)):
        result = float(value)
    elif isinstance(value, str):
        try:
            result = float(value.strip())
        except ValueError:
            raise _cannot_read(value, column_type) from None
    else:
        raise _cannot_read(value, column_type)
    return _check_float_range(result, column_type)


def _decimal_column(value: Any, column_type: ColumnType) -> Decimal:
    if isinstance(value, Decimal):
        return value
    if isinstance(value, (bool, int)):
        return Decimal(int(value))
    if isinstance(value, float):
        return Decimal(str(value))
    if isinstance(value, str):
        try:
            return Decimal(value.strip())
        except InvalidOperation:
            raise _cannot_read(value, column_type) from None
    raise _cannot_read(value, column_type)


def _bool_column(value: Any, column_type: ColumnType) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, str):
        word = value.strip().lower()
        if word in _TRUE_WORDS:
            return True
        if word in _FALSE_WORDS:
            return False
    raise _cannot_read(value, column_type)


def _bytes_column(value: Any, column_type: ColumnType) -> bytes:
    if isinstance(value, (bytes, bytearray, memoryview)):
        return bytes(value)
    raise _cannot_read(value, column_type)


def _date_column(value: Any, column_type: ColumnType) -> date:
    if isinstance(value, datetime):
        return value.date()
    if isinstance(value, date):
        return value
    if isinstance(value, str):
        text = value.strip()
        try:
            return date.fromisoformat(text)
        except ValueError:
            pass
        try:
            return datetime.fromisoformat(text).date()
        except ValueError:
            raise _cannot_read(value, column_type) from None
    raise _cannot_read(value, column_type)


def _string_column(value: Any, column_type: ColumnType) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray, memoryview)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError:
            raise _cannot_read(value, column_type) from None
    if isinstance(value, date):
        return value.isoformat()
    return str(value)


_COLUMN_CONVERTERS: dict[ColumnType, Callable[[Any, ColumnType], Any]] = {
    ColumnType.INTEGER: _int_column,
    ColumnType.LONG: _int_column,
    ColumnType.SHORT: _int_column,
    ColumnType.BYTE: _int_column,
    ColumnType.FLOAT: _float_column,
    ColumnType.DOUBLE: _float_column,
    ColumnType.DECIMAL: _decimal_column,
    ColumnType.BOOLEAN: _bool_column,
    ColumnType.BYTES: _bytes_column,
    ColumnType.DATE: _date_column,
    ColumnType.STRING: _string_column,
}


def from_column(value: Any, column_type: ColumnType) -> Any:
    """Convert a raw column value to ``column_type``.

    SQL NULL reads as ``None`` for nullable types and as the zero value
    (``0``, ``0.0``, ``False``) for the primitive ones.
    """
    if column_type is ColumnType.OBJECT:
        return value
    if value is None:
        return None if column_type.nullable else _ZERO_VALUES[column_type]
    return _COLUMN_CONVERTERS[column_type](value, column_type)
