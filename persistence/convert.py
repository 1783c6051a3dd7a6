"""
Value coercion between driver row values and record attributes.

One function per canonical kind. Each accepts whatever representation a
driver may hand back for that kind (SQLite returns booleans as integers and
datetimes as ISO strings, for instance) and either returns the canonical
Python value or raises ConversionError.
"""

from datetime import date, datetime, timezone
from decimal import Decimal
from typing import Any, Callable, Dict

from models.base import DataType
from models.table import Field
from core.exceptions import ConversionError


INT32_MIN = -2 ** 31
INT32_MAX = 2 ** 31 - 1

_ZERO_DATE_PREFIX = "0000-00-00"


def _fail(kind: str, value: Any, cause: Exception = None) -> ConversionError:
    return ConversionError(
        f"Cannot convert {type(value).__name__} to {kind}",
        context={"data_type": kind, "value": repr(value)},
        original_exception=cause
    )


def to_bool(value: Any) -> bool:
    if isinstance(value, bool):
        return value
    if isinstance(value, (int, float, Decimal)):
        return value != 0
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii", errors="replace")
    if isinstance(value, str):
        text = value.strip().lower()
        if text in ("1", "t", "true", "y", "yes"):
            return True
        if text in ("0", "f", "false", "n", "no", ""):
            return False
    raise _fail("bool", value)


def to_int(value: Any) -> int:
    if isinstance(value, bool):
        return int(value)
    if isinstance(value, int):
        return value
    if isinstance(value, (float, Decimal)):
        if value != int(value):
            raise _fail("int", value)
        return int(value)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii", errors="replace")
    if isinstance(value, str):
        try:
            return int(value.strip())
        except ValueError as e:
            raise _fail("int", value, e)
    raise _fail("int", value)


def to_float(value: Any) -> float:
    if isinstance(value, (bool, int, float, Decimal)):
        return float(value)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii", errors="replace")
    if isinstance(value, str):
        try:
            return float(value.strip())
        except ValueError as e:
            raise _fail("float", value, e)
    raise _fail("float", value)


def to_str(value: Any) -> str:
    if isinstance(value, str):
        return value
    if isinstance(value, (bytes, bytearray)):
        try:
            return bytes(value).decode("utf-8")
        except UnicodeDecodeError as e:
            raise _fail("string", value, e)
    if isinstance(value, datetime):
        return value.isoformat(sep=" ")
    if isinstance(value, (bool, int, float, Decimal)):
        return str(value)
    raise _fail("string", value)


def to_bytes(value: Any) -> bytes:
    if isinstance(value, bytes):
        return value
    if isinstance(value, (bytearray, memoryview)):
        return bytes(value)
    if isinstance(value, str):
        return value.encode("utf-8")
    raise _fail("blob", value)


def to_datetime(value: Any) -> datetime:
    """
    Coerce a stored timestamp.

    Accepts datetime, date, ISO 8601 text (date only or date and time),
    integer epoch seconds, and bytes holding ISO text. All-zero dates
    ("0000-00-00") map to datetime.min. Aware values are returned unchanged.
    """
    if isinstance(value, datetime):
        return value
    if isinstance(value, date):
        return datetime(value.year, value.month, value.day)
    if isinstance(value, bool):
        raise _fail("datetime", value)
    if isinstance(value, (int, float)):
        try:
            return datetime.fromtimestamp(value, tz=timezone.utc).replace(tzinfo=None)
        except (OverflowError, OSError, ValueError) as e:
            raise _fail("datetime", value, e)
    if isinstance(value, (bytes, bytearray)):
        value = bytes(value).decode("ascii", errors="replace")
    if isinstance(value, str):
        text = value.strip()
        if text.startswith(_ZERO_DATE_PREFIX):
            return datetime.min
        try:
            return datetime.fromisoformat(text.replace("Z", "+00:00"))
        except ValueError as e:
            raise _fail("datetime", value, e)
    raise _fail("datetime", value)


_COERCERS: Dict[DataType, Callable[[Any], Any]] = {
    DataType.BOOL: to_bool,
    DataType.INT32: to_int,
    DataType.INT64: to_int,
    DataType.FLOAT: to_float,
    DataType.DATETIME: to_datetime,
    DataType.STRING: to_str,
    DataType.BLOB: to_bytes,
}


def coerce(field: Field, value: Any) -> Any:
    """
    Convert a driver value into the record value of a field.

    Args:
        field: Target field
        value: Raw row value

    Returns:
        The canonical value; None only for nullable fields

    Raises:
        ConversionError: If the value does not fit the field's data type
    """
    if value is None:
        return None if field.nullable else field.zero_value()

    try:
        result = _COERCERS[field.data_type](value)
    except ConversionError as e:
        e.context.update({"field_name": field.name, "column": field.column})
        raise

    if field.data_type == DataType.INT32 and not INT32_MIN <= result <= INT32_MAX:
        raise ConversionError(
            f"Value {result} is out of range for {field.column}",
            context={"field_name": field.name, "column": field.column, "data_type": field.data_type.value}
        )
    return result


def to_db(field: Field, value: Any) -> Any:
    """Prepare a record value for binding"""
    if value is None:
        return None if field.nullable else field.zero_value()
    if field.data_type == DataType.DATETIME:
        value = to_datetime(value)
        if value.tzinfo is not None:
            value = value.astimezone(timezone.utc).replace(tzinfo=None)
        return value
    if field.data_type == DataType.FLOAT and isinstance(value, Decimal):
        return float(value)
    return value


def primary_key_value(value: Any) -> Any:
    """
    Validate a primary key value.

    Raises:
        ConversionError: If the key is neither an integer nor a string
    """
    if value is None or isinstance(value, str):
        return value
    if isinstance(value, int) and not isinstance(value, bool):
        return value
    raise ConversionError(
        f"Unsupported primary key type {type(value).__name__}",
        context={"value": repr(value)}
    )


def is_new_key(value: Any) -> bool:
    """A zero key marks a row that has never been stored"""
    return value is None or value == 0 or value == ""
