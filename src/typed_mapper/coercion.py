"""Matching, casting, dumping and loading of values against types.

``dump`` and ``load`` are the gates between Python values and the store
and only validate shapes (plus the date/time tuple conversion). ``cast``
is the permissive boundary used for external input such as form params,
and coerces textual values with all-or-nothing semantics.

    >>> cast(PrimitiveType.INTEGER, "1")
    Ok(value=1)
    >>> cast(PrimitiveType.INTEGER, "1.0")
    Error(reason="cannot cast '1.0' to integer")
"""

from __future__ import annotations

import datetime
import re
from decimal import Decimal
from typing import Any

from typed_mapper.errors import InvalidTypeError
from typed_mapper.types import (
    CALENDAR_TYPES,
    TEXT_TYPES,
    ArrayType,
    CustomType,
    Error,
    Ok,
    Outcome,
    PrimitiveType,
    is_primitive,
    type_name,
)

_INTEGER_RE = re.compile(r"[+-]?[0-9]+")
_FLOAT_RE = re.compile(r"[+-]?[0-9]+(?:\.[0-9]+)?(?:[eE][+-]?[0-9]+)?")

_TRUE_STRINGS = ("true", "1")
_FALSE_STRINGS = ("false", "0")


def _custom(type_: Any) -> CustomType:
    """Return type_ as a custom type, rejecting unknown handles."""
    if isinstance(type_, CustomType):
        return type_
    raise InvalidTypeError(f"{type_!r} is not a primitive type nor a CustomType")


def matches(type_: Any, primitive: Any) -> bool:
    """Check if a given type matches with a primitive type.

    ``any`` on either side always matches. Custom types are reduced to
    their underlying type first. Arrays match when both sides are arrays
    and their element types match.
    """
    if primitive is PrimitiveType.ANY or type_ is PrimitiveType.ANY:
        return True
    if is_primitive(type_):
        return _do_match(type_, primitive)
    return matches(_custom(type_).type(), primitive)


def _do_match(left: Any, right: Any) -> bool:
    if isinstance(left, ArrayType) and isinstance(right, ArrayType):
        return matches(left.element_type, right.element_type)
    return left == right


def of_type(primitive: Any, value: Any) -> bool:
    """Check if a value is of the given primitive type. No coercion happens."""
    if primitive is PrimitiveType.ANY:
        return True
    if primitive is PrimitiveType.INTEGER:
        return isinstance(value, int) and not isinstance(value, bool)
    if primitive is PrimitiveType.FLOAT:
        return isinstance(value, float)
    if primitive is PrimitiveType.BOOLEAN:
        return isinstance(value, bool)
    if isinstance(primitive, PrimitiveType) and primitive in TEXT_TYPES:
        return isinstance(value, (str, bytes))
    if isinstance(primitive, ArrayType):
        return isinstance(value, list) and all(
            of_type(primitive.element_type, item) for item in value
        )
    if primitive is PrimitiveType.DECIMAL:
        return isinstance(value, Decimal)
    if primitive is PrimitiveType.DATETIME:
        return isinstance(value, datetime.datetime)
    if primitive is PrimitiveType.DATE:
        return isinstance(value, datetime.date) and not isinstance(value, datetime.datetime)
    if primitive is PrimitiveType.TIME:
        return isinstance(value, datetime.time)
    raise InvalidTypeError(f"{primitive!r} is not a primitive type")


def dump(type_: Any, value: Any) -> Outcome:
    """Dump a value to the given type.

    Opposite to casting, dumping requires the value to already have the
    right shape, as it will be sent to the underlying data store.

        >>> dump(PrimitiveType.STRING, None)
        Ok(value=None)
        >>> dump(PrimitiveType.INTEGER, "10")
        Error(reason="'10' is not a integer")
    """
    if value is None:
        return Ok(None)
    if isinstance(type_, PrimitiveType) and type_ in CALENDAR_TYPES:
        return _dump_calendar(type_, value)
    if not is_primitive(type_):
        return _custom(type_).dump(value)
    if of_type(type_, value):
        return Ok(value)
    return Error(f"{value!r} is not a {type_name(type_)}")


def load(type_: Any, value: Any) -> Outcome:
    """Load a value with the given type.

    Invoked when loading store-native values into a struct. Mismatched
    shapes mean corrupt data or schema drift and fail.
    """
    if value is None:
        return Ok(None)
    if isinstance(type_, PrimitiveType) and type_ in CALENDAR_TYPES:
        return _load_calendar(type_, value)
    if not is_primitive(type_):
        return _custom(type_).load(value)
    if of_type(type_, value):
        return Ok(value)
    return Error(f"{value!r} is not a {type_name(type_)}")


def cast(type_: Any, value: Any) -> Outcome:
    """Cast a value to the given type.

    ``None`` casts to every primitive type since stores allow null on any
    column. Custom types handle ``None`` themselves.
    """
    if value is None:
        return Ok(None)
    if not is_primitive(type_):
        return _custom(type_).cast(value)
    if of_type(type_, value):
        return Ok(value)
    return _do_cast(type_, value)


def _do_cast(type_: Any, value: Any) -> Outcome:
    failure = Error(f"cannot cast {value!r} to {type_name(type_)}")

    if type_ is PrimitiveType.INTEGER and isinstance(value, str):
        if _INTEGER_RE.fullmatch(value):
            return Ok(int(value))
        return failure

    if type_ is PrimitiveType.FLOAT and isinstance(value, str):
        if _FLOAT_RE.fullmatch(value):
            return Ok(float(value))
        return failure

    if type_ is PrimitiveType.BOOLEAN and isinstance(value, str):
        if value in _TRUE_STRINGS:
            return Ok(True)
        if value in _FALSE_STRINGS:
            return Ok(False)
        return failure

    # Decimal text follows the float grammar
    if type_ is PrimitiveType.DECIMAL and isinstance(value, str):
        if _FLOAT_RE.fullmatch(value):
            return Ok(Decimal(value))
        return failure

    if isinstance(type_, ArrayType) and isinstance(value, list):
        items = []
        for item in value:
            result = cast(type_.element_type, item)
            if isinstance(result, Error):
                return failure
            items.append(result.value)
        return Ok(items)

    # Text never casts to date, time or datetime
    return failure


def blank(type_: Any, value: Any) -> bool:
    """Check if an already cast value is blank.

    Used when casting required fields: ``None``, the empty list and strings
    made only of spaces are blank regardless of the primitive type.
    """
    if value is None:
        return True
    if not is_primitive(type_):
        return _custom(type_).blank(value)
    if isinstance(value, str):
        return value.lstrip(" ") == ""
    if isinstance(value, bytes):
        return value.lstrip(b" ") == b""
    return isinstance(value, list) and not value


# Date/time conversion between datetime objects and store tuples


def _dump_calendar(type_: PrimitiveType, value: Any) -> Outcome:
    if not of_type(type_, value):
        return Error(f"{value!r} is not a {type_.value}")
    if type_ is PrimitiveType.DATETIME:
        return Ok((date_to_tuple(value), time_to_tuple(value)))
    if type_ is PrimitiveType.DATE:
        return Ok(date_to_tuple(value))
    return Ok(time_to_tuple(value))


def _load_calendar(type_: PrimitiveType, value: Any) -> Outcome:
    # Drivers that already return datetime objects
    if of_type(type_, value):
        return Ok(value)
    try:
        if type_ is PrimitiveType.DATETIME:
            date_part, time_part = value
            return Ok(datetime.datetime(*date_part, *time_part))
        if type_ is PrimitiveType.DATE:
            return Ok(datetime.date(*value))
        return Ok(datetime.time(*value))
    except (TypeError, ValueError) as exc:
        return Error(f"cannot load {value!r} as {type_.value}: {exc}")


def date_to_tuple(value: datetime.date) -> tuple[int, int, int]:
    """Return the (year, month, day) store form of a date or datetime."""
    return (value.year, value.month, value.day)


def time_to_tuple(value: datetime.time | datetime.datetime) -> tuple[int, int, int]:
    """Return the (hour, minute, second) store form of a time or datetime."""
    return (value.hour, value.minute, value.second)
