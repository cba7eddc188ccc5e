"""Exception types raised by typed_mapper.

Coercion failures (cast, dump, load) are returned as values, not raised.
The exceptions here cover faults the caller cannot recover from locally:
malformed query expressions, bad deferred values, unknown fields and
values that do not match their declared type.
"""

from __future__ import annotations


class MapperError(Exception):
    """Base exception for typed_mapper."""

    pass


class QueryError(MapperError):
    """An invalid query expression.

    Raised while building a clause (bad direction, unbound variable) and
    while resolving it (deferred value of the wrong kind, unknown field).
    """

    def __init__(self, message: str, file: str | None = None, line: int | None = None) -> None:
        self.file = file
        self.line = line
        if file is not None:
            location = f"{file}:{line}" if line is not None else file
            message = f"{location}: {message}"
        super().__init__(message)


class ChangeError(MapperError):
    """A field value could not be sent to or read from the store."""

    pass


class InvalidTypeError(MapperError, TypeError):
    """A type handle that is neither primitive nor a CustomType."""

    pass
