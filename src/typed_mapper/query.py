"""Query values produced by the builders.

Everything here is immutable: builders return new values rather than
mutating the ones they receive.
"""

from __future__ import annotations

from dataclasses import dataclass, field, replace
from enum import Enum
from typing import Any, Union

from typed_mapper.errors import QueryError
from typed_mapper.schema import Schema
from typed_mapper.types import PrimitiveType, Type


class Direction(Enum):
    """Sort direction of an order_by clause."""

    ASC = "asc"
    DESC = "desc"


# Mapping from keyword names to Direction values
DIRECTION_NAMES: dict[str, Direction] = {d.value: d for d in Direction}


@dataclass(frozen=True)
class DeferredDirection:
    """A direction interpolated with ``^name``, checked when the query runs."""

    name: str


@dataclass(frozen=True)
class Deferred:
    """Placeholder for a parameter value interpolated with ``^name``."""

    name: str


# Escaped expressions


@dataclass(frozen=True)
class SourceRef:
    """Reference to the query source bound at ``index`` (``&0``, ``&1``...)."""

    index: int

    def __str__(self) -> str:
        return f"&{self.index}"


@dataclass(frozen=True)
class FieldRef:
    """Reference to a field of a bound source (``&0.title``)."""

    source: SourceRef
    field: str

    def __str__(self) -> str:
        return f"{self.source}.{self.field}"


@dataclass(frozen=True)
class ParamRef:
    """Positional parameter placeholder (``^0``)."""

    index: int

    def __str__(self) -> str:
        return f"^{self.index}"


@dataclass(frozen=True)
class CallExpr:
    """Function call over escaped arguments."""

    name: str
    args: tuple[Any, ...] = field(default_factory=tuple)

    def __str__(self) -> str:
        return f"{self.name}({', '.join(str(a) for a in self.args)})"


Escaped = Union[SourceRef, FieldRef, ParamRef, CallExpr]


@dataclass(frozen=True)
class ParamSlot:
    """A parameter value (or Deferred placeholder) and the type it is cast to."""

    value: Any
    type: Type = PrimitiveType.ANY

    @property
    def deferred(self) -> bool:
        return isinstance(self.value, Deferred)


@dataclass(frozen=True)
class ParamTable:
    """Ordered accumulator of parameters collected while escaping.

    Indexes are consecutive and follow insertion order, which is the order
    used for positional substitution later on.
    """

    slots: tuple[ParamSlot, ...] = ()

    def append_parameter(self, value: Any, type_: Type = PrimitiveType.ANY) -> tuple[int, ParamTable]:
        """Return the index of the new parameter and the extended table."""
        index = len(self.slots)
        return index, ParamTable(self.slots + (ParamSlot(value, type_),))

    def to_list(self) -> list[ParamSlot]:
        """Return the positional form of the table."""
        return list(self.slots)

    def __len__(self) -> int:
        return len(self.slots)


@dataclass(frozen=True)
class QueryExpr:
    """A built query clause with its parameters and definition site."""

    expr: Any
    params: tuple[ParamSlot, ...] = ()
    file: str | None = None
    line: int | None = None

    def error(self, message: str) -> QueryError:
        """Build a QueryError located at this clause's definition site."""
        return QueryError(message, file=self.file, line=self.line)


@dataclass(frozen=True)
class Query:
    """Canonical query representation.

    ``sources`` holds the bound sources in binding order: schemas or plain
    source names. ``order_bys`` holds the built order_by clauses in the
    order they were applied.
    """

    sources: tuple[Union[Schema, str], ...] = ()
    order_bys: tuple[QueryExpr, ...] = ()

    def __post_init__(self) -> None:
        object.__setattr__(self, "sources", tuple(self.sources))
        object.__setattr__(self, "order_bys", tuple(self.order_bys))

    def append_order_by(self, expr: QueryExpr) -> Query:
        """Return a copy with ``expr`` appended to the order_by list."""
        return replace(self, order_bys=self.order_bys + (expr,))


def to_query(queryable: Any) -> Query:
    """Convert a queryable (Query, Schema or source name) to a Query."""
    if isinstance(queryable, Query):
        return queryable
    if isinstance(queryable, (Schema, str)):
        return Query(sources=(queryable,))
    raise QueryError(f"expected a query, a schema or a source name, got: `{queryable!r}`")
