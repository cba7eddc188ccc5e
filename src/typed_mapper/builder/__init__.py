"""Helpers shared by the query clause builders.

A builder turns an expression into a QueryExpr when the query is defined
and defers everything interpolated with ``^name`` to a QueryExtension,
which resolves those values and applies the clause when the query runs.
"""

from __future__ import annotations

import logging
import re
import threading
from collections.abc import Callable, Mapping, Sequence
from dataclasses import dataclass, replace
from typing import Any

from typed_mapper.coercion import cast
from typed_mapper.errors import QueryError
from typed_mapper.parsing.query_parser import Call, Field, Literal, Pin, QueryParser, Var
from typed_mapper.query import (
    CallExpr,
    Deferred,
    FieldRef,
    ParamRef,
    ParamSlot,
    ParamTable,
    Query,
    QueryExpr,
    SourceRef,
    to_query,
)
from typed_mapper.schema import Schema
from typed_mapper.types import Error, PrimitiveType, Type, type_name

logger = logging.getLogger(__name__)

_IDENTIFIER_RE = re.compile(r"[a-zA-Z_][a-zA-Z0-9_]*")

# ply parsers are stateful; one per thread
_local = threading.local()


def parse_expression(text: str) -> Any:
    """Parse expression text with this thread's QueryParser."""
    parser = getattr(_local, "parser", None)
    if parser is None:
        parser = _local.parser = QueryParser()
    return parser.parse(text)


def error(message: str) -> QueryError:
    return QueryError(message)


def escape_binding(binding: Sequence[str]) -> dict[str, int]:
    """Escape a binding list into a mapping of variable name to source index.

    ``_`` skips a source without binding it.

        >>> escape_binding(["p", "_", "c"])
        {'p': 0, 'c': 2}
    """
    if isinstance(binding, str) or not isinstance(binding, Sequence):
        raise error(f"binding should be a list of variables, got: `{binding!r}`")

    bound: dict[str, int] = {}
    for index, name in enumerate(binding):
        if not isinstance(name, str) or not _IDENTIFIER_RE.fullmatch(name):
            raise error(f"binding list should contain only variables, got: `{name!r}`")
        if name == "_":
            continue
        if name in bound:
            raise error(f"variable `{name}` is bound twice")
        bound[name] = index
    return bound


def escape(
    expr: Any,
    type_: Type,
    params: ParamTable,
    vars: Mapping[str, int],
) -> tuple[Any, ParamTable]:
    """Escape a parsed expression against the bound variables.

    Field accesses and variables become references into the bound sources.
    Literals and pinned values are moved into the parameter table so that
    the escaped expression never embeds a value.

    Args:
        expr: Parsed expression node.
        type_: Type the expression is expected to have.
        params: Parameters accumulated so far.
        vars: Binding of variable names to source indexes.

    Returns:
        The escaped expression and the extended parameter table.
    """
    if isinstance(expr, Field):
        return FieldRef(_source_ref(expr.var, vars), expr.name), params

    if isinstance(expr, Var):
        return _source_ref(expr.name, vars), params

    if isinstance(expr, Literal):
        outcome = cast(type_, expr.value)
        if isinstance(outcome, Error):
            raise error(f"value `{expr.value!r}` in query cannot be cast to type {type_name(type_)}")
        index, params = params.append_parameter(outcome.value, type_)
        return ParamRef(index), params

    if isinstance(expr, Pin):
        index, params = params.append_parameter(Deferred(expr.name), type_)
        return ParamRef(index), params

    if isinstance(expr, Call):
        args = []
        for arg in expr.args:
            escaped, params = escape(arg, PrimitiveType.ANY, params, vars)
            args.append(escaped)
        return CallExpr(expr.name, tuple(args)), params

    raise error(f"malformed query expression: `{expr!r}`")


def _source_ref(name: str, vars: Mapping[str, int]) -> SourceRef:
    if name not in vars:
        raise error(f"unbound variable `{name}` in query")
    return SourceRef(vars[name])


def resolve_params(expr: QueryExpr, values: Mapping[str, Any]) -> QueryExpr:
    """Replace deferred parameters with the given values, cast to their type."""
    if not any(slot.deferred for slot in expr.params):
        return expr

    slots: list[ParamSlot] = []
    for slot in expr.params:
        if not slot.deferred:
            slots.append(slot)
            continue

        name = slot.value.name
        if name not in values:
            raise expr.error(f"interpolated value `^{name}` was not given")
        outcome = cast(slot.type, values[name])
        if isinstance(outcome, Error):
            raise expr.error(
                f"value `{values[name]!r}` interpolated as `^{name}` cannot be cast to type {type_name(slot.type)}"
            )
        slots.append(ParamSlot(outcome.value, slot.type))
        logger.debug("Resolved interpolated value ^%s", name)
    return replace(expr, params=tuple(slots))


def check_fields(query: Query, escaped: Any, expr: QueryExpr) -> None:
    """Check that source and field references exist in the query sources."""
    if isinstance(escaped, (list, tuple)):
        for item in escaped:
            check_fields(query, item, expr)
    elif isinstance(escaped, CallExpr):
        check_fields(query, escaped.args, expr)
    elif isinstance(escaped, (SourceRef, FieldRef)):
        ref = escaped.source if isinstance(escaped, FieldRef) else escaped
        if ref.index >= len(query.sources):
            raise expr.error(
                f"source {ref} is not bound in query with {len(query.sources)} source(s)"
            )
        source = query.sources[ref.index]
        if isinstance(escaped, FieldRef) and isinstance(source, Schema):
            if not source.has_field(escaped.field):
                raise expr.error(
                    f"field `{source.name}.{escaped.field}` in query does not exist in the schema source"
                )


@dataclass(frozen=True)
class QueryExtension:
    """Clauses built at definition time, waiting for their runtime values.

    ``resolve`` fills in the interpolated values, validates the clauses
    against the query and applies them in order.
    """

    query: Any
    kind: str
    exprs: tuple[QueryExpr, ...]
    resolve_expr: Callable[[QueryExpr, Mapping[str, Any]], QueryExpr]
    apply: Callable[[Any, QueryExpr], Query]

    def resolve(self, values: Mapping[str, Any] | None = None, **kwargs: Any) -> Query:
        """Return the query with the clauses applied.

        Args:
            values: Interpolated values by name.
            **kwargs: Interpolated values by name, merged over ``values``.
        """
        merged = dict(values or {})
        merged.update(kwargs)

        query = to_query(self.query)
        for expr in self.exprs:
            resolved = self.resolve_expr(expr, merged)
            check_fields(query, resolved.expr, resolved)
            query = self.apply(query, resolved)
        logger.debug("Applied %d %s clause(s)", len(self.exprs), self.kind)
        return query


def apply_query(
    query: Any,
    kind: str,
    exprs: Sequence[QueryExpr],
    resolve_expr: Callable[[QueryExpr, Mapping[str, Any]], QueryExpr],
    apply: Callable[[Any, QueryExpr], Query],
) -> QueryExtension:
    """Package built clauses so they are applied to ``query`` at run time."""
    return QueryExtension(
        query=query,
        kind=kind,
        exprs=tuple(exprs),
        resolve_expr=resolve_expr,
        apply=apply,
    )
