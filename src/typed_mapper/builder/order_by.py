"""Builder for order_by clauses."""

from __future__ import annotations

import logging
from collections.abc import Mapping, Sequence
from dataclasses import replace
from typing import Any

from typed_mapper import builder
from typed_mapper.errors import QueryError
from typed_mapper.parsing.query_parser import Pin
from typed_mapper.query import (
    DIRECTION_NAMES,
    DeferredDirection,
    Direction,
    ParamTable,
    Query,
    QueryExpr,
    to_query,
)
from typed_mapper.types import PrimitiveType

logger = logging.getLogger(__name__)


def escape(expr: Any, vars: Mapping[str, int]) -> tuple[list[tuple[Any, Any]], ParamTable]:
    """Escape an order_by expression.

    The expression is escaped to a list of ``(direction, expression)``
    pairs. Escaping also validates the direction is ``asc`` or ``desc``,
    or defers the check to run time for interpolated directions.

        >>> clauses, params = escape("[x.x, desc: 13]", {"x": 0})
        >>> clauses
        [(<Direction.ASC: 'asc'>, FieldRef(source=SourceRef(index=0), field='x')), (<Direction.DESC: 'desc'>, ParamRef(index=0))]

    Args:
        expr: Expression text, a clause, or a list of clauses. A clause is
            an expression or a ``(direction, expression)`` pair.
        vars: Binding of variable names to source indexes.
    """
    if isinstance(expr, str):
        expr = builder.parse_expression(expr)
    if not isinstance(expr, list):
        expr = [expr]

    params = ParamTable()
    clauses: list[tuple[Any, Any]] = []
    for clause in expr:
        if isinstance(clause, tuple):
            if len(clause) != 2:
                raise builder.error(f"malformed order_by clause: `{clause!r}`")
            direction = quoted_dir(clause[0])
            clause = clause[1]
        else:
            direction = Direction.ASC
        escaped, params = builder.escape(clause, PrimitiveType.ANY, params, vars)
        clauses.append((direction, escaped))
    return clauses, params


def quoted_dir(direction: Any) -> Direction | DeferredDirection:
    """Resolve a direction token at definition time.

    ``asc`` and ``desc`` resolve immediately; an interpolated ``^name`` is
    checked at run time by ``dir_check``.
    """
    if isinstance(direction, Pin):
        return DeferredDirection(direction.name)
    if isinstance(direction, Direction):
        return direction
    if isinstance(direction, str) and direction in DIRECTION_NAMES:
        return DIRECTION_NAMES[direction]
    raise builder.error(
        f"expected asc, desc or interpolated value in order_by, got: `{_token(direction)}`"
    )


def dir_check(direction: Any) -> Direction:
    """Verify a direction given at run time."""
    if isinstance(direction, Direction):
        return direction
    if isinstance(direction, str) and direction in DIRECTION_NAMES:
        return DIRECTION_NAMES[direction]
    raise builder.error(f"expected asc or desc in order_by, got: `{direction!r}`")


def _token(direction: Any) -> str:
    return direction if isinstance(direction, str) else repr(direction)


def build(
    query: Any,
    binding: Sequence[str],
    expr: Any,
    file: str | None = None,
    line: int | None = None,
) -> builder.QueryExtension:
    """Build an order_by clause to be applied to ``query``.

    Everything that can be checked without runtime values is checked here:
    binding, directions, variables and literals.

    Args:
        query: Query, schema or source name the clause applies to.
        binding: Variable names bound to the query sources, in order.
        expr: Order_by expression (see ``escape``).
        file: File the clause is defined in, for error messages.
        line: Line the clause is defined at, for error messages.
    """
    try:
        vars = builder.escape_binding(binding)
        clauses, params = escape(expr, vars)
    except QueryError as exc:
        if file is None:
            raise
        raise QueryError(str(exc), file=file, line=line) from exc

    order_by = QueryExpr(expr=tuple(clauses), params=tuple(params.to_list()), file=file, line=line)
    logger.debug("Built order_by with %d clause(s) and %d parameter(s)", len(clauses), len(params))
    return builder.apply_query(query, "order_by", [order_by], resolve, apply)


def resolve(expr: QueryExpr, values: Mapping[str, Any]) -> QueryExpr:
    """Resolve interpolated directions and parameters of a built clause."""
    expr = builder.resolve_params(expr, values)

    clauses = []
    for direction, escaped in expr.expr:
        if isinstance(direction, DeferredDirection):
            direction_name = direction.name
            if direction_name not in values:
                raise expr.error(f"interpolated value `^{direction_name}` was not given")
            try:
                direction = dir_check(values[direction_name])
            except QueryError as exc:
                raise expr.error(str(exc)) from exc
            logger.debug("Resolved interpolated direction ^%s to %s", direction_name, direction.value)
        clauses.append((direction, escaped))
    return replace(expr, expr=tuple(clauses))


def apply(query: Any, expr: QueryExpr) -> Query:
    """Append a built clause to the query's order_by list."""
    return to_query(query).append_order_by(expr)
