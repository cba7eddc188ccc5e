"""Parser for query expressions.

An order_by expression is a single clause or a bracketed list of clauses.
A clause is an expression, optionally prefixed by a direction keyword:

    p.title
    [p.title, desc: p.inserted_at]
    [^direction: p.title, asc: lower(p.name)]

``^name`` marks a value only known when the query runs. Directions are
not validated here; the builder decides which keywords are allowed.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Union

import ply.yacc as yacc

from typed_mapper.parsing.query_lexer import QueryLexer


@dataclass(frozen=True)
class Var:
    """A bound variable, e.g. ``p``."""

    name: str


@dataclass(frozen=True)
class Field:
    """Field access on a bound variable, e.g. ``p.title``."""

    var: str
    name: str


@dataclass(frozen=True)
class Literal:
    """A literal value (integer, float, string, boolean or nil)."""

    value: Any


@dataclass(frozen=True)
class Pin:
    """An interpolated value resolved at run time, e.g. ``^limit``."""

    name: str


@dataclass(frozen=True)
class Call:
    """A function call, e.g. ``lower(p.name)``."""

    name: str
    args: tuple[Any, ...] = field(default_factory=tuple)


Expr = Union[Var, Field, Literal, Pin, Call]

# A clause is a bare expression or a (direction token, expression) pair,
# where the token is a keyword name or a Pin.
Clause = Union[Expr, tuple]


class QueryParser:
    """Parser for order_by expressions."""

    tokens = QueryLexer.tokens

    def __init__(self) -> None:
        self.lexer = QueryLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_clauses_single(self, p: yacc.YaccProduction) -> None:
        """clauses : clause"""
        p[0] = p[1]

    def p_clauses_list(self, p: yacc.YaccProduction) -> None:
        """clauses : LBRACKET clause_list RBRACKET
                   | LBRACKET clause_list COMMA RBRACKET"""
        p[0] = p[2]

    def p_clauses_empty(self, p: yacc.YaccProduction) -> None:
        """clauses : LBRACKET RBRACKET"""
        p[0] = []

    def p_clause_list_single(self, p: yacc.YaccProduction) -> None:
        """clause_list : clause"""
        p[0] = [p[1]]

    def p_clause_list_multiple(self, p: yacc.YaccProduction) -> None:
        """clause_list : clause_list COMMA clause"""
        p[0] = p[1] + [p[3]]

    def p_clause_bare(self, p: yacc.YaccProduction) -> None:
        """clause : expr"""
        p[0] = p[1]

    def p_clause_keyword(self, p: yacc.YaccProduction) -> None:
        """clause : IDENTIFIER COLON expr"""
        p[0] = (p[1], p[3])

    def p_clause_pinned(self, p: yacc.YaccProduction) -> None:
        """clause : CARET IDENTIFIER COLON expr"""
        p[0] = (Pin(p[2]), p[4])

    def p_expr_var(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER"""
        p[0] = Var(p[1])

    def p_expr_field(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER DOT IDENTIFIER"""
        p[0] = Field(var=p[1], name=p[3])

    def p_expr_call_empty(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER LPAREN RPAREN"""
        p[0] = Call(name=p[1], args=())

    def p_expr_call(self, p: yacc.YaccProduction) -> None:
        """expr : IDENTIFIER LPAREN expr_list RPAREN"""
        p[0] = Call(name=p[1], args=tuple(p[3]))

    def p_expr_pin(self, p: yacc.YaccProduction) -> None:
        """expr : CARET IDENTIFIER"""
        p[0] = Pin(p[2])

    def p_expr_literal(self, p: yacc.YaccProduction) -> None:
        """expr : INTEGER
                | FLOAT
                | STRING"""
        p[0] = Literal(p[1])

    def p_expr_true(self, p: yacc.YaccProduction) -> None:
        """expr : TRUE"""
        p[0] = Literal(True)

    def p_expr_false(self, p: yacc.YaccProduction) -> None:
        """expr : FALSE"""
        p[0] = Literal(False)

    def p_expr_nil(self, p: yacc.YaccProduction) -> None:
        """expr : NIL"""
        p[0] = Literal(None)

    def p_expr_list_single(self, p: yacc.YaccProduction) -> None:
        """expr_list : expr"""
        p[0] = [p[1]]

    def p_expr_list_multiple(self, p: yacc.YaccProduction) -> None:
        """expr_list : expr_list COMMA expr"""
        p[0] = p[1] + [p[3]]

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (position {p.lexpos})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="clauses", **kwargs)

    def parse(self, data: str) -> Clause | list[Clause]:
        """Parse an expression string."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)

        self.lexer.lexer.lineno = 1
        return self.parser.parse(data, lexer=self.lexer.lexer)
