"""Parsing module for the schema and query expression DSLs."""

from typed_mapper.parsing.schema_parser import SchemaParser
from typed_mapper.parsing.query_parser import (
    Call,
    Field,
    Literal,
    Pin,
    QueryParser,
    Var,
)

__all__ = [
    "Call",
    "Field",
    "Literal",
    "Pin",
    "QueryParser",
    "SchemaParser",
    "Var",
]
