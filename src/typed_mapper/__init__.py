"""Typed Mapper - type coercion and query building for object/relational mapping."""

from typed_mapper.builder import QueryExtension
from typed_mapper.builder import order_by
from typed_mapper.coercion import blank, cast, dump, load, matches, of_type
from typed_mapper.errors import ChangeError, InvalidTypeError, MapperError, QueryError
from typed_mapper.query import Direction, Query, QueryExpr, to_query
from typed_mapper.schema import FieldDefinition, Schema, validate_fields
from typed_mapper.types import (
    ArrayType,
    CustomType,
    Error,
    Ok,
    PrimitiveType,
    TypeRegistry,
    is_primitive,
)

__all__ = [
    # Types
    "PrimitiveType",
    "ArrayType",
    "CustomType",
    "TypeRegistry",
    "Ok",
    "Error",
    "is_primitive",
    # Coercion
    "matches",
    "of_type",
    "dump",
    "load",
    "cast",
    "blank",
    # Schemas
    "Schema",
    "FieldDefinition",
    "validate_fields",
    # Queries
    "Query",
    "QueryExpr",
    "QueryExtension",
    "Direction",
    "to_query",
    "order_by",
    # Errors
    "MapperError",
    "QueryError",
    "ChangeError",
    "InvalidTypeError",
]

__version__ = "0.1.0"
