"""Parser for the schema definition DSL.

    Post from posts {
      id: integer primary,
      title: string,
      tags: string[],
      inserted_at: datetime returning
    }

The source name defaults to the schema name when ``from`` is omitted.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any

import ply.yacc as yacc

from typed_mapper.parsing.schema_lexer import SchemaLexer
from typed_mapper.schema import FieldDefinition, Schema
from typed_mapper.types import TypeRegistry


@dataclass
class TypeRef:
    """Reference to a type, possibly as an array."""

    name: str
    is_array: bool = False

    @property
    def full_name(self) -> str:
        return f"{self.name}[]" if self.is_array else self.name


@dataclass
class FieldSpec:
    """Specification for a field before resolution."""

    name: str
    type_ref: TypeRef
    modifiers: list[str] = field(default_factory=list)


@dataclass
class SchemaSpec:
    """Specification for a schema before resolution."""

    name: str
    source: str | None
    fields: list[FieldSpec]
    lineno: int = 0


class SchemaParser:
    """Parser for the schema definition DSL."""

    tokens = SchemaLexer.tokens

    def __init__(self) -> None:
        self.lexer = SchemaLexer()
        self.lexer.build()
        self.parser: yacc.LRParser = None  # type: ignore

    def p_schema_list_empty(self, p: yacc.YaccProduction) -> None:
        """schema_list : """
        p[0] = []

    def p_schema_list(self, p: yacc.YaccProduction) -> None:
        """schema_list : schema_list schema_def"""
        p[0] = p[1] + [p[2]]

    def p_schema_def(self, p: yacc.YaccProduction) -> None:
        """schema_def : IDENTIFIER source LBRACE field_list RBRACE
                      | IDENTIFIER source LBRACE field_list COMMA RBRACE"""
        p[0] = SchemaSpec(name=p[1], source=p[2], fields=p[4], lineno=p.lineno(1))

    def p_schema_def_empty(self, p: yacc.YaccProduction) -> None:
        """schema_def : IDENTIFIER source LBRACE RBRACE"""
        p[0] = SchemaSpec(name=p[1], source=p[2], fields=[], lineno=p.lineno(1))

    def p_source_empty(self, p: yacc.YaccProduction) -> None:
        """source : """
        p[0] = None

    def p_source(self, p: yacc.YaccProduction) -> None:
        """source : FROM IDENTIFIER
                  | FROM STRING"""
        p[0] = p[2]

    def p_field_list_single(self, p: yacc.YaccProduction) -> None:
        """field_list : field"""
        p[0] = [p[1]]

    def p_field_list_multiple(self, p: yacc.YaccProduction) -> None:
        """field_list : field_list COMMA field"""
        p[0] = p[1] + [p[3]]

    def p_field(self, p: yacc.YaccProduction) -> None:
        """field : IDENTIFIER COLON type_ref modifier_list"""
        p[0] = FieldSpec(name=p[1], type_ref=p[3], modifiers=p[4])

    def p_modifier_list_empty(self, p: yacc.YaccProduction) -> None:
        """modifier_list : """
        p[0] = []

    def p_modifier_list(self, p: yacc.YaccProduction) -> None:
        """modifier_list : modifier_list PRIMARY
                         | modifier_list RETURNING"""
        p[0] = p[1] + [p[2]]

    def p_type_ref_simple(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER"""
        p[0] = TypeRef(name=p[1], is_array=False)

    def p_type_ref_array(self, p: yacc.YaccProduction) -> None:
        """type_ref : IDENTIFIER LBRACKET RBRACKET"""
        p[0] = TypeRef(name=p[1], is_array=True)

    def p_error(self, p: yacc.YaccProduction) -> None:
        if p:
            raise SyntaxError(f"Syntax error at '{p.value}' (line {p.lineno})")
        else:
            raise SyntaxError("Syntax error at end of input")

    def build(self, **kwargs: Any) -> None:
        """Build the parser."""
        self.parser = yacc.yacc(module=self, start="schema_list", **kwargs)

    def parse(self, data: str, registry: TypeRegistry | None = None) -> dict[str, Schema]:
        """Parse schema definitions and return the resolved schemas by name."""
        if self.parser is None:
            self.build(debug=False, write_tables=False)
        if registry is None:
            registry = TypeRegistry()

        self.lexer.lexer.lineno = 1
        specs: list[SchemaSpec] = self.parser.parse(data, lexer=self.lexer.lexer) or []

        schemas: dict[str, Schema] = {}
        for spec in specs:
            if spec.name in schemas:
                raise ValueError(f"Schema '{spec.name}' is already defined")
            schemas[spec.name] = self._resolve_spec(spec, registry)
        return schemas

    def _resolve_spec(self, spec: SchemaSpec, registry: TypeRegistry) -> Schema:
        """Resolve a schema spec into a Schema."""
        fields: list[FieldDefinition] = []
        primary_keys: list[str] = []
        returning: list[str] = []

        for field_spec in spec.fields:
            field_type = registry.get_or_raise(field_spec.type_ref.full_name)
            fields.append(FieldDefinition(name=field_spec.name, type=field_type))
            if "primary" in field_spec.modifiers:
                primary_keys.append(field_spec.name)
            if "returning" in field_spec.modifiers:
                returning.append(field_spec.name)

        if len(primary_keys) > 1:
            raise ValueError(
                f"Schema '{spec.name}' (line {spec.lineno}) declares more than one primary key: {primary_keys}"
            )

        return Schema(
            name=spec.name,
            source=spec.source or spec.name,
            fields=tuple(fields),
            primary_key=primary_keys[0] if primary_keys else None,
            read_after_writes=tuple(returning),
        )
