"""Tests for the shared builder helpers."""

import pytest

from typed_mapper import builder
from typed_mapper.errors import QueryError
from typed_mapper.parsing.query_parser import Call, Field, Literal, Pin, Var
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
from typed_mapper.schema import FieldDefinition, Schema
from typed_mapper.types import PrimitiveType


class TestEscapeBinding:
    """Tests for escape_binding."""

    def test_binding(self):
        """Test variables map to their position."""
        assert builder.escape_binding(["p", "c"]) == {"p": 0, "c": 1}

    def test_underscore_skips(self):
        """Test _ keeps its position without binding."""
        assert builder.escape_binding(["p", "_", "c"]) == {"p": 0, "c": 2}
        assert builder.escape_binding(["_", "_"]) == {}

    def test_empty_binding(self):
        """Test an empty binding binds nothing."""
        assert builder.escape_binding([]) == {}

    def test_invalid_binding(self):
        """Test bindings must be lists of identifiers."""
        with pytest.raises(QueryError):
            builder.escape_binding("p")

        with pytest.raises(QueryError):
            builder.escape_binding(["p.title"])

        with pytest.raises(QueryError):
            builder.escape_binding([1])

    def test_duplicate_variable(self):
        """Test a variable is bound once."""
        with pytest.raises(QueryError, match="bound twice"):
            builder.escape_binding(["p", "p"])


class TestEscape:
    """Tests for the generic expression escape."""

    def test_field_and_variable(self):
        """Test fields and variables become source references."""
        params = ParamTable()

        escaped, params = builder.escape(Field("c", "body"), PrimitiveType.ANY, params, {"c": 1})
        assert escaped == FieldRef(SourceRef(1), "body")
        assert str(escaped) == "&1.body"

        escaped, params = builder.escape(Var("c"), PrimitiveType.ANY, params, {"c": 1})
        assert escaped == SourceRef(1)
        assert len(params) == 0

    def test_literal_is_parameterized(self):
        """Test literals are cast to the expected type and moved to parameters."""
        escaped, params = builder.escape(Literal("42"), PrimitiveType.INTEGER, ParamTable(), {})

        assert escaped == ParamRef(0)
        assert str(escaped) == "^0"
        assert params.to_list() == [ParamSlot(42, PrimitiveType.INTEGER)]

    def test_literal_cast_failure(self):
        """Test literals that cannot be cast raise."""
        with pytest.raises(QueryError, match="cannot be cast to type integer"):
            builder.escape(Literal("abc"), PrimitiveType.INTEGER, ParamTable(), {})

    def test_pin_is_deferred(self):
        """Test interpolated values become deferred parameters."""
        escaped, params = builder.escape(Pin("limit"), PrimitiveType.INTEGER, ParamTable(), {})

        assert escaped == ParamRef(0)
        assert params.to_list() == [ParamSlot(Deferred("limit"), PrimitiveType.INTEGER)]
        assert params.to_list()[0].deferred is True

    def test_call(self):
        """Test call arguments are escaped in order."""
        call = Call("coalesce", (Field("p", "title"), Literal("x"), Pin("y")))

        escaped, params = builder.escape(call, PrimitiveType.ANY, ParamTable(), {"p": 0})

        assert escaped == CallExpr("coalesce", (FieldRef(SourceRef(0), "title"), ParamRef(0), ParamRef(1)))
        assert str(escaped) == "coalesce(&0.title, ^0, ^1)"
        assert len(params) == 2

    def test_unbound_variable(self):
        """Test unbound variables raise."""
        with pytest.raises(QueryError, match="unbound variable `p`"):
            builder.escape(Field("p", "title"), PrimitiveType.ANY, ParamTable(), {})

    def test_malformed_expression(self):
        """Test unknown nodes raise."""
        with pytest.raises(QueryError, match="malformed"):
            builder.escape(3, PrimitiveType.ANY, ParamTable(), {})


class TestParamTable:
    """Tests for ParamTable."""

    def test_append_is_immutable(self):
        """Test appending returns a new table."""
        table = ParamTable()

        index, extended = table.append_parameter("a")
        index2, extended2 = extended.append_parameter("b", PrimitiveType.STRING)

        assert (index, index2) == (0, 1)
        assert len(table) == 0
        assert len(extended) == 1
        assert [slot.value for slot in extended2.to_list()] == ["a", "b"]


class TestResolveParams:
    """Tests for resolve_params."""

    def test_no_deferred(self):
        """Test clauses without interpolated values are unchanged."""
        expr = QueryExpr(expr=(ParamRef(0),), params=(ParamSlot(1),))

        assert builder.resolve_params(expr, {}) is expr

    def test_values_are_cast(self):
        """Test interpolated values are cast to the slot type."""
        expr = QueryExpr(
            expr=(ParamRef(0), ParamRef(1)),
            params=(ParamSlot("a"), ParamSlot(Deferred("n"), PrimitiveType.INTEGER)),
        )

        resolved = builder.resolve_params(expr, {"n": "7"})

        assert resolved.params == (ParamSlot("a"), ParamSlot(7, PrimitiveType.INTEGER))
        assert expr.params[1].deferred is True

    def test_missing_value(self):
        """Test a missing value raises at the clause location."""
        expr = QueryExpr(expr=(), params=(ParamSlot(Deferred("n")),), file="q.py", line=4)

        with pytest.raises(QueryError) as exc_info:
            builder.resolve_params(expr, {})

        assert str(exc_info.value) == "q.py:4: interpolated value `^n` was not given"

    def test_value_cast_failure(self):
        """Test values that cannot be cast raise."""
        expr = QueryExpr(expr=(), params=(ParamSlot(Deferred("n"), PrimitiveType.INTEGER),))

        with pytest.raises(QueryError, match="cannot be cast to type integer"):
            builder.resolve_params(expr, {"n": "seven"})


class TestCheckFields:
    """Tests for check_fields."""

    @pytest.fixture
    def query(self):
        """A query over a Post schema and a plain source."""
        post = Schema(
            name="Post",
            source="posts",
            fields=[FieldDefinition("title", PrimitiveType.STRING)],
        )
        return Query(sources=(post, "comments"))

    def test_known_fields(self, query):
        """Test schema fields and plain source fields pass."""
        escaped = [FieldRef(SourceRef(0), "title"), CallExpr("lower", (FieldRef(SourceRef(1), "anything"),))]

        builder.check_fields(query, escaped, QueryExpr(expr=escaped))

    def test_unknown_schema_field(self, query):
        """Test schema fields must exist."""
        escaped = CallExpr("lower", (FieldRef(SourceRef(0), "body"),))

        with pytest.raises(QueryError) as exc_info:
            builder.check_fields(query, escaped, QueryExpr(expr=escaped))

        assert str(exc_info.value) == "field `Post.body` in query does not exist in the schema source"

    def test_unbound_source(self, query):
        """Test source references must be in range."""
        with pytest.raises(QueryError, match="source &2 is not bound"):
            builder.check_fields(query, SourceRef(2), QueryExpr(expr=()))


class TestToQuery:
    """Tests for to_query."""

    def test_conversions(self):
        """Test queries pass through and sources are wrapped."""
        query = Query(sources=("posts",))

        assert to_query(query) is query
        assert to_query("posts") == query

    def test_invalid(self):
        """Test other values raise."""
        with pytest.raises(QueryError):
            to_query(None)
