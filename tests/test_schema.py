"""Tests for schema metadata and field validation."""

import datetime

import pytest

from typed_mapper.coercion import cast, load
from typed_mapper.errors import ChangeError
from typed_mapper.schema import FieldDefinition, Schema, validate_fields
from typed_mapper.types import ArrayType, CustomType, Error, Ok, PrimitiveType


class Permalink(CustomType):
    """Integer id cast from strings like "42-hello-world"."""

    def type(self):
        return PrimitiveType.INTEGER

    def cast(self, value):
        return Ok(value)

    def dump(self, value):
        return Ok(value) if isinstance(value, int) else Error()

    def load(self, value):
        return Ok(value)


@pytest.fixture
def post_schema():
    """A Post schema stored in the posts source."""
    return Schema(
        name="Post",
        source="posts",
        fields=[
            FieldDefinition("id", PrimitiveType.INTEGER),
            FieldDefinition("title", PrimitiveType.STRING),
            FieldDefinition("tags", ArrayType(PrimitiveType.STRING)),
            FieldDefinition("permalink", Permalink()),
            FieldDefinition("inserted_at", PrimitiveType.DATETIME),
        ],
        primary_key="id",
        read_after_writes=["id", "inserted_at"],
    )


class TestSchema:
    """Tests for Schema metadata."""

    def test_metadata(self, post_schema):
        """Test field order, source and keys."""
        assert post_schema.field_names == ["id", "title", "tags", "permalink", "inserted_at"]
        assert post_schema.source == "posts"
        assert post_schema.primary_key == "id"
        assert post_schema.read_after_writes == ("id", "inserted_at")

    def test_field_type(self, post_schema):
        """Test per-field type lookup."""
        assert post_schema.field_type("title") is PrimitiveType.STRING
        assert post_schema.field_type("tags") == ArrayType(PrimitiveType.STRING)
        assert post_schema.field_type("missing") is None
        assert post_schema.has_field("title") is True
        assert post_schema.has_field("missing") is False

    def test_invalid_primary_key(self):
        """Test the primary key must be a declared field."""
        with pytest.raises(ValueError):
            Schema(name="Post", source="posts", fields=[], primary_key="id")

    def test_invalid_read_after_writes(self):
        """Test read-after-write fields must be declared."""
        with pytest.raises(ValueError):
            Schema(
                name="Post",
                source="posts",
                fields=[FieldDefinition("id", PrimitiveType.INTEGER)],
                read_after_writes=["inserted_at"],
            )

    def test_duplicate_fields(self):
        """Test a field can only be declared once."""
        with pytest.raises(ValueError):
            Schema(
                name="Post",
                source="posts",
                fields=[
                    FieldDefinition("id", PrimitiveType.INTEGER),
                    FieldDefinition("id", PrimitiveType.STRING),
                ],
            )

    def test_struct(self, post_schema):
        """Test structs hold every field."""
        struct = post_schema.struct(title="hello")

        assert struct == {
            "id": None,
            "title": "hello",
            "tags": None,
            "permalink": None,
            "inserted_at": None,
        }

    def test_struct_unknown_field(self, post_schema):
        """Test structs reject undeclared fields."""
        with pytest.raises(ChangeError):
            post_schema.struct(body="hello")

    def test_load_returned_values(self, post_schema):
        """Test store-returned values are loaded and merged."""
        struct = post_schema.struct(title="hello")

        loaded = post_schema.load(struct, ["id", "inserted_at"], [1, ((2024, 1, 2), (3, 4, 5))])

        assert loaded["id"] == 1
        assert loaded["title"] == "hello"
        assert loaded["inserted_at"] == datetime.datetime(2024, 1, 2, 3, 4, 5)
        assert struct["id"] is None

    def test_load_bad_value(self, post_schema):
        """Test values that do not load raise."""
        with pytest.raises(ChangeError, match="does not match type integer"):
            post_schema.load({}, ["id"], ["1"])

    def test_load_length_mismatch(self, post_schema):
        """Test every returned field needs a value."""
        with pytest.raises(ChangeError):
            post_schema.load({}, ["id", "inserted_at"], [1])


class TestValidateFields:
    """Tests for validate_fields."""

    def test_dumps_values(self, post_schema):
        """Test valid values are dumped."""
        changes = validate_fields(
            "insert",
            post_schema,
            {"title": "hello", "inserted_at": datetime.datetime(2024, 1, 2, 3, 4, 5)},
        )

        assert changes == {"title": "hello", "inserted_at": ((2024, 1, 2), (3, 4, 5))}

    def test_accepts_pairs(self, post_schema):
        """Test field/value pairs keep their order."""
        changes = validate_fields("update", post_schema, [("tags", ["a"]), ("id", 1)])

        assert list(changes.items()) == [("tags", ["a"]), ("id", 1)]

    def test_nil_values(self, post_schema):
        """Test None is valid for every field."""
        changes = validate_fields("update", post_schema, {"title": None, "permalink": None})

        assert changes == {"title": None, "permalink": None}

    def test_unknown_field(self, post_schema):
        """Test unknown fields raise a descriptive error."""
        with pytest.raises(ChangeError) as exc_info:
            validate_fields("insert", post_schema, {"body": "hello"})

        assert str(exc_info.value) == (
            "field `Post.body` in `insert` does not exist in the schema source"
        )

    def test_type_mismatch(self, post_schema):
        """Test values of the wrong shape raise naming the field and type."""
        with pytest.raises(ChangeError) as exc_info:
            validate_fields("insert", post_schema, {"title": 1})

        assert str(exc_info.value) == (
            "value `1` for `Post.title` in `insert` does not match type string"
        )

    def test_custom_type_mismatch(self, post_schema):
        """Test custom types decide what they dump."""
        with pytest.raises(ChangeError, match="Post.permalink"):
            validate_fields("insert", post_schema, {"permalink": "42"})

    def test_custom_dumper(self, post_schema):
        """Test a different coercion can be plugged in."""
        changes = validate_fields("cast", post_schema, {"id": "42"}, dumper=cast)
        assert changes == {"id": 42}

        changes = validate_fields("load", post_schema, {"id": 42}, dumper=load)
        assert changes == {"id": 42}
