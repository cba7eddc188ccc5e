"""Schema metadata: the fields, source and types of a mapped model."""

from __future__ import annotations

from collections.abc import Callable, Iterable, Mapping, Sequence
from dataclasses import dataclass, field
from typing import Any

from typed_mapper.coercion import dump, load
from typed_mapper.errors import ChangeError
from typed_mapper.types import Error, Outcome, Type, TypeRegistry, type_name


@dataclass(frozen=True)
class FieldDefinition:
    """Definition of a field within a schema."""

    name: str
    type: Type


@dataclass(frozen=True)
class Schema:
    """Metadata for a model stored in a single source (table).

    Fields keep their declaration order. ``read_after_writes`` lists the
    fields whose values the store computes and returns after an insert or
    update.
    """

    name: str
    source: str
    fields: tuple[FieldDefinition, ...] = field(default_factory=tuple)
    primary_key: str | None = None
    read_after_writes: tuple[str, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        # Accept lists for convenience, store tuples.
        object.__setattr__(self, "fields", tuple(self.fields))
        object.__setattr__(self, "read_after_writes", tuple(self.read_after_writes))

        names = self.field_names
        if len(set(names)) != len(names):
            raise ValueError(f"Schema '{self.name}' declares a field more than once")
        if self.primary_key is not None and self.primary_key not in names:
            raise ValueError(
                f"Primary key '{self.primary_key}' is not a field of schema '{self.name}'"
            )
        for name in self.read_after_writes:
            if name not in names:
                raise ValueError(f"Field '{name}' in read_after_writes is not a field of schema '{self.name}'")

    @classmethod
    def parse(cls, definitions: str, registry: TypeRegistry | None = None) -> dict[str, Schema]:
        """Parse schema definitions written in the schema DSL.

        Args:
            definitions: DSL string defining one or more schemas.
            registry: Registry used to resolve type names. Custom types
                must be registered in it beforehand.

        Returns:
            Mapping of schema name to Schema, in declaration order.
        """
        from typed_mapper.parsing import SchemaParser

        return SchemaParser().parse(definitions, registry)

    @property
    def field_names(self) -> list[str]:
        return [f.name for f in self.fields]

    def get_field(self, name: str) -> FieldDefinition | None:
        """Get a field by name."""
        for f in self.fields:
            if f.name == name:
                return f
        return None

    def has_field(self, name: str) -> bool:
        return self.get_field(name) is not None

    def field_type(self, name: str) -> Type | None:
        """Return the declared type of a field, or None if it does not exist."""
        f = self.get_field(name)
        return f.type if f is not None else None

    def struct(self, **values: Any) -> dict[str, Any]:
        """Build a struct (dict of every field) from keyword values.

        Raises:
            ChangeError: If a value is given for an undeclared field.
        """
        unknown = [k for k in values if not self.has_field(k)]
        if unknown:
            raise ChangeError(f"unknown fields {unknown} for schema `{self.name}`")
        return {name: values.get(name) for name in self.field_names}

    def load(
        self,
        struct: Mapping[str, Any],
        fields: Sequence[str],
        values: Sequence[Any],
    ) -> dict[str, Any]:
        """Rehydrate a struct, merging in values returned by the store.

        Args:
            struct: The struct to merge into.
            fields: Names of the returned fields, in the order of ``values``.
            values: Store-native values to load.

        Returns:
            A new struct with the loaded values merged in.

        Raises:
            ChangeError: If a field is unknown or a value fails to load.
        """
        if len(fields) != len(values):
            raise ChangeError(
                f"expected {len(fields)} returned values for `{self.name}`, got {len(values)}"
            )
        loaded = validate_fields("load", self, zip(fields, values), dumper=load)
        merged = dict(struct)
        merged.update(loaded)
        return merged

    def __repr__(self) -> str:
        return f"<Schema {self.name} from {self.source}>"


def validate_fields(
    kind: str,
    schema: Schema,
    pairs: Mapping[str, Any] | Iterable[tuple[str, Any]],
    dumper: Callable[[Any, Any], Outcome] = dump,
) -> dict[str, Any]:
    """Validate and dump the given fields belonging to the given schema.

    Args:
        kind: Operation name used in error messages (insert, update, ...).
        schema: Schema the fields belong to.
        pairs: Field/value pairs, as a mapping or an iterable of tuples.
        dumper: Coercion applied per value, ``dump`` by default.

    Returns:
        Dict of field name to converted value, in input order.

    Raises:
        ChangeError: If a field does not exist or a value does not match
            the field type.
    """
    if isinstance(pairs, Mapping):
        pairs = pairs.items()

    result: dict[str, Any] = {}
    for name, value in pairs:
        type_ = schema.field_type(name)
        if type_ is None:
            raise ChangeError(
                f"field `{schema.name}.{name}` in `{kind}` does not exist in the schema source"
            )

        outcome = dumper(type_, value)
        if isinstance(outcome, Error):
            raise ChangeError(
                f"value `{value!r}` for `{schema.name}.{name}` in `{kind}` "
                f"does not match type {type_name(type_)}"
            )
        result[name] = outcome.value
    return result
