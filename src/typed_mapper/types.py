"""Type definitions for the typed_mapper library."""

from __future__ import annotations

from abc import ABC, abstractmethod
from dataclasses import dataclass
from enum import Enum
from typing import Any, Union


class PrimitiveType(Enum):
    """Built-in primitive types supported by the type system."""

    ANY = "any"
    INTEGER = "integer"
    FLOAT = "float"
    BOOLEAN = "boolean"
    STRING = "string"
    BINARY = "binary"
    UUID = "uuid"
    DECIMAL = "decimal"
    DATETIME = "datetime"
    TIME = "time"
    DATE = "date"

    def __repr__(self) -> str:
        return f"PrimitiveType.{self.name}"


# Mapping from type name strings to PrimitiveType enum values
PRIMITIVE_TYPE_NAMES: dict[str, PrimitiveType] = {pt.value: pt for pt in PrimitiveType}

# Primitives sharing the same string/bytes representation
TEXT_TYPES = frozenset({PrimitiveType.STRING, PrimitiveType.BINARY, PrimitiveType.UUID})

# Primitives stored as tuples and held in memory as datetime objects
CALENDAR_TYPES = frozenset({PrimitiveType.DATE, PrimitiveType.TIME, PrimitiveType.DATETIME})


@dataclass(frozen=True)
class ArrayType:
    """Array of a primitive type (e.g., integer[])."""

    element_type: Any

    @property
    def name(self) -> str:
        return f"{type_name(self.element_type)}[]"


class CustomType(ABC):
    """Base class for pluggable types outside the primitive set.

    A custom type declares the primitive it reduces to, which is what
    ``matches`` compares against, and implements its own coercion. The
    coercion methods return ``Ok`` or ``Error`` like the primitive ones.
    ``None`` is passed through to ``cast``, ``dump`` and ``load`` so that
    each custom type decides its own nil policy.
    """

    name: str = ""

    @abstractmethod
    def type(self) -> Any:
        """Return the underlying type (primitive or another custom type)."""

    @abstractmethod
    def cast(self, value: Any) -> Outcome:
        """Cast an external value into this type."""

    @abstractmethod
    def dump(self, value: Any) -> Outcome:
        """Convert an in-memory value to its storage form."""

    @abstractmethod
    def load(self, value: Any) -> Outcome:
        """Convert a storage value to its in-memory form."""

    def blank(self, value: Any) -> bool:
        """Return whether an already cast value is empty."""
        return value is None

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.name or '?'}>"


Type = Union[PrimitiveType, ArrayType, CustomType]


@dataclass(frozen=True)
class Ok:
    """Successful coercion carrying the resulting value."""

    value: Any


@dataclass(frozen=True)
class Error:
    """Failed coercion. No value is recovered."""

    reason: str = ""

    def __eq__(self, other: object) -> bool:
        # All failures compare equal, the reason is diagnostic only.
        return isinstance(other, Error)

    def __hash__(self) -> int:
        return hash(Error)


Outcome = Union[Ok, Error]


def is_primitive(type_: Any) -> bool:
    """Check if we have a primitive type: a basic kind or an array of one."""
    if isinstance(type_, PrimitiveType):
        return True
    return isinstance(type_, ArrayType) and isinstance(type_.element_type, PrimitiveType)


def type_name(type_: Any) -> str:
    """Return the display name of a type."""
    if isinstance(type_, PrimitiveType):
        return type_.value
    if isinstance(type_, ArrayType):
        return type_.name
    if isinstance(type_, CustomType):
        return type_.name or type(type_).__name__
    return repr(type_)


class TypeRegistry:
    """Registry resolving type names to types."""

    def __init__(self) -> None:
        self._types: dict[str, Type] = {}
        self._register_primitives()

    def _register_primitives(self) -> None:
        """Register all primitive types."""
        for pt in PrimitiveType:
            self._types[pt.value] = pt

    def register(self, name: str, custom: CustomType) -> None:
        """Register a custom type under a name."""
        if not isinstance(custom, CustomType):
            raise TypeError(f"Type '{name}' must be a CustomType, got {type(custom).__name__}")
        if name in self._types:
            raise ValueError(f"Type '{name}' is already defined")
        if not custom.name:
            custom.name = name
        self._types[name] = custom

    def get(self, name: str) -> Type | None:
        """Get a type by name. ``name[]`` resolves to an array of a primitive."""
        if name.endswith("[]"):
            element = self._types.get(name[:-2])
            if not isinstance(element, PrimitiveType):
                return None
            return ArrayType(element)
        return self._types.get(name)

    def get_or_raise(self, name: str) -> Type:
        """Get a type by name, raising if not found."""
        type_ = self.get(name)
        if type_ is None:
            raise KeyError(f"Type '{name}' not found")
        return type_

    def list_types(self) -> list[str]:
        """List all registered type names."""
        return list(self._types.keys())

    def __contains__(self, name: str) -> bool:
        return self.get(name) is not None
