"""Resolution of field types to value containers."""

from dataclasses import dataclass
from enum import StrEnum, auto

from .errors import ContainerError, DefinitionError
from .types import (
    SIGNED_BY_SIZE,
    UNSIGNED_LADDER,
    Dialect,
    Enum,
    MessageField,
    Primitive,
)


class ContainerKind(StrEnum):
    """How a field's container relates to its wire type."""

    PLAIN = auto()  # No enum, the container is the wire type
    ENUM = auto()  # Minimal unsigned container of the enum
    SCALED = auto()  # Wider than the enum requires
    SIGNED = auto()  # Signed type reinterpreting the same bit pattern


@dataclass(frozen=True)
class ResolvedType:
    """Concrete representation of a field."""

    wire: Primitive
    container: Primitive
    kind: ContainerKind
    array_length: int | None = None
    enum: Enum | None = None

    @property
    def is_array(self) -> bool:
        return self.array_length is not None

    @property
    def is_chars(self) -> bool:
        """A char array, represented as bytes."""
        return self.wire is Primitive.CHAR and self.is_array


def minimal_container(max_value: int) -> Primitive:
    """Smallest unsigned type holding ``max_value``."""
    for primitive in UNSIGNED_LADDER:
        if max_value < 1 << primitive.bits:
            return primitive
    raise ContainerError(f"{max_value} does not fit in a 64-bit container")


def enum_container(enum: Enum) -> Primitive:
    """Default container of an enum or bitmask."""
    try:
        return minimal_container(enum.max_value)
    except ContainerError as err:
        raise ContainerError(f"{enum.name}: {err}") from err


class TypeMapper:
    """Resolve the fields of one dialect."""

    def __init__(self, dialect: Dialect):
        self.dialect = dialect
        self._enums = {e.name: e for e in dialect.enums}

    def enum_for(self, field: MessageField) -> Enum | None:
        if field.enum is None:
            return None
        enum = self._enums.get(field.enum)
        if enum is None:
            raise DefinitionError(f"Field {field.name!r} references unknown enum {field.enum!r}")
        return enum

    def resolve(self, field: MessageField) -> ResolvedType:
        wire = field.type.base
        length = field.type.length
        enum = self.enum_for(field)

        if enum is None:
            if field.container is not None and field.container is not wire:
                raise DefinitionError(
                    f"Field {field.name!r}: container override requires an enum"
                )
            return ResolvedType(wire, wire, ContainerKind.PLAIN, length)

        where = f"Field {field.name!r} ({enum.name})"
        if not wire.is_integer:
            raise DefinitionError(f"{where}: enum fields must have an integer type, not {wire}")

        minimal = enum_container(enum)
        if wire.size < minimal.size:
            raise ContainerError(
                f"{where}: {wire} cannot hold maximum value {enum.max_value}, needs {minimal}"
            )

        override = field.container
        if override is None:
            if wire.is_signed:
                return ResolvedType(
                    wire, SIGNED_BY_SIZE[wire.size], ContainerKind.SIGNED, length, enum
                )
            if wire.size > minimal.size:
                return ResolvedType(wire, wire, ContainerKind.SCALED, length, enum)
            return ResolvedType(wire, minimal, ContainerKind.ENUM, length, enum)

        if not override.is_integer:
            raise DefinitionError(f"{where}: container {override} is not an integer type")
        if override.size < minimal.size:
            raise ContainerError(
                f"{where}: container {override} is narrower than required {minimal}"
            )
        if override.is_signed:
            kind = ContainerKind.SIGNED
        elif override.size > minimal.size:
            kind = ContainerKind.SCALED
        else:
            kind = ContainerKind.ENUM
        return ResolvedType(wire, override, kind, length, enum)
