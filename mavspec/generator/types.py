"""Type definitions for MAVLink dialects."""

from dataclasses import dataclass, field
from enum import StrEnum

from dataclasses_json import DataClassJsonMixin

from .errors import DefinitionError

MAX_MESSAGE_ID = 0xFFFFFF


class Primitive(StrEnum):
    """Primitive MAVLink wire type, named as in dialect definitions."""

    INT8 = "int8_t"
    UINT8 = "uint8_t"
    INT16 = "int16_t"
    UINT16 = "uint16_t"
    INT32 = "int32_t"
    UINT32 = "uint32_t"
    INT64 = "int64_t"
    UINT64 = "uint64_t"
    FLOAT = "float"
    DOUBLE = "double"
    CHAR = "char"
    UINT8_MAVLINK_VERSION = "uint8_t_mavlink_version"

    @property
    def size(self) -> int:
        return PRIMITIVE_SIZES[self]

    @property
    def bits(self) -> int:
        return PRIMITIVE_SIZES[self] * 8

    @property
    def is_signed(self) -> bool:
        return self in SIGNED_PRIMITIVES

    @property
    def is_integer(self) -> bool:
        return self not in (Primitive.FLOAT, Primitive.DOUBLE, Primitive.CHAR)

    @property
    def crc_name(self) -> str:
        """Name fed to the CRC-EXTRA accumulator."""
        if self is Primitive.UINT8_MAVLINK_VERSION:
            return Primitive.UINT8.value
        return self.value


PRIMITIVE_SIZES: dict[Primitive, int] = {
    Primitive.INT8: 1,
    Primitive.UINT8: 1,
    Primitive.INT16: 2,
    Primitive.UINT16: 2,
    Primitive.INT32: 4,
    Primitive.UINT32: 4,
    Primitive.INT64: 8,
    Primitive.UINT64: 8,
    Primitive.FLOAT: 4,
    Primitive.DOUBLE: 8,
    Primitive.CHAR: 1,
    Primitive.UINT8_MAVLINK_VERSION: 1,
}

SIGNED_PRIMITIVES = frozenset(
    [Primitive.INT8, Primitive.INT16, Primitive.INT32, Primitive.INT64]
)

# Unsigned containers, narrowest first
UNSIGNED_LADDER = (Primitive.UINT8, Primitive.UINT16, Primitive.UINT32, Primitive.UINT64)

SIGNED_BY_SIZE: dict[int, Primitive] = {p.size: p for p in SIGNED_PRIMITIVES}


@dataclass(frozen=True)
class MavType(DataClassJsonMixin):
    """A primitive type, optionally a fixed-length array of it.

    - length=N: array of N elements
    - length=None: scalar
    """

    base: Primitive
    length: int | None = None

    @property
    def is_array(self) -> bool:
        return self.length is not None

    @property
    def size(self) -> int:
        return self.base.size * (self.length or 1)

    def __str__(self) -> str:
        if self.length is None:
            return self.base.value
        return f"{self.base.value}[{self.length}]"


@dataclass(frozen=True)
class MessageField(DataClassJsonMixin):
    """A message field in declaration order.

    ``container`` is an explicit override of the integer type enum values
    are held in. Without it the container is derived from the enum.
    """

    name: str
    type: MavType
    enum: str | None = None
    container: Primitive | None = None
    extension: bool = False
    description: str | None = None
    units: str | None = None


@dataclass(frozen=True)
class Message(DataClassJsonMixin):
    """A MAVLink message definition."""

    id: int
    name: str
    fields: tuple[MessageField, ...]
    description: str | None = None

    def __post_init__(self) -> None:
        if not 0 <= self.id <= MAX_MESSAGE_ID:
            raise DefinitionError(f"{self.name}: message id {self.id} is out of range")
        _check_unique(self.name, "field", [f.name for f in self.fields])
        seen_extension = False
        for f in self.fields:
            if f.extension:
                seen_extension = True
            elif seen_extension:
                raise DefinitionError(
                    f"{self.name}: base field {f.name!r} follows an extension field"
                )

    @property
    def base_fields(self) -> tuple[MessageField, ...]:
        return tuple(f for f in self.fields if not f.extension)

    @property
    def extension_fields(self) -> tuple[MessageField, ...]:
        return tuple(f for f in self.fields if f.extension)

    @property
    def is_v1_compatible(self) -> bool:
        return self.id <= 0xFF


@dataclass(frozen=True)
class EnumEntry(DataClassJsonMixin):
    """A single enum entry."""

    name: str
    value: int
    description: str | None = None


@dataclass(frozen=True)
class Enum(DataClassJsonMixin):
    """An enum or bitmask definition."""

    name: str
    entries: tuple[EnumEntry, ...]
    bitmask: bool = False
    description: str | None = None

    def __post_init__(self) -> None:
        _check_unique(self.name, "entry", [e.name for e in self.entries])
        for entry in self.entries:
            if entry.value < 0:
                raise DefinitionError(f"{self.name}.{entry.name}: negative value {entry.value}")

    @property
    def max_value(self) -> int:
        return max((e.value for e in self.entries), default=0)


@dataclass(frozen=True)
class Dialect(DataClassJsonMixin):
    """A named collection of messages and enums.

    Messages and enums of included dialects are already merged in.
    """

    name: str
    messages: tuple[Message, ...]
    enums: tuple[Enum, ...]
    includes: tuple[str, ...] = ()
    version: int | None = None
    dialect_id: int | None = None

    def __post_init__(self) -> None:
        _check_unique(self.name, "message id", [m.id for m in self.messages])
        _check_unique(self.name, "message", [m.name for m in self.messages])
        _check_unique(self.name, "enum", [e.name for e in self.enums])

    def message(self, name: str) -> Message | None:
        return next((m for m in self.messages if m.name == name), None)

    def message_by_id(self, message_id: int) -> Message | None:
        return next((m for m in self.messages if m.id == message_id), None)

    def enum(self, name: str) -> Enum | None:
        return next((e for e in self.enums if e.name == name), None)


@dataclass(frozen=True)
class Protocol(DataClassJsonMixin):
    """All loaded dialects."""

    dialects: tuple[Dialect, ...] = field(default_factory=tuple)

    def __post_init__(self) -> None:
        _check_unique("protocol", "dialect", [d.name for d in self.dialects])

    def dialect(self, name: str) -> Dialect | None:
        return next((d for d in self.dialects if d.name == name), None)


def _check_unique(owner: str, kind: str, keys: list[object]) -> None:
    seen: set[object] = set()
    for key in keys:
        if key in seen:
            raise DefinitionError(f"{owner}: duplicate {kind} {key!r}")
        seen.add(key)
