"""Identifier sanitization for generated modules.

Every raw dialect name goes through a Namespace before it reaches a
template. A namespace maps raw names to identifiers injectively and fails
on the first pair of raw names that would share an identifier.
"""

import keyword
import re
from collections.abc import Iterable

from .errors import IdentifierCollisionError
from .types import Dialect, Enum, EnumEntry, Message, MessageField
from .util import to_camel_case, to_snake_case

_INVALID_CHARS = re.compile(r"[^A-Za-z0-9_]")

# Conversion and duplication capabilities of generated types
CAPABILITY_NAMES = ("Copy", "Clone", "Default", "Debug", "From", "Into", "TryFrom", "TryInto")

# Names bound at module level in generated dialect modules
MODULE_NAMES = (
    "BinaryIO",
    "ClassVar",
    "DataClassJsonMixin",
    "Self",
    "_spec",
    "_struct",
    "dataclass",
)

# Builtins looked up in the body of a generated message class
CLASS_BODY_BUILTINS = (
    "bytearray",
    "bytes",
    "classmethod",
    "float",
    "int",
    "list",
    "memoryview",
    "str",
    "tuple",
)

TYPE_RESERVED = frozenset(CAPABILITY_NAMES + MODULE_NAMES)

# Members every generated message class carries
MESSAGE_MEMBERS = (
    "message_id",
    "message_name",
    "crc_extra",
    "min_payload_length",
    "max_payload_length",
    "encode",
    "encode_into",
    "decode",
    "from_payload",
    "write_to",
    "read_from",
    "fields_info",
    "is_v1_compatible",
    "to_dict",
    "to_json",
    "from_dict",
    "from_json",
    "schema",
    "dataclass_json_config",
)

FIELD_RESERVED = frozenset(
    tuple(n.lower() for n in CAPABILITY_NAMES[:6])
    + ("try_from", "try_into", "self", "cls")
    + MESSAGE_MEMBERS
    + MODULE_NAMES
    + CLASS_BODY_BUILTINS
)

ENTRY_RESERVED = frozenset(["name", "value"])

# Fixed so output does not depend on the running interpreter
SOFT_KEYWORDS = frozenset(["_", "case", "match", "type"])


def escape(candidate: str, reserved: frozenset[str] = frozenset()) -> str:
    """Turn ``candidate`` into a valid identifier outside ``reserved``."""
    ident = _INVALID_CHARS.sub("_", candidate) or "_"
    if ident[0].isdigit():
        ident = "_" + ident
    if ident in reserved or keyword.iskeyword(ident) or ident in SOFT_KEYWORDS:
        ident += "_"
    return ident


class Namespace:
    """Injective mapping of raw names to identifiers."""

    def __init__(self, name: str, reserved: Iterable[str] = ()):
        self.name = name
        self.reserved = frozenset(reserved)
        self._by_raw: dict[str, str] = {}
        self._by_ident: dict[str, str] = {}

    def add(self, raw: str, candidate: str | None = None) -> str:
        """Register ``raw`` and return its identifier.

        ``candidate`` is the preferred spelling before escaping, defaulting
        to ``raw`` itself.
        """
        if raw in self._by_raw:
            return self._by_raw[raw]

        ident = escape(raw if candidate is None else candidate, self.reserved)
        other = self._by_ident.get(ident)
        if other is not None:
            raise IdentifierCollisionError(self.name, other, raw, ident)

        self._by_raw[raw] = ident
        self._by_ident[ident] = raw
        return ident

    def __getitem__(self, raw: str) -> str:
        return self._by_raw[raw]

    def __contains__(self, raw: object) -> bool:
        return raw in self._by_raw

    def __len__(self) -> int:
        return len(self._by_raw)

    def identifiers(self) -> frozenset[str]:
        return frozenset(self._by_ident)


def module_name(dialect_name: str) -> str:
    """Module name of a generated dialect."""
    return escape(to_snake_case(dialect_name))


def entry_candidates(enum: Enum) -> dict[str, str]:
    """Preferred member names of an enum's entries.

    The enum name prefix is dropped when every entry carries it.
    """
    prefix = enum.name + "_"
    names = [e.name for e in enum.entries]
    if names and all(n.startswith(prefix) and len(n) > len(prefix) for n in names):
        return {n: n[len(prefix) :].upper() for n in names}
    return {n: n.upper() for n in names}


class DialectNames:
    """Identifier tables of one dialect.

    Built completely on construction, then only read.
    """

    def __init__(self, dialect: Dialect):
        self.dialect = dialect
        self.module = module_name(dialect.name)
        self.types = Namespace(f"{dialect.name}: types", TYPE_RESERVED)
        self.fields: dict[str, Namespace] = {}
        self.entries: dict[str, Namespace] = {}

        for enum in dialect.enums:
            self.types.add(f"enum {enum.name}", to_camel_case(enum.name))
            entries = Namespace(f"{dialect.name}: {enum.name} entries", ENTRY_RESERVED)
            for raw, candidate in entry_candidates(enum).items():
                entries.add(raw, candidate)
            self.entries[enum.name] = entries

        for message in dialect.messages:
            self.types.add(f"message {message.name}", to_camel_case(message.name))

        # Field names are bound in the class body and would shadow type names there
        field_reserved = FIELD_RESERVED | self.types.identifiers()
        for message in dialect.messages:
            fields = Namespace(f"{dialect.name}: {message.name} fields", field_reserved)
            for f in message.fields:
                fields.add(f.name)
            self.fields[message.name] = fields

    def enum(self, enum: Enum | str) -> str:
        name = enum if isinstance(enum, str) else enum.name
        return self.types[f"enum {name}"]

    def message(self, message: Message) -> str:
        return self.types[f"message {message.name}"]

    def field(self, message: Message, field: MessageField) -> str:
        return self.fields[message.name][field.name]

    def entry(self, enum: Enum, entry: EnumEntry) -> str:
        return self.entries[enum.name][entry.name]
