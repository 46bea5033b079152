"""Generation configuration: output features and dialect subsets."""

import logging
from collections.abc import Iterable
from dataclasses import dataclass, replace

from dataclasses_json import DataClassJsonMixin

from .errors import DefinitionError
from .types import Dialect

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class GeneratorConfig(DataClassJsonMixin):
    """Shape of the generated code.

    - alloc: variable-size lists and trimmed byte strings, plus the
      allocating ``encode``/``from_payload`` methods
    - std: stream helpers ``write_to``/``read_from``, implies alloc
    - serde: messages also mix in ``DataClassJsonMixin``

    None of these change the wire layout or CRC-EXTRA.
    """

    alloc: bool = False
    std: bool = False
    serde: bool = False

    def __post_init__(self) -> None:
        if self.std and not self.alloc:
            object.__setattr__(self, "alloc", True)


MICROSERVICES: dict[str, tuple[str, ...]] = {
    "HEARTBEAT": ("HEARTBEAT",),
    "COMMAND": ("COMMAND_INT", "COMMAND_LONG", "COMMAND_ACK", "COMMAND_CANCEL"),
    "MISSION": (
        "MISSION_ITEM",
        "MISSION_ITEM_INT",
        "MISSION_REQUEST",
        "MISSION_REQUEST_INT",
        "MISSION_REQUEST_LIST",
        "MISSION_REQUEST_PARTIAL_LIST",
        "MISSION_WRITE_PARTIAL_LIST",
        "MISSION_COUNT",
        "MISSION_ACK",
        "MISSION_CURRENT",
        "MISSION_SET_CURRENT",
        "MISSION_CLEAR_ALL",
        "MISSION_ITEM_REACHED",
    ),
    "PARAMETER": (
        "PARAM_REQUEST_READ",
        "PARAM_REQUEST_LIST",
        "PARAM_VALUE",
        "PARAM_SET",
    ),
    "PING": ("PING",),
    "TIMESYNC": ("TIMESYNC",),
    "FTP": ("FILE_TRANSFER_PROTOCOL",),
}


@dataclass(frozen=True)
class SelectionConfig(DataClassJsonMixin):
    """Messages and enums to generate.

    An empty selection keeps the whole dialect. Without a message filter
    every message and enum is kept.
    """

    messages: tuple[str, ...] = ()
    enums: tuple[str, ...] = ()
    bitmasks: tuple[str, ...] = ()
    microservices: tuple[str, ...] = ()
    all_enums: bool = False

    def __post_init__(self) -> None:
        unknown = [m for m in self.microservices if m.upper() not in MICROSERVICES]
        if unknown:
            raise DefinitionError(
                f"Unknown microservices {unknown}, known: {sorted(MICROSERVICES)}"
            )

    @property
    def filters_messages(self) -> bool:
        return bool(self.messages or self.microservices)

    def message_names(self) -> set[str]:
        names = set(self.messages)
        for service in self.microservices:
            names.update(MICROSERVICES[service.upper()])
        return names

    def apply(self, dialect: Dialect) -> Dialect:
        """Narrow ``dialect`` to the selected messages and enums."""
        if not self.filters_messages:
            return dialect

        wanted = self.message_names()
        messages = tuple(m for m in dialect.messages if m.name in wanted)
        _warn_missing(dialect, "message", self.messages, {m.name for m in messages})

        if self.all_enums:
            return replace(dialect, messages=messages)

        requested = set(self.enums) | set(self.bitmasks)
        referenced = {f.enum for m in messages for f in m.fields if f.enum}
        enums = tuple(e for e in dialect.enums if e.name in requested | referenced)
        _warn_missing(dialect, "enum", requested, {e.name for e in enums})
        for enum in enums:
            if enum.name in self.bitmasks and not enum.bitmask:
                logger.warning("%s: %s is not a bitmask", dialect.name, enum.name)

        return replace(dialect, messages=messages, enums=enums)


def _warn_missing(dialect: Dialect, kind: str, wanted: Iterable[str], found: set[str]) -> None:
    for name in sorted(set(wanted) - found):
        logger.warning("%s: selected %s %s is not defined", dialect.name, kind, name)
