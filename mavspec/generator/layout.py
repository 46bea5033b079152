"""Wire layout planning for MAVLink messages.

MAVLink reorders the base fields of a message by descending element size
so every field is naturally aligned, then appends the extension fields in
declaration order. The CRC-EXTRA byte is derived from the message name and
the base fields in that order.
"""

from dataclasses import dataclass

from mavspec.spec.crc import fold_crc, x25crc

from .errors import DefinitionError
from .types import Message, MessageField

MAX_PAYLOAD_LENGTH = 255
MAX_ARRAY_LENGTH = 255


@dataclass(frozen=True)
class FieldSlot:
    """Position of a field in the payload."""

    field: MessageField
    offset: int

    @property
    def size(self) -> int:
        return self.field.type.size

    @property
    def end(self) -> int:
        return self.offset + self.size

    @property
    def truncatable(self) -> bool:
        """Whether the field may be missing from a received payload."""
        return self.field.extension


@dataclass(frozen=True)
class MessageLayout:
    """Derived wire layout of a message."""

    message: Message
    slots: tuple[FieldSlot, ...]
    crc_extra: int

    @property
    def base_slots(self) -> tuple[FieldSlot, ...]:
        return tuple(s for s in self.slots if not s.truncatable)

    @property
    def extension_slots(self) -> tuple[FieldSlot, ...]:
        return tuple(s for s in self.slots if s.truncatable)

    @property
    def min_length(self) -> int:
        return sum(s.size for s in self.base_slots)

    @property
    def max_length(self) -> int:
        return sum(s.size for s in self.slots)

    def slot(self, name: str) -> FieldSlot:
        return next(s for s in self.slots if s.field.name == name)


def wire_order(message: Message) -> tuple[MessageField, ...]:
    """Fields in the order they appear on the wire."""
    # sorted() is stable, ties keep declaration order
    base = sorted(message.base_fields, key=lambda f: f.type.base.size, reverse=True)
    return (*base, *message.extension_fields)


def crc_extra(message: Message) -> int:
    """Compute the CRC-EXTRA byte of a message."""
    crc = x25crc(message.name + " ")
    for f in wire_order(message):
        if f.extension:
            break
        crc = x25crc(f.type.base.crc_name + " ", crc)
        crc = x25crc(f.name + " ", crc)
        if f.type.length is not None:
            crc = x25crc([f.type.length], crc)
    return fold_crc(crc)


def _validate(message: Message) -> None:
    for f in message.fields:
        length = f.type.length
        if length is not None and not 1 <= length <= MAX_ARRAY_LENGTH:
            raise DefinitionError(
                f"{message.name}.{f.name}: array length {length} "
                f"must be within 1..{MAX_ARRAY_LENGTH}"
            )
    total = sum(f.type.size for f in message.fields)
    if total > MAX_PAYLOAD_LENGTH:
        raise DefinitionError(
            f"{message.name}: payload of {total} bytes exceeds {MAX_PAYLOAD_LENGTH}"
        )


def plan_layout(message: Message) -> MessageLayout:
    """Plan the wire layout of a message."""
    _validate(message)

    slots: list[FieldSlot] = []
    offset = 0
    for f in wire_order(message):
        slots.append(FieldSlot(field=f, offset=offset))
        offset += f.type.size

    return MessageLayout(message=message, slots=tuple(slots), crc_extra=crc_extra(message))
