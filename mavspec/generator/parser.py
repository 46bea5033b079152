"""MAVLink dialect definition loader.

Field types are parsed with Lark, XML documents with lxml.
"""

import logging
import os
from collections.abc import Iterable, Sequence
from pathlib import Path
from typing import Any

from lark import Lark, LarkError
from lark.visitors import Transformer
from lxml import etree

from .errors import DefinitionError
from .types import Dialect, Enum, EnumEntry, MavType, Message, MessageField, Primitive, Protocol

logger = logging.getLogger(__name__)

MAX_ARRAY_LENGTH = 255

_g_type_parser: Lark | None = None


class TypeTransformer(Transformer):
    """Transform a field type parse tree into a MavType."""

    def primitive(self, args: list[Any]) -> Primitive:
        try:
            return Primitive(str(args[0]))
        except ValueError as err:
            raise DefinitionError(f"Unknown primitive type {str(args[0])!r}") from err

    def array(self, args: list[Any]) -> int:
        return int(args[0])

    def start(self, args: list[Any]) -> MavType:
        length = args[1] if len(args) > 1 else None
        return MavType(base=args[0], length=length)


def parse_type(text: str) -> MavType:
    """Parse a field type declaration such as ``uint16_t[4]``."""
    global _g_type_parser

    if not _g_type_parser:
        with open(f"{os.path.dirname(__file__)}/mavtype.lark", encoding="utf-8") as f:
            grammar = f.read()
        _g_type_parser = Lark(grammar, parser="lalr")

    try:
        tree = _g_type_parser.parse(text)
        mav_type: MavType = TypeTransformer().transform(tree)
    except LarkError as err:
        # Transformer errors arrive wrapped in VisitError
        cause = getattr(err, "orig_exc", None)
        if isinstance(cause, DefinitionError):
            raise cause from err
        raise DefinitionError(f"Invalid field type {text!r}") from err

    if mav_type.length is not None and not 1 <= mav_type.length <= MAX_ARRAY_LENGTH:
        raise DefinitionError(
            f"Array length {mav_type.length} of {text!r} must be within 1..{MAX_ARRAY_LENGTH}"
        )
    return mav_type


def parse_value(text: str) -> int:
    """Parse an enum entry value: decimal, 0x/0b prefixed or ``2**N``."""
    text = text.strip()
    try:
        if "**" in text:
            base, exponent = text.split("**", 1)
            return int(base.strip(), 0) ** int(exponent.strip(), 0)
        return int(text, 0)
    except ValueError as err:
        raise DefinitionError(f"Invalid enum value {text!r}") from err


def _text(elem: etree._Element | None) -> str | None:
    if elem is None or not elem.text:
        return None
    return " ".join(elem.text.split())


def _parse_entries(elem: etree._Element) -> tuple[EnumEntry, ...]:
    entries: list[EnumEntry] = []
    for entry_elem in elem.findall("entry"):
        raw = entry_elem.get("value")
        if raw is None:
            value = entries[-1].value + 1 if entries else 0
        else:
            value = parse_value(raw)
        entries.append(
            EnumEntry(
                name=entry_elem.get("name", ""),
                value=value,
                description=_text(entry_elem.find("description")),
            )
        )
    return tuple(entries)


def _parse_enum(elem: etree._Element) -> Enum:
    return Enum(
        name=elem.get("name", ""),
        entries=_parse_entries(elem),
        bitmask=elem.get("bitmask") == "true",
        description=_text(elem.find("description")),
    )


def _parse_message(elem: etree._Element) -> Message:
    name = elem.get("name", "")
    try:
        msg_id = int(elem.get("id", ""))
    except ValueError as err:
        raise DefinitionError(f"{name}: invalid message id {elem.get('id')!r}") from err

    fields: list[MessageField] = []
    extension = False
    # Fields after <extensions/> are MAVLink 2 extensions
    for child in elem:
        if child.tag == "extensions":
            extension = True
        elif child.tag == "field":
            fields.append(
                MessageField(
                    name=child.get("name", ""),
                    type=parse_type(child.get("type", "")),
                    enum=child.get("enum"),
                    extension=extension,
                    description=_text(child),
                    units=child.get("units"),
                )
            )

    return Message(
        id=msg_id,
        name=name,
        fields=tuple(fields),
        description=_text(elem.find("description")),
    )


def _int_or_none(elem: etree._Element | None) -> int | None:
    text = _text(elem)
    return int(text) if text is not None else None


def parse(text: str | bytes, name: str) -> Dialect:
    """Parse one MAVLink XML document without resolving its includes."""
    if isinstance(text, str):
        text = text.encode("utf-8")
    try:
        root = etree.fromstring(text)
    except etree.XMLSyntaxError as err:
        raise DefinitionError(f"{name}: {err}") from err

    enums = [_parse_enum(e) for e in root.iterfind("enums/enum")]
    messages = [_parse_message(m) for m in root.iterfind("messages/message")]
    includes = [_text(i) for i in root.findall("include")]

    return Dialect(
        name=name,
        messages=tuple(messages),
        enums=tuple(_merge_enums(enums)),
        includes=tuple(Path(i).stem for i in includes if i),
        version=_int_or_none(root.find("version")),
        dialect_id=_int_or_none(root.find("dialect")),
    )


def _merge_enums(enums: Iterable[Enum]) -> list[Enum]:
    """Merge enums sharing a name, keeping the first definition's attributes."""
    merged: dict[str, Enum] = {}
    for enum in enums:
        existing = merged.get(enum.name)
        if existing is None:
            merged[enum.name] = enum
            continue
        names = {e.name for e in existing.entries}
        merged[enum.name] = Enum(
            name=existing.name,
            entries=existing.entries + tuple(e for e in enum.entries if e.name not in names),
            bitmask=existing.bitmask or enum.bitmask,
            description=existing.description or enum.description,
        )
    return list(merged.values())


class DefinitionLoader:
    """Load dialects from directories of MAVLink XML files."""

    def __init__(self, paths: Sequence[Path | str]):
        self.paths = [Path(p) for p in paths]
        self._raw: dict[str, Dialect] = {}

    def _find(self, name: str) -> Path:
        for directory in self.paths:
            candidate = directory / f"{name}.xml"
            if candidate.is_file():
                return candidate
        raise DefinitionError(f"Dialect definition {name}.xml not found in {self.paths}")

    def _load_raw(self, name: str) -> Dialect:
        if name not in self._raw:
            path = self._find(name)
            logger.debug("Parsing %s", path)
            self._raw[name] = parse(path.read_bytes(), name)
        return self._raw[name]

    def _closure(self, name: str) -> list[Dialect]:
        """Dialect and its transitive includes, includes first."""
        order: list[Dialect] = []
        visiting: set[str] = set()

        def visit(current: str) -> None:
            if current in visiting:
                return
            visiting.add(current)
            dialect = self._load_raw(current)
            for include in dialect.includes:
                visit(include)
            order.append(dialect)

        visit(name)
        return order

    def load(self, name: str) -> Dialect:
        """Load a dialect with its includes flattened in."""
        closure = self._closure(name)
        own = closure[-1]

        messages: dict[int, Message] = {}
        for dialect in closure:
            for message in dialect.messages:
                previous = messages.get(message.id)
                if previous is not None and previous != message:
                    raise DefinitionError(
                        f"{name}: message id {message.id} defined as both "
                        f"{previous.name} ({dialect.name}) and {message.name}"
                    )
                messages[message.id] = message

        enums = _merge_enums(e for dialect in closure for e in dialect.enums)

        return Dialect(
            name=own.name,
            messages=tuple(sorted(messages.values(), key=lambda m: m.id)),
            enums=tuple(enums),
            includes=own.includes,
            version=own.version,
            dialect_id=own.dialect_id,
        )

    def dialect_names(self) -> list[str]:
        names = {p.stem for directory in self.paths for p in directory.glob("*.xml")}
        return sorted(names)

    def load_protocol(self, names: Sequence[str] | None = None) -> Protocol:
        """Load the named dialects, or every dialect found."""
        selected = list(names) if names else self.dialect_names()
        return Protocol(dialects=tuple(self.load(n) for n in selected))
