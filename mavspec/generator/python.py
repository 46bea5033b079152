"""Python code generator for MAVLink dialects."""

import json
from dataclasses import dataclass

from jinja2 import Environment, PackageLoader

import mavspec

from .config import GeneratorConfig
from .layout import FieldSlot, MessageLayout, plan_layout
from .naming import DialectNames
from .typemap import ResolvedType, TypeMapper, enum_container
from .types import Dialect, Enum, Message, Primitive
from .util import wrap

env = Environment(
    loader=PackageLoader("mavspec.generator", "templates"),
    trim_blocks=True,
    lstrip_blocks=True,
    keep_trailing_newline=True,
    line_comment_prefix="%%",
    line_statement_prefix="%",
)
env.filters["quote"] = json.dumps

dialect_template = env.get_template("dialect.py.j2")
index_template = env.get_template("index.py.j2")

# Map MAVLink types to struct format characters
FORMAT_CHARS = {
    Primitive.INT8: "b",
    Primitive.UINT8: "B",
    Primitive.INT16: "h",
    Primitive.UINT16: "H",
    Primitive.INT32: "i",
    Primitive.UINT32: "I",
    Primitive.INT64: "q",
    Primitive.UINT64: "Q",
    Primitive.FLOAT: "f",
    Primitive.DOUBLE: "d",
    Primitive.CHAR: "c",
    Primitive.UINT8_MAVLINK_VERSION: "B",
}


@dataclass(frozen=True)
class FieldView:
    """A message field as the template sees it."""

    name: str
    raw: str
    annotation: str
    declaration: str
    value: str
    comment: list[str]


@dataclass(frozen=True)
class MessageView:
    """A message as the template sees it."""

    cls: str
    message: Message
    layout: MessageLayout
    fields: list[FieldView]
    base_format: str
    base_args: list[str]
    ext_format: str
    ext_args: list[str]
    description: list[str]

    @property
    def has_extensions(self) -> bool:
        return bool(self.layout.extension_slots)

    @property
    def ext_size(self) -> int:
        return self.layout.max_length - self.layout.min_length


@dataclass(frozen=True)
class EntryView:
    name: str
    value: int
    comment: list[str]


@dataclass(frozen=True)
class EnumView:
    """An enum or bitmask as the template sees it."""

    cls: str
    enum: Enum
    container: Primitive
    entries: list[EntryView]
    description: list[str]


class _MessageEmitter:
    """Build the codec expressions of one message."""

    def __init__(
        self, message: Message, names: DialectNames, mapper: TypeMapper, config: GeneratorConfig
    ):
        self.message = message
        self.names = names
        self.mapper = mapper
        self.config = config
        self.layout = plan_layout(message)

    def _label(self, slot: FieldSlot) -> str:
        return f"{self.message.name}.{slot.field.name}"

    def _optional(self, slot: FieldSlot, resolved: ResolvedType) -> bool:
        """Whether a zero on the wire decodes to None.

        Applies to extensions backed by an enum with no zero entry, where an
        absent field has no member to stand for it.
        """
        enum = resolved.enum
        if not slot.field.extension or enum is None or enum.bitmask:
            return False
        return all(e.value != 0 for e in enum.entries)

    def _element_type(self, resolved: ResolvedType, optional: bool = False) -> str:
        if resolved.enum is not None:
            cls = self.names.enum(resolved.enum)
            return f"{cls} | None" if optional else cls
        if resolved.wire in (Primitive.FLOAT, Primitive.DOUBLE):
            return "float"
        if resolved.wire is Primitive.CHAR:
            return "bytes"
        return "int"

    def _annotation(self, resolved: ResolvedType, optional: bool = False) -> str:
        element = self._element_type(resolved, optional)
        if resolved.is_chars or not resolved.is_array:
            return element
        return f"list[{element}]" if self.config.alloc else f"tuple[{element}, ...]"

    def _zero(self, resolved: ResolvedType, optional: bool = False) -> str:
        if optional:
            return "None"
        enum = resolved.enum
        if enum is not None:
            cls = self.names.enum(enum)
            if enum.bitmask:
                return f"{cls}(0)"
            if not enum.entries:
                return "0"
            entry = next((e for e in enum.entries if e.value == 0), enum.entries[0])
            return f"{cls}.{self.names.entry(enum, entry)}"
        if resolved.wire in (Primitive.FLOAT, Primitive.DOUBLE):
            return "0.0"
        if resolved.wire is Primitive.CHAR:
            return 'b"\\x00"'
        return "0"

    def _default(self, resolved: ResolvedType, optional: bool = False) -> str:
        length = resolved.array_length
        if resolved.is_chars:
            return 'b""' if self.config.alloc else f"bytes({length})"
        zero = self._zero(resolved, optional)
        if length is None:
            return zero
        return f"[{zero}] * {length}" if self.config.alloc else f"({zero},) * {length}"

    def _to_wire(self, resolved: ResolvedType, ref: str, optional: bool = False) -> str:
        if resolved.enum is None:
            return ref
        if optional:
            ref = f"(0 if {ref} is None else {ref})"
        if resolved.wire.is_signed:
            return f"_spec.reinterpret({ref}, {resolved.wire.bits}, True)"
        return f"int({ref})"

    def _from_wire(self, resolved: ResolvedType, item: str, optional: bool = False) -> str:
        if resolved.enum is None:
            return item
        raw = item
        if resolved.wire.is_signed:
            item = f"{item} & {hex((1 << resolved.wire.bits) - 1)}"
        value = f"{self.names.enum(resolved.enum)}.try_from({item})"
        if optional:
            return f"None if {raw} == 0 else {value}"
        return value

    def _pack(self, slot: FieldSlot, resolved: ResolvedType) -> tuple[str, str]:
        """Format piece and pack argument of a field."""
        ref = f"self.{self.names.field(self.message, slot.field)}"
        fmt = FORMAT_CHARS[resolved.wire]
        length = resolved.array_length
        label = json.dumps(self._label(slot))
        optional = self._optional(slot, resolved)

        if resolved.is_chars:
            return f"{length}s", f"_spec.pack_chars({ref}, {length}, {label})"
        if length is None:
            return fmt, self._to_wire(resolved, ref, optional)

        items = f"_spec.pack_array({ref}, {length}, {label})"
        if resolved.enum is not None:
            element = self._to_wire(resolved, "v", optional)
            return f"{length}{fmt}", f"*[{element} for v in {items}]"
        return f"{length}{fmt}", f"*{items}"

    def _unpack(
        self, resolved: ResolvedType, source: str, index: int, optional: bool = False
    ) -> tuple[str, int]:
        """Decode expression of a field and the number of struct items it spans."""
        length = resolved.array_length
        if resolved.is_chars:
            if self.config.alloc:
                return f'{source}[{index}].rstrip(b"\\x00")', 1
            return f"{source}[{index}]", 1
        if length is None:
            return self._from_wire(resolved, f"{source}[{index}]", optional), 1

        items = f"{source}[{index}:{index + length}]"
        if resolved.enum is None:
            return (f"list({items})" if self.config.alloc else items), length
        element = self._from_wire(resolved, "x", optional)
        if self.config.alloc:
            return f"[{element} for x in {items}]", length
        return f"tuple({element} for x in {items})", length

    def _declaration(self, slot: FieldSlot, resolved: ResolvedType, default: str) -> str:
        f = slot.field
        args = [json.dumps(f.name), json.dumps(str(f.type)), json.dumps(resolved.container.value)]
        if f.enum is not None:
            args.append(f"enum={json.dumps(f.enum)}")
        if f.extension:
            args.append("extension=True")
        args.append(f"offset={slot.offset}")
        if self.config.serde and resolved.wire is Primitive.CHAR:
            args.append("json_bytes=True")
        if self.config.alloc and resolved.is_array and not resolved.is_chars:
            args.append(f"default_factory=lambda: {default}")
        else:
            args.append(f"default={default}")
        return f"_spec.mav_field({', '.join(args)})"

    def view(self) -> MessageView:
        resolved = {f.name: self.mapper.resolve(f) for f in self.message.fields}
        values: dict[str, str] = {}

        base_format: list[str] = []
        base_args: list[str] = []
        index = 0
        for slot in self.layout.base_slots:
            r = resolved[slot.field.name]
            fmt, arg = self._pack(slot, r)
            base_format.append(fmt)
            base_args.append(arg)
            values[slot.field.name], count = self._unpack(r, "_v", index)
            index += count

        ext_format: list[str] = []
        ext_args: list[str] = []
        index = 0
        for slot in self.layout.extension_slots:
            r = resolved[slot.field.name]
            fmt, arg = self._pack(slot, r)
            ext_format.append(fmt)
            ext_args.append(arg)
            optional = self._optional(slot, r)
            value, count = self._unpack(r, "_e", index, optional)
            if optional and not r.is_array:
                value = f"({value})"
            # Absent from a truncated payload
            default = self._default(r, optional)
            values[slot.field.name] = f"{value} if _n > {slot.offset} else {default}"
            index += count

        fields: list[FieldView] = []
        for f in self.message.fields:
            slot = self.layout.slot(f.name)
            r = resolved[f.name]
            optional = self._optional(slot, r)
            comment = f"{f.description} [{f.units}]" if f.units else f.description
            fields.append(
                FieldView(
                    name=self.names.field(self.message, f),
                    raw=f.name,
                    annotation=self._annotation(r, optional),
                    declaration=self._declaration(slot, r, self._default(r, optional)),
                    value=values[f.name],
                    comment=wrap(comment, indent=" " * 6),
                )
            )

        return MessageView(
            cls=self.names.message(self.message),
            message=self.message,
            layout=self.layout,
            fields=fields,
            base_format="<" + "".join(base_format),
            base_args=base_args,
            ext_format="<" + "".join(ext_format),
            ext_args=ext_args,
            description=wrap(self.message.description, indent=" " * 4),
        )


def _enum_view(enum: Enum, names: DialectNames) -> EnumView:
    entries = [
        EntryView(names.entry(enum, e), e.value, wrap(e.description, indent=" " * 6))
        for e in enum.entries
    ]
    return EnumView(
        cls=names.enum(enum),
        enum=enum,
        container=enum_container(enum),
        entries=entries,
        description=wrap(enum.description, indent=" " * 4),
    )


def render_dialect(
    dialect: Dialect,
    config: GeneratorConfig | None = None,
    names: DialectNames | None = None,
) -> str:
    """Render a dialect to the source of a Python module."""
    config = config or GeneratorConfig()
    names = names or DialectNames(dialect)
    mapper = TypeMapper(dialect)

    enums = [_enum_view(e, names) for e in dialect.enums]
    messages = [
        _MessageEmitter(m, names, mapper, config).view()
        for m in sorted(dialect.messages, key=lambda m: m.id)
    ]

    return dialect_template.render(
        dialect=dialect,
        config=config,
        enums=enums,
        messages=messages,
        version=mavspec.__version__,
    )


def render_index(modules: dict[str, str], module_prefix: str | None = None) -> str:
    """Render the package index importing every generated dialect module.

    Args:
        modules: Dialect name to module name.
        module_prefix: Absolute package path of the output, relative
            imports are used without it.
    """
    return index_template.render(
        modules=sorted(modules.items()),
        module_prefix=module_prefix,
        version=mavspec.__version__,
    )
