"""Case conversion and text helpers for code generation."""

import re
import textwrap

_WORD_BOUNDARY = re.compile(r"(?<=[a-z0-9])(?=[A-Z])|[^A-Za-z0-9]+")


def words(name: str) -> list[str]:
    return [w for w in _WORD_BOUNDARY.split(name) if w]


def to_camel_case(name: str) -> str:
    """Convert ``MAV_STATE`` or ``mav_state`` to ``MavState``."""
    return "".join(w[:1].upper() + w[1:].lower() for w in words(name))


def to_snake_case(name: str) -> str:
    """Convert ``MavState`` or ``MAV-STATE`` to ``mav_state``."""
    return "_".join(w.lower() for w in words(name))


def wrap(text: str | None, width: int = 88, indent: str = "") -> list[str]:
    """Wrap a description into comment or docstring lines."""
    if not text:
        return []
    # Escape what would end a docstring early
    text = text.replace("\\", "\\\\").replace('"""', '\\"\\"\\"')
    return textwrap.wrap(text, width=width - len(indent)) or []
