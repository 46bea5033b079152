"""Errors raised while generating dialect modules."""

from pathlib import Path


class GenerationError(RuntimeError):
    """Base class for fatal generation errors."""


class DefinitionError(GenerationError):
    """Raised when a dialect definition is malformed."""


class ContainerError(DefinitionError):
    """Raised when no integer container can hold an enum-backed field."""


class IdentifierCollisionError(GenerationError):
    """Raised when two raw names sanitize to the same identifier."""

    def __init__(self, namespace: str, first: str, second: str, identifier: str):
        super().__init__(
            f"{namespace}: {first!r} and {second!r} both map to identifier {identifier!r}"
        )
        self.namespace = namespace
        self.first = first
        self.second = second
        self.identifier = identifier


class OutputError(GenerationError):
    """Raised when generated code cannot be written."""

    def __init__(self, path: Path, reason: str):
        super().__init__(f"Cannot write {path}: {reason}")
        self.path = path
