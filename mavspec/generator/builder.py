"""Generation of dialect modules into an output package."""

import hashlib
import json
import logging
import os
import tempfile
from dataclasses import dataclass, field
from pathlib import Path

import mavspec

from .config import GeneratorConfig, SelectionConfig
from .errors import DefinitionError, OutputError
from .naming import DialectNames, module_name
from .python import render_dialect, render_index
from .types import Dialect, Protocol

logger = logging.getLogger(__name__)

INDEX_MODULE = "__init__.py"
DEFAULT_FINGERPRINT_FILE = ".mavspec-fingerprints.json"


def fingerprint(dialect: Dialect, config: GeneratorConfig, module_prefix: str | None) -> str:
    """Content hash of everything that shapes a dialect module."""
    document = {
        "generator": mavspec.__version__,
        "dialect": json.loads(dialect.to_json()),
        "config": config.to_dict(),
        "module_prefix": module_prefix,
    }
    canonical = json.dumps(document, sort_keys=True, separators=(",", ":"))
    return hashlib.sha256(canonical.encode("utf-8")).hexdigest()


class FingerprintCache:
    """Fingerprints of the previous run, persisted as JSON."""

    def __init__(self, path: Path | str):
        self.path = Path(path)
        self._entries = self._read()

    def _read(self) -> dict[str, str]:
        try:
            data = json.loads(self.path.read_text(encoding="utf-8"))
        except FileNotFoundError:
            return {}
        except (OSError, ValueError) as err:
            logger.warning("Ignoring unreadable fingerprint store %s: %s", self.path, err)
            return {}
        if not isinstance(data, dict):
            return {}
        return {str(k): str(v) for k, v in data.items()}

    def get(self, dialect: str) -> str | None:
        return self._entries.get(dialect)

    def matches(self, dialect: str, digest: str) -> bool:
        return self._entries.get(dialect) == digest

    def update(self, entries: dict[str, str]) -> None:
        self._entries.update(entries)

    def save(self) -> None:
        content = json.dumps(self._entries, indent=2, sort_keys=True) + "\n"
        write_atomic(self.path, content)


def _default_mode() -> int:
    """Mode of a newly created file under the current umask."""
    umask = os.umask(0)
    os.umask(umask)
    return 0o666 & ~umask


def write_atomic(path: Path, content: str) -> None:
    """Replace ``path`` with ``content`` in a single rename.

    The file ends up with the mode a plain ``open()`` would give it.
    """
    tmp_name: str | None = None
    try:
        path.parent.mkdir(parents=True, exist_ok=True)
        with tempfile.NamedTemporaryFile(
            "w", encoding="utf-8", dir=path.parent, prefix=f".{path.name}.", delete=False
        ) as tmp:
            tmp_name = tmp.name
            tmp.write(content)
            tmp.flush()
            os.fsync(tmp.fileno())
        os.chmod(tmp_name, _default_mode())
        Path(tmp_name).replace(path)
    except OSError as err:
        if tmp_name is not None:
            Path(tmp_name).unlink(missing_ok=True)
        raise OutputError(path, err.strerror or str(err)) from err


@dataclass
class GenerationResult:
    """Outcome of a generation run."""

    written: list[Path] = field(default_factory=list)
    skipped: list[str] = field(default_factory=list)
    modules: dict[str, str] = field(default_factory=dict)


class Generator:
    """Generate one module per dialect plus an index module.

    All dialects are rendered before anything is written, so a definition
    error leaves the output directory untouched.
    """

    def __init__(
        self,
        protocol: Protocol,
        out_dir: Path | str,
        config: GeneratorConfig | None = None,
        selection: SelectionConfig | None = None,
        module_prefix: str | None = None,
        fingerprints: FingerprintCache | None = None,
    ):
        self.protocol = protocol
        self.out_dir = Path(out_dir)
        self.config = config or GeneratorConfig()
        self.selection = selection or SelectionConfig()
        self.module_prefix = module_prefix
        self.fingerprints = fingerprints

    def _module_names(self, dialects: list[Dialect]) -> dict[str, str]:
        modules: dict[str, str] = {}
        owners: dict[str, str] = {}
        for dialect in dialects:
            module = module_name(dialect.name)
            if module in owners:
                raise DefinitionError(
                    f"Dialects {owners[module]!r} and {dialect.name!r} share module {module!r}"
                )
            owners[module] = dialect.name
            modules[dialect.name] = module
        return modules

    def generate(self, dialects: list[str] | None = None) -> GenerationResult:
        """Generate the named dialects, or all of them."""
        if dialects:
            selected = []
            for name in dialects:
                dialect = self.protocol.dialect(name)
                if dialect is None:
                    raise DefinitionError(f"Unknown dialect {name!r}")
                selected.append(dialect)
        else:
            selected = list(self.protocol.dialects)

        selected = [self.selection.apply(d) for d in selected]
        result = GenerationResult(modules=self._module_names(selected))

        rendered: dict[Path, str] = {}
        digests: dict[str, str] = {}
        for dialect in selected:
            path = self.out_dir / f"{result.modules[dialect.name]}.py"
            digest = fingerprint(dialect, self.config, self.module_prefix)
            digests[dialect.name] = digest

            if (
                self.fingerprints is not None
                and self.fingerprints.matches(dialect.name, digest)
                and path.is_file()
            ):
                logger.info("Skipping %s, fingerprint unchanged", dialect.name)
                result.skipped.append(dialect.name)
                continue

            logger.info(
                "Rendering %s: %d messages, %d enums",
                dialect.name,
                len(dialect.messages),
                len(dialect.enums),
            )
            rendered[path] = render_dialect(dialect, self.config, DialectNames(dialect))

        rendered[self.out_dir / INDEX_MODULE] = render_index(result.modules, self.module_prefix)

        for path, content in rendered.items():
            logger.debug("Writing %s", path)
            write_atomic(path, content)
            result.written.append(path)

        if self.fingerprints is not None:
            self.fingerprints.update(digests)
            self.fingerprints.save()

        return result
