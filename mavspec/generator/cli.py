"""Command-line interface for mavspec code generation."""

from __future__ import annotations

import json
import logging
import sys
from pathlib import Path
from typing import TYPE_CHECKING

import click
from rich.console import Console
from rich.logging import RichHandler
from rich.table import Table

from mavspec.generator.builder import DEFAULT_FINGERPRINT_FILE, FingerprintCache, Generator
from mavspec.generator.config import MICROSERVICES, GeneratorConfig, SelectionConfig
from mavspec.generator.errors import GenerationError
from mavspec.generator.layout import plan_layout
from mavspec.generator.parser import DefinitionLoader

if TYPE_CHECKING:
    from mavspec.generator.types import Dialect

err_console = Console(stderr=True)


def _setup_logging(verbose: bool) -> None:
    logging.basicConfig(
        level=logging.DEBUG if verbose else logging.INFO,
        format="%(message)s",
        handlers=[RichHandler(console=err_console, show_path=False)],
        force=True,
    )


@click.group()
def cli() -> None:
    """MAVLink dialect code generator."""


@cli.command()
@click.option(
    "--source",
    "-s",
    "sources",
    multiple=True,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory of MAVLink XML definitions (repeatable)",
)
@click.option(
    "--output",
    "-o",
    "output",
    required=True,
    type=click.Path(file_okay=False, path_type=Path),
    help="Output package directory",
)
@click.option("--dialect", "-d", "dialects", multiple=True, help="Dialect to generate (repeatable)")
@click.option("--module-prefix", default=None, help="Absolute import path of the output package")
@click.option(
    "--fingerprint",
    "fingerprint_path",
    is_flag=False,
    flag_value="",
    default=None,
    help=f"Fingerprint store. No value={DEFAULT_FINGERPRINT_FILE} in the output, omit=disabled",
)
@click.option(
    "--alloc", is_flag=True, help="Use lists and strings without trailing NULs, add encode()"
)
@click.option("--std", is_flag=True, help="Add stream helpers, implies --alloc")
@click.option("--serde", is_flag=True, help="Add dataclasses-json serialization")
@click.option("--message", "messages", multiple=True, help="Message to generate (repeatable)")
@click.option("--enum", "enums", multiple=True, help="Enum to generate (repeatable)")
@click.option("--bitmask", "bitmasks", multiple=True, help="Bitmask to generate (repeatable)")
@click.option(
    "--microservice",
    "microservices",
    multiple=True,
    type=click.Choice(sorted(MICROSERVICES), case_sensitive=False),
    help="Message group to generate (repeatable)",
)
@click.option("--all-enums", is_flag=True, help="Keep every enum when filtering messages")
@click.option("--verbose", "-v", is_flag=True, help="Log every written file")
def gen(
    sources: tuple[Path, ...],
    output: Path,
    dialects: tuple[str, ...],
    module_prefix: str | None,
    fingerprint_path: str | None,
    alloc: bool,
    std: bool,
    serde: bool,
    messages: tuple[str, ...],
    enums: tuple[str, ...],
    bitmasks: tuple[str, ...],
    microservices: tuple[str, ...],
    all_enums: bool,
    verbose: bool,
) -> None:
    """Generate Python modules from MAVLink dialect definitions."""
    _setup_logging(verbose)

    fingerprints = None
    if fingerprint_path is not None:
        fingerprints = FingerprintCache(
            Path(fingerprint_path) if fingerprint_path else output / DEFAULT_FINGERPRINT_FILE
        )

    try:
        protocol = DefinitionLoader(sources).load_protocol(dialects or None)
        generator = Generator(
            protocol,
            output,
            config=GeneratorConfig(alloc=alloc, std=std, serde=serde),
            selection=SelectionConfig(
                messages=messages,
                enums=enums,
                bitmasks=bitmasks,
                microservices=microservices,
                all_enums=all_enums,
            ),
            module_prefix=module_prefix,
            fingerprints=fingerprints,
        )
        result = generator.generate()
    except GenerationError as err:
        err_console.print(f"[bold red]Error:[/bold red] {err}")
        sys.exit(1)

    click.echo(
        f"Generated {len(result.modules) - len(result.skipped)} dialect(s) in {output}"
        + (f", {len(result.skipped)} unchanged" if result.skipped else "")
    )


@cli.command()
@click.option(
    "--source",
    "-s",
    "sources",
    multiple=True,
    required=True,
    type=click.Path(exists=True, file_okay=False, path_type=Path),
    help="Directory of MAVLink XML definitions (repeatable)",
)
@click.option("--dialect", "-d", "dialect_name", required=True, help="Dialect to describe")
@click.option("--json", "output_json", is_flag=True, help="Output as JSON")
def info(sources: tuple[Path, ...], dialect_name: str, output_json: bool) -> None:
    """Display message ids, payload lengths and CRC-EXTRA values."""
    try:
        dialect = DefinitionLoader(sources).load(dialect_name)
        rows = _message_rows(dialect)
    except GenerationError as err:
        err_console.print(f"[bold red]Error:[/bold red] {err}")
        sys.exit(1)

    if output_json:
        _output_json(dialect, rows)
    else:
        _output_plain(dialect, rows)


def _message_rows(dialect: Dialect) -> list[dict]:
    rows = []
    for message in sorted(dialect.messages, key=lambda m: m.id):
        layout = plan_layout(message)
        rows.append(
            {
                "id": message.id,
                "name": message.name,
                "min_length": layout.min_length,
                "max_length": layout.max_length,
                "crc_extra": layout.crc_extra,
                "extensions": len(layout.extension_slots),
            }
        )
    return rows


def _output_json(dialect: Dialect, rows: list[dict]) -> None:
    """Output dialect info as JSON."""
    data = {
        "dialect": {
            "name": dialect.name,
            "version": dialect.version,
            "dialect": dialect.dialect_id,
            "includes": list(dialect.includes),
            "enums": len(dialect.enums),
        },
        "messages": {row.pop("name"): row for row in rows},
    }
    print(json.dumps(data, indent=2))


def _output_plain(dialect: Dialect, rows: list[dict]) -> None:
    """Output dialect info using rich text formatting."""
    console = Console()

    console.print(f"[bold cyan]Dialect {dialect.name}[/bold cyan]")
    dialect_table = Table(show_header=False, box=None, padding=(0, 2, 0, 2))
    dialect_table.add_column("Label", style="dim")
    dialect_table.add_column("Value", style="white")
    dialect_table.add_row("Version", str(dialect.version) if dialect.version is not None else "-")
    dialect_table.add_row("Includes", ", ".join(dialect.includes) or "-")
    dialect_table.add_row("Messages", str(len(dialect.messages)))
    dialect_table.add_row("Enums", str(len(dialect.enums)))
    console.print(dialect_table)
    console.print()

    console.print("[bold cyan]Messages[/bold cyan]")
    table = Table(show_header=True, box=None, padding=(0, 2, 0, 0))
    table.add_column("ID", style="green", justify="right")
    table.add_column("Name", style="white")
    table.add_column("Payload", style="yellow", justify="right")
    table.add_column("CRC-EXTRA", style="magenta", justify="right")
    table.add_column("Ext", style="dim", justify="right")

    for row in rows:
        if row["min_length"] == row["max_length"]:
            size = f"{row['min_length']} bytes"
        else:
            size = f"{row['min_length']}-{row['max_length']} bytes"
        table.add_row(
            str(row["id"]), row["name"], size, str(row["crc_extra"]), str(row["extensions"])
        )

    console.print(table)


def main() -> None:
    """Main entry point."""
    cli()


if __name__ == "__main__":
    main()
