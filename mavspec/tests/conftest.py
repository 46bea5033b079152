"""Unit tests configuration file."""

import os
from pathlib import Path

import pytest

from mavspec.generator import DefinitionLoader, GeneratorConfig, render_dialect

DEFINITIONS_DIR = Path(os.path.dirname(os.path.realpath(__file__))) / "definitions"


def pytest_configure(config):
    """Disable verbose output when running tests."""
    terminal = config.pluginmanager.getplugin("terminal")
    if terminal:
        terminal.TerminalReporter.showfspath = False


@pytest.fixture
def definitions_dir():
    return DEFINITIONS_DIR


@pytest.fixture
def sample():
    return DefinitionLoader([DEFINITIONS_DIR]).load("sample")


@pytest.fixture
def gen_code():
    """Render a dialect and execute it, returning the module namespace."""

    def _gen_code(dialect, config=None):
        code = render_dialect(dialect, config or GeneratorConfig())
        gbl = {"__name__": f"generated_{dialect.name}"}
        exec(code, gbl)
        return gbl

    return _gen_code
