"""mavspec - MAVLink dialect code generator for Python."""

from importlib.metadata import PackageNotFoundError, version

try:
    __version__ = version("mavspec")
except PackageNotFoundError:
    __version__ = "(local)"
