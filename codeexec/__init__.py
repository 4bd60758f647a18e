"""Sandboxed multi-language code execution engine."""

from ._version import __version__

__all__ = ["__version__"]
