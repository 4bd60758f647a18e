"""API endpoints for the code execution engine."""

from . import execute, health

__all__ = ["execute", "health"]
