"""Utility helpers for the code execution engine."""
