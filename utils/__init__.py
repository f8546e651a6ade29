"""Shared utilities (logging helpers)."""

from .logging import JsonFormatter  # noqa: F401

__all__ = [
    "JsonFormatter",
]
