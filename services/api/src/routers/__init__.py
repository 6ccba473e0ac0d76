"""Routers package."""

from . import entries, health, summaries

__all__ = [
    "entries",
    "health",
    "summaries",
]
