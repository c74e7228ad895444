"""Concrete record providers."""

from __future__ import annotations

from .memory import InMemoryProvider
from .uri import UnsupportedLocationError, open_provider

__all__ = ["InMemoryProvider", "UnsupportedLocationError", "open_provider"]
