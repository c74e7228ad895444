"""Domain port definitions for adapters."""

from __future__ import annotations

from .providers import RecordProvider, RecordSource

__all__ = ["RecordProvider", "RecordSource"]
