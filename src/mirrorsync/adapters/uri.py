"""Resolve provider locations given on the command line."""

from __future__ import annotations

from pathlib import Path
from typing import TYPE_CHECKING, Any
from urllib.parse import urldefrag, urlsplit

from mirrorsync.adapters.http import RestProvider
from mirrorsync.adapters.jsonl import JsonLinesProvider
from mirrorsync.adapters.sqlalchemy import SqlAlchemyTableProvider

if TYPE_CHECKING:
    from mirrorsync.config.http_resilience import CacheConfig
    from mirrorsync.domain.ports import RecordProvider

_HTTP_SCHEMES = frozenset({"http", "https"})


class UnsupportedLocationError(ValueError):
    """Raised when no provider understands a location string."""


def open_provider(
    location: str, *, key_field: str = "id", http_cache: CacheConfig | None = None
) -> RecordProvider[Any]:
    """Return a provider for ``location``.

    ``http_cache`` only applies to HTTP locations.

    Supported forms:
    - ``path/to/file.jsonl`` or ``jsonl:path/to/file``
    - ``http(s)://host/collection`` (a ``#field`` fragment names the items
      field of an envelope response)
    - any SQLAlchemy URL with the table as fragment, e.g.
      ``sqlite:///data.db#people``
    """

    if location.startswith("jsonl:"):
        return JsonLinesProvider(Path(location.removeprefix("jsonl:")), key_field=key_field)

    scheme = urlsplit(location).scheme
    if not scheme or len(scheme) == 1:
        # Bare paths, including Windows drive letters.
        if location.endswith((".jsonl", ".ndjson")):
            return JsonLinesProvider(Path(location), key_field=key_field)
        raise UnsupportedLocationError(f"Unsupported location: {location}")

    url, fragment = urldefrag(location)
    if scheme in _HTTP_SCHEMES:
        return RestProvider.from_url(
            url, key_field=key_field, items_field=fragment or None, cache=http_cache
        )

    if not fragment:
        raise UnsupportedLocationError(f"Missing '#table' in database location: {location}")
    return SqlAlchemyTableProvider.from_url(url, fragment, key_column=key_field)
