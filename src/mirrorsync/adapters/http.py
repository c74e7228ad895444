"""Record provider for a JSON REST collection.

Conventions:
- ``GET {collection}`` returns a JSON array of objects, or an object holding
  the array under ``items_field``
- ``POST {collection}`` creates a record and may echo it back
- ``PATCH {collection}/{key}`` applies a partial record
- ``DELETE {collection}/{key}`` removes a record
"""

from __future__ import annotations

from collections.abc import Callable
from dataclasses import dataclass, field
from logging import getLogger
from typing import TYPE_CHECKING, Any
from urllib.parse import quote

from pydantic import TypeAdapter, ValidationError

from mirrorsync.adapters.http_resilience import ResilienceConfig, ResilientClient, build_limiter

if TYPE_CHECKING:
    from collections.abc import Mapping

    import httpx
    from aiolimiter import AsyncLimiter

    from mirrorsync.config.http_resilience import CacheConfig

log = getLogger(__name__)

type Row = dict[str, Any]
type ClientFactory = Callable[[ResilienceConfig, "AsyncLimiter | None"], ResilientClient]

_ROWS = TypeAdapter(list[dict[str, Any]])
_ENVELOPE = TypeAdapter(dict[str, Any])


class RestPayloadError(ValueError):
    """Raised when a collection response does not have the expected shape."""


def _default_client_factory(
    config: ResilienceConfig, limiter: AsyncLimiter | None
) -> ResilientClient:
    return ResilientClient(config, limiter=limiter)


@dataclass(slots=True)
class RestProvider:
    config: ResilienceConfig
    collection: str = ""
    key_field: str = "id"
    items_field: str | None = None
    client_factory: ClientFactory = _default_client_factory
    _limiter: AsyncLimiter | None = field(init=False, default=None)

    def __post_init__(self) -> None:
        # One limiter for every request this provider makes.
        if self.config.ratelimit is not None:
            self._limiter = build_limiter(self.config.ratelimit)

    @classmethod
    def from_url(
        cls,
        url: str,
        *,
        key_field: str = "id",
        items_field: str | None = None,
        cache: CacheConfig | None = None,
    ) -> RestProvider:
        return cls(
            config=ResilienceConfig(name="rest", base_url=url.rstrip("/"), cache=cache),
            key_field=key_field,
            items_field=items_field,
        )

    async def read(self) -> list[Row]:
        async with self._client() as client:
            response = await client.get(self.collection)
        payload = _json(response)
        if self.items_field is not None:
            try:
                payload = _ENVELOPE.validate_python(payload)[self.items_field]
            except (ValidationError, KeyError) as exc:
                raise RestPayloadError(
                    f"Expected an object with {self.items_field!r} from {response.url}"
                ) from exc
        try:
            return _ROWS.validate_python(payload)
        except ValidationError as exc:
            raise RestPayloadError(f"Expected a list of objects from {response.url}") from exc

    async def create(self, record: Mapping[str, Any]) -> Any:
        async with self._client() as client:
            response = await client.post(self.collection, json=dict(record))
        response.raise_for_status()
        if not response.content:
            return record.get(self.key_field)
        created = _json(response)
        if isinstance(created, dict):
            return created.get(self.key_field, record.get(self.key_field))
        return created

    async def update(self, payload: Mapping[str, Any]) -> None:
        body = {name: value for name, value in payload.items() if name != self.key_field}
        async with self._client() as client:
            response = await client.patch(self._item_path(payload[self.key_field]), json=body)
        response.raise_for_status()

    async def delete(self, record: Mapping[str, Any]) -> None:
        async with self._client() as client:
            response = await client.delete(self._item_path(record[self.key_field]))
        response.raise_for_status()

    def _client(self) -> ResilientClient:
        return self.client_factory(self.config, self._limiter)

    def _item_path(self, key: object) -> str:
        return f"{self.collection}/{quote(str(key), safe='')}"


def _json(response: httpx.Response) -> Any:
    response.raise_for_status()
    return response.json()
