"""REST client for remotely hosted dataset collections.

Endpoints used::

    GET {base_url}/datasets/{id}        -> {"data": {"cleanItemCount": ...}}
    GET {base_url}/datasets/{id}/items  -> [item, ...]
        ?offset=&limit=&clean=true&fields=a,b

Transient failures (connection errors, HTTP 429 and 5xx) are retried with
exponential back-off; other HTTP errors are raised immediately.
"""

from __future__ import annotations

import logging
from collections.abc import Sequence
from typing import Any

import httpx
from tenacity import (
    retry,
    retry_if_exception,
    stop_after_attempt,
    wait_exponential_jitter,
)

from collection_filter.source.base import CollectionStore
from collection_filter.types import Record

logger = logging.getLogger(__name__)

_RETRYABLE_STATUS = {429, 500, 502, 503, 504}


def _is_transient(exc: BaseException) -> bool:
    if isinstance(exc, httpx.TransportError):
        return True
    if isinstance(exc, httpx.HTTPStatusError):
        return exc.response.status_code in _RETRYABLE_STATUS
    return False


_transient_retry = retry(
    retry=retry_if_exception(_is_transient),
    stop=stop_after_attempt(5),
    wait=wait_exponential_jitter(initial=1, max=30, jitter=1),
    reraise=True,
)


class HttpCollectionStore(CollectionStore):
    def __init__(
        self,
        base_url: str,
        token: str | None = None,
        *,
        timeout: float = 30.0,
        transport: httpx.AsyncBaseTransport | None = None,
    ) -> None:
        headers = {"Authorization": f"Bearer {token}"} if token else {}
        self._client = httpx.AsyncClient(
            base_url=base_url.rstrip("/"),
            headers=headers,
            timeout=timeout,
            transport=transport,
        )

    @classmethod
    def from_config(cls, config: dict[str, Any]) -> HttpCollectionStore:
        return cls(
            base_url=config["base_url"],
            token=config.get("token") or None,
            timeout=float(config.get("timeout", 30.0)),
        )

    @_transient_retry
    async def _get_json(self, path: str, params: dict[str, Any] | None = None) -> Any:
        response = await self._client.get(path, params=params)
        response.raise_for_status()
        return response.json()

    async def get_size(self, collection_id: str) -> int:
        body = await self._get_json(f"/datasets/{collection_id}")
        data = body.get("data", body)
        count = data.get("cleanItemCount", data.get("itemCount"))
        if count is None:
            raise ValueError(f"No item count in response for {collection_id}")
        logger.info("Collection %s has %d items", collection_id, count)
        return int(count)

    async def get_page(
        self,
        collection_id: str,
        offset: int,
        limit: int,
        fields: Sequence[str] | None = None,
    ) -> list[Record]:
        params: dict[str, Any] = {"offset": offset, "limit": limit, "clean": "true"}
        if fields:
            params["fields"] = ",".join(fields)
        body = await self._get_json(f"/datasets/{collection_id}/items", params)
        if isinstance(body, dict):
            body = body.get("data", {}).get("items", [])
        return list(body)

    async def close(self) -> None:
        await self._client.aclose()
