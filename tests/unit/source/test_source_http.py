from __future__ import annotations

import httpx
import pytest
from tenacity import wait_none

from collection_filter.config import source_registry
from collection_filter.source.http import HttpCollectionStore

ITEMS = [{"id": i, "url": f"https://example.com/{i}"} for i in range(30)]


@pytest.fixture(autouse=True)
def _no_retry_wait(monkeypatch):
    monkeypatch.setattr(HttpCollectionStore._get_json.retry, "wait", wait_none())


def _handler(request: httpx.Request) -> httpx.Response:
    if request.url.path == "/v2/datasets/abc":
        return httpx.Response(
            200, json={"data": {"itemCount": 31, "cleanItemCount": 30}}
        )
    if request.url.path == "/v2/datasets/abc/items":
        offset = int(request.url.params["offset"])
        limit = int(request.url.params["limit"])
        page = ITEMS[offset : offset + limit]
        if "fields" in request.url.params:
            names = request.url.params["fields"].split(",")
            page = [{k: v for k, v in item.items() if k in names} for item in page]
        return httpx.Response(200, json=page)
    return httpx.Response(404, json={"error": "not found"})


def _store(handler) -> HttpCollectionStore:
    return HttpCollectionStore(
        "https://api.example.com/v2/",
        token="secret",
        transport=httpx.MockTransport(handler),
    )


async def test_get_size_prefers_clean_count():
    async with _store(_handler) as store:
        assert await store.get_size("abc") == 30


async def test_get_page_sends_window_and_fields():
    seen: list[httpx.Request] = []

    def handler(request: httpx.Request) -> httpx.Response:
        seen.append(request)
        return _handler(request)

    async with _store(handler) as store:
        page = await store.get_page("abc", 10, 3, fields=["id"])

    assert page == [{"id": 10}, {"id": 11}, {"id": 12}]
    params = seen[0].url.params
    assert params["offset"] == "10"
    assert params["limit"] == "3"
    assert params["clean"] == "true"
    assert seen[0].headers["Authorization"] == "Bearer secret"


async def test_transient_errors_are_retried():
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        if attempts < 3:
            return httpx.Response(503)
        return _handler(request)

    async with _store(handler) as store:
        assert await store.get_size("abc") == 30
    assert attempts == 3


async def test_retries_give_up_after_five_attempts():
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        return httpx.Response(502)

    async with _store(handler) as store:
        with pytest.raises(httpx.HTTPStatusError):
            await store.get_page("abc", 0, 10)
    assert attempts == 5


async def test_client_errors_are_not_retried():
    attempts = 0

    def handler(request: httpx.Request) -> httpx.Response:
        nonlocal attempts
        attempts += 1
        return _handler(request)

    async with _store(handler) as store:
        with pytest.raises(httpx.HTTPStatusError):
            await store.get_size("missing")
    assert attempts == 1


def test_registry_requires_base_url():
    with pytest.raises(KeyError):
        source_registry.build("http", {})
