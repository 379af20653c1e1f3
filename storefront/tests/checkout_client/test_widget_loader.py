import asyncio

import pytest
from httpx import AsyncClient, MockTransport, Request, Response

from storefront.checkout_client.loader import (
    WidgetLoadError,
    WidgetLoader,
    get_loader,
    reset_loaders,
    script_loader,
)

SCRIPT_URL = "https://checkout.test/v1/checkout.js"


@pytest.mark.asyncio
async def test_concurrent_callers_share_one_load() -> None:
    calls = {"count": 0}

    async def load() -> str:
        calls["count"] += 1
        await asyncio.sleep(0)
        return "widget"

    loader = WidgetLoader(load)
    results = await asyncio.gather(*(loader.ensure_loaded() for _ in range(5)))

    assert results == ["widget"] * 5
    assert calls["count"] == 1
    assert loader.loaded


@pytest.mark.asyncio
async def test_failed_load_is_retried_on_next_call() -> None:
    statuses = [503, 200]
    requests: list[Request] = []

    def handler(request: Request) -> Response:
        requests.append(request)
        return Response(statuses.pop(0), text="/* checkout */")

    async with AsyncClient(transport=MockTransport(handler)) as client:
        loader = WidgetLoader(script_loader(client, SCRIPT_URL, "handle"))
        with pytest.raises(WidgetLoadError):
            await loader.ensure_loaded()
        assert not loader.loaded

        assert await loader.ensure_loaded() == "handle"
        assert await loader.ensure_loaded() == "handle"

    assert len(requests) == 2
    assert str(requests[0].url) == SCRIPT_URL


def test_loader_is_memoized_per_script_url() -> None:
    reset_loaders()

    async def load() -> str:
        return "widget"

    first = get_loader(SCRIPT_URL, load)
    assert get_loader(SCRIPT_URL, load) is first
    assert get_loader("https://other.test/checkout.js", load) is not first
    reset_loaders()
