"""Load-once access to the payment provider's checkout widget."""

from __future__ import annotations

import asyncio
import logging
from typing import Any, Awaitable, Callable, Generic, TypeVar

import httpx

logger = logging.getLogger(__name__)

HandleT = TypeVar("HandleT")


class WidgetLoadError(RuntimeError):
    """The provider's checkout script could not be loaded."""


class WidgetLoader(Generic[HandleT]):
    """Memoizes an async load; concurrent callers share one in-flight load.

    A failed load is not cached, so the next caller tries again.
    """

    def __init__(self, load: Callable[[], Awaitable[HandleT]]) -> None:
        self._load = load
        self._handle: HandleT | None = None
        self._lock = asyncio.Lock()

    @property
    def loaded(self) -> bool:
        return self._handle is not None

    async def ensure_loaded(self) -> HandleT:
        if self._handle is not None:
            return self._handle
        async with self._lock:
            if self._handle is None:
                self._handle = await self._load()
                logger.info("Checkout widget loaded")
        return self._handle


def script_loader(
    client: httpx.AsyncClient,
    script_url: str,
    handle: HandleT,
) -> Callable[[], Awaitable[HandleT]]:
    """Build a load function that fetches ``script_url`` before exposing ``handle``."""

    async def _load() -> HandleT:
        try:
            response = await client.get(script_url)
            response.raise_for_status()
        except httpx.HTTPError as exc:
            logger.warning("Failed to load checkout script %s: %s", script_url, exc)
            raise WidgetLoadError(f"Unable to load checkout script from {script_url}") from exc
        return handle

    return _load


_LOADERS: dict[str, WidgetLoader[Any]] = {}


def get_loader(script_url: str, load: Callable[[], Awaitable[HandleT]]) -> WidgetLoader[HandleT]:
    """Return the process-wide loader for ``script_url``, creating it on first use."""

    loader = _LOADERS.get(script_url)
    if loader is None:
        loader = WidgetLoader(load)
        _LOADERS[script_url] = loader
    return loader


def reset_loaders() -> None:
    _LOADERS.clear()
