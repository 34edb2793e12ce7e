"""Awaitable facade over the blocking account store."""
from __future__ import annotations

import functools
from typing import Any, Callable, TypeVar

import anyio

T = TypeVar("T")


class AsyncDBProxy:
    """Expose every method of a blocking store adapter as a coroutine.

    Calls run in anyio worker threads. With ``max_concurrency`` set (normally
    the pool's ``max_size``) at most that many calls hold a thread at once, so
    callers queue on the limiter instead of on the pool timeout.
    """

    def __init__(self, adapter: Any, max_concurrency: int | None = None):
        self._adapter = adapter
        self._max_concurrency = max_concurrency
        self._limiter: anyio.CapacityLimiter | None = None

    @property
    def adapter(self) -> Any:
        return self._adapter

    def _get_limiter(self) -> anyio.CapacityLimiter | None:
        # created lazily: a limiter binds to the running event loop
        if self._limiter is None and self._max_concurrency:
            self._limiter = anyio.CapacityLimiter(self._max_concurrency)
        return self._limiter

    async def run(self, func: Callable[..., T], *args: Any, **kwargs: Any) -> T:
        call = functools.partial(func, *args, **kwargs)
        return await anyio.to_thread.run_sync(call, limiter=self._get_limiter())

    def __getattr__(self, name: str) -> Any:
        if name.startswith("_"):
            raise AttributeError(name)
        attr = getattr(self._adapter, name)
        if not callable(attr):
            return attr

        @functools.wraps(attr)
        async def _call(*args: Any, **kwargs: Any) -> Any:
            return await self.run(attr, *args, **kwargs)

        return _call
