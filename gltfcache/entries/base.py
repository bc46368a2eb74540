# gltfcache/entries/base.py
from __future__ import annotations

import asyncio
import logging
from abc import ABC, abstractmethod
from typing import Any, Coroutine

from gltfcache.types import CacheEntryState

logger = logging.getLogger(__name__)


class CacheEntry(ABC):
    """
    Something the ResourceCache hands out and reference-counts.

    `completion` settles at most once: with the entry on success, with an
    error on failure. It is created on first use and belongs to the running
    event loop at that time.
    """

    def __init__(self, cache_key: str) -> None:
        self._cache_key = cache_key
        self._state = CacheEntryState.UNLOADED
        self._completion: asyncio.Future[CacheEntry] | None = None
        self._task: asyncio.Task[None] | None = None
        self._started = False

    @property
    def cache_key(self) -> str:
        return self._cache_key

    @property
    def state(self) -> CacheEntryState:
        return self._state

    @property
    def completion(self) -> asyncio.Future[CacheEntry]:
        if self._completion is None:
            self._completion = asyncio.get_running_loop().create_future()
        return self._completion

    @abstractmethod
    def load(self) -> None:
        """Start loading. Call once, from a running event loop."""
        pass

    @abstractmethod
    def unload(self) -> None:
        """Release everything held. Safe to call repeatedly from any state."""
        pass

    def _begin_loading(self) -> None:
        if self._started:
            raise RuntimeError(f"'{self._cache_key}' can only be loaded once")
        loop = asyncio.get_running_loop()
        if self._completion is None:
            self._completion = loop.create_future()
        self._started = True
        self._state = CacheEntryState.LOADING

    def _start(self, coro: Coroutine[Any, Any, None]) -> None:
        self._task = asyncio.get_running_loop().create_task(coro)

    def _resolve(self) -> None:
        future = self.completion
        if not future.done():
            future.set_result(self)

    def _reject(self, error: BaseException) -> None:
        future = self.completion
        if not future.done():
            future.set_exception(error)

    def _cancel_pending(self) -> None:
        if self._completion is not None and not self._completion.done():
            logger.debug("Cancelling pending completion of %s", self._cache_key)
            self._completion.cancel()
