"""
Cache Layer — opt-in memoization of idempotent reads.

Two explicit objects replace module-level state:

- :class:`CacheBusters` is the invalidation bus, created once per client
  and closed with it. Each resource family has its own channel.
- :class:`Cache` memoizes reads per channel and drops a channel's entries
  as soon as that channel is signalled.

Entries remember the channel generation they were computed under; a
signal fired while a value is being computed bumps the generation, so the
stale result is returned to its caller but never stored.
"""
import logging
from collections import defaultdict
from collections.abc import Awaitable, Callable
from typing import Any

import orjson

logger = logging.getLogger("navigator.vault")

PROFILE = "profile"
VAULTS = "vaults"

CHANNELS = (PROFILE, VAULTS)

_MISSING = object()


class CacheBusters:
    """Invalidation bus: one channel per cached resource family."""

    def __init__(self, channels: tuple[str, ...] = CHANNELS):
        self._channels = set(channels)
        self._subscribers: dict[str, list[Callable[[str], None]]] = defaultdict(list)
        self._closed = False

    @property
    def closed(self) -> bool:
        return self._closed

    def _check_channel(self, channel: str) -> None:
        if channel not in self._channels:
            raise ValueError(f"Unknown cache channel: {channel}")

    def subscribe(self, channel: str, callback: Callable[[str], None]) -> Callable[[], None]:
        """Register a callback; returns a function that removes it."""
        self._check_channel(channel)
        self._subscribers[channel].append(callback)

        def unsubscribe() -> None:
            if callback in self._subscribers[channel]:
                self._subscribers[channel].remove(callback)
        return unsubscribe

    def notify(self, channel: str) -> None:
        """Fire a channel. Subscribers run synchronously, before this returns."""
        self._check_channel(channel)
        if self._closed:
            return
        for callback in list(self._subscribers[channel]):
            callback(channel)

    def close(self) -> None:
        self._subscribers.clear()
        self._closed = True


class Cache:
    """Per-channel memoization, disabled by default."""

    def __init__(self, busters: CacheBusters, enabled: bool = False):
        self.busters = busters
        self.enabled = enabled
        self._entries: dict[str, dict[bytes, Any]] = defaultdict(dict)
        self._generations: dict[str, int] = defaultdict(int)
        self._unsubscribe = [
            busters.subscribe(channel, self._on_bust) for channel in CHANNELS
        ]

    @staticmethod
    def make_key(*parts: Any) -> bytes:
        return orjson.dumps(parts, option=orjson.OPT_SORT_KEYS, default=str)

    def _on_bust(self, channel: str) -> None:
        self._generations[channel] += 1
        dropped = len(self._entries[channel])
        self._entries[channel].clear()
        logger.debug("Cache bust on %s: dropped %d entr(ies)", channel, dropped)

    def get(self, channel: str, key: bytes, default: Any = None) -> Any:
        if not self.enabled:
            return default
        return self._entries[channel].get(key, default)

    def set(self, channel: str, key: bytes, value: Any) -> None:
        if self.enabled:
            self._entries[channel][key] = value

    def invalidate(self, channel: str) -> None:
        """Signal a mutation of a resource family through the bus."""
        self.busters.notify(channel)

    async def memoize(
        self,
        channel: str,
        key: bytes,
        factory: Callable[[], Awaitable[Any]],
    ) -> Any:
        """Return the cached value for ``key`` or compute and store it."""
        if not self.enabled:
            return await factory()
        cached = self._entries[channel].get(key, _MISSING)
        if cached is not _MISSING:
            return cached
        generation = self._generations[channel]
        value = await factory()
        if self._generations[channel] == generation:
            self._entries[channel][key] = value
        return value

    def close(self) -> None:
        for unsubscribe in self._unsubscribe:
            unsubscribe()
        self._entries.clear()
