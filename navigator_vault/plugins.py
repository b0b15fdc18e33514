"""
Plugin registry.

Plugins hook optional side channels (e.g. pub/sub notifications) into the
client. A plugin is registered once per key; registering another plugin
under a taken key is a no-op.
"""
import logging
from abc import ABC, abstractmethod
from enum import Enum
from typing import Any, Optional

logger = logging.getLogger("navigator.vault")


class PluginKey(str, Enum):
    PUBSUB = "pubsub"


class Plugin(ABC):
    key: PluginKey

    @abstractmethod
    def register(self, env: Optional[str] = None) -> None:
        ...

    @abstractmethod
    def unregister(self) -> None:
        ...

    @abstractmethod
    async def use(self, params: Any) -> None:
        ...


class Plugins:
    """Per-client registry of plugins by key."""

    def __init__(self):
        self._registered: dict[PluginKey, Plugin] = {}

    def __contains__(self, key: PluginKey) -> bool:
        return key in self._registered

    def register(self, candidates: Optional[list[Plugin]], env: Optional[str] = None) -> None:
        for candidate in candidates or []:
            if candidate.key in self._registered:
                continue
            candidate.register(env)
            self._registered[candidate.key] = candidate
            logger.debug("Registered plugin %s", candidate.key.value)

    def unregister(self, key: PluginKey) -> None:
        plugin = self._registered.pop(key, None)
        if plugin is not None:
            plugin.unregister()

    def get(self, key: PluginKey) -> Optional[Plugin]:
        return self._registered.get(key)

    def clear(self) -> None:
        for key in list(self._registered):
            self.unregister(key)
