"""
VaultClient — entry point wiring the wallet, API, cache and operation modules.

Usage::

    async with VaultClient(wallet, config=ClientConfig.from_env()) as client:
        result = await client.vault.create("Research")
        await client.membership.invite(result.vault_id, "ann@example.com", Role.VIEWER)

Every client owns its own cache-invalidation bus; closing the client closes
the bus and drops cached entries.
"""
import logging
from typing import Optional

from .api import Api, HttpApi
from .cache import Cache, CacheBusters
from .config import ClientConfig
from .core import MembershipModule, ProfileModule, VaultModule
from .crypto import Wallet
from .plugins import Plugin, Plugins

logger = logging.getLogger("navigator.vault")


class VaultClient:

    def __init__(
        self,
        wallet: Wallet,
        api: Optional[Api] = None,
        config: Optional[ClientConfig] = None,
        plugins: Optional[list[Plugin]] = None,
    ):
        self.config = config or ClientConfig()
        self.wallet = wallet
        self.api = api or HttpApi(self.config)
        self.busters = CacheBusters()
        self.cache = Cache(self.busters, enabled=self.config.cache)
        self.plugins = Plugins()
        self.plugins.register(plugins)
        self.vault = VaultModule(wallet, self.api, self.cache, self.config)
        self.membership = MembershipModule(wallet, self.api, self.cache, self.config)
        self.profile = ProfileModule(
            wallet, self.api, self.cache, self.config, membership=self.membership
        )
        logger.debug("Vault client ready: cache=%s", self.config.cache)

    async def close(self) -> None:
        self.plugins.clear()
        self.cache.close()
        self.busters.close()
        close = getattr(self.api, "close", None)
        if close is not None:
            await close()

    async def __aenter__(self) -> "VaultClient":
        return self

    async def __aexit__(self, exc_type, exc, tb) -> None:
        await self.close()
