"""Shared plumbing for the operation modules."""
import asyncio
import logging
from collections.abc import Awaitable, Sequence
from typing import Any, Optional, TypeVar

from ..cache import Cache
from ..config import ClientConfig
from ..crypto import Wallet
from ..errors import IncorrectEncryptionKey
from ..service import ContextService

logger = logging.getLogger("navigator.vault")

T = TypeVar("T")


async def gather_all(coros: Sequence[Awaitable[T]], label: str = "task") -> list[T]:
    """Run ``coros`` concurrently and wait for all of them.

    If any failed, the remaining failures are logged and the first one
    (in task order) is raised.
    """
    results = await asyncio.gather(*coros, return_exceptions=True)
    errors = [result for result in results if isinstance(result, BaseException)]
    if errors:
        for error in errors[1:]:
            logger.error("%s failed: %r", label, error)
        raise errors[0]
    return list(results)


class CoreModule:
    """Holds the collaborators every operation needs."""

    service_class: type[ContextService] = ContextService

    def __init__(
        self,
        wallet: Wallet,
        api: Any,
        cache: Cache,
        config: Optional[ClientConfig] = None,
    ):
        self.wallet = wallet
        self.api = api
        self.cache = cache
        self.config = config or ClientConfig()

    def _service(self) -> ContextService:
        """Fresh service; each operation owns its own context."""
        return self.service_class(self.wallet, self.api, cache=self.cache, config=self.config)


async def process_member_details(
    service: ContextService,
    name: Optional[str] = None,
    avatar: Optional[str] = None,
) -> dict[str, Any]:
    """Encrypt member profile details for a membership state."""
    details: dict[str, Any] = {}
    if name:
        details["name"] = await service.process_write_string(name)
    if avatar:
        details["avatarUri"] = [avatar]
    return details


def open_profile_name(wallet: Wallet, sealed: Optional[str]) -> Optional[str]:
    """Unseal a user-level profile name with the wallet's own key."""
    if not sealed:
        return sealed
    try:
        return wallet.decrypt(sealed).decode("utf-8")
    except Exception as err:
        raise IncorrectEncryptionKey(err) from err
