"""
Profile operations.

The display name is sealed to the wallet's own encryption key at the user
level, and re-encrypted per vault in every active membership on update.
"""
import logging
from typing import Optional

from ..cache import PROFILE, Cache
from ..config import ClientConfig
from ..constants import ACTIVE_STATUSES
from ..crypto import Wallet
from ..errors import IncorrectEncryptionKey
from ..models import ListOptions, ProfileDetails
from ..pagination import paginate
from .base import CoreModule, gather_all, open_profile_name
from .membership import MembershipModule

logger = logging.getLogger("navigator.vault")


class ProfileModule(CoreModule):

    def __init__(
        self,
        wallet: Wallet,
        api,
        cache: Cache,
        config: Optional[ClientConfig] = None,
        membership: Optional[MembershipModule] = None,
    ):
        super().__init__(wallet, api, cache, config)
        self.membership = membership or MembershipModule(wallet, api, cache, self.config)

    async def get(self) -> ProfileDetails:
        profile = await self.cache.memoize(
            PROFILE, Cache.make_key("profile"), self.api.get_profile_details
        )
        if not profile.name:
            return profile
        return profile.model_copy(update={"name": open_profile_name(self.wallet, profile.name)})

    async def update(self, name: Optional[str] = None, avatar: Optional[str] = None) -> list:
        """Update the profile and push it to every active membership.

        Without a new ``avatar`` the user's current avatar is kept.

        Returns:
            One membership result per updated membership.
        """
        user = await self.api.get_user()
        avatar = avatar or user.avatar
        encrypted_name = None
        if name:
            try:
                encrypted_name = self.wallet.encrypt(name.encode("utf-8"))
            except Exception as err:
                raise IncorrectEncryptionKey(err) from err
        await self.api.update_user(encrypted_name, avatar)
        self.cache.invalidate(PROFILE)

        memberships = await paginate(
            self.api.get_memberships, ListOptions(should_decrypt=False)
        )
        active = [m for m in memberships if m.status in ACTIVE_STATUSES]
        results = await gather_all(
            [self.membership.profile_update(m.id, name, avatar) for m in active],
            label="membership profile update",
        )
        logger.info("Profile updated across %d membership(s)", len(results))
        return results
