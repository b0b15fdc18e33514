"""
MembershipContextService — membership key preparation and key rotation.

Rotation is what makes revocation stick: a new key-epoch is generated and
wrapped only for the remaining members, so a revoked member cannot read
anything written after the rotation.

Security Note:
    Never log key material. Only log membership ids and counts.
"""
import asyncio
import logging
from typing import NamedTuple, Optional

from ..constants import ObjectType, ProtocolTags
from ..crypto import Encrypter, KeyPair, generate_key_pair
from ..errors import IncorrectEncryptionKey
from ..models import EncryptedKeys, Membership, Tag, Tags
from ..utils import b64d
from .context import ContextService

logger = logging.getLogger("navigator.vault")


class RotatedKeys(NamedTuple):
    member_keys: dict[str, list[EncryptedKeys]]
    key_pair: KeyPair


class MembershipContextService(ContextService):
    default_object_type = ObjectType.MEMBERSHIP

    async def set_vault_context_from_membership_id(
        self,
        membership_id: str,
        vault_id: Optional[str] = None
    ) -> Membership:
        """Establish the vault context, narrowed to the membership's own keys.

        A membership may hold an earlier key-epoch than the vault's current
        one, so its own records are the ones used for decryption.
        """
        membership = await self.api.get_membership(membership_id, vault_id)
        await self.set_vault_context(membership.vault_id)
        await self.set_membership_keys(membership)
        self.set_object(membership)
        self.set_object_id(membership_id)
        self.set_object_type(ObjectType.MEMBERSHIP)
        return membership

    async def get_tx_tags(self) -> Tags:
        tags = await super().get_tx_tags()
        if self.object_id:
            tags.append(Tag(name=ProtocolTags.MEMBERSHIP_ID.value, value=self.object_id))
        return tags

    async def prepare_member_keys(self, public_key: str) -> Optional[list[EncryptedKeys]]:
        """Wrap the current key-epochs for a new member.

        Args:
            public_key: Recipient's base64 X25519 public key.

        Returns:
            Wrapped records without the epoch public key, or None for public vaults.
        """
        if self.is_public:
            return None
        try:
            keys_encrypter = Encrypter(self.wallet, self.encrypter.keys, b64d(public_key))
            keys_encrypter.set_decrypted_keys(self.encrypter.decrypted_keys)
            keys = keys_encrypter.encrypt_member_keys()
        except Exception as err:
            raise IncorrectEncryptionKey(err) from err
        return [record.model_copy(update={"public_key": None}) for record in keys]

    async def rotate_member_keys(self, public_keys: dict[str, str]) -> RotatedKeys:
        """Generate a new key-epoch and wrap it for every given member.

        Args:
            public_keys: Mapping of membership id to the member's base64
                X25519 public key. Members left out lose access to the new epoch.

        Returns:
            RotatedKeys with one wrapped record per member and the new key pair.
        """
        key_pair = generate_key_pair()

        async def _wrap(member_id: str, public_key: str) -> tuple[str, list[EncryptedKeys]]:
            try:
                member_encrypter = Encrypter(self.wallet, public_key=b64d(public_key))
                return member_id, [member_encrypter.encrypt_member_key(key_pair)]
            except Exception as err:
                raise IncorrectEncryptionKey(err) from err

        wrapped = await asyncio.gather(
            *(_wrap(member_id, public_key) for member_id, public_key in public_keys.items())
        )
        logger.info(
            "Rotated key epoch for vault=%s: %d member(s)", self.vault_id, len(wrapped)
        )
        return RotatedKeys(member_keys=dict(wrapped), key_pair=key_pair)
