"""
Vault operations.

A private vault starts with one key-epoch wrapped for its owner; the owner
membership is created in the same write.

Security Note:
    The first epoch key pair only lives in the creating service; it is
    persisted exclusively in wrapped form.
"""
import logging
import uuid
from dataclasses import dataclass
from typing import Optional

from ..cache import VAULTS
from ..constants import ActionRef, Function, ObjectType, ProtocolTags, Role
from ..crypto import Encrypter, generate_key_pair
from ..errors import IncorrectEncryptionKey
from ..models import Tag, Vault
from ..service import MembershipContextService
from .base import CoreModule, open_profile_name, process_member_details

logger = logging.getLogger("navigator.vault")


@dataclass
class VaultCreateResult:
    vault_id: str
    membership_id: str
    transaction_id: str
    object: Optional[Vault] = None


class VaultModule(CoreModule):

    async def create(
        self,
        name: str,
        terms_of_access: Optional[str] = None,
        is_public: bool = False,
    ) -> VaultCreateResult:
        """Create a vault and the caller's OWNER membership.

        Args:
            name: Vault name (encrypted unless the vault is public).
            terms_of_access: Optional terms shown to invitees.
            is_public: Public vaults carry no keys and store plaintext.
        """
        service = self._service()
        vault_id = str(uuid.uuid4())
        service.set_vault_id(vault_id)
        service.set_object_id(vault_id)
        service.set_object_type(ObjectType.VAULT)
        service.set_is_public(is_public)
        service.set_action_ref(ActionRef.VAULT_CREATE.value)
        service.set_function(Function.VAULT_CREATE)

        owner_keys = None
        if not is_public:
            key_pair = generate_key_pair()
            try:
                owner_key = Encrypter(
                    self.wallet, public_key=self.wallet.public_key_raw()
                ).encrypt_member_key(key_pair)
            except Exception as err:
                raise IncorrectEncryptionKey(err) from err
            service.set_keys([owner_key])
            service.encrypter.set_decrypted_keys([key_pair])
            service.set_raw_data_encryption_public_key(key_pair.public_key)
            owner_keys = [owner_key.to_wire()]

        vault_state = {
            "name": await service.process_write_string(name),
            "termsOfAccess": terms_of_access,
            "public": is_public,
        }
        vault_tx = await service.upload_state(vault_state)

        membership_id = str(uuid.uuid4())
        member_service = MembershipContextService.from_service(service)
        member_service.set_object_id(membership_id)
        profile = await self.api.get_profile_details()
        membership_state = {
            "keys": owner_keys,
            "encPublicSigningKey": await member_service.process_write_string(
                self.wallet.signing_public_key()
            ),
            "memberDetails": await process_member_details(
                member_service, open_profile_name(self.wallet, profile.name)
            ),
        }
        membership_tx = await member_service.upload_state(membership_state)

        address = await self.wallet.get_address()
        tags = await service.get_tx_tags()
        tags.append(Tag(name=ProtocolTags.MEMBER_ADDRESS.value, value=address))
        tags.append(Tag(name=ProtocolTags.MEMBERSHIP_ID.value, value=membership_id))
        result = await self.api.post_contract_transaction(
            vault_id,
            {
                "function": Function.VAULT_CREATE.value,
                "data": {"vault": vault_tx, "membership": membership_tx},
                "role": Role.OWNER.value,
                "public": is_public,
            },
            tags,
        )
        self.cache.invalidate(VAULTS)
        logger.info("Created vault=%s public=%s", vault_id, is_public)

        vault = None
        if result.object:
            vault = Vault.model_validate(result.object)
            if vault.name:
                vault = vault.model_copy(update={"name": name})
        return VaultCreateResult(
            vault_id=vault_id,
            membership_id=membership_id,
            transaction_id=result.id,
            object=vault,
        )

    async def get(self, vault_id: str, should_decrypt: bool = True) -> Vault:
        service = self._service()
        vault = await service.set_vault_context(vault_id)
        if not should_decrypt or vault.public or not vault.name:
            return vault
        name = await service.process_read_string(vault.name)
        return vault.model_copy(update={"name": name})
