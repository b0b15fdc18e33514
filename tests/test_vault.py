"""Tests for vault creation and reads."""
import pytest

from navigator_vault.cache import VAULTS
from navigator_vault.client import VaultClient
from navigator_vault.config import ClientConfig
from navigator_vault.constants import ProtocolTags, Role, Status
from navigator_vault.service import ContextService


@pytest.fixture
def owner(owner_wallet, owner_api):
    return VaultClient(owner_wallet, api=owner_api, config=ClientConfig(cache=True))


class TestCreate:
    """VaultModule.create."""

    async def test_private_vault(self, owner, backend, owner_wallet):
        """A private vault gets one owner epoch."""
        result = await owner.vault.create("Research notes", terms_of_access="be nice")
        assert result.object.name == "Research notes"

        stored = backend.vaults[result.vault_id]
        assert stored.name != "Research notes"
        membership = backend.memberships[result.membership_id]
        assert membership.role == Role.OWNER
        assert membership.status == Status.ACCEPTED
        assert len(membership.keys) == 1
        assert membership.keys[0].public_key is not None

    async def test_create_tags(self, owner, backend, owner_wallet):
        """Create carries member and membership tags."""
        result = await owner.vault.create("Tagged")
        tx = backend.transactions[-1]
        tags = {tag.name: tag.value for tag in tx["tags"]}
        assert tags[ProtocolTags.FUNCTION_NAME.value] == "vault:init"
        assert tags[ProtocolTags.MEMBERSHIP_ID.value] == result.membership_id
        assert tags[ProtocolTags.MEMBER_ADDRESS.value] == await owner_wallet.get_address()
        assert tags[ProtocolTags.VAULT_ID.value] == result.vault_id

    async def test_public_vault(self, owner, backend):
        """Public vaults store plaintext and no keys."""
        result = await owner.vault.create("Open data", is_public=True)
        stored = backend.vaults[result.vault_id]
        assert stored.public is True
        assert stored.name == "Open data"
        assert backend.memberships[result.membership_id].keys is None

    async def test_owner_name_in_membership(self, owner, backend, owner_wallet):
        """The owner membership carries the owner's name."""
        backend.profiles["owner@example.com"]["name"] = owner_wallet.encrypt(b"Olivia")
        result = await owner.vault.create("Named")
        service = ContextService(owner_wallet, owner.api)
        await service.set_vault_context(result.vault_id)
        state = backend.states[backend.memberships[result.membership_id].data[-1]]
        assert await service.process_read_string(state["memberDetails"]["name"]) == "Olivia"


class TestGet:
    """VaultModule.get."""

    async def test_decrypts_name(self, owner):
        """get decrypts the vault name."""
        result = await owner.vault.create("Secret plans")
        vault = await owner.vault.get(result.vault_id)
        assert vault.name == "Secret plans"

    async def test_without_decryption(self, owner):
        """should_decrypt=False keeps the ciphertext."""
        result = await owner.vault.create("Secret plans")
        vault = await owner.vault.get(result.vault_id, should_decrypt=False)
        assert vault.name != "Secret plans"

    async def test_cached_until_bust(self, owner, owner_api):
        """Vaults are cached until busted."""
        result = await owner.vault.create("Cached")
        await owner.vault.get(result.vault_id)
        await owner.vault.get(result.vault_id)
        assert owner_api.calls["get_vault"] == 1
        owner.cache.invalidate(VAULTS)
        await owner.vault.get(result.vault_id)
        assert owner_api.calls["get_vault"] == 2

    async def test_member_reads_owner_data(self, owner, owner_wallet, owner_api, member_wallet, member_api):
        """A member reads data the owner wrote."""
        result = await owner.vault.create("Shared")
        invited = await owner.membership.invite(result.vault_id, "member@example.com", Role.VIEWER)
        member = VaultClient(member_wallet, api=member_api)
        await member.membership.accept(invited.membership_id)

        vault = await member.vault.get(result.vault_id)
        assert vault.name == "Shared"
