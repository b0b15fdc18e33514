"""
Shared fixtures: wallets and an in-memory backend standing in for the API.

The fake backend applies contract transactions the way the real one does
for the parts the client relies on: membership status changes, key
history updates from uploaded states, and caller-scoped key views (a
caller always sees its own wrapped key-epochs on vault/membership reads).
"""
import copy
import itertools
from collections import Counter
from typing import Any, Optional

import pytest

from navigator_vault.api import Api
from navigator_vault.constants import ActionRef, ProtocolTags, Role, Status
from navigator_vault.crypto import Wallet, derive_address
from navigator_vault.errors import NotFound
from navigator_vault.models import (
    EncryptedKeys,
    ListOptions,
    Membership,
    Paginated,
    ProfileDetails,
    TransactionResult,
    User,
    UserPublicInfo,
    Vault,
)
from navigator_vault.pagination import NULL_TOKEN


def address_of(wallet: Wallet) -> str:
    return derive_address(wallet.signing_public_key_raw())


class Backend:
    """Shared store of every fake API instance."""

    def __init__(self):
        self.vaults: dict[str, Vault] = {}
        self.memberships: dict[str, Membership] = {}
        self.states: dict[str, dict] = {}
        self.state_tags: dict[str, list] = {}
        self.transactions: list[dict[str, Any]] = []
        self.users: dict[str, Wallet] = {}
        self.profiles: dict[str, dict] = {}
        self.resent: list[tuple[str, str]] = []
        self._ids = itertools.count(1)

    def next_id(self, prefix: str) -> str:
        return f"{prefix}-{next(self._ids)}"

    def register(self, email: str, wallet: Wallet) -> None:
        self.users[email] = wallet
        self.profiles.setdefault(email, {})

    def email_of(self, address: str) -> Optional[str]:
        for email, wallet in self.users.items():
            if address_of(wallet) == address:
                return email
        return None

    def state_keys(self, state_id: str) -> Optional[list[EncryptedKeys]]:
        keys = self.states[state_id].get("keys")
        if keys is None:
            return None
        return [EncryptedKeys.model_validate(record) for record in keys]


class FakeApi(Api):
    """In-memory API bound to one caller."""

    def __init__(self, backend: Backend, wallet: Wallet, email: str, page_size: Optional[int] = None):
        self.backend = backend
        self.wallet = wallet
        self.email = email
        self.address = address_of(wallet)
        self.page_size = page_size
        self.calls: Counter = Counter()
        backend.register(email, wallet)

    # caller-scoped views

    def _own_membership(self, vault_id: str) -> Optional[Membership]:
        for membership in self.backend.memberships.values():
            if membership.vault_id == vault_id and membership.address == self.address:
                return membership
        return None

    def _own_keys(self, vault_id: str, fallback: Optional[list]) -> Optional[list]:
        own = self._own_membership(vault_id)
        if own is not None and own.keys:
            return [record.model_copy() for record in own.keys]
        return fallback

    def _view(self, membership: Membership) -> Membership:
        view = membership.model_copy(deep=True)
        if not view.public:
            view.keys = self._own_keys(membership.vault_id, view.keys)
        return view

    def _page(self, items: list, options: ListOptions) -> Paginated:
        start = int(options.next_token) if options.next_token else 0
        if not self.page_size:
            return Paginated(items=items[start:], next_token=None)
        end = start + self.page_size
        token = str(end) if end < len(items) else NULL_TOKEN
        return Paginated(items=items[start:end], next_token=token)

    @staticmethod
    def _matches(membership: Membership, options: ListOptions) -> bool:
        clauses = (options.filter or {}).get("or")
        if not clauses:
            return True
        allowed = {clause["status"]["eq"] for clause in clauses}
        return membership.status.value in allowed

    # contract

    async def get_vault(self, vault_id: str) -> Vault:
        self.calls["get_vault"] += 1
        if vault_id not in self.backend.vaults:
            raise NotFound(f"Vault not found: {vault_id}")
        vault = self.backend.vaults[vault_id].model_copy(deep=True)
        if not vault.public:
            vault.keys = self._own_keys(vault_id, vault.keys) or []
        return vault

    async def get_membership(self, membership_id: str, vault_id: Optional[str] = None) -> Membership:
        self.calls["get_membership"] += 1
        if membership_id not in self.backend.memberships:
            raise NotFound(f"Membership not found: {membership_id}")
        return self._view(self.backend.memberships[membership_id])

    async def get_memberships_by_vault_id(self, vault_id: str, options: ListOptions) -> Paginated:
        self.calls["get_memberships_by_vault_id"] += 1
        items = [
            self._view(m) for m in self.backend.memberships.values()
            if m.vault_id == vault_id and self._matches(m, options)
        ]
        return self._page(items, options)

    async def get_memberships(self, options: ListOptions) -> Paginated:
        self.calls["get_memberships"] += 1
        items = [
            self._view(m) for m in self.backend.memberships.values()
            if m.address == self.address
        ]
        return self._page(items, options)

    async def get_user_public_data(self, email: str) -> UserPublicInfo:
        self.calls["get_user_public_data"] += 1
        if email not in self.backend.users:
            raise NotFound(f"User not found: {email}")
        wallet = self.backend.users[email]
        return UserPublicInfo(
            address=address_of(wallet),
            public_key=wallet.public_key(),
            public_signing_key=wallet.signing_public_key(),
        )

    async def upload_data(self, items: list[dict[str, Any]]) -> list[str]:
        self.calls["upload_data"] += 1
        ids = []
        for item in items:
            state_id = self.backend.next_id("state")
            self.backend.states[state_id] = copy.deepcopy(item["data"])
            self.backend.state_tags[state_id] = list(item["tags"])
            ids.append(state_id)
        return ids

    async def get_node_state(self, state_id: str) -> dict[str, Any]:
        self.calls["get_node_state"] += 1
        return copy.deepcopy(self.backend.states[state_id])

    async def get_user(self) -> User:
        self.calls["get_user"] += 1
        profile = self.backend.profiles[self.email]
        return User(
            email=self.email,
            address=self.address,
            public_signing_key=self.wallet.signing_public_key(),
            name=profile.get("name"),
            avatar=(profile.get("avatarUri") or [None])[-1],
        )

    async def get_profile_details(self) -> ProfileDetails:
        self.calls["get_profile_details"] += 1
        return ProfileDetails.model_validate(self.backend.profiles[self.email])

    async def update_user(self, name: Optional[str], avatar: Optional[str]) -> None:
        self.calls["update_user"] += 1
        profile = self.backend.profiles[self.email]
        if name is not None:
            profile["name"] = name
        if avatar is not None:
            profile["avatarUri"] = [avatar]

    async def invite_resend(self, vault_id: str, membership_id: str) -> None:
        self.backend.resent.append((vault_id, membership_id))

    async def post_contract_transaction(self, vault_id, input, tags, metadata=None) -> TransactionResult:
        self.calls["post_contract_transaction"] += 1
        tx_id = self.backend.next_id("tx")
        tag_map = {tag.name: tag.value for tag in tags}
        self.backend.transactions.append(
            {"id": tx_id, "vault_id": vault_id, "input": input, "tags": tags, "metadata": metadata}
        )
        obj = self._apply(vault_id, input, tag_map)
        return TransactionResult(id=tx_id, object=obj)

    def _apply(self, vault_id: str, input: dict, tags: dict[str, str]) -> Optional[dict]:
        backend = self.backend
        function = input["function"]
        membership_id = tags.get(ProtocolTags.MEMBERSHIP_ID.value)
        if function == "vault:init":
            vault_state = backend.states[input["data"]["vault"]]
            backend.vaults[vault_id] = Vault(
                id=vault_id,
                public=input["public"],
                status=Status.ACTIVE.value,
                name=vault_state["name"],
                terms_of_access=vault_state.get("termsOfAccess"),
                owner=self.address,
                data=[input["data"]["vault"]],
            )
            member_tx = input["data"]["membership"]
            backend.memberships[membership_id] = Membership(
                id=membership_id,
                vault_id=vault_id,
                address=tags[ProtocolTags.MEMBER_ADDRESS.value],
                role=Role.OWNER,
                status=Status.ACCEPTED,
                email=self.email,
                public=input["public"],
                keys=backend.state_keys(member_tx),
                data=[member_tx],
            )
            return backend.vaults[vault_id].to_wire()
        if function == "membership:add":
            for member in input["members"]:
                backend.memberships[member["id"]] = Membership(
                    id=member["id"],
                    vault_id=vault_id,
                    address=member["address"],
                    role=Role(member["role"]),
                    status=Status.ACCEPTED,
                    email=backend.email_of(member["address"]),
                    public=backend.vaults[vault_id].public,
                    keys=backend.state_keys(member["data"]),
                    data=[member["data"]],
                )
            return None

        membership = backend.memberships.get(membership_id)
        if function == "membership:invite":
            if membership is None:
                membership = Membership(
                    id=membership_id,
                    vault_id=vault_id,
                    address=input["address"],
                    role=Role(input["role"]),
                    status=Status.PENDING,
                    email=backend.email_of(input["address"]),
                    public=backend.vaults[vault_id].public,
                )
                backend.memberships[membership_id] = membership
            membership.keys = backend.state_keys(input["data"])
            membership.data.append(input["data"])
        elif function == "membership:accept":
            membership.status = Status.ACCEPTED
            self._append_state(membership, input["data"])
        elif function == "membership:reject":
            if tags.get(ProtocolTags.ACTION_REF.value) == ActionRef.MEMBERSHIP_LEAVE.value:
                membership.status = Status.LEFT
            else:
                membership.status = Status.REJECTED
        elif function == "membership:revoke":
            membership.status = Status.REVOKED
            for entry in input.get("data") or []:
                member = backend.memberships[entry["id"]]
                member.keys = backend.state_keys(entry["value"])
                member.data.append(entry["value"])
        elif function == "membership:change-role":
            membership.role = Role(input["role"])
        elif function == "membership:update":
            self._append_state(membership, input["data"])
        return self._view(membership).to_wire()

    def _append_state(self, membership: Membership, state_id: str) -> None:
        state = self.backend.states[state_id]
        membership.data.append(state_id)
        if state.get("memberDetails"):
            membership.member_details = ProfileDetails.model_validate(state["memberDetails"])


@pytest.fixture
def backend():
    return Backend()


@pytest.fixture
def owner_wallet():
    return Wallet()


@pytest.fixture
def member_wallet():
    return Wallet()


@pytest.fixture
def other_wallet():
    return Wallet()


@pytest.fixture
def owner_api(backend, owner_wallet):
    return FakeApi(backend, owner_wallet, "owner@example.com")


@pytest.fixture
def member_api(backend, member_wallet):
    return FakeApi(backend, member_wallet, "member@example.com")


@pytest.fixture
def other_api(backend, other_wallet):
    return FakeApi(backend, other_wallet, "other@example.com")


@pytest.fixture
def make_api(backend):
    """Build a FakeApi for another caller on the shared backend."""
    def _make(wallet: Wallet, email: str, page_size: Optional[int] = None) -> FakeApi:
        return FakeApi(backend, wallet, email, page_size=page_size)
    return _make
