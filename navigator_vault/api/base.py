"""API collaborator contract consumed by the vault services."""
from abc import ABC, abstractmethod
from typing import Any, Optional

from ..models import (
    ListOptions,
    Membership,
    Paginated,
    ProfileDetails,
    Tags,
    TransactionResult,
    User,
    UserPublicInfo,
    Vault,
)


class Api(ABC):
    """Remote backend: vault/membership reads, state uploads and contract writes.

    List calls return :class:`Paginated`; a ``next_token`` of ``"null"``
    means there are no more pages.
    """

    @abstractmethod
    async def get_vault(self, vault_id: str) -> Vault:
        ...

    @abstractmethod
    async def get_membership(self, membership_id: str, vault_id: Optional[str] = None) -> Membership:
        ...

    @abstractmethod
    async def get_memberships_by_vault_id(
        self, vault_id: str, options: ListOptions
    ) -> Paginated[Membership]:
        ...

    @abstractmethod
    async def get_memberships(self, options: ListOptions) -> Paginated[Membership]:
        """Memberships of the authenticated user, across vaults."""

    @abstractmethod
    async def get_user_public_data(self, email: str) -> UserPublicInfo:
        ...

    @abstractmethod
    async def post_contract_transaction(
        self,
        vault_id: str,
        input: dict[str, Any],
        tags: Tags,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TransactionResult:
        ...

    @abstractmethod
    async def upload_data(self, items: list[dict[str, Any]]) -> list[str]:
        """Upload ``[{"data": ..., "tags": Tags}]``; returns one tx id per item."""

    @abstractmethod
    async def get_node_state(self, state_id: str) -> dict[str, Any]:
        ...

    @abstractmethod
    async def get_user(self) -> User:
        ...

    @abstractmethod
    async def get_profile_details(self) -> ProfileDetails:
        ...

    @abstractmethod
    async def update_user(self, name: Optional[str], avatar: Optional[str]) -> None:
        ...

    @abstractmethod
    async def invite_resend(self, vault_id: str, membership_id: str) -> None:
        ...
