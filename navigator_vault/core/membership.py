"""
Membership operations — invite, accept, revoke and friends.

Every transition is a new appended write; nothing edits a previous record.
Status machine::

    PENDING|INVITED -> ACCEPTED -> REVOKED | LEFT
    PENDING|INVITED -> REJECTED | REVOKED

REJECTED, REVOKED and LEFT are terminal.
"""
from __future__ import annotations

import logging
import uuid
from dataclasses import dataclass
from typing import Any, Optional

from ..cache import VAULTS
from ..constants import ACTIVE_STATUSES, ActionRef, Function, ProtocolTags, Role, Status
from ..crypto import derive_address
from ..errors import BadRequest
from ..models import ListOptions, Membership, Paginated, Tag, TransactionResult
from ..pagination import handle_list_errors, paginate
from ..service import ContextService, MembershipContextService
from ..utils import b64d
from .base import CoreModule, gather_all, open_profile_name, process_member_details

logger = logging.getLogger("navigator.vault")

TRANSITIONS: dict[Status, tuple[Status, ...]] = {
    Status.PENDING: (Status.ACCEPTED, Status.REJECTED, Status.REVOKED),
    Status.INVITED: (Status.ACCEPTED, Status.REJECTED, Status.REVOKED),
    Status.ACCEPTED: (Status.REVOKED, Status.LEFT),
    Status.REJECTED: (),
    Status.REVOKED: (),
    Status.LEFT: (),
}

PENDING_STATUSES = (Status.PENDING, Status.INVITED)


def ensure_transition(membership: Membership, target: Status) -> None:
    """Raise BadRequest unless ``membership`` may move to ``target``."""
    if target not in TRANSITIONS.get(membership.status, ()):
        raise BadRequest(
            f"Cannot move membership {membership.id} from "
            f"{getattr(membership.status, 'value', membership.status)} to {target.value}"
        )


@dataclass
class MembershipResult:
    transaction_id: str
    object: Optional[Membership] = None


@dataclass
class MembershipCreateResult(MembershipResult):
    membership_id: Optional[str] = None


@dataclass
class AirdropResult:
    transaction_id: str
    members: list[dict[str, Any]]


class MembershipModule(CoreModule):
    service_class = MembershipContextService

    default_list_options = ListOptions(
        should_decrypt=True,
        filter={
            "or": [
                {"status": {"eq": Status.ACCEPTED.value}},
                {"status": {"eq": Status.PENDING.value}},
            ]
        },
    )

    # ------------------------------------------------------------------
    # Reads
    # ------------------------------------------------------------------

    async def get(
        self,
        membership_id: str,
        vault_id: Optional[str] = None,
        should_decrypt: bool = True,
    ) -> Membership:
        membership = await self.api.get_membership(membership_id, vault_id)
        return await self._process_membership(membership, should_decrypt and not membership.public)

    async def list(self, vault_id: str, options: Optional[ListOptions] = None) -> Paginated[Membership]:
        """One page of memberships; items that fail to decrypt land in ``errors``."""
        list_options = self.default_list_options.model_copy(
            update=(options.model_dump(exclude_unset=True) if options else {})
        )
        response = await self.api.get_memberships_by_vault_id(vault_id, list_options)
        items, errors = await handle_list_errors(
            response.items,
            [
                self._process_membership(
                    membership, list_options.should_decrypt and not membership.public
                )
                for membership in response.items
            ],
            concurrency=self.config.list_concurrency,
        )
        return Paginated[Membership](items=items, next_token=response.next_token, errors=errors)

    async def list_all(self, vault_id: str, options: Optional[ListOptions] = None) -> list[Membership]:
        return await paginate(
            lambda page_options: self.list(vault_id, page_options),
            options or self.default_list_options,
        )

    # ------------------------------------------------------------------
    # Invitations
    # ------------------------------------------------------------------

    async def invite(
        self,
        vault_id: str,
        email: str,
        role: Role,
        message: Optional[str] = None,
    ) -> MembershipCreateResult:
        """Invite a registered user, wrapping the vault keys for them."""
        service = self._service()
        await service.set_vault_context(vault_id)
        service.set_action_ref(ActionRef.MEMBERSHIP_INVITE.value)
        service.set_function(Function.MEMBERSHIP_INVITE)
        membership_id = str(uuid.uuid4())
        service.set_object_id(membership_id)

        member = await self.api.get_user_public_data(email)
        state = {
            "keys": _wire_keys(await service.prepare_member_keys(member.public_key)),
            "encPublicSigningKey": await service.process_write_string(member.public_signing_key),
        }
        data_tx = await service.upload_state(state)
        tags = [Tag(name=ProtocolTags.MEMBER_ADDRESS.value, value=member.address)]
        tags.extend(await service.get_tx_tags())
        result = await self.api.post_contract_transaction(
            vault_id,
            {
                "function": service.context.function.value,
                "address": member.address,
                "role": Role(role).value,
                "data": data_tx,
            },
            tags,
            {"message": message},
        )
        logger.info("Invited member to vault=%s membership=%s", vault_id, membership_id)
        return MembershipCreateResult(
            transaction_id=result.id,
            object=await self._membership_from_result(result, service),
            membership_id=membership_id,
        )

    async def airdrop(self, vault_id: str, members: list[dict[str, Any]]) -> AirdropResult:
        """Grant access directly through member public keys.

        Each member entry holds ``public_key``, ``public_signing_key`` and ``role``.
        """
        service = self._service()
        await service.set_vault_context(vault_id)
        service.set_action_ref(ActionRef.MEMBERSHIP_AIRDROP.value)
        service.set_function(Function.MEMBERSHIP_ADD)

        member_inputs = []
        member_tags = []
        for member in members:
            membership_id = str(uuid.uuid4())
            service.set_object_id(membership_id)
            address = derive_address(b64d(member["public_signing_key"]))
            state = {
                "id": membership_id,
                "address": address,
                "keys": _wire_keys(await service.prepare_member_keys(member["public_key"])),
                "encPublicSigningKey": await service.process_write_string(member["public_signing_key"]),
            }
            data = await service.upload_state(state)
            member_inputs.append({
                "address": address,
                "id": membership_id,
                "role": Role(member["role"]).value,
                "data": data,
            })
            member_tags.append(Tag(name=ProtocolTags.MEMBER_ADDRESS.value, value=address))
            member_tags.append(Tag(name=ProtocolTags.MEMBERSHIP_ID.value, value=membership_id))

        # vault-level write: no single membership id
        service.set_object_id(None)
        result = await self.api.post_contract_transaction(
            vault_id,
            {"function": service.context.function.value, "members": member_inputs},
            member_tags + await service.get_tx_tags(),
        )
        return AirdropResult(transaction_id=result.id, members=member_inputs)

    async def invite_resend(self, membership_id: str, vault_id: Optional[str] = None) -> None:
        membership = await self.api.get_membership(membership_id, vault_id)
        if membership.status not in PENDING_STATUSES:
            raise BadRequest(
                f"Cannot resend the invitation for member: {membership_id}. "
                f"Found invalid status: {getattr(membership.status, 'value', membership.status)}"
            )
        await self.api.invite_resend(membership.vault_id, membership_id)

    async def confirm(self, membership_id: str) -> MembershipResult:
        """Owner-side: issue keys to an invitee that has since registered."""
        service = self._service()
        membership = await service.set_vault_context_from_membership_id(membership_id)
        if membership.status not in PENDING_STATUSES:
            raise BadRequest(f"Cannot confirm membership {membership_id}: not pending")
        service.set_action_ref(ActionRef.MEMBERSHIP_CONFIRM.value)
        service.set_function(Function.MEMBERSHIP_INVITE)
        member = await self.api.get_user_public_data(membership.email)
        state = {
            "keys": _wire_keys(await service.prepare_member_keys(member.public_key)),
            "encPublicSigningKey": await service.process_write_string(member.public_signing_key),
        }
        data_tx = await service.upload_state(state)
        tags = [Tag(name=ProtocolTags.MEMBER_ADDRESS.value, value=member.address)]
        tags.extend(await service.get_tx_tags())
        result = await self.api.post_contract_transaction(
            service.vault_id,
            {
                "function": service.context.function.value,
                "address": member.address,
                "data": data_tx,
                "role": getattr(membership.role, "value", membership.role),
            },
            tags,
        )
        return MembershipResult(result.id, await self._membership_from_result(result, service))

    # ------------------------------------------------------------------
    # Member-side transitions
    # ------------------------------------------------------------------

    async def accept(self, membership_id: str) -> MembershipResult:
        profile = await self.api.get_profile_details()
        service = self._service()
        membership = await service.set_vault_context_from_membership_id(membership_id)
        ensure_transition(membership, Status.ACCEPTED)
        state = {
            "memberDetails": await process_member_details(
                service, open_profile_name(self.wallet, profile.name)
            ),
            "encPublicSigningKey": await service.process_write_string(
                self.wallet.signing_public_key()
            ),
        }
        service.set_action_ref(ActionRef.MEMBERSHIP_ACCEPT.value)
        service.set_function(Function.MEMBERSHIP_ACCEPT)
        data = await service.merge_and_upload_state(state)
        return await self._post(service, {"data": data})

    async def reject(self, membership_id: str) -> MembershipResult:
        return await self._transition(
            membership_id, Status.REJECTED, ActionRef.MEMBERSHIP_REJECT, Function.MEMBERSHIP_REJECT
        )

    async def leave(self, membership_id: str) -> MembershipResult:
        return await self._transition(
            membership_id, Status.LEFT, ActionRef.MEMBERSHIP_LEAVE, Function.MEMBERSHIP_REJECT
        )

    async def profile_update(
        self,
        membership_id: str,
        name: Optional[str] = None,
        avatar: Optional[str] = None,
    ) -> MembershipResult:
        service = self._service()
        await service.set_vault_context_from_membership_id(membership_id)
        member_details = await process_member_details(service, name, avatar)
        service.set_action_ref(ActionRef.MEMBERSHIP_PROFILE_UPDATE.value)
        service.set_function(Function.MEMBERSHIP_UPDATE)
        data = await service.merge_and_upload_state({"memberDetails": member_details})
        return await self._post(service, {"data": data})

    # ------------------------------------------------------------------
    # Owner-side transitions
    # ------------------------------------------------------------------

    async def change_role(self, membership_id: str, role: Role) -> MembershipResult:
        service = self._service()
        membership = await service.set_vault_context_from_membership_id(membership_id)
        if not TRANSITIONS.get(membership.status):
            raise BadRequest(f"Cannot change role of membership {membership_id}: not active")
        service.set_action_ref(ActionRef.MEMBERSHIP_CHANGE_ROLE.value)
        service.set_function(Function.MEMBERSHIP_CHANGE_ROLE)
        return await self._post(service, {"role": Role(role).value})

    async def revoke(self, membership_id: str) -> MembershipResult:
        """Revoke a membership and rotate the vault keys for everyone else.

        For private vaults a new key-epoch is wrapped for every remaining
        ACCEPTED or PENDING member and appended to their membership state.
        """
        service = self._service()
        membership = await service.set_vault_context_from_membership_id(membership_id)
        ensure_transition(membership, Status.REVOKED)
        service.set_action_ref(ActionRef.MEMBERSHIP_REVOKE.value)
        service.set_function(Function.MEMBERSHIP_REVOKE)
        tags = await service.get_tx_tags()

        data = None
        if not service.is_public:
            memberships = await self.list_all(
                service.vault_id, ListOptions(should_decrypt=False)
            )
            active = [
                member for member in memberships
                if member.id != membership_id and member.status in ACTIVE_STATUSES
            ]
            public_keys = dict(await gather_all(
                [self._member_public_key(member) for member in active],
                label="member public key lookup",
            ))
            rotated = await service.rotate_member_keys(public_keys)
            data = await gather_all(
                [
                    self._upload_member_keys(service, member, rotated.member_keys[member.id])
                    for member in active
                ],
                label="member key upload",
            )

        result = await self.api.post_contract_transaction(
            service.vault_id,
            {"function": service.context.function.value, "data": data},
            tags,
        )
        self.cache.invalidate(VAULTS)
        logger.info("Revoked membership=%s in vault=%s", membership_id, service.vault_id)
        return MembershipResult(result.id, await self._membership_from_result(result, service))

    # ------------------------------------------------------------------
    # Helpers
    # ------------------------------------------------------------------

    async def _transition(
        self,
        membership_id: str,
        target: Status,
        action_ref: ActionRef,
        function: Function,
    ) -> MembershipResult:
        service = self._service()
        membership = await service.set_vault_context_from_membership_id(membership_id)
        ensure_transition(membership, target)
        service.set_action_ref(action_ref.value)
        service.set_function(function)
        return await self._post(service, {})

    async def _post(self, service: MembershipContextService, input: dict[str, Any]) -> MembershipResult:
        result = await self.api.post_contract_transaction(
            service.vault_id,
            {"function": service.context.function.value, **input},
            await service.get_tx_tags(),
        )
        return MembershipResult(result.id, await self._membership_from_result(result, service))

    async def _member_public_key(self, member: Membership) -> tuple[str, str]:
        if not member.email:
            raise BadRequest(f"Cannot rotate keys for member {member.id}: no email on record")
        info = await self.api.get_user_public_data(member.email)
        return member.id, info.public_key

    async def _upload_member_keys(
        self,
        service: MembershipContextService,
        member: Membership,
        keys: list,
    ) -> dict[str, str]:
        member_service = MembershipContextService.from_service(service)
        member_service.set_object_id(member.id)
        member_service.set_object(member)
        tx_id = await member_service.merge_and_upload_state({"keys": _wire_keys(keys)})
        return {"id": member.id, "value": tx_id}

    async def _membership_from_result(
        self,
        result: TransactionResult,
        service: ContextService,
    ) -> Optional[Membership]:
        if not result.object:
            return None
        membership = Membership.model_validate(result.object)
        return await _decrypt_member_details(membership, service)

    async def _process_membership(self, membership: Membership, should_decrypt: bool) -> Membership:
        if not should_decrypt:
            return membership
        service = ContextService(self.wallet, self.api, cache=self.cache, config=self.config)
        service.set_vault_id(membership.vault_id)
        await service.set_membership_keys(membership)
        return await _decrypt_member_details(membership, service)


async def _decrypt_member_details(membership: Membership, service: ContextService) -> Membership:
    details = membership.member_details
    if details is None or not details.name:
        return membership
    name = await service.process_read_string(details.name)
    return membership.model_copy(
        update={"member_details": details.model_copy(update={"name": name})}
    )


def _wire_keys(keys: Optional[list]) -> Optional[list[dict]]:
    if keys is None:
        return None
    return [record.to_wire() for record in keys]


__all__ = [
    "MembershipModule",
    "MembershipResult",
    "MembershipCreateResult",
    "AirdropResult",
    "TRANSITIONS",
    "ensure_transition",
]
