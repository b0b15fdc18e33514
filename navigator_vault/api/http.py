"""
HttpApi — aiohttp implementation of the API collaborator.

Non-2xx responses are mapped onto the vault error taxonomy; connection
failures and timeouts become :class:`NetworkError`, and an unreadable
success body becomes :class:`InternalError`.

Security Note:
    Never log request bodies or the bearer token.
"""
import asyncio
import logging
from typing import Any, Optional

import aiohttp
import orjson

from ..config import ClientConfig
from ..errors import INTERNAL_ERROR_MESSAGE, InternalError, NetworkError, throw_error
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
from .base import Api

logger = logging.getLogger("navigator.vault")


def _list_params(options: ListOptions) -> dict[str, str]:
    params: dict[str, str] = {}
    if options.limit:
        params["limit"] = str(options.limit)
    if options.next_token:
        params["nextToken"] = options.next_token
    if options.filter:
        params["filter"] = orjson.dumps(options.filter).decode("utf-8")
    return params


class HttpApi(Api):
    """REST client for the vault backend."""

    def __init__(self, config: ClientConfig, session: Optional[aiohttp.ClientSession] = None):
        if not config.api_url:
            raise ValueError("HttpApi requires ClientConfig.api_url")
        self._config = config
        self._base_url = config.api_url
        self._session = session
        self._owns_session = session is None

    async def _get_session(self) -> aiohttp.ClientSession:
        if self._session is None or self._session.closed:
            headers = {"Content-Type": "application/json"}
            if self._config.api_token:
                headers["Authorization"] = f"Bearer {self._config.api_token}"
            self._session = aiohttp.ClientSession(
                headers=headers,
                timeout=aiohttp.ClientTimeout(total=self._config.request_timeout),
                json_serialize=lambda obj: orjson.dumps(obj).decode("utf-8"),
            )
            self._owns_session = True
        return self._session

    async def close(self) -> None:
        if self._owns_session and self._session is not None:
            await self._session.close()
            self._session = None

    async def _request(
        self,
        method: str,
        path: str,
        json: Optional[Any] = None,
        params: Optional[dict[str, str]] = None,
    ) -> Any:
        session = await self._get_session()
        url = f"{self._base_url}/{path.lstrip('/')}"
        try:
            async with session.request(method, url, json=json, params=params) as response:
                body = await response.read()
                if response.status >= 400:
                    message = None
                    try:
                        message = orjson.loads(body).get("message")
                    except (orjson.JSONDecodeError, AttributeError):
                        message = body.decode("utf-8", errors="replace") or None
                    logger.debug("%s %s failed with status %s", method, path, response.status)
                    throw_error(response.status, message)
                if not body:
                    return None
                try:
                    return orjson.loads(body)
                except orjson.JSONDecodeError as err:
                    logger.debug("%s %s returned a non-JSON body", method, path)
                    raise InternalError(INTERNAL_ERROR_MESSAGE, err) from err
        except (aiohttp.ClientError, asyncio.TimeoutError) as err:
            raise NetworkError(str(err) or type(err).__name__, err) from err

    # ------------------------------------------------------------------
    # Contract
    # ------------------------------------------------------------------

    async def get_vault(self, vault_id: str) -> Vault:
        return Vault.model_validate(await self._request("GET", f"vaults/{vault_id}"))

    async def get_membership(self, membership_id: str, vault_id: Optional[str] = None) -> Membership:
        params = {"vaultId": vault_id} if vault_id else None
        data = await self._request("GET", f"memberships/{membership_id}", params=params)
        return Membership.model_validate(data)

    async def get_memberships_by_vault_id(
        self, vault_id: str, options: ListOptions
    ) -> Paginated[Membership]:
        data = await self._request(
            "GET", f"vaults/{vault_id}/memberships", params=_list_params(options)
        )
        return Paginated[Membership](
            items=[Membership.model_validate(item) for item in data.get("items", [])],
            next_token=data.get("nextToken"),
        )

    async def get_memberships(self, options: ListOptions) -> Paginated[Membership]:
        data = await self._request("GET", "memberships", params=_list_params(options))
        return Paginated[Membership](
            items=[Membership.model_validate(item) for item in data.get("items", [])],
            next_token=data.get("nextToken"),
        )

    async def get_user_public_data(self, email: str) -> UserPublicInfo:
        data = await self._request("GET", "users/public", params={"email": email})
        return UserPublicInfo.model_validate(data)

    async def post_contract_transaction(
        self,
        vault_id: str,
        input: dict[str, Any],
        tags: Tags,
        metadata: Optional[dict[str, Any]] = None,
    ) -> TransactionResult:
        data = await self._request(
            "POST",
            f"vaults/{vault_id}/transactions",
            json={
                "input": input,
                "tags": [tag.model_dump() for tag in tags],
                "metadata": metadata or {},
            },
        )
        return TransactionResult.model_validate(data)

    async def upload_data(self, items: list[dict[str, Any]]) -> list[str]:
        payload = [
            {"data": item["data"], "tags": [tag.model_dump() for tag in item["tags"]]}
            for item in items
        ]
        data = await self._request("POST", "states", json=payload)
        return [entry["id"] for entry in data]

    async def get_node_state(self, state_id: str) -> dict[str, Any]:
        return await self._request("GET", f"states/{state_id}")

    async def get_user(self) -> User:
        return User.model_validate(await self._request("GET", "users/me"))

    async def get_profile_details(self) -> ProfileDetails:
        return ProfileDetails.model_validate(await self._request("GET", "users/me/profile"))

    async def update_user(self, name: Optional[str], avatar: Optional[str]) -> None:
        await self._request("PUT", "users/me", json={"name": name, "avatar": avatar})

    async def invite_resend(self, vault_id: str, membership_id: str) -> None:
        await self._request("POST", f"vaults/{vault_id}/memberships/{membership_id}/resend")
