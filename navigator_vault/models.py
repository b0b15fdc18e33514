"""
Vault data model.

Wire payloads use camelCase keys; attributes are snake_case. Models are
built with ``Model.model_validate(payload)`` and serialized back with
``model_dump(by_alias=True, exclude_none=True)``.
"""
from typing import Any, Generic, Optional, TypeVar

from pydantic import BaseModel, ConfigDict, Field
from pydantic.alias_generators import to_camel

from .constants import Role, Status

T = TypeVar("T")


class WireModel(BaseModel):
    model_config = ConfigDict(
        alias_generator=to_camel,
        populate_by_name=True,
        extra="ignore",
    )

    def to_wire(self) -> dict:
        return self.model_dump(by_alias=True, exclude_none=True, mode="json")


class EncryptedKeys(WireModel):
    """A key-epoch wrapped for one member.

    ``enc_private_key`` is the epoch private key sealed for the member;
    the epoch public key travels either in clear (``public_key``) or sealed
    (``enc_public_key``), or not at all when it can be derived after unwrap.
    """
    enc_private_key: str
    public_key: Optional[str] = None
    enc_public_key: Optional[str] = None


class Tag(BaseModel):
    name: str
    value: str

    def __hash__(self) -> int:
        return hash((self.name, self.value))


Tags = list[Tag]


class EncryptionMetadata(WireModel):
    encrypted_key: Optional[str] = None
    iv: Optional[str] = None
    public_address: Optional[str] = None


class ProfileDetails(WireModel):
    name: Optional[str] = None
    avatar_uri: Optional[list[str]] = None
    avatar_url: Optional[str] = None


class User(WireModel):
    email: Optional[str] = None
    address: Optional[str] = None
    public_signing_key: Optional[str] = None
    name: Optional[str] = None
    avatar: Optional[str] = None


class UserPublicInfo(WireModel):
    address: str
    public_key: str
    public_signing_key: str


class Vault(WireModel):
    id: str
    public: bool = False
    status: Optional[str] = None
    name: Optional[str] = None
    terms_of_access: Optional[str] = None
    owner: Optional[str] = None
    keys: list[EncryptedKeys] = Field(default_factory=list)
    public_key: Optional[str] = None
    data: list[str] = Field(default_factory=list)
    tags: list[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class Membership(WireModel):
    id: str
    vault_id: Optional[str] = None
    address: Optional[str] = None
    owner: Optional[str] = None
    role: Optional[Role] = None
    status: Optional[Status] = None
    email: Optional[str] = None
    public: bool = False
    keys: Optional[list[EncryptedKeys]] = None
    public_key: Optional[str] = None
    enc_public_signing_key: Optional[str] = None
    member_public_signing_key: Optional[str] = None
    member_details: Optional[ProfileDetails] = None
    data: list[str] = Field(default_factory=list)
    created_at: Optional[str] = None
    updated_at: Optional[str] = None


class ListOptions(WireModel):
    should_decrypt: bool = True
    limit: Optional[int] = None
    next_token: Optional[str] = None
    filter: Optional[dict[str, Any]] = None
    vault_id: Optional[str] = None


class Paginated(BaseModel, Generic[T]):
    items: list[T] = Field(default_factory=list)
    next_token: Optional[str] = None
    errors: list[dict[str, Any]] = Field(default_factory=list)

    model_config = ConfigDict(arbitrary_types_allowed=True)


class TransactionResult(WireModel):
    """Result of a contract transaction: tx id and the updated object."""
    id: str
    object: Optional[dict[str, Any]] = None
