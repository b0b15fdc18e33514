"""
ContextService — binds an encryption context, a vault identity and the API.

Every vault operation goes through a service instance:

1. ``set_vault_context()`` loads the vault and establishes the encryption
   context from the caller's wrapped key-epochs.
2. ``process_write_*`` / ``process_read_*`` encode and decode through it
   (passthrough for public vaults).
3. ``get_tx_tags()`` builds the tag set attached to the write.

All mutable per-operation state lives in a :class:`VaultContext`, which
``from_service()`` copies into a new service.

Security Note:
    Any cryptographic failure is re-raised as ``IncorrectEncryptionKey``.
    Never log plaintext, ciphertext or key material.
"""
import dataclasses
import logging
import re
from dataclasses import dataclass, field
from typing import Any, Optional, Union

from ..cache import VAULTS, Cache, CacheBusters
from ..config import ClientConfig
from ..constants import (
    STATE_CONTENT_TYPE,
    TOPIC_TAG,
    DataTags,
    EncryptionTags,
    Function,
    ObjectType,
    ProtocolTags,
)
from ..crypto import EncryptedPayload, EncryptedData, Encrypter, EncryptOptions, Wallet, derive_address
from ..errors import IncorrectEncryptionKey
from ..models import EncryptedKeys, EncryptionMetadata, Membership, Tag, Tags, Vault
from ..state import merge_state
from ..utils import b64d, b64e, base64_to_json, canonical_json, json_to_base64, now_ms

logger = logging.getLogger("navigator.vault")

_TOPIC_SEPARATORS = re.compile(r"[ .,]")


@dataclass
class VaultContext:
    """Service-local state of one vault operation."""
    vault_id: Optional[str] = None
    object_id: Optional[str] = None
    object_type: Optional[ObjectType] = None
    function: Optional[Function] = None
    is_public: bool = False
    vault: Optional[Vault] = None
    object: Optional[Any] = None
    action_ref: Optional[str] = None
    group_ref: Optional[str] = None
    keys: list[EncryptedKeys] = field(default_factory=list)
    tags: list[str] = field(default_factory=list)

    def copy(self) -> "VaultContext":
        return dataclasses.replace(self, keys=list(self.keys), tags=list(self.tags))


def topic_words(labels: list[str]) -> list[str]:
    """Split free-text labels into lower-cased topic words."""
    words = []
    for label in labels:
        if label:
            words.extend(word.lower() for word in _TOPIC_SEPARATORS.split(label) if word)
    return words


def unique_tags(tags: Tags) -> Tags:
    """Collapse tags sharing a value; the last one inserted wins."""
    return list({tag.value: tag for tag in tags}.values())


class ContextService:
    """Encode/decode and tagging primitives shared by every vault operation."""

    default_object_type: Optional[ObjectType] = None

    def __init__(
        self,
        wallet: Wallet,
        api: Any,
        cache: Optional[Cache] = None,
        config: Optional[ClientConfig] = None,
        context: Optional[VaultContext] = None,
        encrypter: Optional[Encrypter] = None,
    ):
        self.wallet = wallet
        self.api = api
        self.cache = cache or Cache(CacheBusters())
        self.config = config or ClientConfig()
        self.context = context or VaultContext()
        if self.default_object_type is not None:
            self.context.object_type = self.default_object_type
        self.encrypter = encrypter or Encrypter(wallet, self.context.keys)

    @classmethod
    def from_service(cls, service: "ContextService") -> "ContextService":
        """New service carrying a copy of ``service``'s vault context."""
        return cls(
            service.wallet,
            service.api,
            cache=service.cache,
            config=service.config,
            context=service.context.copy(),
            encrypter=Encrypter(
                service.wallet,
                service.encrypter.keys,
                service.encrypter.public_key,
            ),
        )

    def __repr__(self) -> str:
        return (
            f"<{type(self).__name__} vault={self.context.vault_id} "
            f"object={self.context.object_id} public={self.context.is_public}>"
        )

    # ------------------------------------------------------------------
    # Context accessors
    # ------------------------------------------------------------------

    @property
    def vault_id(self) -> Optional[str]:
        return self.context.vault_id

    @property
    def object_id(self) -> Optional[str]:
        return self.context.object_id

    @property
    def object(self) -> Optional[Any]:
        return self.context.object

    @property
    def is_public(self) -> bool:
        return self.context.is_public

    @property
    def keys(self) -> list[EncryptedKeys]:
        return self.context.keys

    def set_keys(self, keys: list[EncryptedKeys]) -> None:
        self.context.keys = list(keys)
        self.encrypter.set_keys(keys)

    def set_vault_id(self, vault_id: str) -> None:
        self.context.vault_id = vault_id

    def set_object_id(self, object_id: Optional[str]) -> None:
        self.context.object_id = object_id

    def set_group_ref(self, group_ref: Optional[str]) -> None:
        self.context.group_ref = group_ref

    def set_action_ref(self, action_ref: Optional[str]) -> None:
        self.context.action_ref = action_ref

    def set_object_type(self, object_type: ObjectType) -> None:
        self.context.object_type = object_type

    def set_function(self, function: Function) -> None:
        self.context.function = function

    def set_object(self, obj: Any) -> None:
        self.context.object = obj

    def set_is_public(self, is_public: bool) -> None:
        self.context.is_public = bool(is_public)

    def set_vault(self, vault: Vault) -> None:
        self.context.vault = vault

    def set_tags(self, tags: Optional[list[str]]) -> None:
        self.context.tags = [tag for tag in (tags or []) if tag]

    def set_raw_data_encryption_public_key(self, public_key: bytes) -> None:
        self.encrypter.set_raw_public_key(public_key)

    # ------------------------------------------------------------------
    # Vault context
    # ------------------------------------------------------------------

    async def set_vault_context(self, vault_id: str) -> Vault:
        """Load the vault and establish the encryption context for it."""
        vault = await self.cache.memoize(
            VAULTS,
            Cache.make_key("vault", vault_id),
            lambda: self.api.get_vault(vault_id),
        )
        self.set_vault(vault)
        self.set_vault_id(vault_id)
        self.set_is_public(vault.public)
        await self.set_membership_keys(vault)
        return vault

    async def set_membership_keys(self, obj: Union[Vault, Membership]) -> None:
        """Install ``obj``'s wrapped key-epochs and pick the current public key.

        An explicit ``public_key`` on the record wins; otherwise the last
        key-history entry provides it.
        """
        if self.is_public:
            return
        keys = list(obj.keys or [])
        self.set_keys(keys)
        try:
            if obj.public_key:
                public_key = b64d(obj.public_key)
            else:
                current = keys[-1]
                if current.public_key:
                    public_key = b64d(current.public_key)
                elif current.enc_public_key:
                    public_key = self.wallet.decrypt(current.enc_public_key)
                else:
                    public_key = self.encrypter.unwrap(current).public_key
        except Exception as err:
            raise IncorrectEncryptionKey(err) from err
        self.set_raw_data_encryption_public_key(public_key)
        logger.debug(
            "Encryption context set: vault=%s epochs=%d", self.vault_id, len(keys)
        )

    async def get_active_key(self) -> dict[str, str]:
        public_key = self.encrypter.public_key
        if public_key is None:
            raise IncorrectEncryptionKey(ValueError("No active encryption key"))
        return {
            "address": derive_address(public_key),
            "public_key": b64e(public_key),
        }

    # ------------------------------------------------------------------
    # Encode / decode
    # ------------------------------------------------------------------

    async def process_write_string(self, data: str) -> str:
        """Encrypt a string, stamping the envelope with the active key address."""
        if self.is_public:
            return data
        try:
            encoded = self.encrypter.encrypt_raw(data, EncryptOptions(encode=True))
        except Exception as err:
            raise IncorrectEncryptionKey(err) from err
        payload = base64_to_json(encoded)
        payload["publicAddress"] = (await self.get_active_key())["address"]
        payload.pop("publicKey", None)
        return json_to_base64(payload)

    async def process_write_raw(
        self,
        data: bytes,
        options: Optional[EncryptOptions] = None
    ) -> tuple[bytes, Tags]:
        """Encrypt binary data.

        Returns:
            Tuple of (processed data, encryption tags). The tags carry the
            key address, the wrapped data key and the IV (unless the IV is
            prefixed into the ciphertext).
        """
        tags: Tags = []
        if self.is_public:
            return data, tags
        options = options or EncryptOptions()
        try:
            payload = self.encrypter.encrypt_raw(data, options)
        except Exception as err:
            raise IncorrectEncryptionKey(err) from err
        active = await self.get_active_key()
        tags.append(Tag(name=EncryptionTags.PUBLIC_ADDRESS.value, value=active["address"]))
        tags.append(Tag(name=EncryptionTags.ENCRYPTED_KEY.value, value=payload.encrypted_key))
        if not options.prefix_ciphertext_with_iv:
            tags.append(Tag(name=EncryptionTags.IV.value, value=b64e(payload.encrypted_data.iv)))
        return payload.encrypted_data.ciphertext, tags

    async def process_read_raw(
        self,
        data: Union[bytes, str],
        metadata: Optional[EncryptionMetadata] = None,
        should_decrypt: bool = True,
    ) -> Union[bytes, str]:
        if self.is_public or not should_decrypt:
            return data
        try:
            payload = get_encrypted_payload(data, metadata)
            if payload is not None:
                return self.encrypter.decrypt_raw(payload)
            return self.encrypter.decrypt_raw(data)
        except Exception as err:
            raise IncorrectEncryptionKey(err) from err

    async def process_read_string(self, data: str, should_decrypt: bool = True) -> str:
        if self.is_public or not should_decrypt:
            return data
        decrypted = await self.process_read_raw(data)
        try:
            return decrypted.decode("utf-8")
        except UnicodeDecodeError as err:
            raise IncorrectEncryptionKey(err) from err

    # ------------------------------------------------------------------
    # Tags
    # ------------------------------------------------------------------

    def protocol_tags(self) -> Tags:
        """Client and protocol identification stamped on every write."""
        return [
            Tag(name=ProtocolTags.CLIENT_NAME.value, value=self.config.client_name),
            Tag(name=ProtocolTags.PROTOCOL_NAME.value, value=self.config.protocol_name),
            Tag(name=ProtocolTags.PROTOCOL_VERSION.value, value=self.config.protocol_version),
        ]

    async def get_tx_tags(self) -> Tags:
        """Ordered tag set of the next write, without falsy values."""
        ctx = self.context
        candidates = [
            (ProtocolTags.FUNCTION_NAME, ctx.function),
            (ProtocolTags.SIGNER_ADDRESS, await self.wallet.get_address()),
            (ProtocolTags.VAULT_ID, ctx.vault_id),
            (ProtocolTags.TIMESTAMP, str(now_ms())),
            (ProtocolTags.NODE_TYPE, ctx.object_type),
            (ProtocolTags.PUBLIC, "true" if ctx.is_public else "false"),
            (ProtocolTags.GROUP_REF, ctx.group_ref),
            (ProtocolTags.ACTION_REF, ctx.action_ref),
        ]
        tags = [
            Tag(name=name.value, value=getattr(value, "value", value))
            for name, value in candidates if value
        ]
        tags.extend(self.protocol_tags())
        for word in topic_words(ctx.tags):
            tags.append(Tag(name=f"{TOPIC_TAG}:{word}", value=word))
        return unique_tags(tags)

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    async def upload_state(self, state: dict[str, Any]) -> str:
        """Sign and upload an object state; returns its transaction id."""
        signature = await self.wallet.sign(canonical_json(state))
        object_type = self.context.object_type
        tags = [
            Tag(name=DataTags.DATA_TYPE.value, value="State"),
            Tag(name=DataTags.CONTENT_TYPE.value, value=STATE_CONTENT_TYPE),
            Tag(name=ProtocolTags.SIGNATURE.value, value=signature),
            Tag(name=ProtocolTags.SIGNER_ADDRESS.value, value=await self.wallet.get_address()),
            Tag(name=ProtocolTags.VAULT_ID.value, value=self.vault_id),
            Tag(name=ProtocolTags.NODE_TYPE.value, value=object_type.value),
        ]
        if object_type == ObjectType.MEMBERSHIP:
            tags.append(Tag(name=ProtocolTags.MEMBERSHIP_ID.value, value=self.object_id))
        elif object_type != ObjectType.VAULT:
            tags.append(Tag(name=ProtocolTags.NODE_ID.value, value=self.object_id))
        tags.extend(self.protocol_tags())
        ids = await self.api.upload_data([{"data": state, "tags": tags}])
        logger.debug(
            "Uploaded %s state: vault=%s object=%s", object_type.value, self.vault_id, self.object_id
        )
        return ids[0]

    async def get_current_state(self) -> dict[str, Any]:
        data = getattr(self.object, "data", None)
        if data:
            return await self.api.get_node_state(data[-1])
        return {}

    async def merge_and_upload_state(self, updates: dict[str, Any]) -> str:
        current = await self.get_current_state()
        return await self.upload_state(merge_state(current, updates))


def get_encrypted_payload(
    data: Union[bytes, str],
    metadata: Optional[EncryptionMetadata]
) -> Optional[EncryptedPayload]:
    """Rebuild a binary payload from its side-channel encryption tags."""
    if metadata is None or not metadata.encrypted_key or isinstance(data, str):
        return None
    return EncryptedPayload(
        encrypted_key=metadata.encrypted_key,
        encrypted_data=EncryptedData(
            ciphertext=data,
            iv=b64d(metadata.iv) if metadata.iv else None,
        ),
        public_address=metadata.public_address,
    )
