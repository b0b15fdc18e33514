"""
Wallet — the caller's asymmetric identity.

Holds two key pairs:
- X25519 encryption identity: unwraps key-epochs issued to this wallet.
- Ed25519 signing identity: signs uploaded state; its public key derives
  the wallet address stamped on every write.
"""
from typing import Optional, Union

from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PrivateKey
from cryptography.hazmat.primitives.asymmetric.x25519 import X25519PrivateKey

from ..utils import b64e
from .primitives import derive_address, seal, unseal


class Wallet:
    """Local wallet backed by raw X25519 / Ed25519 keys."""

    def __init__(
        self,
        encryption_key: Optional[X25519PrivateKey] = None,
        signing_key: Optional[Ed25519PrivateKey] = None,
    ):
        self._encryption_key = encryption_key or X25519PrivateKey.generate()
        self._signing_key = signing_key or Ed25519PrivateKey.generate()

    @classmethod
    def from_raw(cls, encryption_private_key: bytes, signing_private_key: bytes) -> "Wallet":
        return cls(
            X25519PrivateKey.from_private_bytes(encryption_private_key),
            Ed25519PrivateKey.from_private_bytes(signing_private_key),
        )

    def __repr__(self) -> str:
        return f"<Wallet address={derive_address(self.signing_public_key_raw())}>"

    # encryption identity

    def public_key_raw(self) -> bytes:
        return self._encryption_key.public_key().public_bytes_raw()

    def public_key(self) -> str:
        return b64e(self.public_key_raw())

    def encrypt(self, data: bytes, public_key: Optional[bytes] = None) -> str:
        """Seal data for ``public_key`` (defaults to this wallet)."""
        return seal(data, public_key or self.public_key_raw())

    def decrypt(self, sealed: str) -> bytes:
        return unseal(sealed, self._encryption_key.private_bytes_raw())

    # signing identity

    def signing_public_key_raw(self) -> bytes:
        return self._signing_key.public_key().public_bytes_raw()

    def signing_public_key(self) -> str:
        return b64e(self.signing_public_key_raw())

    def signing_private_key_raw(self) -> bytes:
        return self._signing_key.private_bytes_raw()

    async def get_address(self) -> str:
        return derive_address(self.signing_public_key_raw())

    async def sign(self, message: Union[str, bytes]) -> str:
        if isinstance(message, str):
            message = message.encode("utf-8")
        return b64e(self._signing_key.sign(message))
