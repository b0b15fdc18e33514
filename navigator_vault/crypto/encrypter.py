"""
Encrypter — the encryption context of one service instance.

Owns the wrapped key-epochs of the current vault or membership, unwraps
them lazily with the wallet, and encrypts payloads for the current
(most recent) epoch public key.

Payload format (string mode):
    base64(json{encryptedKey, encryptedData: {iv, ciphertext}, publicKey})

``encryptedKey`` is a random AES-256 data key sealed for the epoch
public key. Errors from the underlying crypto library propagate as-is;
services normalize them into ``IncorrectEncryptionKey``.
"""
import logging
from dataclasses import dataclass
from typing import Optional, Union

from ..models import EncryptedKeys
from ..utils import b64e, b64d, json_to_base64, base64_to_json
from .primitives import (
    NONCE_SIZE,
    KeyPair,
    aead_decrypt,
    aead_encrypt,
    derive_address,
    generate_data_key,
    public_key_from_private,
    seal,
    unseal,
)
from .wallet import Wallet

logger = logging.getLogger("navigator.vault")


@dataclass
class EncryptOptions:
    prefix_ciphertext_with_iv: bool = False
    encode: bool = False


@dataclass
class EncryptedData:
    ciphertext: bytes
    iv: Optional[bytes] = None


@dataclass
class EncryptedPayload:
    encrypted_key: str
    encrypted_data: EncryptedData
    public_key: Optional[str] = None
    public_address: Optional[str] = None

    def to_dict(self) -> dict:
        data = {
            "encryptedKey": self.encrypted_key,
            "encryptedData": {"ciphertext": b64e(self.encrypted_data.ciphertext)},
        }
        if self.encrypted_data.iv is not None:
            data["encryptedData"]["iv"] = b64e(self.encrypted_data.iv)
        if self.public_key:
            data["publicKey"] = self.public_key
        if self.public_address:
            data["publicAddress"] = self.public_address
        return data

    @classmethod
    def from_dict(cls, data: dict) -> "EncryptedPayload":
        encrypted = data["encryptedData"]
        iv = encrypted.get("iv")
        return cls(
            encrypted_key=data["encryptedKey"],
            encrypted_data=EncryptedData(
                ciphertext=b64d(encrypted["ciphertext"]),
                iv=b64d(iv) if iv else None,
            ),
            public_key=data.get("publicKey"),
            public_address=data.get("publicAddress"),
        )


class Encrypter:
    """Wraps, unwraps, encrypts and decrypts for a set of key-epochs."""

    def __init__(
        self,
        wallet: Wallet,
        keys: Optional[list[EncryptedKeys]] = None,
        public_key: Optional[bytes] = None,
    ):
        self.wallet = wallet
        self.keys: list[EncryptedKeys] = []
        self._decrypted: Optional[list[KeyPair]] = None
        self.public_key = public_key
        self.set_keys(keys)

    def set_keys(self, keys: Optional[list[EncryptedKeys]]) -> None:
        self.keys = list(keys or [])
        self._decrypted = None

    def set_raw_public_key(self, public_key: bytes) -> None:
        self.public_key = public_key

    def set_decrypted_keys(self, key_pairs: list[KeyPair]) -> None:
        """Use already unwrapped key-epochs (e.g. a freshly generated vault key)."""
        self._decrypted = list(key_pairs)

    # ------------------------------------------------------------------
    # Key wrapping
    # ------------------------------------------------------------------

    def wrap(self, private_key: bytes, recipient_public_key: bytes) -> str:
        return seal(private_key, recipient_public_key)

    def unwrap(self, record: EncryptedKeys) -> KeyPair:
        """Unwrap one key-epoch with the wallet."""
        private_key = self.wallet.decrypt(record.enc_private_key)
        return KeyPair(
            public_key=public_key_from_private(private_key),
            private_key=private_key,
        )

    @property
    def decrypted_keys(self) -> list[KeyPair]:
        if self._decrypted is None:
            self._decrypted = [self.unwrap(record) for record in self.keys]
            logger.debug("Unwrapped %d key epoch(s)", len(self._decrypted))
        return self._decrypted

    def encrypt_member_keys(self) -> list[EncryptedKeys]:
        """Wrap every known key-epoch for the current public key (the recipient)."""
        return [self.encrypt_member_key(key_pair) for key_pair in self.decrypted_keys]

    def encrypt_member_key(self, key_pair: KeyPair) -> EncryptedKeys:
        if self.public_key is None:
            raise ValueError("Recipient public key is not set")
        return EncryptedKeys(
            enc_private_key=self.wrap(key_pair.private_key, self.public_key),
            public_key=b64e(key_pair.public_key),
        )

    # ------------------------------------------------------------------
    # Payload encryption
    # ------------------------------------------------------------------

    def encrypt_raw(
        self,
        data: Union[bytes, str],
        options: Optional[EncryptOptions] = None
    ) -> Union[EncryptedPayload, str]:
        """Encrypt data for the current epoch public key.

        Args:
            data: Plaintext bytes (str is utf-8 encoded).
            options: IV placement and output encoding.

        Returns:
            EncryptedPayload, or its base64 string form when ``options.encode``.
        """
        options = options or EncryptOptions()
        if self.public_key is None:
            raise ValueError("Encryption public key is not set")
        if isinstance(data, str):
            data = data.encode("utf-8")
        data_key = generate_data_key()
        iv, ciphertext = aead_encrypt(data_key, data)
        if options.prefix_ciphertext_with_iv:
            encrypted_data = EncryptedData(ciphertext=iv + ciphertext)
        else:
            encrypted_data = EncryptedData(ciphertext=ciphertext, iv=iv)
        payload = EncryptedPayload(
            encrypted_key=seal(data_key, self.public_key),
            encrypted_data=encrypted_data,
            public_key=b64e(self.public_key),
        )
        if options.encode:
            return json_to_base64(payload.to_dict())
        return payload

    def decrypt_raw(self, payload: Union[EncryptedPayload, str]) -> bytes:
        """Decrypt a payload with the matching key-epoch.

        The epoch is selected by the payload's public address when present;
        otherwise every known epoch is tried, newest first.
        """
        if isinstance(payload, str):
            payload = EncryptedPayload.from_dict(base64_to_json(payload))
        data_key = self._open_data_key(payload)
        encrypted = payload.encrypted_data
        if encrypted.iv is None:
            iv = encrypted.ciphertext[:NONCE_SIZE]
            ciphertext = encrypted.ciphertext[NONCE_SIZE:]
        else:
            iv, ciphertext = encrypted.iv, encrypted.ciphertext
        return aead_decrypt(data_key, iv, ciphertext)

    def _open_data_key(self, payload: EncryptedPayload) -> bytes:
        candidates = list(reversed(self.decrypted_keys))
        if payload.public_address:
            candidates = [
                kp for kp in candidates
                if derive_address(kp.public_key) == payload.public_address
            ]
        elif payload.public_key:
            public_key = b64d(payload.public_key)
            candidates = [kp for kp in candidates if kp.public_key == public_key]
        if not candidates:
            raise KeyError("No key epoch matches the encrypted payload")
        error: Optional[Exception] = None
        for key_pair in candidates:
            try:
                return unseal(payload.encrypted_key, key_pair.private_key)
            except Exception as err:
                error = err
        raise error
