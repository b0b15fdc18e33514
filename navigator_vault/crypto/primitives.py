"""
Vault Crypto Core — Key derivation, key pairs, sealing and AEAD.

Implements the primitives used by the encryption context:
- Key epochs: X25519 key pairs
- Sealing (key wrapping): ephemeral X25519 → HKDF("vault-wrap") → AES-GCM
- Payload encryption: random 256-bit data key → AES-GCM

Security Note:
    Never log plaintext, ciphertext or key material.
    Nonces are random 96-bit; collision probability negligible under normal usage.
"""
import os
import hashlib
from dataclasses import dataclass

from cryptography.hazmat.primitives.kdf.hkdf import HKDF
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.asymmetric.x25519 import (
    X25519PrivateKey,
    X25519PublicKey,
)
from cryptography.hazmat.primitives.ciphers.aead import AESGCM

from ..utils import b64e, b64d, b64url, json_to_base64, base64_to_json

NONCE_SIZE = 12  # 96-bit nonce
KEY_LENGTH = 32  # AES-256
TAG_SIZE = 16  # GCM tag

WRAP_CONTEXT = "vault-wrap"


@dataclass(frozen=True)
class KeyPair:
    """One key-epoch: raw X25519 public and private key bytes."""
    public_key: bytes
    private_key: bytes

    def __repr__(self) -> str:
        return f"<KeyPair address={derive_address(self.public_key)}>"


# ---------------------------------------------------------------------------
# Key derivation
# ---------------------------------------------------------------------------

def derive_key(seed: bytes, context: str) -> bytes:
    """Derive a 32-byte encryption key using HKDF-SHA256.

    Args:
        seed: Input key material (an X25519 shared secret).
        context: Context string for domain separation (e.g. "vault-wrap").

    Returns:
        32-byte derived key.
    """
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=KEY_LENGTH,
        salt=None,
        info=context.encode("utf-8"),
    )
    return hkdf.derive(seed)


def generate_key_pair() -> KeyPair:
    """Generate a fresh X25519 key pair (a new key-epoch)."""
    sk = X25519PrivateKey.generate()
    return KeyPair(
        public_key=sk.public_key().public_bytes_raw(),
        private_key=sk.private_bytes_raw(),
    )


def public_key_from_private(private_key: bytes) -> bytes:
    return X25519PrivateKey.from_private_bytes(private_key).public_key().public_bytes_raw()


def derive_address(public_key: bytes) -> str:
    """Address of a public key: unpadded base64url of its SHA-256."""
    return b64url(hashlib.sha256(public_key).digest())


# ---------------------------------------------------------------------------
# Symmetric layer
# ---------------------------------------------------------------------------

def generate_data_key() -> bytes:
    return AESGCM.generate_key(bit_length=KEY_LENGTH * 8)


def aead_encrypt(key: bytes, plaintext: bytes) -> tuple[bytes, bytes]:
    """Encrypt with AES-GCM.

    Returns:
        Tuple of (nonce, ciphertext+tag).
    """
    nonce = os.urandom(NONCE_SIZE)
    return nonce, AESGCM(key).encrypt(nonce, plaintext, None)


def aead_decrypt(key: bytes, nonce: bytes, ciphertext: bytes) -> bytes:
    if len(ciphertext) < TAG_SIZE:
        raise ValueError(
            f"ciphertext too short: {len(ciphertext)} bytes (minimum {TAG_SIZE})"
        )
    return AESGCM(key).decrypt(nonce, ciphertext, None)


# ---------------------------------------------------------------------------
# Sealing (asymmetric key wrapping)
# ---------------------------------------------------------------------------

def seal(plaintext: bytes, recipient_public_key: bytes) -> str:
    """Encrypt ``plaintext`` so only the owner of ``recipient_public_key`` can read it.

    Format: base64(json{ephemeralPublicKey, nonce, ciphertext})

    Args:
        plaintext: Data to wrap (usually a private key or a data key).
        recipient_public_key: Raw 32-byte X25519 public key.

    Returns:
        Sealed envelope string.
    """
    ephemeral = X25519PrivateKey.generate()
    shared = ephemeral.exchange(X25519PublicKey.from_public_bytes(recipient_public_key))
    nonce, ct = aead_encrypt(derive_key(shared, WRAP_CONTEXT), plaintext)
    return json_to_base64({
        "ephemeralPublicKey": b64e(ephemeral.public_key().public_bytes_raw()),
        "nonce": b64e(nonce),
        "ciphertext": b64e(ct),
    })


def unseal(sealed: str, private_key: bytes) -> bytes:
    """Open an envelope produced by :func:`seal`.

    Raises:
        cryptography.exceptions.InvalidTag: If the envelope was sealed for another key.
        ValueError: If the envelope is malformed.
    """
    envelope = base64_to_json(sealed)
    ephemeral_pub = X25519PublicKey.from_public_bytes(b64d(envelope["ephemeralPublicKey"]))
    shared = X25519PrivateKey.from_private_bytes(private_key).exchange(ephemeral_pub)
    return aead_decrypt(
        derive_key(shared, WRAP_CONTEXT),
        b64d(envelope["nonce"]),
        b64d(envelope["ciphertext"]),
    )
