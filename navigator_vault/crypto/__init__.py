"""Vault crypto — wallet identity, key-epochs and the encryption context.

Security Note (Threat Model):
    Unwrapped key-epochs live in process memory for the lifetime of the
    owning service. A memory dump of the process could expose them.
"""

from .primitives import KeyPair, generate_key_pair, derive_address
from .wallet import Wallet
from .encrypter import Encrypter, EncryptOptions, EncryptedPayload, EncryptedData

__all__ = [
    "KeyPair",
    "generate_key_pair",
    "derive_address",
    "Wallet",
    "Encrypter",
    "EncryptOptions",
    "EncryptedPayload",
    "EncryptedData",
]
