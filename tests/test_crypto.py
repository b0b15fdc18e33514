"""
Tests for the crypto layer: sealing, key-epochs, wallet and Encrypter.
"""
import pytest
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives.asymmetric.ed25519 import Ed25519PublicKey

from navigator_vault.crypto import (
    Encrypter,
    EncryptOptions,
    EncryptedPayload,
    Wallet,
    derive_address,
    generate_key_pair,
)
from navigator_vault.crypto.primitives import (
    NONCE_SIZE,
    aead_decrypt,
    aead_encrypt,
    generate_data_key,
    public_key_from_private,
    seal,
    unseal,
)
from navigator_vault.utils import b64d, base64_to_json


@pytest.fixture
def wallet():
    return Wallet()


@pytest.fixture
def epoch():
    return generate_key_pair()


def owner_encrypter(wallet, *key_pairs):
    """Encrypter holding ``key_pairs`` wrapped for ``wallet``; the last one is current."""
    wrapper = Encrypter(wallet, public_key=wallet.public_key_raw())
    records = [wrapper.encrypt_member_key(kp) for kp in key_pairs]
    return Encrypter(wallet, records, key_pairs[-1].public_key)


class TestPrimitives:
    """Key pairs, addresses and sealing."""

    def test_key_pair_is_consistent(self, epoch):
        """The public key matches the private key."""
        assert len(epoch.public_key) == 32
        assert public_key_from_private(epoch.private_key) == epoch.public_key

    def test_address_is_unpadded_base64url(self, epoch):
        """Addresses are unpadded base64url digests."""
        address = derive_address(epoch.public_key)
        assert len(address) == 43
        assert "=" not in address
        assert "+" not in address and "/" not in address
        assert derive_address(epoch.public_key) == address

    def test_seal_roundtrip(self, epoch):
        """A sealed box opens with the recipient key."""
        sealed = seal(b"secret key", epoch.public_key)
        assert unseal(sealed, epoch.private_key) == b"secret key"

    def test_unseal_with_other_key_fails(self, epoch):
        """A sealed box does not open with another key."""
        sealed = seal(b"secret key", epoch.public_key)
        with pytest.raises(InvalidTag):
            unseal(sealed, generate_key_pair().private_key)

    def test_aead_tampering_detected(self):
        """Modified ciphertext fails authentication."""
        key = generate_data_key()
        nonce, ct = aead_encrypt(key, b"payload")
        tampered = bytes([ct[0] ^ 1]) + ct[1:]
        with pytest.raises(InvalidTag):
            aead_decrypt(key, nonce, tampered)

    def test_aead_short_ciphertext_rejected(self):
        """Truncated ciphertext is rejected."""
        with pytest.raises(ValueError):
            aead_decrypt(generate_data_key(), b"\x00" * NONCE_SIZE, b"short")


class TestWallet:
    """Wallet identities."""

    def test_encrypt_for_self(self, wallet):
        """The wallet decrypts what it encrypted for itself."""
        assert wallet.decrypt(wallet.encrypt(b"name")) == b"name"

    def test_encrypt_for_other(self, wallet):
        """Data encrypted for another wallet opens only there."""
        other = Wallet()
        sealed = wallet.encrypt(b"hello", other.public_key_raw())
        assert other.decrypt(sealed) == b"hello"
        with pytest.raises(InvalidTag):
            wallet.decrypt(sealed)

    async def test_sign_verifies(self, wallet):
        """Signatures verify with the signing public key."""
        signature = await wallet.sign("message")
        Ed25519PublicKey.from_public_bytes(wallet.signing_public_key_raw()).verify(
            b64d(signature), b"message"
        )

    async def test_from_raw_restores_identity(self, wallet):
        """Raw keys restore the same identity."""
        restored = Wallet.from_raw(
            wallet._encryption_key.private_bytes_raw(),
            wallet.signing_private_key_raw(),
        )
        assert await restored.get_address() == await wallet.get_address()
        assert restored.public_key() == wallet.public_key()


class TestEncrypter:
    """Key wrapping and payload encryption across key-epochs."""

    def test_unwrap_returns_epoch(self, wallet, epoch):
        """Unwrapping returns the wrapped key-epoch."""
        encrypter = owner_encrypter(wallet, epoch)
        assert encrypter.decrypted_keys == [epoch]

    def test_member_keys_wrapped_for_recipient(self, wallet, epoch):
        """Member keys open with the recipient wallet."""
        recipient = Wallet()
        encrypter = Encrypter(wallet, public_key=recipient.public_key_raw())
        encrypter.set_decrypted_keys([epoch])
        records = encrypter.encrypt_member_keys()
        assert len(records) == 1
        assert Encrypter(recipient).unwrap(records[0]) == epoch

    def test_encrypt_member_key_requires_recipient(self, wallet, epoch):
        """Wrapping needs a recipient public key."""
        with pytest.raises(ValueError):
            Encrypter(wallet).encrypt_member_key(epoch)

    def test_encoded_roundtrip(self, wallet, epoch):
        """Encoded payloads decrypt back to the input."""
        encrypter = owner_encrypter(wallet, epoch)
        encoded = encrypter.encrypt_raw("hello", EncryptOptions(encode=True))
        assert isinstance(encoded, str)
        envelope = base64_to_json(encoded)
        assert set(envelope) == {"encryptedKey", "encryptedData", "publicKey"}
        assert encrypter.decrypt_raw(encoded) == b"hello"

    def test_prefixed_iv_roundtrip(self, wallet, epoch):
        """IV-prefixed ciphertext decrypts back to the input."""
        encrypter = owner_encrypter(wallet, epoch)
        payload = encrypter.encrypt_raw(b"\x00\x01binary", EncryptOptions(prefix_ciphertext_with_iv=True))
        assert payload.encrypted_data.iv is None
        assert encrypter.decrypt_raw(payload) == b"\x00\x01binary"

    def test_payload_dict_roundtrip(self, wallet, epoch):
        """Payload objects decrypt back to the input."""
        encrypter = owner_encrypter(wallet, epoch)
        payload = encrypter.encrypt_raw(b"data")
        restored = EncryptedPayload.from_dict(payload.to_dict())
        assert encrypter.decrypt_raw(restored) == b"data"

    def test_older_epoch_still_readable(self, wallet):
        """Data from an older epoch stays readable."""
        old, new = generate_key_pair(), generate_key_pair()
        before = owner_encrypter(wallet, old).encrypt_raw(b"before")
        rotated = owner_encrypter(wallet, old, new)
        assert rotated.decrypt_raw(before) == b"before"
        after = rotated.encrypt_raw(b"after")
        assert rotated.decrypt_raw(after) == b"after"

    def test_epoch_selected_by_address(self, wallet):
        """The payload address picks the epoch."""
        old, new = generate_key_pair(), generate_key_pair()
        encrypter = owner_encrypter(wallet, old, new)
        payload = encrypter.encrypt_raw(b"data")
        payload.public_key = None
        payload.public_address = derive_address(new.public_key)
        assert encrypter.decrypt_raw(payload) == b"data"

    def test_unknown_epoch_address(self, wallet, epoch):
        """An unknown epoch address fails."""
        encrypter = owner_encrypter(wallet, epoch)
        payload = encrypter.encrypt_raw(b"data")
        payload.public_key = None
        payload.public_address = derive_address(generate_key_pair().public_key)
        with pytest.raises(KeyError):
            encrypter.decrypt_raw(payload)

    def test_wrong_wallet_cannot_unwrap(self, wallet, epoch):
        """Another wallet cannot unwrap the epoch."""
        records = owner_encrypter(wallet, epoch).keys
        intruder = Encrypter(Wallet(), records, epoch.public_key)
        with pytest.raises(InvalidTag):
            intruder.decrypted_keys
