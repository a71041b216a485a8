"""
Unit tests for shielded_pool.crypto.keypair — ownership keys, addresses and note encryption.
"""

import pytest

from shielded_pool.crypto.field import DOMAIN_PUBKEY, DOMAIN_SIGNATURE, field_hash
from shielded_pool.crypto.keypair import (
    ADDRESS_HEX_LENGTH,
    Keypair,
    decode_point,
    derive_nullifying_key,
    encode_point,
    generate_keypair,
)

# ==============================================================================
# Key derivation
# ==============================================================================


class TestKeypair:

    def test_public_key_derived_from_private(self):
        kp = Keypair(12345)
        assert kp.public_key == field_hash(DOMAIN_PUBKEY, 12345)

    def test_deterministic(self):
        assert Keypair(42) == Keypair(42)
        assert Keypair(42).encryption_key == Keypair(42).encryption_key

    def test_generate_is_random(self):
        assert generate_keypair() != generate_keypair()

    def test_zero_private_key_rejected(self):
        with pytest.raises(ValueError, match="non-zero"):
            Keypair(0)

    def test_nullifying_key(self):
        kp = Keypair(7)
        assert kp.derive_nullifying_key(100, 3) == field_hash(DOMAIN_SIGNATURE, 7, 100, 3)
        assert derive_nullifying_key(kp, 100, 3) == kp.derive_nullifying_key(100, 3)

    def test_nullifying_key_binds_index(self):
        kp = Keypair(7)
        assert kp.derive_nullifying_key(100, 3) != kp.derive_nullifying_key(100, 4)


# ==============================================================================
# Addresses
# ==============================================================================


class TestAddress:

    def test_address_format(self):
        address = Keypair().address()
        assert address.startswith("0x")
        assert len(address) == 2 + ADDRESS_HEX_LENGTH

    def test_from_address_is_public_only(self):
        kp = Keypair()
        recipient = Keypair.from_address(kp.address())
        assert recipient == kp
        assert recipient.can_spend is False
        assert recipient.private_key is None

    def test_public_only_cannot_derive_nullifying_key(self):
        recipient = Keypair.from_address(Keypair().address())
        with pytest.raises(ValueError, match="private key"):
            recipient.derive_nullifying_key(1, 0)

    def test_from_address_wrong_length(self):
        with pytest.raises(ValueError, match="expected"):
            Keypair.from_address("0x1234")

    def test_from_address_not_hex(self):
        with pytest.raises(ValueError, match="not valid hex"):
            Keypair.from_address("zz" * (ADDRESS_HEX_LENGTH // 2))

    def test_from_address_bad_point(self):
        address = Keypair().address()
        bad = address[:2 + 64] + "04" + address[2 + 64 + 2:]
        with pytest.raises(ValueError, match="prefix"):
            Keypair.from_address(bad)


# ==============================================================================
# Encryption
# ==============================================================================


class TestEncryption:

    def test_point_round_trip(self):
        kp = Keypair()
        assert encode_point(decode_point(kp.encryption_key)) == kp.encryption_key

    def test_round_trip(self):
        kp = Keypair()
        ciphertext = kp.encrypt(b"note opening")
        assert kp.decrypt(ciphertext) == b"note opening"

    def test_encrypt_to_address(self):
        owner = Keypair()
        recipient = Keypair.from_address(owner.address())
        assert owner.decrypt(recipient.encrypt(b"hello")) == b"hello"

    def test_fresh_ephemeral_per_message(self):
        kp = Keypair()
        assert kp.encrypt(b"same") != kp.encrypt(b"same")

    def test_other_keypair_cannot_decrypt(self):
        ciphertext = Keypair().encrypt(b"secret")
        with pytest.raises(ValueError, match="not encrypted to this keypair"):
            Keypair().decrypt(ciphertext)

    def test_tampered_ciphertext(self):
        kp = Keypair()
        ciphertext = bytearray(kp.encrypt(b"secret"))
        ciphertext[-1] ^= 0x01
        with pytest.raises(ValueError):
            kp.decrypt(bytes(ciphertext))

    def test_public_only_cannot_decrypt(self):
        kp = Keypair()
        recipient = Keypair.from_address(kp.address())
        with pytest.raises(ValueError, match="private key"):
            recipient.decrypt(kp.encrypt(b"x"))

    def test_short_ciphertext(self):
        with pytest.raises(ValueError, match="too short"):
            Keypair().decrypt(b"\x02" * 20)
