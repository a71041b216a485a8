"""
Unit tests for shielded_pool.core.note — commitments, nullifiers and encrypted openings.
"""

import pytest

from shielded_pool.core.note import Note
from shielded_pool.crypto.field import (
    DOMAIN_COMMITMENT,
    DOMAIN_NULLIFIER,
    FIELD_SIZE,
    MAX_AMOUNT,
    field_hash,
)
from shielded_pool.crypto.keypair import Keypair
from shielded_pool.errors import IncompleteNote


class TestCommitment:

    def test_commitment_formula(self):
        kp = Keypair(11)
        note = Note(amount=500, keypair=kp, blinding=99)
        assert note.commitment() == field_hash(DOMAIN_COMMITMENT, 500, kp.public_key, 99)

    def test_commitment_deterministic(self):
        kp = Keypair(11)
        assert Note(5, kp, blinding=1).commitment() == Note(5, kp, blinding=1).commitment()

    def test_blinding_hides_amount(self):
        kp = Keypair(11)
        assert Note(5, kp, blinding=1).commitment() != Note(5, kp, blinding=2).commitment()

    def test_default_blinding_random(self):
        kp = Keypair()
        assert Note(5, kp).commitment() != Note(5, kp).commitment()

    def test_negative_amount_rejected(self):
        with pytest.raises(ValueError, match="non-negative"):
            Note(amount=-1)

    def test_non_integer_amount_rejected(self):
        with pytest.raises(ValueError, match="integer"):
            Note(amount=True)
        with pytest.raises(ValueError, match="integer"):
            Note(amount=1.5)

    def test_amount_outside_field(self):
        with pytest.raises(ValueError):
            Note(amount=FIELD_SIZE).commitment()


class TestNullifier:

    def test_nullifier_formula(self):
        kp = Keypair(11)
        note = Note(amount=500, keypair=kp, blinding=99, index=4)
        commitment = note.commitment()
        nk = kp.derive_nullifying_key(commitment, 4)
        assert note.nullifier() == field_hash(DOMAIN_NULLIFIER, commitment, 4, nk)

    def test_requires_index(self):
        with pytest.raises(IncompleteNote, match="leaf index"):
            Note(amount=5).nullifier()

    def test_requires_private_key(self):
        recipient = Keypair.from_address(Keypair().address())
        with pytest.raises(IncompleteNote, match="private key"):
            Note(amount=5, keypair=recipient, index=0).nullifier()

    def test_index_changes_nullifier(self):
        kp = Keypair(3)
        a = Note(5, kp, blinding=8, index=0)
        b = Note(5, kp, blinding=8, index=2)
        assert a.commitment() == b.commitment()
        assert a.nullifier() != b.nullifier()

    def test_negative_index_rejected(self):
        with pytest.raises(ValueError, match="index"):
            Note(amount=1, index=-1)


class TestEncryptedOpening:

    def test_round_trip(self):
        kp = Keypair()
        note = Note(amount=80_000, keypair=kp)
        recovered = Note.decrypt(kp, note.encrypt(), index=6)
        assert recovered.amount == 80_000
        assert recovered.blinding == note.blinding
        assert recovered.index == 6
        assert recovered.commitment() == note.commitment()

    def test_encrypt_to_public_only_owner(self):
        owner = Keypair()
        note = Note(amount=3, keypair=Keypair.from_address(owner.address()))
        assert Note.decrypt(owner, note.encrypt(), index=0).commitment() == note.commitment()

    def test_wrong_keypair(self):
        note = Note(amount=3)
        with pytest.raises(ValueError):
            Note.decrypt(Keypair(), note.encrypt(), index=0)

    def test_amount_over_range_not_encryptable(self):
        with pytest.raises(ValueError, match="248-bit"):
            Note(amount=MAX_AMOUNT).encrypt()
