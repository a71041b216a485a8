"""
Shielded notes (UTXOs).

A Note is a value record owned by a keypair:

    commitment = H_commitment(amount, owner.public_key, blinding)
    nullifier  = H_nullifier(commitment, index, owner.derive_nullifying_key(commitment, index))

The commitment is published when the note is created. The nullifier is
published when the note is spent; it is defined only once the note has a
leaf index in the accumulator, so a note cannot be spent before it exists.
"""

from __future__ import annotations

from shielded_pool.errors import IncompleteNote
from shielded_pool.crypto.field import (
    DOMAIN_COMMITMENT,
    DOMAIN_NULLIFIER,
    MAX_AMOUNT,
    field_hash,
    random_field_element,
    require_field_element,
)
from shielded_pool.crypto.keypair import Keypair

# Encrypted openings hold amount and blinding as 31-byte big-endian integers
_OPENING_FIELD_SIZE = 31


class Note:
    """
    A spendable value record.

    Args:
        amount: Non-negative integer amount in base units.
        keypair: Owner. Defaults to a fresh random keypair.
        blinding: Hiding randomness. Defaults to 31 bytes from the OS CSPRNG.
        index: Leaf index, assigned once the commitment is accumulated.
    """

    def __init__(
        self,
        amount: int = 0,
        keypair: Keypair | None = None,
        blinding: int | None = None,
        index: int | None = None,
    ) -> None:
        if not isinstance(amount, int) or isinstance(amount, bool):
            raise ValueError(f"amount must be an integer, got {type(amount)}")
        if amount < 0:
            raise ValueError(f"amount must be non-negative, got {amount}")
        if index is not None and index < 0:
            raise ValueError(f"index must be non-negative, got {index}")

        self.amount = amount
        self.keypair = keypair or Keypair()
        self.blinding = random_field_element() if blinding is None else require_field_element(blinding, "blinding")
        self.index = index
        self._commitment: int | None = None

    def commitment(self) -> int:
        """Deterministic hiding commitment to (amount, owner, blinding)."""
        if self._commitment is None:
            self._commitment = field_hash(
                DOMAIN_COMMITMENT,
                self.amount,
                self.keypair.public_key,
                self.blinding,
            )
        return self._commitment

    def nullifier(self) -> int:
        """
        The value published when this note is spent.

        Raises:
            IncompleteNote: If the leaf index is unset or the owner's private key is unknown.
        """
        if self.index is None:
            raise IncompleteNote("Note has no leaf index; it has not been accumulated yet")
        if not self.keypair.can_spend:
            raise IncompleteNote("Note owner has no private key; nullifier cannot be derived")
        commitment = self.commitment()
        nullifying_key = self.keypair.derive_nullifying_key(commitment, self.index)
        return field_hash(DOMAIN_NULLIFIER, commitment, self.index, nullifying_key)

    # ------------------------------------------------------------------
    # Encrypted openings
    # ------------------------------------------------------------------

    def encrypt(self) -> bytes:
        """Encrypt (amount, blinding) to the owner so they can discover the note."""
        if self.amount >= MAX_AMOUNT:
            raise ValueError("amount exceeds the 248-bit note range")
        opening = (
            self.amount.to_bytes(_OPENING_FIELD_SIZE, "big")
            + self.blinding.to_bytes(_OPENING_FIELD_SIZE, "big")
        )
        return self.keypair.encrypt(opening)

    @classmethod
    def decrypt(cls, keypair: Keypair, data: bytes, index: int) -> Note:
        """
        Recover a note from an encrypted opening published with its commitment.

        Raises:
            ValueError: If the data was not encrypted to `keypair`.
        """
        opening = keypair.decrypt(data)
        if len(opening) != 2 * _OPENING_FIELD_SIZE:
            raise ValueError(f"Unexpected opening length {len(opening)}")
        amount = int.from_bytes(opening[:_OPENING_FIELD_SIZE], "big")
        blinding = int.from_bytes(opening[_OPENING_FIELD_SIZE:], "big")
        return cls(amount=amount, keypair=keypair, blinding=blinding, index=index)

    def __repr__(self) -> str:
        return f"Note(amount={self.amount}, index={self.index}, commitment=0x{self.commitment():064x})"
