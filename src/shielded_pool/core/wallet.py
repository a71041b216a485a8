"""
Shielded wallet: finds and tracks the notes a keypair owns.

Every NewCommitment event carries the note opening encrypted to its owner.
The wallet trial-decrypts each one with its keypair, checks the opening
reproduces the commitment, and keeps the notes whose nullifier is unspent.
"""

from __future__ import annotations

import logging
from typing import Protocol

from shielded_pool.core.models import NewCommitment, format_units
from shielded_pool.core.note import Note
from shielded_pool.crypto.keypair import Keypair

logger = logging.getLogger("shielded_pool.wallet")


class ScannablePool(Protocol):
    def commitment_events(self) -> list[NewCommitment]:
        ...

    def is_spent(self, nullifier: int) -> bool:
        ...


class ShieldedWallet:
    """
    Note discovery and balance for one keypair.

    Usage:
        wallet = ShieldedWallet(keypair, pool)
        notes = wallet.scan()
        print(format_units(wallet.balance()))
    """

    def __init__(self, keypair: Keypair, pool: ScannablePool) -> None:
        if not keypair.can_spend:
            raise ValueError("A wallet needs a spending keypair")
        self.keypair = keypair
        self.pool = pool

    def scan(self) -> list[Note]:
        """
        Return every unspent, non-zero note owned by this keypair, in leaf order.
        """
        notes = []
        for event in self.pool.commitment_events():
            if not event.encrypted_output:
                continue
            try:
                note = Note.decrypt(self.keypair, event.encrypted_output, event.index)
            except ValueError:
                continue
            if note.commitment() != event.commitment:
                logger.warning(f"Opening at index {event.index} does not match its commitment")
                continue
            if note.amount == 0 or self.pool.is_spent(note.nullifier()):
                continue
            notes.append(note)
        logger.debug(f"Scan found {len(notes)} unspent notes")
        return notes

    def balance(self) -> int:
        return sum(note.amount for note in self.scan())

    def select_notes(self, amount: int, max_inputs: int = 16) -> list[Note]:
        """
        Pick unspent notes covering `amount`, largest first.

        Raises:
            ValueError: If the wallet cannot cover `amount` with at most `max_inputs` notes.
        """
        selected: list[Note] = []
        total = 0
        for note in sorted(self.scan(), key=lambda n: n.amount, reverse=True):
            if total >= amount:
                break
            selected.append(note)
            total += note.amount
        if total < amount or len(selected) > max_inputs:
            raise ValueError(
                f"Cannot cover {format_units(amount)} with {max_inputs} notes "
                f"(balance {format_units(self.balance())})"
            )
        return selected
