"""
Unit tests for shielded_pool.core.wallet — note discovery and selection.
"""

import pytest

from shielded_pool.core.builder import TransactionBuilder
from shielded_pool.core.config import PoolConfig
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.models import NewCommitment, parse_units
from shielded_pool.core.note import Note
from shielded_pool.core.pool import ShieldedPool
from shielded_pool.core.wallet import ShieldedWallet
from shielded_pool.crypto.keypair import Keypair
from shielded_pool.zk.simulated import SimulatedProofSystem
from shielded_pool.zk.verifier import VerifierAdapter


def _make_pool():
    config = PoolConfig()
    system = SimulatedProofSystem()
    ledger = TokenLedger(config.token)
    ledger.mint("alice", parse_units("10"))
    pool = ShieldedPool(config, VerifierAdapter(system), ledger).initialize()
    return pool, TransactionBuilder(pool, system)


def _deposit(pool, builder, amount, keypair):
    note = Note(amount, keypair)
    receipt = pool.transact(builder.prepare_transaction(outputs=[note]), sender="alice")
    note.index = receipt.leaf_indices[0]
    return note


class FakePool:
    def __init__(self, events, spent=()):
        self.events = events
        self.spent = set(spent)

    def commitment_events(self):
        return self.events

    def is_spent(self, nullifier):
        return nullifier in self.spent


class TestScan:

    def test_finds_own_notes(self):
        pool, builder = _make_pool()
        me, other = Keypair(), Keypair()
        mine = _deposit(pool, builder, parse_units("0.08"), me)
        _deposit(pool, builder, parse_units("0.5"), other)

        notes = ShieldedWallet(me, pool).scan()
        assert len(notes) == 1
        assert notes[0].commitment() == mine.commitment()
        assert notes[0].index == mine.index

    def test_padding_outputs_ignored(self):
        pool, builder = _make_pool()
        me = Keypair()
        _deposit(pool, builder, parse_units("0.08"), me)
        # the zero-amount padding output is owned by a random keypair, never by us
        assert len(ShieldedWallet(me, pool).scan()) == 1

    def test_spent_notes_dropped_and_change_found(self):
        pool, builder = _make_pool()
        me = Keypair()
        note = _deposit(pool, builder, parse_units("0.08"), me)
        change = Note(parse_units("0.03"), me)
        pool.transact(builder.prepare_transaction(inputs=[note], outputs=[change], recipient="bob"))

        wallet = ShieldedWallet(me, pool)
        notes = wallet.scan()
        assert [n.amount for n in notes] == [parse_units("0.03")]
        assert notes[0].index == 2
        assert wallet.balance() == parse_units("0.03")

    def test_received_transfer(self):
        pool, builder = _make_pool()
        sender, receiver = Keypair(), Keypair()
        note = _deposit(pool, builder, parse_units("0.5"), sender)
        pool.transact(builder.prepare_transaction(
            inputs=[note],
            outputs=[Note(parse_units("0.2"), Keypair.from_address(receiver.address())),
                     Note(parse_units("0.3"), sender)],
        ))
        assert ShieldedWallet(receiver, pool).balance() == parse_units("0.2")
        assert ShieldedWallet(sender, pool).balance() == parse_units("0.3")

    def test_mismatched_opening_skipped(self):
        me = Keypair()
        note = Note(5, me)
        pool = FakePool([NewCommitment(commitment=123, index=0, encrypted_output=note.encrypt())])
        assert ShieldedWallet(me, pool).scan() == []

    def test_empty_encrypted_output_skipped(self):
        pool = FakePool([NewCommitment(commitment=123, index=0)])
        assert ShieldedWallet(Keypair(), pool).scan() == []

    def test_public_only_keypair_rejected(self):
        pool, _ = _make_pool()
        with pytest.raises(ValueError, match="spending keypair"):
            ShieldedWallet(Keypair.from_address(Keypair().address()), pool)


class TestSelectNotes:

    def test_largest_first(self):
        pool, builder = _make_pool()
        me = Keypair()
        for amount in ("0.1", "0.5", "0.2"):
            _deposit(pool, builder, parse_units(amount), me)
        selected = ShieldedWallet(me, pool).select_notes(parse_units("0.6"))
        assert [n.amount for n in selected] == [parse_units("0.5"), parse_units("0.2")]

    def test_insufficient_balance(self):
        pool, builder = _make_pool()
        me = Keypair()
        _deposit(pool, builder, parse_units("0.1"), me)
        with pytest.raises(ValueError, match="Cannot cover"):
            ShieldedWallet(me, pool).select_notes(parse_units("0.2"))

    def test_too_many_notes(self):
        pool, builder = _make_pool()
        me = Keypair()
        for _ in range(3):
            _deposit(pool, builder, parse_units("0.1"), me)
        with pytest.raises(ValueError):
            ShieldedWallet(me, pool).select_notes(parse_units("0.3"), max_inputs=2)
