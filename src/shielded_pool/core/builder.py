"""
Transaction builder: turns notes into a proven Transaction.

    builder = TransactionBuilder(pool, prover)
    tx = builder.prepare_transaction(inputs=[note], outputs=[change], recipient="0xdead...")
    pool.transact(tx)

The builder reads the pool's commitment list, rebuilds the client-side
Merkle tree, computes nullifiers and commitments, pads to the smallest
circuit variant and asks the prover for a proof. Nothing it does touches
pool state.
"""

from __future__ import annotations

import logging
from typing import Protocol, Sequence

from shielded_pool.core.merkle import MerkleTree
from shielded_pool.core.models import ExtData, PoolStatus, Transaction, calculate_public_amount
from shielded_pool.core.note import Note
from shielded_pool.crypto.field import MAX_AMOUNT
from shielded_pool.crypto.keypair import Keypair
from shielded_pool.errors import BuilderError, ProverError, UnspendableNote, UnsupportedShape
from shielded_pool.zk.circuits import (
    CircuitVariant,
    InputWitness,
    OutputWitness,
    PublicSignals,
    TransactionWitness,
    select_variant,
)
from shielded_pool.zk.verifier import Prover

logger = logging.getLogger("shielded_pool.builder")


class PoolView(Protocol):
    """What the builder and wallet need to read from a pool, local or remote."""

    def current_root(self) -> int:
        ...

    def commitments(self) -> list[int]:
        ...

    def status(self) -> PoolStatus:
        ...


class TransactionBuilder:
    """
    Builds proven transactions against a pool view.

    Args:
        pool: A ShieldedPool or RemotePool.
        prover: Proof backend used to prove the witness.
    """

    def __init__(self, pool: PoolView, prover: Prover) -> None:
        self.pool = pool
        self.prover = prover

    def load_tree(self) -> MerkleTree:
        """
        Rebuild the client-side tree from the pool's commitment list.

        Raises:
            BuilderError: If the rebuilt root does not match the pool's current root.
        """
        height = self.pool.status().tree_height
        tree = MerkleTree(height, self.pool.commitments())
        root = self.pool.current_root()
        if tree.root != root:
            raise BuilderError(
                f"Commitment list does not reproduce the pool root (0x{tree.root:064x} != 0x{root:064x})"
            )
        return tree

    def prepare_transaction(
        self,
        inputs: Sequence[Note] = (),
        outputs: Sequence[Note] = (),
        fee: int = 0,
        recipient: str | None = None,
        relayer: str | None = None,
        is_l1_withdrawal: bool = False,
        l1_fee: int = 0,
        amount: int | None = None,
    ) -> Transaction:
        """
        Build and prove a transaction spending `inputs` into `outputs`.

        Args:
            inputs: Notes to spend; each needs its leaf index and a spending keypair.
            outputs: Notes to create (at most 2).
            fee: Relayer fee paid from the pool.
            recipient: Withdrawal recipient.
            relayer: Account receiving `fee`.
            is_l1_withdrawal: Release the withdrawal through the bridge.
            l1_fee: Fee forwarded with a bridge release.
            amount: Expected external amount. If given, it must match the notes.

        Returns:
            The proven Transaction. ext_amount = sum(outputs) + fee - sum(inputs):
            positive for deposits, negative for withdrawals.

        Raises:
            UnsupportedShape: More than 16 inputs or more than 2 outputs.
            UnspendableNote: An input is not in the tree at its claimed index.
            IncompleteNote: An input has no spending key.
            ProverError: The amounts or witness are inconsistent.
        """
        variant = select_variant(len(inputs))
        if variant is None:
            raise UnsupportedShape(
                f"{len(inputs)} inputs exceed the largest circuit "
                f"({CircuitVariant.SIXTEEN_INPUT.n_inputs}); split the spend"
            )
        if len(outputs) > variant.n_outputs:
            raise UnsupportedShape(f"At most {variant.n_outputs} outputs are supported, got {len(outputs)}")

        for note in [*inputs, *outputs]:
            if note.amount >= MAX_AMOUNT:
                raise ProverError(f"Note amount {note.amount} exceeds the 248-bit range")

        ext_amount = sum(n.amount for n in outputs) + fee - sum(n.amount for n in inputs)
        if amount is not None and amount != ext_amount:
            raise ProverError(f"Notes imply an external amount of {ext_amount}, expected {amount}")
        if ext_amount < 0 and not recipient:
            raise BuilderError("A withdrawal needs a recipient")

        tree = self.load_tree()
        real_inputs = list(inputs)
        for note in real_inputs:
            if note.index is None:
                raise UnspendableNote("Input note has no leaf index; it was never accumulated")
            if note.index >= len(tree) or tree.leaves[note.index] != note.commitment():
                raise UnspendableNote(f"Input note is not in the pool at index {note.index}")

        padded_inputs = real_inputs + [
            Note(amount=0, keypair=Keypair(), index=0)
            for _ in range(variant.n_inputs - len(real_inputs))
        ]
        padded_outputs = list(outputs) + [Note(amount=0) for _ in range(variant.n_outputs - len(outputs))]

        ext_data = ExtData(
            recipient=recipient,
            ext_amount=ext_amount,
            relayer=relayer,
            fee=fee,
            encrypted_output1=padded_outputs[0].encrypt(),
            encrypted_output2=padded_outputs[1].encrypt(),
            is_l1_withdrawal=is_l1_withdrawal,
            l1_fee=l1_fee,
        )

        signals = PublicSignals(
            variant=variant,
            root=tree.root,
            public_amount=calculate_public_amount(ext_amount, fee),
            ext_data_hash=ext_data.ext_data_hash(),
            input_nullifiers=tuple(n.nullifier() for n in padded_inputs),
            output_commitments=tuple(n.commitment() for n in padded_outputs),
        )
        witness = TransactionWitness(
            signals=signals,
            inputs=tuple(self._input_witness(tree, n, real=i < len(real_inputs)) for i, n in enumerate(padded_inputs)),
            outputs=tuple(
                OutputWitness(amount=n.amount, public_key=n.keypair.public_key, blinding=n.blinding)
                for n in padded_outputs
            ),
        )

        proof = self.prover.prove(witness)
        logger.debug(f"Proved {variant.value} transaction with ext_amount={ext_amount}")

        return Transaction(
            variant=variant,
            proof=proof,
            root=signals.root,
            public_amount=signals.public_amount,
            ext_data_hash=signals.ext_data_hash,
            input_nullifiers=list(signals.input_nullifiers),
            output_commitments=list(signals.output_commitments),
            ext_data=ext_data,
        )

    @staticmethod
    def _input_witness(tree: MerkleTree, note: Note, real: bool) -> InputWitness:
        if real:
            path_elements = tree.path(note.index).path_elements
        else:
            path_elements = tree.zeros[:tree.height]
        return InputWitness(
            amount=note.amount,
            private_key=note.keypair.private_key,
            blinding=note.blinding,
            path_index=note.index,
            path_elements=tuple(path_elements),
        )
