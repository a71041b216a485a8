"""
Shielded pool state machine.

ShieldedPool admits proven transactions against a single owned PoolState
(accumulator, nullifier set, limits, custody bookkeeping). Admission order:

    structural checks      MalformedSignals   (arity, ext data hash, public amount)
    1. known root          StaleRoot
    2. nullifier novelty   DoubleSpend
    3. amount bounds       AmountOutOfRange
    4. proof               InvalidProof

Checks 1-3 are cheap and run under the mutation lock. Proof verification
runs outside it, so many transactions can verify concurrently. Before any
mutation, checks 1-3 are repeated under the lock together with capacity
(AccumulatorFull) and liquidity (InsufficientPoolLiquidity); a rejected
transaction therefore never changes state, and two transactions sharing a
nullifier can never both be admitted.

Application order for an admitted transaction:
    pull deposit -> insert_pair -> add nullifiers -> emit events -> pay out
"""

from __future__ import annotations

import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from dataclasses import dataclass, field
from typing import TYPE_CHECKING, Sequence

from shielded_pool.core.config import PoolConfig, validate_limits
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.merkle import MerkleAccumulator
from shielded_pool.core.models import (
    NewCommitment,
    NewNullifier,
    PoolEvent,
    PoolSnapshot,
    PoolStatus,
    PublicKeyRegistered,
    Transaction,
    TransactionReceipt,
    TransactionStatus,
    calculate_public_amount,
)
from shielded_pool.core.nullifiers import NullifierSet
from shielded_pool.crypto.field import MAX_AMOUNT
from shielded_pool.crypto.keypair import Keypair
from shielded_pool.errors import (
    AccumulatorFull,
    AdmissionError,
    AmountOutOfRange,
    BridgeAmountMismatch,
    ConfigError,
    DoubleSpend,
    InsufficientPoolLiquidity,
    InvalidProof,
    MalformedSignals,
    ShieldedPoolError,
    StaleRoot,
)
from shielded_pool.zk.verifier import VerifierAdapter

if TYPE_CHECKING:
    from shielded_pool.bridge.adapter import BridgeAdapter

logger = logging.getLogger("shielded_pool.pool")

DEFAULT_BATCH_WORKERS = 4


@dataclass
class PoolState:
    """
    All mutable pool state, owned by exactly one ShieldedPool.

    Attributes:
        accumulator: Commitment accumulator with root history.
        nullifiers: Spent nullifiers.
        commitments: Every accumulated commitment with its encrypted opening, in leaf order.
        minimum_withdrawal_amount: Smallest accepted withdrawal (inclusive).
        maximum_deposit_amount: Largest accepted deposit (inclusive).
        last_balance: Custody backing accumulated notes. It moves only by the
                      net amount of each admitted transaction, so funds that
                      arrived without being admitted show up as
                      custody - last_balance.
        public_keys: Registered shielded addresses by account.
        events: Emitted events, oldest first.
    """
    accumulator: MerkleAccumulator
    nullifiers: NullifierSet
    minimum_withdrawal_amount: int
    maximum_deposit_amount: int
    commitments: list[NewCommitment] = field(default_factory=list)
    last_balance: int = 0
    public_keys: dict[str, str] = field(default_factory=dict)
    events: list[PoolEvent] = field(default_factory=list)

    def to_snapshot(self) -> PoolSnapshot:
        acc = self.accumulator.to_state()
        return PoolSnapshot(
            tree_height=acc["height"],
            root_history_size=acc["root_history_size"],
            next_index=acc["next_index"],
            filled_subtrees=acc["filled_subtrees"],
            root_history=acc["root_history"],
            nullifiers=self.nullifiers.to_state(),
            commitments=list(self.commitments),
            public_keys=dict(self.public_keys),
            minimum_withdrawal_amount=self.minimum_withdrawal_amount,
            maximum_deposit_amount=self.maximum_deposit_amount,
            last_balance=self.last_balance,
        )

    @classmethod
    def from_snapshot(cls, snapshot: PoolSnapshot) -> PoolState:
        accumulator = MerkleAccumulator.from_state({
            "height": snapshot.tree_height,
            "root_history_size": snapshot.root_history_size,
            "next_index": snapshot.next_index,
            "filled_subtrees": snapshot.filled_subtrees,
            "root_history": snapshot.root_history,
        })
        if len(snapshot.commitments) != accumulator.next_index:
            raise ValueError("Snapshot commitment list does not match the accumulator size")
        return cls(
            accumulator=accumulator,
            nullifiers=NullifierSet(snapshot.nullifiers),
            minimum_withdrawal_amount=snapshot.minimum_withdrawal_amount,
            maximum_deposit_amount=snapshot.maximum_deposit_amount,
            commitments=list(snapshot.commitments),
            last_balance=snapshot.last_balance,
            public_keys=dict(snapshot.public_keys),
        )


class ShieldedPool:
    """
    The pool: admits transactions and owns custody of the pooled asset.

    Args:
        config: Deployment configuration.
        verifier: Proof verifier adapter.
        ledger: Token ledger holding custody under `config.pool_address`.

    Usage:
        pool = ShieldedPool(PoolConfig(), VerifierAdapter(backend), ledger).initialize()
        receipt = pool.transact(tx, sender="alice")
    """

    def __init__(self, config: PoolConfig, verifier: VerifierAdapter, ledger: TokenLedger) -> None:
        config.validate()
        self.config = config
        self.verifier = verifier
        self.ledger = ledger
        self.bridge: BridgeAdapter | None = None
        self._state: PoolState | None = None
        self._lock = threading.RLock()

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def initialize(self) -> ShieldedPool:
        """
        Create fresh state: empty accumulator, no nullifiers, configured limits.

        Raises:
            RuntimeError: If the pool is already initialized.
        """
        with self._lock:
            if self._state is not None:
                raise RuntimeError("Pool is already initialized")
            self._state = PoolState(
                accumulator=MerkleAccumulator(self.config.tree_height, self.config.root_history_size),
                nullifiers=NullifierSet(),
                minimum_withdrawal_amount=self.config.minimum_withdrawal_amount,
                maximum_deposit_amount=self.config.maximum_deposit_amount,
                last_balance=self.custody(),
            )
        logger.info(
            f"Pool initialized: height={self.config.tree_height} "
            f"history={self.config.root_history_size} token={self.config.token}"
        )
        return self

    @property
    def initialized(self) -> bool:
        return self._state is not None

    @property
    def state(self) -> PoolState:
        if self._state is None:
            raise RuntimeError("Pool is not initialized; call initialize() or restore() first")
        return self._state

    def snapshot(self) -> PoolSnapshot:
        """Export the complete state for backup or migration."""
        with self._lock:
            return self.state.to_snapshot()

    def restore(self, snapshot: PoolSnapshot) -> ShieldedPool:
        """
        Load state exported by `snapshot` into an uninitialized pool.

        Raises:
            RuntimeError: If the pool already holds state.
            ConfigError: If the snapshot was taken with a different tree height.
        """
        with self._lock:
            if self._state is not None:
                raise RuntimeError("Pool is already initialized")
            if snapshot.tree_height != self.config.tree_height:
                raise ConfigError(
                    f"Snapshot tree height {snapshot.tree_height} != configured {self.config.tree_height}"
                )
            self._state = PoolState.from_snapshot(snapshot)
        logger.info(f"Pool restored at {snapshot.next_index} leaves, {len(snapshot.nullifiers)} nullifiers")
        return self

    def attach_bridge(self, bridge: BridgeAdapter) -> None:
        self.bridge = bridge

    @property
    def mutation_lock(self) -> threading.RLock:
        """
        The lock serializing every state mutation. Reentrant: a holder may call
        `transact`. The bridge holds it from token delivery until its callback
        returns, so no other transaction can observe a half-delivered deposit.
        """
        return self._lock

    # ------------------------------------------------------------------
    # Governance and registry
    # ------------------------------------------------------------------

    def configure_limits(self, minimum_withdrawal: int, maximum_deposit: int) -> None:
        """Replace the deposit/withdrawal bounds. Raises ConfigError on invalid bounds."""
        validate_limits(minimum_withdrawal, maximum_deposit)
        with self._lock:
            self.state.minimum_withdrawal_amount = minimum_withdrawal
            self.state.maximum_deposit_amount = maximum_deposit
        logger.info(f"Limits updated: min_withdrawal={minimum_withdrawal} max_deposit={maximum_deposit}")

    def register(self, owner: str, address: str) -> None:
        """
        Publish `owner`'s shielded address so others can send notes to it.

        Raises:
            ValueError: If the address is malformed.
        """
        Keypair.from_address(address)
        with self._lock:
            self.state.public_keys[owner] = address
            self.state.events.append(PublicKeyRegistered(owner=owner, key=address))
        logger.debug(f"Registered shielded address for {owner}")

    def public_key_of(self, owner: str) -> str | None:
        return self.state.public_keys.get(owner)

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def current_root(self) -> int:
        return self.state.accumulator.root

    def is_known_root(self, root: int) -> bool:
        return self.state.accumulator.is_known_root(root)

    def commitments(self) -> list[int]:
        """All accumulated commitments in leaf order."""
        with self._lock:
            return [event.commitment for event in self.state.commitments]

    def commitment_events(self) -> list[NewCommitment]:
        with self._lock:
            return list(self.state.commitments)

    def events(self) -> list[PoolEvent]:
        with self._lock:
            return list(self.state.events)

    def is_spent(self, nullifier: int) -> bool:
        return self.state.nullifiers.is_spent(nullifier)

    def custody(self) -> int:
        """Pool-held balance of the pooled asset."""
        return self.ledger.balance_of(self.config.pool_address)

    @property
    def last_balance(self) -> int:
        return self.state.last_balance

    def unaccounted_custody(self) -> int:
        """Custody that arrived without an admitted transaction, e.g. a bridged deposit awaiting its callback."""
        with self._lock:
            return max(0, self.custody() - self.state.last_balance)

    def status(self) -> PoolStatus:
        with self._lock:
            state = self.state
            return PoolStatus(
                token=self.config.token,
                root=state.accumulator.root,
                tree_height=state.accumulator.height,
                root_history_size=state.accumulator.root_history_size,
                next_index=state.accumulator.next_index,
                capacity=state.accumulator.capacity,
                nullifier_count=len(state.nullifiers),
                custody=self.custody(),
                minimum_withdrawal_amount=state.minimum_withdrawal_amount,
                maximum_deposit_amount=state.maximum_deposit_amount,
            )

    # ------------------------------------------------------------------
    # Admission
    # ------------------------------------------------------------------

    def transact(
        self,
        tx: Transaction,
        sender: str | None = None,
        *,
        deposit_delivered: bool = False,
    ) -> TransactionReceipt:
        """
        Admit one transaction.

        Args:
            tx: The proven transaction.
            sender: Account the deposit is pulled from (deposits only).
            deposit_delivered: The deposit is already in custody (bridged).

        Returns:
            An accepted receipt with the new leaf indices and root.

        Raises:
            AdmissionError: The transaction was rejected; no state changed.
            AccumulatorFull: No capacity remains; no state changed.
        """
        try:
            self._precheck(tx)
            self._verify(tx)
            return self._commit(tx, sender, deposit_delivered)
        except AdmissionError as err:
            logger.info(f"Rejected {tx.tx_id[:18]}: {err.code} {err}")
            raise

    def transact_batch(
        self,
        txs: Sequence[Transaction],
        senders: Sequence[str | None] | None = None,
        max_workers: int = DEFAULT_BATCH_WORKERS,
    ) -> list[TransactionReceipt]:
        """
        Verify a batch concurrently, then apply it serially in submission order.

        Each transaction is admitted or rejected on its own; a rejection is
        reported in its receipt and does not affect the rest of the batch.
        """
        if senders is None:
            senders = [None] * len(txs)
        if len(senders) != len(txs):
            raise ValueError("senders must have one entry per transaction")

        def prevalidate(tx: Transaction) -> AdmissionError | None:
            try:
                self._precheck(tx)
                self._verify(tx)
            except AdmissionError as err:
                return err
            return None

        with ThreadPoolExecutor(max_workers=max(1, max_workers)) as executor:
            outcomes = list(executor.map(prevalidate, txs))

        receipts = []
        for tx, sender, error in zip(txs, senders, outcomes):
            if error is None:
                try:
                    receipts.append(self._commit(tx, sender, False))
                    continue
                except ShieldedPoolError as err:
                    error = err
            logger.info(f"Rejected {tx.tx_id[:18]}: {error.code} {error}")
            receipts.append(TransactionReceipt(
                tx_id=tx.tx_id,
                status=TransactionStatus.REJECTED,
                code=error.code,
                detail=str(error),
            ))
        return receipts

    def _precheck(self, tx: Transaction) -> None:
        self._check_structure(tx)
        with self._lock:
            self._check_state(tx)

    def _verify(self, tx: Transaction) -> None:
        if not self.verifier.verify(tx.variant, tx.proof, tx.public_signals()):
            raise InvalidProof(f"Invalid {tx.variant.value} transaction proof")

    def _check_structure(self, tx: Transaction) -> None:
        variant = tx.variant
        ext = tx.ext_data
        if len(tx.input_nullifiers) != variant.n_inputs:
            raise MalformedSignals(
                f"{variant.value} expects {variant.n_inputs} input nullifiers, got {len(tx.input_nullifiers)}"
            )
        if len(tx.output_commitments) != variant.n_outputs:
            raise MalformedSignals(
                f"{variant.value} expects {variant.n_outputs} output commitments, got {len(tx.output_commitments)}"
            )
        if tx.ext_data_hash != ext.ext_data_hash():
            raise MalformedSignals("Incorrect external data hash")
        if tx.public_amount != calculate_public_amount(ext.ext_amount, ext.fee):
            raise MalformedSignals("Invalid public amount")
        if ext.is_withdrawal and not ext.recipient:
            raise MalformedSignals("Withdrawal has no recipient")
        if ext.fee > 0 and not ext.relayer:
            raise MalformedSignals("Fee is set but no relayer is named")
        if ext.is_l1_withdrawal:
            if not ext.is_withdrawal:
                raise MalformedSignals("L1 withdrawal flag set on a non-withdrawal")
            if self.bridge is None:
                raise MalformedSignals("L1 withdrawal requested but no bridge is attached")

    def _check_state(self, tx: Transaction) -> None:
        """Checks 1-3. Caller holds the lock."""
        state = self.state
        if not state.accumulator.is_known_root(tx.root):
            raise StaleRoot(f"Invalid merkle root 0x{tx.root:064x}")

        seen: set[int] = set()
        for nullifier in tx.input_nullifiers:
            if nullifier in seen or state.nullifiers.is_spent(nullifier):
                raise DoubleSpend(f"Input 0x{nullifier:064x} is already spent")
            seen.add(nullifier)

        ext = tx.ext_data
        if not -MAX_AMOUNT < ext.ext_amount < MAX_AMOUNT:
            raise AmountOutOfRange("Invalid ext amount")
        if not 0 <= ext.fee < MAX_AMOUNT:
            raise AmountOutOfRange("Invalid fee")
        if ext.ext_amount > state.maximum_deposit_amount:
            raise AmountOutOfRange(
                f"Deposit {ext.ext_amount} is larger than the maximum {state.maximum_deposit_amount}"
            )
        if ext.is_withdrawal and -ext.ext_amount < state.minimum_withdrawal_amount:
            raise AmountOutOfRange(
                f"Withdrawal {-ext.ext_amount} is below the minimum {state.minimum_withdrawal_amount}"
            )
        if not 0 <= ext.l1_fee <= max(0, -ext.ext_amount):
            raise AmountOutOfRange("Invalid L1 fee")

    def _commit(self, tx: Transaction, sender: str | None, deposit_delivered: bool) -> TransactionReceipt:
        ext = tx.ext_data
        pool_address = self.config.pool_address
        with self._lock:
            state = self.state
            self._check_state(tx)
            if state.accumulator.remaining_capacity < 2:
                logger.error(
                    f"Accumulator exhausted at {state.accumulator.next_index}/{state.accumulator.capacity} leaves"
                )
                raise AccumulatorFull("Merkle tree is full. No more leaves can be added")

            deposit = max(0, ext.ext_amount)
            payout = max(0, -ext.ext_amount) + ext.fee
            available = min(state.last_balance, self.custody()) + deposit
            if available < payout:
                raise InsufficientPoolLiquidity(f"Pool holds {available}, transaction pays out {payout}")
            if deposit_delivered and self.unaccounted_custody() < deposit:
                raise BridgeAmountMismatch(
                    f"Delivered deposit of {deposit} is not in custody ({self.unaccounted_custody()} unaccounted)"
                )
            if deposit and not deposit_delivered:
                if sender is None:
                    raise MalformedSignals("Deposit has no sender to pull funds from")
                self.ledger.transfer(sender, pool_address, deposit)

            left_index, right_index = state.accumulator.insert_pair(*tx.output_commitments)
            for nullifier in tx.input_nullifiers:
                state.nullifiers.add(nullifier)

            outputs = (
                NewCommitment(commitment=tx.output_commitments[0], index=left_index,
                              encrypted_output=ext.encrypted_output1),
                NewCommitment(commitment=tx.output_commitments[1], index=right_index,
                              encrypted_output=ext.encrypted_output2),
            )
            state.commitments.extend(outputs)
            state.events.extend(outputs)
            state.events.extend(NewNullifier(nullifier=n) for n in tx.input_nullifiers)

            if ext.is_withdrawal:
                amount = -ext.ext_amount
                if ext.is_l1_withdrawal:
                    self.bridge.release(ext.recipient, amount, ext.l1_fee)
                else:
                    self.ledger.transfer(pool_address, ext.recipient, amount)
            if ext.fee > 0:
                self.ledger.transfer(pool_address, ext.relayer, ext.fee)

            state.last_balance += ext.ext_amount - ext.fee
            root = state.accumulator.root

        logger.info(
            f"Accepted {tx.tx_id[:18]}: {tx.summary()} leaves={left_index},{right_index} root=0x{root:064x}"
        )
        return TransactionReceipt(
            tx_id=tx.tx_id,
            status=TransactionStatus.ACCEPTED,
            leaf_indices=[left_index, right_index],
            root=root,
        )
