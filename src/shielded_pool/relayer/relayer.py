"""
Relayer — submits users' shielded transactions to the pool in batches.

Users who hold no funds outside the pool cannot pay for their own
submission, so they name a relayer in their external data and pay it a fee
out of the pool. The relayer queues such transactions and flushes them as
one batch:

    relayer = Relayer(pool, address="relayer-1", minimum_fee=parse_units("0.001"))
    relayer.submit(tx)
    receipts = relayer.flush()

Batches are verified concurrently by the pool and applied in submission
order.
"""

from __future__ import annotations

import logging
import threading

from shielded_pool.core.models import Transaction, TransactionReceipt
from shielded_pool.core.pool import ShieldedPool
from shielded_pool.errors import ShieldedPoolError

logger = logging.getLogger("shielded_pool.relayer")

# Maximum number of transactions applied per flush
MAX_BATCH_SIZE = 50


class RelayerRejection(ShieldedPoolError, ValueError):
    """Raised when the relayer refuses to queue a transaction."""
    code = "RELAYER_REJECTION"


class Relayer:
    """
    Batching submitter for fee-paying transactions.

    Args:
        pool: Pool the batches are submitted to.
        address: This relayer's account; transactions must name it as relayer.
        minimum_fee: Smallest fee this relayer accepts, in base units.
        max_batch_size: Upper bound on transactions per flush.
    """

    def __init__(
        self,
        pool: ShieldedPool,
        address: str,
        minimum_fee: int = 0,
        max_batch_size: int = MAX_BATCH_SIZE,
    ) -> None:
        if max_batch_size < 1:
            raise ValueError(f"max_batch_size must be positive, got {max_batch_size}")
        self.pool = pool
        self.address = address
        self.minimum_fee = minimum_fee
        self.max_batch_size = max_batch_size
        self._queue: list[Transaction] = []
        self._lock = threading.Lock()

    @property
    def pending(self) -> int:
        return len(self._queue)

    def validate(self, tx: Transaction) -> None:
        """
        Check that relaying `tx` pays this relayer enough.

        Checks:
        - The transaction names this relayer
        - The fee is at least the minimum
        - It does not pull a deposit (there is no sender to pull from)

        Raises:
            RelayerRejection: If any check fails.
        """
        ext = tx.ext_data
        if ext.relayer != self.address:
            raise RelayerRejection(f"Transaction names relayer {ext.relayer!r}, not {self.address!r}")
        if ext.fee < self.minimum_fee:
            raise RelayerRejection(f"Fee {ext.fee} is below the minimum {self.minimum_fee}")
        if ext.ext_amount > 0:
            raise RelayerRejection("Deposits must be submitted by the depositor")

    def submit(self, tx: Transaction) -> int:
        """
        Validate and queue a transaction.

        Returns:
            Its position in the queue.
        """
        self.validate(tx)
        with self._lock:
            self._queue.append(tx)
            position = len(self._queue) - 1
        logger.debug(f"Queued {tx.tx_id[:18]} at position {position}")
        return position

    def flush(self) -> list[TransactionReceipt]:
        """
        Submit up to `max_batch_size` queued transactions as one batch.

        Returns:
            One receipt per submitted transaction, in queue order.
        """
        with self._lock:
            batch = self._queue[:self.max_batch_size]
            self._queue = self._queue[self.max_batch_size:]
        if not batch:
            return []

        receipts = self.pool.transact_batch(batch)
        accepted = sum(1 for r in receipts if r.accepted)
        logger.info(f"Flushed batch of {len(batch)}: {accepted} accepted, {len(batch) - accepted} rejected")
        return receipts
