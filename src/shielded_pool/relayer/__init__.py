"""
shielded_pool.relayer — Batching submitter for fee-paying transactions.
"""

from shielded_pool.relayer.relayer import MAX_BATCH_SIZE, Relayer, RelayerRejection

__all__ = [
    "MAX_BATCH_SIZE",
    "Relayer",
    "RelayerRejection",
]
