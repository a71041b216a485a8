"""
shielded_pool.core — Notes, accumulator, nullifier set and the pool state machine.
"""

from shielded_pool.core.builder import TransactionBuilder
from shielded_pool.core.config import PoolConfig
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.merkle import MerkleAccumulator, MerklePath, MerkleTree
from shielded_pool.core.models import (
    WEI_PER_TOKEN,
    ExtData,
    NewCommitment,
    NewNullifier,
    PoolSnapshot,
    PoolStatus,
    PublicKeyRegistered,
    Transaction,
    TransactionReceipt,
    TransactionStatus,
    calculate_public_amount,
    format_units,
    parse_units,
)
from shielded_pool.core.note import Note
from shielded_pool.core.nullifiers import NullifierSet
from shielded_pool.core.pool import PoolState, ShieldedPool
from shielded_pool.core.remote import RemotePool, RemotePoolError
from shielded_pool.core.wallet import ShieldedWallet

__all__ = [
    "ExtData",
    "MerkleAccumulator",
    "MerklePath",
    "MerkleTree",
    "NewCommitment",
    "NewNullifier",
    "Note",
    "NullifierSet",
    "PoolConfig",
    "PoolSnapshot",
    "PoolState",
    "PoolStatus",
    "PublicKeyRegistered",
    "RemotePool",
    "RemotePoolError",
    "ShieldedPool",
    "ShieldedWallet",
    "TokenLedger",
    "Transaction",
    "TransactionBuilder",
    "TransactionReceipt",
    "TransactionStatus",
    "WEI_PER_TOKEN",
    "calculate_public_amount",
    "format_units",
    "parse_units",
]
