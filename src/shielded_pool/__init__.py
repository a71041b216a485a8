"""
shielded-pool: a shielded value pool with a Merkle commitment accumulator,
nullifier double-spend protection, zk-proof verification and a token bridge.

Usage:
    from shielded_pool import ShieldedPool, PoolConfig, TransactionBuilder, Note
    from shielded_pool.zk import SimulatedProofSystem, VerifierAdapter
"""

from shielded_pool.core.builder import TransactionBuilder
from shielded_pool.core.config import PoolConfig
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.models import ExtData, Transaction, TransactionReceipt
from shielded_pool.core.note import Note
from shielded_pool.core.pool import ShieldedPool
from shielded_pool.core.wallet import ShieldedWallet
from shielded_pool.crypto.keypair import Keypair

__version__ = "0.1.0"
__all__ = [
    "ExtData",
    "Keypair",
    "Note",
    "PoolConfig",
    "ShieldedPool",
    "ShieldedWallet",
    "TokenLedger",
    "Transaction",
    "TransactionBuilder",
    "TransactionReceipt",
]
