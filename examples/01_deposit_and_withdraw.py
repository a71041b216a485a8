#!/usr/bin/env python3
"""
Example 01: Deposit into a local pool and withdraw part of it.

Runs entirely in-process with the simulated proof system.
No keys, node or server required.

Usage:
    python examples/01_deposit_and_withdraw.py
"""

from shielded_pool import Keypair, Note, PoolConfig, ShieldedPool, ShieldedWallet, TokenLedger, TransactionBuilder
from shielded_pool.core.models import format_units, parse_units
from shielded_pool.errors import DoubleSpend
from shielded_pool.zk import SimulatedProofSystem, VerifierAdapter

# Set up the pool
config = PoolConfig(token="WETH")
system = SimulatedProofSystem()
ledger = TokenLedger(config.token)
ledger.mint("alice", parse_units("1"))

pool = ShieldedPool(config, VerifierAdapter(system), ledger).initialize()
builder = TransactionBuilder(pool, system)
alice = Keypair()

# Deposit 0.08 into a new note
print("=== Deposit ===")
note = Note(parse_units("0.08"), alice)
receipt = pool.transact(builder.prepare_transaction(outputs=[note]), sender="alice")
note.index = receipt.leaf_indices[0]
print(f"Leaves:  {receipt.leaf_indices}")
print(f"Root:    0x{receipt.root:064x}")
print(pool.status().to_summary())

# Withdraw 0.05, keeping 0.03 as change
print("\n=== Withdraw ===")
change = Note(parse_units("0.03"), alice)
tx = builder.prepare_transaction(inputs=[note], outputs=[change], recipient="bob")
pool.transact(tx)
print(f"bob:     {format_units(ledger.balance_of('bob'))} {config.token}")
print(pool.status().to_summary())

# Alice finds her change by scanning the encrypted outputs
wallet = ShieldedWallet(alice, pool)
print(f"\nShielded balance: {format_units(wallet.balance())} {config.token}")

# The same transaction cannot be admitted twice
print("\n=== Resubmit ===")
try:
    pool.transact(tx)
except DoubleSpend as e:
    print(f"  -> REJECTED [{e.code}]: {e}")
