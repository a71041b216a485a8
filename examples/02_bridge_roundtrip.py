#!/usr/bin/env python3
"""
Example 02: Bridge tokens into the pool and release them back over the bridge.

Emulates the bridge in memory: the bridge delivers tokens to the pool and
calls the adapter, and an L1 withdrawal sends a release message back.

Usage:
    python examples/02_bridge_roundtrip.py
"""

from shielded_pool import Keypair, Note, PoolConfig, ShieldedPool, TokenLedger, TransactionBuilder
from shielded_pool.bridge import BridgeAdapter, InMemoryBridgeTransport, encode_bridge_payload
from shielded_pool.core.models import format_units, parse_units
from shielded_pool.errors import BridgeAmountMismatch
from shielded_pool.zk import SimulatedProofSystem, VerifierAdapter

config = PoolConfig(token="WETH")
system = SimulatedProofSystem()
ledger = TokenLedger(config.token)
ledger.mint("omnibridge", parse_units("0.2"))

pool = ShieldedPool(config, VerifierAdapter(system), ledger).initialize()
omnibridge = InMemoryBridgeTransport(ledger, address="omnibridge")
bridge = BridgeAdapter(pool, omnibridge)
builder = TransactionBuilder(pool, system)


def show_balances():
    for account in ("omnibridge", config.pool_address, "l1-recipient", "l1-unwrapper", config.rescue_address):
        print(f"  {account.ljust(16)}: {format_units(ledger.balance_of(account))}")


# Bridged deposit
print("=== Bridged deposit of 0.08 ===")
keypair = Keypair()
note = Note(parse_units("0.08"), keypair)
tx = builder.prepare_transaction(outputs=[note])
receipt = omnibridge.execute(bridge, "WETH", note.amount, encode_bridge_payload(tx))
note.index = receipt.leaf_indices[0]
show_balances()

# A deposit whose declared amount does not match its transaction is rescued
print("\n=== Mismatched bridged deposit ===")
bad = builder.prepare_transaction(outputs=[Note(parse_units("0.02"))])
try:
    omnibridge.execute(bridge, "WETH", parse_units("0.03"), encode_bridge_payload(bad))
except BridgeAmountMismatch as e:
    print(f"  -> REJECTED [{e.code}]: {e}")
show_balances()

# Withdraw 0.05 back over the bridge, paying a 0.001 L1 fee
print("\n=== L1 withdrawal of 0.05 ===")
tx = builder.prepare_transaction(
    inputs=[note],
    outputs=[Note(parse_units("0.03"), keypair)],
    recipient="l1-recipient",
    is_l1_withdrawal=True,
    l1_fee=parse_units("0.001"),
)
pool.transact(tx)
for message in omnibridge.outbound:
    print(f"  release: {format_units(message.amount)} to {message.recipient} (l1_fee {format_units(message.l1_fee)})")
show_balances()
