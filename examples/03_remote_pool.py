#!/usr/bin/env python3
"""
Example 03: Use a pool served over HTTP.

Start the server with a shared simulated-proof seed first:
    SIMULATED_PROOF_SEED=devnet uvicorn shielded_pool.api.server:app

The server's in-memory ledger starts empty and cannot be funded from
outside, so this example reads state and submits a zero-value transaction
to show the round trip.

Usage:
    python examples/03_remote_pool.py
    python examples/03_remote_pool.py http://localhost:8000
"""

import sys

from shielded_pool import Keypair, Note, TransactionBuilder
from shielded_pool.core.remote import RemotePool
from shielded_pool.errors import AdmissionError
from shielded_pool.zk import SimulatedProofSystem

base_url = sys.argv[1] if len(sys.argv) > 1 else "http://127.0.0.1:8000"

pool = RemotePool(base_url)
prover = SimulatedProofSystem.from_seed(b"devnet")
builder = TransactionBuilder(pool, prover)

status = pool.status()
print("=== Pool status ===")
print(status.to_summary())
print(f"Root:  0x{status.root:064x}")

# A zero-value transaction moves no funds but still appends two leaves
print("\n=== Zero-value transaction ===")
tx = builder.prepare_transaction(outputs=[Note(0, Keypair())])
try:
    receipt = pool.submit(tx)
    print(f"Accepted at leaves {receipt.leaf_indices}")
except AdmissionError as e:
    print(f"  -> REJECTED [{e.code}]: {e}")

print(f"\nCommitments on the server: {len(pool.commitments())}")
pool.close()
