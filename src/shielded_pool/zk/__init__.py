"""
shielded_pool.zk — Circuit variants, public signals and proof backends.

Provides:
- CircuitVariant and the fixed public-signal layout
- VerifierAdapter: variant dispatch and signal layout checks
- SimulatedProofSystem: development prover/verifier enforcing the transaction relation
- Groth16Verifier: BN254 pairing verification of snarkjs proofs
"""

from shielded_pool.zk.circuits import (
    CircuitVariant,
    InputWitness,
    OutputWitness,
    PublicSignals,
    TransactionWitness,
    check_signal_layout,
    select_variant,
)
from shielded_pool.zk.groth16 import Groth16Verifier, VerificationKey, encode_proof
from shielded_pool.zk.simulated import SimulatedProofSystem
from shielded_pool.zk.verifier import ProofBackend, ProofVerifier, Prover, VerifierAdapter

__all__ = [
    # Circuits
    "CircuitVariant",
    "InputWitness",
    "OutputWitness",
    "PublicSignals",
    "TransactionWitness",
    "check_signal_layout",
    "select_variant",
    # Verification
    "VerifierAdapter",
    "ProofBackend",
    "ProofVerifier",
    "Prover",
    "SimulatedProofSystem",
    "Groth16Verifier",
    "VerificationKey",
    "encode_proof",
]
