"""
Development proof system.

SimulatedProofSystem checks the full transaction relation in Python and
then issues a keyed Blake2b tag over the public signals. Only the holder of
the per-variant verification key can issue a tag that verifies, so within
one process it behaves like a real proof system: a transaction whose
witness does not satisfy the relation never obtains a valid proof.

Relation checked by `prove` (the same statement the circuit enforces):
    for each input:  public_key = H(private_key)
                     commitment = H(amount, public_key, blinding)
                     nullifier  = H(commitment, path_index, H(private_key, commitment, path_index))
                     amount != 0  =>  commitment is under `root` at path_index
    for each output: commitment = H(amount, public_key, blinding)
    all amounts < 2**248, input nullifiers pairwise distinct
    sum(inputs) + public_amount == sum(outputs)  (mod FIELD_SIZE)
"""

from __future__ import annotations

import hashlib
import hmac
import secrets
from typing import Mapping, Sequence

from shielded_pool.core.merkle import compute_root_from_path
from shielded_pool.crypto.field import (
    DOMAIN_COMMITMENT,
    DOMAIN_NULLIFIER,
    DOMAIN_PUBKEY,
    DOMAIN_SIGNATURE,
    FIELD_SIZE,
    MAX_AMOUNT,
    field_hash,
)
from shielded_pool.errors import ProverError
from shielded_pool.zk.circuits import CircuitVariant, TransactionWitness

_TAG_PERSON = b"sp.sim.proof"
PROOF_SIZE = 32


class SimulatedProofSystem:
    """
    Prover and verifier sharing per-variant verification keys.

    Args:
        keys: Secret key per variant. Random keys are drawn when omitted.

    Usage:
        system = SimulatedProofSystem()
        proof = system.prove(witness)
        assert system.verify_proof(witness.variant, proof, witness.signals.to_list())
    """

    def __init__(self, keys: Mapping[CircuitVariant, bytes] | None = None) -> None:
        keys = dict(keys or {})
        for variant in CircuitVariant:
            keys.setdefault(variant, secrets.token_bytes(32))
        self._keys = keys

    @classmethod
    def from_seed(cls, seed: bytes) -> SimulatedProofSystem:
        """Deterministic keys, so a server and its clients can share one system."""
        return cls({
            variant: hashlib.blake2b(variant.value.encode(), key=seed, digest_size=32).digest()
            for variant in CircuitVariant
        })

    def _tag(self, variant: CircuitVariant, signals: Sequence[int]) -> bytes:
        mac = hashlib.blake2b(key=self._keys[variant], digest_size=PROOF_SIZE, person=_TAG_PERSON)
        for value in signals:
            mac.update(value.to_bytes(32, "big"))
        return mac.digest()

    # ------------------------------------------------------------------
    # Prover
    # ------------------------------------------------------------------

    def prove(self, witness: TransactionWitness) -> bytes:
        """
        Check the transaction relation and return a proof.

        Raises:
            ProverError: If any constraint is violated.
        """
        signals = witness.signals
        variant = signals.variant

        if len(witness.inputs) != variant.n_inputs or len(signals.input_nullifiers) != variant.n_inputs:
            raise ProverError(f"{variant.value} needs exactly {variant.n_inputs} inputs")
        if len(witness.outputs) != variant.n_outputs or len(signals.output_commitments) != variant.n_outputs:
            raise ProverError(f"{variant.value} needs exactly {variant.n_outputs} outputs")

        try:
            for i, (inp, nullifier) in enumerate(zip(witness.inputs, signals.input_nullifiers)):
                if not 0 <= inp.amount < MAX_AMOUNT:
                    raise ProverError(f"Input {i} amount is outside the 248-bit range")
                public_key = field_hash(DOMAIN_PUBKEY, inp.private_key)
                commitment = field_hash(DOMAIN_COMMITMENT, inp.amount, public_key, inp.blinding)
                nullifying_key = field_hash(DOMAIN_SIGNATURE, inp.private_key, commitment, inp.path_index)
                if field_hash(DOMAIN_NULLIFIER, commitment, inp.path_index, nullifying_key) != nullifier:
                    raise ProverError(f"Input {i} nullifier does not match its opening")
                if inp.amount != 0:
                    path_root = compute_root_from_path(commitment, inp.path_index, list(inp.path_elements))
                    if path_root != signals.root:
                        raise ProverError(f"Input {i} is not a member of the tree under the given root")

            for j, (out, commitment) in enumerate(zip(witness.outputs, signals.output_commitments)):
                if not 0 <= out.amount < MAX_AMOUNT:
                    raise ProverError(f"Output {j} amount is outside the 248-bit range")
                if field_hash(DOMAIN_COMMITMENT, out.amount, out.public_key, out.blinding) != commitment:
                    raise ProverError(f"Output {j} commitment does not match its opening")
        except ValueError as err:
            raise ProverError(f"Witness contains a value outside the field: {err}") from err

        if len(set(signals.input_nullifiers)) != len(signals.input_nullifiers):
            raise ProverError("Input nullifiers must be pairwise distinct")

        sum_in = sum(inp.amount for inp in witness.inputs)
        sum_out = sum(out.amount for out in witness.outputs)
        if (sum_in + signals.public_amount - sum_out) % FIELD_SIZE != 0:
            raise ProverError(
                f"Amounts do not balance: inputs {sum_in} + public amount != outputs {sum_out}"
            )

        return self._tag(variant, signals.to_list())

    # ------------------------------------------------------------------
    # Verifier
    # ------------------------------------------------------------------

    def verify_proof(self, variant: CircuitVariant, proof: bytes, signals: Sequence[int]) -> bool:
        if len(proof) != PROOF_SIZE:
            return False
        return hmac.compare_digest(proof, self._tag(variant, signals))
