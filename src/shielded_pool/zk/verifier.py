"""
Verifier adapter: the pool's single entry point for proof checking.

The adapter routes a proof to the backend for its circuit variant after
checking the public-signal layout. Backends are pluggable:

    SimulatedProofSystem   development prover + verifier (keyed tags)
    Groth16Verifier        BN254 Groth16 pairing check (snarkjs keys)

The adapter holds no mutable state and is safe to call from many threads.
"""

from __future__ import annotations

import logging
from typing import Mapping, Protocol, Sequence, Union, runtime_checkable

from shielded_pool.errors import MalformedSignals
from shielded_pool.zk.circuits import CircuitVariant, PublicSignals, TransactionWitness, check_signal_layout

logger = logging.getLogger("shielded_pool.verifier")


@runtime_checkable
class ProofVerifier(Protocol):
    """Checks a proof for one circuit variant against flat public signals."""

    def verify_proof(self, variant: CircuitVariant, proof: bytes, signals: Sequence[int]) -> bool:
        ...


@runtime_checkable
class Prover(Protocol):
    """Produces a proof from a complete witness, or raises ProverError."""

    def prove(self, witness: TransactionWitness) -> bytes:
        ...


class ProofBackend(ProofVerifier, Prover, Protocol):
    """A backend that can both prove and verify."""


class VerifierAdapter:
    """
    Dispatch proof verification by circuit variant.

    Args:
        backends: One verifier used for every variant, or a mapping with an
                  entry for each CircuitVariant.
    """

    def __init__(self, backends: ProofVerifier | Mapping[CircuitVariant, ProofVerifier]) -> None:
        if isinstance(backends, Mapping):
            missing = [v.value for v in CircuitVariant if v not in backends]
            if missing:
                raise ValueError(f"No verifier configured for: {', '.join(missing)}")
            self._backends = dict(backends)
        else:
            self._backends = {variant: backends for variant in CircuitVariant}

    def backend_for(self, variant: CircuitVariant) -> ProofVerifier:
        return self._backends[variant]

    def verify(
        self,
        variant: CircuitVariant,
        proof: bytes,
        public_signals: Union[PublicSignals, Sequence[int]],
    ) -> bool:
        """
        Verify `proof` for `variant` against `public_signals`.

        Args:
            variant: Circuit the proof was produced for.
            proof: Encoded proof bytes.
            public_signals: Structured signals or the flat list in circuit order.

        Returns:
            True iff the proof is valid. Malformed proof bytes verify as False.

        Raises:
            MalformedSignals: If the signal count or an entry does not fit the variant.
        """
        if isinstance(public_signals, PublicSignals):
            if public_signals.variant is not variant:
                raise MalformedSignals(
                    f"Signals built for {public_signals.variant.value}, proof is for {variant.value}"
                )
            values = public_signals.to_list()
        else:
            values = list(public_signals)
        check_signal_layout(variant, values)

        try:
            valid = self._backends[variant].verify_proof(variant, bytes(proof), values)
        except ValueError as err:
            logger.debug(f"Undecodable {variant.value} proof: {err}")
            return False
        if not valid:
            logger.debug(f"{variant.value} proof rejected")
        return valid
