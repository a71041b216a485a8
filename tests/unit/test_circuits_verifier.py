"""
Unit tests for circuit variants, public-signal layout and the verifier adapter.
"""

import pytest

from shielded_pool.crypto.field import FIELD_SIZE
from shielded_pool.errors import MalformedSignals
from shielded_pool.zk.circuits import CircuitVariant, PublicSignals, check_signal_layout, select_variant
from shielded_pool.zk.verifier import ProofVerifier, VerifierAdapter

# ==============================================================================
# Helpers
# ==============================================================================


class RecordingVerifier:
    """Accepts a fixed proof and records every call."""

    def __init__(self, accept: bytes = b"ok", raises: Exception | None = None):
        self.accept = accept
        self.raises = raises
        self.calls = []

    def verify_proof(self, variant, proof, signals):
        self.calls.append((variant, proof, list(signals)))
        if self.raises is not None:
            raise self.raises
        return proof == self.accept


def _signals(variant: CircuitVariant = CircuitVariant.TWO_INPUT) -> PublicSignals:
    return PublicSignals(
        variant=variant,
        root=1,
        public_amount=2,
        ext_data_hash=3,
        input_nullifiers=tuple(range(10, 10 + variant.n_inputs)),
        output_commitments=(100, 101),
    )


# ==============================================================================
# Variants and layout
# ==============================================================================


class TestCircuitVariant:

    def test_arity(self):
        assert CircuitVariant.TWO_INPUT.n_inputs == 2
        assert CircuitVariant.TWO_INPUT.signal_count == 7
        assert CircuitVariant.SIXTEEN_INPUT.n_inputs == 16
        assert CircuitVariant.SIXTEEN_INPUT.signal_count == 21
        assert CircuitVariant.SIXTEEN_INPUT.n_outputs == 2

    @pytest.mark.parametrize("n_inputs,expected", [
        (0, CircuitVariant.TWO_INPUT),
        (2, CircuitVariant.TWO_INPUT),
        (3, CircuitVariant.SIXTEEN_INPUT),
        (16, CircuitVariant.SIXTEEN_INPUT),
        (17, None),
    ])
    def test_select_variant(self, n_inputs, expected):
        assert select_variant(n_inputs) is expected

    def test_select_variant_negative(self):
        with pytest.raises(ValueError):
            select_variant(-1)


class TestPublicSignals:

    def test_to_list_order(self):
        assert _signals().to_list() == [1, 2, 3, 10, 11, 100, 101]

    def test_from_list(self):
        values = _signals(CircuitVariant.SIXTEEN_INPUT).to_list()
        parsed = PublicSignals.from_list(CircuitVariant.SIXTEEN_INPUT, values)
        assert parsed == _signals(CircuitVariant.SIXTEEN_INPUT)

    def test_wrong_count(self):
        with pytest.raises(MalformedSignals, match="expects 7"):
            check_signal_layout(CircuitVariant.TWO_INPUT, [1, 2, 3])

    def test_sixteen_input_signals_on_two_input_circuit(self):
        values = _signals(CircuitVariant.SIXTEEN_INPUT).to_list()
        with pytest.raises(MalformedSignals):
            check_signal_layout(CircuitVariant.TWO_INPUT, values)

    def test_entry_outside_field(self):
        values = _signals().to_list()
        values[4] = FIELD_SIZE
        with pytest.raises(MalformedSignals, match="signal 4"):
            check_signal_layout(CircuitVariant.TWO_INPUT, values)


# ==============================================================================
# VerifierAdapter
# ==============================================================================


class TestVerifierAdapter:

    def test_recording_verifier_satisfies_protocol(self):
        assert isinstance(RecordingVerifier(), ProofVerifier)

    def test_single_backend_for_every_variant(self):
        backend = RecordingVerifier()
        adapter = VerifierAdapter(backend)
        for variant in CircuitVariant:
            assert adapter.backend_for(variant) is backend

    def test_mapping_must_cover_all_variants(self):
        with pytest.raises(ValueError, match="transaction16"):
            VerifierAdapter({CircuitVariant.TWO_INPUT: RecordingVerifier()})

    def test_routes_by_variant(self):
        two, sixteen = RecordingVerifier(), RecordingVerifier()
        adapter = VerifierAdapter({CircuitVariant.TWO_INPUT: two, CircuitVariant.SIXTEEN_INPUT: sixteen})
        assert adapter.verify(CircuitVariant.SIXTEEN_INPUT, b"ok", _signals(CircuitVariant.SIXTEEN_INPUT))
        assert two.calls == []
        assert len(sixteen.calls) == 1
        assert sixteen.calls[0][2] == _signals(CircuitVariant.SIXTEEN_INPUT).to_list()

    def test_flat_signals_accepted(self):
        adapter = VerifierAdapter(RecordingVerifier())
        assert adapter.verify(CircuitVariant.TWO_INPUT, b"ok", _signals().to_list())

    def test_bad_proof_is_false(self):
        adapter = VerifierAdapter(RecordingVerifier())
        assert adapter.verify(CircuitVariant.TWO_INPUT, b"nope", _signals()) is False

    def test_undecodable_proof_is_false(self):
        adapter = VerifierAdapter(RecordingVerifier(raises=ValueError("garbage")))
        assert adapter.verify(CircuitVariant.TWO_INPUT, b"ok", _signals()) is False

    def test_variant_mismatch(self):
        backend = RecordingVerifier()
        adapter = VerifierAdapter(backend)
        with pytest.raises(MalformedSignals, match="Signals built for"):
            adapter.verify(CircuitVariant.SIXTEEN_INPUT, b"ok", _signals(CircuitVariant.TWO_INPUT))
        assert backend.calls == []

    def test_wrong_arity_never_reaches_backend(self):
        backend = RecordingVerifier()
        adapter = VerifierAdapter(backend)
        with pytest.raises(MalformedSignals):
            adapter.verify(CircuitVariant.TWO_INPUT, b"ok", [1, 2, 3, 4, 5, 6])
        assert backend.calls == []
