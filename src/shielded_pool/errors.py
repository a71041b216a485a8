"""
Error taxonomy for the shielded pool.

Builder-side errors are local to the client: the caller fixes the witness
and builds a new transaction. Admission errors are the rejection reason for
a submitted transaction; a rejected transaction never mutates pool state and
is never retried as-is. AccumulatorFull is fatal for the deployment.

Every class carries a stable `code` used in logs and API responses.
"""

from __future__ import annotations


class ShieldedPoolError(Exception):
    """Base class for all shielded pool errors."""
    code = "SHIELDED_POOL_ERROR"


# ==============================================================================
# Builder-side
# ==============================================================================


class BuilderError(ShieldedPoolError):
    """Raised while assembling a transaction on the client."""
    code = "BUILDER_ERROR"


class IncompleteNote(BuilderError):
    """A nullifier was requested for a note without a leaf index or private key."""
    code = "INCOMPLETE_NOTE"


class UnspendableNote(BuilderError):
    """An input note is not (or not yet) in the accumulator at its claimed index."""
    code = "UNSPENDABLE_NOTE"


class ProverError(BuilderError):
    """Witness generation or proving failed."""
    code = "PROVER_ERROR"


class UnsupportedShape(BuilderError):
    """The requested input/output counts fit no circuit variant; split the spend."""
    code = "UNSUPPORTED_SHAPE"


# ==============================================================================
# Admission-side
# ==============================================================================


class AdmissionError(ShieldedPoolError):
    """Raised when the pool rejects a submitted transaction. No state was changed."""
    code = "ADMISSION_ERROR"


class MalformedSignals(AdmissionError):
    """Public signals or transaction fields do not match the circuit layout."""
    code = "MALFORMED_SIGNALS"


class StaleRoot(AdmissionError):
    """The proof references a root that has left the root history window."""
    code = "STALE_ROOT"


class DoubleSpend(AdmissionError):
    """An input nullifier has already been spent."""
    code = "DOUBLE_SPEND"


class AmountOutOfRange(AdmissionError):
    """The external amount violates the configured deposit/withdrawal bounds."""
    code = "AMOUNT_OUT_OF_RANGE"


class InvalidProof(AdmissionError):
    """The proof does not verify against the public signals."""
    code = "INVALID_PROOF"


class InsufficientPoolLiquidity(AdmissionError):
    """The pool does not hold enough custody to pay out the withdrawal."""
    code = "INSUFFICIENT_POOL_LIQUIDITY"


class BridgeAmountMismatch(AdmissionError):
    """The bridged amount differs from the amount declared by the payload."""
    code = "BRIDGE_AMOUNT_MISMATCH"


class UnsupportedToken(AdmissionError):
    """The bridge delivered an asset this pool does not hold."""
    code = "UNSUPPORTED_TOKEN"


# ==============================================================================
# Deployment / collaborators
# ==============================================================================


class AccumulatorFull(ShieldedPoolError):
    """No leaf capacity remains. A new deployment with a larger height is required."""
    code = "ACCUMULATOR_FULL"


class LedgerError(ShieldedPoolError):
    """Raised by the custody ledger."""
    code = "LEDGER_ERROR"


class InsufficientBalance(LedgerError):
    """An account does not hold enough of the asset for a transfer."""
    code = "INSUFFICIENT_BALANCE"


class ConfigError(ShieldedPoolError, ValueError):
    """Raised when pool configuration is invalid."""
    code = "CONFIG_ERROR"


ADMISSION_ERRORS: dict[str, type[AdmissionError]] = {
    cls.code: cls
    for cls in (
        MalformedSignals,
        StaleRoot,
        DoubleSpend,
        AmountOutOfRange,
        InvalidProof,
        InsufficientPoolLiquidity,
        BridgeAmountMismatch,
        UnsupportedToken,
    )
}
"""Admission error classes by code, for mapping remote rejections back to exceptions."""
