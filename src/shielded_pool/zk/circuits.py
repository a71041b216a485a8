"""
Circuit variants and the public-signal layout shared by prover and verifier.

Two fixed-arity transaction circuits exist:

    TWO_INPUT       2 inputs, 2 outputs    7 public signals
    SIXTEEN_INPUT  16 inputs, 2 outputs   21 public signals

Public signal order (MUST match the circuit):
    [root, publicAmount, extDataHash, inputNullifiers..., outputCommitments...]

A spend needing a different shape is split by the caller into several
transactions.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from enum import Enum

from shielded_pool.errors import MalformedSignals
from shielded_pool.crypto.field import FIELD_SIZE


class CircuitVariant(str, Enum):
    """The closed set of transaction circuits."""

    TWO_INPUT = "transaction2"
    SIXTEEN_INPUT = "transaction16"

    @property
    def n_inputs(self) -> int:
        return 2 if self is CircuitVariant.TWO_INPUT else 16

    @property
    def n_outputs(self) -> int:
        return 2

    @property
    def signal_count(self) -> int:
        return 3 + self.n_inputs + self.n_outputs


def select_variant(n_inputs: int) -> CircuitVariant | None:
    """
    Smallest circuit that fits `n_inputs` real inputs, or None if none does.
    """
    if n_inputs < 0:
        raise ValueError(f"n_inputs must be non-negative, got {n_inputs}")
    if n_inputs <= CircuitVariant.TWO_INPUT.n_inputs:
        return CircuitVariant.TWO_INPUT
    if n_inputs <= CircuitVariant.SIXTEEN_INPUT.n_inputs:
        return CircuitVariant.SIXTEEN_INPUT
    return None


@dataclass(frozen=True)
class PublicSignals:
    """
    The public inputs a transaction proof is checked against.

    Attributes:
        variant: Circuit the signals belong to.
        root: Accumulator root the input paths were built against.
        public_amount: (ext_amount - fee) mod FIELD_SIZE.
        ext_data_hash: Hash binding recipient, relayer, fee and encrypted outputs.
        input_nullifiers: One per circuit input, padding included.
        output_commitments: One per circuit output, padding included.
    """
    variant: CircuitVariant
    root: int
    public_amount: int
    ext_data_hash: int
    input_nullifiers: tuple[int, ...] = field(default_factory=tuple)
    output_commitments: tuple[int, ...] = field(default_factory=tuple)

    def to_list(self) -> list[int]:
        """Flatten in circuit order."""
        return [
            self.root,
            self.public_amount,
            self.ext_data_hash,
            *self.input_nullifiers,
            *self.output_commitments,
        ]

    @classmethod
    def from_list(cls, variant: CircuitVariant, values: list[int]) -> PublicSignals:
        """
        Parse a flat signal list laid out for `variant`.

        Raises:
            MalformedSignals: If the count does not match or an entry is not a field element.
        """
        check_signal_layout(variant, values)
        n_in = variant.n_inputs
        return cls(
            variant=variant,
            root=values[0],
            public_amount=values[1],
            ext_data_hash=values[2],
            input_nullifiers=tuple(values[3:3 + n_in]),
            output_commitments=tuple(values[3 + n_in:]),
        )


def check_signal_layout(variant: CircuitVariant, values: list[int]) -> None:
    """
    Raise MalformedSignals unless `values` has the variant's exact arity and
    every entry is a field element.
    """
    if len(values) != variant.signal_count:
        raise MalformedSignals(
            f"{variant.value} expects {variant.signal_count} public signals, got {len(values)}"
        )
    for i, value in enumerate(values):
        if not isinstance(value, int) or isinstance(value, bool) or not 0 <= value < FIELD_SIZE:
            raise MalformedSignals(f"Public signal {i} is not a field element")


# ==============================================================================
# Private witness
# ==============================================================================


@dataclass(frozen=True)
class InputWitness:
    """Private opening of one spent note (zero amount for padding inputs)."""
    amount: int
    private_key: int
    blinding: int
    path_index: int
    path_elements: tuple[int, ...]


@dataclass(frozen=True)
class OutputWitness:
    """Private opening of one created note."""
    amount: int
    public_key: int
    blinding: int


@dataclass(frozen=True)
class TransactionWitness:
    """Everything the prover needs: the public signals plus all private openings."""
    signals: PublicSignals
    inputs: tuple[InputWitness, ...]
    outputs: tuple[OutputWitness, ...]

    @property
    def variant(self) -> CircuitVariant:
        return self.signals.variant
