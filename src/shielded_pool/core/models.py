"""
Core data models for the shielded pool.

All amounts are integers in base units (1 token = 10**18 base units).
Field elements travel as 0x-prefixed 32-byte hex strings and signed amounts
as decimal strings when serialized to JSON, so no value is truncated by a
JSON number parser.
"""

from __future__ import annotations

import hashlib
from decimal import Decimal, InvalidOperation
from enum import Enum
from typing import Annotated, Any, Union

from pydantic import BaseModel, BeforeValidator, Field, PlainSerializer

from shielded_pool.crypto.field import (
    DOMAIN_EXT_DATA,
    FIELD_SIZE,
    from_hex,
    hash_bytes_to_field,
    require_field_element,
    to_fixed_hex,
)
from shielded_pool.zk.circuits import CircuitVariant, PublicSignals

TOKEN_DECIMALS = 18
WEI_PER_TOKEN = 10**TOKEN_DECIMALS


def parse_units(value: str | int | Decimal, decimals: int = TOKEN_DECIMALS) -> int:
    """
    Convert a human-readable token amount ("0.08") into base units.

    Raises:
        ValueError: If the value is not a number or has more precision than `decimals`.
    """
    try:
        amount = Decimal(str(value))
    except InvalidOperation as err:
        raise ValueError(f"Invalid token amount: {value!r}") from err
    scaled = amount * (Decimal(10) ** decimals)
    if scaled != scaled.to_integral_value():
        raise ValueError(f"{value!r} has more than {decimals} decimal places")
    return int(scaled)


def format_units(amount: int, decimals: int = TOKEN_DECIMALS) -> str:
    """Render base units as a human-readable decimal string ("0.08")."""
    sign = "-" if amount < 0 else ""
    whole, frac = divmod(abs(amount), 10**decimals)
    if not frac:
        return f"{sign}{whole}"
    return f"{sign}{whole}." + f"{frac:0{decimals}d}".rstrip("0")


# ==============================================================================
# Wire types
# ==============================================================================


def _parse_field_element(value: Any) -> int:
    if isinstance(value, str):
        value = from_hex(value)
    return require_field_element(value, "field element")


def _parse_int(value: Any) -> Any:
    if isinstance(value, str):
        return int(value, 0)
    return value


def _parse_hex_bytes(value: Any) -> Any:
    if isinstance(value, str):
        cleaned = value[2:] if value.startswith("0x") else value
        return bytes.fromhex(cleaned)
    return value


FieldElement = Annotated[
    int,
    BeforeValidator(_parse_field_element),
    PlainSerializer(lambda v: to_fixed_hex(v), return_type=str, when_used="json"),
]
"""An element of the BN254 scalar field; 0x-hex in JSON."""

Amount = Annotated[
    int,
    BeforeValidator(_parse_int),
    PlainSerializer(lambda v: str(v), return_type=str, when_used="json"),
]
"""A signed integer amount in base units; a decimal string in JSON."""

HexBytes = Annotated[
    bytes,
    BeforeValidator(_parse_hex_bytes),
    PlainSerializer(lambda v: "0x" + v.hex(), return_type=str, when_used="json"),
]


def calculate_public_amount(ext_amount: int, fee: int) -> int:
    """
    The public amount signal bound into the proof: (ext_amount - fee) mod FIELD_SIZE.

    Negative values (withdrawals) wrap around the field.
    """
    return (ext_amount - fee) % FIELD_SIZE


# ==============================================================================
# Transactions
# ==============================================================================


def _encode_ext_value(value: str | int | bool | bytes | None) -> bytes:
    if value is None:
        raw = b""
    elif isinstance(value, bool):
        raw = b"1" if value else b"0"
    elif isinstance(value, int):
        raw = str(value).encode()
    elif isinstance(value, str):
        raw = value.encode()
    else:
        raw = bytes(value)
    return len(raw).to_bytes(4, "big") + raw


class ExtData(BaseModel):
    """
    External data bound to a proof through `ext_data_hash`.

    ext_amount is signed: positive for deposits, negative for withdrawals,
    zero for purely internal transfers.
    """
    recipient: str | None = None
    ext_amount: Amount = 0
    relayer: str | None = None
    fee: Amount = 0
    encrypted_output1: HexBytes = b""
    encrypted_output2: HexBytes = b""
    is_l1_withdrawal: bool = False
    l1_fee: Amount = 0

    def ext_data_hash(self) -> int:
        """Canonical length-prefixed encoding of every field, hashed into the field."""
        encoded = b"".join(
            _encode_ext_value(value)
            for value in (
                self.recipient,
                self.ext_amount,
                self.relayer,
                self.fee,
                self.encrypted_output1,
                self.encrypted_output2,
                self.is_l1_withdrawal,
                self.l1_fee,
            )
        )
        return hash_bytes_to_field(encoded, DOMAIN_EXT_DATA)

    @property
    def is_deposit(self) -> bool:
        return self.ext_amount > 0

    @property
    def is_withdrawal(self) -> bool:
        return self.ext_amount < 0


class Transaction(BaseModel):
    """A proven shielded transaction, as submitted to the pool."""
    variant: CircuitVariant
    proof: HexBytes
    root: FieldElement
    public_amount: FieldElement
    ext_data_hash: FieldElement
    input_nullifiers: list[FieldElement]
    output_commitments: list[FieldElement]
    ext_data: ExtData

    @property
    def ext_amount(self) -> int:
        return self.ext_data.ext_amount

    @property
    def tx_id(self) -> str:
        """Content hash of the serialized transaction."""
        digest = hashlib.blake2b(self.model_dump_json().encode(), digest_size=32).hexdigest()
        return "0x" + digest

    def public_signals(self) -> PublicSignals:
        return PublicSignals(
            variant=self.variant,
            root=self.root,
            public_amount=self.public_amount,
            ext_data_hash=self.ext_data_hash,
            input_nullifiers=tuple(self.input_nullifiers),
            output_commitments=tuple(self.output_commitments),
        )

    def summary(self) -> str:
        """One-line human-readable description for logs."""
        kind = "deposit" if self.ext_amount > 0 else "withdrawal" if self.ext_amount < 0 else "transfer"
        return (
            f"{self.variant.value} {kind} ext_amount={format_units(self.ext_amount)} "
            f"fee={format_units(self.ext_data.fee)} inputs={len(self.input_nullifiers)}"
        )


class TransactionStatus(str, Enum):
    ACCEPTED = "accepted"
    REJECTED = "rejected"


class TransactionReceipt(BaseModel):
    """Outcome of one submitted transaction."""
    tx_id: str
    status: TransactionStatus
    code: str | None = None
    detail: str | None = None
    leaf_indices: list[int] = Field(default_factory=list)
    root: FieldElement | None = None

    @property
    def accepted(self) -> bool:
        return self.status is TransactionStatus.ACCEPTED


# ==============================================================================
# Events
# ==============================================================================


class NewCommitment(BaseModel):
    """A note commitment was appended; the encrypted opening lets its owner find it."""
    commitment: FieldElement
    index: int
    encrypted_output: HexBytes = b""


class NewNullifier(BaseModel):
    """A note was spent."""
    nullifier: FieldElement


class PublicKeyRegistered(BaseModel):
    """An account published its shielded address."""
    owner: str
    key: str


PoolEvent = Union[NewCommitment, NewNullifier, PublicKeyRegistered]


# ==============================================================================
# Pool state views
# ==============================================================================


class PoolStatus(BaseModel):
    """Read-only summary of the pool."""
    token: str
    root: FieldElement
    tree_height: int
    root_history_size: int
    next_index: int
    capacity: int
    nullifier_count: int
    custody: Amount
    minimum_withdrawal_amount: Amount
    maximum_deposit_amount: Amount

    def to_summary(self) -> str:
        return (
            f"Pool [{self.token}]: {self.next_index}/{self.capacity} leaves, "
            f"{self.nullifier_count} spent, custody {format_units(self.custody)}"
        )


class PoolSnapshot(BaseModel):
    """Complete pool state for export and migration."""
    tree_height: int
    root_history_size: int
    next_index: int
    filled_subtrees: list[FieldElement]
    root_history: list[FieldElement]
    nullifiers: list[FieldElement]
    commitments: list[NewCommitment]
    public_keys: dict[str, str] = Field(default_factory=dict)
    minimum_withdrawal_amount: Amount
    maximum_deposit_amount: Amount
    last_balance: Amount = 0
