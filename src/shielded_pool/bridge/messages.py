"""
Bridge messages and the payload codec carried with bridged deposits.

An inbound deposit arrives as (token, amount, data) where `data` is the
encoded Transaction the depositor built for the bridged funds. Outbound
releases carry the recipient, amount and L1 fee to the other side.
"""

from __future__ import annotations

from pydantic import BaseModel, ValidationError

from shielded_pool.core.models import Amount, HexBytes, Transaction
from shielded_pool.errors import MalformedSignals


class BridgeDepositMessage(BaseModel):
    """Tokens bridged into the pool, with the transaction they fund."""
    token: str
    amount: Amount
    data: HexBytes


class BridgeReleaseMessage(BaseModel):
    """Tokens released from the pool to a recipient on the other side of the bridge."""
    token: str
    recipient: str
    amount: Amount
    l1_fee: Amount = 0


def encode_bridge_payload(tx: Transaction) -> bytes:
    """Serialize a transaction for the bridge's `data` field."""
    return tx.model_dump_json().encode()


def decode_bridge_payload(data: bytes) -> Transaction:
    """
    Parse the `data` field of a bridged deposit.

    Raises:
        MalformedSignals: If the payload is not a valid encoded transaction.
    """
    try:
        return Transaction.model_validate_json(data)
    except ValidationError as err:
        raise MalformedSignals(f"Bridge payload is not a valid transaction: {err.error_count()} errors") from err
