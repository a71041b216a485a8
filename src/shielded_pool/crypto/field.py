"""
Field arithmetic and domain-separated hashing for the shielded pool.

Every value that crosses the prover/verifier boundary is an element of the
BN254 scalar field. All protocol hashing goes through `field_hash`, a
Blake2b256 digest reduced into the field. Blake2b's 16-byte personalization
string is used as the domain separator, so a commitment can never collide
with a Merkle node or a nullifier even when the inputs coincide.

Hash domains:
    sp.pubkey          public key            = H(private_key)
    sp.commitment      note commitment       = H(amount, public_key, blinding)
    sp.signature       nullifying key        = H(private_key, commitment, index)
    sp.nullifier       nullifier             = H(commitment, index, nullifying_key)
    sp.merkle.node     Merkle node           = H(left, right)
    sp.extdata         external data hash    = H(canonical ext data bytes)

The prover circuit MUST use exactly these encodings. Changing any domain
string or operand order changes every root and nullifier.
"""

from __future__ import annotations

import hashlib
import secrets

# ==============================================================================
# Field constants
# ==============================================================================

# BN254 (alt_bn128) scalar field modulus
FIELD_SIZE = 21888242871839275222246405745257275088548364400416034343698204186575808495617

# Note amounts and blindings are range-checked to 248 bits inside the circuit
MAX_AMOUNT_BITS = 248
MAX_AMOUNT = 2**MAX_AMOUNT_BITS

DOMAIN_PUBKEY = b"sp.pubkey"
DOMAIN_COMMITMENT = b"sp.commitment"
DOMAIN_SIGNATURE = b"sp.signature"
DOMAIN_NULLIFIER = b"sp.nullifier"
DOMAIN_MERKLE_NODE = b"sp.merkle.node"
DOMAIN_EXT_DATA = b"sp.extdata"


# ==============================================================================
# Encoding helpers
# ==============================================================================


def to_fixed_hex(value: int, length: int = 32) -> str:
    """
    Encode a non-negative integer as a 0x-prefixed, zero-padded hex string.

    Args:
        value: Integer to encode.
        length: Width in bytes (default 32).

    Returns:
        "0x" followed by exactly 2*length hex characters.

    Raises:
        ValueError: If the value is negative or does not fit.
    """
    if value < 0:
        raise ValueError(f"Cannot encode negative value {value}")
    if value.bit_length() > length * 8:
        raise ValueError(f"Value does not fit in {length} bytes")
    return "0x" + value.to_bytes(length, "big").hex()


def from_hex(hex_str: str) -> int:
    """Parse a hex string (with or without 0x prefix) into an integer."""
    if not isinstance(hex_str, str):
        raise ValueError(f"Expected hex string, got {type(hex_str)}")
    cleaned = hex_str[2:] if hex_str.startswith(("0x", "0X")) else hex_str
    if not cleaned:
        raise ValueError("Empty hex string")
    return int(cleaned, 16)


def require_field_element(value: int, label: str = "value") -> int:
    """Raise ValueError unless `value` is an integer in [0, FIELD_SIZE)."""
    if not isinstance(value, int) or isinstance(value, bool):
        raise ValueError(f"{label} must be an integer, got {type(value)}")
    if value < 0 or value >= FIELD_SIZE:
        raise ValueError(f"{label} is outside the scalar field")
    return value


def random_field_element() -> int:
    """
    Draw a uniformly random 31-byte value from the OS CSPRNG.

    31 bytes keeps the value below 2^248, inside the field and inside the
    circuit's range checks. Used for blindings and private keys.
    """
    return int.from_bytes(secrets.token_bytes(31), "big")


# ==============================================================================
# Hashing
# ==============================================================================


def _blake2b256(data: bytes, domain: bytes) -> bytes:
    if len(domain) > 16:
        raise ValueError(f"Hash domain must be at most 16 bytes, got {len(domain)}")
    return hashlib.blake2b(data, digest_size=32, person=domain).digest()


def hash_bytes_to_field(data: bytes, domain: bytes) -> int:
    """Hash arbitrary bytes under a domain and reduce into the field."""
    return int.from_bytes(_blake2b256(data, domain), "big") % FIELD_SIZE


def field_hash(domain: bytes, *elements: int) -> int:
    """
    Hash a sequence of field elements under a domain separator.

    Each element is encoded as 32 big-endian bytes, in the given order.

    Args:
        domain: Personalization string (<= 16 bytes), one of the DOMAIN_* constants.
        *elements: Field elements in [0, FIELD_SIZE).

    Returns:
        The digest reduced mod FIELD_SIZE.

    Raises:
        ValueError: If any element is outside the field.
    """
    encoded = b"".join(
        require_field_element(e, f"element {i}").to_bytes(32, "big")
        for i, e in enumerate(elements)
    )
    return hash_bytes_to_field(encoded, domain)


def hash_left_right(left: int, right: int) -> int:
    """
    The two-to-one compression used for every Merkle node.

    Operand order is significant: H(left, right) != H(right, left).
    """
    return field_hash(DOMAIN_MERKLE_NODE, left, right)


# Empty-leaf value. Nobody knows a preimage, so an empty slot can never be
# opened as a note.
ZERO_VALUE = int.from_bytes(hashlib.blake2b(b"shielded-pool", digest_size=32).digest(), "big") % FIELD_SIZE
