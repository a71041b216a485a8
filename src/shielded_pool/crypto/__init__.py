"""
shielded_pool.crypto — Cryptographic primitives for the shielded pool.

Provides:
- BN254 scalar field constants and domain-separated Blake2b field hashing
- The Merkle two-to-one compression `hash_left_right`
- Keypairs: public key, nullifying key and ECDH note encryption
"""

from shielded_pool.crypto.field import (
    FIELD_SIZE,
    MAX_AMOUNT,
    ZERO_VALUE,
    field_hash,
    from_hex,
    hash_left_right,
    random_field_element,
    to_fixed_hex,
)
from shielded_pool.crypto.keypair import (
    Keypair,
    derive_nullifying_key,
    generate_keypair,
)

__all__ = [
    # Field
    "FIELD_SIZE",
    "MAX_AMOUNT",
    "ZERO_VALUE",
    "field_hash",
    "from_hex",
    "hash_left_right",
    "random_field_element",
    "to_fixed_hex",
    # Keypair
    "Keypair",
    "derive_nullifying_key",
    "generate_keypair",
]
