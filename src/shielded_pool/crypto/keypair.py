"""
Shielded keypairs: note ownership, nullifying keys and note encryption.

A Keypair holds one private scalar and derives two public values from it:

    public_key      = field_hash(sp.pubkey, private_key)
                      the value committed into every note the keypair owns
    encryption_key  = e·G on secp256k1, e = Blake2b(private_key) mod N
                      used by senders to encrypt note openings to the owner

Spending a note requires the nullifying key
    field_hash(sp.signature, private_key, commitment, leaf_index)
which only the private-key holder can compute.

Note openings (amount, blinding) are encrypted with a fresh ephemeral
secp256k1 key per note: the ECDH shared secret is expanded with HKDF-SHA256
and used as a ChaCha20-Poly1305 key. The ciphertext layout is
    ephemeral_point (33) || nonce (12) || aead_ciphertext
"""

from __future__ import annotations

import hashlib
import secrets

import ecdsa
import ecdsa.ellipticcurve as ec
from cryptography.exceptions import InvalidTag
from cryptography.hazmat.primitives import hashes
from cryptography.hazmat.primitives.ciphers.aead import ChaCha20Poly1305
from cryptography.hazmat.primitives.kdf.hkdf import HKDF

from shielded_pool.crypto.field import (
    DOMAIN_PUBKEY,
    DOMAIN_SIGNATURE,
    field_hash,
    random_field_element,
    require_field_element,
)

# ==============================================================================
# secp256k1 constants
# ==============================================================================

SECP256K1_P = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEFFFFFC2F
SECP256K1_N = 0xFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFFEBAAEDCE6AF48A03BBFD25E8CD0364141

_CURVE = ecdsa.SECP256k1.curve
_GENERATOR = ecdsa.SECP256k1.generator

_HKDF_INFO = b"shielded-pool note encryption v1"
_NONCE_SIZE = 12
_POINT_SIZE = 33

# Hex length of an address: 32-byte public key + 33-byte compressed point
ADDRESS_HEX_LENGTH = (32 + _POINT_SIZE) * 2


# ==============================================================================
# Point utilities
# ==============================================================================


def decode_point(raw: bytes) -> ec.PointJacobi:
    """
    Decode a 33-byte compressed secp256k1 point.

    Raises:
        ValueError: If the encoding is malformed or the point is not on the curve.
    """
    if len(raw) != _POINT_SIZE:
        raise ValueError(f"Expected {_POINT_SIZE} bytes, got {len(raw)}")
    prefix = raw[0]
    if prefix not in (0x02, 0x03):
        raise ValueError(f"Invalid prefix byte: 0x{prefix:02x}")

    x = int.from_bytes(raw[1:], "big")
    if x >= SECP256K1_P:
        raise ValueError("X coordinate exceeds the field prime")
    y_sq = (pow(x, 3, SECP256K1_P) + 7) % SECP256K1_P
    y = pow(y_sq, (SECP256K1_P + 1) // 4, SECP256K1_P)
    if (y * y) % SECP256K1_P != y_sq:
        raise ValueError(f"X coordinate 0x{x:064x} does not correspond to a curve point")

    if (y % 2 == 0) != (prefix == 0x02):
        y = SECP256K1_P - y
    return ec.PointJacobi(_CURVE, x, y, 1)


def encode_point(pt: ec.AbstractPoint) -> bytes:
    """Encode a secp256k1 point in 33-byte compressed form."""
    if pt == ec.INFINITY:
        raise ValueError("Cannot encode the point at infinity")
    prefix = b"\x02" if pt.y() % 2 == 0 else b"\x03"
    return prefix + pt.x().to_bytes(32, "big")


def _derive_symmetric_key(shared_point: ec.AbstractPoint, ephemeral_bytes: bytes) -> bytes:
    hkdf = HKDF(
        algorithm=hashes.SHA256(),
        length=32,
        salt=ephemeral_bytes,
        info=_HKDF_INFO,
    )
    return hkdf.derive(encode_point(shared_point))


def _encryption_scalar(private_key: int) -> int:
    digest = hashlib.blake2b(private_key.to_bytes(32, "big"), digest_size=32, person=b"sp.enckey").digest()
    scalar = int.from_bytes(digest, "big") % SECP256K1_N
    return scalar or 1


# ==============================================================================
# Keypair
# ==============================================================================


class Keypair:
    """
    Owner identity for shielded notes.

    A keypair built from an address (see `from_address`) only carries the
    public values. It can receive notes but cannot spend or decrypt them.

    Usage:
        alice = Keypair()                       # fresh random keypair
        bob = Keypair.from_address(bob_addr)    # recipient, public only
        ciphertext = bob.encrypt(b"...")
    """

    def __init__(self, private_key: int | None = None) -> None:
        if private_key is None:
            private_key = random_field_element() or 1
        require_field_element(private_key, "private_key")
        if private_key == 0:
            raise ValueError("private_key must be non-zero")

        self.private_key: int | None = private_key
        self.public_key: int = field_hash(DOMAIN_PUBKEY, private_key)
        self._encryption_scalar: int | None = _encryption_scalar(private_key)
        self.encryption_key: bytes = encode_point(self._encryption_scalar * _GENERATOR)

    @classmethod
    def from_address(cls, address: str) -> Keypair:
        """
        Build a public-only keypair from an address string.

        Args:
            address: 130 hex chars (optionally 0x-prefixed): public key || encryption key.

        Raises:
            ValueError: If the address is malformed.
        """
        cleaned = address[2:] if address.startswith("0x") else address
        if len(cleaned) != ADDRESS_HEX_LENGTH:
            raise ValueError(
                f"Invalid address: expected {ADDRESS_HEX_LENGTH} hex chars, got {len(cleaned)}"
            )
        try:
            raw = bytes.fromhex(cleaned)
        except ValueError as err:
            raise ValueError("Invalid address: not valid hex") from err

        public_key = require_field_element(int.from_bytes(raw[:32], "big"), "public_key")
        encryption_key = raw[32:]
        decode_point(encryption_key)

        keypair = cls.__new__(cls)
        keypair.private_key = None
        keypair.public_key = public_key
        keypair._encryption_scalar = None
        keypair.encryption_key = encryption_key
        return keypair

    @property
    def can_spend(self) -> bool:
        """True if this keypair holds the private scalar."""
        return self.private_key is not None

    def address(self) -> str:
        """Shareable address: public key (32 bytes) || compressed encryption key (33 bytes)."""
        return "0x" + self.public_key.to_bytes(32, "big").hex() + self.encryption_key.hex()

    def derive_nullifying_key(self, commitment: int, leaf_index: int) -> int:
        """
        Derive the key that binds a note's nullifier to this owner and position.

        Raises:
            ValueError: If this keypair has no private key.
        """
        if self.private_key is None:
            raise ValueError("Cannot derive a nullifying key without the private key")
        return field_hash(DOMAIN_SIGNATURE, self.private_key, commitment, leaf_index)

    # ------------------------------------------------------------------
    # Note encryption
    # ------------------------------------------------------------------

    def encrypt(self, plaintext: bytes) -> bytes:
        """Encrypt `plaintext` to this keypair's encryption key."""
        ephemeral = secrets.randbelow(SECP256K1_N - 1) + 1
        ephemeral_bytes = encode_point(ephemeral * _GENERATOR)
        shared = ephemeral * decode_point(self.encryption_key)

        key = _derive_symmetric_key(shared, ephemeral_bytes)
        nonce = secrets.token_bytes(_NONCE_SIZE)
        ciphertext = ChaCha20Poly1305(key).encrypt(nonce, plaintext, ephemeral_bytes)
        return ephemeral_bytes + nonce + ciphertext

    def decrypt(self, data: bytes) -> bytes:
        """
        Decrypt data produced by `encrypt`.

        Raises:
            ValueError: If the keypair is public-only, the data is malformed,
                or it was not encrypted to this keypair.
        """
        if self._encryption_scalar is None:
            raise ValueError("Cannot decrypt without the private key")
        if len(data) <= _POINT_SIZE + _NONCE_SIZE:
            raise ValueError("Ciphertext too short")

        ephemeral_bytes = data[:_POINT_SIZE]
        nonce = data[_POINT_SIZE:_POINT_SIZE + _NONCE_SIZE]
        ciphertext = data[_POINT_SIZE + _NONCE_SIZE:]

        shared = self._encryption_scalar * decode_point(ephemeral_bytes)
        key = _derive_symmetric_key(shared, ephemeral_bytes)
        try:
            return ChaCha20Poly1305(key).decrypt(nonce, ciphertext, ephemeral_bytes)
        except InvalidTag as err:
            raise ValueError("Ciphertext was not encrypted to this keypair") from err

    def __eq__(self, other: object) -> bool:
        if not isinstance(other, Keypair):
            return NotImplemented
        return self.public_key == other.public_key and self.encryption_key == other.encryption_key

    def __hash__(self) -> int:
        return hash((self.public_key, self.encryption_key))

    def __repr__(self) -> str:
        kind = "spending" if self.can_spend else "public"
        return f"Keypair({kind}, public_key=0x{self.public_key:064x})"


def generate_keypair() -> Keypair:
    """Create a fresh keypair from the OS CSPRNG."""
    return Keypair()


def derive_nullifying_key(keypair: Keypair, commitment: int, leaf_index: int) -> int:
    """Module-level form of `Keypair.derive_nullifying_key`."""
    return keypair.derive_nullifying_key(commitment, leaf_index)
