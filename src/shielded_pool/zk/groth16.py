"""
Groth16 verification over BN254 for circuits compiled with snarkjs.

A proof (A, B, C) is valid for public signals s_1..s_n iff

    e(A, B) == e(alpha, beta) * e(vk_x, gamma) * e(C, delta)
    vk_x    =  IC[0] + sum(s_i * IC[i])

Verification keys are the JSON files emitted by `snarkjs zkey export
verificationkey`. Proofs are passed as 256 bytes:

    A.x | A.y | B.x.c0 | B.x.c1 | B.y.c0 | B.y.c1 | C.x | C.y

each a 32-byte big-endian integer. `encode_proof` builds this layout from a
snarkjs proof.json.
"""

from __future__ import annotations

import json
import logging
from dataclasses import dataclass
from pathlib import Path
from typing import Any, Mapping, Sequence

from py_ecc.bn128 import FQ, FQ2, add, b, b2, curve_order, field_modulus, is_on_curve, multiply, pairing

from shielded_pool.zk.circuits import CircuitVariant

logger = logging.getLogger("shielded_pool.groth16")

PROOF_SIZE = 256
_WORD = 32


# ==============================================================================
# Point parsing
# ==============================================================================


def _coordinate(value: Any) -> int:
    coord = int(value)
    if not 0 <= coord < field_modulus:
        raise ValueError("Coordinate is outside the base field")
    return coord


def parse_g1(coords: Sequence[Any]) -> tuple[FQ, FQ] | None:
    """Parse a snarkjs G1 point [x, y, z]; z == 0 is the point at infinity."""
    if len(coords) == 3 and int(coords[2]) == 0:
        return None
    point = (FQ(_coordinate(coords[0])), FQ(_coordinate(coords[1])))
    if not is_on_curve(point, b):
        raise ValueError("G1 point is not on the curve")
    return point


def parse_g2(coords: Sequence[Sequence[Any]]) -> tuple[FQ2, FQ2] | None:
    """Parse a snarkjs G2 point [[x.c0, x.c1], [y.c0, y.c1], [z.c0, z.c1]]."""
    if len(coords) == 3 and int(coords[2][0]) == 0 and int(coords[2][1]) == 0:
        return None
    x = FQ2([_coordinate(coords[0][0]), _coordinate(coords[0][1])])
    y = FQ2([_coordinate(coords[1][0]), _coordinate(coords[1][1])])
    point = (x, y)
    if not is_on_curve(point, b2):
        raise ValueError("G2 point is not on the curve")
    return point


@dataclass(frozen=True)
class VerificationKey:
    """A parsed Groth16 verification key."""
    alpha_1: Any
    beta_2: Any
    gamma_2: Any
    delta_2: Any
    ic: tuple[Any, ...]

    @property
    def n_public(self) -> int:
        return len(self.ic) - 1

    @classmethod
    def from_snarkjs(cls, data: Mapping[str, Any]) -> VerificationKey:
        """
        Parse a snarkjs verification key dictionary.

        Raises:
            ValueError: If the key is not a BN254 Groth16 key or a point is invalid.
        """
        protocol = data.get("protocol", "groth16")
        if protocol != "groth16":
            raise ValueError(f"Unsupported proof protocol '{protocol}'")
        curve = data.get("curve", "bn128")
        if curve not in ("bn128", "bn254"):
            raise ValueError(f"Unsupported curve '{curve}'")
        try:
            return cls(
                alpha_1=parse_g1(data["vk_alpha_1"]),
                beta_2=parse_g2(data["vk_beta_2"]),
                gamma_2=parse_g2(data["vk_gamma_2"]),
                delta_2=parse_g2(data["vk_delta_2"]),
                ic=tuple(parse_g1(point) for point in data["IC"]),
            )
        except KeyError as err:
            raise ValueError(f"Verification key is missing {err}") from err

    @classmethod
    def load(cls, path: str | Path) -> VerificationKey:
        with open(path) as f:
            return cls.from_snarkjs(json.load(f))


# ==============================================================================
# Proof encoding
# ==============================================================================


def encode_proof(proof: Mapping[str, Any]) -> bytes:
    """Pack a snarkjs proof.json ({pi_a, pi_b, pi_c}) into the 256-byte layout."""
    pi_a, pi_b, pi_c = proof["pi_a"], proof["pi_b"], proof["pi_c"]
    words = [
        pi_a[0], pi_a[1],
        pi_b[0][0], pi_b[0][1], pi_b[1][0], pi_b[1][1],
        pi_c[0], pi_c[1],
    ]
    return b"".join(_coordinate(w).to_bytes(_WORD, "big") for w in words)


def decode_proof(data: bytes) -> tuple[Any, Any, Any]:
    """
    Unpack and validate the 256-byte proof layout into (A, B, C).

    Raises:
        ValueError: On wrong length or a point that is not on its curve.
    """
    if len(data) != PROOF_SIZE:
        raise ValueError(f"Groth16 proof must be {PROOF_SIZE} bytes, got {len(data)}")
    w = [int.from_bytes(data[i:i + _WORD], "big") for i in range(0, PROOF_SIZE, _WORD)]
    a = parse_g1([w[0], w[1]])
    b_point = parse_g2([[w[2], w[3]], [w[4], w[5]]])
    c = parse_g1([w[6], w[7]])
    return a, b_point, c


# ==============================================================================
# Verifier
# ==============================================================================


class Groth16Verifier:
    """
    Pairing-based verifier with one verification key per circuit variant.

    Usage:
        verifier = Groth16Verifier.from_files({
            CircuitVariant.TWO_INPUT: "artifacts/transaction2.vkey.json",
            CircuitVariant.SIXTEEN_INPUT: "artifacts/transaction16.vkey.json",
        })
        adapter = VerifierAdapter(verifier)
    """

    def __init__(self, keys: Mapping[CircuitVariant, VerificationKey]) -> None:
        for variant, key in keys.items():
            if key.n_public != variant.signal_count:
                raise ValueError(
                    f"{variant.value} key has {key.n_public} public inputs, "
                    f"expected {variant.signal_count}"
                )
        self._keys = dict(keys)

    @classmethod
    def from_files(cls, paths: Mapping[CircuitVariant, str | Path]) -> Groth16Verifier:
        return cls({variant: VerificationKey.load(path) for variant, path in paths.items()})

    def verify_proof(self, variant: CircuitVariant, proof: bytes, signals: Sequence[int]) -> bool:
        key = self._keys.get(variant)
        if key is None:
            raise ValueError(f"No verification key loaded for {variant.value}")
        if len(signals) != key.n_public:
            return False
        if any(not 0 <= s < curve_order for s in signals):
            return False

        a, b_point, c = decode_proof(proof)

        vk_x = key.ic[0]
        for signal, ic_point in zip(signals, key.ic[1:]):
            vk_x = add(vk_x, multiply(ic_point, signal))

        lhs = pairing(b_point, a)
        rhs = pairing(key.beta_2, key.alpha_1) * pairing(key.gamma_2, vk_x) * pairing(key.delta_2, c)
        valid = lhs == rhs
        logger.debug(f"Groth16 {variant.value} pairing check: {valid}")
        return valid
