"""
Deployment configuration for a shielded pool.

Amount bounds are read from the environment as decimal token strings
("0.05"), the same way the deployment scripts pass them.
"""

from __future__ import annotations

import os
from dataclasses import dataclass

from shielded_pool.core.merkle import DEFAULT_ROOT_HISTORY_SIZE, DEFAULT_TREE_HEIGHT, MAX_TREE_HEIGHT
from shielded_pool.core.models import WEI_PER_TOKEN, format_units, parse_units
from shielded_pool.crypto.field import MAX_AMOUNT
from shielded_pool.errors import ConfigError

DEFAULT_MINIMUM_WITHDRAWAL = WEI_PER_TOKEN * 5 // 100  # 0.05 token
DEFAULT_MAXIMUM_DEPOSIT = WEI_PER_TOKEN  # 1 token


@dataclass
class PoolConfig:
    """
    Configuration for one pool deployment.

    Args:
        tree_height:               Accumulator height; capacity is 2**tree_height leaves.
                                   Fixed for the lifetime of the deployment.
        root_history_size:         How many recent roots stay valid for proofs.
        minimum_withdrawal_amount: Smallest withdrawal in base units (inclusive).
        maximum_deposit_amount:    Largest deposit in base units (inclusive).
        token:                     Asset identifier the pool holds.
        pool_address:              Ledger account holding pool custody.
        rescue_address:            Ledger account receiving bridged funds whose
                                   accompanying transaction was rejected.
    """
    tree_height: int = DEFAULT_TREE_HEIGHT
    root_history_size: int = DEFAULT_ROOT_HISTORY_SIZE
    minimum_withdrawal_amount: int = DEFAULT_MINIMUM_WITHDRAWAL
    maximum_deposit_amount: int = DEFAULT_MAXIMUM_DEPOSIT
    token: str = "TOKEN"
    pool_address: str = "shielded-pool"
    rescue_address: str = "rescue-multisig"

    @classmethod
    def from_env(cls, environ: dict[str, str] | None = None) -> PoolConfig:
        """
        Build a config from environment variables, falling back to defaults.

        Raises:
            ConfigError: If a variable cannot be parsed or the result is invalid.
        """
        env = os.environ if environ is None else environ
        try:
            config = cls(
                tree_height=int(env.get("MERKLE_TREE_HEIGHT", DEFAULT_TREE_HEIGHT)),
                root_history_size=int(env.get("ROOT_HISTORY_SIZE", DEFAULT_ROOT_HISTORY_SIZE)),
                minimum_withdrawal_amount=parse_units(
                    env.get("MINIMUM_WITHDRAWAL_AMOUNT", format_units(DEFAULT_MINIMUM_WITHDRAWAL))
                ),
                maximum_deposit_amount=parse_units(
                    env.get("MAXIMUM_DEPOSIT_AMOUNT", format_units(DEFAULT_MAXIMUM_DEPOSIT))
                ),
                token=env.get("POOL_TOKEN", "TOKEN"),
                pool_address=env.get("POOL_ADDRESS", "shielded-pool"),
                rescue_address=env.get("RESCUE_ADDRESS", "rescue-multisig"),
            )
        except ValueError as err:
            raise ConfigError(f"Invalid pool configuration in environment: {err}") from err
        config.validate()
        return config

    def validate(self) -> None:
        """Raise ConfigError if any setting is out of range."""
        if not 1 <= self.tree_height <= MAX_TREE_HEIGHT:
            raise ConfigError(f"tree_height must be in [1, {MAX_TREE_HEIGHT}], got {self.tree_height}")
        if self.root_history_size < 1:
            raise ConfigError(f"root_history_size must be positive, got {self.root_history_size}")
        validate_limits(self.minimum_withdrawal_amount, self.maximum_deposit_amount)
        if not self.token:
            raise ConfigError("token must not be empty")
        if self.pool_address == self.rescue_address:
            raise ConfigError("rescue_address must differ from pool_address")


def validate_limits(minimum_withdrawal: int, maximum_deposit: int) -> None:
    """Raise ConfigError unless both bounds are non-negative and below the 248-bit range."""
    for label, value in (("minimum_withdrawal_amount", minimum_withdrawal), ("maximum_deposit_amount", maximum_deposit)):
        if not 0 <= value < MAX_AMOUNT:
            raise ConfigError(f"{label} must be in [0, 2**248), got {value}")
