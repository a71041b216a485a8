"""
Unit tests for pool configuration and the custody ledger.
"""

import pytest

from shielded_pool.core.config import PoolConfig
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.models import parse_units
from shielded_pool.errors import ConfigError, InsufficientBalance, LedgerError


def test_defaults():
    config = PoolConfig()
    config.validate()
    assert config.tree_height == 5
    assert config.root_history_size == 100
    assert config.minimum_withdrawal_amount == parse_units("0.05")
    assert config.maximum_deposit_amount == parse_units("1")


def test_from_env():
    config = PoolConfig.from_env({
        "MERKLE_TREE_HEIGHT": "7",
        "ROOT_HISTORY_SIZE": "30",
        "MINIMUM_WITHDRAWAL_AMOUNT": "0.1",
        "MAXIMUM_DEPOSIT_AMOUNT": "5",
        "POOL_TOKEN": "WETH",
    })
    assert config.tree_height == 7
    assert config.root_history_size == 30
    assert config.minimum_withdrawal_amount == parse_units("0.1")
    assert config.maximum_deposit_amount == parse_units("5")
    assert config.token == "WETH"


def test_from_env_empty_uses_defaults():
    assert PoolConfig.from_env({}) == PoolConfig()


def test_from_env_unparseable():
    with pytest.raises(ConfigError, match="environment"):
        PoolConfig.from_env({"MERKLE_TREE_HEIGHT": "five"})


def test_from_env_out_of_range():
    with pytest.raises(ConfigError, match="tree_height"):
        PoolConfig.from_env({"MERKLE_TREE_HEIGHT": "40"})


def test_validate_rejects_bad_settings():
    with pytest.raises(ConfigError, match="root_history_size"):
        PoolConfig(root_history_size=0).validate()
    with pytest.raises(ConfigError, match="minimum_withdrawal_amount"):
        PoolConfig(minimum_withdrawal_amount=-1).validate()
    with pytest.raises(ConfigError, match="maximum_deposit_amount"):
        PoolConfig(maximum_deposit_amount=2**248).validate()
    with pytest.raises(ConfigError, match="rescue_address"):
        PoolConfig(rescue_address="shielded-pool").validate()


def test_config_error_is_value_error():
    assert issubclass(ConfigError, ValueError)


def test_ledger_transfer():
    ledger = TokenLedger("WETH")
    ledger.mint("alice", 100)
    ledger.transfer("alice", "bob", 40)
    assert ledger.balance_of("alice") == 60
    assert ledger.balance_of("bob") == 40
    assert ledger.total_supply() == 100


def test_ledger_insufficient_balance():
    ledger = TokenLedger()
    ledger.mint("alice", 10)
    with pytest.raises(InsufficientBalance):
        ledger.transfer("alice", "bob", 11)
    assert ledger.balance_of("alice") == 10


def test_ledger_negative_amounts():
    ledger = TokenLedger()
    with pytest.raises(LedgerError):
        ledger.mint("alice", -1)
    with pytest.raises(LedgerError):
        ledger.transfer("alice", "bob", -1)
