"""
In-memory token ledger standing in for the pool's asset custody.

The pool, the bridge and user accounts all hold balances here. The pool's
custody is simply the balance of its own account.
"""

from __future__ import annotations

import logging
import threading
from collections import defaultdict

from shielded_pool.errors import InsufficientBalance, LedgerError

logger = logging.getLogger("shielded_pool.ledger")


class TokenLedger:
    """
    Balances of a single fungible asset, keyed by account name.

    Usage:
        ledger = TokenLedger("WETH")
        ledger.mint("alice", parse_units("1"))
        ledger.transfer("alice", "pool", parse_units("0.08"))
    """

    def __init__(self, token: str = "TOKEN") -> None:
        self.token = token
        self._balances: dict[str, int] = defaultdict(int)
        self._lock = threading.Lock()

    def balance_of(self, account: str) -> int:
        return self._balances.get(account, 0)

    def mint(self, account: str, amount: int) -> None:
        """Credit `amount` new units to `account`."""
        if amount < 0:
            raise LedgerError(f"Cannot mint a negative amount ({amount})")
        with self._lock:
            self._balances[account] += amount
        logger.debug(f"Minted {amount} {self.token} to {account}")

    def transfer(self, sender: str, recipient: str, amount: int) -> None:
        """
        Move `amount` from `sender` to `recipient`.

        Raises:
            LedgerError: If the amount is negative.
            InsufficientBalance: If the sender holds less than `amount`.
        """
        if amount < 0:
            raise LedgerError(f"Cannot transfer a negative amount ({amount})")
        with self._lock:
            balance = self._balances.get(sender, 0)
            if balance < amount:
                raise InsufficientBalance(
                    f"{sender} holds {balance} {self.token}, cannot transfer {amount}"
                )
            self._balances[sender] = balance - amount
            self._balances[recipient] += amount
        logger.debug(f"Transferred {amount} {self.token} {sender} -> {recipient}")

    def total_supply(self) -> int:
        return sum(self._balances.values())
