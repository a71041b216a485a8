"""
In-memory bridge used in development and tests.

It plays both roles of a real token bridge on a single TokenLedger:
`execute` delivers tokens to the pool and calls the adapter, the way the
bridge does on deposit; `send` receives release messages and pays the
recipient out of the bridge account.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING

from shielded_pool.bridge.messages import BridgeDepositMessage, BridgeReleaseMessage
from shielded_pool.core.ledger import TokenLedger
from shielded_pool.core.models import TransactionReceipt

if TYPE_CHECKING:
    from shielded_pool.bridge.adapter import BridgeAdapter

logger = logging.getLogger("shielded_pool.bridge.transport")


class InMemoryBridgeTransport:
    """
    Args:
        ledger: Shared token ledger.
        address: The bridge's own ledger account.
        l1_fee_collector: Account credited with the L1 fee of each release.
        auto_deliver: Pay out releases immediately instead of only recording them.
    """

    def __init__(
        self,
        ledger: TokenLedger,
        address: str = "omnibridge",
        l1_fee_collector: str = "l1-unwrapper",
        auto_deliver: bool = True,
    ) -> None:
        self.ledger = ledger
        self.address = address
        self.l1_fee_collector = l1_fee_collector
        self.auto_deliver = auto_deliver
        self.inbound: list[BridgeDepositMessage] = []
        self.outbound: list[BridgeReleaseMessage] = []

    def execute(
        self,
        adapter: BridgeAdapter,
        token: str,
        amount: int,
        data: bytes,
        delivered: int | None = None,
    ) -> TransactionReceipt:
        """
        Emulate a bridged deposit: send tokens from the bridge to the pool, then call back.

        The transfer and the callback happen under the pool's mutation lock,
        as one step for every other pool user.

        Args:
            adapter: The pool's bridge adapter.
            token: Declared asset.
            amount: Declared amount passed to the callback.
            data: Encoded transaction.
            delivered: Tokens actually transferred (defaults to `amount`).
        """
        delivered = amount if delivered is None else delivered
        self.inbound.append(BridgeDepositMessage(token=token, amount=amount, data=data))
        with adapter.pool.mutation_lock:
            if delivered:
                self.ledger.transfer(self.address, adapter.pool.config.pool_address, delivered)
            return adapter.on_token_bridged(token, amount, data, delivered=delivered)

    def send(self, message: BridgeReleaseMessage) -> None:
        self.outbound.append(message)
        logger.debug(f"Bridge release queued: {message.amount} to {message.recipient}")
        if self.auto_deliver:
            self.deliver(message)

    def deliver(self, message: BridgeReleaseMessage) -> None:
        """Pay a release out of the bridge account, minus its L1 fee."""
        self.ledger.transfer(self.address, message.recipient, message.amount - message.l1_fee)
        if message.l1_fee:
            self.ledger.transfer(self.address, self.l1_fee_collector, message.l1_fee)
