"""
Bridge adapter: inbound bridged deposits and outbound L1 releases.

Inbound, the bridge first transfers tokens to the pool's custody account and
then calls `on_token_bridged(token, amount, data)`. The adapter checks the
token and the amount actually delivered, decodes the transaction and hands
it to the pool as an already-delivered deposit.

The callback runs under the pool's mutation lock. Delivered funds are the
custody not yet backed by any note (custody - last_balance), and each
callback claims at most its declared amount of it, so deliveries that land
before their callbacks run are attributed one by one. If anything rejects
the deposit, the claimed funds are moved to the configured rescue account
and the error is re-raised. When the bridge reports that it sent more than
it declared, the surplus is rescued as well, so the pool never holds custody
that no note accounts for.

Outbound releases are fire-and-forget: a release the transport fails to
send is kept in `outbox` and retried by `redeliver()`.
"""

from __future__ import annotations

import logging
from typing import TYPE_CHECKING, Protocol

from shielded_pool.bridge.messages import BridgeReleaseMessage, decode_bridge_payload
from shielded_pool.core.models import TransactionReceipt, format_units
from shielded_pool.errors import BridgeAmountMismatch, ShieldedPoolError, UnsupportedToken

if TYPE_CHECKING:
    from shielded_pool.core.pool import ShieldedPool

logger = logging.getLogger("shielded_pool.bridge")


class BridgeTransport(Protocol):
    """Carries release messages to the other side of the bridge."""

    address: str

    def send(self, message: BridgeReleaseMessage) -> None:
        ...


class BridgeAdapter:
    """
    Connects a ShieldedPool to a token bridge.

    Args:
        pool: The pool receiving deposits and issuing releases.
        transport: Outbound message channel; its `address` is the bridge's ledger account.
    """

    def __init__(self, pool: ShieldedPool, transport: BridgeTransport) -> None:
        self.pool = pool
        self.ledger = pool.ledger
        self.transport = transport
        self.outbox: list[BridgeReleaseMessage] = []
        pool.attach_bridge(self)

    # ------------------------------------------------------------------
    # Inbound
    # ------------------------------------------------------------------

    def on_token_bridged(
        self,
        token: str,
        amount: int,
        data: bytes,
        delivered: int | None = None,
    ) -> TransactionReceipt:
        """
        Handle a bridged deposit. The tokens must already be in pool custody.

        Args:
            token: Asset the bridge delivered.
            amount: Amount the bridge declares it delivered.
            data: Encoded transaction funded by the deposit.
            delivered: Tokens the bridge actually transferred for this deposit,
                       when it knows. Anything above `amount` is rescued.

        Returns:
            The pool's receipt for the admitted transaction.

        Raises:
            UnsupportedToken: The asset is not the pool's.
            BridgeAmountMismatch: `amount` differs from the transaction's ext_amount,
                or less than `amount` actually arrived.
            AdmissionError: The pool rejected the transaction.
        """
        if token != self.pool.config.token:
            logger.info(f"Rejected bridged deposit of unsupported token {token}")
            raise UnsupportedToken(f"Pool holds {self.pool.config.token}, bridge delivered {token}")

        with self.pool.mutation_lock:
            unaccounted = self.pool.unaccounted_custody()
            claimed = min(unaccounted, amount)
            surplus = 0
            if delivered is not None:
                surplus = min(max(0, delivered - amount), unaccounted - claimed)

            try:
                tx = decode_bridge_payload(data)
                if amount != tx.ext_amount:
                    raise BridgeAmountMismatch(
                        f"Bridged amount {amount} does not match the transaction amount {tx.ext_amount}"
                    )
                if claimed < amount:
                    raise BridgeAmountMismatch(f"Bridge did not send enough tokens: {claimed} < {amount}")
                receipt = self.pool.transact(tx, deposit_delivered=True)
            except ShieldedPoolError as err:
                self._rescue(claimed + surplus, f"Bridged deposit rejected ({err.code})")
                raise

            self._rescue(surplus, "Bridge sent more than it declared")

        logger.info(f"Bridged deposit of {format_units(amount)} {token} admitted")
        return receipt

    def _rescue(self, amount: int, reason: str) -> None:
        if amount <= 0:
            return
        rescue_address = self.pool.config.rescue_address
        self.ledger.transfer(self.pool.config.pool_address, rescue_address, amount)
        logger.warning(
            f"{reason}; routed {format_units(amount)} {self.pool.config.token} to {rescue_address}"
        )

    # ------------------------------------------------------------------
    # Outbound
    # ------------------------------------------------------------------

    def release(self, recipient: str, amount: int, l1_fee: int = 0) -> None:
        """
        Move `amount` from custody to the bridge and emit a release message.

        Fire-and-forget: delivery on the other side is the bridge's concern.
        A message the transport fails to send stays in `outbox`.
        """
        self.ledger.transfer(self.pool.config.pool_address, self.transport.address, amount)
        message = BridgeReleaseMessage(
            token=self.pool.config.token,
            recipient=recipient,
            amount=amount,
            l1_fee=l1_fee,
        )
        if self._send(message):
            logger.info(f"Released {format_units(amount)} to {recipient} via bridge (l1_fee={l1_fee})")
        else:
            self.outbox.append(message)

    def redeliver(self) -> int:
        """
        Retry every release in `outbox`, oldest first.

        Returns:
            The number of messages sent; the rest stay queued.
        """
        with self.pool.mutation_lock:
            pending, self.outbox = self.outbox, []
            sent = 0
            for message in pending:
                if self._send(message):
                    sent += 1
                else:
                    self.outbox.append(message)
        if sent:
            logger.info(f"Redelivered {sent} bridge releases, {len(self.outbox)} still queued")
        return sent

    def _send(self, message: BridgeReleaseMessage) -> bool:
        try:
            self.transport.send(message)
        except Exception as e:
            logger.warning(
                f"Bridge release of {format_units(message.amount)} to {message.recipient} not sent: {e}; queued"
            )
            return False
        return True
