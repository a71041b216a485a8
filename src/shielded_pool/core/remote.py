"""
RemotePool: HTTP client for a pool served by `shielded_pool.api`.

Implements the same read API as ShieldedPool, so TransactionBuilder and
ShieldedWallet work against a remote pool unchanged.
"""

from __future__ import annotations

from typing import Any

import httpx

from shielded_pool.core.models import NewCommitment, PoolStatus, Transaction, TransactionReceipt
from shielded_pool.crypto.field import to_fixed_hex
from shielded_pool.errors import ADMISSION_ERRORS, AdmissionError, ShieldedPoolError

DEFAULT_POOL_URL = "http://127.0.0.1:8000"


class RemotePoolError(ShieldedPoolError):
    """Raised when the pool API returns an unexpected error."""
    code = "REMOTE_POOL_ERROR"


class RemotePool:
    """
    Synchronous client for the pool REST API.

    Usage:
        pool = RemotePool("http://localhost:8000")
        builder = TransactionBuilder(pool, prover)
        receipt = pool.submit(builder.prepare_transaction(inputs=[note], recipient="bob"))
    """

    def __init__(
        self,
        base_url: str = DEFAULT_POOL_URL,
        client: httpx.Client | None = None,
        timeout: float = 15.0,
    ) -> None:
        self.base_url = base_url.rstrip("/")
        self._client = client or httpx.Client(
            headers={"Content-Type": "application/json"},
            timeout=timeout,
        )

    def close(self) -> None:
        self._client.close()

    # ------------------------------------------------------------------
    # Read API
    # ------------------------------------------------------------------

    def status(self) -> PoolStatus:
        return PoolStatus.model_validate(self._get("/pool"))

    def current_root(self) -> int:
        return self.status().root

    def commitment_events(self) -> list[NewCommitment]:
        return [NewCommitment.model_validate(item) for item in self._get("/pool/commitments")]

    def commitments(self) -> list[int]:
        return [event.commitment for event in self.commitment_events()]

    def is_spent(self, nullifier: int) -> bool:
        data = self._get(f"/pool/nullifiers/{to_fixed_hex(nullifier)}")
        return bool(data["spent"])

    # ------------------------------------------------------------------
    # Submission
    # ------------------------------------------------------------------

    def submit(self, tx: Transaction) -> TransactionReceipt:
        """
        Submit a transfer or withdrawal. Deposits enter the pool through the bridge.

        Raises:
            AdmissionError: The pool rejected it (the matching subclass for its code).
            RemotePoolError: Any other API failure.
        """
        payload = {"transaction": tx.model_dump(mode="json")}
        return TransactionReceipt.model_validate(self._post("/pool/transact", payload))

    # ------------------------------------------------------------------
    # HTTP helpers
    # ------------------------------------------------------------------

    def _get(self, path: str) -> Any:
        url = f"{self.base_url}{path}"
        return self._handle(self._client.get(url), url)

    def _post(self, path: str, payload: dict[str, Any]) -> Any:
        url = f"{self.base_url}{path}"
        return self._handle(self._client.post(url, json=payload), url)

    @staticmethod
    def _handle(response: httpx.Response, url: str) -> Any:
        if response.status_code == 409:
            body = response.json()
            error_cls = ADMISSION_ERRORS.get(body.get("code"), AdmissionError)
            raise error_cls(body.get("detail", "Transaction rejected"))
        if response.status_code != 200:
            raise RemotePoolError(f"API error {response.status_code} for {url}: {response.text}")
        return response.json()
