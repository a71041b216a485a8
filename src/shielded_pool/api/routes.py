import secrets

from fastapi import APIRouter, Header, HTTPException, Query, Request

from shielded_pool.api.models import (
    BridgeDepositRequest,
    ErrorResponse,
    NullifierStatusResponse,
    TransactRequest,
)
from shielded_pool.bridge.adapter import BridgeAdapter
from shielded_pool.core.models import NewCommitment, PoolStatus, TransactionReceipt
from shielded_pool.core.pool import ShieldedPool
from shielded_pool.crypto.field import from_hex

router = APIRouter(tags=["Shielded Pool"])

_REJECTION = {409: {"model": ErrorResponse, "description": "Transaction rejected"}}


def get_pool(request: Request) -> ShieldedPool:
    """Dependency to retrieve the initialized ShieldedPool from app state."""
    pool = getattr(request.app.state, "pool", None)
    if pool is None:
        raise HTTPException(status_code=500, detail="Shielded pool not initialized")
    return pool


def get_bridge(request: Request, bridge_key: str | None) -> BridgeAdapter:
    """The bridge adapter, for callers presenting the configured bridge key."""
    bridge = getattr(request.app.state, "bridge", None)
    if bridge is None:
        raise HTTPException(status_code=404, detail="No bridge is attached to this pool")
    expected = getattr(request.app.state, "bridge_key", None)
    if not expected or not bridge_key or not secrets.compare_digest(bridge_key, expected):
        raise HTTPException(status_code=401, detail="Invalid or missing X-Bridge-Key")
    return bridge


@router.get("/pool", response_model=PoolStatus)
async def pool_status(request: Request):
    """Current root, capacity, custody and limits."""
    return get_pool(request).status()


@router.get("/pool/commitments", response_model=list[NewCommitment])
async def list_commitments(request: Request, start: int = Query(0, ge=0)):
    """
    Accumulated commitments with their encrypted openings, in leaf order.
    Use `start` to fetch only leaves at or after that index.
    """
    return get_pool(request).commitment_events()[start:]


@router.get("/pool/nullifiers/{nullifier}", response_model=NullifierStatusResponse)
async def nullifier_status(request: Request, nullifier: str):
    """Whether a nullifier (0x-hex) has been spent."""
    value = from_hex(nullifier)
    return NullifierStatusResponse(nullifier=value, spent=get_pool(request).is_spent(value))


@router.post("/pool/transact", response_model=TransactionReceipt, responses=_REJECTION)
def transact(request: Request, req: TransactRequest):
    """
    Submit a proven transfer or withdrawal.

    Deposits are refused with 403: funds enter the pool only through the bridge.
    Rejections return 409 with the rejection code; nothing about the pool changed.
    """
    if req.transaction.ext_amount > 0:
        raise HTTPException(status_code=403, detail="Deposits are accepted only through the bridge")
    return get_pool(request).transact(req.transaction)


@router.post("/bridge/deposit", response_model=TransactionReceipt, responses=_REJECTION)
def bridge_deposit(
    request: Request,
    req: BridgeDepositRequest,
    x_bridge_key: str | None = Header(None),
):
    """
    Bridge callback for a delivered deposit. The tokens must already be in pool custody.

    Requires the `X-Bridge-Key` header set to the server's bridge key.
    """
    return get_bridge(request, x_bridge_key).on_token_bridged(req.token, req.amount, req.data)
