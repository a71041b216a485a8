from pydantic import BaseModel, Field

from shielded_pool.core.models import Amount, FieldElement, HexBytes, Transaction


class TransactRequest(BaseModel):
    """
    Request model for submitting a shielded transaction.

    Only transfers and withdrawals are accepted here; deposits enter through the bridge.
    """

    transaction: Transaction = Field(..., description="The proven transaction")


class BridgeDepositRequest(BaseModel):
    """Request model for the bridge callback delivering a deposit."""

    token: str = Field(..., description="Asset the bridge delivered")
    amount: Amount = Field(..., description="Amount delivered, in base units")
    data: HexBytes = Field(..., description="Encoded transaction funded by the deposit")


class NullifierStatusResponse(BaseModel):
    """Response model for a nullifier lookup."""

    nullifier: FieldElement = Field(..., description="The queried nullifier")
    spent: bool = Field(..., description="True if a transaction has spent it")


class ErrorResponse(BaseModel):
    """Body returned for rejected requests."""

    detail: str = Field(..., description="Human-readable reason")
    code: str = Field(..., description="Stable error code, e.g. DOUBLE_SPEND")
