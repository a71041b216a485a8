"""
API module for the shielded pool.

Provides FastAPI routes and models for submitting transactions, receiving
bridged deposits and reading pool state over REST.
"""

from shielded_pool.api.models import (
    BridgeDepositRequest,
    ErrorResponse,
    NullifierStatusResponse,
    TransactRequest,
)

__all__ = [
    "BridgeDepositRequest",
    "ErrorResponse",
    "NullifierStatusResponse",
    "TransactRequest",
]
