"""
shielded_pool.bridge — Token bridge integration.

Provides:
- BridgeAdapter: inbound bridged deposits, outbound L1 releases, rescue fallback
- Bridge messages and the deposit payload codec
- InMemoryBridgeTransport for development and tests
"""

from shielded_pool.bridge.adapter import BridgeAdapter, BridgeTransport
from shielded_pool.bridge.messages import (
    BridgeDepositMessage,
    BridgeReleaseMessage,
    decode_bridge_payload,
    encode_bridge_payload,
)
from shielded_pool.bridge.transport import InMemoryBridgeTransport

__all__ = [
    "BridgeAdapter",
    "BridgeTransport",
    "BridgeDepositMessage",
    "BridgeReleaseMessage",
    "InMemoryBridgeTransport",
    "decode_bridge_payload",
    "encode_bridge_payload",
]
