"""Forging envelopes into the node's binary wire format."""

from __future__ import annotations

import logging
from typing import Protocol

from .errors import ForgeError
from .model import OperationEnvelope
from .rpc_client import RPCError, RPCTransportError, TezosRPCClient

logger = logging.getLogger(__name__)


class Forger(Protocol):
    def forge(self, envelope: OperationEnvelope) -> str:
        ...


class RpcForger:
    """Delegate forging to the node's ``helpers/forge/operations`` endpoint."""

    def __init__(self, rpc: TezosRPCClient) -> None:
        self.rpc = rpc

    def forge(self, envelope: OperationEnvelope) -> str:
        try:
            payload = envelope.to_rpc()
        except (TypeError, ValueError) as exc:
            raise ForgeError(f"Malformed operation content: {exc}") from exc
        try:
            forged = self.rpc.forge_operations(payload)
        except (RPCError, RPCTransportError) as exc:
            logger.error("Forging failed: %s", exc)
            raise ForgeError(f"Node could not forge the operation: {exc}") from exc
        if not forged:
            raise ForgeError("Node returned empty forged bytes")
        try:
            bytes.fromhex(forged)
        except ValueError as exc:
            raise ForgeError("Node returned forged bytes that are not hex") from exc
        logger.debug("Forged %d contents into %d bytes", len(envelope.contents), len(forged) // 2)
        return forged
