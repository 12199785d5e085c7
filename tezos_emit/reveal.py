"""Decide when a reveal operation must lead an envelope and build it."""

from __future__ import annotations

import logging
from typing import List

from .fees import REVEAL, defaults
from .model import ManagerContent, OperationContent, Reveal
from .rpc_client import TezosRPCClient
from .signer import Signer, call_signer

logger = logging.getLogger(__name__)


class RevealInjector:
    def __init__(self, rpc: TezosRPCClient, signer: Signer) -> None:
        self.rpc = rpc
        self.signer = signer

    def is_revealed(self, source: str) -> bool:
        return bool(self.rpc.get_manager_key(source))

    def needs_reveal(self, source: str, contents: List[OperationContent]) -> bool:
        """Return True when ``contents`` sent from ``source`` must start with a reveal.

        Only the signer's own account can be revealed, and only manager
        operations require it. Contents that already carry a reveal for
        ``source`` need no other.
        """

        if source != call_signer(self.signer.public_key_hash):
            return False
        if not any(isinstance(content, ManagerContent) for content in contents):
            return False
        if any(isinstance(content, Reveal) and content.source in (None, source) for content in contents):
            return False
        return not self.is_revealed(source)

    def build_reveal(self, source: str) -> Reveal:
        limits = defaults(REVEAL)
        logger.info("Account %s is not revealed; prepending a reveal operation", source)
        return Reveal(
            public_key=call_signer(self.signer.public_key),
            source=source,
            fee=limits.fee,
            gas_limit=limits.gas_limit,
            storage_limit=limits.storage_limit,
        )
