"""Build, forge, sign and inject Tezos operations."""

from __future__ import annotations

import logging
from dataclasses import replace
from typing import Any, Dict, Iterable, List, Type

from .config import TezosConfig
from .counter import CounterResolver
from .encoding import OPERATION_WATERMARK, b58encode, operation_hash
from .errors import ForgeError, InjectionRejected, SignerError, ValidationError
from .forger import Forger, RpcForger
from .model import ManagerContent, OperationContent, OperationEnvelope, SignedOperation
from .operation import OperationHandle, PollTicker
from .reveal import RevealInjector
from .rpc_client import RPCError, TezosRPCClient, format_rpc_hint
from .signer import Signer, call_signer

logger = logging.getLogger(__name__)

# Any well-formed signature is accepted by run_operation, which skips signature checks.
SIMULATION_SIGNATURE = b58encode(bytes(64), "edsig")

_COUNTER_ERRORS = ("counter_in_the_past", "counter_in_the_future")


class OperationEmitter:
    """Turn operation contents into an injected operation.

    The emitter never retries: a rejected injection is reported with the
    node's errors and the caller decides whether to rebuild and resubmit.
    """

    def __init__(
        self,
        rpc: TezosRPCClient,
        signer: Signer,
        *,
        forger: Forger | None = None,
        resolver: CounterResolver | None = None,
        config: TezosConfig | None = None,
        ticker: PollTicker | None = None,
    ) -> None:
        self.rpc = rpc
        self.signer = signer
        self.forger = forger or RpcForger(rpc)
        self.resolver = resolver or CounterResolver(rpc)
        self.reveal = RevealInjector(rpc, signer)
        self.config = config or TezosConfig()
        self.ticker = ticker

    def close(self) -> None:
        self.resolver.close()

    def public_key_hash(self) -> str:
        return call_signer(self.signer.public_key_hash)

    def prepare_operation(
        self, contents: Iterable[OperationContent], source: str | None = None
    ) -> OperationEnvelope:
        """Bind ``contents`` to a fresh branch and a contiguous block of counters."""

        items: List[OperationContent] = [replace(content) for content in contents]
        if not items:
            raise ValidationError("An operation needs at least one content")
        source = source or self.public_key_hash()

        managers = [content for content in items if isinstance(content, ManagerContent)]
        resolved = self.resolver.resolve(
            source,
            len(managers),
            needs_reveal=lambda: self.reveal.needs_reveal(source, items),
        )
        if resolved.reveal:
            try:
                reveal = self.reveal.build_reveal(source)
            except SignerError:
                self.resolver.release(source, resolved.counters)
                raise
            items.insert(0, reveal)
            managers.insert(0, reveal)
        for content, counter in zip(managers, resolved.counters):
            content.counter = counter
            if content.source is None:
                content.source = source

        logger.info(
            "Prepared %s for %s at counters %s",
            ", ".join(content.kind for content in items),
            source,
            resolved.counters,
        )
        return OperationEnvelope(
            branch=resolved.branch,
            contents=items,
            source=source,
            protocol=resolved.protocol,
            level=resolved.level,
        )

    def forge(self, envelope: OperationEnvelope) -> str:
        return self.forger.forge(envelope)

    def sign(self, forged_bytes: str) -> SignedOperation:
        result = call_signer(self.signer.sign, forged_bytes, OPERATION_WATERMARK)
        if not result.sig:
            raise SignerError("Signer returned an empty signature")
        signed_hex = forged_bytes + result.sig
        return SignedOperation(
            bytes=forged_bytes,
            signature=result.sig,
            op_hash=operation_hash(signed_hex),
        )

    def inject(self, signed: SignedOperation) -> str:
        try:
            op_hash = self.rpc.inject_operation(signed.signed_bytes)
        except RPCError as exc:
            hint = format_rpc_hint(exc)
            logger.error("Node rejected operation %s: %s", signed.op_hash, exc.describe())
            raise InjectionRejected(
                f"Injection rejected by the node: {exc.describe()}", errors=exc.errors, hint=hint
            ) from exc
        if op_hash != signed.op_hash:
            logger.warning("Node returned hash %s, expected %s", op_hash, signed.op_hash)
        logger.info("Injected operation %s", op_hash)
        return op_hash

    def simulate(self, envelope: OperationEnvelope) -> List[Dict[str, Any]]:
        """Dry-run ``envelope`` and return the per-content results."""

        operation = envelope.to_rpc()
        operation["signature"] = SIMULATION_SIGNATURE
        try:
            response = self.rpc.run_operation(operation, self.rpc.get_chain_id())
        except RPCError as exc:
            raise InjectionRejected(
                f"Simulation rejected by the node: {exc.describe()}",
                errors=exc.errors,
                hint=format_rpc_hint(exc),
            ) from exc

        results = response.get("contents", [])
        errors: List[Any] = []
        for content in results:
            outcome = (content.get("metadata") or {}).get("operation_result") or {}
            status = outcome.get("status", "applied")
            if status != "applied":
                errors.extend(outcome.get("errors") or [{"id": f"{content.get('kind')}.{status}"}])
        if errors:
            raise InjectionRejected(
                "Simulation did not apply", errors=errors, hint=format_rpc_hint(errors)
            )
        return results

    def emit(self, envelope: OperationEnvelope) -> str:
        """Forge, sign and inject ``envelope``; return the operation hash."""

        try:
            if self.config.simulate_before_inject:
                self.simulate(envelope)
            forged = self.forge(envelope)
            signed = self.sign(forged)
            return self.inject(signed)
        except InjectionRejected as exc:
            self.resolver.release(envelope.source, envelope.counters)
            if any(error_id.endswith(_COUNTER_ERRORS) for error_id in exc.error_ids):
                self.resolver.forget(envelope.source)
            raise
        except (ForgeError, SignerError):
            self.resolver.release(envelope.source, envelope.counters)
            raise

    def sign_and_inject(
        self,
        envelope: OperationEnvelope,
        handle_cls: Type[OperationHandle] = OperationHandle,
    ) -> OperationHandle:
        op_hash = self.emit(envelope)
        return handle_cls(
            op_hash,
            envelope,
            self.rpc,
            self.config,
            start_level=envelope.level,
            ticker=self.ticker,
        )

    def send(
        self,
        contents: Iterable[OperationContent],
        source: str | None = None,
        handle_cls: Type[OperationHandle] = OperationHandle,
    ) -> OperationHandle:
        envelope = self.prepare_operation(contents, source=source)
        return self.sign_and_inject(envelope, handle_cls=handle_cls)

