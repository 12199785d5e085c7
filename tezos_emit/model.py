"""Domain models for Tezos operations.

Operation contents form a closed set of kinds: ``reveal``, ``transaction``,
``origination``, ``delegation`` (manager operations, which carry fee, limits
and a counter) and ``activation``. Integer quantities are kept as ``int`` in
Python and rendered as decimal strings in the node's JSON, which is how the
node expects them.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Any, Callable, ClassVar, Dict, List, Union


@dataclass
class ManagerContent:
    """Fields shared by every counter-bearing operation."""

    kind: ClassVar[str] = ""

    source: str | None = field(default=None, kw_only=True)
    fee: int = field(default=0, kw_only=True)
    gas_limit: int = field(default=0, kw_only=True)
    storage_limit: int = field(default=0, kw_only=True)
    counter: int | None = field(default=None, kw_only=True)

    def _manager_fields(self) -> Dict[str, Any]:
        if self.source is None or self.counter is None:
            raise ValueError(f"{self.kind} content needs a source and a counter before forging")
        return {
            "kind": self.kind,
            "source": self.source,
            "fee": str(self.fee),
            "counter": str(self.counter),
            "gas_limit": str(self.gas_limit),
            "storage_limit": str(self.storage_limit),
        }


@dataclass
class Reveal(ManagerContent):
    kind: ClassVar[str] = "reveal"

    public_key: str = ""

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._manager_fields()
        payload["public_key"] = self.public_key
        return payload


@dataclass
class Transaction(ManagerContent):
    kind: ClassVar[str] = "transaction"

    amount: int = 0
    destination: str = ""
    parameters: Any = None

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._manager_fields()
        payload["amount"] = str(self.amount)
        payload["destination"] = self.destination
        if self.parameters is not None:
            payload["parameters"] = self.parameters
        return payload


@dataclass
class Origination(ManagerContent):
    kind: ClassVar[str] = "origination"

    balance: int = 0
    script: Dict[str, Any] = field(default_factory=dict)
    manager_pubkey: str = ""
    spendable: bool = False
    delegatable: bool = False
    delegate: str | None = None

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._manager_fields()
        payload.update(
            {
                "balance": str(self.balance),
                "manager_pubkey": self.manager_pubkey,
                "spendable": self.spendable,
                "delegatable": self.delegatable,
                "script": self.script,
            }
        )
        if self.delegate:
            payload["delegate"] = self.delegate
        return payload


@dataclass
class Delegation(ManagerContent):
    kind: ClassVar[str] = "delegation"

    delegate: str | None = None

    def to_rpc(self) -> Dict[str, Any]:
        payload = self._manager_fields()
        if self.delegate:
            payload["delegate"] = self.delegate
        return payload


@dataclass
class Activation:
    """Fundraiser account activation; carries no fee and no counter."""

    kind: ClassVar[str] = "activate_account"

    pkh: str
    secret: str

    def to_rpc(self) -> Dict[str, Any]:
        return {"kind": self.kind, "pkh": self.pkh, "secret": self.secret}


OperationContent = Union[Reveal, Transaction, Origination, Delegation, Activation]

_RPC_RENDERERS: Dict[type, Callable[[Any], Dict[str, Any]]] = {
    Reveal: Reveal.to_rpc,
    Transaction: Transaction.to_rpc,
    Origination: Origination.to_rpc,
    Delegation: Delegation.to_rpc,
    Activation: Activation.to_rpc,
}


def content_to_rpc(content: OperationContent) -> Dict[str, Any]:
    """Render one content item as node JSON, refusing unknown kinds."""

    renderer = _RPC_RENDERERS.get(type(content))
    if renderer is None:
        raise TypeError(f"Unsupported operation content: {type(content).__name__}")
    return renderer(content)


@dataclass
class OperationEnvelope:
    """Contents bound to a branch; built fresh for every emission."""

    branch: str
    contents: List[OperationContent]
    source: str
    protocol: str | None = None
    level: int | None = None

    def to_rpc(self) -> Dict[str, Any]:
        return {
            "branch": self.branch,
            "contents": [content_to_rpc(content) for content in self.contents],
        }

    @property
    def counters(self) -> List[int]:
        return [
            content.counter
            for content in self.contents
            if isinstance(content, ManagerContent) and content.counter is not None
        ]


@dataclass
class SignedOperation:
    """Forged bytes with their signature; discarded once injected."""

    bytes: str
    signature: str
    op_hash: str

    @property
    def signed_bytes(self) -> str:
        return self.bytes + self.signature


@dataclass
class ResolvedCounters:
    """Branch and counter block handed out for one envelope."""

    branch: str
    on_chain_counter: int
    counters: List[int]
    protocol: str | None = None
    level: int | None = None
    # counters[0] belongs to a reveal the caller must prepend
    reveal: bool = False
