"""Client-side emission and tracking of Tezos operations."""

from .config import ConfigurationError, TezosConfig, load_config
from .contract import Contract, RpcContractProvider
from .counter import AccountLocks, CounterResolver, UnserializedLocks
from .emitter import OperationEmitter
from .errors import (
    ConfirmationCancelled,
    ConfirmationTimeout,
    ForgeError,
    InjectionRejected,
    OperationDropped,
    SignerError,
    TezosEmitError,
    ValidationError,
)
from .model import (
    Activation,
    Delegation,
    OperationEnvelope,
    Origination,
    Reveal,
    SignedOperation,
    Transaction,
)
from .operation import OperationHandle, OperationStatus, OriginationHandle
from .rpc_client import RPCError, RPCTransportError, TezosRPCClient
from .signer import InMemorySigner, Signer
from .units import format_amount, from_mutez, to_mutez

__all__ = [
    "ConfigurationError",
    "TezosConfig",
    "load_config",
    "Contract",
    "RpcContractProvider",
    "AccountLocks",
    "CounterResolver",
    "UnserializedLocks",
    "OperationEmitter",
    "ConfirmationCancelled",
    "ConfirmationTimeout",
    "ForgeError",
    "InjectionRejected",
    "OperationDropped",
    "SignerError",
    "TezosEmitError",
    "ValidationError",
    "Activation",
    "Delegation",
    "OperationEnvelope",
    "Origination",
    "Reveal",
    "SignedOperation",
    "Transaction",
    "OperationHandle",
    "OperationStatus",
    "OriginationHandle",
    "RPCError",
    "RPCTransportError",
    "TezosRPCClient",
    "InMemorySigner",
    "Signer",
    "format_amount",
    "from_mutez",
    "to_mutez",
]
