"""Public operations: transfers, delegations, originations and contract access."""

from __future__ import annotations

import logging
from decimal import Decimal
from typing import Any, Dict, Iterable, List

from .config import TezosConfig
from .counter import CounterResolver
from .emitter import OperationEmitter
from .errors import ValidationError
from .fees import DELEGATION, ORIGINATION, TRANSACTION, resolve_limits
from .forger import Forger
from .michelson import parse_michelson, parse_sexp
from .model import Activation, Delegation, OperationContent, Origination, Transaction
from .operation import OperationHandle, OriginationHandle, PollTicker
from .rpc_client import TezosRPCClient
from .schema import ParameterSchema, Schema
from .signer import Signer
from .units import to_mutez

logger = logging.getLogger(__name__)

Amount = str | int | float | Decimal


def _schema_for(script_or_schema: Any) -> Schema:
    if isinstance(script_or_schema, Schema):
        return script_or_schema
    return Schema.from_rpc_response(script_or_schema)


def build_transaction(
    to: str,
    amount: Amount,
    *,
    parameter: Any = None,
    fee: int | None = None,
    gas_limit: int | None = None,
    storage_limit: int | None = None,
    mutez: bool = False,
    raw_param: bool = False,
    source: str | None = None,
) -> Transaction:
    """Build a ``transaction`` content; ``amount`` is tez unless ``mutez`` is set."""

    if not to:
        raise ValidationError("A transfer needs a destination")
    limits = resolve_limits(TRANSACTION, fee=fee, gas_limit=gas_limit, storage_limit=storage_limit)
    if mutez:
        value = to_mutez(amount, unit="mutez")
    else:
        value = to_mutez(amount)
    parameters = None
    if parameter:
        parameters = parameter if raw_param else parse_sexp(parameter)
    return Transaction(
        amount=value,
        destination=to,
        parameters=parameters,
        source=source,
        fee=limits.fee,
        gas_limit=limits.gas_limit,
        storage_limit=limits.storage_limit,
    )


def build_origination(
    code: str | List[Any],
    init: str | Dict[str, Any] | List[Any],
    manager: str,
    *,
    balance: Amount = "0",
    spendable: bool = False,
    delegatable: bool = False,
    delegate: str | None = None,
    fee: int | None = None,
    gas_limit: int | None = None,
    storage_limit: int | None = None,
) -> Origination:
    """Build an ``origination`` content from structured or textual code and storage."""

    limits = resolve_limits(ORIGINATION, fee=fee, gas_limit=gas_limit, storage_limit=storage_limit)
    script = {
        "code": code if isinstance(code, list) else parse_michelson(code),
        "storage": init if isinstance(init, (dict, list)) else parse_sexp(init),
    }
    return Origination(
        balance=to_mutez(balance),
        script=script,
        manager_pubkey=manager,
        spendable=spendable,
        delegatable=delegatable,
        delegate=delegate or None,
        fee=limits.fee,
        gas_limit=limits.gas_limit,
        storage_limit=limits.storage_limit,
    )


def build_delegation(
    delegate: str | None,
    *,
    source: str | None = None,
    fee: int | None = None,
    gas_limit: int | None = None,
    storage_limit: int | None = None,
) -> Delegation:
    limits = resolve_limits(DELEGATION, fee=fee, gas_limit=gas_limit, storage_limit=storage_limit)
    return Delegation(
        delegate=delegate,
        source=source,
        fee=limits.fee,
        gas_limit=limits.gas_limit,
        storage_limit=limits.storage_limit,
    )


class RpcContractProvider:
    """Entry point for every public operation, backed by a node RPC client and a signer."""

    def __init__(
        self,
        rpc: TezosRPCClient,
        signer: Signer,
        *,
        config: TezosConfig | None = None,
        forger: Forger | None = None,
        resolver: CounterResolver | None = None,
        ticker: PollTicker | None = None,
    ) -> None:
        self.rpc = rpc
        self.signer = signer
        self.config = config or TezosConfig()
        self.emitter = OperationEmitter(
            rpc,
            signer,
            forger=forger,
            resolver=resolver,
            config=self.config,
            ticker=ticker,
        )

    def __enter__(self) -> "RpcContractProvider":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        self.emitter.close()

    # Reads ----------------------------------------------------------------

    def get_storage(self, contract: str, schema: Schema | Dict[str, Any] | None = None) -> Any:
        """Return the decoded storage of ``contract``.

        ``schema`` may be a :class:`Schema` or the raw ``script`` RPC response;
        when omitted the script is fetched from the node.
        """

        if schema is None:
            schema = self.rpc.get_script(contract)
        contract_schema = _schema_for(schema)
        storage = self.rpc.get_storage(contract)
        return contract_schema.execute(storage)

    def get_big_map_key(
        self, contract: str, key: Any, schema: Schema | Dict[str, Any] | None = None
    ) -> Any:
        """Return the decoded big map value stored under ``key``, or ``None``."""

        if schema is None:
            schema = self.rpc.get_script(contract)
        contract_schema = _schema_for(schema)
        encoded_key = contract_schema.encode_big_map_key(key)
        value = self.rpc.get_big_map_key(contract, encoded_key)
        return contract_schema.execute_on_big_map_value(value)

    def at(self, address: str) -> "Contract":
        script = self.rpc.get_script(address)
        return Contract(
            address,
            Schema.from_rpc_response(script),
            ParameterSchema.from_rpc_response(script),
            self,
        )

    # Operations -----------------------------------------------------------

    def originate(
        self,
        code: str | List[Any],
        init: str | Dict[str, Any] | List[Any],
        *,
        balance: Amount = "0",
        spendable: bool = False,
        delegatable: bool = False,
        delegate: str | None = None,
        fee: int | None = None,
        gas_limit: int | None = None,
        storage_limit: int | None = None,
    ) -> OriginationHandle:
        """Originate a new contract; returns a handle exposing ``contract_address``."""

        manager = self.emitter.public_key_hash()
        operation = build_origination(
            code,
            init,
            manager,
            balance=balance,
            spendable=spendable,
            delegatable=delegatable,
            delegate=delegate,
            fee=fee,
            gas_limit=gas_limit,
            storage_limit=storage_limit,
        )
        handle = self.emitter.send([operation], source=manager, handle_cls=OriginationHandle)
        return handle  # type: ignore[return-value]

    def set_delegate(
        self,
        delegate: str | None,
        *,
        source: str | None = None,
        fee: int | None = None,
        gas_limit: int | None = None,
        storage_limit: int | None = None,
    ) -> OperationHandle:
        """Set (or with ``delegate=None`` withdraw) the delegate of ``source``."""

        source = source or self.emitter.public_key_hash()
        operation = build_delegation(
            delegate, source=source, fee=fee, gas_limit=gas_limit, storage_limit=storage_limit
        )
        return self.emitter.send([operation], source=source)

    def register_delegate(
        self,
        *,
        fee: int | None = None,
        gas_limit: int | None = None,
        storage_limit: int | None = None,
    ) -> OperationHandle:
        """Register the signer's own account as a delegate."""

        own_address = self.emitter.public_key_hash()
        operation = build_delegation(
            own_address, fee=fee, gas_limit=gas_limit, storage_limit=storage_limit
        )
        return self.emitter.send([operation], source=own_address)

    def transfer(
        self,
        to: str,
        amount: Amount,
        *,
        source: str | None = None,
        parameter: Any = None,
        fee: int | None = None,
        gas_limit: int | None = None,
        storage_limit: int | None = None,
        mutez: bool = False,
        raw_param: bool = False,
    ) -> OperationHandle:
        """Transfer ``amount`` (tez, or mutez with ``mutez=True``) to ``to``."""

        operation = build_transaction(
            to,
            amount,
            parameter=parameter,
            fee=fee,
            gas_limit=gas_limit,
            storage_limit=storage_limit,
            mutez=mutez,
            raw_param=raw_param,
            source=source,
        )
        return self.emitter.send([operation], source=source)

    def activate(self, pkh: str, secret: str) -> OperationHandle:
        """Activate a fundraiser account."""

        return self.emitter.send([Activation(pkh=pkh, secret=secret)])

    def batch(
        self, contents: Iterable[OperationContent], *, source: str | None = None
    ) -> OperationHandle:
        """Emit several contents in one operation with consecutive counters."""

        items = list(contents)
        handle_cls = (
            OriginationHandle
            if any(isinstance(item, Origination) for item in items)
            else OperationHandle
        )
        return self.emitter.send(items, source=source, handle_cls=handle_cls)


class Contract:
    """Accessor bound to one deployed contract."""

    def __init__(
        self,
        address: str,
        schema: Schema,
        parameter_schema: ParameterSchema,
        provider: RpcContractProvider,
    ) -> None:
        self.address = address
        self.schema = schema
        self.parameter_schema = parameter_schema
        self.provider = provider

    @property
    def entrypoints(self) -> List[str]:
        return self.parameter_schema.entrypoints

    def storage(self) -> Any:
        return self.provider.get_storage(self.address, self.schema)

    def big_map_get(self, key: Any) -> Any:
        return self.provider.get_big_map_key(self.address, key, self.schema)

    def call(
        self,
        value: Any,
        *,
        amount: Amount = 0,
        mutez: bool = False,
        fee: int | None = None,
        gas_limit: int | None = None,
        storage_limit: int | None = None,
    ) -> OperationHandle:
        """Call the contract with ``value`` encoded through its parameter type."""

        parameter = self.parameter_schema.encode(value)
        logger.debug("Calling %s with %s", self.address, parameter)
        return self.provider.transfer(
            self.address,
            amount,
            parameter=parameter,
            raw_param=True,
            mutez=mutez,
            fee=fee,
            gas_limit=gas_limit,
            storage_limit=storage_limit,
        )
