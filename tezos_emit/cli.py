"""Command line interface for tezos-emit."""

from __future__ import annotations

import argparse
import json
import logging
import sys
from pathlib import Path
from typing import Any, Sequence

from .config import ConfigurationError, TezosConfig, load_config
from .contract import RpcContractProvider
from .errors import TezosEmitError
from .model import OperationEnvelope
from .operation import OperationHandle
from .rpc_client import RPCError, RPCTransportError, TezosRPCClient
from .signer import InMemorySigner

logging.basicConfig(level=logging.INFO)
logger = logging.getLogger(__name__)

COMPACT_JSON_SEPARATORS = (",", ":")


class CLIError(RuntimeError):
    """Raised when CLI arguments are invalid."""


def _add_limit_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument("--fee", type=int, default=None, help="Fee in mutez (default: policy)")
    parser.add_argument("--gas-limit", type=int, default=None, help="Gas limit (default: policy)")
    parser.add_argument(
        "--storage-limit", type=int, default=None, help="Storage limit (default: policy)"
    )


def _add_wait_flags(parser: argparse.ArgumentParser) -> None:
    parser.add_argument(
        "--confirmations",
        type=int,
        default=None,
        help="Wait for this many confirmations after injection (default: do not wait)",
    )
    parser.add_argument(
        "--timeout", type=float, default=None, help="Confirmation timeout in seconds"
    )


def build_parser() -> argparse.ArgumentParser:
    parser = argparse.ArgumentParser(description="Build, sign and track Tezos operations")
    parser.add_argument("--config", default=None, help="Path to a YAML config file")
    parser.add_argument("--rpc-url", default=None, help="Node RPC endpoint")
    parser.add_argument("--verbose", action="store_true", help="Enable debug logging")
    subparsers = parser.add_subparsers(dest="command", required=True)

    transfer_parser = subparsers.add_parser("transfer", help="transfer tez to an address")
    transfer_parser.add_argument("--to", required=True, help="Destination address")
    transfer_parser.add_argument("--amount", required=True, help="Amount in tez (mutez with --mutez)")
    transfer_parser.add_argument("--mutez", action="store_true", help="Interpret --amount as mutez")
    transfer_parser.add_argument("--source", default=None, help="Source account (default: signer)")
    transfer_parser.add_argument(
        "--parameter", default=None, help="Michelson parameter, e.g. '(Pair 1 \"a\")'"
    )
    _add_limit_flags(transfer_parser)
    _add_wait_flags(transfer_parser)

    delegate_parser = subparsers.add_parser("set-delegate", help="set the delegate of an account")
    delegate_parser.add_argument("--delegate", required=True, help="Delegate address")
    delegate_parser.add_argument("--source", default=None, help="Delegating account (default: signer)")
    _add_limit_flags(delegate_parser)
    _add_wait_flags(delegate_parser)

    register_parser = subparsers.add_parser(
        "register-delegate", help="register the signer's account as a delegate"
    )
    _add_limit_flags(register_parser)
    _add_wait_flags(register_parser)

    originate_parser = subparsers.add_parser("originate", help="originate a contract")
    originate_parser.add_argument("--code-file", required=True, help="Michelson script file")
    originate_parser.add_argument("--init", required=True, help="Initial storage as Michelson")
    originate_parser.add_argument("--balance", default="0", help="Initial balance in tez")
    originate_parser.add_argument("--delegate", default=None, help="Optional delegate")
    originate_parser.add_argument("--spendable", action="store_true")
    originate_parser.add_argument("--delegatable", action="store_true")
    _add_limit_flags(originate_parser)
    _add_wait_flags(originate_parser)

    storage_parser = subparsers.add_parser("storage", help="print decoded contract storage")
    storage_parser.add_argument("contract", help="Contract address")

    big_map_parser = subparsers.add_parser("big-map-get", help="print a decoded big map value")
    big_map_parser.add_argument("contract", help="Contract address")
    big_map_parser.add_argument("key", help="Key as JSON (strings may be given bare)")

    wait_parser = subparsers.add_parser("wait", help="wait for an injected operation")
    wait_parser.add_argument("op_hash", help="Operation hash")
    wait_parser.add_argument("--confirmations", type=int, default=None)
    wait_parser.add_argument("--timeout", type=float, default=None)
    wait_parser.add_argument(
        "--from-level", type=int, default=None, help="First block level to search"
    )

    return parser


def _load(args: argparse.Namespace) -> TezosConfig:
    overrides: dict[str, Any] = {}
    if args.rpc_url:
        overrides["rpc_url"] = args.rpc_url
    return load_config(config_path=args.config, overrides=overrides)


def _provider(config: TezosConfig) -> RpcContractProvider:
    if not config.secret_key:
        raise CLIError("A secret key is required: set TEZOS_EMIT_SECRET_KEY or signer.secret_key")
    rpc = TezosRPCClient(config)
    return RpcContractProvider(rpc, InMemorySigner(config.secret_key), config=config)


def _read_only_provider(config: TezosConfig) -> RpcContractProvider:
    return RpcContractProvider(TezosRPCClient(config), _ReadOnlySigner(), config=config)


def _limits(args: argparse.Namespace) -> dict[str, Any]:
    return {"fee": args.fee, "gas_limit": args.gas_limit, "storage_limit": args.storage_limit}


def _report(handle: OperationHandle, args: argparse.Namespace, extra: dict[str, Any] | None = None) -> None:
    data: dict[str, Any] = {"hash": handle.hash, "status": handle.status.value}
    data.update(extra or {})
    if args.confirmations is not None:
        level = handle.confirmation(args.confirmations, timeout=args.timeout)
        data.update(
            {"status": handle.status.value, "level": level, "confirmations": handle.confirmations}
        )
    print(json.dumps(data, separators=COMPACT_JSON_SEPARATORS))


def cmd_transfer(args: argparse.Namespace, config: TezosConfig) -> None:
    with _provider(config) as provider:
        handle = provider.transfer(
            args.to,
            args.amount,
            source=args.source,
            parameter=args.parameter,
            mutez=args.mutez,
            **_limits(args),
        )
    _report(handle, args)


def cmd_set_delegate(args: argparse.Namespace, config: TezosConfig) -> None:
    with _provider(config) as provider:
        handle = provider.set_delegate(args.delegate, source=args.source, **_limits(args))
    _report(handle, args)


def cmd_register_delegate(args: argparse.Namespace, config: TezosConfig) -> None:
    with _provider(config) as provider:
        handle = provider.register_delegate(**_limits(args))
    _report(handle, args)


def cmd_originate(args: argparse.Namespace, config: TezosConfig) -> None:
    code_path = Path(args.code_file)
    if not code_path.exists():
        raise CLIError(f"Code file not found: {code_path}")
    with _provider(config) as provider:
        handle = provider.originate(
            code_path.read_text(),
            args.init,
            balance=args.balance,
            delegate=args.delegate,
            spendable=args.spendable,
            delegatable=args.delegatable,
            **_limits(args),
        )
    _report(handle, args, {"contract": handle.contract_address})


def _parse_key(raw: str) -> Any:
    try:
        return json.loads(raw)
    except json.JSONDecodeError:
        return raw


def cmd_storage(args: argparse.Namespace, config: TezosConfig) -> None:
    with _read_only_provider(config) as provider:
        print(json.dumps(provider.get_storage(args.contract), default=str))


def cmd_big_map_get(args: argparse.Namespace, config: TezosConfig) -> None:
    with _read_only_provider(config) as provider:
        value = provider.get_big_map_key(args.contract, _parse_key(args.key))
    print(json.dumps(value, default=str))


def cmd_wait(args: argparse.Namespace, config: TezosConfig) -> None:
    rpc = TezosRPCClient(config)
    envelope = OperationEnvelope(branch="", contents=[], source="")
    handle = OperationHandle(args.op_hash, envelope, rpc, config, start_level=args.from_level)
    level = handle.confirmation(args.confirmations, timeout=args.timeout)
    print(
        json.dumps(
            {"hash": handle.hash, "level": level, "confirmations": handle.confirmations},
            separators=COMPACT_JSON_SEPARATORS,
        )
    )


class _ReadOnlySigner:
    """Signer stand-in for read-only commands."""

    def public_key_hash(self) -> str:
        raise CLIError("This command does not sign operations")

    def public_key(self) -> str:
        raise CLIError("This command does not sign operations")

    def sign(self, op_bytes: str, watermark: bytes | None = None) -> Any:
        raise CLIError("This command does not sign operations")


COMMANDS = {
    "transfer": cmd_transfer,
    "set-delegate": cmd_set_delegate,
    "register-delegate": cmd_register_delegate,
    "originate": cmd_originate,
    "storage": cmd_storage,
    "big-map-get": cmd_big_map_get,
    "wait": cmd_wait,
}


def main(argv: Sequence[str] | None = None) -> None:
    parser = build_parser()
    args = parser.parse_args(argv)
    if args.verbose:
        logging.getLogger().setLevel(logging.DEBUG)
    try:
        config = _load(args)
        COMMANDS[args.command](args, config)
    except KeyboardInterrupt:  # pragma: no cover - interactive use
        logger.info("Interrupted by user")
    except (
        CLIError,
        ConfigurationError,
        RPCError,
        RPCTransportError,
        TezosEmitError,
    ) as exc:
        parser.exit(1, f"error: {exc}\n")


if __name__ == "__main__":
    main(sys.argv[1:])
