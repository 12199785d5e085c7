"""RPC client for interacting with a Tezos node."""

from __future__ import annotations

"""Typed REST client for Tezos node RPC endpoints.

The helpers in this module back the operation emitter, the confirmation
tracker and the contract provider. Each helper maps directly to a node
endpoint and returns the parsed JSON response. No consensus or validation
logic is implemented here; the client forwards requests and surfaces errors
clearly.
"""

import json
import logging
from typing import Any, Dict, List, Optional

import requests
from requests import RequestException, Response

from .config import ConfigurationError, TezosConfig, load_config

logger = logging.getLogger(__name__)


class RPCError(RuntimeError):
    """Raised when the node answers with an error payload."""

    def __init__(self, status_code: int, errors: Any, url: str | None = None) -> None:
        self.status_code = status_code
        self.errors = errors if isinstance(errors, list) else [errors]
        self.url = url
        super().__init__(f"RPC error {status_code}: {self.describe()}")

    @property
    def error_ids(self) -> list[str]:
        return [str(err["id"]) for err in self.errors if isinstance(err, dict) and err.get("id")]

    def describe(self) -> str:
        ids = self.error_ids
        if ids:
            return ", ".join(ids)
        return str(self.errors[0]) if self.errors else "unknown"


def format_rpc_hint(error_obj: list[Any] | RPCError | None) -> str | None:
    """Return a human-friendly hint for common node rejections.

    The node reports rejections as a list of protocol error objects whose
    ``id`` ends with a stable suffix. Only well-known suffixes produce a hint;
    callers should still log the full error list.
    """

    if error_obj is None:
        return None

    if isinstance(error_obj, RPCError):
        errors = error_obj.errors
    else:
        errors = list(error_obj)
    ids = [str(err.get("id", "")) for err in errors if isinstance(err, dict)]

    def _has(suffix: str) -> bool:
        return any(error_id.endswith(suffix) for error_id in ids)

    if _has("counter_in_the_past") or _has("counter_in_the_future"):
        return (
            "The operation counter does not match the account's on-chain counter. Another operation "
            "from the same account is probably pending; wait for it and rebuild the operation."
        )
    if _has("balance_too_low") or _has("cannot_pay_storage_fee"):
        return "The source account cannot cover the amount, fee and storage burn. Fund it and retry."
    if _has("fees_too_low") or _has("fee_too_low"):
        return "The node requires a higher fee for this operation; pass an explicit fee."
    if _has("gas_exhausted.operation") or _has("storage_exhausted.operation"):
        return "The gas or storage limit is too low for this operation; pass explicit limits."
    if _has("branch_delayed") or _has("branch_refused") or _has("outdated"):
        return "The operation branch is no longer recent enough; rebuild the operation on a fresh head."
    if _has("unrevealed_key") or _has("previously_revealed_key"):
        return "The account's reveal status changed while the operation was built; rebuild it."
    return None


class RPCTransportError(RuntimeError):
    """Raised when the RPC endpoint is unreachable or returns malformed data."""

    def __init__(self, message: str, status_code: int | None = None) -> None:
        super().__init__(message)
        self.status_code = status_code


class TezosRPCClient:
    """Typed REST client for a Tezos node.

    Block-scoped reads default to ``head``. Every path is resolved against the
    configured chain (``main`` by default), so the same client works against
    test networks by changing ``TezosConfig.chain``.
    """

    def __init__(self, config: TezosConfig, session: requests.Session | None = None) -> None:
        self.config = config
        self._session = session or requests.Session()
        self._base_url = config.base_url
        self._chain = config.chain

    @classmethod
    def from_env(cls) -> "TezosRPCClient":
        """Instantiate a client using environment variables or config file."""

        return cls(load_config())

    def request(
        self,
        method: str,
        path: str,
        payload: Any = None,
        params: Optional[Dict[str, Any]] = None,
        allow_missing: bool = False,
    ) -> Any:
        """Perform an RPC request and return the decoded JSON body."""

        url = f"{self._base_url}{path}"
        logger.debug("RPC %s %s params=%s", method, path, params)
        try:
            response = self._session.request(
                method,
                url,
                data=json.dumps(payload) if payload is not None else None,
                params=params,
                headers={"content-type": "application/json"},
                timeout=self.config.timeout,
            )
        except RequestException as exc:
            logger.error(
                "RPC connection failed: %s",
                exc,
                exc_info=logger.isEnabledFor(logging.DEBUG),
            )
            raise RPCTransportError(
                "RPC connection failed. Ensure the Tezos node is reachable and TEZOS_EMIT_RPC_URL "
                "(or ~/.tezos-emit.yaml) points to the right host and port."
            ) from exc
        if allow_missing and response.status_code == 404:
            return None
        self._raise_for_status(response)
        if not response.content:
            return None
        try:
            return response.json()
        except ValueError as exc:
            logger.debug("RPC JSON parse error: %s", response.text, exc_info=True)
            raise RPCTransportError("RPC server returned malformed JSON") from exc

    def _raise_for_status(self, response: Response) -> None:
        # The node reports protocol errors as a JSON list with HTTP 4xx/5xx.
        if response.ok:
            return
        try:
            err_body = response.json()
        except ValueError:
            err_body = response.text

        logger.error("RPC HTTP error %s from %s", response.status_code, response.url)
        logger.error("RPC error body: %s", err_body)
        if response.status_code in {502, 503, 504}:
            raise RPCTransportError(
                f"RPC gateway unavailable ({response.status_code})",
                status_code=response.status_code,
            )
        raise RPCError(response.status_code, err_body, url=response.url)

    def _block_path(self, block: str | int = "head") -> str:
        return f"/chains/{self._chain}/blocks/{block}"

    def _contract_path(self, address: str, block: str | int = "head") -> str:
        return f"{self._block_path(block)}/context/contracts/{address}"

    # Chain reads ----------------------------------------------------------

    def get_block_header(self, block: str | int = "head") -> Dict[str, Any]:
        return self.request("GET", f"{self._block_path(block)}/header")

    def get_branch(self) -> str:
        """Return the hash of the current head, used to anchor new operations."""

        return str(self.get_block_header()["hash"])

    def get_head_level(self) -> int:
        return int(self.get_block_header()["level"])

    def get_block_hash(self, block: str | int = "head") -> str:
        return str(self.request("GET", f"{self._block_path(block)}/hash"))

    def get_operation_hashes(self, block: str | int = "head") -> List[List[str]]:
        return self.request("GET", f"{self._block_path(block)}/operation_hashes")

    def get_chain_id(self) -> str:
        return str(self.request("GET", f"/chains/{self._chain}/chain_id"))

    # Account reads --------------------------------------------------------

    def get_counter(self, address: str) -> int:
        return int(self.request("GET", f"{self._contract_path(address)}/counter"))

    def get_manager_key(self, address: str) -> str | None:
        """Return the revealed public key of ``address`` or ``None`` when unrevealed."""

        result = self.request("GET", f"{self._contract_path(address)}/manager_key", allow_missing=True)
        if isinstance(result, dict):
            # Older protocols answer with {"manager": ..., "key": ...}.
            return result.get("key")
        return result or None

    def get_script(self, address: str) -> Dict[str, Any]:
        return self.request("GET", f"{self._contract_path(address)}/script")

    def get_storage(self, address: str) -> Any:
        return self.request("GET", f"{self._contract_path(address)}/storage")

    def get_big_map_key(self, address: str, encoded_key: Dict[str, Any]) -> Any:
        """Return the Micheline value stored under ``encoded_key`` or ``None``."""

        return self.request(
            "POST",
            f"{self._contract_path(address)}/big_map_get",
            payload=encoded_key,
            allow_missing=True,
        )

    # Writes ---------------------------------------------------------------

    def forge_operations(self, operation: Dict[str, Any]) -> str:
        return str(self.request("POST", f"{self._block_path()}/helpers/forge/operations", payload=operation))

    def run_operation(self, operation: Dict[str, Any], chain_id: str) -> Dict[str, Any]:
        return self.request(
            "POST",
            f"{self._block_path()}/helpers/scripts/run_operation",
            payload={"operation": operation, "chain_id": chain_id},
        )

    def inject_operation(self, signed_bytes: str) -> str:
        return str(
            self.request(
                "POST",
                "/injection/operation",
                payload=signed_bytes,
                params={"chain": self._chain},
            )
        )
