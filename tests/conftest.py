from __future__ import annotations

import hashlib
import json
import threading
from typing import Any, Callable, Dict, List

import pytest

from tezos_emit.config import TezosConfig
from tezos_emit.encoding import operation_hash
from tezos_emit.signer import InMemorySigner

TEST_SEED = bytes(range(32))
DESTINATION = "tz1burnburnburnburnburnburnburjAYjjX"


class FakeChain:
    """In-memory stand-in for the node RPC client."""

    def __init__(self, head_level: int = 100) -> None:
        self.head_level = head_level
        self.counters: Dict[str, int] = {}
        self.manager_keys: Dict[str, str | None] = {}
        self.blocks: Dict[int, List[str]] = {}
        self.scripts: Dict[str, Dict[str, Any]] = {}
        self.storages: Dict[str, Any] = {}
        self.big_maps: Dict[str, Dict[str, Any]] = {}
        self.forged: List[Dict[str, Any]] = []
        self.injected: List[str] = []
        self.simulated: List[Dict[str, Any]] = []
        self.big_map_requests: List[Dict[str, Any]] = []
        self.forge_error: Exception | None = None
        self.inject_error: Exception | None = None
        self.header_errors: List[Exception] = []
        self.run_results: List[Dict[str, Any]] | None = None
        self.counter_hook: Callable[[str], None] | None = None
        self._lock = threading.Lock()

    # chain manipulation --------------------------------------------------

    def bake(self, *op_hashes: str) -> int:
        self.head_level += 1
        self.blocks[self.head_level] = list(op_hashes)
        return self.head_level

    # RPC surface ---------------------------------------------------------

    def get_block_header(self, block: Any = "head") -> Dict[str, Any]:
        if self.header_errors:
            raise self.header_errors.pop(0)
        return {"hash": f"BLhead{self.head_level}", "level": self.head_level, "protocol": "PtTest"}

    def get_block_hash(self, block: Any = "head") -> str:
        return f"BL{block}"

    def get_operation_hashes(self, block: Any = "head") -> List[List[str]]:
        return [[], [], [], list(self.blocks.get(int(block), []))]

    def get_chain_id(self) -> str:
        return "NetXtest"

    def get_counter(self, address: str) -> int:
        if self.counter_hook is not None:
            self.counter_hook(address)
        return self.counters.get(address, 0)

    def get_manager_key(self, address: str) -> str | None:
        return self.manager_keys.get(address)

    def get_script(self, address: str) -> Dict[str, Any]:
        return self.scripts[address]

    def get_storage(self, address: str) -> Any:
        return self.storages[address]

    def get_big_map_key(self, address: str, encoded_key: Dict[str, Any]) -> Any:
        self.big_map_requests.append(encoded_key)
        key = json.dumps(encoded_key["key"], sort_keys=True)
        return self.big_maps.get(address, {}).get(key)

    def forge_operations(self, operation: Dict[str, Any]) -> str:
        if self.forge_error is not None:
            raise self.forge_error
        with self._lock:
            self.forged.append(operation)
        return hashlib.sha256(json.dumps(operation, sort_keys=True).encode()).hexdigest()

    def run_operation(self, operation: Dict[str, Any], chain_id: str) -> Dict[str, Any]:
        self.simulated.append(operation)
        if self.run_results is not None:
            return {"contents": self.run_results}
        return {
            "contents": [
                dict(content, metadata={"operation_result": {"status": "applied"}})
                for content in operation["contents"]
            ]
        }

    def inject_operation(self, signed_bytes: str) -> str:
        if self.inject_error is not None:
            raise self.inject_error
        with self._lock:
            self.injected.append(signed_bytes)
        return operation_hash(signed_bytes)


class ManualTicker:
    """Deterministic clock; every wait runs ``on_wait`` and advances time."""

    def __init__(self, on_wait: Callable[[], None] | None = None) -> None:
        self.now = 0.0
        self.waits: List[float] = []
        self.on_wait = on_wait

    def monotonic(self) -> float:
        return self.now

    def wait(self, seconds: float, cancel: threading.Event | None = None) -> bool:
        self.waits.append(seconds)
        self.now += seconds
        if self.on_wait is not None:
            self.on_wait()
        return cancel is not None and cancel.is_set()


@pytest.fixture
def signer() -> InMemorySigner:
    return InMemorySigner.from_seed(TEST_SEED)


@pytest.fixture
def chain() -> FakeChain:
    return FakeChain()


@pytest.fixture
def config() -> TezosConfig:
    return TezosConfig(
        rpc_url="http://node.test",
        confirmation_polling_interval=1.0,
        confirmation_polling_timeout=10.0,
        reinclusion_attempts=2,
    )
