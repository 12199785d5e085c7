"""Branch and counter resolution, serialized per source account.

The on-chain counter only moves once an operation is included, so two
envelopes built back to back for the same account would read the same value.
:class:`CounterResolver` therefore remembers the highest counter it handed out
per account and resolves under a per-account lock. The lock is only held
while resolving, never while signing or injecting.

The same holds for reveals: the manager key only appears on-chain once the
reveal is included, so the resolver also remembers which counter carries a
reveal that is still in flight and decides on a new one under the same lock.
"""

from __future__ import annotations

import contextlib
import logging
import threading
from concurrent.futures import ThreadPoolExecutor
from typing import Callable, Dict, Iterator, List, Protocol

from .errors import ValidationError
from .model import ResolvedCounters
from .rpc_client import TezosRPCClient

logger = logging.getLogger(__name__)


class AccountLockProvider(Protocol):
    def hold(self, account: str) -> contextlib.AbstractContextManager:
        ...


class AccountLocks:
    """One mutual-exclusion scope per account; unrelated accounts never contend."""

    def __init__(self) -> None:
        self._guard = threading.Lock()
        self._locks: Dict[str, threading.Lock] = {}

    def _lock_for(self, account: str) -> threading.Lock:
        with self._guard:
            return self._locks.setdefault(account, threading.Lock())

    @contextlib.contextmanager
    def hold(self, account: str) -> Iterator[None]:
        lock = self._lock_for(account)
        with lock:
            yield


class UnserializedLocks:
    """No-op lock provider; concurrent resolutions may hand out the same counter."""

    def hold(self, account: str) -> contextlib.AbstractContextManager:
        return contextlib.nullcontext()


class CounterResolver:
    """Resolve the branch and a contiguous block of counters for one envelope."""

    def __init__(
        self,
        rpc: TezosRPCClient,
        locks: AccountLockProvider | None = None,
    ) -> None:
        self.rpc = rpc
        self.locks = locks if locks is not None else AccountLocks()
        self._reserved: Dict[str, int] = {}
        self._pending_reveal: Dict[str, int] = {}
        self._executor = ThreadPoolExecutor(max_workers=4, thread_name_prefix="counter-resolver")

    def __enter__(self) -> "CounterResolver":
        return self

    def __exit__(self, *exc_info) -> None:
        self.close()

    def close(self) -> None:
        """Stop the worker threads; the resolver cannot be used afterwards."""

        self._executor.shutdown(wait=True)

    def resolve(
        self,
        source: str,
        count: int = 1,
        *,
        needs_reveal: Callable[[], bool] | None = None,
    ) -> ResolvedCounters:
        """Return the head branch and counters ``base+1 .. base+count`` for ``source``.

        When ``needs_reveal`` is given and no reveal for ``source`` is in
        flight, it is asked under the account lock whether one is required.
        If so one extra counter is reserved in front of the others and the
        result is flagged with ``reveal=True``.
        """

        if count < 0:
            raise ValidationError("Counter count must not be negative")
        with self.locks.hold(source):
            reserved = self._reserved.get(source)
            header_future = self._executor.submit(self.rpc.get_block_header)
            counter_future = self._executor.submit(self.rpc.get_counter, source)
            header = header_future.result()
            on_chain = int(counter_future.result())

            pending = self._pending_reveal.get(source)
            if pending is not None and on_chain >= pending:
                # included; the manager key is authoritative from here on
                del self._pending_reveal[source]
                pending = None

            reveal = False
            if needs_reveal is not None and pending is None and needs_reveal():
                reveal = True
                count += 1

            base = on_chain if reserved is None else max(on_chain, reserved)
            counters = list(range(base + 1, base + count + 1))
            if counters:
                self._reserved[source] = counters[-1]
            if reveal:
                self._pending_reveal[source] = counters[0]
        logger.debug(
            "Resolved %s: branch=%s on_chain=%s counters=%s reveal=%s",
            source,
            header["hash"],
            on_chain,
            counters,
            reveal,
        )
        return ResolvedCounters(
            branch=str(header["hash"]),
            on_chain_counter=on_chain,
            counters=counters,
            protocol=header.get("protocol"),
            level=int(header["level"]) if header.get("level") is not None else None,
            reveal=reveal,
        )

    def release(self, source: str, counters: List[int]) -> None:
        """Give back ``counters`` of an envelope that was never injected.

        Only the most recent reservation can be rolled back; anything reserved
        after it keeps its counters and the gap is left for the node to reject.
        A reveal carried by the released counters is no longer in flight.
        """

        if not counters:
            return
        with self.locks.hold(source):
            if self._pending_reveal.get(source) in counters:
                del self._pending_reveal[source]
            if self._reserved.get(source) == counters[-1]:
                self._reserved[source] = counters[0] - 1
                logger.debug("Released counters %s for %s", counters, source)
            else:
                logger.warning(
                    "Cannot release counters %s for %s; later counters were reserved", counters, source
                )

    def forget(self, source: str) -> None:
        """Drop the local reservation and reveal marks and trust the chain again."""

        with self.locks.hold(source):
            self._reserved.pop(source, None)
            self._pending_reveal.pop(source, None)
