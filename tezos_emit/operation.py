"""Operation handles and the confirmation tracker polling the node for inclusion."""

from __future__ import annotations

import logging
import threading
import time
from enum import Enum
from typing import List, Protocol

from .config import TezosConfig
from .encoding import originated_contract_address
from .errors import (
    ConfirmationCancelled,
    ConfirmationTimeout,
    OperationDropped,
    ValidationError,
)
from .model import OperationEnvelope, Origination
from .rpc_client import RPCError, RPCTransportError, TezosRPCClient

logger = logging.getLogger(__name__)

FAILURE_TIMEOUT = "timeout"
FAILURE_DROPPED = "dropped"


class OperationStatus(str, Enum):
    INJECTED = "injected"
    INCLUDED = "included"
    CONFIRMED = "confirmed"
    FAILED = "failed"


class PollTicker(Protocol):
    """Time source driving the polling loop."""

    def monotonic(self) -> float:
        ...

    def wait(self, seconds: float, cancel: threading.Event | None = None) -> bool:
        """Sleep for ``seconds``; return ``True`` when ``cancel`` fired first."""
        ...


class SystemTicker:
    def monotonic(self) -> float:
        return time.monotonic()

    def wait(self, seconds: float, cancel: threading.Event | None = None) -> bool:
        if cancel is not None:
            return cancel.wait(seconds)
        time.sleep(seconds)
        return False


class ConfirmationTracker:
    """State machine ``injected -> included -> confirmed`` with a terminal ``failed``.

    Every :meth:`poll_once` call is one tick: it scans the levels produced
    since the previous tick for the operation hash (the first tick without a
    start level looks back ``search_depth`` levels from head), checks that
    the recorded inclusion block still carries it, and recomputes the
    confirmation depth from the head level. A reorg that removes the
    operation sends the tracker back to searching; if the operation does not
    reappear within ``reinclusion_attempts`` ticks it is considered dropped.
    """

    def __init__(
        self,
        rpc: TezosRPCClient,
        op_hash: str,
        *,
        start_level: int | None = None,
        reinclusion_attempts: int = 5,
        max_read_failures: int = 5,
        search_depth: int = 60,
        ticker: PollTicker | None = None,
    ) -> None:
        self.rpc = rpc
        self.op_hash = op_hash
        self.search_depth = search_depth
        self.reinclusion_attempts = reinclusion_attempts
        self.max_read_failures = max_read_failures
        self.ticker = ticker or SystemTicker()

        self.status = OperationStatus.INJECTED
        self.included_level: int | None = None
        self.included_block: str | None = None
        self.confirmations = 0
        self.failure_reason: str | None = None
        self.head_level: int | None = None

        self._next_level = start_level
        self._reorged_from: int | None = None
        self._missing_polls = 0
        self._lock = threading.Lock()

    def _contains(self, level: int) -> bool:
        hashes = self.rpc.get_operation_hashes(level)
        return any(self.op_hash in validation_pass for validation_pass in hashes)

    def _search(self, head_level: int) -> bool:
        if self._next_level is None:
            # no known injection level; the operation may already be in a recent block
            start = max(0, head_level - self.search_depth)
        else:
            start = self._next_level
        for level in range(start, head_level + 1):
            if self._contains(level):
                self.included_level = level
                self.included_block = self.rpc.get_block_hash(level)
                self._next_level = level + 1
                return True
        self._next_level = max(start, head_level + 1)
        return False

    def _mark_failed(self, reason: str) -> None:
        self.status = OperationStatus.FAILED
        self.failure_reason = reason
        logger.warning("Operation %s failed: %s", self.op_hash, reason)

    def poll_once(self, target: int = 1) -> OperationStatus:
        """Advance the state machine by one tick against the current head."""

        with self._lock:
            if self.status is OperationStatus.FAILED:
                return self.status

            head_level = int(self.rpc.get_block_header()["level"])
            self.head_level = head_level

            if self.included_level is not None and (
                self.included_level > head_level or not self._contains(self.included_level)
            ):
                logger.warning(
                    "Operation %s is no longer in block level %s; searching again",
                    self.op_hash,
                    self.included_level,
                )
                self._reorged_from = self.included_level
                self._next_level = self.included_level
                self.included_level = None
                self.included_block = None
                self.confirmations = 0
                self._missing_polls = 0
                self.status = OperationStatus.INJECTED

            if self.included_level is None:
                if self._search(head_level):
                    if self._reorged_from is not None:
                        logger.info("Operation %s re-included at level %s", self.op_hash, self.included_level)
                    self._reorged_from = None
                    self._missing_polls = 0
                    self.status = OperationStatus.INCLUDED
                    logger.info("Operation %s included at level %s", self.op_hash, self.included_level)
                elif self._reorged_from is not None:
                    self._missing_polls += 1
                    if self._missing_polls >= self.reinclusion_attempts:
                        self._mark_failed(FAILURE_DROPPED)
                    return self.status
                else:
                    return self.status

            self.confirmations = head_level - self.included_level
            if self.confirmations >= target:
                if self.status is not OperationStatus.CONFIRMED:
                    logger.info(
                        "Operation %s confirmed with %s confirmations", self.op_hash, self.confirmations
                    )
                self.status = OperationStatus.CONFIRMED
            else:
                self.status = OperationStatus.INCLUDED
            return self.status

    def wait(
        self,
        confirmations: int,
        timeout: float,
        interval: float,
        cancel: threading.Event | None = None,
    ) -> int:
        """Poll until ``confirmations`` blocks sit on top of the inclusion block.

        Returns the inclusion level. Raises :class:`ConfirmationTimeout`,
        :class:`OperationDropped` or :class:`ConfirmationCancelled`.
        """

        if confirmations < 0:
            raise ValidationError("Confirmation count must not be negative")
        deadline = self.ticker.monotonic() + timeout
        read_failures = 0
        while True:
            if cancel is not None and cancel.is_set():
                raise ConfirmationCancelled(self.op_hash)
            try:
                status = self.poll_once(confirmations)
                read_failures = 0
            except (RPCTransportError, RPCError) as exc:
                read_failures += 1
                logger.warning(
                    "Transient read failure while tracking %s (%d/%d): %s",
                    self.op_hash,
                    read_failures,
                    self.max_read_failures,
                    exc,
                )
                if read_failures > self.max_read_failures:
                    raise ConfirmationTimeout(
                        self.op_hash,
                        f"Gave up tracking {self.op_hash} after {read_failures} consecutive read failures",
                    ) from exc
                status = self.status

            if status is OperationStatus.CONFIRMED:
                return int(self.included_level)  # type: ignore[arg-type]
            if status is OperationStatus.FAILED:
                if self.failure_reason == FAILURE_TIMEOUT:
                    raise ConfirmationTimeout(self.op_hash, f"Operation {self.op_hash} was not included in time")
                raise OperationDropped(self.op_hash, self._reorged_from)

            remaining = deadline - self.ticker.monotonic()
            if remaining <= 0:
                self._on_timeout(confirmations)
            if self.ticker.wait(min(interval, remaining), cancel):
                raise ConfirmationCancelled(self.op_hash)

    def _on_timeout(self, confirmations: int) -> None:
        with self._lock:
            if self.status is OperationStatus.INCLUDED:
                raise ConfirmationTimeout(
                    self.op_hash,
                    f"Operation {self.op_hash} included at level {self.included_level} has "
                    f"{self.confirmations} of {confirmations} confirmations",
                )
            if self._reorged_from is not None:
                self._mark_failed(FAILURE_DROPPED)
                raise OperationDropped(self.op_hash, self._reorged_from)
            self._mark_failed(FAILURE_TIMEOUT)
        raise ConfirmationTimeout(self.op_hash, f"Operation {self.op_hash} was not included in time")


class OperationHandle:
    """Caller-owned handle on an injected operation."""

    def __init__(
        self,
        op_hash: str,
        envelope: OperationEnvelope,
        rpc: TezosRPCClient,
        config: TezosConfig | None = None,
        *,
        start_level: int | None = None,
        ticker: PollTicker | None = None,
    ) -> None:
        self.config = config or TezosConfig()
        self._hash = op_hash
        self.envelope = envelope
        self.tracker = ConfirmationTracker(
            rpc,
            op_hash,
            start_level=start_level,
            reinclusion_attempts=self.config.reinclusion_attempts,
            max_read_failures=self.config.max_read_failures,
            search_depth=self.config.search_depth,
            ticker=ticker,
        )

    @property
    def hash(self) -> str:
        return self._hash

    @property
    def source(self) -> str:
        return self.envelope.source

    @property
    def status(self) -> OperationStatus:
        return self.tracker.status

    @property
    def included_in_block(self) -> int | None:
        return self.tracker.included_level

    @property
    def included_block_hash(self) -> str | None:
        return self.tracker.included_block

    @property
    def confirmations(self) -> int:
        return self.tracker.confirmations

    @property
    def failure_reason(self) -> str | None:
        return self.tracker.failure_reason

    def poll(self, confirmations: int | None = None) -> OperationStatus:
        target = self.config.default_confirmations if confirmations is None else confirmations
        return self.tracker.poll_once(target)

    def confirmation(
        self,
        confirmations: int | None = None,
        timeout: float | None = None,
        interval: float | None = None,
        cancel: threading.Event | None = None,
    ) -> int:
        """Block until the operation has ``confirmations`` confirmations; return its level."""

        return self.tracker.wait(
            self.config.default_confirmations if confirmations is None else confirmations,
            self.config.confirmation_polling_timeout if timeout is None else timeout,
            self.config.confirmation_polling_interval if interval is None else interval,
            cancel,
        )

    def __repr__(self) -> str:
        return f"<{type(self).__name__} {self.hash} {self.status.value}>"


class OriginationHandle(OperationHandle):
    """Handle on an origination; knows the address of the contract it creates."""

    @property
    def contract_addresses(self) -> List[str]:
        originations = [c for c in self.envelope.contents if isinstance(c, Origination)]
        return [originated_contract_address(self.hash, index) for index in range(len(originations))]

    @property
    def contract_address(self) -> str:
        addresses = self.contract_addresses
        if not addresses:
            raise ValidationError("Operation contains no origination")
        return addresses[0]
