"""
Host collaborators injected into the registry.

The registry never reads the process clock, a global caller or a database
directly. It is handed a HostEnvironment bundling four narrow interfaces:

- CallerSource: identity of whoever invoked the current operation.
- Clock: non-decreasing timestamp (ms since epoch) stamped on writes.
- KeyValueStore: byte-keyed persistent map with a transaction() scope.
- EventSink: receives WalletVerified notifications as they are emitted.

In-memory implementations here back the tests and embedded use; the SQL-backed
store and event log live in verification_registry.database.
"""

from __future__ import annotations

import threading
import time
from abc import ABC, abstractmethod
from contextlib import contextmanager
from contextvars import ContextVar
from dataclasses import dataclass
from typing import Any, Iterator

from solders.pubkey import Pubkey

from verification_registry.core.exceptions import NoCallerError
from verification_registry.registry.models import WalletVerified
from verification_registry.registry_logging import caller_context

# -----------------------------------------------------------------------------
# Caller identity
# -----------------------------------------------------------------------------


class CallerSource(ABC):
    """Supplies the identity of the current caller."""

    @abstractmethod
    def caller(self) -> Pubkey:
        """Return the caller identity. Raises NoCallerError if none is set."""
        ...


_CURRENT_CALLER: ContextVar[Pubkey | None] = ContextVar("registry_caller", default=None)


class ContextCaller(CallerSource):
    """Caller bound per execution context (thread / task) with acting_as()."""

    def caller(self) -> Pubkey:
        current = _CURRENT_CALLER.get()
        if current is None:
            raise NoCallerError("no caller identity bound for this call")
        return current

    @contextmanager
    def acting_as(self, identity: Pubkey) -> Iterator[Pubkey]:
        """Bind identity as the caller, and as the log caller, for the enclosed calls."""
        token = _CURRENT_CALLER.set(identity)
        try:
            with caller_context(identity):
                yield identity
        finally:
            _CURRENT_CALLER.reset(token)


class StaticCaller(CallerSource):
    """Fixed caller; switch with set_caller(). Used by scripts and tests."""

    def __init__(self, identity: Pubkey | None = None) -> None:
        self._identity = identity

    def set_caller(self, identity: Pubkey | None) -> None:
        self._identity = identity

    def caller(self) -> Pubkey:
        if self._identity is None:
            raise NoCallerError("no caller identity set")
        return self._identity


# -----------------------------------------------------------------------------
# Clock
# -----------------------------------------------------------------------------


class Clock(ABC):
    @abstractmethod
    def now(self) -> int:
        """Current timestamp in milliseconds since epoch; never decreases."""
        ...


class SystemClock(Clock):
    """Wall clock in ms, clamped so a backwards system clock step is never observed."""

    def __init__(self) -> None:
        self._last = 0
        self._lock = threading.Lock()

    def now(self) -> int:
        current = time.time_ns() // 1_000_000
        with self._lock:
            if current < self._last:
                current = self._last
            self._last = current
            return current


class ManualClock(Clock):
    """Clock advanced explicitly. Refuses to move backwards."""

    def __init__(self, start: int = 0) -> None:
        self._now = start

    def now(self) -> int:
        return self._now

    def advance(self, delta_ms: int) -> int:
        if delta_ms < 0:
            raise ValueError("clock cannot move backwards")
        self._now += delta_ms
        return self._now

    def set(self, value: int) -> None:
        if value < self._now:
            raise ValueError("clock cannot move backwards")
        self._now = value


# -----------------------------------------------------------------------------
# Key-value store
# -----------------------------------------------------------------------------


class KeyValueStore(ABC):
    """Byte-keyed persistent map. Mutations inside transaction() commit or roll back together."""

    @abstractmethod
    def get(self, key: bytes, *, for_update: bool = False) -> bytes | None:
        """Value for key, or None. for_update holds the key against other writers until the transaction ends."""
        ...

    @abstractmethod
    def set(self, key: bytes, value: bytes) -> None:
        ...

    @abstractmethod
    def contains(self, key: bytes) -> bool:
        ...

    @abstractmethod
    def transaction(self):
        """Context manager scoping one atomic call."""
        ...


class InMemoryStore(KeyValueStore):
    """Dict-backed store; transaction() snapshots and restores on error."""

    def __init__(self) -> None:
        self._data: dict[bytes, bytes] = {}
        self._depth = 0

    def get(self, key: bytes, *, for_update: bool = False) -> bytes | None:
        # one process; the registry lock already excludes other writers
        return self._data.get(key)

    def set(self, key: bytes, value: bytes) -> None:
        self._data[bytes(key)] = bytes(value)

    def contains(self, key: bytes) -> bool:
        return key in self._data

    @contextmanager
    def transaction(self) -> Iterator["InMemoryStore"]:
        if self._depth:
            self._depth += 1
            try:
                yield self
            finally:
                self._depth -= 1
            return
        snapshot = dict(self._data)
        self._depth = 1
        try:
            yield self
        except Exception:
            self._data = snapshot
            raise
        finally:
            self._depth = 0

    def __len__(self) -> int:
        return len(self._data)


# -----------------------------------------------------------------------------
# Event sink
# -----------------------------------------------------------------------------


class EventSink(ABC):
    @abstractmethod
    def emit(self, event: WalletVerified) -> None:
        ...


class MemoryEventSink(EventSink):
    """
    Keeps emitted events in order.

    Events are appended as they are emitted and are not part of the store's
    transaction: if a call fails after emitting, its events stay in the list
    even though the store rolls its writes back.
    """

    def __init__(self) -> None:
        self.events: list[WalletVerified] = []

    def emit(self, event: WalletVerified) -> None:
        self.events.append(event)

    def clear(self) -> None:
        self.events.clear()

    def list_events(
        self,
        wallet: str | None = None,
        *,
        limit: int = 100,
    ) -> list[dict[str, Any]]:
        """Same shape as SqlEventLog.list_events, newest first; id is the 1-based emission index."""
        wanted = wallet.strip().lower() if wallet else None
        out: list[dict[str, Any]] = []
        for index in range(len(self.events) - 1, -1, -1):
            event = self.events[index]
            if wanted and str(event.wallet_address) != wanted:
                continue
            out.append({"id": index + 1, **event.to_dict()})
            if len(out) >= limit:
                break
        return out


# -----------------------------------------------------------------------------
# Bundle
# -----------------------------------------------------------------------------


@dataclass
class HostEnvironment:
    """Everything the registry needs from its host."""

    caller: CallerSource
    clock: Clock
    store: KeyValueStore
    events: EventSink


def in_memory_host(caller: CallerSource | None = None, clock: Clock | None = None) -> HostEnvironment:
    """Host with in-memory store and event sink; ContextCaller and SystemClock by default."""
    return HostEnvironment(
        caller=caller or ContextCaller(),
        clock=clock or SystemClock(),
        store=InMemoryStore(),
        events=MemoryEventSink(),
    )
