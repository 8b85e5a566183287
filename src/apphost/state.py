"""Per-run state table for tracking service lifecycle.

StateTable tracks which services are registered, starting, ready or failed
during a launcher run. All mutations go through a single lock-guarded
transition method so concurrent launches cannot race each other.
"""

from __future__ import annotations

import logging
import threading
import time
from collections.abc import Iterable, Mapping
from dataclasses import dataclass
from typing import Self

from apphost.models import ServiceResult, ServiceState

logger = logging.getLogger(__name__)

_ALLOWED_TRANSITIONS: dict[ServiceState, frozenset[ServiceState]] = {
    ServiceState.STARTING: frozenset({ServiceState.REGISTERED}),
    ServiceState.READY: frozenset({ServiceState.STARTING}),
    ServiceState.FAILED: frozenset({ServiceState.REGISTERED, ServiceState.STARTING}),
}


@dataclass
class _ServiceRecord:
    state: ServiceState = ServiceState.REGISTERED
    error: BaseException | None = None
    start_sequence: int | None = None
    started_at: float | None = None
    duration_seconds: float = 0.0
    carried: ServiceResult | None = None


class StateTable:
    """Tracks the lifecycle state of every service in a run.

    State transitions are one-way:
    registered -> starting -> {ready, failed}, registered -> failed.
    A transition that is not allowed is a no-op and returns False.
    """

    def __init__(self, names: Iterable[str]) -> None:
        """Initialise with every service in the registered state.

        Args:
            names: Service names in registration order.

        """
        self._lock = threading.Lock()
        self._records: dict[str, _ServiceRecord] = {n: _ServiceRecord() for n in names}
        self._next_sequence = 0

    @classmethod
    def fresh(
        cls,
        names: Iterable[str],
        previous: Mapping[str, ServiceResult] | None = None,
    ) -> Self:
        """Create state for a new run.

        Services that ended Ready in ``previous`` stay Ready and keep their
        earlier result; every other service starts over as registered.

        Args:
            names: Service names in registration order.
            previous: Results from an earlier run of the same registry.

        """
        table = cls(names)
        for name, result in (previous or {}).items():
            record = table._records.get(name)
            if record is not None and result.state is ServiceState.READY:
                record.state = ServiceState.READY
                record.carried = result
                if result.start_sequence is not None:
                    table._next_sequence = max(
                        table._next_sequence, result.start_sequence + 1
                    )
        return table

    def _transition(
        self,
        name: str,
        to: ServiceState,
        error: BaseException | None = None,
    ) -> bool:
        with self._lock:
            record = self._records[name]
            if record.state not in _ALLOWED_TRANSITIONS[to]:
                logger.debug(
                    "Ignoring transition of '%s' from %s to %s",
                    name,
                    record.state.value,
                    to.value,
                )
                return False

            now = time.monotonic()
            if to is ServiceState.STARTING:
                record.start_sequence = self._next_sequence
                self._next_sequence += 1
                record.started_at = now
            elif record.started_at is not None:
                record.duration_seconds = now - record.started_at

            record.state = to
            record.error = error
            return True

    def mark_starting(self, name: str) -> bool:
        """Move a service from registered to starting."""
        return self._transition(name, ServiceState.STARTING)

    def mark_ready(self, name: str) -> bool:
        """Move a service from starting to ready."""
        return self._transition(name, ServiceState.READY)

    def mark_failed(self, name: str, error: BaseException) -> bool:
        """Move a service from registered or starting to failed.

        Args:
            name: The service to fail.
            error: The cause, recorded in the run result.

        """
        return self._transition(name, ServiceState.FAILED, error)

    def state(self, name: str) -> ServiceState:
        """Current state of a service."""
        with self._lock:
            return self._records[name].state

    def error(self, name: str) -> BaseException | None:
        """Failure cause of a service, if it failed."""
        with self._lock:
            return self._records[name].error

    def names_in(self, *states: ServiceState) -> list[str]:
        """Names of services currently in any of the given states."""
        with self._lock:
            return [n for n, r in self._records.items() if r.state in states]

    def results(self) -> dict[str, ServiceResult]:
        """Snapshot the table as per-service results."""
        with self._lock:
            return {name: self._to_result(name, r) for name, r in self._records.items()}

    @staticmethod
    def _to_result(name: str, record: _ServiceRecord) -> ServiceResult:
        if record.carried is not None:
            return record.carried
        error = record.error
        return ServiceResult(
            name=name,
            state=record.state,
            error=str(error) if error is not None else None,
            error_type=type(error).__name__ if error is not None else None,
            started=record.start_sequence is not None,
            start_sequence=record.start_sequence,
            duration_seconds=record.duration_seconds,
        )
