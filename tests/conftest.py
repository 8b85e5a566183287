"""Shared pytest fixtures for apphost tests."""

from __future__ import annotations

import textwrap
import threading
import time
import uuid
from collections.abc import Callable
from pathlib import Path

import pytest

from apphost.models import HostConfig
from apphost.registry import ServiceRegistry


class EventLog:
    """Thread-safe record of start and readiness events.

    Start actions record ``start:<name>`` when invoked; readiness probes
    record ``ready:<name>`` the first time they report True.
    """

    def __init__(self) -> None:
        self._lock = threading.Lock()
        self.events: list[str] = []
        self.ready_flags: dict[str, bool] = {}

    def record(self, event: str) -> None:
        with self._lock:
            self.events.append(event)

    def index(self, event: str) -> int:
        with self._lock:
            return self.events.index(event)

    @property
    def started(self) -> list[str]:
        with self._lock:
            return [e.split(":", 1)[1] for e in self.events if e.startswith("start:")]

    def starter(
        self,
        name: str,
        delay: float = 0.0,
        check: Callable[[], None] | None = None,
    ) -> Callable[[], None]:
        """Create a start action that records its invocation."""

        def start() -> None:
            self.record(f"start:{name}")
            if check is not None:
                check()
            if delay:
                time.sleep(delay)

        return start

    def probe(self, name: str, ready_after: float = 0.0) -> Callable[[], bool]:
        """Create a probe that turns True ``ready_after`` seconds after start."""
        started_at: list[float] = []

        def is_ready() -> bool:
            if not started_at:
                started_at.append(time.monotonic())
            if time.monotonic() - started_at[0] < ready_after:
                return False
            with self._lock:
                first = not self.ready_flags.get(name)
                self.ready_flags[name] = True
            if first:
                self.record(f"ready:{name}")
            return True

        return is_ready

    def never_ready(self) -> Callable[[], bool]:
        return lambda: False


@pytest.fixture
def events() -> EventLog:
    """Fresh event log for recording service activity."""
    return EventLog()


@pytest.fixture
def registry() -> ServiceRegistry:
    """Empty service registry."""
    return ServiceRegistry()


@pytest.fixture
def fast_config() -> HostConfig:
    """Launcher configuration with short timings for tests."""
    return HostConfig(readiness_timeout=2.0, poll_interval=0.01, max_concurrency=10)


@pytest.fixture
def services_module(tmp_path: Path, monkeypatch: pytest.MonkeyPatch) -> str:
    """Write an importable module of service callables and return its name.

    The module exposes ``start_products``/``start_store`` (recording into
    ``STARTED``), ``products_ready`` (always True), ``never_ready`` (always
    False), ``broken_start`` (raises) and ``NOT_CALLABLE``.
    """
    module_name = f"svc_{uuid.uuid4().hex}"
    source = textwrap.dedent(
        """
        STARTED = []
        NOT_CALLABLE = 42


        def start_products():
            STARTED.append("products")


        def start_store():
            STARTED.append("store")


        def products_ready():
            return True


        def never_ready():
            return False


        def broken_start():
            raise RuntimeError("catalogue database unreachable")
        """
    )
    (tmp_path / f"{module_name}.py").write_text(source, encoding="utf-8")
    monkeypatch.syspath_prepend(str(tmp_path))
    return module_name
