"""Tests for Launcher concurrency control and shutdown behaviour."""

import os
import signal
import sys
import threading
import time

import pytest

from apphost.launcher import Launcher
from apphost.models import HostConfig, ServiceState
from apphost.registry import ServiceRegistry

from conftest import EventLog

# =============================================================================
# Concurrency Control
# =============================================================================


class TestLauncherConcurrency:
    """Tests for parallel launching and the concurrency limit."""

    def test_independent_services_start_concurrently(
        self, registry: ServiceRegistry, events: EventLog, fast_config: HostConfig
    ) -> None:
        for name in ("products", "basket", "payments"):
            registry.register(name, events.starter(name, delay=0.2))

        started = time.monotonic()
        result = Launcher(registry, fast_config).run()
        elapsed = time.monotonic() - started

        assert result.all_ready
        assert elapsed < 0.5, f"Expected parallel start, took {elapsed:.2f}s"

    def test_concurrency_limit_respected(self, registry: ServiceRegistry) -> None:
        """At most max_concurrency services launch simultaneously."""
        current = 0
        max_observed = 0
        lock = threading.Lock()

        def tracking_start() -> None:
            nonlocal current, max_observed
            with lock:
                current += 1
                max_observed = max(max_observed, current)
            time.sleep(0.02)
            with lock:
                current -= 1

        for i in range(6):
            registry.register(f"svc_{i}", tracking_start)

        config = HostConfig(poll_interval=0.01, max_concurrency=2)
        result = Launcher(registry, config).run()

        assert result.all_ready
        assert max_observed <= 2, f"Expected max 2 concurrent, observed {max_observed}"

    def test_slow_sibling_does_not_hold_back_unrelated_dependent(
        self, registry: ServiceRegistry, events: EventLog, fast_config: HostConfig
    ) -> None:
        """search is slow; store only waits for products and starts first."""
        registry.register(
            "search", events.starter("search"), events.probe("search", ready_after=0.3)
        )
        registry.register(
            "products", events.starter("products"), events.probe("products")
        )
        registry.register("store", events.starter("store"), events.probe("store"))
        registry.add_dependency("store", "products")

        result = Launcher(registry, fast_config).run()

        assert result.all_ready
        assert events.index("start:store") < events.index("ready:search")

    def test_hung_sync_start_does_not_starve_independent_service(
        self, registry: ServiceRegistry
    ) -> None:
        """A timed-out sync start keeps running but must not delay the next one."""
        release = threading.Event()
        registry.register("search", lambda: release.wait(5.0), readiness_timeout=0.2)
        registry.register("products", lambda: None, readiness_timeout=0.5)

        config = HostConfig(poll_interval=0.01, max_concurrency=1)
        try:
            result = Launcher(registry, config).run()
        finally:
            release.set()

        assert result.services["search"].error_type == "ReadinessTimeoutError"
        assert result.services["products"].state is ServiceState.READY

    def test_sync_calls_run_on_daemon_threads(
        self, registry: ServiceRegistry, fast_config: HostConfig
    ) -> None:
        seen: list[bool] = []

        def start_products() -> None:
            seen.append(threading.current_thread().daemon)

        registry.register("products", start_products)

        result = Launcher(registry, fast_config).run()

        assert result.all_ready
        assert seen == [True]


# =============================================================================
# Shutdown
# =============================================================================


class TestLauncherShutdown:
    """Tests for request_shutdown() cancellation."""

    def test_shutdown_cancels_pending_services_without_waiting_for_timeout(
        self, registry: ServiceRegistry, events: EventLog
    ) -> None:
        config = HostConfig(readiness_timeout=30.0, poll_interval=0.01)
        launcher = Launcher(registry, config)

        def start_products() -> None:
            events.record("start:products")
            threading.Timer(0.1, launcher.request_shutdown).start()

        registry.register("products", start_products, events.never_ready())
        registry.register("store", events.starter("store"))
        registry.add_dependency("store", "products")

        started = time.monotonic()
        result = launcher.run()
        elapsed = time.monotonic() - started

        assert elapsed < 5.0
        assert result.cancelled
        for name in ("products", "store"):
            assert result.services[name].state is ServiceState.FAILED
            assert result.services[name].error_type == "ServiceCancelledError"
        assert result.services["products"].started
        assert not result.services["store"].started
        assert events.started == ["products"]

    def test_shutdown_keeps_services_already_ready(
        self, registry: ServiceRegistry, events: EventLog
    ) -> None:
        config = HostConfig(readiness_timeout=30.0, poll_interval=0.01)
        launcher = Launcher(registry, config)

        def start_store() -> None:
            threading.Timer(0.1, launcher.request_shutdown).start()

        registry.register("products", events.starter("products"))
        registry.register("store", start_store, events.never_ready())
        registry.add_dependency("store", "products")

        result = launcher.run()

        assert result.services["products"].state is ServiceState.READY
        assert result.services["store"].error_type == "ServiceCancelledError"
        assert result.exit_code == 1

    def test_shutdown_when_idle_is_noop(self, registry: ServiceRegistry) -> None:
        registry.register("products", lambda: None)
        launcher = Launcher(registry, HostConfig(poll_interval=0.01))

        launcher.request_shutdown()
        result = launcher.run()

        assert not result.cancelled
        assert result.all_ready

    @pytest.mark.skipif(sys.platform == "win32", reason="POSIX signals only")
    def test_sigint_requests_shutdown_when_signals_handled(
        self, registry: ServiceRegistry, events: EventLog
    ) -> None:
        config = HostConfig(readiness_timeout=30.0, poll_interval=0.01)

        def start_products() -> None:
            events.record("start:products")
            os.kill(os.getpid(), signal.SIGINT)

        registry.register("products", start_products, events.never_ready())
        registry.register("store", events.starter("store"))
        registry.add_dependency("store", "products")

        result = Launcher(registry, config).run(handle_signals=True)

        assert result.cancelled
        assert result.services["products"].error_type == "ServiceCancelledError"
        assert result.services["store"].error_type == "ServiceCancelledError"
        assert events.started == ["products"]
        # Handlers are removed once the run is over
        assert signal.getsignal(signal.SIGINT) is signal.default_int_handler
