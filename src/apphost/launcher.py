"""Launcher for dependency-ordered service startup.

The Launcher starts registered services in parallel using asyncio,
respecting dependency ordering from the DependencyGraph. Sync start actions
and readiness probes each run on their own daemon thread, so a hung call
never delays another service or keeps the process alive at exit.
"""

from __future__ import annotations

import asyncio
import inspect
import logging
import signal
import threading
import time
from collections.abc import Callable
from concurrent.futures import Future
from dataclasses import dataclass
from typing import Any

from apphost.errors import (
    DependencyFailedError,
    DependencyTimeoutError,
    ReadinessTimeoutError,
    ServiceCancelledError,
    StartActionError,
)
from apphost.graph import DependencyGraph, ServiceDescriptor
from apphost.models import HostConfig, RunResult, ServiceState
from apphost.registry import ServiceRegistry
from apphost.state import StateTable

logger = logging.getLogger(__name__)

_SHUTDOWN_SIGNALS = (signal.SIGINT, signal.SIGTERM)


@dataclass
class _LaunchContext:
    """Internal context for a single launcher run."""

    graph: DependencyGraph
    state: StateTable
    semaphore: asyncio.Semaphore
    shutdown: asyncio.Event


def _run_sync(func: Callable[[], Any], future: Future[Any]) -> None:
    """Thread target: call func and publish its outcome on future."""
    if not future.set_running_or_notify_cancel():
        return
    try:
        result = func()
    except BaseException as e:  # noqa: BLE001
        future.set_exception(e)
    else:
        future.set_result(result)


def _cancel_requested() -> bool:
    """True if the current task is being cancelled from outside.

    A CancelledError raised while this is False came from the awaited
    callable itself, not from a timeout or shutdown.
    """
    task = asyncio.current_task()
    return task is None or task.cancelling() > 0


def _task_error(task: asyncio.Task[None], name: str) -> BaseException | None:
    """Outcome of a finished launch task, without re-raising cancellation."""
    if task.cancelled():
        return ServiceCancelledError(f"Service '{name}' was cancelled")
    return task.exception()


class Launcher:
    """Starts the services of a registry in dependency order."""

    def __init__(
        self, registry: ServiceRegistry, config: HostConfig | None = None
    ) -> None:
        """Initialise launcher.

        Args:
            registry: Registry holding the services to start.
            config: Launcher configuration. Defaults to HostConfig().

        """
        self._registry = registry
        self._config = config or HostConfig()
        self._last_result: RunResult | None = None
        self._loop: asyncio.AbstractEventLoop | None = None
        self._shutdown: asyncio.Event | None = None

    @property
    def config(self) -> HostConfig:
        """Configuration used by this launcher."""
        return self._config

    @property
    def last_result(self) -> RunResult | None:
        """Result of the most recent run, if any."""
        return self._last_result

    def run(self, handle_signals: bool = False) -> RunResult:
        """Start all services and block until each is Ready or Failed.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers that request
                shutdown for the duration of the run.

        Returns:
            RunResult summarising the terminal state of every service.

        """
        return asyncio.run(self.execute(handle_signals=handle_signals))

    async def execute(self, handle_signals: bool = False) -> RunResult:
        """Start all services on the running event loop.

        Services already Ready from a previous run are kept as they are and
        not restarted. Failures are recorded per service, never raised.

        Args:
            handle_signals: Install SIGINT/SIGTERM handlers that request
                shutdown for the duration of the run.

        Returns:
            RunResult summarising the terminal state of every service.

        """
        start_time = time.monotonic()
        previous = self._last_result.services if self._last_result else None
        state = StateTable.fresh(self._registry.names, previous)

        loop = asyncio.get_running_loop()
        self._loop = loop
        self._shutdown = asyncio.Event()
        installed = self._install_signal_handlers(loop) if handle_signals else []

        ctx = _LaunchContext(
            graph=self._registry.graph,
            state=state,
            semaphore=asyncio.Semaphore(self._config.max_concurrency),
            shutdown=self._shutdown,
        )
        try:
            cancelled = await self._launch_all(ctx)
        finally:
            for sig in installed:
                loop.remove_signal_handler(sig)
            self._loop = None
            self._shutdown = None

        result = RunResult(
            services=state.results(),
            total_duration_seconds=time.monotonic() - start_time,
            cancelled=cancelled,
        )
        self._last_result = result
        logger.info(
            "Run finished: %d ready, %d failed, %.2fs",
            len(result.ready),
            len(result.failed),
            result.total_duration_seconds,
        )
        return result

    def request_shutdown(self) -> None:
        """Cancel every service still starting and stop launching new ones.

        Safe to call from any thread or from a signal handler.
        """
        loop, event = self._loop, self._shutdown
        if loop is None or event is None:
            logger.debug("Shutdown requested while no run is in progress")
            return
        logger.warning("Shutdown requested, cancelling pending services")
        loop.call_soon_threadsafe(event.set)

    def _install_signal_handlers(
        self, loop: asyncio.AbstractEventLoop
    ) -> list[signal.Signals]:
        installed: list[signal.Signals] = []
        for sig in _SHUTDOWN_SIGNALS:
            try:
                loop.add_signal_handler(sig, self.request_shutdown)
            except (NotImplementedError, RuntimeError):
                # Not supported on this platform or outside the main thread
                logger.debug("Cannot install handler for %s", sig.name)
                continue
            installed.append(sig)
        return installed

    async def _launch_all(self, ctx: _LaunchContext) -> bool:
        """Launch services as their dependencies become Ready.

        Returns:
            True if the run was cut short by a shutdown request.

        """
        sorter = ctx.graph.create_sorter()
        in_flight: dict[asyncio.Task[None], str] = {}
        shutdown_waiter = asyncio.create_task(ctx.shutdown.wait())

        try:
            while sorter.is_active():
                ready = sorted(sorter.get_ready(), key=lambda n: ctx.graph.get(n).index)
                for name in ready:
                    if ctx.state.state(name) is ServiceState.REGISTERED:
                        task = asyncio.create_task(
                            self._launch(ctx.graph.get(name), ctx), name=name
                        )
                        in_flight[task] = name
                    else:
                        # Carried over as Ready, or failed by an upstream cascade
                        sorter.done(name)

                if not in_flight:
                    continue

                done, _ = await asyncio.wait(
                    [*in_flight, shutdown_waiter],
                    return_when=asyncio.FIRST_COMPLETED,
                )
                for task in done:
                    if task is shutdown_waiter:
                        continue
                    name = in_flight.pop(task)
                    self._record_outcome(name, _task_error(task, name), ctx)
                    sorter.done(name)

                if shutdown_waiter in done:
                    await self._cancel_remaining(in_flight, ctx)
                    return True
            return False
        finally:
            shutdown_waiter.cancel()

    async def _launch(self, descriptor: ServiceDescriptor, ctx: _LaunchContext) -> None:
        """Start a single service and wait for it to report ready."""
        name = descriptor.name
        timeout = descriptor.readiness_timeout or self._config.readiness_timeout

        async with ctx.semaphore:
            ctx.state.mark_starting(name)
            logger.info("Starting service '%s'", name)
            try:
                async with asyncio.timeout(timeout):
                    try:
                        await self._invoke(descriptor.start, name)
                    except asyncio.CancelledError as e:
                        if _cancel_requested():
                            raise
                        raise StartActionError(
                            f"Start action for '{name}' was cancelled"
                        ) from e
                    except Exception as e:
                        raise StartActionError(
                            f"Start action for '{name}' failed: {e}"
                        ) from e
                    await self._wait_until_ready(descriptor)
            except TimeoutError as e:
                raise ReadinessTimeoutError(
                    f"Service '{name}' did not become ready within {timeout:g}s"
                ) from e

    async def _wait_until_ready(self, descriptor: ServiceDescriptor) -> None:
        """Poll the readiness probe until it reports True."""
        if descriptor.ready is None:
            return
        name = descriptor.name
        while True:
            try:
                if await self._invoke(descriptor.ready, name):
                    return
            except asyncio.CancelledError as e:
                if _cancel_requested():
                    raise
                logger.debug("Readiness probe for '%s' was cancelled: %s", name, e)
            except Exception as e:
                # A failing probe means "not ready yet"
                logger.debug("Readiness probe for '%s' raised: %s", name, e)
            await asyncio.sleep(self._config.poll_interval)

    async def _invoke(self, func: Any, name: str) -> Any:  # noqa: ANN401
        """Call a sync or async callable without blocking the event loop.

        Sync callables get a dedicated daemon thread rather than a shared
        pool, so a call abandoned after a timeout cannot delay the calls of
        other services.
        """
        if inspect.iscoroutinefunction(func):
            return await func()

        future: Future[Any] = Future()
        threading.Thread(
            target=_run_sync,
            args=(func, future),
            daemon=True,
            name=f"apphost-{name}",
        ).start()
        result = await asyncio.wrap_future(future)
        if inspect.isawaitable(result):
            return await result
        return result

    def _record_outcome(
        self, name: str, error: BaseException | None, ctx: _LaunchContext
    ) -> None:
        """Mark a finished launch Ready or Failed, cascading failures."""
        if error is None:
            ctx.state.mark_ready(name)
            logger.info("Service '%s' is ready", name)
            return

        ctx.state.mark_failed(name, error)
        logger.error("Service '%s' failed: %s", name, error)
        self._fail_dependents(name, error, ctx)

    def _fail_dependents(
        self, name: str, error: BaseException, ctx: _LaunchContext
    ) -> None:
        """Mark all transitive dependents of a failed service as Failed."""
        timed_out = isinstance(error, DependencyTimeoutError)
        for dependent in sorted(
            ctx.graph.get_transitive_dependents(name),
            key=lambda n: ctx.graph.get(n).index,
        ):
            if timed_out:
                cascade: Exception = DependencyTimeoutError(
                    f"Service '{dependent}' was not started: dependency '{name}' "
                    f"did not become ready"
                )
            else:
                cascade = DependencyFailedError(
                    f"Service '{dependent}' was not started: dependency '{name}' failed"
                )
            if ctx.state.mark_failed(dependent, cascade):
                logger.warning("%s", cascade)

    async def _cancel_remaining(
        self, in_flight: dict[asyncio.Task[None], str], ctx: _LaunchContext
    ) -> None:
        """Cancel in-flight launches and fail every service not yet Ready."""
        for task in in_flight:
            task.cancel()
        await asyncio.gather(*in_flight, return_exceptions=True)

        for task, name in in_flight.items():
            if task.cancelled():
                ctx.state.mark_failed(
                    name, ServiceCancelledError(f"Service '{name}' was cancelled")
                )
                logger.warning("Service '%s' was cancelled", name)
            else:
                self._record_outcome(name, task.exception(), ctx)

        for name in ctx.state.names_in(ServiceState.REGISTERED):
            ctx.state.mark_failed(
                name,
                ServiceCancelledError(
                    f"Service '{name}' was not started: shutdown requested"
                ),
            )
