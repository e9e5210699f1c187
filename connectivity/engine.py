# ============================================================================
# CONNECTIVITY ENGINE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Public dispatch API
# PURPOSE: start()/cancel() connectivity checks on the running event loop
# CREATED: 17 OCT 2026
# ============================================================================
"""
Connectivity Engine

Entry point for the device layer:

    engine = ConnectivityEngine(ConnectivityConfigService.from_env())

    def on_result(engine, handle, state, error, user_data):
        ...

    handle = engine.start(AddressFamily.INET, ifindex, "eth0", on_result)
    ...
    engine.cancel(handle)          # callback fires before cancel() returns

Contract:
- start() never calls back synchronously; the handle is registered
  before start() returns
- every started check calls back exactly once
- nothing is raised across start()/cancel() for network conditions;
  outcomes arrive through the callback

start() must be called from the thread running the event loop.
"""

import asyncio
import logging
from typing import Any, Callable, List, Optional

from core.config import get_defaults
from core.contracts import AddressFamily, ReachabilityState
from core.logging import ComponentType, get_logger, log_context
from connectivity.config import ConfigSubscriber, ConnectivityConfig, ConnectivityConfigService
from connectivity.errors import CheckCancelledError, MissingInterfaceError
from connectivity.handle import CheckCallback, CheckHandle
from connectivity.probe import ProbeStateMachine
from connectivity.registry import CheckHandleRegistry
from connectivity.resolver import ResolverStrategy, create_default_resolver
from connectivity.transport import HttpTransport, HttpxTransport

logger = get_logger(__name__, ComponentType.ENGINE)


class ConnectivityEngine:
    """
    Dispatches connectivity checks and tracks them until they report.

    Collaborators are injected so tests can swap in a fake transport and
    resolver; by default httpx and the systemd-resolved bus are used.
    """

    def __init__(
        self,
        config: Optional[ConnectivityConfigService] = None,
        transport: Optional[HttpTransport] = None,
        resolver: Optional[ResolverStrategy] = None,
        check_timeout: Optional[float] = None,
    ):
        defaults = get_defaults()
        self.config = config or ConnectivityConfigService.from_env()
        self.transport = transport or HttpxTransport()
        self.resolver = resolver or create_default_resolver(defaults.resolver)
        self.check_timeout = (
            check_timeout if check_timeout is not None else defaults.timeouts.check_timeout
        )

        self._registry = CheckHandleRegistry()
        self._probe = ProbeStateMachine(self.transport, self.resolver, self.check_timeout)
        self._config_subscribers: List[ConfigSubscriber] = []
        self._unsubscribe_config = self.config.subscribe(self._on_config_changed)

    # ------------------------------------------------------------------
    # Config passthrough
    # ------------------------------------------------------------------

    @property
    def enabled(self) -> bool:
        return self.config.enabled

    @property
    def interval(self) -> int:
        """Polling interval in seconds, 0 while checking is disabled."""
        return self.config.interval

    def subscribe_config_changed(self, callback: ConfigSubscriber) -> Callable[[], None]:
        """
        Get notified after the probe configuration changed.

        Returns:
            A function that removes the subscription again
        """
        self._config_subscribers.append(callback)

        def unsubscribe() -> None:
            if callback in self._config_subscribers:
                self._config_subscribers.remove(callback)

        return unsubscribe

    def _on_config_changed(self, snapshot: ConnectivityConfig) -> None:
        for callback in list(self._config_subscribers):
            try:
                callback(snapshot)
            except Exception:
                logger.exception("config-changed subscriber failed")

    # ------------------------------------------------------------------
    # Handles
    # ------------------------------------------------------------------

    @property
    def handles(self) -> List[CheckHandle]:
        """In-flight checks, in start order."""
        return self._registry.get_all()

    def __len__(self) -> int:
        return len(self._registry)

    # ------------------------------------------------------------------
    # Dispatch
    # ------------------------------------------------------------------

    def start(
        self,
        addr_family: AddressFamily,
        ifindex: int,
        ifname: Optional[str],
        callback: CheckCallback,
        user_data: Any = None,
    ) -> CheckHandle:
        """
        Start one connectivity check.

        Args:
            addr_family: INET, INET6 or UNSPEC
            ifindex: Kernel interface index, used to scope name resolution
            ifname: Interface to bind the probe to; None yields ERROR
            callback: Called exactly once with
                (engine, handle, state, error, user_data)
            user_data: Passed through to callback

        Returns:
            The registered handle

        Raises:
            ValueError: callback is missing or ifname is an empty string
            RuntimeError: called with no running event loop
        """
        if callback is None:
            raise ValueError("callback is required")
        if ifname is not None and not ifname:
            raise ValueError("ifname must not be empty")

        loop = asyncio.get_running_loop()
        snapshot = self.config.snapshot

        handle = CheckHandle(
            engine=self,
            registry=self._registry,
            addr_family=addr_family,
            ifindex=ifindex,
            ifname=ifname,
            callback=callback,
            user_data=user_data,
            config=snapshot,
        )
        self._registry.register(handle)

        with log_context(ifname=ifname, addr_family=handle.addr_family.label, handle_id=handle.handle_id):
            if ifname and ifindex > 0 and snapshot.enabled and snapshot.host:
                handle.log(logging.DEBUG, f"start request to '{snapshot.uri}'")
                handle.arm_watchdog(loop, self.check_timeout)
                task = loop.create_task(
                    self._probe.run(handle),
                    name=f"concheck-{handle.handle_id}",
                )
                handle.attach_task(task)
            elif not ifname:
                handle.log(logging.DEBUG, "start fake request (missing interface)")
                handle.schedule_idle(loop, _deliver_missing_interface)
            else:
                handle.log(logging.DEBUG, "start fake request (checks disabled)")
                handle.schedule_idle(loop, _deliver_fake)

        return handle

    def cancel(self, handle: CheckHandle) -> None:
        """
        Cancel a check.

        The callback fires with ERROR and a CheckCancelledError before this
        returns. Cancelling a finished check does nothing.
        """
        if handle.is_terminal:
            logger.debug(f"cancel of finished connectivity check {handle.handle_id} ignored")
            return
        handle.complete(
            ReachabilityState.ERROR,
            CheckCancelledError("Connectivity check cancelled"),
            "cancelled",
        )

    # ------------------------------------------------------------------
    # Lifecycle
    # ------------------------------------------------------------------

    def shutdown(self, reason: str = "shutting down") -> int:
        """
        Terminate every in-flight check.

        Returns:
            Number of checks that were still running
        """
        return self._registry.drain_all(reason)

    async def aclose(self) -> None:
        """Drain checks, detach from config and close shared connections."""
        self.shutdown()
        self._unsubscribe_config()
        await self.transport.aclose()
        await self.resolver.aclose()


def _deliver_missing_interface(handle: CheckHandle) -> None:
    handle.complete(ReachabilityState.ERROR, MissingInterfaceError(), "missing interface")


def _deliver_fake(handle: CheckHandle) -> None:
    handle.complete(ReachabilityState.FAKE, None, "fake result")


__all__ = [
    "ConnectivityEngine",
]
