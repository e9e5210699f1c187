# ============================================================================
# CHECK HANDLE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Per-check state and single termination path
# PURPOSE: Own one in-flight check and guarantee exactly one callback
# CREATED: 17 OCT 2026
# ============================================================================
"""
Check Handle

A CheckHandle is created by ConnectivityEngine.start() and lives in the
registry until it reaches TERMINAL. Everything a check owns (probe task,
watchdog timer, deferred synthetic result, resolve list, response buffer)
hangs off the handle and is released by complete().

complete() is the only way to terminate a handle. The first caller wins;
every later trigger (timeout after cancel, transport completion after
timeout, ...) sees TERMINAL and returns False without calling back.
"""

import asyncio
import itertools
import logging
from typing import Any, Callable, List, Optional, TYPE_CHECKING

from core.contracts import AddressFamily, CheckState, ReachabilityState, state_to_string
from core.logging import ComponentType, get_logger, log_context
from connectivity.config import ConnectivityConfig
from connectivity.errors import CheckCancelledError

if TYPE_CHECKING:
    from connectivity.engine import ConnectivityEngine
    from connectivity.registry import CheckHandleRegistry

logger = get_logger(__name__, ComponentType.ENGINE)

# (engine, handle, state, error_or_none, user_data)
CheckCallback = Callable[
    ["ConnectivityEngine", "CheckHandle", ReachabilityState, Optional[Exception], Any],
    None,
]

_handle_ids = itertools.count(1)


class CheckHandle:
    """
    One connectivity check, from start() to its single callback.

    Attributes:
        handle_id: Opaque, process-unique identity
        addr_family: IPv4, IPv6 or unspecified
        ifindex: Kernel interface index (0 if unknown)
        ifname: Interface name, None for the synthetic path
        ifspec: Transport bind string ("if!<ifname>") or None
        config: Config snapshot taken at start()
        state: Position in the probe state machine
        result: Final reachability state once TERMINAL
    """

    def __init__(
        self,
        engine: "ConnectivityEngine",
        registry: "CheckHandleRegistry",
        addr_family: AddressFamily,
        ifindex: int,
        ifname: Optional[str],
        callback: CheckCallback,
        user_data: Any,
        config: ConnectivityConfig,
    ):
        self.handle_id = next(_handle_ids)
        self.engine = engine
        self.addr_family = AddressFamily(addr_family)
        self.ifindex = ifindex
        self.ifname = ifname
        self.ifspec = f"if!{ifname}" if ifname else None
        self.config = config
        self.state = CheckState.IDLE

        self.result: Optional[ReachabilityState] = None
        self.error: Optional[Exception] = None
        self.message: Optional[str] = None

        self._registry = registry
        self._callback: Optional[CheckCallback] = callback
        self._user_data = user_data

        # Transport sub-state
        self.resolve_list: List[str] = []
        self.recv_buffer = bytearray()

        self._task: Optional[asyncio.Task] = None
        self._watchdog: Optional[asyncio.TimerHandle] = None
        self._idle: Optional[asyncio.Handle] = None

    def __repr__(self) -> str:
        return (
            f"<CheckHandle {self.handle_id} ({self.ifname},{self.addr_family.label}) "
            f"{self.state.value}>"
        )

    # ------------------------------------------------------------------
    # State
    # ------------------------------------------------------------------

    @property
    def is_terminal(self) -> bool:
        return self.state.is_terminal()

    def advance(self, state: CheckState) -> bool:
        """
        Move to a non-terminal state.

        Returns:
            False if the handle already terminated (caller should stop)
        """
        if self.is_terminal:
            return False
        self.state = state
        return True

    # ------------------------------------------------------------------
    # Owned resources
    # ------------------------------------------------------------------

    def attach_task(self, task: asyncio.Task) -> None:
        self._task = task

    def arm_watchdog(self, loop: asyncio.AbstractEventLoop, timeout: float) -> None:
        """Force LIMITED if nothing classified within `timeout` seconds."""
        self._watchdog = loop.call_later(timeout, self._on_watchdog)

    def schedule_idle(self, loop: asyncio.AbstractEventLoop, callback: Callable[["CheckHandle"], None]) -> None:
        """Run `callback(self)` on the next loop iteration."""
        self._idle = loop.call_soon(self._on_idle, callback)

    def _on_idle(self, callback: Callable[["CheckHandle"], None]) -> None:
        self._idle = None
        if not self.is_terminal:
            callback(self)

    def _on_watchdog(self) -> None:
        self._watchdog = None
        self.complete(ReachabilityState.LIMITED, None, "timeout")

    def _release(self) -> None:
        if self._watchdog is not None:
            self._watchdog.cancel()
            self._watchdog = None
        if self._idle is not None:
            self._idle.cancel()
            self._idle = None

        task, self._task = self._task, None
        if task is not None and not task.done():
            try:
                current = asyncio.current_task()
            except RuntimeError:
                current = None
            # A probe classifying from inside its own task unwinds by itself
            if task is not current:
                task.cancel()

        self.resolve_list = []
        self.recv_buffer = bytearray()

    # ------------------------------------------------------------------
    # Termination
    # ------------------------------------------------------------------

    def complete(
        self,
        state: ReachabilityState,
        error: Optional[Exception] = None,
        message: str = "",
    ) -> bool:
        """
        Terminate the check and invoke its callback.

        Releases owned resources, unregisters the handle and then calls
        back exactly once.

        Returns:
            True if this call terminated the handle, False if it was
            already terminal
        """
        if self.is_terminal:
            return False

        self.state = CheckState.TERMINAL
        self.result = state
        self.error = error
        self.message = message

        self._release()
        self._registry.unregister(self)

        callback, self._callback = self._callback, None
        user_data, self._user_data = self._user_data, None
        if callback is None:
            return True

        with log_context(ifname=self.ifname, addr_family=self.addr_family.label, handle_id=self.handle_id):
            level = logging.DEBUG
            if state is ReachabilityState.ERROR and not isinstance(error, CheckCancelledError):
                level = logging.WARNING
            self.log(level, f"check completed: {state_to_string(state)}; {message}")

            callback(self.engine, self, state, error, user_data)

        return True

    # ------------------------------------------------------------------
    # Logging
    # ------------------------------------------------------------------

    def log(self, level: int, message: str) -> None:
        """Log with the "(ifname,AF_INET[6])" prefix used for every check."""
        logger.log(level, f"({self.ifname or ''},{self.addr_family.label}) {message}")


__all__ = [
    "CheckCallback",
    "CheckHandle",
]
