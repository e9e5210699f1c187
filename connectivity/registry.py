# ============================================================================
# CHECK HANDLE REGISTRY
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Ordered collection of in-flight checks
# PURPOSE: O(1) register/unregister and drain-on-shutdown
# CREATED: 17 OCT 2026
# ============================================================================
"""
Check Handle Registry

Holds every live CheckHandle in start order. A dict keyed by handle id
keeps insertion order and gives O(1) insert and removal.

Usage:
    registry = CheckHandleRegistry()
    registry.register(handle)
    ...
    registry.drain_all("shutting down")  # every handle gets its callback
"""

from typing import Dict, Iterator, List

from core.contracts import ReachabilityState
from core.logging import ComponentType, get_logger
from connectivity.errors import CheckCancelledError
from connectivity.handle import CheckHandle

logger = get_logger(__name__, ComponentType.ENGINE)


class CheckHandleRegistry:
    """
    Registry of in-flight check handles.

    A handle is added by the engine before start() returns and removed
    by CheckHandle.complete(); nothing else mutates the registry.
    """

    def __init__(self):
        self._handles: Dict[int, CheckHandle] = {}

    def register(self, handle: CheckHandle) -> None:
        """
        Add a handle.

        Raises:
            ValueError: If the handle is already registered
        """
        if handle.handle_id in self._handles:
            raise ValueError(f"Check handle already registered: {handle.handle_id}")
        self._handles[handle.handle_id] = handle

    def unregister(self, handle: CheckHandle) -> bool:
        """
        Remove a handle.

        Returns:
            True if the handle was registered
        """
        return self._handles.pop(handle.handle_id, None) is not None

    def get_all(self) -> List[CheckHandle]:
        """Snapshot of live handles in start order."""
        return list(self._handles.values())

    def drain_all(self, reason: str = "shutting down") -> int:
        """
        Terminate every live handle with ERROR and a cancelled error.

        Returns:
            Number of handles drained
        """
        if not self._handles:
            return 0

        error = CheckCancelledError(f"Connectivity check cancelled: {reason}", shutting_down=True)
        drained = 0
        while self._handles:
            handle = next(iter(self._handles.values()))
            if not handle.complete(ReachabilityState.ERROR, error, reason):
                # Terminal but still listed: drop it so the loop ends
                self._handles.pop(handle.handle_id, None)
                continue
            drained += 1

        logger.debug(f"Drained {drained} connectivity checks ({reason})")
        return drained

    def __len__(self) -> int:
        return len(self._handles)

    def __contains__(self, handle: CheckHandle) -> bool:
        return handle.handle_id in self._handles

    def __iter__(self) -> Iterator[CheckHandle]:
        return iter(self.get_all())


__all__ = [
    "CheckHandleRegistry",
]
