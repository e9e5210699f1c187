# ============================================================================
# BASE CONTRACTS & ENUMS
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Foundation - Core enums for connectivity checking
# PURPOSE: Reachability states, address families, check lifecycle states
# LAST_REVIEWED: 17 OCT 2026
# EXPORTS: ReachabilityState, AddressFamily, CheckState, state_to_string
# DEPENDENCIES: enum, socket
# ============================================================================
"""
Base contracts for the connectivity check engine.

These are the value types that cross the public dispatch boundary:
- ReachabilityState is what a completed check reports
- AddressFamily selects which IP version a probe is bound to
- CheckState tracks a single handle through the probe state machine
"""

import socket
from enum import Enum, IntEnum


# ============================================================================
# STATUS ENUMS
# ============================================================================

class ReachabilityState(IntEnum):
    """
    Observed internet access quality for one interface/address family.

    UNKNOWN is never produced by a completed check; it is the placeholder
    collaborators hold before their first result arrives.
    """
    UNKNOWN = 0
    NONE = 1
    PORTAL = 2
    LIMITED = 3
    FULL = 4

    # Not part of the published connectivity scale
    ERROR = -1
    FAKE = -2

    def is_connected(self) -> bool:
        """Only FULL counts as fully connected for policy purposes."""
        return self is ReachabilityState.FULL


_STATE_NAMES = {
    ReachabilityState.UNKNOWN: "UNKNOWN",
    ReachabilityState.NONE: "NONE",
    ReachabilityState.LIMITED: "LIMITED",
    ReachabilityState.PORTAL: "PORTAL",
    ReachabilityState.FULL: "FULL",
    ReachabilityState.ERROR: "ERROR",
    ReachabilityState.FAKE: "FAKE",
}


def state_to_string(state) -> str:
    """Printable name of a reachability state ("???" for garbage)."""
    try:
        return _STATE_NAMES[ReachabilityState(state)]
    except (ValueError, KeyError):
        return "???"


class AddressFamily(IntEnum):
    """Address family a check is restricted to."""
    UNSPEC = socket.AF_UNSPEC
    INET = socket.AF_INET
    INET6 = socket.AF_INET6

    @property
    def label(self) -> str:
        """Short label used in log prefixes (AF_INET / AF_INET6)."""
        return "AF_INET6" if self is AddressFamily.INET6 else "AF_INET"


class CheckState(str, Enum):
    """
    Lifecycle of one check handle.

    State transitions:
        IDLE -> RESOLVING -> REQUESTING -> CLASSIFYING -> TERMINAL
        IDLE -> TERMINAL (synthetic result, cancel, timeout)
    Any non-terminal state may jump to TERMINAL on cancel or timeout.
    """
    IDLE = "idle"
    RESOLVING = "resolving"
    REQUESTING = "requesting"
    CLASSIFYING = "classifying"
    TERMINAL = "terminal"

    def is_terminal(self) -> bool:
        """Check if this is a terminal state (no further transitions)."""
        return self is CheckState.TERMINAL


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ReachabilityState",
    "AddressFamily",
    "CheckState",
    "state_to_string",
]
