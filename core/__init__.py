# ============================================================================
# CORE MODULE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core module initialization
# PURPOSE: Export core contracts
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================

from core.contracts import (
    ReachabilityState,
    AddressFamily,
    CheckState,
    state_to_string,
)

__all__ = [
    "ReachabilityState",
    "AddressFamily",
    "CheckState",
    "state_to_string",
]
