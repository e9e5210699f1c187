# ============================================================================
# CONFIGURATION MODULE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Configuration and defaults
# PURPOSE: Centralized configuration management
# CREATED: 17 OCT 2026
# ============================================================================
"""
Configuration Module

Provides centralized configuration and defaults for the connectivity engine.
"""

from core.config.defaults import (
    DEFAULT_RESPONSE,
    MAX_INTERVAL_SECONDS,
    ConnectivityDefaults,
    TimeoutDefaults,
    ResolverDefaults,
    Defaults,
    get_defaults,
    reset_defaults,
)

__all__ = [
    "DEFAULT_RESPONSE",
    "MAX_INTERVAL_SECONDS",
    "ConnectivityDefaults",
    "TimeoutDefaults",
    "ResolverDefaults",
    "Defaults",
    "get_defaults",
    "reset_defaults",
]
