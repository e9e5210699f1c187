# ============================================================================
# CONFIGURATION DEFAULTS
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Default configuration values
# PURPOSE: Centralized defaults for probe URI, timeouts and the bus resolver
# CREATED: 17 OCT 2026
# ============================================================================
"""
Configuration Defaults

Provides sensible defaults for connectivity checking.
These can be overridden via environment variables or the daemon keyfile.

Design:
- Immutable dataclasses for defaults
- Environment variable overrides
- Type-safe access
"""

import os
from dataclasses import dataclass, field
from typing import Optional


# Expected body prefix when the config leaves `response` unset
DEFAULT_RESPONSE = "NetworkManager is online"

# Upper bound for the polling interval (7 days)
MAX_INTERVAL_SECONDS = 7 * 24 * 3600


def _env_bool(name: str, default: bool) -> bool:
    raw = os.getenv(name)
    if raw is None or not raw.strip():
        return default
    return raw.strip().lower() in ("1", "true", "yes", "on")


@dataclass(frozen=True)
class ConnectivityDefaults:
    """
    Defaults for the connectivity probe.

    An empty uri means checking is not configured.
    A response of None means DEFAULT_RESPONSE.
    """
    uri: str = ""
    response: Optional[str] = None
    interval: int = 300  # seconds
    enabled: bool = True

    @classmethod
    def from_env(cls) -> "ConnectivityDefaults":
        """Create from environment variables."""
        return cls(
            uri=os.getenv("CONCHECK_URI", ""),
            # Set-but-empty is a valid expectation (HTTP 204)
            response=os.environ.get("CONCHECK_RESPONSE"),
            interval=int(os.getenv("CONCHECK_INTERVAL", 300)),
            enabled=_env_bool("CONCHECK_ENABLED", True),
        )


@dataclass(frozen=True)
class TimeoutDefaults:
    """
    Defaults for check timeouts.

    check_timeout bounds a whole check (resolution + HTTP exchange).
    resolver_timeout bounds only the bus resolver attempt.
    """
    check_timeout: float = 20.0
    resolver_timeout: float = 5.0

    @classmethod
    def from_env(cls) -> "TimeoutDefaults":
        """Create from environment variables."""
        return cls(
            check_timeout=float(os.getenv("CONCHECK_TIMEOUT", 20.0)),
            resolver_timeout=float(os.getenv("CONCHECK_RESOLVER_TIMEOUT", 5.0)),
        )


@dataclass(frozen=True)
class ResolverDefaults:
    """
    Defaults for the system resolver reached over the message bus.
    """
    bus_name: str = "org.freedesktop.resolve1"
    object_path: str = "/org/freedesktop/resolve1"
    interface: str = "org.freedesktop.resolve1.Manager"
    method: str = "ResolveHostname"

    # SD_RESOLVED_DNS: only look the name up via classic DNS
    flags: int = 1

    use_resolved: bool = True

    @classmethod
    def from_env(cls) -> "ResolverDefaults":
        """Create from environment variables."""
        return cls(
            use_resolved=_env_bool("CONCHECK_USE_RESOLVED", True),
        )


# ============================================================================
# GLOBAL DEFAULTS INSTANCE
# ============================================================================

@dataclass
class Defaults:
    """Container for all default configurations."""
    connectivity: ConnectivityDefaults = field(default_factory=ConnectivityDefaults)
    timeouts: TimeoutDefaults = field(default_factory=TimeoutDefaults)
    resolver: ResolverDefaults = field(default_factory=ResolverDefaults)

    @classmethod
    def from_env(cls) -> "Defaults":
        """Create all defaults from environment variables."""
        return cls(
            connectivity=ConnectivityDefaults.from_env(),
            timeouts=TimeoutDefaults.from_env(),
            resolver=ResolverDefaults.from_env(),
        )


_defaults: Optional[Defaults] = None


def get_defaults() -> Defaults:
    """Get global defaults instance."""
    global _defaults
    if _defaults is None:
        _defaults = Defaults.from_env()
    return _defaults


def reset_defaults() -> None:
    """Reset defaults (for testing)."""
    global _defaults
    _defaults = None


# ============================================================================
# EXPORTS
# ============================================================================

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
