# ============================================================================
# CONNECTIVITY MODULE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core module initialization
# PURPOSE: Export the connectivity check engine
# LAST_REVIEWED: 17 OCT 2026
# ============================================================================
"""
Connectivity Check Engine

Per-interface HTTP probes that classify internet reachability as FULL,
PORTAL, LIMITED, ERROR or FAKE and report each result through a
callback.
"""

from connectivity.config import ConnectivityConfig, ConnectivityConfigService, parse_probe_uri
from connectivity.engine import ConnectivityEngine
from connectivity.errors import (
    ConnectivityError,
    InvalidConfigError,
    CheckCancelledError,
    MissingInterfaceError,
    TransportError,
    TransportSetupError,
    ResolverUnavailableError,
)
from connectivity.handle import CheckCallback, CheckHandle
from connectivity.registry import CheckHandleRegistry
from connectivity.resolver import (
    ResolvedAddress,
    ResolverStrategy,
    NativeResolver,
    ResolvedBusResolver,
    FallbackResolver,
    create_default_resolver,
)
from connectivity.transport import HttpTransport, HttpxTransport, ProbeRequest, ResponseSink

__all__ = [
    # Engine
    "ConnectivityEngine",
    "CheckHandle",
    "CheckCallback",
    "CheckHandleRegistry",
    # Config
    "ConnectivityConfig",
    "ConnectivityConfigService",
    "parse_probe_uri",
    # Errors
    "ConnectivityError",
    "InvalidConfigError",
    "CheckCancelledError",
    "MissingInterfaceError",
    "TransportError",
    "TransportSetupError",
    "ResolverUnavailableError",
    # Resolution
    "ResolvedAddress",
    "ResolverStrategy",
    "NativeResolver",
    "ResolvedBusResolver",
    "FallbackResolver",
    "create_default_resolver",
    # Transport
    "HttpTransport",
    "HttpxTransport",
    "ProbeRequest",
    "ResponseSink",
]
