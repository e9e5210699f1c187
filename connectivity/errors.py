# ============================================================================
# CONNECTIVITY ERRORS
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Foundation - Exception taxonomy
# PURPOSE: Errors delivered through check callbacks or recovered locally
# CREATED: 17 OCT 2026
# ============================================================================
"""
Connectivity Errors

None of these cross the public dispatch API as raised exceptions.
They are either delivered as the `error` argument of a check callback
(CheckCancelledError, MissingInterfaceError, TransportSetupError) or
caught inside the engine and turned into a reachability state.
"""

import logging


class ConnectivityError(Exception):
    """Base error for the connectivity engine."""


class InvalidConfigError(ConnectivityError):
    """
    A probe URI (or other config value) failed validation.

    `level` is the log level the rejection should be reported at.
    """

    def __init__(self, message: str, uri: str = None, level: int = logging.ERROR):
        super().__init__(message)
        self.uri = uri
        self.level = level


class CheckCancelledError(ConnectivityError):
    """
    The check was cancelled before it could classify.

    `shutting_down` tells an explicit cancel() apart from the engine
    draining its handles on shutdown.
    """

    def __init__(self, message: str = "Check cancelled", shutting_down: bool = False):
        super().__init__(message)
        self.shutting_down = shutting_down


class MissingInterfaceError(ConnectivityError):
    """A check was started without an interface to bind to."""

    def __init__(self, message: str = "no interface specified for connectivity check"):
        super().__init__(message)


class TransportError(ConnectivityError):
    """The HTTP exchange failed (connect, DNS, socket, protocol)."""


class TransportSetupError(TransportError):
    """The HTTP client could not even be allocated for a request."""


class ResolverUnavailableError(ConnectivityError):
    """The bus resolver is absent, errored or timed out."""


__all__ = [
    "ConnectivityError",
    "InvalidConfigError",
    "CheckCancelledError",
    "MissingInterfaceError",
    "TransportError",
    "TransportSetupError",
    "ResolverUnavailableError",
]
