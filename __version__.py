# ============================================================================
# VERSION - CONNECTIVITY CHECK ENGINE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# ============================================================================
"""
Version information for the connectivity check engine.

This is the single source of truth for the application version.
Updated manually for each release.
"""
# Version format: major.minor.patch.build
__version__ = "0.3.0.0"
__version_info__ = tuple(int(x) for x in __version__.split("."))

# Build metadata
BUILD_DATE = "2026-10-17"

EPOCH = 1
CODENAME = "Connectivity Check Engine"

# Sent as User-Agent on every probe
USER_AGENT = f"concheck/{__version__}"
