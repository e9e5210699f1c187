# ============================================================================
# CONNECTIVITY CONFIGURATION STATE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Hot-reloadable probe configuration
# PURPOSE: Validate, snapshot and broadcast probe URI/response/interval
# CREATED: 17 OCT 2026
# ============================================================================
"""
Connectivity Configuration State

ConnectivityConfig is an immutable snapshot. ConnectivityConfigService owns
the current snapshot, replaces it wholesale on a valid reload and tells
subscribers about it.

A check takes the snapshot reference once, at start(), so a reload never
changes the expectations of a check that is already running.

Keyfile format (the daemon's main config):

    [connectivity]
    uri=http://fedoraproject.org/static/hotspot.txt
    response=OK
    interval=300
    enabled=true
"""

import configparser
import logging
import threading
from pathlib import Path
from typing import Callable, List, Optional, Tuple, Union

import httpx
from pydantic import BaseModel, Field

from core.config import (
    DEFAULT_RESPONSE,
    MAX_INTERVAL_SECONDS,
    ConnectivityDefaults,
    get_defaults,
)
from core.logging import ComponentType, get_logger
from connectivity.errors import InvalidConfigError

logger = get_logger(__name__, ComponentType.CONFIG)

KEYFILE_SECTION = "connectivity"

ConfigSubscriber = Callable[["ConnectivityConfig"], None]


# ============================================================================
# SNAPSHOT
# ============================================================================

class ConnectivityConfig(BaseModel):
    """
    One consistent view of the probe configuration.

    host/port are derived from uri; enabled is derived from uri, interval
    and the administrative flag. Never mutated after construction.
    """
    uri: Optional[str] = Field(default=None, description="Absolute http:// probe URL")
    host: Optional[str] = Field(default=None, description="Host part of uri")
    port: Optional[int] = Field(default=None, description="Explicit port of uri, if any")
    response: Optional[str] = Field(
        default=None,
        description="Expected body prefix; None means the built-in default",
    )
    interval: int = Field(default=0, ge=0, le=MAX_INTERVAL_SECONDS)
    enabled: bool = False

    model_config = {"frozen": True}

    @property
    def expected_response(self) -> str:
        """Body prefix a check compares against ("" expects HTTP 204)."""
        return DEFAULT_RESPONSE if self.response is None else self.response

    @property
    def effective_port(self) -> int:
        """Port used for resolver pre-seeding."""
        return self.port if self.port is not None else 80


# ============================================================================
# URI VALIDATION
# ============================================================================

def parse_probe_uri(uri: str) -> Tuple[str, Optional[int]]:
    """
    Validate a probe URI and split out host and port.

    Returns:
        (host, port) where port is None when the URI has no explicit port

    Raises:
        InvalidConfigError: unparseable URI, missing host or disallowed scheme.
            `level` on the error is the log level the rejection deserves.
    """
    try:
        url = httpx.URL(uri)
    except httpx.InvalidURL as e:
        raise InvalidConfigError(
            f"invalid URI '{uri}' for connectivity check: {e}", uri=uri
        ) from e

    scheme = url.scheme.lower()
    if not scheme:
        raise InvalidConfigError(f"invalid URI '{uri}' for connectivity check.", uri=uri)

    if scheme == "https":
        raise InvalidConfigError(
            f"use of HTTPS for connectivity checking is not reliable and is "
            f"discouraged, ignoring URI: {uri}",
            uri=uri,
            level=logging.WARNING,
        )

    if scheme != "http":
        raise InvalidConfigError(
            f"scheme of '{uri}' uri doesn't use a scheme that is allowed "
            f"for connectivity check.",
            uri=uri,
        )

    if not url.host:
        raise InvalidConfigError(f"no host in URI '{uri}' for connectivity check.", uri=uri)

    return url.host, url.port


# ============================================================================
# SERVICE
# ============================================================================

class ConnectivityConfigService:
    """
    Owner of the current ConnectivityConfig snapshot.

    Writers call apply() (or apply_keyfile()); readers take `snapshot`.
    Subscribers are called after every apply that changed the snapshot,
    outside the lock, in subscription order.
    """

    def __init__(self, initial: Optional[ConnectivityConfig] = None):
        self._snapshot = initial or ConnectivityConfig()
        self._subscribers: List[ConfigSubscriber] = []
        self._lock = threading.Lock()

    @classmethod
    def from_defaults(cls, defaults: ConnectivityDefaults) -> "ConnectivityConfigService":
        """Create a service and apply the given defaults."""
        service = cls()
        service.apply(
            defaults.uri,
            defaults.response,
            defaults.interval,
            defaults.enabled,
        )
        return service

    @classmethod
    def from_env(cls) -> "ConnectivityConfigService":
        """Create a service configured from CONCHECK_* environment variables."""
        return cls.from_defaults(get_defaults().connectivity)

    # ------------------------------------------------------------------
    # Readers
    # ------------------------------------------------------------------

    @property
    def snapshot(self) -> ConnectivityConfig:
        """Current immutable snapshot."""
        return self._snapshot

    @property
    def enabled(self) -> bool:
        return self._snapshot.enabled

    @property
    def interval(self) -> int:
        """Polling interval in seconds, 0 while checking is disabled."""
        snapshot = self._snapshot
        return snapshot.interval if snapshot.enabled else 0

    # ------------------------------------------------------------------
    # Writers
    # ------------------------------------------------------------------

    def apply(
        self,
        uri: Optional[str],
        response: Optional[str],
        interval: Union[int, str],
        admin_enabled: bool,
    ) -> bool:
        """
        Validate and apply a new configuration.

        Errors are logged, never raised: an invalid value leaves the
        previous snapshot in force.

        Args:
            uri: Probe URL; None or "" means not configured
            response: Expected body prefix; None means the built-in default
            interval: Polling interval in seconds, clamped to 7 days
            admin_enabled: Administrative enable switch

        Returns:
            True if the values were accepted (changed or not)
        """
        uri = (uri or "").strip() or None
        host: Optional[str] = None
        port: Optional[int] = None

        if uri is not None:
            try:
                host, port = parse_probe_uri(uri)
            except InvalidConfigError as e:
                logger.log(e.level, str(e), extra={"uri": e.uri})
                return False

        try:
            interval = int(interval)
        except (TypeError, ValueError):
            logger.error(f"invalid connectivity check interval {interval!r}")
            return False
        if interval < 0:
            logger.error(f"invalid connectivity check interval {interval}")
            return False
        interval = min(interval, MAX_INTERVAL_SECONDS)

        new = ConnectivityConfig(
            uri=uri,
            host=host,
            port=port,
            response=response,
            interval=interval,
            enabled=bool(uri and interval and admin_enabled),
        )

        with self._lock:
            if new == self._snapshot:
                return True
            self._snapshot = new
            subscribers = list(self._subscribers)

        logger.debug(
            f"connectivity config changed: uri={new.uri} interval={new.interval} "
            f"enabled={new.enabled}"
        )

        for subscriber in subscribers:
            try:
                subscriber(new)
            except Exception:
                logger.exception("config change subscriber failed")

        return True

    def apply_keyfile_data(self, data: str) -> bool:
        """
        Apply the [connectivity] section of keyfile text.

        A missing section means "not configured". Returns False (and keeps
        the previous snapshot) if the text can't be parsed.
        """
        parser = configparser.ConfigParser(interpolation=None)
        try:
            parser.read_string(data)
        except configparser.Error as e:
            logger.error(f"unable to parse connectivity config: {e}")
            return False

        if not parser.has_section(KEYFILE_SECTION):
            return self.apply(None, None, 0, False)

        section = parser[KEYFILE_SECTION]
        try:
            enabled = section.getboolean("enabled", fallback=True)
        except ValueError as e:
            logger.error(f"invalid connectivity 'enabled' value: {e}")
            return False

        return self.apply(
            section.get("uri"),
            section.get("response"),
            section.get("interval", "300"),
            enabled,
        )

    def apply_keyfile(self, path: Union[str, Path]) -> bool:
        """Read a keyfile from disk and apply its [connectivity] section."""
        try:
            data = Path(path).read_text(encoding="utf-8")
        except OSError as e:
            logger.error(f"unable to read connectivity config {path}: {e}")
            return False
        return self.apply_keyfile_data(data)

    def subscribe(self, callback: ConfigSubscriber) -> Callable[[], None]:
        """
        Register a "config changed" callback.

        Returns:
            A function that removes the subscription again
        """
        with self._lock:
            self._subscribers.append(callback)

        def unsubscribe() -> None:
            with self._lock:
                if callback in self._subscribers:
                    self._subscribers.remove(callback)

        return unsubscribe


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "KEYFILE_SECTION",
    "ConfigSubscriber",
    "ConnectivityConfig",
    "ConnectivityConfigService",
    "parse_probe_uri",
]
