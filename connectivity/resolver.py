# ============================================================================
# NAME RESOLUTION STRATEGY
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Per-interface name resolution with fallback
# PURPOSE: Pre-resolve the probe host via systemd-resolved over D-Bus
# CREATED: 17 OCT 2026
# ============================================================================
"""
Name Resolution Strategy

Resolving the probe host through systemd-resolved, scoped to the check's
interface, gets split-horizon and link-local DNS right. The resulting
addresses are handed to the transport as "host:port:address" entries so
it does not run a second, unscoped lookup.

Strategies:
- NativeResolver: resolves nothing; the transport does its own lookup
- ResolvedBusResolver: org.freedesktop.resolve1 ResolveHostname over the
  system bus (dbus-next)
- FallbackResolver: try a primary strategy with a timeout, on any failure
  use the fallback

Resolver failure is never a check failure.
"""

import asyncio
import ipaddress
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import List, Optional

from dbus_next import Message, MessageType
from dbus_next.aio import MessageBus
from dbus_next.constants import BusType
from dbus_next.errors import DBusError

from core.config import ResolverDefaults, get_defaults
from core.contracts import AddressFamily
from core.logging import ComponentType, get_logger
from connectivity.errors import ResolverUnavailableError

logger = get_logger(__name__, ComponentType.RESOLVER)

_ADDRESS_LENGTHS = {
    socket.AF_INET: 4,
    socket.AF_INET6: 16,
}


# ============================================================================
# RESULT TYPE
# ============================================================================

@dataclass(frozen=True)
class ResolvedAddress:
    """One address returned by a resolver, tagged with its family."""
    ifindex: int
    family: AddressFamily
    address: str

    def to_resolve_entry(self, host: str, port: int) -> str:
        """Format as a transport resolve-table entry: host:port:address."""
        return f"{host}:{port}:{self.address}"

    @classmethod
    def from_bytes(cls, ifindex: int, family: int, raw: bytes) -> Optional["ResolvedAddress"]:
        """
        Decode a raw address from the bus.

        Returns None when the family is unknown or the byte length doesn't
        match it.
        """
        expected = _ADDRESS_LENGTHS.get(family)
        if expected is None or len(raw) != expected:
            return None
        return cls(
            ifindex=ifindex,
            family=AddressFamily(family),
            address=socket.inet_ntop(family, bytes(raw)),
        )


def is_ip_literal(host: str) -> bool:
    """True if host is already an IPv4/IPv6 address."""
    try:
        ipaddress.ip_address(host)
    except ValueError:
        return False
    return True


# ============================================================================
# STRATEGIES
# ============================================================================

class ResolverStrategy(ABC):
    """
    Base class for probe host resolution.

    resolve() returns the addresses to pre-seed (possibly empty) or raises
    ResolverUnavailableError.
    """

    name: str = "unnamed"

    @abstractmethod
    async def resolve(
        self,
        host: str,
        addr_family: AddressFamily,
        ifindex: int,
    ) -> List[ResolvedAddress]:
        """
        Resolve `host` on interface `ifindex`.

        Args:
            host: Probe host name
            addr_family: Family to ask for (UNSPEC for both)
            ifindex: Interface to scope the lookup to
        """
        pass

    async def aclose(self) -> None:
        """Release any connection the strategy holds."""
        return None


class NativeResolver(ResolverStrategy):
    """Leave resolution to the HTTP transport."""

    name = "native"

    async def resolve(self, host, addr_family, ifindex) -> List[ResolvedAddress]:
        return []


class ResolvedBusResolver(ResolverStrategy):
    """
    systemd-resolved over the system bus.

    The bus connection is opened lazily and shared by all checks; it is
    dropped again whenever a call fails so the next check reconnects.
    """

    name = "systemd-resolved"

    def __init__(
        self,
        defaults: Optional[ResolverDefaults] = None,
        bus_type: BusType = BusType.SYSTEM,
    ):
        self.defaults = defaults or get_defaults().resolver
        self._bus_type = bus_type
        self._bus: Optional[MessageBus] = None
        self._connect_lock = asyncio.Lock()

    async def _get_bus(self) -> MessageBus:
        async with self._connect_lock:
            if self._bus is None or not self._bus.connected:
                try:
                    self._bus = await MessageBus(bus_type=self._bus_type).connect()
                except Exception as e:
                    self._bus = None
                    logger.warning(f"failed to connect to resolved via DBus: {e}")
                    raise ResolverUnavailableError(str(e)) from e
            return self._bus

    def _drop_bus(self) -> None:
        bus, self._bus = self._bus, None
        if bus is not None:
            bus.disconnect()

    async def resolve(self, host, addr_family, ifindex) -> List[ResolvedAddress]:
        bus = await self._get_bus()

        message = Message(
            destination=self.defaults.bus_name,
            path=self.defaults.object_path,
            interface=self.defaults.interface,
            member=self.defaults.method,
            signature="isit",
            body=[int(ifindex), host, int(addr_family), self.defaults.flags],
        )

        try:
            reply = await bus.call(message)
        except (OSError, EOFError, DBusError) as e:
            self._drop_bus()
            raise ResolverUnavailableError(str(e)) from e

        if reply is None:
            raise ResolverUnavailableError("no reply from resolver")
        if reply.message_type == MessageType.ERROR:
            # Name errors are per-query; the bus itself is still fine
            detail = reply.body[0] if reply.body else reply.error_name
            raise ResolverUnavailableError(f"{reply.error_name}: {detail}")

        # a(iiay) addresses, s canonical name, t flags
        addresses: List[ResolvedAddress] = []
        for entry_ifindex, family, raw in reply.body[0]:
            resolved = ResolvedAddress.from_bytes(entry_ifindex, family, raw)
            if resolved is None:
                logger.debug(f"skipping malformed resolver address (family={family})")
                continue
            addresses.append(resolved)
        return addresses

    async def aclose(self) -> None:
        self._drop_bus()


class FallbackResolver(ResolverStrategy):
    """
    Try `primary` within `timeout` seconds, otherwise use `fallback`.

    Any failure of the primary (unavailable, timeout, unexpected error)
    is logged at debug level and absorbed.
    """

    name = "fallback"

    def __init__(
        self,
        primary: ResolverStrategy,
        fallback: Optional[ResolverStrategy] = None,
        timeout: Optional[float] = None,
    ):
        self.primary = primary
        self.fallback = fallback or NativeResolver()
        self.timeout = timeout if timeout is not None else get_defaults().timeouts.resolver_timeout

    async def resolve(self, host, addr_family, ifindex) -> List[ResolvedAddress]:
        try:
            return await asyncio.wait_for(
                self.primary.resolve(host, addr_family, ifindex),
                timeout=self.timeout,
            )
        except asyncio.TimeoutError:
            logger.debug(
                f"can't resolve a name via {self.primary.name}: timeout after {self.timeout}s"
            )
        except ResolverUnavailableError as e:
            logger.debug(f"can't resolve a name via {self.primary.name}: {e}")
        except Exception as e:
            logger.debug(f"can't resolve a name via {self.primary.name}: unexpected {e!r}")

        return await self.fallback.resolve(host, addr_family, ifindex)

    async def aclose(self) -> None:
        await self.primary.aclose()
        await self.fallback.aclose()


def create_default_resolver(defaults: Optional[ResolverDefaults] = None) -> ResolverStrategy:
    """Bus resolver with native fallback, or native only if disabled."""
    defaults = defaults or get_defaults().resolver
    if not defaults.use_resolved:
        return NativeResolver()
    return FallbackResolver(ResolvedBusResolver(defaults))


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "ResolvedAddress",
    "ResolverStrategy",
    "NativeResolver",
    "ResolvedBusResolver",
    "FallbackResolver",
    "create_default_resolver",
    "is_ip_literal",
]
