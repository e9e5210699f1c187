# ============================================================================
# HTTP TRANSPORT ADAPTER
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Infrastructure - Non-blocking HTTP exchange for probes
# PURPOSE: One interface-bound GET, streamed into a response sink
# CREATED: 17 OCT 2026
# ============================================================================
"""
HTTP Transport Adapter

The engine never blocks on I/O. Every probe is an asyncio task; the HTTP
client registers its sockets with the running event loop, timers are loop
timers, and the loop drives the exchange forward whenever a socket becomes
ready. Many probes share that one loop.

HttpTransport is the seam the probe state machine talks to:

    status = await transport.fetch(request, sink)

fetch() feeds every response header line to sink.on_header() and every
body chunk to sink.on_body(). A sink method returning False ends the
exchange early (classification already reached). Transport failures raise
TransportError; failing to set up the client raises TransportSetupError.

HttpxTransport implements the seam with httpx:
- interface binding: SO_BINDTODEVICE, set by InterfaceBoundBackend on
  each new socket before connect()
- address family: the backend only resolves and dials the requested family
- pre-seeded resolve list: the URL is pointed at a resolved literal and
  the Host header keeps the original name
"""

import asyncio
import socket
from abc import ABC, abstractmethod
from dataclasses import dataclass, field
from typing import Any, List, Optional, Tuple
from urllib.parse import urlsplit, urlunsplit

import httpcore
import httpx

from __version__ import USER_AGENT
from core.contracts import AddressFamily
from core.logging import ComponentType, get_logger
from connectivity.errors import TransportError, TransportSetupError

logger = get_logger(__name__, ComponentType.TRANSPORT)

# Linux value, missing from the socket module on some builds
SO_BINDTODEVICE = getattr(socket, "SO_BINDTODEVICE", 25)

# ============================================================================
# REQUEST / SINK
# ============================================================================

@dataclass
class ProbeRequest:
    """
    Everything the transport needs for one probe.

    Attributes:
        url: Probe URL (http://)
        ifname: Interface to bind the socket to
        addr_family: IP version to use (UNSPEC for either)
        resolve: Pre-seeded "host:port:address" entries
        headers: Extra request headers
        timeout: Per-operation network timeout in seconds
    """
    url: str
    ifname: Optional[str] = None
    addr_family: AddressFamily = AddressFamily.UNSPEC
    resolve: List[str] = field(default_factory=list)
    headers: List[Tuple[str, str]] = field(default_factory=lambda: [("Connection", "close")])
    timeout: float = 20.0

    @property
    def ifspec(self) -> Optional[str]:
        """Bind-interface string in "if!<ifname>" form."""
        return f"if!{self.ifname}" if self.ifname else None


class ResponseSink(ABC):
    """Receives a response as it streams in."""

    @abstractmethod
    def on_header(self, line: str) -> bool:
        """
        Handle one header line ("Name: value\\r\\n").

        Returns:
            False to stop the exchange
        """
        pass

    @abstractmethod
    def on_body(self, chunk: bytes) -> bool:
        """
        Handle one body chunk.

        Returns:
            False to stop the exchange
        """
        pass


def pick_resolved_target(request: ProbeRequest) -> Optional[Tuple[str, str]]:
    """
    Find a pre-seeded address for the request URL.

    Returns:
        (rewritten_url, host_header) or None when nothing matches
    """
    if not request.resolve:
        return None

    parts = urlsplit(request.url)
    host = parts.hostname
    port = parts.port or 80
    if not host:
        return None

    for entry in request.resolve:
        entry_host, _, rest = entry.partition(":")
        entry_port, _, address = rest.partition(":")
        if entry_host != host or entry_port != str(port) or not address:
            continue

        is_v6 = ":" in address
        if request.addr_family == AddressFamily.INET and is_v6:
            continue
        if request.addr_family == AddressFamily.INET6 and not is_v6:
            continue

        netloc = f"[{address}]" if is_v6 else address
        if parts.port:
            netloc = f"{netloc}:{parts.port}"
        host_header = f"{host}:{parts.port}" if parts.port else host
        return urlunsplit(parts._replace(netloc=netloc)), host_header

    return None


# ============================================================================
# INTERFACE-BOUND NETWORK BACKEND
# ============================================================================

class BoundSocketStream(httpcore.AsyncNetworkStream):
    """httpcore stream over an asyncio connection on an already-bound socket."""

    def __init__(self, reader: asyncio.StreamReader, writer: asyncio.StreamWriter):
        self._reader = reader
        self._writer = writer

    async def read(self, max_bytes: int, timeout: Optional[float] = None) -> bytes:
        try:
            return await asyncio.wait_for(self._reader.read(max_bytes), timeout)
        except asyncio.TimeoutError as e:
            raise httpcore.ReadTimeout(str(e)) from e
        except OSError as e:
            raise httpcore.ReadError(str(e)) from e

    async def write(self, buffer: bytes, timeout: Optional[float] = None) -> None:
        if not buffer:
            return
        try:
            self._writer.write(buffer)
            await asyncio.wait_for(self._writer.drain(), timeout)
        except asyncio.TimeoutError as e:
            raise httpcore.WriteTimeout(str(e)) from e
        except OSError as e:
            raise httpcore.WriteError(str(e)) from e

    async def aclose(self) -> None:
        self._writer.close()
        try:
            await self._writer.wait_closed()
        except OSError:
            # Peer already reset the connection; the socket is closed either way
            pass

    async def start_tls(self, ssl_context, server_hostname=None, timeout=None):
        raise httpcore.UnsupportedProtocol("connectivity probes are plain HTTP only")

    def get_extra_info(self, info: str) -> Any:
        if info == "socket":
            return self._writer.get_extra_info("socket")
        if info == "client_addr":
            return self._writer.get_extra_info("sockname")
        if info == "server_addr":
            return self._writer.get_extra_info("peername")
        if info == "is_readable":
            return self._reader.at_eof()
        return None


class InterfaceBoundBackend(httpcore.AsyncNetworkBackend):
    """
    Opens every TCP connection from `ifname`, restricted to `addr_family`.

    SO_BINDTODEVICE is set on the fresh socket before connect(), so the
    handshake itself leaves through the named interface and never falls
    back to the default route.
    """

    def __init__(self, ifname: Optional[str], addr_family: AddressFamily = AddressFamily.UNSPEC):
        self.ifname = ifname
        self.addr_family = AddressFamily(addr_family)

    def _open_socket(self, family: int, socket_options) -> socket.socket:
        sock = socket.socket(family, socket.SOCK_STREAM)
        try:
            sock.setblocking(False)
            if self.ifname:
                sock.setsockopt(socket.SOL_SOCKET, SO_BINDTODEVICE, self.ifname.encode())
            for option in socket_options or ():
                sock.setsockopt(*option)
        except OSError:
            sock.close()
            raise
        return sock

    async def connect_tcp(
        self,
        host: str,
        port: int,
        timeout: Optional[float] = None,
        local_address: Optional[str] = None,
        socket_options=None,
    ) -> httpcore.AsyncNetworkStream:
        loop = asyncio.get_running_loop()
        try:
            addresses = await asyncio.wait_for(
                loop.getaddrinfo(host, port, family=int(self.addr_family), type=socket.SOCK_STREAM),
                timeout,
            )
        except asyncio.TimeoutError as e:
            raise httpcore.ConnectTimeout(f"resolving {host}: timeout") from e
        except OSError as e:
            raise httpcore.ConnectError(f"resolving {host}: {e}") from e

        last_error: Optional[BaseException] = None
        for family, _, _, _, sockaddr in addresses:
            try:
                sock = self._open_socket(family, socket_options)
            except OSError as e:
                last_error = e
                continue

            try:
                await asyncio.wait_for(loop.sock_connect(sock, sockaddr), timeout)
                reader, writer = await asyncio.open_connection(sock=sock)
            except asyncio.TimeoutError as e:
                sock.close()
                raise httpcore.ConnectTimeout(f"connecting to {sockaddr[0]}: timeout") from e
            except OSError as e:
                sock.close()
                last_error = e
                continue

            return BoundSocketStream(reader, writer)

        raise httpcore.ConnectError(f"connecting to {host}:{port}: {last_error}")

    async def connect_unix_socket(self, path, timeout=None, socket_options=None):
        raise httpcore.UnsupportedProtocol("connectivity probes use TCP only")

    async def sleep(self, seconds: float) -> None:
        await asyncio.sleep(seconds)


class InterfaceBoundTransport(httpx.AsyncHTTPTransport):
    """httpx transport whose connection pool dials through InterfaceBoundBackend."""

    def __init__(self, ifname: Optional[str], addr_family: AddressFamily = AddressFamily.UNSPEC):
        super().__init__(retries=0)
        self._pool = httpcore.AsyncConnectionPool(
            max_connections=1,
            http1=True,
            http2=False,
            retries=0,
            network_backend=InterfaceBoundBackend(ifname, addr_family),
        )


# ============================================================================
# TRANSPORTS
# ============================================================================

class HttpTransport(ABC):
    """Base class for probe transports."""

    @abstractmethod
    async def fetch(self, request: ProbeRequest, sink: ResponseSink) -> int:
        """
        Perform one GET and stream the response into `sink`.

        Returns:
            HTTP status code of the response

        Raises:
            TransportSetupError: The client could not be created
            TransportError: Connect/DNS/socket/protocol failure
        """
        pass

    async def aclose(self) -> None:
        """Release shared transport resources."""
        return None


class HttpxTransport(HttpTransport):
    """
    httpx-backed transport.

    A fresh client per probe: the connection pool is bound to one
    interface and family, and "Connection: close" means nothing is
    reused anyway.
    """

    def __init__(self, user_agent: str = USER_AGENT):
        self.user_agent = user_agent

    def _build_client(self, request: ProbeRequest) -> httpx.AsyncClient:
        try:
            transport = InterfaceBoundTransport(request.ifname, request.addr_family)
            return httpx.AsyncClient(
                transport=transport,
                timeout=httpx.Timeout(request.timeout),
                follow_redirects=False,
                trust_env=False,
            )
        except (ValueError, TypeError, OSError) as e:
            raise TransportSetupError(f"unable to create HTTP client: {e}") from e

    async def fetch(self, request: ProbeRequest, sink: ResponseSink) -> int:
        url = request.url
        headers = {"User-Agent": self.user_agent}
        headers.update(dict(request.headers))

        target = pick_resolved_target(request)
        if target is not None:
            url, headers["Host"] = target
            logger.debug(f"{request.ifspec}: connecting to pre-resolved {url}")

        client = self._build_client(request)
        try:
            async with client:
                async with client.stream("GET", url, headers=headers) as response:
                    for name, value in response.headers.multi_items():
                        if not sink.on_header(f"{name}: {value}\r\n"):
                            return response.status_code

                    async for chunk in response.aiter_bytes():
                        if not sink.on_body(chunk):
                            break

                    return response.status_code

        except httpx.HTTPError as e:
            raise TransportError(f"{type(e).__name__}: {e}") from e
        except OSError as e:
            raise TransportError(f"socket error: {e}") from e


# ============================================================================
# EXPORTS
# ============================================================================

__all__ = [
    "SO_BINDTODEVICE",
    "ProbeRequest",
    "ResponseSink",
    "HttpTransport",
    "HttpxTransport",
    "InterfaceBoundBackend",
    "InterfaceBoundTransport",
    "pick_resolved_target",
]
