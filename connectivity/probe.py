# ============================================================================
# PROBE STATE MACHINE
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Core - Resolve, request and classify one check
# PURPOSE: Drive a CheckHandle from IDLE to TERMINAL
# CREATED: 17 OCT 2026
# ============================================================================
"""
Probe State Machine

    IDLE -> RESOLVING -> REQUESTING -> CLASSIFYING -> TERMINAL

ProbeStateMachine.run() is the body of the per-check asyncio task. It
can be interrupted at any await by cancel(), the watchdog or shutdown;
those paths terminate the handle themselves and cancel the task.

Classification, in priority order, as data streams in:
1. Marker header "X-NetworkManager-Status: online" -> FULL, stop reading
2. Body at least as long as the expected text: prefix match -> FULL,
   mismatch -> PORTAL, stop reading
3. Expected text empty, status 204, empty body -> FULL
4. Anything else once the exchange ends -> PORTAL (unexpected short response)
5. Transport failure -> LIMITED
6. Watchdog -> LIMITED (see CheckHandle.arm_watchdog)
"""

import asyncio
import logging

from core.contracts import CheckState, ReachabilityState
from core.logging import ComponentType, get_logger
from connectivity.errors import ResolverUnavailableError, TransportError, TransportSetupError
from connectivity.handle import CheckHandle
from connectivity.resolver import ResolverStrategy, is_ip_literal
from connectivity.transport import HttpTransport, ProbeRequest, ResponseSink

logger = get_logger(__name__, ComponentType.PROBE)

HEADER_STATUS_ONLINE = "X-NetworkManager-Status: online\r\n"

NO_CONTENT = 204


# ============================================================================
# CLASSIFICATION
# ============================================================================

class ResponseClassifier(ResponseSink):
    """
    Classifies a streaming response for one handle.

    Terminates the handle as soon as a rule fires and tells the transport
    to stop reading.
    """

    def __init__(self, handle: CheckHandle):
        self.handle = handle
        self.expected = handle.config.expected_response.encode("utf-8")

    def on_header(self, line: str) -> bool:
        if self.handle.is_terminal:
            return False

        marker = HEADER_STATUS_ONLINE
        if len(line) >= len(marker) and line[: len(marker)].lower() == marker.lower():
            self.handle.complete(ReachabilityState.FULL, None, "status header found")
            return False
        return True

    def on_body(self, chunk: bytes) -> bool:
        if self.handle.is_terminal:
            return False

        buffer = self.handle.recv_buffer
        buffer.extend(chunk)

        if self.expected and len(buffer) >= len(self.expected):
            if buffer.startswith(self.expected):
                self.handle.complete(ReachabilityState.FULL, None, "expected response")
            else:
                self.handle.complete(ReachabilityState.PORTAL, None, "unexpected response")
            return False
        return True

    def finish(self, status_code: int) -> None:
        """Classify once the exchange ended without an early decision."""
        if self.handle.is_terminal:
            return

        if not self.expected and status_code == NO_CONTENT and not self.handle.recv_buffer:
            self.handle.complete(ReachabilityState.FULL, None, "no content, as expected")
        else:
            # Too little body to compare, or content where 204 was expected
            self.handle.complete(ReachabilityState.PORTAL, None, "unexpected short response")


# ============================================================================
# STATE MACHINE
# ============================================================================

class ProbeStateMachine:
    """
    Runs the resolve/request/classify steps for a handle.

    Shared by all checks of an engine; per-check state lives on the handle.
    """

    def __init__(
        self,
        transport: HttpTransport,
        resolver: ResolverStrategy,
        request_timeout: float,
    ):
        self.transport = transport
        self.resolver = resolver
        self.request_timeout = request_timeout

    async def run(self, handle: CheckHandle) -> None:
        """Task body: drive `handle` until it is terminal."""
        try:
            await self._resolve(handle)
            if not handle.advance(CheckState.REQUESTING):
                return

            classifier = ResponseClassifier(handle)
            status_code = await self.transport.fetch(self._build_request(handle), classifier)

            if not handle.advance(CheckState.CLASSIFYING):
                return
            classifier.finish(status_code)

        except TransportSetupError as e:
            handle.complete(ReachabilityState.ERROR, e, "transport error")
        except TransportError as e:
            handle.complete(ReachabilityState.LIMITED, None, f"check failed: {e}")
        except asyncio.CancelledError:
            raise
        except Exception as e:
            logger.exception(f"unexpected failure in connectivity check {handle.handle_id}")
            handle.complete(ReachabilityState.ERROR, e, f"internal error: {e}")

    async def _resolve(self, handle: CheckHandle) -> None:
        if not handle.advance(CheckState.RESOLVING):
            return

        host = handle.config.host
        if not host or is_ip_literal(host):
            return

        handle.log(logging.DEBUG, f"resolving '{host}' on ifindex {handle.ifindex}")
        try:
            addresses = await self.resolver.resolve(host, handle.addr_family, handle.ifindex)
        except ResolverUnavailableError as e:
            handle.log(logging.DEBUG, f"resolver unavailable, using native resolution: {e}")
            return

        port = handle.config.effective_port
        handle.resolve_list = [a.to_resolve_entry(host, port) for a in addresses]
        for entry in handle.resolve_list:
            handle.log(logging.DEBUG, f"adding '{entry}' to resolve list")

    def _build_request(self, handle: CheckHandle) -> ProbeRequest:
        return ProbeRequest(
            url=handle.config.uri,
            ifname=handle.ifname,
            addr_family=handle.addr_family,
            resolve=list(handle.resolve_list),
            timeout=self.request_timeout,
        )


__all__ = [
    "HEADER_STATUS_ONLINE",
    "ResponseClassifier",
    "ProbeStateMachine",
]
