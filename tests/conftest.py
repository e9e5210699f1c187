# ============================================================================
# SHARED TEST FIXTURES
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Tests - Deterministic transport/resolver fakes
# PURPOSE: Drive the engine without network or bus access
# CREATED: 17 OCT 2026
# ============================================================================
"""
Shared fixtures.

FakeTransport plays back a scripted response through the sink, exactly
like HttpxTransport would: header lines first, then body chunks, yielding
to the loop between pieces. FakeResolver returns canned addresses.
"""

import asyncio
from typing import List, Optional, Sequence

import pytest

from core.config import reset_defaults
from core.contracts import AddressFamily
from connectivity.config import ConnectivityConfig, ConnectivityConfigService
from connectivity.engine import ConnectivityEngine
from connectivity.resolver import ResolvedAddress, ResolverStrategy
from connectivity.transport import HttpTransport, ProbeRequest, ResponseSink

PROBE_URI = "http://example.com/check"


class FakeTransport(HttpTransport):
    """
    Scripted transport.

    Args:
        status: Status code fetch() returns
        headers: Header lines ("Name: value\\r\\n") fed to the sink
        body: Body chunks fed to the sink
        error: Exception raised instead of responding
        hang: Never respond (until cancelled)
        gate: If set, wait for this event before responding
    """

    def __init__(
        self,
        status: int = 200,
        headers: Sequence[str] = (),
        body: Sequence[bytes] = (),
        error: Optional[Exception] = None,
        hang: bool = False,
        gate: Optional[asyncio.Event] = None,
    ):
        self.status = status
        self.headers = list(headers)
        self.body = list(body)
        self.error = error
        self.hang = hang
        self.gate = gate
        self.requests: List[ProbeRequest] = []
        self.finished = 0
        self.closed = False

    async def fetch(self, request: ProbeRequest, sink: ResponseSink) -> int:
        self.requests.append(request)

        if self.gate is not None:
            await self.gate.wait()
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error

        try:
            for line in self.headers:
                await asyncio.sleep(0)
                if not sink.on_header(line):
                    return self.status
            for chunk in self.body:
                await asyncio.sleep(0)
                if not sink.on_body(chunk):
                    break
            return self.status
        finally:
            self.finished += 1

    async def aclose(self) -> None:
        self.closed = True


class FakeResolver(ResolverStrategy):
    """Resolver returning canned addresses (or failing)."""

    name = "fake"

    def __init__(
        self,
        addresses: Sequence[ResolvedAddress] = (),
        error: Optional[Exception] = None,
        hang: bool = False,
    ):
        self.addresses = list(addresses)
        self.error = error
        self.hang = hang
        self.calls = []
        self.closed = False

    async def resolve(self, host, addr_family, ifindex) -> List[ResolvedAddress]:
        self.calls.append((host, addr_family, ifindex))
        if self.hang:
            await asyncio.Event().wait()
        if self.error is not None:
            raise self.error
        return list(self.addresses)

    async def aclose(self) -> None:
        self.closed = True


class ResultRecorder:
    """Check callback that records every invocation."""

    def __init__(self):
        self.calls = []
        self._done: Optional[asyncio.Future] = None
        self._expected = 1

    def __call__(self, engine, handle, state, error, user_data):
        self.calls.append((handle, state, error, user_data))
        if self._done is not None and len(self.calls) >= self._expected and not self._done.done():
            self._done.set_result(None)

    async def wait(self, count: int = 1, timeout: float = 2.0) -> None:
        """Wait until at least `count` callbacks arrived."""
        if len(self.calls) >= count:
            return
        self._expected = count
        self._done = asyncio.get_running_loop().create_future()
        await asyncio.wait_for(self._done, timeout)

    @property
    def states(self):
        return [state for _, state, _, _ in self.calls]


def make_config(
    uri: Optional[str] = PROBE_URI,
    response: Optional[str] = "OK",
    interval: int = 300,
    enabled: bool = True,
) -> ConnectivityConfigService:
    service = ConnectivityConfigService()
    assert service.apply(uri, response, interval, enabled)
    return service


def make_engine(
    transport: Optional[HttpTransport] = None,
    resolver: Optional[ResolverStrategy] = None,
    config: Optional[ConnectivityConfigService] = None,
    check_timeout: float = 2.0,
) -> ConnectivityEngine:
    return ConnectivityEngine(
        config=config or make_config(),
        transport=transport or FakeTransport(body=[b"OK"]),
        resolver=resolver or FakeResolver(),
        check_timeout=check_timeout,
    )


@pytest.fixture(autouse=True)
def clean_env(monkeypatch):
    """Isolate tests from CONCHECK_* variables on the host."""
    for name in (
        "CONCHECK_URI",
        "CONCHECK_RESPONSE",
        "CONCHECK_INTERVAL",
        "CONCHECK_ENABLED",
        "CONCHECK_TIMEOUT",
        "CONCHECK_RESOLVER_TIMEOUT",
        "CONCHECK_USE_RESOLVED",
    ):
        monkeypatch.delenv(name, raising=False)
    reset_defaults()
    yield
    reset_defaults()


@pytest.fixture
def snapshot() -> ConnectivityConfig:
    return make_config().snapshot


@pytest.fixture
def recorder() -> ResultRecorder:
    return ResultRecorder()


@pytest.fixture
def v4_address() -> ResolvedAddress:
    return ResolvedAddress(ifindex=2, family=AddressFamily.INET, address="192.0.2.1")
