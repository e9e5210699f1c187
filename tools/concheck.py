#!/usr/bin/env python3
# ============================================================================
# CLI CONNECTIVITY CHECK TOOL
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Tool - Run connectivity checks on local interfaces
# PURPOSE: Exercise the engine against real links without the daemon
# CREATED: 17 OCT 2026
# ============================================================================
"""
Run an IPv6 and an IPv4 connectivity check on every local interface
(or only the named ones) and print one line per result:

    <ifindex>: <ifname> [<STATE>] {<error or Success>}

Usage:
    # All interfaces, probe from CONCHECK_URI / built-in keyfile values
    python tools/concheck.py

    # One interface
    python tools/concheck.py eth0

    # Explicit probe
    python tools/concheck.py wlan0 --uri http://example.com/hotspot.txt --response OK

Binding to an interface (SO_BINDTODEVICE) usually needs CAP_NET_RAW.
"""

import argparse
import asyncio
import os
import socket
import sys

# Add project root to path
sys.path.insert(0, os.path.dirname(os.path.dirname(os.path.abspath(__file__))))

from core.config import get_defaults
from core.contracts import AddressFamily, state_to_string
from core.logging import configure_logging
from connectivity import ConnectivityConfigService, ConnectivityEngine

DEFAULT_URI = "http://fedoraproject.org/static/hotspot.txt"
DEFAULT_RESPONSE = "OK"
DEFAULT_INTERVAL = 300


def list_interfaces(names=None):
    """(ifindex, ifname) for local interfaces, optionally filtered by name."""
    links = sorted(socket.if_nameindex())
    if names:
        links = [link for link in links if link[1] in names]
    return links


def build_config(args) -> ConnectivityConfigService:
    """Config from options, falling back to CONCHECK_* and then built-ins."""
    env = get_defaults().connectivity
    service = ConnectivityConfigService()
    accepted = service.apply(
        args.uri or env.uri or DEFAULT_URI,
        args.response if args.response is not None else (
            env.response if env.response is not None else DEFAULT_RESPONSE
        ),
        args.interval if args.interval is not None else DEFAULT_INTERVAL,
        True,
    )
    if not accepted:
        print("ERROR: invalid connectivity check configuration", file=sys.stderr)
        sys.exit(1)
    return service


async def run_checks(engine: ConnectivityEngine, links) -> int:
    """Start all checks and wait for every callback. Returns non-FULL count."""
    loop = asyncio.get_running_loop()
    done = loop.create_future()
    pending = 0
    failures = 0

    def on_result(engine, handle, state, error, link):
        nonlocal pending, failures
        ifindex, ifname = link
        print(
            "%d: %s [%s] {%s}" % (ifindex, ifname, state_to_string(state), error or "Success"),
            file=sys.stderr,
        )
        if not state.is_connected():
            failures += 1
        pending -= 1
        if pending == 0 and not done.done():
            done.set_result(None)

    for link in links:
        ifindex, ifname = link
        pending += 2
        engine.start(AddressFamily.INET6, ifindex, ifname, on_result, link)
        engine.start(AddressFamily.INET, ifindex, ifname, on_result, link)

    try:
        await done
    finally:
        await engine.aclose()
    return failures


def main():
    parser = argparse.ArgumentParser(
        description="Run connectivity checks on local network interfaces",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s
  %(prog)s eth0 wlan0
  %(prog)s eth0 --uri http://example.com/hotspot.txt --response OK
        """,
    )
    parser.add_argument("interfaces", nargs="*", help="Only check these interfaces")
    parser.add_argument("--uri", "-u", help=f"Probe URI (default: {DEFAULT_URI})")
    parser.add_argument("--response", "-r", help=f"Expected response (default: {DEFAULT_RESPONSE})")
    parser.add_argument(
        "--interval", "-i",
        type=int,
        help=f"Check interval in seconds (default: {DEFAULT_INTERVAL})",
    )
    parser.add_argument(
        "--log-level", "-l",
        default=os.environ.get("LOG_LEVEL", "DEBUG"),
        help="Log level (default: DEBUG)",
    )
    parser.add_argument("--json", action="store_true", help="JSON log output")

    args = parser.parse_args()

    configure_logging(args.log_level, json_output=args.json)

    links = list_interfaces(args.interfaces)
    if not links:
        print("ERROR: no matching interfaces", file=sys.stderr)
        sys.exit(1)

    engine = ConnectivityEngine(build_config(args))
    failures = asyncio.run(run_checks(engine, links))
    sys.exit(0 if failures == 0 else 2)


if __name__ == "__main__":
    main()
