# ============================================================================
# CONFIGURATION STATE TESTS
# ============================================================================
# EPOCH: 1 - PROBE DISPATCH
# STATUS: Tests - URI validation, snapshots, change notification
# PURPOSE: Verify ConnectivityConfigService and the defaults layer
# CREATED: 17 OCT 2026
# ============================================================================
"""
Configuration State Tests

Covers:
1. URI validation (scheme, host, port)
2. apply(): enabled derivation, interval clamping, rejection keeps prior
3. Change notification (once per change, none on rejection)
4. Keyfile [connectivity] section
5. Environment defaults

Run with:
    pytest tests/test_config.py -v
"""

import logging

import pytest

from core.config import DEFAULT_RESPONSE, MAX_INTERVAL_SECONDS, get_defaults, reset_defaults
from core.contracts import ReachabilityState, state_to_string
from connectivity.config import ConnectivityConfig, ConnectivityConfigService, parse_probe_uri
from connectivity.errors import InvalidConfigError

from conftest import PROBE_URI


# ============================================================================
# URI VALIDATION
# ============================================================================

class TestParseProbeUri:
    """parse_probe_uri() accepts plain http only."""

    def test_plain_http(self):
        assert parse_probe_uri("http://example.com/check") == ("example.com", None)

    def test_explicit_port(self):
        assert parse_probe_uri("http://example.com:8080/check") == ("example.com", 8080)

    def test_scheme_is_case_insensitive(self):
        host, _ = parse_probe_uri("HTTP://example.com/")
        assert host == "example.com"

    def test_https_rejected_as_warning(self):
        with pytest.raises(InvalidConfigError) as exc:
            parse_probe_uri("https://example.com/check")
        assert exc.value.level == logging.WARNING
        assert "HTTPS" in str(exc.value)

    def test_other_scheme_rejected_as_error(self):
        with pytest.raises(InvalidConfigError) as exc:
            parse_probe_uri("ftp://example.com/check")
        assert exc.value.level == logging.ERROR
        assert exc.value.uri == "ftp://example.com/check"

    def test_no_scheme_rejected(self):
        with pytest.raises(InvalidConfigError):
            parse_probe_uri("example.com/check")

    def test_ipv6_literal_host(self):
        host, port = parse_probe_uri("http://[2001:db8::1]:8080/")
        assert host == "2001:db8::1"
        assert port == 8080


# ============================================================================
# SNAPSHOT
# ============================================================================

class TestConnectivityConfig:
    """Snapshot model behavior."""

    def test_default_response_when_unset(self):
        assert ConnectivityConfig().expected_response == DEFAULT_RESPONSE

    def test_empty_response_is_kept(self):
        assert ConnectivityConfig(response="").expected_response == ""

    def test_effective_port_defaults_to_80(self):
        assert ConnectivityConfig(uri=PROBE_URI, host="example.com").effective_port == 80
        assert ConnectivityConfig(port=8080).effective_port == 8080

    def test_snapshot_is_immutable(self):
        config = ConnectivityConfig(uri=PROBE_URI)
        with pytest.raises(Exception):
            config.uri = "http://other.example/"


# ============================================================================
# APPLY
# ============================================================================

class TestApply:
    """ConnectivityConfigService.apply()."""

    def test_valid_config_enables_checks(self):
        service = ConnectivityConfigService()
        assert service.apply(PROBE_URI, "OK", 300, True) is True

        snapshot = service.snapshot
        assert snapshot.uri == PROBE_URI
        assert snapshot.host == "example.com"
        assert snapshot.response == "OK"
        assert service.enabled is True
        assert service.interval == 300

    def test_uri_is_stripped(self):
        service = ConnectivityConfigService()
        service.apply(f"  {PROBE_URI}  ", None, 300, True)
        assert service.snapshot.uri == PROBE_URI

    def test_empty_uri_disables(self):
        service = ConnectivityConfigService()
        assert service.apply("", None, 300, True) is True
        assert service.snapshot.uri is None
        assert service.enabled is False
        assert service.interval == 0

    def test_zero_interval_disables(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, None, 0, True)
        assert service.enabled is False

    def test_admin_disabled(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, None, 300, False)
        assert service.enabled is False
        assert service.interval == 0
        assert service.snapshot.interval == 300

    def test_interval_clamped(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, None, MAX_INTERVAL_SECONDS * 10, True)
        assert service.interval == MAX_INTERVAL_SECONDS

    def test_interval_from_string(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, None, "60", True)
        assert service.interval == 60

    @pytest.mark.parametrize("interval", [-1, "soon", None])
    def test_bad_interval_rejected(self, interval):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, "OK", 300, True)
        before = service.snapshot

        assert service.apply(PROBE_URI, "OK", interval, True) is False
        assert service.snapshot is before

    def test_https_keeps_prior_config(self, caplog):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, "OK", 300, True)
        before = service.snapshot

        with caplog.at_level(logging.WARNING):
            assert service.apply("https://example.com/check", "OK", 300, True) is False

        assert service.snapshot is before
        records = [r for r in caplog.records if "HTTPS" in r.getMessage()]
        assert records and records[0].levelno == logging.WARNING

    def test_bad_scheme_logged_as_error(self, caplog):
        service = ConnectivityConfigService()
        with caplog.at_level(logging.WARNING):
            assert service.apply("gopher://example.com/", None, 300, True) is False
        assert any(r.levelno == logging.ERROR for r in caplog.records)

    def test_rejected_uri_attached_to_record(self, caplog):
        service = ConnectivityConfigService()
        with caplog.at_level(logging.WARNING):
            service.apply("ftp://example.com/check", None, 300, True)

        record = next(r for r in caplog.records if r.levelno == logging.ERROR)
        assert record.extra["uri"] == "ftp://example.com/check"


# ============================================================================
# CHANGE NOTIFICATION
# ============================================================================

class TestSubscribe:
    """Config-changed notifications."""

    def test_notified_once_per_change(self):
        service = ConnectivityConfigService()
        seen = []
        service.subscribe(seen.append)

        service.apply(PROBE_URI, "OK", 300, True)
        service.apply(PROBE_URI, "OK", 300, True)

        assert len(seen) == 1
        assert seen[0] is service.snapshot

    def test_not_notified_on_rejection(self):
        service = ConnectivityConfigService()
        seen = []
        service.subscribe(seen.append)

        service.apply("https://example.com/", "OK", 300, True)
        assert seen == []

    def test_unsubscribe(self):
        service = ConnectivityConfigService()
        seen = []
        unsubscribe = service.subscribe(seen.append)
        unsubscribe()

        service.apply(PROBE_URI, "OK", 300, True)
        assert seen == []

    def test_failing_subscriber_does_not_block_others(self):
        service = ConnectivityConfigService()
        seen = []

        def broken(_):
            raise RuntimeError("boom")

        service.subscribe(broken)
        service.subscribe(seen.append)

        assert service.apply(PROBE_URI, "OK", 300, True) is True
        assert len(seen) == 1


# ============================================================================
# KEYFILE
# ============================================================================

KEYFILE = """
[main]
plugins=keyfile

[connectivity]
uri=http://fedoraproject.org/static/hotspot.txt
response=OK
interval=300
enabled=true
"""


class TestKeyfile:
    """[connectivity] section parsing."""

    def test_full_section(self):
        service = ConnectivityConfigService()
        assert service.apply_keyfile_data(KEYFILE) is True

        snapshot = service.snapshot
        assert snapshot.host == "fedoraproject.org"
        assert snapshot.response == "OK"
        assert snapshot.interval == 300
        assert snapshot.enabled is True

    def test_missing_section_disables(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, "OK", 300, True)

        assert service.apply_keyfile_data("[main]\nplugins=keyfile\n") is True
        assert service.enabled is False

    def test_enabled_false(self):
        service = ConnectivityConfigService()
        service.apply_keyfile_data(KEYFILE.replace("enabled=true", "enabled=false"))
        assert service.enabled is False

    def test_interval_defaults_to_300(self):
        service = ConnectivityConfigService()
        service.apply_keyfile_data("[connectivity]\nuri=http://example.com/\n")
        assert service.interval == 300
        assert service.snapshot.response is None

    def test_unparseable_text_keeps_prior(self):
        service = ConnectivityConfigService()
        service.apply(PROBE_URI, "OK", 300, True)
        before = service.snapshot

        assert service.apply_keyfile_data("this is not a keyfile") is False
        assert service.snapshot is before

    def test_from_path(self, tmp_path):
        path = tmp_path / "NetworkManager.conf"
        path.write_text(KEYFILE)

        service = ConnectivityConfigService()
        assert service.apply_keyfile(path) is True
        assert service.enabled is True

    def test_missing_file(self, tmp_path):
        service = ConnectivityConfigService()
        assert service.apply_keyfile(tmp_path / "nope.conf") is False


# ============================================================================
# DEFAULTS / ENV
# ============================================================================

class TestDefaults:
    """CONCHECK_* environment overrides."""

    def test_builtin_defaults(self):
        defaults = get_defaults()
        assert defaults.connectivity.uri == ""
        assert defaults.timeouts.check_timeout == 20.0
        assert defaults.resolver.bus_name == "org.freedesktop.resolve1"
        assert defaults.resolver.method == "ResolveHostname"

    def test_from_env(self, monkeypatch):
        monkeypatch.setenv("CONCHECK_URI", PROBE_URI)
        monkeypatch.setenv("CONCHECK_RESPONSE", "")
        monkeypatch.setenv("CONCHECK_INTERVAL", "60")
        monkeypatch.setenv("CONCHECK_USE_RESOLVED", "false")
        reset_defaults()

        service = ConnectivityConfigService.from_env()
        assert service.enabled is True
        assert service.interval == 60
        assert service.snapshot.expected_response == ""
        assert get_defaults().resolver.use_resolved is False

    def test_env_admin_disabled(self, monkeypatch):
        monkeypatch.setenv("CONCHECK_URI", PROBE_URI)
        monkeypatch.setenv("CONCHECK_ENABLED", "no")
        reset_defaults()

        assert ConnectivityConfigService.from_env().enabled is False


class TestStateToString:
    """Printable state names."""

    @pytest.mark.parametrize("state,name", [
        (ReachabilityState.UNKNOWN, "UNKNOWN"),
        (ReachabilityState.NONE, "NONE"),
        (ReachabilityState.LIMITED, "LIMITED"),
        (ReachabilityState.PORTAL, "PORTAL"),
        (ReachabilityState.FULL, "FULL"),
        (ReachabilityState.ERROR, "ERROR"),
        (ReachabilityState.FAKE, "FAKE"),
    ])
    def test_names(self, state, name):
        assert state_to_string(state) == name

    def test_garbage(self):
        assert state_to_string(42) == "???"
