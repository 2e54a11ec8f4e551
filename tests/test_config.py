import json
from datetime import timedelta

import pytest

from vpnportal import config
from vpnportal.errors import ConfigurationError
from vpnportal.util import FixedClock, parse_datetime, parse_duration, utc_rfc3339


@pytest.mark.parametrize("value,expected", [
    ("P90D", timedelta(days=90)),
    ("PT12H", timedelta(hours=12)),
    ("P1W", timedelta(weeks=1)),
    ("P1DT2H30M", timedelta(days=1, hours=2, minutes=30)),
    ("P1Y", timedelta(days=365)),
])
def test_parse_duration(value, expected):
    assert parse_duration(value) == expected


@pytest.mark.parametrize("value", ["", "P", "PT", "90D", "P1DT", "P-1D", "PT1.5H"])
def test_parse_duration_rejects(value):
    with pytest.raises(ValueError):
        parse_duration(value)


def test_parse_datetime_variants():
    expected = parse_datetime("2025-01-01T00:00:00Z")
    assert parse_datetime("2025-01-01T01:00:00+01:00") == expected
    assert parse_datetime("2025-01-01T00:00:00") == expected
    assert utc_rfc3339(expected) == "2025-01-01T00:00:00Z"


def test_fixed_clock():
    clock = FixedClock("2024-06-01T12:00:00Z")
    clock.advance(timedelta(minutes=5))
    assert utc_rfc3339(clock.now()) == "2024-06-01T12:05:00Z"


def test_load_portal_config(tmp_path):
    path = tmp_path / "config.json"
    path.write_text(json.dumps({
        "session_expiry": "PT8H",
        "profile_list": {"internet": {"display_name": "Internet", "host_name": ["vpn.example.org"]}},
    }))
    config.invalidate_config_cache()

    portal_config = config.load_portal_config(str(path))

    assert portal_config.session_expiry_delta() == timedelta(hours=8)
    profile = portal_config.get_profile_config("internet")
    assert profile.profile_id == "internet"
    assert profile.vpn_proto_ports == ["udp/1194", "tcp/1194"]
    assert portal_config.get_profile_config("office") is None


def test_default_session_expiry():
    assert config.parse_portal_config({}).session_expiry_delta() == timedelta(days=90)


@pytest.mark.parametrize("data", [
    {"session_expiry": "ninety days"},
    {"profile_list": {"x": {"hide_profile": True}}},
    {"profile_list": {"x": {"display_name": "X", "vpn_proto_ports": ["icmp/1"]}}},
])
def test_invalid_portal_config(data):
    with pytest.raises(ConfigurationError):
        config.parse_portal_config(data)


def test_missing_or_malformed_config_file(tmp_path):
    config.invalidate_config_cache()
    with pytest.raises(ConfigurationError):
        config.load_portal_config(str(tmp_path / "missing.json"))

    bad = tmp_path / "bad.json"
    bad.write_text("{not json")
    with pytest.raises(ConfigurationError):
        config.load_portal_config(str(bad))
