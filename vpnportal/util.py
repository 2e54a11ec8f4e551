"""
Utility functions for the VPN portal.

Provides time helpers, injectable clock and random sources, and
masking for log output.
"""

import re
from datetime import datetime, timedelta, timezone
from typing import Union

import nacl.utils
from nacl.encoding import HexEncoder


RFC3339_FORMAT = '%Y-%m-%dT%H:%M:%SZ'

_DURATION_RE = re.compile(
    r'^P(?:(?P<years>\d+)Y)?(?:(?P<months>\d+)M)?(?:(?P<weeks>\d+)W)?(?:(?P<days>\d+)D)?'
    r'(?:T(?:(?P<hours>\d+)H)?(?:(?P<minutes>\d+)M)?(?:(?P<seconds>\d+)S)?)?$'
)


# ============================================================
# Time
# ============================================================

def utc_rfc3339(dt: datetime) -> str:
    """Format an aware datetime as an RFC3339 UTC string."""
    return dt.astimezone(timezone.utc).strftime(RFC3339_FORMAT)


def parse_datetime(s: str) -> datetime:
    """
    Parse a stored timestamp into an aware UTC datetime.

    Accepts RFC3339 with a "Z" suffix as well as ISO 8601 with an
    explicit offset. Naive values are taken to be UTC.
    """
    if s.endswith('Z'):
        s = s[:-1] + '+00:00'
    dt = datetime.fromisoformat(s)
    if dt.tzinfo is None:
        dt = dt.replace(tzinfo=timezone.utc)
    return dt.astimezone(timezone.utc)


def parse_duration(s: str) -> timedelta:
    """
    Parse an ISO 8601 duration such as "P90D" or "PT12H".

    Years and months are counted as 365 and 30 days.
    """
    m = _DURATION_RE.match(s or '')
    if m is None or s in ('P', 'PT') or s.endswith('T'):
        raise ValueError(f"invalid ISO 8601 duration: {s!r}")
    parts = {k: int(v) for k, v in m.groupdict().items() if v}
    days = parts.get('years', 0) * 365 + parts.get('months', 0) * 30 + parts.get('days', 0)
    return timedelta(
        weeks=parts.get('weeks', 0),
        days=days,
        hours=parts.get('hours', 0),
        minutes=parts.get('minutes', 0),
        seconds=parts.get('seconds', 0),
    )


class SystemClock:
    """Wall clock in UTC."""

    def now(self) -> datetime:
        return datetime.now(timezone.utc)


class FixedClock:
    """Clock frozen at a given instant, for tests and replays."""

    def __init__(self, instant: Union[datetime, str]):
        if isinstance(instant, str):
            instant = parse_datetime(instant)
        self._instant = instant

    def now(self) -> datetime:
        return self._instant

    def advance(self, delta: timedelta) -> None:
        self._instant = self._instant + delta


# ============================================================
# Randomness
# ============================================================

class SecureRandom:
    """Random source backed by libsodium's randombytes."""

    def bytes(self, length: int) -> bytes:
        return nacl.utils.random(length)

    def get(self, length: int) -> str:
        """Return `length` random bytes, hex encoded."""
        return HexEncoder.encode(self.bytes(length)).decode('ascii')


# ============================================================
# Logging helpers
# ============================================================

def mask_sensitive(value: str, visible_chars: int = 4) -> str:
    """
    Mask a sensitive value, showing only the last N characters.
    Useful for logging.
    """
    if len(value) <= visible_chars:
        return '*' * len(value)
    return '*' * (len(value) - visible_chars) + value[-visible_chars:]
