"""Human-readable duration parsing ("15m", "24h", "1h30m", "250ms")"""
import re
from datetime import timedelta

# Nanoseconds per unit suffix
UNITS = {
    "ns": 1,
    "us": 1_000,
    "µs": 1_000,  # U+00B5 micro sign
    "μs": 1_000,  # U+03BC greek mu
    "ms": 1_000_000,
    "s": 1_000_000_000,
    "m": 60 * 1_000_000_000,
    "h": 3600 * 1_000_000_000,
}

_MAX_NANOSECONDS = 2 ** 63 - 1

_TERM = re.compile(r"([0-9]*)(?:\.([0-9]*))?(ns|us|µs|μs|ms|s|m|h)")


class InvalidDuration(ValueError):
    """Raised when a string does not follow the duration grammar"""

    def __init__(self, value: str):
        super().__init__(f"invalid duration {value!r}")
        self.value = value


def parse_duration(value: str) -> timedelta:
    """
    Parse a duration string such as "300ms", "-1.5h" or "2h45m".

    A duration is an optional sign followed by one or more decimal numbers,
    each with an optional fraction and a mandatory unit suffix. The bare
    string "0" (optionally signed) is also accepted.

    Args:
        value: Raw duration string

    Returns:
        Parsed timedelta, truncated to microsecond resolution

    Raises:
        InvalidDuration: If the string is empty, a term lacks a unit,
            a unit is unknown, or the total overflows 64-bit nanoseconds
    """
    if not isinstance(value, str):
        raise InvalidDuration(str(value))

    s = value
    negative = False
    if s[:1] in ("-", "+"):
        negative = s[0] == "-"
        s = s[1:]

    if s == "0":
        return timedelta(0)
    if not s:
        raise InvalidDuration(value)

    total = 0
    pos = 0
    while pos < len(s):
        match = _TERM.match(s, pos)
        if not match:
            raise InvalidDuration(value)
        whole, fraction, unit = match.groups()
        if not whole and not fraction:
            # "." alone or a unit with no number in front of it
            raise InvalidDuration(value)

        scale = UNITS[unit]
        total += int(whole or "0") * scale
        if fraction:
            total += int(fraction) * scale // 10 ** len(fraction)

        if total > _MAX_NANOSECONDS + (1 if negative else 0):
            raise InvalidDuration(value)
        pos = match.end()

    micros = total // 1_000
    return timedelta(microseconds=-micros if negative else micros)


def format_duration(delta: timedelta) -> str:
    """Render a timedelta back into the compact "1h2m3.5s" form used in logs"""
    micros = (delta.days * 86_400 + delta.seconds) * 1_000_000 + delta.microseconds
    if micros == 0:
        return "0s"

    sign = "-" if micros < 0 else ""
    micros = abs(micros)
    hours, micros = divmod(micros, 3_600_000_000)
    minutes, micros = divmod(micros, 60_000_000)
    seconds, micros = divmod(micros, 1_000_000)

    out = sign
    if hours:
        out += f"{hours}h"
    if hours or minutes:
        out += f"{minutes}m"
    if micros:
        out += f"{seconds}.{micros:06d}".rstrip("0") + "s"
    else:
        out += f"{seconds}s"
    return out
