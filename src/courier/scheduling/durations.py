"""Duration parsing.

Durations use the compact unit-suffixed format: "90s", "1h30m", "1.5h",
"250ms". Supported units are ns, us (or µs), ms, s, m and h.
"""

import re
from datetime import timedelta

from courier.errors import InvalidDurationError

_COMPONENT = re.compile(r"(\d+(?:\.\d*)?|\.\d+)(ns|us|µs|μs|ms|s|m|h)")

_UNIT_SECONDS = {
    "ns": 1e-9,
    "us": 1e-6,
    "µs": 1e-6,
    "μs": 1e-6,
    "ms": 1e-3,
    "s": 1.0,
    "m": 60.0,
    "h": 3600.0,
}


def parse_duration(text: str) -> timedelta:
    """Parse a duration string into a positive timedelta.

    Raises:
        InvalidDurationError: If the text is malformed or not positive.
    """
    rest = text.strip()
    if not rest:
        raise InvalidDurationError("Duration is empty")

    sign = 1.0
    if rest[0] in "+-":
        sign = -1.0 if rest[0] == "-" else 1.0
        rest = rest[1:]

    pos = 0
    total = 0.0
    while pos < len(rest):
        match = _COMPONENT.match(rest, pos)
        if match is None:
            raise InvalidDurationError(f"Invalid duration: {text!r}")
        value, unit = match.groups()
        total += float(value) * _UNIT_SECONDS[unit]
        pos = match.end()

    if pos == 0:
        raise InvalidDurationError(f"Invalid duration: {text!r}")

    return validate_delay(timedelta(seconds=sign * total))


def validate_delay(delay: timedelta) -> timedelta:
    if delay <= timedelta(0):
        raise InvalidDurationError("Duration must be positive")
    return delay


def coerce_delay(delay: timedelta | str) -> timedelta:
    """Accept either a timedelta or a duration string."""
    if isinstance(delay, str):
        return parse_duration(delay)
    if not isinstance(delay, timedelta):
        raise InvalidDurationError(f"Unsupported duration type: {type(delay)!r}")
    return validate_delay(delay)

