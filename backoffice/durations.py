"""Duration strings used for token lifetimes ("15m", "7d")."""

import re
from datetime import timedelta
from typing import Union

from backoffice.exceptions import ConfigurationError

_DURATION_RE = re.compile(r"^(\d+)([smhd])$")

_UNITS = {
    "s": "seconds",
    "m": "minutes",
    "h": "hours",
    "d": "days",
}


def parse_duration(value: Union[str, timedelta]) -> timedelta:
    """Parse a ``<integer><unit>`` duration string into a timedelta.

    Supported units are ``s``, ``m``, ``h`` and ``d``. Surrounding whitespace
    is ignored; anything else is rejected.

    Args:
        value: Duration string such as "15m" or "7d", or a timedelta
            (returned unchanged)

    Returns:
        The parsed timedelta

    Raises:
        ConfigurationError: If the string does not match the grammar or
            describes a zero-length duration
    """
    if isinstance(value, timedelta):
        return value

    if not isinstance(value, str):
        raise ConfigurationError(f"Duration must be a string, got {type(value).__name__}")

    match = _DURATION_RE.match(value.strip())
    if match is None:
        raise ConfigurationError(
            f"Invalid duration '{value}': expected <integer><unit> with unit in s, m, h, d"
        )

    amount = int(match.group(1))
    if amount <= 0:
        raise ConfigurationError(f"Duration '{value}' must be greater than zero")

    return timedelta(**{_UNITS[match.group(2)]: amount})
