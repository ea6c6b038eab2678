"""Parse user-typed coordinate strings.

Accepts decimal degrees (``"40.7128, -74.0060"`` or ``"40.7128 -74.0060"``)
and degrees-minutes-seconds (``40°42'46.0"N 74°00'21.6"W``). Hemisphere
letters are optional; a negative degree component or an ``S``/``W`` suffix
makes the value negative.
"""

import re

from location_api.lib.geo.validators import validate_coordinates

_DECIMAL_DEGREES = re.compile(r"^(-?\d+(?:\.\d+)?)\s*(?:,\s*|\s+)(-?\d+(?:\.\d+)?)$")
_DMS = re.compile(
    r"^(-?\d+)[°\s]+(\d+)['′\s]+(\d+\.?\d*)[\"″'\s]*([NSns])?"
    r"\s*,?\s*"
    r"(-?\d+)[°\s]+(\d+)['′\s]+(\d+\.?\d*)[\"″'\s]*([EWew])?$"
)


def _dms_to_decimal(degrees: str, minutes: str, seconds: str, hemisphere: str | None) -> float:
    deg = int(degrees)
    value = abs(deg) + int(minutes) / 60.0 + float(seconds) / 3600.0
    if degrees.startswith("-") or (hemisphere and hemisphere.upper() in ("S", "W")):
        value = -value
    return value


def parse_coordinates(text: str | None) -> tuple[float, float] | None:
    """Parse a coordinate string into a ``(lat, lng)`` tuple.

    Args:
        text: Raw user input.

    Returns:
        ``(lat, lng)`` in decimal degrees, or None if the text is not a
        recognised coordinate format or the values are out of range.
    """
    if text is None or not text.strip():
        return None
    candidate = text.strip()

    match = _DECIMAL_DEGREES.match(candidate)
    if match:
        try:
            lat = float(match.group(1))
            lng = float(match.group(2))
        except ValueError:
            return None
        return (lat, lng) if validate_coordinates(lat, lng) else None

    match = _DMS.match(candidate)
    if match:
        lat = _dms_to_decimal(match.group(1), match.group(2), match.group(3), match.group(4))
        lng = _dms_to_decimal(match.group(5), match.group(6), match.group(7), match.group(8))
        return (lat, lng) if validate_coordinates(lat, lng) else None

    return None
