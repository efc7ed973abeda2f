"""USDA hardiness zone codes and their ordering.

A code is ``"<1-13><a|b>"``. Codes map onto integers so ranges such as
``"3a".."9b"`` can be compared: ``2 * number + (1 if letter == "b" else 0)``.
"""
import re

ZONE_PATTERN = re.compile(r"^(1[0-3]|[1-9])([ab])$")

# minimum average annual extreme temperature, in °F
ZONE_TEMPERATURES_F: dict[str, tuple[int, int]] = {}
for _number in range(1, 14):
    for _offset, _letter in enumerate("ab"):
        _low = -60 + ((_number - 1) * 2 + _offset) * 5
        ZONE_TEMPERATURES_F[f"{_number}{_letter}"] = (_low, _low + 5)

ALL_ZONES: list[str] = list(ZONE_TEMPERATURES_F)


class InvalidZoneCode(ValueError):
    def __init__(self, code: object):
        super().__init__(f"Invalid zone code: {code!r}")
        self.code = code


def zone_ordinal(code: str) -> int:
    match = ZONE_PATTERN.fullmatch(code) if isinstance(code, str) else None
    if not match:
        raise InvalidZoneCode(code)
    return int(match.group(1)) * 2 + (1 if match.group(2) == "b" else 0)


def is_valid_zone(code: str) -> bool:
    return isinstance(code, str) and ZONE_PATTERN.fullmatch(code) is not None


def is_in_range(zone: str, zone_min: str, zone_max: str) -> bool:
    """True when ``zone`` falls inside the closed interval ``[zone_min, zone_max]``."""
    value = zone_ordinal(zone)
    return zone_ordinal(zone_min) <= value <= zone_ordinal(zone_max)


def describe_zone(code: str) -> str:
    zone_ordinal(code)
    low, high = ZONE_TEMPERATURES_F[code]
    return f"USDA Hardiness Zone {code} ({low}°F to {high}°F)"
