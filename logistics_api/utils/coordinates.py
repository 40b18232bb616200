"""
Parsing and formatting of ``POINT(lat lng)`` coordinate strings and route codes.
"""

import re
from datetime import date
from typing import Optional

_POINT_PATTERN = re.compile(
    r"^\s*POINT\s*\(\s*(-?\d+(?:\.\d+)?)\s+(-?\d+(?:\.\d+)?)\s*\)\s*$",
    re.IGNORECASE,
)
_ROUTE_CODE_PATTERN = re.compile(r"^[A-Z]+-\d{8}-\d{3,}$")


def parse_coordinates(point: str) -> tuple[float, float]:
    """
    Parse a ``POINT(lat lng)`` string.

    Args:
        point: Coordinate string

    Returns:
        Tuple of (latitude, longitude)

    Raises:
        ValueError: If the string is malformed or out of range
    """
    if not isinstance(point, str):
        raise ValueError(f"Coordinates must be a string, got {type(point).__name__}")
    match = _POINT_PATTERN.match(point)
    if not match:
        raise ValueError(f"Invalid coordinate format: {point!r}")
    lat, lng = float(match.group(1)), float(match.group(2))
    if not -90 <= lat <= 90:
        raise ValueError(f"Latitude out of range: {lat}")
    if not -180 <= lng <= 180:
        raise ValueError(f"Longitude out of range: {lng}")
    return lat, lng


def validate_coordinates(point: Optional[str]) -> bool:
    if point is None:
        return False
    try:
        parse_coordinates(point)
    except ValueError:
        return False
    return True


def format_coordinates(lat: float, lng: float) -> str:
    return f"POINT({lat} {lng})"


def format_route_code(planned_date: date, sequence: int, prefix: str = "RT") -> str:
    """Build a route code such as ``RT-20240115-001``."""
    return f"{prefix}-{planned_date:%Y%m%d}-{sequence:03d}"


def is_valid_route_code(code: str) -> bool:
    return bool(_ROUTE_CODE_PATTERN.match(code))
