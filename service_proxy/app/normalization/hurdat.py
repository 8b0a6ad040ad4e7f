"""
HURDAT2 best-track text parsing.

HURDAT2 is a comma-delimited text file. A header line such as
``AL092023, HERMINE, 5,`` opens a storm; the following lines carry one
observation each until the next header.
"""

import re
from typing import Any, Dict, List, Optional

from service_proxy.app.domain.models import HurricaneTrack, TrackPoint
from service_proxy.app.normalization.coerce import as_float, as_int
from service_proxy.app.normalization.sanitize import sanitize_string

MAX_LINES = 1000
MIN_TRACK_FIELDS = 7

_HEADER_ID = re.compile(r"^[A-Z]{2}\d{6}$")
_COORDINATE = re.compile(r"^-?\d+(?:\.\d+)?[NSEW]?$")


def is_header(parts: List[str]) -> bool:
    return len(parts) >= 3 and bool(_HEADER_ID.match(parts[0]))


def _is_coordinate(value: str) -> bool:
    return bool(_COORDINATE.match(value.upper()))


def parse_coordinate(value: str) -> float:
    """Parse ``28.0N`` / ``94.8W`` style values; S and W are negative."""
    value = value.strip().upper()
    if value and value[-1] in "NSEW":
        hemisphere = value[-1]
        number = as_float(value[:-1], 0.0)
        return -number if hemisphere in "SW" else number
    return as_float(value, 0.0)


def parse_track_point(parts: List[str]) -> TrackPoint:
    """Build a track point from a data line.

    Accepts the compact layout ``date, time, status, lat, lon, wind,
    pressure`` and the published layout which has a record identifier
    column between time and status.
    """
    offset = 0
    if len(parts) >= 8 and not _is_coordinate(parts[3]) and _is_coordinate(parts[4]) and _is_coordinate(parts[5]):
        offset = 1

    return TrackPoint(
        date=sanitize_string(parts[0]),
        time=sanitize_string(parts[1]),
        status=sanitize_string(parts[2 + offset]),
        lat=parse_coordinate(parts[3 + offset]),
        lon=parse_coordinate(parts[4 + offset]),
        wind_speed=as_int(parts[5 + offset], 0),
        pressure=as_int(parts[6 + offset], 0),
    )


def parse_hurdat2(text: str, max_lines: int = MAX_LINES) -> List[HurricaneTrack]:
    """Parse HURDAT2 text into storm tracks.

    Stops after ``max_lines`` input lines; the partial result is returned.
    """
    storms: List[HurricaneTrack] = []
    current: Optional[HurricaneTrack] = None

    for line_number, line in enumerate(text.splitlines(), start=1):
        if line_number > max_lines:
            break

        line = line.strip()
        if not line:
            continue

        parts = [part.strip() for part in line.split(",")]
        if is_header(parts):
            current = HurricaneTrack(
                id=parts[0],
                name=sanitize_string(parts[1]),
                entries=as_int(parts[2], 0),
            )
            storms.append(current)
        elif current is not None and len(parts) >= MIN_TRACK_FIELDS:
            current.track.append(parse_track_point(parts))

    return storms


def normalize_hurdat(endpoint: str, raw: str) -> Dict[str, Any]:
    return {"storms": [storm.to_dict() for storm in parse_hurdat2(raw)]}


def fallback_hurdat() -> Dict[str, Any]:
    return {"storms": []}
