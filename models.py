"""
GdbX — MapSource GDB Reader
Data models: Header, Waypoint, TrackPoint, Track, Color

Every model is an immutable value record. Decoders fill a builder field by
field and only call build() once the whole record has been read.
"""

from __future__ import annotations
import math
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Dict, List, Optional, Tuple
from enum import Enum


class Creator(Enum):
    MAPSOURCE = "MapSource"
    MAPSOURCE_BETA = "MapSource BETA"


class Color(Enum):
    """Track colors as stored by MapSource/BaseCamp (index 0 = default)."""
    DEFAULT = "Default"
    BLACK = "Black"
    DARK_RED = "DarkRed"
    DARK_GREEN = "DarkGreen"
    DARK_YELLOW = "DarkYellow"
    DARK_BLUE = "DarkBlue"
    DARK_MAGENTA = "DarkMagenta"
    DARK_CYAN = "DarkCyan"
    LIGHT_GRAY = "LightGray"
    DARK_GRAY = "DarkGray"
    RED = "Red"
    GREEN = "Green"
    YELLOW = "Yellow"
    BLUE = "Blue"
    MAGENTA = "Magenta"
    CYAN = "Cyan"
    WHITE = "White"
    TRANSPARENT = "Transparent"
    UNKNOWN = "Unknown"

    @classmethod
    def from_index(cls, index: int) -> Color:
        return _COLOR_BY_INDEX.get(index, cls.UNKNOWN)


_COLOR_BY_INDEX: Dict[int, Color] = {
    i: c for i, c in enumerate(c for c in Color if c is not Color.UNKNOWN)
}


def _epoch_to_datetime(seconds: Optional[int]) -> Optional[datetime]:
    if seconds is None:
        return None
    return datetime.fromtimestamp(seconds, tz=timezone.utc)


def _haversine(lat1: float, lng1: float, lat2: float, lng2: float) -> float:
    """Haversine distance in meters."""
    R = 6371000  # Earth radius in meters
    phi1, phi2 = math.radians(lat1), math.radians(lat2)
    dlat = math.radians(lat2 - lat1)
    dlng = math.radians(lng2 - lng1)
    a = math.sin(dlat / 2) ** 2 + math.cos(phi1) * math.cos(phi2) * math.sin(dlng / 2) ** 2
    return R * 2 * math.atan2(math.sqrt(a), math.sqrt(1 - a))


@dataclass(frozen=True)
class Header:
    """File-level metadata, parsed once before any record."""
    version: int
    created_by: Optional[Creator] = None
    signed_by: str = ""


@dataclass(frozen=True)
class Waypoint:
    """A named point from a GDB waypoint record.

    Optional fields are None when the record's presence flag was not set.
    """
    latitude: float
    longitude: float
    shortname: str = ""
    wpt_class: int = 0
    altitude: Optional[float] = None
    notes: str = ""
    proximity: Optional[float] = None
    icon: int = 0
    city: str = ""
    state: str = ""
    facility: str = ""
    address: str = ""
    depth: Optional[float] = None
    description: str = ""
    urls: Tuple[str, ...] = ()
    category: bool = False
    temperature: Optional[float] = None
    creation_time: Optional[int] = None

    @property
    def name(self) -> str:
        return self.description or self.shortname

    @property
    def created_at(self) -> Optional[datetime]:
        return _epoch_to_datetime(self.creation_time)


@dataclass(frozen=True)
class TrackPoint:
    latitude: float
    longitude: float
    altitude: Optional[float] = None
    creation_time: Optional[int] = None
    depth: Optional[float] = None
    temperature: Optional[float] = None

    @property
    def created_at(self) -> Optional[datetime]:
        return _epoch_to_datetime(self.creation_time)

    def distance_from(self, other) -> float:
        return _haversine(self.latitude, self.longitude, other.latitude, other.longitude)


@dataclass(frozen=True)
class Track:
    """A named, colored sequence of track points."""
    name: str = ""
    color: Color = Color.DEFAULT
    points: Tuple[TrackPoint, ...] = ()

    def __len__(self) -> int:
        return len(self.points)

    def __iter__(self):
        return iter(self.points)

    def total_distance(self) -> float:
        """Total distance in meters."""
        total = 0.0
        for i in range(1, len(self.points)):
            total += self.points[i - 1].distance_from(self.points[i])
        return total

    def bounds(self):
        """Returns (min_lat, min_lng, max_lat, max_lng)."""
        if not self.points:
            return (0, 0, 0, 0)
        lats = [p.latitude for p in self.points]
        lngs = [p.longitude for p in self.points]
        return (min(lats), min(lngs), max(lats), max(lngs))


# ─────────────────────────────────────────────────────────────
# Builders
# ─────────────────────────────────────────────────────────────

class WaypointBuilder:
    """Accumulates waypoint fields while a record is being decoded."""

    def __init__(self):
        self._fields: Dict[str, object] = {}
        self._urls: List[str] = []

    def set(self, **fields) -> WaypointBuilder:
        self._fields.update(fields)
        return self

    def add_url(self, url: str):
        if url:
            self._urls.append(url)

    def build(self) -> Waypoint:
        return Waypoint(urls=tuple(self._urls), **self._fields)


class TrackBuilder:

    def __init__(self, name: str = "", color: Color = Color.DEFAULT):
        self.name = name
        self.color = color
        self._points: List[TrackPoint] = []

    def append(self, point: TrackPoint):
        self._points.append(point)

    def build(self) -> Track:
        return Track(self.name, self.color, tuple(self._points))
