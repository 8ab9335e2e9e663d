"""
GdbX — MapSource GDB Reader & Converter
==========================================
Decode Garmin MapSource/BaseCamp .gdb archives into waypoints and tracks.

Quick start:
    python gdbconv.py trip.gdb --info        # Show file info
    python gdbconv.py trip.gdb trip.gpx      # Convert

Library:
    from gdbfile import GdbReader
    with open("trip.gdb", "rb") as f:
        reader = GdbReader(f)
        reader.waypoints
"""

from models import Header, Creator, Waypoint, TrackPoint, Track, Color
from gdbfile import (
    GdbReader, read_gdb, read_header,
    GdbError, InvalidFormatError, UnsupportedVersionError, TruncatedDataError,
)
from formats import write_file, convert, supported_output_formats, FORMAT_REGISTRY

__version__ = "1.0.0"
__all__ = [
    "Header", "Creator", "Waypoint", "TrackPoint", "Track", "Color",
    "GdbReader", "read_gdb", "read_header",
    "GdbError", "InvalidFormatError", "UnsupportedVersionError", "TruncatedDataError",
    "write_file", "convert", "supported_output_formats", "FORMAT_REGISTRY",
]
