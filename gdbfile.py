"""
GdbX — MapSource / BaseCamp GDB decoder

A GDB file is a magic prefix, two header records, a signer string and then a
stream of length-prefixed records. Every record stores its length minus one:

    int32 length | length + 1 bytes of payload

The first payload byte tags the record: 'W' waypoint, 'T' track, 'V' end of
stream. Anything else (routes, map sets, ...) is skipped.

All integers are little-endian two's complement. Coordinates are stored as
semicircles: the full signed 32-bit range maps to +/-180 degrees.
"""

from __future__ import annotations
import logging
import re
import struct
from dataclasses import dataclass
from typing import BinaryIO, Callable, Iterator, List, Optional, Union

from models import (
    Color, Creator, Header, Track, TrackBuilder, TrackPoint,
    Waypoint, WaypointBuilder,
)

logger = logging.getLogger(__name__)

GDB_MAGIC = b"MsRcf"
SUPPORTED_VERSIONS = range(1, 4)
SEMICIRCLE_SCALE = 180.0 / (1 << 31)
ALTITUDE_UNSET = 1.0e24
DEFAULT_ENCODING = "latin-1"
SIGNER_PREFIX_LEN = 10

_SIGNER_RE = re.compile(r"MapSource|BaseCamp")

TAG_HEADER = ord("D")
TAG_WAYPOINT = ord("W")
TAG_TRACK = ord("T")
TAG_TERMINATOR = ord("V")


# ─────────────────────────────────────────────────────────────
# Errors
# ─────────────────────────────────────────────────────────────

class GdbError(ValueError):
    """Base class for everything the decoder raises."""


class InvalidFormatError(GdbError):
    pass


class UnsupportedVersionError(GdbError):

    def __init__(self, version: int, supported: range = SUPPORTED_VERSIONS):
        self.version = version
        self.supported = supported
        super().__init__(
            f"Unsupported version: {version}. "
            f"Supported versions are {', '.join(str(v) for v in supported)}")


class TruncatedDataError(GdbError):
    pass


def semicircle_to_degrees(value: int) -> float:
    return value * SEMICIRCLE_SCALE


# ─────────────────────────────────────────────────────────────
# Primitive codecs
# ─────────────────────────────────────────────────────────────

class ByteCursor:
    """Forward-only reader over an in-memory record payload."""

    def __init__(self, data: bytes, encoding: str = DEFAULT_ENCODING):
        self._data = data
        self.offset = 0
        self.encoding = encoding

    @property
    def remaining(self) -> int:
        return len(self._data) - self.offset

    def _take(self, n: int) -> bytes:
        if n > self.remaining:
            raise TruncatedDataError(
                f"Needed {n} bytes at offset {self.offset}, only {self.remaining} left")
        chunk = self._data[self.offset:self.offset + n]
        self.offset += n
        return chunk

    def _unpack(self, fmt: str, size: int):
        return struct.unpack(fmt, self._take(size))[0]

    def read_int32(self) -> int:
        return self._unpack("<i", 4)

    def read_int16(self) -> int:
        return self._unpack("<h", 2)

    def read_double(self) -> float:
        return self._unpack("<d", 8)

    def read_char(self) -> int:
        return self._unpack("<b", 1)

    def read_bool(self) -> bool:
        # Only the byte value 1 counts as true.
        return self.read_char() == 1

    def read_string(self, max_len: Optional[int] = None):
        """Read a null-terminated string, or exactly max_len raw bytes."""
        if max_len is not None:
            return self._take(max_len)
        end = self._data.find(b"\x00", self.offset)
        if end < 0:
            raise TruncatedDataError(
                f"Unterminated string at offset {self.offset}")
        raw = self._data[self.offset:end]
        self.offset = end + 1
        return raw.decode(self.encoding, errors="replace")

    def skip(self, n: int):
        self._take(n)

    def read_semicircle(self) -> float:
        return semicircle_to_degrees(self.read_int32())

    def read_optional(self, read: Callable):
        """Read a flag byte; call read() only when the flag is set."""
        if self.read_bool():
            return read()
        return None

    def read_altitude(self) -> Optional[float]:
        alt = self.read_optional(self.read_double)
        if alt is not None and alt >= ALTITUDE_UNSET:
            return None
        return alt


def _read_exact(stream: BinaryIO, n: int) -> bytes:
    data = stream.read(n)
    if data is None or len(data) < n:
        got = 0 if data is None else len(data)
        raise TruncatedDataError(f"Unexpected end of file: needed {n} bytes, got {got}")
    return data


def read_record(stream: BinaryIO) -> bytes:
    """Read one length-prefixed record and return its payload."""
    length = struct.unpack("<i", _read_exact(stream, 4))[0]
    if length < -1:
        raise InvalidFormatError(f"Invalid record length: {length}")
    return _read_exact(stream, length + 1)


# ─────────────────────────────────────────────────────────────
# Header
# ─────────────────────────────────────────────────────────────

def read_header(stream: BinaryIO, encoding: str = DEFAULT_ENCODING) -> Header:
    """Read the file prefix, version, creator and signer.

    Raises InvalidFormatError if this is not a GDB file or the header is
    malformed, UnsupportedVersionError if the format version is not 1-3.
    """
    magic = stream.read(6) or b""
    if magic.rstrip(b"\x00 ") != GDB_MAGIC:
        raise InvalidFormatError("Invalid gdb file: bad magic")

    buffer = read_record(stream)
    if len(buffer) < 2 or buffer[0] != TAG_HEADER:
        raise InvalidFormatError("Invalid gdb file: missing 'D' header record")
    version = buffer[1] - ord("k") + 1
    if version not in SUPPORTED_VERSIONS:
        raise UnsupportedVersionError(version)

    buffer = read_record(stream)
    creator = buffer.split(b"\x00", 1)[0].decode(encoding, errors="replace")
    if creator.endswith("SQA"):
        created_by = Creator.MAPSOURCE
    elif creator.endswith("neaderhi"):
        created_by = Creator.MAPSOURCE_BETA
    else:
        created_by = None

    # The signer has no length prefix: scan on until a trailing null.
    signer = bytearray(_read_exact(stream, SIGNER_PREFIX_LEN))
    while not signer.endswith(b"\x00"):
        signer += _read_exact(stream, 1)
    signed_by = bytes(signer).split(b"\x00", 1)[0].decode(encoding, errors="replace")

    if not _SIGNER_RE.search(signed_by):
        raise InvalidFormatError(f"Unknown file signature: {signed_by}")

    logger.debug("GDB header: version=%d creator=%r signer=%r", version, creator, signed_by)
    return Header(version=version, created_by=created_by, signed_by=signed_by)


# ─────────────────────────────────────────────────────────────
# Waypoint records
# ─────────────────────────────────────────────────────────────

def _read_waypoint_v1(cur: ByteCursor, wpt: WaypointBuilder, wpt_class: int):
    cur.skip(2)
    legacy_flag = cur.read_bool()
    cur.skip(2 if legacy_flag else 3)
    cur.read_string()  # undocumented

    text = cur.read_string()
    if wpt_class != 0:
        # Non-user classes store a description in the URL slot.
        wpt.set(description=text)
    else:
        wpt.add_url(text)

    wpt.set(category=cur.read_int16() != 0,
            temperature=cur.read_optional(cur.read_double))
    if legacy_flag:
        cur.skip(1)
    wpt.set(creation_time=cur.read_optional(cur.read_int32))


def _read_waypoint_v3(cur: ByteCursor, wpt: WaypointBuilder, wpt_class: int):
    wpt.set(address=cur.read_string())
    cur.skip(5)
    wpt.set(description=cur.read_string())

    url_count = cur.read_int32()
    for _ in range(url_count):
        wpt.add_url(cur.read_string())

    wpt.set(category=cur.read_int16() != 0,
            temperature=cur.read_optional(cur.read_double),
            creation_time=cur.read_optional(cur.read_int32))


def decode_waypoint(payload: bytes, version: int,
                    encoding: str = DEFAULT_ENCODING) -> Waypoint:
    """Decode a 'W' record payload into a Waypoint."""
    cur = ByteCursor(payload, encoding)
    wpt = WaypointBuilder()

    cur.skip(1)  # tag
    wpt.set(shortname=cur.read_string())
    wpt_class = cur.read_int32()
    wpt.set(wpt_class=wpt_class)

    cur.read_string()
    cur.skip(22)

    wpt.set(latitude=cur.read_semicircle(), longitude=cur.read_semicircle())
    wpt.set(altitude=cur.read_altitude())
    wpt.set(notes=cur.read_string())
    wpt.set(proximity=cur.read_optional(cur.read_double))

    cur.read_int32()  # display mode
    cur.read_int32()  # color

    wpt.set(icon=cur.read_int32())
    wpt.set(city=cur.read_string(), state=cur.read_string(), facility=cur.read_string())

    cur.skip(1)
    wpt.set(depth=cur.read_optional(cur.read_double))

    read_tail = _read_waypoint_v1 if version <= 2 else _read_waypoint_v3
    read_tail(cur, wpt, wpt_class)
    return wpt.build()


# ─────────────────────────────────────────────────────────────
# Track records
# ─────────────────────────────────────────────────────────────

def _read_trackpoint(cur: ByteCursor) -> TrackPoint:
    lat = cur.read_semicircle()
    lng = cur.read_semicircle()
    return TrackPoint(
        latitude=lat,
        longitude=lng,
        altitude=cur.read_altitude(),
        creation_time=cur.read_optional(cur.read_int32),
        depth=cur.read_optional(cur.read_double),
        temperature=cur.read_optional(cur.read_double),
    )


def decode_track(payload: bytes, encoding: str = DEFAULT_ENCODING) -> Track:
    """Decode a 'T' record payload into a Track."""
    cur = ByteCursor(payload, encoding)
    cur.skip(1)  # tag
    name = cur.read_string()
    cur.skip(1)
    color_index = cur.read_int32()
    count = cur.read_int32()

    track = TrackBuilder(name, Color.from_index(color_index))
    for _ in range(count):
        track.append(_read_trackpoint(cur))
    return track.build()


# ─────────────────────────────────────────────────────────────
# Record stream
# ─────────────────────────────────────────────────────────────

@dataclass(frozen=True)
class Terminator:
    pass


@dataclass(frozen=True)
class UnknownRecord:
    tag: Optional[int]
    payload: bytes


Record = Union[Waypoint, Track, Terminator, UnknownRecord]


def _tag_name(tag: Optional[int]) -> str:
    return "empty" if tag is None else repr(chr(tag))


def decode_record(payload: bytes, version: int,
                  encoding: str = DEFAULT_ENCODING) -> Record:
    if not payload:
        return UnknownRecord(None, payload)
    tag = payload[0]
    if tag == TAG_WAYPOINT:
        return decode_waypoint(payload, version, encoding)
    if tag == TAG_TRACK:
        return decode_track(payload, encoding)
    if tag == TAG_TERMINATOR:
        return Terminator()
    return UnknownRecord(tag, payload)


def iter_records(stream: BinaryIO, version: int,
                 encoding: str = DEFAULT_ENCODING,
                 skip_corrupt: bool = False) -> Iterator[Record]:
    """Yield decoded records up to (not including) the terminator.

    With skip_corrupt, a record whose fields overrun its payload is logged and
    dropped. A stream that ends before the terminator always raises.
    """
    while True:
        payload = read_record(stream)
        try:
            record = decode_record(payload, version, encoding)
        except TruncatedDataError as e:
            if not skip_corrupt:
                raise
            logger.warning("Skipping corrupt %s record: %s", _tag_name(payload[0]), e)
            continue

        if isinstance(record, Terminator):
            logger.debug("End of record stream")
            return
        if isinstance(record, UnknownRecord):
            logger.debug("Ignoring %s record (%d bytes)", _tag_name(record.tag), len(payload))
        else:
            logger.debug("Decoded %s record (%d bytes)", _tag_name(payload[0]), len(payload))
        yield record


class GdbReader:
    """Parses GDB files and extracts waypoints and tracks.

    The header is read on construction. The record stream is scanned once,
    on first access to waypoints or tracks; later calls return the cached
    lists. The stream is borrowed and never closed here.

        with open("around_the_world.gdb", "rb") as f:
            reader = GdbReader(f)
            reader.waypoints
    """

    SUPPORTED_VERSIONS = SUPPORTED_VERSIONS

    def __init__(self, gdb: BinaryIO, encoding: str = DEFAULT_ENCODING,
                 skip_corrupt: bool = False):
        self._gdb = gdb
        self.encoding = encoding
        self.skip_corrupt = skip_corrupt
        self.header = read_header(gdb, encoding)

        self._waypoints: Optional[List[Waypoint]] = None
        self._tracks: Optional[List[Track]] = None
        self._error: Optional[GdbError] = None

    @property
    def version(self) -> int:
        return self.header.version

    @property
    def waypoints(self) -> List[Waypoint]:
        self._read_data()
        return self._waypoints

    @property
    def tracks(self) -> List[Track]:
        self._read_data()
        return self._tracks

    def _read_data(self):
        if self._error is not None:
            raise self._error
        if self._waypoints is not None:
            return

        waypoints: List[Waypoint] = []
        tracks: List[Track] = []
        try:
            for record in iter_records(self._gdb, self.header.version,
                                       self.encoding, self.skip_corrupt):
                if isinstance(record, Waypoint):
                    waypoints.append(record)
                elif isinstance(record, Track):
                    tracks.append(record)
        except GdbError as e:
            # The stream position is now undefined; don't rescan.
            self._error = e
            raise

        logger.debug("Read %d waypoints and %d tracks", len(waypoints), len(tracks))
        self._waypoints = waypoints
        self._tracks = tracks


def read_gdb(filepath: str, **opts) -> GdbReader:
    """Open, fully read and close a GDB file."""
    with open(filepath, "rb") as f:
        reader = GdbReader(f, **opts)
        reader.waypoints
    return reader
