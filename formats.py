"""
GdbX — Output writers for decoded GDB data

Supported outputs:
  GPX 1.1, CSV (waypoints), GeoJSON
"""

from __future__ import annotations
import json
import re
import xml.etree.ElementTree as ET
from xml.dom import minidom
from dataclasses import dataclass
from datetime import datetime, timezone
from typing import Callable, Dict, List, Optional, Sequence
from pathlib import Path

from models import Track, Waypoint
from gdbfile import GdbReader, read_gdb

# ─────────────────────────────────────────────────────────────
# Helpers
# ─────────────────────────────────────────────────────────────

SOFT_NAME = "GdbX"
SOFT_VERSION = "1.0"
SOFT_FULL_NAME = f"{SOFT_NAME} v{SOFT_VERSION}"


def _xml_prettify(root: ET.Element) -> str:
    rough = ET.tostring(root, encoding="unicode", xml_declaration=True)
    return minidom.parseString(rough).toprettyxml(indent="  ", encoding=None)


# Control characters XML 1.0 cannot carry, even escaped.
_XML_INVALID = re.compile("[\x00-\x08\x0b\x0c\x0e-\x1f]")


def _xml_text(s: str) -> str:
    return _XML_INVALID.sub("", s)


def _now_iso() -> str:
    return datetime.now(timezone.utc).strftime("%Y-%m-%dT%H:%M:%SZ")


def _iso(dt: Optional[datetime]) -> str:
    return dt.strftime("%Y-%m-%dT%H:%M:%SZ") if dt else ""


def _coord(lng: float, lat: float, alt: Optional[float]) -> List[float]:
    coord = [lng, lat]
    if alt is not None:
        coord.append(alt)
    return coord


# ─────────────────────────────────────────────────────────────
# GPX (GPS Exchange Format) - .gpx
# ─────────────────────────────────────────────────────────────

_GPX_NS = "http://www.topografix.com/GPX/1/1"


def write_gpx(filepath: str, waypoints: Sequence[Waypoint], tracks: Sequence[Track], **kwargs):
    """Write waypoints and tracks to a GPX 1.1 file."""
    root = ET.Element("gpx")
    root.set("version", "1.1")
    root.set("creator", SOFT_FULL_NAME)
    root.set("xmlns:xsi", "http://www.w3.org/2001/XMLSchema-instance")
    root.set("xmlns", _GPX_NS)
    root.set("xsi:schemaLocation", f"{_GPX_NS} {_GPX_NS}/gpx.xsd")

    metadata = ET.SubElement(root, "metadata")
    ET.SubElement(metadata, "time").text = _now_iso()

    for wpt in waypoints:
        el = ET.SubElement(root, "wpt")
        el.set("lat", str(wpt.latitude))
        el.set("lon", str(wpt.longitude))
        if wpt.altitude is not None:
            ET.SubElement(el, "ele").text = str(wpt.altitude)
        if wpt.created_at:
            ET.SubElement(el, "time").text = _iso(wpt.created_at)
        if wpt.shortname:
            ET.SubElement(el, "name").text = _xml_text(wpt.shortname)
        if wpt.notes:
            ET.SubElement(el, "cmt").text = _xml_text(wpt.notes)
        if wpt.description:
            ET.SubElement(el, "desc").text = _xml_text(wpt.description)
        for url in wpt.urls:
            ET.SubElement(el, "link").set("href", _xml_text(url))

    for track in tracks:
        trk = ET.SubElement(root, "trk")
        if track.name:
            ET.SubElement(trk, "name").text = _xml_text(track.name)
        seg = ET.SubElement(trk, "trkseg")
        for pt in track:
            trkpt = ET.SubElement(seg, "trkpt")
            trkpt.set("lat", str(pt.latitude))
            trkpt.set("lon", str(pt.longitude))
            if pt.altitude is not None:
                ET.SubElement(trkpt, "ele").text = str(pt.altitude)
            if pt.created_at:
                ET.SubElement(trkpt, "time").text = _iso(pt.created_at)

    with open(filepath, "w", encoding="utf-8") as f:
        f.write(_xml_prettify(root))


# ─────────────────────────────────────────────────────────────
# CSV - .csv (waypoints only)
# ─────────────────────────────────────────────────────────────

CSV_COLUMNS = ["Name", "Latitude", "Longitude", "Altitude", "Description", "Notes", "Time"]


def _csv_quote(s: str) -> str:
    return '"' + s.replace('"', '""') + '"'


def write_csv(filepath: str, waypoints: Sequence[Waypoint], tracks: Sequence[Track],
              separator: str = ",", **kwargs):
    """Write one CSV row per waypoint."""
    with open(filepath, "w", encoding="utf-8") as f:
        f.write(separator.join(CSV_COLUMNS) + "\r\n")
        for wpt in waypoints:
            fields = [
                _csv_quote(wpt.shortname),
                str(wpt.latitude),
                str(wpt.longitude),
                "" if wpt.altitude is None else str(wpt.altitude),
                _csv_quote(wpt.description),
                _csv_quote(wpt.notes),
                _iso(wpt.created_at),
            ]
            f.write(separator.join(fields) + "\r\n")


# ─────────────────────────────────────────────────────────────
# GeoJSON - .geojson
# ─────────────────────────────────────────────────────────────

def write_geojson(filepath: str, waypoints: Sequence[Waypoint], tracks: Sequence[Track], **kwargs):
    """Write a FeatureCollection: a Point per waypoint, a LineString per track."""
    features = []

    for wpt in waypoints:
        props = {"name": wpt.shortname}
        if wpt.description:
            props["description"] = wpt.description
        if wpt.notes:
            props["notes"] = wpt.notes
        if wpt.urls:
            props["urls"] = list(wpt.urls)
        if wpt.created_at:
            props["time"] = _iso(wpt.created_at)
        features.append({
            "type": "Feature",
            "properties": props,
            "geometry": {"type": "Point",
                         "coordinates": _coord(wpt.longitude, wpt.latitude, wpt.altitude)}
        })

    for track in tracks:
        features.append({
            "type": "Feature",
            "properties": {"name": track.name or "Track", "color": track.color.value},
            "geometry": {"type": "LineString",
                         "coordinates": [_coord(p.longitude, p.latitude, p.altitude) for p in track]}
        })

    geojson = {"type": "FeatureCollection", "features": features}
    with open(filepath, "w", encoding="utf-8") as f:
        json.dump(geojson, f, indent=2, ensure_ascii=False)


# ─────────────────────────────────────────────────────────────
# Format Registry
# ─────────────────────────────────────────────────────────────

@dataclass
class FormatDesc:
    """Description of an output format."""
    extension: str
    name: str
    writer: Callable


FORMAT_REGISTRY: List[FormatDesc] = [
    FormatDesc("gpx",     "GPS Exchange Format",    write_gpx),
    FormatDesc("csv",     "Comma Separated Values", write_csv),
    FormatDesc("geojson", "GeoJSON",                write_geojson),
]

_FORMAT_BY_EXT: Dict[str, FormatDesc] = {fmt.extension: fmt for fmt in FORMAT_REGISTRY}


def get_format(ext: str) -> Optional[FormatDesc]:
    """Get format descriptor by extension."""
    return _FORMAT_BY_EXT.get(ext.lower().lstrip("."))


def supported_output_formats() -> List[str]:
    return sorted(_FORMAT_BY_EXT.keys())


def write_file(filepath: str, reader: GdbReader, **opts):
    """Pick a writer from the output extension and write the reader's data."""
    ext = Path(filepath).suffix.lower().lstrip(".")
    fmt = _FORMAT_BY_EXT.get(ext)
    if not fmt:
        raise ValueError(f"Unsupported output format: .{ext}\n"
                         f"Supported: {', '.join(supported_output_formats())}")
    fmt.writer(filepath, reader.waypoints, reader.tracks, **opts)


def convert(input_path: str, output_path: str, **opts) -> GdbReader:
    """Convert a GDB file to any supported output format."""
    reader_opts = {k: opts.pop(k) for k in ("encoding", "skip_corrupt") if k in opts}
    reader = read_gdb(input_path, **reader_opts)
    if not reader.waypoints and not reader.tracks:
        raise ValueError(f"No GPS data found in {input_path}")
    write_file(output_path, reader, **opts)
    return reader
