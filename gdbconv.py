#!/usr/bin/env python3
"""
GdbX — MapSource GDB Converter
================================
Read MapSource/BaseCamp .gdb files and convert their waypoints and tracks.

Usage:
    python gdbconv.py trip.gdb --info                 # Show file info
    python gdbconv.py trip.gdb trip.gpx               # Convert GDB → GPX
    python gdbconv.py trip.gdb out.gpx out.geojson    # Multi-output
    python gdbconv.py --formats                       # List output formats
"""

from __future__ import annotations
import argparse
import logging
import sys
import os
from pathlib import Path

sys.path.insert(0, os.path.dirname(os.path.abspath(__file__)))

from gdbfile import DEFAULT_ENCODING, GdbReader, read_gdb
from formats import (
    FORMAT_REGISTRY, write_file, get_format, SOFT_FULL_NAME,
)


def format_distance(meters: float) -> str:
    """Format distance in human-readable form."""
    if meters >= 1000:
        return f"{meters / 1000:.2f} km"
    return f"{meters:.0f} m"


def show_info(reader: GdbReader, filepath: str = ""):
    """Display header, waypoint and track summary."""
    header = reader.header
    if filepath:
        print(f"\n📁 File: {filepath}")
    creator = header.created_by.value if header.created_by else "unknown"
    print(f"   Version: {header.version}  Creator: {creator}  Signed by: {header.signed_by}")

    print(f"\n   📌 Waypoints: {len(reader.waypoints)}")
    for wpt in reader.waypoints:
        alt = f"  {wpt.altitude:.1f} m" if wpt.altitude is not None else ""
        print(f"       {wpt.latitude:.6f}, {wpt.longitude:.6f}{alt}  {wpt.name}")

    print(f"\n   📍 Tracks: {len(reader.tracks)}")
    for i, track in enumerate(reader.tracks):
        name = track.name or "(unnamed)"
        print(f"\n   [{i+1}] {name} ({track.color.value})")
        print(f"       Points: {len(track)}")
        if track.points:
            print(f"       Distance: {format_distance(track.total_distance())}")
            min_lat, min_lng, max_lat, max_lng = track.bounds()
            print(f"       Bounds: ({min_lat:.6f}, {min_lng:.6f}) → ({max_lat:.6f}, {max_lng:.6f})")


def list_formats():
    """Display all supported output formats."""
    print(f"\n{SOFT_FULL_NAME}")
    print("=" * 45)
    print(f"{'Extension':<12} {'Format Name':<30}")
    print("-" * 45)
    for fmt in sorted(FORMAT_REGISTRY, key=lambda f: f.extension):
        print(f"  .{fmt.extension:<10} {fmt.name:<30}")
    print("-" * 45 + "\n")


def main(argv=None):
    parser = argparse.ArgumentParser(
        prog="gdbconv",
        description=f"{SOFT_FULL_NAME} — MapSource GDB Converter",
        formatter_class=argparse.RawDescriptionHelpFormatter,
        epilog="""
Examples:
  %(prog)s trip.gdb trip.gpx              Convert GDB to GPX
  %(prog)s --info trip.gdb                Show file information
  %(prog)s --formats                      List all output formats
  %(prog)s trip.gdb a.gpx b.csv           Convert to multiple formats
        """)

    parser.add_argument("input", nargs="?", help="Input .gdb file")
    parser.add_argument("outputs", nargs="*", help="Output file(s)")
    parser.add_argument("--formats", action="store_true", help="List supported output formats")
    parser.add_argument("--info", action="store_true", help="Show file info")
    parser.add_argument("--verbose", "-v", action="store_true", help="Verbose output")
    parser.add_argument("--skip-corrupt", action="store_true",
                        help="Skip records that fail to decode instead of aborting")
    parser.add_argument("--encoding", default=DEFAULT_ENCODING,
                        help=f"Text encoding of names and notes (default: {DEFAULT_ENCODING})")
    parser.add_argument("--csv-sep", default=",", help="CSV separator (default: ,)")

    args = parser.parse_args(argv)

    logging.basicConfig(format='%(levelname)s:%(message)s',
                        level=logging.DEBUG if args.verbose else logging.WARNING)

    if args.formats:
        list_formats()
        return 0

    if not args.input:
        parser.print_help()
        return 1

    try:
        reader = read_gdb(args.input, encoding=args.encoding, skip_corrupt=args.skip_corrupt)
    except Exception as e:
        print(f"❌ Error reading {args.input}: {e}", file=sys.stderr)
        return 1

    if args.verbose or args.info:
        show_info(reader, args.input)

    if not args.outputs:
        if not args.info:
            print(f"✅ Read {len(reader.waypoints)} waypoints and "
                  f"{len(reader.tracks)} tracks from {args.input}")
            print("   (specify output file(s) to convert, or use --info for details)")
        return 0

    for output_path in args.outputs:
        try:
            write_file(output_path, reader, separator=args.csv_sep)
            fmt = get_format(Path(output_path).suffix)
            fmt_name = fmt.name if fmt else Path(output_path).suffix.upper()
            print(f"✅ Converted → {output_path} ({fmt_name})")
        except Exception as e:
            print(f"❌ Error writing {output_path}: {e}", file=sys.stderr)
            return 1

    return 0


if __name__ == "__main__":
    sys.exit(main())
