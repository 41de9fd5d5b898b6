"""Loading of point clouds from PCD files and plain text point lists."""

from __future__ import annotations

import itertools
import re
import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass, field
from pathlib import Path
from typing import BinaryIO

Point3 = tuple[float, float, float]

_COORDINATES = "xyz"
_COORDINATE_FORMATS = {4: "<f", 8: "<d"}
_LEADING_INT = re.compile(r"\s*([+-]?\d+)")


@dataclass
class PcdHeader:
    """Header of a PCD file.

    ``fields`` and ``sizes`` are parsed; the other entries keep the whole
    header line they were read from.
    """

    comment: str = ""
    version: str = "0.7"
    fields: list[str] = field(default_factory=list)
    sizes: list[int] = field(default_factory=list)
    type: str = ""
    count: str = ""
    width: str = ""
    height: str = ""
    viewpoint: str = ""
    points: str = ""
    data: str = ""


@dataclass(frozen=True)
class ColoredPoint:
    """A point with an RGBA colour whose channels lie in 0..1."""

    x: float
    y: float
    z: float
    r: float
    g: float
    b: float
    a: float = 1.0


def _atoi(token: str) -> int:
    match = _LEADING_INT.match(token)
    return int(match.group(1)) if match else 0


def _parse_header(stream: BinaryIO) -> PcdHeader:
    """Read header lines up to and including DATA, or up to an unknown line."""
    header = PcdHeader()
    while True:
        raw = stream.readline()
        if not raw:
            break
        line = raw.decode("latin-1").rstrip("\r\n")
        if "PCD" in line:
            header.comment = line
        elif "VERSION" in line:
            header.version = line
        elif "FIELDS" in line:
            header.fields = [t for t in line.split(" ") if t != "FIELDS"]
        elif "SIZE" in line:
            header.sizes = [n for n in map(_atoi, line.split(" ")) if n]
        elif "TYPE" in line:
            header.type = line
        elif "COUNT" in line:
            header.count = line
        elif "WIDTH" in line:
            header.width = line
        elif "HEIGHT" in line:
            header.height = line
        elif "VIEWPOINT" in line:
            header.viewpoint = line
        elif "POINTS" in line:
            header.points = line
        elif "DATA" in line:
            header.data = line
            break
        else:
            break
    return header


def _decode(chunk: bytes, name: str) -> float:
    fmt = _COORDINATE_FORMATS.get(len(chunk))
    if fmt is None:
        raise ValueError(
            f"unsupported size {len(chunk)} for coordinate field {name!r}"
        )
    return struct.unpack(fmt, chunk)[0]


def _iter_xyz(stream: BinaryIO, header: PcdHeader) -> Iterator[Point3]:
    """Yield x, y, z from binary records until the data runs out.

    A point is emitted only where the fields x, y and z follow one another.
    """
    stage = 0
    coords: list[float] = []
    for index in itertools.cycle(range(len(header.fields))):
        size = header.sizes[index]
        chunk = stream.read(size)
        if len(chunk) < size:
            return
        name = header.fields[index]
        if name == _COORDINATES[stage]:
            coords.append(_decode(chunk, name))
            if stage == 2:
                yield (coords[0], coords[1], coords[2])
                coords = []
                stage = 0
            else:
                stage += 1
        else:
            coords = []
            stage = 0


def parse_pcd(stream: BinaryIO) -> tuple[PcdHeader, list[Point3]]:
    """Read a binary PCD file from a stream; return its header and points.

    Raises ValueError when the header names no fields or gives fewer sizes
    than fields.
    """
    header = _parse_header(stream)
    if not header.fields:
        raise ValueError("PCD header lists no FIELDS")
    if len(header.sizes) < len(header.fields):
        raise ValueError("PCD header lists fewer SIZE entries than FIELDS")
    return header, list(_iter_xyz(stream, header))


def read_pcd(path: str | Path) -> tuple[PcdHeader, list[Point3]]:
    """Read the binary PCD file at a path."""
    with open(path, "rb") as stream:
        return parse_pcd(stream)


def parse_text_cloud(lines: Iterable[str]) -> list[ColoredPoint]:
    """Parse lines of ``x y z r g b`` with colour channels in 0..255.

    Raises ValueError for a value that is not a number or a line with fewer
    than six values.
    """
    points = []
    for number, line in enumerate(lines, start=1):
        tokens = line.rstrip("\n").split(" ")
        if tokens and tokens[-1] == "":
            tokens.pop()
        try:
            values = [float(token) for token in tokens]
        except ValueError as error:
            raise ValueError(f"line {number}: {error}") from None
        if len(values) < 6:
            raise ValueError(
                f"line {number}: expected six values, got {len(values)}"
            )
        x, y, z, r, g, b = values[:6]
        points.append(ColoredPoint(x, y, z, r / 255.0, g / 255.0, b / 255.0))
    return points


def read_text_cloud(path: str | Path) -> list[ColoredPoint]:
    """Read a text point list from a file."""
    with open(path, encoding="utf-8") as stream:
        return parse_text_cloud(stream)