"""Decoding of Velodyne HDL-32 data packets into XYZI points."""

from __future__ import annotations

import math
import struct
import threading
from collections.abc import Callable, Sequence
from dataclasses import dataclass
from enum import IntEnum
from functools import lru_cache

LASERS_PER_FIRING = 32
FIRINGS_PER_PACKET = 12
FIRING_SIZE = 100
PACKET_SIZE = 1206
NUM_ROT_ANGLES = 36001
DISTANCE_UNIT = 0.002
INITIAL_AZIMUTH = 65000

_FIRING_HEADER = struct.Struct("<HH")
_RETURN = struct.Struct("<HB")
_TRAILER = struct.Struct("<IBB")

HDL32_VERTICAL_CORRECTIONS = (
    -30.67, -9.3299999, -29.33, -8, -28, -6.6700001, -26.67,
    -5.3299999, -25.33, -4, -24, -2.6700001, -22.67, -1.33,
    -21.33, 0, -20, 1.33, -18.67, 2.6700001, -17.33,
    4, -16, 5.3299999, -14.67, 6.6700001, -13.33, 8,
    -12, 9.3299999, -10.67, 10.67,
)


def _to_radians(degrees: float) -> float:
    return degrees * math.pi / 180.0


def _f32(value: float) -> float:
    return struct.unpack("<f", struct.pack("<f", value))[0]


@lru_cache(maxsize=1)
def _trig_tables() -> tuple[tuple[float, ...], tuple[float, ...]]:
    angles = [(math.pi / 180.0) * (i / 100.0) for i in range(NUM_ROT_ANGLES)]
    return tuple(map(math.cos, angles)), tuple(map(math.sin, angles))


@dataclass(frozen=True)
class PointXYZI:
    """A point with an intensity value, stored at single precision."""

    x: float
    y: float
    z: float
    i: float


class HDLBlock(IntEnum):
    """Block identifiers found at the start of each firing."""

    BLOCK_0_TO_31 = 0xEEFF
    BLOCK_32_TO_63 = 0xDDFF


@dataclass(frozen=True)
class LaserCorrection:
    """Calibration values of one laser."""

    azimuth_correction: float = 0.0
    vertical_correction: float = 0.0
    distance_correction: float = 0.0
    vertical_offset_correction: float = 0.0
    horizontal_offset_correction: float = 0.0
    sin_vert_correction: float = 0.0
    cos_vert_correction: float = 1.0


@dataclass(frozen=True)
class LaserReturn:
    """Raw distance (in 2 mm units) and intensity of one laser return."""

    distance: int
    intensity: int


@dataclass(frozen=True)
class FiringData:
    """One firing block: identifier, azimuth and 32 returns."""

    block_identifier: int
    rotational_position: int
    returns: tuple[LaserReturn, ...]


@dataclass(frozen=True)
class DataPacket:
    """A decoded 1206-byte data packet."""

    firings: tuple[FiringData, ...]
    gps_timestamp: int
    mode: int
    sensor_type: int


def hdl32_corrections() -> tuple[LaserCorrection, ...]:
    """Return the 64 default corrections: HDL-32 angles, then neutral ones."""
    hdl32 = [
        LaserCorrection(
            vertical_correction=float(angle),
            sin_vert_correction=math.sin(_to_radians(angle)),
            cos_vert_correction=math.cos(_to_radians(angle)),
        )
        for angle in HDL32_VERTICAL_CORRECTIONS
    ]
    neutral = [LaserCorrection() for _ in range(64 - LASERS_PER_FIRING)]
    return tuple(hdl32 + neutral)


def compute_xyzi(
    azimuth: int, laser_return: LaserReturn, correction: LaserCorrection
) -> PointXYZI:
    """Convert one return at an azimuth (hundredths of a degree) to a point."""
    distance = laser_return.distance * DISTANCE_UNIT
    if correction.azimuth_correction == 0 and 0 <= azimuth < NUM_ROT_ANGLES:
        cos_table, sin_table = _trig_tables()
        cos_az, sin_az = cos_table[azimuth], sin_table[azimuth]
    elif correction.azimuth_correction == 0:
        rad = (math.pi / 180.0) * (azimuth / 100.0)
        cos_az, sin_az = math.cos(rad), math.sin(rad)
    else:
        rad = _to_radians(azimuth / 100.0 - correction.azimuth_correction)
        cos_az, sin_az = math.cos(rad), math.sin(rad)

    distance += correction.distance_correction
    xy_distance = distance * correction.cos_vert_correction
    offset = correction.horizontal_offset_correction
    return PointXYZI(
        x=_f32(xy_distance * sin_az - offset * cos_az),
        y=_f32(xy_distance * cos_az + offset * sin_az),
        z=_f32(distance * correction.sin_vert_correction
               + correction.vertical_offset_correction),
        i=_f32(float(laser_return.intensity)),
    )


def parse_packet(data: bytes) -> DataPacket:
    """Decode a raw data packet; raise ValueError unless it is 1206 bytes."""
    if len(data) != PACKET_SIZE:
        raise ValueError(
            f"data packet must be {PACKET_SIZE} bytes, got {len(data)}"
        )
    view = memoryview(data)
    firings = []
    for base in range(0, FIRINGS_PER_PACKET * FIRING_SIZE, FIRING_SIZE):
        block_id, rotation = _FIRING_HEADER.unpack_from(view, base)
        returns = tuple(
            LaserReturn(*_RETURN.unpack_from(view, offset))
            for offset in range(base + _FIRING_HEADER.size, base + FIRING_SIZE,
                                _RETURN.size)
        )
        firings.append(FiringData(block_id, rotation, returns))
    gps, mode, sensor = _TRAILER.unpack_from(
        view, FIRINGS_PER_PACKET * FIRING_SIZE
    )
    return DataPacket(tuple(firings), gps, mode, sensor)


SweepCallback = Callable[[list[PointXYZI]], None]


class SweepAssembler:
    """Collects points from packets and reports each completed sweep."""

    def __init__(self, corrections: Sequence[LaserCorrection] | None = None):
        self._corrections = tuple(
            hdl32_corrections() if corrections is None else corrections
        )
        if len(self._corrections) < LASERS_PER_FIRING:
            raise ValueError(
                f"need at least {LASERS_PER_FIRING} laser corrections"
            )
        self._callbacks: list[SweepCallback] = []
        self._lock = threading.Lock()
        self._current: list[PointXYZI] = []
        self._whole: list[PointXYZI] = []
        self._last_azimuth = INITIAL_AZIMUTH

    def connect(self, callback: SweepCallback) -> None:
        """Register a function called with the points of each finished sweep."""
        self._callbacks.append(callback)

    def add_packet(self, data: bytes) -> DataPacket:
        """Decode a packet, add its points, and fire callbacks on wrap-around."""
        packet = parse_packet(data)
        with self._lock:
            self._current = []
        for firing in packet.firings:
            if firing.rotational_position < self._last_azimuth:
                with self._lock:
                    finished = self._whole
                    self._whole = []
                for callback in self._callbacks:
                    callback(list(finished))
            points = [
                compute_xyzi(firing.rotational_position, ret, correction)
                for ret, correction in zip(firing.returns, self._corrections)
            ]
            with self._lock:
                self._current.extend(points)
                self._whole.extend(points)
            self._last_azimuth = firing.rotational_position
        return packet

    def current_packet(self) -> list[PointXYZI]:
        """Points of the most recently added packet."""
        with self._lock:
            return list(self._current)

    def whole_sweep(self) -> list[PointXYZI]:
        """Points gathered since the last sweep boundary."""
        with self._lock:
            return list(self._whole)