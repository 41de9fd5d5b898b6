"""Reading of classic libpcap capture files and selection of UDP frames."""

from __future__ import annotations

import struct
from collections.abc import Iterable, Iterator
from dataclasses import dataclass
from pathlib import Path
from typing import BinaryIO

ETHERNET_UDP_HEADER = 42
"""Ethernet (14) + IPv4 (20) + UDP (8) header bytes that precede a payload."""

_MAGIC_USEC = 0xA1B2C3D4
_MAGIC_NSEC = 0xA1B23C4D
_GLOBAL_HEADER_SIZE = 24
_RECORD_HEADER_SIZE = 16

_ETHERTYPE_IPV4 = 0x0800
_ETHERTYPE_IPV6 = 0x86DD
_IPPROTO_UDP = 17
_ETHERNET_HEADER = 14


class PcapError(ValueError):
    """Raised when a capture file is malformed."""


@dataclass(frozen=True)
class PcapRecord:
    """One captured frame with its timestamp and lengths."""

    ts_sec: int
    ts_usec: int
    original_length: int
    data: bytes

    @property
    def captured_length(self) -> int:
        """Number of bytes actually stored in the capture."""
        return len(self.data)

    @property
    def timestamp(self) -> float:
        """Capture time in seconds since the epoch."""
        return self.ts_sec + self.ts_usec / 1_000_000


def _read_exact(stream: BinaryIO, size: int) -> bytes:
    return stream.read(size) or b""


def _byte_order(magic_bytes: bytes) -> tuple[str, bool]:
    """Return the struct byte-order prefix and whether timestamps are in ns."""
    for prefix in ("<", ">"):
        (magic,) = struct.unpack(prefix + "I", magic_bytes)
        if magic == _MAGIC_USEC:
            return prefix, False
        if magic == _MAGIC_NSEC:
            return prefix, True
    raise PcapError(f"not a pcap file: magic {magic_bytes.hex()}")


def parse_pcap(stream: BinaryIO) -> Iterator[PcapRecord]:
    """Yield the records of a pcap capture read from a binary stream.

    Raises PcapError for a bad or truncated global header and for a record
    that is cut short.
    """
    header = _read_exact(stream, _GLOBAL_HEADER_SIZE)
    if len(header) < _GLOBAL_HEADER_SIZE:
        raise PcapError("truncated pcap global header")
    order, nanoseconds = _byte_order(header[:4])
    record_header = struct.Struct(order + "IIII")

    while True:
        raw = _read_exact(stream, _RECORD_HEADER_SIZE)
        if not raw:
            return
        if len(raw) < _RECORD_HEADER_SIZE:
            raise PcapError("truncated pcap record header")
        ts_sec, ts_frac, incl_len, orig_len = record_header.unpack(raw)
        data = _read_exact(stream, incl_len)
        if len(data) < incl_len:
            raise PcapError(
                f"truncated pcap record: expected {incl_len} bytes, "
                f"got {len(data)}"
            )
        ts_usec = ts_frac // 1000 if nanoseconds else ts_frac
        yield PcapRecord(ts_sec, ts_usec, orig_len, data)


def iter_records(path: str | Path) -> Iterator[PcapRecord]:
    """Yield the records of the capture file at a path."""
    with open(path, "rb") as stream:
        yield from parse_pcap(stream)


def is_udp(frame: bytes) -> bool:
    """Tell whether an Ethernet frame carries an IPv4 or IPv6 UDP datagram."""
    if len(frame) < _ETHERNET_HEADER:
        return False
    (ethertype,) = struct.unpack_from("!H", frame, 12)
    if ethertype == _ETHERTYPE_IPV4:
        protocol_offset = _ETHERNET_HEADER + 9
    elif ethertype == _ETHERTYPE_IPV6:
        protocol_offset = _ETHERNET_HEADER + 6
    else:
        return False
    return len(frame) > protocol_offset and frame[protocol_offset] == _IPPROTO_UDP


def udp_payloads(
    records: Iterable[PcapRecord],
) -> Iterator[tuple[PcapRecord, bytes]]:
    """Yield each UDP record with the bytes after its 42-byte header."""
    for record in records:
        if is_udp(record.data):
            yield record, record.data[ETHERNET_UDP_HEADER:]