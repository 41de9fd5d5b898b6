"""Threaded acquisition of Velodyne packets from capture files or UDP."""

from __future__ import annotations

import logging
import queue
import select
import socket
import threading
from collections.abc import Callable
from enum import Enum
from pathlib import Path

from .pcap import iter_records, udp_payloads
from .velodyne import PACKET_SIZE, PointXYZI, SweepAssembler

DEFAULT_PORT = 2368
SOCKET_TIMEOUT = 1.0

_log = logging.getLogger(__name__)
_SENTINEL = object()


class ReadMode(Enum):
    """Where a grabber takes its packets from."""

    PCAP = 0
    SOCKET = 1
    NONE = 2


class LidarGrabber:
    """Reads data packets in one thread and turns them into points in another.

    A capture file takes precedence over a network address.  Without either,
    the grabber only processes packets handed to ``enqueue_packet``.
    """

    def __init__(
        self,
        pcap_file: str | Path | None = None,
        ip_address: str | None = None,
        port: int = DEFAULT_PORT,
        realtime: bool = True,
    ):
        self.pcap_file = Path(pcap_file) if pcap_file else None
        self.ip_address = ip_address or None
        self.port = port
        self.realtime = realtime
        self._assembler = SweepAssembler()
        self._queue: queue.Queue = queue.Queue()
        self._stop_event = threading.Event()
        self._running = threading.Event()
        self._reader: threading.Thread | None = None
        self._processor: threading.Thread | None = None
        self._error: BaseException | None = None
        self._socket: socket.socket | None = None

        if self.pcap_file is not None:
            self.mode = ReadMode.PCAP
        elif self.ip_address is not None:
            self.mode = ReadMode.SOCKET
            self._open_socket()
        else:
            self.mode = ReadMode.NONE

    def _open_socket(self) -> None:
        _log.info("Opening UDP socket: port %d", self.port)
        sock = socket.socket(socket.AF_INET, socket.SOCK_DGRAM)
        try:
            sock.bind(("", self.port))
            sock.setblocking(False)
        except OSError:
            sock.close()
            raise
        self._socket = sock
        self.port = sock.getsockname()[1]
        _log.info("Velodyne socket fd is %d, port %d", sock.fileno(), self.port)

    def register_callback(self, callback: Callable[[list[PointXYZI]], None]) -> None:
        """Call ``callback`` with the points of every completed sweep."""
        self._assembler.connect(callback)

    def start(self) -> None:
        """Start the reading and processing threads."""
        if self._running.is_set():
            raise RuntimeError("grabber is already running")
        self._stop_event.clear()
        self._error = None
        self._queue = queue.Queue()
        self._running.set()
        self._processor = threading.Thread(
            target=self._process_packets, name="lidar-process", daemon=True
        )
        self._processor.start()
        target = {
            ReadMode.PCAP: self._read_from_pcap,
            ReadMode.SOCKET: self._read_from_socket,
        }.get(self.mode)
        if target is not None:
            self._reader = threading.Thread(
                target=self._run_reader, args=(target,), name="lidar-read",
                daemon=True,
            )
            self._reader.start()

    def stop(self) -> None:
        """Stop reading, process what was queued, and join both threads.

        An error raised while reading is raised again here.
        """
        self._stop_event.set()
        if self._reader is not None:
            self._reader.join()
            self._reader = None
        elif self._processor is not None:
            self._queue.put(_SENTINEL)
        if self._processor is not None:
            self._processor.join()
            self._processor = None
        self._running.clear()
        error, self._error = self._error, None
        if error is not None:
            raise error

    def close(self) -> None:
        """Release the network socket, if one is open."""
        if self._socket is not None:
            self._socket.close()
            self._socket = None

    def is_running(self) -> bool:
        """Tell whether packets are still being read or processed."""
        return self._running.is_set()

    def current_packet(self) -> list[PointXYZI]:
        """Points decoded from the most recent packet."""
        return self._assembler.current_packet()

    def whole_packet(self) -> list[PointXYZI]:
        """Points gathered since the last sweep boundary."""
        return self._assembler.whole_sweep()

    def enqueue_packet(self, data: bytes) -> bool:
        """Queue a copy of a data packet; only full-size packets are accepted."""
        if len(data) != PACKET_SIZE:
            return False
        self._queue.put(bytes(data))
        return True

    def __enter__(self) -> LidarGrabber:
        self.start()
        return self

    def __exit__(self, exc_type, exc, tb) -> None:
        try:
            self.stop()
        finally:
            self.close()

    def _run_reader(self, target: Callable[[], None]) -> None:
        try:
            target()
        except BaseException as error:  # handed to stop()
            self._error = error
        finally:
            self._queue.put(_SENTINEL)

    def _read_from_pcap(self) -> None:
        last: tuple[int, int] | None = None
        for record, payload in udp_payloads(iter_records(self.pcap_file)):
            if self._stop_event.is_set():
                return
            if self.realtime and last is not None:
                delay = ((record.ts_sec - last[0]) * 1_000_000
                         + (record.ts_usec - last[1]))
                if delay > 0 and self._stop_event.wait(delay / 1_000_000):
                    return
            last = (record.ts_sec, record.ts_usec)
            self.enqueue_packet(payload)

    def _read_from_socket(self) -> None:
        sock = self._socket
        if sock is None:
            raise RuntimeError("socket is closed")
        while not self._stop_event.is_set():
            readable, _, errored = select.select([sock], [], [sock], SOCKET_TIMEOUT)
            if errored:
                _log.error("Velodyne port %d reports an error", self.port)
                return
            if not readable:
                _log.warning("Velodyne port %d poll() timeout", self.port)
                return
            try:
                data = sock.recv(65535)
            except BlockingIOError:
                continue
            if not self.enqueue_packet(data):
                _log.info(
                    "Incomplete Velodyne data packet read: %d bytes from port %d",
                    len(data), self.port,
                )

    def _process_packets(self) -> None:
        try:
            while True:
                item = self._queue.get()
                if item is _SENTINEL:
                    return
                self._assembler.add_packet(item)
        finally:
            self._running.clear()


def collect_sweeps(
    pcap_file: str | Path, limit: int | None = None
) -> list[list[PointXYZI]]:
    """Replay a capture as fast as possible and return its non-empty sweeps."""
    sweeps: list[list[PointXYZI]] = []
    grabber = LidarGrabber(pcap_file, realtime=False)

    def on_sweep(points: list[PointXYZI]) -> None:
        if not points or (limit is not None and len(sweeps) >= limit):
            return
        sweeps.append(points)
        if limit is not None and len(sweeps) >= limit:
            grabber._stop_event.set()

    grabber.register_callback(on_sweep)
    grabber.start()
    grabber.stop()
    return sweeps