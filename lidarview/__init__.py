"""Velodyne HDL-32 packet decoding, pcap and point-cloud readers, and viewing helpers."""

__version__ = "0.1.0"
__all__ = ["cli", "grabber", "pcap", "pointcloud", "velodyne", "viewer"]