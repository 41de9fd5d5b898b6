import io
import struct

import pytest

from lidarview.pointcloud import (
    ColoredPoint,
    PcdHeader,
    parse_pcd,
    parse_text_cloud,
    read_pcd,
    read_text_cloud,
)


def _pcd(fields="x y z intensity", sizes="4 4 4 4", body=b""):
    header = (
        "# .PCD v0.7 - Point Cloud Data file format\n"
        "VERSION 0.7\n"
        f"FIELDS {fields}\n"
        f"SIZE {sizes}\n"
        "TYPE F F F F\n"
        "COUNT 1 1 1 1\n"
        "WIDTH 2\n"
        "HEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\n"
        "POINTS 2\n"
        "DATA binary\n"
    )
    return header.encode("ascii") + body


def _floats(*values):
    return struct.pack(f"<{len(values)}f", *values)


def test_header_is_parsed():
    header, _ = parse_pcd(io.BytesIO(_pcd()))
    assert isinstance(header, PcdHeader)
    assert header.fields == ["x", "y", "z", "intensity"]
    assert header.sizes == [4, 4, 4, 4]
    assert header.version == "VERSION 0.7"
    assert header.width == "WIDTH 2"
    assert header.data == "DATA binary"
    assert header.viewpoint == "VIEWPOINT 0 0 0 1 0 0 0"


def test_points_are_decoded():
    body = _floats(1.5, -2.25, 3.0, 7.0, 0.5, 4.0, -8.0, 9.0)
    _, points = parse_pcd(io.BytesIO(_pcd(body=body)))
    assert points == [(1.5, -2.25, 3.0), (0.5, 4.0, -8.0)]


def test_truncated_record_is_dropped():
    body = _floats(1.5, -2.25, 3.0, 7.0) + _floats(0.5, 4.0)[:6]
    _, points = parse_pcd(io.BytesIO(_pcd(body=body)))
    assert points == [(1.5, -2.25, 3.0)]


def test_double_precision_coordinates():
    body = struct.pack("<ddd", 0.125, -1.0, 2.5)
    _, points = parse_pcd(io.BytesIO(_pcd(fields="x y z", sizes="8 8 8", body=body)))
    assert points == [(0.125, -1.0, 2.5)]


def test_fields_out_of_order_give_no_points():
    body = _floats(1.0, 2.0, 3.0, 4.0, 5.0, 6.0)
    _, points = parse_pcd(io.BytesIO(_pcd(fields="y x z", sizes="4 4 4", body=body)))
    assert points == []


def test_missing_fields_raise():
    with pytest.raises(ValueError):
        parse_pcd(io.BytesIO(b"VERSION 0.7\nDATA binary\n"))


def test_fewer_sizes_than_fields_raise():
    with pytest.raises(ValueError):
        parse_pcd(io.BytesIO(_pcd(fields="x y z", sizes="4 4")))


def test_unsupported_coordinate_size_raises():
    body = struct.pack("<hhh", 1, 2, 3)
    with pytest.raises(ValueError):
        parse_pcd(io.BytesIO(_pcd(fields="x y z", sizes="2 2 2", body=body)))


def test_read_pcd_matches_parse(tmp_path):
    data = _pcd(body=_floats(1.0, 2.0, 3.0, 4.0))
    path = tmp_path / "cloud.pcd"
    path.write_bytes(data)
    assert read_pcd(path) == parse_pcd(io.BytesIO(data))


def test_text_cloud_scales_colours():
    points = parse_text_cloud(["1 2 3 255 0 51\n", "-1.5 0 2 0 255 0"])
    assert points[0].x == 1.0 and points[0].y == 2.0 and points[0].z == 3.0
    assert (points[0].r, points[0].g) == (1.0, 0.0)
    assert points[0].b == pytest.approx(0.2)
    assert points[0].a == 1.0
    assert points[1] == ColoredPoint(-1.5, 0.0, 2.0, 0.0, 1.0, 0.0)


def test_text_cloud_trailing_space_is_ignored():
    assert parse_text_cloud(["0 0 0 0 0 0 \n"]) == [ColoredPoint(0, 0, 0, 0, 0, 0)]


def test_text_cloud_short_line_raises():
    with pytest.raises(ValueError):
        parse_text_cloud(["1 2 3"])


def test_text_cloud_double_space_raises():
    with pytest.raises(ValueError):
        parse_text_cloud(["1  2 3 4 5 6"])


def test_read_text_cloud(tmp_path):
    path = tmp_path / "cloud.txt"
    path.write_text("1 2 3 0 0 0\n4 5 6 255 255 255\n", encoding="utf-8")
    points = read_text_cloud(path)
    assert [(p.x, p.y, p.z) for p in points] == [(1, 2, 3), (4, 5, 6)]
    assert points[1].r == points[1].g == points[1].b == 1.0