import struct

import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402

from lidarview.cli import find_capture_path, main, show_points  # noqa: E402
from lidarview.grabber import collect_sweeps  # noqa: E402


def _data_packet():
    body = b""
    for firing in range(12):
        body += struct.pack("<HH", 0xEEFF, firing * 100)
        body += struct.pack("<HB", 500, 10) * 32
    return body + struct.pack("<IBB", 0, 0x37, 0x21)


def _frame(payload):
    eth = b"\x02" * 6 + b"\x04" * 6 + struct.pack("!H", 0x0800)
    ip = (bytes([0x45, 0]) + struct.pack("!H", 28 + len(payload))
          + b"\x00" * 5 + bytes([17]) + b"\x00" * 10)
    udp = struct.pack("!HHHH", 2368, 2368, 8 + len(payload), 0)
    return eth + ip + udp + payload


def _write_pcap(path, count=2):
    data = struct.pack("<IHHiIII", 0xA1B2C3D4, 2, 4, 0, 0, 65535, 1)
    frame = _frame(_data_packet())
    for n in range(count):
        data += struct.pack("<IIII", 100, n, len(frame), len(frame)) + frame
    path.write_bytes(data)
    return path


def _write_pcd(path):
    header = (
        "# .PCD v0.7\nVERSION 0.7\nFIELDS x y z\nSIZE 4 4 4\n"
        "TYPE F F F\nCOUNT 1 1 1\nWIDTH 2\nHEIGHT 1\n"
        "VIEWPOINT 0 0 0 1 0 0 0\nPOINTS 2\nDATA binary\n"
    )
    path.write_bytes(header.encode() + struct.pack("<6f", 1, 2, 3, 4, 5, 6))
    return path


def test_find_capture_path_takes_first_pcap_line():
    lines = ["notes.txt\n", "/data/a.pcap\n", "/data/b.pcap\n"]
    assert find_capture_path(lines, "fallback") == "/data/a.pcap"


def test_find_capture_path_falls_back_to_default():
    assert find_capture_path(["one\n", "two\n"], "fallback") == "fallback"
    assert find_capture_path([], "fallback") == "fallback"


def test_show_points_builds_titled_scatter():
    fig = show_points([(0, 0, 0), (1, 2, 3)], "Sample")
    try:
        ax = fig.axes[0]
        assert ax.get_title() == "Sample"
        assert len(ax.collections[0].get_offsets()) == 2
    finally:
        plt.close(fig)


def test_cloud_command_loads_pcd(tmp_path, capsys):
    path = _write_pcd(tmp_path / "cloud.pcd")
    assert main(["cloud", str(path), "--no-show"]) == 0
    assert f"Loaded 2 points from {path}" in capsys.readouterr().out


def test_cloud_command_reads_list_file(tmp_path, capsys):
    path = _write_pcd(tmp_path / "cloud.pcd")
    list_file = tmp_path / "list.txt"
    list_file.write_text(f"{path}\nignored\n", encoding="utf-8")
    assert main(["cloud", "--list-file", str(list_file), "--no-show"]) == 0
    assert "Loaded 2 points" in capsys.readouterr().out


def test_text_command(tmp_path, capsys):
    path = tmp_path / "cloud.txt"
    path.write_text("1 2 3 0 0 0\n", encoding="utf-8")
    assert main(["text", str(path), "--no-show"]) == 0
    assert "Loaded 1 points" in capsys.readouterr().out


def test_lidar_command_reports_sweeps(tmp_path, capsys):
    path = _write_pcap(tmp_path / "capture.pcap")
    expected = collect_sweeps(path)
    assert main(["lidar", str(path), "--no-show"]) == 0
    out = capsys.readouterr().out
    assert f"Sweep 1: {len(expected[0])} points" in out
    assert f"Sweeps found: {len(expected)}" in out


def test_lidar_command_uses_list_file(tmp_path, capsys):
    path = _write_pcap(tmp_path / "capture.pcap")
    list_file = tmp_path / "list.txt"
    list_file.write_text(f"notes\n{path}\n", encoding="utf-8")
    assert main(["lidar", "--list-file", str(list_file), "--no-show"]) == 0
    assert f"Sweeps found: {len(collect_sweeps(path))}" in capsys.readouterr().out


def test_missing_file_returns_error(tmp_path, capsys):
    assert main(["cloud", str(tmp_path / "absent.pcd"), "--no-show"]) == 1
    assert "error:" in capsys.readouterr().err


def test_bad_text_cloud_returns_error(tmp_path, capsys):
    path = tmp_path / "bad.txt"
    path.write_text("1 2\n", encoding="utf-8")
    assert main(["text", str(path), "--no-show"]) == 1
    assert "error:" in capsys.readouterr().err