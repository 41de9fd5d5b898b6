"""Command line viewer for PCD files, text point lists and lidar captures."""

from __future__ import annotations

import argparse
import sys
from collections.abc import Iterable, Sequence
from pathlib import Path

from .grabber import collect_sweeps
from .pointcloud import read_pcd, read_text_cloud
from .viewer import DrawMode, ViewState

DEFAULT_LIST_FILE = "filePath.txt"
DEFAULT_CAPTURE = "/tmp/sensor/lidar/test.pcap"
DEFAULT_TEXT_CLOUD = "../p213.pcd"
WINDOW_TITLE = "Point Cloud Viewer"


def find_capture_path(lines: Iterable[str], default: str = DEFAULT_CAPTURE) -> str:
    """Return the first line naming a .pcap file, or ``default``."""
    for line in lines:
        line = line.rstrip("\r\n")
        if ".pcap" in line:
            return line
    return default


def show_points(points: Iterable[Sequence[float]], title: str = WINDOW_TITLE):
    """Plot points in a 3D scatter window and return the figure."""
    import matplotlib.pyplot as plt

    coords = [(p[0], p[1], p[2]) for p in points]
    fig = plt.figure()
    if fig.canvas.manager is not None:
        fig.canvas.manager.set_window_title(title)
    ax = fig.add_subplot(projection="3d")
    xs = [c[0] for c in coords]
    ys = [c[1] for c in coords]
    zs = [c[2] for c in coords]
    ax.scatter(xs, ys, zs, c="red", s=1)
    ax.set_title(title)
    plt.show()
    return fig


def _read_lines(path: str | Path) -> list[str]:
    try:
        with open(path, encoding="utf-8") as stream:
            return stream.readlines()
    except FileNotFoundError:
        return []


def _run_cloud(args: argparse.Namespace) -> list[tuple[float, float, float]]:
    path = args.path
    if path is None:
        lines = _read_lines(args.list_file)
        path = lines[0].rstrip("\r\n") if lines else ""
        if not path:
            raise ValueError(f"no point cloud path given in {args.list_file}")
    _, points = read_pcd(path)
    state = ViewState(draw_mode=DrawMode.POINT_CLOUD)
    state.update_point_cloud(points)
    print(f"Loaded {len(points)} points from {path}")
    return state.visible_points()


def _run_lidar(args: argparse.Namespace) -> list[tuple[float, float, float]]:
    path = args.path or find_capture_path(_read_lines(args.list_file))
    sweeps = collect_sweeps(path, args.sweeps)
    for number, sweep in enumerate(sweeps, start=1):
        print(f"Sweep {number}: {len(sweep)} points")
    print(f"Sweeps found: {len(sweeps)}")
    state = ViewState(draw_mode=DrawMode.LIDAR)
    if sweeps:
        state.update_lidar_point_cloud((p.x, p.y, p.z, p.i) for p in sweeps[-1])
    return state.visible_points()


def _run_text(args: argparse.Namespace) -> list[tuple[float, float, float]]:
    path = args.path or DEFAULT_TEXT_CLOUD
    points = read_text_cloud(path)
    print(f"Loaded {len(points)} points from {path}")
    return [(p.x, p.y, p.z) for p in points]


def _build_parser() -> argparse.ArgumentParser:
    common = argparse.ArgumentParser(add_help=False)
    common.add_argument(
        "--list-file", default=DEFAULT_LIST_FILE,
        help="file whose lines name the inputs (default %(default)s)",
    )
    common.add_argument(
        "--no-show", action="store_true", help="print a summary only"
    )
    parser = argparse.ArgumentParser(prog="lidarview", description=__doc__)
    commands = parser.add_subparsers(dest="command", required=True)

    cloud = commands.add_parser(
        "cloud", parents=[common], help="show a binary PCD file"
    )
    cloud.add_argument("path", nargs="?")
    cloud.set_defaults(handler=_run_cloud)

    lidar = commands.add_parser(
        "lidar", parents=[common], help="replay a Velodyne capture"
    )
    lidar.add_argument("path", nargs="?")
    lidar.add_argument("--sweeps", type=int, default=None,
                       help="stop after this many sweeps")
    lidar.set_defaults(handler=_run_lidar)

    text = commands.add_parser(
        "text", parents=[common], help="show an 'x y z r g b' point list"
    )
    text.add_argument("path", nargs="?")
    text.set_defaults(handler=_run_text)
    return parser


def main(argv: Sequence[str] | None = None) -> int:
    """Run the viewer; return the exit status."""
    args = _build_parser().parse_args(argv)
    try:
        points = args.handler(args)
    except (OSError, ValueError) as error:
        print(f"error: {error}", file=sys.stderr)
        return 1
    if not args.no_show:
        show_points(points, WINDOW_TITLE)
    return 0


if __name__ == "__main__":
    sys.exit(main())