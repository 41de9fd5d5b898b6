# lidarview

Tools that turn Velodyne HDL-32 lidar data into point clouds and show them.

The package has these modules:

- `lidarview.velodyne` decodes 1206-byte HDL-32 data packets (`parse_packet`)
  and converts the returns to `PointXYZI` points (`compute_xyzi`) with the
  default HDL-32 vertical angles (`hdl32_corrections`). `SweepAssembler`
  gathers the points and calls its callbacks each time the azimuth wraps
  around, which marks the end of a sweep.
- `lidarview.pcap` reads classic libpcap capture files (`parse_pcap`,
  `iter_records`). It also picks out UDP frames and gives the bytes that
  follow their 42-byte Ethernet/IPv4/UDP header (`is_udp`, `udp_payloads`).
  Malformed files raise `PcapError`.
- `lidarview.grabber` has `LidarGrabber`. It reads packets in one thread,
  either from a capture file or from a UDP port, and decodes them in another.
  `collect_sweeps` replays a capture as fast as possible and returns its
  non-empty sweeps.
- `lidarview.pointcloud` reads binary PCD files (`read_pcd`, `parse_pcd`) and
  plain-text `x y z r g b` point lists (`read_text_cloud`,
  `parse_text_cloud`).
- `lidarview.viewer` holds view state and camera matrices for interactive
  viewing: `ViewState`, `OrbitCamera`, `look_at`, `perspective`, `rotation`,
  `normalize_angle` and `interleave_points`.

## Install

```
pip install .
```

Use `pip install .[test]` to install the test dependencies as well.

## Command line

```
lidarview --help
```

The command has three subcommands. Each opens a matplotlib 3D scatter window
titled "Point Cloud Viewer".

- `lidarview cloud [PATH]` shows the x, y, z points of a binary PCD file.
  Without a path, it uses the first line of the list file.
- `lidarview lidar [PATH] [--sweeps N]` replays a capture and prints the point
  count of each sweep. It then shows the last sweep. Without a path, it uses
  the first line of the list file that contains `.pcap`. If there is none, it
  falls back to `/tmp/sensor/lidar/test.pcap`. `--sweeps N` stops after N
  sweeps.
- `lidarview text [PATH]` shows an `x y z r g b` point list. The default path
  is `../p213.pcd`.

All subcommands accept these options:

- `--list-file FILE` sets the list file. The default is `filePath.txt`.
- `--no-show` prints the summary without opening a window.

On a file or format error the command prints `error: ...` and exits with
status 1.

## Library use

Collect sweeps from a capture:

```python
from lidarview.grabber import collect_sweeps

for sweep in collect_sweeps("capture.pcap", limit=3):
    print(len(sweep), sweep[0].x, sweep[0].y, sweep[0].z, sweep[0].i)
```

Run the grabber yourself. Leaving the `with` block waits until the capture has
been read and processed:

```python
from lidarview.grabber import LidarGrabber

sweeps = []
with LidarGrabber(pcap_file="capture.pcap", realtime=False) as grabber:
    grabber.register_callback(sweeps.append)
```

With `realtime=True` (the default), packets are paced by their capture
timestamps. You can also give `ip_address` and `port` instead of a file. The
grabber then binds a UDP socket on that port on all interfaces. Port 0 lets
the system choose a port, and reading stops after one second without data.
Only full 1206-byte packets are queued. An error raised while reading is
raised again by `stop()`.

Decode single packets:

```python
from lidarview.velodyne import SweepAssembler, hdl32_corrections, parse_packet

packet = parse_packet(payload)          # payload: 1206 bytes
assembler = SweepAssembler(hdl32_corrections())
assembler.connect(lambda points: print(len(points)))
assembler.add_packet(payload)
print(len(assembler.current_packet()), len(assembler.whole_sweep()))
```

Read stored clouds:

```python
from lidarview.pointcloud import read_pcd, read_text_cloud

header, points = read_pcd("cloud.pcd")  # PcdHeader, list of (x, y, z)
colored = read_text_cloud("cloud.txt")  # list of ColoredPoint, colours in 0..1
```

## Limitations

- The PCD reader handles binary data only. It takes x, y and z only where
  those fields follow one another, and only as 4- or 8-byte floats. Other
  fields are skipped.
- The only display is a static matplotlib scatter plot. There is no OpenGL
  window with mouse rotation, zoom or lighting. `ViewState` and `OrbitCamera`
  compute that interaction's state and matrices but do not render anything.
- The command line replays captures only. Live UDP reception is available
  through `LidarGrabber` alone.
- There is no object recognition or correspondence grouping of point clouds.

## Tests

```
pytest
```