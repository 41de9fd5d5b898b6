"""View state and camera mathematics for the point cloud viewers."""

from __future__ import annotations

import math
import threading
from collections.abc import Iterable, Sequence
from dataclasses import dataclass, field
from enum import IntEnum

import numpy as np

FULL_TURN = 360 * 16
"""One full rotation in the sixteenths of a degree used for view angles."""

ZOOM_FACTOR = 1.1
LIDAR_COLOR = (1.0, 0.0, 0.0)

Vector3 = Sequence[float]


def _c_div(numerator: int, denominator: int) -> int:
    """Integer division truncating toward zero."""
    quotient = abs(numerator) // abs(denominator)
    return -quotient if (numerator < 0) != (denominator < 0) else quotient


def _wheel_steps(delta: int) -> int:
    return _c_div(_c_div(int(delta), 8), 15)


def normalize_angle(angle: int) -> int:
    """Bring an angle in sixteenths of a degree into the range 0..5760."""
    while angle < 0:
        angle += FULL_TURN
    while angle > FULL_TURN:
        angle -= FULL_TURN
    return angle


def look_at(eye: Vector3, center: Vector3, up: Vector3) -> np.ndarray:
    """Return a view matrix looking from ``eye`` towards ``center``.

    When eye and center coincide the identity matrix is returned.
    """
    eye_v = np.asarray(eye, dtype=float)
    forward = np.asarray(center, dtype=float) - eye_v
    length = np.linalg.norm(forward)
    if math.isclose(length, 0.0, abs_tol=1e-12):
        return np.identity(4)
    forward /= length
    side = np.cross(forward, np.asarray(up, dtype=float))
    side_length = np.linalg.norm(side)
    if side_length > 0:
        side /= side_length
    up_vector = np.cross(side, forward)

    matrix = np.identity(4)
    matrix[0, :3] = side
    matrix[1, :3] = up_vector
    matrix[2, :3] = -forward
    translation = np.identity(4)
    translation[:3, 3] = -eye_v
    return matrix @ translation


def perspective(
    fov_degrees: float, aspect: float, near: float, far: float
) -> np.ndarray:
    """Return a perspective projection matrix.

    Degenerate arguments (equal planes, zero aspect, zero field of view)
    give the identity matrix.
    """
    if near == far or aspect == 0:
        return np.identity(4)
    half = math.radians(fov_degrees / 2)
    sine = math.sin(half)
    if sine == 0:
        return np.identity(4)
    cotan = math.cos(half) / sine
    clip = far - near
    matrix = np.zeros((4, 4))
    matrix[0, 0] = cotan / aspect
    matrix[1, 1] = cotan
    matrix[2, 2] = -(near + far) / clip
    matrix[2, 3] = -(2.0 * near * far) / clip
    matrix[3, 2] = -1.0
    return matrix


def rotation(angle_degrees: float, x: float, y: float, z: float) -> np.ndarray:
    """Return a matrix rotating by an angle about the axis (x, y, z).

    A zero axis gives the identity matrix.
    """
    axis = np.array([x, y, z], dtype=float)
    length = np.linalg.norm(axis)
    if length == 0:
        return np.identity(4)
    ax, ay, az = axis / length
    rad = math.radians(angle_degrees)
    c, s = math.cos(rad), math.sin(rad)
    ic = 1.0 - c
    matrix = np.identity(4)
    matrix[:3, :3] = [
        [ax * ax * ic + c, ax * ay * ic - az * s, ax * az * ic + ay * s],
        [ay * ax * ic + az * s, ay * ay * ic + c, ay * az * ic - ax * s],
        [ax * az * ic - ay * s, ay * az * ic + ax * s, az * az * ic + c],
    ]
    return matrix


def interleave_points(points: Iterable[Sequence[float]]) -> np.ndarray:
    """Pack points as x, y, z followed by a red colour, six floats each.

    Raises ValueError for a point with fewer than three coordinates.
    """
    rows = []
    for point in points:
        if len(point) < 3:
            raise ValueError(f"point needs three coordinates, got {len(point)}")
        rows.append((point[0], point[1], point[2], *LIDAR_COLOR))
    return np.asarray(rows, dtype=np.float32).reshape(-1)


class DrawMode(IntEnum):
    """What the fixed-function viewer draws."""

    TEST = 0
    POINT_CLOUD = 1
    LIDAR = 2


@dataclass
class ViewState:
    """Rotation, zoom, lighting and data of the fixed-function viewer.

    ``redraws`` counts the repaint requests the state changes make.
    """

    draw_mode: DrawMode = DrawMode.TEST
    x_rot: int = 0
    y_rot: int = 0
    z_rot: int = 0
    scale: float = 1.0
    light: bool = True
    last_pos: tuple[int, int] = (0, 0)
    point_cloud: list[list[float]] = field(default_factory=list)
    lidar_points: list[list[float]] = field(default_factory=list)
    redraws: int = 0
    _lock: threading.Lock = field(
        default_factory=threading.Lock, repr=False, compare=False
    )

    def set_x_rotation(self, angle: int) -> None:
        """Set the rotation about x, in sixteenths of a degree."""
        self.x_rot = normalize_angle(angle)

    def set_y_rotation(self, angle: int) -> None:
        """Set the rotation about y, in sixteenths of a degree."""
        self.y_rot = normalize_angle(angle)

    def set_z_rotation(self, angle: int) -> None:
        """Set the rotation about z, in sixteenths of a degree."""
        self.z_rot = normalize_angle(angle)

    def mouse_press(self, x: int, y: int) -> None:
        """Remember where a drag starts."""
        self.last_pos = (x, y)

    def mouse_move(self, x: int, y: int, left: bool, right: bool) -> None:
        """Rotate by a drag: left turns about x and y, right about x and z."""
        dx = x - self.last_pos[0]
        dy = y - self.last_pos[1]
        if left:
            self.set_x_rotation(self.x_rot + 8 * dy)
            self.set_y_rotation(self.y_rot + 8 * dx)
        elif right:
            self.set_x_rotation(self.x_rot + 8 * dy)
            self.set_z_rotation(self.z_rot + 8 * dx)
        self.last_pos = (x, y)
        self.redraws += 1

    def wheel(self, delta: int) -> None:
        """Zoom out on a forward wheel step, in otherwise."""
        if _wheel_steps(delta) > 0:
            self.scale /= ZOOM_FACTOR
        else:
            self.scale *= ZOOM_FACTOR
        self.redraws += 1

    def update_point_cloud(self, data: Iterable[Sequence[float]]) -> None:
        """Replace the static point cloud without requesting a repaint."""
        points = [list(point) for point in data]
        with self._lock:
            self.point_cloud = points

    def update_lidar_point_cloud(self, data: Iterable[Sequence[float]]) -> None:
        """Replace the live sweep and request a repaint."""
        points = [list(point) for point in data]
        with self._lock:
            self.lidar_points = points
        self.redraws += 1

    def visible_points(self) -> list[tuple[float, float, float]]:
        """Coordinates of the points the current draw mode renders."""
        with self._lock:
            if self.draw_mode == DrawMode.POINT_CLOUD:
                source = self.point_cloud
            elif self.draw_mode == DrawMode.LIDAR:
                source = self.lidar_points
            else:
                return []
            return [(p[0], p[1], p[2]) for p in source]


class OrbitCamera:
    """Model, view and projection matrices of the shader-based viewer.

    As in the viewer it mirrors, each resize and wheel step multiplies a new
    projection or view onto the existing one.
    """

    def __init__(self, width: int, height: int):
        self.model = np.identity(4)
        self.view = np.identity(4)
        self.projection = np.identity(4)
        self.eye = np.array([0.0, 0.0, 50.0])
        self.center = np.zeros(3)
        self.up = np.array([0.0, 1.0, 0.0])
        self.last_pos = (0, 0)
        self.pressed = False
        self.redraws = 0
        self._wheel_z = 4.0
        self.view = self.view @ look_at(self.eye, self.center, self.up)
        self._mvp = self._compose()
        self.resize(width, height)

    def _compose(self) -> np.ndarray:
        return self.projection @ self.view @ self.model

    def resize(self, width: int, height: int) -> None:
        """Apply a 45 degree perspective for a new viewport size."""
        self.width, self.height = width, height
        aspect = width / height if height else math.inf
        self.projection = self.projection @ perspective(45.0, aspect, 0.1, 100.0)
        self._mvp = self._compose()

    def mouse_press(self, x: int, y: int) -> None:
        """Remember where a drag starts."""
        self.pressed = True
        self.last_pos = (x, y)

    def mouse_move(self, x: int, y: int, left: bool, right: bool) -> None:
        """Rotate the model by a drag."""
        dx = x - self.last_pos[0]
        dy = y - self.last_pos[1]
        if left:
            self.model = self.model @ rotation(1 + 8 * dy, 1 + 8 * dx, 1, 0)
        elif right:
            self.model = self.model @ rotation(1 + 8 * dy, 1, 1 + 8 * dx, 0)
        self._mvp = self._compose()
        self.last_pos = (x, y)
        self.redraws += 1

    def wheel(self, delta: int) -> None:
        """Move the eye one unit along z and look at the centre again."""
        self._wheel_z += 1.0 if _wheel_steps(delta) > 0 else -1.0
        self.eye = np.array([0.0, 0.0, self._wheel_z])
        self.up = np.array([0.0, 1.0, 0.0])
        self.view = self.view @ look_at(self.eye, self.center, self.up)
        self._mvp = self._compose()
        self.redraws += 1

    def mvp(self) -> np.ndarray:
        """The combined projection, view and model matrix."""
        return self._mvp.copy()