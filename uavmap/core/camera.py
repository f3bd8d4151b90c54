# -*- coding: utf-8 -*-
"""
Pinhole Camera - Immutable intrinsic/extrinsic camera model.

Models an undistorted pinhole camera with linear intrinsics and a pose in a
local metric world frame (UTM easting, northing, altitude). Provides
world-to-pixel projection, pixel-to-ray back-projection, and depth-based
lifting of pixels to world points. All methods are vectorised over 1D
arrays of points.

Conventions
-----------
- ``R`` rotates camera coordinates into the world frame (camera-to-world).
- ``t`` is the projection centre in world coordinates.
- Camera frame: x right, y down (image rows), z along the optical axis.
- Depth is the z coordinate in the camera frame (optical-axis depth).

Author
------
Duane Smalley, PhD
duane.d.smalley@gmail.com

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-02

Modified
--------
2026-10-12
"""

# Standard library
from typing import Optional, Tuple, Union

# Third-party
import numpy as np

# uavmap internal
from uavmap.exceptions import ValidationError

#: Points closer to the image plane than this are treated as degenerate.
MIN_PROJECTION_DEPTH = 1e-9

_ORTHONORMAL_TOL = 1e-6


def _readonly(arr: np.ndarray) -> np.ndarray:
    arr = np.array(arr, dtype=np.float64, copy=True)
    arr.setflags(write=False)
    return arr


class PinholeCamera:
    """Pinhole camera with intrinsics and a camera-to-world pose.

    Instances are immutable and may be shared by reference between any
    number of frames and operations.

    Parameters
    ----------
    fx, fy : float
        Focal lengths in pixels. Must be finite and positive.
    cx, cy : float
        Principal point in pixels (column, row).
    width, height : int
        Image size in pixels. Must be positive.
    R : np.ndarray, optional
        Camera-to-world rotation, shape ``(3, 3)``. Must be orthonormal
        with determinant +1. Default identity.
    t : np.ndarray, optional
        Projection centre in world coordinates, shape ``(3,)``.
        Default origin.

    Raises
    ------
    ValidationError
        If any intrinsic or extrinsic parameter is malformed.

    Examples
    --------
    >>> cam = PinholeCamera(1000.0, 1000.0, 320.0, 240.0, 640, 480,
    ...                     t=np.array([0.0, 0.0, -100.0]))
    >>> u, v, z = cam.project(np.array([[10.0, 5.0, 0.0]]))
    >>> float(u[0]), float(v[0]), float(z[0])
    (420.0, 290.0, 100.0)
    """

    def __init__(
        self,
        fx: float,
        fy: float,
        cx: float,
        cy: float,
        width: int,
        height: int,
        R: Optional[np.ndarray] = None,
        t: Optional[np.ndarray] = None,
    ) -> None:
        for name, value in (('fx', fx), ('fy', fy)):
            if not np.isfinite(value) or value <= 0:
                raise ValidationError(
                    f"{name} must be finite and positive, got {value!r}"
                )
        for name, value in (('cx', cx), ('cy', cy)):
            if not np.isfinite(value):
                raise ValidationError(f"{name} must be finite, got {value!r}")
        if int(width) <= 0 or int(height) <= 0:
            raise ValidationError(
                f"Image size must be positive, got {width}x{height}"
            )

        R = np.eye(3) if R is None else np.asarray(R, dtype=np.float64)
        t = np.zeros(3) if t is None else np.asarray(t, dtype=np.float64)
        if R.shape != (3, 3) or not np.all(np.isfinite(R)):
            raise ValidationError(f"R must be a finite 3x3 matrix, got {R.shape}")
        if not np.allclose(R.T @ R, np.eye(3), atol=_ORTHONORMAL_TOL):
            raise ValidationError("R must be orthonormal")
        if abs(np.linalg.det(R) - 1.0) > _ORTHONORMAL_TOL:
            raise ValidationError("R must be a proper rotation (det = +1)")
        t = t.reshape(-1)
        if t.shape != (3,) or not np.all(np.isfinite(t)):
            raise ValidationError(f"t must be a finite 3-vector, got {t!r}")

        self._fx = float(fx)
        self._fy = float(fy)
        self._cx = float(cx)
        self._cy = float(cy)
        self._width = int(width)
        self._height = int(height)
        self._R = _readonly(R)
        self._t = _readonly(t)

    # -----------------------------------------------------------------
    # Properties
    # -----------------------------------------------------------------
    @property
    def fx(self) -> float:
        return self._fx

    @property
    def fy(self) -> float:
        return self._fy

    @property
    def cx(self) -> float:
        return self._cx

    @property
    def cy(self) -> float:
        return self._cy

    @property
    def width(self) -> int:
        return self._width

    @property
    def height(self) -> int:
        return self._height

    @property
    def shape(self) -> Tuple[int, int]:
        """Image shape as ``(rows, cols)``."""
        return self._height, self._width

    @property
    def R(self) -> np.ndarray:
        return self._R

    @property
    def t(self) -> np.ndarray:
        return self._t

    @property
    def K(self) -> np.ndarray:
        """Intrinsic calibration matrix, shape ``(3, 3)``."""
        return np.array([
            [self._fx, 0.0, self._cx],
            [0.0, self._fy, self._cy],
            [0.0, 0.0, 1.0],
        ])

    @property
    def pose(self) -> np.ndarray:
        """Camera-to-world pose ``[R | t]``, shape ``(3, 4)``."""
        return np.hstack([self._R, self._t.reshape(3, 1)])

    # -----------------------------------------------------------------
    # Geometry
    # -----------------------------------------------------------------
    def world_to_camera(self, points: np.ndarray) -> np.ndarray:
        """Transform world points into the camera frame.

        Parameters
        ----------
        points : np.ndarray
            World points, shape ``(N, 3)``.

        Returns
        -------
        np.ndarray
            Camera-frame points, shape ``(N, 3)``.
        """
        pts = np.asarray(points, dtype=np.float64).reshape(-1, 3)
        # Row-vector form of R^T (X - t)
        return (pts - self._t) @ self._R

    def project(
        self, points: np.ndarray
    ) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        """Project world points into pixel coordinates.

        Parameters
        ----------
        points : np.ndarray
            World points, shape ``(N, 3)``.

        Returns
        -------
        Tuple[np.ndarray, np.ndarray, np.ndarray]
            ``(u, v, depth)`` each of shape ``(N,)``. ``u`` is the column,
            ``v`` the row coordinate. Points on or behind the image plane
            (depth below ``MIN_PROJECTION_DEPTH``) get NaN pixel
            coordinates; their depth is still returned.
        """
        pc = self.world_to_camera(points)
        z = pc[:, 2]
        in_front = z > MIN_PROJECTION_DEPTH
        u = np.full(z.shape, np.nan)
        v = np.full(z.shape, np.nan)
        u[in_front] = self._fx * pc[in_front, 0] / z[in_front] + self._cx
        v[in_front] = self._fy * pc[in_front, 1] / z[in_front] + self._cy
        return u, v, z

    def contains(
        self,
        u: Union[float, np.ndarray],
        v: Union[float, np.ndarray],
    ) -> np.ndarray:
        """Whether pixel coordinates lie inside the sampleable image area.

        The sampleable area is ``[0, width - 1] x [0, height - 1]`` so that
        interpolation never reads outside the image. NaN is never inside.
        """
        u = np.asarray(u, dtype=np.float64)
        v = np.asarray(v, dtype=np.float64)
        with np.errstate(invalid='ignore'):
            return (
                (u >= 0.0) & (u <= self._width - 1) &
                (v >= 0.0) & (v <= self._height - 1)
            )

    def pixel_to_ray(
        self,
        u: Union[float, np.ndarray],
        v: Union[float, np.ndarray],
    ) -> np.ndarray:
        """Unit viewing rays in the world frame for pixel coordinates.

        Parameters
        ----------
        u, v : float or np.ndarray
            Column and row pixel coordinates.

        Returns
        -------
        np.ndarray
            Unit direction vectors, shape ``(N, 3)``.
        """
        u = np.atleast_1d(np.asarray(u, dtype=np.float64)).ravel()
        v = np.atleast_1d(np.asarray(v, dtype=np.float64)).ravel()
        rays_cam = np.stack([
            (u - self._cx) / self._fx,
            (v - self._cy) / self._fy,
            np.ones_like(u),
        ], axis=1)
        rays = rays_cam @ self._R.T
        return rays / np.linalg.norm(rays, axis=1, keepdims=True)

    def backproject(
        self,
        u: Union[float, np.ndarray],
        v: Union[float, np.ndarray],
        depth: Union[float, np.ndarray],
    ) -> np.ndarray:
        """Lift pixels with optical-axis depth to world points.

        Parameters
        ----------
        u, v : float or np.ndarray
            Column and row pixel coordinates.
        depth : float or np.ndarray
            Optical-axis depth for each pixel.

        Returns
        -------
        np.ndarray
            World points, shape ``(N, 3)``.
        """
        u = np.atleast_1d(np.asarray(u, dtype=np.float64)).ravel()
        v = np.atleast_1d(np.asarray(v, dtype=np.float64)).ravel()
        d = np.broadcast_to(
            np.asarray(depth, dtype=np.float64), u.shape
        )
        pc = np.stack([
            (u - self._cx) / self._fx * d,
            (v - self._cy) / self._fy * d,
            d,
        ], axis=1)
        return pc @ self._R.T + self._t

    def with_pose(self, R: np.ndarray, t: np.ndarray) -> 'PinholeCamera':
        """Return a copy of this camera with a different pose."""
        return PinholeCamera(
            self._fx, self._fy, self._cx, self._cy,
            self._width, self._height, R=R, t=t,
        )

    def __repr__(self) -> str:
        return (
            f"PinholeCamera(f=({self._fx:.2f}, {self._fy:.2f}), "
            f"c=({self._cx:.2f}, {self._cy:.2f}), "
            f"size={self._width}x{self._height}, "
            f"t=({self._t[0]:.2f}, {self._t[1]:.2f}, {self._t[2]:.2f}))"
        )
