# -*- coding: utf-8 -*-
"""
Depth Maps - Dense per-pixel depth and reference plane containers.

``Depthmap`` holds an optical-axis depth value per image pixel together with
the camera it was estimated for. Invalid cells carry the sentinel
``INVALID_DEPTH`` (-1.0). ``Plane`` is the nominal scene surface used as the
depth baseline before any elevation is known.

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
from typing import Optional

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.camera import PinholeCamera
from uavmap.exceptions import ValidationError

#: Sentinel written to depth cells that carry no valid estimate.
INVALID_DEPTH = -1.0


def valid_depth_mask(data: np.ndarray) -> np.ndarray:
    """Boolean mask of cells holding a usable depth (finite and > 0)."""
    with np.errstate(invalid='ignore'):
        return np.isfinite(data) & (data > 0)


class Plane:
    """Infinite plane ``normal . x = offset`` in world coordinates.

    Parameters
    ----------
    normal : np.ndarray
        Plane normal, shape ``(3,)``. Normalised on construction.
    offset : float
        Signed distance of the plane from the world origin along
        ``normal``.

    Raises
    ------
    ValidationError
        If the normal has (near) zero length.
    """

    def __init__(self, normal: np.ndarray, offset: float = 0.0) -> None:
        n = np.asarray(normal, dtype=np.float64).reshape(-1)
        length = np.linalg.norm(n)
        if n.shape != (3,) or not np.isfinite(length) or length < 1e-12:
            raise ValidationError(f"Plane normal must be a non-zero 3-vector, got {normal!r}")
        self.normal = n / length
        self.offset = float(offset) / length

    @classmethod
    def horizontal(cls, z: float = 0.0) -> 'Plane':
        """Horizontal plane at altitude ``z`` with an upward normal."""
        return cls(np.array([0.0, 0.0, 1.0]), z)

    def distance_from(self, point: np.ndarray) -> float:
        """Signed distance of ``point`` from the plane."""
        return float(np.dot(self.normal, np.asarray(point, dtype=np.float64)) - self.offset)

    def __repr__(self) -> str:
        n = self.normal
        return f"Plane(normal=({n[0]:.3f}, {n[1]:.3f}, {n[2]:.3f}), offset={self.offset:.3f})"


class Depthmap:
    """Dense depth estimate for one camera view.

    Parameters
    ----------
    data : np.ndarray
        Depth values, shape ``(rows, cols)`` matching ``camera.shape``.
        Stored as float32.
    camera : PinholeCamera
        Camera the depth is referenced to.

    Attributes
    ----------
    data : np.ndarray
        Depth values; invalid cells hold ``INVALID_DEPTH``.
    camera : PinholeCamera
        Camera model of the view.

    Raises
    ------
    ValidationError
        If ``data`` is not 2D or does not match the camera image size.
    """

    def __init__(self, data: np.ndarray, camera: PinholeCamera) -> None:
        data = np.asarray(data)
        if data.ndim != 2:
            raise ValidationError(f"Depth data must be 2D, got shape {data.shape}")
        if data.shape != camera.shape:
            raise ValidationError(
                f"Depth shape {data.shape} does not match camera image "
                f"shape {camera.shape}"
            )
        self.data = data.astype(np.float32, copy=False)
        self.camera = camera

    @property
    def shape(self):
        return self.data.shape

    def valid_mask(self) -> np.ndarray:
        """Boolean mask of cells with a usable depth."""
        return valid_depth_mask(self.data)

    @property
    def min_depth(self) -> float:
        """Smallest valid depth, NaN when the map has no valid cell."""
        valid = self.data[self.valid_mask()]
        return float(valid.min()) if valid.size else float('nan')

    @property
    def max_depth(self) -> float:
        """Largest valid depth, NaN when the map has no valid cell."""
        valid = self.data[self.valid_mask()]
        return float(valid.max()) if valid.size else float('nan')

    def with_data(self, data: np.ndarray) -> 'Depthmap':
        """New depth map for the same camera holding ``data``."""
        return Depthmap(data, self.camera)

    def copy(self) -> 'Depthmap':
        return Depthmap(self.data.copy(), self.camera)

    def __repr__(self) -> str:
        n_valid = int(self.valid_mask().sum())
        return (
            f"Depthmap(shape={self.data.shape}, valid={n_valid}, "
            f"range=[{self.min_depth:.2f}, {self.max_depth:.2f}])"
        )


def plane_depth(camera: PinholeCamera, plane: Plane) -> Optional[np.ndarray]:
    """Optical-axis depth of every pixel's ray intersection with ``plane``.

    Returns
    -------
    np.ndarray or None
        Depth image of shape ``camera.shape`` with ``INVALID_DEPTH`` where
        the ray is parallel to or points away from the plane. None when no
        pixel hits the plane.
    """
    rows, cols = camera.shape
    vv, uu = np.mgrid[0:rows, 0:cols].astype(np.float64)
    rays = camera.pixel_to_ray(uu.ravel(), vv.ravel())
    denom = rays @ plane.normal
    dist = plane.offset - float(np.dot(plane.normal, camera.t))
    with np.errstate(divide='ignore', invalid='ignore'):
        lam = dist / denom
    hit = np.isfinite(lam) & (np.abs(denom) > 1e-12) & (lam > 0)
    if not np.any(hit):
        return None
    # Optical-axis depth = ray length * cos(angle to optical axis)
    optical_axis = camera.R[:, 2]
    depth = np.full(lam.shape, INVALID_DEPTH)
    depth[hit] = lam[hit] * (rays[hit] @ optical_axis)
    return depth.reshape(rows, cols)
