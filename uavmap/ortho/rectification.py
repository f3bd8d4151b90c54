# -*- coding: utf-8 -*-
"""
Rectification - Orthophoto generation by backprojection from a 2.5D grid.

Every cell of a geographic grid (x = easting, y = northing, elevation from
the surface grid or 0 for a planar surface) is projected into the camera
and the image is sampled there. The result is a ``CvGridMap`` with the
layers:

- ``color_rgb``: orthophoto, same band layout and dtype as the image,
  zero where invalid.
- ``valid``: cell was seen by the camera.
- ``elevation``: surface elevation, 0 for a planar surface.
- ``elevated``: cell carries real elevation.
- ``elevation_angle``: angle in degrees between the line of sight and the
  local tangent plane, NaN where invalid.

Each cell is treated as a single ray into the image. There is no z-buffer,
so terrain hidden behind other terrain is still coloured from the
occluding pixel; the elevation angle layer lets consumers down-weight such
oblique cells.

Dependencies
------------
scipy

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
2026-10-10

Modified
--------
2026-10-18
"""

# Standard library
import logging
from typing import Optional, Tuple

# Third-party
import numpy as np
from scipy.ndimage import map_coordinates

# uavmap internal
from uavmap.core.camera import MIN_PROJECTION_DEPTH, PinholeCamera
from uavmap.core.frame import Frame
from uavmap.core.grid_map import CvGridMap, Roi
from uavmap.exceptions import ValidationError
from uavmap.processing.depth.filters import fill_invalid_nearest
from uavmap.vocabulary import GridLayer

logger = logging.getLogger(__name__)

# Mapping from interpolation name to scipy order parameter
INTERPOLATION_ORDERS = {
    'nearest': 0,
    'bilinear': 1,
    'bicubic': 3,
}

_ANGLE_EPS = 1e-9


def rectify(frame: Frame, interpolation: str = 'bilinear') -> CvGridMap:
    """Orthorectify a frame onto its surface grid.

    Parameters
    ----------
    frame : Frame
        Frame carrying an undistorted image, a camera and a surface grid
        with ``elevation`` and ``valid`` layers.
    interpolation : str
        ``'nearest'``, ``'bilinear'`` or ``'bicubic'``.

    Returns
    -------
    CvGridMap
        Rectified grid over the surface ROI.

    Raises
    ------
    ValidationError
        If the frame has no surface.
    """
    if not frame.has_surface():
        raise ValidationError(f"Frame {frame.frame_id} has no surface to rectify onto")
    surface = frame.surface
    return backproject_from_grid(
        frame.image,
        frame.camera,
        surface[GridLayer.ELEVATION],
        surface[GridLayer.VALID],
        surface.roi,
        surface.gsd,
        frame.is_elevated,
        interpolation=interpolation,
    )


def project_grid(
    cam: PinholeCamera, world_points: np.ndarray
) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
    """Project world points of a grid into the camera.

    Thin wrapper over ``PinholeCamera.project`` accepting any leading
    shape ``(..., 3)``.

    Returns
    -------
    Tuple[np.ndarray, np.ndarray, np.ndarray]
        ``(u, v, depth)`` with the leading shape of ``world_points``.
    """
    pts = np.asarray(world_points, dtype=np.float64)
    lead = pts.shape[:-1]
    u, v, z = cam.project(pts.reshape(-1, 3))
    return u.reshape(lead), v.reshape(lead), z.reshape(lead)


def surface_normals(elevation: np.ndarray, gsd: float) -> np.ndarray:
    """Unit normals of a 2.5D surface from its elevation gradients.

    Parameters
    ----------
    elevation : np.ndarray
        ``(rows, cols)`` elevation, rows increasing northward.
    gsd : float
        Cell size.

    Returns
    -------
    np.ndarray
        ``(rows, cols, 3)`` normals with positive z. Non-finite elevation
        gives NaN normals. Grids thinner than two cells are treated as
        flat.
    """
    elev = np.asarray(elevation, dtype=np.float64)
    rows, cols = elev.shape
    if rows < 2 or cols < 2:
        normals = np.zeros((rows, cols, 3))
        normals[..., 2] = 1.0
        normals[~np.isfinite(elev)] = np.nan
        return normals
    dz_dy, dz_dx = np.gradient(elev, gsd)
    normals = np.stack([-dz_dx, -dz_dy, np.ones_like(elev)], axis=-1)
    return normals / np.linalg.norm(normals, axis=-1, keepdims=True)


def _compute_elevation_angle(
    t: np.ndarray, p: np.ndarray, normals: Optional[np.ndarray] = None
) -> np.ndarray:
    """Angle between the point-to-camera ray and the tangent plane at ``p``.

    Parameters
    ----------
    t : np.ndarray
        Camera projection centre, shape ``(3,)``.
    p : np.ndarray
        Surface points, shape ``(..., 3)``.
    normals : np.ndarray, optional
        Unit surface normals matching ``p``. Horizontal tangent planes
        (normal ``(0, 0, 1)``) when omitted.

    Returns
    -------
    np.ndarray
        Angles in degrees in ``[0, 90]``, 90 for a camera straight above
        a flat surface. NaN where the camera coincides with the point.
    """
    p = np.asarray(p, dtype=np.float64)
    ray = np.asarray(t, dtype=np.float64) - p
    length = np.linalg.norm(ray, axis=-1)
    if normals is None:
        dot = ray[..., 2]
    else:
        dot = np.einsum('...k,...k->...', ray, normals)
    with np.errstate(invalid='ignore', divide='ignore'):
        sin_angle = np.clip(np.abs(dot) / length, 0.0, 1.0)
    angle = np.degrees(np.arcsin(sin_angle))
    return np.where(length < _ANGLE_EPS, np.nan, angle)


def _fill_invalid_elevation(z: np.ndarray, valid_surface: np.ndarray) -> np.ndarray:
    """Elevation with no-data cells taken from their nearest valid cell."""
    known = valid_surface & np.isfinite(z)
    if known.all():
        return z
    return fill_invalid_nearest(z, known)


def _sample(img: np.ndarray, rows: np.ndarray, cols: np.ndarray, order: int) -> np.ndarray:
    coords = np.vstack([rows, cols])
    bands = img[..., np.newaxis] if img.ndim == 2 else img
    out = np.empty((rows.size, bands.shape[2]), dtype=np.float64)
    for b in range(bands.shape[2]):
        out[:, b] = map_coordinates(
            bands[..., b].astype(np.float64), coords,
            order=order, mode='nearest',
        )
    if np.issubdtype(img.dtype, np.integer):
        info = np.iinfo(img.dtype)
        out = np.clip(np.rint(out), info.min, info.max)
    out = out.astype(img.dtype)
    return out[:, 0] if img.ndim == 2 else out


def backproject_from_grid(
    img: np.ndarray,
    cam: PinholeCamera,
    surface: np.ndarray,
    valid_surface: np.ndarray,
    roi: Roi,
    gsd: float,
    is_elevated: bool,
    interpolation: str = 'bilinear',
) -> CvGridMap:
    """Backproject every grid cell into the image and sample it.

    Parameters
    ----------
    img : np.ndarray
        Undistorted image ``(height, width[, bands])``.
    cam : PinholeCamera
        Camera of ``img``.
    surface : np.ndarray
        ``(rows, cols)`` elevation per cell.
    valid_surface : np.ndarray
        ``(rows, cols)`` mask of cells with surface data.
    roi : Roi
        Geographic extent, anchored lower-left.
    gsd : float
        Cell size (> 0).
    is_elevated : bool
        Use ``surface`` as elevation; otherwise the surface is z = 0.
    interpolation : str
        ``'nearest'``, ``'bilinear'`` or ``'bicubic'``.

    Returns
    -------
    CvGridMap
        Grid with ``color_rgb``, ``valid``, ``elevation``, ``elevated`` and
        ``elevation_angle`` layers.

    Raises
    ------
    ValidationError
        On non-positive ``gsd``, unknown interpolation or mismatched
        shapes.
    """
    if not gsd > 0:
        raise ValidationError(f"GSD must be positive, got {gsd}")
    if interpolation not in INTERPOLATION_ORDERS:
        raise ValidationError(
            f"Unknown interpolation method '{interpolation}'. "
            f"Must be one of: {list(INTERPOLATION_ORDERS.keys())}"
        )
    img = np.asarray(img)
    if img.ndim not in (2, 3) or img.shape[:2] != cam.shape:
        raise ValidationError(
            f"Image shape {img.shape} does not match camera {cam.shape}"
        )
    surface = np.asarray(surface, dtype=np.float64)
    valid_surface = np.asarray(valid_surface).astype(bool)
    if surface.shape != valid_surface.shape:
        raise ValidationError(
            f"Surface {surface.shape} and valid mask {valid_surface.shape} differ"
        )

    grid = CvGridMap(roi, gsd)
    if grid.size != surface.shape:
        raise ValidationError(
            f"Surface shape {surface.shape} does not match ROI grid {grid.size}"
        )

    x, y = grid.world_grid()
    z = surface if is_elevated else np.zeros_like(surface)
    pts = np.stack([x, y, z], axis=-1)

    u, v, depth = project_grid(cam, pts)
    with np.errstate(invalid='ignore'):
        valid = (
            valid_surface & np.isfinite(z) &
            (depth > MIN_PROJECTION_DEPTH) & cam.contains(u, v)
        )

    color = np.zeros(grid.size + img.shape[2:], dtype=img.dtype)
    if np.any(valid):
        color[valid] = _sample(img, v[valid], u[valid],
                               INTERPOLATION_ORDERS[interpolation])

    normals = None
    if is_elevated and np.any(valid):
        normals = surface_normals(_fill_invalid_elevation(z, valid_surface), gsd)
    angle = np.full(grid.size, np.nan, dtype=np.float32)
    if np.any(valid):
        angle[valid] = _compute_elevation_angle(
            cam.t, pts[valid], None if normals is None else normals[valid]
        )

    grid.add(GridLayer.COLOR_RGB, color)
    grid.add(GridLayer.VALID, valid)
    grid.add(GridLayer.ELEVATION, np.where(is_elevated, z, 0.0).astype(np.float32))
    grid.add(GridLayer.ELEVATED, valid & bool(is_elevated))
    grid.add(GridLayer.ELEVATION_ANGLE, angle)

    logger.debug(
        "Rectified %dx%d grid, %d of %d cells valid",
        grid.rows, grid.cols, int(valid.sum()), valid.size,
    )
    return grid
