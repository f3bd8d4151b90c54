# -*- coding: utf-8 -*-
"""
Depth Validity Masks - Range and sparse-support masks for dense depth maps.

``compute_depth_map_mask`` marks which depth cells are trusted. A cell is
valid when its depth is finite and inside the accepted range. With sparse
masking enabled, the cell must additionally lie inside the convex hull of
the sparse point projections of the frame, which suppresses depth that the
densifier extrapolated into regions without any sparse support.

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
2026-10-05

Modified
--------
2026-10-12
"""

# Standard library
import logging
from typing import Optional, Tuple, Union

# Third-party
import numpy as np
from scipy.spatial import Delaunay, QhullError

# uavmap internal
from uavmap.core.depthmap import Depthmap
from uavmap.exceptions import ValidationError

logger = logging.getLogger(__name__)


def sparse_hull_mask(
    shape: Tuple[int, int], sparse_pixels: Optional[np.ndarray]
) -> np.ndarray:
    """Cells inside (or on) the convex hull of sparse pixel projections.

    Cell ``(r, c)`` is tested at pixel position ``(u=c, v=r)``.

    Parameters
    ----------
    shape : Tuple[int, int]
        Mask shape ``(rows, cols)``.
    sparse_pixels : np.ndarray or None
        Pixel coordinates ``(u, v)``, shape ``(N, 2)``. Non-finite rows are
        ignored.

    Returns
    -------
    np.ndarray
        Boolean mask. All False when fewer than three non-collinear
        points are available, since no area is supported.
    """
    rows, cols = shape
    mask = np.zeros(shape, dtype=bool)
    if sparse_pixels is None:
        return mask
    pts = np.asarray(sparse_pixels, dtype=np.float64).reshape(-1, 2)
    pts = np.unique(pts[np.all(np.isfinite(pts), axis=1)], axis=0)
    if len(pts) < 3:
        logger.debug("Sparse hull needs 3 points, got %d", len(pts))
        return mask

    try:
        tri = Delaunay(pts)
    except QhullError:
        logger.debug("Sparse points are degenerate (collinear); empty hull")
        return mask

    vv, uu = np.mgrid[0:rows, 0:cols]
    cells = np.column_stack([uu.ravel(), vv.ravel()]).astype(np.float64)
    inside = tri.find_simplex(cells) >= 0
    return inside.reshape(shape)


def compute_depth_map_mask(
    depth_map: Union[Depthmap, np.ndarray],
    use_sparse_mask: bool,
    min_depth: float,
    max_depth: float,
    sparse_pixels: Optional[np.ndarray] = None,
) -> np.ndarray:
    """Boolean validity mask for a dense depth map.

    Pure and deterministic in its arguments.

    Parameters
    ----------
    depth_map : Depthmap or np.ndarray
        Depth map to evaluate.
    use_sparse_mask : bool
        Restrict validity to the convex hull of ``sparse_pixels``.
    min_depth, max_depth : float
        Inclusive accepted depth range.
    sparse_pixels : np.ndarray, optional
        Sparse point projections ``(u, v)``, shape ``(N, 2)``. Required
        in practice when ``use_sparse_mask`` is set; without them every
        cell is masked.

    Returns
    -------
    np.ndarray
        Boolean mask, True where the depth is trusted.

    Raises
    ------
    ValidationError
        If ``min_depth > max_depth``.
    """
    if min_depth > max_depth:
        raise ValidationError(
            f"min_depth ({min_depth}) must not exceed max_depth ({max_depth})"
        )
    data = depth_map.data if isinstance(depth_map, Depthmap) else np.asarray(depth_map)
    with np.errstate(invalid='ignore'):
        mask = np.isfinite(data) & (data >= min_depth) & (data <= max_depth)
    if use_sparse_mask:
        mask &= sparse_hull_mask(data.shape, sparse_pixels)
    return mask
