# -*- coding: utf-8 -*-
"""
Surface Normals - Per-pixel normals from a dense depth map.

Back-projects every valid depth cell to a world point, takes central
differences along image rows and columns, and crosses them. Normals are
unit length, expressed in the world frame, and oriented toward the camera.
Cells whose 4-neighbourhood is not fully valid get NaN.

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
2026-10-06

Modified
--------
2026-10-06
"""

# Standard library
from typing import Any, Optional

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.camera import PinholeCamera
from uavmap.core.depthmap import Depthmap, valid_depth_mask
from uavmap.exceptions import ValidationError
from uavmap.processing.base import ImageTransform
from uavmap.processing.versioning import processor_tags, processor_version
from uavmap.vocabulary import ProcessorCategory


def compute_normals(depthmap: Depthmap) -> np.ndarray:
    """Unit surface normals for every cell of a depth map.

    Parameters
    ----------
    depthmap : Depthmap
        Depth map with its camera.

    Returns
    -------
    np.ndarray
        float32 array of shape ``(rows, cols, 3)``; NaN where undefined.
    """
    cam = depthmap.camera
    data = depthmap.data.astype(np.float64)
    rows, cols = data.shape
    valid = valid_depth_mask(data)

    vv, uu = np.mgrid[0:rows, 0:cols].astype(np.float64)
    pts = cam.backproject(uu.ravel(), vv.ravel(), data.ravel()).reshape(rows, cols, 3)

    normals = np.full((rows, cols, 3), np.nan)
    if rows < 3 or cols < 3:
        return normals.astype(np.float32)

    d_col = pts[1:-1, 2:] - pts[1:-1, :-2]
    d_row = pts[2:, 1:-1] - pts[:-2, 1:-1]
    n = np.cross(d_col, d_row)

    ok = (
        valid[1:-1, 1:-1] & valid[1:-1, 2:] & valid[1:-1, :-2] &
        valid[2:, 1:-1] & valid[:-2, 1:-1]
    )
    length = np.linalg.norm(n, axis=2)
    ok &= length > 1e-12

    with np.errstate(invalid='ignore', divide='ignore'):
        n = n / length[..., None]
    # Flip normals that point away from the camera
    to_cam = cam.t - pts[1:-1, 1:-1]
    flip = np.einsum('ijk,ijk->ij', n, to_cam) < 0
    n[flip] *= -1.0

    inner = normals[1:-1, 1:-1]
    inner[ok] = n[ok]
    return normals.astype(np.float32)


@processor_version('1.0.0')
@processor_tags(category=ProcessorCategory.GEOMETRY,
                description='Per-pixel surface normals from depth')
class NormalEstimator(ImageTransform):
    """Surface normal estimation as a transform.

    ``apply`` requires the ``camera`` keyword argument because normals are
    computed in the world frame.

    Examples
    --------
    >>> normals = NormalEstimator().apply(depth_array, camera=cam)
    >>> normals.shape
    (480, 640, 3)
    """

    def apply(self, source: np.ndarray, **kwargs: Any) -> np.ndarray:
        camera: Optional[PinholeCamera] = kwargs.get('camera')
        if camera is None:
            raise ValidationError("NormalEstimator.apply requires camera=")
        return compute_normals(Depthmap(source, camera))
