# -*- coding: utf-8 -*-
"""
Frame - Posed aerial image with optional sparse points, surface and depth.

A ``Frame`` is the unit of data flowing through the mapping stages. It is
created upstream (capture + pose estimation) and handed from stage to
stage; a frame is held by exactly one buffer at a time.

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
2026-10-03

Modified
--------
2026-10-18
"""

# Standard library
from typing import Optional, Tuple

# Third-party
import numpy as np

try:
    import cv2
    _HAS_CV2 = True
except ImportError:
    _HAS_CV2 = False

# uavmap internal
from uavmap.core.camera import MIN_PROJECTION_DEPTH, PinholeCamera
from uavmap.core.depthmap import Depthmap
from uavmap.core.grid_map import CvGridMap
from uavmap.exceptions import DependencyError, ValidationError
from uavmap.vocabulary import GridLayer


_RESIZE_INTERPOLATIONS = ('area', 'nearest')


def resize_image(image: np.ndarray, factor: float, interpolation: str = 'area') -> np.ndarray:
    """Scale an image by ``factor`` in ``(0, 1]``.

    ``'area'`` suits camera images, ``'nearest'`` keeps the values of
    depth renderings intact.
    """
    if not 0 < factor <= 1:
        raise ValidationError(f"Resize factor must be in (0, 1], got {factor}")
    if interpolation not in _RESIZE_INTERPOLATIONS:
        raise ValidationError(
            f"Unknown resize interpolation '{interpolation}'. "
            f"Must be one of: {list(_RESIZE_INTERPOLATIONS)}"
        )
    if factor == 1:
        return image.copy()
    if not _HAS_CV2:
        raise DependencyError(
            "opencv is required for image resizing. "
            "Install with: pip install opencv-python"
        )
    rows, cols = image.shape[:2]
    size = (max(1, int(round(cols * factor))), max(1, int(round(rows * factor))))
    flag = cv2.INTER_AREA if interpolation == 'area' else cv2.INTER_NEAREST
    return cv2.resize(image, size, interpolation=flag)


class Frame:
    """Posed camera image travelling through the pipeline.

    Parameters
    ----------
    camera_id : str
        Identifier of the capturing sensor / UAV. Frames of different
        camera ids are never mixed inside one reconstruction window.
    frame_id : int
        Sequence number of the frame within its camera stream.
    timestamp : float
        Capture time in seconds.
    image : np.ndarray
        Undistorted image, shape ``(rows, cols)`` or ``(rows, cols, bands)``.
    camera : PinholeCamera
        Camera model; its image size must match ``image``.
    sparse_points : np.ndarray, optional
        Sparse world points observed by this frame, shape ``(N, 3)``.
    surface : CvGridMap, optional
        Elevation grid with ``elevation`` and ``valid`` layers.
    is_elevated : bool
        Whether ``surface`` carries real elevation (True) or is planar.

    Raises
    ------
    ValidationError
        If the image does not match the camera or inputs are malformed.
    """

    def __init__(
        self,
        camera_id: str,
        frame_id: int,
        timestamp: float,
        image: np.ndarray,
        camera: PinholeCamera,
        sparse_points: Optional[np.ndarray] = None,
        surface: Optional[CvGridMap] = None,
        is_elevated: bool = False,
    ) -> None:
        image = np.asarray(image)
        if image.ndim not in (2, 3) or image.shape[:2] != camera.shape:
            raise ValidationError(
                f"Image shape {image.shape} does not match camera image "
                f"shape {camera.shape}"
            )
        if sparse_points is not None:
            sparse_points = np.asarray(sparse_points, dtype=np.float64)
            if sparse_points.ndim != 2 or sparse_points.shape[1] != 3:
                raise ValidationError(
                    f"sparse_points must have shape (N, 3), got "
                    f"{sparse_points.shape}"
                )
        if surface is not None:
            for layer in (GridLayer.ELEVATION, GridLayer.VALID):
                if layer not in surface:
                    raise ValidationError(
                        f"Surface grid is missing the '{layer.value}' layer"
                    )

        self.camera_id = str(camera_id)
        self.frame_id = int(frame_id)
        self.timestamp = float(timestamp)
        self.image = image
        self.camera = camera
        self.sparse_points = sparse_points
        self.surface = surface
        self.is_elevated = bool(is_elevated)
        self._depthmap: Optional[Depthmap] = None

    # -----------------------------------------------------------------
    # Depth
    # -----------------------------------------------------------------
    @property
    def depthmap(self) -> Optional[Depthmap]:
        return self._depthmap

    def set_depthmap(self, depthmap: Depthmap) -> None:
        if depthmap.shape != self.camera.shape:
            raise ValidationError(
                f"Depth map shape {depthmap.shape} does not match frame "
                f"{self.camera.shape}"
            )
        self._depthmap = depthmap

    def has_depthmap(self) -> bool:
        return self._depthmap is not None

    def has_surface(self) -> bool:
        return self.surface is not None

    # -----------------------------------------------------------------
    # Sparse observations
    # -----------------------------------------------------------------
    def _sparse_projection(self) -> Tuple[np.ndarray, np.ndarray, np.ndarray]:
        if self.sparse_points is None or len(self.sparse_points) == 0:
            empty = np.empty(0)
            return empty, empty, empty
        u, v, z = self.camera.project(self.sparse_points)
        keep = z > MIN_PROJECTION_DEPTH
        return u[keep], v[keep], z[keep]

    def sparse_depths(self) -> np.ndarray:
        """Optical-axis depths of sparse points in front of the camera."""
        return self._sparse_projection()[2]

    def sparse_pixels(self) -> np.ndarray:
        """Pixel coordinates ``(u, v)`` of sparse points, shape ``(N, 2)``."""
        u, v, _ = self._sparse_projection()
        return np.stack([u, v], axis=1)

    def median_scene_depth(self) -> float:
        """Median sparse depth, NaN when no sparse point is visible."""
        depths = self.sparse_depths()
        return float(np.median(depths)) if depths.size else float('nan')

    def resized_image(self, factor: float) -> np.ndarray:
        """Image scaled by ``factor`` with area interpolation (thumbnails)."""
        return resize_image(self.image, factor)

    def __repr__(self) -> str:
        return (
            f"Frame(camera_id={self.camera_id!r}, frame_id={self.frame_id}, "
            f"timestamp={self.timestamp:.3f}, image={self.image.shape})"
        )
