# -*- coding: utf-8 -*-
"""
Stage Sinks - Persist stage outputs to an output directory.

``DensificationSaver`` writes the per-frame artefacts selected by
``SaveSettings`` into one sub-directory per artefact kind::

    <output_dir>/dense/   depth map (.npy + .json sidecar)
    <output_dir>/bilat/   bilateral-filtered depth (.npy)
    <output_dir>/imgs/    source image (.png)
    <output_dir>/sparse/  sparse world points (.npy)
    <output_dir>/thumb/   depth thumbnail (.png)
    <output_dir>/normals/ surface normals (.npy)

``GridMapSaver`` writes rectified grids as a GeoTIFF orthophoto plus an
``.npz`` archive holding every layer.

Dependencies
------------
opencv-python
Pillow
rasterio

Author
------
Steven Siebert

License
-------
MIT License
Copyright (c) 2024 geoint.org
See LICENSE file for full text.

Created
-------
2026-10-11

Modified
--------
2026-10-18
"""

# Standard library
import logging
from pathlib import Path
from typing import Any, Dict, List, Optional, Union

# Third-party
import numpy as np

try:
    import cv2  # noqa: F401
    _HAS_CV2 = True
except ImportError:
    _HAS_CV2 = False

# uavmap internal
from uavmap.core.depthmap import Depthmap
from uavmap.core.frame import Frame, resize_image
from uavmap.core.grid_map import CvGridMap
from uavmap.exceptions import DependencyError
from uavmap.IO import get_writer
from uavmap.IO.png import normalize_to_uint8
from uavmap.settings import SaveSettings
from uavmap.vocabulary import GridLayer

logger = logging.getLogger(__name__)

_SUBDIRS = {
    'save_dense': 'dense',
    'save_bilat': 'bilat',
    'save_imgs': 'imgs',
    'save_sparse': 'sparse',
    'save_thumb': 'thumb',
    'save_normals': 'normals',
}


def frame_stem(frame: Frame) -> str:
    return f"{frame.camera_id}_{frame.frame_id:06d}"


class DensificationSaver:
    """Writes densification artefacts per ``SaveSettings``.

    Parameters
    ----------
    output_dir : str or Path
        Stage output directory. Sub-directories are created for every
        enabled artefact.
    settings : SaveSettings
        Which artefacts to write.
    thumbnail_scale : float
        Scale of depth thumbnails relative to the depth map.

    Raises
    ------
    DependencyError
        If thumbnails are enabled and opencv is missing.
    """

    def __init__(
        self,
        output_dir: Union[str, Path],
        settings: SaveSettings,
        thumbnail_scale: float = 0.25,
    ) -> None:
        if settings.save_thumb and not _HAS_CV2:
            raise DependencyError(
                "opencv is required for depth thumbnails. "
                "Install with: pip install opencv-python"
            )
        self.output_dir = Path(output_dir)
        self.settings = settings
        self.thumbnail_scale = thumbnail_scale
        self._warned_guided = False
        for flag, subdir in _SUBDIRS.items():
            if getattr(settings, flag):
                (self.output_dir / subdir).mkdir(parents=True, exist_ok=True)

    def _path(self, subdir: str, frame: Frame, ext: str) -> Path:
        return self.output_dir / subdir / f"{frame_stem(frame)}{ext}"

    def save(
        self,
        frame: Frame,
        depthmap: Depthmap,
        bilateral: Optional[np.ndarray] = None,
        normals: Optional[np.ndarray] = None,
    ) -> List[Path]:
        """Write all enabled artefacts of one frame.

        Returns
        -------
        List[Path]
            Files written (sidecars excluded).
        """
        s = self.settings
        written: List[Path] = []
        meta: Dict[str, Any] = {
            'camera_id': frame.camera_id,
            'frame_id': frame.frame_id,
            'timestamp': frame.timestamp,
        }

        if s.save_dense:
            path = self._path('dense', frame, '.npy')
            dense_meta = dict(meta, min_depth=depthmap.min_depth,
                              max_depth=depthmap.max_depth)
            with get_writer('numpy', path, dense_meta) as w:
                w.write(depthmap.data)
            written.append(path)

        if s.save_bilat and bilateral is not None:
            path = self._path('bilat', frame, '.npy')
            with get_writer('numpy', path, meta) as w:
                w.write(bilateral)
            written.append(path)

        if s.save_guided and not self._warned_guided:
            logger.warning("save_guided is set but no guided depth is produced")
            self._warned_guided = True

        if s.save_imgs:
            path = self._path('imgs', frame, '.png')
            image = frame.image
            if image.ndim == 3 and image.shape[2] > 3:
                image = image[..., :3]
            with get_writer('png', path) as w:
                w.write(image)
            written.append(path)

        if s.save_sparse and frame.sparse_points is not None:
            path = self._path('sparse', frame, '.npy')
            with get_writer('numpy', path, meta) as w:
                w.write(frame.sparse_points)
            written.append(path)

        if s.save_thumb:
            path = self._path('thumb', frame, '.png')
            with get_writer('png', path) as w:
                w.write(self._thumbnail(depthmap))
            written.append(path)

        if s.save_normals and normals is not None:
            path = self._path('normals', frame, '.npy')
            with get_writer('numpy', path, meta) as w:
                w.write(normals)
            written.append(path)

        if written:
            logger.debug("Saved %d artefacts for %s", len(written), frame_stem(frame))
        return written

    def _thumbnail(self, depthmap: Depthmap) -> np.ndarray:
        img = normalize_to_uint8(depthmap.data, depthmap.valid_mask())
        return resize_image(img, min(self.thumbnail_scale, 1.0), interpolation='nearest')


class GridMapSaver:
    """Writes rectified grids as GeoTIFF orthophoto plus ``.npz`` layers.

    Parameters
    ----------
    output_dir : str or Path
        Directory receiving ``ortho/`` and ``layers/`` sub-directories.
    crs : str, optional
        CRS string for the GeoTIFF, e.g. ``'EPSG:32632'``.
    """

    def __init__(self, output_dir: Union[str, Path], crs: Optional[str] = None) -> None:
        self.output_dir = Path(output_dir)
        self.crs = crs
        (self.output_dir / 'ortho').mkdir(parents=True, exist_ok=True)
        (self.output_dir / 'layers').mkdir(parents=True, exist_ok=True)

    def save(self, frame: Frame, grid: CvGridMap) -> List[Path]:
        stem = frame_stem(frame)
        geo = {'geotransform': grid.geotransform(), 'crs': self.crs}
        written: List[Path] = []

        if GridLayer.COLOR_RGB in grid:
            path = self.output_dir / 'ortho' / f"{stem}.tif"
            with get_writer('geotiff', path, {'nodata': 0}) as w:
                w.write(grid[GridLayer.COLOR_RGB], geolocation=geo)
            written.append(path)

        path = self.output_dir / 'layers' / f"{stem}.npz"
        meta = {'camera_id': frame.camera_id, 'frame_id': frame.frame_id,
                'gsd': grid.gsd}
        with get_writer('numpy', path, meta) as w:
            w.write_npz({name: grid[name] for name in grid.layer_names},
                        geolocation=geo)
        written.append(path)
        logger.debug("Saved rectified grid for %s", stem)
        return written
