# -*- coding: utf-8 -*-
"""
GeoTIFF Writer - Georeferenced rasters from rectified grid maps.

Grid row 0 of a ``CvGridMap`` is its southern edge, while GeoTIFF row 0 is
the northern edge, so rows are flipped on write. The affine transform comes
from ``CvGridMap.geotransform()`` (GDAL order) or from a ``geolocation``
dict passed to ``write``.

Dependencies
------------
rasterio

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
2026-10-09

Modified
--------
2026-10-13
"""

# Standard library
import logging
from pathlib import Path
from typing import Any, Dict, Optional, Sequence, Union

# Third-party
import numpy as np

try:
    import rasterio
    from rasterio.transform import Affine
    _HAS_RASTERIO = True
except ImportError:
    _HAS_RASTERIO = False

# uavmap internal
from uavmap.exceptions import DependencyError
from uavmap.IO.base import ImageWriter

logger = logging.getLogger(__name__)


def affine_from_gdal(gt: Sequence[float]) -> 'Affine':
    """Convert a GDAL geotransform to a rasterio ``Affine``."""
    return Affine(gt[1], gt[2], gt[0], gt[4], gt[5], gt[3])


class GeoTIFFWriter(ImageWriter):
    """Write 2D or band-last 3D arrays to a GeoTIFF.

    Parameters
    ----------
    filepath : str or Path
        Output ``.tif`` path.
    metadata : Dict[str, Any], optional
        Written as GeoTIFF tags. ``'nodata'`` sets the nodata value.

    Raises
    ------
    DependencyError
        If rasterio is not installed.

    Examples
    --------
    >>> geo = {'crs': 'EPSG:32632', 'geotransform': grid.geotransform()}
    >>> with GeoTIFFWriter('ortho/000042.tif') as writer:
    ...     writer.write(grid['color_rgb'], geolocation=geo)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not _HAS_RASTERIO:
            raise DependencyError(
                "rasterio is required for GeoTIFF writing. "
                "Install with: pip install rasterio"
            )
        super().__init__(filepath, metadata)

    def write(
        self,
        data: np.ndarray,
        geolocation: Optional[Dict[str, Any]] = None,
        flip_rows: bool = True,
    ) -> None:
        """Write ``data`` with optional georeferencing.

        Parameters
        ----------
        data : np.ndarray
            ``(rows, cols)`` or ``(rows, cols, bands)``. Boolean arrays
            are written as uint8.
        geolocation : Dict[str, Any], optional
            ``crs`` plus either ``transform`` (``Affine``) or
            ``geotransform`` (GDAL 6-tuple).
        flip_rows : bool
            Flip rows so that row 0 is north. Default True, matching
            grid maps whose row 0 is south.

        Raises
        ------
        ValueError
            If ``data`` is not 2D or 3D.
        """
        if data.ndim not in (2, 3):
            raise ValueError(f"Expected 2D or 3D array, got shape {data.shape}")
        if data.dtype == bool:
            data = data.astype(np.uint8)
        if flip_rows:
            data = np.flipud(data)
        bands = data[np.newaxis] if data.ndim == 2 else np.moveaxis(data, -1, 0)

        geolocation = geolocation or {}
        transform = geolocation.get('transform')
        if transform is None and 'geotransform' in geolocation:
            transform = affine_from_gdal(geolocation['geotransform'])

        meta = dict(self.metadata)
        profile = {
            'driver': 'GTiff',
            'dtype': bands.dtype,
            'width': bands.shape[2],
            'height': bands.shape[1],
            'count': bands.shape[0],
        }
        if 'nodata' in meta:
            profile['nodata'] = meta.pop('nodata')
        if transform is not None:
            profile['transform'] = transform
        if geolocation.get('crs'):
            profile['crs'] = geolocation['crs']

        with rasterio.open(str(self.filepath), 'w', **profile) as dst:
            dst.write(np.ascontiguousarray(bands))
            if meta:
                dst.update_tags(**{k: str(v) for k, v in meta.items()})
        logger.debug("Wrote GeoTIFF %s (%d bands)", self.filepath, bands.shape[0])
