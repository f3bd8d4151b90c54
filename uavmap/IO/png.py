# -*- coding: utf-8 -*-
"""
PNG Writer - Source images and depth thumbnails as PNG.

Dependencies
------------
Pillow

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
2026-10-09

Modified
--------
2026-10-11
"""

# Standard library
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Third-party
import numpy as np

try:
    from PIL import Image
    _HAS_PIL = True
except ImportError:
    _HAS_PIL = False

# uavmap internal
from uavmap.exceptions import DependencyError
from uavmap.IO.base import ImageWriter


def normalize_to_uint8(
    data: np.ndarray, valid: Optional[np.ndarray] = None
) -> np.ndarray:
    """Linearly stretch float data to uint8 over its valid cells.

    Cells outside ``valid`` (and non-finite cells) become 0.
    """
    data = np.asarray(data, dtype=np.float64)
    mask = np.isfinite(data)
    if valid is not None:
        mask &= valid
    out = np.zeros(data.shape, dtype=np.uint8)
    if not np.any(mask):
        return out
    dmin = data[mask].min()
    dmax = data[mask].max()
    if dmax - dmin > 0:
        out[mask] = np.round((data[mask] - dmin) / (dmax - dmin) * 254.0 + 1.0)
    else:
        out[mask] = 255
    return out


class PngWriter(ImageWriter):
    """Write uint8 grayscale or RGB arrays to PNG files.

    Accepts ``(rows, cols)`` grayscale or ``(rows, cols, 3)`` RGB arrays.
    Float arrays are stretched to uint8 over their finite values, with 0
    reserved for non-finite cells.

    Raises
    ------
    DependencyError
        If Pillow is not installed.

    Examples
    --------
    >>> with PngWriter('imgs/000042.png') as writer:
    ...     writer.write(frame.image)
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        metadata: Optional[Dict[str, Any]] = None,
    ) -> None:
        if not _HAS_PIL:
            raise DependencyError(
                "Pillow is required for PNG writing. "
                "Install with: pip install Pillow"
            )
        super().__init__(filepath, metadata)

    def write(
        self,
        data: np.ndarray,
        geolocation: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write image data to a PNG file.

        Raises
        ------
        ValueError
            If the array is not 2D grayscale or 3D RGB.
        """
        if data.ndim == 3 and data.shape[2] == 1:
            data = data[..., 0]
        if data.ndim == 2:
            mode = 'L'
        elif data.ndim == 3 and data.shape[2] == 3:
            mode = 'RGB'
        else:
            raise ValueError(
                f"Expected 2D grayscale (rows, cols) or 3D RGB "
                f"(rows, cols, 3), got shape {data.shape}"
            )

        if np.issubdtype(data.dtype, np.floating):
            data = normalize_to_uint8(data)
        elif data.dtype != np.uint8:
            data = np.clip(data, 0, 255).astype(np.uint8)

        Image.fromarray(np.ascontiguousarray(data), mode=mode).save(str(self.filepath))
