# -*- coding: utf-8 -*-
"""
IO Module - Writers for depth maps, images and rectified grids.

Writers are created through :func:`get_writer`, which imports them lazily
so optional dependencies (Pillow, rasterio) are only needed when the
corresponding format is requested.

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
2026-10-12
"""

# Standard library
import importlib
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Third-party
import numpy as np

# uavmap internal
from uavmap.IO.base import ImageWriter

_WRITER_REGISTRY: Dict[str, tuple] = {
    'geotiff': ('uavmap.IO.geotiff', 'GeoTIFFWriter'),
    'numpy': ('uavmap.IO.numpy_io', 'NumpyWriter'),
    'png': ('uavmap.IO.png', 'PngWriter'),
}

_EXTENSION_MAP: Dict[str, str] = {
    '.tif': 'geotiff',
    '.tiff': 'geotiff',
    '.npy': 'numpy',
    '.npz': 'numpy',
    '.png': 'png',
}


def get_writer(
    format: str,
    filepath: Union[str, Path],
    metadata: Optional[Dict[str, Any]] = None,
) -> ImageWriter:
    """Create an ImageWriter for the given format.

    Parameters
    ----------
    format : str
        One of ``'geotiff'``, ``'numpy'``, ``'png'``.
    filepath : str or Path
        Output file path.
    metadata : Dict[str, Any], optional
        Passed to the writer constructor.

    Raises
    ------
    ValueError
        If *format* is not a recognized format string.

    Examples
    --------
    >>> with get_writer('png', 'thumb.png') as w:
    ...     w.write(thumbnail)
    """
    key = format.lower()
    if key not in _WRITER_REGISTRY:
        raise ValueError(
            f"Unknown writer format: {format!r}. "
            f"Supported formats: {sorted(_WRITER_REGISTRY.keys())}"
        )
    module_path, class_name = _WRITER_REGISTRY[key]
    module = importlib.import_module(module_path)
    writer_cls = getattr(module, class_name)
    return writer_cls(filepath, metadata=metadata)


def write(
    data: np.ndarray,
    path: Union[str, Path],
    metadata: Optional[Dict[str, Any]] = None,
    format: Optional[str] = None,
    geolocation: Optional[Dict[str, Any]] = None,
) -> None:
    """Write array data to a file, choosing the format from the extension.

    Raises
    ------
    ValueError
        If the format cannot be determined from the extension.
    """
    path = Path(path)
    if format is None:
        ext = path.suffix.lower()
        if ext not in _EXTENSION_MAP:
            raise ValueError(
                f"Cannot determine format from extension {ext!r}. "
                f"Specify format explicitly. Known extensions: "
                f"{sorted(_EXTENSION_MAP.keys())}"
            )
        format = _EXTENSION_MAP[ext]
    with get_writer(format, path, metadata=metadata) as writer:
        writer.write(data, geolocation=geolocation)


__all__ = ['ImageWriter', 'get_writer', 'write']
