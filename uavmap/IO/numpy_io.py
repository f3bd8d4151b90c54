# -*- coding: utf-8 -*-
"""
NumPy Writer - Depth maps and grid layers as .npy / .npz files.

Single arrays go to ``.npy`` via ``write()``; the named layers of a grid go
to one ``.npz`` archive via ``write_npz()``. A JSON sidecar next to each
file records shape, dtype and any metadata (frame id, camera id, depth
range, georeferencing).

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
2026-10-12
"""

# Standard library
import json
from pathlib import Path
from typing import Any, Dict, Optional

# Third-party
import numpy as np

# uavmap internal
from uavmap.IO.base import ImageWriter


class NumpyWriter(ImageWriter):
    """Write arrays to NumPy .npy and .npz formats.

    Parameters
    ----------
    filepath : str or Path
        Output file path (``.npy`` or ``.npz``).
    metadata : Dict[str, Any], optional
        Extra entries for the JSON sidecar. Set ``'write_sidecar'`` to
        False to skip the sidecar.

    Examples
    --------
    >>> with NumpyWriter('dense/000042.npy', {'frame_id': 42}) as writer:
    ...     writer.write(depth.data)
    """

    def write(
        self,
        data: np.ndarray,
        geolocation: Optional[Dict[str, Any]] = None,
    ) -> None:
        np.save(str(self.filepath), data)
        self._write_sidecar(
            {'shape': list(data.shape), 'dtype': str(data.dtype)},
            geolocation,
        )

    def write_npz(
        self,
        arrays: Dict[str, np.ndarray],
        geolocation: Optional[Dict[str, Any]] = None,
    ) -> None:
        """Write multiple named arrays to one compressed .npz archive.

        Raises
        ------
        ValueError
            If ``arrays`` is empty.
        """
        if not arrays:
            raise ValueError("write_npz requires at least one array")
        np.savez_compressed(str(self.filepath), **arrays)
        self._write_sidecar(
            {
                'arrays': {
                    name: {'shape': list(a.shape), 'dtype': str(a.dtype)}
                    for name, a in arrays.items()
                },
            },
            geolocation,
        )

    def _write_sidecar(
        self,
        sidecar: Dict[str, Any],
        geolocation: Optional[Dict[str, Any]] = None,
    ) -> None:
        meta = dict(self.metadata)
        if not meta.pop('write_sidecar', True):
            return
        sidecar.update(meta)
        if geolocation:
            sidecar['geolocation'] = geolocation
        sidecar_path = Path(str(self.filepath) + '.json')
        with open(sidecar_path, 'w') as f:
            json.dump(sidecar, f, indent=2, default=str)
