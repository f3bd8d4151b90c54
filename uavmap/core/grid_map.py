# -*- coding: utf-8 -*-
"""
CvGridMap - Georeferenced multi-layer raster grid.

A ``CvGridMap`` is a regular grid over a geographic region of interest with
a fixed ground sampling distance (GSD). It carries any number of named
layers (elevation, validity mask, orthophoto, normals, ...) that all share
the same ``(row, col)`` addressing.

Grid Conventions
----------------
- ``roi`` is anchored at its lower-left (south-west) corner.
- Cell ``(r, c)`` sits at world ``x = roi.x + c * gsd``,
  ``y = roi.y + r * gsd``; row index increases northward.
- Every layer has ``(rows, cols)`` as its first two dimensions. Extra
  trailing dimensions (bands, normal components) are allowed.

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
2026-10-12
"""

# Standard library
from dataclasses import dataclass
from typing import Dict, Iterator, List, Tuple, Union

# Third-party
import numpy as np

# uavmap internal
from uavmap.exceptions import ValidationError


@dataclass(frozen=True)
class Roi:
    """Geographic rectangle anchored at its lower-left corner.

    Parameters
    ----------
    x : float
        Easting of the lower-left corner.
    y : float
        Northing of the lower-left corner.
    width : float
        Extent along x (metres). Must be positive.
    height : float
        Extent along y (metres). Must be positive.
    """

    x: float
    y: float
    width: float
    height: float

    def __post_init__(self) -> None:
        if not (self.width > 0 and self.height > 0):
            raise ValidationError(
                f"Roi extent must be positive, got {self.width}x{self.height}"
            )

    @property
    def bounds(self) -> Tuple[float, float, float, float]:
        """``(min_x, min_y, max_x, max_y)``."""
        return self.x, self.y, self.x + self.width, self.y + self.height


class CvGridMap:
    """Named raster layers on a shared georeferenced grid.

    Parameters
    ----------
    roi : Roi
        Region of interest covered by the grid.
    gsd : float
        Ground sampling distance (cell size). Must be positive.

    Attributes
    ----------
    roi : Roi
    gsd : float
    rows : int
    cols : int

    Raises
    ------
    ValidationError
        If ``gsd`` is not positive or the grid would be empty.

    Examples
    --------
    >>> grid = CvGridMap(Roi(500000.0, 5400000.0, 100.0, 50.0), gsd=0.5)
    >>> grid.size
    (100, 200)
    >>> grid.add('elevation', np.zeros(grid.size, dtype=np.float32))
    >>> grid.cell_to_world(2, 4)
    (500002.0, 5400001.0)
    """

    def __init__(self, roi: Roi, gsd: float) -> None:
        if not np.isfinite(gsd) or gsd <= 0:
            raise ValidationError(f"gsd must be positive, got {gsd!r}")
        self.roi = roi
        self.gsd = float(gsd)
        self.rows = int(round(roi.height / self.gsd))
        self.cols = int(round(roi.width / self.gsd))
        if self.rows < 1 or self.cols < 1:
            raise ValidationError(
                f"Roi {roi} at gsd {gsd} yields an empty grid"
            )
        self._layers: Dict[str, np.ndarray] = {}

    @classmethod
    def from_shape(
        cls, x: float, y: float, rows: int, cols: int, gsd: float
    ) -> 'CvGridMap':
        """Create a grid of ``rows x cols`` cells with its corner at (x, y)."""
        return cls(Roi(x, y, cols * gsd, rows * gsd), gsd)

    # -----------------------------------------------------------------
    # Layers
    # -----------------------------------------------------------------
    @property
    def size(self) -> Tuple[int, int]:
        """Grid dimensions ``(rows, cols)``."""
        return self.rows, self.cols

    def add(self, name: str, data: np.ndarray) -> None:
        """Add or replace a layer.

        Raises
        ------
        ValidationError
            If the leading dimensions of ``data`` are not ``(rows, cols)``.
        """
        data = np.asarray(data)
        if data.ndim < 2 or data.shape[:2] != self.size:
            raise ValidationError(
                f"Layer '{_key(name)}' has shape {data.shape}, grid "
                f"requires leading dimensions {self.size}"
            )
        self._layers[_key(name)] = data

    def get(self, name) -> np.ndarray:
        """Return a layer by name.

        Raises
        ------
        KeyError
            If the layer does not exist.
        """
        key = _key(name)
        if key not in self._layers:
            raise KeyError(
                f"Layer '{key}' not in grid (layers: {self.layer_names})"
            )
        return self._layers[key]

    def remove(self, name) -> None:
        self._layers.pop(_key(name), None)

    def has_layer(self, name) -> bool:
        return _key(name) in self._layers

    @property
    def layer_names(self) -> List[str]:
        return list(self._layers)

    def __contains__(self, name) -> bool:
        return self.has_layer(name)

    def __getitem__(self, name) -> np.ndarray:
        return self.get(name)

    def __iter__(self) -> Iterator[str]:
        return iter(list(self._layers))

    def copy(self) -> 'CvGridMap':
        """Deep copy of the grid and all of its layers."""
        other = CvGridMap(self.roi, self.gsd)
        for name, data in self._layers.items():
            other._layers[name] = data.copy()
        return other

    # -----------------------------------------------------------------
    # Addressing
    # -----------------------------------------------------------------
    def cell_to_world(
        self,
        row: Union[float, np.ndarray],
        col: Union[float, np.ndarray],
    ) -> Tuple[Union[float, np.ndarray], Union[float, np.ndarray]]:
        """World ``(x, y)`` of grid cell(s)."""
        return self.roi.x + col * self.gsd, self.roi.y + row * self.gsd

    def world_to_cell(
        self,
        x: Union[float, np.ndarray],
        y: Union[float, np.ndarray],
    ) -> Tuple[Union[float, np.ndarray], Union[float, np.ndarray]]:
        """Fractional grid ``(row, col)`` of world coordinate(s)."""
        return (y - self.roi.y) / self.gsd, (x - self.roi.x) / self.gsd

    def world_grid(self) -> Tuple[np.ndarray, np.ndarray]:
        """World ``(x, y)`` of every cell, each of shape ``(rows, cols)``."""
        rows, cols = np.mgrid[0:self.rows, 0:self.cols].astype(np.float64)
        return self.cell_to_world(rows, cols)

    def geotransform(self) -> Tuple[float, float, float, float, float, float]:
        """North-up affine coefficients for a raster with row 0 at the top.

        Returns ``(origin_x, gsd, 0, origin_y, 0, -gsd)`` where the origin
        is the north-west corner of the ROI. Layers must be flipped
        vertically (``np.flipud``) to match this orientation.
        """
        return (
            self.roi.x,
            self.gsd,
            0.0,
            self.roi.y + self.rows * self.gsd,
            0.0,
            -self.gsd,
        )

    def __repr__(self) -> str:
        return (
            f"CvGridMap(roi=({self.roi.x:.2f}, {self.roi.y:.2f}, "
            f"{self.roi.width:.2f}, {self.roi.height:.2f}), gsd={self.gsd}, "
            f"size={self.rows}x{self.cols}, layers={self.layer_names})"
        )


def _key(name) -> str:
    # GridLayer members are str subclasses; use their value
    return getattr(name, 'value', name)
