# -*- coding: utf-8 -*-
"""
Depth Filters - Edge-preserving smoothing of dense depth maps.

- ``BilateralDepthFilter``: bilateral smoothing restricted to valid cells.
- ``GuidedDepthFilter``: declared extension point for image-guided depth
  filtering. Not implemented; ``apply`` returns its input unchanged.

Invalid cells (sentinel or non-finite) never receive a filtered value and
keep ``INVALID_DEPTH``. The bilateral weights are normalised over the valid
neighbours of each cell only, so neither the sentinel nor any substitute
value is blended into valid depth. The window is the disc of radius
``diameter // 2``, as in ``cv2.bilateralFilter``.

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
2026-10-18
"""

# Standard library
import logging
from typing import Annotated, Any

# Third-party
import numpy as np
from scipy.ndimage import distance_transform_edt

# uavmap internal
from uavmap.core.depthmap import INVALID_DEPTH, valid_depth_mask
from uavmap.processing.base import ImageTransform
from uavmap.processing.params import Desc, Range
from uavmap.processing.versioning import processor_tags, processor_version
from uavmap.vocabulary import ProcessorCategory

logger = logging.getLogger(__name__)


def fill_invalid_nearest(data: np.ndarray, valid: np.ndarray) -> np.ndarray:
    """Replace invalid cells with the value of the nearest valid cell.

    Parameters
    ----------
    data : np.ndarray
        2D array.
    valid : np.ndarray
        Boolean mask, same shape. Must contain at least one True.

    Returns
    -------
    np.ndarray
        Filled copy of ``data``.
    """
    # EDT measures distance to the nearest zero, so invert the mask
    _, (ri, ci) = distance_transform_edt(~valid, return_indices=True)
    return data[ri, ci]


def valid_bilateral(
    data: np.ndarray,
    valid: np.ndarray,
    diameter: int,
    sigma_color: float,
    sigma_space: float,
) -> np.ndarray:
    """Bilateral filter whose weights only cover valid neighbours.

    Each output cell is the weighted mean of the valid cells in its disc
    window, with weights ``exp(-r^2 / 2 sigma_space^2) *
    exp(-dz^2 / 2 sigma_color^2)``. Invalid cells come out as
    ``INVALID_DEPTH``.

    Parameters
    ----------
    data : np.ndarray
        2D depth map.
    valid : np.ndarray
        Boolean mask of cells that carry depth, same shape.
    diameter : int
        Window diameter; the radius is ``diameter // 2``.
    sigma_color : float
        Range sigma in depth units.
    sigma_space : float
        Spatial sigma in pixels.

    Returns
    -------
    np.ndarray
        float32 filtered depth map.
    """
    valid = np.asarray(valid, dtype=bool)
    data = np.where(valid, np.asarray(data, dtype=np.float64), 0.0)
    rows, cols = data.shape
    radius = int(diameter) // 2
    padded = np.pad(data, radius, mode='constant')
    padded_valid = np.pad(valid, radius, mode='constant', constant_values=False)

    num = np.zeros_like(data)
    den = np.zeros_like(data)
    space_coeff = -0.5 / (sigma_space * sigma_space)
    color_coeff = -0.5 / (sigma_color * sigma_color)
    for dy in range(-radius, radius + 1):
        for dx in range(-radius, radius + 1):
            r2 = dy * dy + dx * dx
            if r2 > radius * radius:
                continue
            window = (slice(radius + dy, radius + dy + rows),
                      slice(radius + dx, radius + dx + cols))
            neighbour = padded[window]
            weight = np.exp(r2 * space_coeff + (neighbour - data) ** 2 * color_coeff)
            weight *= padded_valid[window]
            num += weight * neighbour
            den += weight

    out = np.full(data.shape, INVALID_DEPTH, dtype=np.float32)
    # The centre weight is 1 for every valid cell, so den > 0 there
    out[valid] = (num[valid] / den[valid]).astype(np.float32)
    return out


@processor_version('1.0.0')
@processor_tags(category=ProcessorCategory.FILTERS,
                description='Edge-preserving bilateral smoothing of valid depth')
class BilateralDepthFilter(ImageTransform):
    """Bilateral filter for depth maps that ignores invalid cells.

    Parameters
    ----------
    diameter : int
        Pixel neighbourhood diameter. Default 5.
    sigma_color : float
        Range sigma in depth units. Depth differences much larger than
        this are not smoothed across (edges are preserved). Default 1.0.
    sigma_space : float
        Spatial sigma in pixels. Default 3.0.

    Examples
    --------
    >>> f = BilateralDepthFilter(diameter=5, sigma_color=0.5)
    >>> smoothed = f.apply(depth)
    """

    diameter: Annotated[int, Range(min=1, max=31), Desc('Neighbourhood diameter')] = 5
    sigma_color: Annotated[float, Range(min=1e-6), Desc('Range sigma (depth units)')] = 1.0
    sigma_space: Annotated[float, Range(min=1e-6), Desc('Spatial sigma (pixels)')] = 3.0

    def __init__(
        self,
        diameter: int = 5,
        sigma_color: float = 1.0,
        sigma_space: float = 3.0,
    ) -> None:
        self.diameter = diameter
        self.sigma_color = sigma_color
        self.sigma_space = sigma_space
        self._validate_params()

    def apply(self, source: np.ndarray, **kwargs: Any) -> np.ndarray:
        """Smooth the valid cells of a depth map.

        Parameters
        ----------
        source : np.ndarray
            2D depth map.

        Returns
        -------
        np.ndarray
            float32 depth map; invalid input cells stay ``INVALID_DEPTH``.
        """
        params = self._resolve_params(kwargs)
        data = np.asarray(source, dtype=np.float32)
        valid = valid_depth_mask(data)
        if not np.any(valid):
            return np.full(data.shape, INVALID_DEPTH, dtype=np.float32)

        return valid_bilateral(
            data, valid,
            params['diameter'],
            float(params['sigma_color']),
            float(params['sigma_space']),
        )


@processor_version('0.0.0')
@processor_tags(category=ProcessorCategory.FILTERS,
                description='Image-guided depth filtering (not implemented)')
class GuidedDepthFilter(ImageTransform):
    """Extension point for image-guided depth filtering.

    No guided filtering algorithm is implemented. ``apply`` returns a copy
    of its input and logs a warning the first time it is called so that an
    enabled configuration flag never fails silently.
    """

    def __init__(self) -> None:
        self._warned = False

    def apply(self, source: np.ndarray, **kwargs: Any) -> np.ndarray:
        if not self._warned:
            logger.warning(
                "Guided depth filtering is not implemented; depth map "
                "passed through unchanged"
            )
            self._warned = True
        return np.array(source, dtype=np.float32, copy=True)
