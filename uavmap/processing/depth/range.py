# -*- coding: utf-8 -*-
"""
Depth Range Clipping - Invalidate depth values outside a closed interval.

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
2026-10-05
"""

# Standard library
from typing import Annotated, Any

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.depthmap import INVALID_DEPTH, Depthmap
from uavmap.exceptions import ValidationError
from uavmap.processing.base import ImageTransform
from uavmap.processing.params import Desc, Range
from uavmap.processing.versioning import processor_tags, processor_version
from uavmap.vocabulary import ProcessorCategory


def _check_bounds(min_depth: float, max_depth: float) -> None:
    if not (np.isfinite(min_depth) and np.isfinite(max_depth)):
        raise ValidationError(
            f"Depth bounds must be finite, got [{min_depth}, {max_depth}]"
        )
    if min_depth > max_depth:
        raise ValidationError(
            f"min_depth ({min_depth}) must not exceed max_depth ({max_depth})"
        )


def clip_depth_range(
    data: np.ndarray, min_depth: float, max_depth: float
) -> np.ndarray:
    """Array form of :func:`force_in_range`.

    Returns a new float32 array; values in ``[min_depth, max_depth]`` are
    kept bit-for-bit, everything else (including NaN and inf) becomes
    ``INVALID_DEPTH``.
    """
    _check_bounds(min_depth, max_depth)
    data = np.asarray(data, dtype=np.float32)
    with np.errstate(invalid='ignore'):
        keep = (data >= min_depth) & (data <= max_depth)
    return np.where(keep, data, np.float32(INVALID_DEPTH)).astype(np.float32)


def force_in_range(
    depthmap: Depthmap, min_depth: float, max_depth: float
) -> Depthmap:
    """Set every depth outside ``[min_depth, max_depth]`` to the sentinel.

    Pure function: the input depth map is not modified. Applying it twice
    with the same bounds yields the same result as applying it once.

    Parameters
    ----------
    depthmap : Depthmap
        Depth map to clip.
    min_depth, max_depth : float
        Inclusive bounds of the accepted depth range.

    Returns
    -------
    Depthmap
        New depth map for the same camera.

    Raises
    ------
    ValidationError
        If the bounds are not finite or ``min_depth > max_depth``.
    """
    return depthmap.with_data(
        clip_depth_range(depthmap.data, min_depth, max_depth)
    )


@processor_version('1.0.0')
@processor_tags(category=ProcessorCategory.DEPTH,
                description='Invalidate depth outside [min_depth, max_depth]')
class DepthRangeClip(ImageTransform):
    """Range clipping as a composable transform.

    Parameters
    ----------
    min_depth : float
        Smallest accepted depth. Default 0.0.
    max_depth : float
        Largest accepted depth. Default 1e4.

    Examples
    --------
    >>> clip = DepthRangeClip(min_depth=10.0, max_depth=200.0)
    >>> clipped = clip.apply(depth_array)
    """

    min_depth: Annotated[float, Range(min=0.0), Desc('Smallest accepted depth')] = 0.0
    max_depth: Annotated[float, Range(min=0.0), Desc('Largest accepted depth')] = 1e4

    def __init__(self, min_depth: float = 0.0, max_depth: float = 1e4) -> None:
        self.min_depth = min_depth
        self.max_depth = max_depth
        self._validate_params()
        _check_bounds(min_depth, max_depth)

    def apply(self, source: np.ndarray, **kwargs: Any) -> np.ndarray:
        params = self._resolve_params(kwargs)
        return clip_depth_range(source, params['min_depth'], params['max_depth'])
