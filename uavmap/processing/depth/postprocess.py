# -*- coding: utf-8 -*-
"""
Depth Post-Processor - Range clipping and optional smoothing of raw depth.

Runs the fixed post-processing chain of the densification stage:

1. ``force_in_range`` with the cycle's depth bounds.
2. ``BilateralDepthFilter`` when ``use_filter_bilat`` is set.

Surface normals (``compute_normals``) are computed separately by
``DepthPostProcessor.normals`` on the accepted depth map.

``use_filter_guided`` is honoured only by a log message: guided filtering
has no implementation and the chain never applies it.

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
2026-10-07

Modified
--------
2026-10-18
"""

# Standard library
import logging
from dataclasses import dataclass
from typing import Optional

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.depthmap import Depthmap
from uavmap.processing.depth.filters import BilateralDepthFilter
from uavmap.processing.depth.normals import compute_normals
from uavmap.processing.depth.range import force_in_range
from uavmap.settings import DensificationSettings

logger = logging.getLogger(__name__)


@dataclass
class PostProcessResult:
    """Output of one post-processing run.

    Attributes
    ----------
    depthmap : Depthmap
        Final processed depth map.
    bilateral : np.ndarray or None
        Bilateral-filtered depth, kept for saving. None when disabled.
    """

    depthmap: Depthmap
    bilateral: Optional[np.ndarray] = None


class DepthPostProcessor:
    """Post-processing chain configured from ``DensificationSettings``.

    Parameters
    ----------
    settings : DensificationSettings
        Stage settings. Only the filter flags and bilateral parameters are
        read.

    """

    def __init__(self, settings: DensificationSettings) -> None:
        self._settings = settings
        self._bilateral: Optional[BilateralDepthFilter] = None
        if settings.use_filter_bilat:
            self._bilateral = BilateralDepthFilter(
                diameter=settings.bilateral_diameter,
                sigma_color=settings.bilateral_sigma_color,
                sigma_space=settings.bilateral_sigma_space,
            )
        if settings.use_filter_guided:
            logger.warning(
                "use_filter_guided is set but guided filtering is not "
                "implemented; the flag is ignored"
            )

    def process(
        self, depthmap: Depthmap, min_depth: float, max_depth: float
    ) -> PostProcessResult:
        """Clip ``depthmap`` to ``[min_depth, max_depth]`` and filter it.

        The input depth map is not modified.
        """
        clipped = force_in_range(depthmap, min_depth, max_depth)
        result = PostProcessResult(depthmap=clipped)

        if self._bilateral is not None:
            smoothed = self._bilateral.apply(clipped.data)
            result.bilateral = smoothed
            result.depthmap = clipped.with_data(smoothed)

        logger.debug(
            "Post-processed depth: %d valid cells in [%.2f, %.2f]",
            int(result.depthmap.valid_mask().sum()), min_depth, max_depth,
        )
        return result

    def normals(self, depthmap: Depthmap) -> Optional[np.ndarray]:
        """Normals of an accepted depth map, None when disabled.

        Call this on the depth map that is published, after masking and
        consistency filtering, so that rejected cells carry NaN normals.
        """
        if not self._settings.compute_normals:
            return None
        return compute_normals(depthmap)
