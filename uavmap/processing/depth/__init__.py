# -*- coding: utf-8 -*-
"""
Depth Processing - Clipping, filtering, masking and normals for depth maps.

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
2026-10-07
"""

from uavmap.processing.depth.range import (
    DepthRangeClip,
    clip_depth_range,
    force_in_range,
)
from uavmap.processing.depth.filters import (
    BilateralDepthFilter,
    GuidedDepthFilter,
    fill_invalid_nearest,
    valid_bilateral,
)
from uavmap.processing.depth.mask import compute_depth_map_mask, sparse_hull_mask
from uavmap.processing.depth.normals import NormalEstimator, compute_normals
from uavmap.processing.depth.postprocess import DepthPostProcessor, PostProcessResult

__all__ = [
    'DepthRangeClip',
    'clip_depth_range',
    'force_in_range',
    'BilateralDepthFilter',
    'GuidedDepthFilter',
    'fill_invalid_nearest',
    'valid_bilateral',
    'compute_depth_map_mask',
    'sparse_hull_mask',
    'NormalEstimator',
    'compute_normals',
    'DepthPostProcessor',
    'PostProcessResult',
]
