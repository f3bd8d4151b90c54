# -*- coding: utf-8 -*-
"""
Processing Module - Array processors for dense depth maps.

Sub-modules
-----------
base.py
    ``ImageProcessor`` and ``ImageTransform`` base classes.
params.py
    ``Range``, ``Options``, ``Desc`` markers for tunable parameters via
    ``Annotated`` type hints.
versioning.py
    ``@processor_version`` and ``@processor_tags`` decorators.
depth/
    Range clipping, bilateral and guided filters, validity masks,
    surface normals and the composed ``DepthPostProcessor``.
consistency.py
    ``ConsistencyFilter`` sliding-window depth confirmation.

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
2026-10-04

Modified
--------
2026-10-08
"""

from uavmap.processing.base import ImageProcessor, ImageTransform
from uavmap.processing.params import Desc, Options, ParamSpec, Range
from uavmap.processing.versioning import processor_tags, processor_version
from uavmap.processing.depth import (
    BilateralDepthFilter,
    DepthPostProcessor,
    DepthRangeClip,
    GuidedDepthFilter,
    NormalEstimator,
    PostProcessResult,
    compute_depth_map_mask,
    compute_normals,
    force_in_range,
)
from uavmap.processing.consistency import ConsistencyFilter, confirm_depth

__all__ = [
    'ImageProcessor',
    'ImageTransform',
    'Desc',
    'Options',
    'ParamSpec',
    'Range',
    'processor_tags',
    'processor_version',
    'BilateralDepthFilter',
    'DepthPostProcessor',
    'DepthRangeClip',
    'GuidedDepthFilter',
    'NormalEstimator',
    'PostProcessResult',
    'compute_depth_map_mask',
    'compute_normals',
    'force_in_range',
    'ConsistencyFilter',
    'confirm_depth',
]
