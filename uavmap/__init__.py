# -*- coding: utf-8 -*-
"""
uavmap - Real-time densification and orthorectification for UAV mapping.

Turns a stream of posed aerial frames into dense depth maps (pluggable
densifier backends, range clipping, edge-preserving filtering, sparse
support masks, multi-frame consistency) and into georeferenced orthophoto
grids by backprojection onto a 2.5D surface.

Dependencies
------------
numpy
scipy
opencv-python
Pillow
rasterio
PyYAML

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
2026-10-16
"""

__version__ = "0.1.0"
__author__ = "Duane Smalley"

from uavmap.exceptions import (
    UavmapError,
    ValidationError,
    ProcessorError,
    DependencyError,
    ReconstructionError,
    ProjectionError,
)
from uavmap.vocabulary import (
    DensifierType,
    SelectionPolicy,
    ProcessorCategory,
    GridLayer,
)
from uavmap.core import (
    INVALID_DEPTH,
    CvGridMap,
    Depthmap,
    Frame,
    PinholeCamera,
    Plane,
    Roi,
)
from uavmap.settings import (
    DensificationSettings,
    DensifierSettings,
    SaveSettings,
    load_densification_settings,
    load_densifier_settings,
)

__all__ = [
    'UavmapError',
    'ValidationError',
    'ProcessorError',
    'DependencyError',
    'ReconstructionError',
    'ProjectionError',
    'DensifierType',
    'SelectionPolicy',
    'ProcessorCategory',
    'GridLayer',
    'INVALID_DEPTH',
    'CvGridMap',
    'Depthmap',
    'Frame',
    'PinholeCamera',
    'Plane',
    'Roi',
    'DensificationSettings',
    'DensifierSettings',
    'SaveSettings',
    'load_densification_settings',
    'load_densifier_settings',
]
