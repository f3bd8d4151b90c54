# -*- coding: utf-8 -*-
"""
Core Data Model - Frames, cameras, depth maps and georeferenced grids.

Plain containers shared by every stage. ``PinholeCamera`` is immutable and
shared by reference; ``Frame`` objects are owned by one buffer at a time;
``Depthmap`` and ``CvGridMap`` outputs are created fresh per processing
cycle.

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
2026-10-18
"""

from uavmap.core.camera import PinholeCamera
from uavmap.core.depthmap import INVALID_DEPTH, Depthmap, Plane, plane_depth
from uavmap.core.frame import Frame, resize_image
from uavmap.core.grid_map import CvGridMap, Roi

__all__ = [
    'PinholeCamera',
    'INVALID_DEPTH',
    'Depthmap',
    'Plane',
    'plane_depth',
    'Frame',
    'resize_image',
    'CvGridMap',
    'Roi',
]
