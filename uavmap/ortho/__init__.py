# -*- coding: utf-8 -*-
"""
Ortho Module - Orthorectification of posed frames onto geographic grids.

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
2026-10-10

Modified
--------
2026-10-18
"""

from uavmap.ortho.rectification import (
    INTERPOLATION_ORDERS,
    backproject_from_grid,
    project_grid,
    rectify,
    surface_normals,
)

__all__ = [
    'INTERPOLATION_ORDERS',
    'backproject_from_grid',
    'project_grid',
    'rectify',
    'surface_normals',
]
