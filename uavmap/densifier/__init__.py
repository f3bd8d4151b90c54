# -*- coding: utf-8 -*-
"""
Densifier Module - Pluggable dense depth reconstruction backends.

Sub-modules
-----------
base.py
    ``Densifier`` capability interface.
factory.py
    ``create_densifier`` lazy backend registry.
planar.py
    ``PlanarDensifier`` reference-plane baseline.
plane_sweep.py
    ``PlaneSweepDensifier`` multi-view plane-sweep stereo (opencv).

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
2026-10-06

Modified
--------
2026-10-07
"""

from uavmap.densifier.base import Densifier
from uavmap.densifier.factory import available_densifiers, create_densifier
from uavmap.densifier.planar import PlanarDensifier

__all__ = [
    'Densifier',
    'PlanarDensifier',
    'available_densifiers',
    'create_densifier',
]
