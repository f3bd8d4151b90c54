# -*- coding: utf-8 -*-
"""
Vocabulary - Canonical enums for the uavmap framework.

Defines the single source of truth for controlled vocabularies used across
the densification and rectification stages: densifier backends, buffer
selection policies, processor categories, and the standard layer names
carried by ``CvGridMap``.

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
2026-10-02

Modified
--------
2026-10-11
"""

from enum import Enum


class DensifierType(Enum):
    """Registered densifier backends.

    The value is the key used in settings files and by
    :func:`~uavmap.densifier.factory.create_densifier`.
    """

    PLANAR = "PLANAR"
    PLANE_SWEEP = "PLANE_SWEEP"


class SelectionPolicy(Enum):
    """Rule for choosing which camera's buffer is reconstructed next.

    Only camera ids holding at least ``n_frames`` frames are candidates.
    Ties are always broken by the lexicographically smallest camera id so
    that the choice is deterministic.
    """

    LOWEST_ID = "lowest_id"
    EARLIEST_TIMESTAMP = "earliest_timestamp"


class ProcessorCategory(Enum):
    """Processing categories for processor tagging."""

    DEPTH = "depth"
    FILTERS = "filters"
    GEOMETRY = "geometry"
    ORTHO = "ortho"


class GridLayer(str, Enum):
    """Standard layer names of a ``CvGridMap``.

    Subclasses ``str`` so members can be used anywhere a plain layer name
    is accepted.
    """

    ELEVATION = "elevation"
    VALID = "valid"
    COLOR_RGB = "color_rgb"
    ELEVATION_ANGLE = "elevation_angle"
    ELEVATED = "elevated"
    NORMALS = "normals"
