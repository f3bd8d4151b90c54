# -*- coding: utf-8 -*-
"""
Planar Densifier - Depth from intersecting pixel rays with a reference plane.

The flat-world baseline: every pixel of the reference frame gets the
optical-axis distance to the reference plane along its viewing ray. No
image matching is performed, so the result is exact for flat terrain and
deterministic for testing.

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
2026-10-09
"""

# Standard library
import logging
from typing import Optional, Sequence, Tuple

# uavmap internal
from uavmap.core.depthmap import Depthmap, Plane, plane_depth
from uavmap.core.frame import Frame
from uavmap.densifier.base import Densifier

logger = logging.getLogger(__name__)


class PlanarDensifier(Densifier):
    """Reference-plane densifier.

    Fails (returns None) when no pixel ray of the reference camera hits the
    plane in front of the camera. ``depth_range`` is ignored; range
    clipping is left to post-processing.
    """

    def densify(
        self,
        frames: Sequence[Frame],
        reference_index: int = 0,
        plane: Optional[Plane] = None,
        depth_range: Optional[Tuple[float, float]] = None,
    ) -> Optional[Depthmap]:
        self._check_window(frames, reference_index)
        ref = frames[reference_index]
        plane = plane if plane is not None else Plane.horizontal(0.0)

        depth = plane_depth(ref.camera, plane)
        if depth is None:
            logger.warning(
                "Frame %s: reference plane is not visible from the camera",
                ref.frame_id,
            )
            return None
        return Depthmap(depth, ref.camera)
