# -*- coding: utf-8 -*-
"""
Consistency Filter - Confirm depth across consecutive estimates.

A sliding window of the last ``window_size`` depth maps of one camera. When
the window is full, the oldest depth map is confirmed against every later
one and released:

- each valid cell of the oldest map is back-projected to a world point,
- the point is projected into the camera of each later entry and that
  entry's depth is sampled at the nearest pixel,
- the cell survives iff every later entry has a valid depth there that
  agrees with the expected depth within ``tolerance``.

Surviving cells keep the oldest map's value unchanged; all others become
``INVALID_DEPTH``. With identical cameras this is a cell-wise comparison of
consecutive estimates.

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
2026-10-08

Modified
--------
2026-10-12
"""

# Standard library
import logging
from collections import deque
from typing import Deque, Optional, Tuple

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.depthmap import INVALID_DEPTH, Depthmap, valid_depth_mask
from uavmap.core.frame import Frame
from uavmap.exceptions import ValidationError

logger = logging.getLogger(__name__)


def confirm_depth(
    reference: Depthmap, later: Depthmap, tolerance: float
) -> np.ndarray:
    """Cells of ``reference`` whose depth is reproduced by ``later``.

    Parameters
    ----------
    reference : Depthmap
        Depth map being confirmed.
    later : Depthmap
        Subsequent estimate, possibly from a different pose.
    tolerance : float
        Maximum absolute depth disagreement.

    Returns
    -------
    np.ndarray
        Boolean mask of shape ``reference.shape``.
    """
    ref_valid = reference.valid_mask()
    confirmed = np.zeros(reference.shape, dtype=bool)
    rows_idx, cols_idx = np.nonzero(ref_valid)
    if rows_idx.size == 0:
        return confirmed

    pts = reference.camera.backproject(
        cols_idx, rows_idx, reference.data[rows_idx, cols_idx]
    )
    u, v, expected = later.camera.project(pts)
    inside = later.camera.contains(u, v)

    ok = np.zeros(rows_idx.shape, dtype=bool)
    if np.any(inside):
        ri = np.rint(v[inside]).astype(np.intp)
        ci = np.rint(u[inside]).astype(np.intp)
        observed = later.data[ri, ci].astype(np.float64)
        with np.errstate(invalid='ignore'):
            ok[inside] = (
                valid_depth_mask(observed) &
                (np.abs(expected[inside] - observed) <= tolerance)
            )
    confirmed[rows_idx[ok], cols_idx[ok]] = True
    return confirmed


class ConsistencyFilter:
    """Sliding-window depth confirmation for a single camera stream.

    Parameters
    ----------
    window_size : int
        Number of depth maps compared (>= 1). A window of 1 passes every
        depth map through unchanged.
    tolerance : float
        Absolute depth tolerance (> 0), in depth units.

    Raises
    ------
    ValidationError
        If ``window_size < 1`` or ``tolerance <= 0``.

    Examples
    --------
    >>> filt = ConsistencyFilter(window_size=2, tolerance=0.5)
    >>> filt.push(frame_a, depth_a) is None
    True
    >>> frame, confirmed = filt.push(frame_b, depth_b)
    """

    def __init__(self, window_size: int = 2, tolerance: float = 0.5) -> None:
        if window_size < 1:
            raise ValidationError(f"window_size must be >= 1, got {window_size}")
        if not tolerance > 0:
            raise ValidationError(f"tolerance must be positive, got {tolerance}")
        self.window_size = int(window_size)
        self.tolerance = float(tolerance)
        self._window: Deque[Tuple[Frame, Depthmap]] = deque()

    def push(
        self, frame: Frame, depthmap: Depthmap
    ) -> Optional[Tuple[Frame, Depthmap]]:
        """Add an estimate; release the oldest one once the window is full.

        Returns
        -------
        Tuple[Frame, Depthmap] or None
            The oldest frame with its confirmed depth map, or None while
            the window is still filling.
        """
        self._window.append((frame, depthmap))
        if len(self._window) < self.window_size:
            return None

        oldest_frame, oldest_depth = self._window.popleft()
        if not self._window:
            return oldest_frame, oldest_depth

        keep = oldest_depth.valid_mask()
        for _, later in self._window:
            keep &= confirm_depth(oldest_depth, later, self.tolerance)

        data = np.where(keep, oldest_depth.data, np.float32(INVALID_DEPTH))
        logger.debug(
            "Frame %s: %d of %d depth cells confirmed",
            oldest_frame.frame_id, int(keep.sum()),
            int(oldest_depth.valid_mask().sum()),
        )
        return oldest_frame, oldest_depth.with_data(data)

    def reset(self) -> None:
        self._window.clear()

    def __len__(self) -> int:
        return len(self._window)
