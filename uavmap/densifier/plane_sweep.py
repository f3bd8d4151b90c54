# -*- coding: utf-8 -*-
"""
Plane Sweep Densifier - Multi-view stereo by fronto-parallel plane sweeping.

For a set of depth hypotheses ``d`` sampled uniformly in inverse depth, each
neighbour image is warped into the reference view through the homography
induced by the plane ``z_ref = d``:

    H = K_n (R_rel + t_rel n^T / d) K_ref^-1,   n = (0, 0, 1)

with ``R_rel = R_n^T R_ref`` and ``t_rel = R_n^T (t_ref - t_n)``. The
photometric cost is the absolute intensity difference, box-aggregated over
``patch_size`` pixels and averaged over the neighbours that cover the
pixel. Depth is picked winner-take-all; pixels whose best cost does not
stand out from the mean cost (textureless or ambiguous) are invalidated.

Dependencies
------------
opencv-python
scipy

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
2026-10-07

Modified
--------
2026-10-13
"""

# Standard library
import logging
from typing import List, Optional, Sequence, Tuple

# Third-party
import numpy as np
from scipy.ndimage import uniform_filter

try:
    import cv2
    _HAS_CV2 = True
except ImportError:
    _HAS_CV2 = False

# uavmap internal
from uavmap.core.camera import PinholeCamera
from uavmap.core.depthmap import INVALID_DEPTH, Depthmap, Plane
from uavmap.core.frame import Frame
from uavmap.densifier.base import Densifier
from uavmap.exceptions import (
    DependencyError,
    ProjectionError,
    ReconstructionError,
    ValidationError,
)
from uavmap.settings import DensifierSettings

logger = logging.getLogger(__name__)

# Minimum fraction of a cost window that must be covered by a warped view
_MIN_COVERAGE = 0.5


def _to_gray(image: np.ndarray) -> np.ndarray:
    img = image.astype(np.float32)
    if img.ndim == 3:
        img = img[..., :3].mean(axis=2)
    return img


def plane_homography(
    ref: PinholeCamera, other: PinholeCamera, depth: float
) -> np.ndarray:
    """Homography mapping reference pixels to ``other`` pixels.

    Induced by the fronto-parallel plane at optical-axis ``depth`` of the
    reference camera.
    """
    if not depth > 0:
        raise ProjectionError(f"Plane depth must be positive, got {depth}")
    R_rel = other.R.T @ ref.R
    t_rel = other.R.T @ (ref.t - other.t)
    n = np.array([0.0, 0.0, 1.0])
    H = other.K @ (R_rel + np.outer(t_rel, n) / depth) @ np.linalg.inv(ref.K)
    return H / H[2, 2]


def depth_hypotheses(min_depth: float, max_depth: float, n_planes: int) -> np.ndarray:
    """Depth planes sampled uniformly in inverse depth, nearest first."""
    inv = np.linspace(1.0 / min_depth, 1.0 / max_depth, n_planes)
    return 1.0 / inv


class PlaneSweepDensifier(Densifier):
    """Plane-sweep multi-view stereo over one reconstruction window.

    Parameters
    ----------
    settings : DensifierSettings
        Uses ``n_frames`` (>= 2), ``n_planes``, ``patch_size``,
        ``min_baseline`` and ``uniqueness_ratio``.

    Raises
    ------
    DependencyError
        If opencv is not installed.
    ValidationError
        If ``n_frames < 2``.
    """

    def __init__(self, settings: DensifierSettings) -> None:
        if not _HAS_CV2:
            raise DependencyError(
                "opencv is required for plane-sweep densification. "
                "Install with: pip install opencv-python"
            )
        if settings.n_frames < 2:
            raise ValidationError(
                f"Plane sweep needs at least 2 frames, got n_frames={settings.n_frames}"
            )
        super().__init__(settings)

    def densify(
        self,
        frames: Sequence[Frame],
        reference_index: int = 0,
        plane: Optional[Plane] = None,
        depth_range: Optional[Tuple[float, float]] = None,
    ) -> Optional[Depthmap]:
        self._check_window(frames, reference_index)
        ref = frames[reference_index]

        neighbours: List[Frame] = [
            f for i, f in enumerate(frames)
            if i != reference_index
            and np.linalg.norm(f.camera.t - ref.camera.t) >= self._settings.min_baseline
        ]
        if not neighbours:
            logger.warning(
                "Frame %s: no neighbour with baseline >= %.2f m",
                ref.frame_id, self._settings.min_baseline,
            )
            return None

        min_depth, max_depth = self._resolve_range(ref, depth_range)
        planes = depth_hypotheses(min_depth, max_depth, self._settings.n_planes)
        cost = self._cost_volume(ref, neighbours, planes)
        return self._winner_take_all(ref, cost, planes)

    def _resolve_range(
        self, ref: Frame, depth_range: Optional[Tuple[float, float]]
    ) -> Tuple[float, float]:
        if depth_range is None:
            depths = ref.sparse_depths()
            if depths.size == 0:
                raise ReconstructionError(
                    f"Frame {ref.frame_id}: no depth range and no sparse points"
                )
            depth_range = (float(depths.min()), float(depths.max()))
        lo, hi = depth_range
        if not (np.isfinite(lo) and np.isfinite(hi)) or lo <= 0 or hi < lo:
            raise ReconstructionError(f"Invalid depth search range [{lo}, {hi}]")
        if hi == lo:
            hi = lo * 1.01
        return lo, hi

    def _cost_volume(
        self, ref: Frame, neighbours: Sequence[Frame], planes: np.ndarray
    ) -> np.ndarray:
        rows, cols = ref.camera.shape
        size = (cols, rows)
        win = self._settings.patch_size
        ref_img = _to_gray(ref.image)
        ones = np.ones((rows, cols), dtype=np.float32)
        flags_img = cv2.INTER_LINEAR | cv2.WARP_INVERSE_MAP
        flags_mask = cv2.INTER_NEAREST | cv2.WARP_INVERSE_MAP

        cost = np.full((len(planes), rows, cols), np.inf, dtype=np.float32)
        nb_imgs = [(_to_gray(nb.image), nb.camera) for nb in neighbours]
        for k, depth in enumerate(planes):
            total = np.zeros((rows, cols), dtype=np.float32)
            n_views = np.zeros((rows, cols), dtype=np.float32)
            for img, cam in nb_imgs:
                H = plane_homography(ref.camera, cam, depth)
                warped = cv2.warpPerspective(img, H, size, flags=flags_img)
                covered = cv2.warpPerspective(ones, H, size, flags=flags_mask)
                diff = np.abs(ref_img - warped) * covered
                coverage = uniform_filter(covered, size=win, mode='constant')
                agg = uniform_filter(diff, size=win, mode='constant')
                ok = coverage >= _MIN_COVERAGE
                total[ok] += agg[ok] / coverage[ok]
                n_views[ok] += 1.0
            seen = n_views > 0
            cost[k][seen] = total[seen] / n_views[seen]
        return cost

    def _winner_take_all(
        self, ref: Frame, cost: np.ndarray, planes: np.ndarray
    ) -> Optional[Depthmap]:
        finite = np.isfinite(cost)
        best = np.argmin(cost, axis=0)
        best_cost = np.take_along_axis(cost, best[None], axis=0)[0]
        n_finite = finite.sum(axis=0)
        with np.errstate(invalid='ignore', divide='ignore'):
            mean_cost = np.where(finite, cost, 0.0).sum(axis=0) / n_finite

        valid = (n_finite >= 2) & np.isfinite(best_cost)
        with np.errstate(invalid='ignore'):
            valid &= best_cost < self._settings.uniqueness_ratio * mean_cost

        if not np.any(valid):
            logger.warning("Frame %s: plane sweep found no distinct match", ref.frame_id)
            return None

        depth = np.where(valid, planes[best], INVALID_DEPTH).astype(np.float32)
        logger.debug(
            "Frame %s: plane sweep over %d planes, %d valid cells",
            ref.frame_id, len(planes), int(valid.sum()),
        )
        return Depthmap(depth, ref.camera)
