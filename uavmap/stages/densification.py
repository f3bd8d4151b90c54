# -*- coding: utf-8 -*-
"""
Densification Stage - Dense depth maps from buffered posed frames.

Frames arrive through ``add_frame`` from the upstream pose estimation
stage. With reconstruction enabled they are buffered per camera id; as soon
as one camera holds ``n_frames`` frames, ``process`` hands its oldest
``n_frames`` frames to the densifier, with the oldest frame as reference.
The reference frame then leaves the buffer and its depth map goes through:

1. range clipping to the depth range of the cycle,
2. optional bilateral filtering (``DepthPostProcessor``),
3. the validity mask (range plus optional sparse-support hull),
4. the optional consistency filter,

before being published to the output callbacks together with the frame
and saved per ``SaveSettings``. Surface normals, when enabled, are derived
from this accepted depth map. Frames added with reconstruction disabled
are published as they are, with whatever depth map they already carry.

Each frame lives in exactly one place at a time: the producer's hand, one
buffer, the consistency window of its camera, or the output.

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
2026-10-11

Modified
--------
2026-10-18
"""

# Standard library
import logging
import threading
from typing import Dict, Optional, Sequence, Tuple

# Third-party
import numpy as np

# uavmap internal
from uavmap.core.depthmap import INVALID_DEPTH, Depthmap, Plane
from uavmap.core.frame import Frame
from uavmap.densifier import Densifier, create_densifier
from uavmap.exceptions import ReconstructionError
from uavmap.processing.consistency import ConsistencyFilter
from uavmap.processing.depth.mask import compute_depth_map_mask
from uavmap.processing.depth.postprocess import DepthPostProcessor, PostProcessResult
from uavmap.settings import DensificationSettings, DensifierSettings, settings_to_dict
from uavmap.stages.base import OutputCallback, StageBase
from uavmap.stages.buffer import PassThroughBuffer, ReconstructionBuffer
from uavmap.stages.sinks import DensificationSaver

logger = logging.getLogger(__name__)


class DensificationStage(StageBase):
    """Pipeline stage producing dense depth maps.

    Parameters
    ----------
    stage_settings : DensificationSettings
        Post-processing, masking, consistency and save options.
    densifier_settings : DensifierSettings
        Backend selection; the densifier is created from it unless
        ``densifier`` is given.
    rate : float
        Worker loop rate in Hz.
    use_reconstruction : bool
        When False every frame bypasses the densifier.
    densifier : Densifier, optional
        Pre-built backend, e.g. a third-party implementation.
    plane_ref : Plane, optional
        Reference plane passed to the densifier. Horizontal at z = 0 by
        default.

    Raises
    ------
    DependencyError
        If the configured densifier backend is unknown or unavailable.
    ValidationError
        If settings are inconsistent.

    Examples
    --------
    >>> stage = DensificationStage(DensificationSettings(),
    ...                            DensifierSettings(type='PLANAR'), rate=10)
    >>> stage.register_output(lambda frame, depth: print(frame, depth))
    >>> stage.add_frame(frame)
    >>> stage.process()
    True
    """

    def __init__(
        self,
        stage_settings: DensificationSettings,
        densifier_settings: DensifierSettings,
        rate: float,
        use_reconstruction: bool = True,
        densifier: Optional[Densifier] = None,
        plane_ref: Optional[Plane] = None,
    ) -> None:
        super().__init__('densification', rate)
        self.settings = stage_settings
        self.densifier_settings = densifier_settings
        self.use_reconstruction = bool(use_reconstruction)
        self._densifier = densifier if densifier is not None else create_densifier(densifier_settings)
        self._n_frames = self._densifier.n_input_frames
        self.plane_ref = plane_ref if plane_ref is not None else Plane.horizontal(0.0)
        self._postprocessor = DepthPostProcessor(stage_settings)

        self._buffer_reco = ReconstructionBuffer(
            self._n_frames, capacity=stage_settings.buffer_capacity or None
        )
        self._buffer_no_reco = PassThroughBuffer()
        self._consistency: Dict[str, ConsistencyFilter] = {}
        self._artefacts: Dict[Tuple[str, int], PostProcessResult] = {}
        self._mutex_consistency = threading.Lock()
        self._stats_lock = threading.Lock()
        self._saver: Optional[DensificationSaver] = None

        self._depth_min_current = stage_settings.min_depth
        self._depth_max_current = stage_settings.max_depth

        self.n_reconstructions = 0
        self.n_failures = 0
        self.n_published = 0

    # -----------------------------------------------------------------
    # Introspection
    # -----------------------------------------------------------------
    @property
    def densifier(self) -> Densifier:
        return self._densifier

    @property
    def n_frames(self) -> int:
        return self._n_frames

    @property
    def reconstruction_buffer(self) -> ReconstructionBuffer:
        return self._buffer_reco

    @property
    def passthrough_buffer(self) -> PassThroughBuffer:
        return self._buffer_no_reco

    @property
    def n_dropped(self) -> int:
        return self._buffer_reco.n_dropped + self._buffer_no_reco.n_dropped

    @property
    def current_depth_range(self) -> Tuple[float, float]:
        return self._depth_min_current, self._depth_max_current

    # -----------------------------------------------------------------
    # Stage contract
    # -----------------------------------------------------------------
    def register_output(self, callback: OutputCallback) -> None:
        """Register a sink called as ``callback(frame, depthmap)``.

        ``depthmap`` is the accepted depth map of a reconstructed frame.
        Pass-through frames (reconstruction disabled) are published with
        the depth map they arrived with, which is None when they carry
        none. A None depth map therefore never signals a failed
        reconstruction: failures are counted in ``n_failures`` and not
        published.
        """
        super().register_output(callback)

    def add_frame(self, frame: Frame) -> None:
        with self._stats_lock:
            self.n_frames_received += 1
        if self.use_reconstruction:
            self._buffer_reco.push(frame)
        else:
            self._buffer_no_reco.push(frame)
        logger.debug("Received frame %s of camera %s", frame.frame_id, frame.camera_id)

    def process(self) -> bool:
        """Run one densification cycle.

        Returns
        -------
        bool
            True iff the densifier was invoked, whether or not it
            succeeded.
        """
        for frame in self._buffer_no_reco.drain():
            self._publish(frame, frame.depthmap)

        camera_id = self._buffer_reco.select(self.settings.selection_policy)
        if camera_id is None:
            return False
        frames = self._buffer_reco.window(camera_id, self._n_frames)
        if len(frames) < self._n_frames:
            return False

        depthmap = self.process_stereo_reconstruction(frames)
        frame = self.pop_from_buffer_reco(camera_id, frames[0])
        with self._stats_lock:
            self.n_reconstructions += 1

        if frame is None:
            # Buffer was reset while the densifier was running
            logger.debug("Camera %s: buffer changed during reconstruction, "
                         "result discarded", camera_id)
            return True
        if depthmap is None:
            with self._stats_lock:
                self.n_failures += 1
            logger.warning("Camera %s: densification failed for frame %s",
                           camera_id, frame.frame_id)
            return True

        result = self.apply_depth_map_post_processing(frame, depthmap)
        frame.set_depthmap(result.depthmap)
        with self._mutex_consistency:
            self._artefacts[(frame.camera_id, frame.frame_id)] = result

        if self.settings.use_consistency_filter:
            released = self._consistency_filter(frame, result)
            if released is None:
                return True
            frame, depth = released
            frame.set_depthmap(depth)

        self._publish(frame, frame.depthmap)
        return True

    def reset(self) -> None:
        """Drop all buffered frames and consistency windows."""
        self._buffer_reco.reset()
        self._buffer_no_reco.reset()
        with self._mutex_consistency:
            for filt in self._consistency.values():
                filt.reset()
            self._consistency.clear()
            self._artefacts.clear()
        self._depth_min_current = self.settings.min_depth
        self._depth_max_current = self.settings.max_depth
        logger.info("Densification stage reset")

    def init_stage_callback(self) -> None:
        if self.output_dir is not None and self.settings.save.any():
            self._saver = DensificationSaver(
                self.output_dir, self.settings.save, self.settings.thumbnail_scale
            )

    def print_settings_to_log(self) -> None:
        logger.info("### Stage process settings ###")
        logger.info("- use_reconstruction: %s", self.use_reconstruction)
        logger.info("- n_frames: %d", self._n_frames)
        for key, value in settings_to_dict(self.settings).items():
            logger.info("- %s: %s", key, value)
        if self.settings.use_filter_guided:
            logger.info("- use_filter_guided is ignored: guided filtering is "
                        "not implemented")
        self._densifier.print_settings_to_log()

    # -----------------------------------------------------------------
    # Reconstruction
    # -----------------------------------------------------------------
    def depth_range_for(self, frame: Frame) -> Tuple[float, float]:
        """Depth search range of a reconstruction cycle.

        The sparse depths of ``frame`` widened by ``depth_margin`` and
        intersected with the configured range. The configured range is
        used when the frame has no sparse depth or the two do not overlap.
        """
        lo, hi = self.settings.min_depth, self.settings.max_depth
        depths = frame.sparse_depths()
        if depths.size == 0:
            return lo, hi
        margin = self.settings.depth_margin
        s_lo = max(lo, float(depths.min()) * (1.0 - margin))
        s_hi = min(hi, float(depths.max()) * (1.0 + margin))
        if s_lo > s_hi:
            logger.debug("Frame %s: sparse depth outside configured range",
                         frame.frame_id)
            return lo, hi
        return s_lo, s_hi

    def process_stereo_reconstruction(
        self, frames: Sequence[Frame], reference_index: int = 0
    ) -> Optional[Depthmap]:
        """Run the densifier on a window snapshot.

        Updates the current depth range from the reference frame. Matching
        failures are returned as None.
        """
        ref = frames[reference_index]
        lo, hi = self.depth_range_for(ref)
        self._depth_min_current, self._depth_max_current = lo, hi
        logger.debug(
            "Frame %s: depth range [%.2f, %.2f], median sparse depth %.2f",
            ref.frame_id, lo, hi, ref.median_scene_depth(),
        )
        try:
            return self._densifier.densify(
                frames, reference_index, plane=self.plane_ref, depth_range=(lo, hi)
            )
        except ReconstructionError as e:
            logger.warning("Frame %s: reconstruction error: %s", ref.frame_id, e)
            return None

    def pop_from_buffer_reco(
        self, camera_id: str, expected: Optional[Frame] = None
    ) -> Optional[Frame]:
        return self._buffer_reco.pop_oldest(camera_id, expected)

    def apply_depth_map_post_processing(
        self, frame: Frame, depthmap: Depthmap
    ) -> PostProcessResult:
        """Clip, filter and mask a raw depth map with the current range."""
        lo, hi = self._depth_min_current, self._depth_max_current
        result = self._postprocessor.process(depthmap, lo, hi)
        mask = self.compute_depth_map_mask(
            result.depthmap, self.settings.use_sparse_mask, frame
        )
        result.depthmap = result.depthmap.with_data(
            np.where(mask, result.depthmap.data, np.float32(INVALID_DEPTH))
        )
        return result

    def compute_depth_map_mask(
        self,
        depth_map: Depthmap,
        use_sparse_mask: bool,
        frame: Optional[Frame] = None,
    ) -> np.ndarray:
        """Validity mask under the current depth range.

        Sparse support comes from ``frame``; without a frame the sparse
        mask rejects every cell.
        """
        sparse = frame.sparse_pixels() if frame is not None else None
        return compute_depth_map_mask(
            depth_map, use_sparse_mask,
            self._depth_min_current, self._depth_max_current, sparse,
        )

    def _consistency_filter(
        self, frame: Frame, result: PostProcessResult
    ) -> Optional[Tuple[Frame, Depthmap]]:
        with self._mutex_consistency:
            filt = self._consistency.get(frame.camera_id)
            if filt is None:
                filt = ConsistencyFilter(
                    self.settings.consistency_window,
                    self.settings.consistency_tolerance,
                )
                self._consistency[frame.camera_id] = filt
            return filt.push(frame, result.depthmap)

    # -----------------------------------------------------------------
    # Output
    # -----------------------------------------------------------------
    def _publish(self, frame: Frame, depthmap: Optional[Depthmap]) -> None:
        with self._mutex_consistency:
            artefacts = self._artefacts.pop((frame.camera_id, frame.frame_id), None)
        self._transport(frame, depthmap)
        with self._stats_lock:
            self.n_published += 1
        if self._saver is not None and depthmap is not None:
            self._save_iter(frame, depthmap, artefacts)

    def normals_for(self, depthmap: Depthmap) -> Optional[np.ndarray]:
        """Surface normals of a published depth map, None when disabled.

        Cells rejected by the mask or the consistency filter carry the
        sentinel, so their normals are NaN.
        """
        return self._postprocessor.normals(depthmap)

    def _save_iter(
        self,
        frame: Frame,
        depthmap: Depthmap,
        artefacts: Optional[PostProcessResult],
    ) -> None:
        try:
            self._saver.save(
                frame, depthmap,
                bilateral=artefacts.bilateral if artefacts else None,
                normals=self.normals_for(depthmap) if artefacts else None,
            )
        except OSError as e:
            logger.error("Saving frame %s failed: %s", frame.frame_id, e)
