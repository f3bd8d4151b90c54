# -*- coding: utf-8 -*-
"""
Ortho Rectification Stage - Per-frame orthophotos on the frame's surface.

Frames are queued in a bounded drop-oldest buffer. Each ``process`` call
rectifies one frame onto its surface grid, publishes ``(frame, grid)`` to
the output callbacks and, with an output directory set, saves the grid as
a GeoTIFF orthophoto plus an ``.npz`` of all layers.

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
2026-10-12

Modified
--------
2026-10-18
"""

# Standard library
import logging
import threading
from collections import deque
from typing import Deque, Optional

# uavmap internal
from uavmap.core.frame import Frame
from uavmap.exceptions import ValidationError
from uavmap.ortho import INTERPOLATION_ORDERS, rectify
from uavmap.stages.base import StageBase
from uavmap.stages.sinks import GridMapSaver

logger = logging.getLogger(__name__)


class OrthoRectificationStage(StageBase):
    """Pipeline stage rectifying frames onto their surface grids.

    Parameters
    ----------
    rate : float
        Worker loop rate in Hz.
    queue_size : int
        Maximum number of queued frames; the oldest is dropped on overflow.
    interpolation : str
        ``'nearest'``, ``'bilinear'`` or ``'bicubic'``.
    save_ortho : bool
        Save rectified grids once an output directory is set.
    crs : str, optional
        CRS of the saved GeoTIFFs, e.g. ``'EPSG:32632'``.
    """

    def __init__(
        self,
        rate: float,
        queue_size: int = 8,
        interpolation: str = 'bilinear',
        save_ortho: bool = True,
        crs: Optional[str] = None,
    ) -> None:
        super().__init__('ortho_rectification', rate)
        if queue_size < 1:
            raise ValidationError(f"queue_size must be >= 1, got {queue_size}")
        if interpolation not in INTERPOLATION_ORDERS:
            raise ValidationError(
                f"Unknown interpolation method '{interpolation}'. "
                f"Must be one of: {list(INTERPOLATION_ORDERS.keys())}"
            )
        self.queue_size = int(queue_size)
        self.interpolation = interpolation
        self.save_ortho = bool(save_ortho)
        self.crs = crs
        self._buffer: Deque[Frame] = deque()
        self._mutex_buffer = threading.Lock()
        self._saver: Optional[GridMapSaver] = None
        self.n_rectified = 0
        self.n_dropped = 0

    def add_frame(self, frame: Frame) -> None:
        with self._mutex_buffer:
            self.n_frames_received += 1
            if len(self._buffer) >= self.queue_size:
                dropped = self._buffer.popleft()
                self.n_dropped += 1
                logger.warning("Ortho queue full (%d), dropped frame %s",
                               self.queue_size, dropped.frame_id)
            self._buffer.append(frame)

    def process(self) -> bool:
        with self._mutex_buffer:
            frame = self._buffer.popleft() if self._buffer else None
        if frame is None:
            return False
        if not frame.has_surface():
            logger.warning("Frame %s has no surface, skipped", frame.frame_id)
            with self._mutex_buffer:
                self.n_dropped += 1
            return False

        grid = rectify(frame, interpolation=self.interpolation)
        self.n_rectified += 1
        self._transport(frame, grid)
        if self._saver is not None:
            try:
                self._saver.save(frame, grid)
            except OSError as e:
                logger.error("Saving orthophoto of frame %s failed: %s",
                             frame.frame_id, e)
        return True

    def reset(self) -> None:
        with self._mutex_buffer:
            self._buffer.clear()
        logger.info("Ortho rectification stage reset")

    def init_stage_callback(self) -> None:
        if self.save_ortho and self.output_dir is not None:
            self._saver = GridMapSaver(self.output_dir, crs=self.crs)

    def print_settings_to_log(self) -> None:
        logger.info("### Stage process settings ###")
        logger.info("- queue_size: %d", self.queue_size)
        logger.info("- interpolation: %s", self.interpolation)
        logger.info("- save_ortho: %s", self.save_ortho)
        logger.info("- crs: %s", self.crs)

    def __len__(self) -> int:
        with self._mutex_buffer:
            return len(self._buffer)
