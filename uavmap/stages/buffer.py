# -*- coding: utf-8 -*-
"""
Frame Buffers - Thread-safe holding areas between producer and stage worker.

``ReconstructionBuffer`` keeps one bounded FIFO per camera id so that
frames of different UAVs never share a reconstruction window and a burst
from one camera cannot evict another camera's frames. Each partition has
its own lock; a registry lock only guards partition creation and removal.

Overflow policy is drop-oldest: pushing into a full partition discards its
oldest frame, counts it in ``n_dropped`` and logs a warning. Frames whose
timestamp is not strictly later than the newest buffered frame of the same
camera are rejected and counted in ``n_rejected``.

``PassThroughBuffer`` is a single bounded FIFO for frames that skip
reconstruction.

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
2026-10-08

Modified
--------
2026-10-14
"""

# Standard library
import logging
import threading
from collections import deque
from typing import Deque, Dict, List, Optional

# uavmap internal
from uavmap.core.frame import Frame
from uavmap.exceptions import ValidationError
from uavmap.vocabulary import SelectionPolicy

logger = logging.getLogger(__name__)


class _Partition:
    __slots__ = ('frames', 'lock', 'n_dropped', 'n_rejected')

    def __init__(self) -> None:
        self.frames: Deque[Frame] = deque()
        self.lock = threading.Lock()
        self.n_dropped = 0
        self.n_rejected = 0


class ReconstructionBuffer:
    """Per-camera bounded frame queues feeding the densifier.

    Parameters
    ----------
    n_frames : int
        Frames per reconstruction window. A camera is ready once it holds
        at least this many frames.
    capacity : int, optional
        Per-camera bound, ``n_frames`` or ``n_frames + 1`` (the default).

    Raises
    ------
    ValidationError
        If ``n_frames < 1`` or ``capacity`` is out of bounds.
    """

    def __init__(self, n_frames: int, capacity: Optional[int] = None) -> None:
        if n_frames < 1:
            raise ValidationError(f"n_frames must be >= 1, got {n_frames}")
        capacity = n_frames + 1 if not capacity else int(capacity)
        if not n_frames <= capacity <= n_frames + 1:
            raise ValidationError(
                f"Buffer capacity must be n_frames or n_frames + 1 "
                f"({n_frames} or {n_frames + 1}), got {capacity}"
            )
        self.n_frames = int(n_frames)
        self.capacity = capacity
        self._partitions: Dict[str, _Partition] = {}
        self._registry_lock = threading.Lock()

    def _partition(self, camera_id: str, create: bool = False) -> Optional[_Partition]:
        with self._registry_lock:
            part = self._partitions.get(camera_id)
            if part is None and create:
                part = _Partition()
                self._partitions[camera_id] = part
            return part

    def _partitions_snapshot(self) -> Dict[str, _Partition]:
        with self._registry_lock:
            return dict(self._partitions)

    def push(self, frame: Frame) -> bool:
        """Append a frame to its camera's queue.

        Returns
        -------
        bool
            False if the frame was rejected as out of order.
        """
        part = self._partition(frame.camera_id, create=True)
        with part.lock:
            if part.frames and frame.timestamp <= part.frames[-1].timestamp:
                part.n_rejected += 1
                logger.warning(
                    "Camera %s: rejected frame %s, timestamp %.3f not after %.3f",
                    frame.camera_id, frame.frame_id, frame.timestamp,
                    part.frames[-1].timestamp,
                )
                return False
            if len(part.frames) >= self.capacity:
                dropped = part.frames.popleft()
                part.n_dropped += 1
                logger.warning(
                    "Camera %s: reconstruction buffer full (%d), dropped frame %s",
                    frame.camera_id, self.capacity, dropped.frame_id,
                )
            part.frames.append(frame)
            return True

    def ready_ids(self) -> List[str]:
        """Camera ids holding at least ``n_frames`` frames, sorted."""
        ready = []
        for cam_id, part in self._partitions_snapshot().items():
            with part.lock:
                if len(part.frames) >= self.n_frames:
                    ready.append(cam_id)
        return sorted(ready)

    def select(self, policy: SelectionPolicy) -> Optional[str]:
        """Pick the next camera id to reconstruct, or None if none is ready.

        ``LOWEST_ID`` takes the smallest ready id. ``EARLIEST_TIMESTAMP``
        takes the id whose oldest frame is oldest; ties go to the smaller id.
        """
        ready = self.ready_ids()
        if not ready:
            return None
        if policy is SelectionPolicy.LOWEST_ID:
            return ready[0]

        best_id, best_ts = None, None
        for cam_id in ready:
            part = self._partition(cam_id)
            with part.lock:
                if not part.frames:
                    continue
                ts = part.frames[0].timestamp
            if best_ts is None or ts < best_ts:
                best_id, best_ts = cam_id, ts
        return best_id

    def window(self, camera_id: str, n: Optional[int] = None) -> List[Frame]:
        """Snapshot of the oldest ``n`` frames of a camera (default ``n_frames``)."""
        n = self.n_frames if n is None else n
        part = self._partition(camera_id)
        if part is None:
            return []
        with part.lock:
            return list(part.frames)[:n]

    def pop_oldest(
        self, camera_id: str, expected: Optional[Frame] = None
    ) -> Optional[Frame]:
        """Remove and return the oldest frame of a camera.

        With ``expected`` given, only pop when that frame is still the
        oldest one; otherwise return None and leave the queue untouched.
        """
        part = self._partition(camera_id)
        if part is None:
            return None
        with part.lock:
            if not part.frames:
                return None
            if expected is not None and part.frames[0] is not expected:
                return None
            return part.frames.popleft()

    def size(self, camera_id: str) -> int:
        part = self._partition(camera_id)
        if part is None:
            return 0
        with part.lock:
            return len(part.frames)

    def camera_ids(self) -> List[str]:
        return sorted(self._partitions_snapshot())

    def __contains__(self, frame: Frame) -> bool:
        part = self._partition(frame.camera_id)
        if part is None:
            return False
        with part.lock:
            return any(f is frame for f in part.frames)

    def __len__(self) -> int:
        return sum(self.size(cam_id) for cam_id in self.camera_ids())

    def dropped(self, camera_id: Optional[str] = None) -> int:
        """Frames dropped on overflow, for one camera or in total."""
        if camera_id is not None:
            part = self._partition(camera_id)
            return part.n_dropped if part is not None else 0
        return sum(p.n_dropped for p in self._partitions_snapshot().values())

    def rejected(self, camera_id: Optional[str] = None) -> int:
        """Frames rejected as out of order, for one camera or in total."""
        if camera_id is not None:
            part = self._partition(camera_id)
            return part.n_rejected if part is not None else 0
        return sum(p.n_rejected for p in self._partitions_snapshot().values())

    @property
    def n_dropped(self) -> int:
        return self.dropped()

    @property
    def n_rejected(self) -> int:
        return self.rejected()

    def reset(self) -> None:
        """Empty every partition. Counters are kept."""
        for part in self._partitions_snapshot().values():
            with part.lock:
                part.frames.clear()


class PassThroughBuffer:
    """Bounded FIFO for frames published without reconstruction.

    Parameters
    ----------
    capacity : int
        Maximum number of buffered frames; the oldest is dropped on
        overflow.
    """

    def __init__(self, capacity: int = 64) -> None:
        if capacity < 1:
            raise ValidationError(f"capacity must be >= 1, got {capacity}")
        self.capacity = int(capacity)
        self._frames: Deque[Frame] = deque()
        self._lock = threading.Lock()
        self.n_dropped = 0

    def push(self, frame: Frame) -> None:
        with self._lock:
            if len(self._frames) >= self.capacity:
                dropped = self._frames.popleft()
                self.n_dropped += 1
                logger.warning(
                    "Pass-through buffer full (%d), dropped frame %s",
                    self.capacity, dropped.frame_id,
                )
            self._frames.append(frame)

    def drain(self) -> List[Frame]:
        """Remove and return all buffered frames, oldest first."""
        with self._lock:
            frames = list(self._frames)
            self._frames.clear()
        return frames

    def __contains__(self, frame: Frame) -> bool:
        with self._lock:
            return any(f is frame for f in self._frames)

    def __len__(self) -> int:
        with self._lock:
            return len(self._frames)

    def reset(self) -> None:
        with self._lock:
            self._frames.clear()
