# -*- coding: utf-8 -*-
"""
Densifier Base Class - Capability interface for dense depth reconstruction.

A densifier turns a short window of posed frames of one camera into a dense
depth map for a reference frame of that window. Backends are selected from
``DensifierSettings`` by :func:`uavmap.densifier.create_densifier`; the
densification stage only ever talks to this interface.

Failure contract: ``densify`` returns None, or raises
``ReconstructionError``, when no depth map can be produced. Both are
treated by the stage as a recoverable per-cycle failure.

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
2026-10-12
"""

# Standard library
import logging
from abc import ABC, abstractmethod
from typing import Optional, Sequence, Tuple

# uavmap internal
from uavmap.core.depthmap import Depthmap, Plane
from uavmap.core.frame import Frame
from uavmap.exceptions import ValidationError
from uavmap.settings import DensifierSettings, settings_to_dict

logger = logging.getLogger(__name__)


class Densifier(ABC):
    """Abstract dense depth reconstruction backend.

    Parameters
    ----------
    settings : DensifierSettings
        Backend configuration.
    """

    def __init__(self, settings: DensifierSettings) -> None:
        self._settings = settings

    @property
    def settings(self) -> DensifierSettings:
        return self._settings

    @property
    def n_input_frames(self) -> int:
        """Number of frames ``densify`` expects per call."""
        return self._settings.n_frames

    @abstractmethod
    def densify(
        self,
        frames: Sequence[Frame],
        reference_index: int = 0,
        plane: Optional[Plane] = None,
        depth_range: Optional[Tuple[float, float]] = None,
    ) -> Optional[Depthmap]:
        """Reconstruct a dense depth map for ``frames[reference_index]``.

        Parameters
        ----------
        frames : Sequence[Frame]
            ``n_input_frames`` frames of one camera, oldest first.
        reference_index : int
            Index of the frame the depth map is computed for.
        plane : Plane, optional
            Reference plane assumed when no elevation is known.
        depth_range : Tuple[float, float], optional
            ``(min_depth, max_depth)`` search range.

        Returns
        -------
        Depthmap or None
            Depth map for the reference frame, None on failure.

        Raises
        ------
        ReconstructionError
            On a matching failure the backend cannot express as None.
        """
        ...

    def _check_window(self, frames: Sequence[Frame], reference_index: int) -> None:
        if len(frames) != self.n_input_frames:
            raise ValidationError(
                f"{type(self).__name__} expects {self.n_input_frames} frames, "
                f"got {len(frames)}"
            )
        if not 0 <= reference_index < len(frames):
            raise ValidationError(
                f"reference_index {reference_index} out of range for "
                f"{len(frames)} frames"
            )
        ids = {f.camera_id for f in frames}
        if len(ids) > 1:
            raise ValidationError(
                f"Reconstruction window mixes camera ids {sorted(ids)}"
            )

    def print_settings_to_log(self) -> None:
        logger.info("Densifier %s settings:", type(self).__name__)
        for key, value in settings_to_dict(self._settings).items():
            logger.info("  %s: %s", key, value)
