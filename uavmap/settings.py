# -*- coding: utf-8 -*-
"""
Settings - Immutable stage and densifier configuration.

Settings are frozen dataclasses built once (in code or from YAML) and handed
to stage constructors. Stages never mutate them. ``load_*`` helpers read
YAML files, reject unknown keys and validate every value so configuration
errors surface at construction time rather than mid-loop.

Example YAML for the densification stage::

    use_filter_bilat: true
    use_sparse_mask: true
    use_consistency_filter: true
    consistency_window: 2
    consistency_tolerance: 0.5
    min_depth: 5.0
    max_depth: 500.0
    selection_policy: earliest_timestamp
    save:
      save_dense: true
      save_thumb: true

and for the densifier::

    type: PLANE_SWEEP
    n_frames: 3
    n_planes: 64
    patch_size: 5

Dependencies
------------
PyYAML

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
2026-10-04

Modified
--------
2026-10-13
"""

# Standard library
import dataclasses
import logging
from dataclasses import dataclass, field
from pathlib import Path
from typing import Any, Dict, Mapping, Union

# Third-party
import yaml

# uavmap internal
from uavmap.exceptions import ValidationError
from uavmap.vocabulary import DensifierType, SelectionPolicy

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SaveSettings:
    """Which intermediate artefacts the densification stage persists.

    ``save_guided`` is accepted for configuration compatibility; guided
    filtering is not implemented so nothing is written for it.
    """

    save_bilat: bool = False
    save_dense: bool = False
    save_guided: bool = False
    save_imgs: bool = False
    save_sparse: bool = False
    save_thumb: bool = False
    save_normals: bool = False

    def any(self) -> bool:
        return any(dataclasses.astuple(self))


@dataclass(frozen=True)
class DensificationSettings:
    """Processing options of the densification stage.

    Attributes
    ----------
    use_filter_bilat : bool
        Apply bilateral smoothing to the clipped depth map.
    use_filter_guided : bool
        Accepted but ignored: guided filtering is a declared extension
        point without implementation.
    compute_normals : bool
        Compute a normal map from the accepted depth map.
    use_sparse_mask : bool
        Mask depth outside the convex hull of the sparse points.
    use_consistency_filter : bool
        Confirm depth across consecutive estimates before publishing.
    consistency_window : int
        Number of depth maps compared by the consistency filter (>= 1).
    consistency_tolerance : float
        Maximum absolute depth disagreement for a cell to be confirmed.
    min_depth, max_depth : float
        Absolute accepted depth range.
    depth_margin : float
        Relative widening of the sparse-point depth range per cycle.
    bilateral_diameter, bilateral_sigma_color, bilateral_sigma_space
        Bilateral filter parameters.
    selection_policy : SelectionPolicy
        Which ready camera id is reconstructed first.
    buffer_capacity : int
        Per-camera reconstruction buffer bound; 0 means ``n_frames + 1``.
    thumbnail_scale : float
        Scale of saved depth thumbnails.
    save : SaveSettings
        Artefact persistence flags.
    """

    use_filter_bilat: bool = False
    use_filter_guided: bool = False
    compute_normals: bool = False
    use_sparse_mask: bool = False
    use_consistency_filter: bool = False
    consistency_window: int = 2
    consistency_tolerance: float = 0.5
    min_depth: float = 0.1
    max_depth: float = 1000.0
    depth_margin: float = 0.25
    bilateral_diameter: int = 5
    bilateral_sigma_color: float = 1.0
    bilateral_sigma_space: float = 3.0
    selection_policy: SelectionPolicy = SelectionPolicy.EARLIEST_TIMESTAMP
    buffer_capacity: int = 0
    thumbnail_scale: float = 0.25
    save: SaveSettings = field(default_factory=SaveSettings)

    def __post_init__(self) -> None:
        if isinstance(self.selection_policy, str):
            object.__setattr__(
                self, 'selection_policy', _enum(SelectionPolicy, self.selection_policy)
            )
        if isinstance(self.save, Mapping):
            object.__setattr__(self, 'save', _build(SaveSettings, self.save))
        if not 0 < self.min_depth <= self.max_depth:
            raise ValidationError(
                f"Depth range must satisfy 0 < min_depth <= max_depth, got "
                f"[{self.min_depth}, {self.max_depth}]"
            )
        if self.consistency_window < 1:
            raise ValidationError(
                f"consistency_window must be >= 1, got {self.consistency_window}"
            )
        if self.consistency_tolerance <= 0:
            raise ValidationError(
                f"consistency_tolerance must be positive, got "
                f"{self.consistency_tolerance}"
            )
        if self.depth_margin < 0:
            raise ValidationError(f"depth_margin must be >= 0, got {self.depth_margin}")
        if self.buffer_capacity < 0:
            raise ValidationError(
                f"buffer_capacity must be >= 0, got {self.buffer_capacity}"
            )
        if not 0 < self.thumbnail_scale <= 1:
            raise ValidationError(
                f"thumbnail_scale must be in (0, 1], got {self.thumbnail_scale}"
            )


@dataclass(frozen=True)
class DensifierSettings:
    """Densifier backend selection and parameters.

    Attributes
    ----------
    type : DensifierType
        Backend key for the densifier factory.
    n_frames : int
        Frames per reconstruction window (>= 1; plane sweep needs >= 2).
    n_planes : int
        Depth hypotheses of the plane sweep.
    patch_size : int
        Odd cost aggregation window of the plane sweep.
    min_baseline : float
        Smallest accepted camera baseline (metres) for stereo matching.
    uniqueness_ratio : float
        Plane sweep cells whose best cost is not clearly below the mean
        cost (``best < ratio * mean``) are invalidated.
    """

    type: DensifierType = DensifierType.PLANAR
    n_frames: int = 1
    n_planes: int = 64
    patch_size: int = 5
    min_baseline: float = 0.5
    uniqueness_ratio: float = 0.8

    def __post_init__(self) -> None:
        # Unknown backend names are kept as strings and rejected by the factory
        if isinstance(self.type, str):
            try:
                object.__setattr__(self, 'type', _enum(DensifierType, self.type))
            except ValidationError:
                object.__setattr__(self, 'type', self.type.upper())
        if self.n_frames < 1:
            raise ValidationError(f"n_frames must be >= 1, got {self.n_frames}")
        if self.n_planes < 2:
            raise ValidationError(f"n_planes must be >= 2, got {self.n_planes}")
        if self.patch_size < 1 or self.patch_size % 2 == 0:
            raise ValidationError(
                f"patch_size must be a positive odd integer, got {self.patch_size}"
            )
        if self.min_baseline < 0:
            raise ValidationError(f"min_baseline must be >= 0, got {self.min_baseline}")
        if not 0 < self.uniqueness_ratio <= 1:
            raise ValidationError(
                f"uniqueness_ratio must be in (0, 1], got {self.uniqueness_ratio}"
            )


def settings_to_dict(settings: Any) -> Dict[str, Any]:
    """Plain dict view of a settings dataclass, enums as their values."""
    out: Dict[str, Any] = {}
    for f in dataclasses.fields(settings):
        value = getattr(settings, f.name)
        if dataclasses.is_dataclass(value):
            value = settings_to_dict(value)
        elif hasattr(value, 'value'):
            value = value.value
        out[f.name] = value
    return out


def _enum(enum_cls, value: str):
    for member in enum_cls:
        if value == member.value or value.upper() == member.name:
            return member
    raise ValidationError(
        f"Unknown {enum_cls.__name__} {value!r}; expected one of "
        f"{[m.value for m in enum_cls]}"
    )


def _build(cls, data: Mapping[str, Any]):
    known = {f.name for f in dataclasses.fields(cls)}
    unknown = set(data) - known
    if unknown:
        raise ValidationError(
            f"Unknown {cls.__name__} keys: {', '.join(sorted(unknown))}"
        )
    try:
        return cls(**data)
    except TypeError as e:
        raise ValidationError(f"Invalid {cls.__name__}: {e}") from e


def _load_yaml(path: Union[str, Path]) -> Dict[str, Any]:
    path = Path(path)
    if not path.exists():
        raise FileNotFoundError(f"Settings file not found: {path}")
    with open(path) as f:
        data = yaml.safe_load(f) or {}
    if not isinstance(data, dict):
        raise ValidationError(f"Settings file {path} must contain a mapping")
    logger.info("Loaded settings from %s", path)
    return data


def load_densification_settings(path: Union[str, Path]) -> DensificationSettings:
    """Read ``DensificationSettings`` from a YAML file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValidationError
        On unknown keys or invalid values.
    """
    return _build(DensificationSettings, _load_yaml(path))


def load_densifier_settings(path: Union[str, Path]) -> DensifierSettings:
    """Read ``DensifierSettings`` from a YAML file.

    Raises
    ------
    FileNotFoundError
        If the file does not exist.
    ValidationError
        On unknown keys or invalid values.
    """
    return _build(DensifierSettings, _load_yaml(path))
