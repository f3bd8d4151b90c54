# -*- coding: utf-8 -*-
"""
Processor Base Classes - Abstract interfaces for depth and image processors.

Defines ``ImageProcessor``, the common base of every array processor in
uavmap, and the ``ImageTransform`` ABC for dense raster transforms (depth
range clipping, edge-preserving filters, normal estimation). Subclasses
declare tunable parameters as ``typing.Annotated`` class-body fields; they
are collected into ``__param_specs__``, validated on construction and may be
overridden per call through ``**kwargs``.

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
2026-10-04

Modified
--------
2026-10-10
"""

# Standard library
import logging
import warnings
from abc import ABC, abstractmethod
from typing import Any, Dict, Tuple

# Third-party
import numpy as np

# uavmap internal
from uavmap.processing.params import ParamSpec, collect_param_specs

logger = logging.getLogger(__name__)


class ImageProcessor(ABC):
    """Common base class for all processors.

    **Version checking**: concrete subclasses without
    ``@processor_version('x.y.z')`` trigger a ``UserWarning`` at first
    instantiation.

    **Tunable parameters**: ``Annotated`` fields carrying ``Range``,
    ``Options`` or ``Desc`` markers become ``__param_specs__``. Call
    ``_validate_params()`` at the end of ``__init__`` and
    ``_resolve_params(kwargs)`` inside ``apply()`` to merge per-call
    overrides.
    """

    _version_warned_classes: set = set()

    __param_specs__: Tuple[ParamSpec, ...] = ()

    def __init_subclass__(cls, **kwargs: Any) -> None:
        super().__init_subclass__(**kwargs)
        cls.__param_specs__ = collect_param_specs(cls)

    def __new__(cls, *args: Any, **kwargs: Any) -> 'ImageProcessor':
        if cls not in ImageProcessor._version_warned_classes:
            ImageProcessor._version_warned_classes.add(cls)
            if (
                not getattr(cls, '__processor_version__', None)
                and not getattr(cls, '__abstractmethods__', None)
            ):
                warnings.warn(
                    f"{cls.__qualname__} does not declare a processor version. "
                    f"Use @processor_version('x.y.z') to declare one.",
                    UserWarning,
                    stacklevel=2,
                )
        logger.debug("Instantiating %s", cls.__qualname__)
        return super().__new__(cls)

    def _validate_params(self) -> None:
        """Validate the current instance value of every declared parameter.

        Raises
        ------
        ValidationError
            If any value violates its declared constraints.
        """
        for spec in type(self).__param_specs__:
            spec.validate(getattr(self, spec.name))

    def _resolve_params(self, kwargs: Dict[str, Any]) -> Dict[str, Any]:
        """Merge instance values with per-call overrides from ``kwargs``.

        Keys in ``kwargs`` that are not declared parameters are ignored.

        Returns
        -------
        Dict[str, Any]
            ``{name: value}`` for every declared parameter, validated.
        """
        resolved: Dict[str, Any] = {}
        for spec in type(self).__param_specs__:
            value = kwargs.get(spec.name, getattr(self, spec.name))
            spec.validate(value)
            resolved[spec.name] = value
        return resolved

    def params(self) -> Dict[str, Any]:
        """Current parameter values, for logging."""
        return {s.name: getattr(self, s.name) for s in type(self).__param_specs__}


class ImageTransform(ImageProcessor):
    """Abstract base class for dense raster transforms.

    Subclasses implement ``apply`` which maps an input array to an output
    array of the same grid shape.
    """

    @abstractmethod
    def apply(self, source: np.ndarray, **kwargs: Any) -> np.ndarray:
        """Apply the transform to a source array.

        Parameters
        ----------
        source : np.ndarray
            Input array, typically a ``(rows, cols)`` depth map.

        Returns
        -------
        np.ndarray
            Transformed array.
        """
        ...
