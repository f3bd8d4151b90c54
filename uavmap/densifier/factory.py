# -*- coding: utf-8 -*-
"""
Densifier Factory - Create densifier backends from settings.

Backends are registered as ``(module, class)`` pairs and imported lazily
so that optional dependencies of one backend are only needed when that
backend is configured.

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
import importlib
import logging
from typing import Dict, Tuple

# uavmap internal
from uavmap.densifier.base import Densifier
from uavmap.exceptions import DependencyError
from uavmap.settings import DensifierSettings

logger = logging.getLogger(__name__)

_DENSIFIER_REGISTRY: Dict[str, Tuple[str, str]] = {
    'PLANAR': ('uavmap.densifier.planar', 'PlanarDensifier'),
    'PLANE_SWEEP': ('uavmap.densifier.plane_sweep', 'PlaneSweepDensifier'),
}


def available_densifiers() -> Tuple[str, ...]:
    return tuple(sorted(_DENSIFIER_REGISTRY))


def create_densifier(settings: DensifierSettings) -> Densifier:
    """Instantiate the backend named by ``settings.type``.

    Parameters
    ----------
    settings : DensifierSettings
        Backend selection and parameters.

    Returns
    -------
    Densifier
        Ready-to-use backend.

    Raises
    ------
    DependencyError
        If the type is unknown or its backend cannot be imported.

    Examples
    --------
    >>> densifier = create_densifier(DensifierSettings(type='PLANAR'))
    >>> densifier.n_input_frames
    1
    """
    key = getattr(settings.type, 'name', str(settings.type)).upper()
    if key not in _DENSIFIER_REGISTRY:
        raise DependencyError(
            f"Unknown densifier type: {settings.type!r}. "
            f"Available: {list(available_densifiers())}"
        )
    module_path, class_name = _DENSIFIER_REGISTRY[key]
    try:
        module = importlib.import_module(module_path)
    except ImportError as e:
        raise DependencyError(
            f"Densifier backend {key} could not be imported: {e}"
        ) from e
    densifier = getattr(module, class_name)(settings)
    logger.info("Created densifier %s (n_frames=%d)", class_name, settings.n_frames)
    return densifier
