# -*- coding: utf-8 -*-
"""
uavmap Exception Hierarchy - Domain-specific exceptions for mapping stages.

Provides a small exception hierarchy that lets pipeline owners catch uavmap
errors distinctly from Python built-in exceptions. All uavmap exceptions
subclass both ``UavmapError`` and the appropriate built-in exception so
existing ``except ValueError`` handlers keep working.

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
2026-10-02

Modified
--------
2026-10-09
"""


class UavmapError(Exception):
    """Base exception for all uavmap errors."""


class ValidationError(UavmapError, ValueError):
    """Invalid input data, parameters, or configuration.

    Raised for malformed camera intrinsics, grid layers with mismatched
    dimensions, non-positive ground sampling distances, unknown settings
    keys, and other input validation failures.
    """


class ProcessorError(UavmapError, RuntimeError):
    """Algorithm or processing failure during apply().

    Raised when a processor encounters a non-recoverable error
    during execution (not an input validation issue).
    """


class DependencyError(UavmapError, ImportError):
    """Missing optional dependency or unknown backend.

    Raised when a module requires an optional package (opencv, Pillow,
    rasterio) that is not installed, or when a densifier backend is
    requested that is not registered.
    """


class ReconstructionError(UavmapError, RuntimeError):
    """Dense reconstruction failure inside a densifier backend.

    Raised when the baseline between frames is insufficient or matching
    produced no usable depth. Stages treat it as recoverable: the cycle
    ends without output and the oldest frame is discarded.
    """


class ProjectionError(UavmapError, RuntimeError):
    """Camera projection or geometry failure.

    Raised only where a geometric degeneracy cannot be expressed by
    marking grid cells or pixels invalid.
    """
