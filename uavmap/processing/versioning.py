# -*- coding: utf-8 -*-
"""
Processor Versioning - Version and capability tag decorators.

Provides ``@processor_version`` for stamping a semantic version on processor
classes and ``@processor_tags`` for attaching category and description
metadata that downstream tooling uses to list available processors.

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
2026-10-04
"""

# Standard library
import importlib.metadata
from typing import Optional, Type, TypeVar

# uavmap internal
from uavmap.vocabulary import ProcessorCategory

T = TypeVar('T')


def processor_version(version: Optional[str] = None):
    """Class decorator that stamps ``__processor_version__``.

    Parameters
    ----------
    version : str, optional
        Semantic version string (e.g. ``'1.0.0'``). When omitted, the
        installed ``uavmap`` distribution version is used, or
        ``'unknown'`` when the package is not installed.

    Examples
    --------
    >>> @processor_version('1.0.0')
    ... class Identity(ImageTransform):
    ...     def apply(self, source, **kwargs):
    ...         return source
    >>> Identity.__processor_version__
    '1.0.0'
    """
    def decorator(cls: Type[T]) -> Type[T]:
        if version:
            cls.__processor_version__ = version
        else:
            try:
                cls.__processor_version__ = importlib.metadata.version('uavmap')
            except importlib.metadata.PackageNotFoundError:
                cls.__processor_version__ = "unknown"
        return cls
    return decorator


def processor_tags(
    category: Optional[ProcessorCategory] = None,
    description: Optional[str] = None,
):
    """Class decorator for processor capability metadata.

    Stamps ``__processor_tags__`` as a dict with ``'category'`` and
    ``'description'`` keys.

    Raises
    ------
    TypeError
        If ``category`` is not a ``ProcessorCategory``.
    """
    if category is not None and not isinstance(category, ProcessorCategory):
        raise TypeError(
            f"category must be a ProcessorCategory, got {type(category).__name__}"
        )

    def decorator(cls: Type[T]) -> Type[T]:
        cls.__processor_tags__ = {
            'category': category,
            'description': description,
        }
        return cls
    return decorator
