# -*- coding: utf-8 -*-
"""
IO Base Classes - Abstract interface for raster and array writers.

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
2026-10-09

Modified
--------
2026-10-09
"""

# Standard library
from abc import ABC, abstractmethod
from pathlib import Path
from typing import Any, Dict, Optional, Union

# Third-party
import numpy as np


class ImageWriter(ABC):
    """
    Abstract base class for all output writers.

    Attributes
    ----------
    filepath : Path
        Path where the data will be written.
    metadata : Dict[str, Any]
        Metadata recorded with the output where the format allows it.
    """

    def __init__(
        self,
        filepath: Union[str, Path],
        metadata: Optional[Dict[str, Any]] = None
    ) -> None:
        self.filepath = Path(filepath)
        self.metadata = dict(metadata or {})

    @abstractmethod
    def write(
        self,
        data: np.ndarray,
        geolocation: Optional[Dict[str, Any]] = None
    ) -> None:
        """
        Write array data to file.

        Parameters
        ----------
        data : np.ndarray
            Data to write.
        geolocation : Optional[Dict[str, Any]], default=None
            Georeferencing (``crs``, ``transform``) for formats that
            support it.

        Raises
        ------
        ValueError
            If the data layout is incompatible with the output format.
        """
        pass

    def close(self) -> None:
        """Release resources. Default implementation does nothing."""
        pass

    def __enter__(self):
        return self

    def __exit__(self, exc_type, exc_val, exc_tb):
        self.close()
        return False
