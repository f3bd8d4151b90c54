# -*- coding: utf-8 -*-
"""
Stages Module - Threaded pipeline stages of the mapping chain.

Sub-modules
-----------
base.py
    ``StageBase`` lifecycle contract and worker loop.
buffer.py
    ``ReconstructionBuffer`` (per-camera) and ``PassThroughBuffer``.
densification.py
    ``DensificationStage`` dense depth estimation.
ortho_rectification.py
    ``OrthoRectificationStage`` per-frame orthophotos.
sinks.py
    ``DensificationSaver`` and ``GridMapSaver`` file outputs.

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
2026-10-12
"""

from uavmap.stages.base import StageBase
from uavmap.stages.buffer import PassThroughBuffer, ReconstructionBuffer
from uavmap.stages.densification import DensificationStage
from uavmap.stages.ortho_rectification import OrthoRectificationStage
from uavmap.stages.sinks import DensificationSaver, GridMapSaver

__all__ = [
    'StageBase',
    'PassThroughBuffer',
    'ReconstructionBuffer',
    'DensificationStage',
    'OrthoRectificationStage',
    'DensificationSaver',
    'GridMapSaver',
]
