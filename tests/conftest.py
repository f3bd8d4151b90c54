# -*- coding: utf-8 -*-
"""
Shared fixtures - Synthetic cameras, frames and surface grids.

Cameras use identity rotation (optical axis along world +z) with the
projection centre ``altitude`` metres below the z = 0 ground plane, so the
ground depth of every pixel is exactly ``altitude`` and pixel ``(u, v)``
sees world ``(x0 + (u - cx) * h / f, y0 + (v - cy) * h / f, 0)``.

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
2026-10-13

Modified
--------
2026-10-16
"""

import numpy as np
import pytest

from uavmap.core.camera import PinholeCamera
from uavmap.core.frame import Frame
from uavmap.core.grid_map import CvGridMap, Roi
from uavmap.vocabulary import GridLayer

ROWS, COLS = 48, 64
FOCAL = 50.0
ALTITUDE = 100.0


def make_camera(x0=0.0, y0=0.0, altitude=ALTITUDE, rows=ROWS, cols=COLS, f=FOCAL):
    return PinholeCamera(
        fx=f, fy=f, cx=(cols - 1) / 2.0, cy=(rows - 1) / 2.0,
        width=cols, height=rows,
        R=np.eye(3), t=np.array([x0, y0, -altitude]),
    )


def make_frame(frame_id=0, camera_id='uav0', timestamp=None, camera=None,
               image=None, sparse_points=None, surface=None, is_elevated=False):
    camera = camera if camera is not None else make_camera()
    if image is None:
        rng = np.random.default_rng(frame_id)
        image = rng.integers(0, 256, camera.shape + (3,), dtype=np.uint8)
    return Frame(
        camera_id=camera_id,
        frame_id=frame_id,
        timestamp=float(frame_id) if timestamp is None else timestamp,
        image=image,
        camera=camera,
        sparse_points=sparse_points,
        surface=surface,
        is_elevated=is_elevated,
    )


def make_surface(x=-20.0, y=-15.0, width=40.0, height=30.0, gsd=1.0, elevation=None):
    grid = CvGridMap(Roi(x, y, width, height), gsd)
    elev = np.zeros(grid.size, dtype=np.float32) if elevation is None else elevation
    grid.add(GridLayer.ELEVATION, elev)
    grid.add(GridLayer.VALID, np.ones(grid.size, dtype=bool))
    return grid


@pytest.fixture
def camera():
    return make_camera()


@pytest.fixture
def frame(camera):
    return make_frame(camera=camera)


@pytest.fixture
def surface():
    return make_surface()


@pytest.fixture
def ground_points():
    """Sparse ground points spread over the camera footprint."""
    xs, ys = np.meshgrid(np.linspace(-40, 40, 5), np.linspace(-30, 30, 4))
    return np.column_stack([xs.ravel(), ys.ravel(), np.zeros(xs.size)])
