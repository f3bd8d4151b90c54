# -*- coding: utf-8 -*-
"""
Tests for uavmap.stages - densification and ortho rectification stages.

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
2026-10-15

Modified
--------
2026-10-18
"""

import json
import threading

import numpy as np
import pytest

from uavmap.core.depthmap import INVALID_DEPTH, Depthmap
from uavmap.densifier import Densifier, PlanarDensifier
from uavmap.exceptions import ReconstructionError, ValidationError
from uavmap.ortho import INTERPOLATION_ORDERS
from uavmap.settings import DensificationSettings, DensifierSettings, SaveSettings
from uavmap.stages import (
    DensificationSaver,
    DensificationStage,
    OrthoRectificationStage,
)
from uavmap.vocabulary import GridLayer

from conftest import ALTITUDE, FOCAL, make_camera, make_frame, make_surface


class ScriptedDensifier(Densifier):
    """Returns a fixed depth array for the reference frame."""

    def __init__(self, n_frames=1, depth=None, fail=False, error=False):
        super().__init__(DensifierSettings(n_frames=n_frames))
        self.depth = depth
        self.fail = fail
        self.error = error
        self.calls = []

    def densify(self, frames, reference_index=0, plane=None, depth_range=None):
        self.calls.append((list(frames), reference_index, depth_range))
        if self.error:
            raise ReconstructionError("no texture")
        if self.fail:
            return None
        ref = frames[reference_index]
        data = self.depth if self.depth is not None else np.full(ref.camera.shape, ALTITUDE)
        return Depthmap(data, ref.camera)


class Collector:

    def __init__(self):
        self.items = []
        self.event = threading.Event()

    def __call__(self, *payload):
        self.items.append(payload)
        self.event.set()


def _stage(densifier=None, use_reconstruction=True, **settings):
    settings.setdefault('use_filter_bilat', False)
    return DensificationStage(
        DensificationSettings(**settings),
        DensifierSettings(),
        rate=100.0,
        use_reconstruction=use_reconstruction,
        densifier=densifier,
    )


def _triangle_points(camera):
    """World ground points projecting to pixels (10,10), (50,10), (10,40)."""
    pix = np.array([[10.0, 10.0], [50.0, 10.0], [10.0, 40.0]])
    scale = ALTITUDE / FOCAL
    x = (pix[:, 0] - camera.cx) * scale
    y = (pix[:, 1] - camera.cy) * scale
    return np.column_stack([x, y, np.zeros(3)])


# ---------------------------------------------------------------------------
# DensificationStage
# ---------------------------------------------------------------------------

class TestDensificationStage:

    def test_default_densifier_from_settings(self):
        """Without an injected backend the factory builds one."""
        stage = DensificationStage(
            DensificationSettings(), DensifierSettings(type='PLANAR'), rate=10.0,
        )
        assert isinstance(stage.densifier, PlanarDensifier)
        assert stage.n_frames == 1

    def test_rate_validated(self):
        """Non-positive rate raises ValidationError."""
        with pytest.raises(ValidationError):
            DensificationStage(DensificationSettings(), DensifierSettings(), rate=0.0)

    def test_passthrough_without_reconstruction(self, camera):
        """With reconstruction disabled frames bypass the densifier."""
        densifier = ScriptedDensifier()
        stage = _stage(densifier, use_reconstruction=False)
        out = Collector()
        stage.register_output(out)
        frame = make_frame(0, camera=camera)
        stage.add_frame(frame)

        assert frame in stage.passthrough_buffer
        assert frame not in stage.reconstruction_buffer
        assert len(stage.reconstruction_buffer) == 0

        assert stage.process() is False
        assert densifier.calls == []
        assert out.items == [(frame, None)]
        assert len(stage.passthrough_buffer) == 0
        assert stage.n_published == 1
        assert stage.n_failures == 0

    def test_passthrough_keeps_existing_depth(self, camera):
        """Pass-through frames publish the depth map they carry."""
        stage = _stage(ScriptedDensifier(), use_reconstruction=False)
        out = Collector()
        stage.register_output(out)
        frame = make_frame(0, camera=camera)
        depth = Depthmap(np.full(camera.shape, 42.0), camera)
        frame.set_depthmap(depth)
        stage.add_frame(frame)
        stage.process()
        assert out.items[0][1] is depth

    def test_buffer_bound(self, camera):
        """The per-camera buffer never exceeds n_frames + 1."""
        stage = _stage(ScriptedDensifier(n_frames=3))
        for i in range(10):
            stage.add_frame(make_frame(i, camera=camera))
            assert stage.reconstruction_buffer.size('uav0') <= 4
        assert stage.n_frames_received == 10
        assert stage.n_dropped == 6

    def test_idle(self):
        """process returns False when nothing is ready."""
        stage = _stage(ScriptedDensifier(n_frames=2))
        assert stage.process() is False
        stage.add_frame(make_frame(0))
        assert stage.process() is False

    def test_three_frame_window(self, camera):
        """Output equals the raw depth clipped to the configured range."""
        rng = np.random.default_rng(5)
        raw = rng.uniform(0.0, 200.0, camera.shape).astype(np.float32)
        densifier = ScriptedDensifier(n_frames=3, depth=raw)
        stage = _stage(densifier, min_depth=10.0, max_depth=150.0)
        out = Collector()
        stage.register_output(out)
        frames = [make_frame(i, camera=camera) for i in range(3)]
        for f in frames:
            stage.add_frame(f)

        assert stage.process() is True
        window, ref_index, depth_range = densifier.calls[0]
        assert window == frames
        assert ref_index == 0
        assert depth_range == (10.0, 150.0)

        assert len(out.items) == 1
        frame, depth = out.items[0]
        assert frame is frames[0]
        assert frame.depthmap is depth
        expected = np.where((raw >= 10.0) & (raw <= 150.0), raw, np.float32(INVALID_DEPTH))
        np.testing.assert_array_equal(depth.data, expected)

        assert stage.reconstruction_buffer.size('uav0') == 2
        assert stage.n_reconstructions == 1
        assert stage.process() is False

    def test_sparse_hull_scenario(self, camera):
        """Cells outside the sparse point hull are invalid."""
        stage = _stage(PlanarDensifier(DensifierSettings()), use_sparse_mask=True)
        out = Collector()
        stage.register_output(out)
        stage.add_frame(make_frame(0, camera=camera,
                                   sparse_points=_triangle_points(camera)))
        assert stage.process() is True
        depth = out.items[0][1].data

        vv, uu = np.mgrid[0:camera.height, 0:camera.width].astype(np.float64)
        eps = 1e-6
        outside = (
            (uu < 10.0 - eps) | (vv < 10.0 - eps) |
            ((uu - 10.0) / 40.0 + (vv - 10.0) / 30.0 > 1.0 + eps)
        )
        assert np.all(depth[outside] == INVALID_DEPTH)
        assert depth[15, 15] == pytest.approx(ALTITUDE, rel=1e-5)

    def test_depth_range_from_sparse(self, ground_points):
        """Sparse depths widened by the margin bound the search range."""
        stage = _stage(ScriptedDensifier(), depth_margin=0.25)
        frame = make_frame(0, sparse_points=ground_points)
        assert stage.depth_range_for(frame) == pytest.approx((75.0, 125.0))

        stage = _stage(ScriptedDensifier(), depth_margin=0.25, max_depth=110.0)
        assert stage.depth_range_for(frame) == pytest.approx((75.0, 110.0))

    def test_depth_range_disjoint(self, ground_points):
        """Sparse depths outside the configured range fall back to it."""
        stage = _stage(ScriptedDensifier(), min_depth=200.0, max_depth=300.0)
        frame = make_frame(0, sparse_points=ground_points)
        assert stage.depth_range_for(frame) == (200.0, 300.0)

    def test_current_depth_range_tracks_cycle(self, ground_points):
        """The current range follows the last reference frame."""
        stage = _stage(ScriptedDensifier())
        stage.add_frame(make_frame(0, sparse_points=ground_points))
        stage.process()
        assert stage.current_depth_range == pytest.approx((75.0, 125.0))
        stage.reset()
        assert stage.current_depth_range == (0.1, 1000.0)

    def test_densifier_failure(self, camera):
        """A failed densification pops the frame and publishes nothing."""
        stage = _stage(ScriptedDensifier(n_frames=2, fail=True))
        out = Collector()
        stage.register_output(out)
        f0, f1 = make_frame(0, camera=camera), make_frame(1, camera=camera)
        stage.add_frame(f0)
        stage.add_frame(f1)

        assert stage.process() is True
        assert out.items == []
        assert stage.n_failures == 1
        assert f0 not in stage.reconstruction_buffer
        assert f1 in stage.reconstruction_buffer

    def test_reconstruction_error(self, camera):
        """Backend errors count as failures and do not escape."""
        stage = _stage(ScriptedDensifier(error=True))
        stage.add_frame(make_frame(0, camera=camera))
        assert stage.process() is True
        assert stage.n_failures == 1
        assert len(stage.reconstruction_buffer) == 0

    def test_consistency_filter(self, camera):
        """With consistency enabled the oldest estimate is released later."""
        stage = _stage(PlanarDensifier(DensifierSettings()),
                       use_consistency_filter=True, consistency_window=2)
        out = Collector()
        stage.register_output(out)
        f0, f1 = make_frame(0, camera=camera), make_frame(1, camera=camera)
        stage.add_frame(f0)
        assert stage.process() is True
        assert out.items == []
        stage.add_frame(f1)
        assert stage.process() is True

        assert len(out.items) == 1
        frame, depth = out.items[0]
        assert frame is f0
        assert depth.valid_mask().all()

    def test_consistency_per_camera(self, camera):
        """Consistency windows are kept per camera id."""
        stage = _stage(PlanarDensifier(DensifierSettings()),
                       use_consistency_filter=True, consistency_window=2)
        out = Collector()
        stage.register_output(out)
        stage.add_frame(make_frame(0, camera_id='a', camera=camera))
        stage.add_frame(make_frame(0, camera_id='b', camera=camera))
        stage.process()
        stage.process()
        assert out.items == []

    def test_normals_after_consistency(self, camera):
        """Normals of a consistency-filtered depth map skip unconfirmed cells."""
        data = np.full(camera.shape, ALTITUDE)
        stage = _stage(ScriptedDensifier(depth=data), compute_normals=True,
                       use_consistency_filter=True, consistency_window=2,
                       consistency_tolerance=0.5)
        out = Collector()
        stage.register_output(out)
        stage.add_frame(make_frame(0, camera=camera))
        stage.process()
        stage.densifier.depth = data.copy()
        stage.densifier.depth[:, 40:] = ALTITUDE + 5.0
        stage.add_frame(make_frame(1, camera=camera))
        stage.process()

        published = out.items[0][1]
        assert np.all(published.data[:, 40:] == INVALID_DEPTH)
        normals = stage.normals_for(published)
        assert np.all(np.isnan(normals[:, 39:]))
        assert np.all(np.isfinite(normals[1:-1, 1:38]))

    def test_output_callback_errors(self, camera):
        """A failing callback does not stop delivery to the others."""
        stage = _stage(ScriptedDensifier())

        def broken(frame, depth):
            raise RuntimeError("consumer down")

        out = Collector()
        stage.register_output(broken)
        stage.register_output(out)
        stage.add_frame(make_frame(0, camera=camera))
        assert stage.process() is True
        assert len(out.items) == 1

        stage.unregister_output(out)
        stage.add_frame(make_frame(1, camera=camera))
        stage.process()
        assert len(out.items) == 1

    def test_reset(self, camera):
        """Reset empties both buffers."""
        stage = _stage(ScriptedDensifier(n_frames=2))
        stage.add_frame(make_frame(0, camera=camera))
        stage.reset()
        assert len(stage.reconstruction_buffer) == 0
        assert stage.process() is False

    def test_worker(self, camera):
        """The worker thread processes frames until stopped."""
        stage = _stage(ScriptedDensifier())
        out = Collector()
        stage.register_output(out)
        stage.start()
        try:
            assert stage.is_running
            stage.add_frame(make_frame(0, camera=camera))
            assert out.event.wait(timeout=5.0)
        finally:
            stage.stop(timeout=5.0)
        assert not stage.is_running
        assert out.items[0][0].frame_id == 0

    def test_print_settings(self, caplog):
        """Settings are logged."""
        stage = _stage(ScriptedDensifier())
        with caplog.at_level("INFO"):
            stage.print_settings_to_log()
        assert any("min_depth" in r.getMessage() for r in caplog.records)


class TestDensificationSaving:

    @pytest.fixture(autouse=True)
    def _needs_writers(self):
        pytest.importorskip("cv2")
        pytest.importorskip("PIL")

    def test_stage_saves_artefacts(self, tmp_path, camera, ground_points):
        """Enabled save flags produce one file per artefact."""
        save = SaveSettings(save_bilat=True, save_dense=True, save_imgs=True,
                            save_sparse=True, save_thumb=True, save_normals=True)
        stage = _stage(PlanarDensifier(DensifierSettings()),
                       use_filter_bilat=True, compute_normals=True, save=save)
        stage.set_output_directory(tmp_path)
        stage.add_frame(make_frame(7, camera=camera, sparse_points=ground_points))
        assert stage.process() is True

        stem = 'uav0_000007'
        for sub, ext in [('dense', '.npy'), ('bilat', '.npy'), ('imgs', '.png'),
                         ('sparse', '.npy'), ('thumb', '.png'), ('normals', '.npy')]:
            assert (tmp_path / sub / f"{stem}{ext}").exists(), sub

        dense = np.load(tmp_path / 'dense' / f"{stem}.npy")
        assert dense.shape == camera.shape
        sidecar = json.loads((tmp_path / 'dense' / f"{stem}.npy.json").read_text())
        assert sidecar['frame_id'] == 7
        assert sidecar['min_depth'] == pytest.approx(ALTITUDE, rel=1e-4)
        assert np.load(tmp_path / 'normals' / f"{stem}.npy").shape == camera.shape + (3,)

    def test_normals_follow_accepted_depth(self, tmp_path, camera):
        """Saved normals are undefined wherever the published depth is invalid."""
        save = SaveSettings(save_dense=True, save_normals=True)
        stage = _stage(PlanarDensifier(DensifierSettings()), use_sparse_mask=True,
                       compute_normals=True, save=save)
        stage.set_output_directory(tmp_path)
        stage.add_frame(make_frame(3, camera=camera,
                                   sparse_points=_triangle_points(camera)))
        assert stage.process() is True

        stem = 'uav0_000003'
        dense = np.load(tmp_path / 'dense' / f"{stem}.npy")
        normals = np.load(tmp_path / 'normals' / f"{stem}.npy")
        rejected = dense == INVALID_DEPTH
        assert rejected.any()
        assert np.all(np.isnan(normals[rejected]))
        np.testing.assert_allclose(normals[20, 20], [0.0, 0.0, -1.0], atol=1e-5)

    def test_nothing_saved_without_flags(self, tmp_path, camera):
        """No save flags, no output files."""
        stage = _stage(PlanarDensifier(DensifierSettings()))
        stage.set_output_directory(tmp_path)
        stage.add_frame(make_frame(0, camera=camera))
        stage.process()
        assert list(tmp_path.iterdir()) == []

    def test_thumbnail_scaled(self, tmp_path, frame):
        """Thumbnails are scaled depth images."""
        from PIL import Image
        saver = DensificationSaver(tmp_path, SaveSettings(save_thumb=True), 0.5)
        depth = Depthmap(np.full(frame.camera.shape, ALTITUDE), frame.camera)
        paths = saver.save(frame, depth)
        assert len(paths) == 1
        with Image.open(paths[0]) as img:
            assert img.size == (frame.camera.width // 2, frame.camera.height // 2)

    def test_guided_flag_writes_nothing(self, tmp_path, frame):
        """save_guided has no artefact to write."""
        saver = DensificationSaver(tmp_path, SaveSettings(save_guided=True))
        depth = Depthmap(np.full(frame.camera.shape, ALTITUDE), frame.camera)
        assert saver.save(frame, depth) == []


# ---------------------------------------------------------------------------
# OrthoRectificationStage
# ---------------------------------------------------------------------------

class TestOrthoRectificationStage:

    def test_rectifies_frame(self, camera, surface):
        """Frames with a surface are rectified and published."""
        stage = OrthoRectificationStage(rate=10.0)
        out = Collector()
        stage.register_output(out)
        frame = make_frame(0, camera=camera, surface=surface)
        stage.add_frame(frame)
        assert len(stage) == 1
        assert stage.process() is True
        published_frame, grid = out.items[0]
        assert published_frame is frame
        assert grid.size == surface.size
        assert grid[GridLayer.VALID].all()
        assert stage.n_rectified == 1

    def test_frame_without_surface(self, camera):
        """Frames without a surface are skipped."""
        stage = OrthoRectificationStage(rate=10.0)
        stage.add_frame(make_frame(0, camera=camera))
        assert stage.process() is False
        assert stage.n_dropped == 1
        assert stage.process() is False

    def test_queue_overflow(self, camera, surface):
        """A full queue drops the oldest frame."""
        stage = OrthoRectificationStage(rate=10.0, queue_size=2)
        for i in range(4):
            stage.add_frame(make_frame(i, camera=camera, surface=surface))
        assert len(stage) == 2
        assert stage.n_dropped == 2
        stage.reset()
        assert len(stage) == 0

    def test_invalid_options(self):
        """Unknown interpolation and empty queues are rejected."""
        with pytest.raises(ValidationError):
            OrthoRectificationStage(rate=10.0, interpolation='lanczos')
        with pytest.raises(ValidationError):
            OrthoRectificationStage(rate=10.0, queue_size=0)

    def test_accepts_every_interpolation(self):
        """Every resampling method of the rectifier is a valid stage option."""
        for name in INTERPOLATION_ORDERS:
            assert OrthoRectificationStage(rate=10.0, interpolation=name).interpolation == name

    def test_saves_grid(self, tmp_path, camera, surface):
        """Rectified grids are saved as GeoTIFF and layer archive."""
        pytest.importorskip("rasterio")
        stage = OrthoRectificationStage(rate=10.0, crs='EPSG:32632')
        stage.set_output_directory(tmp_path)
        stage.add_frame(make_frame(3, camera=camera, surface=surface))
        assert stage.process() is True
        assert (tmp_path / 'ortho' / 'uav0_000003.tif').exists()
        layers = np.load(tmp_path / 'layers' / 'uav0_000003.npz')
        assert set(layers.files) == {
            'color_rgb', 'valid', 'elevation', 'elevated', 'elevation_angle',
        }

    def test_worker_chain(self, camera, surface):
        """Densification output can feed the ortho stage."""
        dense = _stage(ScriptedDensifier())
        ortho = OrthoRectificationStage(rate=100.0)
        out = Collector()
        dense.register_output(lambda frame, depth: ortho.add_frame(frame))
        ortho.register_output(out)
        dense.start()
        ortho.start()
        try:
            dense.add_frame(make_frame(0, camera=make_camera(), surface=surface))
            assert out.event.wait(timeout=5.0)
        finally:
            dense.stop()
            ortho.stop()
        frame, grid = out.items[0]
        assert frame.has_depthmap()
        assert GridLayer.COLOR_RGB in grid
