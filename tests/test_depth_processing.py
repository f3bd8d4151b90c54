# -*- coding: utf-8 -*-
"""
Tests for uavmap.processing.depth - range clipping, filters, masks, normals.

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
2026-10-18
"""

import logging

import numpy as np
import pytest

from uavmap.core.depthmap import INVALID_DEPTH, Depthmap, valid_depth_mask
from uavmap.exceptions import ValidationError
from uavmap.processing.depth import (
    BilateralDepthFilter,
    DepthPostProcessor,
    DepthRangeClip,
    GuidedDepthFilter,
    NormalEstimator,
    clip_depth_range,
    compute_depth_map_mask,
    compute_normals,
    fill_invalid_nearest,
    force_in_range,
    sparse_hull_mask,
    valid_bilateral,
)
from uavmap.settings import DensificationSettings
from uavmap.vocabulary import ProcessorCategory

from conftest import ALTITUDE


@pytest.fixture
def noisy_depth(camera):
    rng = np.random.default_rng(7)
    data = rng.uniform(-20.0, 300.0, camera.shape).astype(np.float32)
    data[0, :5] = np.nan
    data[1, :5] = np.inf
    return Depthmap(data, camera)


# ---------------------------------------------------------------------------
# Range clipping
# ---------------------------------------------------------------------------

class TestForceInRange:

    def test_definition(self, noisy_depth):
        """Values in range are kept exactly, everything else is the sentinel."""
        lo, hi = 50.0, 150.0
        out = force_in_range(noisy_depth, lo, hi)
        src = noisy_depth.data
        inside = (src >= lo) & (src <= hi)
        np.testing.assert_array_equal(out.data[inside], src[inside])
        assert np.all(out.data[~inside] == INVALID_DEPTH)

    def test_idempotent(self, noisy_depth):
        """Clipping twice equals clipping once."""
        once = force_in_range(noisy_depth, 50.0, 150.0)
        twice = force_in_range(once, 50.0, 150.0)
        np.testing.assert_array_equal(once.data, twice.data)

    def test_input_untouched(self, noisy_depth):
        """The input depth map is not modified."""
        before = noisy_depth.data.copy()
        force_in_range(noisy_depth, 50.0, 150.0)
        np.testing.assert_array_equal(noisy_depth.data, before)

    def test_inclusive_bounds(self, camera):
        """Bounds themselves are inside the range."""
        data = np.full(camera.shape, 10.0, dtype=np.float32)
        data[0, 0] = 20.0
        out = force_in_range(Depthmap(data, camera), 10.0, 20.0)
        assert out.data[0, 0] == 20.0
        assert out.data[1, 1] == 10.0

    def test_inverted_bounds(self, noisy_depth):
        """min_depth > max_depth raises ValidationError."""
        with pytest.raises(ValidationError):
            force_in_range(noisy_depth, 10.0, 5.0)

    def test_transform_form(self, noisy_depth):
        """DepthRangeClip matches the functional form and is tagged."""
        clip = DepthRangeClip(min_depth=50.0, max_depth=150.0)
        np.testing.assert_array_equal(
            clip.apply(noisy_depth.data),
            clip_depth_range(noisy_depth.data, 50.0, 150.0),
        )
        assert DepthRangeClip.__processor_tags__['category'] is ProcessorCategory.DEPTH
        assert DepthRangeClip.__processor_version__ == '1.0.0'

    def test_transform_override(self, noisy_depth):
        """Per-call overrides replace instance bounds."""
        clip = DepthRangeClip(min_depth=0.0, max_depth=1000.0)
        out = clip.apply(noisy_depth.data, max_depth=100.0)
        assert np.nanmax(out) <= 100.0

    def test_transform_rejects_negative(self):
        """Range metadata rejects negative bounds."""
        with pytest.raises(ValidationError, match="below minimum"):
            DepthRangeClip(min_depth=-1.0)


# ---------------------------------------------------------------------------
# Filters
# ---------------------------------------------------------------------------

class TestBilateralDepthFilter:

    def test_keeps_sentinel(self, camera):
        """Invalid cells stay invalid after filtering."""
        data = np.full(camera.shape, 50.0, dtype=np.float32)
        data[10:14, 20:30] = INVALID_DEPTH
        out = BilateralDepthFilter().apply(data)
        assert out.dtype == np.float32
        assert np.all(out[10:14, 20:30] == INVALID_DEPTH)
        np.testing.assert_allclose(out[data > 0], 50.0, rtol=1e-5)

    def test_preserves_edges(self, camera):
        """Depth steps much larger than sigma_color are not blurred."""
        data = np.full(camera.shape, 10.0, dtype=np.float32)
        data[:, 32:] = 60.0
        out = BilateralDepthFilter(diameter=5, sigma_color=1.0).apply(data)
        np.testing.assert_allclose(out[:, :32], 10.0, atol=1e-3)
        np.testing.assert_allclose(out[:, 32:], 60.0, atol=1e-3)

    def test_smooths_noise(self, camera):
        """Small noise on a flat surface is reduced."""
        rng = np.random.default_rng(3)
        data = (50.0 + rng.normal(0.0, 0.2, camera.shape)).astype(np.float32)
        out = BilateralDepthFilter(diameter=7, sigma_color=2.0, sigma_space=3.0).apply(data)
        assert out.std() < data.std()

    def test_border_uses_valid_cells_only(self):
        """Cells next to invalid regions average valid neighbours only."""
        data = np.full((9, 9), INVALID_DEPTH, dtype=np.float32)
        data[:, :4] = [10.0, 10.0, 10.0, 11.0]
        filt = BilateralDepthFilter(diameter=5, sigma_color=1e3, sigma_space=1e3)
        out = filt.apply(data)

        # Disc of radius 2 around (4, 3): 1 cell at dx=-2, 3 at dx=-1, 5 at dx=0
        expected = (10.0 * 1 + 10.0 * 3 + 11.0 * 5) / 9.0
        assert out[4, 3] == pytest.approx(expected, rel=1e-4)
        assert np.all(out[:, 4:] == INVALID_DEPTH)
        assert np.all(out[:, :4] <= 11.0 + 1e-5)

    def test_isolated_cell_kept(self):
        """A valid cell without valid neighbours keeps its depth."""
        data = np.full((7, 7), INVALID_DEPTH, dtype=np.float32)
        data[3, 3] = 42.0
        out = BilateralDepthFilter(diameter=5, sigma_color=10.0).apply(data)
        assert out[3, 3] == pytest.approx(42.0)
        assert (out > 0).sum() == 1

    def test_matches_valid_bilateral(self, noisy_depth):
        """The transform delegates to the valid-weighted kernel."""
        data = noisy_depth.data.copy()
        data[5:9, 5:9] = INVALID_DEPTH
        out = BilateralDepthFilter(diameter=3, sigma_color=2.0, sigma_space=1.5).apply(data)
        ref = valid_bilateral(data, valid_depth_mask(data), 3, 2.0, 1.5)
        np.testing.assert_array_equal(out, ref)

    def test_all_invalid(self, camera):
        """A map without valid cells stays all sentinel."""
        data = np.full(camera.shape, INVALID_DEPTH, dtype=np.float32)
        out = BilateralDepthFilter().apply(data)
        assert np.all(out == INVALID_DEPTH)

    def test_param_validation(self):
        """Diameter outside its range is rejected."""
        with pytest.raises(ValidationError):
            BilateralDepthFilter(diameter=0)


class TestFillInvalidNearest:

    def test_fills_from_neighbour(self):
        """Invalid cells take the value of the nearest valid cell."""
        data = np.array([[1.0, -1.0, -1.0, 4.0]])
        valid = data > 0
        np.testing.assert_array_equal(
            fill_invalid_nearest(data, valid), [[1.0, 1.0, 4.0, 4.0]]
        )


class TestGuidedDepthFilter:

    def test_passthrough(self, noisy_depth):
        """Guided filtering returns its input unchanged."""
        out = GuidedDepthFilter().apply(noisy_depth.data)
        np.testing.assert_array_equal(out, noisy_depth.data)
        assert out is not noisy_depth.data

    def test_warns_once(self, noisy_depth, caplog):
        """The unimplemented filter warns on first use only."""
        filt = GuidedDepthFilter()
        with caplog.at_level(logging.WARNING, logger="uavmap.processing.depth.filters"):
            filt.apply(noisy_depth.data)
            filt.apply(noisy_depth.data)
        warnings = [r for r in caplog.records if "not implemented" in r.getMessage()]
        assert len(warnings) == 1


# ---------------------------------------------------------------------------
# Masks
# ---------------------------------------------------------------------------

TRIANGLE = np.array([[10.0, 10.0], [50.0, 10.0], [10.0, 40.0]])


def _outside_triangle(shape):
    vv, uu = np.mgrid[0:shape[0], 0:shape[1]].astype(np.float64)
    eps = 1e-6
    return (
        (uu < 10.0 - eps) | (vv < 10.0 - eps) |
        ((uu - 10.0) / 40.0 + (vv - 10.0) / 30.0 > 1.0 + eps)
    )


class TestDepthMapMask:

    def test_range_only(self, noisy_depth):
        """Without sparse masking the mask is the range test."""
        mask = compute_depth_map_mask(noisy_depth, False, 50.0, 150.0)
        data = noisy_depth.data
        expected = np.isfinite(data) & (data >= 50.0) & (data <= 150.0)
        np.testing.assert_array_equal(mask, expected)

    def test_deterministic(self, noisy_depth):
        """Same inputs give the same mask and do not touch the depth."""
        before = noisy_depth.data.copy()
        a = compute_depth_map_mask(noisy_depth, True, 0.0, 500.0, TRIANGLE)
        b = compute_depth_map_mask(noisy_depth, True, 0.0, 500.0, TRIANGLE)
        np.testing.assert_array_equal(a, b)
        np.testing.assert_array_equal(noisy_depth.data, before)

    def test_sparse_triangle(self, camera):
        """Cells strictly outside the sparse hull are invalid."""
        dm = Depthmap(np.full(camera.shape, ALTITUDE), camera)
        mask = compute_depth_map_mask(dm, True, 1.0, 500.0, TRIANGLE)
        outside = _outside_triangle(camera.shape)
        assert not mask[outside].any()
        assert mask[15, 15]
        assert mask[12, 40]

    def test_sparse_mask_disabled(self, camera):
        """Sparse points are ignored when sparse masking is off."""
        dm = Depthmap(np.full(camera.shape, ALTITUDE), camera)
        mask = compute_depth_map_mask(dm, False, 1.0, 500.0, TRIANGLE)
        assert mask.all()

    def test_too_few_points(self, camera):
        """Fewer than three sparse points support no area."""
        assert not sparse_hull_mask(camera.shape, TRIANGLE[:2]).any()
        assert not sparse_hull_mask(camera.shape, None).any()

    def test_collinear_points(self, camera):
        """Collinear sparse points support no area."""
        line = np.array([[0.0, 0.0], [10.0, 10.0], [20.0, 20.0]])
        assert not sparse_hull_mask(camera.shape, line).any()

    def test_inverted_range(self, noisy_depth):
        """min_depth > max_depth raises ValidationError."""
        with pytest.raises(ValidationError):
            compute_depth_map_mask(noisy_depth, False, 10.0, 1.0)


# ---------------------------------------------------------------------------
# Normals
# ---------------------------------------------------------------------------

class TestNormals:

    def test_flat_ground_faces_camera(self, camera):
        """Normals of a flat ground plane point toward the camera."""
        dm = Depthmap(np.full(camera.shape, ALTITUDE), camera)
        normals = compute_normals(dm)
        assert normals.shape == camera.shape + (3,)
        np.testing.assert_allclose(normals[1:-1, 1:-1, 2], -1.0, atol=1e-5)
        np.testing.assert_allclose(normals[1:-1, 1:-1, :2], 0.0, atol=1e-5)

    def test_border_undefined(self, camera):
        """Border cells have no central difference and are NaN."""
        normals = compute_normals(Depthmap(np.full(camera.shape, ALTITUDE), camera))
        assert np.all(np.isnan(normals[0]))
        assert np.all(np.isnan(normals[:, -1]))

    def test_invalid_neighbourhood(self, camera):
        """Cells next to invalid depth have NaN normals."""
        data = np.full(camera.shape, ALTITUDE)
        data[20, 20] = INVALID_DEPTH
        normals = compute_normals(Depthmap(data, camera))
        assert np.all(np.isnan(normals[20, 21]))
        assert np.all(np.isfinite(normals[30, 30]))

    def test_estimator_needs_camera(self, camera):
        """NormalEstimator requires the camera keyword."""
        data = np.full(camera.shape, ALTITUDE)
        with pytest.raises(ValidationError, match="camera"):
            NormalEstimator().apply(data)
        assert NormalEstimator().apply(data, camera=camera).shape == camera.shape + (3,)


# ---------------------------------------------------------------------------
# Post-processing chain
# ---------------------------------------------------------------------------

class TestDepthPostProcessor:

    def test_clip_only(self, noisy_depth):
        """With all filters off, the result is the clipped input."""
        settings = DensificationSettings(use_filter_bilat=False, compute_normals=False)
        result = DepthPostProcessor(settings).process(noisy_depth, 50.0, 150.0)
        np.testing.assert_array_equal(
            result.depthmap.data, force_in_range(noisy_depth, 50.0, 150.0).data
        )
        assert result.bilateral is None
        assert DepthPostProcessor(settings).normals(result.depthmap) is None

    def test_bilateral_output(self, camera):
        """Enabled bilateral filtering keeps its intermediate for saving."""
        settings = DensificationSettings(use_filter_bilat=True)
        dm = Depthmap(np.full(camera.shape, ALTITUDE), camera)
        result = DepthPostProcessor(settings).process(dm, 1.0, 500.0)
        assert result.bilateral is not None
        np.testing.assert_array_equal(result.depthmap.data, result.bilateral)

    def test_normals_of_given_depth(self, camera):
        """Normals are computed from the depth map handed in, sentinel cells NaN."""
        settings = DensificationSettings(use_filter_bilat=False, compute_normals=True)
        data = np.full(camera.shape, ALTITUDE, dtype=np.float32)
        data[:, :20] = INVALID_DEPTH
        normals = DepthPostProcessor(settings).normals(Depthmap(data, camera))
        assert normals.shape == camera.shape + (3,)
        assert np.all(np.isnan(normals[:, :20]))
        np.testing.assert_allclose(normals[20, 40], [0.0, 0.0, -1.0], atol=1e-5)

    def test_guided_flag_warns(self, caplog):
        """Requesting guided filtering logs that it is ignored."""
        settings = DensificationSettings(use_filter_bilat=False, use_filter_guided=True)
        with caplog.at_level(logging.WARNING):
            DepthPostProcessor(settings)
        assert any("guided" in r.getMessage() for r in caplog.records)
