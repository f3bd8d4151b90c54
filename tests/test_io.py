# -*- coding: utf-8 -*-
"""
Tests for uavmap.IO - NumPy, PNG and GeoTIFF writers and the writer registry.

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
2026-10-12

Modified
--------
2026-10-16
"""

import json

import numpy as np
import pytest

from uavmap.IO import get_writer, write
from uavmap.IO.numpy_io import NumpyWriter
from uavmap.IO.png import normalize_to_uint8


# ---------------------------------------------------------------------------
# NumpyWriter
# ---------------------------------------------------------------------------

class TestNumpyWriter:

    def test_write_npy_with_sidecar(self, tmp_path):
        """Arrays are saved with a JSON sidecar holding metadata."""
        path = tmp_path / "depth.npy"
        data = np.arange(12, dtype=np.float32).reshape(3, 4)
        with NumpyWriter(path, {'frame_id': 42}) as w:
            w.write(data)
        np.testing.assert_array_equal(np.load(path), data)
        sidecar = json.loads((tmp_path / "depth.npy.json").read_text())
        assert sidecar['shape'] == [3, 4]
        assert sidecar['dtype'] == 'float32'
        assert sidecar['frame_id'] == 42

    def test_sidecar_disabled(self, tmp_path):
        """write_sidecar=False suppresses the sidecar."""
        path = tmp_path / "depth.npy"
        with NumpyWriter(path, {'write_sidecar': False}) as w:
            w.write(np.zeros(3))
        assert path.exists()
        assert not (tmp_path / "depth.npy.json").exists()

    def test_write_npz(self, tmp_path):
        """Named layers go to one archive."""
        path = tmp_path / "layers.npz"
        layers = {'a': np.ones((2, 2)), 'b': np.zeros((2, 2), dtype=bool)}
        with NumpyWriter(path) as w:
            w.write_npz(layers, geolocation={'crs': 'EPSG:4326'})
        archive = np.load(path)
        assert set(archive.files) == {'a', 'b'}
        sidecar = json.loads((tmp_path / "layers.npz.json").read_text())
        assert sidecar['arrays']['b']['dtype'] == 'bool'
        assert sidecar['geolocation']['crs'] == 'EPSG:4326'

    def test_write_npz_empty(self, tmp_path):
        """An empty archive is rejected."""
        with pytest.raises(ValueError):
            NumpyWriter(tmp_path / "x.npz").write_npz({})


# ---------------------------------------------------------------------------
# PngWriter
# ---------------------------------------------------------------------------

class TestPngWriter:

    @pytest.fixture(autouse=True)
    def _needs_pillow(self):
        pytest.importorskip("PIL")

    def test_rgb_round_trip(self, tmp_path):
        """uint8 RGB arrays are written losslessly."""
        from PIL import Image
        rng = np.random.default_rng(0)
        data = rng.integers(0, 256, (6, 8, 3), dtype=np.uint8)
        path = tmp_path / "img.png"
        with get_writer('png', path) as w:
            w.write(data)
        with Image.open(path) as img:
            np.testing.assert_array_equal(np.asarray(img), data)

    def test_float_stretched(self, tmp_path):
        """Float arrays are stretched to uint8."""
        from PIL import Image
        path = tmp_path / "f.png"
        with get_writer('png', path) as w:
            w.write(np.array([[0.0, 0.5], [1.0, np.nan]]))
        with Image.open(path) as img:
            out = np.asarray(img)
        assert out[1, 0] == 255
        assert out[0, 0] == 1
        assert out[1, 1] == 0

    def test_bad_shape(self, tmp_path):
        """Four-band arrays are rejected."""
        with pytest.raises(ValueError, match="Expected"):
            get_writer('png', tmp_path / "x.png").write(np.zeros((2, 2, 4), dtype=np.uint8))


class TestNormalizeToUint8:

    def test_valid_mask(self):
        """Invalid cells map to 0, valid cells span 1..255."""
        data = np.array([[10.0, 20.0, -1.0]])
        out = normalize_to_uint8(data, data > 0)
        np.testing.assert_array_equal(out, [[1, 255, 0]])

    def test_constant(self):
        """A constant map is fully bright."""
        np.testing.assert_array_equal(normalize_to_uint8(np.full((2, 2), 3.0)), 255)

    def test_nothing_valid(self):
        """No valid cell gives an all-zero image."""
        out = normalize_to_uint8(np.full((2, 2), np.nan))
        assert out.dtype == np.uint8
        assert not out.any()


# ---------------------------------------------------------------------------
# GeoTIFFWriter
# ---------------------------------------------------------------------------

class TestGeoTIFFWriter:

    @pytest.fixture(autouse=True)
    def _needs_rasterio(self):
        pytest.importorskip("rasterio")

    def test_georeferenced_rgb(self, tmp_path):
        """Band-last RGB grids are written north-up with georeferencing."""
        import rasterio
        data = np.zeros((4, 5, 3), dtype=np.uint8)
        data[0] = 10    # southern row
        data[-1] = 200  # northern row
        path = tmp_path / "ortho.tif"
        geo = {'geotransform': (500000.0, 0.5, 0.0, 5400002.0, 0.0, -0.5),
               'crs': 'EPSG:32632'}
        with get_writer('geotiff', path, {'nodata': 0, 'frame_id': 3}) as w:
            w.write(data, geolocation=geo)

        with rasterio.open(path) as src:
            assert src.count == 3
            assert (src.height, src.width) == (4, 5)
            assert src.nodata == 0
            assert src.transform.c == 500000.0
            assert src.transform.f == 5400002.0
            assert src.crs.to_epsg() == 32632
            assert src.tags()['frame_id'] == '3'
            band = src.read(1)
        assert np.all(band[0] == 200)
        assert np.all(band[-1] == 10)

    def test_bool_layer(self, tmp_path):
        """Boolean masks are written as uint8."""
        import rasterio
        path = tmp_path / "valid.tif"
        mask = np.array([[True, False], [False, True]])
        with get_writer('geotiff', path) as w:
            w.write(mask, flip_rows=False)
        with rasterio.open(path) as src:
            np.testing.assert_array_equal(src.read(1), mask.astype(np.uint8))

    def test_rejects_1d(self, tmp_path):
        """1D arrays are not rasters."""
        with pytest.raises(ValueError):
            get_writer('geotiff', tmp_path / "x.tif").write(np.zeros(4))


# ---------------------------------------------------------------------------
# Registry
# ---------------------------------------------------------------------------

class TestWriterRegistry:

    def test_unknown_format(self, tmp_path):
        """Unknown formats raise ValueError."""
        with pytest.raises(ValueError, match="Unknown writer format"):
            get_writer('jpeg2000', tmp_path / "x.jp2")

    def test_case_insensitive(self, tmp_path):
        """Format names are case insensitive."""
        assert isinstance(get_writer('NUMPY', tmp_path / "x.npy"), NumpyWriter)

    def test_write_by_extension(self, tmp_path):
        """write() picks the writer from the file extension."""
        path = tmp_path / "d.npy"
        write(np.ones(3), path, metadata={'write_sidecar': False})
        np.testing.assert_array_equal(np.load(path), np.ones(3))

    def test_unknown_extension(self, tmp_path):
        """Unrecognised extensions need an explicit format."""
        with pytest.raises(ValueError, match="Cannot determine format"):
            write(np.ones(3), tmp_path / "d.bin")
        write(np.ones(3), tmp_path / "d.bin", format='numpy',
              metadata={'write_sidecar': False})
