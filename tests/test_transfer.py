"""Tests for a3met.transfer module."""

import numpy as np
import pytest

from a3met.transfer import TRANSFER_3D, TRANSFER_3D_LP1, TRANSFER_A6, GridSpec, Transfer


class TestGridSpec:
    """Tests for GridSpec."""

    def test_window_defaults_to_global(self):
        """Test that an unset window covers the global grid."""
        grid = GridSpec(nx_global=4, ny_global=3, nz_global=2)
        assert (grid.nx, grid.ny, grid.nz) == (4, 3, 2)
        assert grid.shape_2d == (4, 3)
        assert grid.window == (slice(0, 4), slice(0, 3))

    def test_window_with_offsets(self):
        """Test the horizontal slices of an offset window."""
        grid = GridSpec(nx_global=10, ny_global=8, nz_global=5, nx=3, ny=2, i0=4, j0=1)
        assert grid.window == (slice(4, 7), slice(1, 3))

    def test_window_outside_grid(self):
        """Test that a window past the global edge is rejected."""
        with pytest.raises(ValueError, match="does not fit"):
            GridSpec(nx_global=10, ny_global=8, nz_global=5, nx=3, i0=8)

    def test_too_many_layers(self):
        """Test that the window cannot have more layers than the archive."""
        with pytest.raises(ValueError, match="more layers"):
            GridSpec(nx_global=10, ny_global=8, nz_global=5, nz=6)

    def test_non_positive_dimensions(self):
        """Test that empty grids are rejected."""
        with pytest.raises(ValueError):
            GridSpec(nx_global=0, ny_global=8, nz_global=5)
        with pytest.raises(ValueError):
            GridSpec(nx_global=10, ny_global=8, nz_global=5, i0=-1)


class TestTransfer3D:
    """Tests for the (I,J,L) transform."""

    def test_shapes(self, grid):
        """Test raw and target shapes on a full grid."""
        assert TRANSFER_3D.raw_shape(grid) == (4, 3, 2)
        assert TRANSFER_3D.target_shape(grid) == (4, 3, 2)

    def test_copy_full_grid(self, grid):
        """Test that a full-grid copy reproduces the raw array as float64."""
        raw = np.arange(24, dtype=np.float32).reshape(4, 3, 2)
        out = np.zeros((4, 3, 2))

        result = TRANSFER_3D(raw, out, grid)

        assert result is out
        assert out.dtype == np.float64
        np.testing.assert_array_equal(out, raw)

    def test_window(self):
        """Test that only the window and the lowest layers are copied."""
        grid = GridSpec(nx_global=6, ny_global=5, nz_global=4, nx=2, ny=3, nz=2, i0=1, j0=2)
        raw = np.random.default_rng(0).random((6, 5, 4)).astype(np.float32)
        out = np.zeros(TRANSFER_3D.target_shape(grid))

        TRANSFER_3D(raw, out, grid)

        assert out.shape == (2, 3, 2)
        np.testing.assert_array_equal(out, raw[1:3, 2:5, :2])

    def test_raw_shape_mismatch(self, grid):
        """Test that a raw array of the wrong shape is rejected."""
        with pytest.raises(ValueError, match="raw array"):
            TRANSFER_3D(np.zeros((4, 3, 3), dtype=np.float32), np.zeros((4, 3, 2)), grid)

    def test_buffer_shape_mismatch(self, grid):
        """Test that a buffer of the wrong shape is rejected."""
        with pytest.raises(ValueError, match="buffer"):
            TRANSFER_3D(np.zeros((4, 3, 2), dtype=np.float32), np.zeros((3, 4, 2)), grid)


class TestTransfer3DLp1:
    """Tests for the layer-edge transform."""

    def test_shapes(self, grid):
        """Test that edge fields carry one extra level."""
        assert TRANSFER_3D_LP1.raw_shape(grid) == (4, 3, 3)
        assert TRANSFER_3D_LP1.target_shape(grid) == (4, 3, 3)

    def test_reduced_levels(self):
        """Test that nz + 1 edges are kept when the window has fewer layers."""
        grid = GridSpec(nx_global=2, ny_global=2, nz_global=4, nz=2)
        raw = np.arange(20, dtype=np.float32).reshape(2, 2, 5)
        out = np.zeros(TRANSFER_3D_LP1.target_shape(grid))

        TRANSFER_3D_LP1(raw, out, grid)

        np.testing.assert_array_equal(out, raw[:, :, :3])


class TestTransferA6:
    """Tests for the (L,I,J) transform."""

    def test_shapes(self, grid):
        """Test that the target puts levels first."""
        assert TRANSFER_A6.raw_shape(grid) == (4, 3, 2)
        assert TRANSFER_A6.target_shape(grid) == (2, 4, 3)

    def test_levels_first(self, grid):
        """Test that out[l, i, j] == raw[i, j, l]."""
        raw = np.arange(24, dtype=np.float32).reshape(4, 3, 2)
        out = np.zeros((2, 4, 3))

        TRANSFER_A6(raw, out, grid)

        for i, j, l in np.ndindex(4, 3, 2):
            assert out[l, i, j] == raw[i, j, l]


class TestCustomTransfer:
    """Tests for combining transform options."""

    def test_edges_levels_first(self, grid):
        """Test an edge field laid out levels first."""
        transfer = Transfer("edges_a6", edges=True, level_first=True)
        assert transfer.raw_shape(grid) == (4, 3, 3)
        assert transfer.target_shape(grid) == (3, 4, 3)
