"""
Vertex filter bank tests.
"""

import numpy as np
import pytest

from photo3d.geometry.filters import (
    feather_alpha,
    filter_foreground_border,
    filter_vertices,
    foreground_border_mask,
)


class TestDistanceFilters:
    """Test masked mean/median filtering of distances."""

    def test_mean_on_constant_is_identity(self, make_grid):
        """Filtering a constant-distance neighbourhood leaves it unchanged."""
        grid = make_grid(9, 9, 3.0)
        result = filter_vertices(grid.positions, grid.background_mask, True, 9, 9, radius=4)
        assert np.allclose(result, grid.positions)

    def test_median_removes_spike(self, make_grid):
        distances = np.full(49, 2.0)
        distances[24] = 5.0
        grid = make_grid(7, 7, distances)

        result = filter_vertices(grid.positions, grid.background_mask, True, 7, 7, radius=1, use_median=True)
        assert np.allclose(np.linalg.norm(result, axis=1), 2.0)

    def test_direction_preserved(self, make_grid):
        distances = np.random.default_rng(0).uniform(1.0, 3.0, 25)
        grid = make_grid(5, 5, distances)

        result = filter_vertices(grid.positions, grid.background_mask, True, 5, 5, radius=1)
        before = grid.positions / np.linalg.norm(grid.positions, axis=1, keepdims=True)
        after = result / np.linalg.norm(result, axis=1, keepdims=True)
        assert np.allclose(before, after)

    def test_only_selected_side_changes(self, make_grid):
        """Filtering the foreground never moves background vertices."""
        mask = np.ones(25, dtype=bool)
        mask[12] = False
        distances = np.random.default_rng(1).uniform(1.0, 3.0, 25)
        grid = make_grid(5, 5, distances, mask)

        result = filter_vertices(grid.positions, mask, False, 5, 5, radius=2)
        assert np.allclose(result[mask], grid.positions[mask])

    def test_other_side_neighbours_replaced_by_centre(self, make_grid):
        """A lone foreground vertex surrounded by background keeps its distance."""
        mask = np.ones(25, dtype=bool)
        mask[12] = False
        distances = np.where(mask, 5.0, 1.0)
        grid = make_grid(5, 5, distances, mask)

        result = filter_vertices(grid.positions, mask, False, 5, 5, radius=2)
        assert np.linalg.norm(result[12]) == pytest.approx(1.0)

    def test_reads_unfiltered_input(self, make_grid):
        """Every vertex sees its neighbours' original values."""
        distances = np.array([1.0, 2.0, 3.0, 4.0] * 4)
        grid = make_grid(4, 4, distances)

        result = filter_vertices(grid.positions, grid.background_mask, True, 4, 4, radius=1)
        result_distances = np.linalg.norm(result, axis=1).reshape(4, 4)

        # Column 1 averages columns 0..2 of the original field
        assert result_distances[1, 1] == pytest.approx(2.0)
        # Column 0 replaces the out-of-grid column with itself
        assert result_distances[1, 0] == pytest.approx((1.0 + 1.0 + 2.0) / 3)


class TestBorderFilter:
    """Test silhouette detection and smoothing."""

    def test_single_foreground_vertex_is_border(self):
        mask = np.ones(25, dtype=bool)
        mask[12] = False
        border = foreground_border_mask(mask, 5, 5)
        assert np.flatnonzero(border).tolist() == [12]

    def test_ring_around_background_hole(self):
        """The 8 foreground neighbours of a background vertex are border vertices."""
        mask = np.zeros(25, dtype=bool)
        mask[12] = True
        border = foreground_border_mask(mask, 5, 5).reshape(5, 5)

        assert border.sum() == 8
        assert border[1:4, 1:4].sum() == 8
        assert not border[2, 2]

    def test_interior_untouched(self, make_grid):
        mask = np.ones((6, 6), dtype=bool)
        mask[1:5, 1:5] = False
        distances = np.random.default_rng(2).uniform(1.0, 2.0, 36)
        grid = make_grid(6, 6, distances, mask.reshape(-1))

        result = filter_foreground_border(grid.positions, grid.background_mask, 6, 6)
        border = foreground_border_mask(grid.background_mask, 6, 6)

        assert np.allclose(result[~border], grid.positions[~border])
        assert not np.allclose(result[border], grid.positions[border])


class TestFeather:
    """Test foreground alpha feathering."""

    def test_never_increases_alpha(self):
        alpha = np.zeros((20, 20))
        alpha[5:15, 5:15] = 1.0
        feathered = feather_alpha(alpha, radius=2)

        assert np.all(feathered <= alpha + 1e-12)
        assert np.all(feathered[alpha == 0] == 0)
        assert feathered[10, 10] == pytest.approx(1.0)
        assert feathered[5, 10] < 1.0

    def test_transparent_pixels_stay_exactly_zero(self):
        """Box-filter rounding must not leave negative alpha around the cutout."""
        alpha = np.zeros((20, 20))
        alpha[5:15, 5:15] = 1.0
        feathered = feather_alpha(alpha, radius=2)

        assert feathered.min() >= 0.0
        assert feathered.max() <= 1.0

    def test_zero_radius(self):
        alpha = np.random.default_rng(3).random((4, 4))
        assert np.allclose(feather_alpha(alpha, radius=0), alpha)
