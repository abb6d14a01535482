"""
Tests for point-to-cell assignment.
"""

import pytest

from pak_biodiversity.grid import build_grid
from pak_biodiversity.joins import SpatialJoinError, assign_points_to_cells

from conftest import make_points


@pytest.fixture
def cells(square_boundary):
    return build_grid(square_boundary, 0.5)


class TestAssignPointsToCells:
    """Tests for assign_points_to_cells."""

    def test_interior_point(self, cells):
        points = make_points([("A", 64.25, 29.25)])
        assigned, stats = assign_points_to_cells(points, cells)
        assert list(assigned["cell_id"]) == [1]
        assert stats["boundary_ties"] == 0

    def test_corner_tie_goes_to_lowest_id(self, cells):
        # (65, 30) is the shared corner of cells 6, 7, 10 and 11
        points = make_points([("A", 65.0, 30.0)])
        assigned, stats = assign_points_to_cells(points, cells)
        assert list(assigned["cell_id"]) == [6]
        assert stats["boundary_ties"] == 1

    def test_edge_tie_goes_to_lowest_id(self, cells):
        # (64.5, 29.25) lies on the edge between cells 1 and 2
        points = make_points([("A", 64.5, 29.25)])
        assigned, _ = assign_points_to_cells(points, cells)
        assert list(assigned["cell_id"]) == [1]

    def test_each_point_assigned_once(self, cells):
        points = make_points([("A", 65.0, 30.0), ("B", 64.5, 29.5), ("C", 65.3, 30.7)])
        assigned, stats = assign_points_to_cells(points, cells)
        assert len(assigned) == 3
        assert stats["assigned"] == 3

    def test_outside_points_dropped(self, cells):
        points = make_points([("A", 64.25, 29.25), ("B", 70.0, 35.0)])
        assigned, stats = assign_points_to_cells(points, cells)
        assert list(assigned["species"]) == ["A"]
        assert stats["unassigned"] == 1
        assert stats["total_points"] == 2

    def test_input_order_preserved(self, cells):
        points = make_points([("A", 65.75, 30.75), ("B", 64.25, 29.25)])
        assigned, _ = assign_points_to_cells(points, cells)
        assert list(assigned["species"]) == ["A", "B"]

    def test_crs_mismatch_raises(self, cells):
        points = make_points([("A", 64.25, 29.25)]).to_crs(3857)
        with pytest.raises(SpatialJoinError):
            assign_points_to_cells(points, cells)

    def test_duplicate_cell_ids_raise(self, cells):
        cells = cells.copy()
        cells.loc[1, "cell_id"] = 1
        with pytest.raises(SpatialJoinError):
            assign_points_to_cells(make_points([("A", 64.25, 29.25)]), cells)
