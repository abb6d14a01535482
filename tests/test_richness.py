"""
Tests for per-cell richness aggregation.
"""

import numpy as np
import pandas as pd
import pytest

from pak_biodiversity.grid import build_grid
from pak_biodiversity.qa import QAError, check_join_conservation, check_richness_invariants
from pak_biodiversity.richness import attach_richness, compute_grid_richness, summarize_cells
from pak_biodiversity.io_utils import read_yaml
from pak_biodiversity.paths import PARAMS_FILE
from pak_biodiversity.schemas import (
    GRID_RICHNESS_SCHEMA,
    SchemaError,
    grid_richness_schema,
    validate_schema,
)

from conftest import make_points


@pytest.fixture
def cells(square_boundary):
    return build_grid(square_boundary, 0.5)


class TestComputeGridRichness:
    """Tests for compute_grid_richness."""

    def test_two_species_same_cell(self, offset_boundary):
        cells = build_grid(offset_boundary, 0.5)
        points = make_points([("A", 65.0, 30.0), ("B", 65.1, 30.1)])
        grid, _ = compute_grid_richness(points, cells)

        cell = grid.set_index("cell_id").loc[1]
        assert cell["species_richness"] == 2
        assert cell["total_records"] == 2

    def test_every_cell_present_with_zero_fill(self, cells):
        points = make_points([("A", 64.25, 29.25)])
        grid, _ = compute_grid_richness(points, cells)

        assert len(grid) == len(cells)
        assert grid["species_richness"].notna().all()
        empty = grid[grid["cell_id"] != 1]
        assert (empty["species_richness"] == 0).all()
        assert (empty["total_records"] == 0).all()
        assert (empty["sampling_effort"] == "Unsampled").all()

    def test_counts_are_integers(self, cells):
        grid, _ = compute_grid_richness(make_points([("A", 64.25, 29.25)]), cells)
        for col in ["species_richness", "total_records", "n_families", "n_genera", "n_orders"]:
            assert grid[col].dtype == np.int64

    def test_richness_zero_iff_no_records(self, cells):
        points = make_points([
            ("A", 64.25, 29.25), ("A", 64.3, 29.3), ("B", 65.75, 30.75),
        ])
        grid, _ = compute_grid_richness(points, cells)
        assert ((grid["species_richness"] == 0) == (grid["total_records"] == 0)).all()
        check_richness_invariants(grid)

    def test_total_records_conserved(self, cells):
        points = make_points([
            ("A", 64.25, 29.25), ("B", 65.0, 30.0), ("C", 70.0, 35.0),
        ])
        grid, stats = compute_grid_richness(points, cells)
        assert grid["total_records"].sum() == stats["assigned"] == 2
        check_join_conservation(grid, stats["assigned"], len(points))

    def test_taxon_counts(self, cells):
        points = make_points(
            [("A", 64.25, 29.25), ("B", 64.3, 29.3), ("C", 64.35, 29.35)],
            family=["F1", "F1", "F2"],
            genus=["G1", "G2", "G3"],
            order=["O1", "O1", "O1"],
        )
        grid, _ = compute_grid_richness(points, cells)
        cell = grid.set_index("cell_id").loc[1]
        assert (cell["n_families"], cell["n_genera"], cell["n_orders"]) == (2, 3, 1)

    def test_grid_passes_schema(self, cells):
        grid, _ = compute_grid_richness(make_points([("A", 64.25, 29.25)]), cells)
        validate_schema(grid, GRID_RICHNESS_SCHEMA)

    def test_custom_effort_labels(self, cells):
        labels = ["none", "sparse", "moderate", "dense", "saturated"]
        points = make_points([("A", 64.25, 29.25)] * 12)
        grid, _ = compute_grid_richness(points, cells, labels=labels)

        effort = grid.set_index("cell_id")["sampling_effort"]
        assert effort.loc[1] == "moderate"
        assert (effort.drop(1) == "none").all()
        assert list(grid["sampling_effort"].cat.categories) == labels
        validate_schema(grid, grid_richness_schema(labels))
        with pytest.raises(SchemaError):
            validate_schema(grid, GRID_RICHNESS_SCHEMA)

    def test_configured_effort_classes(self, cells):
        effort_config = read_yaml(PARAMS_FILE)["sampling_effort"]
        grid, _ = compute_grid_richness(
            make_points([("A", 64.25, 29.25)]), cells,
            breaks=effort_config["breaks"], labels=effort_config["labels"],
        )
        validate_schema(grid, grid_richness_schema(effort_config["labels"]))

    def test_no_points(self, cells):
        grid, stats = compute_grid_richness(make_points([]), cells)
        assert len(grid) == len(cells)
        assert grid["total_records"].sum() == 0
        assert stats["assigned"] == 0

    def test_empty_grid(self):
        from shapely.geometry import LineString
        cells = build_grid(LineString([(64, 29), (66, 31)]), 0.5)
        grid, stats = compute_grid_richness(make_points([("A", 65.0, 30.0)]), cells)
        assert len(grid) == 0
        assert stats["unassigned"] == 1


class TestSummarizeCells:
    """Tests for summarize_cells."""

    def test_null_taxa_excluded_from_distinct_counts(self):
        assigned = pd.DataFrame({
            "cell_id": [1, 1, 1],
            "species": ["A", "B", None],
            "family": ["F1", None, None],
            "genus": ["G1", "G1", None],
            "order": [None, None, None],
        })
        summary = summarize_cells(assigned).set_index("cell_id")
        assert summary.loc[1, "species_richness"] == 2
        assert summary.loc[1, "total_records"] == 3
        assert summary.loc[1, "n_families"] == 1
        assert summary.loc[1, "n_genera"] == 1
        assert summary.loc[1, "n_orders"] == 0

    def test_blank_species_excluded(self):
        assigned = pd.DataFrame({
            "cell_id": [2, 2],
            "species": ["A", "  "],
            "family": ["F", "F"],
            "genus": ["G", "G"],
            "order": ["O", "O"],
        })
        assert summarize_cells(assigned).loc[0, "species_richness"] == 1


class TestAttachRichness:
    """Tests for attach_richness."""

    def test_duplicate_summary_rows_rejected(self, cells):
        summary = pd.DataFrame({
            "cell_id": [1, 1],
            "species_richness": [1, 1],
            "total_records": [1, 1],
            "n_families": [1, 1],
            "n_genera": [1, 1],
            "n_orders": [1, 1],
        })
        with pytest.raises(SchemaError):
            attach_richness(cells, summary)


class TestRichnessInvariantGate:
    """Tests for the QA gate on richness grids."""

    def test_richness_without_records_fails(self):
        grid = pd.DataFrame({
            "cell_id": [1],
            "species_richness": [1],
            "total_records": [0],
            "n_families": [0],
            "n_genera": [0],
            "n_orders": [0],
        })
        with pytest.raises(QAError):
            check_richness_invariants(grid)

    def test_conservation_mismatch_fails(self):
        grid = pd.DataFrame({"total_records": [2, 3]})
        with pytest.raises(QAError):
            check_join_conservation(grid, assigned=4, clean_count=10)
