"""
Richness aggregation and sampling-effort classification.

Per grid cell:
- species_richness: distinct non-empty species names
- total_records:    assigned occurrence records
- n_families / n_genera / n_orders: distinct non-null taxon names
- sampling_effort:  ordered label derived from total_records

Aggregates are left-joined onto the full cell list; cells without records
carry zeros, never nulls.
"""

from numbers import Integral
from typing import Dict, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd

from pak_biodiversity.cleaning import is_missing_species
from pak_biodiversity.joins import assign_points_to_cells
from pak_biodiversity.schemas import (
    CELL_ID_COL,
    RICHNESS_COUNT_COLUMNS,
    SAMPLING_EFFORT_LABELS,
    SPECIES_COL,
    validate_merge,
)

# Inclusive upper bounds for all labels but the last (open-ended) one
SAMPLING_EFFORT_BREAKS = (0, 9, 49, 199)


# =============================================================================
# Sampling Effort
# =============================================================================

def sampling_effort_label(
    total_records: int,
    breaks: Sequence[int] = SAMPLING_EFFORT_BREAKS,
    labels: Sequence[str] = SAMPLING_EFFORT_LABELS,
) -> str:
    """
    Label a single record count.

    0 -> Unsampled, 1-9 -> Low, 10-49 -> Medium, 50-199 -> High, >=200 -> Very High.

    Raises:
        ValueError: For negative or non-integer counts
    """
    if isinstance(total_records, bool) or not isinstance(total_records, Integral):
        raise ValueError(f"total_records must be an integer, got {total_records!r}")
    if total_records < 0:
        raise ValueError(f"total_records must be non-negative, got {total_records}")

    for upper, label in zip(breaks, labels):
        if total_records <= upper:
            return label
    return labels[len(breaks)]


def classify_sampling_effort(
    total_records: pd.Series,
    breaks: Sequence[int] = SAMPLING_EFFORT_BREAKS,
    labels: Sequence[str] = SAMPLING_EFFORT_LABELS,
) -> pd.Series:
    """
    Vectorized sampling-effort classification.

    Args:
        total_records: Non-negative integer counts
        breaks: Inclusive upper bounds of each label except the last
        labels: len(breaks) + 1 ordered labels

    Returns:
        Ordered categorical Series aligned with the input

    Raises:
        ValueError: On negative, null or fractional counts, or mismatched labels
    """
    if len(labels) != len(breaks) + 1:
        raise ValueError("labels must have exactly one more entry than breaks")
    if total_records.isna().any():
        raise ValueError("total_records contains nulls")

    values = total_records.to_numpy(dtype="float64")
    if (values < 0).any() or (values != np.floor(values)).any():
        raise ValueError("total_records must be non-negative integers")

    bins = [-np.inf, *breaks, np.inf]
    dtype = pd.CategoricalDtype(list(labels), ordered=True)
    return pd.cut(total_records, bins=bins, labels=list(labels), right=True).astype(dtype)


# =============================================================================
# Aggregation
# =============================================================================

def summarize_cells(assigned: pd.DataFrame) -> pd.DataFrame:
    """
    Per-cell counts for records that already carry a cell_id.

    Null or blank species names are excluded from the distinct species count;
    null taxon names are excluded from the family/genus/order counts.
    """
    records = assigned[[CELL_ID_COL, SPECIES_COL, "family", "genus", "order"]].copy()
    records[SPECIES_COL] = records[SPECIES_COL].mask(is_missing_species(records[SPECIES_COL]))

    grouped = records.groupby(CELL_ID_COL)
    summary = pd.DataFrame({
        "species_richness": grouped[SPECIES_COL].nunique(dropna=True),
        "total_records": grouped.size(),
        "n_families": grouped["family"].nunique(dropna=True),
        "n_genera": grouped["genus"].nunique(dropna=True),
        "n_orders": grouped["order"].nunique(dropna=True),
    })
    summary.index.name = CELL_ID_COL
    summary = summary.reset_index()
    summary[CELL_ID_COL] = summary[CELL_ID_COL].astype("int64")
    return summary


def attach_richness(
    cells: gpd.GeoDataFrame,
    summary: pd.DataFrame,
    breaks: Sequence[int] = SAMPLING_EFFORT_BREAKS,
    labels: Sequence[str] = SAMPLING_EFFORT_LABELS,
) -> gpd.GeoDataFrame:
    """
    Left-join per-cell counts onto every cell and fill empty cells with 0.

    Args:
        cells: Grid cells (cell_id, geometry, ...)
        summary: Output of summarize_cells
        breaks: Sampling-effort breakpoints
        labels: Sampling-effort labels, one more than breaks

    Returns:
        GeoDataFrame with one row per cell, counts and sampling_effort
    """
    grid = validate_merge(
        cells,
        summary,
        on=CELL_ID_COL,
        how="left",
        validate="one_to_one",
        context="grid richness",
    )
    for col in RICHNESS_COUNT_COLUMNS:
        grid[col] = grid[col].fillna(0).astype("int64")

    grid["sampling_effort"] = classify_sampling_effort(
        grid["total_records"], breaks=breaks, labels=labels
    )
    return grid


def compute_grid_richness(
    points: gpd.GeoDataFrame,
    cells: gpd.GeoDataFrame,
    breaks: Sequence[int] = SAMPLING_EFFORT_BREAKS,
    labels: Sequence[str] = SAMPLING_EFFORT_LABELS,
) -> Tuple[gpd.GeoDataFrame, Dict]:
    """
    Join clean points to grid cells and compute per-cell richness.

    Args:
        points: Clean occurrence points (species, family, genus, order, geometry)
        cells: Clipped grid cells from build_grid
        breaks: Sampling-effort breakpoints
        labels: Sampling-effort labels, one more than breaks

    Returns:
        Tuple of (grid with richness columns, join statistics)
    """
    assigned, stats = assign_points_to_cells(points, cells)
    summary = summarize_cells(assigned)
    grid = attach_richness(cells, summary, breaks=breaks, labels=labels)
    return grid, stats
