"""
Biodiversity hotspot selection.

A hotspot is a grid cell whose species richness is at or above the 90th
percentile of richness among cells with richness > 0. Unsampled cells are
excluded from the percentile so they cannot pull the threshold down.
"""

from typing import Tuple

import pandas as pd

from pak_biodiversity.schemas import CELL_ID_COL

DEFAULT_PERCENTILE = 0.90


class NoHotspotDataError(Exception):
    """Raised when no cell has positive richness, so no threshold exists."""
    pass


def hotspot_threshold(
    richness: pd.Series,
    percentile: float = DEFAULT_PERCENTILE,
) -> float:
    """
    Percentile of positive richness values (linear interpolation).

    Args:
        richness: species_richness per cell
        percentile: Quantile in (0, 1]

    Returns:
        Threshold value

    Raises:
        NoHotspotDataError: If no cell has richness > 0
        ValueError: If percentile is outside (0, 1]
    """
    if not 0 < percentile <= 1:
        raise ValueError(f"percentile must be in (0, 1], got {percentile}")

    positive = richness[richness > 0]
    if len(positive) == 0:
        raise NoHotspotDataError(
            "No grid cell has species_richness > 0; cannot compute hotspot threshold"
        )

    return float(positive.quantile(percentile, interpolation="linear"))


def select_hotspots(
    grid: pd.DataFrame,
    percentile: float = DEFAULT_PERCENTILE,
) -> Tuple[pd.DataFrame, float]:
    """
    Select hotspot cells from the richness grid.

    Cells with richness >= threshold are kept (ties at the threshold
    included), sorted by richness descending, then cell_id ascending.

    Args:
        grid: Grid with cell_id and species_richness
        percentile: Quantile used for the threshold

    Returns:
        Tuple of (hotspot rows, threshold)

    Raises:
        NoHotspotDataError: If no cell has richness > 0
    """
    threshold = hotspot_threshold(grid["species_richness"], percentile)

    hotspots = grid[grid["species_richness"] >= threshold]
    hotspots = hotspots.sort_values(
        ["species_richness", CELL_ID_COL],
        ascending=[False, True],
        kind="mergesort",
    ).reset_index(drop=True)

    return hotspots, threshold
