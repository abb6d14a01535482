"""
Point-to-cell spatial join.

Every clean record is assigned to at most one grid cell:
1. sjoin(intersects) against the clipped cells, so points lying exactly on a
   cell edge or on the clipped country edge match every cell they touch
2. Boundary ties (a point matching several cells) resolve to the lowest
   cell_id, which is stable across runs for a fixed grid
3. Points matching no cell are dropped and counted as unassigned
"""

from typing import Dict, Tuple

import geopandas as gpd
import pandas as pd

from pak_biodiversity.qa import assert_crs_not_none
from pak_biodiversity.schemas import CELL_ID_COL


class SpatialJoinError(Exception):
    """Raised when points and cells cannot be joined."""
    pass


def assign_points_to_cells(
    points: gpd.GeoDataFrame,
    cells: gpd.GeoDataFrame,
) -> Tuple[gpd.GeoDataFrame, Dict]:
    """
    Assign each point to exactly one grid cell.

    Args:
        points: Clean occurrence points
        cells: Grid cells with a unique cell_id column

    Returns:
        Tuple of (assigned points with cell_id, join statistics). Unassigned
        points are not in the returned frame.

    Raises:
        SpatialJoinError: If the inputs are in different CRSs or cell_id is
                          not unique
    """
    assert_crs_not_none(points, "points input")
    assert_crs_not_none(cells, "cells input")

    if not points.crs.equals(cells.crs):
        raise SpatialJoinError(f"CRS mismatch: points {points.crs} vs cells {cells.crs}")
    if not cells[CELL_ID_COL].is_unique:
        raise SpatialJoinError("cell_id must be unique before joining")

    points = points.copy()
    points["_point_idx"] = range(len(points))

    joined = gpd.sjoin(
        points,
        cells[[CELL_ID_COL, "geometry"]],
        how="inner",
        predicate="intersects",
    )

    matches_per_point = joined.groupby("_point_idx").size()
    ties = int((matches_per_point > 1).sum())

    # Lowest cell_id wins a boundary tie
    assigned = (
        joined.sort_values(["_point_idx", CELL_ID_COL], kind="mergesort")
        .drop_duplicates(subset="_point_idx", keep="first")
        .drop(columns=["index_right"], errors="ignore")
    )
    assigned[CELL_ID_COL] = assigned[CELL_ID_COL].astype("int64")

    stats = {
        "total_points": len(points),
        "assigned": len(assigned),
        "unassigned": len(points) - len(assigned),
        "boundary_ties": ties,
        "cells_with_points": int(assigned[CELL_ID_COL].nunique()),
    }

    assigned = assigned.sort_values("_point_idx").drop(columns=["_point_idx"])

    return assigned, stats


def log_join_stats(stats: Dict, logger=None) -> None:
    """
    Log point-to-cell join statistics.

    Args:
        stats: Statistics dictionary from assign_points_to_cells
        logger: Optional logger instance (uses print if None)
    """
    msg = (
        f"Point-to-cell join: "
        f"{stats['total_points']:,} points, "
        f"{stats['assigned']:,} assigned, "
        f"{stats['unassigned']:,} outside all cells, "
        f"{stats['boundary_ties']:,} boundary ties"
    )

    if logger:
        logger.info(msg, extra={"join_stats": stats})
    else:
        print(msg)
