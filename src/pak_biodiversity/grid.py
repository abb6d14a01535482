"""
Spatial grid builder.

Tiles the bounding box of the boundary with a regular lattice of square cells
(default 0.5 degree), numbers the lattice cells sequentially, and clips each
cell to the boundary polygon. Cells with no areal overlap are dropped, so a
cell_id present in the output always refers to a piece of the country.

Lattice numbering is row-major from the south-west corner: cell 1 is the
bottom-left cell, ids increase eastward along a row and then northward.
Ids are assigned before clipping and are therefore stable for a given
boundary and cell size, with gaps where lattice cells were dropped.
"""

import math
from typing import Tuple

import geopandas as gpd
import numpy as np
import shapely
from shapely.geometry.base import BaseGeometry

from pak_biodiversity.schemas import CELL_ID_COL

DEFAULT_CELL_SIZE = 0.5

GRID_COLUMNS = [CELL_ID_COL, "row", "col", "geometry"]


def _empty_grid(crs: str) -> gpd.GeoDataFrame:
    return gpd.GeoDataFrame(
        {CELL_ID_COL: np.array([], dtype="int64"),
         "row": np.array([], dtype="int64"),
         "col": np.array([], dtype="int64")},
        geometry=[],
        crs=crs,
    )


def lattice_shape(bounds: Tuple[float, float, float, float], cell_size: float) -> Tuple[int, int]:
    """
    Number of (rows, cols) needed to cover bounds with square cells.

    The lattice is anchored at (minx, miny) and extends past (maxx, maxy)
    when the extent is not a whole multiple of the cell size.
    """
    if cell_size <= 0:
        raise ValueError(f"cell_size must be positive, got {cell_size}")

    minx, miny, maxx, maxy = bounds
    n_cols = max(int(math.ceil((maxx - minx) / cell_size)), 1)
    n_rows = max(int(math.ceil((maxy - miny) / cell_size)), 1)
    return n_rows, n_cols


def create_lattice(
    bounds: Tuple[float, float, float, float],
    cell_size: float = DEFAULT_CELL_SIZE,
    crs: str = "EPSG:4326",
) -> gpd.GeoDataFrame:
    """
    Create a regular square lattice covering the given bounds.

    Args:
        bounds: (minx, miny, maxx, maxy) in degrees
        cell_size: Cell edge length in degrees
        crs: CRS of the bounds

    Returns:
        GeoDataFrame with cell_id (from 1), row, col and square geometry
    """
    minx, miny, _, _ = bounds
    n_rows, n_cols = lattice_shape(bounds, cell_size)

    rows, cols = np.divmod(np.arange(n_rows * n_cols), n_cols)
    x0 = minx + cols * cell_size
    y0 = miny + rows * cell_size

    return gpd.GeoDataFrame(
        {
            CELL_ID_COL: np.arange(1, n_rows * n_cols + 1, dtype="int64"),
            "row": rows.astype("int64"),
            "col": cols.astype("int64"),
        },
        geometry=shapely.box(x0, y0, x0 + cell_size, y0 + cell_size),
        crs=crs,
    )


def _polygonal_part(geom: BaseGeometry) -> BaseGeometry:
    """Drop line/point debris that an intersection can leave along shared edges."""
    if geom is None or geom.is_empty:
        return shapely.Polygon()
    if geom.geom_type in ("Polygon", "MultiPolygon"):
        return geom
    parts = [p for p in shapely.get_parts(geom) if p.geom_type in ("Polygon", "MultiPolygon")]
    if not parts:
        return shapely.Polygon()
    return shapely.union_all(parts)


def clip_lattice(lattice: gpd.GeoDataFrame, boundary: BaseGeometry) -> gpd.GeoDataFrame:
    """
    Clip lattice cells to the boundary, keeping only cells with areal overlap.

    Args:
        lattice: Output of create_lattice
        boundary: Boundary polygon in the lattice CRS

    Returns:
        GeoDataFrame of clipped cells (possibly empty), ordered by cell_id
    """
    candidates = lattice[lattice.geometry.intersects(boundary)]
    if len(candidates) == 0:
        return _empty_grid(lattice.crs)

    clipped = gpd.GeoSeries(
        [_polygonal_part(g) for g in candidates.geometry.intersection(boundary)],
        index=candidates.index,
        crs=lattice.crs,
    )
    cells = candidates.copy()
    cells["geometry"] = clipped
    cells = cells[~cells.geometry.is_empty & (cells.geometry.area > 0)]

    return cells[GRID_COLUMNS].sort_values(CELL_ID_COL).reset_index(drop=True)


def build_grid(
    boundary: BaseGeometry,
    cell_size: float = DEFAULT_CELL_SIZE,
    crs: str = "EPSG:4326",
) -> gpd.GeoDataFrame:
    """
    Build the analysis grid for a boundary polygon.

    This is the cell_id -> cell polygon mapping used by every later stage.

    Args:
        boundary: Country boundary polygon (degrees)
        cell_size: Cell edge length in degrees (default 0.5)
        crs: CRS of the boundary

    Returns:
        GeoDataFrame with unique cell_id, row, col and clipped geometry.
        Empty when the boundary has no area.
    """
    if boundary is None or boundary.is_empty or boundary.area == 0:
        return _empty_grid(crs)

    lattice = create_lattice(boundary.bounds, cell_size, crs)
    return clip_lattice(lattice, boundary)
