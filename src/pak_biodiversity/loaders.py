"""
Record loader: raw occurrence table and country boundary.

Both readers fail hard with InputError on a missing or malformed source;
no downstream stage ever sees a partially loaded input.
"""

from pathlib import Path
from typing import Optional, Union

import geopandas as gpd
import pandas as pd
from shapely.geometry.base import BaseGeometry

from pak_biodiversity.io_utils import read_df, read_gdf
from pak_biodiversity.schemas import (
    LAT_COL,
    LON_COL,
    RAW_OCCURRENCE_SCHEMA,
    SPECIES_COL,
    SchemaError,
    validate_schema,
)

NUMERIC_COLUMNS = [LON_COL, LAT_COL, "year", "month", "day"]


class InputError(Exception):
    """Raised when a source file is missing, unreadable or malformed."""
    pass


def read_raw_occurrences(path: Union[str, Path]) -> pd.DataFrame:
    """
    Read a raw GBIF occurrence table.

    Coordinates and date parts are coerced to numbers; values that cannot be
    parsed become NA and are dealt with by the cleaning filter. Species names
    are read as the pandas string dtype.

    Args:
        path: CSV or Parquet file exported from GBIF

    Returns:
        DataFrame with at least RAW_REQUIRED_COLUMNS

    Raises:
        InputError: If the file is missing, unreadable, or lacks required columns
    """
    path = Path(path)
    if not path.is_file():
        raise InputError(f"Raw occurrence file not found: {path}")

    try:
        if path.suffix.lower() == ".csv":
            df = read_df(path, low_memory=False)
        else:
            df = read_df(path)
    except (ValueError, OSError, pd.errors.ParserError) as e:
        raise InputError(f"Could not read raw occurrences from {path}: {e}") from e

    try:
        validate_schema(df, RAW_OCCURRENCE_SCHEMA, context=str(path))
    except SchemaError as e:
        raise InputError(str(e)) from e

    df = df.copy()
    for col in NUMERIC_COLUMNS:
        df[col] = pd.to_numeric(df[col], errors="coerce")
    df[LON_COL] = df[LON_COL].astype("float64")
    df[LAT_COL] = df[LAT_COL].astype("float64")
    # an all-blank species column parses as float64
    df[SPECIES_COL] = df[SPECIES_COL].astype("string")

    return df


def read_boundary(
    path: Union[str, Path],
    name_field: Optional[str] = None,
    name: Optional[str] = None,
) -> gpd.GeoDataFrame:
    """
    Read the country boundary as a single-row GeoDataFrame in EPSG:4326.

    Args:
        path: Vector file (GeoPackage, Shapefile, GeoJSON, GeoParquet)
        name_field: Optional attribute to select the country by (e.g. "ADMIN")
        name: Value of `name_field` to select

    Returns:
        Single-row GeoDataFrame holding the dissolved (multi)polygon

    Raises:
        InputError: If the file is missing/unreadable, has no CRS,
                    or holds no polygonal geometry
    """
    path = Path(path)
    if not path.exists():
        raise InputError(f"Boundary file not found: {path}")

    try:
        gdf = read_gdf(path)
    except Exception as e:
        raise InputError(f"Could not read boundary from {path}: {e}") from e

    if gdf.crs is None:
        raise InputError(f"Boundary has no CRS: {path}")

    if name_field is not None:
        if name_field not in gdf.columns:
            raise InputError(f"Boundary has no attribute '{name_field}': {path}")
        gdf = gdf[gdf[name_field] == name]

    gdf = gdf[gdf.geometry.notna() & ~gdf.geometry.is_empty]
    gdf = gdf[gdf.geom_type.isin(["Polygon", "MultiPolygon"])]
    if len(gdf) == 0:
        raise InputError(f"No polygon geometry found in boundary {path}")

    gdf = gdf.to_crs(epsg=4326)
    geometry = gdf.geometry.make_valid().union_all()

    return gpd.GeoDataFrame(
        {"name": [name or path.stem]},
        geometry=[geometry],
        crs="EPSG:4326",
    )


def boundary_geometry(boundary: gpd.GeoDataFrame) -> BaseGeometry:
    """Dissolve a boundary GeoDataFrame to one shapely geometry."""
    if boundary.crs is not None and boundary.crs.to_epsg() != 4326:
        boundary = boundary.to_crs(epsg=4326)
    return boundary.geometry.union_all()
