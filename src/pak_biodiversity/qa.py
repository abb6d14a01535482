"""
Quality assurance utilities for geospatial data and pipeline invariants.

- CRS mismatches are hard errors. No silent overrides.
- Bounds sanity checks on every geometry read/write.
- Stage invariants (cleaning log, richness counts, join conservation) are
  checked before any output is written.
"""

from typing import Optional, Sequence, Tuple

import geopandas as gpd
import numpy as np
import pandas as pd
from pyproj import CRS


# =============================================================================
# Errors
# =============================================================================

class CRSError(Exception):
    """Raised when CRS validation fails."""
    pass


class BoundsError(Exception):
    """Raised when bounds validation fails."""
    pass


class QAError(Exception):
    """Raised when a pipeline invariant does not hold."""
    pass


# =============================================================================
# CRS Validation
# =============================================================================

def assert_crs_not_none(gdf: gpd.GeoDataFrame, context: str = "") -> None:
    """
    Assert that the GeoDataFrame has a CRS set.

    Args:
        gdf: GeoDataFrame to check
        context: Optional context string for error message

    Raises:
        CRSError: If CRS is None
    """
    if gdf.crs is None:
        msg = "GeoDataFrame has no CRS set"
        if context:
            msg = f"{msg} ({context})"
        raise CRSError(msg)


def assert_expected_crs(
    gdf: gpd.GeoDataFrame,
    expected_epsg: int,
    context: str = "",
) -> None:
    """
    Assert that the GeoDataFrame has the expected CRS.

    Args:
        gdf: GeoDataFrame to check
        expected_epsg: Expected EPSG code (e.g., 4326)
        context: Optional context string for error message

    Raises:
        CRSError: If CRS is None or doesn't match expected
    """
    assert_crs_not_none(gdf, context)

    if not gdf.crs.equals(CRS.from_epsg(expected_epsg)):
        msg = f"CRS mismatch: expected EPSG:{expected_epsg}, got {gdf.crs}"
        if context:
            msg = f"{msg} ({context})"
        raise CRSError(msg)


def safe_reproject(
    gdf: gpd.GeoDataFrame,
    target_epsg: int,
    context: str = "",
) -> gpd.GeoDataFrame:
    """
    Safely reproject a GeoDataFrame to target CRS.

    Only uses to_crs(), never set_crs with override.

    Args:
        gdf: GeoDataFrame to reproject
        target_epsg: Target EPSG code
        context: Optional context string for error message

    Returns:
        Reprojected GeoDataFrame (the input itself if already in target CRS)

    Raises:
        CRSError: If source CRS is None
    """
    assert_crs_not_none(gdf, context)

    target_crs = CRS.from_epsg(target_epsg)

    if gdf.crs.equals(target_crs):
        return gdf

    return gdf.to_crs(target_crs)


def crs_info(gdf: gpd.GeoDataFrame) -> dict:
    """CRS summary for logging."""
    return {
        "epsg": gdf.crs.to_epsg() if gdf.crs is not None else None,
        "name": gdf.crs.name if gdf.crs is not None else None,
        "bounds": [float(v) for v in gdf.total_bounds] if len(gdf) else None,
    }


# =============================================================================
# Bounds Validation
# =============================================================================

def get_bounds(gdf: gpd.GeoDataFrame) -> Tuple[float, float, float, float]:
    """Get bounds of a GeoDataFrame as (minx, miny, maxx, maxy)."""
    return tuple(float(v) for v in gdf.total_bounds)


def check_bounds_epsg4326(
    gdf: gpd.GeoDataFrame,
    lon_min: float = 60.0,
    lon_max: float = 78.0,
    lat_min: float = 23.0,
    lat_max: float = 38.0,
    context: str = "",
) -> bool:
    """
    Check if GeoDataFrame bounds are plausible for Pakistan in EPSG:4326.

    Args:
        gdf: GeoDataFrame in EPSG:4326
        lon_min, lon_max: Expected longitude range
        lat_min, lat_max: Expected latitude range
        context: Optional context for error message

    Returns:
        True if bounds are plausible (an empty frame is trivially plausible)

    Raises:
        BoundsError: If bounds are outside expected range
    """
    if len(gdf) == 0:
        return True

    minx, miny, maxx, maxy = get_bounds(gdf)

    errors = []
    if not all(np.isfinite([minx, miny, maxx, maxy])):
        errors.append(f"Non-finite bounds: {(minx, miny, maxx, maxy)}")
    else:
        if minx < lon_min or maxx > lon_max:
            errors.append(f"Longitude out of range: [{minx}, {maxx}] not in [{lon_min}, {lon_max}]")
        if miny < lat_min or maxy > lat_max:
            errors.append(f"Latitude out of range: [{miny}, {maxy}] not in [{lat_min}, {lat_max}]")

    if errors:
        msg = "EPSG:4326 bounds check failed: " + "; ".join(errors)
        if context:
            msg = f"{msg} ({context})"
        raise BoundsError(msg)

    return True


# =============================================================================
# Geometry Validation
# =============================================================================

def assert_all_valid(gdf: gpd.GeoDataFrame, context: str = "") -> None:
    """
    Assert all geometries are valid.

    Args:
        gdf: GeoDataFrame to check
        context: Optional context for error message

    Raises:
        ValueError: If any geometry is invalid
    """
    invalid_mask = ~gdf.geometry.is_valid
    if invalid_mask.any():
        msg = f"{int(invalid_mask.sum())} invalid geometries found"
        if context:
            msg = f"{msg} ({context})"
        raise ValueError(msg)


# =============================================================================
# Pipeline Invariants
# =============================================================================

def check_cleaning_log(log: pd.DataFrame, initial_count: int, final_count: int) -> None:
    """
    Check that a cleaning log is internally consistent.

    Each step's remaining count must equal the previous remaining count minus
    its removed count, starting from `initial_count`, and the last step must
    end at `final_count` (the row count of the clean table).

    Raises:
        QAError: If the log does not add up
    """
    expected = initial_count
    for row in log.itertuples(index=False):
        if row.records_removed < 0:
            raise QAError(f"Step '{row.step}' reports a negative removal count")
        expected -= row.records_removed
        if row.records_remaining != expected:
            raise QAError(
                f"Step '{row.step}': remaining {row.records_remaining} != expected {expected}"
            )

    if expected != final_count:
        raise QAError(f"Cleaning log ends at {expected} records, clean table has {final_count}")


def check_richness_invariants(grid: pd.DataFrame) -> None:
    """
    Check per-cell richness invariants.

    - No null counts
    - species_richness == 0 exactly when total_records == 0
    - species_richness <= total_records

    Raises:
        QAError: If any invariant fails
    """
    counts = ["species_richness", "total_records", "n_families", "n_genera", "n_orders"]
    if grid[counts].isna().any().any():
        raise QAError("Richness grid contains null counts")

    empty_richness = grid["species_richness"] == 0
    empty_records = grid["total_records"] == 0
    mismatched = empty_richness != empty_records
    if mismatched.any():
        bad = grid.loc[mismatched, "cell_id"].tolist()[:5]
        raise QAError(f"species_richness == 0 disagrees with total_records == 0 for cells {bad}")

    if (grid["species_richness"] > grid["total_records"]).any():
        raise QAError("species_richness exceeds total_records in some cells")


def check_join_conservation(grid: pd.DataFrame, assigned: int, clean_count: int) -> None:
    """
    Check that per-cell record totals add up to the assigned record count.

    Raises:
        QAError: If the totals disagree or more records were assigned than exist
    """
    total = int(grid["total_records"].sum())
    if total != assigned:
        raise QAError(f"Grid total_records {total} != assigned records {assigned}")
    if assigned > clean_count:
        raise QAError(f"Assigned records {assigned} exceed clean records {clean_count}")


# =============================================================================
# Data Quality Summaries
# =============================================================================

def compute_na_rates(df: pd.DataFrame, columns: Optional[Sequence[str]] = None) -> dict:
    """
    Compute NA rates for columns of a DataFrame.

    Args:
        df: DataFrame to analyze
        columns: Columns to include (default: all)

    Returns:
        Dictionary of column_name -> NA rate (0-1); empty for an empty frame
    """
    if len(df) == 0:
        return {}
    subset = df if columns is None else df[[c for c in columns if c in df.columns]]
    return {k: float(v) for k, v in (subset.isna().sum() / len(subset)).items()}
