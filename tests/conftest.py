"""
Shared synthetic fixtures: small square boundaries inside the Pakistan
envelope and raw occurrence tables built from (species, lon, lat) tuples.
"""

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box


def make_raw(records, **extra_columns):
    """
    Raw occurrence table from (species, lon, lat) tuples.

    Taxonomy and date columns are filled with placeholder values unless
    given in extra_columns (as lists aligned with records).
    """
    n = len(records)
    df = pd.DataFrame(records, columns=["species", "decimalLongitude", "decimalLatitude"])
    defaults = {
        "class": ["Aves"] * n,
        "order": ["Passeriformes"] * n,
        "family": ["Corvidae"] * n,
        "genus": ["Corvus"] * n,
        "year": [2020] * n,
        "month": [5] * n,
        "day": [1] * n,
    }
    defaults.update(extra_columns)
    for col, values in defaults.items():
        df[col] = values
    df["decimalLongitude"] = df["decimalLongitude"].astype("float64")
    df["decimalLatitude"] = df["decimalLatitude"].astype("float64")
    return df


def make_points(records, crs="EPSG:4326", **extra_columns):
    """Point GeoDataFrame from (species, lon, lat) tuples."""
    df = make_raw(records, **extra_columns)
    return gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df["decimalLongitude"], df["decimalLatitude"]),
        crs=crs,
    )


@pytest.fixture
def square_boundary():
    """2 x 2 degree square; at 0.5 degrees it tiles into 16 whole cells."""
    return box(64.0, 29.0, 66.0, 31.0)


@pytest.fixture
def offset_boundary():
    """Square whose first cell, [64.75, 65.25] x [29.75, 30.25], holds (65, 30) and (65.1, 30.1)."""
    return box(64.75, 29.75, 66.75, 31.75)


@pytest.fixture
def boundary_gdf(square_boundary):
    return gpd.GeoDataFrame({"name": ["Pakistan"]}, geometry=[square_boundary], crs="EPSG:4326")
