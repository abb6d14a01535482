"""
I/O utilities with atomic writes and safe reads.

All outputs are written via temp file -> rename/replace, so a failed stage
never leaves a half-written artifact behind for the next stage to pick up.
GeoParquet is the internal format; GeoPackage/GeoJSON are exports for GIS tools.
"""

import json
import os
import tempfile
from contextlib import contextmanager
from pathlib import Path
from typing import Any, Optional, Union

import geopandas as gpd
import pandas as pd
import yaml


# =============================================================================
# Atomic Write Utilities
# =============================================================================

def _temp_sibling(target_path: Path, suffix: str) -> Path:
    """Create an empty temp file next to target_path (same filesystem)."""
    fd, temp_path = tempfile.mkstemp(
        suffix=suffix,
        prefix=f".{target_path.stem}_",
        dir=target_path.parent,
    )
    os.close(fd)
    return Path(temp_path)


@contextmanager
def atomic_write(
    target_path: Union[str, Path],
    mode: str = "w",
    suffix: Optional[str] = None,
):
    """
    Context manager for atomic file writes.

    Writes to a temporary file first, then atomically renames to target.
    If an exception occurs, the temp file is cleaned up and target unchanged.

    Args:
        target_path: Final destination path
        mode: File mode ('w' for text, 'wb' for binary)
        suffix: Optional suffix for temp file (e.g., '.json')

    Yields:
        File handle for writing
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    if suffix is None:
        suffix = target_path.suffix or ".tmp"

    temp_path = _temp_sibling(target_path, suffix)

    try:
        encoding = None if "b" in mode else "utf-8"
        with open(temp_path, mode, encoding=encoding) as f:
            yield f

        temp_path.replace(target_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_df(
    df: pd.DataFrame,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write a DataFrame to CSV or Parquet.

    File format determined by extension.

    Args:
        df: DataFrame to write
        target_path: Destination path (.csv or .parquet)
        **kwargs: Additional arguments passed to to_csv/to_parquet
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = target_path.suffix.lower()
    if suffix not in (".csv", ".parquet"):
        raise ValueError(f"Unsupported format: {suffix}")

    temp_path = _temp_sibling(target_path, suffix)

    try:
        if suffix == ".parquet":
            df.to_parquet(temp_path, **kwargs)
        else:
            df.to_csv(temp_path, **kwargs)

        temp_path.replace(target_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_gdf(
    gdf: gpd.GeoDataFrame,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write a GeoDataFrame to GeoParquet, GeoJSON or GeoPackage.

    Args:
        gdf: GeoDataFrame to write
        target_path: Destination path (.parquet, .geojson, .gpkg)
        **kwargs: Additional arguments passed to writer
    """
    target_path = Path(target_path)
    target_path.parent.mkdir(parents=True, exist_ok=True)

    suffix = target_path.suffix.lower()
    drivers = {".geojson": "GeoJSON", ".gpkg": "GPKG"}
    if suffix != ".parquet" and suffix not in drivers:
        raise ValueError(f"Unsupported geo format: {suffix}")

    temp_path = _temp_sibling(target_path, suffix)

    try:
        if suffix == ".parquet":
            gdf.to_parquet(temp_path, **kwargs)
        else:
            # OGR refuses to open an existing empty file as a dataset
            temp_path.unlink()
            if suffix == ".gpkg":
                # layer name defaults to the temp stem, which GPKG rejects
                kwargs.setdefault("layer", target_path.stem)
            gdf.to_file(temp_path, driver=drivers[suffix], **kwargs)

        temp_path.replace(target_path)

    except Exception:
        if temp_path.exists():
            temp_path.unlink()
        raise


def atomic_write_json(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write JSON data.

    Args:
        data: JSON-serializable data
        target_path: Destination path
        **kwargs: Additional arguments passed to json.dump
    """
    kwargs.setdefault("indent", 2)
    kwargs.setdefault("default", str)

    with atomic_write(target_path, mode="w", suffix=".json") as f:
        json.dump(data, f, **kwargs)


def atomic_write_yaml(
    data: Any,
    target_path: Union[str, Path],
    **kwargs,
) -> None:
    """
    Atomically write YAML data.

    Args:
        data: YAML-serializable data
        target_path: Destination path
        **kwargs: Additional arguments passed to yaml.safe_dump
    """
    kwargs.setdefault("default_flow_style", False)
    kwargs.setdefault("sort_keys", False)

    with atomic_write(target_path, mode="w", suffix=".yml") as f:
        yaml.safe_dump(data, f, **kwargs)


def atomic_write_text(text: str, target_path: Union[str, Path]) -> None:
    """Atomically write a plain-text report."""
    with atomic_write(target_path, mode="w", suffix=".txt") as f:
        f.write(text)


# =============================================================================
# Read Utilities
# =============================================================================

def read_yaml(path: Union[str, Path]) -> dict:
    """Read a YAML file."""
    with open(path, "r", encoding="utf-8") as f:
        return yaml.safe_load(f)


def read_json(path: Union[str, Path]) -> Any:
    """Read a JSON file."""
    with open(path, "r", encoding="utf-8") as f:
        return json.load(f)


def read_gdf(
    path: Union[str, Path],
    **kwargs,
) -> gpd.GeoDataFrame:
    """
    Read a GeoDataFrame from file.

    Supports GeoParquet, GeoJSON, GeoPackage, Shapefile.

    Args:
        path: Path to geo file
        **kwargs: Additional arguments passed to reader

    Returns:
        GeoDataFrame
    """
    path = Path(path)

    if path.suffix.lower() == ".parquet":
        return gpd.read_parquet(path, **kwargs)
    return gpd.read_file(path, **kwargs)


def read_df(
    path: Union[str, Path],
    **kwargs,
) -> pd.DataFrame:
    """
    Read a DataFrame from CSV or Parquet.

    Args:
        path: Path to data file
        **kwargs: Additional arguments passed to reader

    Returns:
        DataFrame
    """
    path = Path(path)
    suffix = path.suffix.lower()

    if suffix == ".parquet":
        return pd.read_parquet(path, **kwargs)
    elif suffix == ".csv":
        return pd.read_csv(path, **kwargs)
    else:
        raise ValueError(f"Unsupported format: {suffix}")
