"""
Cleaning filter for raw occurrence records.

The filter is an ordered sequence of steps. Each step takes the output of the
previous one and returns a StepResult: the surviving records plus one log
entry (step name, records removed, records remaining). The cleaning log is the
tuple of those entries, built in order; there is no shared mutable log.

Order is significant:
  1. No coordinates        - missing longitude or latitude
  2. No species name       - null or blank species
  3. Invalid coordinates   - outside the country's lon/lat envelope
  4. Duplicates            - first record per (species, lon, lat)
  5. Column selection      - projection to the fixed column set
  6. Outside boundary      - exact point-in-polygon test

Step 3 is a cheap pre-filter; step 6 is authoritative and may still remove
records that passed step 3.
"""

from dataclasses import dataclass
from functools import partial
from typing import Callable, List, Optional, Sequence, Tuple

import geopandas as gpd
import pandas as pd
from shapely.geometry.base import BaseGeometry

from pak_biodiversity.schemas import (
    CLEAN_COLUMNS,
    CLEANING_LOG_COLUMNS,
    DEDUP_KEYS,
    LAT_COL,
    LON_COL,
    SPECIES_COL,
)

STEP_NO_COORDINATES = "No coordinates"
STEP_NO_SPECIES = "No species name"
STEP_INVALID_COORDINATES = "Invalid coordinates"
STEP_DUPLICATES = "Duplicates"
STEP_COLUMN_SELECTION = "Column selection"
STEP_OUTSIDE_BOUNDARY = "Outside boundary"


# =============================================================================
# Types
# =============================================================================

@dataclass(frozen=True)
class Envelope:
    """Closed longitude/latitude box used as a cheap spatial pre-filter."""
    lon_min: float
    lon_max: float
    lat_min: float
    lat_max: float

    def contains(self, lon: pd.Series, lat: pd.Series) -> pd.Series:
        """Vectorized closed-interval test; NA coordinates are outside."""
        return lon.between(self.lon_min, self.lon_max) & lat.between(self.lat_min, self.lat_max)

    @classmethod
    def from_config(cls, config: dict) -> "Envelope":
        return cls(
            lon_min=float(config["lon_min"]),
            lon_max=float(config["lon_max"]),
            lat_min=float(config["lat_min"]),
            lat_max=float(config["lat_max"]),
        )


PAKISTAN_ENVELOPE = Envelope(lon_min=60.0, lon_max=78.0, lat_min=23.0, lat_max=38.0)


@dataclass(frozen=True)
class LogEntry:
    """One row of the cleaning log."""
    step: str
    records_removed: int
    records_remaining: int


@dataclass(frozen=True)
class StepResult:
    """Output of a single cleaning step."""
    records: pd.DataFrame
    entry: LogEntry


@dataclass(frozen=True)
class CleaningResult:
    """Clean records plus the ordered cleaning log."""
    records: gpd.GeoDataFrame
    log: Tuple[LogEntry, ...]
    initial_count: int

    @property
    def final_count(self) -> int:
        return len(self.records)

    @property
    def total_removed(self) -> int:
        return self.initial_count - self.final_count

    @property
    def retention_rate(self) -> float:
        """Share of raw records that survived cleaning (0 for an empty input)."""
        if self.initial_count == 0:
            return 0.0
        return self.final_count / self.initial_count

    def log_frame(self) -> pd.DataFrame:
        """Cleaning log as a DataFrame with columns step, records_removed, records_remaining."""
        return pd.DataFrame(
            [(e.step, e.records_removed, e.records_remaining) for e in self.log],
            columns=CLEANING_LOG_COLUMNS,
        ).astype({"records_removed": "int64", "records_remaining": "int64"})


# =============================================================================
# Steps
# =============================================================================

def _result(step: str, before: pd.DataFrame, after: pd.DataFrame) -> StepResult:
    return StepResult(
        records=after,
        entry=LogEntry(
            step=step,
            records_removed=len(before) - len(after),
            records_remaining=len(after),
        ),
    )


def is_missing_species(species: pd.Series) -> pd.Series:
    """True where the species name is null, empty, or whitespace only."""
    blank = species.astype("string").str.strip().eq("")
    return species.isna() | blank.fillna(False).astype(bool)


def drop_missing_coordinates(df: pd.DataFrame) -> StepResult:
    """Drop records with a missing longitude or latitude."""
    kept = df[df[LON_COL].notna() & df[LAT_COL].notna()]
    return _result(STEP_NO_COORDINATES, df, kept)


def drop_missing_species(df: pd.DataFrame) -> StepResult:
    """Drop records without a species name."""
    kept = df[~is_missing_species(df[SPECIES_COL])]
    return _result(STEP_NO_SPECIES, df, kept)


def drop_outside_envelope(df: pd.DataFrame, envelope: Envelope = PAKISTAN_ENVELOPE) -> StepResult:
    """Drop records whose coordinates fall outside the closed envelope."""
    kept = df[envelope.contains(df[LON_COL], df[LAT_COL])]
    return _result(STEP_INVALID_COORDINATES, df, kept)


def drop_duplicates(df: pd.DataFrame, keys: Sequence[str] = DEDUP_KEYS) -> StepResult:
    """
    Keep only the first record per key tuple.

    All other fields of the discarded duplicates are lost. Applying this step
    to its own output removes nothing.
    """
    kept = df.drop_duplicates(subset=list(keys), keep="first")
    return _result(STEP_DUPLICATES, df, kept)


def select_columns(df: pd.DataFrame, columns: Sequence[str] = CLEAN_COLUMNS) -> StepResult:
    """
    Project to the fixed column set, in the given order.

    Columns of the set that the raw table does not carry are skipped; the
    species and coordinate columns are always required.
    """
    for required in (SPECIES_COL, LON_COL, LAT_COL):
        if required not in columns:
            raise ValueError(f"Column selection must keep '{required}'")

    kept = df[[c for c in columns if c in df.columns]]
    return _result(STEP_COLUMN_SELECTION, df, kept)


def drop_outside_boundary(df: pd.DataFrame, boundary: BaseGeometry) -> StepResult:
    """
    Convert records to points and drop those not inside the boundary polygon.

    Points lying exactly on the boundary line count as inside.

    Returns:
        StepResult whose records are a GeoDataFrame in EPSG:4326
    """
    points = gpd.GeoDataFrame(
        df,
        geometry=gpd.points_from_xy(df[LON_COL], df[LAT_COL]),
        crs="EPSG:4326",
    )
    kept = points[points.geometry.intersects(boundary)]
    return _result(STEP_OUTSIDE_BOUNDARY, df, kept)


# =============================================================================
# Pipeline
# =============================================================================

def cleaning_steps(
    boundary: BaseGeometry,
    envelope: Envelope = PAKISTAN_ENVELOPE,
    keep_columns: Sequence[str] = CLEAN_COLUMNS,
    dedup_keys: Sequence[str] = DEDUP_KEYS,
) -> List[Callable[[pd.DataFrame], StepResult]]:
    """The ordered list of cleaning steps, parameterized."""
    return [
        drop_missing_coordinates,
        drop_missing_species,
        partial(drop_outside_envelope, envelope=envelope),
        partial(drop_duplicates, keys=dedup_keys),
        partial(select_columns, columns=keep_columns),
        partial(drop_outside_boundary, boundary=boundary),
    ]


def clean_occurrences(
    raw: pd.DataFrame,
    boundary: BaseGeometry,
    envelope: Optional[Envelope] = None,
    keep_columns: Optional[Sequence[str]] = None,
    dedup_keys: Optional[Sequence[str]] = None,
) -> CleaningResult:
    """
    Run the full cleaning filter over a raw occurrence table.

    Args:
        raw: Raw occurrence records (GBIF column names)
        boundary: Country boundary polygon in EPSG:4326
        envelope: Coordinate pre-filter (default: Pakistan envelope)
        keep_columns: Column projection (default: CLEAN_COLUMNS)
        dedup_keys: Deduplication key (default: species, lon, lat)

    Returns:
        CleaningResult with clean point records and the ordered log
    """
    steps = cleaning_steps(
        boundary,
        envelope=envelope or PAKISTAN_ENVELOPE,
        keep_columns=keep_columns or CLEAN_COLUMNS,
        dedup_keys=dedup_keys or DEDUP_KEYS,
    )

    records = raw
    entries = []
    for step in steps:
        result = step(records)
        records = result.records
        entries.append(result.entry)

    return CleaningResult(
        records=records.reset_index(drop=True),
        log=tuple(entries),
        initial_count=len(raw),
    )
