"""
Schema validation for canonical tables.

Every stage validates its inputs and outputs (columns, dtypes, NA rules,
value ranges) so that schema drift becomes an immediate local failure
instead of a silently wrong map.

Column names follow the GBIF Darwin Core export (`decimalLongitude`,
`basisOfRecord`, ...). `cell_id` is always an integer and unique per grid.
"""

from dataclasses import dataclass, field
from typing import Any, Dict, List, Optional, Sequence, Set, Union

import geopandas as gpd
import pandas as pd


# =============================================================================
# Column Vocabulary
# =============================================================================

SPECIES_COL = "species"
LON_COL = "decimalLongitude"
LAT_COL = "decimalLatitude"
CELL_ID_COL = "cell_id"

# Minimum columns a raw occurrence table must carry
RAW_REQUIRED_COLUMNS = [
    "species", "decimalLongitude", "decimalLatitude",
    "class", "order", "family", "genus",
    "year", "month", "day",
]

# Fixed projection applied by the cleaning filter (kept if present in the raw table)
CLEAN_COLUMNS = [
    "species", "scientificName", "kingdom", "phylum", "class", "order",
    "family", "genus", "decimalLongitude", "decimalLatitude",
    "year", "month", "day", "basisOfRecord", "institutionCode",
    "datasetName", "countryCode",
]

DEDUP_KEYS = [SPECIES_COL, LON_COL, LAT_COL]

CLEANING_LOG_COLUMNS = ["step", "records_removed", "records_remaining"]

RICHNESS_COUNT_COLUMNS = [
    "species_richness", "total_records", "n_families", "n_genera", "n_orders",
]

SAMPLING_EFFORT_LABELS = ["Unsampled", "Low", "Medium", "High", "Very High"]

GRID_SUMMARY_COLUMNS = [CELL_ID_COL] + RICHNESS_COUNT_COLUMNS + ["sampling_effort"]

HOTSPOT_SUMMARY_COLUMNS = [
    CELL_ID_COL, "species_richness", "total_records", "n_families", "n_genera",
]


# =============================================================================
# Schema Definition
# =============================================================================

@dataclass
class ColumnSpec:
    """Specification for a single column."""
    name: str
    dtype: Optional[str] = None  # "Int64", "float64", "string", "category", "geometry"
    nullable: bool = True
    unique: bool = False
    allowed_values: Optional[Set[Any]] = None
    min_value: Optional[float] = None
    max_value: Optional[float] = None


@dataclass
class Schema:
    """Schema specification for a DataFrame or GeoDataFrame."""
    name: str
    columns: List[ColumnSpec]
    required_columns: List[str] = field(default_factory=list)
    row_count: Optional[int] = None
    min_rows: int = 0

    def __post_init__(self):
        if not self.required_columns:
            self.required_columns = [c.name for c in self.columns if not c.nullable]


class SchemaError(Exception):
    """Raised when schema validation fails."""
    pass


# =============================================================================
# Predefined Schemas
# =============================================================================

RAW_OCCURRENCE_SCHEMA = Schema(
    name="raw_occurrences",
    columns=[ColumnSpec(name) for name in RAW_REQUIRED_COLUMNS],
    required_columns=list(RAW_REQUIRED_COLUMNS),
)

CLEAN_OCCURRENCE_SCHEMA = Schema(
    name="clean_occurrences",
    columns=[
        ColumnSpec(SPECIES_COL, dtype="string", nullable=False),
        ColumnSpec(LON_COL, dtype="float64", nullable=False, min_value=60.0, max_value=78.0),
        ColumnSpec(LAT_COL, dtype="float64", nullable=False, min_value=23.0, max_value=38.0),
        ColumnSpec("geometry", dtype="geometry", nullable=False),
    ],
)

CLEANING_LOG_SCHEMA = Schema(
    name="cleaning_log",
    columns=[
        ColumnSpec("step", dtype="string", nullable=False, unique=True),
        ColumnSpec("records_removed", dtype="Int64", nullable=False, min_value=0),
        ColumnSpec("records_remaining", dtype="Int64", nullable=False, min_value=0),
    ],
    min_rows=1,
)

def grid_richness_schema(labels: Sequence[str] = SAMPLING_EFFORT_LABELS) -> Schema:
    """Grid richness schema whose sampling_effort column accepts `labels`."""
    return Schema(
        name="grid_richness",
        columns=[
            ColumnSpec(CELL_ID_COL, dtype="Int64", nullable=False, unique=True, min_value=1),
            ColumnSpec("geometry", dtype="geometry", nullable=False),
            *[ColumnSpec(c, dtype="Int64", nullable=False, min_value=0) for c in RICHNESS_COUNT_COLUMNS],
            ColumnSpec(
                "sampling_effort",
                dtype="category",
                nullable=False,
                allowed_values=set(labels),
            ),
        ],
    )


GRID_RICHNESS_SCHEMA = grid_richness_schema()

HOTSPOT_SCHEMA = Schema(
    name="hotspots",
    columns=[
        ColumnSpec(CELL_ID_COL, dtype="Int64", nullable=False, unique=True, min_value=1),
        ColumnSpec("geometry", dtype="geometry", nullable=False),
        ColumnSpec("species_richness", dtype="Int64", nullable=False, min_value=1),
        ColumnSpec("total_records", dtype="Int64", nullable=False, min_value=1),
    ],
)


# =============================================================================
# Validation Functions
# =============================================================================

def _dtype_error(col: pd.Series, expected: str) -> Optional[str]:
    checks = {
        "Int64": pd.api.types.is_integer_dtype,
        "float64": pd.api.types.is_float_dtype,
        "category": lambda s: isinstance(s.dtype, pd.CategoricalDtype),
        "string": lambda s: pd.api.types.is_string_dtype(s) or pd.api.types.is_object_dtype(s),
    }
    check = checks.get(expected)
    if check is None or check(col):
        return None
    return f"Column {col.name}: expected {expected}, got {col.dtype}"


def validate_column(
    df: pd.DataFrame,
    spec: ColumnSpec,
    context: str = "",
) -> List[str]:
    """
    Validate a single column against its specification.

    Args:
        df: DataFrame containing the column
        spec: Column specification
        context: Optional context for error messages

    Returns:
        List of error messages (empty if valid)
    """
    errors = []
    col_name = spec.name

    if spec.dtype == "geometry":
        if not isinstance(df, gpd.GeoDataFrame):
            errors.append(f"Expected GeoDataFrame for geometry column {col_name}")
            return errors
        col = df.geometry
    elif col_name not in df.columns:
        errors.append(f"Missing column: {col_name}")
        return errors
    else:
        col = df[col_name]
        if spec.dtype is not None:
            dtype_error = _dtype_error(col, spec.dtype)
            if dtype_error:
                errors.append(dtype_error)

    if not spec.nullable and col.isna().any():
        na_count = int(col.isna().sum())
        errors.append(f"Column {col_name}: {na_count} NA values not allowed")

    if spec.unique and col.duplicated().any():
        dup_count = int(col.duplicated().sum())
        errors.append(f"Column {col_name}: {dup_count} duplicate values not allowed")

    if spec.allowed_values is not None:
        invalid = ~col.isin(spec.allowed_values) & col.notna()
        if invalid.any():
            invalid_vals = list(pd.unique(col[invalid]))[:5]
            errors.append(f"Column {col_name}: invalid values {invalid_vals}")

    if spec.min_value is not None:
        below_min = (col < spec.min_value) & col.notna()
        if below_min.any():
            errors.append(f"Column {col_name}: values below min {spec.min_value}")

    if spec.max_value is not None:
        above_max = (col > spec.max_value) & col.notna()
        if above_max.any():
            errors.append(f"Column {col_name}: values above max {spec.max_value}")

    return errors


def validate_schema(
    df: Union[pd.DataFrame, gpd.GeoDataFrame],
    schema: Schema,
    context: str = "",
    raise_on_error: bool = True,
) -> List[str]:
    """
    Validate a DataFrame against a schema.

    Args:
        df: DataFrame to validate
        schema: Schema specification
        context: Optional context for error messages
        raise_on_error: If True, raise SchemaError on validation failure

    Returns:
        List of error messages (empty if valid)

    Raises:
        SchemaError: If raise_on_error=True and validation fails
    """
    errors = []
    ctx = f" ({context})" if context else ""

    if schema.row_count is not None and len(df) != schema.row_count:
        errors.append(f"Expected {schema.row_count} rows, got {len(df)}{ctx}")

    if len(df) < schema.min_rows:
        errors.append(f"Expected at least {schema.min_rows} rows, got {len(df)}{ctx}")

    missing = set(schema.required_columns) - set(df.columns)
    if isinstance(df, gpd.GeoDataFrame):
        missing.discard("geometry")
    if missing:
        errors.append(f"Missing required columns: {sorted(missing)}{ctx}")

    for col_spec in schema.columns:
        if col_spec.name in missing:
            continue
        errors.extend(validate_column(df, col_spec, context))

    if errors and raise_on_error:
        raise SchemaError(f"Schema validation failed for '{schema.name}':\n" + "\n".join(errors))

    return errors


def ensure_cell_id_dtype(df: pd.DataFrame) -> pd.DataFrame:
    """
    Ensure cell_id column is Int64 dtype.

    Args:
        df: DataFrame with cell_id column

    Returns:
        DataFrame with cell_id as Int64
    """
    if CELL_ID_COL in df.columns:
        df = df.copy()
        df[CELL_ID_COL] = df[CELL_ID_COL].astype("Int64")
    return df


# =============================================================================
# Merge Validation
# =============================================================================

def validate_merge(
    left: pd.DataFrame,
    right: pd.DataFrame,
    on: Union[str, List[str]],
    how: str = "left",
    validate: str = "one_to_one",
    context: str = "",
) -> pd.DataFrame:
    """
    Perform a merge with validation.

    All merges between canonical tables use validate= to catch duplicate keys.
    When `left` is a GeoDataFrame the result stays a GeoDataFrame.

    Args:
        left: Left DataFrame
        right: Right DataFrame
        on: Column(s) to merge on
        how: Merge type
        validate: Merge validation ('one_to_one', 'one_to_many', 'many_to_one')
        context: Context for error messages

    Returns:
        Merged DataFrame

    Raises:
        SchemaError: If merge validation fails
    """
    try:
        return left.merge(right, on=on, how=how, validate=validate)
    except pd.errors.MergeError as e:
        raise SchemaError(f"Merge validation failed ({context}): {e}") from e


# =============================================================================
# Schema Registry
# =============================================================================

SCHEMAS: Dict[str, Schema] = {
    "raw_occurrences": RAW_OCCURRENCE_SCHEMA,
    "clean_occurrences": CLEAN_OCCURRENCE_SCHEMA,
    "cleaning_log": CLEANING_LOG_SCHEMA,
    "grid_richness": GRID_RICHNESS_SCHEMA,
    "hotspots": HOTSPOT_SCHEMA,
}


def get_schema(name: str) -> Schema:
    """Get a registered schema by name."""
    if name not in SCHEMAS:
        raise KeyError(f"Unknown schema: {name}. Available: {list(SCHEMAS.keys())}")
    return SCHEMAS[name]
