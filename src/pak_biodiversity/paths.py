"""
Canonical path resolution for the Pakistan Biodiversity Atlas.

This module is the single source of truth for all default paths in the
project. Scripts take explicit input/output arguments and fall back to the
paths defined here; no relative '../' paths are used anywhere.

- Root is detected via `.project-root` (primary) and fallback markers
- Canonical Paths: RAW_DIR, PROCESSED_DIR, GEO_DIR, GRID_DIR, OUTPUTS_DIR, etc.
"""

from pathlib import Path
from typing import Optional

# Markers to detect project root (in priority order)
ROOT_MARKERS = [".project-root", "pyproject.toml", ".git"]


def find_project_root(start_path: Optional[Path] = None) -> Path:
    """
    Find the project root by searching upward for marker files.

    Args:
        start_path: Starting directory for search. Defaults to this file's location.

    Returns:
        Path to project root directory.

    Raises:
        FileNotFoundError: If no root marker is found.
    """
    if start_path is None:
        start_path = Path(__file__).resolve().parent

    current = start_path

    while current != current.parent:
        for marker in ROOT_MARKERS:
            if (current / marker).exists():
                return current
        current = current.parent

    # Filesystem root itself
    for marker in ROOT_MARKERS:
        if (current / marker).exists():
            return current

    raise FileNotFoundError(
        f"Could not find project root. Searched for markers {ROOT_MARKERS} "
        f"starting from {start_path}"
    )


# =============================================================================
# Canonical paths (resolved at import time)
# =============================================================================

PROJECT_ROOT = find_project_root()

CONFIG_DIR = PROJECT_ROOT / "configs"
PARAMS_FILE = CONFIG_DIR / "params.yml"

# Data directories
DATA_DIR = PROJECT_ROOT / "data"
RAW_DIR = DATA_DIR / "raw"
PROCESSED_DIR = DATA_DIR / "processed"

# Processed subdirectories
GEO_DIR = PROCESSED_DIR / "geo"
OCCURRENCES_DIR = PROCESSED_DIR / "occurrences"
GRID_DIR = PROCESSED_DIR / "grid"
METADATA_DIR = PROCESSED_DIR / "metadata"

# Default stage inputs/outputs
RAW_OCCURRENCES_CSV = RAW_DIR / "gbif_pakistan_raw.csv"
BOUNDARY_GPKG = GEO_DIR / "pakistan_boundary.gpkg"
CLEAN_OCCURRENCES_PARQUET = OCCURRENCES_DIR / "species_occurrences_clean.parquet"
CLEAN_OCCURRENCES_CSV = OCCURRENCES_DIR / "species_clean.csv"
GRID_RICHNESS_PARQUET = GRID_DIR / "grid_richness.parquet"
HOTSPOTS_PARQUET = GRID_DIR / "biodiversity_hotspots.parquet"

LOGS_DIR = PROJECT_ROOT / "logs"

# Reporting outputs
OUTPUTS_DIR = PROJECT_ROOT / "outputs"
TABLES_DIR = OUTPUTS_DIR / "tables"
FIGURES_DIR = OUTPUTS_DIR / "figures"
MAPS_DIR = OUTPUTS_DIR / "maps"

SRC_DIR = PROJECT_ROOT / "src"
SCRIPTS_DIR = PROJECT_ROOT / "scripts"
TESTS_DIR = PROJECT_ROOT / "tests"


def ensure_dirs_exist() -> None:
    """Create all canonical directories if they don't exist."""
    dirs = [
        CONFIG_DIR,
        RAW_DIR,
        GEO_DIR, OCCURRENCES_DIR, GRID_DIR, METADATA_DIR,
        LOGS_DIR,
        TABLES_DIR, FIGURES_DIR, MAPS_DIR,
    ]
    for d in dirs:
        d.mkdir(parents=True, exist_ok=True)


if __name__ == "__main__":
    print(f"PROJECT_ROOT:  {PROJECT_ROOT}")
    print(f"RAW_DIR:       {RAW_DIR}")
    print(f"PROCESSED_DIR: {PROCESSED_DIR}")
    print(f"CONFIG_DIR:    {CONFIG_DIR}")
    print(f"OUTPUTS_DIR:   {OUTPUTS_DIR}")
