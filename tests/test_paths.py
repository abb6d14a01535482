"""
Tests for the paths module.

Project root detection and canonical paths.
"""

import pytest

from pak_biodiversity.paths import (
    BOUNDARY_GPKG,
    CLEAN_OCCURRENCES_PARQUET,
    CONFIG_DIR,
    GEO_DIR,
    GRID_DIR,
    GRID_RICHNESS_PARQUET,
    LOGS_DIR,
    OUTPUTS_DIR,
    PARAMS_FILE,
    PROCESSED_DIR,
    PROJECT_ROOT,
    RAW_DIR,
    SCRIPTS_DIR,
    SRC_DIR,
    TABLES_DIR,
    TESTS_DIR,
    find_project_root,
)

CANONICAL_PATHS = [
    PROJECT_ROOT, RAW_DIR, PROCESSED_DIR, CONFIG_DIR, LOGS_DIR,
    GEO_DIR, GRID_DIR, OUTPUTS_DIR, TABLES_DIR,
    SRC_DIR, SCRIPTS_DIR, TESTS_DIR,
]


class TestProjectRoot:
    """Tests for project root detection."""

    def test_project_root_exists(self):
        """PROJECT_ROOT should be a valid directory."""
        assert PROJECT_ROOT.exists()
        assert PROJECT_ROOT.is_dir()

    def test_project_root_marker_exists(self):
        """The .project-root marker file should exist."""
        marker = PROJECT_ROOT / ".project-root"
        assert marker.exists(), "Missing .project-root marker file"

    def test_find_project_root_from_subdir(self):
        """find_project_root should work from any subdirectory."""
        subdir = PROJECT_ROOT / "src" / "pak_biodiversity"
        assert find_project_root(subdir) == PROJECT_ROOT

    def test_find_project_root_raises_on_invalid_path(self, tmp_path):
        """find_project_root should raise if no marker found."""
        with pytest.raises(FileNotFoundError):
            find_project_root(tmp_path)


class TestCanonicalPaths:
    """Tests for canonical path definitions."""

    def test_raw_and_processed_under_data(self):
        assert RAW_DIR.parent.name == "data"
        assert PROCESSED_DIR.parent.name == "data"

    def test_stage_dirs_under_processed(self):
        assert GEO_DIR.parent == PROCESSED_DIR
        assert GRID_DIR.parent == PROCESSED_DIR

    def test_stage_defaults(self):
        assert BOUNDARY_GPKG.parent == GEO_DIR
        assert GRID_RICHNESS_PARQUET.parent == GRID_DIR
        assert CLEAN_OCCURRENCES_PARQUET.suffix == ".parquet"

    def test_no_relative_path_components(self):
        for p in CANONICAL_PATHS:
            assert ".." not in str(p), f"Path contains '..': {p}"

    def test_all_paths_absolute(self):
        for p in CANONICAL_PATHS:
            assert p.is_absolute(), f"Path is not absolute: {p}"


@pytest.mark.smoke
class TestPathsSmoke:
    """Smoke tests for paths module."""

    def test_import_succeeds(self):
        from pak_biodiversity import paths
        assert paths.PROJECT_ROOT is not None

    def test_config_present(self):
        assert PARAMS_FILE.exists()
        assert SRC_DIR.exists()
        assert SCRIPTS_DIR.exists()
        assert TESTS_DIR.exists()
