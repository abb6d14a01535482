"""
Tests for the record loader.
"""

import geopandas as gpd
import pytest
from shapely.geometry import Point, box

from pak_biodiversity.cleaning import clean_occurrences
from pak_biodiversity.loaders import (
    InputError,
    boundary_geometry,
    read_boundary,
    read_raw_occurrences,
)
from pak_biodiversity.schemas import CLEAN_OCCURRENCE_SCHEMA, validate_schema

from conftest import make_raw


class TestReadRawOccurrences:
    """Tests for read_raw_occurrences."""

    def test_reads_csv(self, tmp_path):
        path = tmp_path / "raw.csv"
        make_raw([("A", 65.0, 30.0), ("B", 66.0, 31.0)]).to_csv(path, index=False)
        df = read_raw_occurrences(path)
        assert len(df) == 2
        assert df["decimalLongitude"].dtype == "float64"

    def test_unparseable_coordinates_become_na(self, tmp_path):
        path = tmp_path / "raw.csv"
        raw = make_raw([("A", 65.0, 30.0)])
        raw["decimalLongitude"] = ["not a number"]
        raw.to_csv(path, index=False)
        df = read_raw_occurrences(path)
        assert df["decimalLongitude"].isna().all()

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(InputError):
            read_raw_occurrences(tmp_path / "absent.csv")

    def test_missing_required_column_raises(self, tmp_path):
        path = tmp_path / "raw.csv"
        make_raw([("A", 65.0, 30.0)]).drop(columns=["family"]).to_csv(path, index=False)
        with pytest.raises(InputError, match="family"):
            read_raw_occurrences(path)

    def test_species_read_as_string(self, tmp_path):
        path = tmp_path / "raw.csv"
        make_raw([("A", 65.0, 30.0), ("B", 66.0, 31.0)]).to_csv(path, index=False)
        df = read_raw_occurrences(path)
        assert df["species"].dtype == "string"
        assert df["species"].tolist() == ["A", "B"]

    def test_all_blank_species_cleans_to_empty_table(self, tmp_path, square_boundary):
        path = tmp_path / "raw.csv"
        make_raw([(None, 65.0, 30.0), (None, 65.5, 30.5)]).to_csv(path, index=False)
        df = read_raw_occurrences(path)
        assert df["species"].isna().all()

        result = clean_occurrences(df, square_boundary)
        assert result.final_count == 0
        assert result.log[1].records_removed == 2
        validate_schema(result.records, CLEAN_OCCURRENCE_SCHEMA)


class TestReadBoundary:
    """Tests for read_boundary."""

    def test_single_dissolved_row(self, tmp_path):
        path = tmp_path / "boundary.geojson"
        gpd.GeoDataFrame(
            {"ADMIN": ["Pakistan", "Pakistan"]},
            geometry=[box(64, 29, 65, 30), box(65, 29, 66, 30)],
            crs="EPSG:4326",
        ).to_file(path, driver="GeoJSON")

        boundary = read_boundary(path)
        assert len(boundary) == 1
        assert boundary.crs.to_epsg() == 4326
        assert boundary.geometry.iloc[0].area == pytest.approx(2.0)

    def test_select_by_name(self, tmp_path):
        path = tmp_path / "countries.geojson"
        gpd.GeoDataFrame(
            {"ADMIN": ["Pakistan", "India"]},
            geometry=[box(64, 29, 65, 30), box(75, 20, 80, 25)],
            crs="EPSG:4326",
        ).to_file(path, driver="GeoJSON")

        boundary = read_boundary(path, name_field="ADMIN", name="Pakistan")
        assert boundary.total_bounds.tolist() == [64.0, 29.0, 65.0, 30.0]

    def test_reprojects_to_4326(self, tmp_path):
        path = tmp_path / "projected.parquet"
        gpd.GeoDataFrame(geometry=[box(64, 29, 65, 30)], crs="EPSG:4326").to_crs(3857).to_parquet(path)
        boundary = read_boundary(path)
        assert boundary.crs.to_epsg() == 4326
        assert boundary.total_bounds == pytest.approx([64.0, 29.0, 65.0, 30.0])

    def test_unknown_name_raises(self, tmp_path):
        path = tmp_path / "countries.geojson"
        gpd.GeoDataFrame(
            {"ADMIN": ["India"]}, geometry=[box(75, 20, 80, 25)], crs="EPSG:4326"
        ).to_file(path, driver="GeoJSON")
        with pytest.raises(InputError):
            read_boundary(path, name_field="ADMIN", name="Pakistan")

    def test_points_only_raises(self, tmp_path):
        path = tmp_path / "points.geojson"
        gpd.GeoDataFrame(geometry=[Point(65, 30)], crs="EPSG:4326").to_file(path, driver="GeoJSON")
        with pytest.raises(InputError):
            read_boundary(path)

    def test_missing_file_raises(self, tmp_path):
        with pytest.raises(InputError):
            read_boundary(tmp_path / "absent.gpkg")

    def test_boundary_geometry(self, boundary_gdf, square_boundary):
        assert boundary_geometry(boundary_gdf).equals(square_boundary)
