"""
Tests for atomic writers, readers and provenance sidecars.
"""

import json

import geopandas as gpd
import pandas as pd
import pytest
from shapely.geometry import box

from pak_biodiversity.hashing import (
    append_manifest_entry,
    hash_dict,
    hash_file,
    read_metadata_sidecar,
    write_metadata_sidecar,
)
from pak_biodiversity.io_utils import (
    atomic_write,
    atomic_write_df,
    atomic_write_gdf,
    atomic_write_text,
    atomic_write_yaml,
    read_df,
    read_gdf,
    read_yaml,
)


class TestAtomicWrites:
    """Tests for atomic write helpers."""

    def test_df_csv_roundtrip(self, tmp_path):
        df = pd.DataFrame({"cell_id": [1, 2], "species_richness": [3, 0]})
        path = tmp_path / "out" / "grid.csv"
        atomic_write_df(df, path, index=False)
        pd.testing.assert_frame_equal(read_df(path), df)

    def test_df_unsupported_suffix(self, tmp_path):
        with pytest.raises(ValueError):
            atomic_write_df(pd.DataFrame({"a": [1]}), tmp_path / "out.xlsx")

    @pytest.mark.parametrize("suffix", [".parquet", ".gpkg", ".geojson"])
    def test_gdf_roundtrip(self, tmp_path, suffix):
        gdf = gpd.GeoDataFrame({"cell_id": [1]}, geometry=[box(64, 29, 64.5, 29.5)], crs="EPSG:4326")
        path = tmp_path / f"cells{suffix}"
        atomic_write_gdf(gdf, path)
        back = read_gdf(path)
        assert list(back["cell_id"]) == [1]
        assert back.crs.to_epsg() == 4326

    def test_gpkg_layer_named_after_target(self, tmp_path):
        gdf = gpd.GeoDataFrame(
            {"cell_id": [1, 2], "sampling_effort": ["Low", "Unsampled"]},
            geometry=[box(64, 29, 64.5, 29.5), box(64.5, 29, 65, 29.5)],
            crs="EPSG:4326",
        )
        path = tmp_path / "grid_richness.gpkg"
        atomic_write_gdf(gdf, path)
        assert gpd.list_layers(path)["name"].tolist() == ["grid_richness"]
        assert [p.name for p in tmp_path.iterdir()] == ["grid_richness.gpkg"]

    def test_gpkg_overwrite(self, tmp_path):
        path = tmp_path / "pakistan_boundary.gpkg"
        for n in (1, 2):
            gdf = gpd.GeoDataFrame(
                {"cell_id": list(range(n))},
                geometry=[box(64, 29, 65, 30)] * n,
                crs="EPSG:4326",
            )
            atomic_write_gdf(gdf, path)
        assert len(read_gdf(path)) == 2

    def test_failed_write_leaves_nothing(self, tmp_path):
        target = tmp_path / "report.txt"
        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write("partial")
                raise RuntimeError("boom")
        assert not target.exists()
        assert list(tmp_path.iterdir()) == []

    def test_failed_write_keeps_previous_version(self, tmp_path):
        target = tmp_path / "report.txt"
        atomic_write_text("v1", target)
        with pytest.raises(RuntimeError):
            with atomic_write(target) as f:
                f.write("v2")
                raise RuntimeError("boom")
        assert target.read_text(encoding="utf-8") == "v1"

    def test_yaml_roundtrip(self, tmp_path):
        data = {"grid": {"cell_size_deg": 0.5}, "hotspots": {"percentile": 0.9}}
        atomic_write_yaml(data, tmp_path / "params.yml")
        assert read_yaml(tmp_path / "params.yml") == data


class TestHashing:
    """Tests for hashing and provenance helpers."""

    def test_hash_file_stable(self, tmp_path):
        path = tmp_path / "a.txt"
        path.write_text("abc", encoding="utf-8")
        assert hash_file(path) == hash_file(path)
        assert len(hash_file(path)) == 64

    def test_hash_file_missing(self, tmp_path):
        with pytest.raises(FileNotFoundError):
            hash_file(tmp_path / "absent")

    def test_hash_dict_key_order_independent(self):
        assert hash_dict({"a": 1, "b": 2}) == hash_dict({"b": 2, "a": 1})

    def test_sidecar_roundtrip(self, tmp_path):
        output = tmp_path / "grid_richness.parquet"
        output.write_bytes(b"data")
        source = tmp_path / "clean.parquet"
        source.write_bytes(b"source")

        sidecar = write_metadata_sidecar(
            output_path=output,
            inputs={"clean": str(source), "missing": str(tmp_path / "absent")},
            config={"grid": {"cell_size_deg": 0.5}},
            run_id="run-1",
            extra={"cells": 16},
            metadata_dir=tmp_path / "metadata",
        )
        assert sidecar.name == "grid_richness_metadata.json"

        metadata = read_metadata_sidecar(output, metadata_dir=tmp_path / "metadata")
        assert metadata["run_id"] == "run-1"
        assert metadata["inputs"]["clean"]["hash"] == hash_file(source)
        assert metadata["inputs"]["missing"]["missing"] is True
        assert metadata["extra"] == {"cells": 16}

    def test_sidecar_absent(self, tmp_path):
        assert read_metadata_sidecar(tmp_path / "x.parquet", metadata_dir=tmp_path) is None

    def test_manifest_appends(self, tmp_path):
        manifest = tmp_path / "_manifest.json"
        append_manifest_entry(manifest, {"source": "GBIF"})
        append_manifest_entry(manifest, {"source": "Natural Earth"})
        data = json.loads(manifest.read_text(encoding="utf-8"))
        assert [d["source"] for d in data["downloads"]] == ["GBIF", "Natural Earth"]
        assert "last_updated" in data
