#!/usr/bin/env python3
"""
03_build_richness_grid.py

Build the species richness grid and select biodiversity hotspots.

- Tile the Pakistan boundary with 0.5 degree cells (ids from 1, row-major
  from the south-west corner) clipped to the boundary
- Assign clean records to cells (boundary ties -> lowest cell_id)
- Per cell: species_richness, total_records, n_families, n_genera, n_orders,
  sampling_effort; cells without records carry 0
- Hotspots: cells with richness >= 90th percentile of positive richness

Inputs:
- data/processed/occurrences/species_occurrences_clean.parquet (--clean)
- data/processed/geo/pakistan_boundary.gpkg (--boundary)

Outputs:
- data/processed/grid/grid_richness.parquet (+ .gpkg for GIS tools)
- data/processed/grid/biodiversity_hotspots.parquet (+ .geojson)
- outputs/tables/grid_richness_summary.csv
- outputs/tables/hotspots_summary.csv
- outputs/tables/spatial_analysis_report.txt
- data/processed/metadata/grid_richness_metadata.json

Requirements:
- Deterministic grid and tie-break
- Log all parameters
"""

import argparse
from pathlib import Path

import pandas as pd

from pak_biodiversity.grid import build_grid
from pak_biodiversity.hashing import write_metadata_sidecar
from pak_biodiversity.hotspots import NoHotspotDataError, select_hotspots
from pak_biodiversity.io_utils import (
    atomic_write_df,
    atomic_write_gdf,
    atomic_write_text,
    read_gdf,
    read_yaml,
)
from pak_biodiversity.joins import log_join_stats
from pak_biodiversity.loaders import boundary_geometry, read_boundary
from pak_biodiversity.logging_utils import get_logger
from pak_biodiversity.paths import (
    BOUNDARY_GPKG,
    CLEAN_OCCURRENCES_PARQUET,
    GRID_RICHNESS_PARQUET,
    HOTSPOTS_PARQUET,
    PARAMS_FILE,
    TABLES_DIR,
)
from pak_biodiversity.qa import (
    check_join_conservation,
    check_richness_invariants,
    crs_info,
    safe_reproject,
)
from pak_biodiversity.reporting import (
    effort_distribution,
    richness_statistics,
    spatial_coverage,
    spatial_report_text,
)
from pak_biodiversity.richness import compute_grid_richness
from pak_biodiversity.schemas import (
    GRID_SUMMARY_COLUMNS,
    HOTSPOT_SCHEMA,
    HOTSPOT_SUMMARY_COLUMNS,
    grid_richness_schema,
    validate_schema,
)


# =============================================================================
# Constants
# =============================================================================

OUTPUT_GRID_SUMMARY = TABLES_DIR / "grid_richness_summary.csv"
OUTPUT_HOTSPOT_SUMMARY = TABLES_DIR / "hotspots_summary.csv"
OUTPUT_SPATIAL_REPORT = TABLES_DIR / "spatial_analysis_report.txt"


def for_export(gdf):
    """Copy with categorical columns as plain strings (OGR has no category type)."""
    out = gdf.copy()
    for col in out.columns:
        if isinstance(out[col].dtype, pd.CategoricalDtype):
            out[col] = out[col].astype(str)
    return out


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Build the species richness grid and hotspots")
    parser.add_argument("--clean", type=Path, default=CLEAN_OCCURRENCES_PARQUET, help="Clean GeoParquet")
    parser.add_argument("--boundary", type=Path, default=BOUNDARY_GPKG, help="Country boundary file")
    parser.add_argument("--out", type=Path, default=GRID_RICHNESS_PARQUET, help="Grid GeoParquet output")
    parser.add_argument("--hotspots-out", type=Path, default=HOTSPOTS_PARQUET, help="Hotspot GeoParquet output")
    args = parser.parse_args()

    with get_logger("03_build_richness_grid") as logger:
        logger.info("Starting 03_build_richness_grid.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        cell_size = config["grid"]["cell_size_deg"]
        percentile = config["hotspots"]["percentile"]
        breaks = config["sampling_effort"]["breaks"]
        labels = config["sampling_effort"]["labels"]
        top_n_cells = config["reporting"].get("top_cells", 5)

        logger.info(f"Cell size: {cell_size} degrees")
        logger.info(f"Hotspot percentile: {percentile:.0%} of positive richness")

        inputs = {"clean_occurrences": str(args.clean), "boundary": str(args.boundary)}
        logger.log_inputs(inputs)

        try:
            # Load
            clean = read_gdf(args.clean)
            clean = safe_reproject(clean, 4326, "clean occurrences")
            logger.info(f"Loaded {len(clean):,} clean records")

            boundary = read_boundary(args.boundary)
            logger.log_crs_info(crs_info(boundary))

            # Grid
            grid = build_grid(boundary_geometry(boundary), cell_size=cell_size, crs="EPSG:4326")
            logger.info(f"Grid: {len(grid):,} cells clipped to boundary")
            if len(grid) == 0:
                logger.warning("Boundary has no area; grid is empty")

            # Richness
            grid, join_stats = compute_grid_richness(clean, grid, breaks=breaks, labels=labels)
            log_join_stats(join_stats, logger)
            logger.log_join_stats(join_stats)

            check_richness_invariants(grid)
            check_join_conservation(grid, join_stats["assigned"], len(clean))
            validate_schema(grid, grid_richness_schema(labels), context="grid richness")

            atomic_write_gdf(grid, args.out)
            atomic_write_gdf(for_export(grid), args.out.with_suffix(".gpkg"))
            atomic_write_df(pd.DataFrame(grid[GRID_SUMMARY_COLUMNS]), OUTPUT_GRID_SUMMARY, index=False)
            logger.info(f"Wrote: {args.out} ({len(grid):,} cells)")

            # Hotspots
            try:
                hotspots, threshold = select_hotspots(grid, percentile)
            except NoHotspotDataError as e:
                logger.error(f"No hotspot threshold: {e}")
                atomic_write_text(
                    spatial_report_text(
                        grid, None, None, clean, cell_size, top_n_cells, percentile=percentile
                    ),
                    OUTPUT_SPATIAL_REPORT,
                )
                raise

            validate_schema(hotspots, HOTSPOT_SCHEMA, context="hotspots")
            logger.info(f"Hotspot threshold: {threshold:.1f} species; {len(hotspots):,} hotspot cells")

            atomic_write_gdf(hotspots, args.hotspots_out)
            atomic_write_gdf(for_export(hotspots), args.hotspots_out.with_suffix(".geojson"))
            atomic_write_df(
                pd.DataFrame(hotspots[HOTSPOT_SUMMARY_COLUMNS]), OUTPUT_HOTSPOT_SUMMARY, index=False
            )
            logger.info(f"Wrote: {args.hotspots_out}")

            report = spatial_report_text(
                grid, hotspots, threshold, clean, cell_size, top_n_cells, percentile=percentile
            )
            atomic_write_text(report, OUTPUT_SPATIAL_REPORT)
            logger.info(f"Wrote: {OUTPUT_SPATIAL_REPORT}")

            logger.log_outputs({
                "grid_parquet": str(args.out),
                "grid_gpkg": str(args.out.with_suffix(".gpkg")),
                "grid_summary": str(OUTPUT_GRID_SUMMARY),
                "hotspots_parquet": str(args.hotspots_out),
                "hotspots_geojson": str(args.hotspots_out.with_suffix(".geojson")),
                "hotspots_summary": str(OUTPUT_HOTSPOT_SUMMARY),
                "spatial_report": str(OUTPUT_SPATIAL_REPORT),
            })

            coverage = spatial_coverage(grid)
            effort = effort_distribution(grid)
            metrics = {
                "cell_size_deg": cell_size,
                "hotspot_percentile": percentile,
                "hotspot_threshold": threshold,
                "hotspot_count": len(hotspots),
                "richness": richness_statistics(grid),
                "coverage": coverage,
                "sampling_effort": dict(zip(effort["sampling_effort"], effort["n"].astype(int))),
                "join_stats": join_stats,
            }
            logger.log_metrics(metrics)

            write_metadata_sidecar(
                output_path=args.out,
                inputs=inputs,
                config=config,
                run_id=logger.run_id,
                extra=metrics,
            )

            logger.info("=" * 70)
            logger.info("Richness Grid Summary:")
            logger.info(f"  Grid cells:      {coverage['total_cells']:,}")
            logger.info(f"  Cells with data: {coverage['sampled_cells']:,} ({coverage['coverage_pct']}%)")
            logger.info(f"  Hotspot cells:   {len(hotspots):,} (richness >= {threshold:.1f})")
            logger.info("")
            logger.info("Top 5 hotspot cells:")
            for row in hotspots.head(5).itertuples():
                logger.info(f"  cell {row.cell_id}: {row.species_richness} species, {row.total_records} records")
            logger.info("=" * 70)

            logger.info("SUCCESS: Built richness grid and hotspots")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
