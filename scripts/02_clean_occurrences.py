#!/usr/bin/env python3
"""
02_clean_occurrences.py

Clean raw GBIF occurrences for Pakistan.

Applies the ordered cleaning filter:
  No coordinates -> No species name -> Invalid coordinates -> Duplicates
  -> Column selection -> Outside boundary
and records a cleaning log entry per step.

Inputs:
- data/raw/gbif_pakistan_raw.csv (--raw)
- data/processed/geo/pakistan_boundary.gpkg (--boundary)

Outputs:
- data/processed/occurrences/species_occurrences_clean.parquet (GeoParquet)
- data/processed/occurrences/species_clean.csv (longitude/latitude columns)
- outputs/tables/cleaning_log.csv
- outputs/tables/cleaning_report.txt
- data/processed/metadata/species_occurrences_clean_metadata.json

Usage:
  python scripts/02_clean_occurrences.py
  python scripts/02_clean_occurrences.py --raw other.csv --out clean.parquet
"""

import argparse
from pathlib import Path

import pandas as pd

from pak_biodiversity.cleaning import Envelope, clean_occurrences
from pak_biodiversity.hashing import write_metadata_sidecar
from pak_biodiversity.io_utils import atomic_write_df, atomic_write_gdf, atomic_write_text, read_yaml
from pak_biodiversity.loaders import boundary_geometry, read_boundary, read_raw_occurrences
from pak_biodiversity.logging_utils import get_logger
from pak_biodiversity.paths import (
    BOUNDARY_GPKG,
    CLEAN_OCCURRENCES_CSV,
    CLEAN_OCCURRENCES_PARQUET,
    PARAMS_FILE,
    RAW_OCCURRENCES_CSV,
    TABLES_DIR,
)
from pak_biodiversity.qa import check_bounds_epsg4326, check_cleaning_log, compute_na_rates, crs_info
from pak_biodiversity.reporting import cleaning_report_text, dataset_summary
from pak_biodiversity.schemas import (
    CLEAN_OCCURRENCE_SCHEMA,
    CLEANING_LOG_SCHEMA,
    LAT_COL,
    LON_COL,
    validate_schema,
)


# =============================================================================
# Constants
# =============================================================================

OUTPUT_CLEANING_LOG = TABLES_DIR / "cleaning_log.csv"
OUTPUT_CLEANING_REPORT = TABLES_DIR / "cleaning_report.txt"


def to_flat_csv(clean) -> pd.DataFrame:
    """Clean records without geometry, coordinates renamed longitude/latitude."""
    flat = pd.DataFrame(clean.drop(columns="geometry"))
    return flat.rename(columns={LON_COL: "longitude", LAT_COL: "latitude"})


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Clean raw GBIF occurrences")
    parser.add_argument("--raw", type=Path, default=RAW_OCCURRENCES_CSV, help="Raw occurrence CSV/Parquet")
    parser.add_argument("--boundary", type=Path, default=BOUNDARY_GPKG, help="Country boundary file")
    parser.add_argument("--out", type=Path, default=CLEAN_OCCURRENCES_PARQUET, help="Clean GeoParquet output")
    args = parser.parse_args()

    with get_logger("02_clean_occurrences") as logger:
        logger.info("Starting 02_clean_occurrences.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        cleaning_config = config["cleaning"]
        envelope = Envelope.from_config(cleaning_config["envelope"])
        bounds_config = config["bounds_checks"]["epsg_4326"]

        logger.log_inputs({"raw_occurrences": str(args.raw), "boundary": str(args.boundary)})

        try:
            # Load
            raw = read_raw_occurrences(args.raw)
            logger.info(f"Loaded {len(raw):,} raw records from {args.raw}")

            boundary = read_boundary(args.boundary)
            logger.log_crs_info(crs_info(boundary))

            # Clean
            result = clean_occurrences(
                raw,
                boundary_geometry(boundary),
                envelope=envelope,
                keep_columns=cleaning_config["keep_columns"],
                dedup_keys=cleaning_config["dedup_keys"],
            )

            logger.info("Cleaning log:")
            for entry in result.log:
                logger.log_cleaning_step(entry.step, entry.records_removed, entry.records_remaining)

            log_df = result.log_frame()
            clean = result.records

            # QA
            check_cleaning_log(log_df, result.initial_count, result.final_count)
            validate_schema(log_df, CLEANING_LOG_SCHEMA, context="cleaning log")
            validate_schema(clean, CLEAN_OCCURRENCE_SCHEMA, context="clean occurrences")
            check_bounds_epsg4326(clean, **bounds_config, context="clean occurrences")

            # Write outputs
            atomic_write_gdf(clean, args.out)
            logger.info(f"Wrote: {args.out} ({len(clean):,} records)")

            csv_path = args.out.with_name(CLEAN_OCCURRENCES_CSV.name)
            atomic_write_df(to_flat_csv(clean), csv_path, index=False)
            logger.info(f"Wrote: {csv_path}")

            atomic_write_df(log_df, OUTPUT_CLEANING_LOG, index=False)
            logger.info(f"Wrote: {OUTPUT_CLEANING_LOG}")

            report = cleaning_report_text(
                log_df,
                clean,
                top_n_species=config["reporting"].get("top_species", 10),
                top_n_classes=config["reporting"].get("top_classes", 5),
            )
            atomic_write_text(report, OUTPUT_CLEANING_REPORT)
            logger.info(f"Wrote: {OUTPUT_CLEANING_REPORT}")

            logger.log_outputs({
                "clean_parquet": str(args.out),
                "clean_csv": str(csv_path),
                "cleaning_log": str(OUTPUT_CLEANING_LOG),
                "cleaning_report": str(OUTPUT_CLEANING_REPORT),
            })

            summary = dataset_summary(clean)
            metrics = {
                "raw_records": result.initial_count,
                "clean_records": result.final_count,
                "records_removed": result.total_removed,
                "retention_rate": round(result.retention_rate, 4),
                "unique_species": summary["unique_species"],
                "year_min": summary["year_min"],
                "year_max": summary["year_max"],
                "na_rates": compute_na_rates(clean, ["class", "order", "family", "genus", "year"]),
            }
            logger.log_metrics(metrics)

            write_metadata_sidecar(
                output_path=args.out,
                inputs={"raw_occurrences": str(args.raw), "boundary": str(args.boundary)},
                config=config,
                run_id=logger.run_id,
                extra={"cleaning_log": log_df.to_dict(orient="records"), **metrics},
            )

            logger.info("=" * 70)
            logger.info("Cleaning Summary:")
            logger.info(f"  Raw records:   {result.initial_count:,}")
            logger.info(f"  Clean records: {result.final_count:,} ({result.retention_rate:.1%} retained)")
            logger.info(f"  Species:       {summary['unique_species']:,}")
            logger.info("=" * 70)

            logger.info("SUCCESS: Cleaned occurrence records")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
