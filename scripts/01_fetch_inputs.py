#!/usr/bin/env python3
"""
01_fetch_inputs.py

Download the two pipeline inputs:
- GBIF occurrence records for Pakistan (occurrence search API, records with
  coordinates, up to `gbif.limit` records)
- Pakistan's national boundary from Natural Earth (1:50m admin-0 countries)

Outputs:
- data/raw/gbif_pakistan_raw.csv
- data/raw/natural_earth/ne_50m_admin_0_countries.zip (+ extracted shapefile)
- data/processed/geo/pakistan_boundary.gpkg
- data/raw/_manifest.json (updated with provenance)

Usage:
  python scripts/01_fetch_inputs.py                  # both inputs
  python scripts/01_fetch_inputs.py --skip-gbif      # boundary only
  python scripts/01_fetch_inputs.py --skip-boundary  # occurrences only
"""

import argparse
from datetime import datetime, timezone

from pak_biodiversity.gbif import fetch_occurrences, records_to_frame
from pak_biodiversity.hashing import append_manifest_entry, hash_file
from pak_biodiversity.io_utils import atomic_write_df, atomic_write_gdf, read_yaml
from pak_biodiversity.logging_utils import get_logger
from pak_biodiversity.natural_earth import download_archive, extract_shapefile, select_country
from pak_biodiversity.paths import (
    BOUNDARY_GPKG,
    PARAMS_FILE,
    RAW_DIR,
    RAW_OCCURRENCES_CSV,
    ensure_dirs_exist,
)
from pak_biodiversity.qa import crs_info


# =============================================================================
# Constants
# =============================================================================

NATURAL_EARTH_DIR = RAW_DIR / "natural_earth"
MANIFEST_PATH = RAW_DIR / "_manifest.json"


# =============================================================================
# Fetchers
# =============================================================================

def fetch_gbif(config: dict, logger, timestamp: datetime) -> dict:
    """Download GBIF occurrences and write the raw CSV. Returns provenance."""
    gbif_config = config["gbif"]

    logger.info("=" * 60)
    logger.info(f"Fetching GBIF occurrences for {gbif_config['country']}")
    logger.info("=" * 60)

    records = fetch_occurrences(
        country=gbif_config["country"],
        limit=gbif_config.get("limit", 10_000),
        has_coordinate=gbif_config.get("has_coordinate", True),
        logger=logger,
        endpoint=gbif_config["api_endpoint"],
        page_size=gbif_config.get("page_size", 300),
        max_retries=gbif_config.get("max_retries", 3),
        retry_delay=gbif_config.get("retry_delay_s", 5),
    )
    df = records_to_frame(records)
    logger.info(f"Downloaded {len(df):,} records")

    atomic_write_df(df, RAW_OCCURRENCES_CSV, index=False)
    logger.info(f"Saved: {RAW_OCCURRENCES_CSV}")

    return {
        "source": "GBIF occurrence search",
        "api_endpoint": gbif_config["api_endpoint"],
        "download_timestamp": timestamp.isoformat(),
        "query": {
            "country": gbif_config["country"],
            "hasCoordinate": gbif_config.get("has_coordinate", True),
            "limit": gbif_config.get("limit", 10_000),
        },
        "file_path": str(RAW_OCCURRENCES_CSV),
        "sha256": hash_file(RAW_OCCURRENCES_CSV),
        "row_count": len(df),
        "columns": list(df.columns),
    }


def fetch_boundary(config: dict, logger, timestamp: datetime) -> dict:
    """Download Natural Earth countries and write the country boundary. Returns provenance."""
    boundary_config = config["boundary"]
    url = boundary_config["source_url"]

    logger.info("=" * 60)
    logger.info(f"Fetching boundary for {boundary_config['country_name']}")
    logger.info("=" * 60)

    archive_path = download_archive(
        url,
        NATURAL_EARTH_DIR / url.rsplit("/", 1)[-1],
        timeout=config["gbif"].get("timeout_s", 120),
    )
    logger.info(f"Downloaded: {archive_path}")

    shapefile = extract_shapefile(archive_path, NATURAL_EARTH_DIR)
    boundary = select_country(
        shapefile,
        boundary_config["country_name"],
        name_field=boundary_config.get("name_field", "ADMIN"),
    )
    logger.log_crs_info(crs_info(boundary))

    atomic_write_gdf(boundary, BOUNDARY_GPKG)
    logger.info(f"Saved: {BOUNDARY_GPKG}")

    return {
        "source": "Natural Earth 1:50m admin-0 countries",
        "url": url,
        "download_timestamp": timestamp.isoformat(),
        "country_name": boundary_config["country_name"],
        "archive_path": str(archive_path),
        "archive_sha256": hash_file(archive_path),
        "file_path": str(BOUNDARY_GPKG),
        "sha256": hash_file(BOUNDARY_GPKG),
    }


# =============================================================================
# Main
# =============================================================================

def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Download GBIF occurrences and the country boundary")
    parser.add_argument("--skip-gbif", action="store_true", help="Do not download occurrences")
    parser.add_argument("--skip-boundary", action="store_true", help="Do not download the boundary")
    args = parser.parse_args()

    with get_logger("01_fetch_inputs") as logger:
        logger.info("Starting 01_fetch_inputs.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        try:
            ensure_dirs_exist()
            timestamp = datetime.now(timezone.utc)
            outputs = {}

            if not args.skip_gbif:
                provenance = fetch_gbif(config, logger, timestamp)
                append_manifest_entry(MANIFEST_PATH, provenance)
                outputs["raw_occurrences"] = str(RAW_OCCURRENCES_CSV)
                logger.log_metrics({"gbif_records": provenance["row_count"]})

            if not args.skip_boundary:
                provenance = fetch_boundary(config, logger, timestamp)
                append_manifest_entry(MANIFEST_PATH, provenance)
                outputs["boundary"] = str(BOUNDARY_GPKG)

            logger.info(f"Updated manifest: {MANIFEST_PATH}")
            logger.log_outputs(outputs)

            logger.info("SUCCESS: Fetched pipeline inputs")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
