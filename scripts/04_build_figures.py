#!/usr/bin/env python3
"""
04_build_figures.py

Render the maps and charts for the Pakistan Biodiversity Atlas.

Maps (outputs/maps/):
- preview_map.png: raw GBIF records over the boundary
- before_after_cleaning.png: raw vs clean occurrence points
- species_richness_map.png: richness per 0.5 degree cell
- biodiversity_hotspots.png: hotspot cells over the grid
- sampling_effort_map.png: sampling-effort classes

Charts (outputs/figures/):
- richness_distribution.png: histogram with the hotspot threshold line
- top_species.png, class_composition.png, top_orders.png, top_families.png
- monthly_pattern.png: records per month coloured by season
- summary_statistics.png: headline counts by category
- data_cleaning_comparison.png: records/species/families, raw vs clean
- project_highlights.png: six key figures

Tables (outputs/tables/):
- visualization_summary.txt: index of the figures written by this run

Usage:
  python scripts/04_build_figures.py           # maps + charts
  python scripts/04_build_figures.py --maps    # maps only
  python scripts/04_build_figures.py --charts  # charts only
"""

import argparse
from pathlib import Path
from typing import Dict, Optional, Sequence

import geopandas as gpd
import matplotlib.pyplot as plt
import numpy as np
import pandas as pd
from matplotlib.colors import LinearSegmentedColormap, to_hex
from matplotlib.patches import Patch

from pak_biodiversity.hotspots import NoHotspotDataError, hotspot_threshold
from pak_biodiversity.io_utils import atomic_write_text, read_gdf, read_yaml
from pak_biodiversity.loaders import read_boundary, read_raw_occurrences
from pak_biodiversity.logging_utils import get_logger
from pak_biodiversity.paths import (
    BOUNDARY_GPKG,
    CLEAN_OCCURRENCES_PARQUET,
    FIGURES_DIR,
    GRID_RICHNESS_PARQUET,
    HOTSPOTS_PARQUET,
    MAPS_DIR,
    PARAMS_FILE,
    RAW_OCCURRENCES_CSV,
    TABLES_DIR,
)
from pak_biodiversity.qa import assert_expected_crs
from pak_biodiversity.reporting import (
    class_composition,
    cleaning_comparison,
    count_by,
    monthly_counts,
    project_highlights,
    summary_statistics,
    visualization_summary_text,
)
from pak_biodiversity.schemas import LAT_COL, LON_COL, SAMPLING_EFFORT_LABELS, SPECIES_COL


# =============================================================================
# Constants
# =============================================================================

OUTPUT_VISUALIZATION_SUMMARY = TABLES_DIR / "visualization_summary.txt"

# Unsampled first, then increasing effort
EFFORT_PALETTE = ["#e5e5e5", "#fee5d9", "#fcae91", "#fb6a4a", "#a50f15"]

SEASON_COLORS = {
    "Winter": "#3288bd",
    "Spring": "#66c2a5",
    "Summer": "#fee08b",
    "Autumn": "#d53e4f",
}

CATEGORY_COLORS = {"Data": "#1b9e77", "Taxonomy": "#d95f02", "Analysis": "#7570b3"}

STAGE_COLORS = {"Raw Data": "#fc8d62", "Clean Data": "#66c2a5"}

HIGHLIGHT_COLORS = ["#1b9e77", "#d95f02", "#7570b3", "#e7298a", "#66a61e", "#e6ab02"]

HOTSPOT_CMAP = LinearSegmentedColormap.from_list("hotspot", ["orange", "darkred"])

FIGURE_DESCRIPTIONS = {
    "preview_map": "Preview map: raw GBIF records over the boundary",
    "before_after_cleaning": "Before/after cleaning point maps",
    "species_richness_map": "Species richness per grid cell",
    "biodiversity_hotspots": "Biodiversity hotspot cells",
    "sampling_effort_map": "Sampling effort classes per grid cell",
    "richness_distribution": "Distribution of species richness with the hotspot threshold",
    "top_species": "Most frequently recorded species",
    "class_composition": "Taxonomic composition by class",
    "top_orders": "Orders with the most records",
    "top_families": "Families with the most records",
    "monthly_pattern": "Monthly and seasonal observation pattern",
    "summary_statistics": "Key project metrics",
    "data_cleaning_comparison": "Impact of the data cleaning process",
    "project_highlights": "Key findings at a glance",
}


def effort_colors(labels: Sequence[str]) -> Dict[str, str]:
    """Colour per sampling-effort label, grey for the first (unsampled) class."""
    if len(labels) == len(EFFORT_PALETTE):
        return dict(zip(labels, EFFORT_PALETTE))
    reds = plt.get_cmap("Reds")(np.linspace(0.15, 0.95, max(len(labels) - 1, 1)))
    return dict(zip(labels, [EFFORT_PALETTE[0]] + [to_hex(c) for c in reds]))


def _save(fig, output_path: Path, dpi: int) -> None:
    output_path.parent.mkdir(parents=True, exist_ok=True)
    plt.tight_layout()
    fig.savefig(output_path, dpi=dpi, bbox_inches="tight", facecolor="white")
    plt.close(fig)


def _boundary_axes(ax, boundary: gpd.GeoDataFrame, title: str) -> None:
    boundary.boundary.plot(ax=ax, color="black", linewidth=0.8)
    ax.set_title(title, fontsize=12, fontweight="bold")
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")


# =============================================================================
# Maps
# =============================================================================

def plot_preview_map(
    raw: pd.DataFrame,
    boundary: gpd.GeoDataFrame,
    output_path: Path,
    dpi: int = 300,
) -> None:
    """Raw GBIF records over the filled boundary."""
    fig, ax = plt.subplots(figsize=(8, 10))
    boundary.plot(ax=ax, color="lightgray", edgecolor="black", linewidth=0.8)

    located = raw.dropna(subset=[LON_COL, LAT_COL])
    ax.scatter(located[LON_COL], located[LAT_COL], s=2, color="darkgreen", alpha=0.3)
    ax.set_title("Species occurrences in Pakistan", fontsize=12, fontweight="bold")
    ax.text(0.0, -0.08, f"{len(raw):,} records from GBIF.org", transform=ax.transAxes, fontsize=9)
    ax.set_xlabel("Longitude")
    ax.set_ylabel("Latitude")
    _save(fig, output_path, dpi)


def plot_cleaning_maps(
    raw: pd.DataFrame,
    clean: gpd.GeoDataFrame,
    boundary: gpd.GeoDataFrame,
    output_path: Path,
    dpi: int = 300,
) -> None:
    """Side-by-side point maps of raw and clean records."""
    fig, axes = plt.subplots(1, 2, figsize=(14, 7), sharex=True, sharey=True)

    located = raw.dropna(subset=[LON_COL, LAT_COL])
    axes[0].scatter(located[LON_COL], located[LAT_COL], s=2, color="#d73027", alpha=0.4)
    _boundary_axes(axes[0], boundary, f"Before cleaning (n={len(raw):,})")

    axes[1].scatter(clean.geometry.x, clean.geometry.y, s=2, color="#1a9850", alpha=0.4)
    _boundary_axes(axes[1], boundary, f"After cleaning (n={len(clean):,})")

    minx, miny, maxx, maxy = boundary.total_bounds
    axes[0].set_xlim(minx - 1, maxx + 1)
    axes[0].set_ylim(miny - 1, maxy + 1)

    _save(fig, output_path, dpi)


def plot_richness_map(
    grid: gpd.GeoDataFrame,
    boundary: gpd.GeoDataFrame,
    output_path: Path,
    dpi: int = 300,
) -> None:
    """Choropleth of species richness per cell."""
    fig, ax = plt.subplots(figsize=(10, 10))
    grid.plot(
        column="species_richness",
        cmap="plasma",
        ax=ax,
        edgecolor="white",
        linewidth=0.2,
        legend=True,
        legend_kwds={"label": "Number of species", "shrink": 0.6},
    )
    _boundary_axes(ax, boundary, "Species richness per 0.5 degree cell")
    _save(fig, output_path, dpi)


def plot_hotspot_map(
    grid: gpd.GeoDataFrame,
    hotspots: gpd.GeoDataFrame,
    boundary: gpd.GeoDataFrame,
    output_path: Path,
    dpi: int = 300,
) -> None:
    """Hotspot cells coloured by richness over the grid outline."""
    fig, ax = plt.subplots(figsize=(10, 10))
    grid.plot(ax=ax, facecolor="none", edgecolor="lightgray", linewidth=0.3)
    if len(hotspots) > 0:
        hotspots.plot(
            column="species_richness",
            cmap=HOTSPOT_CMAP,
            ax=ax,
            edgecolor="black",
            linewidth=0.3,
            legend=True,
            legend_kwds={"label": "Species richness", "shrink": 0.6},
        )
    _boundary_axes(ax, boundary, f"Biodiversity hotspots ({len(hotspots)} cells)")
    _save(fig, output_path, dpi)


def plot_sampling_effort_map(
    grid: gpd.GeoDataFrame,
    boundary: gpd.GeoDataFrame,
    output_path: Path,
    labels: Sequence[str] = SAMPLING_EFFORT_LABELS,
    dpi: int = 300,
) -> None:
    """Cells coloured by sampling-effort class."""
    palette = effort_colors(labels)
    fig, ax = plt.subplots(figsize=(10, 10))
    colors = grid["sampling_effort"].astype(str).map(palette)
    grid.plot(ax=ax, color=colors, edgecolor="white", linewidth=0.2)

    handles = [Patch(facecolor=palette[label], label=label) for label in labels]
    ax.legend(handles=handles, title="Records per cell", loc="lower right")
    _boundary_axes(ax, boundary, "Sampling effort")
    _save(fig, output_path, dpi)


# =============================================================================
# Charts
# =============================================================================

def plot_richness_histogram(
    grid: pd.DataFrame,
    threshold: Optional[float],
    output_path: Path,
    dpi: int = 300,
) -> None:
    """Histogram of positive richness with the hotspot threshold marked."""
    positive = grid.loc[grid["species_richness"] > 0, "species_richness"]

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.hist(positive, bins=30, color="steelblue", edgecolor="white")
    if threshold is not None:
        ax.axvline(x=threshold, color="red", linestyle="--", linewidth=1.5,
                   label=f"Hotspot threshold ({threshold:.0f})")
        ax.legend()
    ax.set_xlabel("Species richness per cell")
    ax.set_ylabel("Number of cells")
    ax.set_title("Distribution of species richness (sampled cells)", fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_ranked_bars(
    counts: pd.DataFrame,
    label_col: str,
    title: str,
    output_path: Path,
    color: str = "darkgreen",
    dpi: int = 300,
) -> None:
    """Horizontal bar chart of a count table, largest at the top."""
    fig, ax = plt.subplots(figsize=(10, max(4, 0.35 * len(counts))))
    y_pos = range(len(counts))
    ax.barh(y_pos, counts["n"], color=color, edgecolor="black", linewidth=0.5)
    ax.set_yticks(list(y_pos))
    ax.set_yticklabels(counts[label_col], fontsize=9)
    ax.invert_yaxis()
    ax.set_xlabel("Number of records")
    ax.set_title(title, fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_class_composition(clean: pd.DataFrame, output_path: Path, top_n: int = 10, dpi: int = 300) -> None:
    """Top classes with their percentage share annotated."""
    composition = class_composition(clean, top_n)

    fig, ax = plt.subplots(figsize=(10, 6))
    y_pos = range(len(composition))
    ax.barh(y_pos, composition["n"], color="teal", edgecolor="black", linewidth=0.5)
    for y, (n, pct) in enumerate(zip(composition["n"], composition["percentage"])):
        ax.text(n, y, f" {pct:.1f}%", va="center", fontsize=9)
    ax.set_yticks(list(y_pos))
    ax.set_yticklabels(composition["class"], fontsize=9)
    ax.invert_yaxis()
    ax.set_xlabel("Number of records")
    ax.set_title(f"Taxonomic composition (top {top_n} classes)", fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_monthly_pattern(clean: pd.DataFrame, output_path: Path, dpi: int = 300) -> None:
    """Records per calendar month coloured by season."""
    monthly = monthly_counts(clean)

    fig, ax = plt.subplots(figsize=(10, 6))
    ax.bar(
        monthly["month_name"],
        monthly["n"],
        color=monthly["season"].map(SEASON_COLORS),
        edgecolor="black",
        linewidth=0.5,
    )
    handles = [Patch(facecolor=color, label=season) for season, color in SEASON_COLORS.items()]
    ax.legend(handles=handles, title="Season")
    ax.set_xlabel("Month")
    ax.set_ylabel("Number of records")
    ax.set_title("Monthly recording pattern", fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_summary_statistics(summary: pd.DataFrame, output_path: Path, dpi: int = 300) -> None:
    """Headline counts as bars coloured by category, largest at the top."""
    summary = summary.sort_values("value", ascending=False, kind="mergesort").reset_index(drop=True)

    fig, ax = plt.subplots(figsize=(10, 7))
    y_pos = range(len(summary))
    ax.barh(y_pos, summary["value"], color=summary["category"].map(CATEGORY_COLORS), alpha=0.8)
    for y, value in enumerate(summary["value"]):
        ax.text(value, y, f" {value:,}", va="center", fontsize=11, fontweight="bold")
    ax.set_yticks(list(y_pos))
    ax.set_yticklabels(summary["metric"], fontsize=11)
    ax.invert_yaxis()
    ax.set_xlim(0, max(summary["value"].max(), 1) * 1.2)
    ax.set_xlabel("Count")

    handles = [Patch(facecolor=color, label=category) for category, color in CATEGORY_COLORS.items()]
    ax.legend(handles=handles, title="Category", loc="lower right")
    ax.set_title("Pakistan biodiversity analysis summary", fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_cleaning_comparison(comparison: pd.DataFrame, output_path: Path, dpi: int = 300) -> None:
    """Grouped bars of records/species/families for raw and clean data."""
    wide = comparison.pivot(index="metric", columns="stage", values="value")
    wide = wide.reindex(index=["Records", "Species", "Families"], columns=list(STAGE_COLORS))

    fig, ax = plt.subplots(figsize=(10, 6))
    x = np.arange(len(wide))
    width = 0.4
    for i, stage in enumerate(wide.columns):
        offset = (i - 0.5) * width
        bars = ax.bar(x + offset, wide[stage], width, label=stage, color=STAGE_COLORS[stage], alpha=0.8)
        ax.bar_label(bars, labels=[f"{v:,}" for v in wide[stage]], padding=2, fontsize=9)
    ax.set_xticks(x)
    ax.set_xticklabels(wide.index)
    ax.set_ylim(0, max(wide.to_numpy().max(), 1) * 1.15)
    ax.set_ylabel("Count")
    ax.legend(loc="upper right")
    ax.set_title("Data cleaning impact", fontsize=12, fontweight="bold")
    _save(fig, output_path, dpi)


def plot_project_highlights(highlights: pd.DataFrame, output_path: Path, dpi: int = 300) -> None:
    """Key figures as a 2 x 3 panel of tinted tiles."""
    fig, axes = plt.subplots(2, 3, figsize=(12, 8))
    for ax, color, (value, label) in zip(axes.flat, HIGHLIGHT_COLORS, highlights.itertuples(index=False)):
        ax.set_facecolor(color)
        ax.patch.set_alpha(0.3)
        ax.text(0.5, 0.6, value, ha="center", va="center", fontsize=24, fontweight="bold")
        ax.text(0.5, 0.3, label, ha="center", va="center", fontsize=13)
        ax.set_xticks([])
        ax.set_yticks([])
    fig.suptitle("Pakistan Biodiversity Analysis: key findings", fontsize=16, fontweight="bold")
    _save(fig, output_path, dpi)


# =============================================================================
# Main
# =============================================================================

def build_maps(config: dict, logger, boundary, raw, clean, grid, hotspots) -> list:
    dpi = config["reporting"].get("figure_dpi", 300)
    labels = config["sampling_effort"]["labels"]
    written = []

    path = MAPS_DIR / "preview_map.png"
    plot_preview_map(raw, boundary, path, dpi)
    written.append(path)

    path = MAPS_DIR / "before_after_cleaning.png"
    plot_cleaning_maps(raw, clean, boundary, path, dpi)
    written.append(path)

    path = MAPS_DIR / "species_richness_map.png"
    plot_richness_map(grid, boundary, path, dpi)
    written.append(path)

    path = MAPS_DIR / "biodiversity_hotspots.png"
    plot_hotspot_map(grid, hotspots, boundary, path, dpi)
    written.append(path)

    path = MAPS_DIR / "sampling_effort_map.png"
    plot_sampling_effort_map(grid, boundary, path, labels=labels, dpi=dpi)
    written.append(path)

    for p in written:
        logger.info(f"Wrote: {p}")
    return written


def build_charts(config: dict, logger, raw, clean, grid, hotspots) -> list:
    reporting = config["reporting"]
    dpi = reporting.get("figure_dpi", 300)
    percentile = config["hotspots"]["percentile"]
    written = []

    try:
        threshold = hotspot_threshold(grid["species_richness"], percentile)
    except NoHotspotDataError:
        logger.warning("No sampled cells; histogram drawn without a threshold line")
        threshold = None

    path = FIGURES_DIR / "richness_distribution.png"
    plot_richness_histogram(grid, threshold, path, dpi)
    written.append(path)

    top_species = reporting.get("top_species", 20)
    path = FIGURES_DIR / "top_species.png"
    plot_ranked_bars(
        count_by(clean, SPECIES_COL, top_species), SPECIES_COL,
        f"Top {top_species} most recorded species", path, dpi=dpi,
    )
    written.append(path)

    path = FIGURES_DIR / "class_composition.png"
    plot_class_composition(clean, path, reporting.get("top_classes", 10), dpi)
    written.append(path)

    top_orders = reporting.get("top_orders", 15)
    path = FIGURES_DIR / "top_orders.png"
    plot_ranked_bars(
        count_by(clean, "order", top_orders), "order",
        f"Top {top_orders} orders", path, color="darkorange", dpi=dpi,
    )
    written.append(path)

    top_families = reporting.get("top_families", 15)
    path = FIGURES_DIR / "top_families.png"
    plot_ranked_bars(
        count_by(clean, "family", top_families), "family",
        f"Top {top_families} families by number of records", path, color="#7570b3", dpi=dpi,
    )
    written.append(path)

    path = FIGURES_DIR / "monthly_pattern.png"
    plot_monthly_pattern(clean, path, dpi)
    written.append(path)

    path = FIGURES_DIR / "summary_statistics.png"
    plot_summary_statistics(summary_statistics(clean, grid, hotspots), path, dpi)
    written.append(path)

    path = FIGURES_DIR / "data_cleaning_comparison.png"
    plot_cleaning_comparison(cleaning_comparison(raw, clean), path, dpi)
    written.append(path)

    path = FIGURES_DIR / "project_highlights.png"
    plot_project_highlights(project_highlights(clean, grid, hotspots), path, dpi)
    written.append(path)

    for p in written:
        logger.info(f"Wrote: {p}")
    return written


def main():
    """Main entry point."""
    parser = argparse.ArgumentParser(description="Build maps and charts")
    parser.add_argument("--maps", action="store_true", help="Build maps only")
    parser.add_argument("--charts", action="store_true", help="Build charts only")
    args = parser.parse_args()

    do_maps = args.maps or (not args.maps and not args.charts)
    do_charts = args.charts or (not args.maps and not args.charts)

    with get_logger("04_build_figures") as logger:
        logger.info("Starting 04_build_figures.py")

        config = read_yaml(PARAMS_FILE)
        logger.log_config(config)

        try:
            boundary = read_boundary(BOUNDARY_GPKG)
            raw = read_raw_occurrences(RAW_OCCURRENCES_CSV)
            clean = read_gdf(CLEAN_OCCURRENCES_PARQUET)
            grid = read_gdf(GRID_RICHNESS_PARQUET)
            for name, gdf in (("clean occurrences", clean), ("grid", grid)):
                assert_expected_crs(gdf, 4326, name)

            if HOTSPOTS_PARQUET.exists():
                hotspots = read_gdf(HOTSPOTS_PARQUET)
            else:
                logger.warning(f"No hotspot file at {HOTSPOTS_PARQUET}; hotspot figures show none")
                hotspots = grid.iloc[0:0]

            written = []
            if do_maps:
                written += build_maps(config, logger, boundary, raw, clean, grid, hotspots)
            if do_charts:
                written += build_charts(config, logger, raw, clean, grid, hotspots)

            figures = {str(p): FIGURE_DESCRIPTIONS[p.stem] for p in written}
            atomic_write_text(visualization_summary_text(figures, clean), OUTPUT_VISUALIZATION_SUMMARY)
            logger.info(f"Wrote: {OUTPUT_VISUALIZATION_SUMMARY}")

            outputs = {p.stem: str(p) for p in written}
            outputs["visualization_summary"] = str(OUTPUT_VISUALIZATION_SUMMARY)
            logger.log_outputs(outputs)
            logger.log_metrics({"figures_written": len(written)})

            logger.info("SUCCESS: Built figures")

        except Exception as e:
            logger.error(f"FAILED: {e}")
            raise


if __name__ == "__main__":
    main()
