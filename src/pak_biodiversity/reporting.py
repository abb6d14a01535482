"""
Summary tables and plain-text reports.

Pure functions over the pipeline's tables; the figure script and the stage
scripts call these and write the results.
"""

from datetime import date
from typing import Dict, Optional, Sequence

import numpy as np
import pandas as pd

from pak_biodiversity.schemas import CELL_ID_COL, SAMPLING_EFFORT_LABELS, SPECIES_COL

MONTH_ABBR = ["Jan", "Feb", "Mar", "Apr", "May", "Jun",
              "Jul", "Aug", "Sep", "Oct", "Nov", "Dec"]

SEASONS = {
    12: "Winter", 1: "Winter", 2: "Winter",
    3: "Spring", 4: "Spring", 5: "Spring",
    6: "Summer", 7: "Summer", 8: "Summer",
    9: "Autumn", 10: "Autumn", 11: "Autumn",
}


# =============================================================================
# Occurrence Summaries
# =============================================================================

def count_by(df: pd.DataFrame, column: str, top_n: Optional[int] = None) -> pd.DataFrame:
    """
    Record counts per value of `column`, most frequent first.

    Nulls are dropped. Ties keep first-seen order.

    Returns:
        DataFrame with columns [column, "n"]
    """
    counts = (
        df[column].dropna().value_counts(sort=True)
        .rename_axis(column).reset_index(name="n")
    )
    if top_n is not None:
        counts = counts.head(top_n)
    return counts


def class_composition(df: pd.DataFrame, top_n: int = 10) -> pd.DataFrame:
    """Top classes with their share (percent) of the top-N total."""
    summary = count_by(df, "class", top_n)
    total = summary["n"].sum()
    summary["percentage"] = (summary["n"] / total * 100).round(1) if total else 0.0
    return summary


def monthly_counts(df: pd.DataFrame) -> pd.DataFrame:
    """
    Record counts per calendar month with month abbreviation and season.

    Records with a missing or out-of-range month are ignored.
    """
    months = pd.to_numeric(df["month"], errors="coerce")
    months = months[months.between(1, 12)].astype(int)
    counts = months.value_counts().sort_index().rename_axis("month").reset_index(name="n")
    counts["month_name"] = counts["month"].map(lambda m: MONTH_ABBR[m - 1])
    counts["season"] = counts["month"].map(SEASONS)
    return counts


def dataset_summary(df: pd.DataFrame) -> Dict:
    """Record count, unique species and year range of an occurrence table."""
    years = pd.to_numeric(df["year"], errors="coerce").dropna()
    return {
        "records": int(len(df)),
        "unique_species": int(df[SPECIES_COL].nunique(dropna=True)),
        "year_min": int(years.min()) if len(years) else None,
        "year_max": int(years.max()) if len(years) else None,
    }


# =============================================================================
# Grid Summaries
# =============================================================================

def richness_statistics(grid: pd.DataFrame) -> Dict:
    """Mean/median/max/min/sample standard deviation of species_richness."""
    richness = grid["species_richness"]
    if len(richness) == 0:
        return {"mean": None, "median": None, "max": None, "min": None, "sd": None}
    sd = richness.std(ddof=1)
    return {
        "mean": float(richness.mean()),
        "median": float(richness.median()),
        "max": int(richness.max()),
        "min": int(richness.min()),
        "sd": None if np.isnan(sd) else float(sd),
    }


def effort_distribution(grid: pd.DataFrame, labels: Optional[Sequence[str]] = None) -> pd.DataFrame:
    """
    Cell counts per sampling-effort label, in label order (zeros kept).

    Labels default to the categories of a categorical sampling_effort column,
    else to SAMPLING_EFFORT_LABELS.
    """
    effort = grid["sampling_effort"]
    if labels is None:
        if isinstance(effort.dtype, pd.CategoricalDtype):
            labels = list(effort.cat.categories)
        else:
            labels = SAMPLING_EFFORT_LABELS
    counts = effort.astype(str).value_counts(sort=False)
    counts = counts.reindex(list(labels), fill_value=0)
    return counts.rename_axis("sampling_effort").reset_index(name="n")


def spatial_coverage(grid: pd.DataFrame) -> Dict:
    """Total cells, sampled cells and percent coverage."""
    total = int(len(grid))
    sampled = int((grid["total_records"] > 0).sum())
    return {
        "total_cells": total,
        "sampled_cells": sampled,
        "unsampled_cells": total - sampled,
        "coverage_pct": round(sampled / total * 100, 1) if total else 0.0,
    }


def top_cells(grid: pd.DataFrame, n: int = 5) -> pd.DataFrame:
    """The n richest cells (ties broken by cell_id) without geometry."""
    ranked = grid.sort_values(
        ["species_richness", CELL_ID_COL], ascending=[False, True], kind="mergesort"
    )
    return pd.DataFrame(
        ranked[[CELL_ID_COL, "species_richness", "total_records", "n_families"]].head(n)
    ).reset_index(drop=True)


# =============================================================================
# Figure Tables
# =============================================================================

def _n_distinct(df: pd.DataFrame, column: str) -> int:
    if column not in df.columns:
        return 0
    return int(df[column].nunique(dropna=True))


def summary_statistics(
    clean: pd.DataFrame,
    grid: pd.DataFrame,
    hotspots: pd.DataFrame,
) -> pd.DataFrame:
    """
    Headline counts for the summary panel.

    Returns:
        DataFrame with columns [metric, value, category], one row per metric
    """
    rows = [
        ("Total Records", len(clean), "Data"),
        ("Unique Species", _n_distinct(clean, SPECIES_COL), "Data"),
        ("Families", _n_distinct(clean, "family"), "Taxonomy"),
        ("Orders", _n_distinct(clean, "order"), "Taxonomy"),
        ("Hotspots", len(hotspots), "Analysis"),
        ("Grid Cells", len(grid), "Analysis"),
    ]
    df = pd.DataFrame(rows, columns=["metric", "value", "category"])
    df["value"] = df["value"].astype("int64")
    return df


def cleaning_comparison(raw: pd.DataFrame, clean: pd.DataFrame) -> pd.DataFrame:
    """
    Records, species and families before and after cleaning.

    Blank species names are not counted as a species.

    Returns:
        Long DataFrame with columns [stage, metric, value]
    """
    rows = []
    for stage, df in (("Raw Data", raw), ("Clean Data", clean)):
        species = df[SPECIES_COL].astype("string").str.strip()
        rows += [
            (stage, "Records", len(df)),
            (stage, "Species", int(species[species.ne("").fillna(False)].nunique(dropna=True))),
            (stage, "Families", _n_distinct(df, "family")),
        ]
    df = pd.DataFrame(rows, columns=["stage", "metric", "value"])
    df["value"] = df["value"].astype("int64")
    return df


def project_highlights(
    clean: pd.DataFrame,
    grid: pd.DataFrame,
    hotspots: pd.DataFrame,
) -> pd.DataFrame:
    """
    Six headline figures for the highlights panel.

    The share row reports the most recorded class; coverage is the percent
    of grid cells holding at least one record.

    Returns:
        DataFrame with columns [value, label]
    """
    classes = count_by(clean, "class", 1) if "class" in clean.columns else pd.DataFrame()
    if len(classes) and len(clean):
        top_class = classes["class"].iloc[0]
        share = f"{classes['n'].iloc[0] / len(clean) * 100:.0f}%"
    else:
        top_class, share = "Top Class", "n/a"

    max_richness = richness_statistics(grid)["max"]
    rows = [
        (f"{len(clean):,}", "Clean Records"),
        (str(_n_distinct(clean, SPECIES_COL)), "Unique Species"),
        (str(len(hotspots)), "Biodiversity Hotspots"),
        (share, f"{top_class} Records"),
        (f"{spatial_coverage(grid)['coverage_pct']:.0f}%", "Area Coverage"),
        ("n/a" if max_richness is None else str(max_richness), "Max Species per Cell"),
    ]
    return pd.DataFrame(rows, columns=["value", "label"])


# =============================================================================
# Text Reports
# =============================================================================

def percentile_label(percentile: float) -> str:
    """0.9 -> "90th", 0.95 -> "95th", 0.925 -> "92.5th"."""
    value = round(percentile * 100, 6)
    text = f"{value:g}"
    if value != int(value) or 10 <= int(value) % 100 <= 13:
        return f"{text}th"
    return text + {1: "st", 2: "nd", 3: "rd"}.get(int(value) % 10, "th")


def _table(df: pd.DataFrame) -> str:
    if len(df) == 0:
        return "(none)"
    return df.to_string(index=False)


def cleaning_report_text(
    cleaning_log: pd.DataFrame,
    clean: pd.DataFrame,
    top_n_species: int = 10,
    top_n_classes: int = 5,
    report_date: Optional[date] = None,
) -> str:
    """Plain-text data cleaning report."""
    report_date = report_date or date.today()
    summary = dataset_summary(clean)
    year_range = (
        f"{summary['year_min']} to {summary['year_max']}"
        if summary["year_min"] is not None else "n/a"
    )

    lines = [
        "=" * 36,
        "DATA CLEANING REPORT",
        "=" * 36,
        "",
        f"Date: {report_date.isoformat()}",
        "",
        "CLEANING STEPS",
        "-" * 14,
        _table(cleaning_log),
        "",
        "FINAL DATASET STATISTICS",
        "-" * 24,
        f"Clean records: {summary['records']}",
        f"Unique species: {summary['unique_species']}",
        f"Date range: {year_range}",
        "",
        "TAXONOMIC COMPOSITION",
        "-" * 21,
        _table(count_by(clean, "class", top_n_classes)),
        "",
        "MOST RECORDED SPECIES",
        "-" * 21,
        _table(count_by(clean, SPECIES_COL, top_n_species)),
        "",
    ]
    return "\n".join(lines)


def spatial_report_text(
    grid: pd.DataFrame,
    hotspots: Optional[pd.DataFrame],
    threshold: Optional[float],
    clean: pd.DataFrame,
    cell_size: float,
    top_n_cells: int = 5,
    percentile: float = 0.90,
    report_date: Optional[date] = None,
) -> str:
    """
    Plain-text spatial analysis report.

    `hotspots`/`threshold` are None when no cell has positive richness; the
    report then states that no hotspot threshold could be computed.
    """
    report_date = report_date or date.today()
    stats = richness_statistics(grid)
    coverage = spatial_coverage(grid)

    def fmt(value, digits=2):
        return "n/a" if value is None else f"{value:.{digits}f}" if isinstance(value, float) else str(value)

    lines = [
        "=" * 36,
        "SPATIAL ANALYSIS REPORT",
        "=" * 36,
        "",
        f"Analysis Date: {report_date.isoformat()}",
        "",
        "DATASET OVERVIEW",
        "-" * 16,
        f"Total species records: {len(clean)}",
        f"Unique species: {clean[SPECIES_COL].nunique(dropna=True)}",
        f"Grid resolution: {cell_size} degrees",
        f"Total grid cells: {coverage['total_cells']}",
        f"Cells with data: {coverage['sampled_cells']}",
        f"Spatial coverage: {coverage['coverage_pct']}%",
        "",
        "SPECIES RICHNESS STATISTICS",
        "-" * 27,
        f"Mean species per cell: {fmt(stats['mean'])}",
        f"Median species per cell: {fmt(stats['median'], 1)}",
        f"Maximum species in a cell: {fmt(stats['max'])}",
        f"Standard deviation: {fmt(stats['sd'])}",
        "",
        "BIODIVERSITY HOTSPOTS",
        "-" * 21,
    ]

    if hotspots is None or threshold is None:
        lines.append("No cell has recorded species; hotspot threshold undefined.")
    else:
        share = len(hotspots) / coverage["total_cells"] * 100 if coverage["total_cells"] else 0.0
        lines += [
            f"Hotspot definition: cells at or above the {percentile_label(percentile)} "
            "percentile of positive richness",
            f"Richness threshold: {threshold:.0f} species",
            f"Number of hotspot cells: {len(hotspots)}",
            f"Percentage of total area: {share:.1f}%",
        ]

    lines += [
        "",
        f"Top {top_n_cells} Richest Cells:",
        _table(top_cells(grid, top_n_cells)),
        "",
        "SAMPLING EFFORT",
        "-" * 15,
        _table(effort_distribution(grid)),
        "",
    ]
    return "\n".join(lines)


def visualization_summary_text(
    figures: Dict[str, str],
    clean: pd.DataFrame,
    report_date: Optional[date] = None,
) -> str:
    """
    Plain-text index of the rendered figures with a few key statistics.

    Args:
        figures: Figure path -> one-line description, in drawing order
        clean: Clean occurrence records
        report_date: Defaults to today
    """
    report_date = report_date or date.today()
    classes = count_by(clean, "class", 1)
    monthly = monthly_counts(clean)
    most_common_class = classes["class"].iloc[0] if len(classes) else "n/a"
    peak_month = monthly.loc[monthly["n"].idxmax(), "month_name"] if len(monthly) else "n/a"

    lines = [
        "=" * 36,
        "VISUALIZATION SUMMARY",
        "=" * 36,
        "",
        f"Date: {report_date.isoformat()}",
        "",
        "VISUALIZATIONS CREATED",
        "-" * 22,
        "",
    ]
    for i, (path, description) in enumerate(figures.items(), start=1):
        lines += [f"{i}. {description}", f"   - File: {path}", ""]

    lines += [
        "KEY STATISTICS",
        "-" * 14,
        f"Total visualizations created: {len(figures)}",
        f"Total species analyzed: {clean[SPECIES_COL].nunique(dropna=True)}",
        f"Most common class: {most_common_class}",
        f"Peak observation month: {peak_month}",
        "",
    ]
    return "\n".join(lines)
