"""
Reports of differential expression workflows.

The reports are built from the files the workflows leave on disk, so they can
also be regenerated later from a finished run. Sections are:

1. Dataset: quality control and exploratory plots and the summary of
   significant features per contrast and threshold.
2. One section per contrast: result plots (MA/MD, volcano, supervised
   heatmaps) and the top ranked features.
3. One section per contrast and fold change direction with the enriched
   KEGG, GO and Reactome terms.
"""

import dataclasses
import logging
from pathlib import Path
from typing import Dict, Iterable, List, Optional, Tuple

import pandas as pd

from components.reports import (
    ReportConfig,
    ReportSection,
    render_html_report,
    render_pdf_report,
)
from data.utils import LFC_LEVELS, significance_counts, threshold_str, top_de_results

ENRICHMENT_DBS = (
    ("KEGG", ("",)),
    ("GO", ("_BP", "_MF", "_CC")),
    ("REACTOME", ("",)),
)
ENRICHMENT_COLUMNS = ["Description", "GeneRatio", "BgRatio", "pvalue", "p.adjust"]


def _sorted_figures(plots_path: Path, pattern: str, plot_format: str) -> List[Path]:
    return sorted(plots_path.glob(f"{pattern}.{plot_format}"))


def collect_sections(
    exp_prefix: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    results: Dict[Tuple[str, str], pd.DataFrame],
    plots_path: Path,
    func_path: Path,
    results_path: Path,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_th: float = 1.0,
    lfc_levels: Iterable[str] = LFC_LEVELS,
    config: Optional[ReportConfig] = None,
) -> List[ReportSection]:
    """
    Gather the plots and tables of a finished workflow into report sections.

    Args:
        exp_prefix: Prefix of all files of the workflow.
        contrasts_levels: (test, control) pairs, in report order.
        results: Annotated results of each contrast.
        plots_path: Directory with the workflow plots.
        func_path: Directory with the enrichment results (plots under
            func_path/plots).
        results_path: Directory with the workflow tables.
        p_col: P-value column used to rank features.
        p_th: P-value threshold of the significance summaries.
        lfc_th: Log2 fold change threshold of the significance summaries.
        lfc_levels: Fold change directions with enrichment results.
        config: Report options. Defaults to `ReportConfig()`.

    Returns:
        Report sections.
    """
    config = config or ReportConfig()
    fmt = config.figure_format
    contrasts_levels = list(contrasts_levels)
    sections = []

    # 1. Dataset
    dataset_figures = [
        figure
        for figure in _sorted_figures(plots_path, f"{exp_prefix}_*", fmt)
        if not any(
            figure.name.startswith(f"{exp_prefix}_{test}_vs_{control}_")
            for test, control in contrasts_levels
        )
    ]
    summary_file = results_path.joinpath(f"{exp_prefix}_degs_summary.csv")
    dataset_tables = {}
    if summary_file.is_file():
        dataset_tables["Significant features per contrast and threshold"] = (
            pd.read_csv(summary_file)
        )
    sections.append(
        ReportSection(
            title="Dataset",
            text=(
                "Quality control and exploratory analysis of the transformed"
                " expression values: sample distances, principal components and"
                " the most variable features."
            ),
            figures=dataset_figures,
            tables=dataset_tables,
        )
    )

    # 2. Results per contrast
    for test, control in contrasts_levels:
        exp_name = f"{exp_prefix}_{test}_vs_{control}"
        result = results.get((test, control))
        if result is None:
            logging.warning(f"[{exp_name}] No results, skipping report section.")
            continue

        counts = significance_counts(result, p_col=p_col, p_th=p_th, lfc_th=lfc_th)
        sections.append(
            ReportSection(
                title=f"{test} vs {control}",
                text=(
                    f"Log2 fold changes of {test} over {control}. With {p_col} <"
                    f" {p_th} and |log2FoldChange| > {lfc_th}: {counts['up']} up,"
                    f" {counts['down']} down and {counts['not_significant']} not"
                    " significant features."
                ),
                figures=_sorted_figures(plots_path, f"{exp_name}_*", fmt),
                tables={
                    f"Top {config.top_n} features ({p_col} ascending, |LFC|"
                    " descending)": top_de_results(
                        result, top_n=config.top_n, p_col=p_col
                    )
                },
            )
        )

    # 3. Enrichment per contrast and direction
    for (test, control), lfc_level in (
        (contrast, lfc_level)
        for contrast in contrasts_levels
        for lfc_level in lfc_levels
    ):
        subset_name = (
            f"{exp_prefix}_{test}_vs_{control}_{p_col}_{threshold_str(p_th)}_"
            f"{lfc_level}_{threshold_str(lfc_th)}"
        )
        figures, tables = [], {}
        for db_type, suffixes in ENRICHMENT_DBS:
            for suffix in suffixes:
                prefix = f"{subset_name}_ora{suffix}"
                ora_file = func_path.joinpath(db_type, f"{prefix}.csv")
                if not ora_file.is_file():
                    continue
                ora_df = pd.read_csv(ora_file, index_col=0)
                tables[f"{db_type}{suffix.replace('_', ' ')}"] = ora_df[
                    [c for c in ENRICHMENT_COLUMNS if c in ora_df.columns]
                ]
                figures.extend(
                    _sorted_figures(
                        func_path.joinpath("plots", db_type), f"{prefix}_dotplot", fmt
                    )
                )

        if tables:
            sections.append(
                ReportSection(
                    title=f"Enrichment: {test} vs {control} ({lfc_level})",
                    text=(
                        f"Over-represented terms among {lfc_level} regulated"
                        f" features ({p_col} < {p_th}, |log2FoldChange| >"
                        f" {lfc_th}), all tested genes as background."
                    ),
                    figures=figures,
                    tables=tables,
                )
            )

    return sections


def write_reports(
    title: str,
    exp_prefix: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    results: Dict[Tuple[str, str], pd.DataFrame],
    plots_path: Path,
    func_path: Path,
    reports_path: Path,
    results_path: Path,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_th: float = 1.0,
    config: Optional[ReportConfig] = None,
) -> Dict[str, Path]:
    """
    Render the HTML and/or PDF reports of a workflow.

    Args:
        title: Title used when the configuration has none.
        reports_path: Directory where reports are written, as
            {exp_prefix}_report.html and {exp_prefix}_report.pdf.

    See `collect_sections` for the other arguments.

    Returns:
        Path of each written report, keyed by format.
    """
    config = config or ReportConfig()
    if not config.title:
        config = dataclasses.replace(config, title=title)

    sections = collect_sections(
        exp_prefix=exp_prefix,
        contrasts_levels=contrasts_levels,
        results=results,
        plots_path=plots_path,
        func_path=func_path,
        results_path=results_path,
        p_col=p_col,
        p_th=p_th,
        lfc_th=lfc_th,
        config=config,
    )

    renderers = {"html": render_html_report, "pdf": render_pdf_report}
    return {
        report_format: renderers[report_format](
            sections,
            reports_path.joinpath(f"{exp_prefix}_report.{report_format}"),
            config,
        )
        for report_format in config.report_formats
    }
