"""
Steps shared by the RNA-seq and microarray differential expression workflows.

Both workflows end up with the same objects: a matrix of transformed
expression values (rlog or RMA, features x samples), a sample annotation
with one contrast factor, and per contrast an annotated result table with
`log2FoldChange`, `pvalue`, `padj`, `ENTREZID`, `SYMBOL` and `GENENAME`
columns. The functions below produce the plots and tables derived from them:

1. Dataset plots: sample distances, PCA and a heatmap of the most variable
   features.
2. Result plots: volcano plot of each contrast.
3. Filtered subsets: for each combination of p-value column, threshold, fold
   change direction and threshold, the significant features, saved to disk and
   shown as a supervised heatmap.
4. A summary table with the number of significant features per subset.
"""

import logging
from itertools import product
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd
import rpy2.robjects as ro
from rpy2.robjects.conversion import localconverter

from data.utils import (
    de_subset_name,
    filter_de_results,
    rank_de_results,
    significance_counts,
    top_variable_features,
    unique_annotated,
)
from data.visualization import pca_plot
from r_wrappers.complex_heatmaps import complex_heatmap, heatmap_annotation
from r_wrappers.utils import pd_df_to_r_matrix, pd_df_to_rpy2_df, sample_distance
from r_wrappers.visualization import heatmap_sample_distance, volcano_plot

HEATMAP_LEGEND_PARAM = (
    'list(title_position = "topcenter", color_bar = "continuous",'
    ' legend_height = unit(5, "cm"), legend_direction = "horizontal")'
)


def unique_row_labels(
    index: pd.Index, labels: Optional[pd.Series] = None
) -> pd.Index:
    """Readable row labels (e.g. gene symbols), falling back to the original ids
    where a label is missing, ambiguous or duplicated."""
    if labels is None:
        return index
    labels = labels.reindex(index).astype("string")
    bad = labels.isna() | labels.str.contains("/", na=False) | labels.duplicated(
        keep=False
    )
    return pd.Index(labels.where(~bad, index.to_series().astype(str)).tolist())


def proc_dataset_plots(
    expr_df: pd.DataFrame,
    dataset_label: str,
    annot_df: pd.DataFrame,
    plots_path: Path,
    exp_prefix: str,
    contrast_factor: str,
    contrast_levels_colors: Dict[str, str],
    heatmap_top_n: int,
    row_labels: Optional[pd.Series] = None,
    plot_format: str = "png",
) -> None:
    """
    Exploratory plots of a transformed expression matrix.

    Args:
        expr_df: Transformed expression values (rlog, VST or RMA), with shape
            [n_features, n_samples].
        dataset_label: Name of the transformation (e.g. "rlog", "RMA"), used in
            file names and titles.
        annot_df: Sample annotation, indexed by sample id.
        plots_path: Directory where plots are stored.
        exp_prefix: Prefix for all file names.
        contrast_factor: Annotation column defining the sample groups.
        contrast_levels_colors: Colour of each group.
        heatmap_top_n: Number of most variable features shown in the heatmap.
        row_labels: Readable label of each feature (e.g. gene symbol).
        plot_format: Extension of the saved plots.
    """
    samples = annot_df.index.intersection(expr_df.columns)
    expr_df = expr_df.loc[:, samples]
    annot_df = annot_df.loc[samples]

    # 1. Samples clustering
    with localconverter(ro.default_converter):
        sample_dist = sample_distance(pd_df_to_r_matrix(expr_df))
        heatmap_sample_distance(
            sample_dist,
            plots_path.joinpath(
                f"{exp_prefix}_samples_distances_{dataset_label}.{plot_format}"
            ),
        )

    # 2. Principal Component Analysis (PCA)
    pca_plot(
        expr_df,
        annot_df,
        color_col=contrast_factor,
        save_path=plots_path.joinpath(f"{exp_prefix}_pca_{dataset_label}.{plot_format}"),
        title=f"All samples ({dataset_label})",
        colors=contrast_levels_colors,
    )

    # 3. Genes clustering (unsupervised)
    top_df = top_variable_features(expr_df, heatmap_top_n)
    top_df.index = unique_row_labels(top_df.index, row_labels)
    logging.info(
        f"[{exp_prefix}] Heatmap of the top {len(top_df)} variable features"
        f" ({dataset_label})."
    )

    with localconverter(ro.default_converter):
        ha_column = heatmap_annotation(
            df=annot_df[[contrast_factor]].astype(str),
            col={contrast_factor: contrast_levels_colors},
            show_annotation_name=False,
        )
        complex_heatmap(
            top_df,
            save_path=plots_path.joinpath(
                f"{exp_prefix}_unsupervised_genes_clustering_{dataset_label}"
                f".{plot_format}"
            ),
            width=10,
            height=10,
            column_title=f"Top {len(top_df)} variable genes ({dataset_label})",
            name=f"Centered expression ({dataset_label})",
            top_annotation=ha_column,
            show_row_names=True,
            show_column_names=True,
            cluster_columns=True,
            heatmap_legend_param=ro.r(HEATMAP_LEGEND_PARAM),
        )


def proc_volcano_plot(
    result: pd.DataFrame,
    test: str,
    control: str,
    save_path: Path,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_th: float = 1.0,
    label_col: str = "SYMBOL",
) -> None:
    """Volcano plot of one contrast, features labelled by `label_col`."""
    result = result.dropna(subset=[p_col, "log2FoldChange"]).copy()
    result["label"] = unique_row_labels(result.index, result.get(label_col))

    with localconverter(ro.default_converter):
        volcano_plot(
            data=pd_df_to_rpy2_df(result[["label", "log2FoldChange", p_col]]),
            lab="label",
            x="log2FoldChange",
            y=p_col,
            save_path=save_path,
            title=f"{test} vs {control}",
            subtitle=f"{p_col} < {p_th}, |LFC| > {lfc_th}",
            pCutoff=p_th,
            FCcutoff=lfc_th,
        )


def supervised_heatmap(
    expr_df: pd.DataFrame,
    result: pd.DataFrame,
    annot_df: pd.DataFrame,
    contrast_factor: str,
    test: str,
    control: str,
    contrast_levels_colors: Dict[str, str],
    save_path: Path,
    title: str,
    heatmap_top_n: int,
    p_col: str = "padj",
    label_col: str = "SYMBOL",
) -> Optional[pd.DataFrame]:
    """
    Heatmap of the most significant features of a filtered subset, over the
    samples of the two contrasted groups (control first).

    Returns:
        The plotted (row-centred) matrix, or None if no feature could be shown.
    """
    # 1. Samples of the comparison, sorted by group
    annot_df_test_control = annot_df[
        annot_df[contrast_factor].astype(str).isin([test, control])
    ][[contrast_factor]].astype(str)
    annot_df_test_control = annot_df_test_control.loc[
        annot_df_test_control.index.intersection(expr_df.columns)
    ].sort_values(contrast_factor, key=lambda s: s != control, kind="mergesort")

    # 2. Top features by significance, then fold change
    top_result = rank_de_results(
        result[result.index.isin(expr_df.index)], p_col=p_col
    ).head(heatmap_top_n)
    if top_result.empty:
        logging.warning(f"[{save_path.stem}] No expression values for the subset.")
        return None

    counts_matrix = expr_df.loc[top_result.index, annot_df_test_control.index]
    counts_matrix = counts_matrix.sub(counts_matrix.mean(axis=1), axis=0)
    counts_matrix.index = unique_row_labels(
        counts_matrix.index, top_result.get(label_col)
    )

    # 3. Plot heatmap
    with localconverter(ro.default_converter):
        ha_column = heatmap_annotation(
            df=annot_df_test_control,
            col={contrast_factor: contrast_levels_colors},
            show_annotation_name=False,
        )
        complex_heatmap(
            counts_matrix,
            save_path=save_path,
            width=10,
            height=max(6, min(20, len(counts_matrix) // 4)),
            column_title=title,
            name="Centered expression",
            top_annotation=ha_column,
            cluster_columns=False,
            show_row_names=len(counts_matrix) <= 100,
            heatmap_legend_param=ro.r(HEATMAP_LEGEND_PARAM),
        )

    return counts_matrix


def proc_filtered_results(
    results_anno: Dict[Tuple[str, str], pd.DataFrame],
    expr_df: pd.DataFrame,
    annot_df: pd.DataFrame,
    results_path: Path,
    plots_path: Path,
    exp_prefix: str,
    contrast_factor: str,
    contrast_levels_colors: Dict[str, str],
    p_cols: Iterable[str],
    p_ths: Iterable[float],
    lfc_levels: Iterable[str],
    lfc_ths: Iterable[float],
    heatmap_top_n: int,
    results_suffix: str,
    dataset_label: str,
    plot_format: str = "png",
) -> pd.DataFrame:
    """
    Filter annotated results by every threshold combination, save each subset
    and draw its supervised heatmap.

    Args:
        results_anno: Annotated results of each (test, control) contrast.
        expr_df: Transformed expression values used in the heatmaps.
        annot_df: Sample annotation, indexed by sample id.
        results_path: Directory where tables are stored.
        plots_path: Directory where plots are stored.
        exp_prefix: Prefix for all file names.
        contrast_factor: Annotation column defining the sample groups.
        contrast_levels_colors: Colour of each group.
        p_cols: P-value columns to filter by (e.g. ["padj"]).
        p_ths: P-value thresholds (e.g. [0.05]).
        lfc_levels: Fold change directions ("up", "down", "all").
        lfc_ths: Absolute log2 fold change thresholds (e.g. [1.0]).
        heatmap_top_n: Maximum number of features per supervised heatmap.
        results_suffix: Suffix of the result files, e.g. "deseq_results".
        dataset_label: Name of the expression transformation, for titles.
        plot_format: Extension of the saved plots.

    Returns:
        Summary with one row per contrast and thresholds and one column per
        fold change direction, holding the number of significant features.
    """
    summary = {}
    for ((test, control), result), p_col, p_th, lfc_level, lfc_th in product(
        results_anno.items(), p_cols, p_ths, lfc_levels, lfc_ths
    ):
        subset_name = de_subset_name(
            exp_prefix, test, control, p_col, p_th, lfc_level, lfc_th
        )

        # 1. Filter and save
        result_filtered = filter_de_results(
            result, p_col=p_col, p_th=p_th, lfc_level=lfc_level, lfc_th=lfc_th
        )
        rank_de_results(result_filtered, p_col=p_col).to_csv(
            results_path.joinpath(f"{subset_name}_{results_suffix}.csv")
        )
        summary.setdefault((test, control, p_col, p_th, lfc_th), {})[lfc_level] = len(
            result_filtered
        )
        logging.info(f"[{subset_name}] {len(result_filtered)} significant features.")

        # 2. Supervised heatmap
        result_filtered_unique = unique_annotated(
            result_filtered, "SYMBOL", p_col=p_col
        )
        if result_filtered_unique.empty:
            logging.warning(f"[{subset_name}] Empty subset, skipping heatmap.")
            continue

        supervised_heatmap(
            expr_df,
            result_filtered_unique,
            annot_df,
            contrast_factor,
            test,
            control,
            contrast_levels_colors,
            save_path=plots_path.joinpath(
                f"{subset_name}_supervised_genes_clustering.{plot_format}"
            ),
            title=(
                f"Top DEGs {test} vs {control} ({p_col} < {p_th}, {lfc_level},"
                f" |LFC| > {lfc_th}) ({dataset_label})"
            ),
            heatmap_top_n=heatmap_top_n,
            p_col=p_col,
        )

    summary_df = pd.DataFrame(summary).transpose()
    summary_df.index.names = ["test", "control", "p_col", "p_th", "lfc_th"]
    summary_df.to_csv(results_path.joinpath(f"{exp_prefix}_degs_summary.csv"))
    return summary_df


def log_significance_counts(
    result: pd.DataFrame,
    exp_name: str,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_th: float = 1.0,
) -> pd.Series:
    """Log the number of down, not significant and up features of a contrast."""
    counts = significance_counts(result, p_col=p_col, p_th=p_th, lfc_th=lfc_th)
    logging.info(
        f"[{exp_name}] {p_col} < {p_th}, |LFC| > {lfc_th}: "
        + ", ".join(f"{k}={v}" for k, v in counts.items())
    )
    return counts
