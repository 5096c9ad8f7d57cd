"""Utility functions to filter, rank and summarise expression data and
differential expression results.

Everything here works on plain pandas objects, so it can be used (and tested)
without an R session.
"""

import signal
from contextlib import contextmanager
from typing import Any, Dict, Iterable, Optional

import numpy as np
import pandas as pd

LFC_LEVELS = ("up", "down", "all")


def filter_df(
    df: pd.DataFrame, filter_values: Dict[str, Iterable[Any]]
) -> pd.DataFrame:
    """Filter DataFrame rows based on values in specified columns.

    Args:
        df: DataFrame to be filtered
        filter_values: Dictionary mapping column names to allowable values,
            where only rows with matching values are kept

    Returns:
        pd.DataFrame: Filtered DataFrame containing only rows that match all criteria

    Raises:
        ValueError: If any key in filter_values is not a column in the DataFrame

    Example:
        >>> filter_df(df, {'condition': ['treated', 'control']})
    """
    missing = [k for k in filter_values.keys() if k not in df.columns]
    if missing:
        raise ValueError(f"Columns {missing} are not part of the dataframe.")

    if not filter_values:
        return df

    return df[
        np.logical_and.reduce(
            [
                df[column].isin(target_values)
                for column, target_values in filter_values.items()
            ]
        )
    ]


class TimeoutException(Exception):
    """Exception raised when a code block execution exceeds its time limit."""

    pass


@contextmanager
def time_limit(seconds: int):
    """Context manager to limit execution time of a code block.

    Args:
        seconds: Maximum number of seconds the enclosed code block is allowed to run

    Raises:
        TimeoutException: If the code within the context doesn't complete within
            the specified time limit

    Example:
        >>> try:
        ...     with time_limit(60):
        ...         pathview(...)
        ... except TimeoutException:
        ...     logging.warning("Pathway rendering timed out")
    """

    def signal_handler(signum, frame):
        raise TimeoutException("Timed out!")

    signal.signal(signal.SIGALRM, signal_handler)
    signal.alarm(seconds)
    try:
        yield
    finally:
        signal.alarm(0)


def threshold_str(th: float) -> str:
    """Threshold formatted for file names, e.g. 0.05 -> "0_05"."""
    return str(th).replace(".", "_")


def de_subset_name(
    exp_prefix: str,
    test: str,
    control: str,
    p_col: str,
    p_th: float,
    lfc_level: str,
    lfc_th: float,
) -> str:
    """Name identifying one filtered subset of a contrast's results.

    Example:
        >>> de_subset_name("salmon", "treated", "control", "padj", 0.05, "up", 1.0)
        'salmon_treated_vs_control_padj_0_05_up_1_0'
    """
    return (
        f"{exp_prefix}_{test}_vs_{control}_"
        f"{p_col}_{threshold_str(p_th)}_{lfc_level}_{threshold_str(lfc_th)}"
    )


def filter_de_results(
    result: pd.DataFrame,
    p_col: str = "padj",
    p_th: Optional[float] = 0.05,
    lfc_col: str = "log2FoldChange",
    lfc_level: str = "all",
    lfc_th: Optional[float] = 1.0,
) -> pd.DataFrame:
    """Keep the significant features of a differential expression result.

    A feature passes when `p_col < p_th` and `|lfc_col| > lfc_th`, and its
    fold change has the requested direction. Both inequalities are strict and
    missing values never pass.

    Args:
        result: Differential expression result, one row per feature.
        p_col: P-value column to threshold ("padj" or "pvalue").
        p_th: P-value threshold. None skips the p-value filter.
        lfc_col: Log2 fold change column.
        lfc_level: "up" (lfc > 0), "down" (lfc < 0) or "all".
        lfc_th: Absolute log2 fold change threshold. None skips it.

    Returns:
        The filtered result, in the original row order.

    Raises:
        ValueError: If lfc_level is unknown or a column is missing.
    """
    if lfc_level not in LFC_LEVELS:
        raise ValueError(f"lfc_level must be one of {LFC_LEVELS}, got {lfc_level}.")
    missing = [c for c in (p_col, lfc_col) if c not in result.columns]
    if missing:
        raise ValueError(f"Columns {missing} are not part of the result.")

    lfc = result[lfc_col]
    mask = lfc.notna()

    # 1. Significance
    if p_th is not None:
        mask &= result[p_col].notna() & (result[p_col] < p_th)

    # 2. Fold change magnitude
    if lfc_th is not None:
        mask &= lfc.abs() > lfc_th

    # 3. Direction
    if lfc_level == "up":
        mask &= lfc > 0
    elif lfc_level == "down":
        mask &= lfc < 0

    return result[mask]


def rank_de_results(
    result: pd.DataFrame, p_col: str = "padj", lfc_col: str = "log2FoldChange"
) -> pd.DataFrame:
    """Sort by p-value ascending, ties broken by absolute fold change descending.

    Features with missing p-values are placed last.
    """
    return (
        result.assign(_abs_lfc=result[lfc_col].abs())
        .sort_values([p_col, "_abs_lfc"], ascending=[True, False], na_position="last")
        .drop(columns="_abs_lfc")
    )


def top_de_results(
    result: pd.DataFrame,
    top_n: int = 100,
    p_col: str = "padj",
    lfc_col: str = "log2FoldChange",
) -> pd.DataFrame:
    """First `top_n` rows of `rank_de_results`. All rows if fewer are available."""
    return rank_de_results(result, p_col=p_col, lfc_col=lfc_col).head(top_n)


def top_variable_features(
    expr_df: pd.DataFrame, top_n: int, center: bool = True
) -> pd.DataFrame:
    """Features with the highest variance across samples.

    Args:
        expr_df: Transformed expression values (e.g. rlog or RMA), with shape
            [n_features, n_samples].
        top_n: Number of features to keep. All features if fewer exist.
        center: Subtract each feature's mean, so that heatmaps show deviations
            from the average expression.

    Returns:
        The selected features, most variable first.
    """
    top_features = expr_df.var(axis=1).sort_values(ascending=False).index[:top_n]
    top_df = expr_df.loc[top_features]
    if center:
        top_df = top_df.sub(top_df.mean(axis=1), axis=0)
    return top_df


def significance_counts(
    result: pd.DataFrame,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_col: str = "log2FoldChange",
    lfc_th: float = 1.0,
) -> pd.Series:
    """Number of down-regulated, not significant and up-regulated features.

    Uses the same rules as `filter_de_results`.

    Returns:
        A series indexed by "down", "not_significant" and "up".
    """
    n_up = len(filter_de_results(result, p_col, p_th, lfc_col, "up", lfc_th))
    n_down = len(filter_de_results(result, p_col, p_th, lfc_col, "down", lfc_th))
    return pd.Series(
        {
            "down": n_down,
            "not_significant": len(result) - n_up - n_down,
            "up": n_up,
        },
        name="n_features",
    )


def unique_annotated(
    result: pd.DataFrame,
    id_col: str = "ENTREZID",
    p_col: str = "padj",
    lfc_col: str = "log2FoldChange",
) -> pd.DataFrame:
    """Rows whose `id_col` annotation is present and unique.

    Features mapping to several ids ("/"-joined) are dropped. When several
    features share an id (e.g. probesets of the same gene), only the best
    ranked one by `rank_de_results` is kept. Row order is preserved.
    """
    annotated = result[result[id_col].notna()]
    annotated = annotated[~annotated[id_col].astype(str).str.contains("/")]
    best = rank_de_results(annotated, p_col=p_col, lfc_col=lfc_col).drop_duplicates(
        subset=[id_col], keep="first"
    )
    return annotated[annotated.index.isin(best.index)]


def collapse_to_genes(
    expr_df: pd.DataFrame, gene_ids: pd.Series
) -> pd.DataFrame:
    """Collapse probesets to genes, keeping the most variable probeset per gene.

    Args:
        expr_df: Probeset expression values, [n_probesets, n_samples].
        gene_ids: Gene id per probeset (indexed like expr_df). Probesets without
            a gene id are dropped.

    Returns:
        Expression values indexed by gene id.
    """
    gene_ids = gene_ids.reindex(expr_df.index).dropna()
    gene_ids = gene_ids[~gene_ids.astype(str).str.contains("/")]
    variances = expr_df.loc[gene_ids.index].var(axis=1)
    best_probes = (
        pd.DataFrame({"gene": gene_ids, "var": variances})
        .sort_values("var", ascending=False, kind="mergesort")
        .drop_duplicates(subset="gene", keep="first")
    )
    collapsed = expr_df.loc[best_probes.index]
    collapsed.index = best_probes["gene"].astype(str).values
    collapsed.index.name = gene_ids.name
    return collapsed


def filter_low_intensity(
    expr_df: pd.DataFrame,
    annot_df: pd.DataFrame,
    group_col: str,
    threshold: Optional[float] = None,
) -> pd.DataFrame:
    """Drop features not expressed above `threshold` in at least one group's worth
    of samples.

    A feature is kept if its value exceeds the threshold in at least as many
    samples as the smallest group has. If no threshold is given, the median of
    all values is used.
    """
    if threshold is None:
        threshold = float(np.median(expr_df.values))
    min_samples = (
        annot_df.loc[expr_df.columns, group_col].astype(str).value_counts().min()
    )
    return expr_df[(expr_df > threshold).sum(axis=1) >= min_samples]
