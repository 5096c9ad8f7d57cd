"""
Wrappers for R package DESeq2

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

import logging
import re
from typing import Any, Iterable, Tuple

import pandas as pd
import rpy2
from rpy2 import robjects as ro
from rpy2.rinterface_lib.embedded import RRuntimeError
from rpy2.robjects import Formula
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

from r_wrappers.utils import pd_df_to_rpy2_df, rpy2_df_to_pd_df

r_deseq2 = importr("DESeq2")


def sanitize_factor(factor: str) -> str:
    """Replace characters that are not valid in R formulas with underscores."""
    return re.sub(r"\W|^(?=\d)", "_", factor)


def _design_and_annotation(
    annot_df: pd.DataFrame,
    factors: Iterable[str],
    design_factors: Iterable[str],
) -> Tuple[Formula, pd.DataFrame]:
    # 1. Check available factors
    available_factors = annot_df.columns
    unavailable_factors = [f for f in factors if f not in available_factors]
    if unavailable_factors:
        raise ValueError(
            "All factors must reference available columns in annot_df. However,"
            f' factors "{unavailable_factors}" were not found in annot_df.'
        )

    # 2. Build design formula
    rename_map = {f: sanitize_factor(f) for f in design_factors}
    design = Formula("~ " + " + ".join(rename_map.values()))

    return design, annot_df.loc[:, list(factors)].rename(columns=rename_map)


def get_deseq_dataset_matrix(
    counts_matrix: pd.DataFrame,
    annot_df: pd.DataFrame,
    factors: Iterable[str],
    design_factors: Iterable[str],
    **kwargs: Any,
) -> rpy2.robjects.methods.RS4:
    """Create a DESeqDataSet object from a counts matrix.

    Only samples present in both counts_matrix and annot_df are kept, and
    counts are rounded to integers.

    Args:
        counts_matrix: Read counts with shape [n_features, n_samples].
        annot_df: Annotation dataframe with sample metadata, whose index is the
            sample/replicate name.
        factors: Columns from annot_df to be included in the DESeq dataset's colData.
        design_factors: Columns whose values are used in the design formula for
            the differential expression model.
        **kwargs: Additional arguments to pass to the DESeqDataSetFromMatrix
            function.

    Returns:
        rpy2.robjects.methods.RS4: A DESeqDataSet object.

    Raises:
        ValueError: If any of the specified factors are not found in annot_df
            columns, or if no sample is shared by both inputs.

    References:
        https://rdrr.io/bioc/DESeq2/man/DESeqDataSet.html
    """
    design, annot_df_safe = _design_and_annotation(annot_df, factors, design_factors)

    common_samples = annot_df_safe.index.intersection(counts_matrix.columns)
    if common_samples.empty:
        raise ValueError("counts_matrix and annot_df have no samples in common.")

    with localconverter(ro.default_converter):
        return r_deseq2.DESeqDataSetFromMatrix(
            countData=pd_df_to_rpy2_df(
                counts_matrix[common_samples].round().astype(int)
            ),
            colData=pd_df_to_rpy2_df(annot_df_safe.loc[common_samples]),
            design=design,
            **kwargs,
        )


def get_deseq_dataset_tximport(
    txi: ro.ListVector,
    annot_df: pd.DataFrame,
    factors: Iterable[str],
    design_factors: Iterable[str],
    **kwargs: Any,
) -> rpy2.robjects.methods.RS4:
    """Create a DESeqDataSet object from tximport output.

    The estimated counts are rounded by DESeq2 and the average transcript
    lengths are stored as normalization offsets.

    Args:
        txi: The list returned by `r_wrappers.tximport.tximport`. Its columns
            must follow the order of annot_df index.
        annot_df: Annotation dataframe with sample metadata, whose index is the
            sample/replicate name.
        factors: Columns from annot_df to be included in the DESeq dataset's colData.
        design_factors: Columns whose values are used in the design formula for
            the differential expression model.
        **kwargs: Additional arguments to pass to the DESeqDataSetFromTximport
            function.

    Returns:
        rpy2.robjects.methods.RS4: A DESeqDataSet object.

    Raises:
        ValueError: If any of the specified factors are not found in annot_df
            columns, or if the samples of txi and annot_df differ.

    References:
        https://rdrr.io/bioc/DESeq2/man/DESeqDataSet.html
    """
    design, annot_df_safe = _design_and_annotation(annot_df, factors, design_factors)

    txi_samples = list(ro.r("colnames")(txi.rx2("counts")))
    if txi_samples != annot_df_safe.index.astype(str).tolist():
        raise ValueError(
            "Samples in tximport output and annot_df must be the same and in the"
            f" same order, got {txi_samples} and {annot_df_safe.index.tolist()}."
        )

    with localconverter(ro.default_converter):
        return r_deseq2.DESeqDataSetFromTximport(
            txi,
            colData=pd_df_to_rpy2_df(annot_df_safe),
            design=design,
            **kwargs,
        )


def filter_dds(
    dds: rpy2.robjects.methods.RS4, filter_count: int = 1
) -> rpy2.robjects.methods.RS4:
    """Filter out genes with low expression counts.

    This function filters the DESeqDataSet to keep only genes whose average
    expression across samples is greater than the specified threshold.

    Args:
        dds: A DESeqDataSet object.
        filter_count: Minimum average count threshold for keeping genes.
            Default is 1.

    Returns:
        rpy2.robjects.methods.RS4: A filtered DESeqDataSet object with low-expressed
        genes removed.
    """
    f = ro.r(
        """
        f <- function(dds, filter_count) {
            return(dds[rowMeans(counts(dds)) > filter_count,])
        }
        """
    )
    n_before = ro.r("nrow")(dds)[0]
    dds = f(dds, filter_count)
    logging.info(
        f"Count filter (mean > {filter_count}): kept {ro.r('nrow')(dds)[0]} of"
        f" {n_before} genes."
    )
    return dds


def run_dseq2(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Run the DESeq2 differential expression analysis workflow.

    This function performs a default DESeq2 analysis through the following steps:
    1) Estimation of size factors (normalization)
    2) Estimation of dispersion
    3) Negative Binomial GLM fitting and Wald statistics testing

    Args:
        dds: A DESeqDataSet object.
        **kwargs: Additional arguments to pass to the DESeq function.
            Common parameters include:
            - fitType: Method for dispersion estimation (default: "parametric").
            - test: Statistical test to use ("Wald" or "LRT").
            - quiet: Whether to suppress messages (default: FALSE).

    Returns:
        rpy2.robjects.methods.RS4: A DESeqDataSet object with results from the
        differential expression analysis.

    References:
        https://rdrr.io/bioc/DESeq2/man/DESeq.html
    """
    return r_deseq2.DESeq(dds, **kwargs)


def vst_transform(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Apply variance stabilizing transformation to count data.

    Args:
        dds: A DESeqDataSet object.
        **kwargs: Additional arguments to pass to the vst function.
            Common parameters include:
            - blind: Whether the transformation should be blind to sample covariates
              (default: TRUE).
            - nsub: Number of genes to use for dispersion trend estimation (default: 1000).

    Returns:
        rpy2.robjects.methods.RS4: A DESeqTransform object containing the transformed data.

    Notes:
        If the rapid vst function fails (e.g. fewer genes than nsub), this
        function falls back to the slower varianceStabilizingTransformation.

    References:
        https://rdrr.io/bioc/DESeq2/man/vst.html
    """
    try:
        return r_deseq2.vst(dds, **kwargs)
    except RRuntimeError as e:
        logging.warning(e)
        kwargs.pop("nsub", None)
        return r_deseq2.varianceStabilizingTransformation(dds, **kwargs)


def norm_transform(
    data: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Apply log2(normalized counts + pseudocount) to count data.

    References:
        https://rdrr.io/bioc/DESeq2/man/normTransform.html
    """
    return r_deseq2.normTransform(data, **kwargs)


def rlog_transform(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Apply regularized logarithm transformation to count data.

    This function transforms count data to the log2 scale using a regularized
    logarithm transformation (rlog). It minimizes differences between samples
    for genes with small counts and normalizes with respect to library size.

    Args:
        dds: A DESeqDataSet object.
        **kwargs: Additional arguments to pass to the rlog function.
            Common parameters include:
            - blind: Whether the transformation should be blind to sample covariates
              (default: TRUE).
            - fitType: Method used for dispersion trend fitting (default: "parametric").

    Returns:
        rpy2.robjects.methods.RS4: A DESeqTransform object containing the transformed data.

    References:
        https://rdrr.io/bioc/DESeq2/man/rlog.html
    """
    return r_deseq2.rlog(dds, **kwargs)


def deseq_results(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Extract differential expression results from a DESeq analysis.

    Args:
        dds: A DESeqDataSet object, coming from the `run_dseq2` function.
        **kwargs: Additional arguments to pass to the results function.
            Common parameters include:
            - contrast: Vector of length 3 specifying the contrast to extract.
            - lfcThreshold: Log2 fold change threshold for null hypothesis.
            - pAdjustMethod: Method for multiple testing adjustment (default: "BH").
            - alpha: Significance level for independent filtering (default: 0.1).

    Returns:
        rpy2.robjects.methods.RS4: A DESeqResults object with columns baseMean,
        log2FoldChange, lfcSE, stat, pvalue and padj.

    References:
        https://rdrr.io/bioc/DESeq2/man/results.html
    """
    return r_deseq2.results(dds, **kwargs)


def lfc_shrink(
    dds: rpy2.robjects.methods.RS4, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Apply log fold change shrinkage to DESeq2 results.

    Args:
        dds: A DESeqDataSet object that has been run through `run_dseq2`.
        **kwargs: Additional arguments to pass to the lfcShrink function.
            Common parameters include:
            - contrast: Vector of length 3 specifying the contrast to shrink.
            - type: Shrinkage type ("normal", "apeglm", "ashr").
            - res: A DESeqResults object to shrink.

    Returns:
        rpy2.robjects.methods.RS4: A DESeqResults object with shrunken log fold changes.

    References:
        https://rdrr.io/bioc/DESeq2/man/lfcShrink.html
    """
    return r_deseq2.lfcShrink(dds, **kwargs)


def normalized_counts(dds: rpy2.robjects.methods.RS4) -> pd.DataFrame:
    """Size-factor normalized counts of a DESeqDataSet, as a dataframe.

    References:
        https://rdrr.io/bioc/DESeq2/man/counts.html
    """
    with localconverter(ro.default_converter):
        return rpy2_df_to_pd_df(r_deseq2.counts_DESeqDataSet(dds, normalized=True))
