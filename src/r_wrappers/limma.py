"""
Wrappers for R package limma

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from pathlib import Path
from typing import Any, Iterable

import pandas as pd
from rpy2 import robjects as ro
from rpy2.robjects.packages import importr

from r_wrappers.utils import dev_off, open_device, rpy2_df_to_pd_df

r_limma = importr("limma")

TOP_TABLE_COLUMNS = {
    "logFC": "log2FoldChange",
    "AveExpr": "baseMean",
    "t": "stat",
    "P.Value": "pvalue",
    "adj.P.Val": "padj",
}


def linear_model_fit(obj: Any, design: Any, **kwargs: Any) -> Any:
    """Fit a linear model for each gene given a series of arrays.

    Args:
        obj: A matrix-like object of log-expression values, with rows
            corresponding to genes and columns to samples.
        design: Design matrix of the experiment, with rows corresponding to
            arrays and columns to coefficients to be estimated.
        **kwargs: Additional arguments to pass to the lmFit function
            (e.g. weights, method).

    Returns:
        An MArrayLM object with coefficients, unscaled standard errors,
        residual standard deviations and residual degrees of freedom.

    References:
        https://rdrr.io/bioc/limma/man/lmFit.html
    """
    return r_limma.lmFit(obj, design, **kwargs)


def make_contrasts(contrasts: Iterable[str], levels: Any) -> Any:
    """Construct a contrast matrix.

    Args:
        contrasts: Contrast expressions, e.g. "treated-control".
        levels: Names of the parameters, or a design matrix whose column
            names are the parameter names.

    Returns:
        A numeric matrix with one row per parameter and one column per contrast.

    References:
        https://rdrr.io/bioc/limma/man/makeContrasts.html
    """
    return r_limma.makeContrasts(contrasts=ro.StrVector(list(contrasts)), levels=levels)


def fit_contrasts(fit: Any, contrasts: Any) -> Any:
    """Compute estimated coefficients and standard errors for a set of contrasts.

    References:
        https://rdrr.io/bioc/limma/man/contrasts.fit.html
    """
    return r_limma.contrasts_fit(fit=fit, contrasts=contrasts)


def empirical_bayes(fit: Any, **kwargs: Any) -> Any:
    """Empirical Bayes moderation of the standard errors towards a common value.

    Adds moderated t-statistics, their p-values and the log-odds of
    differential expression to the fit.

    Args:
        fit: An MArrayLM object produced by `linear_model_fit` or
            `fit_contrasts`.
        **kwargs: Additional arguments to pass to the eBayes function
            (e.g. trend, robust, proportion).

    References:
        https://rdrr.io/bioc/limma/man/ebayes.html
    """
    return r_limma.eBayes(fit=fit, **kwargs)


def decide_tests(obj: Any, **kwargs: Any) -> Any:
    """Classify each gene as down (-1), not significant (0) or up (1) per contrast.

    Args:
        obj: An MArrayLM object.
        **kwargs: Additional arguments to pass to the decideTests function
            (e.g. method, lfc). decideTests is an S3 generic with formals
            `(object, ...)`, so dotted names are not translated and must be
            given verbatim, e.g. `**{"p.value": 0.01, "adjust.method": "BH"}`.

    References:
        https://rdrr.io/bioc/limma/man/decideTests.html
    """
    return r_limma.decideTests(obj, **kwargs)


def decide_tests_summary(obj: Any) -> pd.DataFrame:
    """Counts of down, not significant and up genes per contrast, as a dataframe.

    Args:
        obj: Result of `decide_tests`.
    """
    summary = ro.r("summary")(obj)
    return pd.DataFrame(
        list(ro.r("as.matrix")(summary)),
        columns=["count"],
        index=pd.MultiIndex.from_product(
            [list(ro.r("colnames")(summary)), list(ro.r("rownames")(summary))]
        ),
    )["count"].unstack(level=1)


def top_table(fit: Any, **kwargs: Any) -> ro.DataFrame:
    """Extract a table of the top-ranked genes from a linear model fit.

    Args:
        fit: An MArrayLM object as produced by `empirical_bayes`.
        **kwargs: Additional arguments to pass to the topTable function.
            Common parameters include:
            - coef: Which coefficient/contrast to extract results for.
            - number: Maximum number of genes to return (Inf for all).
            - sort_by: How to sort the results ("P", "B", "logFC", ...).
            - adjust_method: Method for adjusting p-values.

    References:
        https://rdrr.io/bioc/limma/man/toptable.html
    """
    return r_limma.topTable(fit, **kwargs)


def top_table_df(fit: Any, coef: str, **kwargs: Any) -> pd.DataFrame:
    """All genes of a contrast, with columns renamed to the DESeq2 result names.

    `logFC`, `AveExpr`, `t`, `P.Value` and `adj.P.Val` become
    `log2FoldChange`, `baseMean`, `stat`, `pvalue` and `padj`, so that
    microarray and RNA-seq results can be filtered and plotted alike.

    Args:
        fit: An MArrayLM object as produced by `empirical_bayes`.
        coef: Name of the contrast to extract.
        **kwargs: Additional arguments to pass to the topTable function.
    """
    kwargs.setdefault("number", float("inf"))
    kwargs.setdefault("adjust_method", "BH")
    return rpy2_df_to_pd_df(top_table(fit, coef=coef, **kwargs)).rename(
        columns=TOP_TABLE_COLUMNS
    )


def venn_diagram(
    obj: Any, save_path: Path, width: int = 10, height: int = 10, **kwargs: Any
) -> None:
    """Venn diagram of the genes called significant in each contrast.

    Args:
        obj: Result of `decide_tests`.
        save_path: Where to save the plot (.pdf or .png).
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to the vennDiagram function.

    References:
        https://rdrr.io/bioc/limma/man/venn.html
    """
    open_device(save_path, width=width, height=height)
    r_limma.vennDiagram(obj, **kwargs)
    dev_off()


def volcano_plot(
    obj: Any, save_path: Path, width: int = 10, height: int = 10, **kwargs: Any
) -> None:
    """Volcano plot of one coefficient of a linear model fit.

    Args:
        obj: An MArrayLM object from `empirical_bayes`.
        save_path: Where to save the plot (.pdf or .png).
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to the volcanoplot function
            (e.g. coef, style, highlight, names).

    References:
        https://rdrr.io/bioc/limma/man/volcanoplot.html
    """
    open_device(save_path, width=width, height=height)
    r_limma.volcanoplot(obj, **kwargs)
    dev_off()


def plot_md(
    obj: Any, save_path: Path, width: int = 10, height: int = 10, **kwargs: Any
) -> None:
    """Mean-difference plot of one coefficient of a linear model fit.

    Args:
        obj: An MArrayLM object from `empirical_bayes`.
        save_path: Where to save the plot (.pdf or .png).
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to the plotMD function
            (e.g. column, status, hl_col).

    References:
        https://rdrr.io/bioc/limma/man/plotMD.html
    """
    open_device(save_path, width=width, height=height)
    r_limma.plotMD(obj, **kwargs)
    dev_off()


def plot_densities(
    obj: Any, save_path: Path, width: int = 10, height: int = 10, **kwargs: Any
) -> None:
    """Density of the intensities of each array.

    References:
        https://rdrr.io/bioc/limma/man/plotDensities.html
    """
    open_device(save_path, width=width, height=height)
    r_limma.plotDensities(obj, **kwargs)
    dev_off()
