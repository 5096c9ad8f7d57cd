"""
Wrappers for R visualization packages used to inspect expression datasets and
differential expression results.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation automatically.

Example:
    R --> data.category
    Python --> data_category
"""

from pathlib import Path
from typing import Any, Iterable

from rpy2 import robjects as ro
from rpy2.robjects import FloatVector, StrVector
from rpy2.robjects.packages import importr

from r_wrappers.utils import dev_off, open_device

r_deseq2 = importr("DESeq2")
r_enhanced_volcano = importr("EnhancedVolcano")
r_ggplot2 = importr("ggplot2")
r_pheatmap = importr("pheatmap")
r_color_brewer = importr("RColorBrewer")
r_vsn = importr("vsn")
r_graphics = importr("graphics")


def heatmap_sample_distance(
    sample_dist: Any, save_path: Path, width: int = 10, height: int = 10, **kwargs
) -> None:
    """
    Creates a color-coded heatmap of the distances between samples.

    Given N samples, the plot shows an NxN grid color-coded by the distance
    between the samples at a given i,j coordinates, clustered by the same
    distances.

    Args:
        sample_dist: A distance structure, as returned by
            `r_wrappers.utils.sample_distance`.
        save_path: Path where to save the generated plot.
        width: Width of saved figure in inches.
        height: Height of saved figure in inches.
        **kwargs: Additional arguments to pass to pheatmap function.

    Note:
        For more details see: https://rdrr.io/cran/pheatmap/man/pheatmap.html
    """
    colors = ro.r("colorRampPalette(rev(RColorBrewer::brewer.pal(9, 'Blues')))(255)")
    plot = r_pheatmap.pheatmap(
        ro.r("as.matrix")(sample_dist),
        clustering_distance_rows=sample_dist,
        clustering_distance_cols=sample_dist,
        col=colors,
        silent=True,
        **kwargs,
    )
    r_ggplot2.ggsave(str(save_path), plot, width=width, height=height)


def pca_plot(
    data: ro.methods.RS4,
    intgroup: Iterable[str],
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs,
) -> None:
    """
    Creates a principal component analysis (PCA) plot of transformed counts,
    with points coloured by the columns of colData given in intgroup.

    Args:
        data: A DESeqTransform object used to compute and plot PCA.
        intgroup: Names in colData(data) to use for grouping samples.
        save_path: Path where to save the generated plot.
        width: Width of saved figure in inches.
        height: Height of saved figure in inches.
        **kwargs: Additional arguments to pass to plotPCA function.

    Note:
        For more details see: https://rdrr.io/bioc/DESeq2/man/plotPCA.html
    """
    plot = r_deseq2.plotPCA_DESeqTransform(data, intgroup=StrVector(intgroup), **kwargs)
    r_ggplot2.ggsave(str(save_path), plot, width=width, height=height)


def mean_sd_plot(
    data: ro.methods.RS4, save_path: Path, width: int = 10, height: int = 10, **kwargs
) -> None:
    """
    Plots row standard deviations versus row means, to check how well a
    transformation stabilised the variance.

    Args:
        data: A DESeqTransform object.
        save_path: Path where to save the generated plot.
        width: Width of saved figure in inches.
        height: Height of saved figure in inches.
        **kwargs: Additional arguments to pass to meanSdPlot function.

    Note:
        For more details see: https://rdrr.io/bioc/vsn/man/meanSdPlot.html
    """
    plot = r_vsn.meanSdPlot(ro.r("assay")(data), plot=False, **kwargs).rx2("gg")
    r_ggplot2.ggsave(str(save_path), plot, width=width, height=height)


def ma_plot(
    deseq_result: ro.methods.RS4,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    ylim: float = 5,
    **kwargs,
) -> None:
    """
    Creates an MA plot of DESeq2 results: log2 fold changes against the mean
    of normalized counts, significant genes highlighted.

    Args:
        deseq_result: A DESeqResults object, ideally after lfcShrink.
        save_path: Path where to save the generated plot.
        width: Width of saved figure in inches.
        height: Height of saved figure in inches.
        ylim: Symmetric limit of the y axis.
        **kwargs: Additional arguments to pass to plotMA function, such as
            alpha (significance level for highlighting).

    References:
        - https://rdrr.io/bioc/DESeq2/man/plotMA.html
    """
    open_device(save_path, width=width, height=height)
    r_deseq2.plotMA_DESeqResults(deseq_result, ylim=FloatVector([-ylim, ylim]), **kwargs)
    r_graphics.grid()
    dev_off()


def volcano_plot(
    data: ro.DataFrame,
    lab: str,
    x: str,
    y: str,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs,
) -> None:
    """
    Creates an enhanced volcano plot of differential expression results.

    Args:
        data: A data frame of test statistics with a label column, a log2 fold
            change column and a p-value column.
        lab: Column name in data containing variable names.
        x: Column name in data containing log2 fold changes.
        y: Column name in data containing nominal or adjusted p-values.
        save_path: Path where to save the generated plot.
        width: Width of saved figure in inches.
        height: Height of saved figure in inches.
        **kwargs: Additional arguments to pass to EnhancedVolcano function,
            such as pCutoff and FCcutoff (log2 scale).

    References:
        - https://rdrr.io/bioc/EnhancedVolcano/man/EnhancedVolcano.html
    """
    plot = r_enhanced_volcano.EnhancedVolcano(
        toptable=data, lab=data.rx2(lab), x=x, y=y, **kwargs
    )
    r_ggplot2.ggsave(str(save_path), plot, width=width, height=height)
