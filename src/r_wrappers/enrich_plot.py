"""
Wrappers for R package enrichplot

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from pathlib import Path
from typing import Any

import rpy2.robjects as ro
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

r_enrichplot = importr("enrichplot")
r_ggplot2 = importr("ggplot2")


def _ggsave(plot: Any, save_path: Path, width: int, height: int) -> None:
    r_ggplot2.ggsave(str(save_path), plot, width=width, height=height, dpi=320)


def barplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Barplot of the most significant enriched terms.

    Args:
        enrich_result: An enrichResult object.
        save_path: Where to save the plot; format inferred from the suffix.
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to barplot.enrichResult
            (e.g. showCategory, x, color, title).

    References:
        https://rdrr.io/bioc/enrichplot/man/barplot.enrichResult.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.barplot_enrichResult(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)


def dotplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Dotplot of enriched terms, sized by gene count and coloured by p-value.

    References:
        https://rdrr.io/bioc/enrichplot/man/dotplot.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.dotplot(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)


def gene_concept_net(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Network linking enriched terms to the genes that drive them.

    Args:
        enrich_result: An enrichResult object, ideally made readable first.
        save_path: Where to save the plot; format inferred from the suffix.
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to cnetplot
            (e.g. showCategory, foldChange, circular, colorEdge).

    References:
        https://rdrr.io/bioc/enrichplot/man/cnetplot.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.cnetplot(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)


def heatplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Heatmap of gene membership across enriched terms.

    References:
        https://rdrr.io/bioc/enrichplot/man/heatplot.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.heatplot(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)


def pairwise_termsim(x: Any, **kwargs: Any) -> Any:
    """Similarity between enriched terms based on shared genes.

    Required before drawing an enrichment map.

    References:
        https://rdrr.io/bioc/enrichplot/man/pairwise_termsim.html
    """
    with localconverter(ro.default_converter):
        return r_enrichplot.pairwise_termsim(x, **kwargs)


def emapplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Enrichment map, where overlapping terms cluster together.

    Term similarities are computed with `pairwise_termsim` before plotting.

    References:
        https://rdrr.io/bioc/enrichplot/man/emapplot.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.emapplot(pairwise_termsim(enrich_result), **kwargs)
        _ggsave(plot, save_path, width, height)


def upsetplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """UpSet plot of the gene overlap between enriched terms.

    References:
        https://rdrr.io/bioc/enrichplot/man/upsetplot-methods.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.upsetplot(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)


def goplot(
    enrich_result: Any,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Induced GO graph (DAG) of the significant terms.

    Only valid for results of a single GO ontology.

    References:
        https://rdrr.io/bioc/enrichplot/man/goplot.html
    """
    with localconverter(ro.default_converter):
        plot = r_enrichplot.goplot(enrich_result, **kwargs)
        _ggsave(plot, save_path, width, height)
