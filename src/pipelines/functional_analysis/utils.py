"""
Utilities for pathway enrichment of differential expression results.

Results of both workflows (DESeq2 for RNA-seq, limma for microarrays) share
the same column names (`log2FoldChange`, `pvalue`, `padj`) and carry an
`ENTREZID` annotation column, so the same gene list preparation applies to
both. For every fold change direction ("up", "down" and "all") the
significant genes are tested for over-representation in KEGG, Gene Ontology
and Reactome, with all tested genes as background.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd
import rpy2.robjects as ro

from components.functional_analysis.orgdb import OrgDB
from components.functional_analysis.utils import run_all_ora
from data.utils import LFC_LEVELS, threshold_str
from r_wrappers.utils import prepare_gene_list


def prepare_gene_lists(
    results_df: pd.DataFrame,
    org_db: OrgDB,
    from_type: Optional[str] = None,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_col: str = "log2FoldChange",
    lfc_level: str = "all",
    lfc_th: float = 1.0,
    numeric_col: str = "log2FoldChange",
) -> Tuple[ro.FloatVector, ro.FloatVector]:
    """
    Background and filtered gene lists, in Entrez ids, for over-representation
    analysis.

    Args:
        results_df: Differential expression results. If from_type is None, it
            must have an "ENTREZID" column; otherwise its index holds gene ids
            of type from_type, which are mapped to Entrez ids.
        org_db: Organism database with gene annotation information.
        from_type: Type of the index gene ids (e.g. "ENSEMBL"), or None to use
            the existing "ENTREZID" column.
        p_col: Column name for p-values to use for filtering (e.g., "pvalue", "padj").
        p_th: P-value threshold for filtering significant genes.
        lfc_col: Column name for log fold change values.
        lfc_level: Direction for fold change filtering ("up", "down", or "all").
        lfc_th: Log fold change threshold for filtering genes.
        numeric_col: Column name for values used to sort genes.

    Returns:
        A tuple containing:
            - background_genes: All tested genes as a named R FloatVector.
            - filtered_genes: Significant genes as a named R FloatVector.
    """
    background_genes = prepare_gene_list(
        genes=results_df,
        org_db=org_db,
        from_type=from_type,
        to_type="ENTREZID",
        numeric_col=numeric_col,
    )
    filtered_genes = prepare_gene_list(
        genes=results_df,
        org_db=org_db,
        from_type=from_type,
        to_type="ENTREZID",
        p_col=p_col,
        p_th=p_th,
        lfc_col=lfc_col,
        lfc_level=lfc_level,
        lfc_th=lfc_th,
        numeric_col=numeric_col,
    )

    return background_genes, filtered_genes


def functional_enrichment(
    results_file: Path,
    exp_name: str,
    func_path: Path,
    plots_path: Path,
    org_db: OrgDB,
    from_type: Optional[str] = None,
    p_col: str = "padj",
    p_th: float = 0.05,
    lfc_col: str = "log2FoldChange",
    lfc_levels: Iterable[str] = LFC_LEVELS,
    lfc_th: float = 1.0,
    numeric_col: str = "log2FoldChange",
    plot_pathways: bool = True,
    plot_format: str = "png",
) -> Dict[str, bool]:
    """
    Run all over-representation analyses of one contrast, for each fold change
    direction.

    A direction without significant genes is skipped with a warning.

    Args:
        results_file: Annotated results of one contrast (CSV, first column
            holding the feature ids).
        exp_name: Name of the contrast, e.g. {exp_prefix}_{test}_vs_{control}.
        func_path: Where to store functional results.
        plots_path: Where to store functional plots.
        org_db: Organism annotation database.
        from_type: See `prepare_gene_lists`.
        p_col: P-value column to be used as filter (e.g., pvalue, padj)
        p_th: P-value filter threshold.
        lfc_col: Log2 fold change column.
        lfc_levels: Fold change directions to analyse.
        lfc_th: Log2FoldChange threshold.
        numeric_col: Which column name used to rank genes.
        plot_pathways: Render KEGG pathway diagrams with pathview.
        plot_format: Extension of the enrichment plots ("png" or "pdf").

    Returns:
        For each direction, whether enrichment was run.
    """
    results_df = pd.read_csv(results_file, index_col=0, dtype={"ENTREZID": str})

    ran = {}
    for lfc_level in lfc_levels:
        subset_name = (
            f"{exp_name}_{p_col}_{threshold_str(p_th)}_{lfc_level}_"
            f"{threshold_str(lfc_th)}"
        )

        # 1. Prepare gene lists
        background_genes, filtered_genes = prepare_gene_lists(
            results_df,
            org_db=org_db,
            from_type=from_type,
            p_col=p_col,
            p_th=p_th,
            lfc_col=lfc_col,
            lfc_level=lfc_level,
            lfc_th=lfc_th,
            numeric_col=numeric_col,
        )
        logging.info(
            f"[{subset_name}] {len(filtered_genes)} of {len(background_genes)}"
            " genes selected for enrichment."
        )

        def get_func_input(db_type: str):
            return dict(
                background_genes=background_genes,
                org_db=org_db,
                filtered_genes=filtered_genes,
                files_prefix=func_path.joinpath(db_type).joinpath(f"{subset_name}_ora"),
                plots_prefix=plots_path.joinpath(db_type).joinpath(
                    f"{subset_name}_ora"
                ),
                plot_format=plot_format,
            )

        # 2. Run all functional enrichment analysis functions
        ran[lfc_level] = run_all_ora(
            subset_name, get_func_input, plot_pathways=plot_pathways
        )

    return ran
