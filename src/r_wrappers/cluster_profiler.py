"""
Wrappers for R package clusterProfiler

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from typing import Any

from rpy2 import robjects as ro
from rpy2.robjects.packages import importr

from components.functional_analysis.orgdb import OrgDB

r_cluster_profiler = importr("clusterProfiler")


def enrich_kegg(gene_names: ro.StrVector, **kwargs: Any) -> Any:
    """KEGG pathway over-representation analysis of a gene set.

    Args:
        gene_names: Entrez gene identifiers of the genes of interest.
        **kwargs: Additional arguments to pass to the enrichKEGG function.
            Common parameters include:
            - organism: KEGG organism code, e.g. "hsa" for human.
            - universe: Background genes.
            - pvalueCutoff: Adjusted p-value cutoff (default: 0.05).
            - pAdjustMethod: Multiple testing correction (default: "BH").
            - minGSSize / maxGSSize: Gene set size bounds.

    Returns:
        Any: An enrichResult object with the enriched KEGG pathways.

    References:
        https://rdrr.io/bioc/clusterProfiler/man/enrichKEGG.html
    """
    return r_cluster_profiler.enrichKEGG(gene=gene_names, **kwargs)


def enrich_go(gene_names: ro.StrVector, org_db: OrgDB, **kwargs: Any) -> Any:
    """Gene Ontology over-representation analysis of a gene set.

    Args:
        gene_names: Gene identifiers of the genes of interest.
        org_db: Organism annotation database holding GO annotations.
        **kwargs: Additional arguments to pass to the enrichGO function.
            Common parameters include:
            - ont: "BP", "MF", "CC" or "ALL".
            - keyType: Type of the gene identifiers (default: "ENTREZID").
            - universe: Background genes.
            - pvalueCutoff: Adjusted p-value cutoff (default: 0.05).
            - readable: Map gene ids to symbols in the result.

    Returns:
        Any: An enrichResult object with the enriched GO terms.

    References:
        https://rdrr.io/bioc/clusterProfiler/man/enrichGO.html
    """
    return r_cluster_profiler.enrichGO(gene=gene_names, OrgDb=org_db.db, **kwargs)
