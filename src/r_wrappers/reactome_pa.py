"""
Wrappers for R package ReactomePA

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

r_reactome_pa = importr("ReactomePA")


def enrich_reactome(gene_names: ro.StrVector, **kwargs: Any) -> Any:
    """Reactome pathway over-representation analysis of a gene set.

    Args:
        gene_names: Entrez gene identifiers of the genes of interest.
        **kwargs: Additional arguments to pass to the enrichPathway function.
            Common parameters include:
            - organism: One of "human", "rat", "mouse", "celegans", "yeast",
              "zebrafish", "fly".
            - universe: Background genes.
            - pvalueCutoff: Adjusted p-value cutoff (default: 0.05).
            - readable: Map gene ids to symbols in the result.

    Returns:
        Any: An enrichResult object with the enriched Reactome pathways.

    References:
        https://rdrr.io/bioc/ReactomePA/man/enrichPathway.html
    """
    return r_reactome_pa.enrichPathway(gene=gene_names, **kwargs)
