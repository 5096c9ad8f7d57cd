"""
Wrappers for R package pathview

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

import os
import re
from pathlib import Path
from typing import Any

import rpy2.robjects as ro
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

r_pathview = importr("pathview")


def pathway_file_name(pathway_name: str) -> str:
    """Lower-case pathway name usable as part of a file name."""
    return re.sub("_{2,}", "_", re.sub(r"[\s\-\/,\(\)]", "_", pathway_name.lower()))


def pathview(
    gene_data: ro.FloatVector,
    pathway_id: str,
    pathway_name: str,
    save_dir: Path,
    **kwargs: Any,
) -> None:
    """Render fold changes on a KEGG pathway diagram.

    The pathway graph is downloaded from KEGG, the gene values are mapped onto
    its nodes and a coloured native KEGG view is written as PNG. Colour limits
    are symmetric around zero, bounded by the largest absolute value.

    Args:
        gene_data: Named vector of gene values (usually log2 fold changes),
            names being Entrez gene ids.
        pathway_id: KEGG pathway id, e.g. "hsa04110".
        pathway_name: Descriptive pathway name, appended to output file names.
        save_dir: Directory where pathway images are written.
        **kwargs: Additional arguments to pass to the pathview function
            (e.g. species, gene_idtype, out_suffix, low, mid, high).

    Notes:
        pathview writes into the working directory, so it is temporarily
        changed to save_dir.

    References:
        https://rdrr.io/bioc/pathview/man/pathview.html
        https://doi.org/10.1093/bioinformatics/btt285
    """
    limit = abs(max(gene_data, key=abs))

    current_wd = os.getcwd()
    os.chdir(save_dir)
    try:
        with localconverter(ro.default_converter):
            r_pathview.pathview(
                gene_data=gene_data,
                pathway_id=pathway_id,
                limit=ro.ListVector({"gene": limit, "cpd": 1}),
                kegg_native=True,
                **kwargs,
            )
    finally:
        os.chdir(current_wd)

    for f in save_dir.glob(f"{pathway_id}.*"):
        f.replace(
            str(f).replace(pathway_id, f"{pathway_id}_{pathway_file_name(pathway_name)}")
        )
