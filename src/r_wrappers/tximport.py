"""
Wrappers for R package tximport

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from pathlib import Path
from typing import Any, Dict

import pandas as pd
from rpy2 import robjects as ro
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

from r_wrappers.utils import pd_df_to_rpy2_df

r_tximport = importr("tximport")


def tx2gene_to_rpy2(tx2gene: pd.DataFrame) -> ro.DataFrame:
    """Convert a transcript to gene mapping table into an R data.frame.

    Args:
        tx2gene: A two-column dataframe, first column with transcript ids and
            second column with gene ids. Any other column is dropped.

    Returns:
        ro.DataFrame: A two-column R data.frame as expected by tximport.

    Raises:
        ValueError: If the dataframe has fewer than two columns.
    """
    if tx2gene.shape[1] < 2:
        raise ValueError(
            "tx2gene must have two columns (transcript id, gene id), got"
            f" {tx2gene.shape[1]}."
        )

    with localconverter(ro.default_converter):
        return pd_df_to_rpy2_df(tx2gene.iloc[:, :2].reset_index(drop=True))


def tximport(
    files: Dict[str, Path],
    type: str = "salmon",
    tx2gene: pd.DataFrame = None,
    **kwargs: Any,
) -> ro.ListVector:
    """Import transcript-level quantifications and summarise them to gene level.

    This function reads one quantification file per sample and produces
    gene-level estimated counts, abundances and average transcript lengths,
    the latter being used by DESeq2 as an offset correcting for changes in
    transcript usage between samples.

    Args:
        files: Ordered mapping from sample name to quantification file. The
            order defines the column order of the imported matrices.
        type: Quantification software that produced the files ("salmon",
            "sailfish", "alevin", "kallisto", "rsem", "stringtie").
        tx2gene: Transcript to gene mapping (first column transcript id,
            second column gene id). If None, transcript level output is
            returned (txOut=TRUE must then be passed).
        **kwargs: Additional arguments to pass to the tximport function.
            Common parameters include:
            - ignoreTxVersion: Strip version suffix from transcript ids.
            - ignoreAfterBar: Strip anything after the first "|" in ids.
            - countsFromAbundance: "no", "scaledTPM", "lengthScaledTPM".
            - txOut: Return transcript-level output.

    Returns:
        ro.ListVector: A list with "abundance", "counts", "length" matrices and
        "countsFromAbundance" character.

    References:
        https://rdrr.io/bioc/tximport/man/tximport.html
    """
    r_files = ro.StrVector([str(f) for f in files.values()])
    r_files.names = ro.StrVector(list(files.keys()))

    if tx2gene is not None:
        kwargs["tx2gene"] = tx2gene_to_rpy2(tx2gene)

    with localconverter(ro.default_converter):
        return r_tximport.tximport(r_files, type=type, **kwargs)
