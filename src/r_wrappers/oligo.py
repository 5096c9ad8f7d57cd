"""
Wrappers for R package oligo

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
import rpy2
from rpy2 import robjects as ro
from rpy2.robjects.packages import importr

from r_wrappers.utils import dev_off, open_device, rpy2_df_to_pd_df

r_oligo = importr("oligo")
r_biobase = importr("Biobase")


def read_cel_files(
    cel_files: Iterable[Path], sample_names: Iterable[str] = None, **kwargs: Any
) -> rpy2.robjects.methods.RS4:
    """Read raw intensities from Affymetrix CEL files.

    The platform design package (e.g. pd.hugene.1.0.st.v1) is picked by oligo
    from the CEL headers and must be installed.

    Args:
        cel_files: Paths to the CEL files, one per sample.
        sample_names: Sample names, in the same order as cel_files. If None,
            file names are used.
        **kwargs: Additional arguments to pass to the read.celfiles function.

    Returns:
        rpy2.robjects.methods.RS4: A FeatureSet object with raw intensities.

    References:
        https://rdrr.io/bioc/oligo/man/read.celfiles.html
    """
    cel_files = [str(f) for f in cel_files]
    if sample_names is not None:
        sample_names = list(sample_names)
        if len(sample_names) != len(cel_files):
            raise ValueError(
                f"Got {len(cel_files)} CEL files but {len(sample_names)} sample names."
            )
        kwargs["sampleNames"] = ro.StrVector(sample_names)

    return r_oligo.read_celfiles(filenames=ro.StrVector(cel_files), **kwargs)


def rma(raw_data: rpy2.robjects.methods.RS4, **kwargs: Any) -> rpy2.robjects.methods.RS4:
    """Robust Multichip Average preprocessing.

    Background correction, quantile normalization across arrays and median
    polish summarization of probes into probesets, on the log2 scale.

    Args:
        raw_data: A FeatureSet object, as returned by `read_cel_files`.
        **kwargs: Additional arguments to pass to the rma function.
            Common parameters include:
            - background: Whether to background correct (default: TRUE).
            - normalize: Whether to quantile normalize (default: TRUE).
            - target: Summarization level for Gene/Exon ST arrays ("core",
              "probeset", "extended", "full").

    Returns:
        rpy2.robjects.methods.RS4: An ExpressionSet object.

    References:
        https://rdrr.io/bioc/oligo/man/rma-methods.html
    """
    return r_oligo.rma(raw_data, **kwargs)


def exprs(eset: rpy2.robjects.methods.RS4) -> pd.DataFrame:
    """Expression matrix of an ExpressionSet, as [n_probesets, n_samples].

    References:
        https://rdrr.io/bioc/Biobase/man/exprs.html
    """
    return rpy2_df_to_pd_df(r_biobase.exprs(eset))


def boxplot(
    data: rpy2.robjects.methods.RS4,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Boxplot of log2 intensities per array.

    Args:
        data: A FeatureSet (raw) or ExpressionSet (normalized) object.
        save_path: Where to save the plot (.pdf or .png).
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        **kwargs: Additional arguments to pass to the boxplot function
            (e.g. target, main).

    References:
        https://rdrr.io/bioc/oligo/man/boxplot.html
    """
    open_device(save_path, width=width, height=height)
    r_oligo.boxplot(data, las=2, **kwargs)
    dev_off()


def hist(
    data: rpy2.robjects.methods.RS4,
    save_path: Path,
    width: int = 10,
    height: int = 10,
    **kwargs: Any,
) -> None:
    """Smoothed density of log2 intensities per array.

    References:
        https://rdrr.io/bioc/oligo/man/hist.html
    """
    open_device(save_path, width=width, height=height)
    r_oligo.hist(data, **kwargs)
    dev_off()
