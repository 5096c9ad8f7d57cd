"""
Wrappers for R package ComplexHeatmap

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from pathlib import Path
from typing import Any, Dict, Optional

import pandas as pd
from rpy2 import robjects as ro
from rpy2.robjects.packages import importr

from r_wrappers.utils import dev_off, open_device, pd_df_to_r_matrix, pd_df_to_rpy2_df

r_complex_heatmaps = importr("ComplexHeatmap")


def complex_heatmap(
    counts_matrix: pd.DataFrame,
    save_path: Path,
    width: int = 10,
    height: int = 20,
    heatmap_legend_side: str = "right",
    annotation_legend_side: str = "right",
    **kwargs: Any,
) -> None:
    """Draw a heatmap of a numeric matrix and save it to a file.

    Args:
        counts_matrix: Numeric values with features as rows and samples as
            columns (e.g. row-centred rlog values of the most variable genes).
        save_path: Where to save the plot (.pdf or .png).
        width: Width of the saved figure in inches.
        height: Height of the saved figure in inches.
        heatmap_legend_side: Position of the heatmap legend.
        annotation_legend_side: Position of the annotation legend.
        **kwargs: Additional arguments to pass to the Heatmap function.
            Common parameters include:
            - name: Title of the colour legend.
            - cluster_rows / cluster_columns: Hierarchical clustering switches.
            - show_row_names / show_column_names.
            - top_annotation: Result of `heatmap_annotation`.
            - column_split: Split columns into groups.

    References:
        https://rdrr.io/bioc/ComplexHeatmap/man/Heatmap.html
    """
    # 1. Compute heatmap
    ht = r_complex_heatmaps.Heatmap(
        pd_df_to_r_matrix(counts_matrix),
        **kwargs,
        row_names_max_width=ro.r("unit")(25, "cm"),
        column_names_max_height=ro.r("unit")(25, "cm"),
    )

    # 2. Save heatmap
    open_device(save_path, width=width, height=height)
    r_complex_heatmaps.draw(
        ht,
        heatmap_legend_side=heatmap_legend_side,
        annotation_legend_side=annotation_legend_side,
        merge_legend=True,
    )
    dev_off()


def heatmap_annotation(
    df: pd.DataFrame, col: Optional[Dict[str, Dict[str, str]]] = None, **kwargs: Any
) -> Any:
    """Column annotation bars (e.g. sample condition) for a heatmap.

    Args:
        df: One column per annotation track, indexed like the heatmap columns.
        col: Colours per track and value, e.g.
            {"condition": {"treated": "red", "control": "blue"}}.
        **kwargs: Additional arguments to pass to the HeatmapAnnotation function.

    Returns:
        Any: A HeatmapAnnotation object, to be used as `top_annotation`.

    Raises:
        ValueError: If any keys in col are not column names in df.

    References:
        https://rdrr.io/bioc/ComplexHeatmap/man/HeatmapAnnotation.html
    """
    r_col = ro.NULL
    if col is not None:
        if [x for x in col.keys() if x not in df.columns]:
            raise ValueError("Some keys in col are not part of df")

        named_colors = {}
        for k, colors in col.items():
            named_colors[k] = ro.StrVector(list(colors.values()))
            named_colors[k].names = ro.StrVector(list(colors.keys()))
        r_col = ro.ListVector(named_colors)

    return r_complex_heatmaps.HeatmapAnnotation(
        df=pd_df_to_rpy2_df(df), col=r_col, **kwargs
    )
