"""Visualization utilities for expression data, built with Plotly."""

from pathlib import Path
from typing import Dict, Optional

import pandas as pd
import plotly.express as px
import plotly.graph_objects as go
from sklearn.decomposition import PCA


def save_figure(fig: go.Figure, save_path: Path) -> None:
    """Write a plotly figure, the format being given by the file extension.

    Raises:
        ValueError: If save_path has an extension other than .pdf, .png or .html
    """
    if save_path.suffix in (".pdf", ".png"):
        fig.write_image(str(save_path))
    elif save_path.suffix == ".html":
        fig.write_html(str(save_path))
    else:
        raise ValueError(
            f"Save file had suffix {save_path.suffix},"
            " but only .pdf, .png and .html are possible."
        )


def pca_plot(
    expr_df: pd.DataFrame,
    annot_df: pd.DataFrame,
    color_col: str,
    save_path: Path,
    title: str = "",
    colors: Optional[Dict[str, str]] = None,
    n_top: Optional[int] = 500,
) -> pd.DataFrame:
    """Scatter plot of the samples on the first two principal components.

    Args:
        expr_df: Transformed expression values (rlog, VST or RMA), with shape
            [n_features, n_samples].
        annot_df: Sample annotation, indexed by sample id.
        color_col: Annotation column used to colour the samples.
        save_path: Where to save the plot (.pdf, .png or .html).
        title: Plot title.
        colors: Colour of each value of color_col.
        n_top: Only use the n_top most variable features (as DESeq2's
            plotPCA does). None uses all features.

    Returns:
        pd.DataFrame: Sample coordinates on PC1 and PC2, plus color_col.
    """
    # 1. Select features and samples
    samples = annot_df.index.intersection(expr_df.columns)
    expr_df = expr_df.loc[:, samples]
    if n_top is not None:
        expr_df = expr_df.loc[
            expr_df.var(axis=1).sort_values(ascending=False).index[:n_top]
        ]

    # 2. Compute principal components, samples as observations
    pca = PCA(n_components=2)
    pcs = pd.DataFrame(
        pca.fit_transform(expr_df.T.values),
        index=samples,
        columns=["PC1", "PC2"],
    )
    pcs[color_col] = annot_df.loc[samples, color_col].astype(str)
    var_ratio = pca.explained_variance_ratio_ * 100

    # 3. Plot and save
    fig = px.scatter(
        pcs,
        x="PC1",
        y="PC2",
        color=color_col,
        hover_name=pcs.index,
        color_discrete_map=colors,
        title=title,
        labels={
            "PC1": f"PC1: {var_ratio[0]:.1f}% variance",
            "PC2": f"PC2: {var_ratio[1]:.1f}% variance",
        },
    )
    fig.update_traces(marker={"size": 12})
    fig.update_layout(template="plotly_white")
    save_figure(fig, save_path)

    return pcs
