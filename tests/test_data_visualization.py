import plotly.graph_objects as go
import pytest

from data.visualization import pca_plot, save_figure


def test_pca_plot_separates_conditions(expr_df, annot_df, tmp_path):
    save_path = tmp_path.joinpath("pca.html")
    pcs = pca_plot(
        expr_df,
        annot_df,
        "condition",
        save_path,
        colors={"control": "#4A708B", "treated": "#8B3A3A"},
        n_top=20,
    )

    assert save_path.is_file()
    assert pcs.index.tolist() == annot_df.index.tolist()
    assert pcs.columns.tolist() == ["PC1", "PC2", "condition"]
    # the first component splits treated from control samples
    control_pc1 = pcs.loc[pcs["condition"] == "control", "PC1"]
    treated_pc1 = pcs.loc[pcs["condition"] == "treated", "PC1"]
    assert (control_pc1.max() < treated_pc1.min()) or (
        treated_pc1.max() < control_pc1.min()
    )


def test_pca_plot_intersects_samples(expr_df, annot_df, tmp_path):
    pcs = pca_plot(
        expr_df.drop(columns="S6"), annot_df, "condition", tmp_path.joinpath("p.html")
    )
    assert "S6" not in pcs.index


def test_save_figure_unknown_suffix(tmp_path):
    with pytest.raises(ValueError, match=".svg"):
        save_figure(go.Figure(), tmp_path.joinpath("figure.svg"))
