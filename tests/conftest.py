import numpy as np
import pandas as pd
import pytest


@pytest.fixture
def de_result() -> pd.DataFrame:
    """DESeq2-like result of one contrast, covering every filtering edge case."""
    return pd.DataFrame(
        {
            "baseMean": [100.0, 250.0, 80.0, 40.0, 500.0, 12.0, 60.0, 33.0],
            "log2FoldChange": [2.5, -3.0, 1.0, 1.5, -0.5, np.nan, -1.2, 4.0],
            "pvalue": [1e-6, 1e-8, 1e-4, 0.01, 1e-5, 0.2, 0.02, 0.04],
            "padj": [1e-4, 1e-6, 0.001, 0.05, 1e-3, np.nan, 0.04, np.nan],
            "ENTREZID": ["1", "2", "3", "4", "5", "6", "7/8", np.nan],
            "SYMBOL": ["A1BG", "A2M", "NAT1", "NAT2", "SERPINA3", "AADAC", "X/Y", np.nan],
        },
        index=pd.Index(
            [
                "ENSG01",
                "ENSG02",
                "ENSG03",
                "ENSG04",
                "ENSG05",
                "ENSG06",
                "ENSG07",
                "ENSG08",
            ],
            name="gene_id",
        ),
    )


@pytest.fixture
def annot_df() -> pd.DataFrame:
    return pd.DataFrame(
        {
            "condition": pd.Categorical(
                ["control"] * 3 + ["treated"] * 3, categories=["control", "treated"]
            )
        },
        index=pd.Index([f"S{i}" for i in range(1, 7)], name="sample_id"),
    )


@pytest.fixture
def expr_df(annot_df) -> pd.DataFrame:
    """Log-scale expression values, [n_features, n_samples]; the first ten
    features separate treated from control samples."""
    rng = np.random.default_rng(0)
    values = rng.normal(8, 0.3, size=(60, len(annot_df)))
    values[:10, 3:] += 3
    return pd.DataFrame(
        values,
        index=[f"feature_{i}" for i in range(60)],
        columns=annot_df.index,
    )


@pytest.fixture
def r_session():
    """Skip tests needing R when rpy2 or R itself is not available."""
    try:
        import rpy2.robjects as ro

        ro.r("R.version.string")
    except Exception as e:
        pytest.skip(f"R is not available: {e}")
    return ro


@pytest.fixture
def probeset_result() -> pd.DataFrame:
    """limma-like result where two probesets measure TP53."""
    return pd.DataFrame(
        {
            "log2FoldChange": [2.1, 3.4, -1.8, 0.2],
            "pvalue": [1e-8, 1e-9, 1e-5, 0.6],
            "padj": [1e-7, 1e-8, 1e-4, 0.8],
            "ENTREZID": ["7157", "7157", "672", "2597"],
            "SYMBOL": ["TP53", "TP53", "BRCA1", "GAPDH"],
        },
        index=pd.Index(
            ["201746_at", "211300_s_at", "204531_s_at", "212581_x_at"],
            name="feature_id",
        ),
    )
