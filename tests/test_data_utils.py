import time

import numpy as np
import pandas as pd
import pytest

from data.utils import (
    TimeoutException,
    collapse_to_genes,
    de_subset_name,
    filter_de_results,
    filter_df,
    filter_low_intensity,
    rank_de_results,
    significance_counts,
    threshold_str,
    time_limit,
    top_de_results,
    top_variable_features,
    unique_annotated,
)


class TestFilterDeResults:
    def test_all_directions(self, de_result):
        filtered = filter_de_results(de_result, p_th=0.05, lfc_level="all", lfc_th=1.0)
        # ENSG03 has |lfc| == 1 and ENSG04 has padj == 0.05, both fail
        assert filtered.index.tolist() == ["ENSG01", "ENSG02", "ENSG07"]

    def test_up(self, de_result):
        filtered = filter_de_results(de_result, lfc_level="up")
        assert filtered.index.tolist() == ["ENSG01"]
        assert (filtered["log2FoldChange"] > 0).all()

    def test_down(self, de_result):
        filtered = filter_de_results(de_result, lfc_level="down")
        assert filtered.index.tolist() == ["ENSG02", "ENSG07"]

    def test_missing_values_never_pass(self, de_result):
        filtered = filter_de_results(de_result, p_col="pvalue", p_th=0.5, lfc_th=0)
        assert "ENSG06" not in filtered.index
        assert "ENSG08" in filtered.index

        filtered = filter_de_results(de_result, p_th=0.5, lfc_th=0)
        assert "ENSG08" not in filtered.index

    def test_thresholds_can_be_disabled(self, de_result):
        filtered = filter_de_results(de_result, p_th=None, lfc_th=None)
        assert len(filtered) == de_result["log2FoldChange"].notna().sum()

    def test_unknown_level(self, de_result):
        with pytest.raises(ValueError, match="lfc_level"):
            filter_de_results(de_result, lfc_level="sideways")

    def test_missing_column(self, de_result):
        with pytest.raises(ValueError, match="qvalue"):
            filter_de_results(de_result, p_col="qvalue")

    def test_keeps_row_order(self, de_result):
        shuffled = de_result.iloc[::-1]
        filtered = filter_de_results(shuffled)
        assert filtered.index.tolist() == ["ENSG07", "ENSG02", "ENSG01"]


def test_rank_de_results_breaks_ties_by_fold_change():
    result = pd.DataFrame(
        {
            "log2FoldChange": [1.5, -4.0, 2.0, 3.0],
            "padj": [0.01, 0.01, np.nan, 0.001],
        },
        index=["a", "b", "c", "d"],
    )
    ranked = rank_de_results(result)
    assert ranked.index.tolist() == ["d", "b", "a", "c"]
    assert ranked.columns.tolist() == result.columns.tolist()


def test_top_de_results(de_result):
    assert len(top_de_results(de_result, top_n=3)) == 3
    assert top_de_results(de_result, top_n=3).index[0] == "ENSG02"
    # more rows requested than available
    assert len(top_de_results(de_result, top_n=100)) == len(de_result)


def test_top_variable_features(expr_df):
    top = top_variable_features(expr_df, top_n=10)
    assert set(top.index) == {f"feature_{i}" for i in range(10)}
    np.testing.assert_allclose(top.mean(axis=1), 0, atol=1e-12)

    uncentered = top_variable_features(expr_df, top_n=1000, center=False)
    assert uncentered.shape == expr_df.shape


def test_significance_counts(de_result):
    counts = significance_counts(de_result)
    assert counts.to_dict() == {"down": 2, "not_significant": 5, "up": 1}
    assert counts.sum() == len(de_result)


def test_unique_annotated(de_result):
    unique = unique_annotated(de_result, "ENTREZID")
    assert unique.index.tolist() == [f"ENSG0{i}" for i in range(1, 7)]

    # ENSG01 and ENSG02 share a symbol, ENSG02 has the lower padj
    duplicated = de_result.assign(SYMBOL=["A", "A", "B", "C", "D", "E", "F", "G"])
    unique = unique_annotated(duplicated, "SYMBOL")
    assert "ENSG01" not in unique.index
    assert "ENSG02" in unique.index


def test_unique_annotated_keeps_best_probeset(probeset_result):
    unique = unique_annotated(filter_de_results(probeset_result), "SYMBOL")
    assert unique.index.tolist() == ["211300_s_at", "204531_s_at"]
    assert sorted(unique["SYMBOL"]) == ["BRCA1", "TP53"]

    # ranking follows the p-value column given
    by_pvalue = unique_annotated(
        probeset_result.assign(pvalue=[1e-9, 1e-8, 1e-5, 0.6]),
        "SYMBOL",
        p_col="pvalue",
    )
    assert "201746_at" in by_pvalue.index
    assert "211300_s_at" not in by_pvalue.index


def test_threshold_names():
    assert threshold_str(0.05) == "0_05"
    assert threshold_str(1.0) == "1_0"
    assert (
        de_subset_name("salmon", "treated", "control", "padj", 0.05, "up", 1.0)
        == "salmon_treated_vs_control_padj_0_05_up_1_0"
    )


def test_filter_df(annot_df):
    assert filter_df(annot_df, {"condition": ["treated"]}).index.tolist() == [
        "S4",
        "S5",
        "S6",
    ]
    assert filter_df(annot_df, {}).equals(annot_df)
    with pytest.raises(ValueError):
        filter_df(annot_df, {"batch": [1]})


def test_time_limit():
    with pytest.raises(TimeoutException):
        with time_limit(1):
            time.sleep(3)

    with time_limit(5):
        pass


def test_collapse_to_genes():
    expr_df = pd.DataFrame(
        [[1.0, 1.0], [0.0, 5.0], [2.0, 3.0], [4.0, 4.0]],
        index=["p1", "p2", "p3", "p4"],
        columns=["S1", "S2"],
    )
    gene_ids = pd.Series(["g1", "g1", "g2/g3", np.nan], index=expr_df.index, name="ENTREZID")

    collapsed = collapse_to_genes(expr_df, gene_ids)
    assert collapsed.index.tolist() == ["g1"]
    assert collapsed.loc["g1"].tolist() == [0.0, 5.0]
    assert collapsed.index.name == "ENTREZID"


def test_filter_low_intensity(annot_df):
    expr_df = pd.DataFrame(
        [
            [9, 9, 9, 2, 2, 2],  # expressed in control only
            [2, 9, 9, 9, 2, 2],  # three samples, but across groups
            [2, 2, 2, 2, 2, 9],  # a single sample
            [2, 2, 2, 2, 2, 2],  # never
        ],
        index=["f1", "f2", "f3", "f4"],
        columns=annot_df.index,
        dtype=float,
    )
    kept = filter_low_intensity(expr_df, annot_df, "condition", threshold=5)
    assert kept.index.tolist() == ["f1", "f2"]

    # the median (2) is the default threshold
    kept_median = filter_low_intensity(expr_df, annot_df, "condition")
    assert kept_median.index.tolist() == ["f1", "f2"]
