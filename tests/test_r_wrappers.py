"""Tests of the R wrappers. They need R with the Bioconductor packages used by
each wrapper module and are skipped otherwise."""

import importlib

import numpy as np
import pandas as pd
import pytest


def _import_or_skip(module_name: str):
    try:
        return importlib.import_module(module_name)
    except Exception as e:
        pytest.skip(f"{module_name} cannot be imported: {e}")


@pytest.fixture
def r_utils(r_session):
    return _import_or_skip("r_wrappers.utils")


@pytest.fixture
def limma(r_session):
    return _import_or_skip("r_wrappers.limma")


def test_dataframe_conversions_keep_names(r_utils, expr_df):
    r_df = r_utils.pd_df_to_rpy2_df(expr_df)
    assert list(r_df.rownames) == expr_df.index.tolist()

    back = r_utils.rpy2_df_to_pd_df(r_df)
    assert back.columns.tolist() == expr_df.columns.tolist()
    np.testing.assert_allclose(back.values, expr_df.values)

    mat = r_utils.pd_df_to_r_matrix(expr_df)
    assert list(mat.colnames) == expr_df.columns.tolist()
    assert tuple(mat.dim) == expr_df.shape


def test_design_matrix_one_column_per_level(r_utils, annot_df):
    design = r_utils.get_design_matrix(annot_df, ["condition"])
    assert list(design.colnames) == ["control", "treated"]
    assert list(design.rownames) == annot_df.index.tolist()


def test_limma_contrast(r_utils, limma, expr_df, annot_df):
    design = r_utils.get_design_matrix(annot_df, ["condition"])
    fit = limma.linear_model_fit(r_utils.pd_df_to_r_matrix(expr_df), design)
    contrasts = limma.make_contrasts(["treated-control"], levels=design)
    fit_eb = limma.empirical_bayes(limma.fit_contrasts(fit, contrasts))

    result = limma.top_table_df(fit_eb, coef="treated-control")
    assert set(limma.TOP_TABLE_COLUMNS.values()).issubset(result.columns)
    assert len(result) == len(expr_df)

    # features shifted up in treated samples are the top hits
    top = result.sort_values("padj").head(10)
    assert set(top.index) == {f"feature_{i}" for i in range(10)}
    assert (top["log2FoldChange"] > 2).all()

    summary = limma.decide_tests_summary(limma.decide_tests(fit_eb))
    assert isinstance(summary, pd.DataFrame)
    assert summary.to_numpy().sum() == len(expr_df)

    # dotted decideTests arguments reach the MArrayLM method
    strict = limma.decide_tests_summary(
        limma.decide_tests(fit_eb, **{"p.value": 1e-300, "lfc": 1})
    )
    assert strict.loc["treated-control", "NotSig"] == len(expr_df)
    assert summary.loc["treated-control", "Up"] >= 10


def test_run_func_dict_raises(r_session):
    utils = _import_or_skip("utils")

    def failing_workflow(x):
        raise RuntimeError(f"failed with {x}")

    with pytest.raises(RuntimeError, match="failed with 1"):
        utils.run_func_dict({"x": 1}, failing_workflow)

    assert utils.run_func_dict({"x": 2}, lambda x: x * 2) == 4


def test_unique_row_labels(r_session):
    de_utils = _import_or_skip("pipelines.differential_expression.utils")

    index = pd.Index(["ENSG01", "ENSG02", "ENSG03", "ENSG04", "ENSG05"])
    labels = pd.Series(
        ["A1BG", "NAT1", "NAT1", "X/Y", np.nan],
        index=["ENSG01", "ENSG02", "ENSG03", "ENSG04", "ENSG05"],
    )
    assert de_utils.unique_row_labels(index, labels).tolist() == [
        "A1BG",
        "ENSG02",
        "ENSG03",
        "ENSG04",
        "ENSG05",
    ]
    assert de_utils.unique_row_labels(index) is index


def test_rds_files_need_rds_extension(r_utils, expr_df, tmp_path):
    r_df = r_utils.pd_df_to_rpy2_df(expr_df)
    with pytest.raises(ValueError, match=".RDS"):
        r_utils.save_rds(r_df, tmp_path.joinpath("data.rda"))
    with pytest.raises(ValueError, match=".RDS"):
        r_utils.read_rds(tmp_path.joinpath("data.rda"))

    save_path = tmp_path.joinpath("data.RDS")
    r_utils.save_rds(r_df, save_path)
    loaded = r_utils.rpy2_df_to_pd_df(r_utils.read_rds(save_path))
    assert loaded.index.tolist() == expr_df.index.tolist()


def test_deseq_dataset_from_counts_matrix(r_utils, expr_df, annot_df):
    deseq2 = _import_or_skip("r_wrappers.deseq2")
    counts = (2**expr_df).drop(columns="S6")

    dds = deseq2.get_deseq_dataset_matrix(
        counts, annot_df, factors=["condition"], design_factors=["condition"]
    )
    assert tuple(r_utils.ro.r("dim")(dds)) == (len(expr_df), 5)
    assert list(r_utils.ro.r("colnames")(dds)) == ["S1", "S2", "S3", "S4", "S5"]

    with pytest.raises(ValueError, match="batch"):
        deseq2.get_deseq_dataset_matrix(
            counts, annot_df, factors=["batch"], design_factors=["batch"]
        )


def test_prepare_gene_list_keeps_best_probeset(r_utils, probeset_result):
    background = r_utils.prepare_gene_list(probeset_result, to_type="ENTREZID")
    assert sorted(background.names) == ["2597", "672", "7157"]
    # 211300_s_at is the best ranked TP53 probeset
    assert dict(zip(background.names, background))["7157"] == pytest.approx(3.4)

    filtered = r_utils.prepare_gene_list(
        probeset_result, to_type="ENTREZID", p_th=0.05, lfc_level="up", lfc_th=1.0
    )
    assert list(filtered.names) == ["7157"]


def _gene_vector(ro, values):
    vector = ro.FloatVector(list(values.values()))
    vector.names = ro.StrVector(list(values.keys()))
    return vector


def test_run_all_ora_skips_empty_subset(r_session, tmp_path):
    func_utils = _import_or_skip("components.functional_analysis.utils")
    background = _gene_vector(r_session, {"7157": 3.4, "672": -1.8})

    def get_func_input(filtered_genes):
        return lambda db_type: dict(
            background_genes=background,
            org_db=None,
            filtered_genes=filtered_genes,
            files_prefix=tmp_path.joinpath(db_type, "exp_ora"),
            plots_prefix=tmp_path.joinpath("plots", db_type, "exp_ora"),
        )

    assert not func_utils.run_all_ora(
        "exp", get_func_input(r_session.FloatVector([]))
    )
    assert not func_utils.run_all_ora("exp", get_func_input(None))
    assert list(tmp_path.iterdir()) == []


def test_empty_enrichment_result_writes_nothing(r_session, tmp_path):
    base = _import_or_skip("components.functional_analysis.base")
    orgdb = _import_or_skip("components.functional_analysis.orgdb")
    from pydantic import ConfigDict
    from pydantic.dataclasses import dataclass

    @dataclass(config=ConfigDict(arbitrary_types_allowed=True))
    class NoTermsOra(base.FunctionalAnalysisBase):
        def __post_init__(self):
            self.func_result = r_session.NULL
            super().__post_init__()

    org_db = orgdb.OrgDB("Homo sapiens")
    # an R object in place of the hub database, so nothing is downloaded
    org_db._db = r_session.NULL
    genes = _gene_vector(r_session, {"7157": 3.4})
    ora = NoTermsOra(
        genes,
        org_db,
        genes,
        tmp_path.joinpath("KEGG", "exp_ora"),
        tmp_path.joinpath("plots", "KEGG", "exp_ora"),
    )

    assert ora.is_empty
    ora.save_all()
    ora.plot_all_ora()
    assert [p for p in tmp_path.rglob("*") if p.is_file()] == []


def test_empty_subset_has_no_heatmap(
    r_session, de_result, expr_df, annot_df, tmp_path
):
    de_utils = _import_or_skip("pipelines.differential_expression.utils")

    summary = de_utils.proc_filtered_results(
        {("treated", "control"): de_result.assign(padj=0.9)},
        expr_df,
        annot_df,
        results_path=tmp_path,
        plots_path=tmp_path,
        exp_prefix="exp",
        contrast_factor="condition",
        contrast_levels_colors={"control": "#4A708B", "treated": "#8B3A3A"},
        p_cols=["padj"],
        p_ths=[0.05],
        lfc_levels=["up"],
        lfc_ths=[1.0],
        heatmap_top_n=30,
        results_suffix="deseq_results",
        dataset_label="rlog",
    )

    subset_name = "exp_treated_vs_control_padj_0_05_up_1_0"
    subset = pd.read_csv(
        tmp_path.joinpath(f"{subset_name}_deseq_results.csv"), index_col=0
    )
    assert subset.empty
    assert summary["up"].tolist() == [0]
    assert list(tmp_path.glob("*supervised_genes_clustering*")) == []


def test_functional_enrichment_uses_plot_format(
    r_session, monkeypatch, de_result, tmp_path
):
    func_utils = _import_or_skip("pipelines.functional_analysis.utils")
    results_file = tmp_path.joinpath("exp_deseq_results.csv")
    de_result.to_csv(results_file)

    genes = _gene_vector(r_session, {"1": 2.5})
    monkeypatch.setattr(
        func_utils, "prepare_gene_lists", lambda *args, **kwargs: (genes, genes)
    )
    ora_inputs = {}

    def record_inputs(exp_name, get_func_input, plot_pathways=True):
        ora_inputs[exp_name] = get_func_input("KEGG")
        return True

    monkeypatch.setattr(func_utils, "run_all_ora", record_inputs)

    ran = func_utils.functional_enrichment(
        results_file,
        "exp",
        func_path=tmp_path.joinpath("functional"),
        plots_path=tmp_path.joinpath("functional", "plots"),
        org_db=None,
        lfc_levels=["up"],
        plot_format="pdf",
    )

    assert ran == {"up": True}
    inputs = ora_inputs["exp_padj_0_05_up_1_0"]
    assert inputs["plot_format"] == "pdf"
    assert inputs["plots_prefix"] == tmp_path.joinpath(
        "functional", "plots", "KEGG", "exp_padj_0_05_up_1_0_ora"
    )
