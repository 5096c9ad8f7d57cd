import matplotlib

matplotlib.use("Agg")

import matplotlib.pyplot as plt  # noqa: E402
import pandas as pd  # noqa: E402
import pytest  # noqa: E402

from components.reports import (  # noqa: E402
    ReportConfig,
    ReportSection,
    render_html_report,
    render_pdf_report,
)
from pipelines.reports import collect_sections, write_reports  # noqa: E402


def _png(path):
    path.parent.mkdir(exist_ok=True, parents=True)
    fig, ax = plt.subplots(figsize=(2, 2))
    ax.plot([0, 1], [0, 1])
    fig.savefig(path)
    plt.close(fig)
    return path


@pytest.fixture
def workflow_dirs(tmp_path, de_result):
    """Files left on disk by a finished workflow with prefix "exp"."""
    plots_path = tmp_path.joinpath("plots")
    results_path = tmp_path.joinpath("results")
    func_path = tmp_path.joinpath("functional")
    results_path.mkdir()

    _png(plots_path.joinpath("exp_pca_rlog.png"))
    _png(plots_path.joinpath("exp_treated_vs_control_volcano_plot.png"))
    _png(plots_path.joinpath("other_pca_rlog.png"))
    pd.DataFrame(
        {"test": ["treated"], "control": ["control"], "up": [1], "down": [2]}
    ).to_csv(results_path.joinpath("exp_degs_summary.csv"), index=False)

    prefix = "exp_treated_vs_control_padj_0_05_up_1_0_ora"
    func_path.joinpath("KEGG").mkdir(parents=True)
    pd.DataFrame(
        {
            "Description": ["Pathway A"],
            "GeneRatio": ["2/10"],
            "BgRatio": ["20/5000"],
            "pvalue": [1e-4],
            "p.adjust": [1e-3],
            "geneID": ["A1BG/A2M"],
        },
        index=pd.Index(["hsa00001"], name="ID"),
    ).to_csv(func_path.joinpath("KEGG", f"{prefix}.csv"))
    _png(func_path.joinpath("plots", "KEGG", f"{prefix}_dotplot.png"))

    return {
        "plots_path": plots_path,
        "results_path": results_path,
        "func_path": func_path,
        "results": {("treated", "control"): de_result},
    }


def test_report_config_validation():
    assert ReportConfig().top_n == 100
    with pytest.raises(ValueError):
        ReportConfig(top_n=0)
    with pytest.raises(ValueError):
        ReportConfig(figure_format="svg")
    with pytest.raises(ValueError):
        ReportConfig(report_formats=("docx",))


def test_section_skips_missing_figures(tmp_path):
    figure = _png(tmp_path.joinpath("a.png"))
    section = ReportSection(
        title="Section", figures=[figure, tmp_path.joinpath("missing.png")]
    )
    assert section.existing_figures == [figure]
    assert ReportSection(title="Empty").is_empty


def test_render_html_report(tmp_path):
    figure = _png(tmp_path.joinpath("volcano.png"))
    table = pd.DataFrame({"padj": range(150)}, index=[f"g{i}" for i in range(150)])
    sections = [
        ReportSection(
            title="Results", text="Some text.", figures=[figure], tables={"Top": table}
        ),
        ReportSection(title="Nothing here"),
    ]

    save_path = render_html_report(
        sections, tmp_path.joinpath("report.html"), ReportConfig(title="My report")
    )
    html = save_path.read_text()

    assert "My report" in html
    assert "data:image/png;base64," in html
    assert "Showing 100 of 150 rows." in html
    assert "<td>99</td>" in html
    assert "<td>100</td>" not in html
    assert "Nothing here" not in html


def test_render_pdf_report(tmp_path):
    figure = _png(tmp_path.joinpath("volcano.png"))
    table = pd.DataFrame(
        {"log2FoldChange": [1.23456, -2.5], "SYMBOL": ["A1BG", "A2M"]},
        index=["ENSG01", "ENSG02"],
    )
    save_path = render_pdf_report(
        [ReportSection(title="Results", figures=[figure], tables={"Top": table})],
        tmp_path.joinpath("reports", "report.pdf"),
        ReportConfig(title="My report", author="Lab"),
    )

    assert save_path.is_file()
    assert save_path.read_bytes().startswith(b"%PDF")


def test_collect_sections(workflow_dirs):
    sections = collect_sections(
        exp_prefix="exp",
        contrasts_levels=[("treated", "control")],
        **workflow_dirs,
        config=ReportConfig(top_n=3),
    )
    titles = [section.title for section in sections]
    assert titles == [
        "Dataset",
        "treated vs control",
        "Enrichment: treated vs control (up)",
    ]

    dataset, contrast, enrichment = sections
    assert [f.name for f in dataset.figures] == ["exp_pca_rlog.png"]
    assert [f.name for f in contrast.figures] == [
        "exp_treated_vs_control_volcano_plot.png"
    ]
    top_table = next(iter(contrast.tables.values()))
    # ENSG03 and ENSG05 tie on padj, the larger |LFC| comes first
    assert top_table.index.tolist() == ["ENSG02", "ENSG01", "ENSG03"]
    assert "1 up, 2 down" in contrast.text
    assert enrichment.tables["KEGG"].columns.tolist() == [
        "Description",
        "GeneRatio",
        "BgRatio",
        "pvalue",
        "p.adjust",
    ]
    assert len(enrichment.figures) == 1


def test_write_reports(workflow_dirs, tmp_path):
    reports = write_reports(
        title="Example workflow",
        exp_prefix="exp",
        contrasts_levels=[("treated", "control")],
        reports_path=tmp_path.joinpath("reports"),
        **workflow_dirs,
    )
    assert set(reports) == {"html", "pdf"}
    assert "Example workflow" in reports["html"].read_text()
    assert reports["pdf"].is_file()
