"""
Differential gene expression analysis of Affymetrix microarrays.

Workflow:
    1. Read CEL files with oligo and normalize them with RMA (background
       correction, quantile normalization, log2 summarisation).
    2. Annotate probesets with the platform annotation package and drop
       lowly expressed probesets.
    3. Fit a linear model per probeset with limma, one coefficient per
       condition, then the (test - control) contrasts with empirical Bayes
       moderation.
    4. Plot (volcano, MD, heatmaps) and save tables of the significant
       probesets, with the same columns as DESeq2 results.
    5. Pathway enrichment of up/down regulated genes and HTML/PDF reports.
"""

import logging
from copy import deepcopy
from pathlib import Path
from typing import Dict, Iterable, Optional, Tuple

import pandas as pd
import rpy2.robjects as ro
from rpy2.robjects.conversion import localconverter
from tqdm.rich import tqdm

from components.functional_analysis.orgdb import OrgDB
from components.reports import ReportConfig
from data.utils import LFC_LEVELS, collapse_to_genes, filter_low_intensity
from pipelines.differential_expression.utils import (
    log_significance_counts,
    proc_dataset_plots,
    proc_filtered_results,
    proc_volcano_plot,
)
from pipelines.functional_analysis.utils import functional_enrichment
from pipelines.reports import write_reports
from r_wrappers.limma import (
    decide_tests,
    decide_tests_summary,
    empirical_bayes,
    fit_contrasts,
    linear_model_fit,
    make_contrasts,
    plot_densities,
    plot_md,
    top_table_df,
    venn_diagram,
)
from r_wrappers.limma import volcano_plot as limma_volcano_plot
from r_wrappers.oligo import boxplot, exprs, hist, read_cel_files, rma
from r_wrappers.utils import get_design_matrix, map_probe_id, pd_df_to_r_matrix

ANNOTATION_COLUMNS = ("ENTREZID", "SYMBOL", "GENENAME")


def r_level_names(levels: Iterable[str]) -> Dict[str, str]:
    """Syntactically valid R names of the condition levels, as used in the
    columns of the design matrix and in contrast formulas."""
    levels = list(levels)
    with localconverter(ro.default_converter):
        r_names = list(ro.r("make.names")(ro.StrVector(levels), unique=True))
    return dict(zip(levels, r_names))


def proc_microarray_dataset(
    annot_df: pd.DataFrame,
    cel_files: Dict[str, Path],
    annotation_db: str,
    results_path: Path,
    plots_path: Path,
    exp_prefix: str,
    contrast_factor: str,
    contrast_levels_colors: Dict[str, str],
    collapse_genes: bool = False,
    intensity_threshold: Optional[float] = None,
    heatmap_top_n: int = 50,
    plot_format: str = "png",
) -> Tuple[pd.DataFrame, pd.DataFrame]:
    """
    Read, normalize, annotate and filter the arrays of an experiment.

    Args:
        annot_df: Sample annotation indexed by sample id. Its order defines the
            sample order of the expression matrix.
        cel_files: CEL file of each sample (see `data.io.find_cel_files`).
        annotation_db: Platform annotation package, e.g.
            "hugene10sttranscriptcluster.db".
        results_path: Directory where tables are saved.
        plots_path: Directory where plots are saved.
        exp_prefix: A string prefix for all generated file names.
        contrast_factor: Annotation column holding the conditions to compare.
        contrast_levels_colors: Colour of each condition.
        collapse_genes: Keep only the most variable probeset of each gene,
            indexing features by Entrez id.
        intensity_threshold: Minimum RMA intensity. Defaults to the median of
            all intensities.
        heatmap_top_n: Number of most variable features in the heatmap.
        plot_format: Extension of the saved plots.

    Returns:
        Filtered RMA expression values [n_features, n_samples] and the
        annotation of each feature (ENTREZID, SYMBOL, GENENAME columns).

    Raises:
        ValueError: If some annotated samples have no CEL file.
    """
    # 0. Setup
    missing = [s for s in annot_df.index if s not in cel_files]
    if missing:
        raise ValueError(f"Samples {missing} have no CEL file.")
    sample_ids = annot_df.index.tolist()

    # 1. Raw intensities
    with localconverter(ro.default_converter):
        raw_data = read_cel_files(
            [cel_files[sample_id] for sample_id in sample_ids],
            sample_names=sample_ids,
        )
        boxplot(
            raw_data,
            plots_path.joinpath(f"{exp_prefix}_boxplot_raw.{plot_format}"),
            target="core",
            main="Raw log2 intensities",
        )
        hist(
            raw_data,
            plots_path.joinpath(f"{exp_prefix}_density_raw.{plot_format}"),
            target="core",
            main="Raw log2 intensities",
        )

        # 2. RMA normalization
        eset = rma(raw_data)
        boxplot(
            eset,
            plots_path.joinpath(f"{exp_prefix}_boxplot_rma.{plot_format}"),
            main="RMA intensities",
        )
        rma_df = exprs(eset)
    rma_df = rma_df.loc[:, sample_ids]
    logging.info(f"[{exp_prefix}] RMA: {rma_df.shape[0]} probesets.")

    # 3. Probeset annotation
    probes_anno = map_probe_id(rma_df.index, annotation_db, ANNOTATION_COLUMNS)
    probes_anno.to_csv(results_path.joinpath(f"{exp_prefix}_probes_annotation.csv"))

    if collapse_genes:
        rma_df = collapse_to_genes(rma_df, probes_anno["ENTREZID"])
        features_anno = (
            probes_anno.dropna(subset=["ENTREZID"])
            .drop_duplicates(subset=["ENTREZID"])
            .set_index("ENTREZID", drop=False)
            .reindex(rma_df.index)
        )
        logging.info(f"[{exp_prefix}] Collapsed to {rma_df.shape[0]} genes.")
    else:
        features_anno = probes_anno

    # 4. Low intensity filter
    n_before = rma_df.shape[0]
    rma_df = filter_low_intensity(
        rma_df, annot_df, contrast_factor, threshold=intensity_threshold
    )
    features_anno = features_anno.reindex(rma_df.index)
    logging.info(
        f"[{exp_prefix}] Intensity filter: kept {rma_df.shape[0]} of {n_before}"
        " features."
    )
    rma_df.to_csv(results_path.joinpath(f"{exp_prefix}_rma.csv"))

    # 5. Dataset plots
    with localconverter(ro.default_converter):
        plot_densities(
            pd_df_to_r_matrix(rma_df),
            plots_path.joinpath(f"{exp_prefix}_density_rma_filtered.{plot_format}"),
            legend=False,
            main="RMA intensities (filtered)",
        )

    proc_dataset_plots(
        rma_df,
        "rma",
        annot_df=deepcopy(annot_df),
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        contrast_factor=contrast_factor,
        contrast_levels_colors=contrast_levels_colors,
        heatmap_top_n=heatmap_top_n,
        row_labels=features_anno["SYMBOL"],
        plot_format=plot_format,
    )

    return rma_df, features_anno


def proc_microarray_results(
    rma_df: pd.DataFrame,
    features_anno: pd.DataFrame,
    annot_df: pd.DataFrame,
    results_path: Path,
    plots_path: Path,
    exp_prefix: str,
    contrast_factor: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    contrast_levels_colors: Dict[str, str],
    p_cols: Iterable[str] = ("padj",),
    p_ths: Iterable[float] = (0.05,),
    lfc_levels: Iterable[str] = LFC_LEVELS,
    lfc_ths: Iterable[float] = (1.0,),
    heatmap_top_n: int = 50,
    plot_format: str = "png",
) -> Dict[Tuple[str, str], pd.DataFrame]:
    """
    Fit limma models and process the results of every contrast.

    Args:
        rma_df: Filtered RMA values from `proc_microarray_dataset`.
        features_anno: Annotation of each feature of rma_df.
        annot_df: Sample annotation indexed by sample id.
        contrasts_levels: (test, control) pairs. Fold changes are test minus
            control in log2 scale.

    See `proc_microarray_dataset` and
    `pipelines.differential_expression.utils.proc_filtered_results` for the
    other arguments.

    Returns:
        Annotated results of each (test, control) contrast, with columns
        log2FoldChange, baseMean, stat, pvalue, padj, B and the feature
        annotation columns.
    """
    contrasts_levels = list(contrasts_levels)
    p_cols, p_ths, lfc_ths = list(p_cols), list(p_ths), list(lfc_ths)
    samples = [s for s in annot_df.index if s in rma_df.columns]
    rma_df = rma_df.loc[:, samples]

    # 1. Design matrix, one column per condition
    levels = annot_df.loc[samples, contrast_factor].astype(str)
    level_names = r_level_names(sorted(set(levels)))
    targets = pd.DataFrame(
        {contrast_factor: levels.map(level_names).values}, index=samples
    )
    coefs = {
        (test, control): f"{level_names[test]}-{level_names[control]}"
        for test, control in contrasts_levels
    }

    with localconverter(ro.default_converter):
        design = get_design_matrix(targets, [contrast_factor])

        # 2. Linear model, contrasts and moderated statistics
        fit = linear_model_fit(pd_df_to_r_matrix(rma_df), design)
        contrast_matrix = make_contrasts(coefs.values(), levels=design)
        fit_eb = empirical_bayes(fit_contrasts(fit, contrast_matrix))

        # 3. Significance calls per contrast
        calls = decide_tests(fit_eb, **{"p.value": p_ths[0], "lfc": lfc_ths[0]})
        calls_summary = decide_tests_summary(calls)
        if len(coefs) <= 5:
            venn_diagram(
                calls,
                plots_path.joinpath(f"{exp_prefix}_venn_diagram.{plot_format}"),
                include=ro.StrVector(["up", "down"]),
            )
    calls_summary.to_csv(results_path.joinpath(f"{exp_prefix}_decide_tests.csv"))

    results_anno = {}
    for (test, control), coef in tqdm(coefs.items(), desc="Contrasts"):
        exp_name = f"{exp_prefix}_{test}_vs_{control}"

        # 4. Results table, annotated and saved to disk
        with localconverter(ro.default_converter):
            result = top_table_df(fit_eb, coef=coef, sort_by="none")

            # 5. limma plots
            limma_volcano_plot(
                fit_eb,
                plots_path.joinpath(f"{exp_name}_limma_volcano_plot.{plot_format}"),
                coef=coef,
                highlight=10,
                names=ro.StrVector(
                    features_anno["SYMBOL"].fillna("").reindex(rma_df.index).tolist()
                ),
            )
            plot_md(
                fit_eb,
                plots_path.joinpath(f"{exp_name}_md_plot.{plot_format}"),
                coef=coef,
                status=calls.rx(True, coef),
                main=f"{test} vs {control}",
            )

        result_anno = pd.concat(
            [result, features_anno.reindex(result.index)[list(ANNOTATION_COLUMNS)]],
            axis=1,
        )
        result_anno.index.name = "feature_id"
        result_anno.to_csv(results_path.joinpath(f"{exp_name}_limma_results.csv"))
        results_anno[(test, control)] = result_anno
        log_significance_counts(
            result_anno, exp_name, p_col=p_cols[0], p_th=p_ths[0], lfc_th=lfc_ths[0]
        )

        # 6. Volcano plot
        proc_volcano_plot(
            result_anno,
            test,
            control,
            save_path=plots_path.joinpath(f"{exp_name}_volcano_plot.{plot_format}"),
            p_col=p_cols[0],
            p_th=p_ths[0],
            lfc_th=lfc_ths[0],
        )

    # 7. Filtered subsets, supervised heatmaps and summary
    proc_filtered_results(
        results_anno,
        rma_df,
        annot_df,
        results_path=results_path,
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        contrast_factor=contrast_factor,
        contrast_levels_colors=contrast_levels_colors,
        p_cols=p_cols,
        p_ths=p_ths,
        lfc_levels=lfc_levels,
        lfc_ths=lfc_ths,
        heatmap_top_n=heatmap_top_n,
        results_suffix="limma_results",
        dataset_label="rma",
        plot_format=plot_format,
    )

    return results_anno


def microarray_differential_expression(
    annot_df: pd.DataFrame,
    cel_files: Dict[str, Path],
    annotation_db: str,
    results_path: Path,
    plots_path: Path,
    func_path: Path,
    reports_path: Path,
    exp_prefix: str,
    org_db: OrgDB,
    contrast_factor: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    contrast_levels_colors: Dict[str, str],
    p_cols: Iterable[str] = ("padj",),
    p_ths: Iterable[float] = (0.05,),
    lfc_levels: Iterable[str] = LFC_LEVELS,
    lfc_ths: Iterable[float] = (1.0,),
    collapse_genes: bool = False,
    intensity_threshold: Optional[float] = None,
    heatmap_top_n: int = 50,
    run_enrichment: bool = True,
    plot_pathways: bool = True,
    report_config: Optional[ReportConfig] = None,
) -> Dict[Tuple[str, str], pd.DataFrame]:
    """
    Run the complete microarray workflow: normalization, limma results,
    pathway enrichment and reports.

    Enrichment runs on the first p-value column and thresholds for the
    "up", "down" and "all" gene subsets of each contrast, using the ENTREZID
    annotation of the features.

    Args:
        func_path: Directory where enrichment results and plots are saved.
        reports_path: Directory where the HTML and PDF reports are written.
        org_db: Organism annotation database, used by the enrichment analyses.
        run_enrichment: Run pathway over-representation analyses.
        plot_pathways: Render KEGG pathway diagrams.
        report_config: Report options. Defaults to `ReportConfig()`.

    See `proc_microarray_dataset` and `proc_microarray_results` for the other
    arguments.

    Returns:
        Annotated results of each (test, control) contrast.
    """
    contrasts_levels = list(contrasts_levels)
    p_cols, p_ths, lfc_ths = list(p_cols), list(p_ths), list(lfc_ths)
    report_config = report_config or ReportConfig()
    plot_format = report_config.figure_format
    for path in (results_path, plots_path, func_path, reports_path):
        path.mkdir(exist_ok=True, parents=True)

    # 1. Normalized, annotated and filtered intensities
    rma_df, features_anno = proc_microarray_dataset(
        annot_df=deepcopy(annot_df),
        cel_files=cel_files,
        annotation_db=annotation_db,
        results_path=results_path,
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        contrast_factor=contrast_factor,
        contrast_levels_colors=contrast_levels_colors,
        collapse_genes=collapse_genes,
        intensity_threshold=intensity_threshold,
        heatmap_top_n=heatmap_top_n,
        plot_format=plot_format,
    )

    # 2. limma results
    results_anno = proc_microarray_results(
        rma_df=rma_df,
        features_anno=features_anno,
        annot_df=deepcopy(annot_df),
        results_path=results_path,
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        contrast_factor=contrast_factor,
        contrasts_levels=contrasts_levels,
        contrast_levels_colors=contrast_levels_colors,
        p_cols=p_cols,
        p_ths=p_ths,
        lfc_levels=lfc_levels,
        lfc_ths=lfc_ths,
        heatmap_top_n=heatmap_top_n,
        plot_format=plot_format,
    )

    # 3. Pathway enrichment
    if run_enrichment:
        for test, control in tqdm(contrasts_levels, desc="Enrichment"):
            exp_name = f"{exp_prefix}_{test}_vs_{control}"
            functional_enrichment(
                results_file=results_path.joinpath(f"{exp_name}_limma_results.csv"),
                exp_name=exp_name,
                func_path=func_path,
                plots_path=func_path.joinpath("plots"),
                org_db=org_db,
                p_col=p_cols[0],
                p_th=p_ths[0],
                lfc_th=lfc_ths[0],
                plot_pathways=plot_pathways,
                plot_format=plot_format,
            )

    # 4. Reports
    write_reports(
        title=f"Microarray differential expression ({exp_prefix})",
        exp_prefix=exp_prefix,
        contrasts_levels=contrasts_levels,
        results=results_anno,
        plots_path=plots_path,
        func_path=func_path,
        reports_path=reports_path,
        results_path=results_path,
        p_col=p_cols[0],
        p_th=p_ths[0],
        lfc_th=lfc_ths[0],
        config=report_config,
    )

    return results_anno
