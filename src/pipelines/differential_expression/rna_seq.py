"""
Differential gene expression analysis of RNA-seq transcript quantifications.

Workflow:
    1. Import per-sample quantification files (salmon, kallisto, ...) with
       tximport, summarised to gene level.
    2. Build a DESeq2 dataset, drop lowly counted genes and compute the
       regularized log (rlog) transform used for visualisation.
    3. Fit the negative binomial model and extract the results of every
       (test, control) contrast, optionally with shrunken fold changes.
    4. Annotate genes, plot (MA, volcano, heatmaps) and save tables of the
       significant genes.
    5. Pathway enrichment of up/down regulated genes and HTML/PDF reports.
"""

import logging
from copy import deepcopy
from pathlib import Path
from typing import Any, Dict, Iterable, Optional, Tuple

import pandas as pd
import rpy2.robjects as ro
from rpy2.robjects.conversion import localconverter
from tqdm.rich import tqdm

from components.functional_analysis.orgdb import OrgDB
from components.reports import ReportConfig
from data.utils import LFC_LEVELS
from pipelines.differential_expression.utils import (
    log_significance_counts,
    proc_dataset_plots,
    proc_filtered_results,
    proc_volcano_plot,
)
from pipelines.functional_analysis.utils import functional_enrichment
from pipelines.reports import write_reports
from r_wrappers.deseq2 import (
    deseq_results,
    filter_dds,
    get_deseq_dataset_tximport,
    lfc_shrink,
    norm_transform,
    normalized_counts,
    rlog_transform,
    run_dseq2,
    sanitize_factor,
    vst_transform,
)
from r_wrappers.tximport import tximport
from r_wrappers.utils import (
    annotate_deseq_result,
    assay_to_df,
    map_gene_id,
    rpy2_df_to_pd_df,
    save_rds,
)
from r_wrappers.visualization import ma_plot, mean_sd_plot, pca_plot


def proc_rna_seq_dataset(
    annot_df: pd.DataFrame,
    quant_files: Dict[str, Path],
    tx2gene: Optional[pd.DataFrame],
    results_path: Path,
    plots_path: Path,
    exp_prefix: str,
    org_db: OrgDB,
    contrast_factor: str,
    contrast_levels_colors: Dict[str, str],
    quant_type: str = "salmon",
    design_factors: Optional[Iterable[str]] = None,
    filter_count: int = 10,
    heatmap_top_n: int = 30,
    compute_vst: bool = False,
    ignore_tx_version: bool = True,
    plot_format: str = "png",
) -> Tuple[Any, Any]:
    """
    Build the DESeq2 dataset from transcript quantifications and plot it.

    Args:
        annot_df: Sample annotation indexed by sample id. Its order defines the
            sample order of the dataset.
        quant_files: Quantification file of each sample (see
            `data.io.find_quant_files`).
        tx2gene: Transcript to gene mapping. None keeps transcript-level
            estimates.
        results_path: Directory where tables and R objects are saved.
        plots_path: Directory where plots are saved.
        exp_prefix: A string prefix for all generated file names.
        org_db: Organism annotation database, used to label heatmap rows.
        contrast_factor: Annotation column holding the conditions to compare.
        contrast_levels_colors: Colour of each condition.
        quant_type: Quantification software ("salmon", "kallisto", ...).
        design_factors: Columns of the design formula. Defaults to the
            contrast factor alone.
        filter_count: Genes with a mean count not above this value are dropped.
        heatmap_top_n: Number of most variable genes in the heatmap.
        compute_vst: Also compute and plot the variance stabilizing transform.
        ignore_tx_version: Strip transcript version suffixes when matching the
            quantifications to tx2gene.
        plot_format: Extension of the saved plots.

    Returns:
        The filtered DESeq2 dataset and its rlog transform.

    Raises:
        ValueError: If some annotated samples have no quantification file.
    """
    # 0. Setup
    missing = [s for s in annot_df.index if s not in quant_files]
    if missing:
        raise ValueError(f"Samples {missing} have no quantification file.")
    design_factors = list(design_factors or [contrast_factor])
    factors = list(dict.fromkeys(design_factors + [contrast_factor]))

    # 1. Gene-level summarisation
    with localconverter(ro.default_converter):
        txi = tximport(
            {sample_id: quant_files[sample_id] for sample_id in annot_df.index},
            type=quant_type,
            tx2gene=tx2gene,
            ignoreTxVersion=ignore_tx_version,
            txOut=tx2gene is None,
        )

    # 2. DESeq2 dataset
    with localconverter(ro.default_converter):
        dds = get_deseq_dataset_tximport(
            txi,
            annot_df=annot_df,
            factors=factors,
            design_factors=design_factors,
        )

        # 2.1. Counts filter
        dds = filter_dds(dds, filter_count)

        # 2.2. Save to disk
        save_path = results_path.joinpath(f"{exp_prefix}_dds")
        rpy2_df_to_pd_df(ro.r("counts")(dds)).to_csv(save_path.with_suffix(".csv"))
        save_rds(dds, save_path.with_suffix(".RDS"))

    # 3. Readable gene labels for heatmaps
    with localconverter(ro.default_converter):
        genes = list(ro.r("rownames")(dds))
    try:
        row_labels = map_gene_id(genes, org_db, "ENSEMBL", "SYMBOL")
    except Exception as e:
        logging.warning(e)
        row_labels = None

    # 4. Regularized log transform (rlog)
    with localconverter(ro.default_converter):
        rld = rlog_transform(dds, blind=True)
        rld_df = assay_to_df(rld)
        rld_df.to_csv(results_path.joinpath(f"{exp_prefix}_rlog.csv"))
        mean_sd_plot(
            rld, plots_path.joinpath(f"{exp_prefix}_mean_sd_plot_rlog.{plot_format}")
        )
        pca_plot(
            rld,
            intgroup=[sanitize_factor(contrast_factor)],
            save_path=plots_path.joinpath(
                f"{exp_prefix}_pca_deseq2_rlog.{plot_format}"
            ),
        )

        # 4.1. Shifted log of normalized counts, as a reference for the
        # variance stabilisation achieved by rlog
        ntd = norm_transform(dds)
        mean_sd_plot(
            ntd, plots_path.joinpath(f"{exp_prefix}_mean_sd_plot_ntd.{plot_format}")
        )

    proc_dataset_plots(
        rld_df,
        "rlog",
        annot_df=deepcopy(annot_df),
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        contrast_factor=contrast_factor,
        contrast_levels_colors=contrast_levels_colors,
        heatmap_top_n=heatmap_top_n,
        row_labels=row_labels,
        plot_format=plot_format,
    )

    # 5. [Optional] Variance Stabilizing Transform (VST)
    if compute_vst:
        with localconverter(ro.default_converter):
            vst = vst_transform(dds, blind=True)
            vst_df = assay_to_df(vst)
            vst_df.to_csv(results_path.joinpath(f"{exp_prefix}_vst.csv"))
            mean_sd_plot(
                vst, plots_path.joinpath(f"{exp_prefix}_mean_sd_plot_vst.{plot_format}")
            )

        proc_dataset_plots(
            vst_df,
            "vst",
            annot_df=deepcopy(annot_df),
            plots_path=plots_path,
            exp_prefix=exp_prefix,
            contrast_factor=contrast_factor,
            contrast_levels_colors=contrast_levels_colors,
            heatmap_top_n=heatmap_top_n,
            row_labels=row_labels,
            plot_format=plot_format,
        )

    return dds, rld


def proc_rna_seq_results(
    dds: Any,
    rld: Any,
    annot_df: pd.DataFrame,
    results_path: Path,
    plots_path: Path,
    exp_prefix: str,
    org_db: OrgDB,
    contrast_factor: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    contrast_levels_colors: Dict[str, str],
    p_cols: Iterable[str] = ("padj",),
    p_ths: Iterable[float] = (0.05,),
    lfc_levels: Iterable[str] = LFC_LEVELS,
    lfc_ths: Iterable[float] = (1.0,),
    shrink_lfc: bool = False,
    heatmap_top_n: int = 30,
    plot_format: str = "png",
) -> Dict[Tuple[str, str], pd.DataFrame]:
    """
    Fit DESeq2 and process the results of every contrast.

    Args:
        dds: Filtered DESeq2 dataset from `proc_rna_seq_dataset`.
        rld: Its rlog transform, used for supervised heatmaps.
        annot_df: Sample annotation indexed by sample id.
        results_path: Directory where result tables are saved.
        plots_path: Directory where plots are saved.
        exp_prefix: A string prefix for all generated file names.
        org_db: Organism annotation database.
        contrast_factor: Annotation column holding the conditions to compare.
        contrasts_levels: (test, control) pairs. Fold changes are test over
            control.
        contrast_levels_colors: Colour of each condition.
        p_cols: P-value columns used to filter results.
        p_ths: P-value thresholds.
        lfc_levels: Fold change directions ("up", "down", "all").
        lfc_ths: Absolute log2 fold change thresholds.
        shrink_lfc: Replace fold changes by their ashr shrunken estimates.
        heatmap_top_n: Maximum number of genes per supervised heatmap.
        plot_format: Extension of the saved plots.

    Returns:
        Annotated results of each (test, control) contrast.
    """
    # 1. Run DESeq2
    with localconverter(ro.default_converter):
        deseq = run_dseq2(dds)
        save_rds(deseq, results_path.joinpath(f"{exp_prefix}_deseq.RDS"))
        normalized_counts(deseq).to_csv(
            results_path.joinpath(f"{exp_prefix}_normalized_counts.csv")
        )
        rld_df = assay_to_df(rld)

    results_anno = {}
    for test, control in tqdm(contrasts_levels, desc="Contrasts"):
        exp_name = f"{exp_prefix}_{test}_vs_{control}"
        # [factor, active (numerator), baseline (denominator)]
        contrast = ro.StrVector([sanitize_factor(contrast_factor), test, control])

        # 2. Results (Wald test), optionally with shrunken fold changes
        with localconverter(ro.default_converter):
            result = deseq_results(deseq, contrast=contrast, alpha=min(p_ths))
            if shrink_lfc:
                result = lfc_shrink(
                    dds=deseq, contrast=contrast, res=result, type="ashr"
                )

            # 3. MA Plot
            ma_plot(
                result,
                save_path=plots_path.joinpath(f"{exp_name}_ma_plot.{plot_format}"),
                alpha=min(p_ths),
                main=f"{test} vs {control}",
            )

            # 4. Annotate results and save to disk
            result_anno = annotate_deseq_result(result, org_db, from_type="ENSEMBL")

        result_anno.to_csv(results_path.joinpath(f"{exp_name}_deseq_results.csv"))
        results_anno[(test, control)] = result_anno
        log_significance_counts(
            result_anno, exp_name, p_col=p_cols[0], p_th=p_ths[0], lfc_th=lfc_ths[0]
        )

        # 5. Volcano plot
        proc_volcano_plot(
            result_anno,
            test,
            control,
            save_path=plots_path.joinpath(f"{exp_name}_volcano_plot.{plot_format}"),
            p_col=p_cols[0],
            p_th=p_ths[0],
            lfc_th=lfc_ths[0],
        )

    # 6. Filtered subsets, supervised heatmaps and summary
    proc_filtered_results(
        results_anno,
        rld_df,
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
        results_suffix="deseq_results",
        dataset_label="rlog",
        plot_format=plot_format,
    )

    return results_anno


def rna_seq_differential_expression(
    annot_df: pd.DataFrame,
    quant_files: Dict[str, Path],
    tx2gene: Optional[pd.DataFrame],
    results_path: Path,
    plots_path: Path,
    func_path: Path,
    reports_path: Path,
    exp_prefix: str,
    org_db: OrgDB,
    contrast_factor: str,
    contrasts_levels: Iterable[Tuple[str, str]],
    contrast_levels_colors: Dict[str, str],
    quant_type: str = "salmon",
    design_factors: Optional[Iterable[str]] = None,
    p_cols: Iterable[str] = ("padj",),
    p_ths: Iterable[float] = (0.05,),
    lfc_levels: Iterable[str] = LFC_LEVELS,
    lfc_ths: Iterable[float] = (1.0,),
    filter_count: int = 10,
    heatmap_top_n: int = 30,
    shrink_lfc: bool = False,
    compute_vst: bool = False,
    run_enrichment: bool = True,
    plot_pathways: bool = True,
    report_config: Optional[ReportConfig] = None,
) -> Dict[Tuple[str, str], pd.DataFrame]:
    """
    Run the complete RNA-seq workflow: dataset, results, pathway enrichment and
    reports.

    There are mainly two steps:
        1. Generate the DESeq2 dataset and its rlog transform and plot them.
           Only the annotated samples are included.
        2. Calculate the results of each contrast and derive the gene subsets
           for each threshold combination.

    Enrichment runs on the first p-value column and thresholds for the
    "up", "down" and "all" gene subsets of each contrast.

    Args:
        func_path: Directory where enrichment results and plots are saved.
        reports_path: Directory where the HTML and PDF reports are written.
        run_enrichment: Run pathway over-representation analyses.
        plot_pathways: Render KEGG pathway diagrams.
        report_config: Report options. Defaults to `ReportConfig()`.

    See `proc_rna_seq_dataset` and `proc_rna_seq_results` for the other
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

    # 1. Process DESeq2 dataset
    dds, rld = proc_rna_seq_dataset(
        annot_df=deepcopy(annot_df),
        quant_files=quant_files,
        tx2gene=tx2gene,
        results_path=results_path,
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        org_db=org_db,
        contrast_factor=contrast_factor,
        contrast_levels_colors=contrast_levels_colors,
        quant_type=quant_type,
        design_factors=design_factors,
        filter_count=filter_count,
        heatmap_top_n=heatmap_top_n,
        compute_vst=compute_vst,
        plot_format=plot_format,
    )

    # 2. Process DESeq2 results
    results_anno = proc_rna_seq_results(
        dds=dds,
        rld=rld,
        annot_df=deepcopy(annot_df),
        results_path=results_path,
        plots_path=plots_path,
        exp_prefix=exp_prefix,
        org_db=org_db,
        contrast_factor=contrast_factor,
        contrasts_levels=contrasts_levels,
        contrast_levels_colors=contrast_levels_colors,
        p_cols=p_cols,
        p_ths=p_ths,
        lfc_levels=lfc_levels,
        lfc_ths=lfc_ths,
        shrink_lfc=shrink_lfc,
        heatmap_top_n=heatmap_top_n,
        plot_format=plot_format,
    )

    # 3. Pathway enrichment
    if run_enrichment:
        for test, control in tqdm(contrasts_levels, desc="Enrichment"):
            exp_name = f"{exp_prefix}_{test}_vs_{control}"
            functional_enrichment(
                results_file=results_path.joinpath(f"{exp_name}_deseq_results.csv"),
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
        title=f"RNA-seq differential expression ({exp_prefix})",
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
