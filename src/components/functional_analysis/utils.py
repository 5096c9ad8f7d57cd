import gc
import json
import logging
from datetime import datetime as dt
from pathlib import Path
from typing import Any, Callable, Dict

from components.functional_analysis.go import GO_ONTOLOGIES, run_go_ora
from components.functional_analysis.kegg import run_kegg_ora
from components.functional_analysis.reactome import run_reactome_ora


def run_all_ora(
    exp_name: str,
    get_func_input: Callable[[str], Dict[str, Any]],
    plot_pathways: bool = True,
) -> bool:
    """
    Run over-representation analysis of one gene subset against KEGG pathways,
    the three Gene Ontology ontologies and Reactome pathways.

    Args:
        exp_name: String name of the experiment, e.g.:
            {exp_prefix}_{test}_vs_{control}_{p_col}_{p_thr_str}_{lfc_level}_{lfc_thr_str}
        get_func_input: Callable that, given a database name, returns the inputs
            of the enrichment functions:
            - background_genes: All genes considered for the experiment.
            - org_db: Organism database object for annotation.
            - filtered_genes: Genes of interest (e.g., differentially expressed genes).
            - files_prefix: Path prefix for output files.
            - plots_prefix: Path prefix for output plots.
            - plot_format: Optional extension of the plots ("png" or "pdf").
        plot_pathways: Render KEGG pathway diagrams with pathview.

    Returns:
        Whether the analyses were run. False when the background or the
        filtered genes are empty.
    """
    enrich_params = get_func_input("")

    if (
        enrich_params["background_genes"] is None
        or len(enrich_params["background_genes"]) == 0
    ):
        logging.warning(
            f"[{dt.now()}][{exp_name}]: Background genes cannot be empty, returning."
        )
        return False

    if (
        enrich_params["filtered_genes"] is None
        or len(enrich_params["filtered_genes"]) == 0
    ):
        logging.warning(
            f"[{dt.now()}][{exp_name}]: No DEGs under specified thresholds, returning."
        )
        return False

    enrich_params["files_prefix"].parent.mkdir(exist_ok=True, parents=True)
    with enrich_params["files_prefix"].parent.joinpath(
        f"{exp_name}_ora_params.json"
    ).open("w") as fp:
        json.dump(
            {
                "n_background_genes": len(enrich_params["background_genes"]),
                "filtered_genes": list(enrich_params["filtered_genes"].names),
                "species": enrich_params["org_db"].species,
                "files_prefix": str(enrich_params["files_prefix"]),
                "plots_prefix": str(enrich_params["plots_prefix"]),
            },
            fp,
            indent=4,
        )

    ####################################################################################
    # 1. KEGG Pathways
    logging.info(f"[{dt.now()}][{exp_name}]: Processing KEGG pathways...")
    run_kegg_ora(**get_func_input("KEGG"), plot_pathways=plot_pathways)
    gc.collect()

    ####################################################################################
    # 2. Gene Ontology (GO)
    logging.info(f"[{dt.now()}][{exp_name}]: Processing Gene Ontology...")
    go_inputs = get_func_input("GO")
    for ont in GO_ONTOLOGIES:
        run_go_ora(
            **{
                **go_inputs,
                "files_prefix": Path(f"{go_inputs['files_prefix']}_{ont}"),
                "plots_prefix": Path(f"{go_inputs['plots_prefix']}_{ont}"),
            },
            ont=ont,
        )
    gc.collect()

    ####################################################################################
    # 3. Reactome
    logging.info(f"[{dt.now()}][{exp_name}]: Processing Reactome...")
    run_reactome_ora(**get_func_input("REACTOME"))
    gc.collect()

    return True
