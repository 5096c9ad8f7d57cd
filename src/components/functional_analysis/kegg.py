import logging
from pathlib import Path

import rpy2.robjects as ro
from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass
from rpy2.rinterface_lib.embedded import RRuntimeError

from components.functional_analysis.base import FunctionalAnalysisBase
from components.functional_analysis.orgdb import OrgDB
from r_wrappers.cluster_profiler import enrich_kegg


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class KEGGora(FunctionalAnalysisBase):
    """
    Over-representation analysis for KEGG Pathways.

    Args:
        func_kwargs: Additional arguments for enrichKEGG. The organism defaults
            to the KEGG code of `org_db`.
    """

    func_kwargs: dict = Field(default_factory=dict)

    def __post_init__(self):
        # 1. Get functional result
        self.func_result = enrich_kegg(
            self.filtered_genes.names,
            universe=self.background_genes.names,
            **{"organism": self.org_db.kegg_organism, **self.func_kwargs},
        )
        super().__post_init__()

    def plot_all(self, **kwargs):
        self.plot_all_ora(**kwargs)
        self.pathview(
            gene_data=self.filtered_genes, species=self.org_db.kegg_organism
        )


def run_kegg_ora(
    background_genes: ro.FloatVector,
    org_db: OrgDB,
    filtered_genes: ro.FloatVector,
    files_prefix: Path,
    plots_prefix: Path,
    plot_format: str = "png",
    plot_pathways: bool = True,
) -> None:
    """
    Run KEGG pathway over-representation analysis, save the result table and
    plot it. Failures inside R are logged and skipped.

    Args:
        plot_format: Extension of the enrichment plots ("png" or "pdf").
        plot_pathways: Also render pathview diagrams of the enriched pathways.
    """
    try:
        ora = KEGGora(
            background_genes,
            org_db,
            filtered_genes,
            files_prefix,
            plots_prefix,
            plot_format=plot_format,
        )
        ora.save_all()
        if plot_pathways:
            ora.plot_all()
        else:
            ora.plot_all_ora()
    except RRuntimeError as e:
        logging.warning(
            f"[{plots_prefix.name}] Error computing functional result: \n\t{e}"
        )
