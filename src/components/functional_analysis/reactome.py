import logging
from pathlib import Path

import rpy2.robjects as ro
from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass
from rpy2.rinterface_lib.embedded import RRuntimeError

from components.functional_analysis.base import FunctionalAnalysisBase
from components.functional_analysis.orgdb import OrgDB
from r_wrappers.reactome_pa import enrich_reactome


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class REACTOMEora(FunctionalAnalysisBase):
    """
    Over-representation analysis for REACTOME Pathways.

    Args:
        func_kwargs: Additional arguments for enrichPathway. The organism
            defaults to the one of `org_db`.
    """

    func_kwargs: dict = Field(default_factory=dict)

    def __post_init__(self):
        # 1. Get functional result
        self.func_result = enrich_reactome(
            self.filtered_genes.names,
            universe=self.background_genes.names,
            **{"organism": self.org_db.reactome_organism, **self.func_kwargs},
        )
        super().__post_init__()

    def plot_all(self, **kwargs):
        self.plot_all_ora(**kwargs)


def run_reactome_ora(
    background_genes: ro.FloatVector,
    org_db: OrgDB,
    filtered_genes: ro.FloatVector,
    files_prefix: Path,
    plots_prefix: Path,
    plot_format: str = "png",
) -> None:
    """
    Run Reactome over-representation analysis, save the result table and plot
    it. Failures inside R are logged and skipped.
    """
    try:
        ora = REACTOMEora(
            background_genes,
            org_db,
            filtered_genes,
            files_prefix,
            plots_prefix,
            plot_format=plot_format,
        )
        ora.save_all()
        ora.plot_all()
    except RRuntimeError as e:
        logging.warning(
            f"[{plots_prefix.name}] Error computing functional result: \n\t{e}"
        )
