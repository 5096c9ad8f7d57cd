import logging
from pathlib import Path
from typing import Any, Dict

import rpy2.robjects as ro
from pydantic import ConfigDict, Field
from pydantic.dataclasses import dataclass
from rpy2.rinterface_lib.embedded import RRuntimeError

from components.functional_analysis.base import FunctionalAnalysisBase
from components.functional_analysis.orgdb import OrgDB
from r_wrappers.cluster_profiler import enrich_go

GO_ONTOLOGIES = ("BP", "MF", "CC")


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class GOora(FunctionalAnalysisBase):
    """
    Over-representation analysis for Gene Ontology terms.

    Args:
        func_kwargs: Additional arguments for the GO enrichment function.
            Common options include:
            - ont: GO ontology to analyze ("BP", "MF", "CC", or "ALL").
            - pAdjustMethod: Method for p-value adjustment, e.g., "BH".
            - pvalueCutoff: P-value cutoff for significance.
    """

    func_kwargs: Dict[str, Any] = Field(default_factory=dict)

    def __post_init__(self) -> None:
        # 1. Get functional result
        self.func_result = enrich_go(
            self.filtered_genes.names,
            universe=self.background_genes.names,
            org_db=self.org_db,
            keyType="ENTREZID",
            **self.func_kwargs,
        )
        super().__post_init__()

    def plot_all(self, **kwargs: Any) -> None:
        self.plot_all_ora(**kwargs)
        if self.func_kwargs.get("ont", "BP") in GO_ONTOLOGIES:
            self.goplot(**kwargs)


def run_go_ora(
    background_genes: ro.FloatVector,
    org_db: OrgDB,
    filtered_genes: ro.FloatVector,
    files_prefix: Path,
    plots_prefix: Path,
    ont: str,
    plot_format: str = "png",
) -> None:
    """
    Run Gene Ontology over-representation analysis for one ontology, save the
    result table and plot it. Failures inside R are logged and skipped.

    Args:
        ont: GO ontology to analyze ("BP" for biological process, "MF" for
            molecular function, "CC" for cellular component).
        plot_format: Extension of the enrichment plots ("png" or "pdf").
    """
    try:
        ora = GOora(
            background_genes,
            org_db,
            filtered_genes,
            files_prefix,
            plots_prefix,
            plot_format=plot_format,
            func_kwargs={"ont": ont},
        )
        ora.save_all()
        ora.plot_all()
    except RRuntimeError as e:
        logging.warning(
            f"[{plots_prefix.name}] Error computing functional result: \n\t{e}"
        )
