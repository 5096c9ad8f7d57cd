import logging
from pathlib import Path
from typing import Any, Callable, Optional

import rpy2.robjects as ro
from pydantic import ConfigDict
from pydantic.dataclasses import dataclass
from rpy2.rinterface_lib.embedded import RRuntimeError

from components.functional_analysis.orgdb import OrgDB
from data.utils import TimeoutException, time_limit
from r_wrappers.dose import set_readable
from r_wrappers.enrich_plot import (
    barplot,
    dotplot,
    emapplot,
    gene_concept_net,
    goplot,
    heatplot,
    upsetplot,
)
from r_wrappers.pathview import pathview
from r_wrappers.utils import rpy2_df_to_pd_df, save_rds


@dataclass(config=ConfigDict(arbitrary_types_allowed=True))
class FunctionalAnalysisBase:
    """
    Base class for over-representation analyses of gene lists.

    Child classes compute `func_result` in their `__post_init__` and then call
    this class' `__post_init__`, which makes the result readable (gene symbols)
    and converts it to a dataframe. Saving and plotting methods log a warning
    and do nothing when the result is empty, so that a gene subset without
    enriched terms does not stop the workflow.

    Args:
        background_genes: All genes tested in the experiment (the universe),
            as a named vector of Entrez ids.
        org_db: Organism database object containing annotation data.
        filtered_genes: Genes of interest with their log2 fold changes.
        files_prefix: Path prefix for all generated data files.
        plots_prefix: Path prefix for all generated plot files.
        plot_format: Extension of the plot files ("png" or "pdf").

    Attributes:
        func_result: Raw enrichment result from R.
        func_result_df: DataFrame representation of the enrichment result.
    """

    background_genes: ro.FloatVector
    org_db: OrgDB
    filtered_genes: Optional[ro.FloatVector] = None
    files_prefix: Path = Path("")
    plots_prefix: Path = Path("")
    plot_format: str = "png"

    def __post_init__(self) -> None:
        # 1. Get dataframe of result
        try:
            self.func_result = set_readable(
                self.func_result, self.org_db, keyType="ENTREZID"
            )
            self.func_result_df = rpy2_df_to_pd_df(self.func_result)
        except RRuntimeError as e:
            logging.warning(e)
            self.func_result_df = None

        if self.is_empty:
            logging.warning(f"[{self.plots_prefix.name}] No enriched terms found.")
        else:
            logging.info(
                f"[{self.plots_prefix.name}] {len(self.func_result_df)} enriched"
                " terms found."
            )

        # 2. Create paths
        self.files_prefix.parent.mkdir(exist_ok=True, parents=True)
        self.plots_prefix.parent.mkdir(exist_ok=True, parents=True)

    @property
    def is_empty(self) -> bool:
        return self.func_result_df is None or self.func_result_df.empty

    def save_rds(self) -> None:
        """Save the enrichment result as an R data file (.RDS)."""
        if not self.is_empty:
            save_rds(self.func_result, self.files_prefix.with_suffix(".RDS"))
        else:
            logging.warning(
                f"[{self.plots_prefix.name}] Could not save RDS. "
                "Functional result is None or empty."
            )

    def save_csv(self) -> None:
        """Save the enrichment result as a CSV file."""
        if not self.is_empty:
            self.func_result_df.to_csv(self.files_prefix.with_suffix(".csv"))
        else:
            logging.warning(
                f"[{self.plots_prefix.name}] Could not save CSV. "
                "Functional result is None or empty."
            )

    def save_all(self) -> None:
        self.save_rds()
        self.save_csv()

    def _plot(self, plot_name: str, plot_func: Callable, **kwargs: Any) -> None:
        if self.is_empty:
            logging.warning(
                f"[{self.plots_prefix.name}] Could not plot {plot_name}. "
                "Functional result is None or empty."
            )
            return

        try:
            save_path = Path(f"{self.plots_prefix}_{plot_name}.{self.plot_format}")
            plot_func(self.func_result, save_path, **kwargs)
        except RRuntimeError as e:
            logging.warning(
                f"[{self.plots_prefix.name}] Error plotting {plot_name}: \n\t{e}"
            )

    def barplot(self, **kwargs: Any) -> None:
        """
        Enrichment scores colour-coded, gene count or ratio as bar height.

        Args:
            **kwargs: Additional arguments passed to the R barplot function,
                e.g. showCategory (default: 10) and x ("Count" or "GeneRatio").
        """
        self._plot("barplot", barplot, **kwargs)

    def dotplot(self, **kwargs: Any) -> None:
        """Like the barplot, with gene count encoded as dot size."""
        self._plot("dotplot", dotplot, **kwargs)

    def gene_concept_net(self, **kwargs: Any) -> None:
        """
        Linkages of genes and enriched terms as a network, genes coloured by
        fold change when `foldChange` is given.
        """
        self._plot("cnetplot", gene_concept_net, **kwargs)

    def heatplot(self, **kwargs: Any) -> None:
        """Gene-term membership as a heatmap, readable with many terms."""
        self._plot("heatplot", heatplot, **kwargs)

    def emapplot(self, **kwargs: Any) -> None:
        """Enriched terms as a network where overlapping gene sets cluster."""
        self._plot("emapplot", emapplot, cex_label_category=0.8, **kwargs)

    def upsetplot(self, **kwargs: Any) -> None:
        """Gene overlap among the enriched terms."""
        self._plot("upsetplot", upsetplot, **kwargs)

    def goplot(self, **kwargs: Any) -> None:
        """Induced GO subgraph of the enriched terms (GO results only)."""
        self._plot("goplot", goplot, **kwargs)

    def pathview(self, gene_data: ro.FloatVector, timeout: int = 60, **kwargs: Any):
        """
        Render gene values over each enriched KEGG pathway.

        Each diagram gets `timeout` seconds, since KEGG downloads can hang.

        Args:
            gene_data: Named vector (Entrez ids) of values to overlay, usually
                log2 fold changes.
            timeout: Seconds allowed per pathway.
            **kwargs: Additional arguments passed to the R pathview function,
                e.g. species (KEGG organism code).
        """
        if self.is_empty:
            logging.warning(
                f"[{self.plots_prefix.name}] Could not plot with pathview. "
                "Functional result is None or empty."
            )
            return

        save_path_root = Path(f"{self.plots_prefix}_pathview")
        save_path_root.mkdir(exist_ok=True, parents=True)
        for pathway_id, pathway_name in self.func_result_df[
            ["ID", "Description"]
        ].itertuples(index=False, name=None):
            try:
                with time_limit(timeout):
                    pathview(
                        gene_data,
                        pathway_id,
                        pathway_name,
                        save_path_root,
                        **kwargs,
                    )
            except TimeoutException:
                logging.warning(
                    f"[{self.plots_prefix.name}] Time out running pathview for"
                    f" {pathway_id}."
                )
            except RRuntimeError as e:
                logging.warning(
                    f"[{self.plots_prefix.name}] Error plotting {pathway_id} with"
                    f" pathview: \n\t{e}"
                )

    def plot_all_ora(self, **kwargs: Any) -> None:
        """
        Generate all plots suitable for over-representation analysis results.

        Args:
            **kwargs: Additional arguments passed to individual plotting functions.
        """
        self.barplot(showCategory=10, x="Count", **kwargs)
        self.dotplot(showCategory=10, x="Count", **kwargs)
        self.emapplot(**kwargs)
        self.upsetplot(**kwargs)
        self.gene_concept_net(**kwargs, foldChange=self.filtered_genes)
        self.heatplot(**kwargs, foldChange=self.filtered_genes)
