import logging
from typing import Any

import rpy2.robjects as ro
from rpy2.robjects.packages import importr

r_annotation_hub = importr("AnnotationHub")
double_brackets = ro.r("function(obj, idx){return(obj[[idx]])}")

KEGG_ORGANISMS = {
    "Homo sapiens": "hsa",
    "Mus musculus": "mmu",
    "Rattus norvegicus": "rno",
    "Danio rerio": "dre",
    "Drosophila melanogaster": "dme",
}
REACTOME_ORGANISMS = {
    "Homo sapiens": "human",
    "Mus musculus": "mouse",
    "Rattus norvegicus": "rat",
    "Danio rerio": "zebrafish",
    "Drosophila melanogaster": "fly",
}


class OrgDB:
    """
    Organism annotation database (org.*.eg.db), retrieved through Bioconductor's
    AnnotationHub.

    Used to map gene identifiers (ENSEMBL, ENTREZID, SYMBOL, GENENAME) and as
    the GO annotation source for enrichment analyses.

    Attributes:
        species: Latin species name used to query AnnotationHub.

    Examples:
        >>> org_db = OrgDB(species="Homo sapiens")
        >>> org_db.kegg_organism
        'hsa'
    """

    def __init__(self, species: str = "Homo sapiens") -> None:
        if species not in KEGG_ORGANISMS:
            raise ValueError(
                f"Species {species} not supported, choose one of"
                f" {list(KEGG_ORGANISMS.keys())}."
            )
        self.species = species
        self._db = None

    @property
    def kegg_organism(self) -> str:
        """KEGG organism code, e.g. "hsa"."""
        return KEGG_ORGANISMS[self.species]

    @property
    def reactome_organism(self) -> str:
        """Organism name as expected by ReactomePA, e.g. "human"."""
        return REACTOME_ORGANISMS[self.species]

    @property
    def db(self) -> Any:
        """
        The OrgDb R object. Queried from the remote hub on first access, falling
        back to the local hub cache when offline.
        """
        if self._db is not None:
            return self._db

        try:
            anno_hub = ro.r("function(){suppressMessages(AnnotationHub())}")()
        except Exception as e:
            logging.warning(e)
            anno_hub = ro.r(
                "function(){suppressMessages(AnnotationHub(localHub=TRUE))}"
            )()

        self._db = double_brackets(
            anno_hub,
            r_annotation_hub.query(
                anno_hub, ro.StrVector((self.species, "^org.*"))
            ).names[0],
        )
        return self._db
