"""
Wrappers for R package DOSE

All functions have pythonic inputs and outputs.

Note that the arguments in python use "_" instead of ".".
rpy2 does this transformation for us.

Example:
R --> data.category
Python --> data_category
"""

from typing import Any

from rpy2.robjects.packages import importr

from components.functional_analysis.orgdb import OrgDB

r_dose = importr("DOSE")


def set_readable(enrich_result: Any, org_db: OrgDB, **kwargs: Any) -> Any:
    """Map the gene ids of an enrichment result to gene symbols.

    Args:
        enrich_result: An enrichResult object.
        org_db: Organism annotation database used for the mapping.
        **kwargs: Additional arguments to pass to the setReadable function,
            such as keyType (default: "auto").

    Returns:
        Any: The same enrichment result with readable gene symbols.

    References:
        https://rdrr.io/bioc/DOSE/man/setReadable.html
    """
    return r_dose.setReadable(enrich_result, OrgDb=org_db.db, **kwargs)
