import logging
import re
from copy import deepcopy
from pathlib import Path
from typing import Any, Iterable, Optional

import numpy as np
import pandas as pd
import rpy2
import rpy2.robjects as ro
from rpy2.rinterface_lib.sexp import NACharacterType
from rpy2.robjects import pandas2ri
from rpy2.robjects.conversion import localconverter
from rpy2.robjects.packages import importr

from components.functional_analysis.orgdb import OrgDB
from data.utils import rank_de_results

r_annotation_dbi = importr("AnnotationDbi")
r_grdevices = importr("grDevices")


def rpy2_df_to_pd_df(rpy2_df: Any) -> pd.DataFrame:
    """
    Converts a rpy2 DataFrame object to a pandas Dataframe object.

    (docs in https://rpy2.github.io/doc/latest/html/pandas.html)
    """
    # 0. Ensure rpy2 object is (or is convertible to) an R dataframe
    with localconverter(ro.default_converter):
        rpy2_df = ro.r("as.data.frame")(rpy2_df)

    with localconverter(ro.default_converter + pandas2ri.converter):
        pd_from_r_df = ro.conversion.rpy2py(rpy2_df)

    return pd_from_r_df


def pd_df_to_rpy2_df(pd_df: pd.DataFrame) -> ro.DataFrame:
    """
    Converts a pandas DataFrame object to a rpy2 Dataframe object.

        (docs in https://rpy2.github.io/doc/latest/html/pandas.html)
    """

    with localconverter(ro.default_converter + pandas2ri.converter):
        r_from_pd_df = ro.conversion.py2rpy(pd_df)
    return r_from_pd_df


def pd_df_to_r_matrix(pd_df: pd.DataFrame) -> Any:
    """
    Converts a numeric pandas DataFrame into an R matrix, keeping row and column
    names.
    """
    mat = ro.r("as.matrix")(pd_df_to_rpy2_df(pd_df))
    mat.rownames = ro.StrVector(pd_df.index.astype(str).tolist())
    mat.colnames = ro.StrVector(pd_df.columns.astype(str).tolist())
    return mat


def assay_to_df(data: Any) -> pd.DataFrame:
    """
    Transforms an object that can be converted to an assay into a DataFrame.
    """
    return rpy2_df_to_pd_df(ro.r("assay")(data))


def read_rds(load_path: Path) -> Any:
    """
    Reads a .RDS file and loads it into an R object.
    """
    # 0. Ensure path has the right extension
    if load_path.suffix.upper() != ".RDS":
        raise ValueError("The extension of the file provided must be .RDS")

    return ro.r.readRDS(str(load_path))


def save_rds(obj: Any, save_path: Path):
    """
    Saves a given R object into an .RDS file.
    """
    # 0. Ensure path has the right extension
    if save_path.suffix != ".RDS":
        raise ValueError("The extension of the file provided must be .RDS")

    ro.r.saveRDS(obj, file=str(save_path))


def open_device(save_path: Path, width: int = 10, height: int = 10) -> None:
    """
    Opens an R graphics device matching the extension of save_path. Only .pdf
        and .png are supported. Width and height are given in inches.
    """
    if save_path.suffix == ".pdf":
        r_grdevices.pdf(str(save_path), width=width, height=height)
    elif save_path.suffix == ".png":
        r_grdevices.png(
            str(save_path), width=width, height=height, units="in", res=150
        )
    else:
        raise ValueError(
            f"Save file had suffix {save_path.suffix},"
            " but only .pdf and .png are possible."
        )


def dev_off() -> None:
    """
    Closes the current R graphics device, flushing the plot to disk.
    """
    r_grdevices.dev_off()


def sample_distance(data: Any):
    """
    Computes the euclidean distances between samples of an assay-like object.

    Args:
         data: can be a DESeqDataSet, a DESeqTransform (from rlog or vst
            transforms) or a numeric matrix with samples as columns.
    """
    with localconverter(ro.default_converter):
        f = ro.r(
            """
            f <- function(x) {
                if (!is.matrix(x)) {
                    x <- SummarizedExperiment::assay(x)
                }
                return(dist(t(x)))
            }
            """
        )
        return f(data)


def annotate_deseq_result(
    result: rpy2.robjects.methods.RS4,
    org_db: OrgDB,
    from_type: str = "ENSEMBL",
    replace_na: bool = False,
) -> pd.DataFrame:
    """
        Annotates a result object, adding a column with SYMBOL gene ids.

    Args:
        result: a DESeqResults object
        org_db: Organism annotation database.
        from_type: Original ID naming scheme. Possible values: "ENSEMBL",
            "ENTREZID" and "SYMBOL".
        replace_na: whether to replace NA values (due to failed mapping)
            with original gene ids.

    Returns:
        An annotated result
    """
    # 1. Results object to pandas dataframe
    result_df = rpy2_df_to_pd_df(result)

    # 2. Get gene annotations
    return annotate_gene_ids(result_df, org_db, from_type, replace_na)


def annotate_gene_ids(
    result_df: pd.DataFrame,
    org_db: OrgDB,
    from_type: str = "ENSEMBL",
    replace_na: bool = False,
) -> pd.DataFrame:
    """
    Adds ENTREZID, SYMBOL and GENENAME columns to a dataframe indexed by gene
        ids of type `from_type`.
    """
    to_types = [t for t in ("ENTREZID", "SYMBOL", "GENENAME") if t != from_type]
    try:
        feature_annotations = pd.concat(
            [
                map_gene_id(result_df.index, org_db, from_type, to_type=to_type)
                for to_type in to_types
            ],
            axis=1,
        )
    except Exception as e:
        logging.warning(e)
        feature_annotations = pd.DataFrame(
            index=result_df.index,
            columns=to_types,
        )

    # [Optional] Replace nans with original unmapped IDs
    if replace_na:
        feature_annotations = feature_annotations.apply(
            lambda col: col.fillna(result_df.index.to_series())
        )

    # If a column has all NaNs, then replace with original IDs
    for nan_col in feature_annotations.columns[feature_annotations.isna().all()]:
        feature_annotations[nan_col] = feature_annotations[nan_col].fillna(
            result_df.index.to_series()
        )

    return pd.concat([result_df, feature_annotations], axis=1)


def map_gene_id(
    genes: Iterable[str],
    org_db: OrgDB,
    from_type: str = "ENSEMBL",
    to_type: str = "ENTREZID",
    multiple_values: str = "list",
) -> pd.Series:
    """Changes the ID naming scheme of the given gene set.

    See: https://rdrr.io/bioc/ensembldb/man/EnsDb-AnnotationDbi.html

    Args:
        genes: Set of gene names. Should be a string vector.
        org_db: Organism annotation database.
        from_type: Original ID naming scheme. Possible values: "ENSEMBL",
            "ENTREZID" and "SYMBOL".
        to_type: Resulting ID naming scheme. Possible values: "ENSEMBL",
            "ENTREZID" and "SYMBOL".
        multiple_values: what to do when multiple values are mapped.
            Options are: "first", "list", (default) "filter", "asNA".

    Returns:
        A pandas series containing with the original gene ids as index (from_type) and
        the new gene ids (to_type) as values.
    """
    # 0. Check arguments
    allowed_tyes = ro.r("columns")(org_db.db)
    if from_type not in allowed_tyes:
        raise ValueError(f'from_type "{from_type}" not allowed')
    if to_type not in allowed_tyes:
        raise ValueError(f'to_type "{to_type}" not allowed')

    # 1. Annotate all genes
    ann_genes = list(
        r_annotation_dbi.mapIds(
            org_db.db,
            keys=ro.StrVector(list(map(str, genes))),
            column=to_type,
            keytype=from_type,
            multiVals=multiple_values,
        )
    )

    # 2. Process mapped results
    if multiple_values == "list":
        ann_genes = [
            "/".join(x) if not isinstance(x[0], NACharacterType) else np.nan
            for x in ann_genes
        ]
    else:
        ann_genes = [
            x if not isinstance(x, NACharacterType) else np.nan for x in ann_genes
        ]

    # 3. Build and return annotated genes, missing values marked as `np.nan`
    return pd.Series(ann_genes, index=genes, name=to_type)


def map_probe_id(
    probes: Iterable[str],
    annotation_db: str,
    to_types: Iterable[str] = ("ENTREZID", "SYMBOL", "GENENAME"),
) -> pd.DataFrame:
    """Annotates microarray probe ids using a platform annotation package.

    Probes mapping to several genes keep their first mapping only.

    Args:
        probes: Probe (or transcript cluster) identifiers.
        annotation_db: Name of the platform annotation package, e.g.
            "hugene10sttranscriptcluster.db" or "hgu133plus2.db".
        to_types: Annotation columns to retrieve.

    Returns:
        A dataframe indexed by probe id with one column per annotation type,
        missing values marked as `np.nan`.
    """
    probes = list(map(str, probes))
    r_annotation_pkg = importr(annotation_db)
    db = getattr(r_annotation_pkg, annotation_db.replace(".", "_"))

    with localconverter(ro.default_converter):
        probes_anno = rpy2_df_to_pd_df(
            r_annotation_dbi.select(
                db,
                keys=ro.StrVector(probes),
                columns=ro.StrVector(list(to_types)),
                keytype="PROBEID",
            )
        )

    return (
        probes_anno.replace("NA_character_", np.nan)
        .drop_duplicates(subset=["PROBEID"], keep="first")
        .set_index("PROBEID")
        .reindex(probes)
    )


def prepare_gene_list(
    genes: pd.DataFrame,
    org_db: OrgDB = None,
    from_type: str = None,
    to_type: str = None,
    p_col: str = "padj",
    p_th: float = None,
    lfc_col: str = "log2FoldChange",
    lfc_level: str = "all",
    lfc_th: float = None,
    numeric_col: str = "log2FoldChange",
) -> ro.FloatVector:
    """
    Prepares a gene list to match the expected format of clusterProfiler. If
        both "from_type" and "to_type" are provided, convert ID types from
        "from_type" to "to_type".

    The index of `genes` should contain the gene IDs of type `from_type`.

    Functions needing this resulting gene list require that all genes
        are in the same ID namespace, so genes not mapped are removed.

    Args:
        genes: A dataframe of at least two columns, containing gene IDs and
            a numeric column that can be used to rank them.
        org_db: Organism annotation database.
        from_type: Original ID naming scheme. Possible values: "ENSEMBL",
            "ENTREZID" and "SYMBOL".
        to_type: Resulting ID naming scheme. Possible values: "ENSEMBL",
            "ENTREZID" and "SYMBOL".
        p_col: Name of p-value column.
        p_th: Optionally filter by p_col.
        lfc_col: Name of LFC column.
        lfc_level: genes to write, "up" for up-regulated, "down" for
            down-regulated, and "all" for all.
        lfc_th: Optionally filter by lfc_col.
        numeric_col: Column that should be used to retrieve the numeric vector
            for the gene list. This can be the fold change column, the stat
            column or any other the user decides in order to sort and, later if
            decided, threshold and filter the list.

    Returns:
        Float vector (R object) with sorted numeric values and names equal to
            gene ids.
    """
    genes_list = deepcopy(genes)
    # 1. Annotate genes if appropriate arguments are provided
    if from_type and to_type and org_db and from_type != to_type:
        genes_list[to_type] = map_gene_id(
            genes=genes_list.index.to_list(),
            org_db=org_db,
            from_type=from_type,
            to_type=to_type,
        )

    if to_type and to_type in genes_list.columns:
        genes_list = genes_list[
            ~genes_list[to_type].astype(str).str.contains("/")
        ].dropna(subset=[to_type])
        # several features of one gene: keep the best ranked
        if {p_col, lfc_col}.issubset(genes_list.columns):
            genes_list = rank_de_results(genes_list, p_col=p_col, lfc_col=lfc_col)
        genes_list = genes_list.drop_duplicates(
            subset=[to_type], keep="first"
        ).set_index(to_type)

    # 2. Filter results
    # 2.1. By p-value/p-adjusted
    if p_th:
        genes_list = genes_list[genes_list[p_col] < p_th]

    # 2.2. By LFC level
    if lfc_level == "up":
        genes_list = genes_list[genes_list[lfc_col] > 0]
    elif lfc_level == "down":
        genes_list = genes_list[genes_list[lfc_col] < 0]

    # 2.3. By log2 Fold Change
    if lfc_th:
        genes_list = genes_list[abs(genes_list[lfc_col]) > lfc_th]

    # 3. Sort by numeric column
    genes_list = genes_list.dropna(subset=[numeric_col]).sort_values(
        numeric_col, ascending=False
    )

    # 4. Build gene list and return
    x = ro.FloatVector(genes_list[numeric_col].tolist())
    x.names = ro.StrVector(genes_list.index.astype(str).tolist())
    return x


def get_design_matrix(
    targets: pd.DataFrame,
    factors: Iterable[str],
    id_col: Optional[str] = None,
    **kwargs,
):
    """
    Get design matrix for differential analysis.

    Args:
        targets: R dataframe containing samples annotations.
        factors: factors used for differential analysis. Must be
            columns available in "targets". Duplicates will be ignored.
        id_col: Column containing sample ids
    """
    factors = list(dict.fromkeys(factors))
    rpy2_targets = pd_df_to_rpy2_df(targets)

    # 0. Ensure that all factors are columns in targets
    if len(targets.columns.intersection(factors)) != len(factors):
        raise ValueError(
            f"All factors must be columns of targets, got {factors} and"
            f" {targets.columns.tolist()}."
        )

    # 1. Ensure all factors are characters, so that they can be converted to
    # R factors
    for factor in factors:
        rpy2_targets[rpy2_targets.colnames.index(factor)] = ro.r("as.character")(
            rpy2_targets[rpy2_targets.colnames.index(factor)]
        )

    # 2. Build design matrix and return
    fmla = ro.r(f"~ 0 + {'+'.join(factors)}")
    design_matrix = ro.r("model.matrix")(
        ro.r("terms")(fmla, keep_order=True), data=rpy2_targets, **kwargs
    )

    cleaned_colnames = []
    for colname in design_matrix.colnames:
        for factor in factors:
            colname = re.sub("^" + factor, "", colname)
        cleaned_colnames.append(colname)
    design_matrix.colnames = ro.StrVector(cleaned_colnames)

    design_matrix.rownames = (
        rpy2_targets.rx2(id_col) if id_col is not None else rpy2_targets.rownames
    )

    return design_matrix
