"""Locate and read the raw inputs of the expression workflows: transcript
quantification files, CEL files, transcript-to-gene tables and the sample
annotation.
"""

import logging
from pathlib import Path
from typing import Dict, Iterable, Optional

import pandas as pd


def find_quant_files(
    quant_dir: Path, sample_ids: Iterable[str], pattern: str = "{sample}/quant.sf"
) -> Dict[str, Path]:
    """Find the quantification file of every sample.

    Args:
        quant_dir: Directory holding the quantification results.
        sample_ids: Sample identifiers, in the order the files should be
            returned.
        pattern: Path of a sample's file relative to quant_dir, where
            "{sample}" is replaced by the sample id. For instance
            "{sample}/quant.sf" (salmon) or "{sample}/abundance.h5" (kallisto).

    Returns:
        An ordered mapping from sample id to its quantification file.

    Raises:
        ValueError: If quant_dir does not exist or some samples have no file.
    """
    if not quant_dir.is_dir():
        raise ValueError(f"Quantification directory {quant_dir} does not exist.")

    files = {
        sample_id: quant_dir.joinpath(pattern.format(sample=sample_id))
        for sample_id in sample_ids
    }
    missing = [sample_id for sample_id, f in files.items() if not f.is_file()]
    if missing:
        raise ValueError(
            f"No quantification file found in {quant_dir} for samples {missing}"
            f" (pattern {pattern})."
        )

    logging.info(f"Found {len(files)} quantification files in {quant_dir}.")
    return files


def find_cel_files(
    cel_dir: Path, sample_ids: Iterable[str], pattern: str = "*.[cC][eE][lL]*"
) -> Dict[str, Path]:
    """Find the CEL file of every sample.

    A file belongs to a sample when its name contains the sample id
    (case-insensitive), which covers GEO-style names such as
    "GSM123456_treated_rep1.CEL.gz".

    Args:
        cel_dir: Directory holding the CEL files.
        sample_ids: Sample identifiers, in the order the files should be
            returned.
        pattern: Glob pattern selecting CEL files (compressed or not).

    Returns:
        An ordered mapping from sample id to its CEL file.

    Raises:
        ValueError: If cel_dir does not exist, or if a sample matches no file
            or several files.
    """
    if not cel_dir.is_dir():
        raise ValueError(f"CEL directory {cel_dir} does not exist.")

    cel_files = sorted(
        f
        for f in cel_dir.glob(pattern)
        if f.name.lower().endswith((".cel", ".cel.gz"))
    )
    if not cel_files:
        raise ValueError(f"No CEL files found in {cel_dir}.")

    files = {}
    for sample_id in sample_ids:
        matches = [f for f in cel_files if sample_id.lower() in f.name.lower()]
        if len(matches) != 1:
            raise ValueError(
                f"Sample {sample_id} must match exactly one CEL file in {cel_dir},"
                f" got {[f.name for f in matches]}."
            )
        files[sample_id] = matches[0]

    logging.info(f"Found {len(files)} CEL files in {cel_dir}.")
    return files


def read_tx2gene(
    tx2gene_path: Path,
    tx_col: Optional[str] = None,
    gene_col: Optional[str] = None,
    ignore_tx_version: bool = False,
) -> pd.DataFrame:
    """Read a transcript to gene mapping table.

    Args:
        tx2gene_path: Comma or tab separated file (chosen by suffix, ".tsv"
            and ".txt" are read as tab separated), with a header.
        tx_col: Column with transcript ids. Defaults to the first column.
        gene_col: Column with gene ids. Defaults to the second column.
        ignore_tx_version: Strip version suffixes (e.g. ENST0000001.4 ->
            ENST0000001) from transcript and gene ids.

    Returns:
        A two-column dataframe (TXNAME, GENEID) without duplicated transcripts.

    Raises:
        ValueError: If the table has fewer than two columns.
    """
    sep = "\t" if tx2gene_path.suffix in (".tsv", ".txt") else ","
    df = pd.read_csv(tx2gene_path, sep=sep, dtype=str)
    if df.shape[1] < 2:
        raise ValueError(
            f"{tx2gene_path} must have at least two columns, got {df.shape[1]}."
        )

    tx2gene = df[[tx_col or df.columns[0], gene_col or df.columns[1]]].copy()
    tx2gene.columns = ["TXNAME", "GENEID"]
    if ignore_tx_version:
        tx2gene = tx2gene.apply(lambda col: col.str.replace(r"\.\d+$", "", regex=True))

    return tx2gene.dropna().drop_duplicates(subset="TXNAME").reset_index(drop=True)


def build_sample_table(
    samples_conditions: Dict[str, str],
    factor: str = "condition",
    reference: Optional[str] = None,
) -> pd.DataFrame:
    """Sample annotation from an inline sample to condition mapping.

    Args:
        samples_conditions: Ordered mapping from sample id to condition.
        factor: Name of the condition column.
        reference: Control level, placed first among the categories so that
            it becomes the reference level of the statistical models. Defaults
            to the condition of the first sample.

    Returns:
        A dataframe indexed by sample id ("sample_id") with one categorical
        column, keeping the mapping's sample order.

    Raises:
        ValueError: If the mapping is empty or reference is not a condition.
    """
    if not samples_conditions:
        raise ValueError("At least one sample is needed.")

    conditions = list(dict.fromkeys(samples_conditions.values()))
    reference = reference or conditions[0]
    if reference not in conditions:
        raise ValueError(f"Reference {reference} not found in {conditions}.")
    levels = [reference] + [c for c in conditions if c != reference]

    annot_df = pd.DataFrame(
        {factor: pd.Categorical(list(samples_conditions.values()), categories=levels)},
        index=pd.Index(list(samples_conditions.keys()), name="sample_id"),
    )

    logging.info(
        f"Sample table: {annot_df[factor].value_counts(sort=False).to_dict()}"
    )
    return annot_df
