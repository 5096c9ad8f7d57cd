import argparse
import logging
import warnings
from pathlib import Path
from typing import Dict, Iterable, Tuple

from rich import traceback
from rpy2.rinterface_lib.callbacks import logger as rpy2_logger

from components.functional_analysis.orgdb import OrgDB
from components.reports import ReportConfig
from data.io import build_sample_table, find_quant_files, read_tx2gene
from pipelines.differential_expression.rna_seq import rna_seq_differential_expression
from utils import run_func_dict

_ = traceback.install()
rpy2_logger.setLevel(logging.ERROR)
logging.basicConfig(force=True)
logging.getLogger().setLevel(logging.INFO)
warnings.filterwarnings("ignore")

parser = argparse.ArgumentParser()
parser.add_argument(
    "--root-dir",
    type=str,
    help="Root directory",
    nargs="?",
    default="/media/ssd/storage",
)
parser.add_argument(
    "--species",
    type=str,
    help="Species of the samples",
    nargs="?",
    default="Homo sapiens",
)
parser.add_argument(
    "--quant-type",
    type=str,
    help="Software used to quantify transcripts (salmon, kallisto, ...)",
    nargs="?",
    default="salmon",
)

user_args = vars(parser.parse_args())
STORAGE: Path = Path(user_args["root_dir"])
SPECIES: str = user_args["species"]
org_db = OrgDB(SPECIES)
DATA_ROOT: Path = STORAGE.joinpath("EXAMPLE_RNA_SEQ")
QUANT_PATH: Path = DATA_ROOT.joinpath("data").joinpath("quant")
TX2GENE_PATH: Path = DATA_ROOT.joinpath("data").joinpath("tx2gene.tsv")
RESULTS_PATH: Path = DATA_ROOT.joinpath("deseq2")
PLOTS_PATH: Path = RESULTS_PATH.joinpath("plots")
FUNC_PATH: Path = RESULTS_PATH.joinpath("functional")
REPORTS_PATH: Path = DATA_ROOT.joinpath("reports")

SAMPLE_CONTRAST_FACTOR: str = "condition"
SAMPLES_CONDITIONS: Dict[str, str] = {
    "control_1": "control",
    "control_2": "control",
    "control_3": "control",
    "treated_1": "treated",
    "treated_2": "treated",
    "treated_3": "treated",
}
# (test, control): log2 fold changes are test vs control
CONTRASTS_LEVELS: Iterable[Tuple[str, str]] = (("treated", "control"),)
CONTRASTS_LEVELS_COLORS: Dict[str, str] = {
    "control": "#4A708B",
    "treated": "#8B3A3A",
}

P_COLS: Iterable[str] = ["padj"]
P_THS: Iterable[float] = (0.05,)
LFC_LEVELS: Iterable[str] = ("up", "down", "all")
LFC_THS: Iterable[float] = (1.0,)
HEATMAP_TOP_N: int = 30
FILTER_COUNT: int = 10
SHRINK_LFC: bool = False
COMPUTE_VST: bool = False

annot_df = build_sample_table(
    SAMPLES_CONDITIONS,
    factor=SAMPLE_CONTRAST_FACTOR,
    reference=CONTRASTS_LEVELS[0][1],
)
quant_files = find_quant_files(QUANT_PATH, annot_df.index)
tx2gene = read_tx2gene(TX2GENE_PATH, ignore_tx_version=True)

input_dict = dict(
    annot_df=annot_df,
    quant_files=quant_files,
    tx2gene=tx2gene,
    results_path=RESULTS_PATH,
    plots_path=PLOTS_PATH,
    func_path=FUNC_PATH,
    reports_path=REPORTS_PATH,
    exp_prefix=f"{user_args['quant_type']}_{SAMPLE_CONTRAST_FACTOR}",
    org_db=org_db,
    contrast_factor=SAMPLE_CONTRAST_FACTOR,
    contrasts_levels=CONTRASTS_LEVELS,
    contrast_levels_colors=CONTRASTS_LEVELS_COLORS,
    quant_type=user_args["quant_type"],
    p_cols=P_COLS,
    p_ths=P_THS,
    lfc_levels=LFC_LEVELS,
    lfc_ths=LFC_THS,
    filter_count=FILTER_COUNT,
    heatmap_top_n=HEATMAP_TOP_N,
    shrink_lfc=SHRINK_LFC,
    compute_vst=COMPUTE_VST,
    report_config=ReportConfig(
        title="Differential expression: treated vs control (RNA-seq)"
    ),
)

if __name__ == "__main__":
    run_func_dict(input_dict, rna_seq_differential_expression)
