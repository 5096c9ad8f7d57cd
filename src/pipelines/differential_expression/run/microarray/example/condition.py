import argparse
import logging
import warnings
from pathlib import Path
from typing import Dict, Iterable, Tuple

from rich import traceback
from rpy2.rinterface_lib.callbacks import logger as rpy2_logger

from components.functional_analysis.orgdb import OrgDB
from components.reports import ReportConfig
from data.io import build_sample_table, find_cel_files
from pipelines.differential_expression.microarray import (
    microarray_differential_expression,
)
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
    "--annotation-db",
    type=str,
    help="Platform annotation package of the arrays",
    nargs="?",
    default="hugene10sttranscriptcluster.db",
)

user_args = vars(parser.parse_args())
STORAGE: Path = Path(user_args["root_dir"])
SPECIES: str = user_args["species"]
org_db = OrgDB(SPECIES)
DATA_ROOT: Path = STORAGE.joinpath("EXAMPLE_MICROARRAY")
CEL_PATH: Path = DATA_ROOT.joinpath("data").joinpath("cel")
RESULTS_PATH: Path = DATA_ROOT.joinpath("limma")
PLOTS_PATH: Path = RESULTS_PATH.joinpath("plots")
FUNC_PATH: Path = RESULTS_PATH.joinpath("functional")
REPORTS_PATH: Path = DATA_ROOT.joinpath("reports")

SAMPLE_CONTRAST_FACTOR: str = "condition"
SAMPLES_CONDITIONS: Dict[str, str] = {
    "GSM0000001": "control",
    "GSM0000002": "control",
    "GSM0000003": "control",
    "GSM0000004": "treated",
    "GSM0000005": "treated",
    "GSM0000006": "treated",
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
HEATMAP_TOP_N: int = 50
COLLAPSE_GENES: bool = False

annot_df = build_sample_table(
    SAMPLES_CONDITIONS,
    factor=SAMPLE_CONTRAST_FACTOR,
    reference=CONTRASTS_LEVELS[0][1],
)
cel_files = find_cel_files(CEL_PATH, annot_df.index)

input_dict = dict(
    annot_df=annot_df,
    cel_files=cel_files,
    annotation_db=user_args["annotation_db"],
    results_path=RESULTS_PATH,
    plots_path=PLOTS_PATH,
    func_path=FUNC_PATH,
    reports_path=REPORTS_PATH,
    exp_prefix=f"rma_{SAMPLE_CONTRAST_FACTOR}",
    org_db=org_db,
    contrast_factor=SAMPLE_CONTRAST_FACTOR,
    contrasts_levels=CONTRASTS_LEVELS,
    contrast_levels_colors=CONTRASTS_LEVELS_COLORS,
    p_cols=P_COLS,
    p_ths=P_THS,
    lfc_levels=LFC_LEVELS,
    lfc_ths=LFC_THS,
    collapse_genes=COLLAPSE_GENES,
    heatmap_top_n=HEATMAP_TOP_N,
    report_config=ReportConfig(
        title="Differential expression: treated vs control (microarray)"
    ),
)

if __name__ == "__main__":
    run_func_dict(input_dict, microarray_differential_expression)
