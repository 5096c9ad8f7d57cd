import pandas as pd
import pytest

from data.io import build_sample_table, find_cel_files, find_quant_files, read_tx2gene


@pytest.fixture
def quant_dir(tmp_path):
    for sample_id in ("S1", "S2", "S3"):
        sample_dir = tmp_path.joinpath(sample_id)
        sample_dir.mkdir()
        sample_dir.joinpath("quant.sf").write_text("Name\tLength\n")
    return tmp_path


class TestFindQuantFiles:
    def test_sample_order(self, quant_dir):
        files = find_quant_files(quant_dir, ["S3", "S1"])
        assert list(files) == ["S3", "S1"]
        assert files["S1"] == quant_dir.joinpath("S1", "quant.sf")

    def test_custom_pattern(self, quant_dir):
        quant_dir.joinpath("S1", "abundance.h5").write_bytes(b"")
        files = find_quant_files(quant_dir, ["S1"], pattern="{sample}/abundance.h5")
        assert files["S1"].name == "abundance.h5"

    def test_missing_sample(self, quant_dir):
        with pytest.raises(ValueError, match="S4"):
            find_quant_files(quant_dir, ["S1", "S4"])

    def test_missing_directory(self, tmp_path):
        with pytest.raises(ValueError):
            find_quant_files(tmp_path.joinpath("nope"), ["S1"])


class TestFindCelFiles:
    @pytest.fixture
    def cel_dir(self, tmp_path):
        for name in (
            "GSM0000001_control_rep1.CEL.gz",
            "GSM0000002_control_rep2.cel",
            "GSM0000003_treated_rep1.CEL",
            "README.txt",
        ):
            tmp_path.joinpath(name).write_bytes(b"")
        return tmp_path

    def test_matching_is_case_insensitive(self, cel_dir):
        files = find_cel_files(cel_dir, ["gsm0000003", "GSM0000001"])
        assert list(files) == ["gsm0000003", "GSM0000001"]
        assert files["gsm0000003"].name == "GSM0000003_treated_rep1.CEL"
        assert files["GSM0000001"].name == "GSM0000001_control_rep1.CEL.gz"

    def test_ambiguous_sample(self, cel_dir):
        with pytest.raises(ValueError, match="exactly one"):
            find_cel_files(cel_dir, ["control"])

    def test_unknown_sample(self, cel_dir):
        with pytest.raises(ValueError, match="GSM0000009"):
            find_cel_files(cel_dir, ["GSM0000009"])

    def test_no_cel_files(self, tmp_path):
        tmp_path.joinpath("README.txt").write_text("")
        with pytest.raises(ValueError, match="No CEL files"):
            find_cel_files(tmp_path, ["S1"])


class TestReadTx2gene:
    def test_tsv_with_versions(self, tmp_path):
        path = tmp_path.joinpath("tx2gene.tsv")
        path.write_text(
            "transcript\tgene\n"
            "ENST01.1\tENSG01.3\n"
            "ENST01.2\tENSG01.3\n"
            "ENST02.1\tENSG02.1\n"
        )
        tx2gene = read_tx2gene(path, ignore_tx_version=True)
        assert tx2gene.columns.tolist() == ["TXNAME", "GENEID"]
        assert tx2gene["TXNAME"].tolist() == ["ENST01", "ENST02"]
        assert tx2gene["GENEID"].tolist() == ["ENSG01", "ENSG02"]

    def test_csv_named_columns(self, tmp_path):
        path = tmp_path.joinpath("tx2gene.csv")
        pd.DataFrame(
            {
                "symbol": ["A", "B"],
                "gene_id": ["ENSG01", "ENSG02"],
                "tx_id": ["ENST01.1", "ENST02.1"],
            }
        ).to_csv(path, index=False)
        tx2gene = read_tx2gene(path, tx_col="tx_id", gene_col="gene_id")
        assert tx2gene["TXNAME"].tolist() == ["ENST01.1", "ENST02.1"]
        assert tx2gene["GENEID"].tolist() == ["ENSG01", "ENSG02"]

    def test_single_column(self, tmp_path):
        path = tmp_path.joinpath("tx2gene.csv")
        path.write_text("transcript\nENST01\n")
        with pytest.raises(ValueError):
            read_tx2gene(path)


class TestBuildSampleTable:
    def test_reference_first(self):
        annot_df = build_sample_table(
            {"S1": "treated", "S2": "control", "S3": "treated"}, reference="control"
        )
        assert annot_df.index.name == "sample_id"
        assert annot_df.index.tolist() == ["S1", "S2", "S3"]
        assert annot_df["condition"].cat.categories.tolist() == ["control", "treated"]

    def test_default_reference(self):
        annot_df = build_sample_table({"S1": "b", "S2": "a"}, factor="group")
        assert annot_df["group"].cat.categories.tolist() == ["b", "a"]

    def test_invalid(self):
        with pytest.raises(ValueError):
            build_sample_table({})
        with pytest.raises(ValueError, match="placebo"):
            build_sample_table({"S1": "treated"}, reference="placebo")
