"""Tests for directory-level Q-score extraction."""
import gzip

import pandas as pd
import pytest

from read_quality import ReadQScoreFASTQ, summarize_qscores


@pytest.fixture
def fastq_dir(tmp_path, fastq_writer):
    fastq_writer(tmp_path / "S1_trimmed.fastq.gz", [("r1", [10, 10, 10]), ("r2", [20]), ("r3", [])])
    fastq_writer(tmp_path / "S2_full_trimmed.fastq.gz", [("r1", [30, 30]), ("r2", [40, 40, 40, 40])])
    with gzip.open(tmp_path / "S3_trimmed.fastq.gz", "wt") as f:
        f.write("@r1\nACGT\n+\nII\n")
    # not a trimmed file; ignored
    fastq_writer(tmp_path / "S4_raw.fastq.gz", [("r1", [30])])
    return tmp_path


def test_runner_collects_failures_and_keeps_going(fastq_dir):
    runner = ReadQScoreFASTQ(fastq_dir, num_cores=1)
    assert runner.sample_ids == ["S1", "S2", "S3"]

    runner.read()

    assert runner.failures["sample_id"].tolist() == ["S3"]
    assert set(runner.records) == {"mean_phred", "ont"}

    mean = runner.records["mean_phred"]
    assert mean["sample_id"].tolist() == ["S1", "S1", "S2", "S2"]
    assert mean["value"].tolist() == [10.0, 20.0, 30.0, 40.0]

    ont = runner.records["ont"]
    assert ont["value"].tolist() == pytest.approx([10.0, 20.0, 30.0, 40.0])


def test_runner_batches_skip_failed_samples(fastq_dir):
    runner = ReadQScoreFASTQ(fastq_dir, num_cores=1, batch_size=1)
    runner.read()
    assert runner.batches() == [["S1"], ["S2"]]


def test_runner_serialize(fastq_dir, tmp_path_factory):
    out = tmp_path_factory.mktemp("results")
    runner = ReadQScoreFASTQ(fastq_dir, num_cores=1)
    runner.read()
    runner.serialize(out)

    restored = pd.read_pickle(out / "qscores_ont.pkl")
    assert len(restored) == 4

    summary = pd.read_csv(out / "qscore_summary.tsv", sep="\t")
    s1_mean = summary[(summary["sample_id"] == "S1") & (summary["method"] == "mean_phred")]
    assert s1_mean["n_reads"].iloc[0] == 2
    assert s1_mean["mean"].iloc[0] == pytest.approx(15.0)

    failures = pd.read_csv(out / "qscore_failures.tsv", sep="\t")
    assert failures["sample_id"].tolist() == ["S3"]

    batches = pd.read_csv(out / "sample_batches.tsv", sep="\t")
    assert batches["sample_id"].tolist() == ["S1", "S2"]


def test_runner_missing_directory(tmp_path):
    with pytest.raises(FileNotFoundError):
        ReadQScoreFASTQ(tmp_path / "missing", num_cores=1)


def test_runner_no_trimmed_files(tmp_path):
    with pytest.raises(FileNotFoundError):
        ReadQScoreFASTQ(tmp_path, num_cores=1)


def test_summarize_qscores_skips_empty_methods():
    recs = pd.DataFrame({"sample_id": ["B", "A", "A"], "read_index": [0, 0, 1], "value": [5.0, 10.0, 20.0]})
    summary = summarize_qscores({"mean_phred": recs, "ont": recs.iloc[0:0]})
    assert summary["sample_id"].tolist() == ["A", "B"]
    assert summary["n_reads"].tolist() == [2, 1]
    assert summary["median"].tolist() == [15.0, 5.0]
    assert set(summary["method"]) == {"mean_phred"}


def test_runner_reports_damaged_gzip_and_keeps_good_files(tmp_path, fastq_writer, damaged_gzip):
    fastq_writer(tmp_path / "S1_trimmed.fastq.gz", [("r1", [10, 10, 10]), ("r2", [20])])
    damaged_gzip(tmp_path / "S2_trimmed.fastq.gz")

    runner = ReadQScoreFASTQ(tmp_path, num_cores=1)
    runner.read()

    assert runner.failures["sample_id"].tolist() == ["S2"]
    assert runner.failures["file"].iloc[0].endswith("S2_trimmed.fastq.gz")
    mean = runner.records["mean_phred"]
    assert mean["sample_id"].tolist() == ["S1", "S1"]
    assert mean["value"].tolist() == [10.0, 20.0]


def test_runner_worker_pool_keeps_file_order(fastq_dir):
    runner = ReadQScoreFASTQ(fastq_dir, num_cores=2)
    runner.read()

    assert runner.failures["sample_id"].tolist() == ["S3"]

    mean = runner.records["mean_phred"]
    assert mean["sample_id"].tolist() == ["S1", "S1", "S2", "S2"]
    assert mean["read_index"].tolist() == [0, 1, 0, 1]
    assert mean["value"].tolist() == [10.0, 20.0, 30.0, 40.0]

    ont = runner.records["ont"]
    assert ont["sample_id"].tolist() == ["S1", "S1", "S2", "S2"]
    assert ont["value"].tolist() == [10.0, 20.0, 30.0, 40.0]
