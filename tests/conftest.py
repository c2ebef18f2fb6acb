"""
Shared pytest fixtures: FASTQ writers and small OTU tables.
"""

import gzip
from pathlib import Path

import pandas as pd
import pytest


def phred_string(scores, offset=33):
    return "".join(chr(q + offset) for q in scores)


def write_fastq(path, records, compress=True):
    """
    Write FASTQ records given as (read_id, quality_scores) pairs.

    An empty score list writes an orphaned header (empty sequence and
    quality lines).
    """
    path = Path(path)
    lines = []
    for read_id, scores in records:
        lines.append(f"@{read_id}")
        lines.append("A" * len(scores))
        lines.append("+")
        lines.append(phred_string(scores))
    text = "\n".join(lines) + "\n"
    if compress:
        with gzip.open(path, "wt") as f:
            f.write(text)
    else:
        path.write_text(text)
    return path


def corrupt_gzip(path, start=12, stop=60):
    """Flip the bits of a byte range inside a gzip file's deflate body."""
    path = Path(path)
    data = bytearray(path.read_bytes())
    assert len(data) > stop
    for i in range(start, stop):
        data[i] ^= 0xFF
    path.write_bytes(bytes(data))
    return path


def many_reads(n=200):
    return [(f"r{i}", [(i * 7 + j) % 41 for j in range(30)]) for i in range(n)]


@pytest.fixture
def fastq_writer():
    return write_fastq


@pytest.fixture
def damaged_gzip(fastq_writer):
    """Write a gzipped FASTQ with enough reads to have a body, then damage it."""
    def _write(path):
        return corrupt_gzip(fastq_writer(path, many_reads()))
    return _write


@pytest.fixture
def example_fastq(tmp_path):
    """S1 reads: [10,10,10], [20], and one orphaned header."""
    return write_fastq(
        tmp_path / "S1_trimmed.fastq.gz",
        [("r1", [10, 10, 10]), ("r2", [20]), ("r3", [])],
    )


@pytest.fixture
def feature_table():
    # columns deliberately out of order
    return pd.DataFrame(
        {"S2": [0, 5], "S1": [3, 0]},
        index=pd.Index(["F1", "F2"], name="feature_id"),
    )


@pytest.fixture
def sequences():
    return pd.Series(
        {"F1": "ACGTACGT", "F2": "ACGTAC", "F3": "GGGG"},
        name="sequence",
    )


@pytest.fixture
def taxonomy():
    ranks = ["Kingdom", "Phylum", "Class", "Order", "Family", "Genus", "Species"]
    return pd.DataFrame(
        [
            ["k__Fungi", "p__Ascomycota", "c__Eurotiomycetes", "o__Eurotiales",
             "f__Aspergillaceae", "g__Penicillium", "s__Penicillium_expansum"],
            ["k__Fungi", "p__Basidiomycota", "c__Agaricomycetes", "o__Agaricales",
             "f__Agaricaceae", "g__Agaricus", None],
            ["k__Viridiplantae", "p__Chlorophyta", None, None, None, None, None],
        ],
        index=pd.Index(["F1", "F2", "F3"], name="feature_id"),
        columns=ranks,
    )


@pytest.fixture
def metadata():
    return pd.DataFrame(
        {"Site": ["north", "south"], "Depth": ["10", "20"]},
        index=pd.Index(["S1", "S2"], name="sample_id"),
    )
