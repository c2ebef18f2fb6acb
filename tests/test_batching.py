"""Tests for deterministic sample batching."""
import math

import pytest

from read_quality import batch_samples, batch_table


@pytest.mark.parametrize("n, size", [(0, 12), (1, 12), (12, 12), (13, 12), (25, 12), (7, 3), (5, 1)])
def test_batch_counts_and_order(n, size):
    ids = [f"S{i:03d}" for i in range(n)][::-1]
    batches = batch_samples(ids, batch_size=size)

    assert len(batches) == math.ceil(n / size)
    assert all(1 <= len(b) <= size for b in batches)
    assert [s for b in batches for s in b] == sorted(ids)


def test_batch_boundaries():
    ids = [f"S{i:02d}" for i in range(1, 27)]
    batches = batch_samples(ids, batch_size=12)
    assert batches[0] == ids[0:12]
    assert batches[1] == ids[12:24]
    assert batches[2] == ids[24:26]


def test_batches_are_deterministic_and_deduplicated():
    ids = ["b", "a", "c", "a"]
    assert batch_samples(ids, 2) == batch_samples(set(ids), 2) == [["a", "b"], ["c"]]


def test_invalid_batch_size():
    with pytest.raises(ValueError):
        batch_samples(["a"], batch_size=0)


def test_batch_table():
    table = batch_table(["S3", "S1", "S2"], batch_size=2)
    assert table["sample_id"].tolist() == ["S1", "S2", "S3"]
    assert table["batch"].tolist() == [1, 1, 2]
