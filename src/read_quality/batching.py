"""
Sample batching for paginated per-sample reports.

Batches are pure partitions of the sorted sample identifiers, so the same
input always gives the same pages across pipeline reruns.
"""

from typing import Iterable, List

import pandas as pd

from .constants import DEFAULT_BATCH_SIZE


def batch_samples(sample_ids: Iterable[str], batch_size: int = DEFAULT_BATCH_SIZE) -> List[List[str]]:
    """
    Split sample identifiers into consecutive fixed-size batches.

    Parameters
    ----------
    sample_ids : iterable of str
        Sample identifiers; duplicates are collapsed.
    batch_size : int, default 12
        Maximum number of samples per batch.

    Returns
    -------
    list of list of str
        ``ceil(N / batch_size)`` batches. Batch ``i`` (0-based) holds
        elements ``[i * batch_size, (i + 1) * batch_size)`` of the sorted
        identifiers.

    Examples
    --------
    >>> batch_samples(["S3", "S1", "S2"], batch_size=2)
    [['S1', 'S2'], ['S3']]
    """
    if batch_size < 1:
        raise ValueError(f"batch_size must be >= 1, got {batch_size}")

    ordered = sorted(set(str(s) for s in sample_ids))
    return [ordered[i:i + batch_size] for i in range(0, len(ordered), batch_size)]


def batch_table(sample_ids: Iterable[str], batch_size: int = DEFAULT_BATCH_SIZE) -> pd.DataFrame:
    """Long-format sample → 1-based batch number table."""
    rows = [
        {"sample_id": sid, "batch": i}
        for i, batch in enumerate(batch_samples(sample_ids, batch_size), start=1)
        for sid in batch
    ]
    return pd.DataFrame(rows, columns=["sample_id", "batch"])
