from __future__ import annotations

from typing import Dict

import pandas as pd


SUMMARY_COLUMNS = ["sample_id", "method", "n_reads", "mean", "median", "min", "max"]


def summarize_qscores(records_by_method: Dict[str, pd.DataFrame]) -> pd.DataFrame:
    """Per-sample Q-score summary for every estimator.

    Parameters
    ----------
    records_by_method : dict of str -> pd.DataFrame
        Record frames (``sample_id``, ``read_index``, ``value``) keyed by
        estimator name.

    Returns
    -------
    pd.DataFrame
        One row per (sample_id, method) with read count, mean, median,
        min and max score, sorted by sample then method.

    Examples
    --------
    >>> recs = pd.DataFrame({"sample_id": ["S1", "S1"], "read_index": [0, 1], "value": [10.0, 20.0]})
    >>> summarize_qscores({"mean_phred": recs})["mean"].tolist()
    [15.0]
    """
    frames = []
    for method, records in records_by_method.items():
        if records is None or len(records) == 0:
            continue
        agg = (
            records.groupby("sample_id")["value"]
            .agg(n_reads="count", mean="mean", median="median", min="min", max="max")
            .reset_index()
        )
        agg.insert(1, "method", method)
        frames.append(agg)

    if not frames:
        return pd.DataFrame(columns=SUMMARY_COLUMNS)

    out = pd.concat(frames, ignore_index=True)
    return out.sort_values(["sample_id", "method"]).reset_index(drop=True)[SUMMARY_COLUMNS]
