"""
Per-read Q-score estimators.

Two conventions are provided behind one :class:`QScoreEstimator` interface:

MeanQScore
    Arithmetic mean of the Phred values present in a read.
AggregateErrorQScore
    Phred values are converted to error probabilities, averaged, and the
    mean error rate is converted back to the Phred scale. This is the
    score reported by Oxford Nanopore basecallers.

Reads without any present quality value produce no record.
"""

import logging
from abc import ABC, abstractmethod
from dataclasses import dataclass
from typing import Dict, Type

import numpy as np
import pandas as pd

from .base import QualityMatrix
from .constants import DEFAULT_MAX_QSCORE, QSCORE_DECIMALS

logger = logging.getLogger(__name__)

RECORD_COLUMNS = ["sample_id", "read_index", "value"]


@dataclass(frozen=True)
class QScoreRecord:
    sample_id: str
    value: float


def records_to_list(records: pd.DataFrame) -> list:
    """Convert a record frame to a list of :class:`QScoreRecord`."""
    return [
        QScoreRecord(sample_id=s, value=float(v))
        for s, v in zip(records["sample_id"], records["value"])
    ]


class QScoreEstimator(ABC):
    """
    Base class for per-read quality summaries.

    Subclasses implement :meth:`_score` on the rows that have at least one
    present position. The base class keeps file order, drops empty reads
    and tags every record with the sample identifier.
    """

    name: str = ""

    @abstractmethod
    def _score(self, values: np.ndarray, n_present: np.ndarray) -> np.ndarray:
        """
        Score non-empty reads.

        Parameters
        ----------
        values : np.ndarray
            (n_reads, max_length) quality values, NaN where absent.
        n_present : np.ndarray
            Number of present positions per read, all > 0.
        """
        pass

    def estimate(self, matrix: QualityMatrix) -> pd.DataFrame:
        """
        Score every read of a matrix.

        Returns
        -------
        pd.DataFrame
            Columns ``sample_id``, ``read_index`` (row in the source file)
            and ``value``; one row per read with at least one present
            quality value, in file order.
        """
        if matrix.n_reads == 0:
            return pd.DataFrame(
                {
                    "sample_id": pd.Series(dtype=str),
                    "read_index": pd.Series(dtype=int),
                    "value": pd.Series(dtype=float),
                }
            )

        n_present = matrix.present_counts()
        keep = n_present > 0
        n_empty = int((~keep).sum())
        if n_empty:
            logger.debug(f"{matrix.sample_id}: {n_empty} reads without quality values skipped")

        scores = self._score(matrix.values[keep], n_present[keep])

        return pd.DataFrame(
            {
                "sample_id": matrix.sample_id,
                "read_index": np.flatnonzero(keep),
                "value": np.asarray(scores, dtype=float),
            },
            columns=RECORD_COLUMNS,
        )

    def __repr__(self) -> str:
        return f"{type(self).__name__}()"


class MeanQScore(QScoreEstimator):
    """Arithmetic mean of present Phred values."""

    name = "mean_phred"

    def _score(self, values: np.ndarray, n_present: np.ndarray) -> np.ndarray:
        return np.nansum(values, axis=1) / n_present


class AggregateErrorQScore(QScoreEstimator):
    """
    Phred score of the mean per-base error probability.

    For quality values q_1..q_L the expected error count is
    E = sum(10^(-q_i/10)) and the score is -10 * log10(E / L).

    Parameters
    ----------
    max_qscore : float, default 60.0
        Score reported when E is zero, where the formula has no finite value.

    Notes
    -----
    Scores are rounded to ``QSCORE_DECIMALS`` (10) decimal places, so a read
    whose values are all q scores exactly q.
    """

    name = "ont"

    def __init__(self, max_qscore: float = DEFAULT_MAX_QSCORE):
        self.max_qscore = float(max_qscore)

    def _score(self, values: np.ndarray, n_present: np.ndarray) -> np.ndarray:
        expected_errors = np.nansum(np.power(10.0, -values / 10.0), axis=1)
        zero_error = expected_errors == 0

        with np.errstate(divide="ignore"):
            scores = np.round(-10.0 * np.log10(expected_errors / n_present), QSCORE_DECIMALS)

        if zero_error.any():
            logger.info(f"{int(zero_error.sum())} reads with zero expected errors set to Q{self.max_qscore:g}")
            scores[zero_error] = self.max_qscore

        return scores

    def __repr__(self) -> str:
        return f"{type(self).__name__}(max_qscore={self.max_qscore:g})"


ESTIMATORS: Dict[str, Type[QScoreEstimator]] = {
    MeanQScore.name: MeanQScore,
    AggregateErrorQScore.name: AggregateErrorQScore,
}


def get_estimator(name: str, **kwargs) -> QScoreEstimator:
    """Instantiate an estimator by name ('mean_phred' or 'ont')."""
    if name not in ESTIMATORS:
        raise ValueError(f"Unknown Q-score estimator '{name}'. Choose from {sorted(ESTIMATORS)}")
    return ESTIMATORS[name](**kwargs)


def mean_qscore(matrix: QualityMatrix) -> pd.DataFrame:
    """Arithmetic-mean Phred score per read."""
    return MeanQScore().estimate(matrix)


def aggregate_error_qscore(matrix: QualityMatrix, max_qscore: float = DEFAULT_MAX_QSCORE) -> pd.DataFrame:
    """Error-probability aggregated Q-score per read."""
    return AggregateErrorQScore(max_qscore=max_qscore).estimate(matrix)
