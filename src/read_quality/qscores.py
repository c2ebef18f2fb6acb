"""
Q-score extraction across a directory of trimmed FASTQ files.

Reads every trimmed FASTQ file in parallel, scores each read with the
configured estimators, and merges the per-file records. A file that fails to
parse is reported in ``failures`` and does not stop the other files.
"""

import argparse
import logging
import os
from multiprocessing import Pool, cpu_count
from os import PathLike
from pathlib import Path
from typing import Dict, List, Optional, Sequence, Tuple, Union

import pandas as pd

from .base import FormatError, QualityMatrixReader, sample_id_from_filename
from .batching import batch_samples, batch_table
from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_QSCORE,
    PHRED_OFFSET,
    TRIMMED_FASTQ_GLOBS,
)
from .estimators import (
    ESTIMATORS,
    AggregateErrorQScore,
    MeanQScore,
    QScoreEstimator,
)
from .summary import summarize_qscores

logger = logging.getLogger(__name__)

FAILURE_COLUMNS = ["file", "sample_id", "error"]


class ReadQScoreFASTQ:
    """
    Per-read Q-scores for all trimmed FASTQ files in a directory.

    Parameters
    ----------
    fastq_path : PathLike or str
        Directory containing ``<sample>_trimmed.fastq.gz`` or
        ``<sample>_full_trimmed.fastq.gz`` files.
    estimators : sequence of QScoreEstimator, optional
        Estimators to apply. Defaults to mean Phred and the aggregated
        error (ONT) score.
    max_qscore : float, default 60.0
        Cap for zero-expected-error reads, used when ``estimators`` is None.
    batch_size : int, default 12
        Samples per report batch.
    num_cores : int, optional
        Worker processes. Defaults to (available cores - 2). With 1 the
        files are processed in-process.
    phred_offset : int, default 33
        Quality encoding offset.
    file_globs : sequence of str, optional
        Glob patterns used to find read files.

    Attributes
    ----------
    records : dict of str -> pd.DataFrame
        Merged records per estimator name after calling `read()`.
    failures : pd.DataFrame
        Files that could not be processed, with the error message.

    Examples
    --------
    >>> runner = ReadQScoreFASTQ(fastq_path='/path/to/trimmed')
    >>> runner.read()
    >>> runner.serialize('/path/to/results')
    """

    def __init__(
        self,
        fastq_path: Union[PathLike, str],
        estimators: Optional[Sequence[QScoreEstimator]] = None,
        max_qscore: float = DEFAULT_MAX_QSCORE,
        batch_size: int = DEFAULT_BATCH_SIZE,
        num_cores: Optional[int] = None,
        phred_offset: int = PHRED_OFFSET,
        file_globs: Sequence[str] = TRIMMED_FASTQ_GLOBS,
    ):
        self._fastq_path = Path(fastq_path)
        self._batch_size = batch_size
        self._phred_offset = phred_offset
        self._file_globs = tuple(file_globs)

        if estimators is None:
            estimators = [MeanQScore(), AggregateErrorQScore(max_qscore=max_qscore)]
        self._estimators = list(estimators)

        names = [e.name for e in self._estimators]
        if len(set(names)) != len(names):
            raise ValueError(f"Estimator names must be unique, got {names}")

        if num_cores is None:
            if hasattr(os, 'sched_getaffinity'):
                self._num_cores = max(1, len(os.sched_getaffinity(0)) - 2)
            else:
                self._num_cores = max(1, cpu_count() - 2)
        else:
            self._num_cores = max(1, num_cores)
        logger.info(f"Using {self._num_cores} cores for parallel processing")

        self._find_fastq_files()

        self.records: Dict[str, pd.DataFrame] = {}
        self.failures = pd.DataFrame(columns=FAILURE_COLUMNS)

    def _find_fastq_files(self) -> None:
        """Locate trimmed FASTQ files in the specified directory."""
        if not self._fastq_path.exists():
            raise FileNotFoundError(f"FASTQ path does not exist: {self._fastq_path}")

        found = set()
        for pattern in self._file_globs:
            found.update(str(f) for f in self._fastq_path.glob(pattern))
        self._file_list = sorted(found)

        if not self._file_list:
            raise FileNotFoundError(f"No trimmed FASTQ files found in {self._fastq_path}")

        logger.info(f"Found {len(self._file_list)} trimmed FASTQ files")

        samples = [sample_id_from_filename(f) for f in self._file_list]
        duplicated = sorted({s for s in samples if samples.count(s) > 1})
        if duplicated:
            raise ValueError(f"Several read files map to the same sample id: {duplicated}")

    @property
    def sample_ids(self) -> List[str]:
        """Sample identifiers of all located files, sorted."""
        return sorted(sample_id_from_filename(f) for f in self._file_list)

    @staticmethod
    def _score_file(
        fastq_fn: str,
        estimators: List[QScoreEstimator],
        phred_offset: int,
    ) -> Tuple[str, Optional[Dict[str, pd.DataFrame]], Optional[str]]:
        """
        Score a single FASTQ file with every estimator.

        This is a static method to enable multiprocessing.
        """
        sample = sample_id_from_filename(fastq_fn)
        try:
            matrix = QualityMatrixReader(fastq_fn, phred_offset=phred_offset).read()
        except FormatError as e:
            logger.error(f"Error processing {fastq_fn}: {e}")
            return sample, None, str(e)

        records = {est.name: est.estimate(matrix) for est in estimators}
        logger.info(f"{sample}: Complete - {matrix.n_reads:,} reads")
        return sample, records, None

    def read(self) -> None:
        """
        Score all FASTQ files and merge the records.

        Files are scored in parallel; per-file records stay in read order and
        the merged frames are concatenated in sorted file order.
        """
        arguments = [(fn, self._estimators, self._phred_offset) for fn in self._file_list]

        logger.info(f"Processing {len(arguments)} FASTQ files...")

        if self._num_cores == 1:
            results = [self._score_file(*args) for args in arguments]
        else:
            with Pool(processes=self._num_cores) as pool:
                results = pool.starmap(self._score_file, arguments)

        failures = []
        per_method: Dict[str, List[pd.DataFrame]] = {e.name: [] for e in self._estimators}
        for fastq_fn, (sample, records, error) in zip(self._file_list, results):
            if error is not None:
                failures.append({'file': fastq_fn, 'sample_id': sample, 'error': error})
                continue
            for name, frame in records.items():
                per_method[name].append(frame)

        self.failures = pd.DataFrame(failures, columns=FAILURE_COLUMNS)
        if failures:
            logger.warning(f"{len(failures)} of {len(self._file_list)} files could not be processed")

        logger.info("Merging records from all samples...")
        self.records = {
            name: (
                pd.concat(frames, ignore_index=True)
                if frames
                else pd.DataFrame(columns=["sample_id", "read_index", "value"])
            )
            for name, frames in per_method.items()
        }

        for name, frame in self.records.items():
            logger.info(f"{name}: {len(frame):,} scored reads")

    def summary(self) -> pd.DataFrame:
        """Per-sample Q-score summary of the merged records."""
        return summarize_qscores(self.records)

    def batches(self) -> List[List[str]]:
        """Successfully scored samples split into report batches."""
        failed = set(self.failures['sample_id'])
        return batch_samples(
            [s for s in self.sample_ids if s not in failed],
            batch_size=self._batch_size,
        )

    def serialize(self, results_path: Union[PathLike, str]) -> None:
        """
        Save records, summaries and failures to disk.

        Writes ``qscores_<method>.pkl`` per estimator, ``qscore_summary.tsv``,
        ``sample_batches.tsv`` and ``qscore_failures.tsv``.

        Parameters
        ----------
        results_path : PathLike or str
            Directory to save results.
        """
        results_path = Path(results_path)
        results_path.mkdir(parents=True, exist_ok=True)

        for name, frame in self.records.items():
            frame.to_pickle(results_path / f"qscores_{name}.pkl")

        self.summary().to_csv(results_path / 'qscore_summary.tsv', sep='\t', index=False)

        failed = set(self.failures['sample_id'])
        batch_table(
            [s for s in self.sample_ids if s not in failed],
            batch_size=self._batch_size,
        ).to_csv(results_path / 'sample_batches.tsv', sep='\t', index=False)

        self.failures.to_csv(results_path / 'qscore_failures.tsv', sep='\t', index=False)

        logger.info(f"Results saved to {results_path}")

    def print_summary(self) -> None:
        """Print a summary of the scored data."""
        print(f"FASTQ Path: {self._fastq_path}")
        print(f"Read files: {len(self._file_list)}")
        print(f"Failed files: {len(self.failures)}")
        for name, frame in self.records.items():
            print(f"{name}: {len(frame):,} scored reads")
        print(f"Report batches: {len(self.batches())}")


def main():
    """Command-line interface for ReadQScoreFASTQ."""
    parser = argparse.ArgumentParser(
        description='Compute per-read Q-scores from trimmed FASTQ files'
    )

    parser.add_argument(
        '-f', '--fastq_path',
        required=True,
        help='Path to directory containing trimmed FASTQ files',
    )
    parser.add_argument(
        '--results_path',
        required=True,
        help='Path to output directory',
    )
    parser.add_argument(
        '--methods',
        nargs='+',
        choices=sorted(ESTIMATORS),
        default=sorted(ESTIMATORS),
        help='Q-score conventions to compute',
    )
    parser.add_argument(
        '--max_qscore',
        type=float,
        default=DEFAULT_MAX_QSCORE,
        help='Score assigned to reads with zero expected errors',
    )
    parser.add_argument(
        '--batch_size',
        type=int,
        default=DEFAULT_BATCH_SIZE,
        help='Samples per report batch',
    )
    parser.add_argument(
        '--num_cores',
        type=int,
        default=None,
        help='Number of CPU cores',
    )
    parser.add_argument(
        '-d', '--debug',
        action='store_true',
        help='Enable debug logging',
    )

    args = parser.parse_args()

    logging.basicConfig(
        level=logging.DEBUG if args.debug else logging.INFO,
        format='%(asctime)s - %(name)s - %(levelname)s - %(message)s',
    )

    estimators = []
    for name in args.methods:
        if name == AggregateErrorQScore.name:
            estimators.append(AggregateErrorQScore(max_qscore=args.max_qscore))
        else:
            estimators.append(ESTIMATORS[name]())

    runner = ReadQScoreFASTQ(
        fastq_path=args.fastq_path,
        estimators=estimators,
        batch_size=args.batch_size,
        num_cores=args.num_cores,
    )

    runner.read()
    runner.serialize(args.results_path)
    runner.print_summary()


if __name__ == '__main__':
    main()
