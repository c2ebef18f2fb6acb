"""
Read Quality - per-read Q-scores for trimmed ITS amplicon reads.

This module recomputes per-read quality estimates from the basecall quality
strings of trimmed FASTQ files and prepares them for per-sample reporting.

Main Classes
------------
ReadQScoreFASTQ
    Score every trimmed FASTQ file in a directory (multiprocessing).

QualityMatrixReader
    Parse one FASTQ file into a reads x positions quality matrix.

MeanQScore, AggregateErrorQScore
    The two Q-score conventions (mean Phred, ONT-style aggregated error).

Functions
---------
batch_samples
    Fixed-size, deterministic sample batches for report pages.
summarize_qscores
    Per-sample summary of scored reads.
build_manifest
    Repair orphaned FASTQ headers and write a single-end import manifest.

Examples
--------
>>> from read_quality import ReadQScoreFASTQ
>>> runner = ReadQScoreFASTQ(fastq_path='/path/to/trimmed')
>>> runner.read()
>>> runner.serialize('/path/to/results')
>>> runner.summary().head()
"""

from .base import (
    FormatError,
    QualityMatrix,
    QualityMatrixReader,
    read_quality_matrix,
    sample_id_from_filename,
)
from .batching import batch_samples, batch_table
from .constants import (
    DEFAULT_BATCH_SIZE,
    DEFAULT_MAX_QSCORE,
    PHRED_OFFSET,
    QSCORE_DECIMALS,
)
from .estimators import (
    ESTIMATORS,
    AggregateErrorQScore,
    MeanQScore,
    QScoreEstimator,
    QScoreRecord,
    aggregate_error_qscore,
    get_estimator,
    mean_qscore,
    records_to_list,
)
from .manifest import build_manifest, count_orphaned_headers, repair_fastq
from .qscores import ReadQScoreFASTQ
from .summary import summarize_qscores

__all__ = [
    # Main classes
    "ReadQScoreFASTQ",
    "QualityMatrixReader",
    "QualityMatrix",
    "FormatError",
    # Estimators
    "QScoreEstimator",
    "QScoreRecord",
    "MeanQScore",
    "AggregateErrorQScore",
    "ESTIMATORS",
    "get_estimator",
    # Convenience functions
    "read_quality_matrix",
    "sample_id_from_filename",
    "mean_qscore",
    "aggregate_error_qscore",
    "records_to_list",
    "batch_samples",
    "batch_table",
    "summarize_qscores",
    "build_manifest",
    "count_orphaned_headers",
    "repair_fastq",
    # Constants
    "DEFAULT_BATCH_SIZE",
    "DEFAULT_MAX_QSCORE",
    "PHRED_OFFSET",
    "QSCORE_DECIMALS",
]

__version__ = "0.1.0"
