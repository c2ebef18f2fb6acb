"""
Quality matrix reader for trimmed FASTQ files.

Parses the per-base quality strings of a (optionally gzipped) FASTQ file
into a reads x positions matrix. Reads shorter than the longest read are
padded with NaN so that absent positions never take part in per-read
statistics.
"""

import gzip
import logging
import re
import zlib
from dataclasses import dataclass, field
from os import PathLike
from pathlib import Path
from typing import List, Union

import numpy as np

from .constants import FASTQ_EXTENSIONS, PHRED_OFFSET, TRIMMED_FASTQ_PATTERN

logger = logging.getLogger(__name__)

_TRIMMED_RE = re.compile(TRIMMED_FASTQ_PATTERN)


class FormatError(Exception):
    """Raised when a read file cannot be parsed as FASTQ."""
    pass


@dataclass
class QualityMatrix:
    """
    Per-base quality values of every read in one sample.

    Attributes
    ----------
    sample_id : str
        Sample the reads belong to.
    values : np.ndarray
        Float array of shape (n_reads, max_read_length). Positions beyond a
        read's length are NaN.
    read_ids : list of str
        Read identifiers (header without the leading '@'), in file order.
    """

    sample_id: str
    values: np.ndarray
    read_ids: List[str] = field(default_factory=list)

    @property
    def n_reads(self) -> int:
        return int(self.values.shape[0])

    @property
    def max_length(self) -> int:
        return int(self.values.shape[1]) if self.values.ndim == 2 else 0

    def present_counts(self) -> np.ndarray:
        """Number of non-absent positions per read."""
        return (~np.isnan(self.values)).sum(axis=1)

    @classmethod
    def from_rows(cls, sample_id: str, rows, read_ids: List[str] = None) -> "QualityMatrix":
        """
        Build a matrix from ragged rows of quality values.

        ``None`` entries are treated as absent positions.

        Examples
        --------
        >>> m = QualityMatrix.from_rows("S1", [[10, 10, 10], [20, None, None]])
        >>> m.values.shape
        (2, 3)
        """
        rows = [list(r) for r in rows]
        width = max((len(r) for r in rows), default=0)
        values = np.full((len(rows), width), np.nan, dtype=float)
        for i, row in enumerate(rows):
            for j, q in enumerate(row):
                if q is not None:
                    values[i, j] = float(q)
        if read_ids is None:
            read_ids = [str(i) for i in range(len(rows))]
        return cls(sample_id=sample_id, values=values, read_ids=list(read_ids))


def sample_id_from_filename(path: Union[PathLike, str]) -> str:
    """
    Derive the sample identifier from a trimmed read file name.

    ``A12_trimmed.fastq.gz`` and ``A12_full_trimmed.fastq.gz`` both give
    ``A12``. Names not following the convention fall back to the file name
    with its FASTQ extension removed.
    """
    name = Path(path).name
    m = _TRIMMED_RE.match(name)
    if m:
        return m.group("sample_id")

    for ext in FASTQ_EXTENSIONS:
        if name.endswith(ext):
            logger.warning(f"{name} does not follow the *_trimmed naming convention")
            return name[: -len(ext)]

    logger.warning(f"{name} has no FASTQ extension; using full file name as sample id")
    return name


class QualityMatrixReader:
    """
    Read a FASTQ file into a :class:`QualityMatrix`.

    Parameters
    ----------
    path : PathLike or str
        FASTQ file, gzip-compressed if the name ends in ``.gz``.
    phred_offset : int, default 33
        ASCII offset of the quality encoding.
    sample_id : str, optional
        Override the sample identifier derived from the file name.

    Examples
    --------
    >>> reader = QualityMatrixReader("/path/to/S1_trimmed.fastq.gz")
    >>> matrix = reader.read()
    >>> matrix.sample_id
    'S1'
    """

    def __init__(
        self,
        path: Union[PathLike, str],
        phred_offset: int = PHRED_OFFSET,
        sample_id: str = None,
    ):
        self._path = Path(path)
        self._phred_offset = phred_offset
        self.sample_id = sample_id or sample_id_from_filename(self._path)

    def _open(self):
        if self._path.suffix == ".gz":
            return gzip.open(self._path, "rt")
        return open(self._path, "r")

    def _decode(self, qual: str, line_num: int) -> np.ndarray:
        scores = np.frombuffer(qual.encode("ascii"), dtype=np.uint8).astype(int) - self._phred_offset
        if scores.size and scores.min() < 0:
            raise FormatError(
                f"{self._path}: quality below offset {self._phred_offset} at line {line_num}"
            )
        return scores

    def read(self) -> QualityMatrix:
        """
        Parse every record of the file.

        Raises
        ------
        FormatError
            If the file is not valid FASTQ, or its gzip stream is damaged.
            Blank lines between or after records are skipped.
        """
        read_ids: List[str] = []
        rows: List[np.ndarray] = []

        line_num = 0
        try:
            with self._open() as f:
                while True:
                    header = f.readline()
                    if not header:
                        break
                    line_num += 1
                    # blank separator or trailing lines
                    if not header.strip():
                        continue
                    seq = f.readline()
                    plus = f.readline()
                    qual = f.readline()

                    if not seq or not plus or not qual:
                        raise FormatError(f"{self._path}: truncated record at line {line_num}")

                    header = header.rstrip("\r\n")
                    seq = seq.rstrip("\r\n")
                    plus = plus.rstrip("\r\n")
                    qual = qual.rstrip("\r\n")

                    if not header.startswith("@"):
                        raise FormatError(f"{self._path}: expected '@' header at line {line_num}")
                    if not plus.startswith("+"):
                        raise FormatError(f"{self._path}: expected '+' separator at line {line_num + 2}")
                    if len(seq) != len(qual):
                        raise FormatError(
                            f"{self._path}: sequence and quality lengths differ at line {line_num}"
                        )

                    read_ids.append((header[1:].split() or [""])[0])
                    rows.append(self._decode(qual, line_num + 3))
                    line_num += 3
        except (OSError, EOFError, UnicodeError, zlib.error) as e:
            raise FormatError(f"{self._path}: {e}") from e

        width = max((len(r) for r in rows), default=0)
        values = np.full((len(rows), width), np.nan, dtype=float)
        for i, row in enumerate(rows):
            values[i, : len(row)] = row

        logger.debug(f"{self.sample_id}: {len(rows):,} reads, max length {width}")
        return QualityMatrix(sample_id=self.sample_id, values=values, read_ids=read_ids)


def read_quality_matrix(path: Union[PathLike, str], phred_offset: int = PHRED_OFFSET) -> QualityMatrix:
    """Convenience function to read one FASTQ file into a QualityMatrix."""
    return QualityMatrixReader(path, phred_offset=phred_offset).read()
