"""
FASTQ repair and single-end import manifest.

Demultiplexed FASTQ files occasionally contain orphaned headers: records
whose sequence and quality lines are empty after trimming. These records
break the QIIME 2 importer, so they are removed before the manifest is
written. Only files that actually contain such records are rewritten.
"""

import argparse
import csv
import gzip
import logging
from os import PathLike
from pathlib import Path
from typing import Optional, Tuple, Union

import pandas as pd

from .constants import MANIFEST_DIRECTION, MANIFEST_HEADER

logger = logging.getLogger(__name__)

FIXED_SUFFIX = "_fixed.fastq.gz"


def _iter_records(handle):
    """Yield (header, seq, plus, qual) tuples, stripping line endings."""
    while True:
        header = handle.readline()
        if not header:
            return
        seq = handle.readline().rstrip("\r\n")
        plus = handle.readline().rstrip("\r\n")
        qual = handle.readline().rstrip("\r\n")
        yield header.rstrip("\r\n"), seq, plus, qual


def count_orphaned_headers(fastq_fn: Union[PathLike, str]) -> int:
    """Number of records with an empty sequence line."""
    with gzip.open(fastq_fn, "rt") as f:
        return sum(1 for _, seq, _, _ in _iter_records(f) if seq == "")


def repair_fastq(
    fastq_fn: Union[PathLike, str],
    out_fn: Optional[Union[PathLike, str]] = None,
) -> Tuple[Path, int]:
    """
    Drop records with an empty sequence or quality line.

    Parameters
    ----------
    fastq_fn : PathLike or str
        Gzipped FASTQ file.
    out_fn : PathLike or str, optional
        Output path. Defaults to ``<name>_fixed.fastq.gz`` next to the input.

    Returns
    -------
    out_fn : Path
        Repaired file. Removed headers are listed in ``<out_fn>`` with the
        ``.gz`` suffix replaced by ``.log``.
    n_removed : int
        Number of records dropped.
    """
    fastq_fn = Path(fastq_fn)
    if out_fn is None:
        out_fn = fastq_fn.with_name(fastq_fn.name[: -len(".fastq.gz")] + FIXED_SUFFIX)
    out_fn = Path(out_fn)
    log_fn = out_fn.with_suffix(".log") if out_fn.suffix == ".gz" else out_fn.with_name(out_fn.name + ".log")

    n_removed = 0
    with gzip.open(fastq_fn, "rt") as src, gzip.open(out_fn, "wt") as dst, open(log_fn, "w") as log:
        log.write(f"Removed headers from {fastq_fn}\n")
        for header, seq, plus, qual in _iter_records(src):
            if seq != "" and qual != "":
                dst.write(f"{header}\n{seq}\n{plus}\n{qual}\n")
            else:
                log.write(f"{header}\n")
                n_removed += 1

    logger.info(f"{fastq_fn.name}: removed {n_removed} records with empty sequences")
    return out_fn, n_removed


def build_manifest(
    input_dir: Union[PathLike, str],
    manifest_fn: Optional[Union[PathLike, str]] = None,
) -> pd.DataFrame:
    """
    Repair FASTQ files where needed and write a single-end manifest.

    The sample id is the file name up to the first underscore. Repaired
    files replace the originals in the manifest.

    Parameters
    ----------
    input_dir : PathLike or str
        Directory holding ``*.fastq.gz`` files.
    manifest_fn : PathLike or str, optional
        Defaults to ``<input_dir>/manifest.csv``.

    Returns
    -------
    pd.DataFrame
        Manifest rows.
    """
    input_dir = Path(input_dir)
    if not input_dir.is_dir():
        raise FileNotFoundError(f"Input directory does not exist: {input_dir}")
    manifest_fn = Path(manifest_fn) if manifest_fn is not None else input_dir / "manifest.csv"

    logger.info(f"Processing FASTQ files in: {input_dir}")

    rows = []
    for fastq_fn in sorted(input_dir.glob("*.fastq.gz")):
        if fastq_fn.name.endswith(FIXED_SUFFIX):
            continue

        sample_id = fastq_fn.name.split("_", 1)[0]
        n_bad = count_orphaned_headers(fastq_fn)

        if n_bad > 0:
            logger.warning(f"Fixing: {fastq_fn.name} (found {n_bad} empty sequences)")
            fixed_fn, _ = repair_fastq(fastq_fn)
            abs_path = fixed_fn.resolve()
        else:
            logger.info(f"No fixes needed: {fastq_fn.name}")
            abs_path = fastq_fn.resolve()

        rows.append(
            {
                MANIFEST_HEADER[0]: sample_id,
                MANIFEST_HEADER[1]: str(abs_path),
                MANIFEST_HEADER[2]: MANIFEST_DIRECTION,
            }
        )

    manifest = pd.DataFrame(rows, columns=list(MANIFEST_HEADER))
    manifest.to_csv(manifest_fn, index=False, quoting=csv.QUOTE_MINIMAL)

    logger.info(f"Manifest file created: {manifest_fn} ({len(manifest)} samples)")
    return manifest


def main():
    """Command-line interface for FASTQ repair and manifest creation."""
    parser = argparse.ArgumentParser(
        description='Remove orphaned FASTQ headers and write a single-end import manifest'
    )
    parser.add_argument(
        '-i', '--input_dir',
        default='.',
        help='Directory containing *.fastq.gz files',
    )
    parser.add_argument(
        '--manifest_fn',
        default=None,
        help='Manifest output path (default: <input_dir>/manifest.csv)',
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

    build_manifest(args.input_dir, manifest_fn=args.manifest_fn)


if __name__ == '__main__':
    main()
