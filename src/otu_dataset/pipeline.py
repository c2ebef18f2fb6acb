"""
Curation pipeline: load → assemble → filter → write.

Assembly runs to completion before anything is written, so an identifier
mismatch never leaves a partial set of artifacts behind.
"""
from __future__ import annotations

import argparse
import logging
from os import PathLike
from pathlib import Path
from typing import Dict, Iterable, Optional, Union

from .assembly import AssembledDataset, TaxonomySpec, assemble_dataset
from .filters import filter_by_taxonomy
from .io import (
    load_feature_table,
    load_reference_sequences,
    load_sample_metadata,
    load_taxonomy,
)
from .writer import ResultWriter

logger = logging.getLogger(__name__)


def load_and_assemble(
    feature_table_fn: Union[PathLike, str],
    sequences_fn: Union[PathLike, str],
    taxonomy_fn: Union[PathLike, str],
    metadata_fn: Union[PathLike, str],
    spec: TaxonomySpec = TaxonomySpec(),
) -> AssembledDataset:
    """Load the four external tables and assemble them."""
    for fn in (feature_table_fn, sequences_fn, taxonomy_fn, metadata_fn):
        if not Path(fn).exists():
            raise FileNotFoundError(f"Input not found: {fn}")

    counts = load_feature_table(feature_table_fn)
    logger.info(f"Loaded feature table: {counts.shape[0]} features x {counts.shape[1]} samples")

    seqs = load_reference_sequences(sequences_fn)
    logger.info(f"Loaded {len(seqs)} reference sequences")

    tax = load_taxonomy(taxonomy_fn, ranks=spec.ranks)
    logger.info(f"Loaded taxonomy for {len(tax)} features")

    smeta = load_sample_metadata(metadata_fn)
    logger.info(f"Loaded metadata for {len(smeta)} samples, columns: {list(smeta.columns)}")

    return assemble_dataset(counts, seqs, tax, smeta, spec=spec)


def run_curation(
    feature_table_fn: Union[PathLike, str],
    sequences_fn: Union[PathLike, str],
    taxonomy_fn: Union[PathLike, str],
    metadata_fn: Union[PathLike, str],
    results_path: Union[PathLike, str],
    rank: str = "Kingdom",
    accepted: Iterable[str] = ("Fungi",),
    label_column: Optional[str] = None,
    spec: TaxonomySpec = TaxonomySpec(),
) -> Dict[str, Path]:
    """
    Assemble, filter and write a curated OTU dataset.

    Returns
    -------
    dict of str -> Path
        Written artifacts, see :class:`~otu_dataset.writer.ResultWriter`.
    """
    dataset = load_and_assemble(feature_table_fn, sequences_fn, taxonomy_fn, metadata_fn, spec=spec)
    filtered = filter_by_taxonomy(dataset, rank=rank, accepted=accepted)
    return ResultWriter(results_path, label_column=label_column).write(filtered)


def main():
    """Command-line interface for the curation pipeline."""
    parser = argparse.ArgumentParser(
        description='Assemble, filter and export an OTU dataset from clustering and classifier outputs'
    )

    parser.add_argument(
        '--feature_table_fn',
        required=True,
        help='Tab-delimited feature table (features x samples)',
    )
    parser.add_argument(
        '--sequences_fn',
        required=True,
        help='FASTA of representative sequences',
    )
    parser.add_argument(
        '--taxonomy_fn',
        required=True,
        help='Tab-delimited taxonomy assignments (Feature ID, Taxon)',
    )
    parser.add_argument(
        '--metadata_fn',
        required=True,
        help='Tab-delimited sample metadata, sample id in the first column',
    )
    parser.add_argument(
        '--results_path',
        required=True,
        help='Path to output directory',
    )
    parser.add_argument(
        '--rank',
        default='Kingdom',
        help='Taxonomic rank to filter on',
    )
    parser.add_argument(
        '--accepted',
        nargs='+',
        default=['Fungi'],
        help='Accepted values at the filter rank',
    )
    parser.add_argument(
        '--label_column',
        default=None,
        help='Metadata column used as sample label in the read summary',
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

    written = run_curation(
        feature_table_fn=args.feature_table_fn,
        sequences_fn=args.sequences_fn,
        taxonomy_fn=args.taxonomy_fn,
        metadata_fn=args.metadata_fn,
        results_path=args.results_path,
        rank=args.rank,
        accepted=args.accepted,
        label_column=args.label_column,
    )
    for name, path in written.items():
        print(f"{name}: {path}")


if __name__ == '__main__':
    main()
