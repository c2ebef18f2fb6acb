"""
otu-dataset: curation of ITS amplicon OTU datasets.

This package merges the outputs of external clustering and classification
tools into one identifier-consistent dataset, filters it taxonomically and
exports the curated tables.

Modules
-------
io
    Loaders for feature tables, reference sequences, taxonomy and metadata.
assembly
    Identifier validation, alignment and canonical OTU renaming.
filters
    Taxonomic filtering (e.g. Kingdom == Fungi).
writer
    Abundance, taxonomy, FASTA, metadata, summary and length exports.
pipeline
    End-to-end curation and command-line interface.

Example
-------
>>> import otu_dataset as od
>>> ds = od.load_and_assemble("feature-table.tsv", "dna-sequences.fasta",
...                           "taxonomy.tsv", "metadata.tsv")
>>> fungi = od.filter_by_taxonomy(ds, rank="Kingdom", accepted={"Fungi"})
>>> od.ResultWriter("results").write(fungi)
"""

__version__ = "0.1.0"

# assembly
from .assembly import (
    AssembledDataset,
    IdentifierMismatchError,
    TaxonomySpec,
    assemble_dataset,
    strip_rank_prefixes,
)

# filters
from .filters import (
    EmptyResultError,
    filter_by_taxonomy,
)

# io
from .io import (
    TAXONOMY_RANKS,
    load_feature_table,
    load_reference_sequences,
    load_sample_metadata,
    load_taxonomy,
)

# pipeline
from .pipeline import (
    load_and_assemble,
    run_curation,
)

# writer
from .writer import (
    ArtifactWriteError,
    OutputPaths,
    ResultWriter,
    load_snapshot,
    sample_read_summary,
    sequence_length_distribution,
    write_fasta,
)

__all__ = [
    # assembly
    "AssembledDataset",
    "IdentifierMismatchError",
    "TaxonomySpec",
    "assemble_dataset",
    "strip_rank_prefixes",
    # filters
    "EmptyResultError",
    "filter_by_taxonomy",
    # io
    "TAXONOMY_RANKS",
    "load_feature_table",
    "load_reference_sequences",
    "load_sample_metadata",
    "load_taxonomy",
    # pipeline
    "load_and_assemble",
    "run_curation",
    # writer
    "ArtifactWriteError",
    "OutputPaths",
    "ResultWriter",
    "load_snapshot",
    "sample_read_summary",
    "sequence_length_distribution",
    "write_fasta",
]
