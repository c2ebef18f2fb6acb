"""
Serialization of curated OTU datasets.

Each artifact is written independently: a failure in one is logged and
collected, the others are still written, and :class:`ArtifactWriteError`
is raised once every artifact has been attempted.
"""
from __future__ import annotations

import logging
from dataclasses import dataclass
from os import PathLike
from pathlib import Path
from typing import Callable, Dict, Optional, Union

import pandas as pd
from Bio import SeqIO
from Bio.Seq import Seq
from Bio.SeqRecord import SeqRecord

from .assembly import AssembledDataset

logger = logging.getLogger(__name__)


class ArtifactWriteError(RuntimeError):
    """Raised after writing when one or more artifacts could not be written."""

    def __init__(self, failures: Dict[str, str]):
        self.failures = dict(failures)
        super().__init__(f"Failed to write {len(failures)} artifact(s): {sorted(failures)}")


@dataclass(frozen=True)
class OutputPaths:
    abundance: str = "otu_table.tsv"
    taxonomy: str = "taxonomy_table.tsv"
    sequences: str = "rep_seqs.fasta"
    metadata: str = "sample_metadata.tsv"
    summary: str = "read_summary.tsv"
    lengths: str = "sequence_lengths.tsv"
    id_map: str = "feature_id_map.tsv"
    snapshot: str = "dataset.pkl"


def sample_read_summary(dataset: AssembledDataset, label_column: Optional[str] = None) -> pd.DataFrame:
    """Total reads per sample (column sums of the abundance table).

    ``label`` is taken from ``label_column`` of the metadata when present,
    otherwise it is the sample id.
    """
    totals = dataset.counts.sum(axis=0).astype(int)
    if label_column is not None and label_column in dataset.metadata.columns:
        labels = dataset.metadata.loc[totals.index, label_column].astype(str).to_numpy()
    else:
        labels = totals.index.to_numpy()
    return pd.DataFrame(
        {
            "sample_id": totals.index.to_numpy(),
            "label": labels,
            "total_reads": totals.to_numpy(),
        }
    )


def sequence_length_distribution(dataset: AssembledDataset, category: str = "OTU") -> pd.DataFrame:
    """Representative sequence length per OTU with a constant category label."""
    return pd.DataFrame(
        {
            "OTU_ID": dataset.sequences.index.to_numpy(),
            "length": dataset.sequences.str.len().astype(int).to_numpy(),
            "category": category,
        },
        columns=["OTU_ID", "length", "category"],
    )


def write_fasta(sequences: pd.Series, fasta: Union[PathLike, str]) -> int:
    """Write sequences as FASTA in Series order; returns the record count."""
    records = (
        SeqRecord(Seq(str(seq)), id=str(otu_id), description="")
        for otu_id, seq in sequences.items()
    )
    with open(fasta, "w") as handle:
        return SeqIO.write(records, handle, "fasta")


def load_snapshot(path: Union[PathLike, str]) -> AssembledDataset:
    """Restore a dataset written by :meth:`ResultWriter.write`."""
    dataset = pd.read_pickle(path)
    if not isinstance(dataset, AssembledDataset):
        raise TypeError(f"{path} does not contain an AssembledDataset")
    return dataset


class ResultWriter:
    """
    Write the curated dataset and its derived tables.

    OTU identifiers are written as assigned at assembly. After taxonomy
    filtering they are not guaranteed to run 1..N without gaps; use
    ``feature_id_map.tsv`` to trace them back to the original feature ids.

    Parameters
    ----------
    results_path : PathLike or str
        Output directory; created if missing.
    label_column : str, optional
        Metadata column used as sample label in the read summary.
    length_category : str, default "OTU"
        Constant label of the sequence length table.
    paths : OutputPaths, optional
        Artifact file names.

    Examples
    --------
    >>> writer = ResultWriter('/path/to/results', label_column='Site')
    >>> written = writer.write(fungi)
    >>> written['abundance']
    PosixPath('/path/to/results/otu_table.tsv')
    """

    def __init__(
        self,
        results_path: Union[PathLike, str],
        label_column: Optional[str] = None,
        length_category: str = "OTU",
        paths: OutputPaths = OutputPaths(),
    ):
        self.results_path = Path(results_path)
        self.label_column = label_column
        self.length_category = length_category
        self.paths = paths

    def _path(self, name: str) -> Path:
        return self.results_path / getattr(self.paths, name)

    def _write_abundance(self, dataset: AssembledDataset, path: Path) -> None:
        dataset.counts.to_csv(path, sep="\t", index_label="OTU_ID")

    def _write_taxonomy(self, dataset: AssembledDataset, path: Path) -> None:
        dataset.taxonomy.to_csv(path, sep="\t", index_label="OTU_ID")

    def _write_sequences(self, dataset: AssembledDataset, path: Path) -> None:
        write_fasta(dataset.sequences, path)

    def _write_metadata(self, dataset: AssembledDataset, path: Path) -> None:
        dataset.metadata.to_csv(path, sep="\t", index_label="sample_id")

    def _write_summary(self, dataset: AssembledDataset, path: Path) -> None:
        sample_read_summary(dataset, self.label_column).to_csv(path, sep="\t", index=False)

    def _write_lengths(self, dataset: AssembledDataset, path: Path) -> None:
        sequence_length_distribution(dataset, self.length_category).to_csv(path, sep="\t", index=False)

    def _write_id_map(self, dataset: AssembledDataset, path: Path) -> None:
        dataset.feature_id_map.to_csv(path, sep="\t", index_label="OTU_ID", header=True)

    def _write_snapshot(self, dataset: AssembledDataset, path: Path) -> None:
        pd.to_pickle(dataset, path)

    def write(self, dataset: AssembledDataset) -> Dict[str, Path]:
        """
        Write every artifact.

        Returns
        -------
        dict of str -> Path
            Written artifacts by name.

        Raises
        ------
        ArtifactWriteError
            If any artifact failed; raised after all were attempted.
        """
        self.results_path.mkdir(parents=True, exist_ok=True)

        writers: Dict[str, Callable[[AssembledDataset, Path], None]] = {
            "abundance": self._write_abundance,
            "taxonomy": self._write_taxonomy,
            "sequences": self._write_sequences,
            "metadata": self._write_metadata,
            "summary": self._write_summary,
            "lengths": self._write_lengths,
            "id_map": self._write_id_map,
            "snapshot": self._write_snapshot,
        }

        written: Dict[str, Path] = {}
        failures: Dict[str, str] = {}
        for name, fn in writers.items():
            path = self._path(name)
            try:
                fn(dataset, path)
            except Exception as e:
                logger.error(f"Error writing {name} to {path}: {e}")
                failures[name] = str(e)
                continue
            written[name] = path
            logger.debug(f"Wrote {name}: {path}")

        logger.info(f"Wrote {len(written)} of {len(writers)} artifacts to {self.results_path}")

        if failures:
            raise ArtifactWriteError(failures)
        return written
