# otu_dataset/assembly.py
from __future__ import annotations

import logging
import re
from dataclasses import FrozenInstanceError, dataclass
from typing import Iterable, Mapping, Sequence, Union

import numpy as np
import pandas as pd

from .io import TAXONOMY_RANKS

logger = logging.getLogger(__name__)


class IdentifierMismatchError(ValueError):
    """Raised when feature or sample identifiers disagree between two tables.

    Attributes
    ----------
    left, right : str
        Names of the compared tables.
    missing : list of str
        Identifiers of ``left`` absent from ``right``.
    extra : list of str
        Identifiers of ``right`` absent from ``left``.
    """

    def __init__(
        self,
        left: str,
        right: str,
        missing: Sequence[str] = (),
        extra: Sequence[str] = (),
        message: str | None = None,
    ):
        self.left = left
        self.right = right
        self.missing = sorted(missing)
        self.extra = sorted(extra)
        if message is None:
            parts = []
            if self.missing:
                parts.append(f"{len(self.missing)} in {left} but not in {right}: {self.missing[:10]}")
            if self.extra:
                parts.append(f"{len(self.extra)} in {right} but not in {left}: {self.extra[:10]}")
            message = f"Identifier mismatch between {left} and {right}; " + "; ".join(parts)
        super().__init__(message)


@dataclass(frozen=True)
class TaxonomySpec:
    ranks: tuple[str, ...] = TAXONOMY_RANKS
    # one lowercase letter + '__', e.g. 'k__Fungi'
    prefix_pattern: str = r"^[a-z]__"
    otu_prefix: str = "OTU_"


class AssembledDataset:
    """Identifier-aligned OTU dataset.

    ``counts``, ``sequences``, ``taxonomy`` and ``feature_id_map`` share one
    row index (the canonical OTU ids); ``counts.columns`` equals
    ``metadata.index``.

    The tables are copied on construction and every accessor returns a copy,
    so editing a returned frame never changes the dataset. Attributes cannot
    be reassigned; derive new datasets with :meth:`subset_features`.

    Attributes
    ----------
    counts : pd.DataFrame
        OTU x sample integer counts.
    sequences : pd.Series
        Representative sequence per OTU.
    taxonomy : pd.DataFrame
        Rank columns per OTU, prefixes stripped.
    metadata : pd.DataFrame
        Sample attributes, one row per count column.
    feature_id_map : pd.Series
        Original feature id per OTU.
    """

    _TABLES = ("counts", "sequences", "taxonomy", "metadata", "feature_id_map")

    def __init__(
        self,
        counts: pd.DataFrame,
        sequences: pd.Series,
        taxonomy: pd.DataFrame,
        metadata: pd.DataFrame,
        feature_id_map: pd.Series,
    ):
        idx = counts.index
        for name, other in (
            ("sequences", sequences.index),
            ("taxonomy", taxonomy.index),
            ("feature_id_map", feature_id_map.index),
        ):
            if not idx.equals(other):
                raise ValueError(f"{name} rows are not aligned with counts rows.")
        if not counts.columns.equals(metadata.index):
            raise ValueError("metadata rows are not aligned with counts columns.")

        for name, table in zip(self._TABLES, (counts, sequences, taxonomy, metadata, feature_id_map)):
            object.__setattr__(self, f"_{name}", table.copy())

    def __setattr__(self, name, value):
        raise FrozenInstanceError(f"cannot assign to field '{name}'")

    def __delattr__(self, name):
        raise FrozenInstanceError(f"cannot delete field '{name}'")

    @property
    def counts(self) -> pd.DataFrame:
        return self._counts.copy()

    @property
    def sequences(self) -> pd.Series:
        return self._sequences.copy()

    @property
    def taxonomy(self) -> pd.DataFrame:
        return self._taxonomy.copy()

    @property
    def metadata(self) -> pd.DataFrame:
        return self._metadata.copy()

    @property
    def feature_id_map(self) -> pd.Series:
        return self._feature_id_map.copy()

    @property
    def n_features(self) -> int:
        return int(self._counts.shape[0])

    @property
    def n_samples(self) -> int:
        return int(self._counts.shape[1])

    @property
    def feature_ids(self) -> list[str]:
        return list(self._counts.index)

    @property
    def sample_ids(self) -> list[str]:
        return list(self._counts.columns)

    def is_empty(self) -> bool:
        return self.n_features == 0

    def subset_features(self, keep: Union[pd.Series, np.ndarray, Sequence[bool]]) -> "AssembledDataset":
        """Return a new dataset restricted to rows where ``keep`` is True."""
        mask = np.asarray(keep, dtype=bool)
        if mask.shape[0] != self.n_features:
            raise ValueError(f"Mask length {mask.shape[0]} does not match {self.n_features} features.")
        return AssembledDataset(
            counts=self._counts.loc[mask],
            sequences=self._sequences.loc[mask],
            taxonomy=self._taxonomy.loc[mask],
            metadata=self._metadata,
            feature_id_map=self._feature_id_map.loc[mask],
        )

    def equals(self, other: "AssembledDataset") -> bool:
        return isinstance(other, AssembledDataset) and all(
            getattr(self, f"_{name}").equals(getattr(other, f"_{name}")) for name in self._TABLES
        )

    def __repr__(self) -> str:
        return f"AssembledDataset({self.n_features} features x {self.n_samples} samples)"


def _duplicates(index: Iterable) -> list[str]:
    idx = pd.Index(index)
    return sorted(str(x) for x in idx[idx.duplicated()].unique())


def _validate_counts(feature_table: pd.DataFrame) -> pd.DataFrame:
    dup_rows = _duplicates(feature_table.index)
    if dup_rows:
        raise IdentifierMismatchError(
            "feature table", "feature table",
            message=f"Duplicate feature ids in feature table: {dup_rows[:10]}",
        )
    dup_cols = _duplicates(feature_table.columns)
    if dup_cols:
        raise IdentifierMismatchError(
            "feature table", "feature table",
            message=f"Duplicate sample ids in feature table: {dup_cols[:10]}",
        )

    counts = feature_table.apply(pd.to_numeric, errors="raise")
    values = counts.to_numpy(dtype=float)
    if np.isnan(values).any():
        raise ValueError("Feature table contains missing counts.")
    if (values < 0).any():
        raise ValueError("Feature table contains negative counts.")
    if not np.all(np.equal(np.mod(values, 1), 0)):
        raise ValueError("Feature table contains non-integer counts.")

    counts = counts.astype(np.int64)
    counts.index = counts.index.astype(str)
    counts.columns = counts.columns.astype(str)
    return counts


def strip_rank_prefixes(taxonomy: pd.DataFrame, pattern: str = TaxonomySpec.prefix_pattern) -> pd.DataFrame:
    """Remove rank prefixes such as 'k__' or 'g__' from every cell.

    Cells that are empty after stripping become missing values.

    Examples
    --------
    >>> tax = pd.DataFrame({"Kingdom": ["k__Fungi"], "Genus": ["g__Penicillium"]})
    >>> strip_rank_prefixes(tax).iloc[0].tolist()
    ['Fungi', 'Penicillium']
    """
    rx = re.compile(pattern)

    def _strip(v: object) -> object:
        if not isinstance(v, str):
            return pd.NA
        v = rx.sub("", v.strip()).strip()
        return v if v else pd.NA

    return taxonomy.apply(lambda col: col.map(_strip)).astype(object)


def assemble_dataset(
    feature_table: pd.DataFrame,
    sequences: Union[pd.Series, Mapping[str, str]],
    taxonomy: pd.DataFrame,
    metadata: pd.DataFrame,
    spec: TaxonomySpec = TaxonomySpec(),
) -> AssembledDataset:
    """Merge feature table, sequences, taxonomy and metadata.

    Steps, each a precondition of the next:

    1. sort sample columns;
    2. align metadata rows to the sample order;
    3. check every feature has a reference sequence;
    4. reorder sequences to the feature table's rows;
    5. strip rank prefixes and attach taxonomy in row order;
    6. record the original ids and rename features to ``OTU_<n>``.

    Parameters
    ----------
    feature_table : pd.DataFrame
        Feature x sample counts, index = feature id.
    sequences : pd.Series or mapping
        Feature id -> nucleotide sequence; may contain extra features.
    taxonomy : pd.DataFrame
        Index = feature id, one column per rank in ``spec.ranks``; may
        contain extra features.
    metadata : pd.DataFrame
        Index = sample id.
    spec : TaxonomySpec
        Rank names, prefix pattern and canonical OTU prefix.

    Returns
    -------
    AssembledDataset

    Raises
    ------
    IdentifierMismatchError
        If sample ids of the table and metadata differ, or a feature lacks
        a sequence or taxonomy, or identifiers are duplicated.
    """
    counts = _validate_counts(feature_table)

    # 1. canonical sample order
    sample_order = sorted(counts.columns)
    counts = counts[sample_order]

    # 2. metadata alignment
    metadata = metadata.copy()
    metadata.index = metadata.index.astype(str)
    dup_meta = _duplicates(metadata.index)
    if dup_meta:
        raise IdentifierMismatchError(
            "sample metadata", "sample metadata",
            message=f"Duplicate sample ids in sample metadata: {dup_meta[:10]}",
        )
    table_samples = set(sample_order)
    meta_samples = set(metadata.index)
    if table_samples != meta_samples:
        raise IdentifierMismatchError(
            "feature table",
            "sample metadata",
            missing=table_samples - meta_samples,
            extra=meta_samples - table_samples,
        )
    metadata = metadata.loc[sample_order]
    metadata.index.name = "sample_id"
    logger.info(f"Aligned metadata for {len(sample_order)} samples")

    # 3. every feature needs a sequence
    seqs = pd.Series(sequences, dtype=object) if not isinstance(sequences, pd.Series) else sequences.copy()
    seqs.index = seqs.index.astype(str)
    dup_seqs = _duplicates(seqs.index)
    if dup_seqs:
        raise IdentifierMismatchError(
            "reference sequences", "reference sequences",
            message=f"Duplicate feature ids in reference sequences: {dup_seqs[:10]}",
        )
    missing_seqs = set(counts.index) - set(seqs.index)
    if missing_seqs:
        raise IdentifierMismatchError("feature table", "reference sequences", missing=missing_seqs)

    # 4. sequences in table row order
    n_extra = len(seqs) - counts.shape[0]
    seqs = seqs.loc[counts.index].astype(str)
    seqs.name = "sequence"
    if n_extra:
        logger.info(f"Dropped {n_extra} reference sequences without counts")

    # 5. taxonomy
    ranks = list(spec.ranks)
    missing_ranks = [r for r in ranks if r not in taxonomy.columns]
    if missing_ranks:
        raise ValueError(f"Taxonomy table missing rank columns: {missing_ranks}")
    tax = taxonomy[ranks].copy()
    tax.index = tax.index.astype(str)
    dup_tax = _duplicates(tax.index)
    if dup_tax:
        raise IdentifierMismatchError(
            "taxonomy", "taxonomy",
            message=f"Duplicate feature ids in taxonomy: {dup_tax[:10]}",
        )
    missing_tax = set(counts.index) - set(tax.index)
    if missing_tax:
        raise IdentifierMismatchError("feature table", "taxonomy", missing=missing_tax)
    tax = strip_rank_prefixes(tax.loc[counts.index], spec.prefix_pattern)

    # 6. canonical ids; the original ids survive only in feature_id_map
    original_ids = list(counts.index)
    otu_ids = pd.Index(
        [f"{spec.otu_prefix}{i}" for i in range(1, len(original_ids) + 1)],
        name="OTU_ID",
    )
    counts.index = otu_ids
    seqs.index = otu_ids
    tax.index = otu_ids
    feature_id_map = pd.Series(original_ids, index=otu_ids, name="original_feature_id", dtype=object)

    dataset = AssembledDataset(
        counts=counts,
        sequences=seqs,
        taxonomy=tax,
        metadata=metadata,
        feature_id_map=feature_id_map,
    )
    logger.info(f"Assembled dataset: {dataset.n_features} features x {dataset.n_samples} samples")
    return dataset
