"""
Taxonomic filtering of assembled datasets.

Functions
---------
filter_by_taxonomy
    Keep OTUs whose assignment at one rank is in an accepted set.
"""
from __future__ import annotations

import logging
import warnings
from typing import Iterable

from .assembly import AssembledDataset

logger = logging.getLogger(__name__)


class EmptyResultError(UserWarning):
    """Issued when a filter removes every feature.

    An empty dataset is a valid result, so this is emitted through
    :func:`warnings.warn` rather than raised.
    """


def filter_by_taxonomy(
    dataset: AssembledDataset,
    rank: str = "Kingdom",
    accepted: Iterable[str] = ("Fungi",),
) -> AssembledDataset:
    """Keep features whose taxonomy at ``rank`` is one of ``accepted``.

    Relative row order and OTU identifiers are preserved; unassigned ranks
    never match. Identifiers are not renumbered, so the kept OTUs may skip
    numbers (``OTU_1, OTU_3``); ``feature_id_map`` still links each one to
    its original feature id.

    Parameters
    ----------
    dataset : AssembledDataset
        Output of :func:`~otu_dataset.assembly.assemble_dataset`.
    rank : str, default "Kingdom"
        Taxonomy column to test.
    accepted : iterable of str, default ("Fungi",)
        Values to keep.

    Returns
    -------
    AssembledDataset
        New dataset, possibly with zero features.

    Examples
    --------
    >>> fungi = filter_by_taxonomy(ds, rank="Kingdom", accepted={"Fungi"})
    >>> fungi.n_features <= ds.n_features
    True
    """
    if rank not in dataset.taxonomy.columns:
        raise ValueError(f"Unknown rank '{rank}'. Available: {list(dataset.taxonomy.columns)}")

    accepted = set(accepted)
    keep = dataset.taxonomy[rank].isin(accepted).to_numpy(dtype=bool)
    filtered = dataset.subset_features(keep)

    logger.info(
        f"{rank} in {sorted(accepted)}: kept {filtered.n_features} of {dataset.n_features} features"
    )

    if filtered.is_empty():
        msg = f"No features left after filtering {rank} to {sorted(accepted)}"
        logger.warning(msg)
        warnings.warn(msg, EmptyResultError, stacklevel=2)

    return filtered
