from __future__ import annotations

from pathlib import Path
from typing import Sequence

import pandas as pd
from Bio import SeqIO

TAXONOMY_RANKS = ("Kingdom", "Phylum", "Class", "Order", "Family", "Genus", "Species")


def load_feature_table(
    table_tsv: str | Path,
    feature_id_col: str | None = None,
) -> pd.DataFrame:
    """
    Reads a tab-delimited feature table (e.g. exported/feature-table.tsv).

    Expected:
      - first column (or 'feature_id_col') holds feature IDs.
      - remaining columns are sample_ids, values are counts.
    The '# Constructed from biom file' comment line written by
    `biom convert --to-tsv` is skipped and '#OTU ID' is accepted as header.
    """
    table_tsv = Path(table_tsv)
    with open(table_tsv) as f:
        first = f.readline()
    skiprows = 1 if first.startswith("# Constructed from biom file") else 0

    df = pd.read_csv(table_tsv, sep="\t", skiprows=skiprows, dtype=str)
    df = _norm_cols(df)

    id_col = feature_id_col if feature_id_col is not None else df.columns[0]
    if id_col not in df.columns:
        raise ValueError(f"{table_tsv} missing '{id_col}' column.")

    df[id_col] = df[id_col].astype(str)
    df = df.set_index(id_col)
    df.index.name = "feature_id"
    df.columns.name = None

    # biom writes floats (3.0); integrality is checked during assembly
    df = df.apply(pd.to_numeric, errors="raise")

    return df


def load_reference_sequences(fasta: str | Path) -> pd.Series:
    """
    Reads representative sequences (e.g. dna-sequences.fasta).

    Returns a Series indexed by feature ID holding upper-case sequences.
    Duplicate record IDs are rejected.
    """
    fasta = Path(fasta)
    ids, seqs = [], []
    for record in SeqIO.parse(str(fasta), "fasta"):
        ids.append(record.id)
        seqs.append(str(record.seq).upper())

    dup = sorted(pd.Index(ids)[pd.Index(ids).duplicated()].unique())
    if dup:
        raise ValueError(f"{fasta} contains duplicate sequence IDs: {dup[:10]}")

    s = pd.Series(seqs, index=pd.Index(ids, name="feature_id"), name="sequence", dtype=object)
    return s


def load_taxonomy(
    taxonomy_tsv: str | Path,
    feature_id_col: str = "Feature ID",
    taxon_col: str = "Taxon",
    ranks: Sequence[str] = TAXONOMY_RANKS,
    sep: str = ";",
) -> pd.DataFrame:
    """
    Reads a taxonomy assignment table (e.g. exported/taxonomy.tsv).

    Expected columns:
      Feature ID, Taxon[, Confidence]
    'Taxon' holds ';'-separated ranks ("k__Fungi;p__Ascomycota;...") and is
    split into one column per rank; missing trailing ranks are NA.
    A table that already has the rank columns is used as is.
    Rank prefixes are kept here and stripped during assembly.
    """
    taxonomy_tsv = Path(taxonomy_tsv)
    df = pd.read_csv(taxonomy_tsv, sep="\t", dtype=str)
    df = _norm_cols(df)

    id_col = feature_id_col if feature_id_col in df.columns else df.columns[0]
    df[id_col] = df[id_col].astype(str)
    df = df.set_index(id_col)
    df.index.name = "feature_id"

    ranks = list(ranks)
    if all(r in df.columns for r in ranks):
        out = df[ranks].copy()
    elif taxon_col in df.columns:
        split = df[taxon_col].fillna("").str.split(sep, expand=True)
        split = split.reindex(columns=range(len(ranks))).astype(object)
        split.columns = ranks
        out = split.apply(lambda col: col.map(_strip_cell))
    else:
        raise ValueError(f"{taxonomy_tsv} needs either '{taxon_col}' or rank columns {ranks}.")

    return out


def _strip_cell(v: object) -> object:
    if not isinstance(v, str):
        return pd.NA
    v = v.strip()
    return v if v else pd.NA


def load_sample_metadata(
    metadata_tsv: str | Path,
    sample_id_col: str | None = None,
) -> pd.DataFrame:
    """
    Reads a tab-delimited sample metadata file.

    The first column (or 'sample_id_col') is the sample identifier.
    A QIIME 2 '#q2:types' directive row is dropped.
    """
    metadata_tsv = Path(metadata_tsv)
    smeta = pd.read_csv(metadata_tsv, sep="\t", dtype=str)
    smeta = _norm_cols(smeta)

    id_col = sample_id_col if sample_id_col is not None else smeta.columns[0]
    if id_col not in smeta.columns:
        raise ValueError(f"{metadata_tsv} missing '{id_col}' column.")

    smeta = smeta[~smeta[id_col].astype(str).str.startswith("#q2:")].copy()
    smeta[id_col] = smeta[id_col].astype(str).str.strip()
    smeta = smeta.set_index(id_col)
    smeta.index.name = "sample_id"

    return smeta


def _norm_col(c: object) -> str:
    # strip whitespace; preserve internal chars
    return str(c).strip()


def _norm_cols(df: pd.DataFrame) -> pd.DataFrame:
    df = df.copy()
    df.columns = [_norm_col(c) for c in df.columns]
    return df
