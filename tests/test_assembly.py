"""Tests for identifier-consistent dataset assembly."""
import pandas as pd
import pytest

from otu_dataset import (
    AssembledDataset,
    IdentifierMismatchError,
    TaxonomySpec,
    assemble_dataset,
    strip_rank_prefixes,
)


def test_assemble_example(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata)

    assert ds.feature_ids == ["OTU_1", "OTU_2"]
    assert ds.sample_ids == ["S1", "S2"]
    assert ds.counts.loc["OTU_1"].tolist() == [3, 0]
    assert ds.counts.loc["OTU_2"].tolist() == [0, 5]
    assert ds.sequences.tolist() == ["ACGTACGT", "ACGTAC"]
    assert ds.taxonomy["Kingdom"].tolist() == ["Fungi", "Fungi"]
    assert ds.taxonomy.loc["OTU_1", "Species"] == "Penicillium_expansum"
    assert pd.isna(ds.taxonomy.loc["OTU_2", "Species"])
    assert ds.metadata.index.tolist() == ["S1", "S2"]
    assert ds.feature_id_map.tolist() == ["F1", "F2"]


def test_sequences_reordered_to_table_rows(sequences, taxonomy):
    table = pd.DataFrame({"S1": [1, 2, 3]}, index=["F3", "F1", "F2"])
    meta = pd.DataFrame({"x": ["a"]}, index=["S1"])
    ds = assemble_dataset(table, sequences.iloc[::-1], taxonomy, meta)

    assert ds.feature_id_map.tolist() == ["F3", "F1", "F2"]
    assert ds.sequences.tolist() == ["GGGG", "ACGTACGT", "ACGTAC"]
    assert ds.taxonomy["Kingdom"].tolist() == ["Viridiplantae", "Fungi", "Fungi"]


def test_sequences_accepts_mapping(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences.to_dict(), taxonomy, metadata)
    assert ds.sequences.tolist() == ["ACGTACGT", "ACGTAC"]


def test_missing_sequence_rejected(feature_table, sequences, taxonomy, metadata):
    with pytest.raises(IdentifierMismatchError) as exc:
        assemble_dataset(feature_table, sequences.drop("F2"), taxonomy, metadata)
    assert exc.value.missing == ["F2"]
    assert "F2" in str(exc.value)


def test_missing_taxonomy_rejected(feature_table, sequences, taxonomy, metadata):
    with pytest.raises(IdentifierMismatchError) as exc:
        assemble_dataset(feature_table, sequences, taxonomy.drop("F1"), metadata)
    assert exc.value.missing == ["F1"]


def test_metadata_mismatch_reports_both_sides(feature_table, sequences, taxonomy, metadata):
    meta = metadata.rename(index={"S2": "S9"})
    with pytest.raises(IdentifierMismatchError) as exc:
        assemble_dataset(feature_table, sequences, taxonomy, meta)
    assert exc.value.missing == ["S2"]
    assert exc.value.extra == ["S9"]


def test_duplicate_feature_ids_rejected(sequences, taxonomy, metadata):
    table = pd.DataFrame({"S1": [1, 2], "S2": [0, 0]}, index=["F1", "F1"])
    with pytest.raises(IdentifierMismatchError):
        assemble_dataset(table, sequences, taxonomy, metadata)


@pytest.mark.parametrize("bad", [-1, 2.5])
def test_invalid_counts_rejected(feature_table, sequences, taxonomy, metadata, bad):
    table = feature_table.astype(float)
    table.iloc[0, 0] = bad
    with pytest.raises(ValueError):
        assemble_dataset(table, sequences, taxonomy, metadata)


def test_float_counts_become_integers(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table.astype(float), sequences, taxonomy, metadata)
    assert all(str(dt).startswith("int") for dt in ds.counts.dtypes)


def test_canonical_names_are_a_bijection(sequences, taxonomy):
    ids = [f"F{i}" for i in range(1, 4)]
    table = pd.DataFrame({"S1": [1, 1, 1]}, index=ids)
    meta = pd.DataFrame({"x": ["a"]}, index=["S1"])
    ds = assemble_dataset(table, sequences, taxonomy, meta)

    n = ds.n_features
    assert ds.feature_ids == [f"OTU_{i}" for i in range(1, n + 1)]
    assert len(set(ds.feature_ids)) == n
    assert sorted(ds.feature_id_map) == sorted(ids)


def test_custom_otu_prefix(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata, spec=TaxonomySpec(otu_prefix="ASV_"))
    assert ds.feature_ids == ["ASV_1", "ASV_2"]


def test_strip_rank_prefixes():
    tax = pd.DataFrame(
        {"Kingdom": ["k__Fungi", " k__Fungi", "Unassigned"], "Genus": ["g__", None, "g__Mortierella"]}
    )
    out = strip_rank_prefixes(tax)
    assert out["Kingdom"].tolist() == ["Fungi", "Fungi", "Unassigned"]
    assert pd.isna(out["Genus"].iloc[0])
    assert pd.isna(out["Genus"].iloc[1])
    assert out["Genus"].iloc[2] == "Mortierella"


def test_dataset_rejects_misaligned_tables(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata)
    with pytest.raises(ValueError):
        AssembledDataset(
            counts=ds.counts,
            sequences=ds.sequences.iloc[::-1],
            taxonomy=ds.taxonomy,
            metadata=ds.metadata,
            feature_id_map=ds.feature_id_map,
        )


def test_dataset_is_frozen(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata)
    with pytest.raises(AttributeError):
        ds.counts = ds.counts.iloc[0:0]


def test_editing_returned_tables_leaves_dataset_unchanged(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata)

    ds.counts.loc["OTU_1", "S1"] = 999
    ds.taxonomy.loc["OTU_1", "Kingdom"] = "Metazoa"
    ds.sequences.iloc[0] = "NNNN"
    ds.metadata.loc["S1", "Site"] = "moved"

    assert ds.counts.loc["OTU_1", "S1"] == 3
    assert ds.taxonomy.loc["OTU_1", "Kingdom"] == "Fungi"
    assert ds.sequences.iloc[0] == "ACGTACGT"
    assert ds.metadata.loc["S1", "Site"] == "north"


def test_dataset_does_not_share_input_frames(feature_table, sequences, taxonomy, metadata):
    ds = assemble_dataset(feature_table, sequences, taxonomy, metadata)
    metadata.loc["S1", "Site"] = "moved"
    assert ds.metadata.loc["S1", "Site"] == "north"


def test_inputs_are_not_modified(feature_table, sequences, taxonomy, metadata):
    before = feature_table.copy()
    assemble_dataset(feature_table, sequences, taxonomy, metadata)
    pd.testing.assert_frame_equal(feature_table, before)
