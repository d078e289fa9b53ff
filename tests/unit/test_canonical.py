"""
Unit tests for canonical selection and duplicate grouping.
"""

from datetime import timedelta
from unittest.mock import patch

import pytest
from hypothesis import given
from hypothesis import strategies as st

from leadsync.core.matching import MatchKeyResolver, canonicalize, group_duplicates
from leadsync.core.matching import canonical as canonical_module
from leadsync.core.models import RemoteRecord

from tests.conftest import ADDRESS_FIELD, T0


def record(item_id, address="123 Main St", minutes=0, revision=0):
    fields = {ADDRESS_FIELD: [{"value": address}]} if address is not None else {}
    return RemoteRecord(
        item_id=item_id,
        fields=fields,
        created_on=T0 + timedelta(minutes=minutes),
        revision=revision,
    )


records_strategy = st.lists(
    st.builds(
        record,
        item_id=st.integers(min_value=1, max_value=10_000),
        minutes=st.integers(min_value=0, max_value=3),
        revision=st.integers(min_value=0, max_value=3),
    ),
    min_size=1,
    max_size=12,
    unique_by=lambda r: r.item_id,
)


class TestCanonicalize:
    """Tests for canonicalize()"""

    def test_single_record(self):
        only = record(1)
        canonical, duplicates = canonicalize([only])
        assert canonical is only
        assert duplicates == []

    def test_empty_group_rejected(self):
        with pytest.raises(ValueError):
            canonicalize([])

    def test_oldest_wins(self):
        canonical, duplicates = canonicalize([record(2, minutes=5), record(1, minutes=10), record(3, minutes=1)])
        assert canonical.item_id == 3
        assert [r.item_id for r in duplicates] == [2, 1]

    def test_same_timestamp_higher_revision_wins(self):
        """Revisions 3 and 5 at the same instant: revision 5 is kept"""
        canonical, duplicates = canonicalize([record(10, revision=3), record(11, revision=5)])
        assert canonical.item_id == 11
        assert [r.item_id for r in duplicates] == [10]

    def test_full_tie_lower_item_id_wins(self):
        canonical, _ = canonicalize([record(9, revision=2), record(4, revision=2)])
        assert canonical.item_id == 4

    @given(records_strategy, st.randoms())
    def test_input_order_does_not_matter(self, records, rnd):
        shuffled = list(records)
        rnd.shuffle(shuffled)
        assert canonicalize(records)[0].item_id == canonicalize(shuffled)[0].item_id

    @given(records_strategy)
    def test_canonical_plus_duplicates_is_the_group(self, records):
        canonical, duplicates = canonicalize(records)
        assert len(duplicates) == len(records) - 1
        assert {canonical.item_id, *(r.item_id for r in duplicates)} == {r.item_id for r in records}
        assert all(canonical.created_on <= r.created_on for r in duplicates)


class TestGroupDuplicates:
    """Tests for group_duplicates()"""

    @pytest.fixture
    def resolver(self):
        return MatchKeyResolver("Address", ADDRESS_FIELD)

    def test_only_groups_larger_than_one(self, resolver):
        groups = group_duplicates([record(1, "A"), record(2, "B"), record(3, "A", minutes=1)], resolver)
        assert len(groups) == 1
        assert groups[0].key == "A"
        assert groups[0].canonical.item_id == 1
        assert groups[0].duplicate_ids == [3]

    def test_records_without_key_are_never_grouped(self, resolver):
        groups = group_duplicates([record(1, None), record(2, None), record(3, "  ")], resolver)
        assert groups == []

    def test_records_without_key_are_reported(self, resolver):
        with patch.object(canonical_module.logger, "info") as info:
            group_duplicates([record(7, None), record(3, " "), record(5, "A")], resolver)
        info.assert_called_once()
        assert info.call_args.args[0] == "2 items without address left untouched"
        assert info.call_args.kwargs["extra"] == {"unkeyed_ids": [3, 7]}

    def test_groups_are_sorted_by_key(self, resolver):
        records = [record(1, "B"), record(2, "B"), record(3, "A"), record(4, "A")]
        assert [g.key for g in group_duplicates(records, resolver)] == ["A", "B"]

    def test_normalized_resolver_merges_spelling_variants(self):
        resolver = MatchKeyResolver("Address", ADDRESS_FIELD, normalize=True)
        groups = group_duplicates([record(1, "12 Oak Ave"), record(2, "12  oak ave", minutes=1)], resolver)
        assert len(groups) == 1
        assert groups[0].duplicate_ids == [2]
