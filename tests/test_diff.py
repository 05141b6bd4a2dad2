"""Tests for core.diff.compare: partitioning stored items against fresh ones."""

import itertools

from core.diff import compare
from core.models import NormalizedItem, item_key


def _keys(items):
    return [item_key(it) for it in items]


class TestBasicCases:
    def test_same_name_is_unchanged(self):
        """Identical records on both sides."""
        existing = [NormalizedItem(name="Widget")]
        fresh = [NormalizedItem(name="Widget")]
        result = compare(existing, fresh)
        assert result.unchanged == [NormalizedItem(name="Widget")]
        assert result.added == []
        assert result.changed == []
        assert result.summary == {"unchanged_count": 1, "added_count": 0, "changed_count": 0}

    def test_empty_existing_means_added(self):
        """Nothing stored yet."""
        result = compare([], [NormalizedItem(name="Gadget", price="$9.99")])
        assert result.added == [NormalizedItem(name="Gadget", price="$9.99")]
        assert result.unchanged == [] and result.changed == []

    def test_price_change_is_changed(self):
        """Same key, different price."""
        old = NormalizedItem(name="Widget", price="$5")
        new = NormalizedItem(name="Widget", price="$6")
        result = compare([old], [new])
        assert result.changed == [(old, new)]
        assert result.unchanged == [] and result.added == []

    def test_existing_only_stays_unchanged(self):
        """Items no longer seen at the retailer are kept, not reported as removed."""
        kept = NormalizedItem(name="Old Lamp", link="https://www.target.com/p/-/A-1")
        result = compare([kept], [])
        assert result.unchanged == [kept]


class TestKeys:
    def test_key_prefers_link(self):
        item = NormalizedItem(name="Blender", link="  HTTPS://www.Walmart.com/ip/42 ")
        assert item_key(item) == "https://www.walmart.com/ip/42"

    def test_key_falls_back_to_name(self):
        assert item_key(NormalizedItem(name="  Baby Monitor ")) == "baby monitor"

    def test_whitespace_and_case_variants_match(self):
        old = NormalizedItem(name="Baby Monitor", price="$40.00")
        new = NormalizedItem(name="baby monitor ", price="$40.00")
        result = compare([old], [new])
        # Same slot, but the records differ field for field.
        assert result.changed == [(old, new)]
        assert result.added == []

    def test_same_link_different_name_is_same_slot(self):
        old = NormalizedItem(name="Crib", link="https://www.target.com/p/-/A-1")
        new = NormalizedItem(name="Convertible Crib", link="https://www.target.com/p/-/A-1")
        assert compare([old], [new]).changed == [(old, new)]


class TestPartition:
    EXISTING = [
        NormalizedItem(name="Lamp", price="$20.00", link="https://www.amazon.com/dp/B000000001"),
        NormalizedItem(name="Rug", price="$99.00"),
        NormalizedItem(name="Mug", price="$8.00"),
        NormalizedItem(name="Mug", price="$7.00"),
    ]
    FRESH = [
        NormalizedItem(name="Lamp", price="$18.00", link="https://www.amazon.com/dp/B000000001"),
        NormalizedItem(name="Rug", price="$99.00"),
        NormalizedItem(name="Kettle", price="$30.00"),
        NormalizedItem(name="Kettle", price="$31.00"),
    ]

    def test_every_key_lands_in_exactly_one_bucket(self):
        result = compare(self.EXISTING, self.FRESH)
        buckets = _keys(result.unchanged) + _keys(result.added) + [item_key(old) for old, _ in result.changed]
        all_keys = {item_key(it) for it in self.EXISTING + self.FRESH}
        assert sorted(buckets) == sorted(all_keys)
        assert len(buckets) == len(set(buckets))

    def test_order_independent(self):
        baseline = compare(self.EXISTING, self.FRESH)
        for existing in itertools.permutations(self.EXISTING):
            for fresh in itertools.permutations(self.FRESH):
                assert compare(list(existing), list(fresh)) == baseline

    def test_buckets_sorted_by_key(self):
        result = compare(self.EXISTING, self.FRESH)
        assert _keys(result.unchanged) == sorted(_keys(result.unchanged))
        assert _keys(result.added) == sorted(_keys(result.added))

    def test_duplicate_keys_collapse_to_smallest(self):
        result = compare(self.EXISTING, self.FRESH)
        assert NormalizedItem(name="Mug", price="$7.00") in result.unchanged
        assert result.added == [NormalizedItem(name="Kettle", price="$30.00")]
