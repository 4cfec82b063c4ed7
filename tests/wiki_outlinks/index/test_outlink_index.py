import math

import pytest

from wiki_outlinks.index import OutlinkIndex, milne_witten
from wiki_outlinks.models import LinkEdge


@pytest.mark.unit
class TestOutlinkIndex:
    """The read-only outlink index and its reverse view."""

    def test_outlinks_and_inlinks(self, sample_index):
        assert sample_index.outlinks(1) == {2, 3, 5}
        assert sample_index.inlinks(2) == {1, 3, 5}
        assert sample_index.inlinks(11) == frozenset()
        assert sample_index.outlinks(999) == frozenset()

    def test_sizes(self, sample_index):
        assert len(sample_index) == 5
        assert sample_index.edge_count == 9
        assert sample_index.page_count == 5
        assert sample_index.pages() == {1, 2, 3, 5, 11}
        assert 11 in sample_index
        assert 4 not in sample_index

    def test_build_from_edges(self):
        edges = [LinkEdge(1, 2), LinkEdge(1, 3), LinkEdge(1, 2), LinkEdge(4, 2)]
        index = OutlinkIndex.build(edges)

        assert dict(index.items()) == {1: frozenset({2, 3}), 4: frozenset({2})}
        assert sorted(index.edges()) == [(1, 2), (1, 3), (4, 2)]
        assert index.page_count == 4

    def test_page_count_never_below_known_pages(self):
        index = OutlinkIndex({1: [2, 3]}, page_count=1)
        assert index.page_count == 3

    def test_is_read_only(self, sample_index):
        with pytest.raises(AttributeError):
            sample_index.outlinks(1).add(4)
        with pytest.raises(TypeError):
            sample_index._outlinks[99] = frozenset({1})

    def test_input_is_copied(self):
        outlinks = {1: {2}}
        index = OutlinkIndex(outlinks)
        outlinks[1].add(3)
        assert index.outlinks(1) == {2}


@pytest.mark.unit
class TestMutualOutlinks:
    """Pages that link to every page of a set."""

    def test_pair(self, sample_index):
        assert sample_index.mutual_outlinks([2, 5]) == {1, 3}
        assert sample_index.count_mutual_outlinks([2, 5]) == 2

    def test_single_page(self, sample_index):
        assert sample_index.mutual_outlinks([2]) == {1, 3, 5}

    def test_three_pages(self, sample_index):
        assert sample_index.mutual_outlinks([2, 3, 5]) == {1}

    def test_no_overlap(self, sample_index):
        assert sample_index.mutual_outlinks([1, 5]) == frozenset()
        assert sample_index.mutual_outlinks([11, 2]) == frozenset()

    def test_empty_input(self, sample_index):
        assert sample_index.count_mutual_outlinks([]) == 0


@pytest.mark.unit
class TestRelatedness:
    """Milne & Witten relatedness over in-links."""

    def test_value(self, sample_index):
        # inlinks(2) = {1, 3, 5}, inlinks(5) = {1, 3}, N = 5
        expected = 1 - (math.log(3) - math.log(2)) / (math.log(5) - math.log(2))
        assert sample_index.relatedness(2, 5) == pytest.approx(expected)

    def test_symmetric(self, sample_index):
        pages = sorted(sample_index.pages())
        for a in pages:
            for b in pages:
                assert sample_index.relatedness(a, b) == pytest.approx(sample_index.relatedness(b, a))

    def test_bounds(self, sample_index):
        pages = sorted(sample_index.pages())
        for a in pages:
            for b in pages:
                assert 0.0 <= sample_index.relatedness(a, b) <= 1.0

    def test_same_page(self, sample_index):
        assert sample_index.relatedness(3, 3) == 1.0

    def test_no_inlinks(self, sample_index):
        assert sample_index.relatedness(11, 2) == 0.0
        assert sample_index.relatedness(2, 999) == 0.0

    def test_no_common_inlinks(self, sample_index):
        # inlinks(1) = {2, 11}, inlinks(5) = {1, 3}
        assert sample_index.relatedness(1, 5) == 0.0

    def test_negative_values_clamp_to_zero(self, sample_index):
        # common = 1 of max = 3 inlinks: the formula goes below zero
        assert sample_index.relatedness(2, 3) == 0.0

    @pytest.mark.parametrize("in_a, in_b, common, n", [
        (0, 5, 0, 100),
        (5, 5, 0, 100),
        (5, 5, 5, 5),
        (5, 5, 5, 0),
    ])
    def test_degenerate_inputs(self, in_a, in_b, common, n):
        assert milne_witten(in_a, in_b, common, n) == 0.0

    def test_identical_inlinks(self):
        assert milne_witten(4, 4, 4, 100) == pytest.approx(1.0)
