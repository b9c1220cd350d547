"""Tests for the campaign → ad group → search term tree."""

from __future__ import annotations

import pytest

from adpulse.hierarchy import NO_AD_GROUP, UNKNOWN_CAMPAIGN, build, tree_counts, walk
from adpulse.metrics import calculate_all
from adpulse.schema import RawMetricRow


def _rows(*specs):
    return calculate_all([RawMetricRow(**s) for s in specs])


class TestBuild:
    def test_two_terms_same_group(self):
        forest = build(_rows(
            {"campaign": "C", "ad_group": "G", "search_term": "b term"},
            {"campaign": "C", "ad_group": "G", "search_term": "a term"},
        ))
        assert len(forest) == 1
        assert len(forest[0].children) == 1
        leaves = forest[0].children[0].children
        assert [n.name for n in leaves] == ["a term", "b term"]
        assert all(n.kind == "searchTerm" for n in leaves)

    def test_alphabetical_regardless_of_input_order(self):
        specs = [
            {"campaign": "Zeta", "ad_group": "b", "search_term": "y"},
            {"campaign": "alpha", "ad_group": "z", "search_term": "x"},
            {"campaign": "Zeta", "ad_group": "a", "search_term": "x"},
            {"campaign": "Beta", "ad_group": "a", "search_term": "x"},
        ]
        names = [n.name for n in build(_rows(*specs))]
        assert names == ["alpha", "Beta", "Zeta"]
        names_rev = [n.name for n in build(_rows(*reversed(specs)))]
        assert names_rev == names
        zeta = build(_rows(*specs))[2]
        assert [g.name for g in zeta.children] == ["a", "b"]

    def test_duplicate_terms_stay_distinct_and_stable(self):
        rows = _rows(
            {"campaign": "C", "ad_group": "G", "search_term": "shoes", "date": "2025-01-02", "clicks": 1},
            {"campaign": "C", "ad_group": "G", "search_term": "shoes", "date": "2025-01-01", "clicks": 2},
        )
        leaves = build(rows)[0].children[0].children
        assert len(leaves) == 2
        assert leaves[0].leaf_data is rows[0]
        assert leaves[1].leaf_data is rows[1]
        assert leaves[0].id != leaves[1].id

    def test_missing_campaign_goes_to_unknown_bucket(self):
        forest = build(_rows({"campaign": "", "ad_group": "G", "search_term": "t"}))
        assert forest[0].name == UNKNOWN_CAMPAIGN

    def test_missing_ad_group_still_grouped(self):
        forest = build(_rows(
            {"campaign": "C", "search_term": "a"},
            {"campaign": "C", "search_term": "b"},
        ))
        groups = forest[0].children
        assert len(groups) == 1
        assert groups[0].name == NO_AD_GROUP
        assert len(groups[0].children) == 2

    def test_empty_input(self):
        assert build([]) == []

    def test_leaf_references_input_rows(self):
        rows = _rows({"campaign": "C", "ad_group": "G", "search_term": "t"})
        assert build(rows)[0].children[0].children[0].leaf_data is rows[0]

    def test_rebuild_produces_new_nodes(self):
        rows = _rows({"campaign": "C", "ad_group": "G", "search_term": "t"})
        assert build(rows)[0] is not build(rows)[0]


class TestRollups:
    def test_node_totals_rederived(self, sample_raw):
        forest = build(calculate_all(sample_raw))
        shoes = next(n for n in forest if n.name == "Shoes")
        assert shoes.totals.impressions == 300
        assert shoes.totals.ctr == pytest.approx(40 / 300 * 100)
        running = next(g for g in shoes.children if g.name == "Running")
        assert running.totals.cpa == pytest.approx(50.0)
        assert running.totals.row_count == 2

    def test_leaf_totals_match_leaf_data(self, sample_raw):
        forest = build(calculate_all(sample_raw))
        leaf = forest[0].children[0].children[0]
        assert leaf.totals.cost == leaf.leaf_data.cost


class TestWalkAndCounts:
    def test_walk_depth_first(self, sample_raw):
        forest = build(calculate_all(sample_raw))
        visited = [(n.kind, n.name, d) for n, d in walk(forest)]
        assert visited[0] == ("campaign", "Boots", 0)
        assert visited[1] == ("adGroup", "Winter", 1)
        assert visited[2] == ("searchTerm", "snow boots", 2)
        assert visited[3] == ("campaign", "Shoes", 0)

    def test_counts(self, sample_raw):
        counts = tree_counts(build(calculate_all(sample_raw)))
        assert counts == {"campaigns": 2, "ad_groups": 3, "search_terms": 4}


class TestOrderingAndIdentity:
    def test_accented_names_sort_with_their_base_letter(self):
        forest = build(_rows(
            {"campaign": "Zeta", "ad_group": "G", "search_term": "t"},
            {"campaign": "Éclair", "ad_group": "G", "search_term": "t"},
            {"campaign": "apple", "ad_group": "G", "search_term": "t"},
        ))
        assert [n.name for n in forest] == ["apple", "Éclair", "Zeta"]

    def test_accented_ad_groups_and_terms(self):
        forest = build(_rows(
            {"campaign": "C", "ad_group": "zapatos", "search_term": "zoo"},
            {"campaign": "C", "ad_group": "école", "search_term": "zoo"},
            {"campaign": "C", "ad_group": "école", "search_term": "Ñandú"},
            {"campaign": "C", "ad_group": "école", "search_term": "nube"},
        ))
        groups = forest[0].children
        assert [g.name for g in groups] == ["école", "zapatos"]
        assert [t.name for t in groups[0].children] == ["Ñandú", "nube", "zoo"]

    def test_ids_unique_when_names_contain_dashes(self):
        forest = build(_rows(
            {"campaign": "a-b", "ad_group": "c", "search_term": "d"},
            {"campaign": "a", "ad_group": "b-c", "search_term": "d"},
            {"campaign": "a", "ad_group": "b", "search_term": "c-d"},
        ))
        ids = [n.id for n, _ in walk(forest)]
        assert len(ids) == len(set(ids))
        group_ids = {n.id for n, _ in walk(forest) if n.kind == "adGroup"}
        assert len(group_ids) == 3

    def test_blank_campaign_separate_from_literal_unknown(self):
        forest = build(_rows(
            {"campaign": "", "ad_group": "G", "search_term": "a"},
            {"campaign": UNKNOWN_CAMPAIGN, "ad_group": "G", "search_term": "b"},
        ))
        assert len(forest) == 2
        assert all(n.name == UNKNOWN_CAMPAIGN for n in forest)
        assert forest[0].id != forest[1].id
        assert [n.children[0].children[0].name for n in forest] == ["a", "b"]

    def test_blank_ad_group_separate_from_literal_none(self):
        forest = build(_rows(
            {"campaign": "C", "ad_group": "", "search_term": "a"},
            {"campaign": "C", "ad_group": NO_AD_GROUP, "search_term": "b"},
        ))
        assert len(forest[0].children) == 2
