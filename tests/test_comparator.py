"""Tests for class comparison and matching strategies."""

from collections.abc import Callable
from dataclasses import replace

import pytest

from scenelink.comparator import ZERO_COMPARISON, Comparison, compare_classes, compare_props, compare_sum
from scenelink.config import DEFAULT_WEIGHTS, LinkerConfig
from scenelink.matching import Candidate, GreedyMatching, MatchKind, OptimalMatching, rank_candidates
from scenelink.template import ObjectClass


class TestCompareClasses:
    """Tests for compare_classes."""

    def test_identical_classes(self, make_class: Callable[..., ObjectClass], row_filters) -> None:
        """Identical peers score 1 on every axis."""
        start = make_class("bars", row_filters(0, 1, 2))
        end = make_class("bars", row_filters(0, 1, 2))
        compare = compare_classes(start, end)
        assert compare.type == 1
        assert compare.count == 1.0
        assert compare.data_scope == 1.0
        assert compare.data_tuples == 1.0
        assert compare.class_id == 1
        # No comp ids are set, so that axis contributes nothing
        assert compare_sum(compare) == pytest.approx(8.5)

    def test_type_mismatch(self, make_class, row_filters) -> None:
        """Different shape types never pass the type gate."""
        start = make_class("bars", row_filters(0, 1))
        end = make_class("dots", row_filters(0, 1), shape="Ellipse")
        assert compare_classes(start, end).type == 0

    def test_partial_overlap_uses_max_length(self, make_class, row_filters) -> None:
        """Partial overlap is scored against the larger class."""
        start = make_class("a", row_filters(0, 1, 2, 3))
        end = make_class("b", row_filters(0, 1))
        compare = compare_classes(start, end)
        assert compare.count == pytest.approx(0.5)
        assert compare.data_tuples == pytest.approx(0.5)
        assert compare.class_id == 0

    def test_empty_class_scores_zero(self, make_class, row_filters) -> None:
        """Malformed or empty classes compare as all-zero."""
        start = ObjectClass("empty")
        end = make_class("bars", row_filters(0))
        assert compare_classes(start, end) == ZERO_COMPARISON
        assert compare_props([], [], end.props(), end.scopes()) == ZERO_COMPARISON

    def test_missing_scope_scores_zero(self, make_class, row_filters) -> None:
        """A class missing a data scope fails the type gate."""
        start = make_class("bars", row_filters(0, 1))
        del start.data_scope_map["bars-1"]
        end = make_class("bars", row_filters(0, 1))
        assert compare_classes(start, end).type == 0

    def test_combine_detection(self, make_class) -> None:
        """Three regional groups combine into one total."""
        start = make_class("bars", [{"region": "East"}, {"region": "West"}, {"region": "North"}])
        end = make_class("total", [{}])
        compare = compare_classes(start, end)
        assert not compare.combine_start
        assert compare.combine_matches == 1
        assert compare.combine_misses == 0
        (matches,) = compare.combine_map.values()
        assert len(matches) == 3

    def test_partition_detection(self, make_class) -> None:
        """One total partitioned into regions flags the start side."""
        start = make_class("total", [{}])
        end = make_class("bars", [{"region": "East"}, {"region": "West"}])
        compare = compare_classes(start, end)
        assert compare.combine_start
        # East and West do not cover North, so the total is not complete
        assert compare.combine_matches == 0
        assert compare.combine_misses == 1


class TestCompareSum:
    """Tests for compare_sum."""

    @pytest.mark.parametrize("axis", ["count", "data_scope", "data_tuples", "comp_id"])
    def test_monotonic(self, axis: str) -> None:
        """Raising one axis never lowers the sum."""
        base = Comparison(type=1, count=0.5, data_scope=0.5, data_tuples=0.5, class_id=0, comp_id=0.5)
        raised = replace(base, **{axis: 0.9})
        assert compare_sum(raised) >= compare_sum(base)

    def test_class_id_monotonic(self) -> None:
        """A matching class id never lowers the sum."""
        base = Comparison(type=1, class_id=0)
        assert compare_sum(replace(base, class_id=1)) >= compare_sum(base)

    def test_custom_weights(self) -> None:
        """Weights scale each axis of the sum."""
        weights = {**DEFAULT_WEIGHTS, "count": 10.0}
        assert compare_sum(Comparison(count=1.0), weights) == pytest.approx(10.0)


class TestLinkerConfig:
    """Tests for LinkerConfig validation and serialization."""

    def test_round_trip(self) -> None:
        """A config survives to_dict and from_dict."""
        config = LinkerConfig(link_threshold=4.0)
        assert LinkerConfig.from_dict(config.to_dict()) == config

    def test_negative_weight(self) -> None:
        """Negative weights are rejected."""
        with pytest.raises(ValueError, match="non-negative"):
            LinkerConfig(weights={**DEFAULT_WEIGHTS, "count": -1.0})

    def test_missing_weight(self) -> None:
        """Every weight axis must be present."""
        with pytest.raises(ValueError, match="Missing"):
            LinkerConfig(weights={"count": 1.0})


def _candidate(start: str, end: str, score: float, order: int, combine: int = 0) -> Candidate:
    return Candidate(start, end, Comparison(type=1, combine_matches=combine), score, order)


class TestMatching:
    """Tests for greedy and optimal matching."""

    def test_rank_is_stable(self) -> None:
        """Equal scores keep enumeration order."""
        ranked = rank_candidates([_candidate("a", "x", 6, 0), _candidate("b", "y", 6, 1)])
        assert [c.start_id for c in ranked] == ["a", "b"]

    def test_greedy_first_match_wins(self) -> None:
        """Greedy matching takes the best pair and drops its rivals."""
        candidates = [
            _candidate("s1", "e1", 8.0, 0),
            _candidate("s1", "e2", 7.0, 1),
            _candidate("s2", "e1", 7.0, 2),
        ]
        matches = GreedyMatching().select(candidates, 5.0)
        assert [(m.start_id, m.end_id) for m in matches] == [("s1", "e1")]

    def test_optimal_maximizes_matches(self) -> None:
        """The assignment trades the single best pair for two good pairs."""
        candidates = [
            _candidate("s1", "e1", 8.0, 0),
            _candidate("s1", "e2", 7.0, 1),
            _candidate("s2", "e1", 7.0, 2),
        ]
        matches = OptimalMatching().select(candidates, 5.0)
        assert {(m.start_id, m.end_id) for m in matches} == {("s1", "e2"), ("s2", "e1")}

    def test_merge_below_threshold(self) -> None:
        """A low-scoring pair that combines becomes a merge."""
        matches = GreedyMatching().select([_candidate("s", "e", 1.0, 0, combine=1)], 5.0)
        assert matches[0].kind is MatchKind.MERGE

    def test_ineligible_pairs_skipped(self) -> None:
        """Pairs below the threshold that do not combine are never matched."""
        candidates = [_candidate("s", "e", 1.0, 0)]
        assert GreedyMatching().select(candidates, 5.0) == []
        assert OptimalMatching().select(candidates, 5.0) == []
