"""Pairwise compatibility scoring between a start and an end object class."""

from collections.abc import Mapping, Sequence
from dataclasses import dataclass, field

import numpy as np

from scenelink.config import DEFAULT_WEIGHTS
from scenelink.data import DataScope
from scenelink.shapes import ShapeProperties
from scenelink.template import ObjectClass


@dataclass(frozen=True)
class Comparison:
    """Scores for one (start class, end class) pair, each in [0, 1].

    ``combine_map`` maps each tuple string on the "one" side to the tuple
    strings of the "many" side groups it fully contains. ``combine_start`` is
    True when the start side is the "one" side (a partition); otherwise the
    start side's groups combine into the end side's.
    """

    type: int = 0
    count: float = 0.0
    data_scope: float = 0.0
    data_tuples: float = 0.0
    class_id: int = 0
    comp_id: float = 0.0
    combine_map: dict[str, list[str]] = field(default_factory=dict)
    combine_matches: int = 0
    combine_misses: int = 0
    combine_start: bool = False


ZERO_COMPARISON = Comparison()


def compare_sum(compare: Comparison, weights: Mapping[str, float] = DEFAULT_WEIGHTS) -> float:
    """Weighted ranking key for a comparison."""
    return (
        compare.count * weights["count"]
        + compare.data_scope * weights["data_scope"]
        + compare.data_tuples * weights["data_tuples"]
        + compare.class_id * weights["class_id"]
        + compare.comp_id * weights["comp_id"]
    )


def _overlap(values: Sequence[object], other_values: Sequence[object], max_length: int) -> float:
    shared = set(values) & set(other_values)
    shared.discard(None)
    return len(shared) / max_length


def _tuple_density(scopes: Sequence[DataScope]) -> float:
    return float(np.mean([len(s.tuples) for s in scopes])) if scopes else 0.0


def _combine(
    one_scopes: Sequence[DataScope],
    many_scopes: Sequence[DataScope],
) -> tuple[dict[str, list[str]], int, int]:
    combine_map: dict[str, list[str]] = {}
    matches_total = 0
    misses_total = 0
    many_ids = [(s.tuple_string, s.tuple_ids) for s in many_scopes]
    for scope in one_scopes:
        one_ids = scope.tuple_ids
        matches: list[str] = []
        covered: set[object] = set()
        for tuple_string, ids in many_ids:
            # Empty groups are contained in everything and never count
            if ids and ids <= one_ids and tuple_string not in matches:
                matches.append(tuple_string)
                covered |= ids
        combine_map[scope.tuple_string] = matches
        if one_ids and covered == one_ids:
            matches_total += 1
        else:
            misses_total += 1
    return combine_map, matches_total, misses_total


def compare_props(
    props: Sequence[ShapeProperties],
    scopes: Sequence[DataScope],
    other_props: Sequence[ShapeProperties],
    other_scopes: Sequence[DataScope],
) -> Comparison:
    """Score parallel property/scope lists of a start and an end class.

    Empty inputs score as :data:`ZERO_COMPARISON`.
    """
    if not props or not other_props or not scopes or not other_scopes:
        return ZERO_COMPARISON

    max_length = max(len(props), len(other_props))
    same_type = int(props[0].shape_type == other_props[0].shape_type)
    first_class = props[0].class_id
    class_id = int(first_class is not None and first_class == other_props[0].class_id)
    count = 1 - abs(len(props) - len(other_props)) / max_length
    comp_id = _overlap([p.comp_id for p in props], [p.comp_id for p in other_props], max_length)
    data_scope = _overlap(
        [s.filter_string for s in scopes],
        [s.filter_string for s in other_scopes],
        max_length,
    )
    data_tuples = _overlap(
        [s.tuple_string for s in scopes],
        [s.tuple_string for s in other_scopes],
        max_length,
    )

    # The side with fewer tuples per group is the one being combined
    combine_start = _tuple_density(other_scopes) < _tuple_density(scopes)
    one_scopes, many_scopes = (scopes, other_scopes) if combine_start else (other_scopes, scopes)
    combine_map, combine_matches, combine_misses = _combine(one_scopes, many_scopes)

    return Comparison(
        type=same_type,
        count=count,
        data_scope=data_scope,
        data_tuples=data_tuples,
        class_id=class_id,
        comp_id=comp_id,
        combine_map=combine_map,
        combine_matches=combine_matches,
        combine_misses=combine_misses,
        combine_start=combine_start,
    )


def compare_classes(start: ObjectClass, end: ObjectClass) -> Comparison:
    """Score two object classes; malformed classes score as zero."""
    if not start.is_well_formed or not end.is_well_formed:
        return ZERO_COMPARISON
    return compare_props(start.props(), start.scopes(), end.props(), end.scopes())
