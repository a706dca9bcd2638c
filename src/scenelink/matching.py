"""Strategies that pick which scored class pairs become links or merges."""

import logging
from collections.abc import Sequence
from dataclasses import dataclass
from enum import StrEnum
from typing import Protocol

import numpy as np
from scipy.optimize import linear_sum_assignment

from scenelink.comparator import Comparison

logger = logging.getLogger(__name__)


class MatchKind(StrEnum):
    LINK = "link"
    MERGE = "merge"


@dataclass(frozen=True)
class Candidate:
    """A same-type (start class, end class) pair with its score."""

    start_id: str
    end_id: str
    compare: Comparison
    score: float
    # Position in start-major enumeration order, used to break ties
    order: int


@dataclass(frozen=True)
class Match:
    candidate: Candidate
    kind: MatchKind

    @property
    def start_id(self) -> str:
        return self.candidate.start_id

    @property
    def end_id(self) -> str:
        return self.candidate.end_id


def rank_candidates(candidates: Sequence[Candidate]) -> list[Candidate]:
    """Sort by score descending; equal scores keep enumeration order."""
    return sorted(candidates, key=lambda c: (-c.score, c.order))


def classify(candidate: Candidate, threshold: float) -> MatchKind | None:
    """How a pair would be matched on its own, or None if it is not eligible."""
    if candidate.score >= threshold:
        return MatchKind.LINK
    if candidate.compare.combine_matches > 0:
        return MatchKind.MERGE
    return None


class MatchingStrategy(Protocol):
    """Selects a set of pairs in which every class appears at most once."""

    def select(self, candidates: Sequence[Candidate], threshold: float) -> list[Match]: ...


class GreedyMatching:
    """First match wins, walking pairs from the highest score down."""

    def select(self, candidates: Sequence[Candidate], threshold: float) -> list[Match]:
        matched_start: set[str] = set()
        matched_end: set[str] = set()
        matches = []
        for candidate in rank_candidates(candidates):
            if candidate.start_id in matched_start or candidate.end_id in matched_end:
                continue
            kind = classify(candidate, threshold)
            if kind is None:
                continue
            matched_start.add(candidate.start_id)
            matched_end.add(candidate.end_id)
            matches.append(Match(candidate, kind))
        return matches


class OptimalMatching:
    """Maximum-weight bipartite assignment over the eligible pairs.

    Each eligible pair weighs its score plus one, so the assignment never
    trades an eligible pair for an ineligible one.
    """

    def select(self, candidates: Sequence[Candidate], threshold: float) -> list[Match]:
        eligible = [(c, classify(c, threshold)) for c in candidates]
        eligible = [(c, kind) for c, kind in eligible if kind is not None]
        if not eligible:
            return []

        start_ids = list(dict.fromkeys(c.start_id for c, _ in eligible))
        end_ids = list(dict.fromkeys(c.end_id for c, _ in eligible))
        start_index = {s: i for i, s in enumerate(start_ids)}
        end_index = {e: i for i, e in enumerate(end_ids)}

        weights = np.zeros((len(start_ids), len(end_ids)))
        lookup: dict[tuple[int, int], tuple[Candidate, MatchKind]] = {}
        for candidate, kind in eligible:
            key = (start_index[candidate.start_id], end_index[candidate.end_id])
            weights[key] = candidate.score + 1.0
            lookup[key] = (candidate, kind)

        rows, cols = linear_sum_assignment(weights, maximize=True)
        matches = [
            Match(*lookup[(int(r), int(c))])
            for r, c in zip(rows, cols, strict=True)
            if (int(r), int(c)) in lookup
        ]
        logger.debug("Optimal matching selected %d of %d eligible pairs", len(matches), len(eligible))
        return sorted(matches, key=lambda m: (-m.candidate.score, m.candidate.order))
