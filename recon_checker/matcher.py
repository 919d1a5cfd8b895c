# recon_checker/matcher.py
"""
Priority-tiered greedy assignment shared by both reconciliation jobs.

Sources are visited in input order. For each source the candidate targets are
tried tier by tier; inside a tier the first candidate (in candidate order)
that satisfies the tier predicate wins. A tier either requires the target to
be still unused, or allows re-using a target that an earlier source already
took. A matcher built with unique=True refuses re-using tiers, so a target
can appear in at most one pair.
"""

from __future__ import annotations

from dataclasses import dataclass, field
from typing import Callable, Generic, Iterable, List, Optional, Sequence, Set, Tuple, TypeVar

S = TypeVar("S")
T = TypeVar("T")


@dataclass(frozen=True)
class Tier(Generic[S, T]):
    name: str
    predicate: Callable[[S, T], bool]
    reuse: bool = False


@dataclass
class MatchResult:
    pairs: List[Tuple[int, int]] = field(default_factory=list)
    unmatched_sources: List[int] = field(default_factory=list)
    unmatched_targets: List[int] = field(default_factory=list)
    fallback_indices: List[int] = field(default_factory=list)


def _always(_s, _t) -> bool:
    return True


ANY_UNUSED = Tier("any_unused", _always)
ANY_REUSED = Tier("any_reused", _always, reuse=True)


class TieredMatcher(Generic[S, T]):
    def __init__(self, tiers: Sequence[Tier[S, T]], unique: bool = True) -> None:
        if not tiers:
            raise ValueError("at least one tier is required")
        if unique and any(t.reuse for t in tiers):
            raise ValueError("unique matcher cannot contain target-reusing tiers")
        self.tiers = tuple(tiers)
        self.unique = unique

    def choose(self, source: S, candidates: Sequence[Tuple[int, T]], used: Set[int]) -> Optional[Tuple[int, str]]:
        """Return (target_index, tier_name) for the best candidate, or None."""
        for tier in self.tiers:
            for idx, target in candidates:
                if not tier.reuse and idx in used:
                    continue
                if tier.predicate(source, target):
                    return idx, tier.name
        return None

    def run(
        self,
        sources: Iterable[Tuple[int, S]],
        candidates_for: Callable[[S], Sequence[Tuple[int, T]]],
        used: Optional[Set[int]] = None,
    ) -> Tuple[List[Tuple[int, int, str]], List[int], Set[int]]:
        """
        Greedy pass. `used` is updated in place so several passes can share it.
        Returns (matches as (source, target, tier), unmatched source indices, used).
        """
        used = set() if used is None else used
        matches: List[Tuple[int, int, str]] = []
        unmatched: List[int] = []
        for s_idx, source in sources:
            cands = candidates_for(source)
            hit = self.choose(source, cands, used) if cands else None
            if hit is None:
                unmatched.append(s_idx)
                continue
            t_idx, tier_name = hit
            used.add(t_idx)
            matches.append((s_idx, t_idx, tier_name))
        return matches, unmatched, used
