import pytest

from recon_checker.matcher import ANY_REUSED, ANY_UNUSED, Tier, TieredMatcher


def same_parity(s, t):
    return s % 2 == t % 2


def test_unique_matcher_rejects_reusing_tiers():
    with pytest.raises(ValueError):
        TieredMatcher([ANY_UNUSED, ANY_REUSED], unique=True)
    with pytest.raises(ValueError):
        TieredMatcher([])


def test_higher_tier_wins_over_candidate_order():
    matcher = TieredMatcher([Tier("parity", same_parity), ANY_UNUSED])
    targets = [(0, 10), (1, 11), (2, 12)]
    matches, unmatched, used = matcher.run([(0, 3)], lambda s: targets)
    assert matches == [(0, 1, "parity")]
    assert unmatched == []
    assert used == {1}


def test_unique_matcher_never_reuses_targets():
    matcher = TieredMatcher([ANY_UNUSED])
    targets = [(0, "a")]
    matches, unmatched, _ = matcher.run([(0, "x"), (1, "y")], lambda s: targets)
    assert matches == [(0, 0, "any_unused")]
    assert unmatched == [1]


def test_used_set_is_shared_between_passes():
    first = TieredMatcher([ANY_UNUSED])
    second = TieredMatcher([ANY_UNUSED])
    targets = [(0, "a"), (1, "b")]
    _, _, used = first.run([(0, "x")], lambda s: targets)
    matches, _, used = second.run([(5, "y")], lambda s: targets, used=used)
    assert matches == [(5, 1, "any_unused")]
    assert used == {0, 1}


def test_permissive_matcher_reuses_when_nothing_is_free():
    matcher = TieredMatcher([ANY_UNUSED, ANY_REUSED], unique=False)
    targets = [(0, "a")]
    matches, unmatched, _ = matcher.run([(0, "x"), (1, "y")], lambda s: targets)
    assert matches == [(0, 0, "any_unused"), (1, 0, "any_reused")]
    assert unmatched == []


def test_no_candidates_is_unmatched():
    matcher = TieredMatcher([ANY_UNUSED])
    matches, unmatched, _ = matcher.run([(0, "x")], lambda s: [])
    assert matches == []
    assert unmatched == [0]
