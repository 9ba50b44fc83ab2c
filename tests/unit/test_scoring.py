"""Unit tests for confidence scoring."""

from dataclasses import replace
from datetime import datetime, timedelta, timezone

import pytest

from pulseh2h.matches import (
    FACTOR_NAMES,
    ConfidenceFactors,
    ConfidenceTier,
    MatchCandidate,
    Tie,
    Unknown,
    ValidatedParticipant,
    WinLoss,
)
from pulseh2h.services.scoring import (
    MatchConfidenceScorer,
    RatingProximityProvider,
    RecentActivityProvider,
    ScoringConfig,
)

ALPHA = ValidatedParticipant(character_id=101, battle_tag="Alpha#101", display_name="Alpha", rating=4200)
BRAVO = ValidatedParticipant(character_id=102, battle_tag="Bravo#102", display_name="Bravo", rating=4350)


def _candidate(outcome=None, duration=300, map_name="Some Custom Map"):
    return MatchCandidate(
        match_id=1,
        match_date=datetime(2025, 10, 10, 12, tzinfo=timezone.utc),
        map=map_name,
        participants=(ALPHA, BRAVO),
        outcome=outcome or WinLoss(winner=ALPHA, loser=BRAVO),
        duration_seconds=duration,
    )


class TestDefaults:

    def test_win_loss_300s_is_medium(self):
        scorer = MatchConfidenceScorer()
        processed = scorer.score_match(_candidate())

        assert processed.confidence is ConfidenceTier.MEDIUM
        assert processed.confidence_factors.has_valid_character_ids
        assert processed.confidence_factors.both_community_members
        assert processed.confidence_factors.has_reasonable_duration
        assert not processed.confidence_factors.both_active_recently
        assert not processed.confidence_factors.similar_skill_level

    def test_score_value(self):
        scorer = MatchConfidenceScorer()
        factors = scorer.compute_factors(_candidate())
        assert scorer.score_value(factors, WinLoss(winner=ALPHA, loser=BRAVO)) == pytest.approx(6.1)
        assert scorer.score_value(factors, Tie(participants=(ALPHA, BRAVO))) == pytest.approx(6.0)

    def test_duration_bounds(self):
        scorer = MatchConfidenceScorer()
        assert scorer.compute_factors(_candidate(duration=60)).has_reasonable_duration
        assert scorer.compute_factors(_candidate(duration=3600)).has_reasonable_duration
        assert not scorer.compute_factors(_candidate(duration=59)).has_reasonable_duration
        assert not scorer.compute_factors(_candidate(duration=None)).has_reasonable_duration

    def test_recognized_map(self):
        scorer = MatchConfidenceScorer()
        assert scorer.compute_factors(_candidate(map_name="Altitude LE")).recognized_map
        assert not scorer.compute_factors(_candidate()).recognized_map

    def test_unknown_outcome_is_capped_at_low(self):
        scorer = MatchConfidenceScorer(
            active_recently=lambda participants: True,
            similar_skill=lambda participants: True,
        )
        unknown = Unknown(participants=(ALPHA, BRAVO))

        assert scorer.score(_candidate(outcome=unknown, map_name="Altitude LE")) is ConfidenceTier.LOW
        assert scorer.score(_candidate(map_name="Altitude LE")) is ConfidenceTier.HIGH


class TestMonotonicity:

    @pytest.mark.parametrize("factor", FACTOR_NAMES)
    def test_turning_a_factor_on_never_lowers_the_tier(self, factor):
        scorer = MatchConfidenceScorer()
        outcome = WinLoss(winner=ALPHA, loser=BRAVO)
        base = ConfidenceFactors(has_valid_character_ids=True, both_community_members=True)

        for start in (ConfidenceFactors(), base):
            before = scorer.tier_for(scorer.score_value(start, outcome), outcome)
            flipped = replace(start, **{factor: True})
            after = scorer.tier_for(scorer.score_value(flipped, outcome), outcome)
            assert after >= before


class TestConfig:

    def test_overrides_merge_with_defaults(self):
        config = ScoringConfig.with_overrides(factor_points={"recognized_map": 3}, threshold_high=9)
        assert config.points_for("recognized_map") == 3
        assert config.points_for("both_community_members") == 3
        assert config.threshold_medium == 6
        assert config.threshold_high == 9

    def test_rejects_unknown_factor(self):
        with pytest.raises(ValueError):
            ScoringConfig.with_overrides(factor_points={"vibes": 1})

    def test_rejects_inverted_thresholds(self):
        with pytest.raises(ValueError):
            ScoringConfig.with_overrides(threshold_medium=9, threshold_high=8)

    def test_custom_thresholds_change_tier(self):
        scorer = MatchConfidenceScorer(ScoringConfig.with_overrides(threshold_medium=7))
        assert scorer.score(_candidate()) is ConfidenceTier.LOW


class TestProviders:

    def test_rating_proximity(self):
        provider = RatingProximityProvider(max_gap=300)
        assert provider((ALPHA, BRAVO))
        far = replace(BRAVO, rating=5000)
        assert not provider((ALPHA, far))
        assert not provider((ALPHA, replace(BRAVO, rating=None)))

    def test_recent_activity(self, roster):
        now = datetime(2025, 10, 12, tzinfo=timezone.utc)
        provider = RecentActivityProvider(roster, days=7, now=lambda: now)
        assert provider((ALPHA, BRAVO))

        later = RecentActivityProvider(roster, days=7, now=lambda: now + timedelta(days=30))
        assert not later((ALPHA, BRAVO))

        charlie = ValidatedParticipant(character_id=103, battle_tag="Charlie#103", display_name="Charlie")
        assert not provider((ALPHA, charlie))


class TestStats:

    def test_scoring_stats(self):
        scorer = MatchConfidenceScorer()
        matches = scorer.score_matches([
            _candidate(),
            _candidate(outcome=Unknown(participants=(ALPHA, BRAVO))),
        ])

        stats = scorer.scoring_stats(matches)

        assert stats["total_matches"] == 2
        assert stats["confidence_counts"] == {"low": 1, "medium": 1, "high": 0}
        assert stats["factor_frequency"]["both_community_members"] == 2
        assert stats["avg_score"] == pytest.approx(6.0)

    def test_describe(self):
        description = MatchConfidenceScorer().describe()
        assert description["thresholds"] == {"medium": 6, "high": 8}
        assert "Altitude LE" in description["recognized_maps"]
