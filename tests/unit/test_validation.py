"""Unit tests for participant validation and outcome extraction."""

from pulseh2h.matches import Decision, Tie, Unknown, WinLoss
from pulseh2h.pulse.models import parse_raw_match
from pulseh2h.services.validation import ParticipantValidator, build_candidates, extract_outcome


def _raw(entry_factory, participants, match_id=1):
    return parse_raw_match(entry_factory(match_id, participants))


class TestParticipantValidator:

    def test_keeps_decisive_roster_members(self, roster, entry_factory):
        raw = _raw(entry_factory, [(101, "WIN"), (102, "LOSS"), (103, "OBSERVER")])

        validated = ParticipantValidator(roster).validate(raw)

        assert [p.character_id for p in validated] == [101, 102]
        assert validated[0].battle_tag == "Alpha#101"
        assert validated[0].display_name == "Alpha"
        assert validated[0].rating == 4200
        assert all(p.is_community_member for p in validated)

    def test_drops_unknown_and_missing_ids(self, roster, entry_factory):
        raw = _raw(entry_factory, [(101, "WIN"), (999, "LOSS"), (None, "LOSS")])
        validated = ParticipantValidator(roster).validate(raw)
        assert [p.character_id for p in validated] == [101]


class TestExtractOutcome:

    def test_win_loss(self, roster, entry_factory):
        raw = _raw(entry_factory, [(102, "LOSS"), (101, "WIN")])
        validated = ParticipantValidator(roster).validate(raw)

        outcome = extract_outcome(raw, validated)

        assert isinstance(outcome, WinLoss)
        assert outcome.winner.character_id == 101
        assert outcome.loser.character_id == 102

    def test_two_winners_is_unknown(self, roster, entry_factory):
        raw = _raw(entry_factory, [(101, "WIN"), (102, "WIN")])
        validated = ParticipantValidator(roster).validate(raw)
        assert isinstance(extract_outcome(raw, validated), Unknown)

    def test_all_ties_is_tie(self, roster, entry_factory):
        raw = _raw(entry_factory, [(101, "TIE"), (102, "TIE")])
        # Ties are not decisive, so hand the extractor the two players directly
        validator = ParticipantValidator(roster)
        validated = [
            validator.validate_participant(p.model_copy(update={"decision": Decision.WIN}))
            for p in raw.participants
        ]
        assert isinstance(extract_outcome(raw, validated), Tie)

    def test_single_decision_is_unknown(self, roster, entry_factory):
        raw = _raw(entry_factory, [(101, "WIN"), (999, "LOSS")])
        validated = ParticipantValidator(roster).validate(raw)
        assert isinstance(extract_outcome(raw, validated), Unknown)


class TestBuildCandidates:

    def test_observer_scenario_is_dropped(self, roster, entry_factory):
        raws = [_raw(entry_factory, [(101, "WIN"), (103, "OBSERVER")])]

        candidates, stats = build_candidates(raws, ParticipantValidator(roster))

        assert candidates == []
        assert stats.rejected_participant_count == 1

    def test_accepts_two_member_match(self, roster, entry_factory):
        raws = [
            _raw(entry_factory, [(101, "WIN"), (102, "LOSS")], match_id=1),
            _raw(entry_factory, [(101, "WIN"), (999, "LOSS")], match_id=2),
        ]

        candidates, stats = build_candidates(raws, ParticipantValidator(roster))

        assert [c.match_id for c in candidates] == [1]
        assert candidates[0].map == "Altitude LE"
        assert candidates[0].duration_seconds == 300
        assert stats.accepted == 1
        assert stats.total_matches == 2

    def test_error_in_one_match_does_not_stop_batch(self, roster, entry_factory):
        class ExplodingValidator(ParticipantValidator):
            def validate(self, raw):
                if raw.match_id == 1:
                    raise RuntimeError("boom")
                return super().validate(raw)

        raws = [
            _raw(entry_factory, [(101, "WIN"), (102, "LOSS")], match_id=1),
            _raw(entry_factory, [(103, "WIN"), (104, "LOSS")], match_id=2),
        ]

        candidates, stats = build_candidates(raws, ExplodingValidator(roster))

        assert [c.match_id for c in candidates] == [2]
        assert stats.errors == 1

    def test_same_player_twice_is_rejected(self, roster, entry_factory):
        raws = [_raw(entry_factory, [(101, "WIN"), (101, "LOSS")])]

        candidates, stats = build_candidates(raws, ParticipantValidator(roster))

        assert candidates == []
        assert stats.rejected_participant_count == 1
        assert stats.errors == 0
