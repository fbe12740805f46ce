"""
Tests for not-out detection and its order of authority.
"""
from types import SimpleNamespace

from scorebook.engine.not_out import InningsEnd, is_not_out, not_out_from_summary


def record(**fields):
    data = {"not_out": None, "dismissed": None, "wicket_kind": None, "status": None}
    data.update(fields)
    return SimpleNamespace(**data)


class TestOrderOfAuthority:
    def test_explicit_not_out_beats_dismissal_kind(self):
        assert is_not_out(record(not_out=True, wicket_kind="bowled")) is True

    def test_explicit_dismissed_flag(self):
        assert is_not_out(record(dismissed=True)) is False

    def test_explicit_not_out_false(self):
        assert is_not_out(record(not_out=False)) is False

    def test_retired_hurt_is_not_out(self):
        assert is_not_out(record(wicket_kind="retired-hurt")) is True

    def test_any_other_dismissal_is_out(self):
        for kind in ("bowled", "caught", "run-out", "Run Out", "retired-out", "timed-out"):
            assert is_not_out(record(wicket_kind=kind)) is False

    def test_dismissal_beats_innings_end(self):
        end = InningsEnd(innings_complete=True, all_out=True)
        assert is_not_out(record(wicket_kind="lbw"), end) is False

    def test_innings_ended_without_dismissal(self):
        end = InningsEnd(innings_complete=True, target_reached=True)
        assert is_not_out(record(), end) is True

    def test_default_is_not_out(self):
        assert is_not_out(record()) is True
        assert is_not_out(record(), InningsEnd()) is True

    def test_empty_wicket_kind_is_no_dismissal(self):
        assert is_not_out(record(wicket_kind="")) is True


class TestFromSummary:
    def test_status_strings(self):
        assert not_out_from_summary(record(status="not out")) is True
        assert not_out_from_summary(record(status="Out")) is False
        assert not_out_from_summary(record(status="dismissed")) is False

    def test_flags_beat_status(self):
        assert not_out_from_summary(record(not_out=True, status="out")) is True

    def test_no_signal_defaults_to_not_out(self):
        assert not_out_from_summary(record()) is True


class TestInningsEnd:
    def test_ended(self):
        assert not InningsEnd().ended
        assert InningsEnd(overs_complete=True).ended
        assert InningsEnd(abandoned=True).ended

    def test_dict_round_trip(self):
        end = InningsEnd(innings_complete=True, all_out=True)
        assert InningsEnd.from_dict(end.to_dict()) == end

    def test_from_empty_dict(self):
        assert InningsEnd.from_dict(None) is None
        assert InningsEnd.from_dict({}) is None
