"""Tests for SLA deadline arithmetic and classification."""

from datetime import datetime, timedelta, timezone

import pytest

from src.config import SLAState
from src.core import ValidationException
from src.sla.domain import SLAClock, parse_timestamp

NOW = datetime(2025, 3, 1, 12, 0, tzinfo=timezone.utc)


# -----------------------------------------------------------------------
# classify
# -----------------------------------------------------------------------


class TestClassify:
    def test_deadline_equal_to_now_is_breached(self) -> None:
        assert SLAClock.classify(NOW, NOW) == SLAState.BREACHED

    def test_past_deadline_is_breached(self) -> None:
        assert SLAClock.classify(NOW - timedelta(seconds=1), NOW) == SLAState.BREACHED

    def test_under_a_day_left_is_at_risk(self) -> None:
        assert SLAClock.classify(NOW + timedelta(hours=23, minutes=59), NOW) == SLAState.AT_RISK

    def test_exactly_a_day_left_is_on_track(self) -> None:
        assert SLAClock.classify(NOW + timedelta(hours=24), NOW) == SLAState.ON_TRACK

    def test_custom_threshold(self) -> None:
        deadline = NOW + timedelta(hours=30)
        assert SLAClock.classify(deadline, NOW, at_risk_threshold=timedelta(hours=48)) == SLAState.AT_RISK

    def test_accepts_iso_strings_with_offsets(self) -> None:
        # 17:30+05:30 is 12:00 UTC
        assert SLAClock.classify("2025-03-01T17:30:00+05:30", NOW) == SLAState.BREACHED
        assert SLAClock.classify("2025-03-03T12:00:00Z", NOW.isoformat()) == SLAState.ON_TRACK


class TestParseTimestamp:
    def test_naive_values_are_utc(self) -> None:
        assert parse_timestamp("2025-03-01T12:00:00") == NOW
        assert parse_timestamp(datetime(2025, 3, 1, 12, 0)) == NOW

    def test_offsets_are_normalised(self) -> None:
        parsed = parse_timestamp("2025-03-01T17:30:00+05:30")
        assert parsed == NOW
        assert parsed.tzinfo == timezone.utc

    @pytest.mark.parametrize("value", ["", "yesterday", None, 12])
    def test_rejects_garbage(self, value) -> None:
        with pytest.raises(ValidationException):
            parse_timestamp(value)


# -----------------------------------------------------------------------
# evaluate
# -----------------------------------------------------------------------


class TestEvaluate:
    def test_time_left(self) -> None:
        reading = SLAClock.evaluate(NOW + timedelta(days=2, hours=3, minutes=20), NOW)
        assert reading.state == SLAState.ON_TRACK
        assert (reading.days, reading.hours) == (2, 3)
        assert reading.overdue_seconds == 0
        assert reading.label == "2d 3h left"

    def test_hours_only_label(self) -> None:
        reading = SLAClock.evaluate(NOW + timedelta(hours=5, minutes=10), NOW)
        assert reading.state == SLAState.AT_RISK
        assert reading.label == "5h left"

    def test_overdue_magnitude(self) -> None:
        reading = SLAClock.evaluate(NOW - timedelta(days=1, hours=2), NOW)
        assert reading.is_breached
        assert (reading.days, reading.hours) == (1, 2)
        assert reading.remaining_seconds == 0
        assert reading.overdue_seconds == timedelta(days=1, hours=2).total_seconds()
        assert reading.label == "Breached 1d 2h ago"
        assert reading.progress_percent == 100

    def test_progress_is_share_of_window_elapsed(self) -> None:
        deadline = NOW + timedelta(days=3, hours=12)
        reading = SLAClock.evaluate(deadline, NOW, total_window=timedelta(days=7))
        assert reading.progress_percent == 50

    def test_progress_never_drives_state(self) -> None:
        # Nearly the whole window gone but more than a day left
        deadline = NOW + timedelta(days=2)
        reading = SLAClock.evaluate(deadline, NOW, total_window=timedelta(days=100))
        assert reading.progress_percent == 98
        assert reading.state == SLAState.ON_TRACK

    def test_to_dict(self) -> None:
        data = SLAClock.evaluate(NOW + timedelta(hours=2), NOW).to_dict()
        assert data["state"] == "at_risk"
        assert data["deadline"] == (NOW + timedelta(hours=2)).isoformat()
        assert data["label"] == "2h left"


# -----------------------------------------------------------------------
# deadlines
# -----------------------------------------------------------------------


class TestDeadlines:
    def test_deadline_for(self) -> None:
        assert SLAClock.deadline_for(NOW, 72) == NOW + timedelta(hours=72)

    def test_escalation_extends_a_near_deadline(self) -> None:
        deadline = NOW + timedelta(hours=5)
        assert SLAClock.escalated_deadline(deadline, NOW) == NOW + timedelta(days=3)

    def test_escalation_extends_a_passed_deadline(self) -> None:
        deadline = NOW - timedelta(days=2)
        assert SLAClock.escalated_deadline(deadline, NOW) == NOW + timedelta(days=3)

    def test_escalation_never_shortens(self) -> None:
        deadline = NOW + timedelta(days=10)
        assert SLAClock.escalated_deadline(deadline, NOW) == deadline
