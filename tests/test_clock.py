"""Tests for localized timestamps."""

from datetime import datetime, timedelta, timezone

from codetrack.clock import line_timestamp, localized_now, message_timestamp, resolve_zone


class TestClock:
    """Tests for clock helpers."""

    def test_formats(self):
        moment = datetime(2024, 5, 1, 9, 3, 7, tzinfo=timezone.utc)

        assert line_timestamp(moment) == "09:03:07"
        assert message_timestamp(moment) == "2024-05-01 09:03:07"

    def test_system_zone_when_unset(self):
        assert resolve_zone(None) is None
        assert resolve_zone("") is None
        assert localized_now().tzinfo is not None

    def test_named_zone(self):
        now = localized_now("UTC")
        assert now.utcoffset() == timedelta(0)

    def test_unknown_zone_falls_back(self):
        assert resolve_zone("Not/AZone") is None
        assert localized_now("Not/AZone").tzinfo is not None
