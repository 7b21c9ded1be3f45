"""
Tests for the temporal value types.
"""

from datetime import date

import pendulum
import pytest

from staffbooking.domain.exceptions import InvalidSlotError
from staffbooking.domain.models import TimeRange, Weekday


class TestWeekday:
    """Tests for the Weekday enumeration."""

    def test_from_calendar_weekday_covers_all_seven_days(self):
        """Calendar indices 0..6 map Monday..Sunday."""
        days = [Weekday.from_calendar_weekday(i) for i in range(7)]

        assert days == [
            Weekday.MONDAY,
            Weekday.TUESDAY,
            Weekday.WEDNESDAY,
            Weekday.THURSDAY,
            Weekday.FRIDAY,
            Weekday.SATURDAY,
            Weekday.SUNDAY,
        ]

    @pytest.mark.parametrize("value", [-1, 7, 42, "monday", None, True, 1.0])
    def test_from_calendar_weekday_returns_none_for_invalid_input(self, value):
        """Anything but the seven indices yields the empty value."""
        assert Weekday.from_calendar_weekday(value) is None

    def test_of_resolves_a_full_week(self):
        """Weekday.of agrees with the calendar for seven consecutive days."""
        sunday = pendulum.datetime(2026, 10, 4, 10, 0, tz="UTC")
        expected = [
            Weekday.SUNDAY,
            Weekday.MONDAY,
            Weekday.TUESDAY,
            Weekday.WEDNESDAY,
            Weekday.THURSDAY,
            Weekday.FRIDAY,
            Weekday.SATURDAY,
        ]

        for offset, weekday in enumerate(expected):
            assert Weekday.of(sunday.add(days=offset)) == weekday

    def test_of_accepts_plain_dates(self):
        """Plain dates resolve the same way as datetimes."""
        assert Weekday.of(date(2026, 10, 5)) == Weekday.MONDAY

    def test_calendar_index_round_trip(self):
        """calendar_index is the inverse of from_calendar_weekday."""
        for weekday in Weekday:
            assert Weekday.from_calendar_weekday(weekday.calendar_index()) == weekday

    def test_parse(self):
        """Persisted literals parse case-insensitively."""
        assert Weekday.parse("monday") == Weekday.MONDAY
        assert Weekday.parse(" Friday ") == Weekday.FRIDAY
        assert Weekday.parse(Weekday.SUNDAY) == Weekday.SUNDAY

    def test_parse_rejects_unknown_names(self):
        """Unknown names raise an invalid-slot error."""
        with pytest.raises(InvalidSlotError, match="invalid weekday"):
            Weekday.parse("funday")

    def test_values_are_the_persisted_literals(self):
        """The enum values are the strings written to storage."""
        assert {w.value for w in Weekday} == {
            "sunday", "monday", "tuesday", "wednesday", "thursday", "friday", "saturday"
        }


class TestTimeRange:
    """Tests for TimeRange model."""

    def test_create_valid_time_range(self):
        """Test creating a valid time range."""
        start = pendulum.parse("2026-10-05 09:00", tz="UTC")
        end = pendulum.parse("2026-10-05 17:00", tz="UTC")

        tr = TimeRange(start=start, end=end)

        assert tr.start == start
        assert tr.end == end

    def test_invalid_time_range_raises_error(self):
        """Test that creating an invalid time range raises ValueError."""
        start = pendulum.parse("2026-10-05 17:00", tz="UTC")
        end = pendulum.parse("2026-10-05 09:00", tz="UTC")

        with pytest.raises(ValueError, match="Start time .* must be before end time"):
            TimeRange(start=start, end=end)

    def test_starting_at(self):
        """starting_at builds a range of the given length."""
        start = pendulum.parse("2026-10-05 14:00", tz="UTC")

        tr = TimeRange.starting_at(start, 30)

        assert tr.end == pendulum.parse("2026-10-05 14:30", tz="UTC")

    def test_overlaps_is_half_open(self):
        """Ranges that only touch do not overlap."""
        tr1 = TimeRange(
            start=pendulum.parse("2026-10-05 09:00", tz="UTC"),
            end=pendulum.parse("2026-10-05 12:00", tz="UTC")
        )
        tr2 = TimeRange(
            start=pendulum.parse("2026-10-05 11:00", tz="UTC"),
            end=pendulum.parse("2026-10-05 14:00", tz="UTC")
        )
        tr3 = TimeRange(
            start=pendulum.parse("2026-10-05 12:00", tz="UTC"),
            end=pendulum.parse("2026-10-05 13:00", tz="UTC")
        )

        assert tr1.overlaps(tr2)
        assert tr2.overlaps(tr1)
        assert not tr1.overlaps(tr3)

    def test_contains_is_boundary_inclusive(self):
        """Equal boundaries count as contained."""
        outer = TimeRange(
            start=pendulum.parse("2026-10-05 09:00", tz="UTC"),
            end=pendulum.parse("2026-10-05 17:00", tz="UTC")
        )
        late = TimeRange(
            start=pendulum.parse("2026-10-05 16:30", tz="UTC"),
            end=pendulum.parse("2026-10-05 17:01", tz="UTC")
        )

        assert outer.contains(outer)
        assert not outer.contains(late)

    def test_includes_both_end_points(self):
        """A moment equal to either end is included."""
        tr = TimeRange.starting_at(pendulum.parse("2026-10-05 09:00", tz="UTC"), 30)

        assert tr.includes(pendulum.parse("2026-10-05 09:00", tz="UTC"))
        assert tr.includes(pendulum.parse("2026-10-05 09:30", tz="UTC"))
        assert not tr.includes(pendulum.parse("2026-10-05 09:31", tz="UTC"))
        assert not tr.includes(pendulum.parse("2026-10-05 08:59", tz="UTC"))
