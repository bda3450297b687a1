"""
Tests for the booking modification resolver and the self matcher.
"""

import pendulum

from slotbook.domain.models import (
    BlockReason,
    Booking,
    BusyInterval,
    CanExtend,
    CanShiftBack,
    ExceptionEntry,
    NoAvailability,
    WeeklyScheduleEntry,
)
from slotbook.domain.modification import ModificationResolver, SelfMatcher
from slotbook.domain.schedule import ScheduleResolver

TZ = "Europe/Warsaw"
DAY = pendulum.date(2026, 11, 23)


def at(hour: int, minute: int = 0, second: int = 0):
    return pendulum.datetime(2026, 11, 23, hour, minute, second, tz=TZ)


def busy(start, end, event_id=None) -> BusyInterval:
    return BusyInterval(start=start, end=end, id=event_id)


def schedule_for(hours: str = "09:00-18:00", exception: ExceptionEntry = None):
    exceptions = {"2026-11-23": exception} if exception else {}
    resolver = ScheduleResolver(weekly={"monday": WeeklyScheduleEntry(hours=hours)}, exceptions=exceptions)
    return resolver.resolve(DAY)


def _booking(start=None, end=None, event_id="evt-1") -> Booking:
    return Booking(event_id=event_id, start=start or at(10), end=end or at(10, 30))


class TestModificationResolver:
    """Tests for ModificationResolver.resolve."""

    def setup_method(self):
        self.resolver = ModificationResolver(TZ)

    def test_extend_in_place_when_day_is_free(self):
        booking = _booking()
        intervals = [busy(at(10), at(10, 30), "evt-1")]

        outcome = self.resolver.resolve(booking, 60, intervals, schedule_for())

        assert isinstance(outcome, CanExtend)

    def test_shift_back_when_next_booking_blocks(self):
        booking = _booking()
        intervals = [
            busy(at(10), at(10, 30), "evt-1"),
            busy(at(10, 30), at(11), "evt-2"),
        ]

        outcome = self.resolver.resolve(booking, 60, intervals, schedule_for())

        assert isinstance(outcome, CanShiftBack)
        assert outcome.new_start == at(9, 30)
        assert outcome.new_end == at(10, 30)
        assert outcome.shift_minutes == 30
        assert outcome.reason == BlockReason.BOOKING_CONFLICT
        assert "09:30-10:30" in outcome.message

    def test_no_availability_when_both_sides_are_taken(self):
        booking = _booking()
        intervals = [
            busy(at(9), at(9, 45), "evt-0"),
            busy(at(10), at(10, 30), "evt-1"),
            busy(at(10, 30), at(11), "evt-2"),
        ]

        outcome = self.resolver.resolve(booking, 60, intervals, schedule_for())

        assert isinstance(outcome, NoAvailability)
        assert outcome.reason == BlockReason.BOOKING_CONFLICT

    def test_shorter_or_equal_duration_always_fits(self):
        booking = _booking()
        intervals = [busy(at(10, 30), at(11), "evt-2")]

        for minutes in (30, 15):
            outcome = self.resolver.resolve(booking, minutes, intervals, schedule_for("by appointment"))
            assert isinstance(outcome, CanExtend)

    def test_closing_time_leads_to_shift_back(self):
        booking = _booking(at(17, 30), at(18))

        outcome = self.resolver.resolve(booking, 60, [], schedule_for())

        assert isinstance(outcome, CanShiftBack)
        assert outcome.new_start == at(17)
        assert outcome.reason == BlockReason.OUTSIDE_WORKING_HOURS

    def test_shift_back_must_not_start_before_opening(self):
        booking = _booking(at(9), at(9, 30))
        intervals = [busy(at(9, 30), at(10), "evt-2")]

        outcome = self.resolver.resolve(booking, 60, intervals, schedule_for())

        assert isinstance(outcome, NoAvailability)
        assert outcome.reason == BlockReason.BOOKING_CONFLICT

    def test_closed_day(self):
        outcome = self.resolver.resolve(
            _booking(), 60, [], schedule_for(exception=ExceptionEntry(is_day_off=True))
        )

        assert isinstance(outcome, NoAvailability)
        assert outcome.reason == BlockReason.DAY_CLOSED

    def test_unparseable_hours(self):
        outcome = self.resolver.resolve(_booking(), 60, [], schedule_for("by appointment"))

        assert isinstance(outcome, NoAvailability)
        assert outcome.reason == BlockReason.UNPARSEABLE_HOURS

    def test_booking_outside_hours(self):
        outcome = self.resolver.resolve(_booking(at(19), at(19, 30)), 60, [], schedule_for())

        assert isinstance(outcome, NoAvailability)
        assert outcome.reason == BlockReason.OUTSIDE_WORKING_HOURS

    def test_extension_is_limited_to_the_range_of_the_start(self):
        booking = _booking(at(11, 30), at(12))

        outcome = self.resolver.resolve(booking, 90, [], schedule_for("09:00-12:00, 13:00-18:00"))

        assert isinstance(outcome, CanShiftBack)
        assert outcome.new_start == at(10, 30)
        assert outcome.reason == BlockReason.OUTSIDE_WORKING_HOURS

    def test_touching_ranges_act_as_one(self):
        booking = _booking(at(11, 30), at(12))

        outcome = self.resolver.resolve(booking, 90, [], schedule_for("09:00-12:00, 12:00-18:00"))

        assert isinstance(outcome, CanExtend)

    def test_own_interval_without_id_is_excluded_by_time(self):
        booking = _booking()
        intervals = [busy(at(10), at(10, 30))]

        outcome = self.resolver.resolve(booking, 60, intervals, schedule_for())

        assert isinstance(outcome, CanExtend)

    def test_shift_equals_difference_of_durations(self):
        booking = _booking(at(12), at(12, 45))
        intervals = [busy(at(12, 45), at(13, 30), "evt-2")]

        for new_duration in (60, 75, 120):
            outcome = self.resolver.resolve(booking, new_duration, intervals, schedule_for())
            assert isinstance(outcome, CanShiftBack)
            assert outcome.shift_minutes == new_duration - 45
            assert outcome.new_end - outcome.new_start == pendulum.duration(minutes=new_duration)

    def test_longer_duration_never_improves_outcome(self):
        booking = _booking(at(14), at(14, 30))
        intervals = [busy(at(12), at(13), "evt-0"), busy(at(15), at(16), "evt-2")]
        rank = {"can_extend": 0, "can_shift_back": 1, "no_availability": 2}

        previous = 0
        for new_duration in range(30, 240, 15):
            outcome = self.resolver.resolve(booking, new_duration, intervals, schedule_for())
            assert rank[outcome.status] >= previous
            previous = rank[outcome.status]

    def test_to_dict(self):
        booking = _booking()
        intervals = [busy(at(10, 30), at(11), "evt-2")]

        data = self.resolver.resolve(booking, 60, intervals, schedule_for()).to_dict()

        assert data["status"] == "can_shift_back"
        assert data["shiftMinutes"] == 30
        assert data["reason"] == "booking_conflict"


class TestSelfMatcher:
    """Tests for the two-stage self matcher."""

    def test_identifier_match(self):
        matcher = SelfMatcher("evt-1", at(10), at(10, 30))

        assert matcher.match_stage(busy(at(10), at(10, 30), "evt-1")) == "identifier"

    def test_identifier_mismatch_is_authoritative(self):
        matcher = SelfMatcher("evt-1", at(10), at(10, 30))

        # Same times, different booking
        assert matcher.match_stage(busy(at(10), at(10, 30), "evt-2")) is None

    def test_time_match_within_tolerance(self):
        matcher = SelfMatcher("evt-1", at(10), at(10, 30), tolerance_seconds=1.0)

        assert matcher.match_stage(busy(at(10, 0, 1), at(10, 30))) == "time"
        assert matcher.match_stage(busy(at(10, 0, 2), at(10, 30))) is None

    def test_time_match_across_zones(self):
        matcher = SelfMatcher(None, at(10), at(10, 30))
        interval = busy(
            pendulum.datetime(2026, 11, 23, 9, 0, tz="UTC"),
            pendulum.datetime(2026, 11, 23, 9, 30, tz="UTC"),
            "evt-1",
        )

        assert matcher.matches(interval)

    def test_exclude_keeps_other_bookings(self):
        matcher = SelfMatcher.for_booking(_booking())
        intervals = [busy(at(10), at(10, 30), "evt-1"), busy(at(11), at(11, 30), "evt-2")]

        assert [i.id for i in matcher.exclude(intervals)] == ["evt-2"]
