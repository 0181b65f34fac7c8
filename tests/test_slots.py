import pytest

from app.config import BusinessSettings, OpeningHours
from app.services.slots import generate_slots
from app.services.time_of_day import TimeOfDay
from conftest import SATURDAY, WEDNESDAY

SETTINGS = BusinessSettings()


def hours(open_time, close_time, last):
    return OpeningHours(TimeOfDay(open_time), TimeOfDay(close_time), TimeOfDay(last))


@pytest.mark.slots
class TestSlotGenerator:
    """Fixed-step candidate start times."""

    def test_weekday_slots_span_open_to_last_booking(self):
        slots = list(generate_slots(WEDNESDAY, 10, SETTINGS.weekday_hours))
        assert slots[0] == "10:00"
        assert slots[-1] == "20:00"
        assert len(slots) == 61

    def test_weekend_slots_stop_at_weekend_cutoff(self):
        slots = list(generate_slots(SATURDAY, 10, SETTINGS.weekend_hours))
        assert slots[-1] == "19:30"

    @pytest.mark.parametrize("granularity", [5, 10, 15, 30, 60])
    def test_slots_strictly_increase_by_granularity(self, granularity):
        day_hours = SETTINGS.weekday_hours
        slots = list(generate_slots(WEDNESDAY, granularity, day_hours))
        for earlier, later in zip(slots, slots[1:]):
            assert later.minutes - earlier.minutes == granularity
        assert all(day_hours.open_time <= s <= day_hours.last_booking_time for s in slots)

    def test_last_slot_not_on_grid_is_excluded(self):
        slots = list(generate_slots(WEDNESDAY, 30, hours("10:00", "12:00", "11:15")))
        assert slots == ["10:00", "10:30", "11:00"]

    def test_sequence_is_restartable(self):
        sequence = generate_slots(WEDNESDAY, 10, SETTINGS.weekday_hours)
        assert list(sequence) == list(sequence)
        assert len(sequence) == len(list(sequence))

    def test_empty_when_cutoff_before_opening(self):
        sequence = generate_slots(WEDNESDAY, 10, hours("10:00", "12:00", "09:00"))
        assert list(sequence) == []
        assert len(sequence) == 0

    def test_rejects_non_positive_granularity(self):
        with pytest.raises(ValueError):
            generate_slots(WEDNESDAY, 0, SETTINGS.weekday_hours)
