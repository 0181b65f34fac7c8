# Candidate start times for a day
from app.services.time_of_day import TimeOfDay


class SlotSequence:
    """
    Fixed-step start times from ``hours.open_time`` up to and including
    ``hours.last_booking_time``.

    Iterating twice yields the same times; nothing here looks at the clock.
    Elapsed slots are filtered later by the conflict detector.
    """

    def __init__(self, day, granularity_minutes, hours):
        if granularity_minutes <= 0:
            raise ValueError("Slot granularity must be a positive number of minutes")
        self.day = day
        self.granularity_minutes = granularity_minutes
        self.hours = hours

    def __iter__(self):
        minutes = self.hours.open_time.minutes
        last = self.hours.last_booking_time.minutes
        while minutes <= last:
            yield TimeOfDay.from_minutes(minutes)
            minutes += self.granularity_minutes

    def __len__(self):
        span = self.hours.last_booking_time.minutes - self.hours.open_time.minutes
        if span < 0:
            return 0
        return span // self.granularity_minutes + 1


def generate_slots(day, granularity_minutes, hours):
    return SlotSequence(day, granularity_minutes, hours)
