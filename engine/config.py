"""Scheduling configuration read from a tournament's ``schedule_config``."""

from dataclasses import dataclass, field
from datetime import datetime, time

from engine.errors import ValidationError

DEFAULT_VENUE = 'Main Ground'
DEFAULT_DAILY_START = '16:00'
DEFAULT_BUFFER_MINUTES = 30
# Turnaround added between consecutive kickoffs at the same venue.
SLOT_BUFFER_MINUTES = 15
LEAGUE_MATCHES_PER_DAY = 2
GROUP_MATCHES_PER_DAY = 4


def parse_clock(value: str) -> time:
    try:
        return datetime.strptime(value, '%H:%M').time()
    except (TypeError, ValueError):
        raise ValidationError(f'Daily start time must use HH:MM, got {value!r}') from None


def _positive_int(value, label: str) -> int:
    try:
        number = int(value)
    except (TypeError, ValueError):
        raise ValidationError(f'{label} must be a whole number, got {value!r}') from None
    if number <= 0:
        raise ValidationError(f'{label} must be positive, got {number}')
    return number


@dataclass(frozen=True)
class ScheduleConfig:
    venues: tuple[str, ...]
    matches_per_day: int
    daily_start: time
    match_minutes: int
    buffer_minutes: int = DEFAULT_BUFFER_MINUTES
    venue_capacity: dict[str, int] = field(default_factory=dict)

    @property
    def slot_minutes(self) -> int:
        """Spacing between kickoffs at one venue on one day."""
        return self.match_minutes + SLOT_BUFFER_MINUTES

    def capacity(self, venue: str) -> int:
        return self.venue_capacity.get(venue) or self.matches_per_day

    @property
    def daily_capacity(self) -> int:
        return sum(self.capacity(venue) for venue in self.venues)

    @classmethod
    def from_tournament(
        cls,
        tournament,
        matches_per_day: int | None = None,
        daily_start_time: str | None = None,
        default_matches_per_day: int = LEAGUE_MATCHES_PER_DAY,
    ) -> 'ScheduleConfig':
        raw = dict(tournament.schedule_config or {})

        per_day = raw.get('matchesPerDay')
        if per_day is None:
            per_day = raw.get('matchesPerDayPerVenue', default_matches_per_day)
        if matches_per_day:
            per_day = matches_per_day

        start_value = daily_start_time or raw.get('dailyStartTime') or DEFAULT_DAILY_START

        venues = tuple(v for v in (tournament.venues or []) if v) or (DEFAULT_VENUE,)

        venue_capacity = {}
        for venue, limit in (raw.get('venueMatchConfigs') or {}).items():
            venue_capacity[venue] = _positive_int(limit, f'Match limit for venue "{venue}"')

        buffer_minutes = raw.get('bufferMinutes', DEFAULT_BUFFER_MINUTES)
        try:
            buffer_minutes = int(buffer_minutes)
        except (TypeError, ValueError):
            raise ValidationError(f'Buffer minutes must be a whole number, got {buffer_minutes!r}') from None
        if buffer_minutes < 0:
            raise ValidationError('Buffer minutes cannot be negative')

        return cls(
            venues=venues,
            matches_per_day=_positive_int(per_day, 'Matches per day'),
            daily_start=parse_clock(start_value),
            match_minutes=tournament.match_duration_minutes,
            buffer_minutes=buffer_minutes,
            venue_capacity=venue_capacity,
        )
