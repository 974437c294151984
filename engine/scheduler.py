"""Greedy venue/time placement of generated pairings."""

import logging
from dataclasses import dataclass, field, replace
from datetime import date, datetime, time, timedelta
from typing import Optional, Sequence

from engine.config import ScheduleConfig
from engine.round_robin import Pairing

logger = logging.getLogger(__name__)


@dataclass(frozen=True)
class SchedulerCursor:
    date: date
    venue_index: int = 0
    scheduled_today: int = 0
    venue_counts: tuple[tuple[str, int], ...] = field(default_factory=tuple)

    def count(self, venue: str) -> int:
        return dict(self.venue_counts).get(venue, 0)

    def with_booking(self, venue: str, next_index: int) -> 'SchedulerCursor':
        counts = dict(self.venue_counts)
        counts[venue] = counts.get(venue, 0) + 1
        return replace(
            self,
            venue_index=next_index,
            scheduled_today=self.scheduled_today + 1,
            venue_counts=tuple(sorted(counts.items())),
        )


@dataclass(frozen=True)
class Slot:
    pairing: Pairing
    date: date
    time: time
    venue: str


def kickoff_at(config: ScheduleConfig, day: date, index: int) -> datetime:
    """Kickoff of the ``index``-th match at a venue on ``day``.

    Late slots run past midnight onto the following date.
    """
    start = datetime.combine(day, config.daily_start)
    return start + timedelta(minutes=index * config.slot_minutes)


def _next_day(cursor: SchedulerCursor, start_date: date, end_date: Optional[date]) -> SchedulerCursor:
    day = cursor.date + timedelta(days=1)
    if end_date and day > end_date:
        logger.warning(
            'Schedule ran past %s; wrapping back to %s', end_date.isoformat(), start_date.isoformat()
        )
        day = start_date
    return SchedulerCursor(date=day)


def _pick_venue(config: ScheduleConfig, cursor: SchedulerCursor) -> Optional[int]:
    total = len(config.venues)
    for offset in range(total):
        index = (cursor.venue_index + offset) % total
        venue = config.venues[index]
        if cursor.count(venue) < config.capacity(venue):
            return index
    return None


def place(
    pairing: Pairing,
    config: ScheduleConfig,
    cursor: SchedulerCursor,
    start_date: date,
    end_date: Optional[date] = None,
) -> tuple[Slot, SchedulerCursor]:
    """Place one pairing and return the slot with the advanced cursor."""
    index = _pick_venue(config, cursor)
    if index is None:
        cursor = _next_day(cursor, start_date, end_date)
        index = 0

    venue = config.venues[index]
    kickoff = kickoff_at(config, cursor.date, cursor.count(venue))
    slot = Slot(pairing, kickoff.date(), kickoff.time(), venue)
    cursor = cursor.with_booking(venue, (index + 1) % len(config.venues))

    if cursor.scheduled_today >= config.daily_capacity:
        cursor = _next_day(cursor, start_date, end_date)
    return slot, cursor


def schedule_pairings(
    pairings: Sequence[Pairing],
    config: ScheduleConfig,
    start_date: date,
    end_date: Optional[date] = None,
    cursor: Optional[SchedulerCursor] = None,
) -> tuple[list[Slot], SchedulerCursor]:
    """Assign a date, kickoff time and venue to every pairing, in order.

    Venues are tried in rotation; a venue takes at most its daily capacity.
    When every venue is full the calendar advances one day, and past
    ``end_date`` it wraps back to ``start_date`` (best effort only).
    """
    cursor = cursor or SchedulerCursor(date=start_date)
    slots: list[Slot] = []
    for pairing in pairings:
        slot, cursor = place(pairing, config, cursor, start_date, end_date)
        slots.append(slot)
    return slots, cursor
